"""Shared domain models for the mindweave orchestration engine."""
from .risk import (
    RiskLevel,
    UrgencyLevel,
    SafetyPlan,
    RiskAssessment,
)
from .orchestration import (
    AgentName,
    Strategy,
    ExecutionType,
    StepStatus,
    AgentExecutionResult,
    ExecutionStep,
)
from .context import (
    TransparencyLevel,
    ProcessingSpeed,
    CommunicationStyle,
    UserPreferences,
    ContextSnapshot,
)

__all__ = [
    "RiskLevel",
    "UrgencyLevel",
    "SafetyPlan",
    "RiskAssessment",
    "AgentName",
    "Strategy",
    "ExecutionType",
    "StepStatus",
    "AgentExecutionResult",
    "ExecutionStep",
    "TransparencyLevel",
    "ProcessingSpeed",
    "CommunicationStyle",
    "UserPreferences",
    "ContextSnapshot",
]
