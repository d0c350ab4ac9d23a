"""Orchestration Service: plans, runs and supervises the agent workflow.

ADR-008: Every request is answered within its strategy's timeout budget.
Crisis messages pre-empt everything else (ADR-001).

Components:
- planner.py: request validation, message classification, ExecutionPlan
- workflow.py: state-machine driver with parallel fan-out/fan-in
- context.py: per-request accumulator and the deltas nodes return
- synthesizer.py: template-based reply and minimal fallbacks
- supervisor.py: timeout race, sealing and fallback replies
- recorder.py: TransparencyReport built from a finished context
- notifier.py: Kinesis emergency-contact events (ADR-004)
- transparency.py: sink for transparency reports
- engine.py: OrchestrationEngine.process entry point
- handler.py: Flask HTTP surface

Usage:
    engine = OrchestrationEngine()
    response = await engine.process("I feel anxious about my exam", "user_123")
"""

from .config import DeploymentProfile, OrchestrationConfig, STRATEGY_DESCRIPTIONS
from .context import ContextDelta, OrchestrationContext, PendingStep
from .engine import OrchestrationEngine, OrchestrationResponse, build_agents
from .errors import ContextInvariantError, OrchestrationError, PlannerError, SynthesisError
from .notifier import EmergencyContactEvent, EmergencyNotifier, KinesisEmergencyNotifier
from .planner import ExecutionPlan, ExecutionPlanner, MessageClassification, classify_message
from .recorder import OrchestrationRecorder, TransparencyReport
from .supervisor import TimeoutSupervisor
from .synthesizer import ResponseSynthesizer, SynthesisResult
from .transparency import LoggingTransparencySink, TransparencySink
from .workflow import NodeId, TRANSITIONS, WorkflowEngine

__all__ = [
    "DeploymentProfile",
    "OrchestrationConfig",
    "STRATEGY_DESCRIPTIONS",
    "ContextDelta",
    "OrchestrationContext",
    "PendingStep",
    "OrchestrationEngine",
    "OrchestrationResponse",
    "build_agents",
    "ContextInvariantError",
    "OrchestrationError",
    "PlannerError",
    "SynthesisError",
    "EmergencyContactEvent",
    "EmergencyNotifier",
    "KinesisEmergencyNotifier",
    "ExecutionPlan",
    "ExecutionPlanner",
    "MessageClassification",
    "classify_message",
    "OrchestrationRecorder",
    "TransparencyReport",
    "TimeoutSupervisor",
    "ResponseSynthesizer",
    "SynthesisResult",
    "LoggingTransparencySink",
    "TransparencySink",
    "NodeId",
    "TRANSITIONS",
    "WorkflowEngine",
]
