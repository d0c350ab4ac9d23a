"""Orchestration bookkeeping models: agent results and execution steps.

Both records are immutable once produced. The workflow appends them to
the request context; nothing edits them afterwards.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class AgentName(Enum):
    """The five specialized analysis agents."""
    EMOTION_ANALYZER = "emotion_analyzer"
    MEMORY_MANAGER = "memory_manager"
    CRISIS_MONITOR = "crisis_monitor"
    THERAPY_ADVISOR = "therapy_advisor"
    PROGRESS_TRACKER = "progress_tracker"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class Strategy(Enum):
    """Named execution plans chosen by the planner."""
    CRISIS_PRIORITY = "crisis-priority"
    SIMPLE = "simple"
    EMOTIONAL = "emotional"
    THERAPY = "therapy"


class ExecutionType(Enum):
    """How a logged step was scheduled."""
    PARALLEL = "parallel"
    SERIAL = "serial"
    PRIORITY = "priority"
    CONDITIONAL = "conditional"


class StepStatus(Enum):
    COMPLETED = "completed"
    ERROR = "error"
    SKIPPED = "skipped"


def _to_payload(value: Any) -> Any:
    """Serialize agent payloads that expose ``to_dict``."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


@dataclass(frozen=True)
class AgentExecutionResult:
    """Outcome of one agent invocation within one request.

    Created exactly once per invocation. Timings are milliseconds
    relative to the request start.
    """
    agent_name: AgentName
    assigned_task: str
    start_time_ms: float
    end_time_ms: float
    result: Any
    confidence: float
    success: bool
    reasoning: str
    influence_on_final_response: float
    contributed_insights: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    error_message: Optional[str] = None
    from_cache: bool = False

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be 0.0-1.0, got {self.confidence}")
        if not 0.0 <= self.influence_on_final_response <= 1.0:
            raise ValueError(
                f"Influence must be 0.0-1.0, got {self.influence_on_final_response}"
            )
        if self.end_time_ms < self.start_time_ms:
            raise ValueError("Agent end time precedes start time")

    @property
    def display_name(self) -> str:
        return self.agent_name.display_name

    @property
    def execution_time_ms(self) -> float:
        return self.end_time_ms - self.start_time_ms

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "agent_name": self.agent_name.value,
            "display_name": self.display_name,
            "assigned_task": self.assigned_task,
            "start_time_ms": round(self.start_time_ms, 2),
            "end_time_ms": round(self.end_time_ms, 2),
            "execution_time_ms": round(self.execution_time_ms, 2),
            "result": _to_payload(self.result),
            "confidence": self.confidence,
            "success": self.success,
            "reasoning": self.reasoning,
            "influence_on_final_response": self.influence_on_final_response,
            "contributed_insights": list(self.contributed_insights),
            "recommendations": list(self.recommendations),
            "error_message": self.error_message,
            "from_cache": self.from_cache,
        }


@dataclass(frozen=True)
class ExecutionStep:
    """One visited workflow node, as recorded in the orchestration log."""
    step_id: str
    step_number: int
    description: str
    agents_involved: List[str]
    execution_type: ExecutionType
    start_time_ms: float
    duration_ms: float
    status: StepStatus
    dependencies: List[str] = field(default_factory=list)
    results: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None

    def __post_init__(self):
        if self.step_number < 1:
            raise ValueError(f"Step numbers start at 1, got {self.step_number}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "step_number": self.step_number,
            "description": self.description,
            "agents_involved": list(self.agents_involved),
            "execution_type": self.execution_type.value,
            "start_time_ms": round(self.start_time_ms, 2),
            "duration_ms": round(self.duration_ms, 2),
            "dependencies": list(self.dependencies),
            "status": self.status.value,
            "results": self.results,
            "error_message": self.error_message,
        }
