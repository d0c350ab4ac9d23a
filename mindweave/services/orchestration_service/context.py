"""Per-request orchestration state and the deltas that update it.

Workflow nodes never touch OrchestrationContext directly. They read a
ContextSnapshot and return a ContextDelta; ``apply`` is the only place
state changes, and the only place step numbers are assigned. Results
only accumulate: a populated field can't be overwritten with a different
value, and nothing is ever removed.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple

from mindweave.shared.models import (
    AgentExecutionResult,
    ContextSnapshot,
    ExecutionStep,
    ExecutionType,
    StepStatus,
    UrgencyLevel,
    UserPreferences,
)
from .errors import ContextInvariantError

logger = logging.getLogger(__name__)

RESULT_FIELDS = ("emotion", "memory", "crisis", "advice", "progress")


@dataclass(frozen=True)
class PendingStep:
    """A step record waiting for its number.

    The context turns it into an ExecutionStep when the delta is applied.
    """
    description: str
    agents_involved: List[str]
    execution_type: ExecutionType
    start_time_ms: float
    duration_ms: float
    status: StepStatus = StepStatus.COMPLETED
    dependencies: List[str] = field(default_factory=list)
    results: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None


@dataclass(frozen=True)
class ContextDelta:
    """Partial update returned by one workflow node."""
    emotion: Any = None
    memory: Any = None
    crisis: Any = None
    advice: Any = None
    progress: Any = None
    agent_results: Tuple[AgentExecutionResult, ...] = ()
    steps: Tuple[PendingStep, ...] = ()
    warning_flags: FrozenSet[str] = frozenset()
    recommended_follow_up: Tuple[str, ...] = ()
    final_response: Optional[str] = None
    response_confidence: Optional[float] = None


class OrchestrationContext:
    """Mutable, single-owner record of one request's execution.

    Attributes:
        user_id: Caller-supplied identifier (never logged)
        user_id_hash: Salted hash used everywhere a user must be named
        plan: ExecutionPlan chosen for this request
        orchestration_log: Ordered ExecutionSteps, numbered 1..n
        agent_results: One AgentExecutionResult per invoked agent
        sealed: True once the supervisor has given up on the workflow
    """

    def __init__(
        self,
        user_id: str,
        user_id_hash: str,
        message_id: str,
        conversation_id: str,
        user_message: str,
        urgency_level: UrgencyLevel,
        plan: Any,
        preferences: Optional[UserPreferences] = None,
        started_at: Optional[float] = None,
    ):
        self.user_id = user_id
        self.user_id_hash = user_id_hash
        self.message_id = message_id
        self.conversation_id = conversation_id
        self.user_message = user_message
        self.urgency_level = urgency_level
        self.plan = plan
        self.preferences = preferences or UserPreferences()
        self.started_at = started_at if started_at is not None else time.monotonic()

        self.emotion: Any = None
        self.memory: Any = None
        self.crisis: Any = None
        self.advice: Any = None
        self.progress: Any = None

        self.orchestration_log: List[ExecutionStep] = []
        self.agent_results: List[AgentExecutionResult] = []
        self.warning_flags: Set[str] = set()
        self.recommended_follow_up: List[str] = []
        self.final_response: Optional[str] = None
        self.response_confidence: float = 0.0
        self.sealed = False

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started_at) * 1000

    @property
    def last_step_id(self) -> Optional[str]:
        if not self.orchestration_log:
            return None
        return self.orchestration_log[-1].step_id

    def snapshot(self) -> ContextSnapshot:
        """Read-only view handed to nodes and agents."""
        return ContextSnapshot(
            user_id_hash=self.user_id_hash,
            message_id=self.message_id,
            conversation_id=self.conversation_id,
            user_message=self.user_message,
            urgency_level=self.urgency_level,
            started_at=self.started_at,
            preferences=self.preferences,
            emotion=self.emotion,
            memory=self.memory,
            crisis=self.crisis,
            advice=self.advice,
            progress=self.progress,
            agent_results=tuple(self.agent_results),
        )

    def seal(self) -> None:
        """Stop accepting deltas from the workflow."""
        if not self.sealed:
            self.sealed = True
            logger.warning(
                "CONTEXT_SEALED",
                extra={
                    "message_id": self.message_id,
                    "elapsed_ms": round(self.elapsed_ms(), 2),
                    "steps_logged": len(self.orchestration_log),
                }
            )

    def apply(self, delta: ContextDelta, force: bool = False) -> List[ExecutionStep]:
        """Merge a delta into the context.

        Args:
            delta: Update produced by a workflow node
            force: Apply even when sealed (supervisor fallbacks only)

        Returns:
            The ExecutionSteps appended to the log (empty if discarded)

        Raises:
            ContextInvariantError: If the delta would overwrite or
                duplicate accumulated state
        """
        if self.sealed and not force:
            logger.info(
                "LATE_DELTA_DISCARDED",
                extra={
                    "message_id": self.message_id,
                    "agents": [r.agent_name.value for r in delta.agent_results],
                    "step_count": len(delta.steps),
                }
            )
            return []

        self._check(delta)

        for name in RESULT_FIELDS:
            value = getattr(delta, name)
            if value is not None:
                setattr(self, name, value)

        self.agent_results.extend(delta.agent_results)
        self.warning_flags.update(delta.warning_flags)
        for suggestion in delta.recommended_follow_up:
            if suggestion not in self.recommended_follow_up:
                self.recommended_follow_up.append(suggestion)
        if delta.final_response is not None:
            self.final_response = delta.final_response
        if delta.response_confidence is not None:
            self.response_confidence = delta.response_confidence

        appended = []
        for pending in delta.steps:
            number = len(self.orchestration_log) + 1
            step = ExecutionStep(
                step_id=f"step_{number}",
                step_number=number,
                description=pending.description,
                agents_involved=list(pending.agents_involved),
                execution_type=pending.execution_type,
                start_time_ms=pending.start_time_ms,
                duration_ms=pending.duration_ms,
                status=pending.status,
                dependencies=list(pending.dependencies),
                results=dict(pending.results),
                error_message=pending.error_message,
            )
            self.orchestration_log.append(step)
            appended.append(step)
        return appended

    def _check(self, delta: ContextDelta) -> None:
        # Validate everything before mutating so a bad delta changes nothing
        for name in RESULT_FIELDS:
            current = getattr(self, name)
            incoming = getattr(delta, name)
            if current is not None and incoming is not None and current != incoming:
                raise ContextInvariantError(f"Context field '{name}' is already populated")

        seen = {r.agent_name for r in self.agent_results}
        for result in delta.agent_results:
            if result.agent_name in seen:
                raise ContextInvariantError(
                    f"Agent {result.agent_name.value} already reported a result"
                )
            seen.add(result.agent_name)

        if (
            delta.final_response is not None
            and self.final_response is not None
            and delta.final_response != self.final_response
        ):
            raise ContextInvariantError("Final response is already set")

        if delta.response_confidence is not None and not 0.0 <= delta.response_confidence <= 1.0:
            raise ContextInvariantError(
                f"Response confidence must be 0.0-1.0, got {delta.response_confidence}"
            )
