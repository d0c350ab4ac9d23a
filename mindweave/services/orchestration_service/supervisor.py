"""SLA supervisor: bounds every request by its plan timeout (ADR-008).

On timeout the context is sealed and the workflow task is abandoned,
never cancelled: agent calls may still be holding connections and are
left to finish on their own. Their late deltas are discarded by the
sealed context. The reply is built from the partial state with a
crisis keyword re-check, so a slow backend can never hide a crisis.

Nothing is retried.
"""
import asyncio
import logging
from typing import Awaitable, Optional, Set

from mindweave.shared.models import ExecutionType, RiskLevel, StepStatus
from mindweave.services.risk_service import RiskScorer
from .context import ContextDelta, OrchestrationContext, PendingStep
from .synthesizer import (
    SYSTEM_ERROR_FOLLOW_UP,
    SYSTEM_ERROR_REPLY,
    CRISIS_FALLBACK,
    minimal_fallback,
)

logger = logging.getLogger(__name__)

TIMEOUT_FALLBACK_CONFIDENCE = 0.6
SYSTEM_ERROR_CONFIDENCE = 0.5


class TimeoutSupervisor:
    """Races the workflow against the plan's timeout budget."""

    def __init__(self, scorer: Optional[RiskScorer] = None):
        self.scorer = scorer or RiskScorer()
        # Abandoned workflows stay referenced until they finish
        self._abandoned: Set[asyncio.Future] = set()

    @property
    def abandoned_count(self) -> int:
        return len(self._abandoned)

    async def run(self, context: OrchestrationContext, workflow: Awaitable[None]) -> None:
        """Run a workflow coroutine under the context's plan timeout.

        Never raises for workflow failures: a timeout yields the fast
        fallback reply and any other exception the system-error reply.
        """
        task = asyncio.ensure_future(workflow)
        remaining_s = max(context.plan.timeout_ms - context.elapsed_ms(), 0.0) / 1000

        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=remaining_s)
        except asyncio.TimeoutError:
            self._abandon(context, task)
            self._on_timeout(context)
        except Exception as e:
            self._on_error(context, e)

    def _abandon(self, context: OrchestrationContext, task: asyncio.Future) -> None:
        context.seal()
        self._abandoned.add(task)
        message_id = context.message_id

        def reap(finished: asyncio.Future) -> None:
            self._abandoned.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                logger.warning(
                    "ABANDONED_WORKFLOW_FAILED",
                    extra={"message_id": message_id, "error_type": type(error).__name__}
                )
            else:
                logger.info("ABANDONED_WORKFLOW_FINISHED", extra={"message_id": message_id})

        task.add_done_callback(reap)

    def _on_timeout(self, context: OrchestrationContext) -> None:
        partial = [r.agent_name.value for r in context.agent_results]
        logger.warning(
            "ORCHESTRATION_TIMEOUT",
            extra={
                "message_id": context.message_id,
                "user_id_hash": context.user_id_hash,
                "strategy": context.plan.strategy.value,
                "timeout_ms": context.plan.timeout_ms,
                "partial_results": partial,
            }
        )

        results = {"timeout_ms": context.plan.timeout_ms, "partial_results": partial}

        if context.final_response is not None:
            # Synthesis landed just before the deadline; keep its reply
            context.apply(
                ContextDelta(steps=(self._error_step(
                    context,
                    description="Timeout after response",
                    error_message="ORCHESTRATION_TIMEOUT",
                    results=results,
                ),)),
                force=True,
            )
            return

        fallback = minimal_fallback(context.user_message, self.scorer, context.crisis)
        context.apply(
            ContextDelta(
                crisis=self._recheck_crisis(context, fallback.assessment),
                final_response=fallback.content,
                response_confidence=TIMEOUT_FALLBACK_CONFIDENCE,
                warning_flags=self._fallback_flags(fallback.crisis, "fast_fallback_response"),
                steps=(self._error_step(
                    context,
                    description="Timeout fallback response",
                    error_message="ORCHESTRATION_TIMEOUT",
                    results=results,
                ),),
            ),
            force=True,
        )

    def _on_error(self, context: OrchestrationContext, error: Exception) -> None:
        context.seal()
        logger.error(
            "ORCHESTRATION_FAILED",
            extra={
                "message_id": context.message_id,
                "user_id_hash": context.user_id_hash,
                "error": str(error),
                "error_type": type(error).__name__,
            }
        )

        if context.final_response is not None:
            return

        fallback = minimal_fallback(context.user_message, self.scorer, context.crisis)
        context.apply(
            ContextDelta(
                crisis=self._recheck_crisis(context, fallback.assessment),
                final_response=CRISIS_FALLBACK if fallback.crisis else SYSTEM_ERROR_REPLY,
                response_confidence=SYSTEM_ERROR_CONFIDENCE,
                warning_flags=self._fallback_flags(fallback.crisis, "system_error"),
                recommended_follow_up=(SYSTEM_ERROR_FOLLOW_UP,),
                steps=(self._error_step(
                    context,
                    description="Workflow error fallback response",
                    error_message=f"{type(error).__name__}: {error}",
                    results={"partial_results": [r.agent_name.value for r in context.agent_results]},
                ),),
            ),
            force=True,
        )

    def _recheck_crisis(self, context: OrchestrationContext, assessment):
        # Only fill an empty crisis field; a recorded assessment stands
        if context.crisis is None and assessment.risk_level == RiskLevel.CRISIS:
            return assessment
        return None

    def _fallback_flags(self, crisis: bool, flag: str):
        flags = {flag}
        if crisis:
            flags.add("crisis_protocol")
        return frozenset(flags)

    def _error_step(self, context, description, error_message, results) -> PendingStep:
        now = context.elapsed_ms()
        return PendingStep(
            description=description,
            agents_involved=["Orchestrator"],
            execution_type=ExecutionType.SERIAL,
            start_time_ms=now,
            duration_ms=0.0,
            status=StepStatus.ERROR,
            dependencies=[context.last_step_id] if context.last_step_id else [],
            results=results,
            error_message=error_message,
        )
