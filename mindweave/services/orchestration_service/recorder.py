"""Orchestration recorder: turns a finished context into a transparency
report. Pure function of the context; it calls no agents and writes
nothing.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from mindweave.shared.models import (
    AgentExecutionResult,
    AgentName,
    ExecutionType,
    StepStatus,
    TransparencyLevel,
)
from .context import OrchestrationContext

logger = logging.getLogger(__name__)

AGREEMENT_BONUS = 0.1


@dataclass(frozen=True)
class AgentBreakdown:
    """One agent's contribution to the reply."""
    agent_name: str
    display_name: str
    execution_time_ms: float
    confidence: float
    influence: float
    success: bool
    from_cache: bool = False
    insights: List[str] = field(default_factory=list)

    @classmethod
    def from_result(cls, result: AgentExecutionResult) -> "AgentBreakdown":
        return cls(
            agent_name=result.agent_name.value,
            display_name=result.display_name,
            execution_time_ms=round(result.execution_time_ms, 2),
            confidence=result.confidence,
            influence=result.influence_on_final_response,
            success=result.success,
            from_cache=result.from_cache,
            insights=list(result.contributed_insights),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_name": self.agent_name,
            "display_name": self.display_name,
            "execution_time_ms": self.execution_time_ms,
            "confidence": self.confidence,
            "influence": self.influence,
            "success": self.success,
            "from_cache": self.from_cache,
            "insights": list(self.insights),
        }


@dataclass(frozen=True)
class TransparencyReport:
    """How a reply was produced, for display alongside it."""
    message_id: str
    strategy: str
    strategy_description: str
    reasoning: str
    agents: List[AgentBreakdown]
    agent_agreement: float
    execution_pattern: str
    total_time_ms: float
    step_count: int
    parallel_efficiency: float
    adaptations: List[str] = field(default_factory=list)

    def to_dict(
        self,
        transparency_level: TransparencyLevel = TransparencyLevel.DETAILED,
        agent_visibility: bool = True,
    ) -> Dict[str, Any]:
        """Serialize at the requested level of detail.

        minimal: strategy and headline numbers only
        standard: adds the per-agent breakdown
        detailed: adds reasoning, efficiency and adaptations
        """
        data: Dict[str, Any] = {
            "strategy": self.strategy,
            "strategy_description": self.strategy_description,
            "agent_agreement": self.agent_agreement,
            "total_time_ms": self.total_time_ms,
            "step_count": self.step_count,
        }
        if transparency_level == TransparencyLevel.MINIMAL:
            return data

        data["execution_pattern"] = self.execution_pattern
        if agent_visibility:
            data["agents"] = [agent.to_dict() for agent in self.agents]
        if transparency_level == TransparencyLevel.DETAILED:
            data["reasoning"] = self.reasoning
            data["parallel_efficiency"] = self.parallel_efficiency
            data["adaptations"] = list(self.adaptations)
        return data


class OrchestrationRecorder:
    """Builds TransparencyReports from finished contexts."""

    def record(self, context: OrchestrationContext) -> TransparencyReport:
        plan = context.plan
        results = list(context.agent_results)
        succeeded = sum(1 for r in results if r.success)

        return TransparencyReport(
            message_id=context.message_id,
            strategy=plan.strategy.value,
            strategy_description=plan.description,
            reasoning=f"{plan.reasoning}; {succeeded}/{len(results)} agents succeeded",
            agents=[AgentBreakdown.from_result(r) for r in results],
            agent_agreement=self.agent_agreement(results),
            execution_pattern=self.execution_pattern(context),
            total_time_ms=round(context.elapsed_ms(), 2),
            step_count=len(context.orchestration_log),
            parallel_efficiency=self.parallel_efficiency(results),
            adaptations=self.adaptations(context),
        )

    def agent_agreement(self, results: List[AgentExecutionResult]) -> float:
        if len(results) < 2:
            return 1.0
        mean = sum(r.confidence for r in results) / len(results)
        return round(min(mean + AGREEMENT_BONUS, 1.0), 3)

    def execution_pattern(self, context: OrchestrationContext) -> str:
        agent_steps = [
            step for step in context.orchestration_log
            if "agent" in step.results and step.status != StepStatus.SKIPPED
        ]
        parallel = any(s.execution_type == ExecutionType.PARALLEL for s in agent_steps)
        serial = any(s.execution_type != ExecutionType.PARALLEL for s in agent_steps)
        if parallel and serial:
            return "hybrid"
        if parallel:
            return "parallel"
        return "serial"

    def parallel_efficiency(self, results: List[AgentExecutionResult]) -> float:
        """Summed agent time over the wall time the agents spanned."""
        if not results:
            return 1.0
        wall = max(r.end_time_ms for r in results) - min(r.start_time_ms for r in results)
        if wall <= 0:
            return 1.0
        return round(sum(r.execution_time_ms for r in results) / wall, 2)

    def adaptations(self, context: OrchestrationContext) -> List[str]:
        adaptations = []
        plan = context.plan
        invoked = {r.agent_name for r in context.agent_results}

        skipped = [
            step.agents_involved[0] for step in context.orchestration_log
            if step.status == StepStatus.SKIPPED and step.agents_involved
        ]
        if skipped:
            adaptations.append(f"Preempted {', '.join(skipped)}: time budget exhausted")

        crisis = context.crisis
        immediate = crisis is not None and crisis.immediate_intervention_required
        if immediate:
            bypassed = [a for a in plan.agents if a not in invoked]
            if bypassed:
                adaptations.append("Routed directly to response for immediate intervention")

        progress_logged = any(
            step.results.get("agent") == AgentName.PROGRESS_TRACKER.value
            for step in context.orchestration_log
        )
        if plan.includes(AgentName.PROGRESS_TRACKER) and not progress_logged and not immediate:
            if context.preferences.fast_mode:
                adaptations.append("Progress tracking skipped: fast processing requested")
            elif "fast_fallback_response" not in context.warning_flags:
                adaptations.append("Progress tracking skipped: time budget")

        if "fast_fallback_response" in context.warning_flags:
            adaptations.append("Timeout fallback response used")

        for result in context.agent_results:
            if not result.success:
                adaptations.append(f"{result.display_name} failed; fallback used")
            elif result.from_cache:
                adaptations.append(f"{result.display_name} served from cache")
        return adaptations
