"""Conditional workflow engine.

The workflow is an explicit state machine: a NodeId per agent plus the
orchestrator and synthesizer nodes, a transition table of ordered
(guard, next) pairs, and one driver loop. The first guard that holds
picks the next node.

Visiting a node that belongs to a multi-member parallel group starts
every unvisited member at once (fan-out). Each member's delta is merged
as soon as it finishes, so partial results survive a supervisor timeout
(fan-in). Routing after a group follows the table of its first member.

Before any agent node the driver checks the budget. Past the preemption
threshold the pending group is logged as skipped and the driver jumps
to synthesis.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Set, Tuple

from mindweave.shared.models import (
    AgentName,
    ContextSnapshot,
    ExecutionType,
    RiskLevel,
    StepStatus,
    Strategy,
    UrgencyLevel,
)
from mindweave.services.agent_service import BaseAgent
from .config import OrchestrationConfig
from .context import ContextDelta, OrchestrationContext, PendingStep
from .planner import ExecutionPlan
from .synthesizer import SUPPORT_FALLBACK, ResponseSynthesizer

logger = logging.getLogger(__name__)

SYSTEM_ERROR_CONFIDENCE = 0.5


class NodeId(Enum):
    ORCHESTRATOR = "orchestrator"
    CRISIS_MONITOR = "crisis_monitor"
    EMOTION_ANALYZER = "emotion_analyzer"
    MEMORY_MANAGER = "memory_manager"
    THERAPY_ADVISOR = "therapy_advisor"
    PROGRESS_TRACKER = "progress_tracker"
    RESPONSE_SYNTHESIZER = "response_synthesizer"
    END = "end"


AGENT_NODES: Dict[NodeId, AgentName] = {
    NodeId.CRISIS_MONITOR: AgentName.CRISIS_MONITOR,
    NodeId.EMOTION_ANALYZER: AgentName.EMOTION_ANALYZER,
    NodeId.MEMORY_MANAGER: AgentName.MEMORY_MANAGER,
    NodeId.THERAPY_ADVISOR: AgentName.THERAPY_ADVISOR,
    NodeId.PROGRESS_TRACKER: AgentName.PROGRESS_TRACKER,
}
NODE_FOR_AGENT: Dict[AgentName, NodeId] = {agent: node for node, agent in AGENT_NODES.items()}

AGENT_TASKS: Dict[AgentName, str] = {
    AgentName.CRISIS_MONITOR: "Assess crisis and self-harm risk",
    AgentName.EMOTION_ANALYZER: "Analyze emotional state and intensity",
    AgentName.MEMORY_MANAGER: "Retrieve relevant conversation history",
    AgentName.THERAPY_ADVISOR: "Select therapeutic approach and techniques",
    AgentName.PROGRESS_TRACKER: "Evaluate progress toward wellbeing goals",
}

# Context field each agent populates on success
RESULT_FIELD: Dict[AgentName, str] = {
    AgentName.CRISIS_MONITOR: "crisis",
    AgentName.EMOTION_ANALYZER: "emotion",
    AgentName.MEMORY_MANAGER: "memory",
    AgentName.THERAPY_ADVISOR: "advice",
    AgentName.PROGRESS_TRACKER: "progress",
}


@dataclass(frozen=True)
class RouteState:
    """Everything a transition guard may look at."""
    plan: ExecutionPlan
    view: ContextSnapshot
    visited: FrozenSet[NodeId]
    progress_budget_ratio: float


Guard = Callable[[RouteState], bool]


def _always(state: RouteState) -> bool:
    return True


def _planned(node: NodeId) -> Guard:
    agent = AGENT_NODES[node]

    def guard(state: RouteState) -> bool:
        return state.plan.includes(agent) and node not in state.visited
    return guard


def _leads_first_group(node: NodeId) -> Guard:
    agent = AGENT_NODES[node]

    def guard(state: RouteState) -> bool:
        groups = state.plan.parallel_groups
        return bool(groups) and groups[0][0] == agent and node not in state.visited
    return guard


def _crisis_first(state: RouteState) -> bool:
    if NodeId.CRISIS_MONITOR in state.visited:
        return False
    return (
        state.plan.strategy == Strategy.CRISIS_PRIORITY
        or state.view.urgency_level == UrgencyLevel.CRISIS
    )


def _immediate_intervention(state: RouteState) -> bool:
    crisis = state.view.crisis
    return crisis is not None and crisis.immediate_intervention_required


def _progress_allowed(state: RouteState) -> bool:
    if not _planned(NodeId.PROGRESS_TRACKER)(state):
        return False
    if state.view.preferences.fast_mode:
        return False
    return state.view.elapsed_ms() < state.plan.timeout_ms * state.progress_budget_ratio


TRANSITIONS: Dict[NodeId, Tuple[Tuple[Guard, NodeId], ...]] = {
    NodeId.ORCHESTRATOR: (
        (_crisis_first, NodeId.CRISIS_MONITOR),
        (_leads_first_group(NodeId.CRISIS_MONITOR), NodeId.CRISIS_MONITOR),
        (_leads_first_group(NodeId.EMOTION_ANALYZER), NodeId.EMOTION_ANALYZER),
        (_leads_first_group(NodeId.MEMORY_MANAGER), NodeId.MEMORY_MANAGER),
        (_leads_first_group(NodeId.THERAPY_ADVISOR), NodeId.THERAPY_ADVISOR),
        (_leads_first_group(NodeId.PROGRESS_TRACKER), NodeId.PROGRESS_TRACKER),
        (_always, NodeId.RESPONSE_SYNTHESIZER),
    ),
    NodeId.CRISIS_MONITOR: (
        (_immediate_intervention, NodeId.RESPONSE_SYNTHESIZER),
        (_planned(NodeId.EMOTION_ANALYZER), NodeId.EMOTION_ANALYZER),
        (_planned(NodeId.MEMORY_MANAGER), NodeId.MEMORY_MANAGER),
        (_planned(NodeId.THERAPY_ADVISOR), NodeId.THERAPY_ADVISOR),
        (_always, NodeId.RESPONSE_SYNTHESIZER),
    ),
    NodeId.EMOTION_ANALYZER: (
        (_planned(NodeId.MEMORY_MANAGER), NodeId.MEMORY_MANAGER),
        (_planned(NodeId.THERAPY_ADVISOR), NodeId.THERAPY_ADVISOR),
        (_always, NodeId.RESPONSE_SYNTHESIZER),
    ),
    NodeId.MEMORY_MANAGER: (
        (_planned(NodeId.THERAPY_ADVISOR), NodeId.THERAPY_ADVISOR),
        (_always, NodeId.RESPONSE_SYNTHESIZER),
    ),
    NodeId.THERAPY_ADVISOR: (
        (_progress_allowed, NodeId.PROGRESS_TRACKER),
        (_always, NodeId.RESPONSE_SYNTHESIZER),
    ),
    NodeId.PROGRESS_TRACKER: (
        (_always, NodeId.RESPONSE_SYNTHESIZER),
    ),
    NodeId.RESPONSE_SYNTHESIZER: (
        (_always, NodeId.END),
    ),
}


class WorkflowEngine:
    """Drives one request through the transition table.

    Attributes:
        agents: Agent instance per AgentName
        synthesizer: Terminal reply builder
        config: Preemption and progress budget ratios
    """

    def __init__(
        self,
        agents: Mapping[AgentName, BaseAgent],
        synthesizer: Optional[ResponseSynthesizer] = None,
        config: Optional[OrchestrationConfig] = None,
    ):
        self.agents = dict(agents)
        self.synthesizer = synthesizer or ResponseSynthesizer()
        self.config = config or OrchestrationConfig()

    async def run(self, context: OrchestrationContext) -> None:
        """Run the workflow to END, merging every node's delta."""
        visited: Set[NodeId] = set()
        node = NodeId.ORCHESTRATOR

        while node != NodeId.END:
            if context.sealed:
                logger.info(
                    "WORKFLOW_ABANDONED",
                    extra={"message_id": context.message_id, "next_node": node.value}
                )
                return

            logger.debug(
                "WORKFLOW_NODE_ENTERED",
                extra={"message_id": context.message_id, "node": node.value}
            )

            if node in AGENT_NODES:
                members = self._pending_members(context.plan, node, visited)
                visited.update(members)
                if self._over_budget(context):
                    self._preempt(context, members)
                    node = NodeId.RESPONSE_SYNTHESIZER
                    continue
                await self._run_members(context, members)
                route_from = members[0]
            elif node == NodeId.ORCHESTRATOR:
                visited.add(node)
                self._visit_orchestrator(context)
                route_from = node
            else:
                visited.add(node)
                self._visit_synthesizer(context)
                route_from = node

            node = self.next_node(route_from, context, visited)

    def next_node(
        self,
        current: NodeId,
        context: OrchestrationContext,
        visited: Set[NodeId],
    ) -> NodeId:
        state = RouteState(
            plan=context.plan,
            view=context.snapshot(),
            visited=frozenset(visited),
            progress_budget_ratio=self.config.progress_budget_ratio,
        )
        for guard, target in TRANSITIONS[current]:
            if guard(state):
                return target
        # Every row ends with an unconditional edge
        raise LookupError(f"No transition from {current.value}")

    def _pending_members(
        self,
        plan: ExecutionPlan,
        node: NodeId,
        visited: Set[NodeId],
    ) -> List[NodeId]:
        group = [NODE_FOR_AGENT[agent] for agent in plan.group_of(AGENT_NODES[node])]
        if node not in group:
            group = [node]
        return [member for member in group if member not in visited]

    def _over_budget(self, context: OrchestrationContext) -> bool:
        return context.elapsed_ms() > context.plan.timeout_ms * self.config.preemption_ratio

    def _execution_type(self, node: NodeId, plan: ExecutionPlan, parallel: bool) -> ExecutionType:
        if parallel:
            return ExecutionType.PARALLEL
        if node == NodeId.CRISIS_MONITOR and plan.strategy == Strategy.CRISIS_PRIORITY:
            return ExecutionType.PRIORITY
        if node == NodeId.PROGRESS_TRACKER:
            return ExecutionType.CONDITIONAL
        return ExecutionType.SERIAL

    def _dependencies(self, context: OrchestrationContext) -> List[str]:
        return [context.last_step_id] if context.last_step_id else []

    def _visit_orchestrator(self, context: OrchestrationContext) -> None:
        plan = context.plan
        context.apply(ContextDelta(steps=(
            PendingStep(
                description=f"Analyze request and select strategy: {plan.description}",
                agents_involved=["Orchestrator"],
                execution_type=ExecutionType.SERIAL,
                start_time_ms=0.0,
                duration_ms=context.elapsed_ms(),
                results={
                    "strategy": plan.strategy.value,
                    "agents": [a.value for a in plan.agents],
                    "timeout_ms": plan.timeout_ms,
                    "reasoning": plan.reasoning,
                },
            ),
        )))

    async def _run_members(self, context: OrchestrationContext, members: List[NodeId]) -> None:
        view = context.snapshot()
        depends_on = self._dependencies(context)
        parallel = len(members) > 1

        if not parallel:
            context.apply(await self._run_agent(members[0], view, context.plan, depends_on, False))
            return

        tasks = [
            asyncio.ensure_future(self._run_agent(member, view, context.plan, depends_on, True))
            for member in members
        ]
        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in sorted(done, key=tasks.index):
                    context.apply(task.result())
        finally:
            for task in pending:
                task.cancel()

    async def _run_agent(
        self,
        node: NodeId,
        view: ContextSnapshot,
        plan: ExecutionPlan,
        depends_on: List[str],
        parallel: bool,
    ) -> ContextDelta:
        agent_name = AGENT_NODES[node]
        agent = self.agents[agent_name]
        task = AGENT_TASKS[agent_name]

        result = await agent.execute(view, task)

        flags = set()
        fields = {}
        if not result.success:
            flags.add("agent_error")
            logger.warning(
                "AGENT_FAILED",
                extra={
                    "message_id": view.message_id,
                    "agent": agent_name.value,
                    "error": result.error_message,
                    "execution_time_ms": round(result.execution_time_ms, 2),
                }
            )

        if agent_name == AgentName.CRISIS_MONITOR:
            # The crisis field also carries the conservative fallback
            assessment = result.result
            fields["crisis"] = assessment
            if assessment.risk_level == RiskLevel.CRISIS:
                flags.add("crisis_protocol")
            if assessment.professional_referral_recommended:
                flags.add("professional_referral")
        elif result.success:
            fields[RESULT_FIELD[agent_name]] = result.result

        step = PendingStep(
            description=f"{agent.display_name}: {task}",
            agents_involved=[agent.display_name],
            execution_type=self._execution_type(node, plan, parallel),
            start_time_ms=result.start_time_ms,
            duration_ms=result.execution_time_ms,
            status=StepStatus.COMPLETED if result.success else StepStatus.ERROR,
            dependencies=list(depends_on),
            results={
                "agent": agent_name.value,
                "success": result.success,
                "confidence": result.confidence,
                "influence": result.influence_on_final_response,
                "from_cache": result.from_cache,
            },
            error_message=result.error_message,
        )

        return ContextDelta(
            agent_results=(result,),
            steps=(step,),
            warning_flags=frozenset(flags),
            **fields,
        )

    def _preempt(self, context: OrchestrationContext, members: List[NodeId]) -> None:
        elapsed = context.elapsed_ms()
        parallel = len(members) > 1
        logger.warning(
            "WORKFLOW_PREEMPTED",
            extra={
                "message_id": context.message_id,
                "skipped": [m.value for m in members],
                "elapsed_ms": round(elapsed, 2),
                "timeout_ms": context.plan.timeout_ms,
            }
        )

        depends_on = self._dependencies(context)
        steps = []
        for member in members:
            display = AGENT_NODES[member].display_name
            steps.append(PendingStep(
                description=f"{display}: skipped, time budget exhausted",
                agents_involved=[display],
                execution_type=self._execution_type(member, context.plan, parallel),
                start_time_ms=elapsed,
                duration_ms=0.0,
                status=StepStatus.SKIPPED,
                dependencies=list(depends_on),
                results={"agent": AGENT_NODES[member].value, "elapsed_ms": round(elapsed, 2)},
            ))
        context.apply(ContextDelta(steps=tuple(steps)))

    def _visit_synthesizer(self, context: OrchestrationContext) -> None:
        view = context.snapshot()
        start = view.elapsed_ms()
        depends_on = self._dependencies(context)

        try:
            synthesis = self.synthesizer.synthesize(view)
        except Exception as e:
            logger.error(
                "SYNTHESIS_FAILED",
                extra={
                    "message_id": context.message_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            context.apply(ContextDelta(
                final_response=SUPPORT_FALLBACK,
                response_confidence=SYSTEM_ERROR_CONFIDENCE,
                warning_flags=frozenset({"system_error"}),
                steps=(PendingStep(
                    description="Synthesize final response",
                    agents_involved=["Response Synthesizer"],
                    execution_type=ExecutionType.SERIAL,
                    start_time_ms=start,
                    duration_ms=max(view.elapsed_ms() - start, 0.0),
                    status=StepStatus.ERROR,
                    dependencies=depends_on,
                    error_message=f"{type(e).__name__}: {e}",
                ),),
            ))
            return

        context.apply(ContextDelta(
            final_response=synthesis.content,
            response_confidence=synthesis.confidence,
            warning_flags=synthesis.warning_flags,
            recommended_follow_up=synthesis.follow_up,
            steps=(PendingStep(
                description="Synthesize final response",
                agents_involved=["Response Synthesizer"],
                execution_type=ExecutionType.SERIAL,
                start_time_ms=start,
                duration_ms=max(view.elapsed_ms() - start, 0.0),
                dependencies=depends_on,
                results={
                    "template": synthesis.template,
                    "confidence": synthesis.confidence,
                    "contributing_agents": [
                        r.agent_name.value for r in view.successful_results
                    ],
                },
            ),),
        ))
