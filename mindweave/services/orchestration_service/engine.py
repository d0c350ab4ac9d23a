"""Orchestration engine: the single entry point for processing a message.

Flow:
1. Validate the request (PlannerError is the only exception callers see)
2. Screen urgency with the deterministic RiskScorer (ADR-001)
3. Plan, then run the workflow under the timeout supervisor (ADR-008)
4. Record the transparency report and publish it to the sink
5. Fire the emergency-contact notifier without waiting (ADR-004)
6. Remember the exchange for later memory/crisis/progress analysis

Per ADR-003 only hash_pii(user_id) is ever logged.
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from mindweave.shared.cache import InMemoryTTLCache, ResultCache
from mindweave.shared.models import (
    AgentName,
    ExecutionStep,
    RiskAssessment,
    RiskLevel,
    UrgencyLevel,
    UserPreferences,
)
from mindweave.shared.utils import hash_pii
from mindweave.services.agent_service import (
    BaseAgent,
    CrisisMonitorAgent,
    EmotionAnalyzerAgent,
    InMemoryMemoryStore,
    MemoryEntry,
    MemoryManagerAgent,
    MemoryStore,
    ProgressTrackerAgent,
    TherapyAdvisorAgent,
)
from mindweave.services.completion_service import (
    BaseCompletionService,
    CompletionConfig,
    create_completion_service,
)
from mindweave.services.risk_service import RiskScorer
from .config import OrchestrationConfig
from .context import OrchestrationContext
from .notifier import EmergencyContactEvent, EmergencyNotifier, KinesisEmergencyNotifier
from .planner import ExecutionPlanner
from .recorder import OrchestrationRecorder
from .supervisor import TimeoutSupervisor
from .synthesizer import (
    CRISIS_FALLBACK,
    SYSTEM_ERROR_FOLLOW_UP,
    SYSTEM_ERROR_REPLY,
    ResponseSynthesizer,
    minimal_fallback,
)
from .transparency import LoggingTransparencySink, TransparencySink
from .workflow import WorkflowEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrchestrationResponse:
    """What process() hands back to the caller."""
    content: str
    message_id: str
    conversation_id: str
    orchestration_log: List[ExecutionStep] = field(default_factory=list)
    transparency: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "content": self.content,
            "message_id": self.message_id,
            "conversation_id": self.conversation_id,
            "orchestration_log": [step.to_dict() for step in self.orchestration_log],
            "transparency": self.transparency,
            "metadata": self.metadata,
        }


def build_agents(
    completion: Optional[BaseCompletionService] = None,
    cache: Optional[ResultCache] = None,
    memory_store: Optional[MemoryStore] = None,
    scorer: Optional[RiskScorer] = None,
) -> Dict[AgentName, BaseAgent]:
    """Default agent set sharing one memory store.

    Only the emotion analyzer is cached: its reading depends on the message
    text alone, while the other agents also read history or earlier results.
    """
    return {
        AgentName.CRISIS_MONITOR: CrisisMonitorAgent(scorer=scorer, memory_store=memory_store),
        AgentName.EMOTION_ANALYZER: EmotionAnalyzerAgent(completion=completion, cache=cache),
        AgentName.MEMORY_MANAGER: MemoryManagerAgent(memory_store=memory_store),
        AgentName.THERAPY_ADVISOR: TherapyAdvisorAgent(completion=completion),
        AgentName.PROGRESS_TRACKER: ProgressTrackerAgent(memory_store=memory_store),
    }


class OrchestrationEngine:
    """Coordinates planning, workflow, supervision and reporting.

    Collaborators default to in-process implementations; pass your own
    to swap any of them.
    """

    def __init__(
        self,
        config: Optional[OrchestrationConfig] = None,
        agents: Optional[Mapping[AgentName, BaseAgent]] = None,
        planner: Optional[ExecutionPlanner] = None,
        scorer: Optional[RiskScorer] = None,
        memory_store: Optional[MemoryStore] = None,
        cache: Optional[ResultCache] = None,
        completion: Optional[BaseCompletionService] = None,
        notifier: Optional[EmergencyNotifier] = None,
        transparency_sink: Optional[TransparencySink] = None,
        supervisor: Optional[TimeoutSupervisor] = None,
        recorder: Optional[OrchestrationRecorder] = None,
    ):
        self.config = config or OrchestrationConfig()
        self.scorer = scorer or RiskScorer()
        self.memory_store = memory_store if memory_store is not None else InMemoryMemoryStore()
        self.cache = cache if cache is not None else InMemoryTTLCache(
            default_ttl_seconds=self.config.cache_ttl_seconds
        )
        self.planner = planner or ExecutionPlanner(self.config)
        self.agents = dict(agents) if agents is not None else build_agents(
            completion=completion,
            cache=self.cache,
            memory_store=self.memory_store,
            scorer=self.scorer,
        )
        self.workflow = WorkflowEngine(
            self.agents,
            synthesizer=ResponseSynthesizer(self.scorer),
            config=self.config,
        )
        self.supervisor = supervisor or TimeoutSupervisor(self.scorer)
        self.recorder = recorder or OrchestrationRecorder()
        self.notifier = notifier
        self.transparency_sink = transparency_sink or LoggingTransparencySink()
        self._notifications: Set[asyncio.Future] = set()

    @classmethod
    def from_env(cls) -> "OrchestrationEngine":
        """Engine wired from environment configuration."""
        completion_config = CompletionConfig.from_env()
        completion = create_completion_service(completion_config) if completion_config else None
        return cls(
            config=OrchestrationConfig.from_env(),
            completion=completion,
            notifier=KinesisEmergencyNotifier.from_env(),
        )

    async def process(
        self,
        user_message: str,
        user_id: str,
        urgency_level: Union[str, UrgencyLevel] = "normal",
        preferences: Union[Dict[str, Any], UserPreferences, None] = None,
        conversation_id: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> OrchestrationResponse:
        """Produce one supportive reply within the plan's timeout budget.

        Raises:
            PlannerError: If the request is malformed
        """
        started_at = time.monotonic()
        urgency, prefs = self.planner.validate_request(
            user_message, user_id, urgency_level, preferences
        )

        user_id_hash = hash_pii(user_id)
        message_id = message_id or f"msg_{uuid.uuid4().hex[:12]}"
        conversation_id = conversation_id or f"conv_{uuid.uuid4().hex[:12]}"

        screen = self.scorer.score(user_message)
        urgency = self.screen_urgency(urgency, screen)
        plan = self.planner.plan(user_message, urgency, prefs)

        context = OrchestrationContext(
            user_id=user_id,
            user_id_hash=user_id_hash,
            message_id=message_id,
            conversation_id=conversation_id,
            user_message=user_message,
            urgency_level=urgency,
            plan=plan,
            preferences=prefs,
            started_at=started_at,
        )

        logger.info(
            "ORCHESTRATION_STARTED",
            extra={
                "message_id": message_id,
                "user_id_hash": user_id_hash,
                "message_length": len(user_message),
                "urgency_level": urgency.value,
                "screen_risk_level": screen.risk_level.value,
                "strategy": plan.strategy.value,
            }
        )

        await self.supervisor.run(context, self.workflow.run(context))

        report = self.recorder.record(context)
        self._publish_report(report)
        self._notify_if_required(context)
        self._remember(context, screen)

        processing_time_ms = round(context.elapsed_ms(), 2)
        assessment = context.crisis if context.crisis is not None else screen

        logger.info(
            "ORCHESTRATION_COMPLETED",
            extra={
                "message_id": message_id,
                "user_id_hash": user_id_hash,
                "strategy": plan.strategy.value,
                "processing_time_ms": processing_time_ms,
                "response_confidence": context.response_confidence,
                "warning_flags": sorted(context.warning_flags),
                "step_count": len(context.orchestration_log),
            }
        )

        return OrchestrationResponse(
            content=context.final_response,
            message_id=message_id,
            conversation_id=conversation_id,
            orchestration_log=list(context.orchestration_log),
            transparency=report.to_dict(prefs.transparency_level, prefs.agent_visibility),
            metadata={
                "timestamp": datetime.utcnow().isoformat() + "Z",
                "processing_time_ms": processing_time_ms,
                "strategy": plan.strategy.value,
                "response_confidence": context.response_confidence,
                "warning_flags": sorted(context.warning_flags),
                "recommended_follow_up": list(context.recommended_follow_up),
                "risk_assessment": assessment.to_dict(),
                "emotional_state": context.emotion.to_dict() if context.emotion else None,
                "agents_invoked": [r.agent_name.value for r in context.agent_results],
                "engine_version": self.config.engine_version,
            },
        )

    def screen_urgency(self, urgency: UrgencyLevel, screen: RiskAssessment) -> UrgencyLevel:
        """Escalate to crisis urgency when the pre-plan screen finds crisis language."""
        if screen.risk_level == RiskLevel.CRISIS:
            return UrgencyLevel.CRISIS
        return urgency

    def error_response(
        self,
        user_message: Any,
        message_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> OrchestrationResponse:
        """System-error reply for failures outside the supervised workflow.

        Still re-checks the message for crisis language.
        """
        text = user_message if isinstance(user_message, str) else ""
        fallback = minimal_fallback(text, self.scorer)
        flags = ["system_error"] + (["crisis_protocol"] if fallback.crisis else [])
        return OrchestrationResponse(
            content=CRISIS_FALLBACK if fallback.crisis else SYSTEM_ERROR_REPLY,
            message_id=message_id or f"msg_{uuid.uuid4().hex[:12]}",
            conversation_id=conversation_id or f"conv_{uuid.uuid4().hex[:12]}",
            metadata={
                "timestamp": datetime.utcnow().isoformat() + "Z",
                "response_confidence": 0.5,
                "warning_flags": sorted(flags),
                "recommended_follow_up": [SYSTEM_ERROR_FOLLOW_UP],
                "risk_assessment": fallback.assessment.to_dict(),
                "engine_version": self.config.engine_version,
            },
        )

    async def drain_notifications(self) -> None:
        """Wait for in-flight emergency notifications (shutdown and tests)."""
        if self._notifications:
            await asyncio.gather(*list(self._notifications), return_exceptions=True)

    def _publish_report(self, report) -> None:
        try:
            self.transparency_sink.publish(report)
        except Exception as e:
            logger.error(
                "TRANSPARENCY_PUBLISH_FAILED",
                extra={"message_id": report.message_id, "error": str(e)}
            )

    def _notify_if_required(self, context: OrchestrationContext) -> None:
        crisis = context.crisis
        if self.notifier is None or crisis is None or not crisis.emergency_contact_triggered:
            return

        event = EmergencyContactEvent.from_assessment(
            crisis,
            message_id=context.message_id,
            conversation_id=context.conversation_id,
            user_id_hash=context.user_id_hash,
            engine_version=self.config.engine_version,
        )
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self.notifier.notify, event)
        self._notifications.add(future)

        def done(finished: asyncio.Future) -> None:
            self._notifications.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                logger.critical(
                    "EMERGENCY_NOTIFY_FAILED",
                    extra={
                        "event_id": event.event_id,
                        "message_id": event.message_id,
                        "error": str(error),
                        "error_type": type(error).__name__,
                    }
                )

        future.add_done_callback(done)

    def _remember(self, context: OrchestrationContext, screen: RiskAssessment) -> None:
        crisis = context.crisis if context.crisis is not None else screen
        emotion = context.emotion
        entry = MemoryEntry(
            content=context.user_message,
            primary_emotion=emotion.primary_emotion if emotion else None,
            valence=emotion.valence if emotion else None,
            risk_level=crisis.risk_level,
        )
        try:
            self.memory_store.add(context.user_id_hash, entry)
        except Exception as e:
            logger.error(
                "MEMORY_STORE_WRITE_FAILED",
                extra={"message_id": context.message_id, "error": str(e)}
            )
