"""End-to-end tests for OrchestrationEngine.process."""
import asyncio
from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from mindweave.shared.models import AgentName, RiskLevel, UrgencyLevel
from mindweave.shared.utils import hash_pii
from mindweave.services.agent_service import AgentConfig, EmotionAnalyzerAgent
from mindweave.services.risk_service import RiskScorer
from mindweave.services.orchestration_service import (
    ExecutionPlanner,
    OrchestrationEngine,
    PlannerError,
    build_agents,
)
from mindweave.services.orchestration_service.synthesizer import (
    CRISIS_FALLBACK,
    SUPPORT_FALLBACK,
)

THERAPY_MESSAGE = "I've been struggling with my family and work, any coping strategy ideas?"


class StalledCompletion:
    """Completion service whose calls never finish in time."""

    async def complete(self, *args, **kwargs):
        await asyncio.sleep(10)
        return "{}"


class TightPlanner(ExecutionPlanner):
    """Planner whose budgets are too short for any slow agent."""

    def plan(self, message, urgency_level, preferences=None):
        return replace(super().plan(message, urgency_level, preferences), timeout_ms=100)


@pytest.fixture
def notifier():
    notifier = MagicMock()
    notifier.notify.return_value = True
    return notifier


@pytest.fixture
def engine(notifier):
    return OrchestrationEngine(notifier=notifier)


class TestCrisis:

    @pytest.mark.asyncio
    async def test_crisis_message(self, engine, notifier):
        response = await engine.process("I want to kill myself", "user_123")
        await engine.drain_notifications()

        assert response.content.startswith("I'm really concerned")
        assert response.metadata["strategy"] == "crisis-priority"
        assert response.metadata["response_confidence"] == 0.95
        assert response.metadata["risk_assessment"]["risk_level"] == "crisis"
        assert response.metadata["risk_assessment"]["emergency_contact_triggered"] is True
        assert "crisis_protocol" in response.metadata["warning_flags"]
        assert response.metadata["agents_invoked"] == ["crisis_monitor"]

        notifier.notify.assert_called_once()
        event = notifier.notify.call_args.args[0]
        assert event.user_id_hash == hash_pii("user_123")
        assert event.message_id == response.message_id

    @pytest.mark.asyncio
    async def test_notifier_failure_tolerated(self, engine, notifier):
        notifier.notify.side_effect = RuntimeError("stream down")

        response = await engine.process("I want to end my life", "user_123")
        await engine.drain_notifications()

        assert response.content.startswith("I'm really concerned")
        assert engine._notifications == set()

    @pytest.mark.asyncio
    async def test_no_notification_below_crisis(self, engine, notifier):
        await engine.process("I'm worried and stressed", "user_123")
        await engine.drain_notifications()

        notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_caller_crisis_urgency_without_crisis_language(self, engine):
        response = await engine.process(
            "Nothing much happened today", "user_123", urgency_level="crisis"
        )

        assert response.metadata["strategy"] == "crisis-priority"
        assert response.metadata["agents_invoked"] == ["crisis_monitor", "therapy_advisor"]


class TestStrategies:

    @pytest.mark.asyncio
    async def test_simple_message(self, engine):
        response = await engine.process("hi", "user_123")

        assert response.metadata["strategy"] == "simple"
        assert response.metadata["agents_invoked"] == ["emotion_analyzer"]
        assert len(response.orchestration_log) == 3
        assert response.content

    @pytest.mark.asyncio
    async def test_moderate_risk_keeps_classified_strategy(self, engine):
        response = await engine.process("I feel hopeless lately", "user_123")

        assert response.metadata["strategy"] == "simple"
        assert response.metadata["agents_invoked"] == ["emotion_analyzer"]

    @pytest.mark.asyncio
    async def test_elevated_urgency_keeps_classified_strategy(self, engine):
        response = await engine.process("hi", "user_123", urgency_level="elevated")

        assert response.metadata["strategy"] == "simple"
        assert response.metadata["agents_invoked"] == ["emotion_analyzer"]

    @pytest.mark.asyncio
    async def test_response_serializes(self, engine):
        response = await engine.process("hi", "user_123", conversation_id="conv_9")

        data = response.to_dict()

        assert data["conversation_id"] == "conv_9"
        assert data["orchestration_log"][0]["step_id"] == "step_1"
        assert data["metadata"]["engine_version"] == "1.0.0"

    @pytest.mark.asyncio
    async def test_invalid_request_raises(self, engine):
        with pytest.raises(PlannerError):
            await engine.process("   ", "user_123")


class TestDegradation:

    @pytest.mark.asyncio
    async def test_stalled_emotion_agent(self, memory_store):
        agents = build_agents(memory_store=memory_store)
        agents[AgentName.EMOTION_ANALYZER] = EmotionAnalyzerAgent(
            config=AgentConfig(timeout_ms=50),
            completion=StalledCompletion(),
        )
        engine = OrchestrationEngine(agents=agents, memory_store=memory_store)

        response = await engine.process(THERAPY_MESSAGE, "user_123")

        assert response.metadata["emotional_state"] is None
        assert "agent_error" in response.metadata["warning_flags"]
        assert "system_error" not in response.metadata["warning_flags"]
        assert response.content

    @pytest.mark.asyncio
    async def test_all_agents_failing(self, make_agents, memory_store):
        errors = {name: RuntimeError("down") for name in AgentName}
        engine = OrchestrationEngine(agents=make_agents(errors=errors), memory_store=memory_store)

        response = await engine.process("I'm worried and stressed", "user_123")

        assert response.content == SUPPORT_FALLBACK
        assert response.metadata["response_confidence"] <= 0.6
        assert "agent_fallback_response" in response.metadata["warning_flags"]

    @pytest.mark.asyncio
    async def test_supervisor_timeout(self, make_agents, memory_store):
        agents = make_agents(delays={AgentName.EMOTION_ANALYZER: 0.5})
        engine = OrchestrationEngine(
            agents=agents, memory_store=memory_store, planner=TightPlanner()
        )

        response = await engine.process("hi", "user_123")

        assert response.content == SUPPORT_FALLBACK
        assert response.metadata["response_confidence"] == 0.6
        assert "fast_fallback_response" in response.metadata["warning_flags"]
        assert response.metadata["processing_time_ms"] < 500

        await asyncio.sleep(0.6)

    @pytest.mark.asyncio
    async def test_every_agent_stalled(self, make_agents, memory_store):
        agents = make_agents(delays={name: 0.5 for name in AgentName})
        engine = OrchestrationEngine(
            agents=agents, memory_store=memory_store, planner=TightPlanner()
        )

        response = await engine.process(THERAPY_MESSAGE, "user_123")

        assert response.metadata["strategy"] == "therapy"
        assert response.content == SUPPORT_FALLBACK
        assert "fast_fallback_response" in response.metadata["warning_flags"]
        assert response.metadata["agents_invoked"] == []
        assert response.metadata["processing_time_ms"] < 500

        await asyncio.sleep(0.6)

    @pytest.mark.asyncio
    async def test_transparency_sink_failure_tolerated(self):
        sink = MagicMock()
        sink.publish.side_effect = RuntimeError("sink down")
        engine = OrchestrationEngine(transparency_sink=sink)

        response = await engine.process("hi", "user_123")

        sink.publish.assert_called_once()
        assert response.content


class TestCacheAndMemory:

    @pytest.mark.asyncio
    async def test_repeated_message_hits_cache(self, engine):
        await engine.process("hi", "user_123")
        response = await engine.process("hi", "user_123")

        emotion_step = response.orchestration_log[1]
        assert emotion_step.results["from_cache"] is True
        assert response.transparency["agents"][0]["from_cache"] is True

    @pytest.mark.asyncio
    async def test_other_user_misses_cache(self, engine):
        await engine.process("hi", "user_123")
        response = await engine.process("hi", "user_456")

        assert response.orchestration_log[1].results["from_cache"] is False

    @pytest.mark.asyncio
    async def test_exchange_remembered(self, engine):
        await engine.process("I want to kill myself", "user_123")

        entries = engine.memory_store.recent(hash_pii("user_123"), 10)

        assert len(entries) == 1
        assert entries[0].risk_level == RiskLevel.CRISIS


class TestUrgencyScreen:

    def test_moderate_screen_keeps_caller_urgency(self, engine):
        screen = RiskScorer().score("I feel hopeless")

        assert engine.screen_urgency(UrgencyLevel.NORMAL, screen) == UrgencyLevel.NORMAL

    def test_crisis_screen_always_wins(self, engine):
        screen = RiskScorer().score("I want to die")

        assert engine.screen_urgency(UrgencyLevel.ELEVATED, screen) == UrgencyLevel.CRISIS

    def test_never_lowers_caller_urgency(self, engine):
        screen = RiskScorer().score("hello there")

        assert engine.screen_urgency(UrgencyLevel.CRISIS, screen) == UrgencyLevel.CRISIS


class TestErrorResponse:

    def test_plain_error_response(self, engine):
        response = engine.error_response("hello")

        assert response.metadata["response_confidence"] == 0.5
        assert response.metadata["warning_flags"] == ["system_error"]

    def test_crisis_error_response(self, engine):
        response = engine.error_response("I want to kill myself")

        assert response.content == CRISIS_FALLBACK
        assert "crisis_protocol" in response.metadata["warning_flags"]

    def test_non_string_message(self, engine):
        assert engine.error_response(None).metadata["risk_assessment"]["risk_level"] == "none"
