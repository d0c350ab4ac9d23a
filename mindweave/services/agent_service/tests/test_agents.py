"""Tests for the five analysis agents on their deterministic paths."""
from datetime import datetime, timedelta

import pytest
from unittest.mock import AsyncMock, MagicMock

from mindweave.shared.models import (
    AgentName,
    CommunicationStyle,
    RiskLevel,
    UserPreferences,
)
from mindweave.services.agent_service import (
    CrisisMonitorAgent,
    EmotionAnalyzerAgent,
    InMemoryMemoryStore,
    MemoryEntry,
    MemoryManagerAgent,
    ProgressTrackerAgent,
    TherapyAdvisorAgent,
    score_emotions,
)
from mindweave.services.risk_service import RiskScorer


@pytest.fixture
def memory_store():
    return InMemoryMemoryStore()


def remember(store, *contents, valence=None, risk_level=None, user="user_hash_001"):
    start = datetime(2026, 10, 1, 9, 0)
    for i, content in enumerate(contents):
        store.add(user, MemoryEntry(
            content=content,
            created_at=start + timedelta(hours=i),
            valence=valence,
            risk_level=risk_level,
        ))


class TestScoreEmotions:
    """Tests for keyword emotion scoring."""

    def test_anxiety_keywords(self):
        reading = score_emotions("I'm so anxious and worried about tomorrow")

        assert reading.primary_emotion == "anxiety"
        assert reading.emotion_scores["anxiety"] == 2
        assert reading.intensity == pytest.approx(0.6)
        assert (reading.valence, reading.arousal, reading.dominance) == (-0.3, 0.7, 0.2)

    def test_no_keywords_is_neutral(self):
        reading = score_emotions("hi")

        assert reading.primary_emotion == "neutral"
        assert reading.intensity == 0.0
        assert reading.matched_keywords == []

    def test_tie_keeps_earlier_emotion(self):
        # "scared" counts for both anxiety and fear; anxiety is listed first
        reading = score_emotions("I'm scared")
        assert reading.primary_emotion == "anxiety"

    def test_intensity_capped(self):
        reading = score_emotions("happy good great excited wonderful amazing")

        assert reading.primary_emotion == "joy"
        assert reading.intensity == 1.0


class TestEmotionAnalyzerAgent:
    """Tests for the emotion agent."""

    @pytest.mark.asyncio
    async def test_keyword_confidence(self, make_snapshot):
        agent = EmotionAnalyzerAgent()

        matched = await agent.execute(make_snapshot("I feel sad"), "task")
        unmatched = await agent.execute(make_snapshot("hi there"), "task")

        assert matched.success is True
        assert matched.confidence == 0.8
        assert unmatched.confidence == 0.6
        assert matched.influence_on_final_response == 0.8
        assert matched.agent_name == AgentName.EMOTION_ANALYZER

    @pytest.mark.asyncio
    async def test_completion_reading_validated(self, make_snapshot):
        completion = MagicMock()
        completion.complete = AsyncMock(
            return_value='Sure: {"primary_emotion": "Fear", "intensity": 1.7}'
        )
        agent = EmotionAnalyzerAgent(completion=completion)

        result = await agent.execute(make_snapshot("There is a noise outside"), "task")

        assert result.success is True
        assert result.result.primary_emotion == "fear"
        assert result.result.intensity == 1.0
        assert result.result.source == "completion"

    @pytest.mark.asyncio
    async def test_unknown_label_is_failure(self, make_snapshot):
        completion = MagicMock()
        completion.complete = AsyncMock(return_value='{"primary_emotion": "ennui"}')
        agent = EmotionAnalyzerAgent(completion=completion)

        result = await agent.execute(make_snapshot("meh"), "task")

        assert result.success is False


class TestMemoryManagerAgent:
    """Tests for history retrieval."""

    @pytest.mark.asyncio
    async def test_no_store_means_no_history(self, make_snapshot):
        result = await MemoryManagerAgent().execute(make_snapshot("My exam is soon"), "task")

        assert result.success is True
        assert result.confidence == 0.5
        assert result.result.conversation_count == 0
        assert result.result.current_themes == ["school"]

    @pytest.mark.asyncio
    async def test_ranks_relevant_memories(self, memory_store, make_snapshot):
        remember(
            memory_store,
            "My sister visited this weekend",
            "Couldn't sleep again, the deadline at work is crushing",
            "Sleep has been terrible since the deadline moved",
            "Had pizza for dinner",
        )
        agent = MemoryManagerAgent(memory_store=memory_store)

        result = await agent.execute(
            make_snapshot("The deadline is tomorrow and I can't sleep"), "task"
        )

        memories = [m.content for m in result.result.relevant_memories]
        assert result.confidence == 0.7
        assert memories[0].startswith("Sleep has been terrible")
        assert "Had pizza for dinner" not in memories
        assert "sleep" in result.result.recurring_themes
        assert "work" in result.result.recurring_themes
        assert result.result.continuity_note == "It sounds like sleep keeps coming up for you."

    @pytest.mark.asyncio
    async def test_sleep_and_low_mood_pattern(self, memory_store, make_snapshot):
        remember(memory_store, "so tired", "exhausted again", valence=-0.6)
        agent = MemoryManagerAgent(memory_store=memory_store)

        result = await agent.execute(make_snapshot("hello"), "task")

        assert "Sleep difficulties alongside low mood" in result.result.patterns

    @pytest.mark.asyncio
    async def test_history_is_per_user(self, memory_store, make_snapshot):
        remember(memory_store, "work work work", "work again", user="other_user")
        agent = MemoryManagerAgent(memory_store=memory_store)

        result = await agent.execute(make_snapshot("work"), "task")

        assert result.result.conversation_count == 0


class TestCrisisMonitorAgent:
    """Tests for the crisis agent."""

    @pytest.mark.asyncio
    async def test_crisis_message(self, make_snapshot):
        result = await CrisisMonitorAgent().execute(
            make_snapshot("I want to kill myself tonight"), "task"
        )

        assert result.success is True
        assert result.result.risk_level == RiskLevel.CRISIS
        assert result.influence_on_final_response == 1.0
        assert result.confidence == 0.95
        assert "Route directly to emergency response" in result.recommendations

    @pytest.mark.asyncio
    async def test_non_crisis_influence(self, make_snapshot):
        result = await CrisisMonitorAgent().execute(
            make_snapshot("Work has me pretty stressed this week"), "task"
        )

        assert result.result.risk_level == RiskLevel.LOW
        assert result.influence_on_final_response == 0.6

    @pytest.mark.asyncio
    async def test_uses_prior_risk_history(self, memory_store, make_snapshot):
        remember(memory_store, "a", "b", risk_level=RiskLevel.HIGH)
        agent = CrisisMonitorAgent(memory_store=memory_store)

        result = await agent.execute(make_snapshot("I feel so alone lately"), "task")

        assert "escalation_pattern" in result.result.risk_factors

    @pytest.mark.asyncio
    async def test_ignores_completion_service(self, make_snapshot):
        completion = MagicMock()
        completion.complete = AsyncMock(return_value="{}")
        agent = CrisisMonitorAgent(completion=completion)

        await agent.execute(make_snapshot("I feel hopeless"), "task")

        completion.complete.assert_not_called()


class TestTherapyAdvisorAgent:
    """Tests for approach selection."""

    @pytest.mark.asyncio
    async def test_crisis_advice(self, make_snapshot):
        crisis = RiskScorer().score("I want to die")
        result = await TherapyAdvisorAgent().execute(
            make_snapshot("I want to die", crisis=crisis), "task"
        )

        assert result.result.intervention == "crisis_intervention"
        assert result.result.follow_up_suggestions == ["Are you in a safe place right now?"]
        assert result.confidence == 0.95

    @pytest.mark.asyncio
    async def test_anxiety_maps_to_grounding(self, make_snapshot):
        emotion = score_emotions("so anxious")
        result = await TherapyAdvisorAgent().execute(
            make_snapshot("so anxious", emotion=emotion), "task"
        )

        assert result.result.approach == "mindfulness"
        assert result.result.suggested_practice.startswith("If it helps")
        assert result.confidence == 0.8
        assert result.influence_on_final_response == 0.9

    @pytest.mark.asyncio
    async def test_unknown_emotion_is_supportive(self, make_snapshot):
        result = await TherapyAdvisorAgent().execute(make_snapshot("hello"), "task")

        assert result.result.intervention == "supportive_validation"
        assert result.result.suggested_practice is None

    @pytest.mark.asyncio
    async def test_high_risk_uses_crisis_advice(self, make_snapshot):
        crisis = RiskScorer().score("I feel hopeless and worthless about it all")
        result = await TherapyAdvisorAgent().execute(
            make_snapshot("msg", crisis=crisis), "task"
        )

        assert crisis.risk_level == RiskLevel.HIGH
        assert result.result.intervention == "crisis_intervention"
        assert result.result.professional_referral is True

    @pytest.mark.asyncio
    async def test_completion_drafts_practice(self, make_snapshot):
        completion = MagicMock()
        completion.complete = AsyncMock(return_value="Maybe try a short walk outside.")
        emotion = score_emotions("I'm so sad")
        agent = TherapyAdvisorAgent(completion=completion)

        result = await agent.execute(make_snapshot("I'm so sad", emotion=emotion), "task")

        assert result.result.suggested_practice == "Maybe try a short walk outside."
        assert result.result.drafted is True

    @pytest.mark.asyncio
    async def test_clinical_style_drops_practice(self, make_snapshot):
        emotion = score_emotions("so angry")
        prefs = UserPreferences(communication_style=CommunicationStyle.CLINICAL_PRECISE)
        result = await TherapyAdvisorAgent().execute(
            make_snapshot("so angry", emotion=emotion, preferences=prefs), "task"
        )

        assert result.result.approach == "dbt"
        assert result.result.suggested_practice is None


class TestProgressTrackerAgent:
    """Tests for progress tracking."""

    @pytest.mark.asyncio
    async def test_progress_language(self, make_snapshot):
        result = await ProgressTrackerAgent().execute(
            make_snapshot("I've been working on my breathing and it's getting better"),
            "task",
        )

        assert "been working on" in result.result.achievements
        assert "getting better" in result.result.achievements
        assert result.result.trend == "insufficient_data"
        assert result.confidence == 0.6

    @pytest.mark.asyncio
    async def test_improving_trend(self, memory_store, make_snapshot):
        remember(memory_store, "bad day", "another bad day", valence=-0.6)
        emotion = score_emotions("I'm happy today")
        agent = ProgressTrackerAgent(memory_store=memory_store)

        result = await agent.execute(make_snapshot("I'm happy today", emotion=emotion), "task")

        assert result.result.trend == "improving"
        assert result.result.valence_delta == pytest.approx(1.3)
        assert result.confidence == 0.7

    @pytest.mark.asyncio
    async def test_declining_trend_recommends_coping_review(self, memory_store, make_snapshot):
        remember(memory_store, "great week", valence=0.7)
        emotion = score_emotions("things got worse, I'm sad")
        agent = ProgressTrackerAgent(memory_store=memory_store)

        result = await agent.execute(
            make_snapshot("things got worse, I'm sad", emotion=emotion), "task"
        )

        assert result.result.trend == "declining"
        assert "worse" in result.result.setbacks
        assert "Normalize setbacks and revisit coping plan" in result.recommendations
