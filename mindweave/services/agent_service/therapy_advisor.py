"""Therapy Advisor agent.

Selects a therapeutic approach and coping techniques from a fixed
library keyed by risk and primary emotion. With a completion service
injected, the suggested practice is drafted as a personalized sentence
instead of taken from the library.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from mindweave.shared.models import (
    AgentName,
    CommunicationStyle,
    ContextSnapshot,
    RiskLevel,
)
from .base_agent import AgentAnalysis, BaseAgent
from .config import FALLBACK_CONFIDENCE

logger = logging.getLogger(__name__)

ADVICE_SYSTEM_PROMPT = (
    "You are a supportive mental-health companion. Write ONE short sentence "
    "(under 40 words) suggesting the named technique to the user. Do not "
    "diagnose, do not mention medication, do not use lists."
)


@dataclass(frozen=True)
class TherapyAdvice:
    """Approach and techniques recommended for the reply."""
    approach: str
    intervention: str
    techniques: List[str] = field(default_factory=list)
    coping_strategies: List[str] = field(default_factory=list)
    follow_up_suggestions: List[str] = field(default_factory=list)
    suggested_practice: Optional[str] = None
    professional_referral: bool = False
    drafted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "approach": self.approach,
            "intervention": self.intervention,
            "techniques": list(self.techniques),
            "coping_strategies": list(self.coping_strategies),
            "follow_up_suggestions": list(self.follow_up_suggestions),
            "suggested_practice": self.suggested_practice,
            "professional_referral": self.professional_referral,
            "drafted": self.drafted,
        }


CRISIS_ADVICE = TherapyAdvice(
    approach="crisis_intervention",
    intervention="crisis_intervention",
    techniques=["immediate_safety_planning", "professional_referral", "distress_tolerance"],
    coping_strategies=["Call or text 988", "Stay with someone you trust"],
    follow_up_suggestions=["Are you in a safe place right now?"],
    professional_referral=True,
)

SUPPORTIVE_ADVICE = TherapyAdvice(
    approach="humanistic",
    intervention="supportive_validation",
    techniques=["active_listening", "emotional_validation"],
    coping_strategies=["deep_breathing", "grounding_exercises"],
    follow_up_suggestions=["How are you feeling about trying these techniques?"],
)

TECHNIQUE_LIBRARY: Dict[str, TherapyAdvice] = {
    "anxiety": TherapyAdvice(
        approach="mindfulness",
        intervention="grounding",
        techniques=["box_breathing", "5_4_3_2_1_grounding"],
        coping_strategies=["deep_breathing", "grounding_exercises"],
        follow_up_suggestions=["How does your body feel after a few slow breaths?"],
        suggested_practice=(
            "If it helps, try breathing in for four counts, holding for four, "
            "and breathing out for four."
        ),
    ),
    "fear": TherapyAdvice(
        approach="mindfulness",
        intervention="grounding",
        techniques=["5_4_3_2_1_grounding", "safe_place_visualization"],
        coping_strategies=["grounding_exercises", "deep_breathing"],
        follow_up_suggestions=["What feels most frightening right now?"],
        suggested_practice=(
            "Naming five things you can see right now can help bring you back "
            "to the present moment."
        ),
    ),
    "sadness": TherapyAdvice(
        approach="cbt",
        intervention="behavioral_activation",
        techniques=["activity_scheduling", "self_compassion"],
        coping_strategies=["gentle_movement", "reaching_out"],
        follow_up_suggestions=["Is there one small thing that usually brings you some comfort?"],
        suggested_practice=(
            "Sometimes one small, doable activity, like a short walk, can lift "
            "things a little."
        ),
    ),
    "anger": TherapyAdvice(
        approach="dbt",
        intervention="emotion_regulation",
        techniques=["tipp_skills", "opposite_action"],
        coping_strategies=["paced_breathing", "taking_a_break"],
        follow_up_suggestions=["What do you think set off this feeling?"],
        suggested_practice=(
            "Stepping away for a few minutes and slowing your breathing can take "
            "the edge off intense anger."
        ),
    ),
    "joy": TherapyAdvice(
        approach="strengths_based",
        intervention="savoring",
        techniques=["savoring", "gratitude_reflection"],
        coping_strategies=["journaling"],
        follow_up_suggestions=["What would help you hold onto this feeling?"],
        suggested_practice=(
            "It might be worth taking a moment to notice what helped things go well."
        ),
    ),
}


class TherapyAdvisorAgent(BaseAgent):
    """Chooses the therapeutic approach for the reply."""

    name = AgentName.THERAPY_ADVISOR

    async def analyze(self, view: ContextSnapshot) -> AgentAnalysis:
        crisis = view.crisis
        if crisis is not None and crisis.risk_level.at_least(RiskLevel.HIGH):
            return AgentAnalysis(
                payload=CRISIS_ADVICE,
                confidence=0.95,
                reasoning=f"Risk level {crisis.risk_level.value} requires crisis intervention",
                insights=["Safety planning prioritized over skill building"],
                recommendations=["Lead with crisis resources"],
            )

        emotion = view.emotion.primary_emotion if view.emotion is not None else None
        advice = TECHNIQUE_LIBRARY.get(emotion, SUPPORTIVE_ADVICE)

        referral = bool(crisis and crisis.professional_referral_recommended)
        if referral:
            advice = replace(advice, professional_referral=True)

        if self.completion is not None and advice.suggested_practice:
            drafted = await self._draft_practice(view, advice)
            advice = replace(advice, suggested_practice=drafted, drafted=True)

        if view.preferences.communication_style == CommunicationStyle.CLINICAL_PRECISE:
            advice = replace(advice, suggested_practice=None)

        return AgentAnalysis(
            payload=advice,
            confidence=0.8,
            reasoning=(
                f"Selected {advice.approach} ({advice.intervention}) for "
                f"{emotion or 'unknown'} emotional state"
            ),
            insights=[f"Technique: {t}" for t in advice.techniques],
            recommendations=(
                ["Suggest speaking with a professional"] if referral else []
            ),
        )

    def fallback(self, view: ContextSnapshot) -> AgentAnalysis:
        crisis = view.crisis
        if crisis is not None and crisis.risk_level.at_least(RiskLevel.HIGH):
            payload = CRISIS_ADVICE
        else:
            payload = SUPPORTIVE_ADVICE
        return AgentAnalysis(
            payload=payload,
            confidence=FALLBACK_CONFIDENCE,
            reasoning="Advice generation unavailable; using supportive defaults",
            recommendations=["Keep the reply supportive and non-directive"],
        )

    async def _draft_practice(self, view: ContextSnapshot, advice: TherapyAdvice) -> str:
        prompt = (
            f"Technique: {advice.techniques[0].replace('_', ' ')}\n"
            f"Approach: {advice.approach}\n"
            f"User message: {view.user_message}"
        )
        return await self.completion.complete(
            prompt,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            timeout_ms=self.config.timeout_ms,
            system_prompt=ADVICE_SYSTEM_PROMPT,
        )
