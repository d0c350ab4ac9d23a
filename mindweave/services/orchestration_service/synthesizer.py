"""Terminal response synthesis.

Template priority:
1. Crisis template whenever the crisis assessment is at crisis level
2. Minimal fallback when no agent succeeded
3. Emotion template for the primary emotion, else the neutral template

Confidence is the influence-weighted mean of successful agent
confidences, capped at 0.95.
"""
import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from mindweave.shared.models import ContextSnapshot, RiskAssessment, RiskLevel
from mindweave.services.risk_service import RiskScorer
from .errors import SynthesisError

logger = logging.getLogger(__name__)

CRISIS_TEMPLATE = (
    "I'm really concerned about you right now. Your safety is the most important "
    "thing. Please reach out for immediate help by calling 988 (Suicide & Crisis "
    "Lifeline) or text HOME to 741741. I'm here with you through this."
)

EMOTION_TEMPLATES = {
    "anxiety": (
        "I can sense you might be feeling anxious. Take a deep breath - you're safe "
        "here with me. Let's work through this together. What's been weighing on "
        "your mind?"
    ),
    "sadness": (
        "I hear the sadness in your words, and I want you to know that your "
        "feelings are valid. You don't have to go through this alone. What would "
        "feel most supportive right now?"
    ),
    "anger": (
        "I can feel the frustration in what you're sharing. It's completely "
        "understandable to feel this way. Let's explore what's behind these "
        "feelings. What triggered this for you?"
    ),
    "joy": (
        "It's wonderful to hear some positivity from you! I'm glad you're "
        "experiencing these good feelings. What's been going well for you?"
    ),
    "fear": (
        "It sounds like something has really frightened you, and that's a hard "
        "place to be. You're not facing it alone right now. Can you tell me "
        "what's making you feel unsafe?"
    ),
}

NEUTRAL_TEMPLATE = (
    "I hear you, and I want you to know that I'm here to support you. What would "
    "be most helpful to talk about today?"
)

HIGH_RISK_REMINDER = (
    "If things start to feel like too much, you can call or text 988 any time to "
    "reach the Suicide & Crisis Lifeline."
)

SUPPORT_FALLBACK = "I'm here to support you. How are you feeling right now?"
CRISIS_FALLBACK = (
    "I'm concerned about your safety. Please contact 988 Suicide & Crisis "
    "Lifeline immediately for support."
)
SYSTEM_ERROR_REPLY = (
    "I'm experiencing a technical issue, but I'm here to support you. "
    "How are you feeling right now?"
)
SYSTEM_ERROR_FOLLOW_UP = "Please try rephrasing your message"
CRISIS_FOLLOW_UP = "Are you in a safe place right now?"

CRISIS_CONFIDENCE = 0.95
MAX_CONFIDENCE = 0.95
FALLBACK_CONFIDENCE = 0.6


@dataclass(frozen=True)
class SynthesisResult:
    """Reply text plus what produced it."""
    content: str
    confidence: float
    template: str
    warning_flags: FrozenSet[str] = frozenset()
    follow_up: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FallbackReply:
    """Minimal reply used when the workflow produced nothing usable."""
    content: str
    assessment: RiskAssessment
    crisis: bool = False


def minimal_fallback(
    user_message: str,
    scorer: RiskScorer,
    crisis: Optional[RiskAssessment] = None,
) -> FallbackReply:
    """Canned reply with a crisis keyword re-check.

    Used by the supervisor on timeouts and workflow errors, and by the
    synthesizer when every agent failed. Never raises.
    """
    assessment = scorer.score(user_message)
    is_crisis = assessment.risk_level == RiskLevel.CRISIS or (
        crisis is not None and crisis.risk_level == RiskLevel.CRISIS
    )
    return FallbackReply(
        content=CRISIS_FALLBACK if is_crisis else SUPPORT_FALLBACK,
        assessment=assessment,
        crisis=is_crisis,
    )


class ResponseSynthesizer:
    """Builds the final reply from accumulated agent results."""

    def __init__(self, scorer: Optional[RiskScorer] = None):
        self.scorer = scorer or RiskScorer()

    def synthesize(self, view: ContextSnapshot) -> SynthesisResult:
        """Compose the reply for a completed workflow.

        Raises:
            SynthesisError: If the accumulated state cannot be rendered
        """
        crisis = view.crisis
        if crisis is not None and crisis.risk_level == RiskLevel.CRISIS:
            return SynthesisResult(
                content=CRISIS_TEMPLATE,
                confidence=CRISIS_CONFIDENCE,
                template="crisis",
                follow_up=(CRISIS_FOLLOW_UP,),
            )

        successful = view.successful_results
        if not successful:
            fallback = minimal_fallback(view.user_message, self.scorer, crisis)
            logger.warning(
                "SYNTHESIS_AGENT_FALLBACK",
                extra={
                    "message_id": view.message_id,
                    "agents_attempted": len(view.agent_results),
                    "crisis_recheck": fallback.crisis,
                }
            )
            return SynthesisResult(
                content=fallback.content,
                confidence=FALLBACK_CONFIDENCE,
                template="fallback",
                warning_flags=frozenset({"agent_fallback_response"}),
            )

        emotion = view.emotion.primary_emotion if view.emotion is not None else None
        template = emotion if emotion in EMOTION_TEMPLATES else "neutral"
        parts = []

        memory = view.memory
        if memory is not None and memory.continuity_note:
            parts.append(memory.continuity_note)
        parts.append(EMOTION_TEMPLATES.get(template, NEUTRAL_TEMPLATE))

        advice = view.advice
        if advice is not None and advice.suggested_practice:
            parts.append(advice.suggested_practice)
        if crisis is not None and crisis.risk_level == RiskLevel.HIGH:
            parts.append(HIGH_RISK_REMINDER)

        follow_up: Tuple[str, ...] = ()
        if advice is not None:
            follow_up = tuple(advice.follow_up_suggestions)

        return SynthesisResult(
            content=" ".join(part.strip() for part in parts),
            confidence=self._blend_confidence(successful),
            template=template,
            follow_up=follow_up,
        )

    def _blend_confidence(self, results) -> float:
        weight = sum(r.influence_on_final_response for r in results)
        if weight <= 0:
            raise SynthesisError("Successful agents carry no influence")
        blended = sum(r.confidence * r.influence_on_final_response for r in results) / weight
        return round(min(blended, MAX_CONFIDENCE), 3)
