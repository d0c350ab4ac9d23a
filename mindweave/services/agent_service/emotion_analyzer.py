"""Emotion Analyzer agent.

Deterministic keyword scoring over five emotion vocabularies, mapped to
fixed valence/arousal/dominance coordinates. When a completion service
is injected the agent asks it for a primary emotion and intensity, and
validates the answer against the same table.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from mindweave.shared.models import AgentName, ContextSnapshot
from .base_agent import AgentAnalysis, AgentAnalysisError, BaseAgent
from .config import (
    EMOTION_KEYWORDS,
    EMOTION_VAD,
    FALLBACK_CONFIDENCE,
    INTENSITY_PER_MATCH,
)

logger = logging.getLogger(__name__)

EMOTION_SYSTEM_PROMPT = (
    "You label the dominant emotion in a user's message. Reply with JSON only: "
    '{"primary_emotion": one of ["anxiety", "sadness", "anger", "joy", "fear", '
    '"neutral"], "intensity": number between 0 and 1}'
)


@dataclass(frozen=True)
class EmotionAnalysis:
    """Emotional reading of one message."""
    primary_emotion: str
    valence: float
    arousal: float
    dominance: float
    intensity: float
    emotion_scores: Dict[str, int] = field(default_factory=dict)
    matched_keywords: List[str] = field(default_factory=list)
    source: str = "keywords"

    def __post_init__(self):
        if self.primary_emotion not in EMOTION_VAD:
            raise ValueError(f"Unknown emotion: {self.primary_emotion}")
        if not 0.0 <= self.intensity <= 1.0:
            raise ValueError(f"Intensity must be 0.0-1.0, got {self.intensity}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_emotion": self.primary_emotion,
            "valence": self.valence,
            "arousal": self.arousal,
            "dominance": self.dominance,
            "intensity": self.intensity,
            "emotion_scores": dict(self.emotion_scores),
            "matched_keywords": list(self.matched_keywords),
            "source": self.source,
        }


def score_emotions(text: str) -> EmotionAnalysis:
    """Keyword emotion scoring.

    Each emotion scores the number of its keywords found as substrings.
    The highest score wins; ties keep the earlier emotion; no matches
    means neutral.
    """
    lower = (text or "").lower()
    scores: Dict[str, int] = {}
    matched: List[str] = []
    for emotion, keywords in EMOTION_KEYWORDS.items():
        hits = [kw for kw in keywords if kw in lower]
        scores[emotion] = len(hits)
        matched.extend(kw for kw in hits if kw not in matched)

    primary = "neutral"
    top = 0
    for emotion, count in scores.items():
        if count > top:
            primary, top = emotion, count

    valence, arousal, dominance = EMOTION_VAD[primary]
    return EmotionAnalysis(
        primary_emotion=primary,
        valence=valence,
        arousal=arousal,
        dominance=dominance,
        intensity=min(top * INTENSITY_PER_MATCH, 1.0),
        emotion_scores=scores,
        matched_keywords=matched,
    )


class EmotionAnalyzerAgent(BaseAgent):
    """Scores the emotional content of the user's message."""

    name = AgentName.EMOTION_ANALYZER

    async def analyze(self, view: ContextSnapshot) -> AgentAnalysis:
        keyword_reading = score_emotions(view.user_message)

        if self.completion is None:
            emotion = keyword_reading
            confidence = 0.8 if keyword_reading.matched_keywords else 0.6
        else:
            emotion = await self._completion_reading(view, keyword_reading)
            confidence = 0.85

        insights = [f"Primary emotion: {emotion.primary_emotion}"]
        if emotion.intensity >= 0.6:
            insights.append(f"High emotional intensity ({emotion.intensity:.1f})")

        recommendations = []
        if emotion.valence < 0:
            recommendations.append("Lead with validation before suggestions")

        return AgentAnalysis(
            payload=emotion,
            confidence=confidence,
            reasoning=(
                f"Detected {emotion.primary_emotion} from "
                f"{len(emotion.matched_keywords)} emotional keywords"
            ),
            insights=insights,
            recommendations=recommendations,
        )

    def fallback(self, view: ContextSnapshot) -> AgentAnalysis:
        valence, arousal, dominance = EMOTION_VAD["neutral"]
        return AgentAnalysis(
            payload=EmotionAnalysis(
                primary_emotion="neutral",
                valence=valence,
                arousal=arousal,
                dominance=dominance,
                intensity=0.0,
                source="fallback",
            ),
            confidence=FALLBACK_CONFIDENCE,
            reasoning="Emotion analysis unavailable; emotional state unknown",
            recommendations=["Use a neutral, supportive tone"],
        )

    async def _completion_reading(
        self,
        view: ContextSnapshot,
        keyword_reading: EmotionAnalysis,
    ) -> EmotionAnalysis:
        data = await self._complete_json(
            f"Message: {view.user_message}",
            system_prompt=EMOTION_SYSTEM_PROMPT,
        )
        primary = str(data.get("primary_emotion", "")).strip().lower()
        if primary not in EMOTION_VAD:
            raise AgentAnalysisError(f"Unrecognized emotion label: {primary!r}")
        try:
            intensity = float(data.get("intensity", 0.5))
        except (TypeError, ValueError) as e:
            raise AgentAnalysisError("Intensity is not a number") from e

        valence, arousal, dominance = EMOTION_VAD[primary]
        return EmotionAnalysis(
            primary_emotion=primary,
            valence=valence,
            arousal=arousal,
            dominance=dominance,
            intensity=min(max(intensity, 0.0), 1.0),
            emotion_scores=keyword_reading.emotion_scores,
            matched_keywords=keyword_reading.matched_keywords,
            source="completion",
        )
