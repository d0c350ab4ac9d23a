"""Deterministic crisis/self-harm risk scorer.

This module implements the deterministic guardrail per ADR-001. It is a
pure function of its inputs: no I/O, no randomness, no model calls, so
the orchestrator can run it before planning, inside the crisis agent,
and again inside every fallback path.

Scoring order:
1. Critical phrases (explicit self-harm/suicide) force CRISIS
2. High/moderate phrase counts pick NONE..HIGH
3. Immediacy language escalates and adds urgency
4. Protective factors are reported independently
"""
import logging
import re
import unicodedata
from typing import Iterable, List, Optional, Tuple

from mindweave.shared.models import RiskAssessment, RiskLevel
from .config import (
    BASE_CONFIDENCE,
    CRISIS_SAFETY_PLAN,
    CRITICAL_CONFIDENCE,
    CRITICAL_PHRASES,
    ESCALATION_URGENCY_BONUS,
    HIGH_RISK_PHRASES,
    IMMEDIACY_PHRASES,
    IMMEDIACY_URGENCY_BONUS,
    MODERATE_RISK_PHRASES,
    PROTECTIVE_KEYWORDS,
    SHORT_MESSAGE_PENALTY,
    SINGLE_CATEGORY_PENALTY,
    UNANALYZABLE_CONFIDENCE,
    URGENCY_BY_LEVEL,
    RiskScorerConfig,
)

logger = logging.getLogger(__name__)


# Zero-width and invisible characters stripped before matching
_INVISIBLE = dict.fromkeys(map(ord, "\u200b\u200c\u200d\ufeff\u00ad\u2060"))

_APOSTROPHES = str.maketrans({"\u2019": "'", "\u2018": "'", "\u02bc": "'"})


def normalize_text(text: str) -> str:
    """Fold text into the form the phrase tables are written in."""
    if not text:
        return ""
    result = unicodedata.normalize("NFKC", text)
    result = result.translate(_INVISIBLE).translate(_APOSTROPHES)
    return result.lower()


class RiskScorer:
    """Keyword-and-context risk scorer.

    Attributes:
        config: Scoring configuration
    """

    def __init__(self, config: Optional[RiskScorerConfig] = None):
        self.config = config or RiskScorerConfig()
        self._protective_patterns: List[Tuple[str, re.Pattern]] = [
            (keyword, re.compile(rf"\b{re.escape(keyword)}\b"))
            for keyword in PROTECTIVE_KEYWORDS
        ]

    def score(
        self,
        text: str,
        prior_risk_history: Optional[Iterable[RiskLevel]] = None,
    ) -> RiskAssessment:
        """Score a message for crisis risk.

        Args:
            text: Raw message text
            prior_risk_history: Risk levels of the user's earlier messages,
                oldest first

        Returns:
            RiskAssessment. Never raises for any string input.
        """
        normalized = normalize_text(text or "")
        protective = self._protective_factors(normalized)

        if not any(ch.isalnum() for ch in normalized):
            return RiskAssessment(
                risk_level=RiskLevel.NONE,
                urgency_score=0,
                immediate_intervention_required=False,
                professional_referral_recommended=False,
                confidence=UNANALYZABLE_CONFIDENCE,
                reasoning="No analyzable content in message",
            )

        critical = _matches(normalized, CRITICAL_PHRASES)
        immediacy = [p for p in IMMEDIACY_PHRASES if p in normalized]

        if critical:
            return self._critical_assessment(critical, immediacy, protective)

        high = _matches(normalized, HIGH_RISK_PHRASES)
        moderate = _matches(normalized, MODERATE_RISK_PHRASES)

        if len(high) >= 2:
            level = RiskLevel.CRISIS if immediacy else RiskLevel.HIGH
        elif len(high) == 1:
            level = RiskLevel.MODERATE
        elif len(moderate) >= 2:
            level = RiskLevel.MODERATE
        elif len(moderate) == 1:
            level = RiskLevel.LOW
        else:
            level = RiskLevel.NONE

        urgency = URGENCY_BY_LEVEL[level]
        immediate = level == RiskLevel.CRISIS
        if immediacy:
            urgency += IMMEDIACY_URGENCY_BONUS
            if level != RiskLevel.NONE:
                immediate = True

        risk_factors = _unique_tags(high + moderate)
        if immediacy and level != RiskLevel.NONE:
            risk_factors.append("immediacy")
        if level != RiskLevel.NONE and self._escalating(prior_risk_history):
            risk_factors.append("escalation_pattern")
            urgency += ESCALATION_URGENCY_BONUS

        confidence = BASE_CONFIDENCE
        if len(normalized.strip()) < self.config.short_message_length:
            confidence -= SHORT_MESSAGE_PENALTY
        if bool(high) != bool(moderate):
            confidence -= SINGLE_CATEGORY_PENALTY

        matched = [phrase for phrase, _ in high + moderate]
        return RiskAssessment(
            risk_level=level,
            urgency_score=min(urgency, 100),
            immediate_intervention_required=immediate,
            professional_referral_recommended=level in (RiskLevel.HIGH, RiskLevel.CRISIS),
            confidence=round(confidence, 2),
            reasoning=_reasoning(level, high, moderate, immediacy),
            risk_factors=risk_factors,
            protective_factors=protective,
            matched_phrases=matched,
            safety_plan=CRISIS_SAFETY_PLAN if level == RiskLevel.CRISIS else None,
        )

    def _critical_assessment(
        self,
        critical: List[Tuple[str, str]],
        immediacy: List[str],
        protective: List[str],
    ) -> RiskAssessment:
        risk_factors = _unique_tags(critical)
        if immediacy:
            risk_factors.append("immediacy")

        logger.warning(
            "CRITICAL_PHRASE_MATCHED",
            extra={
                "trigger": critical[0][0],
                "match_count": len(critical),
                "immediacy": bool(immediacy),
                "phrase_version": self.config.phrase_version,
            }
        )

        return RiskAssessment(
            risk_level=RiskLevel.CRISIS,
            urgency_score=100,
            immediate_intervention_required=True,
            professional_referral_recommended=True,
            confidence=CRITICAL_CONFIDENCE,
            reasoning=f"Critical phrase detected: '{critical[0][0]}'",
            risk_factors=risk_factors,
            protective_factors=protective,
            matched_phrases=[phrase for phrase, _ in critical],
            safety_plan=CRISIS_SAFETY_PLAN,
        )

    def _protective_factors(self, normalized: str) -> List[str]:
        return [
            keyword.replace(" ", "_")
            for keyword, pattern in self._protective_patterns
            if pattern.search(normalized)
        ]

    def _escalating(self, history: Optional[Iterable[RiskLevel]]) -> bool:
        if not history:
            return False
        elevated = sum(1 for level in history if level.at_least(RiskLevel.HIGH))
        return elevated >= self.config.escalation_history_threshold


def _matches(text: str, table: Tuple[Tuple[str, str], ...]) -> List[Tuple[str, str]]:
    return [(phrase, tag) for phrase, tag in table if phrase in text]


def _unique_tags(matches: List[Tuple[str, str]]) -> List[str]:
    tags: List[str] = []
    for _, tag in matches:
        if tag not in tags:
            tags.append(tag)
    return tags


def _reasoning(
    level: RiskLevel,
    high: List[Tuple[str, str]],
    moderate: List[Tuple[str, str]],
    immediacy: List[str],
) -> str:
    if level == RiskLevel.NONE:
        return "No risk indicators detected"
    parts = [f"{len(high)} high-risk and {len(moderate)} moderate-risk indicators"]
    if immediacy:
        parts.append(f"immediacy language ('{immediacy[0]}')")
    return f"Risk level {level.value}: " + ", ".join(parts)
