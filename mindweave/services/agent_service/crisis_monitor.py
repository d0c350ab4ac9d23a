"""Crisis Monitor agent.

Wraps the deterministic RiskScorer. The scorer never calls a model, so
this agent ignores any injected completion service (ADR-001).

Failure Handling:
    - A failed assessment is NEVER reported as "no risk"
    - Fallback re-checks critical phrases; otherwise assumes MODERATE
    - Failures are logged at CRITICAL level for alerting
"""
import logging
from typing import Optional

from mindweave.shared.models import (
    AgentName,
    ContextSnapshot,
    RiskAssessment,
    RiskLevel,
)
from mindweave.services.risk_service import CRITICAL_PHRASES, CRISIS_SAFETY_PLAN, RiskScorer
from mindweave.services.risk_service.config import URGENCY_BY_LEVEL
from mindweave.services.risk_service.scorer import normalize_text
from .base_agent import AgentAnalysis, BaseAgent
from .config import HISTORY_LIMIT
from .memory_store import MemoryStore

logger = logging.getLogger(__name__)

FALLBACK_CRISIS_CONFIDENCE = 0.4


class CrisisMonitorAgent(BaseAgent):
    """Assesses crisis and self-harm risk for the current message."""

    name = AgentName.CRISIS_MONITOR

    def __init__(
        self,
        scorer: Optional[RiskScorer] = None,
        memory_store: Optional[MemoryStore] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.scorer = scorer or RiskScorer()
        self.memory_store = memory_store

    async def analyze(self, view: ContextSnapshot) -> AgentAnalysis:
        prior = None
        if self.memory_store is not None:
            prior = [
                entry.risk_level
                for entry in self.memory_store.recent(view.user_id_hash, HISTORY_LIMIT)
                if entry.risk_level is not None
            ]

        assessment = self.scorer.score(view.user_message, prior)

        if assessment.risk_level == RiskLevel.CRISIS:
            logger.critical(
                "CRISIS_DETECTED",
                extra={
                    "message_id": view.message_id,
                    "user_id_hash": view.user_id_hash,
                    "urgency_score": assessment.urgency_score,
                    "risk_factors": assessment.risk_factors,
                    "action": "EMERGENCY_SYNTHESIS",
                }
            )

        return AgentAnalysis(
            payload=assessment,
            confidence=assessment.confidence,
            reasoning=assessment.reasoning,
            insights=[f"Risk level: {assessment.risk_level.value}"]
            + [f"Risk factor: {factor}" for factor in assessment.risk_factors]
            + [f"Protective factor: {factor}" for factor in assessment.protective_factors],
            recommendations=_recommendations(assessment),
        )

    def fallback(self, view: ContextSnapshot) -> AgentAnalysis:
        normalized = normalize_text(view.user_message or "")
        trigger = next(
            (phrase for phrase, _ in CRITICAL_PHRASES if phrase in normalized),
            None,
        )

        if trigger:
            assessment = RiskAssessment(
                risk_level=RiskLevel.CRISIS,
                urgency_score=100,
                immediate_intervention_required=True,
                professional_referral_recommended=True,
                confidence=FALLBACK_CRISIS_CONFIDENCE,
                reasoning=f"Fallback assessment: critical phrase '{trigger}' present",
                risk_factors=["assessment_unavailable"],
                matched_phrases=[trigger],
                safety_plan=CRISIS_SAFETY_PLAN,
            )
        else:
            assessment = RiskAssessment(
                risk_level=RiskLevel.MODERATE,
                urgency_score=URGENCY_BY_LEVEL[RiskLevel.MODERATE],
                immediate_intervention_required=False,
                professional_referral_recommended=True,
                confidence=FALLBACK_CRISIS_CONFIDENCE,
                reasoning="Fallback assessment: risk unknown, assuming moderate",
                risk_factors=["assessment_unavailable"],
                safety_plan=CRISIS_SAFETY_PLAN,
            )

        return AgentAnalysis(
            payload=assessment,
            confidence=FALLBACK_CRISIS_CONFIDENCE,
            reasoning=assessment.reasoning,
            insights=["Risk assessment degraded to conservative default"],
            recommendations=[
                "Treat risk as at least moderate until reassessed",
                "Include crisis resources in the response",
            ],
        )

    def influence(self, analysis: AgentAnalysis, success: bool) -> float:
        if analysis.payload.risk_level == RiskLevel.CRISIS:
            return 1.0
        return super().influence(analysis, success)

    def _log_failure(self, view: ContextSnapshot, error_message: str) -> None:
        logger.critical(
            "CRISIS_ASSESSMENT_FAILED",
            extra={
                "message_id": view.message_id,
                "user_id_hash": view.user_id_hash,
                "error": error_message,
                "action": "ASSUMING_MODERATE_RISK",
            }
        )


def _recommendations(assessment: RiskAssessment) -> list:
    recommendations = []
    if assessment.risk_level == RiskLevel.CRISIS:
        recommendations.append("Route directly to emergency response")
    if assessment.professional_referral_recommended:
        recommendations.append("Recommend professional support")
    if assessment.immediate_intervention_required and assessment.risk_level != RiskLevel.CRISIS:
        recommendations.append("Prioritize safety check-in")
    return recommendations
