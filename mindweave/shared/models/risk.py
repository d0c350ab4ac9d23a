"""Risk level and crisis assessment domain models.

This file defines the core enums and data structures for risk assessment.
Following ADR-001: Deterministic guardrails with explicit risk levels.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class RiskLevel(Enum):
    """Risk classification levels produced by the RiskScorer.

    Ordered by severity so callers can compare with ``severity``.
    """
    NONE = "none"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRISIS = "crisis"       # Authoritative: always routes to emergency synthesis

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def at_least(self, other: "RiskLevel") -> bool:
        return self.severity >= other.severity


_SEVERITY = {
    RiskLevel.NONE: 0,
    RiskLevel.LOW: 1,
    RiskLevel.MODERATE: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRISIS: 4,
}


class UrgencyLevel(Enum):
    """Caller-supplied (or screened) request priority."""
    NORMAL = "normal"
    ELEVATED = "elevated"
    CRISIS = "crisis"


@dataclass(frozen=True)
class SafetyPlan:
    """Fixed bundle of crisis-resource guidance.

    Contents are deterministic - the same plan is emitted for every
    crisis-level assessment so it can be reviewed clinically.
    """
    immediate_steps: List[str] = field(default_factory=list)
    coping_strategies: List[str] = field(default_factory=list)
    emergency_contacts: List[str] = field(default_factory=list)
    professional_resources: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "immediate_steps": list(self.immediate_steps),
            "coping_strategies": list(self.coping_strategies),
            "emergency_contacts": list(self.emergency_contacts),
            "professional_resources": list(self.professional_resources),
        }


@dataclass(frozen=True)
class RiskAssessment:
    """Result of scoring one message for crisis/self-harm risk.

    Derived per request and never stored beyond it. Immutable - downstream
    steps may read it but cannot downgrade it.
    """
    risk_level: RiskLevel
    urgency_score: int
    immediate_intervention_required: bool
    professional_referral_recommended: bool
    confidence: float
    reasoning: str
    risk_factors: List[str] = field(default_factory=list)
    protective_factors: List[str] = field(default_factory=list)
    matched_phrases: List[str] = field(default_factory=list)
    safety_plan: Optional[SafetyPlan] = None

    def __post_init__(self):
        if not 0 <= self.urgency_score <= 100:
            raise ValueError(f"Urgency score must be 0-100, got {self.urgency_score}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be 0.0-1.0, got {self.confidence}")
        if self.risk_level == RiskLevel.CRISIS and not self.immediate_intervention_required:
            raise ValueError("Crisis-level assessments require immediate intervention")

    @property
    def emergency_contact_triggered(self) -> bool:
        return (
            self.risk_level == RiskLevel.CRISIS
            and self.immediate_intervention_required
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "risk_level": self.risk_level.value,
            "urgency_score": self.urgency_score,
            "immediate_intervention_required": self.immediate_intervention_required,
            "professional_referral_recommended": self.professional_referral_recommended,
            "emergency_contact_triggered": self.emergency_contact_triggered,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "risk_factors": list(self.risk_factors),
            "protective_factors": list(self.protective_factors),
            "matched_phrases": list(self.matched_phrases),
            "safety_plan": self.safety_plan.to_dict() if self.safety_plan else None,
        }
