"""Risk Service: deterministic crisis and self-harm risk scoring.

ADR-001: Keyword/phrase scoring with explicit, auditable rules. The scorer
is a pure function of the message (and optional prior risk levels), so the
orchestrator can run it before planning and again inside fallbacks.

Components:
- scorer.py: RiskScorer producing a RiskAssessment
- config.py: Phrase tables, urgency constants and the fixed safety plan

Usage:
    from mindweave.services.risk_service import RiskScorer
    assessment = RiskScorer().score("I can't go on like this")
"""

from .scorer import RiskScorer
from .config import (
    RiskScorerConfig,
    CRITICAL_PHRASES,
    HIGH_RISK_PHRASES,
    MODERATE_RISK_PHRASES,
    IMMEDIACY_PHRASES,
    PROTECTIVE_KEYWORDS,
    CRISIS_SAFETY_PLAN,
)

__all__ = [
    "RiskScorer",
    "RiskScorerConfig",
    "CRITICAL_PHRASES",
    "HIGH_RISK_PHRASES",
    "MODERATE_RISK_PHRASES",
    "IMMEDIACY_PHRASES",
    "PROTECTIVE_KEYWORDS",
    "CRISIS_SAFETY_PLAN",
]
