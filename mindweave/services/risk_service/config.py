"""Risk Service configuration and phrase tables.

Phrase tables are ordered (phrase, risk-factor tag) pairs. Order matters
for the critical set: the first match is reported as the trigger.
Matching is plain substring matching on normalized lowercase text, so
"suicide" also matches "suicide note".

Updated: 2026-10-01 - consolidated crisis vocabularies into one table
"""
import os
from dataclasses import dataclass
from typing import Dict, Tuple

from mindweave.shared.models import RiskLevel, SafetyPlan


@dataclass(frozen=True)
class RiskScorerConfig:
    """Configuration for risk scoring behavior."""

    # Messages shorter than this lose 0.1 confidence
    short_message_length: int = 20

    # Prior assessments at HIGH or above needed to tag an escalation pattern
    escalation_history_threshold: int = 2

    # Version tracking for audit trail
    phrase_version: str = "2026.10.01"

    @classmethod
    def from_env(cls) -> "RiskScorerConfig":
        """Load configuration from environment variables."""
        return cls(
            short_message_length=int(os.environ.get("RISK_SHORT_MESSAGE_LENGTH", "20")),
            escalation_history_threshold=int(
                os.environ.get("RISK_ESCALATION_HISTORY_THRESHOLD", "2")
            ),
            phrase_version=os.environ.get("RISK_PHRASE_VERSION", "2026.10.01"),
        )


# Base urgency score per risk level, before immediacy/history bonuses
URGENCY_BY_LEVEL: Dict[RiskLevel, int] = {
    RiskLevel.NONE: 0,
    RiskLevel.LOW: 20,
    RiskLevel.MODERATE: 40,
    RiskLevel.HIGH: 70,
    RiskLevel.CRISIS: 100,
}

IMMEDIACY_URGENCY_BONUS = 30
ESCALATION_URGENCY_BONUS = 10

CRITICAL_CONFIDENCE = 0.95
BASE_CONFIDENCE = 0.8
SHORT_MESSAGE_PENALTY = 0.1
SINGLE_CATEGORY_PENALTY = 0.05
UNANALYZABLE_CONFIDENCE = 0.3


# Explicit self-harm/suicide language. Any match forces CRISIS.
CRITICAL_PHRASES: Tuple[Tuple[str, str], ...] = (
    ("kill myself", "suicidal_ideation"),
    ("end my life", "suicidal_ideation"),
    ("want to die", "suicidal_ideation"),
    ("suicide", "suicidal_ideation"),
    ("suicidal", "suicidal_ideation"),
    ("end it all", "suicidal_ideation"),
    ("better off dead", "suicidal_ideation"),
    ("no point in living", "suicidal_ideation"),
    ("not worth living", "suicidal_ideation"),
    ("goodbye cruel world", "suicidal_ideation"),
    ("goodbye forever", "suicidal_ideation"),
    ("won't be here tomorrow", "suicidal_ideation"),
    ("hurt myself", "self_harm"),
    ("harm myself", "self_harm"),
    ("cut myself", "self_harm"),
    ("self harm", "self_harm"),
    ("self-harm", "self_harm"),
    ("overdose", "means_access"),
    ("taking pills", "means_access"),
    ("have weapon", "means_access"),
    ("have a weapon", "means_access"),
    ("specific plan", "plan_indicated"),
)

HIGH_RISK_PHRASES: Tuple[Tuple[str, str], ...] = (
    ("hopeless", "hopelessness"),
    ("no hope", "hopelessness"),
    ("no point", "hopelessness"),
    ("can't go on", "hopelessness"),
    ("cant go on", "hopelessness"),
    ("worthless", "worthlessness"),
    ("burden", "perceived_burden"),
    ("desperate", "acute_distress"),
    ("overwhelming pain", "acute_distress"),
    ("end the pain", "acute_distress"),
    ("no way out", "entrapment"),
    ("give up", "entrapment"),
    ("hurting myself", "self_harm_risk"),
)

MODERATE_RISK_PHRASES: Tuple[Tuple[str, str], ...] = (
    ("depressed", "low_mood"),
    ("anxious", "anxiety"),
    ("alone", "isolation"),
    ("struggling", "struggling"),
    ("difficult time", "struggling"),
    ("hard to cope", "coping_difficulty"),
    ("can't cope", "coping_difficulty"),
    ("breaking down", "coping_difficulty"),
    ("overwhelming", "overwhelm"),
    ("overwhelmed", "overwhelm"),
    ("stressed", "stress"),
)

# Time-pressure language; escalates HIGH to CRISIS and adds urgency
IMMEDIACY_PHRASES: Tuple[str, ...] = (
    "right now",
    "tonight",
    "immediately",
    "can't take it",
    "this minute",
)

# Matched on word boundaries so "hope" does not match "hopeless"
PROTECTIVE_KEYWORDS: Tuple[str, ...] = (
    "getting help",
    "therapy",
    "therapist",
    "counselor",
    "support",
    "family",
    "friends",
    "hope",
    "future",
    "goals",
    "recovery",
    "better tomorrow",
)


CRISIS_SAFETY_PLAN = SafetyPlan(
    immediate_steps=[
        "Contact crisis hotline: 988",
        "Reach out to trusted friend or family member",
        "Move to a safe place away from anything you could use to hurt yourself",
    ],
    coping_strategies=[
        "Deep breathing",
        "Call someone you trust",
        "Grounding: name five things you can see",
    ],
    emergency_contacts=[
        "988 Suicide & Crisis Lifeline: call or text 988",
        "Emergency Services: 911",
    ],
    professional_resources=[
        "Crisis Text Line: Text HOME to 741741",
        "Local emergency room",
    ],
)
