"""Orchestration Service configuration and planner vocabularies.

Timeout profiles (ADR-008):
- sla: budgets for deployments where agents run in-process and the
  completion service is optional. This is the default.
- proxied: budgets for deployments where every agent call goes through
  a remote completion service and pays its round trip.

The crisis budget is the same in both profiles. A crisis reply must
never wait on a slow completion backend.
"""
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

from mindweave.shared.models import Strategy


class DeploymentProfile(Enum):
    SLA = "sla"
    PROXIED = "proxied"


TIMEOUT_PROFILES: Dict[DeploymentProfile, Dict[Strategy, int]] = {
    DeploymentProfile.SLA: {
        Strategy.CRISIS_PRIORITY: 1800,
        Strategy.SIMPLE: 1300,
        Strategy.EMOTIONAL: 2800,
        Strategy.THERAPY: 7500,
    },
    DeploymentProfile.PROXIED: {
        Strategy.CRISIS_PRIORITY: 1800,
        Strategy.SIMPLE: 8000,
        Strategy.EMOTIONAL: 15000,
        Strategy.THERAPY: 25000,
    },
}

STRATEGY_DESCRIPTIONS: Dict[Strategy, str] = {
    Strategy.CRISIS_PRIORITY: "Crisis priority - immediate safety assessment",
    Strategy.SIMPLE: "Simple emotional state - light analysis",
    Strategy.EMOTIONAL: "Emotional support with parallel analysis",
    Strategy.THERAPY: "Comprehensive therapeutic analysis",
}

ENGINE_VERSION = "1.0.0"


@dataclass(frozen=True)
class OrchestrationConfig:
    """Configuration for the orchestration engine."""

    timeout_profile: DeploymentProfile = DeploymentProfile.SLA

    # Fraction of the plan budget after which pending agents are skipped
    preemption_ratio: float = 0.8

    # Progress tracking only starts while elapsed time is under this fraction
    progress_budget_ratio: float = 0.6

    # TTL handed to the result cache for successful agent results
    cache_ttl_seconds: float = 300.0

    # Longest message accepted by validate_request
    max_message_length: int = 4000

    engine_version: str = ENGINE_VERSION

    def __post_init__(self):
        for name in ("preemption_ratio", "progress_budget_ratio"):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ValueError(f"{name} must be in (0, 1], got {value}")
        if self.progress_budget_ratio > self.preemption_ratio:
            raise ValueError("progress_budget_ratio cannot exceed preemption_ratio")
        if self.max_message_length < 1:
            raise ValueError("max_message_length must be positive")

    def timeout_for(self, strategy: Strategy) -> int:
        return TIMEOUT_PROFILES[self.timeout_profile][strategy]

    @classmethod
    def from_env(cls) -> "OrchestrationConfig":
        """Load configuration from environment variables."""
        return cls(
            timeout_profile=DeploymentProfile(
                os.environ.get("MINDWEAVE_TIMEOUT_PROFILE", "sla").lower()
            ),
            preemption_ratio=float(os.environ.get("MINDWEAVE_PREEMPTION_RATIO", "0.8")),
            cache_ttl_seconds=float(os.environ.get("MINDWEAVE_CACHE_TTL_SECONDS", "300")),
            max_message_length=int(os.environ.get("MINDWEAVE_MAX_MESSAGE_LENGTH", "4000")),
        )


# ==========================================================================
# MESSAGE CLASSIFICATION
# Counts are distinct substring hits, so "feeling" also counts "feel".
# ==========================================================================
EMOTIONAL_WORDS: Tuple[str, ...] = (
    "feel",
    "feeling",
    "emotion",
    "sad",
    "happy",
    "angry",
    "anxious",
    "depressed",
    "stressed",
    "overwhelmed",
    "excited",
    "worried",
)

THERAPY_WORDS: Tuple[str, ...] = (
    "therapy",
    "counseling",
    "trauma",
    "relationship",
    "family",
    "work",
    "goal",
    "progress",
    "coping",
    "strategy",
    "technique",
    "exercise",
)

SIMPLE_MAX_LENGTH = 50
SIMPLE_MAX_EMOTIONAL_WORDS = 1
THERAPY_MIN_LENGTH = 200
THERAPY_MIN_THERAPY_WORDS = 2
THERAPY_MIN_EMOTIONAL_WORDS = 3
