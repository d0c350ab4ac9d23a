"""Agent Service configuration and vocabularies.

Vocabulary lists are deliberately plain substring lists (ADR-001): they
are reviewed by clinicians and must behave identically across releases.
"""
import os
from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, Tuple

from mindweave.shared.models import AgentName


@dataclass(frozen=True)
class AgentConfig:
    """Per-agent execution limits."""

    # Hard bound on one analysis, including any completion call
    timeout_ms: int = 30000

    # Completion parameters used when a completion service is injected
    temperature: float = 0.5
    max_tokens: int = 1000

    # How long successful results stay reusable for identical messages
    cache_ttl_seconds: float = 300.0

    def __post_init__(self):
        if not 0 < self.timeout_ms <= 60000:
            raise ValueError(f"Agent timeout must be 1-60000ms, got {self.timeout_ms}")

    @classmethod
    def for_agent(cls, agent: AgentName) -> "AgentConfig":
        """Defaults for an agent, overridable via AGENT_<NAME>_TIMEOUT_MS."""
        base = DEFAULT_AGENT_CONFIGS[agent]
        env_key = f"AGENT_{agent.name}_TIMEOUT_MS"
        if env_key in os.environ:
            return replace(base, timeout_ms=int(os.environ[env_key]))
        return base


DEFAULT_AGENT_CONFIGS: Dict[AgentName, AgentConfig] = {
    AgentName.EMOTION_ANALYZER: AgentConfig(timeout_ms=30000, temperature=0.3),
    AgentName.MEMORY_MANAGER: AgentConfig(timeout_ms=60000, temperature=0.4),
    AgentName.CRISIS_MONITOR: AgentConfig(timeout_ms=45000, temperature=0.1, max_tokens=2500),
    AgentName.THERAPY_ADVISOR: AgentConfig(timeout_ms=30000, temperature=0.7),
    AgentName.PROGRESS_TRACKER: AgentConfig(timeout_ms=30000, temperature=0.5),
}

# Influence on the final reply when an agent succeeds
BASE_INFLUENCE: Dict[AgentName, float] = {
    AgentName.EMOTION_ANALYZER: 0.8,
    AgentName.MEMORY_MANAGER: 0.7,
    AgentName.CRISIS_MONITOR: 0.6,
    AgentName.THERAPY_ADVISOR: 0.9,
    AgentName.PROGRESS_TRACKER: 0.5,
}
FAILED_INFLUENCE = 0.1
FALLBACK_CONFIDENCE = 0.2


# ==========================================================================
# EMOTION VOCABULARY (ordered: ties resolve to the earlier emotion)
# ==========================================================================
EMOTION_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "anxiety": ("anxious", "worried", "nervous", "scared", "panic", "stress"),
    "sadness": ("sad", "down", "depressed", "hopeless", "empty", "alone"),
    "anger": ("angry", "mad", "frustrated", "irritated", "furious", "rage"),
    "joy": ("happy", "good", "great", "excited", "wonderful", "amazing"),
    "fear": ("afraid", "terrified", "scared", "frightened", "panic"),
}

# (valence, arousal, dominance)
EMOTION_VAD: Dict[str, Tuple[float, float, float]] = {
    "anxiety": (-0.3, 0.7, 0.2),
    "sadness": (-0.6, 0.2, 0.1),
    "anger": (-0.4, 0.8, 0.7),
    "joy": (0.7, 0.6, 0.6),
    "fear": (-0.5, 0.8, 0.1),
    "neutral": (0.0, 0.3, 0.5),
}

INTENSITY_PER_MATCH = 0.3


# ==========================================================================
# MEMORY VOCABULARY
# ==========================================================================
THEME_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "sleep": ("sleep", "insomnia", "tired", "exhausted", "nightmare"),
    "work": ("work", "job", "boss", "deadline", "coworker"),
    "school": ("school", "exam", "class", "homework", "grades"),
    "family": ("family", "mom", "dad", "parents", "sister", "brother"),
    "relationships": ("boyfriend", "girlfriend", "partner", "relationship", "breakup"),
    "loneliness": ("alone", "lonely", "isolated", "no one"),
    "health": ("sick", "pain", "doctor", "illness"),
}

STOPWORDS: FrozenSet[str] = frozenset({
    "about", "after", "again", "also", "been", "before", "being", "could",
    "does", "doing", "down", "even", "from", "have", "having", "just",
    "like", "more", "much", "really", "some", "than", "that", "them",
    "then", "there", "these", "they", "this", "very", "want", "were",
    "what", "when", "which", "while", "will", "with", "would", "your",
    "feel", "feeling", "today", "know", "think", "things",
})

RELEVANT_MEMORY_LIMIT = 3
HISTORY_LIMIT = 20


# ==========================================================================
# PROGRESS VOCABULARY
# ==========================================================================
PROGRESS_PHRASES: Tuple[str, ...] = (
    "making progress",
    "getting better",
    "feeling better",
    "been working on",
    "tried the",
    "practiced",
    "improving",
    "it helped",
)

SETBACK_PHRASES: Tuple[str, ...] = (
    "worse",
    "relapse",
    "slipped",
    "back to square one",
    "struggling again",
    "setback",
)

GOAL_PHRASES: Tuple[str, ...] = (
    "my goal",
    "goals",
    "plan to",
    "trying to",
    "want to get better",
)

# Valence change vs. history needed to call a trend
TREND_THRESHOLD = 0.15
