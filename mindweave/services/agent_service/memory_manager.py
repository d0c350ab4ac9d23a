"""Memory Manager agent.

Retrieves the user's recent history from the MemoryStore, ranks it by
word overlap with the current message and surfaces recurring themes.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from mindweave.shared.models import AgentName, ContextSnapshot
from .base_agent import AgentAnalysis, BaseAgent
from .config import (
    FALLBACK_CONFIDENCE,
    HISTORY_LIMIT,
    RELEVANT_MEMORY_LIMIT,
    STOPWORDS,
    THEME_KEYWORDS,
)
from .memory_store import MemoryEntry, MemoryStore

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[a-z']+")


@dataclass(frozen=True)
class MemoryRetrieval:
    """History relevant to the current message."""
    relevant_memories: List[MemoryEntry] = field(default_factory=list)
    recurring_themes: List[str] = field(default_factory=list)
    current_themes: List[str] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)
    conversation_count: int = 0

    @property
    def continuity_note(self) -> Optional[str]:
        """Sentence acknowledging a theme the user keeps returning to."""
        ongoing = [t for t in self.current_themes if t in self.recurring_themes]
        if not ongoing:
            return None
        return f"It sounds like {ongoing[0]} keeps coming up for you."

    def to_dict(self) -> Dict[str, Any]:
        return {
            "relevant_memories": [m.to_dict() for m in self.relevant_memories],
            "recurring_themes": list(self.recurring_themes),
            "current_themes": list(self.current_themes),
            "patterns": list(self.patterns),
            "conversation_count": self.conversation_count,
            "continuity_note": self.continuity_note,
        }


def content_words(text: str) -> Set[str]:
    return {
        word for word in _WORD.findall(text.lower())
        if len(word) >= 4 and word not in STOPWORDS
    }


def themes_in(text: str) -> List[str]:
    lower = text.lower()
    return [
        theme for theme, keywords in THEME_KEYWORDS.items()
        if any(kw in lower for kw in keywords)
    ]


class MemoryManagerAgent(BaseAgent):
    """Finds relevant past conversation context for the current message."""

    name = AgentName.MEMORY_MANAGER

    def __init__(self, memory_store: Optional[MemoryStore] = None, **kwargs):
        super().__init__(**kwargs)
        self.memory_store = memory_store

    async def analyze(self, view: ContextSnapshot) -> AgentAnalysis:
        history: List[MemoryEntry] = []
        if self.memory_store is not None:
            history = self.memory_store.recent(view.user_id_hash, HISTORY_LIMIT)

        current_themes = themes_in(view.user_message)
        if not history:
            return AgentAnalysis(
                payload=MemoryRetrieval(current_themes=current_themes),
                confidence=0.5,
                reasoning="No conversation history available",
                insights=["First conversation on record"],
            )

        relevant = self._rank(view.user_message, history)
        recurring = self._recurring_themes(history)
        patterns = [f"Recurring theme: {theme}" for theme in recurring]

        valences = [e.valence for e in history if e.valence is not None]
        if "sleep" in recurring and valences and sum(valences) / len(valences) < 0:
            patterns.append("Sleep difficulties alongside low mood")

        retrieval = MemoryRetrieval(
            relevant_memories=relevant,
            recurring_themes=recurring,
            current_themes=current_themes,
            patterns=patterns,
            conversation_count=len(history),
        )

        insights = list(patterns)
        if retrieval.continuity_note:
            insights.append("Current message continues an ongoing theme")

        return AgentAnalysis(
            payload=retrieval,
            confidence=0.7,
            reasoning=(
                f"Found {len(relevant)} relevant memories across "
                f"{len(history)} prior messages"
            ),
            insights=insights,
            recommendations=(
                ["Acknowledge continuity with earlier conversations"]
                if retrieval.continuity_note else []
            ),
        )

    def fallback(self, view: ContextSnapshot) -> AgentAnalysis:
        return AgentAnalysis(
            payload=MemoryRetrieval(),
            confidence=FALLBACK_CONFIDENCE,
            reasoning="Memory retrieval unavailable; responding without history",
            recommendations=["Do not reference earlier conversations"],
        )

    def _rank(self, message: str, history: List[MemoryEntry]) -> List[MemoryEntry]:
        words = content_words(message)
        scored = []
        for position, entry in enumerate(history):
            overlap = len(words & content_words(entry.content))
            if overlap:
                scored.append((overlap, position, entry))
        # Highest overlap first, then most recent
        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [entry for _, _, entry in scored[:RELEVANT_MEMORY_LIMIT]]

    def _recurring_themes(self, history: List[MemoryEntry]) -> List[str]:
        counts: Dict[str, int] = {}
        for entry in history:
            for theme in themes_in(entry.content):
                counts[theme] = counts.get(theme, 0) + 1
        return [theme for theme in THEME_KEYWORDS if counts.get(theme, 0) >= 2]
