"""Progress Tracker agent.

Looks for progress, setback and goal language in the message and
compares the current emotional valence against the user's history.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from mindweave.shared.models import AgentName, ContextSnapshot
from .base_agent import AgentAnalysis, BaseAgent
from .config import (
    FALLBACK_CONFIDENCE,
    GOAL_PHRASES,
    HISTORY_LIMIT,
    PROGRESS_PHRASES,
    SETBACK_PHRASES,
    TREND_THRESHOLD,
)
from .memory_store import MemoryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressReport:
    """Progress signals for the current message."""
    trend: str
    achievements: List[str] = field(default_factory=list)
    setbacks: List[str] = field(default_factory=list)
    goals_mentioned: List[str] = field(default_factory=list)
    sessions_considered: int = 0
    valence_delta: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trend": self.trend,
            "achievements": list(self.achievements),
            "setbacks": list(self.setbacks),
            "goals_mentioned": list(self.goals_mentioned),
            "sessions_considered": self.sessions_considered,
            "valence_delta": self.valence_delta,
        }


class ProgressTrackerAgent(BaseAgent):
    """Tracks movement toward the user's wellbeing goals."""

    name = AgentName.PROGRESS_TRACKER

    def __init__(self, memory_store: Optional[MemoryStore] = None, **kwargs):
        super().__init__(**kwargs)
        self.memory_store = memory_store

    async def analyze(self, view: ContextSnapshot) -> AgentAnalysis:
        lower = view.user_message.lower()
        achievements = [p for p in PROGRESS_PHRASES if p in lower]
        setbacks = [p for p in SETBACK_PHRASES if p in lower]
        goals = [p for p in GOAL_PHRASES if p in lower]

        history = []
        if self.memory_store is not None:
            history = self.memory_store.recent(view.user_id_hash, HISTORY_LIMIT)
        prior = [e.valence for e in history if e.valence is not None]

        delta = None
        trend = "insufficient_data"
        if prior and view.emotion is not None:
            delta = round(view.emotion.valence - sum(prior) / len(prior), 3)
            if delta > TREND_THRESHOLD:
                trend = "improving"
            elif delta < -TREND_THRESHOLD:
                trend = "declining"
            else:
                trend = "stable"

        report = ProgressReport(
            trend=trend,
            achievements=achievements,
            setbacks=setbacks,
            goals_mentioned=goals,
            sessions_considered=len(history),
            valence_delta=delta,
        )

        insights = [f"Emotional trend: {trend}"]
        if achievements:
            insights.append("User reports progress")
        if setbacks:
            insights.append("User reports a setback")

        recommendations = []
        if achievements:
            recommendations.append("Acknowledge the progress the user describes")
        if setbacks or trend == "declining":
            recommendations.append("Normalize setbacks and revisit coping plan")

        return AgentAnalysis(
            payload=report,
            confidence=0.7 if prior else 0.6,
            reasoning=(
                f"Trend {trend} across {len(history)} prior messages; "
                f"{len(achievements)} progress and {len(setbacks)} setback signals"
            ),
            insights=insights,
            recommendations=recommendations,
        )

    def fallback(self, view: ContextSnapshot) -> AgentAnalysis:
        return AgentAnalysis(
            payload=ProgressReport(trend="insufficient_data"),
            confidence=FALLBACK_CONFIDENCE,
            reasoning="Progress tracking unavailable",
        )
