"""Execution planner: request validation, message classification and
strategy selection.

Decision order (first match wins):
1. Crisis urgency -> crisis-priority (crisis monitor, then advice)
2. Simple message -> emotion analyzer only
3. Emotional message -> emotion + memory in parallel, then advice
4. Otherwise -> full therapeutic analysis with all five agents

Elevated urgency does not change the strategy; classification decides.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from mindweave.shared.models import AgentName, Strategy, UrgencyLevel, UserPreferences
from .config import (
    EMOTIONAL_WORDS,
    SIMPLE_MAX_EMOTIONAL_WORDS,
    SIMPLE_MAX_LENGTH,
    STRATEGY_DESCRIPTIONS,
    THERAPY_MIN_EMOTIONAL_WORDS,
    THERAPY_MIN_LENGTH,
    THERAPY_MIN_THERAPY_WORDS,
    THERAPY_WORDS,
    OrchestrationConfig,
)
from .errors import PlannerError

logger = logging.getLogger(__name__)

CRISIS = AgentName.CRISIS_MONITOR
EMOTION = AgentName.EMOTION_ANALYZER
MEMORY = AgentName.MEMORY_MANAGER
ADVICE = AgentName.THERAPY_ADVISOR
PROGRESS = AgentName.PROGRESS_TRACKER

PARALLEL_GROUPS: Dict[Strategy, Tuple[Tuple[AgentName, ...], ...]] = {
    Strategy.CRISIS_PRIORITY: ((CRISIS,), (ADVICE,)),
    Strategy.SIMPLE: ((EMOTION,),),
    Strategy.EMOTIONAL: ((EMOTION, MEMORY), (ADVICE,)),
    Strategy.THERAPY: ((CRISIS, EMOTION, MEMORY), (ADVICE,), (PROGRESS,)),
}


@dataclass(frozen=True)
class MessageClassification:
    """Word counts and length behind a message's category."""
    category: str
    emotional_word_count: int
    therapy_word_count: int
    length: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "emotional_word_count": self.emotional_word_count,
            "therapy_word_count": self.therapy_word_count,
            "length": self.length,
        }


@dataclass(frozen=True)
class ExecutionPlan:
    """Which agents run, in what grouping, under what budget."""
    strategy: Strategy
    agents: Tuple[AgentName, ...]
    parallel_groups: Tuple[Tuple[AgentName, ...], ...]
    timeout_ms: int
    description: str
    reasoning: str
    classification: Optional[MessageClassification] = None

    def __post_init__(self):
        if self.timeout_ms <= 0:
            raise ValueError(f"Plan timeout must be positive, got {self.timeout_ms}")
        grouped = [agent for group in self.parallel_groups for agent in group]
        if sorted(a.value for a in grouped) != sorted(a.value for a in self.agents):
            raise ValueError("Parallel groups must cover each planned agent exactly once")

    def includes(self, agent: AgentName) -> bool:
        return agent in self.agents

    def group_of(self, agent: AgentName) -> Tuple[AgentName, ...]:
        for group in self.parallel_groups:
            if agent in group:
                return group
        return (agent,)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "agents": [a.value for a in self.agents],
            "parallel_groups": [[a.value for a in g] for g in self.parallel_groups],
            "timeout_ms": self.timeout_ms,
            "description": self.description,
            "reasoning": self.reasoning,
            "classification": self.classification.to_dict() if self.classification else None,
        }


def classify_message(message: str) -> MessageClassification:
    """Classify a message as simple, emotional or therapy."""
    lower = message.lower()
    emotional = sum(1 for word in EMOTIONAL_WORDS if word in lower)
    therapy = sum(1 for word in THERAPY_WORDS if word in lower)
    length = len(message)

    if (
        length < SIMPLE_MAX_LENGTH
        and emotional <= SIMPLE_MAX_EMOTIONAL_WORDS
        and therapy == 0
    ):
        category = "simple"
    elif (
        therapy >= THERAPY_MIN_THERAPY_WORDS
        or length > THERAPY_MIN_LENGTH
        or emotional >= THERAPY_MIN_EMOTIONAL_WORDS
    ):
        category = "therapy"
    else:
        category = "emotional"

    return MessageClassification(
        category=category,
        emotional_word_count=emotional,
        therapy_word_count=therapy,
        length=length,
    )


class ExecutionPlanner:
    """Chooses an ExecutionPlan for each request.

    Attributes:
        config: Timeout profile and validation limits
    """

    def __init__(self, config: Optional[OrchestrationConfig] = None):
        self.config = config or OrchestrationConfig()

    def validate_request(
        self,
        user_message: Any,
        user_id: Any,
        urgency_level: Union[str, UrgencyLevel, None] = "normal",
        preferences: Union[Dict[str, Any], UserPreferences, None] = None,
    ) -> Tuple[UrgencyLevel, UserPreferences]:
        """Reject malformed requests before any workflow starts.

        Returns:
            Parsed (urgency_level, preferences)

        Raises:
            PlannerError: On blank/oversized messages, missing user ids,
                unknown urgency levels or invalid preferences
        """
        if not isinstance(user_message, str) or not user_message.strip():
            raise PlannerError("Message must be a non-empty string")
        if len(user_message) > self.config.max_message_length:
            raise PlannerError(
                f"Message exceeds {self.config.max_message_length} characters"
            )
        if not isinstance(user_id, str) or not user_id.strip():
            raise PlannerError("User id is required")

        if isinstance(urgency_level, UrgencyLevel):
            urgency = urgency_level
        else:
            try:
                urgency = UrgencyLevel(urgency_level or "normal")
            except ValueError as e:
                raise PlannerError(f"Unknown urgency level: {urgency_level!r}") from e

        if isinstance(preferences, UserPreferences):
            prefs = preferences
        else:
            try:
                prefs = UserPreferences.from_dict(preferences)
            except ValueError as e:
                raise PlannerError(f"Invalid preferences: {e}") from e

        return urgency, prefs

    def plan(
        self,
        message: str,
        urgency_level: UrgencyLevel,
        preferences: Optional[UserPreferences] = None,
    ) -> ExecutionPlan:
        """Select the strategy, agents and timeout for a message."""
        classification = classify_message(message)

        if urgency_level == UrgencyLevel.CRISIS:
            strategy = Strategy.CRISIS_PRIORITY
            reasoning = "Crisis urgency routes straight to safety assessment"
        elif classification.category == "simple":
            strategy = Strategy.SIMPLE
            reasoning = (
                f"Short message ({classification.length} chars) with "
                f"{classification.emotional_word_count} emotional words"
            )
        elif classification.category == "emotional":
            strategy = Strategy.EMOTIONAL
            reasoning = (
                f"{classification.emotional_word_count} emotional words; "
                "emotion and memory analysis run in parallel"
            )
        else:
            strategy = Strategy.THERAPY
            reasoning = (
                f"{classification.therapy_word_count} therapy words, "
                f"{classification.emotional_word_count} emotional words, "
                f"{classification.length} chars"
            )

        groups = PARALLEL_GROUPS[strategy]
        plan = ExecutionPlan(
            strategy=strategy,
            agents=tuple(agent for group in groups for agent in group),
            parallel_groups=groups,
            timeout_ms=self.config.timeout_for(strategy),
            description=STRATEGY_DESCRIPTIONS[strategy],
            reasoning=reasoning,
            classification=classification,
        )

        logger.info(
            "EXECUTION_PLAN_SELECTED",
            extra={
                "strategy": strategy.value,
                "agents": [a.value for a in plan.agents],
                "timeout_ms": plan.timeout_ms,
                "category": classification.category,
                "urgency_level": urgency_level.value,
                "fast_mode": bool(preferences and preferences.fast_mode),
            }
        )
        return plan
