"""Read-only views handed to workflow nodes and agents.

Nodes never see the mutable OrchestrationContext. They receive a
ContextSnapshot taken by the driver and answer with a delta.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from mindweave.shared.utils import fingerprint_message
from .orchestration import AgentExecutionResult, AgentName
from .risk import UrgencyLevel


class TransparencyLevel(Enum):
    MINIMAL = "minimal"
    STANDARD = "standard"
    DETAILED = "detailed"


class ProcessingSpeed(Enum):
    FAST = "fast"
    THOROUGH = "thorough"


class CommunicationStyle(Enum):
    PROFESSIONAL_WARM = "professional_warm"
    CLINICAL_PRECISE = "clinical_precise"
    CASUAL_SUPPORTIVE = "casual_supportive"


@dataclass(frozen=True)
class UserPreferences:
    """Per-request presentation and speed preferences."""
    transparency_level: TransparencyLevel = TransparencyLevel.STANDARD
    agent_visibility: bool = True
    processing_speed: Optional[ProcessingSpeed] = None
    communication_style: CommunicationStyle = CommunicationStyle.PROFESSIONAL_WARM

    @property
    def fast_mode(self) -> bool:
        return self.processing_speed == ProcessingSpeed.FAST

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "UserPreferences":
        """Parse caller-supplied preferences.

        Accepts snake_case or camelCase keys.

        Raises:
            ValueError: On unknown enum values or a non-dict payload
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("Preferences must be an object")

        def pick(snake: str, camel: str) -> Any:
            return data.get(snake, data.get(camel))

        transparency = pick("transparency_level", "transparencyLevel")
        visibility = pick("agent_visibility", "agentVisibility")
        speed = pick("processing_speed", "processingSpeed")
        style = pick("communication_style", "communicationStyle")

        if visibility is not None and not isinstance(visibility, bool):
            raise ValueError("agent_visibility must be a boolean")

        return cls(
            transparency_level=(
                TransparencyLevel(transparency) if transparency
                else TransparencyLevel.STANDARD
            ),
            agent_visibility=True if visibility is None else visibility,
            processing_speed=ProcessingSpeed(speed) if speed else None,
            communication_style=(
                CommunicationStyle(style) if style
                else CommunicationStyle.PROFESSIONAL_WARM
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transparency_level": self.transparency_level.value,
            "agent_visibility": self.agent_visibility,
            "processing_speed": self.processing_speed.value if self.processing_speed else None,
            "communication_style": self.communication_style.value,
        }


@dataclass(frozen=True)
class ContextSnapshot:
    """Immutable view of one request's state at a point in the workflow.

    This is the AgentInputView: everything an agent may read. Result
    fields are None until the owning agent has succeeded (the crisis
    field may also hold a conservative fallback assessment).
    """
    user_id_hash: str
    message_id: str
    conversation_id: str
    user_message: str
    urgency_level: UrgencyLevel
    started_at: float
    preferences: UserPreferences = field(default_factory=UserPreferences)
    emotion: Any = None
    memory: Any = None
    crisis: Any = None
    advice: Any = None
    progress: Any = None
    agent_results: Tuple[AgentExecutionResult, ...] = ()

    def elapsed_ms(self) -> float:
        """Milliseconds since the request started (monotonic clock)."""
        return (time.monotonic() - self.started_at) * 1000

    @property
    def message_fingerprint(self) -> str:
        return fingerprint_message(self.user_message)

    def result_for(self, agent: AgentName) -> Optional[AgentExecutionResult]:
        for result in self.agent_results:
            if result.agent_name == agent:
                return result
        return None

    @property
    def successful_results(self) -> Tuple[AgentExecutionResult, ...]:
        return tuple(r for r in self.agent_results if r.success)
