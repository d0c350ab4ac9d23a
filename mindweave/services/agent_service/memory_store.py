"""Conversation memory collaborator.

Persistent history lives outside this engine. MemoryStore is the
interface agents read through; InMemoryMemoryStore is the development
implementation (not durable, lost on restart).

Entries are keyed by the hashed user id (ADR-003).
"""
import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, List, Optional

from mindweave.shared.models import RiskLevel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemoryEntry:
    """One remembered user message with the analysis it received."""
    content: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    primary_emotion: Optional[str] = None
    valence: Optional[float] = None
    risk_level: Optional[RiskLevel] = None

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "created_at": self.created_at.isoformat() + "Z",
            "primary_emotion": self.primary_emotion,
            "valence": self.valence,
            "risk_level": self.risk_level.value if self.risk_level else None,
        }


class MemoryStore(ABC):
    """Read/write access to a user's recent conversation history."""

    @abstractmethod
    def recent(self, user_id_hash: str, limit: int) -> List[MemoryEntry]:
        """Return up to ``limit`` most recent entries, oldest first."""
        pass

    @abstractmethod
    def add(self, user_id_hash: str, entry: MemoryEntry) -> None:
        pass


class InMemoryMemoryStore(MemoryStore):
    """Bounded per-user history held in process memory.

    At most ``max_users`` histories are kept; past that the least recently
    used user is forgotten.
    """

    def __init__(self, max_entries_per_user: int = 50, max_users: int = 10000):
        if max_users < 1:
            raise ValueError("max_users must be at least 1")
        self.max_entries_per_user = max_entries_per_user
        self.max_users = max_users
        self._history: "OrderedDict[str, Deque[MemoryEntry]]" = OrderedDict()
        self._lock = threading.Lock()

    def recent(self, user_id_hash: str, limit: int) -> List[MemoryEntry]:
        with self._lock:
            history = self._history.get(user_id_hash)
            if history is None:
                return []
            self._history.move_to_end(user_id_hash)
            entries = list(history)
        return entries[-limit:] if limit > 0 else []

    def add(self, user_id_hash: str, entry: MemoryEntry) -> None:
        with self._lock:
            history = self._history.get(user_id_hash)
            if history is None:
                if len(self._history) >= self.max_users:
                    self._history.popitem(last=False)
                    logger.debug("MEMORY_USER_EVICTED", extra={"reason": "capacity"})
                history = self._history[user_id_hash] = deque(maxlen=self.max_entries_per_user)
            else:
                self._history.move_to_end(user_id_hash)
            history.append(entry)
        logger.debug(
            "MEMORY_ENTRY_ADDED",
            extra={"user_id_hash": user_id_hash, "history_size": len(history)}
        )
