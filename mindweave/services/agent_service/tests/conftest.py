"""Shared fixtures for agent tests."""
import time

import pytest

from mindweave.shared.models import ContextSnapshot, UrgencyLevel, UserPreferences
from mindweave.shared.utils import configure_pii_salt


@pytest.fixture(autouse=True)
def setup_pii_salt():
    """Configure PII salt before each test."""
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


@pytest.fixture
def make_snapshot():
    """Build a ContextSnapshot for a message, overriding any field."""
    def _make(message="I feel okay today", **overrides):
        fields = dict(
            user_id_hash="user_hash_001",
            message_id="msg_001",
            conversation_id="conv_001",
            user_message=message,
            urgency_level=UrgencyLevel.NORMAL,
            started_at=time.monotonic(),
            preferences=UserPreferences(),
        )
        fields.update(overrides)
        return ContextSnapshot(**fields)
    return _make
