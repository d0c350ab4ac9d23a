"""Shared fixtures for orchestration tests."""
import asyncio
import time
from dataclasses import replace

import pytest

from mindweave.shared.models import UrgencyLevel, UserPreferences
from mindweave.shared.utils import configure_pii_salt, hash_pii
from mindweave.services.agent_service import BaseAgent, InMemoryMemoryStore
from mindweave.services.orchestration_service import (
    ExecutionPlanner,
    OrchestrationContext,
    build_agents,
)


@pytest.fixture(autouse=True)
def setup_pii_salt():
    """Configure PII salt before each test."""
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


class ScriptedAgent(BaseAgent):
    """Wraps a real agent, optionally slowing it down or making it fail."""

    def __init__(self, inner: BaseAgent, delay_s: float = 0.0, error: Exception = None):
        self.name = inner.name
        super().__init__(config=inner.config)
        self.inner = inner
        self.delay_s = delay_s
        self.error = error
        self.calls = 0

    async def analyze(self, view):
        self.calls += 1
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return await self.inner.analyze(view)

    def fallback(self, view):
        return self.inner.fallback(view)

    def influence(self, analysis, success):
        return self.inner.influence(analysis, success)


@pytest.fixture
def memory_store():
    return InMemoryMemoryStore()


@pytest.fixture
def make_agents(memory_store):
    """Default agents wrapped in ScriptedAgent.

    ``delays`` and ``errors`` are keyed by AgentName.
    """
    def _make(delays=None, errors=None):
        delays = delays or {}
        errors = errors or {}
        agents = build_agents(memory_store=memory_store)
        return {
            name: ScriptedAgent(agent, delays.get(name, 0.0), errors.get(name))
            for name, agent in agents.items()
        }
    return _make


@pytest.fixture
def make_context():
    """OrchestrationContext planned the way the engine would plan it."""
    def _make(
        message="hi",
        urgency=UrgencyLevel.NORMAL,
        preferences=None,
        timeout_ms=None,
        started_ago_ms=0.0,
    ):
        preferences = preferences or UserPreferences()
        plan = ExecutionPlanner().plan(message, urgency, preferences)
        if timeout_ms is not None:
            plan = replace(plan, timeout_ms=timeout_ms)
        return OrchestrationContext(
            user_id="user_123",
            user_id_hash=hash_pii("user_123"),
            message_id="msg_001",
            conversation_id="conv_001",
            user_message=message,
            urgency_level=urgency,
            plan=plan,
            preferences=preferences,
            started_at=time.monotonic() - started_ago_ms / 1000,
        )
    return _make
