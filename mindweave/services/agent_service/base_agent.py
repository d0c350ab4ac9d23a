"""Uniform agent contract with mandatory fail-safe fallback.

Per ADR-007: agents never raise to the orchestrator. Any error or
timeout inside ``analyze`` is converted into a ``success=False`` result
built from the agent's deterministic ``fallback``, which must lean
toward caution (the crisis agent never falls back to "no risk").
"""
import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional

from mindweave.shared.cache import ResultCache
from mindweave.shared.models import AgentExecutionResult, AgentName, ContextSnapshot
from mindweave.services.completion_service import BaseCompletionService
from .config import BASE_INFLUENCE, FAILED_INFLUENCE, AgentConfig

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class AgentAnalysisError(Exception):
    """Raised inside ``analyze`` when output cannot be trusted."""
    pass


@dataclass(frozen=True)
class AgentAnalysis:
    """What an agent's analysis (or fallback) produced."""
    payload: Any
    confidence: float
    reasoning: str
    insights: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


class BaseAgent(ABC):
    """Base class for the five analysis agents.

    Subclasses implement ``analyze`` (may await the completion service)
    and ``fallback`` (must be synchronous, deterministic and unable to
    fail for any snapshot).

    Attributes:
        name: Which agent this is
        config: Timeout and completion parameters
        completion: Optional text-completion collaborator
        cache: Optional best-effort result cache
    """

    name: AgentName

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        completion: Optional[BaseCompletionService] = None,
        cache: Optional[ResultCache] = None,
    ):
        self.config = config or AgentConfig.for_agent(self.name)
        self.completion = completion
        self.cache = cache

    @property
    def display_name(self) -> str:
        return self.name.display_name

    async def execute(self, view: ContextSnapshot, task: str) -> AgentExecutionResult:
        """Run the agent against a snapshot. Never raises.

        Args:
            view: Read-only request state
            task: Human-readable task assigned by the workflow

        Returns:
            AgentExecutionResult (success=False on any internal failure)
        """
        start_ms = view.elapsed_ms()

        cache_key = self._cache_key(view)
        cached = self._cache_get(cache_key)
        if cached is not None:
            logger.info(
                "AGENT_CACHE_HIT",
                extra={"agent": self.name.value, "user_id_hash": view.user_id_hash}
            )
            return replace(
                cached,
                assigned_task=task,
                start_time_ms=start_ms,
                end_time_ms=max(view.elapsed_ms(), start_ms),
                from_cache=True,
            )

        error_message = None
        try:
            analysis = await asyncio.wait_for(
                self.analyze(view),
                timeout=self.config.timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            error_message = f"Agent timed out after {self.config.timeout_ms}ms"
        except Exception as e:
            error_message = f"{type(e).__name__}: {e}"

        success = error_message is None
        if not success:
            analysis = self.fallback(view)
            self._log_failure(view, error_message)

        result = AgentExecutionResult(
            agent_name=self.name,
            assigned_task=task,
            start_time_ms=start_ms,
            end_time_ms=max(view.elapsed_ms(), start_ms),
            result=analysis.payload,
            confidence=analysis.confidence,
            success=success,
            reasoning=analysis.reasoning,
            influence_on_final_response=self.influence(analysis, success),
            contributed_insights=list(analysis.insights),
            recommendations=list(analysis.recommendations),
            error_message=error_message,
        )

        if success:
            self._cache_set(cache_key, result)
        return result

    @abstractmethod
    async def analyze(self, view: ContextSnapshot) -> AgentAnalysis:
        """Produce the agent's analysis. May raise; execute() catches."""
        pass

    @abstractmethod
    def fallback(self, view: ContextSnapshot) -> AgentAnalysis:
        """Conservative payload used when analyze() fails."""
        pass

    def influence(self, analysis: AgentAnalysis, success: bool) -> float:
        """Weight of this result in the final confidence blend."""
        return BASE_INFLUENCE[self.name] if success else FAILED_INFLUENCE

    async def _complete_json(self, prompt: str, system_prompt: str) -> dict:
        """Ask the completion service for a JSON object.

        Raises:
            AgentAnalysisError: If the reply holds no parseable object
        """
        text = await self.completion.complete(
            prompt,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            timeout_ms=self.config.timeout_ms,
            system_prompt=system_prompt,
        )
        match = _JSON_OBJECT.search(text)
        if not match:
            raise AgentAnalysisError("Completion did not contain a JSON object")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise AgentAnalysisError(f"Completion JSON invalid: {e}") from e
        if not isinstance(data, dict):
            raise AgentAnalysisError("Completion JSON is not an object")
        return data

    def _cache_key(self, view: ContextSnapshot) -> str:
        return f"agent:{self.name.value}:{view.user_id_hash}:{view.message_fingerprint}"

    def _cache_get(self, key: str) -> Optional[AgentExecutionResult]:
        if self.cache is None:
            return None
        try:
            value = self.cache.get(key)
        except Exception as e:
            logger.warning(
                "AGENT_CACHE_READ_FAILED",
                extra={"agent": self.name.value, "error": str(e)}
            )
            return None
        return value if isinstance(value, AgentExecutionResult) else None

    def _cache_set(self, key: str, result: AgentExecutionResult) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(key, result, ttl_hint=self.config.cache_ttl_seconds)
        except Exception as e:
            logger.warning(
                "AGENT_CACHE_WRITE_FAILED",
                extra={"agent": self.name.value, "error": str(e)}
            )

    def _log_failure(self, view: ContextSnapshot, error_message: str) -> None:
        logger.warning(
            "AGENT_FAILED",
            extra={
                "agent": self.name.value,
                "message_id": view.message_id,
                "user_id_hash": view.user_id_hash,
                "error": error_message,
                "action": "FALLBACK_RESULT",
            }
        )
