"""Text-completion collaborator interface and implementations.

Agents treat prose generation as an opaque, bounded-time call:
``complete(prompt, temperature, max_tokens, timeout_ms) -> text``.
Every failure surfaces as CompletionError so the calling agent can drop
to its deterministic fallback path.
"""

import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class CompletionProvider(Enum):
    """Supported completion providers."""
    HUGGINGFACE = "huggingface"
    OPENAI = "openai"


class CompletionError(Exception):
    """Raised when a completion call fails, times out or returns nothing."""


@dataclass(frozen=True)
class CompletionConfig:
    """Configuration for completion inference."""
    provider: CompletionProvider
    model_name: str
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    top_p: float = 0.9
    max_prompt_length: int = 10000

    @classmethod
    def from_env(cls) -> Optional["CompletionConfig"]:
        """Create configuration from environment variables.

        Returns:
            CompletionConfig, or None when no provider is configured
            (agents then run on their deterministic paths only)
        """
        provider = os.environ.get("COMPLETION_PROVIDER", "").strip().lower()
        if not provider:
            return None
        return cls(
            provider=CompletionProvider(provider),
            model_name=os.environ.get("COMPLETION_MODEL", "gpt-4o-mini"),
            endpoint=os.environ.get("COMPLETION_ENDPOINT"),
            api_key=os.environ.get("COMPLETION_API_KEY"),
        )


class BaseCompletionService(ABC):
    """Abstract base class for completion services."""

    def __init__(self, config: CompletionConfig):
        self.config = config
        logger.info(
            "COMPLETION_SERVICE_INITIALIZED",
            extra={
                "provider": config.provider.value,
                "model": config.model_name,
            }
        )

    async def complete(
        self,
        prompt: str,
        temperature: float,
        max_tokens: int,
        timeout_ms: int,
        system_prompt: Optional[str] = None,
    ) -> str:
        """Generate a completion for the prompt.

        Args:
            prompt: User-side prompt text
            temperature: Sampling temperature
            max_tokens: Generation budget
            timeout_ms: Hard bound on the remote call
            system_prompt: Optional system context

        Returns:
            Generated text, stripped

        Raises:
            CompletionError: On invalid prompt, transport failure,
                timeout or empty output
        """
        if not self.validate_prompt(prompt):
            raise CompletionError("Invalid prompt")

        start_time = time.time()
        try:
            text = await self._generate(
                prompt, temperature, max_tokens, timeout_ms, system_prompt
            )
        except CompletionError:
            raise
        except Exception as e:
            logger.error(
                "COMPLETION_FAILED",
                extra={
                    "provider": self.config.provider.value,
                    "model": self.config.model_name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            raise CompletionError(str(e) or type(e).__name__) from e

        if not text or not text.strip():
            raise CompletionError("Empty completion")

        logger.info(
            "COMPLETION_SUCCEEDED",
            extra={
                "provider": self.config.provider.value,
                "model": self.config.model_name,
                "latency_ms": round((time.time() - start_time) * 1000, 2),
            }
        )
        return text.strip()

    @abstractmethod
    async def _generate(
        self,
        prompt: str,
        temperature: float,
        max_tokens: int,
        timeout_ms: int,
        system_prompt: Optional[str],
    ) -> str:
        """Provider-specific call."""

    def validate_prompt(self, prompt: str) -> bool:
        """Validate prompt before sending it out."""
        if not prompt or not prompt.strip():
            logger.warning("COMPLETION_PROMPT_EMPTY")
            return False

        if len(prompt) > self.config.max_prompt_length:
            logger.warning(
                "COMPLETION_PROMPT_TOO_LONG",
                extra={"length": len(prompt)}
            )
            return False

        return True


class HuggingFaceCompletionService(BaseCompletionService):
    """HuggingFace Inference endpoint implementation."""

    def __init__(self, config: CompletionConfig):
        super().__init__(config)

        if not config.endpoint:
            raise ValueError("HuggingFace endpoint required")

        self.endpoint = config.endpoint
        self.headers = {}

        if config.api_key:
            self.headers["Authorization"] = f"Bearer {config.api_key}"

    async def _generate(
        self,
        prompt: str,
        temperature: float,
        max_tokens: int,
        timeout_ms: int,
        system_prompt: Optional[str],
    ) -> str:
        import aiohttp

        full_prompt = prompt
        if system_prompt:
            full_prompt = f"{system_prompt}\n\n{prompt}"

        payload = {
            "inputs": full_prompt,
            "parameters": {
                "max_new_tokens": max_tokens,
                "temperature": temperature,
                "top_p": self.config.top_p,
                "return_full_text": False,
            }
        }

        async with aiohttp.ClientSession() as session:
            async with session.post(
                self.endpoint,
                headers=self.headers,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=timeout_ms / 1000),
            ) as response:
                response.raise_for_status()
                result = await response.json()

        if isinstance(result, list) and len(result) > 0:
            return result[0].get("generated_text", "")
        return result.get("generated_text", "")


class OpenAICompletionService(BaseCompletionService):
    """OpenAI chat-completions implementation."""

    def __init__(self, config: CompletionConfig):
        super().__init__(config)

        if not config.api_key:
            raise ValueError("OpenAI API key required")

        try:
            import openai
            self.client = openai.AsyncOpenAI(api_key=config.api_key)
        except ImportError:
            raise ImportError("openai package required: pip install openai")

    async def _generate(
        self,
        prompt: str,
        temperature: float,
        max_tokens: int,
        timeout_ms: int,
        system_prompt: Optional[str],
    ) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        response = await self.client.chat.completions.create(
            model=self.config.model_name,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            top_p=self.config.top_p,
            timeout=timeout_ms / 1000,
        )
        return response.choices[0].message.content or ""


def create_completion_service(config: CompletionConfig) -> BaseCompletionService:
    """Factory function to create a completion service.

    Raises:
        ValueError: If provider not supported
    """
    if config.provider == CompletionProvider.HUGGINGFACE:
        return HuggingFaceCompletionService(config)
    elif config.provider == CompletionProvider.OPENAI:
        return OpenAICompletionService(config)
    else:
        raise ValueError(f"Unsupported provider: {config.provider}")
