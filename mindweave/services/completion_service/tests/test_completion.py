"""Tests for the completion collaborator clients."""
import os
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from mindweave.services.completion_service import (
    BaseCompletionService,
    CompletionConfig,
    CompletionError,
    CompletionProvider,
    HuggingFaceCompletionService,
    OpenAICompletionService,
    create_completion_service,
)


class StaticCompletionService(BaseCompletionService):
    """Returns a canned reply or raises a canned error."""

    def __init__(self, reply="ok", error=None):
        super().__init__(CompletionConfig(
            provider=CompletionProvider.OPENAI,
            model_name="static",
            max_prompt_length=100,
        ))
        self.reply = reply
        self.error = error

    async def _generate(self, prompt, temperature, max_tokens, timeout_ms, system_prompt):
        if self.error:
            raise self.error
        return self.reply


class TestCompletionConfig:
    """Tests for environment loading."""

    def test_no_provider_means_deterministic_mode(self):
        with patch.dict(os.environ, {}, clear=True):
            assert CompletionConfig.from_env() is None

    def test_provider_from_env(self):
        env = {
            "COMPLETION_PROVIDER": "OpenAI",
            "COMPLETION_MODEL": "gpt-test",
            "COMPLETION_API_KEY": "sk-test",
        }
        with patch.dict(os.environ, env, clear=True):
            config = CompletionConfig.from_env()

        assert config.provider == CompletionProvider.OPENAI
        assert config.model_name == "gpt-test"
        assert config.api_key == "sk-test"


class TestComplete:
    """Tests for the shared complete() wrapper."""

    @pytest.mark.asyncio
    async def test_returns_stripped_text(self):
        service = StaticCompletionService(reply="  hello there \n")
        assert await service.complete("prompt", 0.3, 50, 1000) == "hello there"

    @pytest.mark.asyncio
    async def test_transport_error_becomes_completion_error(self):
        service = StaticCompletionService(error=ConnectionError("refused"))
        with pytest.raises(CompletionError, match="refused"):
            await service.complete("prompt", 0.3, 50, 1000)

    @pytest.mark.asyncio
    async def test_empty_output_is_an_error(self):
        service = StaticCompletionService(reply="   ")
        with pytest.raises(CompletionError):
            await service.complete("prompt", 0.3, 50, 1000)

    @pytest.mark.asyncio
    async def test_invalid_prompt_rejected(self):
        service = StaticCompletionService()
        with pytest.raises(CompletionError):
            await service.complete("   ", 0.3, 50, 1000)
        with pytest.raises(CompletionError):
            await service.complete("x" * 101, 0.3, 50, 1000)


class TestFactory:
    """Tests for create_completion_service."""

    def test_huggingface_requires_endpoint(self):
        config = CompletionConfig(provider=CompletionProvider.HUGGINGFACE, model_name="m")
        with pytest.raises(ValueError):
            create_completion_service(config)

    def test_huggingface_sets_auth_header(self):
        config = CompletionConfig(
            provider=CompletionProvider.HUGGINGFACE,
            model_name="m",
            endpoint="https://example.invalid/model",
            api_key="hf_token",
        )
        service = create_completion_service(config)

        assert isinstance(service, HuggingFaceCompletionService)
        assert service.headers["Authorization"] == "Bearer hf_token"

    def test_openai_requires_key(self):
        config = CompletionConfig(provider=CompletionProvider.OPENAI, model_name="m")
        with pytest.raises(ValueError):
            create_completion_service(config)


class TestOpenAICompletionService:
    """Tests for the OpenAI client with the SDK mocked."""

    @pytest.mark.asyncio
    async def test_passes_budget_and_timeout(self):
        with patch("openai.AsyncOpenAI") as client_cls:
            client = MagicMock()
            choice = MagicMock()
            choice.message.content = "Try a slow breath."
            client.chat.completions.create = AsyncMock(
                return_value=MagicMock(choices=[choice])
            )
            client_cls.return_value = client

            service = OpenAICompletionService(CompletionConfig(
                provider=CompletionProvider.OPENAI,
                model_name="gpt-test",
                api_key="sk-test",
            ))
            text = await service.complete(
                "prompt", 0.2, 120, 2500, system_prompt="be kind"
            )

        assert text == "Try a slow breath."
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["max_tokens"] == 120
        assert kwargs["temperature"] == 0.2
        assert kwargs["timeout"] == 2.5
        assert kwargs["messages"][0] == {"role": "system", "content": "be kind"}
