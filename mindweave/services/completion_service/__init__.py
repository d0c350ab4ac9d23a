"""Completion Service: opaque text-completion collaborators for agents."""
from .base_completion import (
    BaseCompletionService,
    CompletionConfig,
    CompletionError,
    CompletionProvider,
    HuggingFaceCompletionService,
    OpenAICompletionService,
    create_completion_service,
)

__all__ = [
    "BaseCompletionService",
    "CompletionConfig",
    "CompletionError",
    "CompletionProvider",
    "HuggingFaceCompletionService",
    "OpenAICompletionService",
    "create_completion_service",
]
