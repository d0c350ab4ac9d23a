"""Best-effort result cache shared by agents across requests."""
from .result_cache import CacheError, ResultCache, InMemoryTTLCache

__all__ = ["CacheError", "ResultCache", "InMemoryTTLCache"]
