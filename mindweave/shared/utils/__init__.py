"""Shared utilities for the mindweave orchestration engine."""
from .pii import hash_pii, fingerprint_message, configure_pii_salt

__all__ = ["hash_pii", "fingerprint_message", "configure_pii_salt"]
