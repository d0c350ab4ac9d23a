"""PII handling utilities following ADR-003: Zero PII in Application Logs.

User identifiers are hashed before they reach logs, cache keys or the
emergency-contact stream. Message text is never logged; a fingerprint
stands in for it wherever two requests need to be matched.
"""
import hashlib
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)


# Loaded from the deployment secret store; tests configure their own
_PII_SALT: Optional[str] = None

_WHITESPACE = re.compile(r"\s+")


def configure_pii_salt(salt: str) -> None:
    """Configure the PII hashing salt.

    Must be called during application startup before any PII hashing.

    Args:
        salt: Secret salt value

    Raises:
        ValueError: If salt is empty or too short
    """
    global _PII_SALT
    if not salt or len(salt) < 32:
        logger.critical(
            "PII_SALT_CONFIGURATION_FAILED",
            extra={"reason": "Salt too short or empty", "min_length": 32}
        )
        raise ValueError("PII salt must be at least 32 characters")

    _PII_SALT = salt
    logger.info("PII_SALT_CONFIGURED", extra={"salt_length": len(salt)})


def hash_pii(value: str) -> str:
    """Hash a user identifier for safe logging and storage.

    Uses SHA-256 with a secret salt so the same user always maps to the
    same non-reversible token.

    Raises:
        RuntimeError: If PII salt has not been configured
    """
    if _PII_SALT is None:
        logger.critical(
            "PII_HASH_FAILED",
            extra={"reason": "Salt not configured", "action": "call configure_pii_salt()"}
        )
        raise RuntimeError("PII salt not configured. Call configure_pii_salt() first.")

    salted = f"{_PII_SALT}{value}"
    return hashlib.sha256(salted.encode()).hexdigest()


def fingerprint_message(text: str) -> str:
    """Fingerprint message content for cache keys.

    Case and runs of whitespace are folded so trivially re-sent messages
    ("I'm  Sad" vs "i'm sad") share a fingerprint.

    Args:
        text: Raw message text

    Returns:
        SHA-256 hex digest of the normalized text
    """
    normalized = _WHITESPACE.sub(" ", text.strip().lower())
    return hashlib.sha256(normalized.encode()).hexdigest()
