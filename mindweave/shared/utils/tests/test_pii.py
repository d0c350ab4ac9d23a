"""Tests for PII hashing and message fingerprinting (ADR-003)."""
import pytest

from mindweave.shared.utils import pii
from mindweave.shared.utils import configure_pii_salt, fingerprint_message, hash_pii


@pytest.fixture(autouse=True)
def setup_pii_salt():
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


class TestHashPii:
    """Tests for salted identifier hashing."""

    def test_hash_is_stable(self):
        assert hash_pii("user_123") == hash_pii("user_123")

    def test_hash_differs_per_user(self):
        assert hash_pii("user_123") != hash_pii("user_456")

    def test_hash_does_not_contain_identifier(self):
        hashed = hash_pii("user_123")
        assert "user_123" not in hashed
        assert len(hashed) == 64

    def test_hash_depends_on_salt(self):
        first = hash_pii("user_123")
        configure_pii_salt("another_salt_that_is_also_32_characters")
        assert hash_pii("user_123") != first

    def test_unconfigured_salt_raises(self, monkeypatch):
        monkeypatch.setattr(pii, "_PII_SALT", None)
        with pytest.raises(RuntimeError):
            hash_pii("user_123")


class TestConfigureSalt:
    """Tests for salt validation."""

    def test_short_salt_rejected(self):
        with pytest.raises(ValueError):
            configure_pii_salt("too_short")

    def test_empty_salt_rejected(self):
        with pytest.raises(ValueError):
            configure_pii_salt("")


class TestFingerprintMessage:
    """Tests for cache fingerprints."""

    def test_case_and_whitespace_folded(self):
        assert fingerprint_message("I'm  Sad\n") == fingerprint_message("i'm sad")

    def test_different_text_differs(self):
        assert fingerprint_message("I'm sad") != fingerprint_message("I'm glad")

    def test_fingerprint_is_not_raw_text(self):
        assert "sad" not in fingerprint_message("sad")
