"""Tests for PII hashing and redaction helpers."""
import pytest
from unittest.mock import patch

from harbor.shared.utils import (
    configure_pii_salt,
    hash_pii,
    hash_pii_for_log,
    hash_text_for_audit,
    preview_for_log,
    redact_pii,
)


@pytest.fixture(autouse=True)
def setup_pii_salt():
    """Configure PII salt before each test."""
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


class TestHashing:
    """Tests for salted identifier hashing."""

    def test_hash_is_stable(self):
        assert hash_pii("user_123") == hash_pii("user_123")

    def test_hash_differs_per_value(self):
        assert hash_pii("user_123") != hash_pii("user_456")

    def test_hash_is_hex_digest(self):
        assert len(hash_pii("user_123")) == 64

    def test_short_salt_rejected(self):
        with pytest.raises(ValueError):
            configure_pii_salt("too_short")

    def test_unset_salt_raises(self):
        with patch("harbor.shared.utils.pii._PII_SALT", None):
            with pytest.raises(RuntimeError):
                hash_pii("user_123")

    def test_log_hash_matches_hash_pii(self):
        assert hash_pii_for_log("user_123") == hash_pii("user_123")

    def test_log_hash_is_none_when_salt_unset(self):
        with patch("harbor.shared.utils.pii._PII_SALT", None):
            assert hash_pii_for_log("user_123") is None

    def test_text_fingerprint_is_unsalted(self):
        assert hash_text_for_audit("hello") == hash_text_for_audit("hello")


class TestRedaction:
    """Tests for PII redaction markers."""

    def test_redacts_email(self):
        assert redact_pii("mail me at jo@example.com") == "mail me at [REDACTED-EMAIL]"

    def test_redacts_ssn(self):
        assert "[REDACTED-SSN]" in redact_pii("ssn 123-45-6789")

    def test_redacts_card_before_phone(self):
        result = redact_pii("card 4111 1111 1111 1111")
        assert "[REDACTED-CARD]" in result
        assert "[REDACTED-PHONE]" not in result

    def test_redacts_phone(self):
        assert redact_pii("call 5551234567") == "call [REDACTED-PHONE]"

    def test_clean_text_untouched(self):
        assert redact_pii("nothing to see") == "nothing to see"

    def test_preview_truncates(self):
        preview = preview_for_log("a" * 300)
        assert preview.endswith("...")
        assert len(preview) == 203
