"""PII handling utilities: zero raw user identifiers in application logs.

All user identifiers must be hashed before logging. Query text is only
logged as a fingerprint or as a redacted, truncated preview.
"""
import hashlib
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)


# Salt is loaded from the environment by the composition root
_PII_SALT: Optional[str] = None

# Ordered: SSN and card numbers before the generic long-digit phone rule
_REDACTIONS = (
    (re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), "[REDACTED-SSN]"),
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[REDACTED-EMAIL]"),
    (re.compile(r"\b\d{4}[- ]?\d{4}[- ]?\d{4}[- ]?\d{4}\b"), "[REDACTED-CARD]"),
    (re.compile(r"\b\d{10,}\b"), "[REDACTED-PHONE]"),
)


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
    """Hash a PII value for safe logging.

    Uses SHA-256 with a secret salt to create a consistent,
    non-reversible hash of user identifiers.

    Args:
        value: The PII value to hash (user ID, email, etc.)

    Returns:
        Hashed string safe for logging

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


def hash_pii_for_log(value: str) -> Optional[str]:
    """Hash a PII value for log context, or None if the salt is unset.

    For log fields only: a missing salt must not turn a safety decision
    into an error. ``hash_pii`` has already logged PII_HASH_FAILED.
    """
    try:
        return hash_pii(value)
    except RuntimeError:
        return None


def hash_text_for_audit(text: str) -> str:
    """Fingerprint query or response text without exposing content."""
    return hashlib.sha256(text.encode()).hexdigest()


def redact_pii(text: str) -> str:
    """Replace SSNs, emails, card numbers and phone numbers with markers.

    Args:
        text: Raw text

    Returns:
        Text with each PII match replaced by a ``[REDACTED-*]`` marker
    """
    redacted = text
    for pattern, marker in _REDACTIONS:
        redacted = pattern.sub(marker, redacted)
    return redacted


def preview_for_log(text: str, max_length: int = 200) -> str:
    """Redacted, truncated preview of text suitable for log context."""
    redacted = redact_pii(text)
    if len(redacted) > max_length:
        return redacted[:max_length] + "..."
    return redacted
