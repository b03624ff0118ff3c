"""Shared utilities for Harbor services."""
from .pii import (
    hash_pii,
    hash_pii_for_log,
    hash_text_for_audit,
    configure_pii_salt,
    redact_pii,
    preview_for_log,
)

__all__ = [
    "hash_pii",
    "hash_pii_for_log",
    "hash_text_for_audit",
    "configure_pii_salt",
    "redact_pii",
    "preview_for_log",
]
