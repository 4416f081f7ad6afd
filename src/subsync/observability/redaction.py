"""Redaction helpers for safe logging. Webhook data must pass through these."""

import re
from typing import Any

# Billing payloads carry admin emails and phone numbers
_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REDACTED = "[REDACTED]"

# Keys whose values are never logged, whatever they contain
_SECRET_KEYS = frozenset({"secret", "signature", "signature_header", "webhook_secret"})

_ID_PREFIX_LENGTH = 8


def redact_string(value: str) -> str:
    """Redact PII patterns from a string."""
    result = _PHONE_PATTERN.sub(_REDACTED, value)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        # Structure only
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def id_prefix(value: str | None) -> str | None:
    """Shorten an external identifier to its first 8 characters."""
    if value is None:
        return None
    return value[:_ID_PREFIX_LENGTH]


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    return {
        k: _REDACTED if k in _SECRET_KEYS else redact_value(v)
        for k, v in kwargs.items()
    }
