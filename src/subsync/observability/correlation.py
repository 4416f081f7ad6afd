"""Correlation ID management for webhook request tracing."""

import uuid
from contextvars import ContextVar, Token

# Set per request by the app middleware, read by the JSON formatter
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Incoming IDs longer than this are replaced, not echoed back
MAX_CORRELATION_ID_LENGTH = 128


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def accept_correlation_id(incoming: str | None) -> str:
    """Return the caller's correlation ID if usable, else a fresh one."""
    if incoming and len(incoming) <= MAX_CORRELATION_ID_LENGTH and incoming.isprintable():
        return incoming
    return generate_correlation_id()


def get_correlation_id() -> str:
    """Get current correlation ID from context."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    """Set correlation ID in context."""
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    """Reset correlation ID to previous value."""
    correlation_id_var.reset(token)
