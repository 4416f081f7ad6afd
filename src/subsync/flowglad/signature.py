"""Flowglad webhook signature verification.

Flowglad delivers Svix-style signature headers:

    v1,<unix timestamp>,<base64 HMAC-SHA256> [v1,<ts>,<sig> ...]

Several entries may be present while keys rotate; a request is authentic
when any one entry is fresh and matches. The HMAC covers
"<timestamp>." followed by the exact raw body bytes, so verification must
run before the body is parsed.

Security rules:
- Constant-time comparison only.
- Never log the signature, the secret or the payload.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from dataclasses import dataclass

from subsync.domain.errors import AuthenticationFailure, InternalFailure, ValidationFailure
from subsync.infra.time import unix_now
from subsync.observability.logging import get_logger
from subsync.observability.redaction import safe_log_context

logger = get_logger(__name__)

SIGNATURE_VERSION = "v1"

# Replay window: events signed more than 5 minutes away from now are stale
TOLERANCE_SECONDS = 300

# Longer digit strings are never a plausible unix time in seconds
MAX_TIMESTAMP_DIGITS = 12


class MissingSecretError(InternalFailure):
    """Webhook secret is not configured on this server."""

    code = "webhook_secret_not_configured"


class MissingSignatureHeaderError(AuthenticationFailure):
    """No signature header on the request."""

    code = "missing_signature"


class NoValidSignatureError(AuthenticationFailure):
    """No header entry passed timestamp and HMAC checks."""

    code = "invalid_signature"


class MalformedHeaderError(ValidationFailure):
    """Header has no entry of the form version,timestamp,signature."""

    code = "malformed_signature_header"


@dataclass(frozen=True)
class SignatureEntry:
    """One version,timestamp,signature triple from the header."""

    version: str
    timestamp: str
    signature: str


def parse_signature_header(header: str) -> list[SignatureEntry]:
    """Split a signature header into its entries.

    Tokens that are not three comma-separated parts are dropped.

    Raises:
        MalformedHeaderError: If no token has three parts.
    """
    entries = []
    for token in header.split():
        parts = token.split(",")
        if len(parts) != 3:
            continue
        entries.append(SignatureEntry(version=parts[0], timestamp=parts[1], signature=parts[2]))

    if not entries:
        raise MalformedHeaderError("signature header has no parseable entries")
    return entries


def compute_signature(secret: str, timestamp: str | int, raw_body: bytes) -> str:
    """Base64 HMAC-SHA256 of "<timestamp>." + raw_body."""
    signed_payload = f"{timestamp}.".encode("utf-8") + raw_body
    digest = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def build_signature_header(secret: str, raw_body: bytes, timestamp: int | None = None) -> str:
    """Build a single-entry header value, as Flowglad would send it."""
    ts = unix_now() if timestamp is None else timestamp
    return f"{SIGNATURE_VERSION},{ts},{compute_signature(secret, ts, raw_body)}"


def _parse_timestamp(value: str) -> int | None:
    if len(value) > MAX_TIMESTAMP_DIGITS:
        return None
    if not value.isascii() or not value.isdigit():
        return None
    ts = int(value)
    return ts if ts > 0 else None


def _check_entry(
    index: int,
    entry: SignatureEntry,
    raw_body: bytes,
    secret: str,
    now: int,
) -> bool:
    if entry.version != SIGNATURE_VERSION:
        logger.info(
            "signature entry skipped: unsupported version",
            extra={"extra_fields": safe_log_context(entry=index, version=entry.version)},
        )
        return False

    ts = _parse_timestamp(entry.timestamp)
    if ts is None:
        logger.warning(
            "signature entry skipped: invalid timestamp",
            extra={"extra_fields": safe_log_context(entry=index)},
        )
        return False

    skew = now - ts
    if abs(skew) > TOLERANCE_SECONDS:
        logger.warning(
            "signature entry skipped: timestamp outside tolerance",
            extra={"extra_fields": safe_log_context(entry=index, signed_at=ts, skew_seconds=skew)},
        )
        return False

    expected = compute_signature(secret, entry.timestamp, raw_body)
    if not hmac.compare_digest(entry.signature.encode("utf-8"), expected.encode("utf-8")):
        logger.warning(
            "signature entry skipped: signature mismatch",
            extra={"extra_fields": safe_log_context(entry=index, signed_at=ts)},
        )
        return False

    return True


def verify_signature(
    raw_body: bytes,
    signature_header: str | None,
    secret: str | None,
    *,
    now: int | None = None,
) -> SignatureEntry:
    """Verify a Flowglad webhook signature header against the raw body.

    Args:
        raw_body: Request body exactly as received on the wire.
        signature_header: Value of the signature header.
        secret: Shared webhook secret.
        now: Current unix time in seconds (defaults to wall clock).

    Returns:
        The first entry that verified.

    Raises:
        MissingSecretError: If secret is empty.
        MissingSignatureHeaderError: If the header is absent.
        MalformedHeaderError: If the header has no parseable entry.
        NoValidSignatureError: If no entry verifies.
    """
    if not secret:
        raise MissingSecretError("webhook secret not configured")
    if signature_header is None:
        raise MissingSignatureHeaderError("missing signature header")

    entries = parse_signature_header(signature_header)
    current = unix_now() if now is None else now

    for index, entry in enumerate(entries):
        if _check_entry(index, entry, raw_body, secret, current):
            return entry

    raise NoValidSignatureError(f"none of {len(entries)} signature entries verified")
