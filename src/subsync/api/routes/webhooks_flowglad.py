"""Flowglad webhook route - subscription lifecycle events.

Pipeline, each stage short-circuits on failure:
    read raw body -> verify signature -> decode -> locate org -> reconcile

Security rules:
- Signature is verified on the raw body bytes, before any parsing.
- Never log payload, signature header or secret.
- 2xx only after the event's effect is stored (or it needs none).
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from subsync.domain.errors import InternalFailure, ValidationFailure, WebhookError
from subsync.domain.reconcile import reconcile
from subsync.flowglad.events import decode_event
from subsync.flowglad.signature import (
    MissingSecretError,
    MissingSignatureHeaderError,
    verify_signature,
)
from subsync.infra.settings import get_webhook_secret
from subsync.infra.store import StoreError
from subsync.observability.correlation import get_correlation_id
from subsync.observability.logging import get_logger
from subsync.observability.redaction import safe_log_context

router = APIRouter(prefix="/api/flowglad", tags=["webhooks"])

logger = get_logger(__name__)

# Checked in this order; Flowglad sends the first, Svix relays the others
SIGNATURE_HEADERS = ("x-flowglad-signature", "svix-signature", "x-svix-signature")


class BodyReadError(ValidationFailure):
    """Body could not be read completely."""

    code = "invalid_body"


class StoreUnavailableError(InternalFailure):
    code = "store_unavailable"


def _get_signature_header(request: Request) -> str | None:
    for name in SIGNATURE_HEADERS:
        value = request.headers.get(name)
        if value:
            return value
    return None


async def _read_raw_body(request: Request, timeout: float) -> bytes:
    """Read the full body within `timeout` seconds.

    Raises:
        BodyReadError: On timeout, client disconnect or empty body.
    """
    try:
        body = await asyncio.wait_for(request.body(), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise BodyReadError("request body read timed out") from e
    except ClientDisconnect as e:
        raise BodyReadError("client disconnected during body read") from e

    if not body:
        raise BodyReadError("empty request body")
    return body


def _reject(error: WebhookError, correlation_id: str) -> JSONResponse:
    fields = safe_log_context(
        correlationId=correlation_id,
        error_code=error.code,
        status_code=error.status_code,
        reason=str(error),
    )
    if error.status_code >= 500:
        logger.error("flowglad webhook rejected", extra={"extra_fields": fields})
    else:
        logger.warning("flowglad webhook rejected", extra={"extra_fields": fields})

    return JSONResponse(
        status_code=error.status_code,
        content={"error": error.code, "message": str(error)},
    )


@router.post("/webhook")
async def flowglad_webhook(request: Request) -> JSONResponse:
    """Receive Flowglad webhook events.

    Returns:
        200 {"received": true} when accepted (including ignored event types).
        400 on malformed body or signature header.
        401 on missing or invalid signature.
        404 when no organization matches (Flowglad retries).
        500 on misconfiguration or store failure.
    """
    correlation_id = get_correlation_id()
    state = request.app.state

    try:
        secret = get_webhook_secret()
        if not secret:
            raise MissingSecretError("webhook secret not configured")

        signature_header = _get_signature_header(request)
        if signature_header is None:
            raise MissingSignatureHeaderError("missing signature header")

        raw_body = await _read_raw_body(request, state.settings.body_read_timeout)

        verify_signature(raw_body, signature_header, secret)
        event = decode_event(raw_body)

        logger.info(
            "flowglad webhook received",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    event_type=event.event_type,
                )
            },
        )

        try:
            # Store calls block; keep them off the event loop
            outcome = await run_in_threadpool(
                reconcile,
                state.store,
                event,
                state.price_tiers,
                strict_price_ids=state.settings.strict_price_ids,
            )
        except StoreError as e:
            raise StoreUnavailableError("organization store unavailable") from e

    except WebhookError as e:
        return _reject(e, correlation_id)
    except Exception:
        logger.exception(
            "flowglad webhook processing failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": "webhook processing failed"},
        )

    logger.info(
        "flowglad webhook acknowledged",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                event_type=outcome.event_type,
                organization_id=outcome.organization_id,
                mutated=outcome.mutated,
            )
        },
    )
    return JSONResponse(status_code=200, content={"received": True})
