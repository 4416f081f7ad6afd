"""Flowglad checkout route - plan upgrades via Flowglad's hosted checkout.

Registers the organization as a Flowglad customer (externalId = organization
id), then opens a checkout session. The externalId is what lets subscription
webhooks find the organization before its customer ID is stored.

Card data never touches this service; the client is redirected to
checkoutUrl.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.concurrency import run_in_threadpool

from subsync.domain.errors import ValidationFailure, WebhookError
from subsync.flowglad.client import FlowgladClient
from subsync.observability.correlation import get_correlation_id
from subsync.observability.logging import get_logger
from subsync.observability.redaction import safe_log_context

router = APIRouter(prefix="/api/flowglad", tags=["billing"])

logger = get_logger(__name__)

REQUIRED_FIELDS = ("organizationId", "priceId", "successUrl", "cancelUrl")


class CheckoutRequestError(ValidationFailure):
    code = "invalid_request"


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    organization_id: str = Field(alias="organizationId", min_length=1)
    organization_name: str | None = Field(default=None, alias="organizationName")
    admin_email: str | None = Field(default=None, alias="adminEmail")
    price_id: str = Field(alias="priceId", min_length=1)
    success_url: str = Field(alias="successUrl", min_length=1)
    cancel_url: str = Field(alias="cancelUrl", min_length=1)


def _get_flowglad_client() -> FlowgladClient:
    return FlowgladClient()


def _parse_request(raw_body: bytes) -> CheckoutRequest:
    try:
        payload = json.loads(raw_body) if raw_body else {}
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        raise CheckoutRequestError("body is not valid JSON") from e

    try:
        return CheckoutRequest.model_validate(payload)
    except ValidationError as e:
        raise CheckoutRequestError(
            f"Missing required fields: {', '.join(REQUIRED_FIELDS)}"
        ) from e


def _start_checkout(client: FlowgladClient, checkout: CheckoutRequest) -> dict:
    client.ensure_customer(
        external_id=checkout.organization_id,
        name=checkout.organization_name,
        email=checkout.admin_email,
    )
    return client.create_checkout_session(
        customer_external_id=checkout.organization_id,
        price_id=checkout.price_id,
        success_url=checkout.success_url,
        cancel_url=checkout.cancel_url,
    )


@router.post("/checkout")
async def flowglad_checkout(request: Request) -> JSONResponse:
    """Create a Flowglad checkout session for an organization.

    Returns:
        200 {"checkoutUrl", "sessionId"} on success.
        400 when a required field is missing or the body is not JSON.
        500 when billing is not configured or Flowglad fails.
    """
    correlation_id = get_correlation_id()

    try:
        client = _get_flowglad_client()
        checkout = _parse_request(await request.body())
        session = await run_in_threadpool(_start_checkout, client, checkout)

    except WebhookError as e:
        fields = safe_log_context(
            correlationId=correlation_id,
            error_code=e.code,
            status_code=e.status_code,
            reason=str(e),
        )
        if e.status_code >= 500:
            logger.error("flowglad checkout rejected", extra={"extra_fields": fields})
        else:
            logger.warning("flowglad checkout rejected", extra={"extra_fields": fields})
        return JSONResponse(
            status_code=e.status_code,
            content={"error": e.code, "message": str(e)},
        )
    except Exception:
        logger.exception(
            "flowglad checkout failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": "checkout failed"},
        )

    return JSONResponse(
        status_code=200,
        content={"checkoutUrl": session["checkout_url"], "sessionId": session["session_id"]},
    )
