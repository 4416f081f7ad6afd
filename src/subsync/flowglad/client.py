"""Thin wrapper around the Flowglad REST API.

Purpose:
- Keep HTTP details out of route code.
- Register the organization as a Flowglad customer (externalId = organization
  id) so later webhooks can be traced back to it.
- Never log request or response bodies (they carry admin emails), only IDs
  and status codes.
"""

from __future__ import annotations

from typing import Any

import requests

from subsync.domain.errors import InternalFailure
from subsync.infra.settings import get_flowglad_api_key, get_flowglad_api_url
from subsync.observability.logging import get_logger
from subsync.observability.redaction import safe_log_context

logger = get_logger(__name__)

CUSTOMER_ALREADY_EXISTS = "CUSTOMER_ALREADY_EXISTS"

DEFAULT_TIMEOUT_SECONDS = 10.0


class BillingNotConfiguredError(InternalFailure):
    """No Flowglad API key on this server."""

    code = "billing_not_configured"


class FlowgladRequestError(InternalFailure):
    """Flowglad call failed or answered with an error."""

    code = "flowglad_request_failed"

    def __init__(self, message: str, *, status: int | None = None, upstream_code: str | None = None):
        super().__init__(message)
        self.status = status
        self.upstream_code = upstream_code


def _json_or_none(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _upstream_code(response: requests.Response) -> str | None:
    data = _json_or_none(response)
    if isinstance(data, dict) and isinstance(data.get("code"), str):
        return data["code"]
    return None


class FlowgladClient:
    """Flowglad customer and checkout calls.

    Usage:
        client = FlowgladClient()  # reads FLOWGLAD_SECRET_KEY from env
        client.ensure_customer(external_id="org-1", name="Acme", email=None)
        session = client.create_checkout_session(
            customer_external_id="org-1",
            price_id="price_pro_monthly",
            success_url="https://app.example.com/billing/success",
            cancel_url="https://app.example.com/billing",
        )
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """
        Raises:
            BillingNotConfiguredError: If no API key is passed or configured.
        """
        self._api_key = api_key or get_flowglad_api_key()
        if not self._api_key:
            raise BillingNotConfiguredError("billing service not configured")
        self._base_url = (base_url or get_flowglad_api_url()).rstrip("/")
        self._timeout = timeout

    def _post(self, path: str, payload: dict[str, Any]) -> requests.Response:
        try:
            return requests.post(
                f"{self._base_url}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise FlowgladRequestError(f"POST {path} failed: {type(e).__name__}") from e

    def ensure_customer(self, *, external_id: str, name: str | None, email: str | None) -> bool:
        """Create the customer unless Flowglad already has one for external_id.

        Returns:
            True if a customer was created, False if it already existed.

        Raises:
            FlowgladRequestError: On transport failure or any other API error.
        """
        customer: dict[str, Any] = {"externalId": external_id, "name": name or "Organization"}
        if email:
            customer["email"] = email

        response = self._post("/customers", {"customer": customer})
        if response.ok:
            logger.info(
                "flowglad customer created",
                extra={"extra_fields": safe_log_context(organization_id=external_id)},
            )
            return True

        upstream_code = _upstream_code(response)
        if upstream_code == CUSTOMER_ALREADY_EXISTS:
            return False

        logger.error(
            "flowglad customer creation failed",
            extra={
                "extra_fields": safe_log_context(
                    organization_id=external_id,
                    status=response.status_code,
                    upstream_code=upstream_code,
                )
            },
        )
        raise FlowgladRequestError(
            "failed to create customer",
            status=response.status_code,
            upstream_code=upstream_code,
        )

    def create_checkout_session(
        self,
        *,
        customer_external_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
    ) -> dict[str, Any]:
        """Open a hosted checkout session for one unit of price_id.

        Returns:
            Dict with checkout_url and session_id (None if Flowglad omits it).

        Raises:
            FlowgladRequestError: On transport failure, API error or a
                response without a checkout URL.
        """
        response = self._post(
            "/checkout/sessions",
            {
                "customerExternalId": customer_external_id,
                "priceId": price_id,
                "successUrl": success_url,
                "cancelUrl": cancel_url,
                "quantity": 1,
            },
        )
        if not response.ok:
            upstream_code = _upstream_code(response)
            logger.error(
                "flowglad checkout session failed",
                extra={
                    "extra_fields": safe_log_context(
                        organization_id=customer_external_id,
                        status=response.status_code,
                        upstream_code=upstream_code,
                    )
                },
            )
            raise FlowgladRequestError(
                "failed to create checkout session",
                status=response.status_code,
                upstream_code=upstream_code,
            )

        data = _json_or_none(response)
        if not isinstance(data, dict) or not data.get("url"):
            raise FlowgladRequestError("checkout session response has no url")

        logger.info(
            "flowglad checkout session created",
            extra={
                "extra_fields": safe_log_context(
                    organization_id=customer_external_id,
                    price_id=price_id,
                )
            },
        )
        return {"checkout_url": data["url"], "session_id": data.get("sessionId")}
