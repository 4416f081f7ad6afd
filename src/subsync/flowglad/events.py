"""Flowglad webhook event decoding.

Turns verified raw bytes into one of a closed set of event variants.
Event types we do not know are decoded as UnknownEvent, not rejected,
so new provider event types are acknowledged.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from subsync.domain.errors import ValidationFailure
from subsync.infra.time import to_iso_utc


class MalformedPayloadError(ValidationFailure):
    """Body is not a well-formed Flowglad event."""

    code = "malformed_payload"


SUBSCRIPTION_CHANGED_TYPES = frozenset(
    {"subscription.created", "subscription.updated", "subscription.activated"}
)
SUBSCRIPTION_ENDED_TYPES = frozenset({"subscription.canceled", "subscription.expired"})
CUSTOMER_CREATED_TYPE = "customer.created"
INVOICE_TYPES = frozenset({"invoice.paid", "invoice.payment_failed"})


# ---------------------------------------------------------------------------
# Wire payload shapes
# ---------------------------------------------------------------------------


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class SubscriptionPayload(_Payload):
    id: str | None = None
    customer_id: str = Field(alias="customerId", min_length=1)
    status: str
    price_id: str | None = Field(default=None, alias="priceId")
    interval: str | None = None
    trial_end: str | None = Field(default=None, alias="trialEnd")

    @field_validator("trial_end", mode="before")
    @classmethod
    def _normalize_trial_end(cls, value: Any) -> str | None:
        return normalize_trial_end(value)


class CustomerPayload(_Payload):
    id: str | None = None
    external_id: str | None = Field(default=None, alias="externalId")


class CreatedCustomerPayload(CustomerPayload):
    id: str = Field(min_length=1)


class SubscriptionEventData(_Payload):
    subscription: SubscriptionPayload
    customer: CustomerPayload | None = None


class CustomerEventData(_Payload):
    customer: CreatedCustomerPayload


def normalize_trial_end(value: Any) -> str | None:
    """Normalize a trial end to an ISO-8601 UTC string.

    Numbers are epoch milliseconds; strings must be ISO-8601.
    Empty values mean no trial.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("trialEnd must be a timestamp")
    if isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise ValueError("trialEnd out of range") from e
        return to_iso_utc(parsed)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        return to_iso_utc(parsed)
    raise ValueError("trialEnd must be a timestamp")


# ---------------------------------------------------------------------------
# Event variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SubscriptionChanged:
    """subscription.created / updated / activated"""

    event_type: str
    subscription: SubscriptionPayload
    external_id_hint: str | None


@dataclass(frozen=True)
class SubscriptionEnded:
    """subscription.canceled / expired"""

    event_type: str
    subscription: SubscriptionPayload
    external_id_hint: str | None


@dataclass(frozen=True)
class CustomerCreated:
    event_type: Literal["customer.created"]
    customer_id: str
    external_id: str | None


@dataclass(frozen=True)
class InvoiceEvent:
    event_type: str
    data_keys: tuple[str, ...]


@dataclass(frozen=True)
class UnknownEvent:
    event_type: str


WebhookEvent = Union[
    SubscriptionChanged, SubscriptionEnded, CustomerCreated, InvoiceEvent, UnknownEvent
]


def _hint(data: SubscriptionEventData) -> str | None:
    if data.customer is None:
        return None
    return data.customer.external_id or None


def decode_event(raw_body: bytes) -> WebhookEvent:
    """Decode a verified webhook body.

    Args:
        raw_body: Body bytes that already passed signature verification.

    Returns:
        One WebhookEvent variant.

    Raises:
        MalformedPayloadError: If the body is not JSON, has no string type,
            or a recognized type lacks its required fields.
    """
    try:
        envelope = json.loads(raw_body)
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        raise MalformedPayloadError("body is not valid JSON") from e

    if not isinstance(envelope, dict):
        raise MalformedPayloadError("event must be a JSON object")

    event_type = envelope.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise MalformedPayloadError("event type missing")

    data = envelope.get("data")
    if data is None:
        data = {}

    try:
        if event_type in SUBSCRIPTION_CHANGED_TYPES:
            parsed = SubscriptionEventData.model_validate(data)
            return SubscriptionChanged(event_type, parsed.subscription, _hint(parsed))

        if event_type in SUBSCRIPTION_ENDED_TYPES:
            parsed = SubscriptionEventData.model_validate(data)
            return SubscriptionEnded(event_type, parsed.subscription, _hint(parsed))

        if event_type == CUSTOMER_CREATED_TYPE:
            parsed_customer = CustomerEventData.model_validate(data)
            return CustomerCreated(
                event_type=CUSTOMER_CREATED_TYPE,
                customer_id=parsed_customer.customer.id,
                external_id=parsed_customer.customer.external_id or None,
            )
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise MalformedPayloadError(
            f"{event_type} payload invalid: {', '.join(fields)}"
        ) from e

    if event_type in INVOICE_TYPES:
        keys = tuple(data.keys()) if isinstance(data, dict) else ()
        return InvoiceEvent(event_type=event_type, data_keys=keys)

    return UnknownEvent(event_type=event_type)
