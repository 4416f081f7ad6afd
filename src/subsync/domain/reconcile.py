"""Subscription state reconciliation.

Mirrors Flowglad's subscription state onto the organization record.
Flowglad owns the state machine; here each event type maps to a fixed set
of fields that is overwritten as a whole, so replaying an event (Flowglad
retries on ambiguous responses) always converges to the same record.

This module is the only writer of the subscription fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, assert_never

from subsync.domain.locator import (
    CUSTOMER_ID_FIELD,
    OrganizationNotFoundError,
    locate_by_external_id,
    locate_organization,
)
from subsync.domain.tiers import PriceTierMap, Tier, resolve_interval, resolve_tier
from subsync.flowglad.events import (
    CustomerCreated,
    InvoiceEvent,
    SubscriptionChanged,
    SubscriptionEnded,
    UnknownEvent,
    WebhookEvent,
)
from subsync.infra.store import ORGANIZATIONS, RecordStore
from subsync.infra.time import to_iso_utc, utc_now
from subsync.observability.logging import get_logger
from subsync.observability.redaction import id_prefix, safe_log_context

logger = get_logger(__name__)

TRIAL_PERIOD_DAYS = 14
TRIALING_STATUS = "trialing"


@dataclass(frozen=True)
class ReconcileOutcome:
    """What reconciling one event did."""

    event_type: str
    organization_id: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def mutated(self) -> bool:
        return bool(self.fields)


def subscription_changed_fields(
    event: SubscriptionChanged,
    price_tiers: PriceTierMap,
    *,
    strict_price_ids: bool = False,
) -> dict[str, Any]:
    """Full field set written for subscription.created/updated/activated."""
    sub = event.subscription
    tier = resolve_tier(sub.price_id, price_tiers, strict=strict_price_ids)
    return {
        "subscriptionTier": tier.value,
        "subscriptionStatus": sub.status,
        "billingInterval": resolve_interval(sub.interval).value,
        CUSTOMER_ID_FIELD: sub.customer_id,
        "flowgladSubscriptionId": sub.id,
        "trialEnd": sub.trial_end,
    }


def subscription_ended_fields(event: SubscriptionEnded) -> dict[str, Any]:
    """Canceled/expired drops to free; billing linkage is kept."""
    return {
        "subscriptionTier": Tier.FREE.value,
        "subscriptionStatus": event.subscription.status,
    }


def _apply(store: RecordStore, organization_id: str, fields: dict[str, Any]) -> None:
    if not store.update(ORGANIZATIONS, organization_id, fields):
        # Deleted between lookup and write
        raise OrganizationNotFoundError(f"organization {organization_id} disappeared")


def reconcile(
    store: RecordStore,
    event: WebhookEvent,
    price_tiers: PriceTierMap,
    *,
    strict_price_ids: bool = False,
) -> ReconcileOutcome:
    """Apply one decoded event to the organization it belongs to.

    Args:
        store: Record store holding organizations.
        event: Decoded webhook event.
        price_tiers: Price ID -> tier map.
        strict_price_ids: Fail on unconfigured price IDs.

    Returns:
        ReconcileOutcome describing the write, if any.

    Raises:
        OrganizationNotFoundError: If the event's organization cannot be resolved.
        UnknownPriceError: If strict_price_ids and the price ID is unknown.
        StoreError: If the store fails.
    """
    match event:
        case SubscriptionChanged():
            organization = locate_organization(
                store, event.subscription.customer_id, event.external_id_hint
            )
            fields = subscription_changed_fields(
                event, price_tiers, strict_price_ids=strict_price_ids
            )
            _apply(store, organization["id"], fields)
            logger.info(
                "organization subscription updated",
                extra={
                    "extra_fields": safe_log_context(
                        event_type=event.event_type,
                        organization_id=organization["id"],
                        tier=fields["subscriptionTier"],
                        status=fields["subscriptionStatus"],
                    )
                },
            )
            return ReconcileOutcome(event.event_type, organization["id"], fields)

        case SubscriptionEnded():
            organization = locate_organization(
                store, event.subscription.customer_id, event.external_id_hint
            )
            fields = subscription_ended_fields(event)
            _apply(store, organization["id"], fields)
            logger.info(
                "organization downgraded to free tier",
                extra={
                    "extra_fields": safe_log_context(
                        event_type=event.event_type,
                        organization_id=organization["id"],
                        status=fields["subscriptionStatus"],
                    )
                },
            )
            return ReconcileOutcome(event.event_type, organization["id"], fields)

        case CustomerCreated():
            if not event.external_id:
                logger.info(
                    "customer created without external id, nothing to link",
                    extra={
                        "extra_fields": safe_log_context(
                            customer_id_prefix=id_prefix(event.customer_id),
                        )
                    },
                )
                return ReconcileOutcome(event.event_type)

            organization = locate_by_external_id(store, event.external_id)
            fields = {CUSTOMER_ID_FIELD: event.customer_id}
            _apply(store, organization["id"], fields)
            logger.info(
                "flowglad customer linked to organization",
                extra={
                    "extra_fields": safe_log_context(
                        customer_id_prefix=id_prefix(event.customer_id),
                        organization_id=organization["id"],
                    )
                },
            )
            return ReconcileOutcome(event.event_type, organization["id"], fields)

        case InvoiceEvent():
            logger.info(
                "invoice event received",
                extra={
                    "extra_fields": safe_log_context(
                        event_type=event.event_type,
                        data_keys=", ".join(event.data_keys),
                    )
                },
            )
            return ReconcileOutcome(event.event_type)

        case UnknownEvent():
            logger.info(
                "unhandled webhook event type",
                extra={"extra_fields": safe_log_context(event_type=event.event_type)},
            )
            return ReconcileOutcome(event.event_type)

        case _:
            assert_never(event)


def start_trial(
    store: RecordStore,
    organization_id: str,
    *,
    now: datetime | None = None,
    days: int = TRIAL_PERIOD_DAYS,
) -> str:
    """Put a new organization on a free trial.

    Sets trialEnd to now + days and subscriptionStatus to "trialing".
    Independent of Flowglad; later subscription events overwrite both.

    Returns:
        The trial end as an ISO-8601 UTC string.

    Raises:
        OrganizationNotFoundError: If the organization does not exist.
    """
    trial_end = to_iso_utc((now or utc_now()) + timedelta(days=days))
    _apply(
        store,
        organization_id,
        {"trialEnd": trial_end, "subscriptionStatus": TRIALING_STATUS},
    )
    logger.info(
        "organization trial started",
        extra={
            "extra_fields": safe_log_context(
                organization_id=organization_id,
                trial_days=days,
            )
        },
    )
    return trial_end
