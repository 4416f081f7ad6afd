"""Subscription tiers and price ID resolution."""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

from subsync.domain.errors import InternalFailure
from subsync.observability.logging import get_logger
from subsync.observability.redaction import safe_log_context

logger = get_logger(__name__)


class Tier(str, Enum):
    FREE = "free"
    STARTER = "starter"
    PROFESSIONAL = "professional"
    BUSINESS = "business"


class BillingInterval(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


# Lowest paid tier, used when a price ID is not in the catalog
DEFAULT_PAID_TIER = Tier.STARTER

PriceTierMap = Mapping[str, Tier]


class UnknownPriceError(InternalFailure):
    """Price ID is not configured and strict resolution is on."""

    code = "unknown_price"


def build_price_tier_map(price_ids: Mapping[tuple[str, str], str]) -> PriceTierMap:
    """Build the read-only price ID -> tier map.

    Args:
        price_ids: Price ID per (tier name, interval name).

    Returns:
        Immutable mapping from price ID to Tier.

    Raises:
        ValueError: If a tier name is unknown or the free tier is priced,
                    or one price ID is configured for two different tiers.
    """
    mapping: dict[str, Tier] = {}
    for (tier_name, _interval), price_id in price_ids.items():
        tier = Tier(tier_name)
        if tier is Tier.FREE:
            raise ValueError("free tier cannot have a price ID")
        existing = mapping.get(price_id)
        if existing is not None and existing is not tier:
            raise ValueError(
                f"price ID {price_id!r} configured for both {existing.value} and {tier.value}"
            )
        mapping[price_id] = tier
    return MappingProxyType(mapping)


def resolve_tier(
    price_id: str | None,
    price_tiers: PriceTierMap,
    *,
    strict: bool = False,
) -> Tier:
    """Map a Flowglad price ID to a tier.

    Unknown IDs fall back to DEFAULT_PAID_TIER unless strict is set.

    Raises:
        UnknownPriceError: If strict and the price ID is not configured.
    """
    if price_id is not None:
        tier = price_tiers.get(price_id)
        if tier is not None:
            return tier

    if strict:
        raise UnknownPriceError(f"price ID not configured: {price_id!r}")

    logger.warning(
        "unknown price id, defaulting tier",
        extra={
            "extra_fields": safe_log_context(
                price_id=price_id,
                tier=DEFAULT_PAID_TIER.value,
            )
        },
    )
    return DEFAULT_PAID_TIER


def resolve_interval(interval: str | None) -> BillingInterval:
    """Only the exact discriminator "year" is yearly."""
    if interval == "year":
        return BillingInterval.YEARLY
    return BillingInterval.MONTHLY
