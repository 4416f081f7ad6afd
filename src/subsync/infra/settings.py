"""Billing configuration loaded from the environment.

Price IDs come from the Flowglad dashboard; each env var falls back to the
placeholder slug used in development catalogs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

WEBHOOK_SECRET_ENV = "FLOWGLAD_WEBHOOK_SECRET"
API_KEY_ENV = "FLOWGLAD_SECRET_KEY"
API_URL_ENV = "FLOWGLAD_API_URL"

DEFAULT_API_URL = "https://app.flowglad.com/api/v1"

DEFAULT_BODY_READ_TIMEOUT = 10.0

# (tier, interval) -> (env var, development default)
PRICE_ENV_VARS: dict[tuple[str, str], tuple[str, str]] = {
    ("starter", "monthly"): ("FLOWGLAD_PRICE_STARTER_MONTHLY", "price_starter_monthly"),
    ("professional", "monthly"): ("FLOWGLAD_PRICE_PRO_MONTHLY", "price_pro_monthly"),
    ("business", "monthly"): ("FLOWGLAD_PRICE_BUSINESS_MONTHLY", "price_business_monthly"),
    ("starter", "yearly"): ("FLOWGLAD_PRICE_STARTER_YEARLY", "price_starter_yearly"),
    ("professional", "yearly"): ("FLOWGLAD_PRICE_PRO_YEARLY", "price_pro_yearly"),
    ("business", "yearly"): ("FLOWGLAD_PRICE_BUSINESS_YEARLY", "price_business_yearly"),
}

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class BillingSettings:
    """Process-wide billing settings.

    Attributes:
        price_ids: Configured Flowglad price ID per (tier, interval).
        strict_price_ids: Reject subscription events whose price ID is not
                          configured instead of defaulting to starter.
        body_read_timeout: Seconds allowed for reading a webhook body.
    """

    price_ids: Mapping[tuple[str, str], str] = field(default_factory=dict)
    strict_price_ids: bool = False
    body_read_timeout: float = DEFAULT_BODY_READ_TIMEOUT


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUTHY


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {raw!r}")
    return value


def load_billing_settings() -> BillingSettings:
    """Read billing settings from environment variables.

    Raises:
        RuntimeError: If a numeric setting is not a positive number.
    """
    price_ids = {
        key: os.environ.get(env_var) or default
        for key, (env_var, default) in PRICE_ENV_VARS.items()
    }
    return BillingSettings(
        price_ids=MappingProxyType(price_ids),
        strict_price_ids=_env_flag("SUBSYNC_STRICT_PRICE_IDS"),
        body_read_timeout=_env_float("SUBSYNC_BODY_READ_TIMEOUT", DEFAULT_BODY_READ_TIMEOUT),
    )


def get_webhook_secret() -> str | None:
    """Get the Flowglad webhook secret, or None when not configured."""
    return os.environ.get(WEBHOOK_SECRET_ENV) or None


def get_flowglad_api_key() -> str | None:
    """Get the Flowglad secret API key, or None when not configured."""
    return os.environ.get(API_KEY_ENV) or None


def get_flowglad_api_url() -> str:
    return (os.environ.get(API_URL_ENV) or DEFAULT_API_URL).rstrip("/")
