"""Shared test helper functions for subsync tests.

Regular functions and constants, not fixtures.
"""

from __future__ import annotations

import json
import time
from typing import Any

from subsync.flowglad.signature import compute_signature
from subsync.infra.settings import PRICE_ENV_VARS, BillingSettings

WEBHOOK_SECRET = "whsec_test_flowglad_secret_0123456789"

WEBHOOK_PATH = "/api/flowglad/webhook"


def default_settings(**overrides: Any) -> BillingSettings:
    """BillingSettings with the development price IDs."""
    price_ids = {key: default for key, (_env, default) in PRICE_ENV_VARS.items()}
    return BillingSettings(price_ids=price_ids, **overrides)


def event_body(event_type: str, data: dict | None = None) -> bytes:
    """Serialize an event envelope the way Flowglad would send it."""
    return json.dumps({"type": event_type, "data": data or {}}).encode()


def signature_entry(body: bytes, timestamp: int | None = None, secret: str = WEBHOOK_SECRET) -> str:
    ts = int(time.time()) if timestamp is None else timestamp
    return f"v1,{ts},{compute_signature(secret, ts, body)}"


def subscription_data(
    customer_id: str,
    *,
    status: str = "active",
    price_id: str | None = "price_pro_monthly",
    interval: str | None = "month",
    subscription_id: str = "sub_1",
    trial_end: Any = None,
    external_id: str | None = None,
) -> dict:
    subscription: dict[str, Any] = {
        "id": subscription_id,
        "customerId": customer_id,
        "status": status,
    }
    if price_id is not None:
        subscription["priceId"] = price_id
    if interval is not None:
        subscription["interval"] = interval
    if trial_end is not None:
        subscription["trialEnd"] = trial_end

    data: dict[str, Any] = {"subscription": subscription}
    if external_id is not None:
        data["customer"] = {"externalId": external_id}
    return data
