"""Send a signed Flowglad-style webhook to a running subsync instance.

Usage:
    FLOWGLAD_WEBHOOK_SECRET=... uv run python scripts/send_test_webhook.py <event_type> <customer_id> [price_id]

Examples:
    uv run python scripts/send_test_webhook.py subscription.created cus_123 price_pro_monthly
    uv run python scripts/send_test_webhook.py subscription.canceled cus_123

Targets SUBSYNC_URL (default http://localhost:8000). For local/staging only.
"""

from __future__ import annotations

import json
import os
import sys

import requests

from subsync.flowglad.signature import build_signature_header


def _build_event(event_type: str, customer_id: str, price_id: str | None) -> dict:
    if event_type == "customer.created":
        return {
            "type": event_type,
            "data": {"customer": {"id": customer_id, "externalId": os.environ.get("ORG_ID")}},
        }

    status = "canceled" if event_type.endswith(("canceled", "expired")) else "active"
    subscription = {
        "id": f"sub_test_{customer_id}",
        "customerId": customer_id,
        "status": status,
        "interval": "month",
    }
    if price_id:
        subscription["priceId"] = price_id
    return {"type": event_type, "data": {"subscription": subscription}}


def main() -> None:
    if len(sys.argv) < 3:
        print("Usage: uv run python scripts/send_test_webhook.py <event_type> <customer_id> [price_id]")
        sys.exit(2)

    secret = os.environ.get("FLOWGLAD_WEBHOOK_SECRET", "")
    if not secret:
        print("ERROR: FLOWGLAD_WEBHOOK_SECRET not set")
        sys.exit(1)

    event_type, customer_id = sys.argv[1], sys.argv[2]
    price_id = sys.argv[3] if len(sys.argv) > 3 else None

    body = json.dumps(_build_event(event_type, customer_id, price_id)).encode()
    base_url = os.environ.get("SUBSYNC_URL", "http://localhost:8000").rstrip("/")

    response = requests.post(
        f"{base_url}/api/flowglad/webhook",
        data=body,
        headers={
            "Content-Type": "application/json",
            "x-flowglad-signature": build_signature_header(secret, body),
        },
        timeout=10,
    )
    print(f"{response.status_code} {response.text}")
    sys.exit(0 if response.ok else 1)


if __name__ == "__main__":
    main()
