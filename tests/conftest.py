"""Shared pytest fixtures for subsync tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from subsync.api.factory import create_app  # noqa: E402
from subsync.domain.tiers import build_price_tier_map  # noqa: E402
from subsync.infra.store import ORGANIZATIONS, InMemoryRecordStore  # noqa: E402

from helpers import WEBHOOK_SECRET, default_settings  # noqa: E402


@pytest.fixture
def store():
    """In-memory store seeded with three organizations."""
    return InMemoryRecordStore(
        {
            ORGANIZATIONS: {
                "org-linked": {
                    "name": "Linked Org",
                    "subscriptionTier": "professional",
                    "subscriptionStatus": "active",
                    "billingInterval": "monthly",
                    "flowgladCustomerId": "cus_1",
                    "flowgladSubscriptionId": "sub_1",
                    "trialEnd": None,
                },
                "org-new": {
                    "name": "New Org",
                    "subscriptionTier": "free",
                },
                "org-other": {
                    "name": "Other Org",
                    "subscriptionTier": "free",
                    "flowgladCustomerId": "cus_other",
                },
            }
        }
    )


@pytest.fixture
def price_tiers():
    return build_price_tier_map(default_settings().price_ids)


@pytest.fixture
def webhook_secret(monkeypatch):
    """Configure the Flowglad webhook secret."""
    monkeypatch.setenv("FLOWGLAD_WEBHOOK_SECRET", WEBHOOK_SECRET)
    return WEBHOOK_SECRET


@pytest.fixture
def client(store, webhook_secret):
    """Test client wired to the in-memory store."""
    app = create_app(store=store, settings=default_settings())
    return TestClient(app)
