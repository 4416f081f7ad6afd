"""Tests for the app factory, health endpoint and correlation middleware."""

from unittest.mock import patch

from fastapi.testclient import TestClient

from subsync.api.factory import create_app
from subsync.domain.tiers import Tier
from subsync.infra.store import InMemoryRecordStore

from helpers import WEBHOOK_PATH, default_settings


def _client(**kwargs) -> TestClient:
    kwargs.setdefault("store", InMemoryRecordStore())
    kwargs.setdefault("settings", default_settings())
    return TestClient(create_app(**kwargs))


class TestHealth:
    def test_health_returns_ok_status(self):
        response = _client().get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestRoutes:
    def test_webhook_mounted(self):
        paths = {route.path for route in create_app(
            store=InMemoryRecordStore(), settings=default_settings()
        ).routes}
        assert WEBHOOK_PATH in paths
        assert "/api/flowglad/checkout" in paths

    def test_docs_not_mounted(self):
        assert _client().get("/docs").status_code == 404


class TestAppState:
    def test_injected_dependencies(self):
        store = InMemoryRecordStore()
        settings = default_settings(strict_price_ids=True)
        app = create_app(store=store, settings=settings)

        assert app.state.store is store
        assert app.state.settings is settings
        assert app.state.price_tiers["price_business_monthly"] is Tier.BUSINESS

    def test_defaults_loaded_from_environment(self, monkeypatch):
        monkeypatch.setenv("FLOWGLAD_PRICE_BUSINESS_MONTHLY", "price_live_biz")
        with patch(
            "subsync.api.factory.PostgresOrganizationStore"
        ) as mock_store_cls:
            app = create_app()

        assert app.state.store is mock_store_cls.return_value
        assert app.state.price_tiers["price_live_biz"] is Tier.BUSINESS


class TestCorrelationId:
    """Tests for correlation ID middleware."""

    def test_generates_correlation_id(self):
        response = _client().get("/health")
        assert len(response.headers["X-Correlation-ID"]) == 36

    def test_preserves_incoming_correlation_id(self):
        response = _client().get("/health", headers={"X-Correlation-ID": "test-123"})
        assert response.headers["X-Correlation-ID"] == "test-123"

    def test_replaces_overlong_correlation_id(self):
        response = _client().get("/health", headers={"X-Correlation-ID": "x" * 500})
        assert len(response.headers["X-Correlation-ID"]) == 36
