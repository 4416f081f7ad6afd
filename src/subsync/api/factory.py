"""FastAPI application factory.

Everything the webhook core shares across requests is built here, once per
process, and handed to routes through app.state:
- settings: BillingSettings
- price_tiers: read-only price ID -> tier map
- store: RecordStore holding organizations
"""

from __future__ import annotations

from fastapi import FastAPI, Request, Response

from subsync.domain.tiers import build_price_tier_map
from subsync.infra.repositories.organizations_repository import PostgresOrganizationStore
from subsync.infra.settings import BillingSettings, load_billing_settings
from subsync.infra.store import RecordStore
from subsync.observability.correlation import (
    CORRELATION_ID_HEADER,
    accept_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

from .routers import public
from .routes import checkout_flowglad, webhooks_flowglad


def create_app(
    *,
    store: RecordStore | None = None,
    settings: BillingSettings | None = None,
) -> FastAPI:
    """Create the FastAPI app.

    Args:
        store: Organization store. Defaults to the Postgres store
               (DATABASE_URL is read on first use, not here).
        settings: Billing settings. Defaults to load_billing_settings().

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = load_billing_settings()
    if store is None:
        store = PostgresOrganizationStore()

    app = FastAPI(
        title="subsync",
        docs_url=None,
        redoc_url=None,
    )

    app.state.settings = settings
    app.state.price_tiers = build_price_tier_map(settings.price_ids)
    app.state.store = store

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = accept_correlation_id(request.headers.get(CORRELATION_ID_HEADER))
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    app.include_router(public.router)
    app.include_router(webhooks_flowglad.router)
    app.include_router(checkout_flowglad.router)

    return app
