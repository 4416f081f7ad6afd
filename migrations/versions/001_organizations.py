"""Organizations with Flowglad subscription fields (SQL-only).

Revision ID: 001_organizations
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op


revision = "001_organizations"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE TABLE organizations (
            id                       TEXT PRIMARY KEY,
            name                     TEXT NOT NULL DEFAULT '',
            subscription_tier        TEXT NOT NULL DEFAULT 'free'
                CHECK (subscription_tier IN ('free', 'starter', 'professional', 'business')),
            subscription_status      TEXT,
            billing_interval         TEXT
                CHECK (billing_interval IN ('monthly', 'yearly')),
            flowglad_customer_id     TEXT,
            flowglad_subscription_id TEXT,
            trial_end                TIMESTAMPTZ,
            created_at               TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at               TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """
    )
    # Not unique: duplicates are a data anomaly the webhook logs, not a write error
    op.execute(
        """
        CREATE INDEX idx_organizations_flowglad_customer_id
            ON organizations (flowglad_customer_id)
            WHERE flowglad_customer_id IS NOT NULL
        """
    )


def downgrade() -> None:
    raise NotImplementedError("Downgrade not supported")
