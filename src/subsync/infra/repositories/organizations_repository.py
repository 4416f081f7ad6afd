"""Organizations repository - persistence for organization subscription records.

Uses raw SQL with psycopg2 (no ORM). Record field names are the camelCase
names the rest of the service uses; they are mapped to snake_case columns here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

import psycopg2
from psycopg2.extensions import cursor as PgCursor

from subsync.infra.db import fetchall, fetchone, select_for_update, txn
from subsync.infra.store import ORGANIZATIONS, Record, StoreError
from subsync.infra.time import to_iso_utc

# Record field -> column. Only these fields can be queried or written.
FIELD_COLUMNS: dict[str, str] = {
    "id": "id",
    "name": "name",
    "subscriptionTier": "subscription_tier",
    "subscriptionStatus": "subscription_status",
    "billingInterval": "billing_interval",
    "flowgladCustomerId": "flowglad_customer_id",
    "flowgladSubscriptionId": "flowglad_subscription_id",
    "trialEnd": "trial_end",
}

_SELECT_COLUMNS = ", ".join(FIELD_COLUMNS.values())


def _column(field: str) -> str:
    try:
        return FIELD_COLUMNS[field]
    except KeyError:
        raise StoreError(f"unknown organization field: {field}") from None


def _row_to_record(row: tuple[Any, ...]) -> Record:
    record: Record = {}
    for field, value in zip(FIELD_COLUMNS, row):
        if isinstance(value, datetime):
            value = to_iso_utc(value)
        record[field] = value
    record["id"] = str(record["id"])
    return record


def find_organizations_by_field(
    cur: PgCursor,
    *,
    field: str,
    value: Any,
    limit: int,
) -> list[Record]:
    """Find organizations where field == value, ordered by id.

    Args:
        cur: Database cursor.
        field: Record field name (camelCase).
        value: Value to match.
        limit: Maximum number of rows.

    Returns:
        List of organization records.
    """
    rows = fetchall(
        cur,
        f"""
        SELECT {_SELECT_COLUMNS}
        FROM organizations
        WHERE {_column(field)} = %s
        ORDER BY id
        LIMIT %s
        """,
        (value, limit),
    )
    return [_row_to_record(row) for row in rows]


def get_organization(cur: PgCursor, organization_id: str) -> Record | None:
    """Get an organization by primary key."""
    row = fetchone(
        cur,
        f"SELECT {_SELECT_COLUMNS} FROM organizations WHERE id = %s",
        (organization_id,),
    )
    return _row_to_record(row) if row else None


def update_organization_fields(
    cur: PgCursor,
    *,
    organization_id: str,
    fields: Mapping[str, Any],
) -> bool:
    """Overwrite fields on one organization in a single UPDATE.

    The row is locked first so concurrent webhook deliveries for the same
    organization apply one after the other.

    Returns:
        True if the organization exists and was updated.

    Raises:
        StoreError: If a field is unknown or the primary key is targeted.
    """
    if not fields:
        return get_organization(cur, organization_id) is not None
    if "id" in fields:
        raise StoreError("primary key cannot be updated")

    assignments = ", ".join(f"{_column(f)} = %s" for f in fields)

    locked = select_for_update(
        cur,
        "SELECT id FROM organizations WHERE id = %s",
        (organization_id,),
    )
    if locked is None:
        return False

    cur.execute(
        f"""
        UPDATE organizations
        SET {assignments}, updated_at = now()
        WHERE id = %s
        """,
        (*fields.values(), organization_id),
    )
    return cur.rowcount == 1


class PostgresOrganizationStore:
    """RecordStore backed by the organizations table.

    Each call runs in its own short transaction. Only the organizations
    collection exists.
    """

    def _check_collection(self, collection: str) -> None:
        if collection != ORGANIZATIONS:
            raise StoreError(f"unsupported collection: {collection}")

    def get_by_field(
        self, collection: str, field: str, value: Any, *, limit: int
    ) -> list[Record]:
        self._check_collection(collection)
        try:
            with txn() as cur:
                return find_organizations_by_field(cur, field=field, value=value, limit=limit)
        except psycopg2.Error as e:
            raise StoreError("organization lookup failed") from e

    def get_by_id(self, collection: str, record_id: str) -> Record | None:
        self._check_collection(collection)
        try:
            with txn() as cur:
                return get_organization(cur, record_id)
        except psycopg2.Error as e:
            raise StoreError("organization read failed") from e

    def update(self, collection: str, record_id: str, fields: Mapping[str, Any]) -> bool:
        self._check_collection(collection)
        try:
            with txn() as cur:
                return update_organization_fields(
                    cur, organization_id=record_id, fields=fields
                )
        except psycopg2.Error as e:
            raise StoreError("organization update failed") from e
