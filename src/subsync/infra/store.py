"""Keyed record store consumed by the billing core.

The core only needs three operations (field lookup, primary-key lookup and
partial update). Two backends implement them:
- InMemoryRecordStore: dev/tests, per-key locking
- PostgresOrganizationStore (repositories/organizations_repository.py)
"""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Protocol

ORGANIZATIONS = "organizations"

Record = dict[str, Any]


class StoreError(Exception):
    """Backing store failed or was asked for something it cannot do."""


class RecordStore(Protocol):
    """Protocol for keyed record stores.

    Records are plain dicts that always carry their primary key under "id".
    """

    def get_by_field(
        self, collection: str, field: str, value: Any, *, limit: int
    ) -> list[Record]:
        """Return at most `limit` records whose `field` equals `value`, ordered by id."""
        ...

    def get_by_id(self, collection: str, record_id: str) -> Record | None:
        """Return the record with this primary key, or None."""
        ...

    def update(self, collection: str, record_id: str, fields: Mapping[str, Any]) -> bool:
        """Atomically overwrite `fields` on one record. False if it does not exist."""
        ...


class KeyedLock:
    """One mutex per key, created on demand and dropped when unused."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._waiters: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._waiters[key] = self._waiters.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._waiters[key] -= 1
                if self._waiters[key] == 0:
                    del self._waiters[key]
                    del self._locks[key]

    def active_keys(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._locks)


class InMemoryRecordStore:
    """Dict-backed RecordStore.

    Updates to the same record are serialized through a KeyedLock, so a
    multi-field update is never observed half-applied.
    """

    def __init__(self, seed: Mapping[str, Mapping[str, Mapping[str, Any]]] | None = None) -> None:
        self._collections: dict[str, dict[str, Record]] = {}
        self._locks = KeyedLock()
        for collection, records in (seed or {}).items():
            for record_id, fields in records.items():
                self.insert(collection, record_id, fields)

    def insert(self, collection: str, record_id: str, fields: Mapping[str, Any]) -> None:
        """Create or replace a record (test and dev seeding)."""
        with self._locks.hold(f"{collection}/{record_id}"):
            record = dict(fields)
            record["id"] = record_id
            self._collections.setdefault(collection, {})[record_id] = record

    def get_by_field(
        self, collection: str, field: str, value: Any, *, limit: int
    ) -> list[Record]:
        records = list(self._collections.get(collection, {}).values())
        matches = sorted(
            (r for r in records if field in r and r[field] == value),
            key=lambda r: r["id"],
        )
        return [copy.deepcopy(r) for r in matches[:limit]]

    def get_by_id(self, collection: str, record_id: str) -> Record | None:
        record = self._collections.get(collection, {}).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def update(self, collection: str, record_id: str, fields: Mapping[str, Any]) -> bool:
        if "id" in fields:
            raise StoreError("primary key cannot be updated")
        with self._locks.hold(f"{collection}/{record_id}"):
            records = self._collections.get(collection, {})
            current = records.get(record_id)
            if current is None:
                return False
            updated = dict(current)
            updated.update(fields)
            # Single reference swap, readers see old or new, never a mix
            records[record_id] = updated
            return True
