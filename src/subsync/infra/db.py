"""Postgres access for the organization store (psycopg2, raw SQL).

Every store call runs in its own short transaction opened by txn(); there
is no pool, webhook traffic is low and bursty.
"""

import os
from contextlib import contextmanager
from typing import Any, Iterator, Sequence
from urllib.parse import urlparse

import psycopg2
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor

Row = tuple[Any, ...]


def _dsn_has_password(dsn: str) -> bool:
    if "://" in dsn:
        return bool(urlparse(dsn).password)
    return any(part.startswith("password=") for part in dsn.split())


def get_conn() -> PgConnection:
    """Open a connection to DATABASE_URL.

    DB_PASSWORD is passed separately when the DSN itself carries no password
    (secret-manager deployments keep the password out of the URL).

    Raises:
        RuntimeError: If DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")

    db_password = os.environ.get("DB_PASSWORD")
    if db_password and not _dsn_has_password(dsn):
        return psycopg2.connect(dsn, password=db_password)
    return psycopg2.connect(dsn)


@contextmanager
def txn() -> Iterator[PgCursor]:
    """Yield a cursor on a fresh connection; commit on success, roll back on error.

    The connection is closed on exit either way, releasing any row locks.
    """
    conn = get_conn()
    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur: PgCursor, query: str, params: Sequence[Any]) -> Row | None:
    cur.execute(query, params)
    return cur.fetchone()


def fetchall(cur: PgCursor, query: str, params: Sequence[Any]) -> list[Row]:
    cur.execute(query, params)
    return cur.fetchall()


def select_for_update(cur: PgCursor, query: str, params: Sequence[Any]) -> Row | None:
    """Run a single-row SELECT with FOR UPDATE appended.

    The row stays locked until the surrounding txn() ends, so concurrent
    writers to the same organization queue behind each other.
    """
    cur.execute(query.rstrip().rstrip(";") + " FOR UPDATE", params)
    return cur.fetchone()
