"""Tests for database layer."""

import os
from unittest.mock import MagicMock, patch

import pytest

from subsync.infra.db import get_conn, select_for_update, txn


class TestGetConnPasswordFallback:
    """DB_PASSWORD fallback in get_conn(), no real DB needed."""

    def test_db_password_fallback_dsn_without_password(self):
        env = {"DATABASE_URL": "dbname=db user=u host=h port=5432", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("subsync.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with(
                "dbname=db user=u host=h port=5432",
                password="from-env",
            )

    def test_db_password_not_used_when_dsn_has_password(self):
        env = {"DATABASE_URL": "dbname=db user=u password=from-dsn host=h", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("subsync.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with("dbname=db user=u password=from-dsn host=h")

    def test_db_password_fallback_url_without_password(self):
        env = {"DATABASE_URL": "postgres://u@h/db", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("subsync.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with("postgres://u@h/db", password="from-env")

    def test_db_password_not_used_when_url_has_password(self):
        env = {"DATABASE_URL": "postgres://u:p@h/db", "DB_PASSWORD": "from-env"}
        with patch.dict(os.environ, env, clear=True), \
             patch("subsync.infra.db.psycopg2.connect", return_value=MagicMock()) as mock_connect:
            get_conn()
            mock_connect.assert_called_once_with("postgres://u:p@h/db")

    def test_raises_without_database_url(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(RuntimeError, match="DATABASE_URL"):
                get_conn()


class TestTxn:
    @pytest.fixture
    def conn(self):
        conn = MagicMock()
        with patch("subsync.infra.db.get_conn", return_value=conn):
            yield conn

    def test_commits_and_closes_on_success(self, conn):
        with txn() as cur:
            cur.execute("SELECT 1")
        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        conn.close.assert_called_once()

    def test_rolls_back_and_closes_on_exception(self, conn):
        with pytest.raises(ValueError):
            with txn():
                raise ValueError("rollback test")
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        conn.close.assert_called_once()


class TestSelectForUpdate:
    def test_appends_lock_clause(self):
        cur = MagicMock()
        cur.fetchone.return_value = ("org-1",)

        row = select_for_update(cur, "SELECT id FROM organizations WHERE id = %s;", ("org-1",))

        assert row == ("org-1",)
        cur.execute.assert_called_once_with(
            "SELECT id FROM organizations WHERE id = %s FOR UPDATE", ("org-1",)
        )

    def test_missing_row(self):
        cur = MagicMock()
        cur.fetchone.return_value = None
        assert select_for_update(cur, "SELECT id FROM organizations WHERE id = %s", ("x",)) is None
