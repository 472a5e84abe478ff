"""Tests for the PostgreSQL stores against a mocked connection pool."""
from contextlib import contextmanager
from unittest.mock import MagicMock

import psycopg2
import pytest

from event_mirror.storage.base import IdentityStoreError, RecordStoreError
from event_mirror.storage.postgres_store import (
    SCHEMA_STATEMENTS,
    PostgresIdentityStore,
    PostgresRecordStore,
    ensure_schema,
)


class FakePool:
    """Hands out one mocked connection whose cursor the test scripts."""

    def __init__(self):
        self.cursor = MagicMock()
        self.cursor.rowcount = 1
        self.conn = MagicMock()
        self.conn.cursor.return_value.__enter__.return_value = self.cursor

    @contextmanager
    def connection(self):
        yield self.conn


@pytest.fixture
def pool():
    return FakePool()


def test_ensure_schema_runs_every_statement(pool):
    ensure_schema(pool)
    assert pool.cursor.execute.call_count == len(SCHEMA_STATEMENTS)


class TestPostgresRecordStore:
    async def test_find_one_uses_containment(self, pool):
        pool.cursor.fetchone.return_value = ("r1", {"keyword": "0xT1"})
        store = PostgresRecordStore(pool)

        found = await store.find_one("proposals", {"keyword": "0xT1"})

        assert found == {"keyword": "0xT1", "id": "r1"}
        sql, params = pool.cursor.execute.call_args[0]
        assert "doc @> %s" in sql
        assert params[0] == "proposals"
        assert params[1].adapted == {"keyword": "0xT1"}

    async def test_find_one_without_match(self, pool):
        pool.cursor.fetchone.return_value = None
        assert await PostgresRecordStore(pool).find_one("proposals", {"keyword": "x"}) is None

    async def test_insert_returns_generated_id(self, pool):
        store = PostgresRecordStore(pool)

        record_id = await store.insert("votes", {"voterId": "u1"})

        params = pool.cursor.execute.call_args[0][1]
        assert params[0] == record_id
        assert params[1] == "votes"

    async def test_update_of_missing_row(self, pool):
        pool.cursor.rowcount = 0

        with pytest.raises(RecordStoreError):
            await PostgresRecordStore(pool).update("proposals", "missing", {"poll": []})

    async def test_driver_errors_are_wrapped(self, pool):
        pool.cursor.execute.side_effect = psycopg2.OperationalError("server closed the connection")

        with pytest.raises(RecordStoreError):
            await PostgresRecordStore(pool).insert("proposals", {})

    async def test_pool_backoff_is_wrapped(self):
        pool = MagicMock()
        pool.connection.side_effect = RuntimeError("Database connection pool in backoff mode.")

        with pytest.raises(RecordStoreError):
            await PostgresRecordStore(pool).find_one("proposals", {})


class TestPostgresIdentityStore:
    async def test_find_or_create(self, pool):
        pool.cursor.fetchone.return_value = ("i1", "0xabc", {"membership": "MEMBER"})

        identity = await PostgresIdentityStore(pool).find_or_create("0xabc")

        assert identity.id == "i1"
        assert identity.profile == {"membership": "MEMBER"}
        insert_sql = pool.cursor.execute.call_args_list[0][0][0]
        assert "ON CONFLICT (username) DO NOTHING" in insert_sql

    async def test_update_profile_of_missing_identity(self, pool):
        pool.cursor.rowcount = 0

        with pytest.raises(IdentityStoreError):
            await PostgresIdentityStore(pool).update_profile("missing", {"membership": "MEMBER"})

    async def test_driver_errors_are_wrapped(self, pool):
        pool.cursor.execute.side_effect = psycopg2.InterfaceError("connection already closed")

        with pytest.raises(IdentityStoreError):
            await PostgresIdentityStore(pool).find_or_create("0xabc")
