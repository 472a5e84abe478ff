"""
PostgreSQL-backed record and identity stores.

Records of every collection live as JSONB documents in one table; natural-key
lookups use JSONB containment (``doc @> filter``) and updates merge the new
fields into the stored document (``doc || fields``). Identities are keyed by a
unique username so find-or-create is a single atomic statement.
"""
import asyncio
import uuid
from typing import Any, Dict, Optional

import psycopg2
from psycopg2.extras import Json

from event_mirror.mirror.types import Identity
from event_mirror.services.connection_pool import DatabaseConnectionPool, get_connection_pool
from event_mirror.storage.base import IdentityStoreError, RecordStoreError
from event_mirror.utils.logger import logger

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS mirror_records (
        id TEXT PRIMARY KEY,
        collection TEXT NOT NULL,
        doc JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_mirror_records_collection ON mirror_records (collection)",
    "CREATE INDEX IF NOT EXISTS idx_mirror_records_doc ON mirror_records USING GIN (doc jsonb_path_ops)",
    """
    CREATE TABLE IF NOT EXISTS mirror_identities (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        profile JSONB NOT NULL DEFAULT '{}'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
]


def ensure_schema(pool: Optional[DatabaseConnectionPool] = None) -> None:
    """Create the mirror tables and indexes if they do not exist."""
    pool = pool or get_connection_pool()
    with pool.connection() as conn:
        with conn.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)
    logger.info("[store] Mirror schema verified")


class PostgresRecordStore:
    def __init__(self, pool: Optional[DatabaseConnectionPool] = None):
        self._pool = pool

    @property
    def pool(self) -> DatabaseConnectionPool:
        if self._pool is None:
            self._pool = get_connection_pool()
        return self._pool

    def _find_one_sync(self, collection: str, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT id, doc FROM mirror_records
                    WHERE collection = %s AND doc @> %s
                    ORDER BY created_at ASC
                    LIMIT 1
                    """,
                    (collection, Json(filter)),
                )
                row = cur.fetchone()
        if not row:
            return None
        return {**row[1], "id": row[0]}

    def _insert_sync(self, collection: str, document: Dict[str, Any]) -> str:
        record_id = uuid.uuid4().hex
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "INSERT INTO mirror_records (id, collection, doc) VALUES (%s, %s, %s)",
                    (record_id, collection, Json(document)),
                )
        return record_id

    def _update_sync(self, collection: str, record_id: str, fields: Dict[str, Any]) -> None:
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE mirror_records SET doc = doc || %s, updated_at = now()
                    WHERE id = %s AND collection = %s
                    """,
                    (Json(fields), record_id, collection),
                )
                if cur.rowcount == 0:
                    raise RecordStoreError(f"No record {record_id} in {collection}")

    async def _run(self, operation: str, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except RecordStoreError:
            raise
        except (psycopg2.Error, RuntimeError) as e:
            logger.error("[store] %s failed: %s", operation, e, exc_info=True)
            raise RecordStoreError(f"{operation} failed: {e}") from e

    async def find_one(self, collection: str, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._run("find_one", self._find_one_sync, collection, filter)

    async def insert(self, collection: str, document: Dict[str, Any]) -> str:
        return await self._run("insert", self._insert_sync, collection, document)

    async def update(self, collection: str, record_id: str, fields: Dict[str, Any]) -> None:
        await self._run("update", self._update_sync, collection, record_id, fields)


class PostgresIdentityStore:
    def __init__(self, pool: Optional[DatabaseConnectionPool] = None):
        self._pool = pool

    @property
    def pool(self) -> DatabaseConnectionPool:
        if self._pool is None:
            self._pool = get_connection_pool()
        return self._pool

    def _find_or_create_sync(self, username: str) -> Identity:
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO mirror_identities (id, username) VALUES (%s, %s)
                    ON CONFLICT (username) DO NOTHING
                    """,
                    (uuid.uuid4().hex, username),
                )
                cur.execute(
                    "SELECT id, username, profile FROM mirror_identities WHERE username = %s",
                    (username,),
                )
                row = cur.fetchone()
        if not row:
            raise IdentityStoreError(f"Identity {username} vanished after creation")
        return Identity(id=row[0], username=row[1], profile=row[2] if isinstance(row[2], dict) else {})

    def _update_profile_sync(self, identity_id: str, profile: Dict[str, Any]) -> None:
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE mirror_identities SET profile = profile || %s WHERE id = %s",
                    (Json(profile), identity_id),
                )
                if cur.rowcount == 0:
                    raise IdentityStoreError(f"No identity {identity_id}")

    async def find_or_create(self, username: str) -> Identity:
        try:
            return await asyncio.to_thread(self._find_or_create_sync, username)
        except IdentityStoreError:
            raise
        except (psycopg2.Error, RuntimeError) as e:
            logger.error("[store] find_or_create(%s) failed: %s", username, e, exc_info=True)
            raise IdentityStoreError(f"find_or_create failed: {e}") from e

    async def update_profile(self, identity_id: str, profile: Dict[str, Any]) -> None:
        try:
            await asyncio.to_thread(self._update_profile_sync, identity_id, profile)
        except IdentityStoreError:
            raise
        except (psycopg2.Error, RuntimeError) as e:
            logger.error("[store] update_profile(%s) failed: %s", identity_id, e, exc_info=True)
            raise IdentityStoreError(f"update_profile failed: {e}") from e
