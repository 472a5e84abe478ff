"""
Idempotent find-by-natural-key, update-or-insert over a record store.
"""
import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from event_mirror.storage.base import RecordStore, RecordStoreError
from event_mirror.utils.logger import logger


class RecordUpsertGateway:
    """
    Upserts documents by natural key.

    Store failures never escape: they are logged and the caller gets the id
    the lookup produced (or None). A None id means the record state is
    unknown and the whole event is safe to retry.

    Check-and-set for one natural key is serialized with an asyncio lock, so
    two coroutines of the same process mirroring the same event cannot both
    insert. Atomicity across processes is up to the store.
    """

    def __init__(self, store: RecordStore):
        self.store = store
        self._locks: Dict[Tuple[str, str], Tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def _key_lock(self, collection: str, natural_key: Dict[str, Any]) -> AsyncIterator[None]:
        key = (collection, json.dumps(natural_key, sort_keys=True, default=str))
        lock, users = self._locks.get(key, (asyncio.Lock(), 0))
        self._locks[key] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)

    async def find_one(self, collection: str, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            return await self.store.find_one(collection, filter)
        except RecordStoreError as e:
            logger.error(f"[gateway] Lookup in {collection} failed for {filter}: {e}")
            return None

    async def update(self, collection: str, record_id: str, fields: Dict[str, Any]) -> bool:
        try:
            await self.store.update(collection, record_id, fields)
            return True
        except RecordStoreError as e:
            logger.error(f"[gateway] Update of {collection}/{record_id} failed: {e}")
            return False

    async def upsert(self, collection: str, natural_key: Dict[str, Any], fields: Dict[str, Any]) -> Optional[str]:
        """Update the record matching ``natural_key`` or insert a new one.

        Args:
            collection: Target collection name
            natural_key: Equality filter identifying the record
            fields: Fields to merge into (or create) the record

        Returns:
            The existing or new record id, or None if nothing could be
            looked up or inserted
        """
        async with self._key_lock(collection, natural_key):
            try:
                existing = await self.store.find_one(collection, natural_key)
            except RecordStoreError as e:
                logger.error(f"[gateway] Lookup in {collection} failed for {natural_key}: {e}")
                return None

            if existing:
                logger.info(f"[gateway] Updating existing {collection} record {existing['id']}...")
                try:
                    await self.store.update(collection, existing["id"], fields)
                except RecordStoreError as e:
                    logger.error(f"[gateway] Update of {collection}/{existing['id']} failed: {e}")
                return existing["id"]

            logger.info(f"[gateway] Inserting new {collection} record..")
            try:
                return await self.store.insert(collection, fields)
            except RecordStoreError as e:
                logger.error(f"[gateway] Insert into {collection} failed: {e}")
                return None
