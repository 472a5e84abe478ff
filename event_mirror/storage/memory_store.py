"""
In-process stores with the same contract as the PostgreSQL ones.

Used by ``--dry-run`` worker passes and by the test suite.
"""
import copy
import uuid
from typing import Any, Dict, List, Optional

from event_mirror.mirror.types import Identity
from event_mirror.storage.base import IdentityStoreError, RecordStoreError


def _matches(document: Dict[str, Any], filter: Dict[str, Any]) -> bool:
    return all(document.get(key) == value for key, value in filter.items())


class InMemoryRecordStore:
    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def all(self, collection: str) -> List[Dict[str, Any]]:
        """Snapshot of every document in ``collection`` in insertion order."""
        return [
            {**copy.deepcopy(doc), "id": record_id}
            for record_id, doc in self._collections.get(collection, {}).items()
        ]

    def count(self, collection: str, filter: Optional[Dict[str, Any]] = None) -> int:
        return sum(1 for doc in self._collections.get(collection, {}).values() if _matches(doc, filter or {}))

    async def find_one(self, collection: str, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for record_id, doc in self._collections.get(collection, {}).items():
            if _matches(doc, filter):
                return {**copy.deepcopy(doc), "id": record_id}
        return None

    async def insert(self, collection: str, document: Dict[str, Any]) -> str:
        record_id = uuid.uuid4().hex
        self._collections.setdefault(collection, {})[record_id] = copy.deepcopy(document)
        return record_id

    async def update(self, collection: str, record_id: str, fields: Dict[str, Any]) -> None:
        doc = self._collections.get(collection, {}).get(record_id)
        if doc is None:
            raise RecordStoreError(f"No record {record_id} in {collection}")
        doc.update(copy.deepcopy(fields))


class InMemoryIdentityStore:
    def __init__(self):
        self._by_username: Dict[str, Identity] = {}

    def get(self, username: str) -> Optional[Identity]:
        identity = self._by_username.get(username)
        return identity.model_copy(deep=True) if identity else None

    def __len__(self) -> int:
        return len(self._by_username)

    async def find_or_create(self, username: str) -> Identity:
        identity = self._by_username.get(username)
        if identity is None:
            identity = Identity(id=uuid.uuid4().hex, username=username)
            self._by_username[username] = identity
        return identity.model_copy(deep=True)

    async def update_profile(self, identity_id: str, profile: Dict[str, Any]) -> None:
        for identity in self._by_username.values():
            if identity.id == identity_id:
                identity.profile.update(copy.deepcopy(profile))
                return
        raise IdentityStoreError(f"No identity {identity_id}")
