"""Record and identity stores used by the mirror."""

from event_mirror.storage.base import (
    IdentityStore,
    IdentityStoreError,
    RecordStore,
    RecordStoreError,
)
from event_mirror.storage.memory_store import InMemoryIdentityStore, InMemoryRecordStore

__all__ = [
    "IdentityStore",
    "IdentityStoreError",
    "InMemoryIdentityStore",
    "InMemoryRecordStore",
    "RecordStore",
    "RecordStoreError",
]
