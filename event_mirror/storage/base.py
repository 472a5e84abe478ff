"""
Store contracts consumed by the mirror.

Both protocols are asynchronous: every read and write is a suspension point.
Implementations raise ``RecordStoreError`` / ``IdentityStoreError`` for
failures of the underlying storage engine.
"""
from typing import Any, Dict, Optional, Protocol

from event_mirror.mirror.types import Identity

PROPOSALS = "proposals"
VOTES = "votes"


class RecordStoreError(Exception):
    """The record storage engine failed to serve a request."""


class IdentityStoreError(Exception):
    """The identity storage engine failed to serve a request."""


class RecordStore(Protocol):
    async def find_one(self, collection: str, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """First document whose fields equal every entry of ``filter``.

        The returned document carries its id under ``"id"``.
        """
        ...

    async def insert(self, collection: str, document: Dict[str, Any]) -> str:
        ...

    async def update(self, collection: str, record_id: str, fields: Dict[str, Any]) -> None:
        """Merge ``fields`` into an existing document."""
        ...


class IdentityStore(Protocol):
    async def find_or_create(self, username: str) -> Identity:
        ...

    async def update_profile(self, identity_id: str, profile: Dict[str, Any]) -> None:
        """Merge top-level ``profile`` keys into the identity's profile."""
        ...
