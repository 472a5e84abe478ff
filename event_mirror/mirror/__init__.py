"""
Event-mirroring engine.

Mirrors contract events into proposal and vote records with idempotent,
natural-key upserts. See ``engine.MirrorEngine`` for the entry points.
"""

from event_mirror.mirror.exceptions import (
    MalformedEventError,
    MirrorError,
    MissingCorrelationError,
    PersistenceWriteError,
    UnmappedVoteChoiceError,
    UnresolvableAuthorError,
    UpstreamFetchError,
)
from event_mirror.mirror.types import (
    BatchReport,
    ChainEvent,
    CollectionType,
    ContractDescriptor,
    EventMapping,
    MembershipRole,
)

__all__ = [
    "BatchReport",
    "ChainEvent",
    "CollectionType",
    "ContractDescriptor",
    "EventMapping",
    "MalformedEventError",
    "MembershipRole",
    "MirrorError",
    "MissingCorrelationError",
    "PersistenceWriteError",
    "UnmappedVoteChoiceError",
    "UnresolvableAuthorError",
    "UpstreamFetchError",
]
