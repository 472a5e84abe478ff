"""
Pydantic models and report types for the event-mirroring engine.

Field names are snake_case in Python; the camelCase aliases match the shapes
produced by the chain connector, the tracked-contract configuration and the
persisted documents.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ==================
# Enums
# ==================

class MembershipRole(str, Enum):
    """Function an address plays within a single event payload."""
    DELEGATE = "DELEGATE"
    MEMBER = "MEMBER"
    APPLICANT = "APPLICANT"
    ADDRESS = "ADDRESS"


class CollectionType(str, Enum):
    """Local collection an event mapping writes into."""
    PROPOSAL = "Proposal"
    VOTE = "Vote"
    IGNORED = "Ignored"


# Names used by older tracked-contract configurations
_LEGACY_COLLECTION_NAMES = {
    "contract": CollectionType.PROPOSAL,
    "transaction": CollectionType.VOTE,
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ==================
# Chain inputs
# ==================

class ChainEvent(_CamelModel):
    """An immutable contract event as delivered by the chain connector."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    event_name: str
    return_values: Dict[str, Any] = Field(default_factory=dict)
    block_number: int
    transaction_hash: str
    log_index: Optional[int] = None
    address: Optional[str] = None

    @field_validator("return_values", mode="before")
    @classmethod
    def _drop_positional_keys(cls, value: Any) -> Dict[str, Any]:
        # Some ABI decoders repeat every argument under its position ("0", "1", ...)
        if value is None:
            return {}
        return {str(k): v for k, v in dict(value).items() if not str(k).isdigit()}


class MappingRules(_CamelModel):
    """Behaviour flags attached to an event mapping."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    poll_voting: bool = False
    title_template: Optional[str] = None


class EventMapping(_CamelModel):
    """Declarative rule translating one event name into a local collection."""
    event_name: str
    collection_type: CollectionType = CollectionType.IGNORED
    rules: MappingRules = Field(default_factory=MappingRules)

    @field_validator("collection_type", mode="before")
    @classmethod
    def _accept_legacy_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            legacy = _LEGACY_COLLECTION_NAMES.get(value.strip().lower())
            if legacy is not None:
                return legacy
            for member in CollectionType:
                if member.value.lower() == value.strip().lower():
                    return member
        return value


class ContractParameter(_CamelModel):
    """A named on-chain parameter read before mirroring."""
    name: str
    args: List[Any] = Field(default_factory=list)


class ContractDescriptor(_CamelModel):
    """Configuration of one tracked contract."""
    public_address: str
    abi: Any
    parameter: List[ContractParameter] = Field(default_factory=list)
    map: List[EventMapping] = Field(default_factory=list)
    collective_id: Optional[str] = None
    start_block: Optional[int] = None


# ==================
# Derived records
# ==================

class PollEntry(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    contract_id: str
    total_staked: str = "0"


class ProposalRecord(_CamelModel):
    """A mirrored proposal, or one of its poll options."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    title: str
    keyword: str
    url: str
    date: datetime
    calendar: datetime
    proposer_address: Optional[str] = None
    block_height: int
    import_id: str
    poll_choice_id: str = ""
    poll_id: str = ""
    collective_id: str
    closing: Dict[str, Any] = Field(default_factory=dict)
    author_id: str
    author_address: str
    transaction_hash: str

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class VoteRecord(_CamelModel):
    """A mirrored vote bound to a proposal and one of its poll options."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    timestamp: datetime
    contract_ref: str
    poll_ref: str
    address: str
    voter_id: str
    voter_address: str
    collective_id: str
    block_height: int
    transaction_hash: str

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Identity(BaseModel):
    """Local identity keyed by a lowercased address used as username."""
    id: str
    username: str
    profile: Dict[str, Any] = Field(default_factory=dict)


# ==================
# Address scan and batch reports
# ==================

@dataclass
class ScannedAddress:
    address: str
    role: MembershipRole
    identity_id: Optional[str] = None


@dataclass
class AddressScan:
    """Addresses found in one event, with the author candidate if any."""
    addresses: List[ScannedAddress] = field(default_factory=list)
    author_address: Optional[str] = None
    author_id: Optional[str] = None

    @property
    def author_unresolved(self) -> bool:
        """An author address was found but the identity store did not answer."""
        return self.author_address is not None and self.author_id is None

    def identity_for(self, address: Optional[str]) -> Optional[str]:
        if not isinstance(address, str):
            return None
        wanted = address.lower()
        for scanned in self.addresses:
            if scanned.address.lower() == wanted:
                return scanned.identity_id
        return None


@dataclass
class MirroredEvent:
    transaction_hash: str
    event_name: str
    collection: str
    record_ids: List[str] = field(default_factory=list)


@dataclass
class SkippedEvent:
    transaction_hash: str
    event_name: str
    reason: str
    retryable: bool
    error_type: str = ""


@dataclass
class BatchReport:
    """Outcome of dispatching one batch of events."""
    mirrored: List[MirroredEvent] = field(default_factory=list)
    skipped: List[SkippedEvent] = field(default_factory=list)
    ignored: int = 0

    @property
    def processed(self) -> int:
        return len(self.mirrored) + len(self.skipped) + self.ignored

    @property
    def retryable(self) -> List[SkippedEvent]:
        return [s for s in self.skipped if s.retryable]

    def merge(self, other: "BatchReport") -> "BatchReport":
        self.mirrored.extend(other.mirrored)
        self.skipped.extend(other.skipped)
        self.ignored += other.ignored
        return self
