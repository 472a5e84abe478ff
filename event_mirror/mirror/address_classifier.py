"""
Address classification and extraction for chain event payloads.

An address's role is decided by the payload field it appears under, looked up
in ``ROLE_FIELDS``. New roles or field names are added to the table, not to
the scanning code.
"""
from typing import Any, Dict, List, Mapping, Optional, Tuple

from event_mirror.chain.addresses import is_address, normalize_address
from event_mirror.mirror.exceptions import PersistenceWriteError, UnresolvableAuthorError
from event_mirror.mirror.identity_resolver import IdentityResolver
from event_mirror.mirror.types import AddressScan, ChainEvent, MembershipRole, ScannedAddress
from event_mirror.utils.logger import logger

ROLE_FIELDS: Tuple[Tuple[str, MembershipRole], ...] = (
    ("delegateKey", MembershipRole.DELEGATE),
    ("memberAddress", MembershipRole.MEMBER),
    ("applicant", MembershipRole.APPLICANT),
)

_ROLE_BY_FIELD: Dict[str, MembershipRole] = dict(ROLE_FIELDS)

AUTHOR_ROLE = MembershipRole.MEMBER


def classify_address(return_values: Mapping[str, Any], address: str) -> Optional[MembershipRole]:
    """Role of ``address`` in an event payload.

    The first field, in declaration order, whose value is the same address
    decides the role; fields missing from ``ROLE_FIELDS`` give ``ADDRESS``.
    Returns None when the address does not appear in the payload.
    """
    wanted = normalize_address(address)
    if wanted is None:
        return None
    for key, value in return_values.items():
        if normalize_address(value) == wanted:
            return _ROLE_BY_FIELD.get(key, MembershipRole.ADDRESS)
    return None


def extract_addresses(return_values: Mapping[str, Any]) -> List[str]:
    """Distinct address-valued strings of a payload in first-occurrence order."""
    seen = set()
    addresses = []
    for value in return_values.values():
        if not is_address(value):
            continue
        key = value.lower()
        if key in seen:
            continue
        seen.add(key)
        addresses.append(value)
    return addresses


def require_author(scan: AddressScan, event: ChainEvent) -> None:
    """Raise unless ``scan`` carries an author with a resolved identity.

    Raises:
        PersistenceWriteError: The author was found but its identity could not be stored
        UnresolvableAuthorError: The payload has no MEMBER address
    """
    if scan.author_unresolved:
        raise PersistenceWriteError(
            f"Identity of author {scan.author_address} could not be stored",
            transaction_hash=event.transaction_hash,
        )
    if not scan.author_address:
        raise UnresolvableAuthorError(
            f"No member address resolved in {event.event_name}", transaction_hash=event.transaction_hash
        )


class AddressExtractor:
    """Classifies every address in an event and provisions its identity."""

    def __init__(self, identity_resolver: IdentityResolver):
        self.identity_resolver = identity_resolver

    async def scan(self, event: ChainEvent, collective_id: str) -> AddressScan:
        scan = AddressScan()
        for address in extract_addresses(event.return_values):
            role = classify_address(event.return_values, address)
            identity_id = await self.identity_resolver.try_resolve(address, role, collective_id)
            scan.addresses.append(ScannedAddress(address=address, role=role, identity_id=identity_id))
            if role == AUTHOR_ROLE:
                # A later MEMBER address replaces an earlier one
                scan.author_address = address.lower()
                scan.author_id = identity_id

        logger.debug(
            "[mirror] %s: %d addresses, author=%s",
            event.transaction_hash, len(scan.addresses), scan.author_address,
        )
        return scan
