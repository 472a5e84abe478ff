"""
Mirrors vote events into vote records bound to a mirrored proposal.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from event_mirror.chain.connector import ChainConnectorError
from event_mirror.mirror.address_classifier import AddressExtractor, require_author
from event_mirror.mirror.exceptions import (
    MalformedEventError,
    MissingCorrelationError,
    PersistenceWriteError,
    UnmappedVoteChoiceError,
    UpstreamFetchError,
)
from event_mirror.mirror.proposal_mirror import canonical_index
from event_mirror.mirror.types import ChainEvent, EventMapping, VoteRecord
from event_mirror.mirror.upsert_gateway import RecordUpsertGateway
from event_mirror.storage.base import PROPOSALS, VOTES
from event_mirror.utils.logger import logger

# uintVote code → poll option keyword suffix
VOTE_CHOICES: Dict[int, str] = {
    1: "yes",
    2: "no",
}


def vote_choice(code: Any) -> Optional[str]:
    """Poll option suffix selected by a vote code, or None.

    Only integers and strings of decimal digits count as codes.
    """
    if isinstance(code, bool):
        return None
    if isinstance(code, str) and code.strip().isascii() and code.strip().isdecimal():
        code = int(code.strip())
    if not isinstance(code, int):
        return None
    return VOTE_CHOICES.get(code)


class VoteMirror:
    def __init__(self, connector, extractor: AddressExtractor, gateway: RecordUpsertGateway):
        self.connector = connector
        self.extractor = extractor
        self.gateway = gateway

    async def mirror(self, event: ChainEvent, mapping: EventMapping, collective_id: str) -> List[str]:
        """Persist the vote described by ``event``.

        Returns:
            A one-element list with the vote record id

        Raises:
            MirrorError: When the event has to be skipped
        """
        logger.info(f"[mirror] Mirroring blockchain event as vote with collectiveId: {collective_id}...")
        tx_hash = event.transaction_hash

        scan = await self.extractor.scan(event, collective_id)
        require_author(scan, event)

        try:
            import_id = canonical_index(event.return_values.get("proposalIndex"))
        except ValueError as e:
            raise MalformedEventError(f"Invalid proposalIndex: {e}", transaction_hash=tx_hash) from e

        # Poll options share their parent's importId; only the parent has no pollChoiceId
        proposal = await self.gateway.find_one(
            PROPOSALS, {"importId": import_id, "pollChoiceId": "", "collectiveId": collective_id}
        )
        if not proposal:
            raise MissingCorrelationError(f"Proposal {import_id} is not mirrored yet", transaction_hash=tx_hash)

        choice = vote_choice(event.return_values.get("uintVote"))
        if choice is None:
            raise UnmappedVoteChoiceError(
                f"uintVote {event.return_values.get('uintVote')!r} selects no poll option", transaction_hash=tx_hash
            )

        poll_option = await self.gateway.find_one(PROPOSALS, {"keyword": f"{proposal['keyword']}/{choice}"})
        if not poll_option and not proposal.get("poll"):
            # Mirrored without pollVoting; no option will ever exist
            raise UnmappedVoteChoiceError(
                f"Proposal {proposal['keyword']} has no poll to vote on", transaction_hash=tx_hash
            )
        if not poll_option:
            raise MissingCorrelationError(
                f"Poll option {proposal['keyword']}/{choice} is not mirrored yet", transaction_hash=tx_hash
            )

        try:
            timestamp = await self.connector.get_block_timestamp(event.block_number)
        except ChainConnectorError as e:
            raise UpstreamFetchError(f"Block {event.block_number} unavailable: {e}", transaction_hash=tx_hash) from e

        vote = VoteRecord(
            timestamp=datetime.fromtimestamp(timestamp, tz=timezone.utc),
            contract_ref=proposal["id"],
            poll_ref=poll_option["id"],
            address=proposal["keyword"],
            voter_id=scan.author_id,
            voter_address=scan.author_address,
            collective_id=collective_id,
            block_height=event.block_number,
            transaction_hash=tx_hash,
        )

        vote_id = await self.gateway.upsert(
            VOTES, {"voterId": vote.voter_id, "pollRef": vote.poll_ref}, vote.to_document()
        )
        if vote_id is None:
            raise PersistenceWriteError(f"Vote {tx_hash} was not stored", transaction_hash=tx_hash)
        return [vote_id]
