"""
Mirrors proposal-submission events into proposal records and poll options.
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from event_mirror.chain.connector import ChainConnectorError
from event_mirror.mirror.address_classifier import AddressExtractor, require_author
from event_mirror.mirror.closing import ClosingRule, default_closing_rule
from event_mirror.mirror.exceptions import (
    MalformedEventError,
    PersistenceWriteError,
    UpstreamFetchError,
)
from event_mirror.mirror.titles import TitleRenderer
from event_mirror.mirror.types import ChainEvent, EventMapping, PollEntry, ProposalRecord
from event_mirror.mirror.upsert_gateway import RecordUpsertGateway
from event_mirror.storage.base import PROPOSALS
from event_mirror.utils.logger import logger

# Poll options in index order: "no" is choice 0, "yes" is choice 1
POLL_CHOICES = ("no", "yes")


def canonical_index(value: Any) -> str:
    """Render an on-chain integer as a decimal string of arbitrary width.

    Accepts ints, decimal strings and 0x-prefixed hex strings.

    Raises:
        ValueError: If the value is missing or not an integer
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not an integer: {value!r}")
    if isinstance(value, int):
        return str(value)
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return str(int(text, 16))
    try:
        number = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"not an integer: {value!r}")
    if not number.is_finite() or number != number.to_integral_value():
        raise ValueError(f"not an integer: {value!r}")
    return str(int(number))


def date_path(timestamp: int) -> str:
    """``/year/month/day/`` of a unix timestamp in UTC, without zero padding."""
    date = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return f"/{date.year}/{date.month}/{date.day}/"


class ProposalMirror:
    def __init__(
        self,
        connector,
        extractor: AddressExtractor,
        gateway: RecordUpsertGateway,
        titles: Optional[TitleRenderer] = None,
        closing_rule: ClosingRule = default_closing_rule,
    ):
        self.connector = connector
        self.extractor = extractor
        self.gateway = gateway
        self.titles = titles or TitleRenderer()
        self.closing_rule = closing_rule

    async def mirror(
        self,
        event: ChainEvent,
        mapping: EventMapping,
        state: Mapping[str, Any],
        collective_id: str,
    ) -> List[str]:
        """Persist the proposal described by ``event``.

        Returns:
            Ids of the parent record followed by its poll options, if any

        Raises:
            MirrorError: When the event has to be skipped
        """
        logger.info(f"[mirror] Mirroring blockchain event as proposal with collectiveId: {collective_id}...")
        tx_hash = event.transaction_hash

        scan = await self.extractor.scan(event, collective_id)
        require_author(scan, event)

        try:
            import_id = canonical_index(event.return_values.get("proposalIndex"))
        except ValueError as e:
            raise MalformedEventError(f"Invalid proposalIndex: {e}", transaction_hash=tx_hash) from e

        try:
            timestamp = await self.connector.get_block_timestamp(event.block_number)
        except ChainConnectorError as e:
            raise UpstreamFetchError(f"Block {event.block_number} unavailable: {e}", transaction_hash=tx_hash) from e

        values: Dict[str, Any] = dict(event.return_values)
        applicant_id = scan.identity_for(values.get("applicant"))
        if applicant_id:
            values["applicantId"] = applicant_id

        date = datetime.fromtimestamp(timestamp, tz=timezone.utc)
        proposal = ProposalRecord(
            title=self.titles.render(mapping.rules.title_template, values),
            keyword=tx_hash,
            url=f"{date_path(timestamp)}{tx_hash}",
            date=date,
            calendar=date,
            proposer_address=values.get("delegateKey") or scan.author_address,
            block_height=event.block_number,
            import_id=import_id,
            collective_id=collective_id,
            closing=self.closing_rule(state, event.block_number, timestamp),
            author_id=scan.author_id,
            author_address=scan.author_address,
            transaction_hash=tx_hash,
        )

        parent_id = await self.gateway.upsert(PROPOSALS, {"keyword": proposal.keyword}, proposal.to_document())
        if parent_id is None:
            raise PersistenceWriteError(f"Proposal {proposal.keyword} was not stored", transaction_hash=tx_hash)

        record_ids = [parent_id]
        if mapping.rules.poll_voting:
            record_ids.extend(await self._mirror_poll(proposal, parent_id))
        return record_ids

    async def _mirror_poll(self, proposal: ProposalRecord, parent_id: str) -> List[str]:
        choice_ids = []
        for index, choice in enumerate(POLL_CHOICES):
            option = proposal.model_copy(update={
                "title": self.titles.choice_label(choice),
                "keyword": f"{proposal.keyword}/{choice}",
                "poll_choice_id": str(index),
                "poll_id": parent_id,
            })
            option_id = await self.gateway.upsert(PROPOSALS, {"keyword": option.keyword}, option.to_document())
            if option_id is None:
                raise PersistenceWriteError(
                    f"Poll option {option.keyword} was not stored", transaction_hash=proposal.transaction_hash
                )
            choice_ids.append(option_id)

        poll = [PollEntry(contract_id=option_id).model_dump(by_alias=True) for option_id in choice_ids]
        if not await self.gateway.update(PROPOSALS, parent_id, {"poll": poll}):
            raise PersistenceWriteError(
                f"Poll of {proposal.keyword} was not attached", transaction_hash=proposal.transaction_hash
            )
        logger.info(f"[mirror] Poll added to proposal: {parent_id}")
        return choice_ids
