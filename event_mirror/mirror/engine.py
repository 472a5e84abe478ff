"""
Entry points of the event-mirroring engine.

``MirrorEngine`` wires the classifier, identity resolver, upsert gateway,
mirrors and router around the injected chain connector and stores.
"""
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from event_mirror.chain.connector import ChainConnector, ChainConnectorError
from event_mirror.mirror.address_classifier import AddressExtractor
from event_mirror.mirror.closing import ClosingRule, default_closing_rule
from event_mirror.mirror.event_router import EventRouter
from event_mirror.mirror.identity_resolver import IdentityResolver
from event_mirror.mirror.proposal_mirror import ProposalMirror
from event_mirror.mirror.state_snapshotter import StateSnapshotter
from event_mirror.mirror.titles import TitleRenderer
from event_mirror.mirror.types import BatchReport, ChainEvent, ContractDescriptor, EventMapping
from event_mirror.mirror.upsert_gateway import RecordUpsertGateway
from event_mirror.mirror.vote_mirror import VoteMirror
from event_mirror.storage.base import IdentityStore, RecordStore
from event_mirror.utils.logger import logger

DEFAULT_START_BLOCK = 5000000


class MirrorEngine:
    def __init__(
        self,
        connector: ChainConnector,
        identity_store: IdentityStore,
        record_store: RecordStore,
        titles: Optional[TitleRenderer] = None,
        closing_rule: ClosingRule = default_closing_rule,
        proposal_events: Optional[Iterable[str]] = None,
        vote_events: Optional[Iterable[str]] = None,
        start_block: int = DEFAULT_START_BLOCK,
    ):
        self.connector = connector
        self.start_block = start_block
        self.gateway = RecordUpsertGateway(record_store)
        self.extractor = AddressExtractor(IdentityResolver(identity_store))
        self.snapshotter = StateSnapshotter(connector)
        self.router = EventRouter(
            ProposalMirror(connector, self.extractor, self.gateway, titles, closing_rule),
            VoteMirror(connector, self.extractor, self.gateway),
            proposal_events=proposal_events,
            vote_events=vote_events,
        )

    async def mirror_batch(
        self,
        events: Sequence[ChainEvent],
        mappings: Sequence[EventMapping],
        state: Mapping[str, Any],
        collective_id: str,
    ) -> BatchReport:
        """Mirror a delivered batch of events of one tracked contract."""
        return await self.router.dispatch(events, mappings, state, collective_id)

    async def snapshot_state(self, descriptor: ContractDescriptor) -> Dict[str, Any]:
        """Current values of the descriptor's declared parameters."""
        return await self.snapshotter.snapshot(descriptor)

    async def sync_contract(
        self,
        descriptor: ContractDescriptor,
        collective_id: Optional[str] = None,
        from_block: Optional[int] = None,
    ) -> BatchReport:
        """Snapshot state, fetch past events and mirror them.

        A failed event fetch is logged and yields an empty report; the next
        sync pass re-reads the same range.
        """
        collective = collective_id or descriptor.collective_id
        if not collective:
            raise ValueError(f"No collectiveId for contract {descriptor.public_address}")
        if not descriptor.map:
            logger.info(f"[engine] No event map for {descriptor.public_address}, nothing to mirror")
            return BatchReport()

        state = await self.snapshot_state(descriptor)
        start = from_block if from_block is not None else (descriptor.start_block or self.start_block)
        try:
            events = await self.connector.get_past_events(descriptor, from_block=start)
        except ChainConnectorError as e:
            logger.error(f"[engine] Error fetching log data for {descriptor.public_address}: {e}")
            return BatchReport()

        if not events:
            return BatchReport()
        logger.info(f"[engine] Events consist of: {sorted({event.event_name for event in events})}")
        return await self.mirror_batch(events, descriptor.map, state, collective)
