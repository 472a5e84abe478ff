"""
Dispatches batches of chain events to the mirror that owns them.
"""
from typing import Any, Iterable, Mapping, Optional, Sequence

from event_mirror.mirror.exceptions import MirrorError
from event_mirror.mirror.proposal_mirror import ProposalMirror
from event_mirror.mirror.types import (
    BatchReport,
    ChainEvent,
    CollectionType,
    EventMapping,
    MirroredEvent,
    SkippedEvent,
)
from event_mirror.mirror.vote_mirror import VoteMirror
from event_mirror.storage.base import PROPOSALS, VOTES
from event_mirror.utils.logger import logger

DEFAULT_PROPOSAL_EVENTS = ("SubmitProposal",)
DEFAULT_VOTE_EVENTS = ("SubmitVote",)


class EventRouter:
    """
    Routes events by their mapping entry.

    Events are handled one at a time in delivery order, with no reordering
    or deduplication; idempotent record keys absorb re-deliveries. A failing
    event is logged and reported, and the batch moves on.
    """

    def __init__(
        self,
        proposal_mirror: ProposalMirror,
        vote_mirror: VoteMirror,
        proposal_events: Optional[Iterable[str]] = None,
        vote_events: Optional[Iterable[str]] = None,
    ):
        self.proposal_mirror = proposal_mirror
        self.vote_mirror = vote_mirror
        self.proposal_events = frozenset(proposal_events or DEFAULT_PROPOSAL_EVENTS)
        self.vote_events = frozenset(vote_events or DEFAULT_VOTE_EVENTS)

    async def dispatch(
        self,
        events: Sequence[ChainEvent],
        mappings: Sequence[EventMapping],
        state: Mapping[str, Any],
        collective_id: str,
    ) -> BatchReport:
        logger.info("[router] Writing %d events found on the blockchain to local database...", len(events))
        report = BatchReport()

        for event in events:
            matches = [m for m in mappings if m.event_name == event.event_name]
            if not matches:
                report.ignored += 1
                continue
            for mapping in matches:
                logger.info(f"[router] Processing event: {event.event_name} as {mapping.collection_type.value}")
                await self._route(event, mapping, state, collective_id, report)

        logger.info(
            "[router] Batch done: %d mirrored, %d skipped (%d retryable), %d ignored",
            len(report.mirrored), len(report.skipped), len(report.retryable), report.ignored,
        )
        return report

    async def _route(
        self,
        event: ChainEvent,
        mapping: EventMapping,
        state: Mapping[str, Any],
        collective_id: str,
        report: BatchReport,
    ) -> None:
        if mapping.collection_type != CollectionType.PROPOSAL:
            # Vote-typed mappings are reserved; Ignored mappings never write
            report.ignored += 1
            return

        try:
            if event.event_name in self.proposal_events:
                record_ids = await self.proposal_mirror.mirror(event, mapping, state, collective_id)
                collection = PROPOSALS
            elif event.event_name in self.vote_events:
                record_ids = await self.vote_mirror.mirror(event, mapping, collective_id)
                collection = VOTES
            else:
                report.ignored += 1
                return
        except MirrorError as e:
            details = e.to_dict()
            logger.warning(f"[router] Skipped {event.event_name}: {details}")
            report.skipped.append(SkippedEvent(
                transaction_hash=e.transaction_hash or event.transaction_hash,
                event_name=event.event_name,
                reason=details["error_message"],
                retryable=details["retryable"],
                error_type=details["error_type"],
            ))
            return
        except Exception as e:
            logger.error(
                f"[router] Unexpected error mirroring {event.event_name} {event.transaction_hash}: {e}",
                exc_info=True,
            )
            report.skipped.append(SkippedEvent(
                transaction_hash=event.transaction_hash,
                event_name=event.event_name,
                reason=str(e),
                retryable=True,
                error_type=type(e).__name__,
            ))
            return

        report.mirrored.append(MirroredEvent(
            transaction_hash=event.transaction_hash,
            event_name=event.event_name,
            collection=collection,
            record_ids=record_ids,
        ))
