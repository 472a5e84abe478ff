"""Tests for mirroring proposal-submission events."""
from unittest.mock import AsyncMock

import pytest

from event_mirror.chain.connector import ChainConnectorError
from event_mirror.mirror.exceptions import (
    MalformedEventError,
    PersistenceWriteError,
    UnresolvableAuthorError,
    UpstreamFetchError,
)
from event_mirror.mirror.proposal_mirror import canonical_index, date_path
from event_mirror.mirror.types import ChainEvent, EventMapping
from event_mirror.storage.base import RecordStoreError

from .factories import APPLICANT, COLLECTIVE, DELEGATE, MEMBER, proposal_event


def _proposals(record_store):
    return {doc["keyword"]: doc for doc in record_store.all("proposals")}


class TestHelpers:
    """Index and URL rendering."""

    @pytest.mark.parametrize("value,expected", [
        (3, "3"),
        ("3", "3"),
        ("0x1f", "31"),
        ("115792089237316195423570985008687907853269984665640564039457584007913129639935",
         "115792089237316195423570985008687907853269984665640564039457584007913129639935"),
        (2 ** 200, str(2 ** 200)),
        ("7.0", "7"),
    ])
    def test_canonical_index(self, value, expected):
        assert canonical_index(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", "1.5", True])
    def test_canonical_index_rejects_non_integers(self, value):
        with pytest.raises(ValueError):
            canonical_index(value)

    def test_date_path_is_unpadded_utc(self):
        assert date_path(1546300800) == "/2019/1/1/"
        assert date_path(1577836799) == "/2019/12/31/"


class TestProposalMirror:
    """Proposal records and their poll options."""

    async def test_submit_proposal_scenario(self, engine, record_store, identity_store, proposal_mapping):
        ids = await engine.router.proposal_mirror.mirror(proposal_event(), proposal_mapping, {}, COLLECTIVE)

        docs = _proposals(record_store)
        parent = docs["0xT1"]
        assert parent["importId"] == "3"
        assert parent["title"] == "Proposal 3"
        assert parent["url"] == "/2019/1/1/0xT1"
        assert parent["blockHeight"] == 100
        assert parent["collectiveId"] == COLLECTIVE
        assert parent["authorId"] == identity_store.get(MEMBER).id
        assert parent["pollChoiceId"] == ""
        assert parent["closing"]["height"] == 100

        yes, no = docs["0xT1/yes"], docs["0xT1/no"]
        assert (no["pollChoiceId"], yes["pollChoiceId"]) == ("0", "1")
        assert no["pollId"] == yes["pollId"] == parent["id"]
        assert (no["title"], yes["title"]) == ("No", "Yes")
        assert parent["poll"] == [
            {"contractId": no["id"], "totalStaked": "0"},
            {"contractId": yes["id"], "totalStaked": "0"},
        ]
        assert ids == [parent["id"], no["id"], yes["id"]]

    async def test_redelivery_does_not_duplicate(self, engine, record_store, proposal_mapping):
        mirror = engine.router.proposal_mirror
        first = await mirror.mirror(proposal_event(), proposal_mapping, {}, COLLECTIVE)
        second = await mirror.mirror(proposal_event(block_number=105), proposal_mapping, {}, COLLECTIVE)

        assert first == second
        assert record_store.count("proposals", {"keyword": "0xT1"}) == 1
        assert record_store.count("proposals") == 3
        parent = _proposals(record_store)["0xT1"]
        assert parent["blockHeight"] == 105
        assert len(parent["poll"]) == 2

    async def test_without_poll_voting_only_parent(self, engine, record_store):
        mapping = EventMapping(eventName="SubmitProposal", collectionType="Proposal")

        ids = await engine.router.proposal_mirror.mirror(proposal_event(), mapping, {}, COLLECTIVE)

        assert len(ids) == 1
        assert record_store.count("proposals") == 1
        assert "poll" not in _proposals(record_store)["0xT1"]

    async def test_title_can_use_applicant_identity(self, engine, record_store, identity_store):
        mapping = EventMapping(
            eventName="SubmitProposal",
            collectionType="Proposal",
            rules={"titleTemplate": "Membership for {{applicantId}}"},
        )

        await engine.router.proposal_mirror.mirror(proposal_event(), mapping, {}, COLLECTIVE)

        applicant_id = identity_store.get(APPLICANT).id
        assert _proposals(record_store)["0xT1"]["title"] == f"Membership for {applicant_id}"

    async def test_proposer_is_delegate_key_when_present(self, engine, record_store, proposal_mapping):
        await engine.router.proposal_mirror.mirror(
            proposal_event(delegateKey=DELEGATE), proposal_mapping, {}, COLLECTIVE
        )
        assert _proposals(record_store)["0xT1"]["proposerAddress"] == DELEGATE

    async def test_closing_uses_snapshot_state(self, engine, record_store, proposal_mapping):
        state = {"periodDuration": "17280", "votingPeriodLength": "35", "gracePeriodLength": "35"}

        await engine.router.proposal_mirror.mirror(proposal_event(), proposal_mapping, state, COLLECTIVE)

        closing = _proposals(record_store)["0xT1"]["closing"]
        assert closing["periods"] == 70
        assert closing["calendar"] == "2019-01-15T00:00:00+00:00"

    async def test_event_without_member_is_dropped(self, engine, record_store, proposal_mapping):
        event = ChainEvent(
            eventName="SubmitProposal",
            returnValues={"applicant": APPLICANT, "proposalIndex": "3"},
            blockNumber=100,
            transactionHash="0xT1",
        )

        with pytest.raises(UnresolvableAuthorError):
            await engine.router.proposal_mirror.mirror(event, proposal_mapping, {}, COLLECTIVE)
        assert record_store.count("proposals") == 0

    async def test_missing_proposal_index_is_malformed(self, engine, record_store, proposal_mapping):
        event = ChainEvent(
            eventName="SubmitProposal",
            returnValues={"memberAddress": MEMBER},
            blockNumber=100,
            transactionHash="0xT1",
        )

        with pytest.raises(MalformedEventError):
            await engine.router.proposal_mirror.mirror(event, proposal_mapping, {}, COLLECTIVE)
        assert record_store.count("proposals") == 0

    async def test_block_fetch_failure_is_retryable(self, engine, connector, record_store, proposal_mapping):
        connector.get_block_timestamp = AsyncMock(side_effect=ChainConnectorError("node down", 100))

        with pytest.raises(UpstreamFetchError) as exc_info:
            await engine.router.proposal_mirror.mirror(proposal_event(), proposal_mapping, {}, COLLECTIVE)
        assert exc_info.value.retryable is True
        assert record_store.count("proposals") == 0

    async def test_failed_parent_write_is_reported(self, engine, record_store, proposal_mapping):
        record_store.insert = AsyncMock(side_effect=RecordStoreError("down"))

        with pytest.raises(PersistenceWriteError) as exc_info:
            await engine.router.proposal_mirror.mirror(proposal_event(), proposal_mapping, {}, COLLECTIVE)
        assert exc_info.value.retryable is True
