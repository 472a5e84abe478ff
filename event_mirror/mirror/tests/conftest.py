"""Shared fixtures for the mirror tests."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from event_mirror.chain.connector import ChainConnector
from event_mirror.mirror.engine import MirrorEngine
from event_mirror.mirror.types import EventMapping
from event_mirror.storage.memory_store import InMemoryIdentityStore, InMemoryRecordStore

from .factories import BLOCK_TIMESTAMP


@pytest.fixture
def connector():
    mock = MagicMock(spec=ChainConnector)
    mock.get_block_timestamp = AsyncMock(return_value=BLOCK_TIMESTAMP)
    return mock


@pytest.fixture
def identity_store():
    return InMemoryIdentityStore()


@pytest.fixture
def record_store():
    return InMemoryRecordStore()


@pytest.fixture
def engine(connector, identity_store, record_store):
    return MirrorEngine(connector, identity_store, record_store)


@pytest.fixture
def proposal_mapping():
    return EventMapping(
        eventName="SubmitProposal",
        collectionType="Proposal",
        rules={"pollVoting": True, "titleTemplate": "Proposal {{proposalIndex}}"},
    )


@pytest.fixture
def vote_mapping():
    return EventMapping(eventName="SubmitVote", collectionType="Proposal")


@pytest.fixture
def mappings(proposal_mapping, vote_mapping):
    return [proposal_mapping, vote_mapping]
