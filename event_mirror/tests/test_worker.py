"""Tests for the mirror worker entry points."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from event_mirror import worker
from event_mirror.config.descriptors import MirrorConfig
from event_mirror.mirror.engine import MirrorEngine
from event_mirror.mirror.types import BatchReport, ContractDescriptor, MirroredEvent, SkippedEvent
from event_mirror.storage.memory_store import InMemoryIdentityStore, InMemoryRecordStore


def _config(*collectives):
    return MirrorConfig(contracts=[
        ContractDescriptor(publicAddress="0x" + "11" * 20, abi=[], collectiveId=collective)
        for collective in collectives
    ])


class TestParseArgs:
    def test_defaults(self):
        args = worker.parse_args([])
        assert args.dry_run is False
        assert args.from_block is None

    def test_overrides(self):
        args = worker.parse_args(["--config", "dao.yaml", "--from-block", "7218566", "--dry-run", "--interval", "60"])
        assert args.config == "dao.yaml"
        assert args.from_block == 7218566
        assert args.dry_run is True
        assert args.interval == 60.0


class TestBuildEngine:
    def test_dry_run_uses_memory_stores(self):
        connector = MagicMock()

        engine = worker.build_engine(MirrorConfig(titles={"moloch-yes": "Aye"}), dry_run=True, connector=connector)

        assert isinstance(engine, MirrorEngine)
        assert engine.connector is connector
        assert isinstance(engine.gateway.store, InMemoryRecordStore)
        assert isinstance(engine.extractor.identity_resolver.identity_store, InMemoryIdentityStore)
        assert engine.router.proposal_mirror.titles.choice_label("yes") == "Aye"


class TestRunPass:
    async def test_reports_are_merged_across_contracts(self):
        engine = MagicMock()
        engine.sync_contract = AsyncMock(side_effect=[
            BatchReport(mirrored=[MirroredEvent("0xT1", "SubmitProposal", "proposals", ["p1"])], ignored=1),
            BatchReport(skipped=[SkippedEvent("0xT2", "SubmitVote", "Proposal 3 is not mirrored yet", True)]),
        ])
        config = _config("dao-a", "dao-b")

        report = await worker.run_pass(engine, config, from_block=10)

        assert report.processed == 3
        assert len(report.retryable) == 1
        assert engine.sync_contract.await_args_list[1].args == (config.contracts[1],)
        assert engine.sync_contract.await_args_list[1].kwargs == {"from_block": 10}

    async def test_single_pass_when_interval_is_zero(self):
        with patch.object(worker, "build_engine") as build_engine, \
                patch.object(worker, "run_pass", new=AsyncMock(return_value=BatchReport())) as run_pass:
            await worker.run(_config("dao-a"), dry_run=True, from_block=None, interval=0)

        build_engine.assert_called_once()
        run_pass.assert_awaited_once()


class TestMain:
    def test_invalid_startup_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            worker.main(["--config", str(tmp_path / "absent.yaml"), "--dry-run"])
