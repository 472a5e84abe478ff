"""
Mirror worker.

Loads the tracked-contract configuration, then for every contract snapshots
its parameters, reads its past events and mirrors them. Runs once, or every
``--interval`` seconds until interrupted.

    python -m event_mirror.worker --config mirror.yaml
    python -m event_mirror.worker --config mirror.yaml --dry-run --from-block 7218566
"""
import argparse
import asyncio
from typing import List, Optional

from event_mirror.chain.connector import ChainConnector
from event_mirror.config import common_settings
from event_mirror.config.descriptors import MirrorConfig, load_mirror_config
from event_mirror.mirror.engine import MirrorEngine
from event_mirror.mirror.titles import TitleRenderer
from event_mirror.mirror.types import BatchReport
from event_mirror.storage.memory_store import InMemoryIdentityStore, InMemoryRecordStore
from event_mirror.utils.logger import logger
from event_mirror.utils.startup_validation import validate_or_exit


def build_engine(config: MirrorConfig, dry_run: bool = False,
                 connector: Optional[ChainConnector] = None) -> MirrorEngine:
    """Wire the engine with PostgreSQL stores, or in-memory ones for a dry run."""
    connector = connector or ChainConnector(
        common_settings.WEB3_PROVIDER_URI,
        request_timeout=common_settings.CHAIN_REQUEST_TIMEOUT,
        block_cache_size=common_settings.BLOCK_CACHE_SIZE,
    )
    if dry_run:
        identity_store, record_store = InMemoryIdentityStore(), InMemoryRecordStore()
    else:
        from event_mirror.storage.postgres_store import (
            PostgresIdentityStore,
            PostgresRecordStore,
            ensure_schema,
        )
        ensure_schema()
        identity_store, record_store = PostgresIdentityStore(), PostgresRecordStore()

    return MirrorEngine(
        connector,
        identity_store,
        record_store,
        titles=TitleRenderer(config.titles),
        proposal_events=common_settings.PROPOSAL_EVENT_NAMES,
        vote_events=common_settings.VOTE_EVENT_NAMES,
        start_block=common_settings.START_BLOCK,
    )


async def run_pass(engine: MirrorEngine, config: MirrorConfig, from_block: Optional[int] = None) -> BatchReport:
    """Sync every tracked contract once."""
    report = BatchReport()
    for descriptor in config.contracts:
        logger.info(f"Syncing {descriptor.public_address} for collective {descriptor.collective_id}")
        report.merge(await engine.sync_contract(descriptor, from_block=from_block))
    logger.info(
        "Pass complete: %d mirrored, %d skipped (%d retryable), %d ignored",
        len(report.mirrored), len(report.skipped), len(report.retryable), report.ignored,
    )
    return report


async def run(config: MirrorConfig, dry_run: bool, from_block: Optional[int], interval: float) -> None:
    engine = build_engine(config, dry_run=dry_run)
    try:
        while True:
            await run_pass(engine, config, from_block)
            if interval <= 0:
                return
            await asyncio.sleep(interval)
    finally:
        if not dry_run:
            from event_mirror.services.connection_pool import close_connection_pool
            close_connection_pool()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mirror contract events into proposal and vote records")
    parser.add_argument("--config", default=common_settings.MIRROR_CONFIG_PATH,
                        help="YAML file listing tracked contracts")
    parser.add_argument("--from-block", type=int, default=None,
                        help="Override the first scanned block for every contract")
    parser.add_argument("--dry-run", action="store_true",
                        help="Write to in-memory stores instead of PostgreSQL")
    parser.add_argument("--interval", type=float, default=common_settings.MIRROR_POLL_INTERVAL,
                        help="Seconds between passes; 0 runs a single pass")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    validate_or_exit(args.config, dry_run=args.dry_run)
    config = load_mirror_config(args.config)
    try:
        asyncio.run(run(config, args.dry_run, args.from_block, args.interval))
    except KeyboardInterrupt:
        logger.info("Mirror worker interrupted, shutting down")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
