"""
Position indexing job.

Fetches Aave V3 Pool events for the tracked reserve over the next block
window, replays them onto the persisted positions, and commits the updated
positions together with the indexer cursor.

Usage:
    python -m services.incentives.src.incentives.jobs.index_positions
    python -m services.incentives.src.incentives.jobs.index_positions --block-range 200
"""
import argparse
import logging
import sys
from typing import Callable

from sqlalchemy.engine import Engine

from services.incentives.src.incentives.adapters.aave_v3.config import (
    get_default_config,
    require_rpc_url,
)
from services.incentives.src.incentives.adapters.aave_v3.events_fetcher import (
    PoolEventsFetcher,
)
from services.incentives.src.incentives.adapters.aave_v3.rpc import (
    BlockTimeResolver,
    RpcClient,
)
from services.incentives.src.incentives.config import settings
from services.incentives.src.incentives.db.engine import get_engine, init_db
from services.incentives.src.incentives.db.positions_repository import (
    IndexerStateRepository,
    PositionRepository,
)
from services.incentives.src.incentives.domain.accumulator import apply_events
from services.incentives.src.incentives.domain.models import IndexerState
from services.incentives.src.incentives.domain.normalizer import normalize_events

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def compute_window(
    state: IndexerState | None, current_block: int, block_range: int
) -> tuple[int, int] | None:
    """
    Next inclusive block window to index.

    Resumes one block after the cursor, or starts `block_range` blocks back
    on the first run. Returns None when the cursor is already at the head.
    """
    if state is not None:
        from_block = state.last_indexed_block + 1
    else:
        from_block = max(0, current_block - block_range)
    to_block = min(current_block, from_block + block_range)
    if from_block > to_block:
        return None
    return from_block, to_block


def index_window(
    engine: Engine,
    fetcher: PoolEventsFetcher,
    timestamp_of: Callable[[int], int],
    asset_address: str,
    from_block: int,
    to_block: int,
) -> int:
    """
    Index one block window.

    Positions are seeded from storage before replay so integrals keep
    accumulating across windows. Positions and cursor are written in one
    transaction; any error leaves both at their last committed values.

    Returns:
        Number of positions written
    """
    positions_repo = PositionRepository(engine)
    state_repo = IndexerStateRepository(engine)

    batches = fetcher.fetch_events(asset_address, from_block, to_block)
    events = normalize_events(batches)
    logger.info(f"Blocks {from_block}-{to_block}: {len(events)} events")

    seed = positions_repo.load_all()
    result = apply_events(seed, events, timestamp_of)
    if result.skipped:
        logger.warning(f"Skipped {len(result.skipped)} events with unresolved block timestamps")

    cursor = IndexerState(
        last_indexed_block=to_block,
        last_indexed_timestamp=timestamp_of(to_block),
    )

    touched = result.touched_positions()
    with engine.begin() as conn:
        positions_repo.save_batch(touched, conn=conn)
        state_repo.save(cursor, conn=conn)

    logger.info(
        f"Applied {result.applied} events, saved {len(touched)} positions, "
        f"cursor at block {to_block}"
    )
    return len(touched)


def run_index_cycle(
    database_url: str | None = None,
    block_range: int | None = None,
    chain_id: str | None = None,
) -> int:
    """
    Run one indexing cycle against the configured RPC endpoint.

    Returns:
        Number of positions written (0 when already caught up)
    """
    require_rpc_url()

    config = get_default_config()
    chain = config.get_chain(chain_id or settings.chain_id)
    if chain is None:
        raise ValueError(f"Unknown chain: {chain_id or settings.chain_id}")
    asset = chain.get_asset(config.target_symbol)
    if asset is None:
        raise ValueError(f"Unknown asset {config.target_symbol} on {chain.chain_id}")

    engine = get_engine(database_url)
    init_db(engine)

    with RpcClient(settings.get_rpc_endpoint()) as client:
        current_block = client.get_block_number()
        state = IndexerStateRepository(engine).load()
        window = compute_window(state, current_block, block_range or settings.index_block_range)
        if window is None:
            logger.info(f"Indexer up to date at block {current_block}")
            return 0

        from_block, to_block = window
        if state is None:
            logger.info(f"First run - indexing from block {from_block}")
        else:
            logger.info(f"Resuming from block {from_block}")

        fetcher = PoolEventsFetcher(client, chain.pool_address)
        resolver = BlockTimeResolver(client)
        return index_window(engine, fetcher, resolver, asset.address, from_block, to_block)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Index Aave V3 positions for the incentivized reserve"
    )
    parser.add_argument(
        "--block-range",
        type=int,
        default=None,
        help="Blocks per window (default: from settings)",
    )
    parser.add_argument(
        "--chain",
        type=str,
        default=None,
        help="Chain to index (default: from settings)",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (default: from settings)",
    )

    args = parser.parse_args()

    try:
        count = run_index_cycle(
            database_url=args.database_url,
            block_range=args.block_range,
            chain_id=args.chain,
        )
        logger.info(f"Indexing complete: {count} positions updated")
        return 0
    except Exception as e:
        logger.error(f"Indexing failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
