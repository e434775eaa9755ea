"""
Reward calculation job.

For each active campaign, allocates the budget accrued since the campaign's
checkpoint across net borrowers and commits the rewards together with the
advanced checkpoint. Campaigns are independent: one failing does not stop
the others.

Usage:
    python -m services.incentives.src.incentives.jobs.calculate_rewards
    python -m services.incentives.src.incentives.jobs.calculate_rewards --campaign base-aavev3-weth-rewards
"""
import argparse
import logging
import sys
import threading
from typing import Mapping

from sqlalchemy.engine import Engine

from services.incentives.src.incentives.adapters.aave_v3.config import default_target_token
from services.incentives.src.incentives.db.campaigns_repository import CampaignRepository
from services.incentives.src.incentives.db.engine import get_engine, init_db
from services.incentives.src.incentives.db.positions_repository import (
    IndexerStateRepository,
    PositionRepository,
)
from services.incentives.src.incentives.db.rewards_repository import RewardRepository
from services.incentives.src.incentives.domain.allocator import allocate
from services.incentives.src.incentives.domain.models import (
    AllocationResult,
    Campaign,
    Position,
    UserReward,
    normalize_address,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

_campaign_locks: dict[str, threading.Lock] = {}
_campaign_locks_guard = threading.Lock()


def campaign_lock(campaign_id: str) -> threading.Lock:
    """Per-campaign lock serializing allocation runs in this process."""
    with _campaign_locks_guard:
        if campaign_id not in _campaign_locks:
            _campaign_locks[campaign_id] = threading.Lock()
        return _campaign_locks[campaign_id]


def calculate_campaign_rewards(
    engine: Engine,
    campaign: Campaign,
    positions: Mapping[str, Position],
    current_block: int,
    current_timestamp: int,
) -> AllocationResult:
    """
    Allocate one campaign period and persist it.

    Each period reward is added onto the address's stored cumulative reward.
    Addresses rewarded in an earlier period but not in this one get a zero
    period reward. Rewards and the new checkpoint are committed in one
    transaction. A no-op allocation writes nothing, so the next run covers
    the same period again.
    """
    campaigns_repo = CampaignRepository(engine)
    rewards_repo = RewardRepository(engine)

    with campaign_lock(campaign.id):
        checkpoint = campaigns_repo.load_checkpoint(campaign.id)
        result = allocate(campaign, positions, checkpoint, current_block, current_timestamp)
        if not result.advanced:
            return result

        with engine.begin() as conn:
            existing = {
                r.address: r
                for r in rewards_repo.get_rewards_for_campaign(campaign.id, conn=conn)
            }
            for address in sorted(existing.keys() | result.rewards.keys()):
                amount = result.rewards.get(address, 0)
                previous = existing.get(address)
                cumulative = (previous.cumulative_reward if previous else 0) + amount
                rewards_repo.save_reward(
                    UserReward(
                        address=address,
                        campaign_id=campaign.id,
                        reward_token=campaign.reward_token,
                        period_reward=amount,
                        cumulative_reward=cumulative,
                        last_calculated_block=current_block,
                        last_calculated_timestamp=current_timestamp,
                    ),
                    conn=conn,
                )
            campaigns_repo.save_checkpoint(result.checkpoint, conn=conn)

    logger.info(
        f"Campaign {campaign.id}: rewarded {len(result.rewards)} users, "
        f"distributed {result.distributed} of {result.budget_for_period} (dust {result.dust})"
    )
    return result


def calculate_rewards(
    engine: Engine,
    campaign_ids: list[str] | None = None,
    target_token: str | None = None,
) -> dict[str, int]:
    """
    Run one reward cycle over the active campaigns.

    The indexer cursor is the allocation block, so rewards never run ahead of
    the indexed position snapshot. Positions belong to a single reserve, so a
    campaign targeting any other token fails instead of paying its budget
    to that reserve's borrowers.

    Args:
        engine: Database engine
        campaign_ids: Only process these campaigns (default: all active)
        target_token: Indexed reserve address (default: from config)

    Returns:
        Dict mapping campaign id to number of rewarded users (-1 on failure)
    """
    target = normalize_address(target_token or default_target_token())

    state = IndexerStateRepository(engine).load()
    if state is None:
        logger.warning("Indexer hasn't run yet - skipping reward calculation")
        return {}

    campaigns = CampaignRepository(engine).list_active()
    if campaign_ids:
        campaigns = [c for c in campaigns if c.id in campaign_ids]
    if not campaigns:
        logger.info("No active campaign to process")
        return {}

    positions = PositionRepository(engine).load_all()
    if not positions:
        logger.info("No user positions to calculate rewards")
        return {}

    results: dict[str, int] = {}
    for campaign in campaigns:
        if normalize_address(campaign.target_token) != target:
            logger.error(
                f"Campaign {campaign.id} targets {campaign.target_token}, "
                f"but positions are indexed for {target}"
            )
            results[campaign.id] = -1
            continue
        try:
            result = calculate_campaign_rewards(
                engine,
                campaign,
                positions,
                state.last_indexed_block,
                state.last_indexed_timestamp,
            )
            results[campaign.id] = len(result.rewards)
        except Exception as e:
            logger.error(f"Reward calculation failed for {campaign.id}: {e}", exc_info=True)
            results[campaign.id] = -1  # Indicate failure

    return results


def run_reward_cycle(
    database_url: str | None = None, campaign_ids: list[str] | None = None
) -> dict[str, int]:
    engine = get_engine(database_url)
    init_db(engine)
    return calculate_rewards(engine, campaign_ids)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Calculate incentive rewards for active campaigns"
    )
    parser.add_argument(
        "--campaign",
        type=str,
        action="append",
        default=None,
        help="Campaign id to process (repeatable, default: all active)",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (default: from settings)",
    )

    args = parser.parse_args()

    try:
        results = run_reward_cycle(
            database_url=args.database_url,
            campaign_ids=args.campaign,
        )
        logger.info("Reward calculation complete:")
        for campaign_id, count in results.items():
            status = f"{count} users" if count >= 0 else "FAILED"
            logger.info(f"  {campaign_id}: {status}")
        return 0 if all(c >= 0 for c in results.values()) else 1
    except Exception as e:
        logger.error(f"Reward calculation failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
