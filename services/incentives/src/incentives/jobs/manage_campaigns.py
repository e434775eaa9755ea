"""
Campaign administration and inspection.

Usage:
    python -m services.incentives.src.incentives.jobs.manage_campaigns create \
        --id base-aavev3-weth-rewards --reward-token 0x4200000000000000000000000000000000000006 \
        --daily-budget 500000000000000000 --total-budget 15000000000000000000 --days 30
    python -m services.incentives.src.incentives.jobs.manage_campaigns set-status --id base-aavev3-weth-rewards --status paused
    python -m services.incentives.src.incentives.jobs.manage_campaigns show-rewards 0xabc...
    python -m services.incentives.src.incentives.jobs.manage_campaigns show-positions --decimals 6
"""
import argparse
import logging
import sys
import time
from decimal import Decimal

from sqlalchemy.engine import Engine

from services.incentives.src.incentives.adapters.aave_v3.config import default_target_token
from services.incentives.src.incentives.db.campaigns_repository import CampaignRepository
from services.incentives.src.incentives.db.engine import get_engine, init_db
from services.incentives.src.incentives.db.positions_repository import PositionRepository
from services.incentives.src.incentives.db.rewards_repository import RewardRepository
from services.incentives.src.incentives.domain.models import (
    ACTIVE,
    CAMPAIGN_STATUSES,
    SECONDS_PER_DAY,
    Campaign,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def format_units(amount: int, decimals: int) -> str:
    """Render a base-unit integer with the token's decimals."""
    return str(Decimal(amount) / Decimal(10**decimals))


def create_campaign(
    engine: Engine,
    campaign_id: str,
    reward_token: str,
    daily_budget: int,
    total_budget: int,
    days: int,
    target_token: str | None = None,
    start_timestamp: int | None = None,
) -> Campaign:
    """Create an active campaign starting now (or at start_timestamp)."""
    if daily_budget < 0 or total_budget < 0:
        raise ValueError("Budgets must be non-negative")
    if days <= 0:
        raise ValueError("Campaign duration must be positive")

    start = start_timestamp if start_timestamp is not None else int(time.time())
    campaign = Campaign(
        id=campaign_id,
        reward_token=reward_token.lower(),
        target_token=(target_token or default_target_token()).lower(),
        start_timestamp=start,
        end_timestamp=start + days * SECONDS_PER_DAY,
        total_reward_budget=total_budget,
        daily_reward_budget=daily_budget,
        status=ACTIVE,
    )
    if not CampaignRepository(engine).create(campaign):
        raise ValueError(f"Campaign already exists: {campaign_id}")
    logger.info(
        f"Created campaign {campaign.id}: daily budget {daily_budget}, "
        f"total budget {total_budget}, {days} days"
    )
    return campaign


def show_rewards(engine: Engine, address: str, decimals: int = 18) -> int:
    rewards = RewardRepository(engine).get_rewards_for_address(address)
    if not rewards:
        print("No rewards found")
        return 0
    for reward in rewards:
        print(f"Campaign id: {reward.campaign_id}")
        print(f"   Reward token: {reward.reward_token}")
        print(f"   Last period: {format_units(reward.period_reward, decimals)}")
        print(f"   Cumulative: {format_units(reward.cumulative_reward, decimals)}")
        print(f"   Block: {reward.last_calculated_block}")
    return len(rewards)


def show_positions(engine: Engine, decimals: int = 6) -> int:
    positions = PositionRepository(engine).load_all()
    print(f"Total user positions: {len(positions)}")
    for address, pos in positions.items():
        eligible = "YES" if pos.is_net_borrower else "NO"
        print(
            f"{address}  supply={format_units(pos.supply_balance, decimals)}  "
            f"borrow={format_units(pos.debt_balance, decimals)}  "
            f"net_lending={format_units(pos.net_lending, decimals)}  eligible={eligible}"
        )
    return len(positions)


def main() -> int:
    parser = argparse.ArgumentParser(description="Manage incentive campaigns")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (default: from settings)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create an active campaign")
    create.add_argument("--id", required=True)
    create.add_argument("--reward-token", required=True)
    create.add_argument("--target-token", default=None)
    create.add_argument("--daily-budget", type=int, required=True, help="Base units per day")
    create.add_argument("--total-budget", type=int, required=True, help="Base units")
    create.add_argument("--days", type=int, default=30)
    create.add_argument("--start", type=int, default=None, help="Start unix timestamp (default: now)")

    status = sub.add_parser("set-status", help="Pause, resume or end a campaign")
    status.add_argument("--id", required=True)
    status.add_argument("--status", choices=CAMPAIGN_STATUSES, required=True)

    rewards = sub.add_parser("show-rewards", help="Show rewards for an address")
    rewards.add_argument("address")
    rewards.add_argument("--decimals", type=int, default=18)

    positions = sub.add_parser("show-positions", help="Show all positions")
    positions.add_argument("--decimals", type=int, default=6)

    args = parser.parse_args()

    engine = get_engine(args.database_url)
    init_db(engine)

    try:
        if args.command == "create":
            create_campaign(
                engine,
                campaign_id=args.id,
                reward_token=args.reward_token,
                daily_budget=args.daily_budget,
                total_budget=args.total_budget,
                days=args.days,
                target_token=args.target_token,
                start_timestamp=args.start,
            )
        elif args.command == "set-status":
            if not CampaignRepository(engine).set_status(args.id, args.status):
                logger.error(f"Campaign not found: {args.id}")
                return 1
            logger.info(f"Campaign {args.id} is now {args.status}")
        elif args.command == "show-rewards":
            show_rewards(engine, args.address, args.decimals)
        elif args.command == "show-positions":
            show_positions(engine, args.decimals)
        return 0
    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
