"""
Checkpointed reward allocation.

A campaign pays `daily_reward_budget` per day of elapsed time since its
checkpoint (or its start on the first run). That period budget is split
across net borrowers in proportion to their net-borrow balance-time
integral. Every step is integer arithmetic with floor division, so the
shares never sum past the budget; the remainder (dust) is not carried over.
"""

import logging
from typing import Mapping, Optional

from services.incentives.src.incentives.domain.errors import PositionAheadOfChainError
from services.incentives.src.incentives.domain.models import (
    SECONDS_PER_DAY,
    AllocationResult,
    Campaign,
    CampaignCheckpoint,
    Position,
)

logger = logging.getLogger(__name__)


def is_eligible(position: Position, campaign: Campaign) -> bool:
    """Net borrowers are eligible. Evaluated from current balances every run."""
    return position.net_lending < 0


def elapsed_seconds(
    campaign: Campaign,
    checkpoint: Optional[CampaignCheckpoint],
    current_timestamp: int,
) -> int:
    if checkpoint is not None:
        return current_timestamp - checkpoint.last_calculated_timestamp
    return current_timestamp - campaign.start_timestamp


def budget_for_period(daily_reward_budget: int, elapsed: int) -> int:
    """Pro-rata daily budget: floor(daily * elapsed / 86400), no floats."""
    return (daily_reward_budget * elapsed) // SECONDS_PER_DAY


def user_share(user_balance_time: int, total_balance_time: int, budget: int) -> int:
    if total_balance_time == 0:
        return 0
    return (user_balance_time * budget) // total_balance_time


def allocate(
    campaign: Campaign,
    positions: Mapping[str, Position],
    checkpoint: Optional[CampaignCheckpoint],
    current_block: int,
    current_timestamp: int,
) -> AllocationResult:
    """
    Compute per-address rewards for one campaign period.

    Pure: the same inputs always produce the same result and nothing passed
    in is modified.

    Args:
        campaign: Active campaign to allocate
        positions: Address -> Position snapshot
        checkpoint: Last committed checkpoint, or None before the first run
        current_block: Block the period ends at
        current_timestamp: Timestamp of current_block

    Returns:
        AllocationResult with non-zero rewards and the checkpoint to commit.
        When nothing is eligible (or the period has not started) the input
        checkpoint is returned unchanged and `advanced` is False.

    Raises:
        PositionAheadOfChainError: If any position is watermarked after current_block
    """
    for position in positions.values():
        if current_block < position.last_updated_block:
            raise PositionAheadOfChainError(
                position.address, position.last_updated_block, current_block
            )

    elapsed = elapsed_seconds(campaign, checkpoint, current_timestamp)
    if elapsed < 0:
        logger.info(
            f"Campaign {campaign.id}: period ends before its baseline, nothing to allocate"
        )
        return AllocationResult(
            rewards={},
            checkpoint=checkpoint,
            budget_for_period=0,
            total_balance_time=0,
            advanced=False,
        )

    budget = budget_for_period(campaign.daily_reward_budget, elapsed)

    eligible = [p for p in positions.values() if is_eligible(p, campaign)]
    total_balance_time = sum(p.net_borrow_balance_time for p in eligible)
    if total_balance_time == 0:
        logger.info(f"No eligible users for campaign {campaign.id}")
        return AllocationResult(
            rewards={},
            checkpoint=checkpoint,
            budget_for_period=budget,
            total_balance_time=0,
            advanced=False,
        )

    rewards: dict[str, int] = {}
    for position in sorted(eligible, key=lambda p: p.address):
        share = user_share(position.net_borrow_balance_time, total_balance_time, budget)
        if share > 0:
            rewards[position.address] = share

    return AllocationResult(
        rewards=rewards,
        checkpoint=CampaignCheckpoint(
            campaign_id=campaign.id,
            last_calculated_block=current_block,
            last_calculated_timestamp=current_timestamp,
        ),
        budget_for_period=budget,
        total_balance_time=total_balance_time,
        advanced=True,
    )
