from datetime import datetime

from pydantic import BaseModel

# Integer amounts are serialized as decimal strings: uint256 values do not
# survive a JSON number round trip in JavaScript clients.


class PositionResponse(BaseModel):
    """Balances and balance-time integrals for one address."""

    address: str
    supply_balance: str
    debt_balance: str
    net_lending: str
    net_borrowing: str
    supply_balance_time: str
    debt_balance_time: str
    net_borrow_balance_time: str
    eligible: bool
    last_updated_block: int
    last_updated_timestamp: int
    last_updated_at: datetime


class PositionsResponse(BaseModel):
    count: int
    positions: list[PositionResponse]


class CheckpointResponse(BaseModel):
    last_calculated_block: int
    last_calculated_timestamp: int
    last_calculated_at: datetime


class CampaignResponse(BaseModel):
    id: str
    reward_token: str
    target_token: str
    start_timestamp: int
    end_timestamp: int
    total_reward_budget: str
    daily_reward_budget: str
    status: str
    checkpoint: CheckpointResponse | None = None


class RewardResponse(BaseModel):
    campaign_id: str
    reward_token: str
    period_reward: str
    cumulative_reward: str
    last_calculated_block: int
    last_calculated_timestamp: int


class AddressRewardsResponse(BaseModel):
    """All campaign rewards for one address."""

    address: str
    rewards: list[RewardResponse]
