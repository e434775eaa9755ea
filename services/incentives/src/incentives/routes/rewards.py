from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from services.incentives.src.incentives.db.rewards_repository import RewardRepository
from services.incentives.src.incentives.domain.models import normalize_address
from services.incentives.src.incentives.routes.deps import get_db_engine
from services.incentives.src.incentives.schemas.responses import (
    AddressRewardsResponse,
    RewardResponse,
)

router = APIRouter(prefix="/rewards", tags=["rewards"])


@router.get("/{address}", response_model=AddressRewardsResponse)
def get_rewards(address: str, engine: Engine = Depends(get_db_engine)) -> AddressRewardsResponse:
    """Rewards across all campaigns for one address (empty list if none)."""
    rewards = RewardRepository(engine).get_rewards_for_address(address)
    return AddressRewardsResponse(
        address=normalize_address(address),
        rewards=[
            RewardResponse(
                campaign_id=r.campaign_id,
                reward_token=r.reward_token,
                period_reward=str(r.period_reward),
                cumulative_reward=str(r.cumulative_reward),
                last_calculated_block=r.last_calculated_block,
                last_calculated_timestamp=r.last_calculated_timestamp,
            )
            for r in rewards
        ],
    )
