from services.incentives.src.incentives.schemas.responses import (
    AddressRewardsResponse,
    CampaignResponse,
    CheckpointResponse,
    PositionResponse,
    PositionsResponse,
    RewardResponse,
)

__all__ = [
    "AddressRewardsResponse",
    "CampaignResponse",
    "CheckpointResponse",
    "PositionResponse",
    "PositionsResponse",
    "RewardResponse",
]
