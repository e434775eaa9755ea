from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.engine import Engine

from services.incentives.src.incentives.db.campaigns_repository import CampaignRepository
from services.incentives.src.incentives.domain.models import Campaign, CampaignCheckpoint
from services.incentives.src.incentives.routes.deps import get_db_engine
from services.incentives.src.incentives.schemas.responses import (
    CampaignResponse,
    CheckpointResponse,
)
from services.incentives.src.incentives.utils.timestamps import to_utc_datetime

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


def campaign_to_response(
    campaign: Campaign, checkpoint: CampaignCheckpoint | None
) -> CampaignResponse:
    checkpoint_response = None
    if checkpoint is not None:
        checkpoint_response = CheckpointResponse(
            last_calculated_block=checkpoint.last_calculated_block,
            last_calculated_timestamp=checkpoint.last_calculated_timestamp,
            last_calculated_at=to_utc_datetime(checkpoint.last_calculated_timestamp),
        )
    return CampaignResponse(
        id=campaign.id,
        reward_token=campaign.reward_token,
        target_token=campaign.target_token,
        start_timestamp=campaign.start_timestamp,
        end_timestamp=campaign.end_timestamp,
        total_reward_budget=str(campaign.total_reward_budget),
        daily_reward_budget=str(campaign.daily_reward_budget),
        status=campaign.status,
        checkpoint=checkpoint_response,
    )


@router.get("", response_model=list[CampaignResponse])
def list_campaigns(engine: Engine = Depends(get_db_engine)) -> list[CampaignResponse]:
    """List all campaigns with their allocation checkpoints."""
    repo = CampaignRepository(engine)
    return [
        campaign_to_response(c, repo.load_checkpoint(c.id)) for c in repo.list_all()
    ]


@router.get("/{campaign_id}", response_model=CampaignResponse)
def get_campaign(campaign_id: str, engine: Engine = Depends(get_db_engine)) -> CampaignResponse:
    repo = CampaignRepository(engine)
    campaign = repo.get(campaign_id)
    if campaign is None:
        raise HTTPException(status_code=404, detail=f"Campaign not found: {campaign_id}")
    return campaign_to_response(campaign, repo.load_checkpoint(campaign_id))
