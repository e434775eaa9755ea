"""Repository for campaigns and their allocation checkpoints."""

from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine

from services.incentives.src.incentives.db.engine import transaction
from services.incentives.src.incentives.db.models import campaign_checkpoints, campaigns
from services.incentives.src.incentives.domain.models import (
    ACTIVE,
    CAMPAIGN_STATUSES,
    Campaign,
    CampaignCheckpoint,
    normalize_address,
)


def _row_to_campaign(row) -> Campaign:
    return Campaign(
        id=row.id,
        reward_token=row.reward_token,
        target_token=row.target_token,
        start_timestamp=int(row.start_timestamp),
        end_timestamp=int(row.end_timestamp),
        total_reward_budget=row.total_reward_budget,
        daily_reward_budget=row.daily_reward_budget,
        status=row.status,
    )


class CampaignRepository:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._is_sqlite = "sqlite" in str(engine.url)

    def create(self, campaign: Campaign) -> bool:
        """
        Insert a campaign. Campaigns are immutable once created.

        Returns:
            True if inserted, False if a campaign with this id already exists
        """
        if campaign.status not in CAMPAIGN_STATUSES:
            raise ValueError(f"Unknown campaign status: {campaign.status}")

        row = {
            "id": campaign.id,
            "reward_token": normalize_address(campaign.reward_token),
            "target_token": normalize_address(campaign.target_token),
            "start_timestamp": campaign.start_timestamp,
            "end_timestamp": campaign.end_timestamp,
            "total_reward_budget": campaign.total_reward_budget,
            "daily_reward_budget": campaign.daily_reward_budget,
            "status": campaign.status,
            "created_at": datetime.now(timezone.utc),
        }

        insert = sqlite_insert if self._is_sqlite else pg_insert
        stmt = insert(campaigns).values([row]).on_conflict_do_nothing(index_elements=["id"])

        with self.engine.begin() as conn:
            result = conn.execute(stmt)
            return result.rowcount == 1

    def get(self, campaign_id: str) -> Campaign | None:
        stmt = select(campaigns).where(campaigns.c.id == campaign_id)

        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
            return _row_to_campaign(row) if row is not None else None

    def list_all(self) -> list[Campaign]:
        stmt = select(campaigns).order_by(campaigns.c.id)

        with self.engine.connect() as conn:
            return [_row_to_campaign(row) for row in conn.execute(stmt)]

    def list_active(self) -> list[Campaign]:
        stmt = (
            select(campaigns)
            .where(campaigns.c.status == ACTIVE)
            .order_by(campaigns.c.id)
        )

        with self.engine.connect() as conn:
            return [_row_to_campaign(row) for row in conn.execute(stmt)]

    def set_status(self, campaign_id: str, status: str) -> bool:
        """Change a campaign's status. Returns False if the campaign does not exist."""
        if status not in CAMPAIGN_STATUSES:
            raise ValueError(f"Unknown campaign status: {status}")

        stmt = (
            update(campaigns)
            .where(campaigns.c.id == campaign_id)
            .values(status=status)
        )

        with self.engine.begin() as conn:
            result = conn.execute(stmt)
            return result.rowcount == 1

    def load_checkpoint(
        self, campaign_id: str, conn: Connection | None = None
    ) -> CampaignCheckpoint | None:
        stmt = select(campaign_checkpoints).where(
            campaign_checkpoints.c.campaign_id == campaign_id
        )

        with transaction(self.engine, conn) as c:
            row = c.execute(stmt).fetchone()
            if row is None:
                return None
            return CampaignCheckpoint(
                campaign_id=row.campaign_id,
                last_calculated_block=int(row.last_calculated_block),
                last_calculated_timestamp=int(row.last_calculated_timestamp),
            )

    def save_checkpoint(
        self, checkpoint: CampaignCheckpoint, conn: Connection | None = None
    ) -> None:
        row = {
            "campaign_id": checkpoint.campaign_id,
            "last_calculated_block": checkpoint.last_calculated_block,
            "last_calculated_timestamp": checkpoint.last_calculated_timestamp,
            "updated_at": datetime.now(timezone.utc),
        }

        insert = sqlite_insert if self._is_sqlite else pg_insert
        stmt = insert(campaign_checkpoints).values([row])
        stmt = stmt.on_conflict_do_update(
            index_elements=["campaign_id"],
            set_={
                "last_calculated_block": stmt.excluded.last_calculated_block,
                "last_calculated_timestamp": stmt.excluded.last_calculated_timestamp,
                "updated_at": stmt.excluded.updated_at,
            },
        )

        with transaction(self.engine, conn) as c:
            c.execute(stmt)
