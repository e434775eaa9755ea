"""Repository for per-address campaign rewards."""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine

from services.incentives.src.incentives.db.engine import transaction
from services.incentives.src.incentives.db.models import user_rewards
from services.incentives.src.incentives.domain.models import UserReward, normalize_address


def _row_to_reward(row) -> UserReward:
    return UserReward(
        address=row.address,
        campaign_id=row.campaign_id,
        reward_token=row.reward_token,
        period_reward=row.period_reward,
        cumulative_reward=row.cumulative_reward,
        last_calculated_block=int(row.last_calculated_block),
        last_calculated_timestamp=int(row.last_calculated_timestamp),
    )


class RewardRepository:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._is_sqlite = "sqlite" in str(engine.url)

    def save_reward(self, reward: UserReward, conn: Connection | None = None) -> None:
        """Upsert one reward row keyed by (address, campaign_id)."""
        row = {
            "address": normalize_address(reward.address),
            "campaign_id": reward.campaign_id,
            "reward_token": normalize_address(reward.reward_token),
            "period_reward": reward.period_reward,
            "cumulative_reward": reward.cumulative_reward,
            "last_calculated_block": reward.last_calculated_block,
            "last_calculated_timestamp": reward.last_calculated_timestamp,
            "updated_at": datetime.now(timezone.utc),
        }

        insert = sqlite_insert if self._is_sqlite else pg_insert
        stmt = insert(user_rewards).values([row])
        stmt = stmt.on_conflict_do_update(
            index_elements=["address", "campaign_id"],
            set_={
                "reward_token": stmt.excluded.reward_token,
                "period_reward": stmt.excluded.period_reward,
                "cumulative_reward": stmt.excluded.cumulative_reward,
                "last_calculated_block": stmt.excluded.last_calculated_block,
                "last_calculated_timestamp": stmt.excluded.last_calculated_timestamp,
                "updated_at": stmt.excluded.updated_at,
            },
        )

        with transaction(self.engine, conn) as c:
            c.execute(stmt)

    def get_reward(
        self, address: str, campaign_id: str, conn: Connection | None = None
    ) -> UserReward | None:
        stmt = (
            select(user_rewards)
            .where(user_rewards.c.address == normalize_address(address))
            .where(user_rewards.c.campaign_id == campaign_id)
        )

        with transaction(self.engine, conn) as c:
            row = c.execute(stmt).fetchone()
            return _row_to_reward(row) if row is not None else None

    def get_rewards_for_address(self, address: str) -> list[UserReward]:
        stmt = (
            select(user_rewards)
            .where(user_rewards.c.address == normalize_address(address))
            .order_by(user_rewards.c.campaign_id)
        )

        with self.engine.connect() as conn:
            return [_row_to_reward(row) for row in conn.execute(stmt)]

    def get_rewards_for_campaign(
        self, campaign_id: str, conn: Connection | None = None
    ) -> list[UserReward]:
        stmt = (
            select(user_rewards)
            .where(user_rewards.c.campaign_id == campaign_id)
            .order_by(user_rewards.c.address)
        )

        with transaction(self.engine, conn) as c:
            return [_row_to_reward(row) for row in c.execute(stmt)]
