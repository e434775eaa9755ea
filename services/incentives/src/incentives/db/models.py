from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
)

from services.incentives.src.incentives.db.types import BigUint

metadata = MetaData()

# uint256-safe integer columns
AMOUNT = BigUint()

user_positions = Table(
    "user_positions",
    metadata,
    Column("address", String(42), primary_key=True),
    Column("supply_balance", AMOUNT, nullable=False),
    Column("debt_balance", AMOUNT, nullable=False),
    # Derived from the balances on every write
    Column("net_lending", AMOUNT, nullable=False),
    Column("net_borrowing", AMOUNT, nullable=False),
    # Balance-seconds integrals
    Column("supply_balance_time", AMOUNT, nullable=False, default=0),
    Column("debt_balance_time", AMOUNT, nullable=False, default=0),
    Column("net_borrow_balance_time", AMOUNT, nullable=False, default=0),
    Column("last_updated_block", BigInteger, nullable=False),
    Column("last_updated_timestamp", BigInteger, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)

indexer_state = Table(
    "indexer_state",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("last_indexed_block", BigInteger, nullable=False),
    Column("last_indexed_timestamp", BigInteger, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
    CheckConstraint("id = 1", name="ck_indexer_state_single_row"),
)

campaigns = Table(
    "campaigns",
    metadata,
    Column("id", String(100), primary_key=True),
    Column("reward_token", String(42), nullable=False),
    Column("target_token", String(42), nullable=False),
    Column("start_timestamp", BigInteger, nullable=False),
    Column("end_timestamp", BigInteger, nullable=False),
    Column("total_reward_budget", AMOUNT, nullable=False),
    Column("daily_reward_budget", AMOUNT, nullable=False),
    Column("status", String(20), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=True),
    Index("ix_campaigns_status", "status"),
)

campaign_checkpoints = Table(
    "campaign_checkpoints",
    metadata,
    Column("campaign_id", String(100), primary_key=True),
    Column("last_calculated_block", BigInteger, nullable=False),
    Column("last_calculated_timestamp", BigInteger, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)

user_rewards = Table(
    "user_rewards",
    metadata,
    Column("address", String(42), nullable=False),
    Column("campaign_id", String(100), nullable=False),
    Column("reward_token", String(42), nullable=False),
    Column("period_reward", AMOUNT, nullable=False),
    Column("cumulative_reward", AMOUNT, nullable=False),
    Column("last_calculated_block", BigInteger, nullable=False),
    Column("last_calculated_timestamp", BigInteger, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
    PrimaryKeyConstraint("address", "campaign_id", name="pk_user_rewards"),
    Index("ix_rewards_campaign", "campaign_id"),
)
