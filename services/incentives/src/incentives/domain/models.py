from dataclasses import dataclass, field
from typing import Optional

# Event type tags
SUPPLY = "supply"
WITHDRAW = "withdraw"
BORROW = "borrow"
REPAY = "repay"

EVENT_TYPES = [SUPPLY, WITHDRAW, BORROW, REPAY]

# Campaign statuses
ACTIVE = "active"
PAUSED = "paused"
ENDED = "ended"

CAMPAIGN_STATUSES = [ACTIVE, PAUSED, ENDED]

SECONDS_PER_DAY = 24 * 60 * 60


def normalize_address(address: str) -> str:
    """Canonical (lowercase) form of an address."""
    return address.strip().lower()


@dataclass(frozen=True)
class RawEvent:
    """A decoded Pool log for one reserve, before tagging."""

    user: str
    amount: int  # base units, non-negative
    block_number: int
    log_index: int  # emission index within the block
    on_behalf_of: Optional[str] = None  # only Supply/Borrow delegate
    tx_hash: Optional[str] = None


@dataclass(frozen=True)
class TaggedEvent:
    """A raw event tagged with its type and resolved to the affected entity."""

    event_type: str  # 'supply', 'withdraw', 'borrow', 'repay'
    address: str  # onBehalfOf if present, else user (lowercase)
    amount: int
    block_number: int
    log_index: int
    user: str
    on_behalf_of: Optional[str] = None
    tx_hash: Optional[str] = None

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)


@dataclass
class EventBatches:
    """Per-type event batches for one reserve and one inclusive block range."""

    supply: list[RawEvent] = field(default_factory=list)
    withdraw: list[RawEvent] = field(default_factory=list)
    borrow: list[RawEvent] = field(default_factory=list)
    repay: list[RawEvent] = field(default_factory=list)

    def by_type(self) -> dict[str, list[RawEvent]]:
        return {
            SUPPLY: self.supply,
            WITHDRAW: self.withdraw,
            BORROW: self.borrow,
            REPAY: self.repay,
        }

    def __len__(self) -> int:
        return sum(len(batch) for batch in self.by_type().values())


@dataclass
class Position:
    """Per-entity balances and time-weighted balance integrals (balance-seconds)."""

    address: str
    supply_balance: int = 0
    debt_balance: int = 0
    supply_balance_time: int = 0
    debt_balance_time: int = 0
    net_borrow_balance_time: int = 0
    # Watermark: integration baseline for the next event
    last_updated_block: int = 0
    last_updated_timestamp: int = 0

    @classmethod
    def open(cls, address: str, block_number: int, timestamp: int) -> "Position":
        """A zero position watermarked at the entity's first event."""
        return cls(
            address=normalize_address(address),
            last_updated_block=block_number,
            last_updated_timestamp=timestamp,
        )

    @property
    def net_lending(self) -> int:
        return self.supply_balance - self.debt_balance

    @property
    def net_borrowing(self) -> int:
        return max(0, -self.net_lending)

    @property
    def is_net_borrower(self) -> bool:
        return self.net_lending < 0


@dataclass(frozen=True)
class Campaign:
    id: str
    reward_token: str
    target_token: str
    start_timestamp: int
    end_timestamp: int
    total_reward_budget: int
    daily_reward_budget: int
    status: str = ACTIVE  # 'active', 'paused', 'ended'


@dataclass(frozen=True)
class CampaignCheckpoint:
    """Watermark up to which a campaign's reward accrual has been paid out."""

    campaign_id: str
    last_calculated_block: int
    last_calculated_timestamp: int


@dataclass
class UserReward:
    address: str
    campaign_id: str
    reward_token: str
    # Share computed for the latest period only
    period_reward: int
    # Running total of every period_reward for (address, campaign_id)
    cumulative_reward: int
    last_calculated_block: int
    last_calculated_timestamp: int


@dataclass(frozen=True)
class IndexerState:
    """Cursor of the last block whose events were applied to positions."""

    last_indexed_block: int
    last_indexed_timestamp: int


@dataclass
class AllocationResult:
    """Outcome of one allocation call for one campaign."""

    rewards: dict[str, int]
    checkpoint: Optional[CampaignCheckpoint]
    budget_for_period: int
    total_balance_time: int
    advanced: bool

    @property
    def distributed(self) -> int:
        return sum(self.rewards.values())

    @property
    def dust(self) -> int:
        """Undistributed remainder of the period budget."""
        if not self.advanced:
            return 0
        return self.budget_for_period - self.distributed
