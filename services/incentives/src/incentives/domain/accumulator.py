"""
Time-weighted position accumulation.

Replays an ordered event sequence onto per-entity positions. Before an
event's delta is applied, each integral accrues `balance * dt` where dt is
the time since the position's watermark, so a balance is always weighted by
how long it was actually held. Integer arithmetic only.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Mapping, Optional

from services.incentives.src.incentives.domain.errors import (
    BlockNotFoundError,
    OrderingViolationError,
    UnknownEventTypeError,
)
from services.incentives.src.incentives.domain.models import (
    BORROW,
    REPAY,
    SUPPLY,
    WITHDRAW,
    Position,
    TaggedEvent,
    normalize_address,
)

logger = logging.getLogger(__name__)

TimestampOf = Callable[[int], Optional[int]]

# (supply delta sign, debt delta sign) per event type
BALANCE_DELTAS = {
    SUPPLY: (1, 0),
    WITHDRAW: (-1, 0),
    BORROW: (0, 1),
    REPAY: (0, -1),
}


@dataclass
class Accumulation:
    """Updated positions plus bookkeeping for one apply_events call."""

    positions: dict[str, Position]
    touched: set[str] = field(default_factory=set)
    skipped: list[TaggedEvent] = field(default_factory=list)
    applied: int = 0

    def touched_positions(self) -> list[Position]:
        return [self.positions[address] for address in sorted(self.touched)]


def accrue(position: Position, timestamp: int) -> None:
    """Bring a position's integrals up to `timestamp` using its current balances."""
    dt = timestamp - position.last_updated_timestamp
    if dt < 0:
        raise OrderingViolationError(
            position.address, timestamp, position.last_updated_timestamp
        )
    position.supply_balance_time += position.supply_balance * dt
    position.debt_balance_time += position.debt_balance * dt
    # Integrates net borrowing only while the entity is a net borrower
    position.net_borrow_balance_time += position.net_borrowing * dt


def apply_delta(position: Position, event: TaggedEvent) -> None:
    try:
        supply_sign, debt_sign = BALANCE_DELTAS[event.event_type]
    except KeyError:
        raise UnknownEventTypeError(event.event_type) from None
    position.supply_balance += supply_sign * event.amount
    position.debt_balance += debt_sign * event.amount


def apply_event(position: Position, event: TaggedEvent, timestamp: int) -> None:
    """Accrue to the event's timestamp, apply its delta, advance the watermark."""
    if event.block_number < position.last_updated_block:
        raise OrderingViolationError(
            position.address, timestamp, position.last_updated_timestamp
        )
    accrue(position, timestamp)
    apply_delta(position, event)
    position.last_updated_block = event.block_number
    position.last_updated_timestamp = timestamp


def apply_events(
    state: Mapping[str, Position],
    events: Iterable[TaggedEvent],
    timestamp_of: TimestampOf,
) -> Accumulation:
    """
    Apply an ordered event sequence to a position state.

    The caller must seed `state` with every persisted position; positions
    missing from it start from zero and would discard previously accrued
    integrals. The input mapping is not mutated.

    Args:
        state: Address -> Position, as last persisted
        events: Events ordered by (block_number, log_index)
        timestamp_of: Resolves a block number to unix seconds; may raise
            BlockNotFoundError or return None for an unknown block

    Returns:
        Accumulation with the full updated state and the touched addresses

    Raises:
        OrderingViolationError: If an event precedes its position's watermark
        UnknownEventTypeError: If an event type has no balance delta
    """
    positions = {
        normalize_address(address): replace(position)
        for address, position in state.items()
    }
    result = Accumulation(positions=positions)

    for event in events:
        try:
            timestamp = timestamp_of(event.block_number)
        except BlockNotFoundError:
            timestamp = None
        if timestamp is None:
            logger.warning(
                f"Skipping {event.event_type} for {event.address}: "
                f"no timestamp for block {event.block_number}"
            )
            result.skipped.append(event)
            continue

        position = positions.get(event.address)
        if position is None:
            position = Position.open(event.address, event.block_number, timestamp)
            positions[position.address] = position

        apply_event(position, event, timestamp)
        result.touched.add(position.address)
        result.applied += 1

    return result
