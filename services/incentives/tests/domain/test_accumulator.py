"""Tests for position accumulation."""

import pytest

from services.incentives.src.incentives.domain.accumulator import apply_events
from services.incentives.src.incentives.domain.errors import (
    BlockNotFoundError,
    OrderingViolationError,
    UnknownEventTypeError,
)
from services.incentives.src.incentives.domain.models import Position, TaggedEvent


def make_event(event_type: str, block: int, amount: int, address: str = "0xuser", log_index: int = 0):
    return TaggedEvent(
        event_type=event_type,
        address=address,
        amount=amount,
        block_number=block,
        log_index=log_index,
        user=address,
    )


def timestamps(mapping: dict[int, int]):
    """Block -> timestamp resolver raising BlockNotFoundError for unknown blocks."""

    def timestamp_of(block: int) -> int:
        if block not in mapping:
            raise BlockNotFoundError(block)
        return mapping[block]

    return timestamp_of


class TestApplyEvents:

    def test_supply_then_withdraw_accrues_supply_time(self):
        events = [
            make_event("supply", 1, 1000),
            make_event("withdraw", 2, 1000),
        ]

        result = apply_events({}, events, timestamps({1: 0, 2: 3600}))

        position = result.positions["0xuser"]
        assert position.supply_balance_time == 3_600_000
        assert position.net_borrow_balance_time == 0
        assert position.supply_balance == 0

    def test_first_event_contributes_no_integral(self):
        result = apply_events({}, [make_event("borrow", 5, 700)], timestamps({5: 1000}))

        position = result.positions["0xuser"]
        assert position.debt_balance == 700
        assert position.debt_balance_time == 0
        assert position.net_borrow_balance_time == 0
        assert position.last_updated_block == 5
        assert position.last_updated_timestamp == 1000

    def test_accrues_with_balance_before_delta(self):
        events = [
            make_event("borrow", 1, 100),
            make_event("borrow", 2, 900),
        ]

        result = apply_events({}, events, timestamps({1: 0, 2: 10}))

        position = result.positions["0xuser"]
        # 100 held for 10s; the second borrow only counts from t=10
        assert position.debt_balance_time == 1000
        assert position.net_borrow_balance_time == 1000
        assert position.debt_balance == 1000

    def test_net_borrow_accrues_only_while_net_borrower(self):
        events = [
            make_event("supply", 1, 500),
            make_event("borrow", 2, 300),  # net lender
            make_event("borrow", 3, 400),  # now net borrower by 200
            make_event("repay", 4, 700),
        ]

        result = apply_events({}, events, timestamps({1: 0, 2: 10, 3: 20, 4: 30}))

        position = result.positions["0xuser"]
        assert position.net_borrow_balance_time == 200 * 10
        assert position.supply_balance_time == 500 * 30
        assert position.debt_balance_time == 300 * 10 + 700 * 10

    def test_derived_fields_track_balances(self):
        events = [
            make_event("supply", 1, 100),
            make_event("borrow", 2, 250),
        ]

        result = apply_events({}, events, timestamps({1: 0, 2: 5}))

        position = result.positions["0xuser"]
        assert position.net_lending == position.supply_balance - position.debt_balance == -150
        assert position.net_borrowing == 150

    def test_net_borrow_time_never_decreases_for_borrower(self):
        events = [
            make_event("borrow", 1, 100),
            make_event("borrow", 2, 50),
            make_event("repay", 3, 30),
            make_event("borrow", 4, 10),
        ]
        resolver = timestamps({1: 0, 2: 12, 3: 30, 4: 31})

        seen = []
        state: dict[str, Position] = {}
        for event in events:
            state = apply_events(state, [event], resolver).positions
            seen.append(state["0xuser"].net_borrow_balance_time)

        assert seen == sorted(seen)

    def test_seeded_state_keeps_prior_integrals(self):
        seed = {
            "0xuser": Position(
                address="0xuser",
                debt_balance=100,
                debt_balance_time=5000,
                net_borrow_balance_time=5000,
                last_updated_block=10,
                last_updated_timestamp=1000,
            )
        }

        result = apply_events(seed, [make_event("repay", 11, 100)], timestamps({11: 1010}))

        position = result.positions["0xuser"]
        assert position.net_borrow_balance_time == 5000 + 100 * 10
        assert position.debt_balance == 0

    def test_does_not_mutate_input_state(self):
        seed = {"0xuser": Position(address="0xuser", supply_balance=10, last_updated_block=1)}

        apply_events(seed, [make_event("supply", 2, 5)], timestamps({2: 100}))

        assert seed["0xuser"].supply_balance == 10
        assert seed["0xuser"].last_updated_block == 1

    def test_tracks_entities_separately(self):
        events = [
            make_event("supply", 1, 10, address="0xa"),
            make_event("borrow", 1, 20, address="0xb", log_index=1),
        ]

        result = apply_events({}, events, timestamps({1: 0}))

        assert result.touched == {"0xa", "0xb"}
        assert result.positions["0xa"].supply_balance == 10
        assert result.positions["0xb"].debt_balance == 20

    def test_untouched_seeded_positions_are_kept(self):
        seed = {"0xidle": Position(address="0xidle", supply_balance=1)}

        result = apply_events(seed, [make_event("supply", 1, 10)], timestamps({1: 0}))

        assert "0xidle" in result.positions
        assert result.touched == {"0xuser"}


class TestApplyEventsFailures:

    def test_missing_timestamp_skips_event(self):
        events = [
            make_event("borrow", 1, 100),
            make_event("borrow", 2, 100),  # no timestamp
            make_event("repay", 3, 50),
        ]

        result = apply_events({}, events, timestamps({1: 0, 3: 20}))

        position = result.positions["0xuser"]
        assert len(result.skipped) == 1
        assert result.skipped[0].block_number == 2
        assert result.applied == 2
        assert position.debt_balance == 50
        assert position.debt_balance_time == 100 * 20

    def test_resolver_returning_none_skips_event(self):
        result = apply_events({}, [make_event("supply", 1, 10)], lambda block: None)

        assert result.positions == {}
        assert len(result.skipped) == 1

    def test_skipped_event_leaves_watermark(self):
        seed = {"0xuser": Position(address="0xuser", last_updated_block=5, last_updated_timestamp=50)}

        result = apply_events(seed, [make_event("supply", 6, 10)], timestamps({}))

        assert result.positions["0xuser"].last_updated_block == 5
        assert result.positions["0xuser"].last_updated_timestamp == 50

    def test_event_older_than_watermark_is_fatal(self):
        seed = {"0xuser": Position(address="0xuser", last_updated_block=10, last_updated_timestamp=1000)}

        with pytest.raises(OrderingViolationError):
            apply_events(seed, [make_event("supply", 11, 10)], timestamps({11: 999}))

    def test_event_block_behind_watermark_is_fatal(self):
        seed = {"0xuser": Position(address="0xuser", last_updated_block=10, last_updated_timestamp=1000)}

        with pytest.raises(OrderingViolationError):
            apply_events(seed, [make_event("supply", 9, 10)], timestamps({9: 1000}))

    def test_unknown_event_type_is_fatal(self):
        with pytest.raises(UnknownEventTypeError):
            apply_events({}, [make_event("liquidation", 1, 10)], timestamps({1: 0}))
