"""Tests for PositionRepository and IndexerStateRepository."""

import pytest
from sqlalchemy import create_engine

from services.incentives.src.incentives.db import positions_repository
from services.incentives.src.incentives.db.engine import init_db
from services.incentives.src.incentives.db.positions_repository import (
    IndexerStateRepository,
    PositionRepository,
)
from services.incentives.src.incentives.domain.models import IndexerState, Position


def make_position(address: str = "0xuser", **kwargs) -> Position:
    return Position(
        address=address,
        supply_balance=kwargs.get("supply_balance", 1000),
        debt_balance=kwargs.get("debt_balance", 2500),
        supply_balance_time=kwargs.get("supply_balance_time", 0),
        debt_balance_time=kwargs.get("debt_balance_time", 0),
        net_borrow_balance_time=kwargs.get("net_borrow_balance_time", 0),
        last_updated_block=kwargs.get("last_updated_block", 100),
        last_updated_timestamp=kwargs.get("last_updated_timestamp", 1000),
    )


@pytest.fixture
def engine():
    engine = create_engine("sqlite:///:memory:")
    init_db(engine)
    return engine


@pytest.fixture
def repository(engine):
    return PositionRepository(engine)


class TestLoadAll:

    def test_returns_empty_dict_when_table_empty(self, repository):
        assert repository.load_all() == {}

    def test_keys_by_address(self, repository):
        repository.save_batch([make_position("0xa"), make_position("0xb")])

        result = repository.load_all()

        assert set(result) == {"0xa", "0xb"}
        assert result["0xa"].address == "0xa"


class TestSaveBatch:

    def test_returns_zero_for_empty_batch(self, repository):
        assert repository.save_batch([]) == 0

    def test_round_trips_every_field(self, repository):
        position = make_position(
            supply_balance_time=123,
            debt_balance_time=456,
            net_borrow_balance_time=789,
        )

        repository.save_batch([position])

        assert repository.get("0xuser") == position

    def test_preserves_integers_beyond_64_bits(self, repository):
        big = 2**200 + 12345
        position = make_position(debt_balance=big, net_borrow_balance_time=big * 3600)

        repository.save_batch([position])

        stored = repository.get("0xuser")
        assert stored.debt_balance == big
        assert stored.net_borrow_balance_time == big * 3600

    def test_preserves_negative_balances(self, repository):
        repository.save_batch([make_position(supply_balance=-5)])

        assert repository.get("0xuser").supply_balance == -5

    def test_upsert_replaces_existing_row(self, repository):
        repository.save_batch([make_position(supply_balance=1)])
        repository.save_batch([make_position(supply_balance=2, last_updated_block=200)])

        stored = repository.get("0xuser")
        assert stored.supply_balance == 2
        assert stored.last_updated_block == 200
        assert len(repository.load_all()) == 1

    def test_normalizes_address(self, repository):
        repository.save_batch([make_position("0xABCDEF")])

        assert repository.get("0xAbCdEf") is not None
        assert "0xabcdef" in repository.load_all()

    def test_joins_callers_transaction(self, engine, repository):
        with pytest.raises(RuntimeError):
            with engine.begin() as conn:
                repository.save_batch([make_position()], conn=conn)
                raise RuntimeError("abort")

        assert repository.load_all() == {}

    def test_writes_batches_beyond_sqlite_parameter_limit(self, repository):
        positions = [make_position(f"0x{i:040x}") for i in range(3500)]

        count = repository.save_batch(positions)

        assert count == 3500
        assert len(repository.load_all()) == 3500

    def test_chunked_batches_share_one_transaction(self, engine, repository, monkeypatch):
        monkeypatch.setattr(positions_repository, "UPSERT_BATCH_SIZE", 2)

        with pytest.raises(RuntimeError):
            with engine.begin() as conn:
                count = repository.save_batch(
                    [make_position(f"0x{i}") for i in range(5)], conn=conn
                )
                assert count == 5
                raise RuntimeError("abort")

        assert repository.load_all() == {}


class TestGet:

    def test_returns_none_for_unknown_address(self, repository):
        assert repository.get("0xnobody") is None


class TestIndexerStateRepository:

    def test_load_returns_none_before_first_save(self, engine):
        assert IndexerStateRepository(engine).load() is None

    def test_save_and_load(self, engine):
        repo = IndexerStateRepository(engine)

        repo.save(IndexerState(last_indexed_block=500, last_indexed_timestamp=9000))

        assert repo.load() == IndexerState(500, 9000)

    def test_save_overwrites_single_row(self, engine):
        repo = IndexerStateRepository(engine)

        repo.save(IndexerState(500, 9000))
        repo.save(IndexerState(550, 9100))

        assert repo.load() == IndexerState(550, 9100)
