"""Repository for user positions and the indexer cursor."""

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine

from services.incentives.src.incentives.db.engine import transaction
from services.incentives.src.incentives.db.models import indexer_state, user_positions
from services.incentives.src.incentives.domain.models import (
    IndexerState,
    Position,
    normalize_address,
)

# Rows per upsert statement: 11 parameters per row stays under the
# 999-parameter limit of older SQLite builds
UPSERT_BATCH_SIZE = 90

POSITION_UPDATE_COLUMNS = [
    "supply_balance",
    "debt_balance",
    "net_lending",
    "net_borrowing",
    "supply_balance_time",
    "debt_balance_time",
    "net_borrow_balance_time",
    "last_updated_block",
    "last_updated_timestamp",
    "updated_at",
]


def _row_to_position(row) -> Position:
    return Position(
        address=row.address,
        supply_balance=row.supply_balance,
        debt_balance=row.debt_balance,
        supply_balance_time=row.supply_balance_time,
        debt_balance_time=row.debt_balance_time,
        net_borrow_balance_time=row.net_borrow_balance_time,
        last_updated_block=int(row.last_updated_block),
        last_updated_timestamp=int(row.last_updated_timestamp),
    )


class PositionRepository:
    """Repository for user positions, keyed by lowercase address."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._is_sqlite = "sqlite" in str(engine.url)

    def load_all(self) -> dict[str, Position]:
        """Load every persisted position, keyed by address."""
        stmt = select(user_positions).order_by(user_positions.c.address)

        with self.engine.connect() as conn:
            result = conn.execute(stmt)
            return {row.address: _row_to_position(row) for row in result}

    def get(self, address: str) -> Position | None:
        stmt = select(user_positions).where(
            user_positions.c.address == normalize_address(address)
        )

        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
            if row is None:
                return None
            return _row_to_position(row)

    def save_batch(
        self, positions: Iterable[Position], conn: Connection | None = None
    ) -> int:
        """
        Upsert full position records.

        Args:
            positions: Positions to write (every field is written)
            conn: Optional open connection to join the caller's transaction

        Returns:
            Number of rows written
        """
        now = datetime.now(timezone.utc)
        rows = []
        for p in positions:
            rows.append({
                "address": normalize_address(p.address),
                "supply_balance": p.supply_balance,
                "debt_balance": p.debt_balance,
                "net_lending": p.net_lending,
                "net_borrowing": p.net_borrowing,
                "supply_balance_time": p.supply_balance_time,
                "debt_balance_time": p.debt_balance_time,
                "net_borrow_balance_time": p.net_borrow_balance_time,
                "last_updated_block": p.last_updated_block,
                "last_updated_timestamp": p.last_updated_timestamp,
                "updated_at": now,
            })

        if not rows:
            return 0

        insert = sqlite_insert if self._is_sqlite else pg_insert
        with transaction(self.engine, conn) as c:
            for start in range(0, len(rows), UPSERT_BATCH_SIZE):
                stmt = insert(user_positions).values(rows[start : start + UPSERT_BATCH_SIZE])
                stmt = stmt.on_conflict_do_update(
                    index_elements=["address"],
                    set_={col: stmt.excluded[col] for col in POSITION_UPDATE_COLUMNS},
                )
                c.execute(stmt)
        return len(rows)


class IndexerStateRepository:
    """Single-row cursor of the last indexed block."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._is_sqlite = "sqlite" in str(engine.url)

    def load(self) -> IndexerState | None:
        stmt = select(indexer_state).where(indexer_state.c.id == 1)

        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
            if row is None:
                return None
            return IndexerState(
                last_indexed_block=int(row.last_indexed_block),
                last_indexed_timestamp=int(row.last_indexed_timestamp),
            )

    def save(
        self, state: IndexerState, conn: Connection | None = None
    ) -> None:
        row = {
            "id": 1,
            "last_indexed_block": state.last_indexed_block,
            "last_indexed_timestamp": state.last_indexed_timestamp,
            "updated_at": datetime.now(timezone.utc),
        }

        insert = sqlite_insert if self._is_sqlite else pg_insert
        stmt = insert(indexer_state).values([row])
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={
                "last_indexed_block": stmt.excluded.last_indexed_block,
                "last_indexed_timestamp": stmt.excluded.last_indexed_timestamp,
                "updated_at": stmt.excluded.updated_at,
            },
        )

        with transaction(self.engine, conn) as c:
            c.execute(stmt)
