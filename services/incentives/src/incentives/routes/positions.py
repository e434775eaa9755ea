from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.engine import Engine

from services.incentives.src.incentives.db.positions_repository import PositionRepository
from services.incentives.src.incentives.domain.models import Position
from services.incentives.src.incentives.routes.deps import get_db_engine
from services.incentives.src.incentives.schemas.responses import (
    PositionResponse,
    PositionsResponse,
)
from services.incentives.src.incentives.utils.timestamps import to_utc_datetime

router = APIRouter(prefix="/positions", tags=["positions"])


def position_to_response(position: Position) -> PositionResponse:
    return PositionResponse(
        address=position.address,
        supply_balance=str(position.supply_balance),
        debt_balance=str(position.debt_balance),
        net_lending=str(position.net_lending),
        net_borrowing=str(position.net_borrowing),
        supply_balance_time=str(position.supply_balance_time),
        debt_balance_time=str(position.debt_balance_time),
        net_borrow_balance_time=str(position.net_borrow_balance_time),
        eligible=position.is_net_borrower,
        last_updated_block=position.last_updated_block,
        last_updated_timestamp=position.last_updated_timestamp,
        last_updated_at=to_utc_datetime(position.last_updated_timestamp),
    )


@router.get("", response_model=PositionsResponse)
def list_positions(
    eligible_only: bool = Query(False, description="Only net borrowers"),
    engine: Engine = Depends(get_db_engine),
) -> PositionsResponse:
    """List all indexed positions."""
    positions = PositionRepository(engine).load_all().values()
    if eligible_only:
        positions = [p for p in positions if p.is_net_borrower]
    items = [position_to_response(p) for p in positions]
    return PositionsResponse(count=len(items), positions=items)


@router.get("/{address}", response_model=PositionResponse)
def get_position(address: str, engine: Engine = Depends(get_db_engine)) -> PositionResponse:
    position = PositionRepository(engine).get(address)
    if position is None:
        raise HTTPException(status_code=404, detail=f"No position for {address}")
    return position_to_response(position)
