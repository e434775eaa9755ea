from fastapi import APIRouter

from services.incentives.src.incentives.routes.campaigns import router as campaigns_router
from services.incentives.src.incentives.routes.positions import router as positions_router
from services.incentives.src.incentives.routes.rewards import router as rewards_router

api_router = APIRouter(prefix="/api")
api_router.include_router(positions_router)
api_router.include_router(campaigns_router)
api_router.include_router(rewards_router)

__all__ = ["api_router"]
