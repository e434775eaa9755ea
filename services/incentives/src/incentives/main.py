import logging
import os
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI

from services.incentives.src.incentives.config import settings
from services.incentives.src.incentives.routes import api_router

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: BackgroundScheduler | None = None


def run_indexing() -> None:
    """Index the next block window. Failures leave the cursor for the next run."""
    from services.incentives.src.incentives.jobs.index_positions import run_index_cycle

    try:
        count = run_index_cycle()
        logger.info(f"Indexing cycle: {count} positions updated")
    except Exception as e:
        logger.error(f"Indexing cycle failed: {e}", exc_info=True)


def run_rewards() -> None:
    """Allocate rewards for every active campaign."""
    from services.incentives.src.incentives.jobs.calculate_rewards import run_reward_cycle

    try:
        results = run_reward_cycle()
        for campaign_id, count in results.items():
            status = f"{count} users" if count >= 0 else "FAILED"
            logger.info(f"Rewards {campaign_id}: {status}")
    except Exception as e:
        logger.error(f"Reward cycle failed: {e}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and start the indexing/reward scheduler on startup."""
    global scheduler

    from services.incentives.src.incentives.db.engine import get_engine, init_db

    init_db(get_engine())

    if os.getenv("ENABLE_SCHEDULER", "true").lower() == "true":
        logger.info(
            f"Starting scheduler (indexing every {settings.index_interval_minutes} min, "
            f"rewards every {settings.reward_interval_minutes} min)"
        )

        scheduler = BackgroundScheduler()
        # max_instances=1: a cycle never overlaps its own previous run
        scheduler.add_job(
            run_indexing,
            "interval",
            minutes=settings.index_interval_minutes,
            id="indexing",
            name="Aave V3 Position Indexing",
            max_instances=1,
        )
        scheduler.add_job(
            run_rewards,
            "interval",
            minutes=settings.reward_interval_minutes,
            id="rewards",
            name="Campaign Reward Calculation",
            max_instances=1,
        )
        scheduler.start()

        if os.getenv("RUN_CYCLES_ON_STARTUP", "true").lower() == "true":
            logger.info("Running initial cycles...")
            run_indexing()
            run_rewards()

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shutdown complete")


app = FastAPI(title="Lending Incentives API", lifespan=lifespan)

app.include_router(api_router)


@app.get("/")
def root() -> dict[str, str]:
    return {"service": "lending-incentives-api", "docs": "/docs"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
