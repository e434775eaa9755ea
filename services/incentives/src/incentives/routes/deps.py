from sqlalchemy.engine import Engine

from services.incentives.src.incentives.db.engine import get_engine


def get_db_engine() -> Engine:
    return get_engine()
