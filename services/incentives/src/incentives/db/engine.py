from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine

from services.incentives.src.incentives.config import settings


def get_engine(database_url: str | None = None) -> Engine:
    url = database_url or settings.database_url
    return create_engine(url, echo=False)


def init_db(engine: Engine) -> None:
    from services.incentives.src.incentives.db.models import metadata

    metadata.create_all(engine)


@contextmanager
def transaction(engine: Engine, conn: Connection | None = None) -> Iterator[Connection]:
    """Join the caller's connection, or open (and commit) a transaction of our own."""
    if conn is not None:
        yield conn
        return
    with engine.begin() as own:
        yield own
