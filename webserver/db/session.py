from __future__ import annotations

from functools import lru_cache

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from webserver.config import get_settings
from webserver.observability.masking import mask_credentials


# Bare Postgres schemes resolve to psycopg2 on SQLAlchemy 2.0; only psycopg (v3) is installed.
_BARE_POSTGRES_DRIVERS = {"postgres", "postgresql"}


class DatabaseNotConfiguredError(RuntimeError):
    pass


def engine_url(database_url: str) -> URL:
    url = make_url(database_url)
    if url.drivername in _BARE_POSTGRES_DRIVERS:
        url = url.set(drivername="postgresql+psycopg")
    return url


@lru_cache(maxsize=8)
def get_engine(database_url: str | None = None) -> Engine:
    url = database_url or get_settings().database_url
    if not url:
        raise DatabaseNotConfiguredError("DATABASE_URL is not set")
    return create_engine(engine_url(url), pool_pre_ping=True)


def _ping(database_url: str | None) -> bool:
    try:
        engine = get_engine(database_url)
    except DatabaseNotConfiguredError:
        return False

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        structlog.get_logger("db").warning(
            "database_ping_failed",
            database=mask_credentials(database_url or get_settings().database_url),
            error=str(exc),
        )
        return False
    return True


async def test_database_connection(database_url: str | None = None) -> bool:
    """Run ``SELECT 1`` against the configured database without blocking the loop.

    Returns False when no URL is configured or the database refuses the
    connection; anything else (bad URL, missing driver) propagates.
    """

    return await run_in_threadpool(_ping, database_url)
