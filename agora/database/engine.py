"""
agora.database.engine — Database Connection & Async Helper
===========================================================

SQLAlchemy + psycopg2 is synchronous.  FastAPI's sync endpoints already
run on the threadpool, but the notification workers live on the event
loop, so every DB call made from a coroutine goes through :func:`run_db`,
which ships the synchronous function to a worker thread with
``asyncio.to_thread()``.

Usage::

    from agora.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL / PG_* from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    # Inside a coroutine:
    user = await run_db(user_by_id, engine, user_id)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import URL
from sqlalchemy.orm import Session

from agora.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

POOL_SIZE = 25


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def database_url() -> str | URL:
    """Resolve the connection URL.

    ``DATABASE_URL`` wins when set; otherwise the URL is assembled from
    ``PG_ADDR``, ``PG_USER``, ``PG_USER_PW`` and ``PG_DB_NAME`` with the
    same defaults the original deployment used.
    """
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    return URL.create(
        "postgresql+psycopg2",
        username=os.getenv("PG_USER", "postgres"),
        password=os.getenv("PG_USER_PW") or None,
        host=os.getenv("PG_ADDR", "localhost"),
        port=5432,
        database=os.getenv("PG_DB_NAME", "trudb"),
    )


def create_db_engine() -> Engine:
    """Build a SQLAlchemy :class:`Engine`.

    * ``pool_size=25`` — persistent connections, matching the API's
      historical pool.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.
    """
    engine = create_engine(
        database_url(),
        echo=False,        # Set True for SQL debugging
        pool_size=POOL_SIZE,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`agora.database.models`.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained for dev/test environments
        where Alembic may not have run.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.

    Objects stay usable after the block exits (``expire_on_commit=False``)
    so services can hand ORM rows back to callers.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Under the hood it calls :func:`asyncio.to_thread`, which schedules
    *func* on the default ``ThreadPoolExecutor`` so the event loop is
    never blocked by a query.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
