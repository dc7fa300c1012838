"""
plaza.database.engine — Engine, Sessions & the run_db Bridge
=============================================================

HTTP handlers and Socket.IO events are coroutines; the store is reached
through synchronous SQLAlchemy.  Services are written as plain sync
functions ``f(engine, ...)`` that own one session each (one call = one
transaction), and async callers hop them onto a worker thread::

    account = await run_db(account_service.get_account, engine, account_id)

``DATABASE_URL`` selects the backend.  PostgreSQL (psycopg2) is the
production target; a ``sqlite://`` URL works for local development, with
SQLite-appropriate connection arguments instead of a sized pool.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session

from plaza.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Pool settings for server backends; SQLite ignores them.
POOL_OPTIONS = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 10,
    "pool_recycle": 3600,
    "pool_pre_ping": True,
}


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build the process engine from *url* or ``DATABASE_URL``.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is not set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and point it at your database."
        )

    if make_url(url).get_backend_name() == "sqlite":
        # run_db hands connections to worker threads.
        engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    else:
        engine = create_engine(url, **POOL_OPTIONS)

    logger.info("Database engine created → %s", engine.url.render_as_string(hide_password=True))
    return engine


def init_db(engine: Engine) -> None:
    """Create any missing tables.  Alembic owns the schema in production;
    this keeps a fresh dev database bootable with ``python -m plaza``."""
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Session that commits on clean exit and rolls back on error.

    Objects stay loaded after commit (``expire_on_commit=False``) so a
    service can return them to callers on another thread.
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
    """Await a synchronous store function on a worker thread."""
    return await asyncio.to_thread(func, *args, **kwargs)
