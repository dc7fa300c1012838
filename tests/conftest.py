"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Point config loading at the test YAML before any plaza.api import.
# ---------------------------------------------------------------------------
os.environ.setdefault("PLAZA_CONFIG", str(Path(__file__).parent / "plaza.test.yaml"))

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from plaza.config import PlazaConfig  # noqa: E402
from plaza.database.models import Account, Base  # noqa: E402

# One real digest reused by every fixture account (hashing is deliberately slow).
_PASSWORD = "hunter22"
_password_hash: str | None = None


def password_hash() -> str:
    global _password_hash
    if _password_hash is None:
        from plaza.services.account_service import hash_password

        _password_hash = hash_password(_PASSWORD)
    return _password_hash


def run(coro):
    """Run a coroutine to completion (no pytest-asyncio needed)."""
    return asyncio.run(coro)


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Plaza tables.

    StaticPool keeps every thread on the same in-memory database
    (``run_db`` hops to worker threads).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """File-backed SQLite engine with a real connection pool, for tests that
    hit the store from several threads at once."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'plaza.db'}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def cfg() -> PlazaConfig:
    return PlazaConfig(
        site_name="Plaza Test",
        admin_username="root",
        banned_words=("darn", "heck"),
        max_message_length=200,
        chat_history_size=20,
    )


def make_account(
    engine: Engine,
    username: str,
    *,
    coins: int = 100,
    admin_level: int = 0,
    hashed: str | None = None,
    **fields,
) -> Account:
    """Insert an account directly and return a detached copy."""
    with Session(engine, expire_on_commit=False) as session:
        account = Account(
            username=username,
            email=f"{username}@example.com",
            password_hash=hashed or "not-a-real-digest",
            coins=coins,
            admin_level=admin_level,
            is_admin=admin_level > 0,
            **fields,
        )
        session.add(account)
        session.commit()
        session.refresh(account)
        session.expunge(account)
        return account


def reload_account(engine: Engine, account_id: int) -> Account | None:
    with Session(engine, expire_on_commit=False) as session:
        account = session.get(Account, account_id)
        if account is not None:
            session.expunge(account)
        return account


@pytest.fixture
def app_client(db_engine):
    """Factory for FastAPI TestClients bound to the test engine.

    Each call returns a client with its own cookie jar, so one test can act
    as several users.
    """
    from fastapi.testclient import TestClient

    import plaza.api.rate_limit as rl_mod
    from plaza.api.deps import get_config, get_engine
    from plaza.api.main import app

    saved_limiter = rl_mod._limiter
    rl_mod.configure_rate_limiter(engine=db_engine, max_requests=1000, window_seconds=900)

    test_cfg = PlazaConfig(site_name="Plaza Test", admin_username="root")
    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: test_cfg

    def _make() -> TestClient:
        return TestClient(app, raise_server_exceptions=False)

    yield _make

    app.dependency_overrides.clear()
    rl_mod._limiter = saved_limiter
