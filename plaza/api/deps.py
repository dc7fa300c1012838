"""
plaza.api.deps — FastAPI dependency injection & authorization guards
=====================================================================

Two guards protect the API:

* :func:`require_authenticated` resolves the session cookie to an account
  id.  It does not load the account; endpoints that only need identity
  stay cheap.
* :func:`require_admin` builds on it and re-reads the account on every
  request.  Privilege is never cached in the session, so a demotion takes
  effect on the demoted admin's very next call.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy import Engine

from plaza.config import PlazaConfig, load_config
from plaza.database.engine import create_db_engine, run_db
from plaza.database.models import Account
from plaza.errors import Forbidden, Unauthenticated
from plaza.services import session_service
from plaza.services.account_service import get_account


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> PlazaConfig:
    return load_config(os.getenv("PLAZA_CONFIG", "config.yaml"))


async def require_authenticated(
    request: Request,
    engine: Annotated[Engine, Depends(get_engine)],
) -> int:
    """Return the session's account id or raise :class:`Unauthenticated`."""
    token = request.cookies.get(session_service.SESSION_COOKIE)
    account_id = await run_db(session_service.resolve, engine, token)
    if account_id is None:
        raise Unauthenticated()
    request.state.account_id = account_id
    return account_id


def require_admin(min_level: int = 1):
    """Build a guard admitting live accounts with ``admin_level >= min_level``."""

    async def _require_admin(
        account_id: Annotated[int, Depends(require_authenticated)],
        engine: Annotated[Engine, Depends(get_engine)],
    ) -> Account:
        account = await run_db(get_account, engine, account_id)
        if account is None or account.admin_level < min_level:
            raise Forbidden()
        return account

    return _require_admin


# Level-1 admin guard shared by every admin route.
require_any_admin = require_admin(1)
