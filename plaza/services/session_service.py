"""
plaza.services.session_service — Opaque Login Sessions
=======================================================

Maps a random token (carried in an HTTP cookie) to an account id.  All
state lives in the ``sessions`` table; the token itself encodes nothing.

Expiry is absolute from creation.  An expired token resolves to ``None``
and its row is deleted on the spot; ``create`` also prunes every expired
row.  There is no renewal — a new login is required.
"""

from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime, timedelta

from sqlalchemy import Engine, delete

from plaza.database.engine import get_session
from plaza.database.models import LoginSession
from plaza.engine.ban_policy import as_utc

logger = logging.getLogger(__name__)

SESSION_COOKIE = "plaza_session"
DEFAULT_LIFETIME_HOURS = 24
TOKEN_BYTES = 32


def create(
    engine: Engine,
    account_id: int,
    *,
    lifetime_hours: int = DEFAULT_LIFETIME_HOURS,
    now: datetime | None = None,
) -> str:
    """Persist a new session for *account_id* and return its token."""
    now = now or datetime.now(UTC)
    token = secrets.token_urlsafe(TOKEN_BYTES)
    with get_session(engine) as session:
        session.execute(delete(LoginSession).where(LoginSession.expires_at <= now))
        session.add(LoginSession(
            token=token,
            account_id=account_id,
            created_at=now,
            expires_at=now + timedelta(hours=lifetime_hours),
        ))
    return token


def resolve(engine: Engine, token: str | None, *, now: datetime | None = None) -> int | None:
    """Return the account id behind *token*, or ``None`` if unknown/expired."""
    if not token:
        return None
    now = now or datetime.now(UTC)
    with get_session(engine) as session:
        row = session.get(LoginSession, token)
        if row is None:
            return None
        if as_utc(row.expires_at) <= now:
            session.delete(row)
            logger.debug("Purged expired session for account %d", row.account_id)
            return None
        return row.account_id


def destroy(engine: Engine, token: str | None) -> bool:
    """Delete *token*.  Returns ``True`` if a session was removed."""
    if not token:
        return False
    with get_session(engine) as session:
        result = session.execute(delete(LoginSession).where(LoginSession.token == token))
        return result.rowcount > 0
