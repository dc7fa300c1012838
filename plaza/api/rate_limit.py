"""
plaza.api.rate_limit — Per-Client Request Rate Limiting
========================================================

Sliding-window counter keyed by client address: by default 100 requests
per 15 minutes across the whole ``/api`` surface.  Excess requests are
rejected with HTTP 429 and a ``Retry-After`` header, never queued.

State lives in the ``rate_limit_events`` table so limits survive restarts.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Request
from sqlalchemy import Engine, delete, func, select
from sqlalchemy.orm import Session

from plaza.database.models import RateLimitEvent
from plaza.engine.ban_policy import as_utc
from plaza.errors import RateLimited

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = 100
DEFAULT_WINDOW_SECONDS = 15 * 60


class RequestRateLimiter:
    """Sliding-window rate limiter keyed by an arbitrary identifier."""

    def __init__(
        self,
        max_requests: int = DEFAULT_RATE_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        *,
        engine: Engine,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.engine = engine

    def hit(self, identifier: str) -> tuple[bool, dict[str, Any]]:
        """Count one request for *identifier* if it fits in the window.

        Returns (allowed, info) where info contains:
          - remaining: requests remaining in the window
          - reset: seconds until a slot frees up
          - limit: the max requests per window
        Rejected requests are not recorded.
        """
        now = datetime.now(UTC)
        cutoff = now - timedelta(seconds=self.window_seconds)

        with Session(self.engine) as session:
            session.execute(
                delete(RateLimitEvent).where(
                    RateLimitEvent.identifier == identifier,
                    RateLimitEvent.timestamp < cutoff,
                )
            )
            oldest, count = session.execute(
                select(func.min(RateLimitEvent.timestamp), func.count(RateLimitEvent.id))
                .where(RateLimitEvent.identifier == identifier)
            ).one()

            if count >= self.max_requests:
                session.commit()
                reset = (
                    as_utc(oldest) + timedelta(seconds=self.window_seconds) - now
                ).total_seconds()
                return False, {
                    "remaining": 0,
                    "reset": max(1, int(reset) + 1),
                    "limit": self.max_requests,
                }

            session.add(RateLimitEvent(identifier=identifier, timestamp=now))
            session.commit()

        return True, {
            "remaining": max(0, self.max_requests - count - 1),
            "reset": self.window_seconds,
            "limit": self.max_requests,
        }

    def reset(self, identifier: str | None = None) -> None:
        """Clear rate limit state. If identifier is None, clear all."""
        with Session(self.engine) as session:
            stmt = delete(RateLimitEvent)
            if identifier is not None:
                stmt = stmt.where(RateLimitEvent.identifier == identifier)
            session.execute(stmt)
            session.commit()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_limiter: RequestRateLimiter | None = None


def get_rate_limiter() -> RequestRateLimiter:
    if _limiter is None:
        raise RuntimeError("Rate limiter not configured — call configure_rate_limiter() first")
    return _limiter


def configure_rate_limiter(
    *,
    engine: Engine,
    max_requests: int = DEFAULT_RATE_LIMIT,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
) -> RequestRateLimiter:
    global _limiter
    _limiter = RequestRateLimiter(max_requests, window_seconds, engine=engine)
    return _limiter


def client_identifier(request: Request) -> str:
    return request.client.host if request.client else "unknown"


# ---------------------------------------------------------------------------
# FastAPI dependency: attach to every /api router
# ---------------------------------------------------------------------------
async def rate_limited(request: Request) -> None:
    """Raise :class:`RateLimited` (HTTP 429) once the caller's window is full."""
    limiter = get_rate_limiter()
    identifier = client_identifier(request)

    allowed, info = await asyncio.to_thread(limiter.hit, identifier)
    if not allowed:
        logger.warning(
            "Rate limit exceeded for %s: %d requests in %ds",
            identifier, limiter.max_requests, limiter.window_seconds,
        )
        raise RateLimited(info["reset"])
