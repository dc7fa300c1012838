"""
plaza.engine.ban_policy — Ban Evaluation
=========================================

Pure functions over an account's ban fields.  Expiry is evaluated lazily
on each check; nothing sweeps expired bans in the background, so an
expired ban may still read ``is_banned=True`` in storage while the
predicate already treats the account as active.

A ban with no expiry never lapses.  Timed bans are capped at
``MAX_BAN_HOURS`` so the expiry always fits in a ``datetime``.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol

# Ten years.
MAX_BAN_HOURS = 24 * 365 * 10


class BanState(Protocol):
    """Anything carrying the three ban fields (an ``Account`` row, usually)."""

    is_banned: bool
    ban_reason: str | None
    ban_expires: datetime | None


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_active(account: BanState, now: datetime | None = None) -> bool:
    """Return ``True`` if *account* may act at *now*."""
    if not account.is_banned:
        return True
    if account.ban_expires is None:
        return False
    now = as_utc(now or datetime.now(UTC))
    return now >= as_utc(account.ban_expires)


def has_lapsed(account: BanState, now: datetime | None = None) -> bool:
    """``True`` when the raw flag is still set but the ban is no longer in effect."""
    return account.is_banned and is_active(account, now)


def apply_ban(
    account: BanState,
    reason: str | None,
    duration_hours: int,
    now: datetime | None = None,
) -> None:
    """Ban *account* for *duration_hours* starting at *now*."""
    now = as_utc(now or datetime.now(UTC))
    account.is_banned = True
    account.ban_reason = reason
    account.ban_expires = now + timedelta(hours=duration_hours)


def clear_ban(account: BanState) -> None:
    account.is_banned = False
    account.ban_reason = None
    account.ban_expires = None
