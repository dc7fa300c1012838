"""
plaza.services.account_service — Registration & Login
======================================================

Shared by the HTTP routes and the realtime layer.  Passwords are stored as
Argon2 digests (passlib); plaintext never reaches the database.

Bootstrap rule: the very first account, and any account registered with
the configured ``admin_username``, is created as an admin with the admin
coin bonus.  Everyone else starts with the regular registration bonus.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from passlib.context import CryptContext
from sqlalchemy import Engine, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from plaza.config import PlazaConfig
from plaza.database.models import Account
from plaza.engine.ban_policy import clear_ban, has_lapsed, is_active
from plaza.errors import AccountBanned, DuplicateAccount, InvalidCredentials

logger = logging.getLogger(__name__)

_password_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return _password_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return _password_context.verify(password, hashed)
    except ValueError:
        # Stored value is not a digest passlib recognises.
        logger.warning("Unrecognised password digest format")
        return False


# ---------------------------------------------------------------------------
# Serialization: never includes the password digest
# ---------------------------------------------------------------------------
def account_to_dict(account: Account) -> dict[str, Any]:
    return {
        "id": account.id,
        "username": account.username,
        "email": account.email,
        "coins": account.coins,
        "isAdmin": account.is_admin,
        "adminLevel": account.admin_level,
        "isBanned": account.is_banned,
        "banReason": account.ban_reason,
        "banExpires": account.ban_expires.isoformat() if account.ban_expires else None,
        "createdAt": account.created_at.isoformat() if account.created_at else None,
    }


def account_summary(account: Account) -> dict[str, Any]:
    """The short form returned by register/login."""
    return {
        "id": account.id,
        "username": account.username,
        "isAdmin": account.is_admin,
        "coins": account.coins,
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------
def get_account(engine: Engine, account_id: int) -> Account | None:
    """Fetch a detached snapshot of an account, or ``None``."""
    with Session(engine, expire_on_commit=False) as session:
        account = session.get(Account, account_id)
        if account is not None:
            session.expunge(account)
        return account


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------
def register(
    engine: Engine,
    cfg: PlazaConfig,
    *,
    username: str,
    email: str,
    password: str,
) -> Account:
    """Create a new account.

    Raises
    ------
    DuplicateAccount
        If the username or email is already taken.
    """
    email = email.strip().lower()
    with Session(engine, expire_on_commit=False) as session:
        existing = session.scalar(
            select(Account.id).where(
                or_(Account.username == username, Account.email == email)
            )
        )
        if existing is not None:
            raise DuplicateAccount()

        is_first = (session.scalar(select(func.count()).select_from(Account)) or 0) == 0
        is_bootstrap_admin = is_first or (
            cfg.admin_username is not None and username == cfg.admin_username
        )
        level = cfg.bootstrap_admin_level if is_bootstrap_admin else 0

        account = Account(
            username=username,
            email=email,
            password_hash=hash_password(password),
            coins=cfg.admin_bonus if is_bootstrap_admin else cfg.registration_bonus,
            is_admin=level > 0,
            admin_level=level,
        )
        session.add(account)
        try:
            session.commit()
        except IntegrityError as exc:
            # Lost a race against a concurrent registration.
            session.rollback()
            raise DuplicateAccount() from exc

        session.refresh(account)
        session.expunge(account)

    if is_bootstrap_admin:
        logger.info("Registered %r as bootstrap admin (level %d)", username, level)
    else:
        logger.info("Registered account %r", username)
    return account


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------
def authenticate(
    engine: Engine,
    *,
    identifier: str,
    password: str,
    now: datetime | None = None,
) -> Account:
    """Verify credentials; *identifier* may be the username or the email.

    Raises
    ------
    InvalidCredentials
        Unknown identifier or wrong password.
    AccountBanned
        The ban policy says the account is still banned.
    """
    now = now or datetime.now(UTC)
    with Session(engine, expire_on_commit=False) as session:
        account = session.scalar(
            select(Account).where(
                or_(
                    Account.username == identifier,
                    Account.email == identifier.strip().lower(),
                )
            )
        )
        if account is None or not verify_password(password, account.password_hash):
            logger.info("Failed login for %r", identifier)
            raise InvalidCredentials()

        if not is_active(account, now):
            logger.info("Banned account %r refused at login", account.username)
            raise AccountBanned(account.ban_reason, account.ban_expires)

        if has_lapsed(account, now):
            clear_ban(account)
            session.commit()
            session.refresh(account)
            logger.info("Cleared lapsed ban on %r", account.username)

        session.expunge(account)
    return account
