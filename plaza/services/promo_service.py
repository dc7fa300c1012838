"""
plaza.services.promo_service — Promo Code Ledger
=================================================

Promo codes credit coins to whoever redeems them, up to ``max_uses`` times
(``-1`` = unlimited).  Codes are case-insensitive and stored upper-case.

Redemption is the one place where concurrent requests race for a shared
counter.  The usage check and increment are a single conditional UPDATE::

    UPDATE promo_codes SET uses = uses + 1
     WHERE code = :code AND (max_uses < 0 OR uses < max_uses)
    RETURNING reward

followed by the coin credit in the same transaction.  Two callers racing
for the last use cannot both match the WHERE clause, so exactly one of
them is credited.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Engine, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from plaza.database.models import INT32_MAX, Account, PromoCode
from plaza.errors import (
    AccountNotFound,
    CodeExhausted,
    CodeNotFound,
    DuplicateCode,
    InvalidReward,
    ValidationError,
)

logger = logging.getLogger(__name__)

UNLIMITED = -1


@dataclass(frozen=True, slots=True)
class RedeemResult:
    """Outcome of a successful redemption."""
    code: str
    reward: int
    coins: int  # account balance after the credit


def normalize_code(code: str) -> str:
    return code.strip().upper()


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------
def add_code(
    session: Session,
    *,
    code: str,
    reward: int,
    max_uses: int = UNLIMITED,
    creator_id: int | None = None,
) -> PromoCode:
    """Validate and insert a code inside the caller's transaction.

    Raises
    ------
    InvalidReward
        ``reward <= 0`` or larger than ``INT32_MAX``.
    ValidationError
        Empty code, or ``max_uses`` neither ``-1`` nor positive.
    DuplicateCode
        The normalized code already exists.
    """
    normalized = normalize_code(code)
    if not normalized:
        raise ValidationError("Promo code must not be empty")
    if not 0 < reward <= INT32_MAX:
        raise InvalidReward()
    if max_uses != UNLIMITED and not 0 < max_uses <= INT32_MAX:
        raise ValidationError("maxUses must be -1 (unlimited) or a positive integer")

    if session.scalar(select(PromoCode.id).where(PromoCode.code == normalized)) is not None:
        raise DuplicateCode()

    row = PromoCode(
        code=normalized,
        reward=reward,
        uses=0,
        max_uses=max_uses,
        created_by=creator_id,
    )
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(row)
            session.flush()
    except IntegrityError as exc:
        # Concurrent create with the same code won the unique index.
        raise DuplicateCode() from exc
    return row


def create_code(
    engine: Engine,
    *,
    code: str,
    reward: int,
    max_uses: int = UNLIMITED,
    creator_id: int | None = None,
) -> PromoCode:
    """Create a promo code in its own transaction and return it detached."""
    with Session(engine, expire_on_commit=False) as session:
        row = add_code(
            session, code=code, reward=reward, max_uses=max_uses, creator_id=creator_id
        )
        session.commit()
        session.refresh(row)
        session.expunge(row)
    logger.info("Promo code %s created (reward=%d, max_uses=%d)", row.code, row.reward, row.max_uses)
    return row


# ---------------------------------------------------------------------------
# Redemption
# ---------------------------------------------------------------------------
def redeem(engine: Engine, *, code: str, account_id: int) -> RedeemResult:
    """Consume one use of *code* and credit its reward to *account_id*.

    Raises
    ------
    CodeNotFound
        No such code.
    CodeExhausted
        Every use has been consumed.
    AccountNotFound
        The redeeming account no longer exists (no use is consumed).
    """
    normalized = normalize_code(code)
    with Session(engine) as session:
        reward = session.execute(
            update(PromoCode)
            .where(
                PromoCode.code == normalized,
                or_(PromoCode.max_uses < 0, PromoCode.uses < PromoCode.max_uses),
            )
            .values(uses=PromoCode.uses + 1)
            .returning(PromoCode.reward)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

        if reward is None:
            session.rollback()
            exists = session.scalar(select(PromoCode.id).where(PromoCode.code == normalized))
            if exists is None:
                raise CodeNotFound()
            logger.info("Account %d tried exhausted code %s", account_id, normalized)
            raise CodeExhausted()

        coins = session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(coins=Account.coins + reward)
            .returning(Account.coins)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

        if coins is None:
            session.rollback()
            raise AccountNotFound()

        session.commit()

    logger.info("Account %d redeemed %s for %d coins", account_id, normalized, reward)
    return RedeemResult(code=normalized, reward=reward, coins=coins)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------
def promo_to_dict(promo: PromoCode, creator_username: str | None) -> dict[str, Any]:
    return {
        "id": promo.id,
        "code": promo.code,
        "reward": promo.reward,
        "uses": promo.uses,
        "maxUses": promo.max_uses,
        "createdBy": (
            {"id": promo.created_by, "username": creator_username}
            if promo.created_by is not None
            else None
        ),
        "createdAt": promo.created_at.isoformat() if promo.created_at else None,
    }


def list_codes(engine: Engine) -> list[dict[str, Any]]:
    """All promo codes with their creator's username, newest first."""
    with Session(engine) as session:
        rows = session.execute(
            select(PromoCode, Account.username)
            .outerjoin(Account, PromoCode.created_by == Account.id)
            .order_by(PromoCode.created_at.desc(), PromoCode.id.desc())
        ).all()
        return [promo_to_dict(promo, username) for promo, username in rows]
