"""
plaza.services.admin_service — Admin Mutation Service Layer
============================================================

Every admin write follows the same pattern:
  1. Begin transaction
  2. Read "before" snapshot
  3. Apply change
  4. Write admin_log with before/after JSON
  5. Commit

Mutations touch a single record.  Callers are expected to have passed the
``require_admin`` guard; this layer does not re-check privilege.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session

from plaza.database.models import INT32_MAX, Account, AdminActionType, AdminLog, PromoCode
from plaza.engine.ban_policy import MAX_BAN_HOURS, apply_ban, clear_ban
from plaza.errors import AccountNotFound, ValidationError
from plaza.services import promo_service
from plaza.services.account_service import account_to_dict

logger = logging.getLogger(__name__)

# Columns never copied into audit snapshots.
_REDACTED_COLUMNS = frozenset({"password_hash"})


# ---------------------------------------------------------------------------
# Generic audit helpers
# ---------------------------------------------------------------------------
def _row_to_dict(obj: Any) -> dict | None:
    """Convert a model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        if col.key in _REDACTED_COLUMNS:
            continue
        val = getattr(obj, col.key, None)
        if isinstance(val, datetime):
            val = val.isoformat()
        result[col.name] = val
    return result


def _log_admin_action(
    session: Session,
    *,
    actor_id: int,
    action_type: AdminActionType,
    target_table: str,
    target_id: str | None,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> None:
    """Insert a row into admin_log within the current transaction."""
    session.add(AdminLog(
        actor_id=actor_id,
        action_type=action_type.value,
        target_table=target_table,
        target_id=target_id,
        before_snapshot=before,
        after_snapshot=after,
        reason=reason,
    ))


def _audited_account_update(
    engine: Engine,
    user_id: int,
    mutate,
    *,
    actor_id: int,
    action_type: AdminActionType,
    reason: str | None = None,
) -> Account:
    """get -> before -> mutate(account) -> log -> commit.  Returns detached row."""
    with Session(engine, expire_on_commit=False) as session:
        account = session.get(Account, user_id)
        if account is None:
            raise AccountNotFound()
        before = _row_to_dict(account)
        mutate(account)
        session.flush()
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=action_type,
            target_table="accounts",
            target_id=str(account.id),
            before=before,
            after=_row_to_dict(account),
            reason=reason,
        )
        session.commit()
        session.refresh(account)
        session.expunge(account)
        return account


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
def list_users(engine: Engine) -> list[dict[str, Any]]:
    """Every account, newest first, without password digests."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Account).order_by(Account.created_at.desc(), Account.id.desc())
        ).all()
        return [account_to_dict(a) for a in rows]


def ban(
    engine: Engine,
    *,
    user_id: int,
    reason: str | None,
    duration_hours: int,
    actor_id: int,
    now: datetime | None = None,
) -> Account:
    """Ban *user_id* for *duration_hours* from now."""
    if not 0 < duration_hours <= MAX_BAN_HOURS:
        raise ValidationError(f"durationHours must be between 1 and {MAX_BAN_HOURS}")
    now = now or datetime.now(UTC)
    try:
        account = _audited_account_update(
            engine,
            user_id,
            lambda a: apply_ban(a, reason, duration_hours, now),
            actor_id=actor_id,
            action_type=AdminActionType.BAN,
            reason=reason,
        )
    except OverflowError as exc:
        raise ValidationError("Ban expiry is out of range") from exc
    logger.warning(
        "Admin %d banned %r for %dh (%s)", actor_id, account.username, duration_hours, reason
    )
    return account


def unban(engine: Engine, *, user_id: int, actor_id: int) -> Account:
    account = _audited_account_update(
        engine,
        user_id,
        clear_ban,
        actor_id=actor_id,
        action_type=AdminActionType.UNBAN,
    )
    logger.info("Admin %d unbanned %r", actor_id, account.username)
    return account


def promote(engine: Engine, *, user_id: int, admin_level: int, actor_id: int) -> Account:
    """Set *user_id*'s admin level; level 0 revokes admin entirely."""
    if not 0 <= admin_level <= INT32_MAX:
        raise ValidationError(f"adminLevel must be between 0 and {INT32_MAX}")

    def _apply(account: Account) -> None:
        account.admin_level = admin_level
        account.is_admin = admin_level > 0

    account = _audited_account_update(
        engine,
        user_id,
        _apply,
        actor_id=actor_id,
        action_type=AdminActionType.PROMOTE,
    )
    logger.warning("Admin %d set %r to admin level %d", actor_id, account.username, admin_level)
    return account


# ---------------------------------------------------------------------------
# Promo codes
# ---------------------------------------------------------------------------
def create_promo(
    engine: Engine,
    *,
    code: str,
    reward: int,
    max_uses: int,
    actor_id: int,
) -> PromoCode:
    """Create a promo code (see :func:`promo_service.add_code`) and audit it."""
    with Session(engine, expire_on_commit=False) as session:
        row = promo_service.add_code(
            session, code=code, reward=reward, max_uses=max_uses, creator_id=actor_id
        )
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.CREATE,
            target_table="promo_codes",
            target_id=str(row.id),
            before=None,
            after=_row_to_dict(row),
        )
        session.commit()
        session.refresh(row)
        session.expunge(row)
    logger.info("Admin %d created promo code %s (reward=%d)", actor_id, row.code, row.reward)
    return row


def list_promos(engine: Engine) -> list[dict[str, Any]]:
    return promo_service.list_codes(engine)


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------
def get_audit_log(engine: Engine, *, page: int = 1, page_size: int = 25) -> dict[str, Any]:
    """Paginated admin audit log, newest first."""
    with Session(engine) as session:
        total = session.scalar(select(func.count()).select_from(AdminLog)) or 0
        rows = session.scalars(
            select(AdminLog)
            .order_by(AdminLog.timestamp.desc(), AdminLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        return {
            "total": total,
            "page": page,
            "page_size": page_size,
            "entries": [
                {
                    "id": r.id,
                    "actor_id": r.actor_id,
                    "action_type": r.action_type,
                    "target_table": r.target_table,
                    "target_id": r.target_id,
                    "before_snapshot": r.before_snapshot,
                    "after_snapshot": r.after_snapshot,
                    "reason": r.reason,
                    "timestamp": r.timestamp.isoformat() if r.timestamp else None,
                }
                for r in rows
            ],
        }
