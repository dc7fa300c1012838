"""
plaza.api.routes.admin — Moderation endpoints (admin level ≥ 1)
=================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from plaza.api.deps import get_engine, require_any_admin
from plaza.database.models import INT32_MAX, Account
from plaza.engine.ban_policy import MAX_BAN_HOURS
from plaza.services import admin_service
from plaza.services.log_buffer import VALID_LEVELS, get_logs

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class _Body(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class BanBody(_Body):
    user_id: int = Field(alias="userId")
    reason: str | None = Field(default=None, max_length=500)
    duration_hours: int = Field(alias="durationHours", gt=0, le=MAX_BAN_HOURS)


class UnbanBody(_Body):
    user_id: int = Field(alias="userId")


class PromoteBody(_Body):
    user_id: int = Field(alias="userId")
    admin_level: int = Field(alias="adminLevel", ge=0, le=INT32_MAX)


class PromoCodeBody(_Body):
    code: str = Field(min_length=1, max_length=64)
    reward: int = Field(le=INT32_MAX)
    max_uses: int = Field(default=-1, alias="maxUses", le=INT32_MAX)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
@router.get("/users")
def list_users(
    admin: Account = Depends(require_any_admin),
    engine=Depends(get_engine),
):
    return admin_service.list_users(engine)


@router.post("/ban")
def ban_user(
    body: BanBody,
    admin: Account = Depends(require_any_admin),
    engine=Depends(get_engine),
):
    admin_service.ban(
        engine,
        user_id=body.user_id,
        reason=body.reason,
        duration_hours=body.duration_hours,
        actor_id=admin.id,
    )
    return {"success": True}


@router.post("/unban")
def unban_user(
    body: UnbanBody,
    admin: Account = Depends(require_any_admin),
    engine=Depends(get_engine),
):
    admin_service.unban(engine, user_id=body.user_id, actor_id=admin.id)
    return {"success": True}


@router.post("/promote")
def promote_user(
    body: PromoteBody,
    admin: Account = Depends(require_any_admin),
    engine=Depends(get_engine),
):
    admin_service.promote(
        engine, user_id=body.user_id, admin_level=body.admin_level, actor_id=admin.id
    )
    return {"success": True}


# ---------------------------------------------------------------------------
# Promo codes
# ---------------------------------------------------------------------------
@router.post("/promo-code")
def create_promo_code(
    body: PromoCodeBody,
    admin: Account = Depends(require_any_admin),
    engine=Depends(get_engine),
):
    admin_service.create_promo(
        engine,
        code=body.code,
        reward=body.reward,
        max_uses=body.max_uses,
        actor_id=admin.id,
    )
    return {"success": True}


@router.get("/promo-codes")
def list_promo_codes(
    admin: Account = Depends(require_any_admin),
    engine=Depends(get_engine),
):
    return admin_service.list_promos(engine)


# ---------------------------------------------------------------------------
# Audit log & live logs
# ---------------------------------------------------------------------------
@router.get("/audit")
def get_audit_log(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    admin: Account = Depends(require_any_admin),
    engine=Depends(get_engine),
):
    """Paginated admin audit log."""
    return admin_service.get_audit_log(engine, page=page, page_size=page_size)


@router.get("/logs")
def get_live_logs(
    tail: int = Query(200, ge=1, le=1000),
    level: str | None = Query(None),
    admin: Account = Depends(require_any_admin),
):
    """Recent in-process log lines from the ring buffer."""
    if level is not None and level.upper() not in VALID_LEVELS:
        raise HTTPException(400, f"level must be one of {', '.join(VALID_LEVELS)}")
    return {"logs": get_logs(tail=tail, level=level)}
