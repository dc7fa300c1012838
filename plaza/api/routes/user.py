"""
plaza.api.routes.user — Session-protected member endpoints
============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from plaza.api.deps import get_engine, require_authenticated
from plaza.errors import AccountNotFound
from plaza.services import account_service, promo_service

router = APIRouter(prefix="/user", tags=["user"])


class RedeemBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str = Field(min_length=1, max_length=64)


@router.get("/profile")
def profile(
    account_id: int = Depends(require_authenticated),
    engine=Depends(get_engine),
):
    account = account_service.get_account(engine, account_id)
    if account is None:
        raise AccountNotFound()
    return account_service.account_to_dict(account)


@router.post("/redeem-code")
def redeem_code(
    body: RedeemBody,
    account_id: int = Depends(require_authenticated),
    engine=Depends(get_engine),
):
    result = promo_service.redeem(engine, code=body.code, account_id=account_id)
    return {"success": True, "reward": result.reward, "coins": result.coins}
