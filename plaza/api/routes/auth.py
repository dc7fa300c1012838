"""
plaza.api.routes.auth — Registration, login and logout
========================================================
"""

from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from plaza.api.deps import get_config, get_engine, require_authenticated
from plaza.config import PlazaConfig
from plaza.database.engine import run_db
from plaza.services import account_service, session_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["auth"])

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class RegisterBody(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    username: str = Field(min_length=3, max_length=50)
    email: str = Field(max_length=255, pattern=_EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=128)


class LoginBody(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)  # username or email
    password: str = Field(min_length=1, max_length=128)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------
def _cookie_secure() -> bool:
    return os.getenv("COOKIE_SECURE", "").strip().lower() in {"1", "true", "yes"}


def _set_session_cookie(response: Response, token: str, cfg: PlazaConfig) -> None:
    response.set_cookie(
        session_service.SESSION_COOKIE,
        token,
        max_age=cfg.session_lifetime_hours * 3600,
        httponly=True,
        samesite="lax",
        secure=_cookie_secure(),
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.post("/register")
async def register(
    body: RegisterBody,
    response: Response,
    cfg: PlazaConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    account = await run_db(
        account_service.register,
        engine,
        cfg,
        username=body.username,
        email=body.email,
        password=body.password,
    )
    token = await run_db(
        session_service.create,
        engine,
        account.id,
        lifetime_hours=cfg.session_lifetime_hours,
    )
    _set_session_cookie(response, token, cfg)
    return {"success": True, "user": account_service.account_summary(account)}


@router.post("/login")
async def login(
    body: LoginBody,
    response: Response,
    cfg: PlazaConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    account = await run_db(
        account_service.authenticate,
        engine,
        identifier=body.username,
        password=body.password,
    )
    token = await run_db(
        session_service.create,
        engine,
        account.id,
        lifetime_hours=cfg.session_lifetime_hours,
    )
    _set_session_cookie(response, token, cfg)
    logger.info("Account %r logged in", account.username)
    return {"success": True, "user": account_service.account_summary(account)}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    account_id: int = Depends(require_authenticated),
    engine=Depends(get_engine),
):
    token = request.cookies.get(session_service.SESSION_COOKIE)
    await run_db(session_service.destroy, engine, token)
    response.delete_cookie(session_service.SESSION_COOKIE)
    logger.info("Account %d logged out", account_id)
    return {"success": True}
