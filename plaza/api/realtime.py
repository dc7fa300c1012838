"""
plaza.api.realtime — Socket.IO adapter for the chat pipeline
==============================================================

Client protocol::

    → join-chat      <accountId>
    → send-message   {"message": "..."}
    ← chat-history   [{username, message, timestamp}, ...]   (to the joiner)
    ← new-message    {username, message, timestamp}          (to everyone joined)

The session cookie sent with the Socket.IO handshake is resolved once at
connect time.  ``join-chat`` is honoured only when the presented account
id matches that session.  Every refusal is silent: no error frame is sent.
"""

from __future__ import annotations

import logging
from http.cookies import CookieError, SimpleCookie
from typing import Any

import socketio
from sqlalchemy import Engine

from plaza.config import PlazaConfig
from plaza.database.engine import run_db
from plaza.engine.profanity import ProfanityFilter
from plaza.services import session_service
from plaza.services.chat_service import ChatPipeline

logger = logging.getLogger(__name__)

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=[])


class SocketIOTransport:
    """:class:`ChatTransport` that emits to a single Socket.IO sid."""

    def __init__(self, server: socketio.AsyncServer) -> None:
        self.server = server

    async def send(self, connection_id: str, event: str, payload: Any) -> None:
        await self.server.emit(event, payload, to=connection_id)


# ---------------------------------------------------------------------------
# Module-level pipeline
# ---------------------------------------------------------------------------
_pipeline: ChatPipeline | None = None
_engine: Engine | None = None


def configure_chat(*, engine: Engine, cfg: PlazaConfig) -> ChatPipeline:
    """Build the process-wide chat pipeline (called from the API lifespan)."""
    global _pipeline, _engine
    _engine = engine
    _pipeline = ChatPipeline(
        engine,
        SocketIOTransport(sio),
        text_filter=ProfanityFilter(cfg.banned_words),
        max_message_length=cfg.max_message_length,
        history_size=cfg.chat_history_size,
    )
    return _pipeline


def get_pipeline() -> ChatPipeline:
    if _pipeline is None or _engine is None:
        raise RuntimeError("Chat not configured — call configure_chat() first")
    return _pipeline


def session_token_from_environ(environ: dict) -> str | None:
    """Pull the session cookie out of the handshake's WSGI/ASGI environ."""
    raw = environ.get("HTTP_COOKIE")
    if not raw:
        return None
    cookie = SimpleCookie()
    try:
        cookie.load(raw)
    except CookieError:
        return None
    morsel = cookie.get(session_service.SESSION_COOKIE)
    return morsel.value if morsel else None


def _coerce_account_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Event handlers
# ---------------------------------------------------------------------------
@sio.event
async def connect(sid: str, environ: dict, auth: dict | None = None) -> None:
    get_pipeline()
    token = session_token_from_environ(environ)
    account_id = await run_db(session_service.resolve, _engine, token)
    await sio.save_session(sid, {"account_id": account_id})
    logger.debug("Socket %s connected (account %s)", sid, account_id)


@sio.on("join-chat")
async def join_chat(sid: str, account_id: Any = None) -> None:
    pipeline = get_pipeline()
    requested = _coerce_account_id(account_id)
    session = await sio.get_session(sid)
    if requested is None or session.get("account_id") != requested:
        logger.info("Socket %s presented account %r without a matching session", sid, account_id)
        return
    await pipeline.join(sid, requested)


@sio.on("send-message")
async def send_message(sid: str, data: Any = None) -> None:
    if not isinstance(data, dict):
        return
    await get_pipeline().send(sid, data.get("message"))


@sio.event
async def disconnect(sid: str, *args: Any) -> None:
    if _pipeline is not None:
        _pipeline.leave(sid)
    logger.debug("Socket %s disconnected", sid)
