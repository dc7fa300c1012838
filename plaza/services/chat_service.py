"""
plaza.services.chat_service — Global Chat Broadcast Pipeline
=============================================================

One room, many connections.  Each connection moves through::

    unauthenticated ──join()──▶ joined ──leave()──▶ disconnected

``join`` admits a connection only if its account exists and is not banned.
``send`` re-reads the account on every message, so a ban applied after
join takes effect on the very next send.  Rejected joins and dropped
messages are silent; the sender is never told it was banned.

Accepted messages are filtered, persisted, then fanned out to every
joined connection.  Persist + fan-out run under one lock, so clients see
messages in the order they were stored.

The pipeline knows nothing about Socket.IO; it talks to connections
through a :class:`ChatTransport`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from plaza.database.engine import get_session, run_db
from plaza.database.models import ChatMessage
from plaza.engine.ban_policy import as_utc, is_active
from plaza.services.account_service import get_account

logger = logging.getLogger(__name__)

NEW_MESSAGE_EVENT = "new-message"
HISTORY_EVENT = "chat-history"
DEFAULT_MAX_MESSAGE_LENGTH = 500
DEFAULT_HISTORY_SIZE = 50


class ChatTransport(Protocol):
    """Delivers one event to one connection."""

    async def send(self, connection_id: str, event: str, payload: Any) -> None: ...


@dataclass(slots=True)
class Member:
    """A joined connection."""
    connection_id: str
    account_id: int
    username: str


# ---------------------------------------------------------------------------
# Sync DB helpers (run via run_db)
# ---------------------------------------------------------------------------
def message_to_dict(msg: ChatMessage) -> dict[str, Any]:
    return {
        "username": msg.username,
        "message": msg.message,
        "timestamp": as_utc(msg.timestamp).isoformat(),
    }


def save_message(engine: Engine, username: str, text: str, now: datetime) -> dict[str, Any]:
    """Insert one chat row and return its broadcast payload."""
    with get_session(engine) as session:
        msg = ChatMessage(username=username, message=text, timestamp=now, is_global=True)
        session.add(msg)
        session.flush()
        return message_to_dict(msg)


def recent_messages(engine: Engine, limit: int = DEFAULT_HISTORY_SIZE) -> list[dict[str, Any]]:
    """The last *limit* messages, oldest first."""
    with Session(engine) as session:
        rows = session.scalars(
            select(ChatMessage)
            .where(ChatMessage.is_global.is_(True))
            .order_by(ChatMessage.timestamp.desc(), ChatMessage.id.desc())
            .limit(limit)
        ).all()
        return [message_to_dict(m) for m in reversed(rows)]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------
class ChatPipeline:
    """Room membership plus the join → send → broadcast flow."""

    def __init__(
        self,
        engine: Engine,
        transport: ChatTransport,
        *,
        text_filter: Callable[[str], str] | None = None,
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ) -> None:
        self.engine = engine
        self.transport = transport
        self.text_filter = text_filter or (lambda text: text)
        self.max_message_length = max_message_length
        self.history_size = history_size
        self._members: dict[str, Member] = {}
        self._broadcast_lock = asyncio.Lock()

    # -- membership ---------------------------------------------------------
    @property
    def members(self) -> list[Member]:
        return list(self._members.values())

    def is_joined(self, connection_id: str) -> bool:
        return connection_id in self._members

    async def join(self, connection_id: str, account_id: int) -> bool:
        """Admit *connection_id* as *account_id*.  Returns ``False`` silently
        when the account is missing or banned."""
        account = await run_db(get_account, self.engine, account_id)
        if account is None or not is_active(account):
            logger.info(
                "Chat join refused for connection %s (account %s)", connection_id, account_id
            )
            return False

        self._members[connection_id] = Member(connection_id, account.id, account.username)
        logger.debug("Connection %s joined chat as %r", connection_id, account.username)

        if self.history_size > 0:
            history = await run_db(recent_messages, self.engine, self.history_size)
            await self.transport.send(connection_id, HISTORY_EVENT, history)
        return True

    def leave(self, connection_id: str) -> None:
        member = self._members.pop(connection_id, None)
        if member is not None:
            logger.debug("Connection %s (%r) left chat", connection_id, member.username)

    # -- messages -----------------------------------------------------------
    async def send(self, connection_id: str, text: Any) -> dict[str, Any] | None:
        """Filter, persist and broadcast *text*.  Returns the broadcast
        payload, or ``None`` if the message was dropped."""
        member = self._members.get(connection_id)
        if member is None:
            return None

        account = await run_db(get_account, self.engine, member.account_id)
        if account is None or not is_active(account):
            logger.info("Dropped chat message from banned or deleted account %d", member.account_id)
            return None

        if not isinstance(text, str):
            return None
        text = text.strip()
        if not text or len(text) > self.max_message_length:
            return None

        filtered = self.text_filter(text)

        async with self._broadcast_lock:
            payload = await run_db(
                save_message, self.engine, account.username, filtered, datetime.now(UTC)
            )
            await self._broadcast(NEW_MESSAGE_EVENT, payload)
        return payload

    async def recent(self, limit: int | None = None) -> list[dict[str, Any]]:
        return await run_db(recent_messages, self.engine, limit or self.history_size)

    async def _broadcast(self, event: str, payload: Any) -> None:
        targets = list(self._members)
        results = await asyncio.gather(
            *(self.transport.send(cid, event, payload) for cid in targets),
            return_exceptions=True,
        )
        for cid, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning("Failed to deliver %s to %s: %s", event, cid, result)
