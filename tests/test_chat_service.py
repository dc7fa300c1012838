"""
tests/test_chat_service.py — Chat Broadcast Pipeline Tests
===========================================================
Drives :class:`ChatPipeline` through an in-memory transport that records
every delivered frame.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from conftest import make_account, run
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from plaza.database.models import ChatMessage
from plaza.engine.profanity import ProfanityFilter
from plaza.services import admin_service
from plaza.services.chat_service import HISTORY_EVENT, NEW_MESSAGE_EVENT, ChatPipeline


class RecordingTransport:
    def __init__(self) -> None:
        self.frames: list[tuple[str, str, object]] = []

    async def send(self, connection_id, event, payload):
        self.frames.append((connection_id, event, payload))

    def messages_for(self, connection_id: str) -> list[dict]:
        return [
            p for cid, ev, p in self.frames
            if cid == connection_id and ev == NEW_MESSAGE_EVENT
        ]


def _pipeline(engine, transport, **kw) -> ChatPipeline:
    kw.setdefault("text_filter", ProfanityFilter(["darn"]))
    return ChatPipeline(engine, transport, **kw)


def _stored(engine) -> list[ChatMessage]:
    with Session(engine) as s:
        return list(s.scalars(select(ChatMessage).order_by(ChatMessage.id)).all())


class TestJoin:
    def test_active_account_is_admitted(self, db_engine):
        ana = make_account(db_engine, "ana")
        t = RecordingTransport()

        async def scenario():
            p = _pipeline(db_engine, t)
            assert await p.join("s1", ana.id)
            return p

        p = run(scenario())
        assert p.is_joined("s1")
        assert [m.username for m in p.members] == ["ana"]

    def test_unknown_account_silently_refused(self, db_engine):
        t = RecordingTransport()

        async def scenario():
            p = _pipeline(db_engine, t)
            return p, await p.join("s1", 999)

        p, joined = run(scenario())
        assert joined is False
        assert not p.is_joined("s1")
        assert t.frames == []

    def test_banned_account_silently_refused(self, db_engine):
        bob = make_account(
            db_engine, "bob", is_banned=True, ban_expires=datetime.now(UTC) + timedelta(hours=1)
        )
        t = RecordingTransport()

        async def scenario():
            p = _pipeline(db_engine, t)
            return p, await p.join("s1", bob.id)

        p, joined = run(scenario())
        assert not joined and not p.is_joined("s1")

    def test_lapsed_ban_may_join(self, db_engine):
        bob = make_account(
            db_engine, "bob", is_banned=True, ban_expires=datetime.now(UTC) - timedelta(hours=1)
        )

        async def scenario():
            return await _pipeline(db_engine, RecordingTransport()).join("s1", bob.id)

        assert run(scenario())

    def test_joiner_receives_recent_history(self, db_engine):
        ana = make_account(db_engine, "ana")
        bob = make_account(db_engine, "bob")
        t = RecordingTransport()

        async def scenario():
            p = _pipeline(db_engine, t, history_size=2)
            await p.join("a", ana.id)
            for text in ("one", "two", "three"):
                await p.send("a", text)
            await p.join("b", bob.id)

        run(scenario())
        [history] = [p for cid, ev, p in t.frames if cid == "b" and ev == HISTORY_EVENT]
        assert [m["message"] for m in history] == ["two", "three"]


class TestSend:
    def test_message_broadcast_to_all_members(self, db_engine):
        ana = make_account(db_engine, "ana")
        bob = make_account(db_engine, "bob")
        t = RecordingTransport()

        async def scenario():
            p = _pipeline(db_engine, t)
            await p.join("a", ana.id)
            await p.join("b", bob.id)
            return await p.send("a", "  hello  ")

        payload = run(scenario())
        assert payload["username"] == "ana"
        assert payload["message"] == "hello"
        assert "timestamp" in payload
        assert t.messages_for("a") == [payload]
        assert t.messages_for("b") == [payload]
        [row] = _stored(db_engine)
        assert row.username == "ana" and row.is_global

    def test_profanity_masked_everywhere(self, db_engine):
        ana = make_account(db_engine, "ana")
        t = RecordingTransport()

        async def scenario():
            p = _pipeline(db_engine, t)
            await p.join("a", ana.id)
            await p.send("a", "DARN this darn thing")

        run(scenario())
        [msg] = t.messages_for("a")
        assert msg["message"] == "**** this **** thing"
        assert "darn" not in repr(t.frames).lower()
        assert _stored(db_engine)[0].message == "**** this **** thing"

    def test_unjoined_connection_is_noop(self, db_engine):
        ana = make_account(db_engine, "ana")
        t = RecordingTransport()

        async def scenario():
            p = _pipeline(db_engine, t)
            await p.join("a", ana.id)
            return await p.send("stranger", "hi")

        assert run(scenario()) is None
        assert t.messages_for("a") == []
        assert _stored(db_engine) == []

    def test_ban_after_join_drops_next_message(self, db_engine):
        admin = make_account(db_engine, "boss", admin_level=1)
        bob = make_account(db_engine, "bob")
        ana = make_account(db_engine, "ana")
        t = RecordingTransport()

        async def scenario():
            p = _pipeline(db_engine, t)
            await p.join("b", bob.id)
            await p.join("a", ana.id)
            first = await p.send("b", "before ban")
            admin_service.ban(
                db_engine, user_id=bob.id, reason="spam", duration_hours=1, actor_id=admin.id
            )
            second = await p.send("b", "after ban")
            return first, second

        first, second = run(scenario())
        assert first is not None
        assert second is None
        assert [m["message"] for m in t.messages_for("a")] == ["before ban"]
        assert [r.message for r in _stored(db_engine)] == ["before ban"]

    def test_empty_and_oversized_messages_dropped(self, db_engine):
        ana = make_account(db_engine, "ana")
        t = RecordingTransport()

        async def scenario():
            p = _pipeline(db_engine, t, max_message_length=10)
            await p.join("a", ana.id)
            return [
                await p.send("a", "   "),
                await p.send("a", "x" * 11),
                await p.send("a", None),
                await p.send("a", "x" * 10),
            ]

        results = run(scenario())
        assert results[:3] == [None, None, None]
        assert results[3] is not None
        with Session(db_engine) as s:
            assert s.scalar(select(func.count()).select_from(ChatMessage)) == 1

    def test_broadcast_order_matches_persistence(self, db_engine):
        ana = make_account(db_engine, "ana")
        t = RecordingTransport()

        async def scenario():
            p = _pipeline(db_engine, t)
            await p.join("a", ana.id)
            for i in range(5):
                await p.send("a", f"m{i}")

        run(scenario())
        assert [m["message"] for m in t.messages_for("a")] == [r.message for r in _stored(db_engine)]

    def test_left_connection_no_longer_receives(self, db_engine):
        ana = make_account(db_engine, "ana")
        bob = make_account(db_engine, "bob")
        t = RecordingTransport()

        async def scenario():
            p = _pipeline(db_engine, t)
            await p.join("a", ana.id)
            await p.join("b", bob.id)
            p.leave("b")
            await p.send("a", "hi")
            return p

        p = run(scenario())
        assert not p.is_joined("b")
        assert t.messages_for("b") == []
        assert len(t.messages_for("a")) == 1

    def test_failing_delivery_does_not_block_others(self, db_engine):
        ana = make_account(db_engine, "ana")
        bob = make_account(db_engine, "bob")

        class FlakyTransport(RecordingTransport):
            async def send(self, connection_id, event, payload):
                if connection_id == "b" and event == NEW_MESSAGE_EVENT:
                    raise ConnectionError("gone")
                await super().send(connection_id, event, payload)

        t = FlakyTransport()

        async def scenario():
            p = _pipeline(db_engine, t)
            await p.join("a", ana.id)
            await p.join("b", bob.id)
            return await p.send("a", "still here")

        assert run(scenario()) is not None
        assert len(t.messages_for("a")) == 1
