"""
plaza.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- accounts           — Member accounts (credentials, coins, privilege, ban state)
- promo_codes        — Redeemable coin rewards with a usage bound
- chat_messages      — Append-only global chat history
- sessions           — Opaque login tokens (server-side state only)
- admin_log          — Append-only audit trail of admin mutations
- rate_limit_events  — Sliding-window request counter per client
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Plaza ORM models."""


# Largest value a plain Integer column holds on PostgreSQL.
INT32_MAX = 2**31 - 1


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class AdminActionType(enum.StrEnum):
    """Categories of admin mutations recorded in admin_log."""
    BAN = "BAN"
    UNBAN = "UNBAN"
    PROMOTE = "PROMOTE"
    CREATE = "CREATE"


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    coins: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    admin_level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ban_reason: Mapped[str | None] = mapped_column(Text, default=None)
    ban_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    promo_codes: Mapped[list[PromoCode]] = relationship(back_populates="creator")

    __table_args__ = (
        Index("ix_accounts_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Account id={self.id} name={self.username!r} lvl={self.admin_level}>"


# ---------------------------------------------------------------------------
# Promo codes
# ---------------------------------------------------------------------------
class PromoCode(Base):
    __tablename__ = "promo_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    reward: Mapped[int] = mapped_column(Integer, nullable=False)
    uses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_uses: Mapped[int] = mapped_column(Integer, default=-1, nullable=False)  # -1 = unlimited
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="SET NULL"), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    creator: Mapped[Account | None] = relationship(back_populates="promo_codes")

    def __repr__(self) -> str:
        return f"<PromoCode code={self.code!r} uses={self.uses}/{self.max_uses}>"


# ---------------------------------------------------------------------------
# Chat messages: never mutated after insert
# ---------------------------------------------------------------------------
class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False)  # denormalized at send time
    message: Mapped[str] = mapped_column(Text, nullable=False)  # post-filter text
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_global: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_chat_messages_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<ChatMessage id={self.id} user={self.username!r}>"


# ---------------------------------------------------------------------------
# Sessions: account_id is a weak reference (no FK)
# ---------------------------------------------------------------------------
class LoginSession(Base):
    __tablename__ = "sessions"

    token: Mapped[str] = mapped_column(String(128), primary_key=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_sessions_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<LoginSession token={self.token[:8]!r}... account={self.account_id}>"


# ---------------------------------------------------------------------------
# Admin audit log
# ---------------------------------------------------------------------------
class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_actor_time", "actor_id", "timestamp"),
        Index("ix_admin_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} actor={self.actor_id} action={self.action_type}>"


# ---------------------------------------------------------------------------
# Request rate limiting: one row per counted request
# ---------------------------------------------------------------------------
class RateLimitEvent(Base):
    __tablename__ = "rate_limit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_rate_limit_identifier_ts", "identifier", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<RateLimitEvent identifier={self.identifier!r} ts={self.timestamp}>"
