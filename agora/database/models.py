"""
agora.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- users               — Platform accounts (address links them to the chain)
- comments            — Threaded comments on claims / arguments / elements
- notification_events — Delivered notifications, per recipient
- track_events        — Claim and argument page views (opened stats)
- flagged_claims      — Claim flags raised by users and admins
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from agora.constants import user_group_name


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Agora ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class UserGroup(enum.IntEnum):
    USER = 0
    EMPLOYEE = 1
    DEBATER = 2
    RESEARCH_ANALYST = 3


# ---------------------------------------------------------------------------
# Users — one row per platform account
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(200), default="")
    username: Mapped[str] = mapped_column(String(28), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(254), unique=True, default=None)
    bio: Mapped[str] = mapped_column(Text, default="")
    avatar_url: Mapped[str] = mapped_column(String(500), default="")
    address: Mapped[str | None] = mapped_column(String(100), unique=True, default=None)
    user_group: Mapped[int] = mapped_column(Integer, default=UserGroup.USER)
    invites_left: Mapped[int] = mapped_column(Integer, default=0)
    last_authenticated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    meta: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def user_group_name(self) -> str:
        return user_group_name(self.user_group)

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} address={self.address!r}>"


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    parent_id: Mapped[int] = mapped_column(BigInteger, default=0)
    claim_id: Mapped[int] = mapped_column(BigInteger, default=0)
    community_id: Mapped[str] = mapped_column(String(100), default="")
    argument_id: Mapped[int] = mapped_column(BigInteger, default=0)
    element_id: Mapped[int] = mapped_column(BigInteger, default=0)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    creator: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_comments_claim", "claim_id"),
        Index("ix_comments_argument_element", "argument_id", "element_id"),
    )

    def __repr__(self) -> str:
        return f"<Comment id={self.id} claim={self.claim_id} creator={self.creator!r}>"


# ---------------------------------------------------------------------------
# NotificationEvent — what each recipient has been told
# ---------------------------------------------------------------------------
class NotificationEvent(Base):
    __tablename__ = "notification_events"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(100), nullable=False)
    user_profile_id: Mapped[int] = mapped_column(BigInteger, default=0)
    sender_profile_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    type_id: Mapped[int] = mapped_column(BigInteger, default=0)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    seen: Mapped[bool] = mapped_column(Boolean, default=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_notification_events_address_time", "address", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<NotificationEvent id={self.id} to={self.address!r} type={self.type!r}>"


# ---------------------------------------------------------------------------
# TrackEvent — claim / argument page views
# ---------------------------------------------------------------------------
class TrackEvent(Base):
    """One page view.  ``argument_id`` is set when an argument was opened.

    Anonymous visitors have no address and are identified by session only.
    """
    __tablename__ = "track_events"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    address: Mapped[str | None] = mapped_column(String(100), default=None)
    session_id: Mapped[str] = mapped_column(String(100), nullable=False)
    claim_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    argument_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    community_id: Mapped[str] = mapped_column(String(100), default="")
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_track_events_claim_time", "claim_id", "created_at"),
        Index("ix_track_events_address_time", "address", "created_at"),
    )


# ---------------------------------------------------------------------------
# FlaggedClaim
# ---------------------------------------------------------------------------
class FlaggedClaim(Base):
    __tablename__ = "flagged_claims"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    claim_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    creator: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_flagged_claims_claim", "claim_id"),
    )
