"""
agora.services.user_service — User & Profile Data Access
=========================================================

Typed queries against ``users`` plus the DB-backed mention translation.
Functions take an open :class:`Session` (request-scoped from FastAPI) or
an :class:`Engine` where they are called from worker threads via
``run_db``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from agora.database.engine import get_session
from agora.database.models import User
from agora.engine.mentions import to_chain_mentions, to_user_mentions

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UserProfile:
    full_name: str
    bio: str
    avatar_url: str
    username: str
    address: str | None


def _profile(user: User | None) -> UserProfile | None:
    if user is None:
        return None
    return UserProfile(
        full_name=user.full_name,
        bio=user.bio,
        avatar_url=user.avatar_url,
        username=user.username,
        address=user.address,
    )


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------
def user_by_id(session: Session, user_id: int) -> User | None:
    return session.get(User, user_id)


def user_by_address(session: Session, address: str) -> User | None:
    return session.scalar(select(User).where(User.address == address))


def user_by_username(session: Session, username: str) -> User | None:
    return session.scalar(select(User).where(User.username == username))


def all_users(session: Session) -> list[User]:
    return list(session.scalars(select(User).order_by(User.id)).all())


def profile_by_address(session: Session, address: str) -> UserProfile | None:
    return _profile(user_by_address(session, address))


def profile_by_username(session: Session, username: str) -> UserProfile | None:
    return _profile(user_by_username(session, username))


def load_user(engine: Engine, user_id: int) -> User | None:
    """Engine-level lookup for worker threads."""
    with get_session(engine) as session:
        return user_by_id(session, user_id)


# ---------------------------------------------------------------------------
# Mentions
# ---------------------------------------------------------------------------
def translate_to_chain_mentions(session: Session, body: str) -> str:
    """``@username`` → ``@address`` for every known username in *body*."""

    def _address(username: str) -> str | None:
        profile = profile_by_username(session, username)
        if profile is None or not profile.address:
            return None
        return profile.address

    return to_chain_mentions(body, _address)


def translate_to_user_mentions(
    session: Session, body: str, profile_url_prefix: str
) -> str:
    """``@address`` → ``[@username](<prefix>/<address>)`` for known addresses."""

    def _username(address: str) -> str | None:
        profile = profile_by_address(session, address)
        return profile.username if profile is not None else None

    return to_user_mentions(body, _username, profile_url_prefix)
