"""
agora.services.stats_service — Activity Summaries for Reports
==============================================================

Aggregate queries over ``track_events``, ``comments`` and
``flagged_claims``, all bounded by a cutoff date.  Results are returned as
the plain records :mod:`agora.engine.metrics` consumes.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from agora.database.models import Comment, FlaggedClaim, TrackEvent
from agora.engine.metrics import ClaimViews, OpenedSummary, RepliesSummary


def opened_claims_summary(session: Session, before: datetime) -> list[OpenedSummary]:
    """Claim opens per signed-in user and community (argument opens excluded)."""
    rows = session.execute(
        select(
            TrackEvent.address,
            TrackEvent.community_id,
            func.count(TrackEvent.id),
            func.count(distinct(TrackEvent.claim_id)),
        )
        .where(
            TrackEvent.address.isnot(None),
            TrackEvent.argument_id.is_(None),
            TrackEvent.created_at < before,
        )
        .group_by(TrackEvent.address, TrackEvent.community_id)
    ).all()
    return [OpenedSummary(addr, cid, opened, unique) for addr, cid, opened, unique in rows]


def opened_arguments_summary(session: Session, before: datetime) -> list[OpenedSummary]:
    rows = session.execute(
        select(
            TrackEvent.address,
            TrackEvent.community_id,
            func.count(TrackEvent.id),
            func.count(distinct(TrackEvent.argument_id)),
        )
        .where(
            TrackEvent.address.isnot(None),
            TrackEvent.argument_id.isnot(None),
            TrackEvent.created_at < before,
        )
        .group_by(TrackEvent.address, TrackEvent.community_id)
    ).all()
    return [OpenedSummary(addr, cid, opened, unique) for addr, cid, opened, unique in rows]


def user_replies_stats(session: Session, before: datetime) -> list[RepliesSummary]:
    rows = session.execute(
        select(Comment.creator, Comment.community_id, func.count(Comment.id))
        .where(Comment.created_at < before)
        .group_by(Comment.creator, Comment.community_id)
    ).all()
    return [RepliesSummary(creator, cid, replies) for creator, cid, replies in rows]


def claim_replies_stats(session: Session, before: datetime) -> dict[int, int]:
    """``claim_id → comment count``."""
    rows = session.execute(
        select(Comment.claim_id, func.count(Comment.id))
        .where(Comment.created_at < before)
        .group_by(Comment.claim_id)
    ).all()
    return {claim_id: count for claim_id, count in rows}


def claim_views_stats(session: Session, before: datetime) -> dict[int, ClaimViews]:
    """Per-claim view counters split by signed-in vs anonymous and claim vs argument.

    Uniqueness is by address for users and by session for anonymous visitors.
    """
    events = session.execute(
        select(
            TrackEvent.claim_id,
            TrackEvent.address,
            TrackEvent.session_id,
            TrackEvent.argument_id,
            TrackEvent.is_anonymous,
        ).where(TrackEvent.created_at < before)
    ).all()

    counters: dict[int, dict[str, int]] = {}
    uniques: dict[tuple[int, str], set] = {}
    for claim_id, address, session_id, argument_id, is_anonymous in events:
        anonymous = is_anonymous or not address
        kind = ("anon" if anonymous else "user") + ("_arguments" if argument_id else "")
        who = session_id if anonymous else address
        c = counters.setdefault(claim_id, {})
        c[f"{kind}_views"] = c.get(f"{kind}_views", 0) + 1
        uniques.setdefault((claim_id, kind), set()).add(who)

    out: dict[int, ClaimViews] = {}
    for claim_id, c in counters.items():
        def unique(kind: str) -> int:
            return len(uniques.get((claim_id, kind), ()))

        out[claim_id] = ClaimViews(
            user_views=c.get("user_views", 0),
            unique_user_views=unique("user"),
            anon_views=c.get("anon_views", 0),
            unique_anon_views=unique("anon"),
            user_arguments_views=c.get("user_arguments_views", 0),
            unique_user_arguments_views=unique("user_arguments"),
            anon_arguments_views=c.get("anon_arguments_views", 0),
            unique_anon_arguments_views=unique("anon_arguments"),
        )
    return out


def flagged_claim_ids(session: Session, admin: str, limit: int) -> set[int]:
    """Claims flagged by *admin* or by at least *limit* flags."""
    by_admin: set[int] = set()
    if admin:
        by_admin = set(session.scalars(
            select(FlaggedClaim.claim_id).where(FlaggedClaim.creator == admin)
        ).all())
    by_count = session.scalars(
        select(FlaggedClaim.claim_id)
        .group_by(FlaggedClaim.claim_id)
        .having(func.count(FlaggedClaim.id) >= limit)
    ).all()
    return by_admin | set(by_count)
