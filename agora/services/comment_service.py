"""
agora.services.comment_service — Comment Persistence
=====================================================

Creating a comment needs three collaborators: the chain (to validate the
claim and inherit its community), the users table (mention translation)
and the notification dispatcher (fan-out once the row is committed).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from agora.database.models import Comment
from agora.engine.notifications import CommentNotificationRequest
from agora.services.chain_client import ChainClient
from agora.services.user_service import translate_to_chain_mentions

logger = logging.getLogger(__name__)


class InvalidClaimError(Exception):
    """The comment targets a claim the chain doesn't know."""


class InvalidParentError(Exception):
    """A reply names a parent comment that does not exist."""


@dataclass(frozen=True, slots=True)
class NewComment:
    body: str
    parent_id: int = 0
    claim_id: int = 0
    argument_id: int = 0
    element_id: int = 0


def create_comment(
    session: Session,
    chain: ChainClient,
    creator: str,
    request: NewComment,
) -> Comment:
    """Validate the claim, translate mentions and insert the comment.

    The caller's session is flushed (so ``comment.id`` is populated) and
    committed here; the notification is the caller's job since delivery
    runs on the event loop.

    Raises
    ------
    InvalidClaimError
        If ``request.claim_id`` doesn't resolve to a claim.
    ChainQueryError
        If the chain can't be reached.
    """
    claim = chain.claim(request.claim_id) if request.claim_id else None
    if claim is None or claim.id == 0:
        raise InvalidClaimError("Invalid claim")

    comment = Comment(
        parent_id=request.parent_id,
        claim_id=request.claim_id,
        community_id=claim.community_id,
        argument_id=request.argument_id,
        element_id=request.element_id,
        body=translate_to_chain_mentions(session, request.body),
        creator=creator,
    )
    session.add(comment)
    session.commit()
    session.refresh(comment)
    logger.info(
        "Comment %d added on claim %d by %s", comment.id, comment.claim_id, creator
    )
    return comment


def add_reply(session: Session, parent_id: int, body: str, creator: str = "") -> Comment:
    """Reply to *parent_id*, inheriting its thread; used by ``addComment``."""
    parent = session.get(Comment, parent_id) if parent_id else None
    if parent is None:
        raise InvalidParentError("Invalid parent")
    comment = Comment(
        parent_id=parent_id,
        claim_id=parent.claim_id,
        community_id=parent.community_id,
        argument_id=parent.argument_id,
        element_id=parent.element_id,
        body=translate_to_chain_mentions(session, body),
        creator=creator,
    )
    session.add(comment)
    session.commit()
    session.refresh(comment)
    return comment


def notification_request_for(comment: Comment) -> CommentNotificationRequest:
    return CommentNotificationRequest(
        id=comment.id,
        claim_id=comment.claim_id,
        argument_id=comment.argument_id,
        element_id=comment.element_id,
        creator=comment.creator,
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def comment_by_id(session: Session, comment_id: int) -> Comment | None:
    return session.get(Comment, comment_id)


def comments(
    session: Session,
    claim_id: int | None = None,
    argument_id: int | None = None,
    element_id: int | None = None,
) -> list[Comment]:
    """Comments matching every given filter, oldest first."""
    stmt = select(Comment)
    if claim_id is not None:
        stmt = stmt.where(Comment.claim_id == claim_id)
    if argument_id is not None:
        stmt = stmt.where(Comment.argument_id == argument_id)
    if element_id is not None:
        stmt = stmt.where(Comment.element_id == element_id)
    return list(session.scalars(stmt.order_by(Comment.created_at, Comment.id)).all())


def comments_by_claim_id(session: Session, claim_id: int) -> list[Comment]:
    return comments(session, claim_id=claim_id)
