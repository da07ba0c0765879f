"""
agora.api.routes.comments — Comment creation & listing
=======================================================
"""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agora.api.deps import get_chain_client, get_dispatcher, get_optional_user, get_session
from agora.services import comment_service
from agora.services.chain_client import ChainClient, ChainQueryError
from agora.services.comment_service import InvalidClaimError, NewComment
from agora.services.notification_dispatcher import NotificationDispatcher

router = APIRouter(prefix="/comments", tags=["comments"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class CommentCreate(BaseModel):
    parent_id: int = 0
    claim_id: int = 0
    argument_id: int = 0
    element_id: int = 0
    body: str


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    parent_id: int
    claim_id: int
    community_id: str
    argument_id: int
    element_id: int
    body: str
    creator: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.post("", response_model=CommentOut)
def add_comment(
    payload: CommentCreate,
    user: dict | None = Depends(get_optional_user),
    session: Session = Depends(get_session),
    chain: ChainClient = Depends(get_chain_client),
    dispatcher: NotificationDispatcher | None = Depends(get_dispatcher),
):
    # Auth is checked after the body parses so a malformed body is a 400.
    if user is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Not authenticated")

    try:
        comment = comment_service.create_comment(
            session, chain, user["address"], NewComment(**payload.model_dump()),
        )
    except InvalidClaimError:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid claim")
    except ChainQueryError as exc:
        logger.error("Claim lookup for comment failed: %s", exc)
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Could not save comment")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    if dispatcher is not None:
        dispatcher.send_comment(comment_service.notification_request_for(comment))
    return comment


@router.get("", response_model=list[CommentOut])
def list_comments(
    claim_id: int | None = Query(None),
    argument_id: int | None = Query(None),
    element_id: int | None = Query(None),
    session: Session = Depends(get_session),
):
    return comment_service.comments(session, claim_id, argument_id, element_id)
