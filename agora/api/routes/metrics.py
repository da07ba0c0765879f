"""
agora.api.routes.metrics — Metrics reports (CSV + JSON)
========================================================

Every report except the user-base export takes a ``date`` query parameter
(``YYYY-MM-DD``), read as UTC midnight.  Only records created strictly
before it are counted.  A missing or malformed date is a 400.
"""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agora.api.deps import get_chain_client, get_config, get_session, require_metrics_secret
from agora.config import AgoraConfig
from agora.constants import METRICS_VERSION, METRICS_VERSION_HEADER
from agora.engine.metrics import InvalidDateError, MetricsError, parse_report_date
from agora.services import metrics_service
from agora.services.chain_client import ChainClient, ChainQueryError

router = APIRouter(prefix="/metrics", tags=["metrics"])
logger = logging.getLogger(__name__)

CSV_MEDIA_TYPE = "text/csv"


def _cutoff(date: str | None) -> datetime:
    try:
        return parse_report_date(date)
    except InvalidDateError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))


def _csv_response(body: str, *, versioned: bool = True) -> Response:
    headers = {METRICS_VERSION_HEADER: METRICS_VERSION} if versioned else None
    return Response(content=body, media_type=CSV_MEDIA_TYPE, headers=headers)


def _report_failed(name: str, exc: Exception) -> HTTPException:
    logger.error("%s report failed: %s", name, exc)
    return HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.get("")
def metrics_tree(
    date: str | None = Query(None),
    session: Session = Depends(get_session),
    chain: ChainClient = Depends(get_chain_client),
):
    """Per-user, per-community metrics as JSON."""
    before = _cutoff(date)
    try:
        return metrics_service.metrics_summary(session, chain, before)
    except (MetricsError, ChainQueryError, SQLAlchemyError) as exc:
        raise _report_failed("Metrics summary", exc)


@router.get("/users")
def users_metrics(
    date: str | None = Query(None),
    session: Session = Depends(get_session),
    chain: ChainClient = Depends(get_chain_client),
):
    before = _cutoff(date)
    try:
        body = metrics_service.users_metrics_csv(session, chain, before)
    except (MetricsError, ChainQueryError, SQLAlchemyError) as exc:
        raise _report_failed("Users", exc)
    return _csv_response(body)


@router.get("/claims")
def claim_metrics(
    date: str | None = Query(None),
    session: Session = Depends(get_session),
    chain: ChainClient = Depends(get_chain_client),
    cfg: AgoraConfig = Depends(get_config),
):
    before = _cutoff(date)
    try:
        body = metrics_service.claim_metrics_csv(session, chain, cfg, before)
    except (MetricsError, ChainQueryError, SQLAlchemyError) as exc:
        raise _report_failed("Claim", exc)
    return _csv_response(body)


@router.get("/user_claims")
def user_claims_metrics(
    date: str | None = Query(None),
    session: Session = Depends(get_session),
    chain: ChainClient = Depends(get_chain_client),
):
    target = _cutoff(date)
    try:
        body = metrics_service.user_claims_csv(session, chain, target)
    except (MetricsError, ChainQueryError, SQLAlchemyError) as exc:
        raise _report_failed("User claims", exc)
    return _csv_response(body, versioned=False)


@router.get("/users/base", dependencies=[Depends(require_metrics_secret)])
def user_base(session: Session = Depends(get_session)):
    try:
        body = metrics_service.user_base_csv(session)
    except (MetricsError, SQLAlchemyError) as exc:
        raise _report_failed("User base", exc)
    return _csv_response(body, versioned=False)
