"""
agora.services.metrics_service — Report Orchestration
======================================================

Fetches chain records and DB summaries for a cutoff date, runs them
through :mod:`agora.engine.metrics` and renders CSV text (or the JSON
tree).  Everything here is synchronous and runs on FastAPI's threadpool.

Errors surface as :class:`~agora.engine.metrics.MetricsError` or
:class:`~agora.services.chain_client.ChainQueryError`; routes turn them
into HTTP responses.
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy.orm import Session

from agora.config import AgoraConfig
from agora.engine.chain import Claim
from agora.engine.metrics import (
    CLAIMS_HEADER,
    USER_BASE_HEADER,
    USER_CLAIMS_HEADER,
    USERS_HEADER,
    ClaimViews,
    MetricsAccumulator,
    MetricsError,
    as_utc,
    claim_report_row,
    job_time,
    user_base_row,
    user_claims_row,
    user_community_row,
)
from agora.services import stats_service
from agora.services.chain_client import ChainClient
from agora.services.comment_service import comments_by_claim_id
from agora.services.user_service import all_users

logger = logging.getLogger(__name__)


def _csv(header: list[str], rows: Iterable[list[str]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue()


def _claims_before(chain: ChainClient, before: datetime) -> list[Claim]:
    return [c for c in chain.claims_before(before) if c.created_time < before]


# ---------------------------------------------------------------------------
# Chain scan shared by the users report and the JSON tree
# ---------------------------------------------------------------------------
def scan_chain(chain: ChainClient, before: datetime) -> MetricsAccumulator:
    acc = MetricsAccumulator(before)
    for claim in _claims_before(chain, before):
        acc.add_claim(claim, chain.claim_arguments(claim.id), chain.claim_stakes(claim.id))
    return acc


# ---------------------------------------------------------------------------
# Users report
# ---------------------------------------------------------------------------
def users_metrics_csv(session: Session, chain: ChainClient, before: datetime) -> str:
    job = job_time()
    acc = scan_chain(chain, before)

    communities = chain.communities()
    if not communities:
        raise MetricsError("no communities found")

    acc.apply_opened_claims(stats_service.opened_claims_summary(session, before))
    acc.apply_opened_arguments(stats_service.opened_arguments_summary(session, before))
    acc.apply_replies(stats_service.user_replies_stats(session, before))

    rows: list[list[str]] = []
    for user in all_users(session):
        if not user.address or not as_utc(user.created_at) < before:
            continue
        balance = acc.apply_transactions(user.address, chain.transactions(user.address))
        for community in communities:
            metrics = acc.community(user.address, community.id)
            rows.append(user_community_row(
                job, before, user.address, user.username, balance, community, metrics,
            ))
    logger.info("Users metrics: %d rows for %s", len(rows), before.date())
    return _csv(USERS_HEADER, rows)


# ---------------------------------------------------------------------------
# Claim report
# ---------------------------------------------------------------------------
def claim_metrics_csv(
    session: Session, chain: ChainClient, cfg: AgoraConfig, before: datetime
) -> str:
    job = job_time()
    claims = _claims_before(chain, before)
    views = stats_service.claim_views_stats(session, before)
    replies = stats_service.claim_replies_stats(session, before)
    flagged = stats_service.flagged_claim_ids(session, cfg.flag_admin, cfg.flag_limit)

    rows = [
        claim_report_row(
            job,
            before,
            claim,
            chain.claim_arguments(claim.id),
            chain.claim_stakes(claim.id),
            views.get(claim.id, ClaimViews()),
            replies.get(claim.id, 0),
            claim.id in flagged,
        )
        for claim in claims
    ]
    logger.info("Claim metrics: %d rows for %s", len(rows), before.date())
    return _csv(CLAIMS_HEADER, rows)


# ---------------------------------------------------------------------------
# User-claims report
# ---------------------------------------------------------------------------
def user_claims_csv(session: Session, chain: ChainClient, target: datetime) -> str:
    job = job_time()
    rows = []
    for claim in _claims_before(chain, target):
        comments = [(c.creator, c.created_at) for c in comments_by_claim_id(session, claim.id)]
        rows.append(user_claims_row(job, target, claim, chain.claim_stakes(claim.id), comments))
    return _csv(USER_CLAIMS_HEADER, rows)


# ---------------------------------------------------------------------------
# User base
# ---------------------------------------------------------------------------
def user_base_csv(session: Session) -> str:
    rows = [user_base_row(u) for u in all_users(session) if u.address]
    return _csv(USER_BASE_HEADER, rows)


# ---------------------------------------------------------------------------
# JSON tree
# ---------------------------------------------------------------------------
def metrics_summary(session: Session, chain: ChainClient, before: datetime) -> dict:
    """Per-user, per-community metrics with net stake rewards."""
    acc = scan_chain(chain, before)
    communities = {c.id: c for c in chain.communities()}
    if not communities:
        raise MetricsError("no communities found")

    acc.apply_opened_claims(stats_service.opened_claims_summary(session, before))

    for user in all_users(session):
        if not user.address:
            continue
        metrics = acc.user(user.address)
        metrics.username = user.username
        for community_id in communities:
            acc.community(user.address, community_id)
        transactions = chain.transactions(user.address)
        acc.apply_transactions(user.address, transactions)
        acc.apply_rewards(user.address, transactions)
    return acc.summary(communities)
