"""
agora.services.chain_client — Remote Chain Query Client
========================================================

Thin httpx wrapper around the chain's query endpoint.  Every query is a
``POST <base>/query/<module>/<route>`` with a JSON parameter object; the
reply is JSON.  Results are parsed into the records of
:mod:`agora.engine.chain`.

Lookups of a single record return ``None`` when the chain answers 404;
every other failure raises :class:`ChainQueryError`.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from agora.engine.chain import (
    Argument,
    Claim,
    Community,
    Stake,
    Transaction,
    format_time,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class ChainQueryError(Exception):
    """The chain query endpoint failed or returned something unusable."""


class ChainClient:
    """Synchronous query client.  Safe to share between request threads."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport or httpx.HTTPTransport(retries=1),
        )

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Raw query
    # ------------------------------------------------------------------
    def query(self, route: str, params: dict[str, Any] | None = None, *, allow_missing: bool = False) -> Any:
        """POST *params* to ``/query/<route>`` and return the decoded JSON.

        With *allow_missing*, a 404 yields ``None`` instead of an error.
        """
        try:
            resp = self._client.post(f"/query/{route}", json=params or {})
        except httpx.HTTPError as exc:
            logger.error("Chain query %s failed: %s", route, exc)
            raise ChainQueryError(f"chain query {route} failed: {exc}") from exc

        if resp.status_code == httpx.codes.NOT_FOUND and allow_missing:
            return None
        if resp.is_error:
            raise ChainQueryError(
                f"chain query {route} returned {resp.status_code}: {resp.text[:200]}"
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise ChainQueryError(f"chain query {route} returned invalid JSON") from exc

    # ------------------------------------------------------------------
    # Communities
    # ------------------------------------------------------------------
    def communities(self) -> list[Community]:
        return [Community.from_dict(c) for c in self.query("community/communities") or []]

    def community(self, community_id: str) -> Community | None:
        raw = self.query("community/community", {"id": community_id}, allow_missing=True)
        return Community.from_dict(raw) if raw else None

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------
    def claims(self, community_id: str | None = None) -> list[Claim]:
        params = {"community_id": community_id} if community_id else {}
        return [Claim.from_dict(c) for c in self.query("claim/claims", params) or []]

    def claims_before(self, created_time: datetime) -> list[Claim]:
        raw = self.query("claim/claims_before_time", {"created_time": format_time(created_time)})
        return [Claim.from_dict(c) for c in raw or []]

    def claim(self, claim_id: int) -> Claim | None:
        raw = self.query("claim/claim", {"id": claim_id}, allow_missing=True)
        return Claim.from_dict(raw) if raw else None

    # ------------------------------------------------------------------
    # Arguments & stakes
    # ------------------------------------------------------------------
    def claim_arguments(self, claim_id: int) -> list[Argument]:
        raw = self.query("staking/claim_arguments", {"claim_id": claim_id})
        return [Argument.from_dict(a) for a in raw or []]

    def argument(self, argument_id: int) -> Argument | None:
        raw = self.query("staking/argument", {"id": argument_id}, allow_missing=True)
        return Argument.from_dict(raw) if raw else None

    def claim_stakes(self, claim_id: int) -> list[Stake]:
        raw = self.query("staking/claim_stakes", {"claim_id": claim_id})
        return [Stake.from_dict(s) for s in raw or []]

    # ------------------------------------------------------------------
    # Bank
    # ------------------------------------------------------------------
    def transactions(self, address: str) -> list[Transaction]:
        raw = self.query("bank/transactions_by_address", {"address": address})
        return [Transaction.from_dict(t) for t in raw or []]
