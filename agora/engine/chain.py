"""
agora.engine.chain — Chain Record Types
========================================

Immutable, parsed views of the JSON the chain query endpoint returns
(claims, arguments, stakes, transactions, communities, coins).  Parsing is
tolerant of the chain's encoding quirks: 64-bit integers arrive as
strings, timestamps carry nanosecond precision.

No I/O lives here; :mod:`agora.services.chain_client` fetches the JSON.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

__all__ = [
    "Argument",
    "Claim",
    "Coin",
    "Community",
    "DEDUCTION_TRANSACTIONS",
    "Stake",
    "StakeType",
    "Transaction",
    "TransactionType",
    "format_time",
    "parse_coin",
    "parse_time",
]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class StakeType(enum.StrEnum):
    BACKING = "backing"
    CHALLENGE = "challenge"
    UPVOTE = "upvote"


class TransactionType(enum.StrEnum):
    """Bank transaction kinds recorded by the chain."""
    REGISTRATION = "registration"
    BACKING = "backing"
    BACKING_RETURNED = "backing_returned"
    CHALLENGE = "challenge"
    CHALLENGE_RETURNED = "challenge_returned"
    UPVOTE = "upvote"
    UPVOTE_RETURNED = "upvote_returned"
    INTEREST_ARGUMENT_CREATION = "interest_argument_creation"
    INTEREST_UPVOTE_RECEIVED = "interest_upvote_received"
    INTEREST_UPVOTE_GIVEN = "interest_upvote_given"
    REWARD_PAYOUT = "reward_payout"
    GIFT = "gift"
    INTEREST_ARGUMENT_CREATION_SLASHED = "interest_argument_creation_slashed"
    INTEREST_UPVOTE_RECEIVED_SLASHED = "interest_upvote_received_slashed"
    INTEREST_UPVOTE_GIVEN_SLASHED = "interest_upvote_given_slashed"
    STAKE_CREATOR_SLASHED = "stake_creator_slashed"
    STAKE_CURATOR_SLASHED = "stake_curator_slashed"
    CURATOR_REWARD = "curator_reward"


# Kinds that take coins away from the account; shown negated.
DEDUCTION_TRANSACTIONS: frozenset[str] = frozenset({
    TransactionType.BACKING,
    TransactionType.CHALLENGE,
    TransactionType.UPVOTE,
    TransactionType.INTEREST_ARGUMENT_CREATION_SLASHED,
    TransactionType.INTEREST_UPVOTE_RECEIVED_SLASHED,
    TransactionType.INTEREST_UPVOTE_GIVEN_SLASHED,
    TransactionType.STAKE_CREATOR_SLASHED,
    TransactionType.STAKE_CURATOR_SLASHED,
})


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------
_FRACTION_RE = re.compile(r"\.(\d+)")
_ZERO_TIME = datetime(1, 1, 1, tzinfo=UTC)


def parse_time(value: str | None) -> datetime:
    """Parse an RFC 3339 timestamp; fractions beyond microseconds are cut."""
    if not value:
        return _ZERO_TIME
    value = value.strip().replace("Z", "+00:00")
    value = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def format_time(dt: datetime) -> str:
    """Render *dt* as RFC 3339 in UTC with trailing fraction zeros dropped."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    dt = dt.astimezone(UTC)
    out = dt.strftime("%Y-%m-%dT%H:%M:%S")
    if dt.microsecond:
        out += "." + f"{dt.microsecond:06d}".rstrip("0")
    return out + "Z"


def _int(value: Any) -> int:
    if value in (None, ""):
        return 0
    return int(value)


# ---------------------------------------------------------------------------
# Coin
# ---------------------------------------------------------------------------
_COIN_RE = re.compile(r"^([0-9]+)\s*([a-zA-Z][a-zA-Z0-9/]{1,127})$")


@dataclass(frozen=True, slots=True)
class Coin:
    amount: int
    denom: str

    @classmethod
    def from_dict(cls, raw: dict | None, default_denom: str = "") -> Coin:
        if not raw:
            return cls(0, default_denom)
        return cls(_int(raw.get("amount")), raw.get("denom", default_denom))

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


def parse_coin(text: str) -> Coin:
    """Parse ``"1000000000tru"`` into a :class:`Coin`.

    Raises
    ------
    ValueError
        If *text* isn't ``<digits><denom>``.
    """
    match = _COIN_RE.match(text.strip())
    if match is None:
        raise ValueError(f"invalid coin expression: {text!r}")
    return Coin(int(match.group(1)), match.group(2).lower())


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Community:
    id: str
    name: str
    description: str = ""

    @classmethod
    def from_dict(cls, raw: dict) -> Community:
        return cls(
            id=raw.get("id", ""),
            name=raw.get("name", ""),
            description=raw.get("description", ""),
        )


@dataclass(frozen=True, slots=True)
class Claim:
    id: int
    community_id: str
    body: str
    creator: str
    created_time: datetime
    source: str = ""

    @classmethod
    def from_dict(cls, raw: dict) -> Claim:
        return cls(
            id=_int(raw.get("id")),
            community_id=raw.get("community_id", ""),
            body=raw.get("body", ""),
            creator=raw.get("creator", ""),
            created_time=parse_time(raw.get("created_time")),
            source=raw.get("source", "") or "",
        )


@dataclass(frozen=True, slots=True)
class Argument:
    id: int
    claim_id: int
    community_id: str
    creator: str
    body: str
    stake_type: str
    created_time: datetime
    summary: str = ""
    edited_time: datetime = _ZERO_TIME
    edited: bool = False
    upvote_count: int = 0

    @classmethod
    def from_dict(cls, raw: dict) -> Argument:
        return cls(
            id=_int(raw.get("id")),
            claim_id=_int(raw.get("claim_id")),
            community_id=raw.get("community_id", ""),
            creator=raw.get("creator", ""),
            body=raw.get("body", ""),
            stake_type=raw.get("stake_type", ""),
            created_time=parse_time(raw.get("created_time")),
            summary=raw.get("summary", "") or "",
            edited_time=parse_time(raw.get("edited_time")),
            edited=bool(raw.get("edited", False)),
            upvote_count=_int(raw.get("upvote_count")),
        )


@dataclass(frozen=True, slots=True)
class Stake:
    id: int
    argument_id: int
    community_id: str
    creator: str
    amount: Coin
    type: str
    expired: bool
    created_time: datetime
    end_time: datetime

    @classmethod
    def from_dict(cls, raw: dict) -> Stake:
        return cls(
            id=_int(raw.get("id")),
            argument_id=_int(raw.get("argument_id")),
            community_id=raw.get("community_id", ""),
            creator=raw.get("creator", ""),
            amount=Coin.from_dict(raw.get("amount")),
            type=raw.get("type", ""),
            expired=bool(raw.get("expired", False)),
            created_time=parse_time(raw.get("created_time")),
            end_time=parse_time(raw.get("end_time")),
        )


@dataclass(frozen=True, slots=True)
class Transaction:
    id: int
    type: str
    address: str
    amount: Coin
    community_id: str
    created_time: datetime
    reference_id: int = 0
    claim_id: int = 0

    @classmethod
    def from_dict(cls, raw: dict) -> Transaction:
        return cls(
            id=_int(raw.get("id")),
            type=raw.get("type", ""),
            address=raw.get("app_account_address", raw.get("address", "")),
            amount=Coin.from_dict(raw.get("amount")),
            community_id=raw.get("community_id", "") or "",
            created_time=parse_time(raw.get("created_time")),
            reference_id=_int(raw.get("reference_id")),
            claim_id=_int(raw.get("claim_id")),
        )

    @property
    def is_deduction(self) -> bool:
        return self.type in DEDUCTION_TRANSACTIONS

    @property
    def signed_amount(self) -> int:
        """Amount as it affects the balance (negative for deductions)."""
        return -self.amount.amount if self.is_deduction else self.amount.amount
