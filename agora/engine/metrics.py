"""
agora.engine.metrics — Metrics Accumulation & Report Rows
==========================================================

Pure aggregation for the operational reports.  The service layer fetches
claims, arguments, stakes and transactions created strictly before a
cutoff date, feeds them through a :class:`MetricsAccumulator` in a single
forward pass, then renders rows with the helpers at the bottom of this
module.

Amounts are integers in the stake denomination's base unit.  Every
renderer checks its row against its header; a mismatch raises
:class:`MetricsError` instead of emitting a skewed CSV.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from agora.constants import BETA_RELEASE_DATE, user_group_name
from agora.engine.chain import (
    Argument,
    Claim,
    Community,
    Stake,
    StakeType,
    Transaction,
    TransactionType,
    format_time,
)

__all__ = [
    "CLAIMS_HEADER",
    "ClaimViews",
    "MetricsAccumulator",
    "MetricsError",
    "USERS_HEADER",
    "USER_BASE_HEADER",
    "USER_CLAIMS_HEADER",
    "UserCommunityMetrics",
    "claim_report_row",
    "job_time",
    "not_expired_at",
    "parse_report_date",
    "user_base_row",
    "user_claims_row",
    "user_community_row",
]


# ---------------------------------------------------------------------------
# Headers — order-sensitive, consumed by downstream spreadsheets
# ---------------------------------------------------------------------------
USERS_HEADER: list[str] = [
    "job_date_time", "date", "address", "username", "balance",
    "community", "community_name", "stake_earned",
    "claims_created", "claims_opened", "unique_claims_opened",
    "arguments_created", "agrees_received", "agrees_given",
    "staked", "staked_arguments", "staked_agrees",
    "interest_argument_creation", "interest_agree_received",
    "interest_agree_given", "reward_not_helpful",
    "interest_slashed", "stake_slashed", "pending_stake",
    "replies",
    "arguments_opened", "unique_arguments_opened",
]

CLAIMS_HEADER: list[str] = [
    "job_date_time", "date", "created_date", "flagged", "id", "community_id", "claim_name",
    "arguments_created", "agrees_given",
    "staked",
    "staked_backed", "staked_argument_backed", "staked_agree_backed",
    "staked_challenged", "staked_argument_challenged", "staked_agree_challenged",
    "user_views", "unique_user_views", "anon_views", "unique_anon_views",
    "user_arguments_views", "unique_user_arguments_views",
    "anon_arguments_views", "unique_anon_arguments_views",
    "replies",
    "last_activiy_argument",
    "last_activity_agree",
]

USER_CLAIMS_HEADER: list[str] = [
    "job_date_time", "date", "claim_id", "claim", "community", "address",
    "creation_date", "participants",
]

USER_BASE_HEADER: list[str] = [
    "address", "username", "email", "creation_date", "updated_date",
    "last_login", "user_group",
]

INTEREST_TRANSACTIONS: frozenset[str] = frozenset({
    TransactionType.INTEREST_ARGUMENT_CREATION,
    TransactionType.INTEREST_UPVOTE_RECEIVED,
    TransactionType.INTEREST_UPVOTE_GIVEN,
})

INTEREST_SLASHED_TRANSACTIONS: frozenset[str] = frozenset({
    TransactionType.INTEREST_ARGUMENT_CREATION_SLASHED,
    TransactionType.INTEREST_UPVOTE_RECEIVED_SLASHED,
    TransactionType.INTEREST_UPVOTE_GIVEN_SLASHED,
})

STAKE_SLASHED_TRANSACTIONS: frozenset[str] = frozenset({
    TransactionType.STAKE_CREATOR_SLASHED,
    TransactionType.STAKE_CURATOR_SLASHED,
})

TRACKED_TRANSACTIONS: frozenset[str] = (
    frozenset({
        TransactionType.BACKING,
        TransactionType.CHALLENGE,
        TransactionType.CURATOR_REWARD,
    })
    | INTEREST_TRANSACTIONS
    | INTEREST_SLASHED_TRANSACTIONS
    | STAKE_SLASHED_TRANSACTIONS
)

RETURNED_TRANSACTIONS: frozenset[str] = frozenset({
    TransactionType.BACKING_RETURNED,
    TransactionType.CHALLENGE_RETURNED,
    TransactionType.UPVOTE_RETURNED,
})


class MetricsError(Exception):
    """A report can't be produced; the message is safe to show the caller."""


class InvalidDateError(MetricsError):
    pass


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------
def parse_report_date(value: str | None) -> datetime:
    """Parse the ``date`` query parameter (``YYYY-MM-DD``) as UTC midnight."""
    if not value:
        raise InvalidDateError("provide a valid date")
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise InvalidDateError(f"invalid date {value!r}: expected YYYY-MM-DD") from exc
    return parsed.replace(tzinfo=UTC)


def job_time(now: datetime | None = None) -> str:
    """Report generation stamp, UTC ``YYYYMMDDhhmm``."""
    now = now or datetime.now(UTC)
    return now.astimezone(UTC).strftime("%Y%m%d%H%M")


def as_utc(dt: datetime) -> datetime:
    """DB timestamps may come back naive (SQLite); treat them as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def not_expired_at(date: datetime, created: datetime, end: datetime) -> bool:
    """Whether a stake running ``created → end`` was still live at *date*.

    Stakes from before the public beta always count as expired.
    """
    if created < BETA_RELEASE_DATE:
        return False
    if date < created:
        return False
    if date > end:
        return False
    if not created < end:
        return False
    return True


# ---------------------------------------------------------------------------
# Counters
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class UserCommunityMetrics:
    # interactions
    claims: int = 0
    arguments: int = 0
    agrees_given: int = 0
    agrees_received: int = 0
    backings: int = 0
    challenges: int = 0
    # stakes
    staked: int = 0
    staked_argument: int = 0
    staked_agree: int = 0
    staked_backed: int = 0
    staked_challenged: int = 0
    pending_stake: int = 0
    # transactions
    interest_argument_created: int = 0
    interest_agree_received: int = 0
    interest_agree_given: int = 0
    curator_reward: int = 0
    interest_slashed: int = 0
    stake_slashed: int = 0
    earned: int = 0
    stake_earned_net: int = 0
    # database summaries
    claims_opened: int = 0
    unique_claims_opened: int = 0
    arguments_opened: int = 0
    unique_arguments_opened: int = 0
    replies: int = 0

    @property
    def interest_earned(self) -> int:
        return (
            self.interest_argument_created
            + self.interest_agree_received
            + self.interest_agree_given
        )


@dataclass(slots=True)
class UserMetrics:
    username: str = ""
    balance: int = 0
    communities: dict[str, UserCommunityMetrics] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class OpenedSummary:
    """Per (address, community) page-open counts from ``track_events``."""
    address: str
    community_id: str
    opened: int
    unique_opened: int


@dataclass(frozen=True, slots=True)
class RepliesSummary:
    address: str
    community_id: str
    replies: int


@dataclass(frozen=True, slots=True)
class ClaimViews:
    user_views: int = 0
    unique_user_views: int = 0
    anon_views: int = 0
    unique_anon_views: int = 0
    user_arguments_views: int = 0
    unique_user_arguments_views: int = 0
    anon_arguments_views: int = 0
    unique_anon_arguments_views: int = 0


def _stake_key(address: str, claim_id: int) -> str:
    return f"{address}:{claim_id}"


# ---------------------------------------------------------------------------
# MetricsAccumulator
# ---------------------------------------------------------------------------
class MetricsAccumulator:
    """``address → community_id → counters``, built for one request."""

    def __init__(self, before: datetime) -> None:
        self.before = before
        self.users: dict[str, UserMetrics] = {}
        # "<address>:<claim_id>" → amount staked on the claim
        self.stake_by_claim: dict[str, int] = {}
        self.claims: dict[int, Claim] = {}

    def user(self, address: str) -> UserMetrics:
        metrics = self.users.get(address)
        if metrics is None:
            metrics = self.users[address] = UserMetrics()
        return metrics

    def community(self, address: str, community_id: str) -> UserCommunityMetrics:
        user = self.user(address)
        metrics = user.communities.get(community_id)
        if metrics is None:
            metrics = user.communities[community_id] = UserCommunityMetrics()
        return metrics

    # -- chain scan -------------------------------------------------------
    def add_claim(
        self, claim: Claim, arguments: Iterable[Argument], stakes: Iterable[Stake]
    ) -> None:
        """Count a claim with its arguments and stakes (before the cutoff)."""
        if not claim.created_time < self.before:
            return
        self.claims[claim.id] = claim
        self.community(claim.creator, claim.community_id).claims += 1

        argument_by_id: dict[int, Argument] = {}
        for argument in arguments:
            if not argument.created_time < self.before:
                continue
            self.community(argument.creator, claim.community_id).arguments += 1
            argument_by_id[argument.id] = argument

        for stake in stakes:
            if not stake.created_time < self.before:
                continue
            self.add_stake(claim, stake, argument_by_id.get(stake.argument_id))

    def add_stake(self, claim: Claim, stake: Stake, argument: Argument | None) -> None:
        amount = stake.amount.amount
        metrics = self.community(stake.creator, claim.community_id)
        if not stake.expired or not_expired_at(self.before, stake.created_time, stake.end_time):
            metrics.pending_stake += amount

        if stake.type == StakeType.UPVOTE:
            metrics.staked_agree += amount
            metrics.agrees_given += 1
            if argument is not None:
                community_id = stake.community_id or claim.community_id
                self.community(argument.creator, community_id).agrees_received += 1
        else:
            metrics.staked_argument += amount
            if stake.type == StakeType.BACKING:
                metrics.backings += 1
            elif stake.type == StakeType.CHALLENGE:
                metrics.challenges += 1

        if argument is not None:
            if argument.stake_type == StakeType.BACKING:
                metrics.staked_backed += amount
            elif argument.stake_type == StakeType.CHALLENGE:
                metrics.staked_challenged += amount

        metrics.staked += amount
        key = _stake_key(stake.creator, claim.id)
        self.stake_by_claim[key] = self.stake_by_claim.get(key, 0) + amount

    # -- database summaries -----------------------------------------------
    def apply_opened_claims(self, rows: Iterable[OpenedSummary]) -> None:
        for row in rows:
            metrics = self.community(row.address, row.community_id)
            metrics.claims_opened = row.opened
            metrics.unique_claims_opened = row.unique_opened

    def apply_opened_arguments(self, rows: Iterable[OpenedSummary]) -> None:
        for row in rows:
            metrics = self.community(row.address, row.community_id)
            metrics.arguments_opened = row.opened
            metrics.unique_arguments_opened = row.unique_opened

    def apply_replies(self, rows: Iterable[RepliesSummary]) -> None:
        for row in rows:
            self.community(row.address, row.community_id).replies = row.replies

    # -- transactions -----------------------------------------------------
    def apply_transactions(self, address: str, transactions: Iterable[Transaction]) -> int:
        """Fold *address*'s transactions into its counters; return the balance.

        Raises
        ------
        MetricsError
            If a tracked transaction carries no community id.
        """
        balance = 0
        for tx in transactions:
            if not tx.created_time < self.before:
                continue
            balance += tx.signed_amount
            amount = tx.amount.amount
            if tx.type not in TRACKED_TRANSACTIONS:
                continue
            if not tx.community_id:
                raise MetricsError(
                    f"transaction {tx.type} [{tx.id}] must contain community id"
                )

            metrics = self.community(address, tx.community_id)
            if tx.type == TransactionType.INTEREST_ARGUMENT_CREATION:
                metrics.interest_argument_created += amount
                metrics.earned += amount
            elif tx.type == TransactionType.INTEREST_UPVOTE_RECEIVED:
                metrics.interest_agree_received += amount
                metrics.earned += amount
            elif tx.type == TransactionType.INTEREST_UPVOTE_GIVEN:
                metrics.interest_agree_given += amount
                metrics.earned += amount
            elif tx.type == TransactionType.CURATOR_REWARD:
                metrics.curator_reward += amount
            elif tx.type in INTEREST_SLASHED_TRANSACTIONS:
                metrics.interest_slashed += amount
                metrics.earned -= amount
            elif tx.type in STAKE_SLASHED_TRANSACTIONS:
                metrics.stake_slashed += amount

        self.user(address).balance = balance
        return balance

    def apply_rewards(self, address: str, transactions: Iterable[Transaction]) -> None:
        """Credit net stake rewards for claims scanned by :meth:`add_claim`.

        A payout followed by a stake-returned transaction is already net.
        Otherwise the staked amount recorded for ``address:claim`` is
        deducted; zero or negative results are skipped.
        """
        rewards: dict[int, int] = {}
        returned: set[int] = set()
        for tx in transactions:
            if not tx.created_time < self.before or tx.claim_id not in self.claims:
                continue
            if tx.type == TransactionType.REWARD_PAYOUT:
                rewards[tx.claim_id] = rewards.get(tx.claim_id, 0) + tx.amount.amount
            elif tx.type in RETURNED_TRANSACTIONS:
                returned.add(tx.claim_id)

        for claim_id, reward in rewards.items():
            community_id = self.claims[claim_id].community_id
            if claim_id in returned:
                self.community(address, community_id).stake_earned_net += reward
                continue
            staked = self.stake_by_claim.get(_stake_key(address, claim_id))
            if staked is None:
                continue
            net = reward - staked
            if net <= 0:
                continue
            self.community(address, community_id).stake_earned_net += net

    # -- JSON tree --------------------------------------------------------
    def summary(self, communities: dict[str, Community]) -> dict:
        """Render the accumulator as the JSON metrics tree."""
        users: dict[str, dict] = {}
        for address, user in self.users.items():
            if not address:
                continue
            community_metrics = {}
            for community_id, m in user.communities.items():
                community = communities.get(community_id)
                community_metrics[community_id] = {
                    "community_id": community_id,
                    "community_name": community.name if community else "",
                    "metrics": {
                        "total_claims": m.claims,
                        "total_arguments": m.arguments,
                        "total_endorsements_received": m.agrees_received,
                        "total_endorsements_given": m.agrees_given,
                        "total_backings": m.backings,
                        "total_challenges": m.challenges,
                        "total_opened_claims": m.claims_opened,
                        "total_amount_staked": m.staked,
                        "total_amount_backed": m.staked_backed,
                        "total_amount_challenged": m.staked_challenged,
                        "stake_earned": m.stake_earned_net,
                        "stake_lost": m.stake_slashed,
                        "total_amount_at_stake": m.pending_stake,
                        "interest_earned": m.interest_earned,
                    },
                }
            users[address] = {
                "username": user.username,
                "balance": user.balance,
                "community_metrics": community_metrics,
            }
        return {"users": users}


# ---------------------------------------------------------------------------
# Row renderers
# ---------------------------------------------------------------------------
def _checked(header: list[str], row: list[str]) -> list[str]:
    if len(header) != len(row):
        raise MetricsError("header and row content mismatch")
    return row


def user_community_row(
    job: str,
    date: datetime,
    address: str,
    username: str,
    balance: int,
    community: Community,
    m: UserCommunityMetrics,
) -> list[str]:
    return _checked(USERS_HEADER, [
        job, format_time(date), address, username, str(balance),
        community.id, community.name,
        str(m.earned),
        str(m.claims), str(m.claims_opened), str(m.unique_claims_opened),
        str(m.arguments), str(m.agrees_received), str(m.agrees_given),
        str(m.staked), str(m.staked_argument), str(m.staked_agree),
        str(m.interest_argument_created), str(m.interest_agree_received),
        str(m.interest_agree_given), str(m.curator_reward),
        str(m.interest_slashed), str(m.stake_slashed), str(m.pending_stake),
        str(m.replies),
        str(m.arguments_opened), str(m.unique_arguments_opened),
    ])


def claim_report_row(
    job: str,
    date: datetime,
    claim: Claim,
    arguments: list[Argument],
    stakes: list[Stake],
    views: ClaimViews,
    replies: int,
    flagged: bool,
) -> list[str]:
    """Row for one claim of the claim report.

    Raises
    ------
    MetricsError
        If a stake points at an argument the claim doesn't have.
    """
    argument_by_id = {a.id: a for a in arguments}
    total_arguments = 0
    last_argument: datetime | None = None
    for argument in arguments:
        if not argument.created_time < date:
            continue
        if last_argument is None or last_argument < argument.created_time:
            last_argument = argument.created_time
        total_arguments += 1

    agrees_given = 0
    backed_agree = backed_argument = 0
    challenged_agree = challenged_argument = 0
    last_agree: datetime | None = None
    for stake in stakes:
        if not stake.created_time < date:
            continue
        argument = argument_by_id.get(stake.argument_id)
        if argument is None:
            raise MetricsError(f"unable to find argument with id {stake.argument_id}")
        amount = stake.amount.amount
        is_upvote = stake.type == StakeType.UPVOTE
        if is_upvote and (last_agree is None or last_agree < stake.created_time):
            last_agree = stake.created_time

        if argument.stake_type == StakeType.BACKING:
            if is_upvote:
                backed_agree += amount
                agrees_given += 1
            else:
                backed_argument += amount
        elif argument.stake_type == StakeType.CHALLENGE:
            if is_upvote:
                challenged_agree += amount
                agrees_given += 1
            else:
                challenged_argument += amount

    backed = backed_agree + backed_argument
    challenged = challenged_agree + challenged_argument
    body = claim.body.replace("\n", " ").strip()
    return _checked(CLAIMS_HEADER, [
        job,
        format_time(date),
        format_time(claim.created_time),
        "1" if flagged else "0",
        str(claim.id),
        claim.community_id,
        body,
        str(total_arguments),
        str(agrees_given),
        str(backed + challenged),
        str(backed), str(backed_argument), str(backed_agree),
        str(challenged), str(challenged_argument), str(challenged_agree),
        str(views.user_views), str(views.unique_user_views),
        str(views.anon_views), str(views.unique_anon_views),
        str(views.user_arguments_views), str(views.unique_user_arguments_views),
        str(views.anon_arguments_views), str(views.unique_anon_arguments_views),
        str(replies),
        format_time(last_argument) if last_argument else "",
        format_time(last_agree) if last_agree else "",
    ])


def user_claims_row(
    job: str,
    target: datetime,
    claim: Claim,
    stakes: Iterable[Stake],
    comments: Iterable[tuple[str, datetime]],
) -> list[str]:
    """Row for the user-claims report.

    ``participants`` counts stakers and commenters active before *target*
    who weren't already active 24 hours earlier.
    """
    previous_day = target - timedelta(hours=24)
    participants: set[str] = set()
    earlier: set[str] = set()
    activity = [(s.creator, s.created_time) for s in stakes]
    activity += [(creator, as_utc(created)) for creator, created in comments]
    for creator, created in activity:
        if not created < target:
            continue
        participants.add(creator)
        if created < previous_day:
            earlier.add(creator)

    return _checked(USER_CLAIMS_HEADER, [
        job,
        format_time(target),
        str(claim.id),
        claim.body,
        claim.community_id,
        claim.creator,
        format_time(claim.created_time),
        str(len(participants) - len(earlier)),
    ])


def user_base_row(user) -> list[str]:
    """Row for the user-base export from a :class:`~agora.database.models.User`."""
    last_login = ""
    if user.last_authenticated_at is not None:
        last_login = format_time(as_utc(user.last_authenticated_at))
    return _checked(USER_BASE_HEADER, [
        user.address or "",
        user.username,
        user.email or "",
        format_time(as_utc(user.created_at)),
        format_time(as_utc(user.updated_at)),
        last_login,
        user_group_name(user.user_group),
    ])
