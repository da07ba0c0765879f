"""
tests/test_metrics_engine.py — Unit Tests for Metrics Accumulation
===================================================================

Tests the pure aggregation and row rendering (no database, no chain).
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from agora.engine.chain import Argument, Claim, Coin, Community, Stake, Transaction
from agora.engine.metrics import (
    CLAIMS_HEADER,
    USER_BASE_HEADER,
    USER_CLAIMS_HEADER,
    USERS_HEADER,
    ClaimViews,
    InvalidDateError,
    MetricsAccumulator,
    MetricsError,
    claim_report_row,
    not_expired_at,
    parse_report_date,
    user_base_row,
    user_claims_row,
    user_community_row,
)

CUTOFF = datetime(2019, 9, 1, tzinfo=UTC)
DAY = timedelta(days=1)


def _claim(id=1, creator="cosmos1alice", community="crypto", created=CUTOFF - 10 * DAY):
    return Claim(id=id, community_id=community, body="Bitcoin\nwill rise", creator=creator,
                 created_time=created)


def _argument(id, creator, stake_type="backing", claim_id=1, created=CUTOFF - 9 * DAY):
    return Argument(id=id, claim_id=claim_id, community_id="crypto", creator=creator,
                    body="because", stake_type=stake_type, created_time=created)


def _stake(id, argument_id, creator, amount, type="backing", created=CUTOFF - 9 * DAY,
           expired=False, end=None):
    return Stake(id=id, argument_id=argument_id, community_id="crypto", creator=creator,
                 amount=Coin(amount, "tru"), type=type, expired=expired,
                 created_time=created, end_time=end or created + 7 * DAY)


def _tx(type, amount, claim_id=0, community="crypto", created=CUTOFF - DAY, id=1):
    return Transaction(id=id, type=type, address="cosmos1alice", amount=Coin(amount, "tru"),
                       community_id=community, created_time=created, claim_id=claim_id)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------
class TestDates:
    def test_parse_report_date_is_utc_midnight(self):
        assert parse_report_date("2019-09-01") == CUTOFF

    @pytest.mark.parametrize("value", [None, "", "09/01/2019", "2019-13-01"])
    def test_parse_report_date_rejects(self, value):
        with pytest.raises(InvalidDateError):
            parse_report_date(value)

    def test_not_expired_at(self):
        created = CUTOFF - 3 * DAY
        assert not_expired_at(CUTOFF, created, CUTOFF + DAY)
        assert not not_expired_at(CUTOFF, created, CUTOFF - DAY)
        assert not not_expired_at(CUTOFF, CUTOFF + DAY, CUTOFF + 2 * DAY)

    def test_pre_beta_stakes_always_expired(self):
        created = datetime(2019, 7, 1, tzinfo=UTC)
        assert not not_expired_at(datetime(2019, 7, 2, tzinfo=UTC), created, CUTOFF)


# ---------------------------------------------------------------------------
# Accumulator
# ---------------------------------------------------------------------------
class TestAccumulator:
    def test_staked_equals_sum_of_stakes_before_cutoff(self):
        acc = MetricsAccumulator(CUTOFF)
        arguments = [_argument(1, "cosmos1alice"), _argument(2, "cosmos1bob", "challenge")]
        stakes = [
            _stake(1, 1, "cosmos1alice", 100),
            _stake(2, 1, "cosmos1alice", 250, type="upvote"),
            _stake(3, 2, "cosmos1alice", 40, type="challenge"),
            _stake(4, 2, "cosmos1alice", 999, created=CUTOFF + DAY),
        ]
        acc.add_claim(_claim(), arguments, stakes)

        m = acc.community("cosmos1alice", "crypto")
        assert m.staked == 390
        assert m.staked_argument == 140
        assert m.staked_agree == 250
        assert m.staked_backed == 350
        assert m.staked_challenged == 40
        assert acc.stake_by_claim["cosmos1alice:1"] == 390

    def test_interactions_counted(self):
        acc = MetricsAccumulator(CUTOFF)
        acc.add_claim(
            _claim(),
            [_argument(1, "cosmos1bob")],
            [_stake(1, 1, "cosmos1alice", 10, type="upvote")],
        )
        assert acc.community("cosmos1alice", "crypto").claims == 1
        assert acc.community("cosmos1alice", "crypto").agrees_given == 1
        assert acc.community("cosmos1bob", "crypto").arguments == 1
        assert acc.community("cosmos1bob", "crypto").agrees_received == 1

    def test_claim_after_cutoff_ignored(self):
        acc = MetricsAccumulator(CUTOFF)
        acc.add_claim(_claim(created=CUTOFF), [], [])
        assert acc.users == {}

    def test_transactions_balance_and_interest(self):
        acc = MetricsAccumulator(CUTOFF)
        balance = acc.apply_transactions("cosmos1alice", [
            _tx("gift", 1000, community=""),
            _tx("backing", 300),
            _tx("interest_argument_creation", 20),
            _tx("interest_upvote_given_slashed", 5),
            _tx("gift", 1, created=CUTOFF + DAY, community=""),
        ])
        assert balance == 1000 - 300 + 20 - 5
        m = acc.community("cosmos1alice", "crypto")
        assert m.interest_argument_created == 20
        assert m.interest_slashed == 5
        assert m.interest_earned == 20
        assert m.earned == 15

    def test_tracked_transaction_without_community_fails(self):
        acc = MetricsAccumulator(CUTOFF)
        with pytest.raises(MetricsError, match="must contain community id"):
            acc.apply_transactions("cosmos1alice", [_tx("backing", 1, community="")])


class TestRewards:
    def _acc(self, staked: int) -> MetricsAccumulator:
        acc = MetricsAccumulator(CUTOFF)
        acc.add_claim(_claim(), [_argument(1, "cosmos1alice")],
                      [_stake(1, 1, "cosmos1alice", staked)])
        return acc

    def test_net_reward_deducts_stake(self):
        acc = self._acc(100)
        acc.apply_rewards("cosmos1alice", [_tx("reward_payout", 130, claim_id=1)])
        assert acc.community("cosmos1alice", "crypto").stake_earned_net == 30

    def test_net_reward_never_negative(self):
        acc = self._acc(100)
        acc.apply_rewards("cosmos1alice", [_tx("reward_payout", 60, claim_id=1)])
        assert acc.community("cosmos1alice", "crypto").stake_earned_net == 0

    def test_returned_stake_means_payout_already_net(self):
        acc = self._acc(100)
        acc.apply_rewards("cosmos1alice", [
            _tx("reward_payout", 60, claim_id=1),
            _tx("backing_returned", 100, claim_id=1, id=2),
        ])
        assert acc.community("cosmos1alice", "crypto").stake_earned_net == 60

    def test_summary_tree(self):
        acc = self._acc(100)
        acc.user("cosmos1alice").username = "alice"
        tree = acc.summary({"crypto": Community(id="crypto", name="Crypto")})
        entry = tree["users"]["cosmos1alice"]["community_metrics"]["crypto"]
        assert entry["community_name"] == "Crypto"
        assert entry["metrics"]["total_amount_staked"] == 100
        assert entry["metrics"]["total_claims"] == 1


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------
class TestRows:
    def test_user_community_row_matches_header(self):
        acc = MetricsAccumulator(CUTOFF)
        m = acc.community("cosmos1alice", "crypto")
        row = user_community_row("201909010000", CUTOFF, "cosmos1alice", "alice", 5,
                                 Community(id="crypto", name="Crypto"), m)
        assert len(row) == len(USERS_HEADER) == 27
        assert row[1] == "2019-09-01T00:00:00Z"

    def test_claim_report_row(self):
        arguments = [_argument(1, "cosmos1bob"), _argument(2, "cosmos1carol", "challenge")]
        stakes = [
            _stake(1, 1, "cosmos1bob", 100),
            _stake(2, 1, "cosmos1dave", 10, type="upvote", created=CUTOFF - 2 * DAY),
            _stake(3, 2, "cosmos1carol", 50, type="challenge"),
        ]
        row = claim_report_row("j", CUTOFF, _claim(), arguments, stakes, ClaimViews(user_views=4),
                               replies=2, flagged=True)
        assert len(row) == len(CLAIMS_HEADER) == 27
        values = dict(zip(CLAIMS_HEADER, row))
        assert values["flagged"] == "1"
        assert values["claim_name"] == "Bitcoin will rise"
        assert values["staked"] == "160"
        assert values["staked_backed"] == "110"
        assert values["staked_agree_backed"] == "10"
        assert values["staked_challenged"] == "50"
        assert values["agrees_given"] == "1"
        assert values["user_views"] == "4"
        assert values["replies"] == "2"
        assert values["last_activity_agree"] == "2019-08-30T00:00:00Z"

    def test_claim_report_row_missing_argument(self):
        with pytest.raises(MetricsError, match="unable to find argument with id 9"):
            claim_report_row("j", CUTOFF, _claim(), [], [_stake(1, 9, "cosmos1bob", 1)],
                             ClaimViews(), 0, False)

    def test_user_claims_participants_are_new_in_last_day(self):
        stakes = [
            _stake(1, 1, "cosmos1old", 1, created=CUTOFF - 3 * DAY),
            _stake(2, 1, "cosmos1new", 1, created=CUTOFF - timedelta(hours=2)),
        ]
        comments = [("cosmos1commenter", (CUTOFF - timedelta(hours=1)).replace(tzinfo=None))]
        row = user_claims_row("j", CUTOFF, _claim(), stakes, comments)
        assert len(row) == len(USER_CLAIMS_HEADER) == 8
        assert row[-1] == "2"

    def test_user_base_row(self):
        user = SimpleNamespace(
            address="cosmos1alice", username="alice", email=None,
            created_at=datetime(2019, 8, 1), updated_at=datetime(2019, 8, 2),
            last_authenticated_at=None, user_group=2,
        )
        row = user_base_row(user)
        assert len(row) == len(USER_BASE_HEADER) == 7
        assert row == [
            "cosmos1alice", "alice", "", "2019-08-01T00:00:00Z", "2019-08-02T00:00:00Z",
            "", "TruStory Debater",
        ]
