"""
tests/test_graphql.py — GraphQL Facade
=======================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import auth

from agora.database.models import Comment, NotificationEvent, User

ARGUMENT = {
    "id": "7", "claim_id": "3", "community_id": "crypto", "creator": "cosmos1bob",
    "body": "see @cosmos1alice and @cosmos1ghost", "stake_type": "backing",
    "created_time": "2019-08-11T00:00:00Z",
}
CLAIM = {
    "id": "3", "community_id": "crypto", "creator": "cosmos1carol", "body": "Is it?",
    "created_time": "2019-08-10T00:00:00Z",
}


@pytest.fixture
def api(override_api, db_engine):
    with Session(db_engine) as session:
        session.add_all([
            User(username="alice", address="cosmos1alice"),
            User(username="carol", address="cosmos1carol", full_name="Carol C"),
            Comment(claim_id=3, community_id="crypto", body="hello @cosmos1alice",
                    creator="cosmos1carol"),
            NotificationEvent(address="cosmos1alice", type="mentioned", message="m1"),
            NotificationEvent(address="cosmos1alice", type="mentioned", message="m2", read=True),
        ])
        session.commit()
    override_api({
        "community/communities": [{"id": "crypto", "name": "Crypto"}],
        "community/community": lambda p: {"id": "crypto", "name": "Crypto"} if p["id"] == "crypto" else None,
        "claim/claims": [CLAIM],
        "claim/claim": lambda p: CLAIM if p["id"] == 3 else None,
        "staking/claim_arguments": [ARGUMENT],
        "staking/argument": lambda p: ARGUMENT if p["id"] == 7 else None,
        "bank/transactions_by_address": [
            {"id": "1", "type": "backing", "app_account_address": "cosmos1alice",
             "amount": {"amount": "1500000000", "denom": "tru"}, "community_id": "crypto"},
        ],
    })


def _gql(client, query, variables=None, token=None):
    headers = auth(token) if token else {}
    return client.post("/api/graphql", json={"query": query, "variables": variables},
                       headers=headers)


class TestQueries:
    def test_claim_with_creator_arguments_and_comments(self, client, api):
        resp = _gql(client, """
            query ($id: Int!) {
              claim(id: $id) {
                id body
                creator { username fullName }
                community { name }
                argumentCount
                arguments { id vote }
                commentCount
                comments { body creator { username } }
              }
            }
        """, {"id": 3})

        assert resp.status_code == 200
        claim = resp.json()["data"]["claim"]
        assert claim["creator"] == {"username": "carol", "fullName": "Carol C"}
        assert claim["community"]["name"] == "Crypto"
        assert claim["argumentCount"] == 1
        assert claim["arguments"] == [{"id": 7, "vote": True}]
        assert claim["commentCount"] == 1
        assert claim["comments"][0]["body"] == (
            "hello [@alice](https://app.example.io/profile/cosmos1alice)"
        )

    def test_argument_body_translated_unless_raw(self, client, api):
        resp = _gql(client, """
            { claimArgument(id: 7) { pretty: body raw: body(raw: true) } }
        """)
        arg = resp.json()["data"]["claimArgument"]
        assert arg["raw"] == ARGUMENT["body"]
        assert arg["pretty"] == (
            "see [@alice](https://app.example.io/profile/cosmos1alice) and @cosmos1ghost"
        )

    def test_missing_claim_is_null(self, client, api):
        resp = _gql(client, "{ claim(id: 99) { id } }")
        assert resp.json()["data"]["claim"] is None

    def test_communities_and_claims(self, client, api):
        resp = _gql(client, '{ communities { id name claims { id } } }')
        assert resp.json()["data"]["communities"] == [
            {"id": "crypto", "name": "Crypto", "claims": [{"id": 3}]},
        ]

    def test_transactions_negate_deductions(self, client, api, user_token):
        resp = _gql(client, "{ transactions { type amount { amount denom humanReadable } } }",
                    token=user_token)
        tx = resp.json()["data"]["transactions"][0]
        assert tx["amount"] == {"amount": "-1500000000", "denom": "tru", "humanReadable": "-1.5"}

    def test_notifications_for_current_user(self, client, api, user_token):
        resp = _gql(client, "{ notifications { message read } unreadNotificationsCount }",
                    token=user_token)
        data = resp.json()["data"]
        assert {n["message"] for n in data["notifications"]} == {"m1", "m2"}
        assert data["unreadNotificationsCount"] == 1

    def test_notifications_need_auth(self, client, api):
        resp = _gql(client, "{ unreadNotificationsCount }")
        body = resp.json()
        assert body["errors"][0]["message"] == "Not authenticated"

    def test_syntax_error_is_400(self, client, api):
        resp = _gql(client, "{ claim(id: ")
        assert resp.status_code == 400
        assert resp.json()["errors"]


class TestAddComment:
    def test_reply_inherits_parent_thread(self, client, api, user_token, db_engine):
        with Session(db_engine) as session:
            parent_id = session.scalar(select(Comment.id))

        resp = _gql(client, """
            mutation ($parent: Int!, $body: String!) {
              addComment(parent: $parent, body: $body) { id claimId parentId communityId }
            }
        """, {"parent": parent_id, "body": "thanks @carol"}, token=user_token)

        data = resp.json()["data"]["addComment"]
        assert data["parentId"] == parent_id
        assert data["claimId"] == 3
        assert data["communityId"] == "crypto"

        with Session(db_engine) as session:
            stored = session.get(Comment, data["id"])
        assert stored.body == "thanks @cosmos1carol"
        assert stored.creator == "cosmos1alice"

    def test_requires_auth(self, client, api):
        resp = _gql(client, 'mutation { addComment(parent: 1, body: "x") { id } }')
        assert resp.json()["errors"][0]["message"] == "Not authenticated"

    def test_unknown_parent_rejected(self, client, api, user_token, db_engine):
        resp = _gql(client, 'mutation { addComment(parent: 9999, body: "x") { id } }',
                    token=user_token)

        assert resp.json()["errors"][0]["message"] == "Invalid parent"
        with Session(db_engine) as session:
            assert session.scalar(select(Comment).where(Comment.body == "x")) is None
