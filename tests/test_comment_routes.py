"""
tests/test_comment_routes.py — Comment API
===========================================
"""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import auth

from agora.database.models import Comment, User
from agora.engine.notifications import CommentNotificationRequest

CLAIMS = {5: {"id": "5", "community_id": "crypto", "creator": "cosmos1carol", "body": "x"}}
CHAIN_ROUTES = {"claim/claim": lambda p: CLAIMS.get(p["id"])}


@pytest.fixture
def api(override_api, db_engine):
    with Session(db_engine) as session:
        session.add(User(username="bob", address="cosmos1bob"))
        session.commit()
    override_api(CHAIN_ROUTES)


class TestAddComment:
    def test_creates_comment_with_claim_community(self, client, api, user_token, db_engine):
        resp = client.post(
            "/api/comments",
            json={"claim_id": 5, "argument_id": 2, "body": "cc @bob"},
            headers=auth(user_token),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["community_id"] == "crypto"
        assert data["creator"] == "cosmos1alice"
        assert data["body"] == "cc @cosmos1bob"

        with Session(db_engine) as session:
            stored = session.scalar(select(Comment))
        assert stored.argument_id == 2
        assert stored.body == "cc @cosmos1bob"

    def test_malformed_body_is_400(self, client, api, user_token):
        resp = client.post(
            "/api/comments",
            content=b"{not json",
            headers={**auth(user_token), "Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Error parsing request"

    def test_missing_body_field_is_400_even_without_auth(self, client, api):
        resp = client.post("/api/comments", json={"claim_id": 5})
        assert resp.status_code == 400

    def test_requires_auth(self, client, api):
        resp = client.post("/api/comments", json={"claim_id": 5, "body": "hi"})
        assert resp.status_code == 401

    def test_invalid_token_is_401(self, client, api):
        resp = client.post(
            "/api/comments",
            json={"claim_id": 5, "body": "hi"},
            headers={"Authorization": "Bearer nope"},
        )
        assert resp.status_code == 401

    @pytest.mark.parametrize("claim_id", [0, 404])
    def test_unknown_claim_is_400(self, client, api, user_token, claim_id):
        resp = client.post(
            "/api/comments", json={"claim_id": claim_id, "body": "hi"}, headers=auth(user_token),
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid claim"

    def test_enqueues_notification(self, client, api, user_token):
        from agora.api.main import app
        from agora.api.routes import comments as routes

        dispatcher = MagicMock()
        app.dependency_overrides[routes.get_dispatcher] = lambda: dispatcher

        resp = client.post(
            "/api/comments", json={"claim_id": 5, "body": "hi"}, headers=auth(user_token),
        )
        assert resp.status_code == 200
        dispatcher.send_comment.assert_called_once()
        (request,), _ = dispatcher.send_comment.call_args
        assert isinstance(request, CommentNotificationRequest)
        assert request.id == resp.json()["id"]
        assert request.creator == "cosmos1alice"


class TestListComments:
    def test_filters_and_orders_oldest_first(self, client, api, db_engine):
        with Session(db_engine) as session:
            session.add_all([
                Comment(claim_id=5, body="second", creator="a",
                        created_at=datetime(2019, 8, 2, tzinfo=UTC)),
                Comment(claim_id=5, body="first", creator="b",
                        created_at=datetime(2019, 8, 1, tzinfo=UTC)),
                Comment(claim_id=6, body="other", creator="c",
                        created_at=datetime(2019, 8, 1, tzinfo=UTC)),
            ])
            session.commit()

        resp = client.get("/api/comments", params={"claim_id": 5})
        assert resp.status_code == 200
        assert [c["body"] for c in resp.json()] == ["first", "second"]
