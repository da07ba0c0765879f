"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of agora.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, so we register a custom type
# compiler that renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from agora.config import AgoraConfig  # noqa: E402
from agora.database.models import Base  # noqa: E402
from agora.services.chain_client import ChainClient  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Agora tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used by the dispatcher).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine, expire_on_commit=False) as session:
        yield session
        session.rollback()


@pytest.fixture
def cfg() -> AgoraConfig:
    return AgoraConfig(
        host_name="app.example.io",
        https_enabled=True,
        chain_query_url="http://chain.test",
        flag_admin="cosmos1admin",
        flag_limit=2,
    )


# ---------------------------------------------------------------------------
# Fake chain
# ---------------------------------------------------------------------------
def make_chain(routes: dict[str, Any]) -> ChainClient:
    """A real :class:`ChainClient` over an ``httpx.MockTransport``.

    *routes* maps ``"<module>/<route>"`` to a JSON-able value or to a
    callable taking the posted params.  A callable returning ``None`` (or
    an unknown route) answers 404.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        route = request.url.path.removeprefix("/query/")
        params = json.loads(request.content or b"{}")
        if route not in routes:
            return httpx.Response(404, json={"error": f"unknown route {route}"})
        value = routes[route]
        if callable(value):
            value = value(params)
        if value is None:
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(200, json=value)

    return ChainClient("http://chain.test", transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Tokens & client
# ---------------------------------------------------------------------------
def make_user_token(
    address: str = "cosmos1alice", username: str = "alice", sub: str = "1"
) -> str:
    """Create a user JWT.  Usable as both a fixture helper and a factory."""
    import jwt

    from agora.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "username": username, "address": address},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_token() -> str:
    return make_user_token()


@pytest.fixture
def override_api(db_engine, cfg):
    """Point the API's dependencies at the test engine, config and a fake chain.

    Returns a setter taking the chain routes.  Dependencies are looked up
    on the route module so overrides match what the routes were built
    with, even if ``agora.api.deps`` was reloaded since.
    """
    from agora.api.main import app
    from agora.api.routes import comments as routes
    from agora.api.routes import graphql as graphql_routes

    def _session():
        with Session(db_engine, expire_on_commit=False) as session:
            yield session

    def install(chain_routes: dict[str, Any] | None = None) -> ChainClient:
        chain = make_chain(chain_routes or {})
        app.dependency_overrides[routes.get_session] = _session
        app.dependency_overrides[routes.get_chain_client] = lambda: chain
        app.dependency_overrides[routes.get_dispatcher] = lambda: None
        app.dependency_overrides[graphql_routes.get_engine] = lambda: db_engine
        app.dependency_overrides[graphql_routes.get_config] = lambda: cfg
        return chain

    yield install
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    """Create a FastAPI TestClient with raise_server_exceptions=False."""
    from fastapi.testclient import TestClient

    from agora.api.main import app

    return TestClient(app, raise_server_exceptions=False)
