"""
agora.api.deps — FastAPI dependency injection
===============================================
"""

from __future__ import annotations

import hmac
import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from agora.config import AgoraConfig, load_config
from agora.constants import METRICS_SECRET_HEADER
from agora.database.engine import create_db_engine
from agora.services.chain_client import ChainClient
from agora.services.notification_dispatcher import NotificationDispatcher

_WEAK_SECRETS = frozenset({
    "agora-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> AgoraConfig:
    return load_config()


@lru_cache(maxsize=1)
def _chain_client(base_url: str) -> ChainClient:
    return ChainClient(base_url)


def get_chain_client(cfg: Annotated[AgoraConfig, Depends(get_config)]) -> ChainClient:
    return _chain_client(cfg.chain_query_url)


def close_chain_client(client: ChainClient) -> None:
    """Close the shared client; the next request builds a fresh one."""
    client.close()
    _chain_client.cache_clear()


def get_session(engine: Annotated[Engine, Depends(get_engine)]):
    with Session(engine, expire_on_commit=False) as session:
        yield session


def get_dispatcher(request: Request) -> NotificationDispatcher | None:
    """The running dispatcher, or ``None`` before startup (e.g. bare TestClient)."""
    return getattr(request.app.state, "dispatcher", None)


def get_metrics_secret() -> str:
    return os.getenv("METRICS_SECRET", "")


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------
def _decode(authorization: str | None) -> dict | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.split(" ", 1)[1]
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        return None


def get_optional_user(
    authorization: Annotated[str | None, Header()] = None,
) -> dict | None:
    """JWT payload (``sub``, ``address``, ``username``) or ``None``."""
    payload = _decode(authorization)
    if payload is None or not payload.get("address"):
        return None
    return payload


def get_current_user(
    user: Annotated[dict | None, Depends(get_optional_user)],
) -> dict:
    """Authenticated user payload.  Raises 401 if missing or invalid."""
    if user is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Not authenticated")
    return user


def require_metrics_secret(
    secret: Annotated[str, Depends(get_metrics_secret)],
    metrics_secret: Annotated[str | None, Header(alias=METRICS_SECRET_HEADER)] = None,
) -> None:
    """Guard for the user-base export: header must equal the configured secret."""
    if not secret or not metrics_secret or not hmac.compare_digest(secret, metrics_secret):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
