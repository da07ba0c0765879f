"""
agora.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for the soft, non-secret settings of the API
(public host, chain and push endpoints, flag thresholds, coin naming).
Secrets and connection strings stay in the environment (``.env``).

Usage::

    from agora.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.host_name)         # "app.trustory.io"
    print(cfg.chain_query_url)   # "http://localhost:1317"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from agora.constants import COIN_DISPLAY_NAME, STAKE_DENOM


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AgoraConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Public host (used to build profile links in mentions)
    host_name: str
    https_enabled: bool

    # Remote services
    chain_query_url: str
    push_endpoint_url: str | None = None

    # Claim flagging (claim report)
    flag_admin: str = ""
    flag_limit: int = 5

    # Coin naming
    stake_denom: str = STAKE_DENOM
    coin_display_name: str = COIN_DISPLAY_NAME

    @property
    def profile_url_prefix(self) -> str:
        scheme = "https" if self.https_enabled else "http"
        return f"{scheme}://{self.host_name.rstrip('/')}/profile"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> AgoraConfig:
    """Read *path* and return an :class:`AgoraConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    flag = raw.get("flag") or {}
    return AgoraConfig(
        host_name=raw["host_name"],
        https_enabled=bool(raw.get("https_enabled", False)),
        chain_query_url=raw["chain_query_url"],
        push_endpoint_url=raw.get("push_endpoint_url") or None,
        flag_admin=str(flag.get("admin", "")),
        flag_limit=int(flag.get("limit", 5)),
        stake_denom=raw.get("stake_denom", STAKE_DENOM),
        coin_display_name=raw.get("coin_display_name", COIN_DISPLAY_NAME),
    )
