"""
agora.constants — Shared Constants
===================================

Single source of truth for coin naming, report versioning and user-group
labels.  Import from here instead of duplicating in services and routes.
"""

from __future__ import annotations

from datetime import UTC, datetime

# ---------------------------------------------------------------------------
# Coin
# ---------------------------------------------------------------------------
STAKE_DENOM = "tru"
COIN_DISPLAY_NAME = "TruStake"
COIN_PRECISION = 10 ** 9  # base units per displayed coin


def human_readable(amount: int) -> str:
    """Render a base-unit amount as a displayed coin value, e.g. ``"1.5"``."""
    whole, frac = divmod(abs(amount), COIN_PRECISION)
    sign = "-" if amount < 0 else ""
    if not frac:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{str(frac).rjust(9, '0').rstrip('0')}"


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------
METRICS_VERSION = "20190911-01"
METRICS_VERSION_HEADER = "x-metrics-version"
METRICS_SECRET_HEADER = "Metrics-Secret"

# Stakes created before the public beta always count as expired.
BETA_RELEASE_DATE = datetime(2019, 7, 11, tzinfo=UTC)


# ---------------------------------------------------------------------------
# User groups
# ---------------------------------------------------------------------------
USER_GROUP_NAMES: list[str] = [
    "User",
    "Employee",
    "TruStory Debater",
    "Research Analyst",
]


def user_group_name(group: int) -> str:
    """Label for a ``users.user_group`` value, ``"Unknown"`` if out of range."""
    if 0 <= group < len(USER_GROUP_NAMES):
        return USER_GROUP_NAMES[group]
    return "Unknown"
