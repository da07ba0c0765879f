"""
agora.engine.validators — Input Regexes
========================================
"""

from __future__ import annotations

import re

VALID_EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*/=?^_`{|}~-]+@[a-zA-Z0-9]"
    r"(?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
VALID_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{1,28}$")
HAS_BRAND_RE = re.compile(r"trustory", re.IGNORECASE)


def is_valid_email(email: str) -> bool:
    return VALID_EMAIL_RE.match(email) is not None


def is_valid_username(username: str) -> bool:
    return VALID_USERNAME_RE.match(username) is not None


def has_brand_name(text: str) -> bool:
    """True if *text* contains the platform's brand name in any casing."""
    return HAS_BRAND_RE.search(text) is not None
