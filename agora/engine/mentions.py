"""
agora.engine.mentions — @mention Translation
=============================================

Bodies are stored on chain with ``@<address>`` mentions so they survive
username changes; clients write ``@<username>`` and read markdown profile
links.  The two directions:

* :func:`to_chain_mentions` — ``@alice`` → ``@tru1qxy…``
* :func:`to_user_mentions`  — ``@tru1qxy…`` → ``[@alice](https://host/profile/tru1qxy…)``

Lookups are injected as callables so this module stays free of I/O; the
DB-backed versions live in :mod:`agora.services.user_service`.  A lookup
returning ``None`` leaves the mention untouched.
"""

from __future__ import annotations

import re
from collections.abc import Callable

# A mention ends at a space or a line break.
_TERMINATORS = re.compile(r"[ \n\r]")


def parse_mentions(body: str) -> list[str]:
    """Return the unique ``@`` tags in *body*, in first-seen order.

    A tag starts at an ``@`` that opens the text or follows a terminator,
    and runs until the next terminator.
    """
    seen: dict[str, None] = {}
    for token in _TERMINATORS.split(body):
        if len(token) > 1 and token[0] == "@":
            seen.setdefault(token[1:], None)
    return list(seen)


def _replace_mention(body: str, tag: str, replacement: str) -> str:
    pattern = re.compile(r"(^|[ \n\r])@" + re.escape(tag) + r"(?=$|[ \n\r])")
    return pattern.sub(lambda m: m.group(1) + replacement, body)


def to_chain_mentions(
    body: str, address_for_username: Callable[[str], str | None]
) -> str:
    """Swap ``@username`` mentions for ``@address``."""
    for username in parse_mentions(body):
        address = address_for_username(username)
        if address is None:
            continue
        body = _replace_mention(body, username, f"@{address}")
    return body


def to_user_mentions(
    body: str,
    username_for_address: Callable[[str], str | None],
    profile_url_prefix: str,
) -> str:
    """Swap ``@address`` mentions for markdown profile links.

    *profile_url_prefix* is the absolute profile base, e.g.
    ``https://app.example.io/profile``.
    """
    prefix = profile_url_prefix.rstrip("/")
    for address in parse_mentions(body):
        username = username_for_address(address)
        if username is None:
            continue
        body = _replace_mention(body, address, f"[@{username}]({prefix}/{address})")
    return body
