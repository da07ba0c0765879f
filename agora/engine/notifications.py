"""
agora.engine.notifications — Notification Requests & Rendering
===============================================================

Requests are the immutable envelopes producers enqueue (one class per
dispatcher category).  :class:`Notification` is the resolved, user-facing
message handed to push delivery.

Rendering is pure: the dispatcher performs the lookups and passes the
resolved users in.  Nothing here touches the database or the network.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from agora.constants import COIN_DISPLAY_NAME, COIN_PRECISION
from agora.engine.chain import parse_coin

__all__ = [
    "BroadcastNotificationRequest",
    "CommentNotificationRequest",
    "CommentRecipient",
    "Notification",
    "NotificationType",
    "RewardCauserAction",
    "RewardNotificationRequest",
    "RewardType",
    "render_broadcast_notification",
    "render_comment_notifications",
    "render_reward_notification",
]


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class NotificationType(enum.StrEnum):
    COMMENT_ACTION = "comment_action"
    ARGUMENT_COMMENT = "argument_comment"
    CLAIM_COMMENT = "claim_comment"
    MENTIONED = "mentioned"
    BROADCAST = "broadcast"
    REWARD_INVITE_UNLOCKED = "reward_invite_unlocked"
    REWARD_TRU_UNLOCKED = "reward_tru_unlocked"


class RewardType(enum.StrEnum):
    INVITE = "invite"
    TRU = "tru"


class RewardCauserAction(enum.StrEnum):
    SIGNED_UP = "signed_up"
    ONE_ARGUMENT = "one_argument"
    RECEIVE_FIVE_AGREES = "receive_five_agrees"


_CAUSER_STEPS: dict[str, str] = {
    RewardCauserAction.SIGNED_UP: "signed up",
    RewardCauserAction.ONE_ARGUMENT: "has written at least one argument",
    RewardCauserAction.RECEIVE_FIVE_AGREES: "has received at least five agrees",
}


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CommentNotificationRequest:
    id: int
    claim_id: int
    argument_id: int
    element_id: int
    creator: str
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True, slots=True)
class BroadcastNotificationRequest:
    message: str
    action: str = ""
    meta: dict = field(default_factory=dict)
    type: NotificationType = NotificationType.BROADCAST
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True, slots=True)
class RewardNotificationRequest:
    """A reward unlocked for *rewardee_id*.  ``causer_id == 0`` means nobody."""
    rewardee_id: int
    reward_type: RewardType
    reward_amount: str
    causer_id: int = 0
    causer_action: RewardCauserAction | None = None


# ---------------------------------------------------------------------------
# Resolved notification
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Notification:
    """What push delivery sends.  ``to`` is ``None`` for broadcasts."""
    to: str | None
    type: NotificationType
    msg: str
    action: str = ""
    meta: dict = field(default_factory=dict)
    type_id: int = 0
    trim: bool = False
    sender_address: str | None = None

    def as_payload(self) -> dict:
        return {
            "to": self.to,
            "type": str(self.type),
            "type_id": self.type_id,
            "msg": self.msg,
            "action": self.action,
            "meta": self.meta,
            "trim": self.trim,
            "sender": self.sender_address,
        }


class NamedUser(Protocol):
    username: str
    address: str | None


# ---------------------------------------------------------------------------
# Reward rendering
# ---------------------------------------------------------------------------
def reward_notification_type(request: RewardNotificationRequest) -> NotificationType:
    if request.reward_type == RewardType.INVITE:
        return NotificationType.REWARD_INVITE_UNLOCKED
    return NotificationType.REWARD_TRU_UNLOCKED


def reward_amount_text(
    request: RewardNotificationRequest, coin_display_name: str = COIN_DISPLAY_NAME
) -> str:
    """``"3 invites"`` or ``"50 TruStake"``; unparsable coins render as sent."""
    if request.reward_type == RewardType.INVITE:
        return f"{request.reward_amount} invites"
    try:
        coin = parse_coin(request.reward_amount)
    except ValueError:
        return request.reward_amount
    return f"{coin.amount // COIN_PRECISION} {coin_display_name}"


def reward_reason_text(
    request: RewardNotificationRequest, causer: NamedUser | None
) -> str:
    caused_by = causer.username if causer is not None else "you"
    if request.reward_type == RewardType.INVITE:
        return f"{caused_by} became an active user on TruStory."
    step = _CAUSER_STEPS.get(request.causer_action or "", "")
    return f"{caused_by} {step} on TruStory."


def render_reward_notification(
    request: RewardNotificationRequest,
    rewardee: NamedUser,
    causer: NamedUser | None,
    coin_display_name: str = COIN_DISPLAY_NAME,
) -> Notification:
    amount = reward_amount_text(request, coin_display_name)
    reason = reward_reason_text(request, causer)
    return Notification(
        to=rewardee.address,
        type=reward_notification_type(request),
        msg=f"rewarded with {amount} because {reason}",
        action="Reward unlocked",
        meta={},
        trim=True,
    )


# ---------------------------------------------------------------------------
# Comment rendering
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CommentRecipient:
    """An address to notify about a comment and why."""
    address: str
    reason: NotificationType


_COMMENT_TEMPLATES: dict[str, str] = {
    NotificationType.COMMENT_ACTION: "{user} replied to your comment",
    NotificationType.ARGUMENT_COMMENT: "{user} commented on your argument",
    NotificationType.CLAIM_COMMENT: "{user} commented on your claim",
    NotificationType.MENTIONED: "{user} mentioned you in a comment",
}


def render_comment_notifications(
    request: CommentNotificationRequest,
    author: NamedUser,
    recipients: list[CommentRecipient],
) -> list[Notification]:
    """One notification per distinct recipient, first reason wins.

    The author never notifies themselves.
    """
    meta = {
        "comment_id": request.id,
        "claim_id": request.claim_id,
        "argument_id": request.argument_id or None,
        "element_id": request.element_id or None,
    }
    out: list[Notification] = []
    notified: set[str] = {request.creator}
    for recipient in recipients:
        if not recipient.address or recipient.address in notified:
            continue
        notified.add(recipient.address)
        out.append(Notification(
            to=recipient.address,
            type=recipient.reason,
            type_id=request.claim_id,
            msg=_COMMENT_TEMPLATES[recipient.reason].format(user=author.username),
            action="Comment",
            meta=dict(meta),
            trim=True,
            sender_address=request.creator,
        ))
    return out


# ---------------------------------------------------------------------------
# Broadcast rendering
# ---------------------------------------------------------------------------
def render_broadcast_notification(request: BroadcastNotificationRequest) -> Notification:
    return Notification(
        to=None,
        type=request.type,
        msg=request.message,
        action=request.action,
        meta=dict(request.meta),
    )
