"""
agora.services.notification_service — notification_events Access
==================================================================
"""

from __future__ import annotations

from sqlalchemy import Engine, func, select, update
from sqlalchemy.orm import Session

from agora.database.engine import get_session
from agora.database.models import NotificationEvent
from agora.engine.notifications import Notification
from agora.services.user_service import user_by_address


def record_notification(engine: Engine, notification: Notification) -> NotificationEvent | None:
    """Persist a delivered notification for its recipient.

    Broadcasts (no recipient) aren't stored per user; returns ``None``.
    """
    if notification.to is None:
        return None
    with get_session(engine) as session:
        recipient = user_by_address(session, notification.to)
        sender = (
            user_by_address(session, notification.sender_address)
            if notification.sender_address else None
        )
        event = NotificationEvent(
            address=notification.to,
            user_profile_id=recipient.id if recipient else 0,
            sender_profile_id=sender.id if sender else None,
            type=str(notification.type),
            type_id=notification.type_id,
            message=notification.msg,
            meta=notification.meta or None,
        )
        session.add(event)
        session.flush()
        return event


def notifications_for(
    session: Session, address: str, limit: int = 50, offset: int = 0
) -> list[NotificationEvent]:
    """Newest first."""
    return list(session.scalars(
        select(NotificationEvent)
        .where(NotificationEvent.address == address)
        .order_by(NotificationEvent.timestamp.desc(), NotificationEvent.id.desc())
        .offset(offset)
        .limit(limit)
    ).all())


def unread_count(session: Session, address: str) -> int:
    return session.scalar(
        select(func.count())
        .select_from(NotificationEvent)
        .where(NotificationEvent.address == address, NotificationEvent.read.is_(False))
    ) or 0


def mark_read(session: Session, address: str, notification_id: int | None = None) -> int:
    """Mark one (or all) of *address*'s notifications read; return rows changed."""
    stmt = (
        update(NotificationEvent)
        .where(NotificationEvent.address == address, NotificationEvent.read.is_(False))
        .values(read=True, seen=True)
    )
    if notification_id is not None:
        stmt = stmt.where(NotificationEvent.id == notification_id)
    result = session.execute(stmt)
    session.commit()
    return result.rowcount or 0
