"""
agora.services.notification_dispatcher — Notification Fan-out
==============================================================

One unbounded ``asyncio.Queue`` per request category (comment, broadcast,
reward), each drained by exactly one worker task, so delivery order is
preserved within a category but not across categories.  Workers resolve
the users involved (DB work goes through ``run_db``), render the message
with :mod:`agora.engine.notifications` and hand the result to a delivery
queue.  A single delivery worker records the notification and POSTs it to
the push endpoint.

Lookup failures are logged and the request dropped.  There is no retry
and no dead-letter queue.

Producers may call ``send_*`` from request threads; the put is marshalled
onto the dispatcher's loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from agora.constants import COIN_DISPLAY_NAME
from agora.database.engine import get_session, run_db
from agora.database.models import User
from agora.engine.mentions import parse_mentions
from agora.engine.notifications import (
    BroadcastNotificationRequest,
    CommentNotificationRequest,
    CommentRecipient,
    Notification,
    NotificationType,
    RewardNotificationRequest,
    render_broadcast_notification,
    render_comment_notifications,
    render_reward_notification,
)
from agora.services.chain_client import ChainClient, ChainQueryError
from agora.services.comment_service import comment_by_id
from agora.services.notification_service import record_notification
from agora.services.push_client import PushClient, PushDeliveryError
from agora.services.user_service import load_user, user_by_address

logger = logging.getLogger(__name__)


class LookupFailed(Exception):
    """A user or record needed to render a notification couldn't be found."""


class NotificationDispatcher:
    """Per-category queues with one worker each, plus a delivery worker."""

    def __init__(
        self,
        engine: Engine,
        chain: ChainClient | None = None,
        push: PushClient | None = None,
        *,
        coin_display_name: str = COIN_DISPLAY_NAME,
    ) -> None:
        self.engine = engine
        self.chain = chain
        self.push = push
        self.coin_display_name = coin_display_name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queues: dict[str, asyncio.Queue[Any]] = {}
        self._delivery: asyncio.Queue[Notification] | None = None
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Create the queues and spawn the workers on *loop*."""
        if self._tasks:
            return
        loop = loop or asyncio.get_running_loop()
        self._loop = loop
        handlers: dict[str, Callable[[Any], Awaitable[list[Notification]]]] = {
            "comment": self.process_comment,
            "broadcast": self.process_broadcast,
            "reward": self.process_reward,
        }
        for category, handler in handlers.items():
            queue: asyncio.Queue[Any] = asyncio.Queue()
            self._queues[category] = queue
            self._tasks.append(loop.create_task(
                self._worker(category, queue, handler),
                name=f"{category}-notifications",
            ))
        self._delivery = asyncio.Queue()
        self._tasks.append(loop.create_task(
            self._delivery_worker(), name="notification-delivery",
        ))
        logger.info("Notification dispatcher started")

    def stop(self) -> None:
        """Cancel every worker.  Queued requests are discarded."""
        for task in self._tasks:
            task.cancel()
        self._tasks = []
        self._queues = {}
        self._delivery = None
        self._loop = None

    async def drain(self) -> None:
        """Wait until every queued request has been processed and delivered."""
        for queue in list(self._queues.values()):
            await queue.join()
        if self._delivery is not None:
            await self._delivery.join()

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------
    def send_comment(self, request: CommentNotificationRequest) -> bool:
        return self._enqueue("comment", request)

    def send_broadcast(self, request: BroadcastNotificationRequest) -> bool:
        return self._enqueue("broadcast", request)

    def send_reward(self, request: RewardNotificationRequest) -> bool:
        return self._enqueue("reward", request)

    def _enqueue(self, category: str, request: Any) -> bool:
        queue = self._queues.get(category)
        if queue is None or self._loop is None:
            logger.debug("Dispatcher not running; dropping %s request %r", category, request)
            return False
        try:
            on_loop = asyncio.get_running_loop() is self._loop
        except RuntimeError:
            on_loop = False
        if on_loop:
            queue.put_nowait(request)
        else:
            self._loop.call_soon_threadsafe(queue.put_nowait, request)
        return True

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------
    async def _worker(
        self,
        category: str,
        queue: asyncio.Queue[Any],
        handler: Callable[[Any], Awaitable[list[Notification]]],
    ) -> None:
        while True:
            request = await queue.get()
            try:
                logger.info("Processing a %s notification %r", category, request)
                for notification in await handler(request):
                    if self._delivery is not None:
                        self._delivery.put_nowait(notification)
            except LookupFailed as exc:
                logger.error("Dropping %s notification: %s", category, exc)
            except Exception:
                logger.exception("Failed to process %s notification %r", category, request)
            finally:
                queue.task_done()

    async def _delivery_worker(self) -> None:
        assert self._delivery is not None
        delivery = self._delivery
        while True:
            notification = await delivery.get()
            try:
                await run_db(record_notification, self.engine, notification)
                if self.push is not None:
                    await self.push.send(notification)
            except PushDeliveryError as exc:
                logger.error("Push delivery to %s failed: %s", notification.to, exc)
            except Exception:
                logger.exception("Failed to deliver notification to %s", notification.to)
            finally:
                delivery.task_done()

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------
    async def process_reward(self, request: RewardNotificationRequest) -> list[Notification]:
        rewardee = await self._user(request.rewardee_id, "rewardee")
        causer = None
        if request.causer_id != 0:
            causer = await self._user(request.causer_id, "causer")
        if not rewardee.address:
            raise LookupFailed(f"rewardee [{rewardee.id}] has no address")
        return [render_reward_notification(request, rewardee, causer, self.coin_display_name)]

    async def process_comment(self, request: CommentNotificationRequest) -> list[Notification]:
        author, recipients = await run_db(self._comment_recipients, request)
        return render_comment_notifications(request, author, recipients)

    async def process_broadcast(self, request: BroadcastNotificationRequest) -> list[Notification]:
        return [render_broadcast_notification(request)]

    # ------------------------------------------------------------------
    # Lookups (worker threads)
    # ------------------------------------------------------------------
    async def _user(self, user_id: int, role: str) -> User:
        try:
            user = await run_db(load_user, self.engine, user_id)
        except SQLAlchemyError as exc:
            raise LookupFailed(f"could not retrieve {role} for id [{user_id}]: {exc}") from exc
        if user is None:
            raise LookupFailed(f"could not retrieve {role} for id [{user_id}]")
        return user

    def _comment_recipients(
        self, request: CommentNotificationRequest
    ) -> tuple[User, list[CommentRecipient]]:
        try:
            with get_session(self.engine) as session:
                comment = comment_by_id(session, request.id)
                if comment is None:
                    raise LookupFailed(f"could not retrieve comment [{request.id}]")
                author = user_by_address(session, request.creator)
                if author is None:
                    raise LookupFailed(f"could not retrieve commenter [{request.creator}]")

                recipients: list[CommentRecipient] = []
                if comment.parent_id:
                    parent = comment_by_id(session, comment.parent_id)
                    if parent is not None:
                        recipients.append(
                            CommentRecipient(parent.creator, NotificationType.COMMENT_ACTION)
                        )

                # unresolved tags (@ghost, @everyone) stay as written in the body
                mentioned = [
                    CommentRecipient(address, NotificationType.MENTIONED)
                    for address in parse_mentions(comment.body)
                    if user_by_address(session, address) is not None
                ]
        except SQLAlchemyError as exc:
            raise LookupFailed(f"could not load comment [{request.id}]: {exc}") from exc

        recipients.extend(self._chain_recipients(request))
        recipients.extend(mentioned)
        return author, recipients

    def _chain_recipients(self, request: CommentNotificationRequest) -> list[CommentRecipient]:
        """Argument and claim creators; an unreachable chain only skips them."""
        if self.chain is None:
            return []
        out: list[CommentRecipient] = []
        try:
            if request.argument_id:
                argument = self.chain.argument(request.argument_id)
                if argument is not None:
                    out.append(CommentRecipient(argument.creator, NotificationType.ARGUMENT_COMMENT))
            if request.claim_id:
                claim = self.chain.claim(request.claim_id)
                if claim is not None:
                    out.append(CommentRecipient(claim.creator, NotificationType.CLAIM_COMMENT))
        except ChainQueryError as exc:
            logger.warning("Skipping chain recipients for comment %d: %s", request.id, exc)
        return out
