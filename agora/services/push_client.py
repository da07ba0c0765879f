"""
agora.services.push_client — Push Endpoint Delivery
====================================================

POSTs rendered notifications to the push service.  Delivery is
fire-and-forget: non-2xx answers and transport errors are logged by the
caller and the notification dropped.
"""

from __future__ import annotations

import logging

import httpx

from agora.engine.notifications import Notification

logger = logging.getLogger(__name__)


class PushDeliveryError(Exception):
    pass


class PushClient:
    def __init__(
        self,
        endpoint_url: str,
        *,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport or httpx.AsyncHTTPTransport(retries=1),
        )

    async def send(self, notification: Notification) -> None:
        """Deliver one notification.

        Raises
        ------
        PushDeliveryError
            On a transport failure or a non-2xx response.
        """
        try:
            resp = await self._client.post(self.endpoint_url, json=notification.as_payload())
        except httpx.HTTPError as exc:
            raise PushDeliveryError(str(exc)) from exc
        if resp.is_error:
            raise PushDeliveryError(f"push endpoint returned {resp.status_code}")
        logger.debug("Pushed %s notification to %s", notification.type, notification.to)

    async def aclose(self) -> None:
        await self._client.aclose()
