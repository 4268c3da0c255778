"""Best-effort webhook delivery of tracker lifecycle events."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from app.config import settings
from app.models.tracking import Tracker, callback_identity

logger = logging.getLogger("flightwatch.notifier")

CALLBACK_KEY_HEADER = "X-Flightwatch-Callback-Key"


class CallbackNotifier:
    """Post JSON event payloads to a tracker's callback URL.

    Deliveries run as background tasks with their own error boundary: a
    failing webhook is logged and never retried or surfaced to the caller.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        default_url: str | None = None,
        callback_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.http_client = http_client
        self.default_url = default_url if default_url is not None else settings.callback_url
        self.callback_key = callback_key if callback_key is not None else settings.callback_key
        self.timeout = timeout or settings.callback_timeout
        self.transport = transport
        self._pending: set[asyncio.Task] = set()

    def notify(
        self, tracker: Tracker, event: dict[str, Any] | None = None
    ) -> asyncio.Task | None:
        """Schedule delivery of ``event`` merged with the tracker's identity."""

        url = tracker.callback_url or self.default_url
        if not url:
            logger.debug("No callback URL for tracker %s; skipping notification", tracker.id)
            return None

        payload = {**callback_identity(tracker), **(event or {})}
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop; dropping notification for tracker %s", tracker.id
            )
            return None

        task = loop.create_task(self._deliver(url, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for all in-flight deliveries to finish."""

        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver(self, url: str, payload: dict[str, Any]) -> None:
        headers = {CALLBACK_KEY_HEADER: self.callback_key} if self.callback_key else {}
        try:
            if self.http_client is not None:
                response = await self.http_client.post(url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self.transport
                ) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.RequestError as exc:
            logger.warning(
                "Callback for tracker %s failed: %s", payload.get("trackerId"), exc
            )
            return

        if response.status_code >= 400:
            logger.warning(
                "Callback for tracker %s rejected: status=%s body=%s",
                payload.get("trackerId"),
                response.status_code,
                response.text,
            )
            return

        logger.debug(
            "Delivered %s callback for tracker %s",
            payload.get("reason", "created"),
            payload.get("trackerId"),
        )


__all__ = ["CALLBACK_KEY_HEADER", "CallbackNotifier"]
