"""HTTP client posting lifecycle notifications to a webhook."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from deploywatch.adapters.http_resilience import ResilienceConfig, ResilientClient
from deploywatch.config.notifier import WebhookConfig, get_webhook_config
from deploywatch.domain.errors import NotificationTransportError
from deploywatch.domain.ports import Notifier

from .schema import NotificationPayload

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from deploywatch.domain.model import Identity

log = getLogger(__name__)

_MAX_LOGGED_BODY = 500


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class WebhookNotifier:
    """Single-attempt POST of ``{"message", "deploymentname"}`` to the configured URL.

    Transport errors, timeouts and non-2xx statuses raise
    ``NotificationTransportError``. The response body is only logged.

    Sends from any thread run on one background event loop through one
    ``ResilientClient``, so its rate limit applies across all of them. Call
    ``close`` (or use the notifier as a context manager) to release both.
    """

    config: WebhookConfig = field(default_factory=get_webhook_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _loop: asyncio.AbstractEventLoop | None = field(default=None, init=False, repr=False)
    _thread: threading.Thread | None = field(default=None, init=False, repr=False)
    _client: ResilientClient | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __call__(self, message: str, *, identity: Identity) -> None:
        payload = NotificationPayload(message=message, deploymentname=str(identity))
        future = asyncio.run_coroutine_threadsafe(self._send_async(payload), self._ensure_loop())
        future.result()

    def __enter__(self) -> WebhookNotifier:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None
        if loop is None:
            return
        asyncio.run_coroutine_threadsafe(self._close_client(), loop).result()
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join()
        loop.close()
        log.debug("Closed webhook client")

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            loop = self._loop
            if loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(
                    target=loop.run_forever,
                    name="deploywatch-webhook",
                    daemon=True,
                )
                thread.start()
                self._loop = loop
                self._thread = thread
            return loop

    # Only ever runs on the background loop.
    def _get_client(self) -> ResilientClient:
        if self._client is None:
            self._client = self.client_factory(self.config.resilience)
        return self._client

    async def _close_client(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    async def _send_async(self, payload: NotificationPayload) -> None:
        client = self._get_client()
        try:
            response = await client.post(self.config.url, json=payload.model_dump())
        except httpx.HTTPError as exc:
            raise NotificationTransportError(
                f"Notification for {payload.deploymentname} failed: {exc!r}"
            ) from exc

        if not response.is_success:
            log.error(
                f"Webhook rejected notification for {payload.deploymentname}: "
                f"{response.status_code} {response.text[:_MAX_LOGGED_BODY]}"
            )
            raise NotificationTransportError(
                f"Webhook responded with {response.status_code}",
                status_code=response.status_code,
            )

        log.info(f"Sent notification for {payload.deploymentname}: {payload.message}")
        log.debug(f"Webhook response {response.status_code}: {response.text[:_MAX_LOGGED_BODY]}")


if TYPE_CHECKING:
    _notifier_check: Notifier = WebhookNotifier()
