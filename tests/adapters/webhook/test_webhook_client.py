from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable  # noqa: TC003
from dataclasses import replace

import httpx
import pytest

from deploywatch.adapters.http_resilience import ResilienceConfig, ResilientClient
from deploywatch.adapters.webhook import NotificationPayload, WebhookNotifier
from deploywatch.config import RateLimit, WebhookConfig, default_webhook_resilience
from deploywatch.domain.errors import NotificationTransportError
from tests.helpers.workloads import WEB

HOOK_URL = "http://hooks.test/deployments"


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(async_handler))  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        return client

    return factory


def _notifier(
    handler: Callable[[httpx.Request], httpx.Response],
    resilience: ResilienceConfig | None = None,
) -> WebhookNotifier:
    return WebhookNotifier(
        config=WebhookConfig(url=HOOK_URL, resilience=resilience or default_webhook_resilience()),
        client_factory=_make_client_factory(handler),
    )


def test_posts_message_and_deployment_name() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, text="ok")

    with _notifier(handler) as notifier:
        notifier("Created the deployment default/web", identity=WEB)

    assert len(requests) == 1
    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == HOOK_URL
    assert json.loads(request.content) == {
        "message": "Created the deployment default/web",
        "deploymentname": "default/web",
    }


@pytest.mark.parametrize("status", [201, 202, 204])
def test_any_success_status_is_accepted(status: int) -> None:
    with _notifier(lambda _request: httpx.Response(status)) as notifier:
        notifier("hello", identity=WEB)


@pytest.mark.parametrize("status", [400, 404, 500, 503])
def test_rejections_raise_transport_errors(status: int) -> None:
    with (
        _notifier(lambda _request: httpx.Response(status, text="nope")) as notifier,
        pytest.raises(NotificationTransportError) as exc,
    ):
        notifier("hello", identity=WEB)

    assert exc.value.status_code == status


def test_connection_failures_raise_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with _notifier(handler) as notifier, pytest.raises(NotificationTransportError) as exc:
        notifier("hello", identity=WEB)

    assert exc.value.status_code is None


def test_timeouts_raise_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with _notifier(handler) as notifier, pytest.raises(NotificationTransportError):
        notifier("hello", identity=WEB)


def test_one_client_serves_every_send() -> None:
    created: list[ResilientClient] = []
    factory = _make_client_factory(lambda _request: httpx.Response(200))

    def counting_factory(resilience: ResilienceConfig) -> ResilientClient:
        client = factory(resilience)
        created.append(client)
        return client

    notifier = WebhookNotifier(
        config=WebhookConfig(url=HOOK_URL, resilience=default_webhook_resilience()),
        client_factory=counting_factory,
    )
    with notifier:
        for _ in range(3):
            notifier("hello", identity=WEB)

    assert len(created) == 1


def test_rate_limit_is_shared_across_sends_and_threads() -> None:
    resilience = replace(
        default_webhook_resilience(),
        ratelimit=RateLimit(max_calls=2, per_seconds=0.5),
    )
    sent: list[float] = []

    def handler(_request: httpx.Request) -> httpx.Response:
        sent.append(time.monotonic())
        return httpx.Response(200)

    with _notifier(handler, resilience) as notifier:

        def send_twice() -> None:
            notifier("hello", identity=WEB)
            notifier("hello", identity=WEB)

        started = time.monotonic()
        senders = [threading.Thread(target=send_twice) for _ in range(3)]
        for sender in senders:
            sender.start()
        for sender in senders:
            sender.join(timeout=10)
        elapsed = time.monotonic() - started

    # Two calls fit the bucket at once; the other four drain at four per second.
    assert len(sent) == 6
    assert elapsed >= 0.75


def test_close_is_idempotent_and_the_notifier_reopens() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200)

    notifier = _notifier(handler)
    notifier.close()
    notifier("first", identity=WEB)
    notifier.close()
    notifier.close()
    notifier("second", identity=WEB)
    notifier.close()

    assert len(requests) == 2


def test_payload_rejects_unknown_fields() -> None:
    with pytest.raises(ValueError, match="extra"):
        NotificationPayload.model_validate(
            {"message": "m", "deploymentname": "default/web", "severity": "info"}
        )


def test_default_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEPLOYWATCH_WEBHOOK_URL", HOOK_URL)

    notifier = WebhookNotifier()

    assert notifier.config.url == HOOK_URL
