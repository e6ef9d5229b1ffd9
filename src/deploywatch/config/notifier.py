"""Webhook notification sink configuration."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, require_env_var
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

WEBHOOK_URL_ENV = "DEPLOYWATCH_WEBHOOK_URL"
WEBHOOK_TIMEOUT_ENV = "DEPLOYWATCH_WEBHOOK_TIMEOUT"
DEFAULT_WEBHOOK_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class WebhookConfig:
    """Holds the notification endpoint and its HTTP client settings."""

    url: str
    resilience: ResilienceConfig


def default_webhook_resilience(
    *,
    timeout_seconds: float = DEFAULT_WEBHOOK_TIMEOUT_SECONDS,
) -> ResilienceConfig:
    # Whole invocations are retried by the driver, so the sink makes one attempt.
    return ResilienceConfig(
        name="webhook",
        timeout_seconds=timeout_seconds,
        retry=RetryPolicy(total=0),
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
    )


def get_webhook_config(*, resilience: ResilienceConfig | None = None) -> WebhookConfig:
    url = require_env_var(WEBHOOK_URL_ENV)
    timeout = env_float(WEBHOOK_TIMEOUT_ENV, DEFAULT_WEBHOOK_TIMEOUT_SECONDS, minimum=0.1)
    return WebhookConfig(
        url=url.strip(),
        resilience=resilience or default_webhook_resilience(timeout_seconds=timeout),
    )
