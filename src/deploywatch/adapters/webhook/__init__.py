"""Public interface for the webhook notification adapter."""

from __future__ import annotations

from .client import WebhookNotifier
from .schema import NotificationPayload

__all__ = ["NotificationPayload", "WebhookNotifier"]
