"""Pydantic model of the webhook request body."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class NotificationPayload(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    message: str
    deploymentname: str
