"""Public domain model surface."""

from __future__ import annotations

from deploywatch.domain.model.enums import NOTIFIED_KINDS, TransitionKind
from deploywatch.domain.model.record import NotificationRecord
from deploywatch.domain.model.resource import Identity, WatchedResource
from deploywatch.domain.model.transition import Transition

__all__ = [
    "NOTIFIED_KINDS",
    "Identity",
    "NotificationRecord",
    "Transition",
    "TransitionKind",
    "WatchedResource",
]
