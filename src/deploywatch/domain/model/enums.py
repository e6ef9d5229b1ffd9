"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class TransitionKind(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    READY = "ready"
    DELETED = "deleted"
    NOOP = "noop"


NOTIFIED_KINDS: tuple[TransitionKind, ...] = (
    TransitionKind.CREATED,
    TransitionKind.UPDATED,
    TransitionKind.READY,
)
