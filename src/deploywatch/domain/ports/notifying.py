"""Ports for delivering notifications to an external sink."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from deploywatch.domain.model import Identity


@runtime_checkable
class Notifier(Protocol):
    """Blocking, single-attempt delivery; raises ``NotificationTransportError`` on failure."""

    def __call__(self, message: str, *, identity: Identity) -> None: ...
