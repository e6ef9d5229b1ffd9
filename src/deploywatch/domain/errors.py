"""Error kinds raised by the reconciliation core.

Only conflicts are recovered locally; everything else fails the invocation and
leaves rescheduling to the driver.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from deploywatch.domain.model import Identity


class DeploywatchError(RuntimeError):
    """Base class for reconciliation failures."""


class FetchError(DeploywatchError):
    """Raised when a store cannot be read or written for reasons other than a conflict."""


class ConflictError(DeploywatchError):
    """Raised when a write carries a stale version token."""

    def __init__(self, identity: Identity, message: str | None = None) -> None:
        super().__init__(message or f"Stale notification record for {identity}")
        self.identity = identity


class RecordExistsError(ConflictError):
    """Raised when a racing invocation created the record first."""

    def __init__(self, identity: Identity) -> None:
        super().__init__(identity, f"Notification record for {identity} already exists")


class ConflictRetryExhaustedError(ConflictError):
    """Raised when optimistic-concurrency retries run out."""

    def __init__(self, identity: Identity, attempts: int) -> None:
        super().__init__(
            identity,
            f"Gave up updating notification record for {identity} after {attempts} attempts",
        )
        self.attempts = attempts


class NotificationTransportError(DeploywatchError):
    """Raised when the notification sink could not be reached or rejected the message."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ClassificationError(DeploywatchError):
    """Raised when a lifecycle transition cannot be derived."""
