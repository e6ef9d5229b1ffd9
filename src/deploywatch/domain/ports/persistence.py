"""Ports for persisting notification records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from deploywatch.domain.model import Identity, NotificationRecord


@runtime_checkable
class NotificationRecordRepository(Protocol):
    """Keyed store with optimistic concurrency.

    ``add`` raises ``RecordExistsError`` if the identity is taken. ``update``
    raises ``ConflictError`` when the record's version token is stale. Store
    failures surface as ``FetchError``. ``remove`` reports whether a record
    was deleted.
    """

    def get(self, identity: Identity) -> NotificationRecord | None: ...

    def add(self, record: NotificationRecord) -> None: ...

    def update(self, record: NotificationRecord) -> None: ...

    def remove(self, identity: Identity) -> bool: ...
