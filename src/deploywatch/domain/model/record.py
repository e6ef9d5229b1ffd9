"""Durable record of what was last communicated about a workload."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from deploywatch.domain.model.enums import TransitionKind
from deploywatch.domain.model.resource import Identity

if TYPE_CHECKING:
    from deploywatch.domain.model.resource import WatchedResource


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False, kw_only=True)
class NotificationRecord:
    """At most one per identity.

    ``spec_generation``/``spec`` hold the snapshot used for the next diff.
    ``pending`` names the transition whose message was stored but not delivered.
    ``deleted_at`` is set once the deletion was announced; the record then only
    describes an earlier incarnation of the workload.
    ``version`` is the optimistic-concurrency token maintained by the store.
    """

    namespace: str
    name: str
    message: str
    spec_generation: int
    spec: dict[str, Any] = field(default_factory=dict[str, Any])
    ready_generation: int | None = None
    pending: TransitionKind | None = None
    updated_at: datetime = field(default_factory=_utcnow)
    deleted_at: datetime | None = None
    version: int | None = None

    @classmethod
    def from_resource(
        cls,
        resource: WatchedResource,
        *,
        message: str,
        pending: TransitionKind | None = None,
    ) -> NotificationRecord:
        return cls(
            namespace=resource.identity.namespace,
            name=resource.identity.name,
            message=message,
            spec_generation=resource.generation,
            spec=dict(resource.spec),
            pending=pending,
        )

    @property
    def identity(self) -> Identity:
        return Identity(namespace=self.namespace, name=self.name)

    def predates(self, resource: WatchedResource) -> bool:
        """Whether ``resource`` is a later incarnation than the one recorded.

        A recreated workload starts counting generations from 1 again, so a
        generation below the snapshot also means a new lifecycle.
        """

        return self.deleted_at is not None or resource.generation < self.spec_generation

    def restart(
        self,
        resource: WatchedResource,
        *,
        message: str,
        pending: TransitionKind | None,
    ) -> bool:
        """Start over from ``resource`` when the record describes an earlier incarnation."""

        if not self.predates(resource):
            return False
        self.spec_generation = resource.generation
        self.spec = dict(resource.spec)
        self.ready_generation = None
        self.deleted_at = None
        self.message = message
        self.pending = pending
        self.updated_at = _utcnow()
        return True

    def record_update(
        self,
        resource: WatchedResource,
        *,
        message: str,
        pending: TransitionKind | None,
    ) -> bool:
        """Move the snapshot forward to ``resource``; never backwards."""

        if resource.generation <= self.spec_generation:
            return False
        self.spec_generation = resource.generation
        self.spec = dict(resource.spec)
        self.message = message
        self.pending = pending
        self.updated_at = _utcnow()
        return True

    def record_ready(
        self,
        resource: WatchedResource,
        *,
        message: str,
        pending: TransitionKind | None,
    ) -> bool:
        if self.ready_generation == resource.generation:
            return False
        self.ready_generation = resource.generation
        self.message = message
        self.pending = pending
        self.updated_at = _utcnow()
        return True

    def pending_generation(self) -> int | None:
        """Generation the pending message refers to, if any."""

        if self.pending is None:
            return None
        if self.pending is TransitionKind.READY:
            return self.ready_generation
        return self.spec_generation

    def mark_deleted(self, *, message: str) -> bool:
        if self.deleted_at is not None:
            return False
        self.deleted_at = _utcnow()
        self.message = message
        self.pending = None
        self.updated_at = self.deleted_at
        return True

    def mark_delivered(self) -> bool:
        if self.pending is None:
            return False
        self.pending = None
        self.updated_at = _utcnow()
        return True
