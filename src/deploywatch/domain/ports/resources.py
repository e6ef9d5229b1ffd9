"""Ports for reading watched workloads."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from deploywatch.domain.model import Identity, WatchedResource


@runtime_checkable
class WorkloadReader(Protocol):
    """Return the current workload, ``None`` if it no longer exists.

    Unreachable or denied stores raise ``FetchError``.
    """

    def get(self, identity: Identity) -> WatchedResource | None: ...
