"""Watched workloads as seen by the reconciler.

The owning system creates and mutates these; the core only reads them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True, order=True)
class Identity:
    """Namespace/name pair shared by a workload and its notification record."""

    namespace: str
    name: str

    @classmethod
    def parse(cls, value: str) -> Identity:
        namespace, sep, name = value.strip().partition("/")
        if not sep or not namespace or not name or "/" in name:
            raise ValueError(f"Expected NAMESPACE/NAME, got: {value!r}")
        return cls(namespace=namespace, name=name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True, slots=True, kw_only=True)
class WatchedResource:
    identity: Identity
    generation: int
    desired_replicas: int
    ready_replicas: int = 0
    observed_generation: int = 0
    deleting: bool = False
    labels: Mapping[str, str] = field(default_factory=dict[str, str])
    spec: Mapping[str, object] = field(default_factory=dict[str, object])

    @property
    def is_ready(self) -> bool:
        """All desired replicas are ready and the owner caught up with the spec."""

        return (
            self.generation == self.observed_generation
            and self.ready_replicas == self.desired_replicas
        )
