"""Classified lifecycle transitions.

Produced fresh on every classification; never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from deploywatch.domain.diffing import render_changes
from deploywatch.domain.model.enums import TransitionKind

if TYPE_CHECKING:
    from deploywatch.domain.diffing import FieldChange
    from deploywatch.domain.model.resource import Identity


@dataclass(frozen=True, slots=True)
class Transition:
    kind: TransitionKind
    message: str = ""
    diff: tuple[FieldChange, ...] = ()

    @classmethod
    def created(cls, identity: Identity) -> Transition:
        return cls(TransitionKind.CREATED, f"Created the deployment {identity}")

    @classmethod
    def updated(cls, identity: Identity, diff: tuple[FieldChange, ...]) -> Transition:
        return cls(
            TransitionKind.UPDATED,
            f"Updated the deployment {identity} with: {render_changes(diff)}",
            diff,
        )

    @classmethod
    def ready(cls, identity: Identity) -> Transition:
        return cls(TransitionKind.READY, f"The deployment {identity} is ready.")

    @classmethod
    def deleted(cls, identity: Identity) -> Transition:
        return cls(TransitionKind.DELETED, f"The deployment {identity} is deleted.")

    @classmethod
    def noop(cls) -> Transition:
        return cls(TransitionKind.NOOP)
