"""Lifecycle classification of watched workloads."""

from __future__ import annotations

from typing import TYPE_CHECKING

from deploywatch.domain.diffing import diff_specs
from deploywatch.domain.model import Transition

if TYPE_CHECKING:
    from deploywatch.domain.model import Identity, NotificationRecord, WatchedResource


def classify(
    previous: NotificationRecord | None,
    current: WatchedResource,
) -> list[Transition]:
    """Derive the transitions between the last communicated state and ``current``.

    Created/Updated and Ready are independent; when several apply they are
    returned in notification order (Created or Updated first, then Ready). Only
    the stored snapshot and the current state are compared, so any number of
    intermediate generations collapse into one Updated. A record left behind by
    an earlier incarnation of the workload counts as no record at all.

    Raises ``ClassificationError`` when the specs cannot be diffed.
    """

    identity = current.identity
    transitions: list[Transition] = []
    if previous is not None and previous.predates(current):
        previous = None

    if previous is None:
        transitions.append(Transition.created(identity))
    elif current.generation != previous.spec_generation:
        changes = diff_specs(previous.spec, current.spec)
        transitions.append(Transition.updated(identity, changes))

    ready_generation = previous.ready_generation if previous is not None else None
    if current.is_ready and ready_generation != current.generation:
        transitions.append(Transition.ready(identity))

    return transitions or [Transition.noop()]


def classify_deleted(identity: Identity) -> Transition:
    """The workload is gone from the store; prior state does not matter."""

    return Transition.deleted(identity)
