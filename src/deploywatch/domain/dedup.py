"""Process-local suppression of repeated notification attempts.

Entries are lost on restart; the durable notification record remains the
authoritative guard against duplicates. The cache covers the window where a
send succeeded but the record write did not.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from deploywatch.domain.model import NOTIFIED_KINDS

if TYPE_CHECKING:
    from deploywatch.domain.model import Identity, TransitionKind


class DedupCache:
    """Last notified generation per (identity, transition kind)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generations: dict[tuple[Identity, TransitionKind], int] = {}

    def should_notify(self, identity: Identity, kind: TransitionKind, generation: int) -> bool:
        with self._lock:
            return self._generations.get((identity, kind)) != generation

    def mark_notified(self, identity: Identity, kind: TransitionKind, generation: int) -> None:
        with self._lock:
            self._generations[(identity, kind)] = generation

    def claim(self, identity: Identity, kind: TransitionKind, generation: int) -> bool:
        """Atomically check and mark; ``False`` if this generation was already claimed."""

        key = (identity, kind)
        with self._lock:
            if self._generations.get(key) == generation:
                return False
            self._generations[key] = generation
            return True

    def release(self, identity: Identity, kind: TransitionKind, generation: int) -> None:
        """Undo a claim whose send failed, unless a newer generation replaced it."""

        key = (identity, kind)
        with self._lock:
            if self._generations.get(key) == generation:
                del self._generations[key]

    def clear(self, identity: Identity) -> None:
        with self._lock:
            for kind in NOTIFIED_KINDS:
                self._generations.pop((identity, kind), None)
