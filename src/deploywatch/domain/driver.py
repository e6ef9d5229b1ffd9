"""Event loop driver feeding workload change signals to the reconciler.

Delivery is at-least-once and unordered; bursts for one identity coalesce into
a single pending reconcile. The driver keeps the latest snapshot per identity
(the reconciler reads it back through the ``WorkloadReader`` port), never hands
one identity to two workers at once, and reschedules failed invocations with
per-identity exponential backoff.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from deploywatch.domain.errors import DeploywatchError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from deploywatch.domain.model import Identity, WatchedResource
    from deploywatch.domain.ports import WorkloadReader
    from deploywatch.domain.reconciler import RecordReconciler

log = getLogger(__name__)

DEFAULT_WORKERS = 4


@dataclass(frozen=True, slots=True)
class LabelSelector:
    """Equality-based label selector (``key=value,key2=value2``)."""

    match_labels: tuple[tuple[str, str], ...] = ()

    @classmethod
    def parse(cls, selector: str) -> LabelSelector:
        pairs: list[tuple[str, str]] = []
        for part in selector.split(","):
            part = part.strip()
            if not part:
                continue
            key, sep, value = part.partition("=")
            if value.startswith("="):
                value = value[1:]
            if not sep or not key.strip() or key.endswith("!"):
                raise ValueError(f"Unsupported label selector term: {part!r}")
            pairs.append((key.strip(), value.strip()))
        return cls(match_labels=tuple(sorted(pairs)))

    def matches(self, labels: Mapping[str, str]) -> bool:
        return all(labels.get(key) == value for key, value in self.match_labels)

    def __str__(self) -> str:
        return ",".join(f"{key}={value}" for key, value in self.match_labels)


@dataclass(frozen=True, slots=True)
class WorkloadEvent:
    """Something about ``identity`` changed; ``resource`` is ``None`` once it is gone."""

    identity: Identity
    resource: WatchedResource | None


class WorkloadCache:
    """Latest observed snapshot per identity.

    The watch only reports what matches its selector, so an identity missing
    here may still exist. ``fallback`` answers for those.
    """

    def __init__(self, fallback: WorkloadReader | None = None) -> None:
        self.fallback = fallback
        self._lock = threading.Lock()
        self._resources: dict[Identity, WatchedResource] = {}

    def apply(self, event: WorkloadEvent) -> None:
        with self._lock:
            if event.resource is None:
                self._resources.pop(event.identity, None)
            else:
                self._resources[event.identity] = event.resource

    def get(self, identity: Identity) -> WatchedResource | None:
        with self._lock:
            resource = self._resources.get(identity)
        if resource is None and self.fallback is not None:
            return self.fallback.get(identity)
        return resource


class WorkQueue:
    """De-duplicating FIFO of identities.

    An identity added while queued is coalesced; added while being processed it
    is queued again once ``done`` is called.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._queue: deque[Identity] = deque()
        self._dirty: set[Identity] = set()
        self._processing: set[Identity] = set()
        self._timers: set[threading.Timer] = set()
        self._shutting_down = False

    def add(self, identity: Identity) -> None:
        with self._cond:
            if self._shutting_down or identity in self._dirty:
                return
            self._dirty.add(identity)
            if identity in self._processing:
                return
            self._queue.append(identity)
            self._cond.notify_all()

    def add_after(self, identity: Identity, delay: float) -> None:
        if delay <= 0:
            self.add(identity)
            return
        with self._cond:
            if self._shutting_down:
                return
            timer = threading.Timer(delay, self._fire)
            timer.args = (identity, timer)
            timer.daemon = True
            self._timers.add(timer)
        timer.start()

    def _fire(self, identity: Identity, timer: threading.Timer) -> None:
        with self._cond:
            self._timers.discard(timer)
        self.add(identity)

    def get(self, timeout: float | None = None) -> Identity | None:
        """Next identity to process, ``None`` on shutdown or timeout."""

        with self._cond:
            if not self._queue and not self._shutting_down:
                self._cond.wait_for(lambda: self._queue or self._shutting_down, timeout)
            if not self._queue:
                return None
            identity = self._queue.popleft()
            self._processing.add(identity)
            self._dirty.discard(identity)
            return identity

    def done(self, identity: Identity) -> None:
        with self._cond:
            self._processing.discard(identity)
            if identity in self._dirty:
                self._queue.append(identity)
            self._cond.notify_all()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until nothing is queued or in progress; delayed re-adds do not count."""

        with self._cond:
            return self._cond.wait_for(
                lambda: self._shutting_down or not (self._queue or self._processing),
                timeout,
            )

    def shutdown(self) -> None:
        with self._cond:
            self._shutting_down = True
            timers = list(self._timers)
            self._timers.clear()
            self._queue.clear()
            self._cond.notify_all()
        for timer in timers:
            timer.cancel()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)


class FailureBackoff:
    """Per-identity exponential delay: ``base * 2**failures`` capped at ``maximum``."""

    def __init__(self, *, base_seconds: float = 0.005, maximum_seconds: float = 300.0) -> None:
        self.base_seconds = base_seconds
        self.maximum_seconds = maximum_seconds
        self._lock = threading.Lock()
        self._failures: dict[Identity, int] = {}

    def when(self, identity: Identity) -> float:
        with self._lock:
            failures = self._failures.get(identity, 0)
            self._failures[identity] = failures + 1
        return min(self.base_seconds * (2**failures), self.maximum_seconds)

    def forget(self, identity: Identity) -> None:
        with self._lock:
            self._failures.pop(identity, None)

    def failures(self, identity: Identity) -> int:
        with self._lock:
            return self._failures.get(identity, 0)


class EventLoopDriver:
    def __init__(
        self,
        reconciler: RecordReconciler,
        cache: WorkloadCache,
        *,
        selector: LabelSelector | None = None,
        workers: int = DEFAULT_WORKERS,
        backoff: FailureBackoff | None = None,
        queue: WorkQueue | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError("At least one worker is required")
        self.reconciler = reconciler
        self.cache = cache
        self.selector = selector
        self.workers = workers
        self.backoff = backoff or FailureBackoff()
        self.queue = queue if queue is not None else WorkQueue()
        self._threads: list[threading.Thread] = []

    def submit(self, event: WorkloadEvent) -> bool:
        """Record the snapshot and schedule a reconcile; ``False`` if filtered out.

        Deletions are not label-filtered: the snapshot is gone, and sources only
        report deletions for workloads they were watching.
        """

        resource = event.resource
        if (
            resource is not None
            and self.selector is not None
            and not self.selector.matches(resource.labels)
        ):
            log.debug(f"Ignoring {event.identity}: labels do not match {self.selector}")
            return False
        self.cache.apply(event)
        self.queue.add(event.identity)
        return True

    def start(self) -> None:
        if self._threads:
            return
        for index in range(self.workers):
            thread = threading.Thread(
                target=self._worker,
                name=f"deploywatch-worker-{index}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        log.info(f"Started {self.workers} reconcile workers")

    def stop(self, timeout: float | None = None, *, drain: bool = False) -> None:
        if drain:
            self.queue.wait_idle(timeout)
        self.queue.shutdown()
        for thread in self._threads:
            thread.join(timeout)
        self._threads.clear()
        log.info("Stopped reconcile workers")

    def run(
        self,
        events: Iterable[WorkloadEvent],
        *,
        stop_event: threading.Event | None = None,
    ) -> None:
        """Consume ``events`` until exhausted or ``stop_event`` is set.

        Work already queued is finished when ``events`` runs out, dropped on stop.
        """

        self.start()
        try:
            for event in events:
                if stop_event is not None and stop_event.is_set():
                    break
                self.submit(event)
        finally:
            self.stop(drain=stop_event is None or not stop_event.is_set())

    def process_next(self, timeout: float | None = None) -> bool:
        """Reconcile one queued identity; ``False`` if nothing was processed."""

        identity = self.queue.get(timeout)
        if identity is None:
            return False
        try:
            self._process(identity)
        finally:
            self.queue.done(identity)
        return True

    def _worker(self) -> None:
        while not self.queue.shutting_down:
            self.process_next(timeout=1.0)

    def _process(self, identity: Identity) -> None:
        try:
            result = self.reconciler.reconcile(identity)
        except DeploywatchError as exc:
            delay = self.backoff.when(identity)
            attempts = self.backoff.failures(identity)
            log.warning(
                f"Reconcile of {identity} failed ({exc}) after {attempts} attempt(s); "
                f"retrying in {delay:.3f}s"
            )
            self.queue.add_after(identity, delay)
            return
        except Exception:
            delay = self.backoff.when(identity)
            log.exception(f"Unexpected error reconciling {identity}; retrying in {delay:.3f}s")
            self.queue.add_after(identity, delay)
            return

        self.backoff.forget(identity)
        if result.requeue_after is not None:
            self.queue.add_after(identity, result.requeue_after)
