"""Record reconciler: turns workload change signals into lifecycle notifications.

One ``reconcile`` call is one invocation. It reads the workload, classifies it
against the stored notification record, sends what the dedup cache lets through
and persists the outcome. Any error fails the whole invocation; the driver
decides when to run it again.

Per identity the stored record implies three states: absent, tracking (snapshot
at the current generation, not ready-confirmed) and ready-confirmed.
A record that predates the workload, because it was marked deleted or is ahead
of the current generation, counts as absent.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from deploywatch.domain.concurrency import ConflictBackoff, retry_on_conflict
from deploywatch.domain.dedup import DedupCache
from deploywatch.domain.errors import FetchError, NotificationTransportError
from deploywatch.domain.lifecycle import classify, classify_deleted
from deploywatch.domain.model import NotificationRecord, TransitionKind

if TYPE_CHECKING:
    from collections.abc import Callable

    from deploywatch.domain.driver import LabelSelector
    from deploywatch.domain.model import Identity, Transition, WatchedResource
    from deploywatch.domain.ports import Notifier, NotificationUnitOfWork, WorkloadReader

log = getLogger(__name__)

DEFAULT_DELETING_REQUEUE_SECONDS = 1.0

type RecordChange = Callable[[NotificationRecord], bool]


@dataclass(slots=True)
class ReconcileResult:
    """Outcome of one successful invocation."""

    identity: Identity
    transitions: list[TransitionKind] = field(default_factory=list[TransitionKind])
    sent: list[TransitionKind] = field(default_factory=list[TransitionKind])
    requeue_after: float | None = None


class RecordReconciler:
    def __init__(
        self,
        *,
        reader: WorkloadReader,
        notifier: Notifier,
        unit_of_work_factory: Callable[[], NotificationUnitOfWork],
        dedup: DedupCache | None = None,
        backoff: ConflictBackoff | None = None,
        delete_records: bool = False,
        selector: LabelSelector | None = None,
        deleting_requeue_seconds: float = DEFAULT_DELETING_REQUEUE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.reader = reader
        self.notifier = notifier
        self.unit_of_work_factory = unit_of_work_factory
        self.dedup = dedup if dedup is not None else DedupCache()
        self.backoff = backoff or ConflictBackoff()
        self.delete_records = delete_records
        self.selector = selector
        self.deleting_requeue_seconds = deleting_requeue_seconds
        self._sleep = sleep

    def reconcile(self, identity: Identity) -> ReconcileResult:
        log.info("Reconciling %s", identity)
        result = ReconcileResult(identity=identity)

        current = self.reader.get(identity)
        if current is None:
            self._handle_deleted(identity, result)
            return result

        if current.deleting:
            log.info(f"{identity} is being deleted, checking again later")
            result.requeue_after = self.deleting_requeue_seconds
            return result

        if self.selector is not None and not self.selector.matches(current.labels):
            log.info(f"{identity} does not match selector {self.selector}, skipping")
            return result

        previous = self._load(identity)
        transitions = classify(previous, current)
        result.transitions = [transition.kind for transition in transitions]

        recreated = False
        if previous is not None and previous.predates(current):
            recreated = True
            log.info(f"{identity} was recreated, starting a new notification lifecycle")
            self.dedup.clear(identity)
            if previous.pending is not None:
                log.warning(
                    f"Dropping undelivered {previous.pending} notification for the previous "
                    f"incarnation of {identity}"
                )
        elif previous is not None and previous.pending is not None:
            self._redeliver(previous, result)

        for transition in transitions:
            if transition.kind is TransitionKind.CREATED:
                self._handle_created(current, transition, result, replace=recreated)
            elif transition.kind is TransitionKind.UPDATED:
                self._handle_updated(current, transition, result)
            elif transition.kind is TransitionKind.READY:
                self._handle_ready(current, transition, result)

        log.info(
            f"Reconciled {identity}: transitions={[str(k) for k in result.transitions]}, "
            f"sent={[str(k) for k in result.sent]}"
        )
        return result

    # Transition handlers -----------------------------------------------------

    def _handle_created(
        self,
        current: WatchedResource,
        transition: Transition,
        result: ReconcileResult,
        *,
        replace: bool = False,
    ) -> None:
        failure = self._dispatch(current.identity, transition, current.generation, result)
        pending = TransitionKind.CREATED if failure else None
        if replace:
            self._persist(
                current.identity,
                lambda record: record.restart(
                    current,
                    message=transition.message,
                    pending=pending,
                ),
            )
        else:
            record = NotificationRecord.from_resource(
                current,
                message=transition.message,
                pending=pending,
            )
            with self.unit_of_work_factory() as uow:
                uow.repositories.records.add(record)
                uow.commit()
        if failure:
            raise failure

    def _handle_updated(
        self,
        current: WatchedResource,
        transition: Transition,
        result: ReconcileResult,
    ) -> None:
        failure = self._dispatch(current.identity, transition, current.generation, result)
        pending = TransitionKind.UPDATED if failure else None
        self._persist(
            current.identity,
            lambda record: record.record_update(
                current,
                message=transition.message,
                pending=pending,
            ),
        )
        if failure:
            raise failure

    def _handle_ready(
        self,
        current: WatchedResource,
        transition: Transition,
        result: ReconcileResult,
    ) -> None:
        failure = self._dispatch(current.identity, transition, current.generation, result)
        pending = TransitionKind.READY if failure else None
        self._persist(
            current.identity,
            lambda record: record.record_ready(
                current,
                message=transition.message,
                pending=pending,
            ),
        )
        if failure:
            raise failure

    def _handle_deleted(self, identity: Identity, result: ReconcileResult) -> None:
        transition = classify_deleted(identity)
        result.transitions = [transition.kind]
        try:
            self.notifier(transition.message, identity=identity)
        finally:
            self.dedup.clear(identity)
        result.sent.append(transition.kind)

        if self.delete_records:
            with self.unit_of_work_factory() as uow:
                removed = uow.repositories.records.remove(identity)
                uow.commit()
            if removed:
                log.info(f"Removed notification record for {identity}")
        elif self._persist(
            identity,
            lambda record: record.mark_deleted(message=transition.message),
            missing_ok=True,
        ):
            log.info(f"Marked notification record for {identity} as deleted")

    def _redeliver(self, record: NotificationRecord, result: ReconcileResult) -> None:
        kind = record.pending
        generation = record.pending_generation()
        if kind is None or generation is None:
            return
        log.info(f"Redelivering pending {kind} notification for {record.identity}")
        try:
            self._send(record.identity, kind, generation, record.message, result)
        except NotificationTransportError:
            log.warning(f"Pending {kind} notification for {record.identity} still undelivered")
            raise

        def clear_pending(fresh: NotificationRecord) -> bool:
            if fresh.pending is not kind or fresh.pending_generation() != generation:
                return False
            return fresh.mark_delivered()

        self._persist(record.identity, clear_pending)

    # Side effects --------------------------------------------------------------

    def _dispatch(
        self,
        identity: Identity,
        transition: Transition,
        generation: int,
        result: ReconcileResult,
    ) -> NotificationTransportError | None:
        """Send ``transition`` and hand back a send failure instead of raising it.

        The record write that follows a failed send must still happen.
        """

        try:
            self._send(identity, transition.kind, generation, transition.message, result)
        except NotificationTransportError as exc:
            log.warning(f"Failed to send {transition.kind} notification for {identity}: {exc}")
            return exc
        return None

    def _send(
        self,
        identity: Identity,
        kind: TransitionKind,
        generation: int,
        message: str,
        result: ReconcileResult,
    ) -> None:
        if not self.dedup.claim(identity, kind, generation):
            log.info(f"Suppressed duplicate {kind} notification for {identity} @ {generation}")
            return
        try:
            self.notifier(message, identity=identity)
        except NotificationTransportError:
            self.dedup.release(identity, kind, generation)
            raise
        result.sent.append(kind)

    def _load(self, identity: Identity) -> NotificationRecord | None:
        with self.unit_of_work_factory() as uow:
            return uow.repositories.records.get(identity)

    def _persist(
        self,
        identity: Identity,
        change: RecordChange,
        *,
        missing_ok: bool = False,
    ) -> bool:
        """Apply ``change`` to a freshly read record, retrying on stale versions.

        ``change`` returns ``False`` when the stored record already reflects it.
        A missing record is an error unless ``missing_ok`` is set.
        """

        def attempt() -> bool:
            with self.unit_of_work_factory() as uow:
                record = uow.repositories.records.get(identity)
                if record is None:
                    if missing_ok:
                        return False
                    raise FetchError(f"Notification record for {identity} disappeared")
                if not change(record):
                    return False
                uow.repositories.records.update(record)
                uow.commit()
                return True

        return retry_on_conflict(attempt, backoff=self.backoff, sleep=self._sleep)
