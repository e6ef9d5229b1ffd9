from __future__ import annotations

import threading
from typing import cast

import pytest

from deploywatch.domain.driver import (
    EventLoopDriver,
    FailureBackoff,
    LabelSelector,
    WorkloadCache,
    WorkloadEvent,
    WorkQueue,
)
from deploywatch.domain.errors import DeploywatchError
from deploywatch.domain.model import Identity
from deploywatch.domain.reconciler import ReconcileResult, RecordReconciler
from tests.helpers.workloads import (
    WEB,
    FakeNotifier,
    FakeUnitOfWork,
    FakeWorkloadReader,
    InMemoryRecordRepository,
    make_ready,
    make_resource,
)

API = Identity(namespace="default", name="api")
SELECTOR = LabelSelector.parse("importantDeployment=some-ci-system")


class ScriptedReconciler:
    """Plays back queued outcomes; the last one repeats."""

    def __init__(self, *outcomes: ReconcileResult | Exception) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[Identity] = []

    def reconcile(self, identity: Identity) -> ReconcileResult:
        self.calls.append(identity)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _driver(
    reconciler: ScriptedReconciler | RecordReconciler,
    cache: WorkloadCache | None = None,
    **kwargs: object,
) -> EventLoopDriver:
    return EventLoopDriver(
        cast(RecordReconciler, reconciler),
        cache if cache is not None else WorkloadCache(),
        selector=SELECTOR,
        **kwargs,  # type: ignore[arg-type]
    )


@pytest.fixture
def cache() -> WorkloadCache:
    return WorkloadCache()


@pytest.fixture
def live_reconciler(cache: WorkloadCache, notifier: FakeNotifier) -> RecordReconciler:
    records = InMemoryRecordRepository()
    return RecordReconciler(
        reader=cache,
        notifier=notifier,
        unit_of_work_factory=lambda: FakeUnitOfWork(records),
        deleting_requeue_seconds=0.0,
    )


# Label selectors ---------------------------------------------------------------


def test_selector_matches_all_pairs() -> None:
    selector = LabelSelector.parse("app=web, tier==frontend")

    assert selector.matches({"app": "web", "tier": "frontend", "extra": "x"})
    assert not selector.matches({"app": "web"})
    assert str(selector) == "app=web,tier=frontend"


def test_empty_selector_matches_everything() -> None:
    assert LabelSelector.parse("").matches({})


@pytest.mark.parametrize("selector", ["app!=web", "app", "=web"])
def test_unsupported_selector_terms_are_rejected(selector: str) -> None:
    with pytest.raises(ValueError, match="Unsupported label selector"):
        LabelSelector.parse(selector)


# Work queue --------------------------------------------------------------------


def test_queue_coalesces_repeated_adds() -> None:
    queue = WorkQueue()
    queue.add(WEB)
    queue.add(WEB)
    queue.add(API)

    assert len(queue) == 2
    assert queue.get(timeout=0) == WEB
    assert queue.get(timeout=0) == API


def test_identity_is_not_handed_out_twice_while_processing() -> None:
    queue = WorkQueue()
    queue.add(WEB)
    assert queue.get(timeout=0) == WEB

    queue.add(WEB)
    assert queue.get(timeout=0) is None

    queue.done(WEB)
    assert queue.get(timeout=0) == WEB


def test_delayed_add_arrives_later() -> None:
    queue = WorkQueue()

    queue.add_after(WEB, 0.01)

    assert queue.get(timeout=5) == WEB


def test_shutdown_releases_waiting_workers() -> None:
    queue = WorkQueue()
    results: list[Identity | None] = []
    worker = threading.Thread(target=lambda: results.append(queue.get()))
    worker.start()

    queue.shutdown()
    worker.join(timeout=5)

    assert results == [None]
    queue.add(WEB)
    assert len(queue) == 0


def test_cache_falls_back_for_identities_it_has_not_seen() -> None:
    reader = FakeWorkloadReader()
    unlabeled = make_resource(labels={})
    reader.put(unlabeled)
    cache = WorkloadCache(fallback=reader)

    assert cache.get(WEB) == unlabeled

    cache.apply(WorkloadEvent(WEB, make_resource()))
    assert cache.get(WEB) == make_resource()

    reader.remove(WEB)
    cache.apply(WorkloadEvent(WEB, None))
    assert cache.get(WEB) is None


def test_failure_backoff_doubles_up_to_the_cap() -> None:
    backoff = FailureBackoff(base_seconds=0.005, maximum_seconds=0.015)

    assert [backoff.when(WEB) for _ in range(4)] == pytest.approx([0.005, 0.01, 0.015, 0.015])
    assert backoff.when(API) == pytest.approx(0.005)

    backoff.forget(WEB)
    assert backoff.failures(WEB) == 0


# Driver ------------------------------------------------------------------------


def test_non_matching_resources_never_reach_the_reconciler(cache: WorkloadCache) -> None:
    reconciler = ScriptedReconciler(ReconcileResult(identity=WEB))
    driver = _driver(reconciler, cache)

    accepted = driver.submit(WorkloadEvent(WEB, make_resource(labels={"team": "other"})))

    assert not accepted
    assert cache.get(WEB) is None
    assert not driver.process_next(timeout=0)
    assert reconciler.calls == []


def test_deletions_are_not_label_filtered(cache: WorkloadCache) -> None:
    driver = _driver(ScriptedReconciler(ReconcileResult(identity=WEB)), cache)
    driver.submit(WorkloadEvent(WEB, make_resource()))

    assert driver.submit(WorkloadEvent(WEB, None))
    assert cache.get(WEB) is None


def test_events_flow_through_cache_to_notifications(
    cache: WorkloadCache,
    live_reconciler: RecordReconciler,
    notifier: FakeNotifier,
) -> None:
    driver = _driver(live_reconciler, cache)

    driver.submit(WorkloadEvent(WEB, make_resource()))
    driver.submit(WorkloadEvent(WEB, make_ready(make_resource())))
    assert driver.process_next(timeout=0)
    driver.submit(WorkloadEvent(WEB, None))
    assert driver.process_next(timeout=0)

    assert notifier.messages == [
        "Created the deployment default/web",
        "The deployment default/web is ready.",
        "The deployment default/web is deleted.",
    ]


def test_failed_invocations_are_retried_with_backoff() -> None:
    reconciler = ScriptedReconciler(
        DeploywatchError("sink down"),
        ReconcileResult(identity=WEB),
    )
    backoff = FailureBackoff(base_seconds=0.0)
    driver = _driver(reconciler, backoff=backoff)
    driver.submit(WorkloadEvent(WEB, make_resource()))

    assert driver.process_next(timeout=0)
    assert backoff.failures(WEB) == 1
    assert driver.process_next(timeout=0)

    assert reconciler.calls == [WEB, WEB]
    assert backoff.failures(WEB) == 0


def test_unexpected_errors_are_retried_too() -> None:
    reconciler = ScriptedReconciler(RuntimeError("boom"), ReconcileResult(identity=WEB))
    driver = _driver(reconciler, backoff=FailureBackoff(base_seconds=0.0))
    driver.submit(WorkloadEvent(WEB, make_resource()))

    driver.process_next(timeout=0)
    driver.process_next(timeout=0)

    assert reconciler.calls == [WEB, WEB]


def test_deleting_resources_are_requeued(
    cache: WorkloadCache,
    live_reconciler: RecordReconciler,
    notifier: FakeNotifier,
) -> None:
    driver = _driver(live_reconciler, cache)
    driver.submit(WorkloadEvent(WEB, make_resource(deleting=True)))

    assert driver.process_next(timeout=0)

    assert len(driver.queue) == 1
    assert notifier.sent == []


def test_run_processes_a_finite_event_stream(
    cache: WorkloadCache,
    live_reconciler: RecordReconciler,
    notifier: FakeNotifier,
) -> None:
    driver = _driver(live_reconciler, cache, workers=2)
    events = [
        WorkloadEvent(WEB, make_ready(make_resource())),
        WorkloadEvent(API, make_resource(API)),
    ]

    driver.run(events)

    assert sorted(notifier.messages) == [
        "Created the deployment default/api",
        "Created the deployment default/web",
        "The deployment default/web is ready.",
    ]
    assert driver.queue.shutting_down


def test_at_least_one_worker_is_required() -> None:
    with pytest.raises(ValueError, match="worker"):
        _driver(ScriptedReconciler(ReconcileResult(identity=WEB)), workers=0)


def test_label_removal_is_not_reported_as_deletion(notifier: FakeNotifier) -> None:
    reader = FakeWorkloadReader()
    cache = WorkloadCache(fallback=reader)
    records = InMemoryRecordRepository()
    reconciler = RecordReconciler(
        reader=cache,
        notifier=notifier,
        unit_of_work_factory=lambda: FakeUnitOfWork(records),
        selector=SELECTOR,
    )
    driver = _driver(reconciler, cache)
    driver.submit(WorkloadEvent(WEB, make_resource()))
    assert driver.process_next(timeout=0)

    # The selector watch reports the object leaving its scope as a deletion.
    reader.put(make_resource(labels={}))
    driver.submit(WorkloadEvent(WEB, None))
    assert driver.process_next(timeout=0)

    assert notifier.messages == ["Created the deployment default/web"]
    assert WEB in records.records
