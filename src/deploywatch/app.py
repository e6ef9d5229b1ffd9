"""Application orchestration entry points."""

from __future__ import annotations

import threading
from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from kubernetes import client as kube_client
from kubernetes import config as kube_config
from kubernetes.config import ConfigException

from deploywatch.adapters.kubernetes import KubernetesWorkloadReader, watch_deployments
from deploywatch.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyNotificationUnitOfWork,
    is_started,
    startup,
)
from deploywatch.adapters.webhook import WebhookNotifier
from deploywatch.config import WatchConfig, get_watch_config
from deploywatch.domain.concurrency import ConflictBackoff
from deploywatch.domain.driver import EventLoopDriver, LabelSelector, WorkloadCache
from deploywatch.domain.ports.unit_of_work import NotificationUnitOfWork
from deploywatch.domain.reconciler import ReconcileResult, RecordReconciler

if TYPE_CHECKING:
    from kubernetes.client import AppsV1Api

    from deploywatch.domain.model import Identity, NotificationRecord
    from deploywatch.domain.ports import Notifier, WorkloadReader

UnitOfWorkFactory = Callable[[], NotificationUnitOfWork]


log = getLogger(__name__)


def load_apps_api() -> AppsV1Api:
    """Apps API client from the in-cluster service account, else the local kubeconfig."""

    try:
        kube_config.load_incluster_config()
        log.info("Using in-cluster Kubernetes configuration")
    except ConfigException:
        kube_config.load_kube_config()
        log.info("Using local kubeconfig")
    return kube_client.AppsV1Api()


def _ensure_started() -> None:
    if not is_started():
        startup()


def build_reconciler(
    *,
    reader: WorkloadReader,
    notifier: Notifier | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    watch_config: WatchConfig | None = None,
) -> RecordReconciler:
    config = watch_config or get_watch_config()
    return RecordReconciler(
        reader=reader,
        notifier=notifier or WebhookNotifier(),
        unit_of_work_factory=unit_of_work_factory or SqlAlchemyNotificationUnitOfWork,
        backoff=ConflictBackoff(steps=config.conflict_retries),
        delete_records=config.delete_records,
        selector=LabelSelector.parse(config.label_selector),
    )


def run_controller(
    *,
    apps_api: AppsV1Api | None = None,
    notifier: Notifier | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    watch_config: WatchConfig | None = None,
    stop_event: threading.Event | None = None,
) -> None:
    """Watch Deployments and reconcile them until ``stop_event`` is set."""

    if unit_of_work_factory is None:
        _ensure_started()
    config = watch_config or get_watch_config()
    api = apps_api or load_apps_api()
    selector = LabelSelector.parse(config.label_selector)
    cache = WorkloadCache(fallback=KubernetesWorkloadReader(api))
    owned_notifier = WebhookNotifier() if notifier is None else None
    reconciler = build_reconciler(
        reader=cache,
        notifier=notifier or owned_notifier,
        unit_of_work_factory=unit_of_work_factory,
        watch_config=config,
    )
    driver = EventLoopDriver(reconciler, cache, selector=selector, workers=config.workers)
    stop = stop_event or threading.Event()

    log.info(
        "Starting controller: selector=%s, namespace=%s, workers=%s, delete_records=%s",
        selector,
        config.namespace or "<all>",
        config.workers,
        config.delete_records,
    )
    events = watch_deployments(
        api,
        label_selector=str(selector),
        namespace=config.namespace,
        stop_event=stop,
    )
    try:
        driver.run(events, stop_event=stop)
    finally:
        if owned_notifier is not None:
            owned_notifier.close()
    log.info("Controller stopped")


def reconcile_once(
    identity: Identity,
    *,
    reader: WorkloadReader | None = None,
    notifier: Notifier | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    watch_config: WatchConfig | None = None,
) -> ReconcileResult:
    """Run a single reconcile pass for ``identity`` against the live cluster."""

    if unit_of_work_factory is None:
        _ensure_started()
    owned_notifier = WebhookNotifier() if notifier is None else None
    reconciler = build_reconciler(
        reader=reader if reader is not None else KubernetesWorkloadReader(load_apps_api()),
        notifier=notifier or owned_notifier,
        unit_of_work_factory=unit_of_work_factory,
        watch_config=watch_config,
    )
    try:
        result = reconciler.reconcile(identity)
    finally:
        if owned_notifier is not None:
            owned_notifier.close()
    log.info(
        f"Finished reconcile of {identity}: "
        f"transitions={[str(kind) for kind in result.transitions]}, "
        f"sent={[str(kind) for kind in result.sent]}, requeue_after={result.requeue_after}"
    )
    return result


def show_record(
    identity: Identity,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> NotificationRecord | None:
    if unit_of_work_factory is None:
        _ensure_started()
    factory = unit_of_work_factory or SqlAlchemyNotificationUnitOfWork
    with factory() as uow:
        return uow.repositories.records.get(identity)
