"""Deployment reads and watch streams backed by the Kubernetes API."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

from kubernetes import watch
from kubernetes.client import ApiClient, ApiException, AppsV1Api

from deploywatch.domain.driver import WorkloadEvent
from deploywatch.domain.errors import FetchError

from .schema import DeploymentPayload
from .translator import parse_deployment

if TYPE_CHECKING:
    import threading
    from collections.abc import Iterator

    from deploywatch.domain.model import Identity, WatchedResource

log = getLogger(__name__)

_HTTP_NOT_FOUND = 404
_HTTP_GONE = 410
DEFAULT_WATCH_TIMEOUT_SECONDS = 300


def _serialize(api_client: ApiClient, obj: object) -> dict[str, Any]:
    if isinstance(obj, dict):
        return cast(dict[str, Any], obj)
    return cast(dict[str, Any], api_client.sanitize_for_serialization(obj))


class KubernetesWorkloadReader:
    """Direct Deployment reads; ``None`` when the Deployment does not exist."""

    def __init__(self, apps_api: AppsV1Api) -> None:
        self.apps_api = apps_api

    def get(self, identity: Identity) -> WatchedResource | None:
        try:
            deployment = self.apps_api.read_namespaced_deployment(
                name=identity.name,
                namespace=identity.namespace,
            )
        except ApiException as exc:
            if exc.status == _HTTP_NOT_FOUND:
                return None
            log.error(f"Unable to fetch Deployment {identity}: {exc.status} {exc.reason}")
            raise FetchError(f"Unable to fetch Deployment {identity}") from exc
        return parse_deployment(_serialize(self.apps_api.api_client, deployment))


def watch_deployments(
    apps_api: AppsV1Api,
    *,
    label_selector: str,
    namespace: str | None = None,
    stop_event: threading.Event | None = None,
    timeout_seconds: int = DEFAULT_WATCH_TIMEOUT_SECONDS,
) -> Iterator[WorkloadEvent]:
    """Yield Deployment change events until ``stop_event`` is set.

    The server filters by ``label_selector``. A fresh watch starts with ADDED
    events for every existing Deployment; an expired resource version (410)
    restarts the watch from scratch.
    """

    resource_version: str | None = None
    while stop_event is None or not stop_event.is_set():
        watcher = watch.Watch()
        kwargs: dict[str, Any] = {
            "label_selector": label_selector,
            "timeout_seconds": timeout_seconds,
            "allow_watch_bookmarks": True,
        }
        if resource_version is not None:
            kwargs["resource_version"] = resource_version
        if namespace is not None:
            stream = watcher.stream(apps_api.list_namespaced_deployment, namespace, **kwargs)
        else:
            stream = watcher.stream(apps_api.list_deployment_for_all_namespaces, **kwargs)

        log.info(f"Watching Deployments ({label_selector}) in {namespace or 'all namespaces'}")
        try:
            for raw_event in stream:
                event_type = raw_event["type"]
                if event_type == "ERROR":
                    status = cast(dict[str, Any], raw_event.get("raw_object") or {})
                    if status.get("code") == _HTTP_GONE:
                        log.info("Watch resource version expired, restarting watch")
                        resource_version = None
                        break
                    raise FetchError(f"Deployment watch failed: {status.get('message')}")

                payload = DeploymentPayload.model_validate(
                    _serialize(apps_api.api_client, raw_event["object"])
                )
                resource_version = payload.metadata.resource_version or resource_version
                if event_type == "BOOKMARK":
                    continue

                resource = parse_deployment(payload)
                yield WorkloadEvent(
                    identity=resource.identity,
                    resource=None if event_type == "DELETED" else resource,
                )
                if stop_event is not None and stop_event.is_set():
                    break
        except ApiException as exc:
            if exc.status == _HTTP_GONE:
                resource_version = None
                continue
            raise FetchError("Deployment watch failed") from exc
        finally:
            watcher.stop()
