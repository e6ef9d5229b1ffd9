"""Translate Kubernetes Deployment payloads into watched workloads."""

from __future__ import annotations

from typing import TYPE_CHECKING

from deploywatch.domain.model import Identity, WatchedResource

from .schema import DeploymentPayload

if TYPE_CHECKING:
    from collections.abc import Mapping


def parse_deployment(payload: Mapping[str, object] | DeploymentPayload) -> WatchedResource:
    deployment = (
        payload
        if isinstance(payload, DeploymentPayload)
        else DeploymentPayload.model_validate(payload)
    )
    metadata = deployment.metadata
    return WatchedResource(
        identity=Identity(namespace=metadata.namespace, name=metadata.name),
        generation=metadata.generation,
        desired_replicas=deployment.desired_replicas,
        ready_replicas=deployment.status.ready_replicas,
        observed_generation=deployment.status.observed_generation,
        deleting=metadata.deletion_timestamp is not None,
        labels=dict(metadata.labels),
        spec=dict(deployment.spec),
    )
