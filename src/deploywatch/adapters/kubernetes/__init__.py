"""Public interface for the Kubernetes adapter."""

from __future__ import annotations

from .schema import DeploymentPayload
from .source import KubernetesWorkloadReader, watch_deployments
from .translator import parse_deployment

__all__ = [
    "DeploymentPayload",
    "KubernetesWorkloadReader",
    "parse_deployment",
    "watch_deployments",
]
