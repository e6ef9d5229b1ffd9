"""Pydantic models describing the Deployment fields the reconciler reads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class KubernetesBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ObjectMetadata(KubernetesBaseModel):
    name: str
    namespace: str = "default"
    generation: int = 0
    labels: dict[str, str] = Field(default_factory=dict[str, str])
    resource_version: str | None = Field(default=None, alias="resourceVersion")
    deletion_timestamp: datetime | None = Field(default=None, alias="deletionTimestamp")

    @field_validator("labels", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return {} if value is None else value


class DeploymentStatus(KubernetesBaseModel):
    observed_generation: int = Field(default=0, alias="observedGeneration")
    ready_replicas: int = Field(default=0, alias="readyReplicas")

    @field_validator("observed_generation", "ready_replicas", mode="before")
    @classmethod
    def _none_to_zero(cls, value: object) -> object:
        return 0 if value is None else value


class DeploymentPayload(KubernetesBaseModel):
    metadata: ObjectMetadata
    spec: dict[str, Any] = Field(default_factory=dict[str, Any])
    status: DeploymentStatus = Field(default_factory=DeploymentStatus)

    @field_validator("spec", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return {} if value is None else value

    @field_validator("status", mode="before")
    @classmethod
    def _none_status(cls, value: object) -> object:
        return {} if value is None else value

    @property
    def desired_replicas(self) -> int:
        # The API server defaults an omitted replica count to 1.
        replicas = self.spec.get("replicas")
        return 1 if replicas is None else int(replicas)
