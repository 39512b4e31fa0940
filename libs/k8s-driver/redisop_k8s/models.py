"""Kubernetes resource models for the Redis operator."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class ClusterConfig(BaseModel):
    """Kubernetes API connection configuration."""

    kubeconfig_path: Optional[str] = None
    context: Optional[str] = None  # Specific context to use


class CustomResourceConfig(BaseModel):
    """Coordinates of the RedisSentinel custom resource."""

    group: str = "redis.xuan.io"
    version: str = "v1"
    plural: str = "redissentinels"
    kind: str = "RedisSentinel"


class ResourceSpec(BaseModel):
    """Kubernetes resource specification."""

    name: str
    namespace: str = "default"
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    owner_references: list[dict[str, Any]] = Field(default_factory=list)


class WorkloadSpec(ResourceSpec):
    """Pod-template based workload specification."""

    replicas: int = 1
    selector: dict[str, str] = Field(default_factory=dict)
    pod_labels: dict[str, str] = Field(default_factory=dict)
    pod_annotations: dict[str, str] = Field(default_factory=dict)
    container_name: str
    image: str
    command: Optional[list[str]] = None
    args: Optional[list[str]] = None
    env: dict[str, str] = Field(default_factory=dict)
    resources: dict[str, Any] = Field(default_factory=dict)
    ports: list[dict[str, Any]] = Field(default_factory=list)
    volumes: list[dict[str, Any]] = Field(default_factory=list)
    volume_mounts: list[dict[str, Any]] = Field(default_factory=list)


class DeploymentSpec(WorkloadSpec):
    """Deployment specification."""

    pass


class StatefulSetSpec(WorkloadSpec):
    """StatefulSet specification."""

    service_name: str


class ServiceSpec(ResourceSpec):
    """Service specification."""

    selector: dict[str, str] = Field(default_factory=dict)
    ports: list[dict[str, Any]] = Field(default_factory=list)
    headless: bool = False


class PodInfo(BaseModel):
    """The parts of a pod the operator cares about."""

    name: str
    namespace: str
    phase: Optional[str] = None
    pod_ip: Optional[str] = None
    ready: bool = False
    terminating: bool = False
    created_at: Optional[datetime] = None

    @property
    def serving(self) -> bool:
        """Running, not being deleted and reachable."""
        return self.phase == "Running" and not self.terminating and bool(self.pod_ip)
