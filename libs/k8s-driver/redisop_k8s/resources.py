"""Workload resources backing a RedisSentinel cluster."""

import asyncio
import logging
from typing import Any

from redisop_topology import RedisSentinel, ResourceError
from redisop_topology.client import DEFAULT_REDIS_PORT, DEFAULT_SENTINEL_PORT

from .cluster import ClusterConnection
from .deployments import DeploymentManager
from .models import DeploymentSpec, ServiceSpec, StatefulSetSpec
from .pods import (
    COMPONENT_REDIS,
    COMPONENT_SENTINEL,
    component_selector,
    redis_name,
    sentinel_name,
)
from .services import ServiceManager
from .statefulsets import StatefulSetManager

logger = logging.getLogger(__name__)

DATA_DIR = "/data"
PASSWORD_ENV = "REDIS_PASSWORD"
# Unreachable replication source; new pods report role slave until a master is elected
PLACEHOLDER_MASTER = "127.0.0.1"


def redis_command(port: int) -> list[str]:
    """Start redis-server as a replica of a placeholder, adding auth when a password is set."""
    args = f"--port {port} --dir {DATA_DIR} --slaveof {PLACEHOLDER_MASTER} {port}"
    script = (
        f'if [ -n "${PASSWORD_ENV}" ]; then '
        f'exec redis-server {args} '
        f'--requirepass "${PASSWORD_ENV}" --masterauth "${PASSWORD_ENV}"; '
        f"else exec redis-server {args}; fi"
    )
    return ["sh", "-c", script]


def sentinel_command(port: int) -> list[str]:
    """Write a minimal writable sentinel.conf, then start redis in sentinel mode."""
    conf = f"{DATA_DIR}/sentinel.conf"
    script = (
        f'echo "port {port}" > {conf}; '
        f'if [ -n "${PASSWORD_ENV}" ]; then echo "requirepass ${PASSWORD_ENV}" >> {conf}; fi; '
        f"exec redis-server {conf} --sentinel"
    )
    return ["sh", "-c", script]


class WorkloadResourceManager:
    """
    Creates or updates the Kubernetes objects of a cluster.

    - headless Service and StatefulSet ``redis-<name>``
    - Service and Deployment ``sentinel-<name>``
    """

    def __init__(
        self,
        cluster: ClusterConnection,
        redis_port: int = DEFAULT_REDIS_PORT,
        sentinel_port: int = DEFAULT_SENTINEL_PORT,
    ):
        """
        Initialize resource manager.

        Args:
            cluster: Cluster connection
            redis_port: Port redis-server listens on
            sentinel_port: Port sentinels listen on
        """
        self.cluster = cluster
        self.redis_port = redis_port
        self.sentinel_port = sentinel_port
        self.statefulsets = StatefulSetManager(cluster)
        self.deployments = DeploymentManager(cluster)
        self.services = ServiceManager(cluster)

    def _env(self, obj: RedisSentinel) -> dict[str, str]:
        return {PASSWORD_ENV: obj.spec.password} if obj.spec.password else {}

    def redis_statefulset_spec(
        self,
        obj: RedisSentinel,
        labels: dict[str, str],
        owner_refs: list[dict[str, Any]],
    ) -> StatefulSetSpec:
        spec = obj.spec
        return StatefulSetSpec(
            name=redis_name(obj),
            namespace=obj.namespace,
            labels={**labels, **component_selector(obj, COMPONENT_REDIS)},
            owner_references=owner_refs,
            replicas=spec.size,
            service_name=redis_name(obj),
            selector=component_selector(obj, COMPONENT_REDIS),
            pod_labels=labels,
            pod_annotations=spec.annotations,
            container_name="redis",
            image=spec.image,
            command=spec.command or redis_command(self.redis_port),
            env=self._env(obj),
            resources=spec.resources,
            ports=[{"name": "redis", "container_port": self.redis_port}],
            volumes=[{"name": "data", "empty_dir": {}}],
            volume_mounts=[{"name": "data", "mount_path": DATA_DIR}],
        )

    def sentinel_deployment_spec(
        self,
        obj: RedisSentinel,
        labels: dict[str, str],
        owner_refs: list[dict[str, Any]],
    ) -> DeploymentSpec:
        sentinel = obj.spec.sentinel
        return DeploymentSpec(
            name=sentinel_name(obj),
            namespace=obj.namespace,
            labels={**labels, **component_selector(obj, COMPONENT_SENTINEL)},
            owner_references=owner_refs,
            replicas=sentinel.replicas,
            selector=component_selector(obj, COMPONENT_SENTINEL),
            pod_labels=labels,
            container_name="sentinel",
            image=sentinel.image,
            command=sentinel.command or sentinel_command(self.sentinel_port),
            env=self._env(obj),
            resources=sentinel.resources,
            ports=[{"name": "sentinel", "container_port": self.sentinel_port}],
            volumes=[{"name": "data", "empty_dir": {}}],
            volume_mounts=[{"name": "data", "mount_path": DATA_DIR}],
        )

    def service_specs(
        self,
        obj: RedisSentinel,
        labels: dict[str, str],
        owner_refs: list[dict[str, Any]],
    ) -> list[ServiceSpec]:
        return [
            ServiceSpec(
                name=redis_name(obj),
                namespace=obj.namespace,
                labels={**labels, **component_selector(obj, COMPONENT_REDIS)},
                owner_references=owner_refs,
                selector=component_selector(obj, COMPONENT_REDIS),
                ports=[{"name": "redis", "port": self.redis_port}],
                headless=True,
            ),
            ServiceSpec(
                name=sentinel_name(obj),
                namespace=obj.namespace,
                labels={**labels, **component_selector(obj, COMPONENT_SENTINEL)},
                owner_references=owner_refs,
                selector=component_selector(obj, COMPONENT_SENTINEL),
                ports=[{"name": "sentinel", "port": self.sentinel_port}],
            ),
        ]

    def _ensure(
        self,
        obj: RedisSentinel,
        labels: dict[str, str],
        owner_refs: list[dict[str, Any]],
    ) -> None:
        for service in self.service_specs(obj, labels, owner_refs):
            self.services.ensure(service)
        self.statefulsets.apply(self.redis_statefulset_spec(obj, labels, owner_refs))
        self.deployments.apply(self.sentinel_deployment_spec(obj, labels, owner_refs))

    async def ensure_resources(
        self,
        cluster: RedisSentinel,
        labels: dict[str, str],
        owner_refs: list[dict[str, Any]],
    ) -> None:
        """
        Make sure every workload object of the cluster exists and is current.

        Args:
            cluster: Cluster resource
            labels: Labels for every object
            owner_refs: Owner references for every object

        Raises:
            ResourceError: If any object cannot be created or updated
        """
        try:
            await asyncio.to_thread(self._ensure, cluster, labels, owner_refs)
        except Exception as e:
            raise ResourceError(f"ensure resources for {cluster.key}: {e}") from e
