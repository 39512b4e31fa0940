"""Pod inventory of a RedisSentinel cluster."""

import asyncio
import logging

from kubernetes.client import V1Pod
from kubernetes.client.exceptions import ApiException

from redisop_topology import ProbeError, RedisSentinel, WorkloadReplica
from redisop_topology.models import LABEL_COMPONENT

from .cluster import ClusterConnection
from .deployments import DeploymentManager
from .models import PodInfo
from .statefulsets import StatefulSetManager

logger = logging.getLogger(__name__)

COMPONENT_REDIS = "redis"
COMPONENT_SENTINEL = "sentinel"


def redis_name(cluster: RedisSentinel) -> str:
    return f"redis-{cluster.name}"


def sentinel_name(cluster: RedisSentinel) -> str:
    return f"sentinel-{cluster.name}"


def component_selector(cluster: RedisSentinel, component: str) -> dict[str, str]:
    """Labels selecting the pods of one component of a cluster."""
    return {**cluster.selector_labels(), LABEL_COMPONENT: component}


def pod_info(pod: V1Pod) -> PodInfo:
    """Extract the fields the inventory needs from a pod."""
    status = pod.status
    ready = False
    if status and status.conditions:
        ready = any(c.type == "Ready" and c.status == "True" for c in status.conditions)
    return PodInfo(
        name=pod.metadata.name,
        namespace=pod.metadata.namespace,
        phase=status.phase if status else None,
        pod_ip=status.pod_ip if status else None,
        ready=ready,
        terminating=pod.metadata.deletion_timestamp is not None,
        created_at=pod.metadata.creation_timestamp,
    )


class PodInventory:
    """
    Workload inventory backed by the Kubernetes API.

    Replicas are the serving pods of the redis StatefulSet and the sentinel
    Deployment; ready counts come from the workload status. Blocking client
    calls run in worker threads.
    """

    def __init__(self, cluster: ClusterConnection):
        """
        Initialize pod inventory.

        Args:
            cluster: Cluster connection
        """
        self.cluster = cluster
        self.core_v1 = cluster.core_v1
        self.statefulsets = StatefulSetManager(cluster)
        self.deployments = DeploymentManager(cluster)

    def list_pods(self, namespace: str, labels: dict[str, str]) -> list[PodInfo]:
        """
        List pods matching labels.

        Args:
            namespace: Kubernetes namespace
            labels: Label selector dict

        Returns:
            PodInfo list sorted by pod name
        """
        label_selector = ",".join(f"{k}={v}" for k, v in labels.items())
        result = self.core_v1.list_namespaced_pod(
            namespace=namespace,
            label_selector=label_selector,
        )
        return sorted((pod_info(p) for p in result.items), key=lambda p: p.name)

    def _replicas(self, cluster: RedisSentinel, component: str) -> list[WorkloadReplica]:
        try:
            pods = self.list_pods(cluster.namespace, component_selector(cluster, component))
        except ApiException as e:
            raise ProbeError(str(cluster.key), f"list {component} pods: {e.reason}") from e

        replicas = [
            WorkloadReplica(name=p.name, address=p.pod_ip, created_at=p.created_at)
            for p in pods
            if p.serving
        ]
        logger.debug(
            f"Cluster {cluster.key}: {len(replicas)}/{len(pods)} {component} pods serving"
        )
        return replicas

    def _ready_counts(self, cluster: RedisSentinel) -> tuple[int, int]:
        try:
            return (
                self.statefulsets.ready_replicas(redis_name(cluster), cluster.namespace),
                self.deployments.ready_replicas(sentinel_name(cluster), cluster.namespace),
            )
        except Exception as e:
            raise ProbeError(str(cluster.key), f"read workload status: {e}") from e

    async def redis_replicas(self, cluster: RedisSentinel) -> list[WorkloadReplica]:
        return await asyncio.to_thread(self._replicas, cluster, COMPONENT_REDIS)

    async def sentinel_replicas(self, cluster: RedisSentinel) -> list[WorkloadReplica]:
        return await asyncio.to_thread(self._replicas, cluster, COMPONENT_SENTINEL)

    async def ready_counts(self, cluster: RedisSentinel) -> tuple[int, int]:
        return await asyncio.to_thread(self._ready_counts, cluster)
