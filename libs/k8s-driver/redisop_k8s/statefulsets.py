"""Kubernetes StatefulSet operations."""

import logging
from typing import Optional

from kubernetes.client import V1LabelSelector, V1StatefulSet, V1StatefulSetSpec
from kubernetes.client.exceptions import ApiException
from tenacity import retry, stop_after_attempt, wait_exponential

from .cluster import ClusterConnection
from .models import StatefulSetSpec
from .workloads import build_metadata, build_pod_template

logger = logging.getLogger(__name__)


class StatefulSetManager:
    """Manages Kubernetes StatefulSet operations."""

    def __init__(self, cluster: ClusterConnection):
        """
        Initialize statefulset manager.

        Args:
            cluster: Cluster connection
        """
        self.cluster = cluster
        self.apps_v1 = cluster.apps_v1

    def build(self, spec: StatefulSetSpec) -> V1StatefulSet:
        """
        Build the desired statefulset object.

        Args:
            spec: StatefulSet specification

        Returns:
            V1StatefulSet
        """
        return V1StatefulSet(
            api_version="apps/v1",
            kind="StatefulSet",
            metadata=build_metadata(spec),
            spec=V1StatefulSetSpec(
                replicas=spec.replicas,
                service_name=spec.service_name,
                selector=V1LabelSelector(match_labels=spec.selector),
                template=build_pod_template(spec),
                pod_management_policy="Parallel",
            ),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
    )
    def get(self, name: str, namespace: str = "default") -> Optional[V1StatefulSet]:
        """
        Get a statefulset.

        Args:
            name: StatefulSet name
            namespace: Kubernetes namespace

        Returns:
            V1StatefulSet or None if not found
        """
        try:
            return self.apps_v1.read_namespaced_stateful_set(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
    )
    def apply(self, spec: StatefulSetSpec) -> V1StatefulSet:
        """
        Create the statefulset, or replace it if it already exists.

        Args:
            spec: StatefulSet specification

        Returns:
            Created or replaced V1StatefulSet

        Raises:
            ApiException: If the API call fails
        """
        desired = self.build(spec)
        existing = self.get(spec.name, spec.namespace)
        if existing is None:
            logger.info(f"Creating statefulset {spec.namespace}/{spec.name}")
            return self.apps_v1.create_namespaced_stateful_set(
                namespace=spec.namespace,
                body=desired,
            )

        desired.metadata.resource_version = existing.metadata.resource_version
        return self.apps_v1.replace_namespaced_stateful_set(
            name=spec.name,
            namespace=spec.namespace,
            body=desired,
        )

    def ready_replicas(self, name: str, namespace: str = "default") -> int:
        """
        Number of ready pods of a statefulset.

        Returns:
            Ready replica count, 0 if the statefulset does not exist
        """
        statefulset = self.get(name, namespace)
        if statefulset is None or statefulset.status is None:
            return 0
        return statefulset.status.ready_replicas or 0
