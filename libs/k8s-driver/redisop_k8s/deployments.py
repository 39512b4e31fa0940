"""Kubernetes Deployment operations."""

import logging
from typing import Optional

from kubernetes.client import V1Deployment, V1DeploymentSpec, V1LabelSelector
from kubernetes.client.exceptions import ApiException
from tenacity import retry, stop_after_attempt, wait_exponential

from .cluster import ClusterConnection
from .models import DeploymentSpec
from .workloads import build_metadata, build_pod_template

logger = logging.getLogger(__name__)


class DeploymentManager:
    """Manages Kubernetes Deployment operations."""

    def __init__(self, cluster: ClusterConnection):
        """
        Initialize deployment manager.

        Args:
            cluster: Cluster connection
        """
        self.cluster = cluster
        self.apps_v1 = cluster.apps_v1

    def build(self, spec: DeploymentSpec) -> V1Deployment:
        return V1Deployment(
            api_version="apps/v1",
            kind="Deployment",
            metadata=build_metadata(spec),
            spec=V1DeploymentSpec(
                replicas=spec.replicas,
                selector=V1LabelSelector(match_labels=spec.selector),
                template=build_pod_template(spec),
            ),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
    )
    def get(self, name: str, namespace: str = "default") -> Optional[V1Deployment]:
        """
        Get a deployment.

        Args:
            name: Deployment name
            namespace: Kubernetes namespace

        Returns:
            V1Deployment or None if not found
        """
        try:
            return self.apps_v1.read_namespaced_deployment(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
    )
    def apply(self, spec: DeploymentSpec) -> V1Deployment:
        """
        Create the deployment, or replace it if it already exists.

        Args:
            spec: Deployment specification

        Returns:
            Created or replaced V1Deployment

        Raises:
            ApiException: If the API call fails
        """
        desired = self.build(spec)
        existing = self.get(spec.name, spec.namespace)
        if existing is None:
            logger.info(f"Creating deployment {spec.namespace}/{spec.name}")
            return self.apps_v1.create_namespaced_deployment(
                namespace=spec.namespace,
                body=desired,
            )

        desired.metadata.resource_version = existing.metadata.resource_version
        return self.apps_v1.replace_namespaced_deployment(
            name=spec.name,
            namespace=spec.namespace,
            body=desired,
        )

    def ready_replicas(self, name: str, namespace: str = "default") -> int:
        deployment = self.get(name, namespace)
        if deployment is None or deployment.status is None:
            return 0
        return deployment.status.ready_replicas or 0
