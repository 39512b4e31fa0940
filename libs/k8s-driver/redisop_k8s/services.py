"""Kubernetes Service operations."""

import logging
from typing import Optional

from kubernetes.client import V1Service, V1ServicePort, V1ServiceSpec
from kubernetes.client.exceptions import ApiException
from tenacity import retry, stop_after_attempt, wait_exponential

from .cluster import ClusterConnection
from .models import ServiceSpec
from .workloads import build_metadata

logger = logging.getLogger(__name__)


class ServiceManager:
    """Manages Kubernetes Service operations."""

    def __init__(self, cluster: ClusterConnection):
        self.cluster = cluster
        self.core_v1 = cluster.core_v1

    def build(self, spec: ServiceSpec) -> V1Service:
        return V1Service(
            api_version="v1",
            kind="Service",
            metadata=build_metadata(spec),
            spec=V1ServiceSpec(
                selector=spec.selector,
                ports=[V1ServicePort(**port) for port in spec.ports],
                cluster_ip="None" if spec.headless else None,
            ),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
    )
    def get(self, name: str, namespace: str = "default") -> Optional[V1Service]:
        try:
            return self.core_v1.read_namespaced_service(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
    )
    def ensure(self, spec: ServiceSpec) -> V1Service:
        """
        Create the service if it does not exist.

        Services are left alone once created; their cluster IP is immutable.

        Args:
            spec: Service specification

        Returns:
            Existing or created V1Service
        """
        existing = self.get(spec.name, spec.namespace)
        if existing is not None:
            return existing

        logger.info(f"Creating service {spec.namespace}/{spec.name}")
        return self.core_v1.create_namespaced_service(
            namespace=spec.namespace,
            body=self.build(spec),
        )
