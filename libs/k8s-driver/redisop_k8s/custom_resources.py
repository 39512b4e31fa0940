"""RedisSentinel custom resource access."""

import asyncio
import logging
from typing import Any, Optional

from kubernetes.client.exceptions import ApiException
from tenacity import retry, stop_after_attempt, wait_exponential

from redisop_topology import RedisSentinel

from .cluster import ClusterConnection
from .models import CustomResourceConfig

logger = logging.getLogger(__name__)


class RedisSentinelClient:
    """Reads RedisSentinel objects and persists their status."""

    def __init__(
        self,
        cluster: ClusterConnection,
        resource: Optional[CustomResourceConfig] = None,
    ):
        """
        Initialize custom resource client.

        Args:
            cluster: Cluster connection
            resource: Custom resource coordinates
        """
        self.cluster = cluster
        self.custom_objects = cluster.custom_objects
        self.resource = resource or CustomResourceConfig()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
    )
    def get(self, name: str, namespace: str = "default") -> Optional[dict[str, Any]]:
        """
        Get a RedisSentinel object.

        Args:
            name: Object name
            namespace: Kubernetes namespace

        Returns:
            Raw custom object dict or None if not found
        """
        try:
            return self.custom_objects.get_namespaced_custom_object(
                group=self.resource.group,
                version=self.resource.version,
                namespace=namespace,
                plural=self.resource.plural,
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
    )
    def list(self, namespace: Optional[str] = None) -> list[dict[str, Any]]:
        """
        List RedisSentinel objects.

        Args:
            namespace: Kubernetes namespace, all namespaces if empty

        Returns:
            List of raw custom object dicts
        """
        if namespace:
            result = self.custom_objects.list_namespaced_custom_object(
                group=self.resource.group,
                version=self.resource.version,
                namespace=namespace,
                plural=self.resource.plural,
            )
        else:
            result = self.custom_objects.list_cluster_custom_object(
                group=self.resource.group,
                version=self.resource.version,
                plural=self.resource.plural,
            )
        return result.get("items", [])

    def patch_status(self, obj: RedisSentinel) -> None:
        self.custom_objects.patch_namespaced_custom_object_status(
            group=self.resource.group,
            version=self.resource.version,
            namespace=obj.namespace,
            plural=self.resource.plural,
            name=obj.name,
            body={"status": obj.status.to_dict()},
        )

    async def update_status(self, obj: RedisSentinel) -> bool:
        """
        Persist the in-memory status of a cluster.

        Returns:
            True if persisted, False otherwise; the next pass writes it again
        """
        try:
            await asyncio.to_thread(self.patch_status, obj)
            return True
        except ApiException as e:
            logger.error(f"Failed to update status of {obj.key}: {e.status} {e.reason}")
            return False
