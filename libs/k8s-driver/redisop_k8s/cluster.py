"""Connection to the Kubernetes API server the operator runs against."""

import logging
from typing import Optional

from kubernetes import client, config
from kubernetes.client import ApiClient, AppsV1Api, CoreV1Api, CustomObjectsApi
from kubernetes.client.exceptions import ApiException

from .models import ClusterConfig

logger = logging.getLogger(__name__)


class ClusterConnection:
    """
    Typed API handles sharing one ApiClient.

    Loads the kubeconfig file when ``kubeconfig_path`` is set, otherwise the
    service account of the operator pod.
    """

    def __init__(self, cluster_config: Optional[ClusterConfig] = None):
        """
        Initialize cluster connection.

        Args:
            cluster_config: Connection configuration; in-cluster if omitted

        Raises:
            ValueError: If no usable configuration can be loaded
        """
        self.config = cluster_config or ClusterConfig()
        self._api_client: Optional[ApiClient] = None
        self._load_config()

    def _load_config(self) -> None:
        try:
            if self.config.kubeconfig_path:
                config.load_kube_config(
                    config_file=self.config.kubeconfig_path,
                    context=self.config.context,
                )
                logger.info(
                    f"Loaded kubeconfig {self.config.kubeconfig_path}"
                    f" (context: {self.config.context or 'current'})"
                )
            else:
                config.load_incluster_config()
                logger.info("Loaded in-cluster configuration")
        except Exception as e:
            raise ValueError(f"Failed to initialize cluster connection: {e}") from e

        self._api_client = ApiClient()
        self.core_v1 = CoreV1Api(self._api_client)
        self.apps_v1 = AppsV1Api(self._api_client)
        self.custom_objects = CustomObjectsApi(self._api_client)

    @property
    def api_client(self) -> ApiClient:
        if self._api_client is None:
            raise RuntimeError("Cluster connection is closed")
        return self._api_client

    def is_healthy(self) -> bool:
        """Return True if the API server answers."""
        try:
            self.core_v1.get_api_resources()
            return True
        except ApiException as e:
            logger.warning(f"API server health check failed: {e.status} {e.reason}")
            return False

    def server_version(self) -> str:
        """Git version of the API server, e.g. ``v1.29.2``."""
        return client.VersionApi(self.api_client).get_code().git_version

    def close(self) -> None:
        if self._api_client is not None:
            self._api_client.close()
            self._api_client = None

    def __enter__(self) -> "ClusterConnection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
