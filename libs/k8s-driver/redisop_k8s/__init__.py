"""Redis Operator Kubernetes Driver - Kubernetes collaborators for the topology engine."""

from .cluster import ClusterConnection
from .custom_resources import RedisSentinelClient
from .deployments import DeploymentManager
from .events import EventRecorder
from .models import (
    ClusterConfig,
    CustomResourceConfig,
    DeploymentSpec,
    PodInfo,
    ResourceSpec,
    ServiceSpec,
    StatefulSetSpec,
    WorkloadSpec,
)
from .pods import PodInventory
from .resources import WorkloadResourceManager
from .services import ServiceManager
from .statefulsets import StatefulSetManager

__version__ = "0.1.0"

__all__ = [
    # Cluster connection
    "ClusterConnection",
    # Resource managers
    "DeploymentManager",
    "StatefulSetManager",
    "ServiceManager",
    "WorkloadResourceManager",
    # Engine collaborators
    "PodInventory",
    "EventRecorder",
    "RedisSentinelClient",
    # Models
    "ClusterConfig",
    "CustomResourceConfig",
    "ResourceSpec",
    "WorkloadSpec",
    "DeploymentSpec",
    "StatefulSetSpec",
    "ServiceSpec",
    "PodInfo",
]
