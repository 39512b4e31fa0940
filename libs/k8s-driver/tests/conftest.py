"""Pytest configuration and fixtures for K8s driver tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, Mock

import pytest
from kubernetes import client

from redisop_topology import ClusterSpec, RedisSentinel

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def mock_cluster_connection():
    """Mock cluster connection for testing."""
    mock_conn = MagicMock()
    mock_conn.core_v1 = MagicMock(spec=client.CoreV1Api)
    mock_conn.apps_v1 = MagicMock(spec=client.AppsV1Api)
    mock_conn.custom_objects = MagicMock(spec=client.CustomObjectsApi)
    return mock_conn


@pytest.fixture
def redis_sentinel():
    """Sample RedisSentinel resource."""
    return RedisSentinel(
        namespace="default",
        name="cache",
        uid="5f0c8e2a",
        labels={"team": "payments"},
        spec=ClusterSpec(size=3, password="s3cret"),
    )


@pytest.fixture
def make_pod():
    """Build a V1Pod."""

    def _make(
        name: str,
        ip: str = None,
        phase: str = "Running",
        ready: bool = True,
        offset: int = 0,
        terminating: bool = False,
    ) -> client.V1Pod:
        return client.V1Pod(
            metadata=client.V1ObjectMeta(
                name=name,
                namespace="default",
                creation_timestamp=BASE_TIME + timedelta(seconds=offset),
                deletion_timestamp=BASE_TIME if terminating else None,
            ),
            status=client.V1PodStatus(
                phase=phase,
                pod_ip=ip,
                conditions=[
                    client.V1PodCondition(type="Ready", status="True" if ready else "False")
                ],
            ),
        )

    return _make


@pytest.fixture
def mock_k8s_statefulset():
    """Mock Kubernetes StatefulSet object."""
    statefulset = Mock(spec=client.V1StatefulSet)
    statefulset.metadata = Mock()
    statefulset.metadata.name = "redis-cache"
    statefulset.metadata.namespace = "default"
    statefulset.metadata.resource_version = "4711"

    statefulset.spec = Mock()
    statefulset.spec.replicas = 3

    statefulset.status = Mock()
    statefulset.status.replicas = 3
    statefulset.status.ready_replicas = 2
    return statefulset


@pytest.fixture
def mock_k8s_deployment():
    """Mock Kubernetes Deployment object."""
    deployment = Mock(spec=client.V1Deployment)
    deployment.metadata = Mock()
    deployment.metadata.name = "sentinel-cache"
    deployment.metadata.namespace = "default"
    deployment.metadata.resource_version = "815"

    deployment.spec = Mock()
    deployment.spec.replicas = 3

    deployment.status = Mock()
    deployment.status.replicas = 3
    deployment.status.ready_replicas = 3
    return deployment
