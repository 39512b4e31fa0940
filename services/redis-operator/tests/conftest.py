"""Pytest fixtures for the Redis Sentinel Operator."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from prometheus_client import CollectorRegistry

from app.config import Settings
from app.controller import RedisSentinelController
from app.metrics import ClusterMetrics


@pytest.fixture
def settings():
    """Settings with short intervals."""
    return Settings(
        reconcile_interval_seconds=60,
        requeue_delay_seconds=20,
        pass_timeout_seconds=1,
        tick_interval_seconds=0.01,
        max_concurrent_reconciles=2,
    )


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    """Metrics on an isolated registry."""
    return ClusterMetrics(registry=registry)


@pytest.fixture
def mock_resources():
    """Mock RedisSentinel custom object client."""
    resources = MagicMock()
    resources.list.return_value = []
    return resources


@pytest.fixture
def mock_engine():
    """Mock reconciliation engine."""
    engine = MagicMock()
    engine.do = AsyncMock()
    return engine


@pytest.fixture
def controller(settings, mock_resources, mock_engine, metrics):
    return RedisSentinelController(
        settings=settings,
        resources=mock_resources,
        engine=mock_engine,
        metrics=metrics,
    )


@pytest.fixture
def resource_obj():
    """A RedisSentinel custom object as returned by the API."""
    return {
        "apiVersion": "redis.xuan.io/v1",
        "kind": "RedisSentinel",
        "metadata": {"namespace": "default", "name": "cache", "uid": "9a7e31c0"},
        "spec": {"size": 3, "password": "s3cret"},
    }
