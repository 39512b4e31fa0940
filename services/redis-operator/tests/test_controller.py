"""Tests for RedisSentinelController."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from redisop_topology import (
    ClusterKey,
    MultipleMastersError,
    PassOutcome,
    PassResult,
    TopologySnapshot,
)


def _obj(name: str, namespace: str = "default") -> dict:
    return {"metadata": {"namespace": namespace, "name": name}, "spec": {}}


class TestReconcile:
    """Test cases for a single reconciliation pass."""

    @pytest.mark.asyncio
    async def test_converged(self, controller, mock_resources, mock_engine, resource_obj):
        """Test that a converged cluster is due again after the interval."""
        mock_resources.get.return_value = resource_obj
        mock_engine.do.return_value = PassResult(
            PassOutcome.CONVERGED, snapshot=TopologySnapshot()
        )

        requeue_after = await controller.reconcile("default", "cache")

        assert requeue_after == 60
        cluster = mock_engine.do.call_args.args[0]
        assert cluster.name == "cache"
        assert cluster.uid == "9a7e31c0"
        assert cluster.spec.password == "s3cret"
        mock_resources.get.assert_called_once_with("cache", "default")

    @pytest.mark.asyncio
    async def test_converged_with_missing_sentinels(
        self, controller, mock_resources, mock_engine, resource_obj
    ):
        mock_resources.get.return_value = resource_obj
        mock_engine.do.return_value = PassResult(
            PassOutcome.CONVERGED, snapshot=TopologySnapshot(sentinel_replicas_ok=False)
        )

        assert await controller.reconcile("default", "cache") == 20

    @pytest.mark.asyncio
    async def test_retry(self, controller, mock_resources, mock_engine, resource_obj, registry):
        mock_resources.get.return_value = resource_obj
        mock_engine.do.return_value = PassResult(PassOutcome.RETRY, requeue_after=15)

        assert await controller.reconcile("default", "cache") == 15
        assert (
            registry.get_sample_value("redis_sentinel_reconcile_total", {"outcome": "retry"})
            == 1.0
        )

    @pytest.mark.asyncio
    async def test_fatal_error(self, controller, mock_resources, mock_engine, resource_obj):
        """Test that a fatal pass is retried on the regular interval."""
        mock_resources.get.return_value = resource_obj
        mock_engine.do.side_effect = MultipleMastersError(2)

        assert await controller.reconcile("default", "cache") == 60

    @pytest.mark.asyncio
    async def test_pass_timeout(
        self, controller, mock_resources, mock_engine, resource_obj, registry
    ):
        async def _hang(cluster):
            await asyncio.sleep(10)

        controller.settings.pass_timeout_seconds = 0.05
        mock_resources.get.return_value = resource_obj
        mock_engine.do.side_effect = _hang

        assert await controller.reconcile("default", "cache") == 60
        assert (
            registry.get_sample_value(
                "redis_sentinel_cluster_ok", {"namespace": "default", "name": "cache"}
            )
            == 0.0
        )

    @pytest.mark.asyncio
    async def test_deleted_resource(self, controller, mock_resources, mock_engine, metrics):
        """Test that a deleted resource drops its cached state and is not requeued."""
        mock_resources.get.return_value = None
        mock_engine.meta_cache.delete.return_value = True

        assert await controller.reconcile("default", "cache") is None

        mock_engine.meta_cache.delete.assert_called_once_with(ClusterKey("default", "cache"))
        mock_engine.do.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_spec(self, controller, mock_resources, mock_engine, registry):
        """Test that an invalid spec is reported without running a pass."""
        obj = _obj("cache")
        obj["spec"] = {"size": 2}
        mock_resources.get.return_value = obj

        assert await controller.reconcile("default", "cache") == 60

        mock_engine.do.assert_not_called()
        assert (
            registry.get_sample_value("redis_sentinel_reconcile_total", {"outcome": "invalid"})
            == 1.0
        )

    @pytest.mark.asyncio
    async def test_read_failure(self, controller, mock_resources, mock_engine):
        mock_resources.get.side_effect = RuntimeError("connection refused")

        assert await controller.reconcile("default", "cache") == 20
        mock_engine.do.assert_not_called()


class TestControlLoop:
    """Test cases for scheduling passes."""

    @staticmethod
    async def _drain(controller):
        await asyncio.gather(*list(controller._tasks))

    @pytest.mark.asyncio
    async def test_tick_schedules_listed_clusters(self, controller, mock_resources):
        mock_resources.list.return_value = [_obj("a"), _obj("b", "prod")]
        controller.reconcile = AsyncMock(return_value=60)

        await controller._tick()
        await self._drain(controller)

        assert controller.reconcile.await_count == 2
        controller.reconcile.assert_any_await("prod", "b")
        assert set(controller._due) == {ClusterKey("default", "a"), ClusterKey("prod", "b")}
        mock_resources.list.assert_called_with(None)

    @pytest.mark.asyncio
    async def test_not_due_is_skipped(self, controller, mock_resources):
        """Test that a cluster is not passed again before its requeue time."""
        mock_resources.list.return_value = [_obj("a")]
        controller.reconcile = AsyncMock(return_value=60)

        await controller._tick()
        await self._drain(controller)
        await controller._tick()
        await self._drain(controller)

        assert controller.reconcile.await_count == 1

    @pytest.mark.asyncio
    async def test_in_flight_is_skipped(self, controller, mock_resources):
        """Test that a cluster never has two passes at once."""
        mock_resources.list.return_value = [_obj("a")]
        controller.reconcile = AsyncMock(return_value=60)
        controller._in_flight.add(ClusterKey("default", "a"))

        await controller._tick()

        assert controller._tasks == set()
        controller.reconcile.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_deleted_cluster_cleaned_up(self, controller, mock_resources):
        controller._due[ClusterKey("default", "gone")] = 10**9
        controller.reconcile = AsyncMock(return_value=None)

        await controller._tick()
        await self._drain(controller)

        controller.reconcile.assert_awaited_once_with("default", "gone")
        assert controller._due == {}

    @pytest.mark.asyncio
    async def test_unexpected_error_requeues(self, controller, mock_resources):
        mock_resources.list.return_value = [_obj("a")]
        controller.reconcile = AsyncMock(side_effect=RuntimeError("boom"))

        await controller._tick()
        await self._drain(controller)

        assert ClusterKey("default", "a") in controller._due
        assert controller._in_flight == set()

    @pytest.mark.asyncio
    async def test_watch_namespace(self, controller, mock_resources):
        controller.settings.watch_namespace = "prod"

        await controller._tick()

        mock_resources.list.assert_called_once_with("prod")

    @pytest.mark.asyncio
    async def test_start_stop(self, controller, mock_resources):
        await controller.start()
        await asyncio.sleep(0.05)
        await controller.stop()

        assert mock_resources.list.called
        assert controller._loop_task is None
