"""Redis Sentinel Controller - periodic reconciliation of RedisSentinel resources."""

import asyncio
import logging
from typing import Any, Optional

from pydantic import ValidationError
from redisop_k8s import RedisSentinelClient
from redisop_topology import (
    ClusterKey,
    ClusterMetaCache,
    PassOutcome,
    ReconciliationEngine,
    RedisSentinel,
    TopologyError,
)

from .config import Settings
from .metrics import ClusterMetrics

logger = logging.getLogger(__name__)


def resource_key(obj: dict[str, Any]) -> ClusterKey:
    """Identity of a custom object as returned by the API."""
    metadata = obj.get("metadata", {})
    return ClusterKey(metadata.get("namespace", "default"), metadata.get("name", ""))


class RedisSentinelController:
    """
    Redis Sentinel Controller schedules reconciliation passes.

    Responsibilities:
    - List RedisSentinel resources on every tick
    - Run a pass for every cluster that is due, at most one per cluster at a time
    - Reschedule each cluster from the outcome of its last pass
    - Drop cached state and metrics of deleted clusters
    """

    def __init__(
        self,
        settings: Settings,
        resources: RedisSentinelClient,
        engine: ReconciliationEngine,
        metrics: ClusterMetrics,
        meta_cache: Optional[ClusterMetaCache] = None,
    ):
        """
        Initialize controller.

        Args:
            settings: Application settings
            resources: Client for RedisSentinel custom objects
            engine: Reconciliation engine
            metrics: Operator metrics
            meta_cache: Meta cache shared with the engine
        """
        self.settings = settings
        self.resources = resources
        self.engine = engine
        self.metrics = metrics
        self.meta_cache = meta_cache if meta_cache is not None else engine.meta_cache
        self._running = False

        # Next due time per cluster, on the event loop clock
        self._due: dict[ClusterKey, float] = {}
        self._in_flight: set[ClusterKey] = set()
        self._semaphore = asyncio.Semaphore(settings.max_concurrent_reconciles)
        self._tasks: set[asyncio.Task] = set()
        self._loop_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the control loop."""
        if self._running:
            logger.warning("Redis Sentinel controller already running")
            return

        self._running = True
        self._loop_task = asyncio.create_task(self._control_loop())
        logger.info("Redis Sentinel controller started")

    async def stop(self) -> None:
        """Stop the control loop and cancel running passes."""
        logger.info("Stopping Redis Sentinel controller...")
        self._running = False

        tasks = list(self._tasks)
        if self._loop_task:
            tasks.append(self._loop_task)
        for task in tasks:
            task.cancel()

        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._loop_task = None

        logger.info("Redis Sentinel controller stopped")

    async def reconcile(self, namespace: str, name: str) -> Optional[float]:
        """
        Run one pass for a cluster.

        Args:
            namespace: Resource namespace
            name: Resource name

        Returns:
            Seconds until the cluster is due again, or None if it is gone
        """
        key = ClusterKey(namespace, name)

        try:
            obj = await asyncio.to_thread(self.resources.get, name, namespace)
        except Exception as e:
            logger.warning(f"Cluster {key}: failed to read resource: {e}")
            self.metrics.record_outcome("error")
            return self.settings.requeue_delay_seconds

        if obj is None:
            logger.info(f"Cluster {key} not found, dropping cached state")
            self.meta_cache.delete(key)
            self.metrics.remove(namespace, name)
            return None

        try:
            cluster = RedisSentinel.from_resource(obj)
        except ValidationError as e:
            logger.error(f"Cluster {key}: invalid spec: {e}")
            self.metrics.set_cluster_error(namespace, name)
            self.metrics.record_outcome("invalid")
            return self.settings.reconcile_interval_seconds

        try:
            result = await asyncio.wait_for(
                self.engine.do(cluster), timeout=self.settings.pass_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Cluster {key}: pass timed out after {self.settings.pass_timeout_seconds:.0f}s"
            )
            self.metrics.set_cluster_error(namespace, name)
            self.metrics.record_outcome("timeout")
            return self.settings.reconcile_interval_seconds
        except TopologyError as e:
            logger.error(f"Cluster {key}: pass failed: {e}")
            self.metrics.record_outcome("failed")
            return self.settings.reconcile_interval_seconds

        self.metrics.record_outcome(result.outcome.value)

        if result.outcome == PassOutcome.RETRY:
            return result.requeue_after or self.settings.requeue_delay_seconds

        if result.snapshot is not None and not result.snapshot.sentinel_replicas_ok:
            logger.info(f"Cluster {key}: sentinels not all ready, checking again soon")
            return self.settings.requeue_delay_seconds

        return self.settings.reconcile_interval_seconds

    async def _control_loop(self) -> None:
        """Tick until stopped."""
        logger.info("Starting control loop...")

        try:
            while self._running:
                try:
                    await self._tick()
                except Exception as e:
                    logger.error(f"Error in control loop: {e}", exc_info=True)

                await asyncio.sleep(self.settings.tick_interval_seconds)
        except asyncio.CancelledError:
            logger.info("Control loop cancelled")

    async def _tick(self) -> None:
        """List resources and start a pass for every cluster that is due."""
        namespace = self.settings.watch_namespace or None
        objs = await asyncio.to_thread(self.resources.list, namespace)

        now = asyncio.get_running_loop().time()
        listed = {resource_key(obj) for obj in objs}

        for key in listed:
            self._due.setdefault(key, now)

        # Clusters that disappeared get one more pass to clean up
        for key in self._due:
            if key not in listed:
                self._due[key] = min(self._due[key], now)

        for key, due in list(self._due.items()):
            if due <= now and key not in self._in_flight:
                self._schedule(key)

    def _schedule(self, key: ClusterKey) -> None:
        self._in_flight.add(key)
        task = asyncio.create_task(self._run_pass(key))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_pass(self, key: ClusterKey) -> None:
        """Run a pass under the concurrency limit and record when it is next due."""
        try:
            async with self._semaphore:
                requeue_after = await self.reconcile(key.namespace, key.name)
        except Exception as e:
            logger.error(f"Cluster {key}: unexpected error: {e}", exc_info=True)
            requeue_after = self.settings.requeue_delay_seconds
        finally:
            self._in_flight.discard(key)

        if requeue_after is None:
            self._due.pop(key, None)
        else:
            self._due[key] = asyncio.get_running_loop().time() + requeue_after
            logger.debug(f"Cluster {key} due again in {requeue_after:.0f}s")
