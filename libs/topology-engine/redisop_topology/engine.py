"""
Reconciliation engine.

One pass checks a cluster step by step and issues the corrective action
for every check that fails. Steps run strictly in order; node-level calls
within a step run concurrently and all finish before the next step starts.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

from .cache import ClusterMetaCache, Meta, TransitionPhase
from .errors import (
    MultipleMastersError,
    NeedRequeueError,
    ProbeError,
    ResourceError,
    SentinelRestoreTimeout,
)
from .healer import TopologyHealer
from .models import AuthConfig, RedisSentinel, TopologySnapshot
from .observer import TopologyObserver
from .status import ConditionType
from .utils import gather_all

logger = logging.getLogger(__name__)

DEFAULT_REQUEUE_DELAY = 20.0
DEFAULT_RESTORE_CHECK_INTERVAL = 5.0
DEFAULT_RESTORE_TIMEOUT = 30.0

USER_REMOVED_MESSAGE = "redis server or sentinel server be removed by user, restart"


class ResourceManager(Protocol):
    async def ensure_resources(
        self,
        cluster: RedisSentinel,
        labels: dict[str, str],
        owner_refs: list[dict[str, Any]],
    ) -> None: ...


class EventSink(Protocol):
    """Named, fire-and-forget notifications about a cluster."""

    async def create_cluster(self, cluster: RedisSentinel) -> None: ...

    async def new_slave_add(self, cluster: RedisSentinel, message: str) -> None: ...

    async def slave_remove(self, cluster: RedisSentinel, message: str) -> None: ...

    async def update_cluster(self, cluster: RedisSentinel, message: str) -> None: ...

    async def upgraded_cluster(self, cluster: RedisSentinel, message: str) -> None: ...

    async def ensure_cluster(self, cluster: RedisSentinel) -> None: ...

    async def check_cluster(self, cluster: RedisSentinel) -> None: ...

    async def failed_cluster(self, cluster: RedisSentinel, message: str) -> None: ...

    async def health_cluster(self, cluster: RedisSentinel) -> None: ...


class MetricsSink(Protocol):
    def set_cluster_ok(self, namespace: str, name: str) -> None: ...

    def set_cluster_error(self, namespace: str, name: str) -> None: ...


class StatusWriter(Protocol):
    async def update_status(self, cluster: RedisSentinel) -> None: ...


class PassOutcome(str, Enum):
    """Result of a pass that did not raise."""

    CONVERGED = "converged"
    RETRY = "retry"


@dataclass
class PassResult:
    outcome: PassOutcome
    requeue_after: Optional[float] = None
    snapshot: Optional[TopologySnapshot] = None
    reason: str = ""

    @property
    def converged(self) -> bool:
        return self.outcome == PassOutcome.CONVERGED


class ReconciliationEngine:
    """
    Drives one cluster towards its desired Redis/Sentinel topology.

    The engine holds no per-pass state of its own; passes for different
    clusters can run concurrently on the same instance.
    """

    def __init__(
        self,
        observer: TopologyObserver,
        healer: TopologyHealer,
        resources: ResourceManager,
        events: EventSink,
        metrics: MetricsSink,
        status_writer: StatusWriter,
        meta_cache: Optional[ClusterMetaCache] = None,
        requeue_delay: float = DEFAULT_REQUEUE_DELAY,
        restore_check_interval: float = DEFAULT_RESTORE_CHECK_INTERVAL,
        restore_timeout: float = DEFAULT_RESTORE_TIMEOUT,
    ):
        """
        Initialize engine.

        Args:
            observer: Read capability over the cluster
            healer: Write capability over the cluster
            resources: Workload resource manager
            events: Notification sink
            metrics: Per-cluster health metrics sink
            status_writer: Persists the in-memory cluster status
            meta_cache: Shared per-cluster meta cache
            requeue_delay: Seconds before a retried pass runs again
            restore_check_interval: Poll interval while a sentinel rediscovers slaves
            restore_timeout: Upper bound on that wait
        """
        self.observer = observer
        self.healer = healer
        self.resources = resources
        self.events = events
        self.metrics = metrics
        self.status_writer = status_writer
        self.meta_cache = meta_cache if meta_cache is not None else ClusterMetaCache()
        self.requeue_delay = requeue_delay
        self.restore_check_interval = restore_check_interval
        self.restore_timeout = restore_timeout

    async def do(self, cluster: RedisSentinel) -> PassResult:
        """
        Run one full reconciliation pass.

        Args:
            cluster: Cluster resource with a validated, defaulted spec

        Returns:
            PassResult, CONVERGED or RETRY

        Raises:
            TopologyError: On a fatal outcome, after the Failed condition,
                the failure event and the error metric are recorded
        """
        meta = self.meta_cache.cache(cluster)
        key = meta.key

        if meta.phase != TransitionPhase.CHECK:
            await self._record_phase(meta)

        await self.events.ensure_cluster(cluster)
        try:
            await self.resources.ensure_resources(
                cluster, cluster.owned_labels(), cluster.owner_references()
            )
        except ResourceError as e:
            await self._record_failure(cluster, e)
            raise
        except Exception as e:
            error = ResourceError(f"ensure resources: {e}")
            await self._record_failure(cluster, error)
            raise error from e

        await self.events.check_cluster(cluster)
        try:
            master, snapshot = await self._heal(meta)
        except NeedRequeueError as e:
            logger.warning(f"Cluster {key}: {e}, requeue in {self.requeue_delay:.0f}s")
            await self._handle_membership_retry(cluster)
            return PassResult(PassOutcome.RETRY, requeue_after=self.requeue_delay, reason=str(e))
        except ProbeError as e:
            logger.warning(f"Cluster {key}: {e}, requeue in {self.requeue_delay:.0f}s")
            return PassResult(PassOutcome.RETRY, requeue_after=self.requeue_delay, reason=str(e))
        except Exception as e:
            await self._record_failure(cluster, e)
            raise

        await self.events.health_cluster(cluster)
        cluster.status.set_ready_condition("Cluster ok")
        cluster.status.master_ip = master
        if snapshot.sentinels:
            cluster.status.sentinel_ip = min(snapshot.sentinels)
        await self.status_writer.update_status(cluster)
        self.metrics.set_cluster_ok(cluster.namespace, cluster.name)
        logger.info(f"Cluster {key} is healthy, master {master}")
        return PassResult(PassOutcome.CONVERGED, snapshot=snapshot)

    async def check_and_heal(self, meta: Meta) -> TopologySnapshot:
        """
        Check every aspect of the topology and heal what is wrong.

        Args:
            meta: Cached meta for this pass

        Returns:
            Snapshot of the topology once every step has passed

        Raises:
            NeedRequeueError: Redis replicas are not all running yet
            MultipleMastersError: More than one master is observed
            SentinelRestoreTimeout: A reset sentinel did not recover in time
            HealError: A corrective action failed
            ProbeError: The topology could not be read
        """
        _, snapshot = await self._heal(meta)
        return snapshot

    async def _heal(self, meta: Meta) -> tuple[str, TopologySnapshot]:
        """Run every step; return the master replicas follow and the final snapshot."""
        cluster, auth, key = meta.obj, meta.auth, meta.key

        redis_ok, sentinel_ok = await self.observer.replica_counts_match(cluster)
        if not redis_ok:
            await self.events.update_cluster(cluster, "wait for all redis server start")
            raise NeedRequeueError("number of redis pods differ from specification")
        if not sentinel_ok:
            logger.warning(f"Cluster {key}: number of sentinel pods differ from specification")
            await self.events.failed_cluster(
                cluster, "number of sentinel pods differ from specification"
            )

        nodes = await self.observer.list_redis_addresses(cluster, auth)
        masters = await self.observer.count_masters(nodes, auth)
        if masters == 0:
            await self.events.update_cluster(cluster, "set master")
            if len(nodes) == 1:
                logger.info(f"Cluster {key}: no master, promoting only redis {nodes[0]}")
                await self.healer.promote_to_master(nodes[0], auth)
            else:
                age = await self.observer.oldest_redis_creation_age(cluster)
                logger.info(
                    f"Cluster {key}: no master, oldest redis is {age.total_seconds():.0f}s old"
                )
                await self.healer.promote_oldest_as_master(cluster, auth)
        elif masters > 1:
            raise MultipleMastersError(masters)

        master = await self.observer.resolve_master_address(cluster, auth)
        if not await self.observer.all_slaves_replicate_from(master, cluster, auth):
            logger.info(f"Cluster {key}: rewiring slaves to {master}")
            await self.healer.rewire_all_to_master(master, cluster, auth)

        await self._heal_redis_config(cluster, auth, nodes)

        sentinels = await self.observer.list_sentinel_addresses(cluster)
        if meta.phase != TransitionPhase.CHECK:
            await gather_all(
                *(self.healer.apply_sentinel_config(s, cluster, auth) for s in sentinels)
            )

        monitoring = await gather_all(
            *(self.observer.sentinel_monitors_correct_master(s, master, auth) for s in sentinels)
        )
        await gather_all(
            *(
                self.healer.set_sentinel_monitor(s, master, cluster, auth)
                for s, ok in zip(sentinels, monitoring)
                if not ok
            )
        )

        slaves_ok = await gather_all(
            *(self.observer.sentinel_slave_count_correct(s, cluster, auth) for s in sentinels)
        )
        await gather_all(
            *(
                self._restore_sentinel(s, cluster, auth)
                for s, ok in zip(sentinels, slaves_ok)
                if not ok
            )
        )

        # Single reset without verification, unlike the slave count above.
        peers_ok = await gather_all(
            *(self.observer.sentinel_peer_count_correct(s, cluster, auth) for s in sentinels)
        )
        await gather_all(
            *(
                self.healer.reset_sentinel_memory(s, auth)
                for s, ok in zip(sentinels, peers_ok)
                if not ok
            )
        )

        snapshot = await self.observer.describe(cluster, auth)
        snapshot.sentinel_replicas_ok = sentinel_ok
        return master, snapshot

    async def _heal_redis_config(
        self, cluster: RedisSentinel, auth: AuthConfig, nodes: list[str]
    ) -> None:
        compliant = await gather_all(
            *(self.observer.redis_config_compliant(n, cluster, auth) for n in nodes)
        )
        stale = [n for n, ok in zip(nodes, compliant) if not ok]
        if not stale:
            return
        await self.events.update_cluster(cluster, "set custom config for redis server")
        await gather_all(*(self.healer.apply_redis_config(n, cluster, auth) for n in stale))

    async def _restore_sentinel(
        self, sentinel: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> None:
        """Reset a sentinel and wait until it knows every slave again."""
        await self.healer.reset_sentinel_memory(sentinel, auth)

        async def _poll() -> None:
            while True:
                try:
                    if await self.observer.sentinel_slave_count_correct(sentinel, cluster, auth):
                        return
                except ProbeError as e:
                    logger.debug(f"Sentinel {sentinel} not ready yet: {e}")
                await asyncio.sleep(self.restore_check_interval)

        try:
            await asyncio.wait_for(_poll(), timeout=self.restore_timeout)
        except asyncio.TimeoutError:
            raise SentinelRestoreTimeout(sentinel, self.restore_timeout) from None
        logger.info(f"Cluster {cluster.key}: sentinel {sentinel} restored its slaves")

    async def _record_phase(self, meta: Meta) -> None:
        cluster, status, message = meta.obj, meta.obj.status, meta.message
        if meta.phase == TransitionPhase.CREATE:
            await self.events.create_cluster(cluster)
            status.set_create_condition(message)
        elif meta.phase == TransitionPhase.SCALE_UP:
            await self.events.new_slave_add(cluster, message)
            status.set_scaling_up_condition(message)
        elif meta.phase == TransitionPhase.SCALE_DOWN:
            await self.events.slave_remove(cluster, message)
            status.set_scaling_down_condition(message)
        elif meta.phase == TransitionPhase.UPGRADE:
            await self.events.upgraded_cluster(cluster, message)
            status.set_upgrading_condition(message)
        else:
            await self.events.update_cluster(cluster, message)
            status.set_updating_condition(message)
        await self.status_writer.update_status(cluster)

    async def _handle_membership_retry(self, cluster: RedisSentinel) -> None:
        latest = cluster.status.latest()
        if latest is None or latest.type != ConditionType.HEALTHY:
            return
        logger.warning(f"Cluster {cluster.key}: workload removed by user, recreating")
        await self.events.create_cluster(cluster)
        cluster.status.set_create_condition(USER_REMOVED_MESSAGE)
        await self.status_writer.update_status(cluster)

    async def _record_failure(self, cluster: RedisSentinel, error: Exception) -> None:
        logger.error(f"Cluster {cluster.key} reconcile failed: {error}", exc_info=error)
        await self.events.failed_cluster(cluster, str(error))
        cluster.status.set_failed_condition(str(error))
        await self.status_writer.update_status(cluster)
        self.metrics.set_cluster_error(cluster.namespace, cluster.name)
