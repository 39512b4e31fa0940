"""Read-only view of a cluster's live topology."""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Protocol

from .client import RedisNodeClient
from .errors import ProbeError
from .models import (
    AuthConfig,
    NodeRole,
    RedisNodeState,
    RedisSentinel,
    SentinelNodeState,
    SentinelView,
    TopologySnapshot,
    WorkloadReplica,
)

logger = logging.getLogger(__name__)


class WorkloadInventory(Protocol):
    """Orchestrator-side view of the workload replicas backing a cluster."""

    async def redis_replicas(self, cluster: RedisSentinel) -> list[WorkloadReplica]: ...

    async def sentinel_replicas(self, cluster: RedisSentinel) -> list[WorkloadReplica]: ...

    async def ready_counts(self, cluster: RedisSentinel) -> tuple[int, int]: ...


class TopologyObserver(ABC):
    """
    Read-only capability over one cluster.

    All operations raise ProbeError on network or protocol failure.
    """

    @abstractmethod
    async def replica_counts_match(self, cluster: RedisSentinel) -> tuple[bool, bool]:
        """Return (redis count matches, sentinel count matches)."""

    @abstractmethod
    async def probe_roles(self, nodes: list[str], auth: AuthConfig) -> dict[str, NodeRole]:
        """Return the role of every node; unreachable nodes are UNKNOWN."""

    @abstractmethod
    async def count_masters(self, nodes: list[str], auth: AuthConfig) -> int:
        """Count reachable nodes that report role master."""

    @abstractmethod
    async def list_redis_addresses(self, cluster: RedisSentinel, auth: AuthConfig) -> list[str]:
        pass

    @abstractmethod
    async def list_sentinel_addresses(self, cluster: RedisSentinel) -> list[str]:
        pass

    @abstractmethod
    async def oldest_redis_creation_age(self, cluster: RedisSentinel) -> timedelta:
        pass

    @abstractmethod
    async def resolve_master_address(self, cluster: RedisSentinel, auth: AuthConfig) -> str:
        """Return the single master address; only valid after count_masters == 1."""

    @abstractmethod
    async def all_slaves_replicate_from(
        self, master: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> bool:
        pass

    @abstractmethod
    async def redis_config_compliant(
        self, node: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> bool:
        pass

    @abstractmethod
    async def sentinel_view(self, sentinel: str, auth: AuthConfig) -> SentinelView:
        pass

    @abstractmethod
    async def sentinel_monitors_correct_master(
        self, sentinel: str, master: str, auth: AuthConfig
    ) -> bool:
        pass

    @abstractmethod
    async def sentinel_slave_count_correct(
        self, sentinel: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> bool:
        pass

    @abstractmethod
    async def sentinel_peer_count_correct(
        self, sentinel: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> bool:
        pass

    async def describe(self, cluster: RedisSentinel, auth: AuthConfig) -> TopologySnapshot:
        """
        Build a full snapshot of the cluster.

        Nodes that cannot be probed are reported with unknown role and
        non-compliant config rather than failing the whole snapshot.
        """
        nodes = await self.list_redis_addresses(cluster, auth)
        sentinels = await self.list_sentinel_addresses(cluster)
        roles = await self.probe_roles(nodes, auth)

        async def _compliant(node: str) -> bool:
            try:
                return await self.redis_config_compliant(node, cluster, auth)
            except ProbeError:
                return False

        async def _view(sentinel: str) -> SentinelView:
            try:
                return await self.sentinel_view(sentinel, auth)
            except ProbeError:
                return SentinelView()

        compliance = await asyncio.gather(*(_compliant(n) for n in nodes))
        views = await asyncio.gather(*(_view(s) for s in sentinels))

        masters = [n for n in nodes if roles.get(n) == NodeRole.MASTER]
        return TopologySnapshot(
            redis={
                n: RedisNodeState(role=roles.get(n, NodeRole.UNKNOWN), config_compliant=ok)
                for n, ok in zip(nodes, compliance)
            },
            sentinels={
                s: SentinelNodeState(observed_slaves=v.slaves, observed_sentinels=v.sentinels)
                for s, v in zip(sentinels, views)
            },
            master_address=masters[0] if len(masters) == 1 else "",
        )


class RedisTopologyObserver(TopologyObserver):
    """Observer backed by the orchestrator inventory and the Redis protocol."""

    def __init__(self, inventory: WorkloadInventory, client: RedisNodeClient):
        """
        Initialize observer.

        Args:
            inventory: Orchestrator-side replica inventory
            client: Redis/Sentinel protocol client
        """
        self.inventory = inventory
        self.client = client

    async def replica_counts_match(self, cluster: RedisSentinel) -> tuple[bool, bool]:
        redis_ready, sentinel_ready = await self.inventory.ready_counts(cluster)
        redis_ok = redis_ready == cluster.spec.size
        sentinel_ok = sentinel_ready == cluster.spec.sentinel.replicas
        if not redis_ok:
            logger.debug(
                f"Cluster {cluster.key}: {redis_ready}/{cluster.spec.size} redis ready"
            )
        if not sentinel_ok:
            logger.debug(
                f"Cluster {cluster.key}: {sentinel_ready}/{cluster.spec.sentinel.replicas} sentinels ready"
            )
        return redis_ok, sentinel_ok

    async def probe_roles(self, nodes: list[str], auth: AuthConfig) -> dict[str, NodeRole]:
        async def _role(node: str) -> NodeRole:
            try:
                return await self.client.get_role(node, auth)
            except ProbeError as e:
                logger.debug(f"Role probe failed: {e}")
                return NodeRole.UNKNOWN

        roles = await asyncio.gather(*(_role(n) for n in nodes))
        return dict(zip(nodes, roles))

    async def count_masters(self, nodes: list[str], auth: AuthConfig) -> int:
        roles = await self.probe_roles(nodes, auth)
        return sum(1 for role in roles.values() if role == NodeRole.MASTER)

    async def list_redis_addresses(self, cluster: RedisSentinel, auth: AuthConfig) -> list[str]:
        return [r.address for r in await self.inventory.redis_replicas(cluster)]

    async def list_sentinel_addresses(self, cluster: RedisSentinel) -> list[str]:
        return [r.address for r in await self.inventory.sentinel_replicas(cluster)]

    async def oldest_redis_creation_age(self, cluster: RedisSentinel) -> timedelta:
        replicas = await self.inventory.redis_replicas(cluster)
        if not replicas:
            return timedelta(0)
        oldest = min(r.created_at for r in replicas)
        return datetime.now(timezone.utc) - oldest

    async def resolve_master_address(self, cluster: RedisSentinel, auth: AuthConfig) -> str:
        nodes = await self.list_redis_addresses(cluster, auth)
        roles = await self.probe_roles(nodes, auth)
        masters = [n for n, role in roles.items() if role == NodeRole.MASTER]
        if len(masters) != 1:
            raise ProbeError(str(cluster.key), f"expected one master, found {len(masters)}")
        return masters[0]

    async def all_slaves_replicate_from(
        self, master: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> bool:
        nodes = [n for n in await self.list_redis_addresses(cluster, auth) if n != master]
        sources = await asyncio.gather(
            *(self.client.get_master_host(n, auth) for n in nodes)
        )
        wrong = [n for n, source in zip(nodes, sources) if source != master]
        if wrong:
            logger.info(
                f"Cluster {cluster.key}: slaves {wrong} do not replicate from {master}"
            )
        return not wrong

    async def redis_config_compliant(
        self, node: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> bool:
        desired = cluster.spec.config
        live = await self.client.get_config(node, desired.keys(), auth)
        for key, value in desired.items():
            if live.get(key) != value:
                logger.info(
                    f"Redis {node} config {key}={live.get(key)!r}, want {value!r}"
                )
                return False
        return True

    async def sentinel_view(self, sentinel: str, auth: AuthConfig) -> SentinelView:
        return await self.client.sentinel_view(sentinel, auth)

    async def sentinel_monitors_correct_master(
        self, sentinel: str, master: str, auth: AuthConfig
    ) -> bool:
        view = await self.sentinel_view(sentinel, auth)
        if view.master_address != master:
            logger.info(
                f"Sentinel {sentinel} monitors {view.master_address or 'nothing'}, want {master}"
            )
            return False
        return True

    async def sentinel_slave_count_correct(
        self, sentinel: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> bool:
        view = await self.sentinel_view(sentinel, auth)
        expected = cluster.spec.size - 1
        if view.slaves != expected:
            logger.info(f"Sentinel {sentinel} knows {view.slaves} slaves, want {expected}")
            return False
        return True

    async def sentinel_peer_count_correct(
        self, sentinel: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> bool:
        view = await self.sentinel_view(sentinel, auth)
        expected = cluster.spec.sentinel.replicas
        if view.sentinels != expected:
            logger.info(
                f"Sentinel {sentinel} knows {view.sentinels} sentinels, want {expected}"
            )
            return False
        return True
