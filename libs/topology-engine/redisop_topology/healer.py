"""Corrective actions against individual Redis and Sentinel nodes."""

import logging
from abc import ABC, abstractmethod
from typing import Awaitable

from .client import RedisNodeClient
from .errors import HealError, ResourceError
from .models import AuthConfig, RedisSentinel, WorkloadReplica
from .observer import WorkloadInventory
from .utils import gather_all

logger = logging.getLogger(__name__)


def pick_oldest(replicas: list[WorkloadReplica]) -> WorkloadReplica:
    """Earliest created replica; ties broken by address ascending."""
    return min(replicas, key=lambda r: (r.created_at, r.address))


class TopologyHealer(ABC):
    """
    Write capability over one cluster.

    Every action targets a single node and is idempotent: re-issuing it
    against a node already in the desired state changes nothing.
    Failures raise HealError.
    """

    @abstractmethod
    async def promote_to_master(self, address: str, auth: AuthConfig) -> None:
        pass

    @abstractmethod
    async def promote_oldest_as_master(self, cluster: RedisSentinel, auth: AuthConfig) -> str:
        """Promote the earliest-created Redis replica and return its address."""

    @abstractmethod
    async def rewire_all_to_master(
        self, master: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> None:
        pass

    @abstractmethod
    async def apply_redis_config(
        self, address: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> None:
        pass

    @abstractmethod
    async def apply_sentinel_config(
        self, sentinel: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> None:
        pass

    @abstractmethod
    async def set_sentinel_monitor(
        self, sentinel: str, master: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> None:
        pass

    @abstractmethod
    async def reset_sentinel_memory(self, sentinel: str, auth: AuthConfig) -> None:
        pass


class RedisTopologyHealer(TopologyHealer):
    """Healer backed by the orchestrator inventory and the Redis protocol."""

    def __init__(self, inventory: WorkloadInventory, client: RedisNodeClient):
        """
        Initialize healer.

        Args:
            inventory: Orchestrator-side replica inventory
            client: Redis/Sentinel protocol client
        """
        self.inventory = inventory
        self.client = client

    async def _run(self, action: str, address: str, call: Awaitable) -> None:
        try:
            await call
        except Exception as e:
            raise HealError(action, address, e) from e

    async def promote_to_master(self, address: str, auth: AuthConfig) -> None:
        await self._run("promote", address, self.client.make_master(address, auth))

    async def promote_oldest_as_master(self, cluster: RedisSentinel, auth: AuthConfig) -> str:
        replicas = await self.inventory.redis_replicas(cluster)
        if not replicas:
            raise ResourceError(f"no redis replicas running for {cluster.key}")
        oldest = pick_oldest(replicas)
        logger.info(
            f"Cluster {cluster.key}: promoting oldest redis {oldest.name} ({oldest.address})"
        )
        await self.promote_to_master(oldest.address, auth)
        return oldest.address

    async def rewire_all_to_master(
        self, master: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> None:
        replicas = await self.inventory.redis_replicas(cluster)
        await gather_all(
            *(
                self._run("rewire", r.address, self.client.make_slave_of(r.address, master, auth))
                for r in replicas
                if r.address != master
            )
        )

    async def apply_redis_config(
        self, address: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> None:
        await self._run(
            "set redis config",
            address,
            self.client.set_config(address, cluster.spec.config, auth),
        )

    async def apply_sentinel_config(
        self, sentinel: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> None:
        directives = cluster.spec.sentinel.directives()
        if not directives:
            return
        try:
            applied = await self.client.sentinel_set(sentinel, directives, auth)
        except Exception as e:
            raise HealError("set sentinel config", sentinel, e) from e
        if not applied:
            logger.info(
                f"Sentinel {sentinel} does not monitor the master yet, config deferred to monitor"
            )

    async def set_sentinel_monitor(
        self, sentinel: str, master: str, cluster: RedisSentinel, auth: AuthConfig
    ) -> None:
        await self._run(
            "monitor",
            sentinel,
            self.client.sentinel_monitor(
                sentinel,
                master,
                cluster.spec.sentinel_quorum,
                auth,
                directives=cluster.spec.sentinel.directives(),
            ),
        )

    async def reset_sentinel_memory(self, sentinel: str, auth: AuthConfig) -> None:
        await self._run("reset", sentinel, self.client.sentinel_reset(sentinel, auth))
