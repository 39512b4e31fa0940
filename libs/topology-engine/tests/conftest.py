"""Pytest configuration and fixtures for Topology Engine tests."""

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from redisop_topology import (
    AuthConfig,
    ClusterMetaCache,
    ClusterSpec,
    Meta,
    NodeRole,
    ProbeError,
    ReconciliationEngine,
    RedisSentinel,
    SentinelView,
    TopologyHealer,
    TopologyObserver,
    TransitionPhase,
    WorkloadReplica,
)
from redisop_topology.healer import pick_oldest

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@dataclass
class FakeRedis:
    created_at: datetime
    role: NodeRole = NodeRole.UNKNOWN
    master_host: str = ""
    config: dict[str, str] = field(default_factory=dict)


@dataclass
class FakeSentinel:
    created_at: datetime
    master: str = ""
    slaves: int = 0
    peers: int = 0
    # Whether a reset lets the sentinel rediscover its slaves
    recovers: bool = True


class FakeTopology(TopologyObserver, TopologyHealer):
    """
    In-memory Redis/Sentinel cluster.

    Implements both capability sets; healer actions mutate the simulated
    nodes and are recorded in ``calls``.
    """

    def __init__(self, redis_nodes: dict[str, FakeRedis], sentinels: dict[str, FakeSentinel]):
        self.redis_nodes = redis_nodes
        self.sentinel_nodes = sentinels
        self.calls: list[tuple] = []
        self.age_calls = 0
        self.ready_redis: Optional[int] = None
        self.ready_sentinels: Optional[int] = None

    @classmethod
    def fresh(cls, size: int = 3, sentinels: int = 3) -> "FakeTopology":
        """Freshly started pods: no roles, no config, sentinels monitor nothing."""
        return cls(
            {
                f"10.0.0.{i + 1}": FakeRedis(created_at=BASE_TIME + timedelta(seconds=i))
                for i in range(size)
            },
            {
                f"10.0.1.{i + 1}": FakeSentinel(created_at=BASE_TIME + timedelta(seconds=i))
                for i in range(sentinels)
            },
        )

    @classmethod
    def healthy(cls, cluster: RedisSentinel) -> "FakeTopology":
        """A converged cluster with 10.0.0.1 as master."""
        topology = cls.fresh(cluster.spec.size, cluster.spec.sentinel.replicas)
        master = "10.0.0.1"
        for address, node in topology.redis_nodes.items():
            node.config = dict(cluster.spec.config)
            if address == master:
                node.role = NodeRole.MASTER
            else:
                node.role = NodeRole.SLAVE
                node.master_host = master
        for sentinel in topology.sentinel_nodes.values():
            sentinel.master = master
            sentinel.slaves = cluster.spec.size - 1
            sentinel.peers = cluster.spec.sentinel.replicas
        return topology

    def healer_calls(self, name: Optional[str] = None) -> list[tuple]:
        return [c for c in self.calls if name is None or c[0] == name]

    def _actual_slaves(self, master: str) -> int:
        return sum(
            1
            for node in self.redis_nodes.values()
            if node.role == NodeRole.SLAVE and node.master_host == master
        )

    # Observer

    async def replica_counts_match(self, cluster):
        redis_ready = self.ready_redis if self.ready_redis is not None else len(self.redis_nodes)
        sentinel_ready = (
            self.ready_sentinels if self.ready_sentinels is not None else len(self.sentinel_nodes)
        )
        return (
            redis_ready == cluster.spec.size,
            sentinel_ready == cluster.spec.sentinel.replicas,
        )

    async def probe_roles(self, nodes, auth):
        return {n: self.redis_nodes[n].role for n in nodes}

    async def count_masters(self, nodes, auth):
        roles = await self.probe_roles(nodes, auth)
        return sum(1 for r in roles.values() if r == NodeRole.MASTER)

    async def list_redis_addresses(self, cluster, auth):
        return sorted(self.redis_nodes)

    async def list_sentinel_addresses(self, cluster):
        return sorted(self.sentinel_nodes)

    async def oldest_redis_creation_age(self, cluster):
        self.age_calls += 1
        oldest = min(n.created_at for n in self.redis_nodes.values())
        return datetime.now(timezone.utc) - oldest

    async def resolve_master_address(self, cluster, auth):
        masters = [a for a, n in self.redis_nodes.items() if n.role == NodeRole.MASTER]
        if len(masters) != 1:
            raise ProbeError(str(cluster.key), f"expected one master, found {len(masters)}")
        return masters[0]

    async def all_slaves_replicate_from(self, master, cluster, auth):
        return all(
            node.role == NodeRole.SLAVE and node.master_host == master
            for address, node in self.redis_nodes.items()
            if address != master
        )

    async def redis_config_compliant(self, node, cluster, auth):
        live = self.redis_nodes[node].config
        return all(live.get(k) == v for k, v in cluster.spec.config.items())

    async def sentinel_view(self, sentinel, auth):
        s = self.sentinel_nodes[sentinel]
        return SentinelView(master_address=s.master, slaves=s.slaves, sentinels=s.peers)

    async def sentinel_monitors_correct_master(self, sentinel, master, auth):
        return self.sentinel_nodes[sentinel].master == master

    async def sentinel_slave_count_correct(self, sentinel, cluster, auth):
        return self.sentinel_nodes[sentinel].slaves == cluster.spec.size - 1

    async def sentinel_peer_count_correct(self, sentinel, cluster, auth):
        return self.sentinel_nodes[sentinel].peers == cluster.spec.sentinel.replicas

    # Healer

    async def promote_to_master(self, address, auth):
        self.calls.append(("promote_to_master", address))
        node = self.redis_nodes[address]
        node.role = NodeRole.MASTER
        node.master_host = ""

    async def promote_oldest_as_master(self, cluster, auth):
        replicas = [
            WorkloadReplica(name=a, address=a, created_at=n.created_at)
            for a, n in self.redis_nodes.items()
        ]
        oldest = pick_oldest(replicas)
        self.calls.append(("promote_oldest_as_master", oldest.address))
        node = self.redis_nodes[oldest.address]
        node.role = NodeRole.MASTER
        node.master_host = ""
        return oldest.address

    async def rewire_all_to_master(self, master, cluster, auth):
        self.calls.append(("rewire_all_to_master", master))
        for address, node in self.redis_nodes.items():
            if address != master:
                node.role = NodeRole.SLAVE
                node.master_host = master

    async def apply_redis_config(self, address, cluster, auth):
        self.calls.append(("apply_redis_config", address))
        self.redis_nodes[address].config = dict(cluster.spec.config)

    async def apply_sentinel_config(self, sentinel, cluster, auth):
        self.calls.append(("apply_sentinel_config", sentinel))

    async def set_sentinel_monitor(self, sentinel, master, cluster, auth):
        self.calls.append(("set_sentinel_monitor", sentinel, master))
        s = self.sentinel_nodes[sentinel]
        s.master = master
        s.slaves = self._actual_slaves(master)
        s.peers = len(self.sentinel_nodes)

    async def reset_sentinel_memory(self, sentinel, auth):
        self.calls.append(("reset_sentinel_memory", sentinel))
        s = self.sentinel_nodes[sentinel]
        s.peers = len(self.sentinel_nodes)
        if s.recovers:
            s.slaves = self._actual_slaves(s.master)


@pytest.fixture
def cluster():
    """Cluster with 3 redis and 3 sentinels."""
    return RedisSentinel(
        namespace="default",
        name="cache",
        uid="1b2c3d4e",
        spec=ClusterSpec(size=3),
    )


@pytest.fixture
def auth():
    return AuthConfig()


@pytest.fixture
def check_meta(cluster, auth):
    """Meta for an idle pass over ``cluster``."""
    return Meta(obj=cluster, auth=auth, phase=TransitionPhase.CHECK)


@pytest.fixture
def mock_events():
    return AsyncMock()


@pytest.fixture
def mock_metrics():
    return MagicMock()


@pytest.fixture
def mock_status_writer():
    return AsyncMock()


@pytest.fixture
def mock_resources():
    return AsyncMock()


@pytest.fixture
def make_engine(mock_events, mock_metrics, mock_status_writer, mock_resources):
    """Build an engine around a topology with fast restore polling."""

    def _make(topology: FakeTopology, **kwargs) -> ReconciliationEngine:
        kwargs.setdefault("restore_check_interval", 0.01)
        kwargs.setdefault("restore_timeout", 0.2)
        return ReconciliationEngine(
            observer=topology,
            healer=topology,
            resources=mock_resources,
            events=mock_events,
            metrics=mock_metrics,
            status_writer=mock_status_writer,
            meta_cache=ClusterMetaCache(),
            **kwargs,
        )

    return _make


@pytest.fixture
def clock(monkeypatch):
    """Condition timestamps advance one second per call."""
    ticks = itertools.count()

    def _tick():
        return BASE_TIME + timedelta(seconds=next(ticks))

    monkeypatch.setattr("redisop_topology.status._now", _tick)


@pytest.fixture
def fake_topology():
    """The in-memory topology class; build layouts with ``fresh``/``healthy``."""
    return FakeTopology


@pytest.fixture
def base_time():
    return BASE_TIME
