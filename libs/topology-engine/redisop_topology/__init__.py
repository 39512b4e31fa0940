"""Redis Operator Topology Engine - Redis/Sentinel topology reconciliation."""

from .cache import ClusterMetaCache, Meta, TransitionPhase, infer_phase
from .client import RedisNodeClient
from .engine import (
    EventSink,
    MetricsSink,
    PassOutcome,
    PassResult,
    ReconciliationEngine,
    ResourceManager,
    StatusWriter,
)
from .errors import (
    HealError,
    MultipleMastersError,
    NeedRequeueError,
    ProbeError,
    ResourceError,
    RETRYABLE_ERRORS,
    SentinelRestoreTimeout,
    TopologyError,
)
from .healer import RedisTopologyHealer, TopologyHealer
from .models import (
    AuthConfig,
    ClusterKey,
    ClusterSpec,
    NodeRole,
    RedisSentinel,
    SentinelSettings,
    SentinelView,
    TopologySnapshot,
    WorkloadReplica,
)
from .observer import RedisTopologyObserver, TopologyObserver, WorkloadInventory
from .status import ClusterStatus, Condition, ConditionStatus, ConditionType

__version__ = "0.1.0"

__all__ = [
    # Engine
    "ReconciliationEngine",
    "PassOutcome",
    "PassResult",
    "ResourceManager",
    "EventSink",
    "MetricsSink",
    "StatusWriter",
    # Capabilities
    "TopologyObserver",
    "TopologyHealer",
    "RedisTopologyObserver",
    "RedisTopologyHealer",
    "RedisNodeClient",
    "WorkloadInventory",
    # Cache
    "ClusterMetaCache",
    "Meta",
    "TransitionPhase",
    "infer_phase",
    # Models
    "RedisSentinel",
    "ClusterSpec",
    "SentinelSettings",
    "ClusterKey",
    "AuthConfig",
    "NodeRole",
    "SentinelView",
    "TopologySnapshot",
    "WorkloadReplica",
    "ClusterStatus",
    "Condition",
    "ConditionStatus",
    "ConditionType",
    # Errors
    "TopologyError",
    "ProbeError",
    "NeedRequeueError",
    "MultipleMastersError",
    "SentinelRestoreTimeout",
    "HealError",
    "ResourceError",
    "RETRYABLE_ERRORS",
]
