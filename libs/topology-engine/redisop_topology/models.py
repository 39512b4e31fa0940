"""Data models for Redis/Sentinel topology reconciliation."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .status import ClusterStatus

MAX_NAME_LENGTH = 48
MIN_REDIS_REPLICAS = 3
MIN_SENTINEL_REPLICAS = 3
DEFAULT_REDIS_IMAGE = "redis:5.0.4-alpine"
DEFAULT_SLAVE_PRIORITY = "1"
DEFAULT_SENTINEL_CUSTOM_CONFIG = ["down-after-milliseconds 5000", "failover-timeout 10000"]

OPERATOR_NAME = "redis-sentinel-operator"
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_COMPONENT = "app.kubernetes.io/component"
LABEL_CLUSTER = "redis.xuan.io/cluster"

PERSISTENCE_DEFAULTS = {
    "appendonly": "yes",
    "auto-aof-rewrite-min-size": "536870912",
    "auto-aof-rewrite-percentage": "100",
    "repl-backlog-size": "62914560",
    "repl-diskless-sync": "yes",
    "aof-load-truncated": "yes",
    "stop-writes-on-bgsave-error": "no",
    "save": "900 1 300 10",
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SentinelSettings(_CamelModel):
    """Desired state of the sentinel processes."""

    replicas: int = MIN_SENTINEL_REPLICAS
    image: str = DEFAULT_REDIS_IMAGE
    command: Optional[list[str]] = None
    custom_config: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SENTINEL_CUSTOM_CONFIG)
    )
    resources: dict[str, Any] = Field(default_factory=dict)

    @field_validator("replicas")
    @classmethod
    def _check_replicas(cls, v: int) -> int:
        if v == 0:
            return MIN_SENTINEL_REPLICAS
        if v < MIN_SENTINEL_REPLICAS:
            raise ValueError("number of sentinels in spec is less than the minimum")
        return v

    @field_validator("image")
    @classmethod
    def _default_image(cls, v: str) -> str:
        return v or DEFAULT_REDIS_IMAGE

    def directives(self) -> list[tuple[str, str]]:
        """Split custom config lines into (option, value) pairs."""
        result = []
        for line in self.custom_config:
            option, _, value = line.strip().partition(" ")
            if option:
                result.append((option, value.strip()))
        return result


class ClusterSpec(_CamelModel):
    """
    Desired state of a replicated Redis deployment.

    Defaults are filled in on construction, so a parsed spec is always
    complete: the config overlay carries the replica priority and the
    persistence keys that match ``disable_persistence``.
    """

    size: int = MIN_REDIS_REPLICAS
    image: str = DEFAULT_REDIS_IMAGE
    command: Optional[list[str]] = None
    password: Optional[str] = None
    config: dict[str, str] = Field(default_factory=dict)
    disable_persistence: bool = False
    resources: dict[str, Any] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    sentinel: SentinelSettings = Field(default_factory=SentinelSettings)

    @field_validator("size")
    @classmethod
    def _check_size(cls, v: int) -> int:
        if v == 0:
            return MIN_REDIS_REPLICAS
        if v < MIN_REDIS_REPLICAS:
            raise ValueError("number of redis in spec is less than the minimum")
        return v

    @field_validator("image")
    @classmethod
    def _default_image(cls, v: str) -> str:
        return v or DEFAULT_REDIS_IMAGE

    @field_validator("config", mode="before")
    @classmethod
    def _stringify_config(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items()}
        return v

    @model_validator(mode="after")
    def _fill_config(self) -> "ClusterSpec":
        self.config["slave-priority"] = DEFAULT_SLAVE_PRIORITY
        if self.disable_persistence:
            self.config["appendonly"] = "no"
            self.config["save"] = ""
        else:
            for key, value in PERSISTENCE_DEFAULTS.items():
                self.config.setdefault(key, value)
        return self

    @property
    def sentinel_quorum(self) -> int:
        return self.sentinel.replicas // 2 + 1


class RedisSentinel(BaseModel):
    """A RedisSentinel custom resource: identity, desired spec and status."""

    namespace: str
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    uid: Optional[str] = None
    generation: Optional[int] = None
    api_version: str = "redis.xuan.io/v1"
    kind: str = "RedisSentinel"
    labels: dict[str, str] = Field(default_factory=dict)
    spec: ClusterSpec = Field(default_factory=ClusterSpec)
    status: ClusterStatus = Field(default_factory=ClusterStatus)

    @classmethod
    def from_resource(cls, obj: dict[str, Any]) -> "RedisSentinel":
        """
        Build a RedisSentinel from a custom object as returned by the API.

        Args:
            obj: Custom object dict (apiVersion, kind, metadata, spec, status)

        Returns:
            Parsed RedisSentinel

        Raises:
            pydantic.ValidationError: If the resource spec is invalid
        """
        metadata = obj.get("metadata", {})
        return cls(
            namespace=metadata.get("namespace", "default"),
            name=metadata.get("name", ""),
            uid=metadata.get("uid"),
            generation=metadata.get("generation"),
            api_version=obj.get("apiVersion", "redis.xuan.io/v1"),
            kind=obj.get("kind", "RedisSentinel"),
            labels=metadata.get("labels") or {},
            spec=ClusterSpec.model_validate(obj.get("spec") or {}),
            status=ClusterStatus.from_dict(obj.get("status") or {}),
        )

    @property
    def key(self) -> "ClusterKey":
        return ClusterKey(self.namespace, self.name)

    def selector_labels(self) -> dict[str, str]:
        """Labels every workload object of this cluster carries."""
        return {LABEL_MANAGED_BY: OPERATOR_NAME, LABEL_CLUSTER: self.name}

    def owned_labels(self) -> dict[str, str]:
        """Resource labels plus the selector labels, the latter winning."""
        return {**self.labels, **self.selector_labels()}

    def owner_references(self) -> list[dict[str, Any]]:
        """Owner reference so workload objects are collected with the resource."""
        if not self.uid:
            return []
        return [
            {
                "apiVersion": self.api_version,
                "kind": self.kind,
                "name": self.name,
                "uid": self.uid,
                "controller": True,
                "blockOwnerDeletion": True,
            }
        ]


@dataclass(frozen=True)
class ClusterKey:
    """Identity of a cluster."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class AuthConfig:
    """Shared secret used for every protocol call within one cluster."""

    password: Optional[str] = None

    @classmethod
    def from_spec(cls, spec: ClusterSpec) -> "AuthConfig":
        return cls(password=spec.password or None)


class NodeRole(str, Enum):
    """Replication role reported by a Redis node."""

    MASTER = "master"
    SLAVE = "slave"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class WorkloadReplica:
    """A running workload replica backing one Redis or Sentinel process."""

    name: str
    address: str
    created_at: datetime


@dataclass(frozen=True)
class SentinelView:
    """What a sentinel believes about the master it monitors."""

    master_address: str = ""
    slaves: int = 0
    sentinels: int = 0


@dataclass
class RedisNodeState:
    role: NodeRole = NodeRole.UNKNOWN
    config_compliant: bool = False


@dataclass
class SentinelNodeState:
    observed_slaves: int = 0
    observed_sentinels: int = 0


@dataclass
class TopologySnapshot:
    """
    Observed state of one cluster, rebuilt on every pass.

    If ``master_address`` is set, exactly one Redis node is classified master.
    """

    redis: dict[str, RedisNodeState] = field(default_factory=dict)
    sentinels: dict[str, SentinelNodeState] = field(default_factory=dict)
    master_address: str = ""
    sentinel_replicas_ok: bool = True

    def __post_init__(self) -> None:
        self.check()

    def check(self) -> None:
        """Raise ValueError if the single-master invariant is broken."""
        if not self.master_address:
            return
        masters = [a for a, s in self.redis.items() if s.role == NodeRole.MASTER]
        if masters != [self.master_address]:
            raise ValueError(
                f"master {self.master_address} inconsistent with observed masters {masters}"
            )

    @property
    def slaves(self) -> list[str]:
        return sorted(a for a, s in self.redis.items() if s.role == NodeRole.SLAVE)
