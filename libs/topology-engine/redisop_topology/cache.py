"""Per-cluster cache of desired spec and inferred transition phase."""

import logging
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Optional

from .models import AuthConfig, ClusterKey, ClusterSpec, RedisSentinel

logger = logging.getLogger(__name__)


class TransitionPhase(str, Enum):
    """Why the current reconciliation pass is running."""

    CREATE = "Create"
    SCALE_UP = "ScaleUp"
    SCALE_DOWN = "ScaleDown"
    UPGRADE = "Upgrade"
    UPDATE = "Update"
    CHECK = "Check"


@dataclass
class Meta:
    """Everything a pass needs to know about one cluster."""

    obj: RedisSentinel
    auth: AuthConfig
    phase: TransitionPhase
    message: str = ""

    @property
    def key(self) -> ClusterKey:
        return self.obj.key

    @property
    def spec(self) -> ClusterSpec:
        return self.obj.spec


def infer_phase(
    old: Optional[ClusterSpec], new: ClusterSpec
) -> tuple[TransitionPhase, str]:
    """
    Diff two desired specs to infer the transition phase.

    Args:
        old: Previously cached spec (None on first sight)
        new: Newly supplied spec

    Returns:
        Tuple of (phase, human readable message)
    """
    if old is None:
        return TransitionPhase.CREATE, "Bootstrap redis cluster"
    if old == new:
        return TransitionPhase.CHECK, ""
    if new.size > old.size:
        return (
            TransitionPhase.SCALE_UP,
            f"scaling up redis from {old.size} to {new.size}",
        )
    if new.size < old.size:
        return (
            TransitionPhase.SCALE_DOWN,
            f"scaling down redis from {old.size} to {new.size}",
        )
    if old.image != new.image or old.command != new.command:
        return (
            TransitionPhase.UPGRADE,
            f"upgrading redis from {old.image} to {new.image}",
        )
    if old.sentinel.replicas != new.sentinel.replicas:
        return (
            TransitionPhase.UPDATE,
            f"updating sentinel replicas from {old.sentinel.replicas} to {new.sentinel.replicas}",
        )
    return TransitionPhase.UPDATE, "Update cluster"


class ClusterMetaCache:
    """
    Keyed store of Meta, one entry per cluster.

    Read-modify-write of one entry is atomic; entries of different clusters
    are guarded by separate locks and never wait on each other.
    """

    def __init__(self):
        self._entries: dict[ClusterKey, Meta] = {}
        self._locks: dict[ClusterKey, Lock] = {}
        self._locks_guard = Lock()

    def _lock_for(self, key: ClusterKey) -> Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    def cache(self, obj: RedisSentinel) -> Meta:
        """
        Diff the supplied cluster against the cached one and store the result.

        Args:
            obj: Cluster resource carrying the newly supplied desired spec

        Returns:
            Fresh Meta for this pass
        """
        key = obj.key
        with self._lock_for(key):
            previous = self._entries.get(key)
            phase, message = infer_phase(previous.spec if previous else None, obj.spec)
            meta = Meta(
                obj=obj,
                auth=AuthConfig.from_spec(obj.spec),
                phase=phase,
                message=message,
            )
            self._entries[key] = meta

        if phase != TransitionPhase.CHECK:
            logger.info(f"Cluster {key} phase {phase.value}: {message}")
        return meta

    def get(self, key: ClusterKey) -> Optional[Meta]:
        with self._locks_guard:
            lock = self._locks.get(key)
        if lock is None:
            return None
        with lock:
            return self._entries.get(key)

    def delete(self, key: ClusterKey) -> bool:
        """
        Forget a cluster.

        Returns:
            True if an entry was removed, False if none existed
        """
        with self._locks_guard:
            lock = self._locks.pop(key, None)
        if lock is None:
            return False
        with lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            logger.info(f"Removed cached meta for cluster {key}")
        return removed

    def __len__(self) -> int:
        return len(self._entries)
