"""Kubernetes Event recording for RedisSentinel objects."""

import asyncio
import logging
from datetime import datetime, timezone
from uuid import uuid4

from kubernetes.client import CoreV1Event, V1EventSource, V1ObjectMeta, V1ObjectReference

from redisop_topology import ConditionType, RedisSentinel

from .cluster import ClusterConnection

logger = logging.getLogger(__name__)

EVENT_NORMAL = "Normal"
EVENT_WARNING = "Warning"


class EventRecorder:
    """
    Posts core/v1 Events against the RedisSentinel object.

    Recording is fire-and-forget: a failed post is logged and reported as
    False, never raised.
    """

    def __init__(self, cluster: ClusterConnection, component: str = "redis-sentinel-operator"):
        """
        Initialize event recorder.

        Args:
            cluster: Cluster connection
            component: Reporting component name
        """
        self.cluster = cluster
        self.core_v1 = cluster.core_v1
        self.component = component

    def _build(
        self, obj: RedisSentinel, event_type: str, reason: str, message: str
    ) -> CoreV1Event:
        now = datetime.now(timezone.utc)
        return CoreV1Event(
            metadata=V1ObjectMeta(
                name=f"{obj.name}.{uuid4().hex[:16]}",
                namespace=obj.namespace,
            ),
            involved_object=V1ObjectReference(
                api_version=obj.api_version,
                kind=obj.kind,
                name=obj.name,
                namespace=obj.namespace,
                uid=obj.uid,
            ),
            type=event_type,
            reason=reason,
            message=message,
            source=V1EventSource(component=self.component),
            first_timestamp=now,
            last_timestamp=now,
            count=1,
        )

    def _post(self, obj: RedisSentinel, event_type: str, reason: str, message: str) -> None:
        self.core_v1.create_namespaced_event(
            namespace=obj.namespace,
            body=self._build(obj, event_type, reason, message),
        )

    async def record(
        self, obj: RedisSentinel, event_type: str, reason: str, message: str
    ) -> bool:
        """
        Record an event.

        Args:
            obj: Cluster the event is about
            event_type: Normal or Warning
            reason: Short machine readable reason
            message: Human readable message

        Returns:
            True if recorded successfully, False otherwise
        """
        try:
            await asyncio.to_thread(self._post, obj, event_type, reason, message)
            logger.debug(f"Recorded event {reason} for {obj.key}: {message}")
            return True
        except Exception as e:
            logger.error(f"Failed to record event {reason} for {obj.key}: {e}")
            return False

    # Named events

    async def create_cluster(self, obj: RedisSentinel) -> None:
        await self.record(
            obj, EVENT_NORMAL, ConditionType.CREATING.value, "Bootstrap redis cluster"
        )

    async def new_slave_add(self, obj: RedisSentinel, message: str) -> None:
        await self.record(obj, EVENT_NORMAL, ConditionType.SCALING.value, message)

    async def slave_remove(self, obj: RedisSentinel, message: str) -> None:
        await self.record(obj, EVENT_NORMAL, ConditionType.SCALING_DOWN.value, message)

    async def update_cluster(self, obj: RedisSentinel, message: str) -> None:
        await self.record(obj, EVENT_NORMAL, ConditionType.UPDATING.value, message)

    async def upgraded_cluster(self, obj: RedisSentinel, message: str) -> None:
        await self.record(obj, EVENT_NORMAL, ConditionType.UPGRADING.value, message)

    async def ensure_cluster(self, obj: RedisSentinel) -> None:
        await self.record(obj, EVENT_NORMAL, "Ensure", "Makes sure of redis cluster ready")

    async def check_cluster(self, obj: RedisSentinel) -> None:
        await self.record(
            obj, EVENT_NORMAL, "CheckAndHeal", "Check and heal the redis cluster problems"
        )

    async def failed_cluster(self, obj: RedisSentinel, message: str) -> None:
        await self.record(obj, EVENT_WARNING, ConditionType.FAILED.value, message)

    async def health_cluster(self, obj: RedisSentinel) -> None:
        await self.record(obj, EVENT_NORMAL, ConditionType.HEALTHY.value, "Redis cluster is healthy")
