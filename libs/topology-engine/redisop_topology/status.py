"""Cluster status and its type-keyed condition history."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ConditionType(str, Enum):
    """Condition types a cluster can report."""

    AVAILABLE = "Available"
    HEALTHY = "Healthy"
    RUNNING = "Running"
    CREATING = "Creating"
    RECOVERING = "Recovering"
    SCALING = "Scaling"
    SCALING_DOWN = "ScalingDown"
    UPGRADING = "Upgrading"
    UPDATING = "Updating"
    FAILED = "Failed"


class ConditionStatus(str, Enum):
    """Tri-state condition status."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Condition(BaseModel):
    """A single observation about the cluster."""

    model_config = ConfigDict(populate_by_name=True)

    type: ConditionType
    status: ConditionStatus
    last_update_time: datetime = Field(default_factory=_now, alias="lastUpdateTime")
    last_transition_time: datetime = Field(default_factory=_now, alias="lastTransitionTime")
    reason: str = ""
    message: str = ""

    def same_state(self, other: "Condition") -> bool:
        return (
            self.status == other.status
            and self.reason == other.reason
            and self.message == other.message
        )


class ClusterStatus(BaseModel):
    """
    Externally visible status of a cluster.

    Holds at most one condition per type. Re-setting a condition with the
    same status, reason and message only refreshes its update time; any
    difference replaces the record and stamps a new transition time.
    """

    model_config = ConfigDict(populate_by_name=True)

    conditions: list[Condition] = Field(default_factory=list)
    master_ip: str = Field(default="", alias="masterIP")
    sentinel_ip: str = Field(default="", alias="sentinelIP")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClusterStatus":
        return cls.model_validate(data)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the wire field names and RFC3339 timestamps."""
        return self.model_dump(by_alias=True, mode="json")

    def set_create_condition(self, message: str) -> None:
        self._set(ConditionType.CREATING, "Creating", message)

    def set_scaling_up_condition(self, message: str) -> None:
        self._set(ConditionType.SCALING, "Scaling up", message)

    def set_scaling_down_condition(self, message: str) -> None:
        self._set(ConditionType.SCALING_DOWN, "Scaling down", message)

    def set_upgrading_condition(self, message: str) -> None:
        self._set(ConditionType.UPGRADING, "Cluster upgrading", message)

    def set_updating_condition(self, message: str) -> None:
        self._set(ConditionType.UPDATING, "Cluster updating", message)

    def set_ready_condition(self, message: str) -> None:
        self._set(ConditionType.HEALTHY, "Cluster available", message)

    def set_failed_condition(self, message: str) -> None:
        self._set(ConditionType.FAILED, "Cluster failed", message)

    def get_condition(self, condition_type: ConditionType) -> Optional[Condition]:
        for c in self.conditions:
            if c.type == condition_type:
                return c
        return None

    def clear_condition(self, condition_type: ConditionType) -> None:
        self.conditions = [c for c in self.conditions if c.type != condition_type]

    def desc_conditions_by_time(self) -> None:
        """Sort conditions newest first by last update time."""
        self.conditions.sort(key=lambda c: c.last_update_time, reverse=True)

    def latest(self) -> Optional[Condition]:
        """Return the most recently updated condition, if any."""
        if not self.conditions:
            return None
        return max(self.conditions, key=lambda c: c.last_update_time)

    def set_condition(self, condition: Condition) -> None:
        for i, existing in enumerate(self.conditions):
            if existing.type != condition.type:
                continue
            if existing.same_state(condition):
                existing.last_update_time = condition.last_update_time
            else:
                self.conditions[i] = condition
            return
        self.conditions.append(condition)

    def _set(self, condition_type: ConditionType, reason: str, message: str) -> None:
        now = _now()
        self.set_condition(
            Condition(
                type=condition_type,
                status=ConditionStatus.TRUE,
                last_update_time=now,
                last_transition_time=now,
                reason=reason,
                message=message,
            )
        )
