"""Error taxonomy for topology reconciliation."""


class TopologyError(Exception):
    """Base class for reconciliation errors."""

    pass


class ProbeError(TopologyError):
    """Raised when a Redis/Sentinel node or the orchestrator cannot be read."""

    def __init__(self, address: str, message: str):
        self.address = address
        super().__init__(f"probe {address}: {message}")


class NeedRequeueError(TopologyError):
    """Raised when the workload is still converging and the pass must be retried."""

    pass


class MultipleMastersError(TopologyError):
    """Raised when more than one Redis node reports role master."""

    def __init__(self, masters: int):
        self.masters = masters
        super().__init__(f"more than one master ({masters}), fix manually")


class SentinelRestoreTimeout(TopologyError):
    """Raised when a reset sentinel does not rediscover its replicas in time."""

    def __init__(self, sentinel: str, timeout: float):
        self.sentinel = sentinel
        self.timeout = timeout
        super().__init__(
            f"wait for restore sentinel {sentinel} slaves timeout after {timeout:.0f}s"
        )


class HealError(TopologyError):
    """Raised when a corrective action against a node fails."""

    def __init__(self, action: str, address: str, cause: Exception):
        self.action = action
        self.address = address
        self.cause = cause
        super().__init__(f"{action} on {address} failed: {cause}")


class ResourceError(TopologyError):
    """Raised when the underlying workload resources cannot be ensured."""

    pass


RETRYABLE_ERRORS = (NeedRequeueError, ProbeError)
