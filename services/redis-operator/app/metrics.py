"""Prometheus metrics for the operator."""

import logging

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge

logger = logging.getLogger(__name__)


class ClusterMetrics:
    """Per-cluster health gauge and pass outcome counter."""

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.cluster_ok = Gauge(
            "redis_sentinel_cluster_ok",
            "Whether the last reconciliation of a cluster succeeded (1) or failed (0)",
            ["namespace", "name"],
            registry=registry,
        )
        self.reconcile_total = Counter(
            "redis_sentinel_reconcile_total",
            "Reconciliation passes by outcome",
            ["outcome"],
            registry=registry,
        )

    def set_cluster_ok(self, namespace: str, name: str) -> None:
        self.cluster_ok.labels(namespace=namespace, name=name).set(1)

    def set_cluster_error(self, namespace: str, name: str) -> None:
        self.cluster_ok.labels(namespace=namespace, name=name).set(0)

    def record_outcome(self, outcome: str) -> None:
        self.reconcile_total.labels(outcome=outcome).inc()

    def remove(self, namespace: str, name: str) -> None:
        """Drop the series of a deleted cluster."""
        try:
            self.cluster_ok.remove(namespace, name)
        except KeyError:
            logger.debug(f"No metrics recorded for {namespace}/{name}")
