"""Redis Sentinel Operator main application."""

import asyncio
import logging
import signal
from typing import Optional

from prometheus_client import start_http_server
from redisop_k8s import (
    ClusterConfig,
    ClusterConnection,
    CustomResourceConfig,
    EventRecorder,
    PodInventory,
    RedisSentinelClient,
    WorkloadResourceManager,
)
from redisop_topology import (
    ClusterMetaCache,
    ReconciliationEngine,
    RedisNodeClient,
    RedisTopologyHealer,
    RedisTopologyObserver,
)

from app.config import Settings, get_settings
from app.controller import RedisSentinelController
from app.metrics import ClusterMetrics

logger = logging.getLogger(__name__)


def build_controller(
    settings: Settings,
    cluster: ClusterConnection,
    metrics: ClusterMetrics,
) -> RedisSentinelController:
    """
    Wire the reconciliation engine and its capabilities.

    Args:
        settings: Application settings
        cluster: Kubernetes API connection
        metrics: Operator metrics

    Returns:
        Controller ready to start
    """
    client = RedisNodeClient(
        redis_port=settings.redis_port,
        sentinel_port=settings.sentinel_port,
        master_name=settings.master_name,
        timeout=settings.probe_timeout_seconds,
    )
    inventory = PodInventory(cluster)
    resources = RedisSentinelClient(
        cluster,
        CustomResourceConfig(
            group=settings.crd_group,
            version=settings.crd_version,
            plural=settings.crd_plural,
        ),
    )
    meta_cache = ClusterMetaCache()

    engine = ReconciliationEngine(
        observer=RedisTopologyObserver(inventory, client),
        healer=RedisTopologyHealer(inventory, client),
        resources=WorkloadResourceManager(
            cluster,
            redis_port=settings.redis_port,
            sentinel_port=settings.sentinel_port,
        ),
        events=EventRecorder(cluster, component=settings.service_name),
        metrics=metrics,
        status_writer=resources,
        meta_cache=meta_cache,
        requeue_delay=settings.requeue_delay_seconds,
        restore_check_interval=settings.sentinel_restore_interval_seconds,
        restore_timeout=settings.sentinel_restore_timeout_seconds,
    )

    return RedisSentinelController(
        settings=settings,
        resources=resources,
        engine=engine,
        metrics=metrics,
        meta_cache=meta_cache,
    )


class Application:
    """Main application orchestrator."""

    def __init__(self, settings: Settings):
        """
        Initialize application.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self.cluster: Optional[ClusterConnection] = None
        self.controller: Optional[RedisSentinelController] = None
        self._shutdown = False

    async def start(self) -> None:
        """Start the application."""
        logger.info("Starting Redis Sentinel Operator...")
        logger.info(f"   Version: {__import__('app').__version__}")
        logger.info(f"   Namespace: {self.settings.watch_namespace or '<all>'}")
        logger.info(f"   Resource: {self.settings.crd_plural}.{self.settings.crd_group}")

        self.cluster = ClusterConnection(
            ClusterConfig(
                kubeconfig_path=self.settings.kubeconfig_path or None,
                context=self.settings.kube_context or None,
            )
        )
        if self.cluster.is_healthy():
            logger.info(f"✓ Connected to Kubernetes {self.cluster.server_version()}")
        else:
            logger.warning("Kubernetes API server not answering, passes will retry")

        start_http_server(self.settings.metrics_port)
        logger.info(f"✓ Metrics served on port {self.settings.metrics_port}")

        self.controller = build_controller(self.settings, self.cluster, ClusterMetrics())
        await self.controller.start()

        logger.info("✓ Redis Sentinel Operator started successfully")

        # Run until shutdown signal
        try:
            while not self._shutdown:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass

    async def stop(self) -> None:
        """Stop the application."""
        logger.info("Shutting down Redis Sentinel Operator...")
        self._shutdown = True

        if self.controller:
            await self.controller.stop()
        if self.cluster:
            self.cluster.close()

        logger.info("✓ Redis Sentinel Operator stopped")

    def handle_signal(self, sig: int) -> None:
        """
        Handle shutdown signals.

        Args:
            sig: Signal number
        """
        logger.info(f"Received signal {sig}, initiating shutdown...")
        self._shutdown = True


async def main() -> None:
    """Main entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = Application(settings)

    # Setup signal handlers
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, app.handle_signal, sig)

    try:
        await app.start()
    finally:
        await app.stop()


if __name__ == "__main__":
    asyncio.run(main())
