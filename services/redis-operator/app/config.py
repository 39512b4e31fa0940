"""Configuration management for the Redis Sentinel Operator."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service Settings
    service_name: str = "redis-operator"
    version: str = "0.1.0"
    log_level: str = "INFO"

    # Kubernetes Settings
    kubeconfig_path: str = Field(
        default="",
        description="Path to kubeconfig file, in-cluster config if empty",
    )
    kube_context: str = ""
    watch_namespace: str = Field(
        default="",
        description="Namespace to watch, all namespaces if empty",
    )

    # Custom Resource Settings
    crd_group: str = "redis.xuan.io"
    crd_version: str = "v1"
    crd_plural: str = "redissentinels"

    # Reconciliation Settings
    reconcile_interval_seconds: float = 60
    requeue_delay_seconds: float = 20
    max_concurrent_reconciles: int = 4
    pass_timeout_seconds: float = 300
    tick_interval_seconds: float = 5

    # Redis Settings
    redis_port: int = 6379
    sentinel_port: int = 26379
    master_name: str = "mymaster"
    probe_timeout_seconds: float = 5
    sentinel_restore_interval_seconds: float = 5
    sentinel_restore_timeout_seconds: float = 30

    # Metrics Settings
    metrics_port: int = 9710


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
