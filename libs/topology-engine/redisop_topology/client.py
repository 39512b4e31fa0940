"""Redis and Sentinel control-protocol client."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError, ResponseError

from .errors import ProbeError
from .models import AuthConfig, NodeRole, SentinelView

logger = logging.getLogger(__name__)

DEFAULT_REDIS_PORT = 6379
DEFAULT_SENTINEL_PORT = 26379
DEFAULT_MASTER_NAME = "mymaster"
DEFAULT_TIMEOUT = 5.0

_NO_SUCH_MASTER = "no such master"


def parse_sentinel_master(info: dict[str, Any], master_name: str) -> SentinelView:
    """
    Extract the monitored master from an ``INFO sentinel`` reply.

    Args:
        info: Parsed INFO reply
        master_name: Name the sentinel monitors the master under

    Returns:
        SentinelView (empty if the master is not monitored)
    """
    for key, entry in info.items():
        if not key.startswith("master"):
            continue
        if isinstance(entry, str):
            entry = dict(
                item.split("=", 1) for item in entry.split(",") if "=" in item
            )
        if not isinstance(entry, dict) or entry.get("name") != master_name:
            continue
        address = str(entry.get("address", ""))
        host = address.rsplit(":", 1)[0] if address else ""
        return SentinelView(
            master_address=host,
            slaves=int(entry.get("slaves", 0)),
            sentinels=int(entry.get("sentinels", 0)),
        )
    return SentinelView()


class RedisNodeClient:
    """
    Issues single commands to one Redis or Sentinel process at a time.

    Every call opens its own connection bounded by ``timeout`` and closes it
    afterwards. Transport and protocol failures surface as ProbeError.
    """

    def __init__(
        self,
        redis_port: int = DEFAULT_REDIS_PORT,
        sentinel_port: int = DEFAULT_SENTINEL_PORT,
        master_name: str = DEFAULT_MASTER_NAME,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.redis_port = redis_port
        self.sentinel_port = sentinel_port
        self.master_name = master_name
        self.timeout = timeout

    def _new_connection(self, address: str, port: int, auth: AuthConfig) -> redis.Redis:
        return redis.Redis(
            host=address,
            port=port,
            password=auth.password,
            socket_timeout=self.timeout,
            socket_connect_timeout=self.timeout,
            decode_responses=True,
        )

    @asynccontextmanager
    async def _connect(
        self, address: str, port: int, auth: AuthConfig
    ) -> AsyncIterator[redis.Redis]:
        conn = self._new_connection(address, port, auth)
        try:
            yield conn
        except ResponseError:
            raise
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise ProbeError(f"{address}:{port}", str(e) or type(e).__name__) from e
        finally:
            await conn.aclose()

    @asynccontextmanager
    async def redis_conn(self, address: str, auth: AuthConfig) -> AsyncIterator[redis.Redis]:
        async with self._connect(address, self.redis_port, auth) as conn:
            yield conn

    @asynccontextmanager
    async def sentinel_conn(self, address: str, auth: AuthConfig) -> AsyncIterator[redis.Redis]:
        async with self._connect(address, self.sentinel_port, auth) as conn:
            yield conn

    # Redis reads

    async def _replication_info(self, address: str, auth: AuthConfig) -> dict[str, Any]:
        try:
            async with self.redis_conn(address, auth) as conn:
                return await conn.info("replication")
        except ResponseError as e:
            raise ProbeError(address, str(e)) from e

    async def get_role(self, address: str, auth: AuthConfig) -> NodeRole:
        info = await self._replication_info(address, auth)
        role = info.get("role", "")
        if role == "master":
            return NodeRole.MASTER
        if role in ("slave", "replica"):
            return NodeRole.SLAVE
        return NodeRole.UNKNOWN

    async def get_master_host(self, address: str, auth: AuthConfig) -> str:
        """Return the replication source of a replica, or "" for a master."""
        info = await self._replication_info(address, auth)
        if info.get("role") not in ("slave", "replica"):
            return ""
        return str(info.get("master_host", ""))

    async def get_config(
        self, address: str, keys: Iterable[str], auth: AuthConfig
    ) -> dict[str, str]:
        values: dict[str, str] = {}
        try:
            async with self.redis_conn(address, auth) as conn:
                for key in keys:
                    reply = await conn.config_get(key)
                    if key in reply:
                        values[key] = str(reply[key])
        except ResponseError as e:
            raise ProbeError(address, str(e)) from e
        return values

    # Redis writes

    async def make_master(self, address: str, auth: AuthConfig) -> None:
        async with self.redis_conn(address, auth) as conn:
            await conn.slaveof()
        logger.info(f"Redis {address} promoted to master")

    async def make_slave_of(self, address: str, master: str, auth: AuthConfig) -> None:
        async with self.redis_conn(address, auth) as conn:
            await conn.slaveof(master, self.redis_port)
        logger.info(f"Redis {address} now replicates from {master}")

    async def set_config(
        self, address: str, config: dict[str, str], auth: AuthConfig
    ) -> None:
        async with self.redis_conn(address, auth) as conn:
            for key, value in config.items():
                await conn.config_set(key, value)
        logger.debug(f"Applied {len(config)} config keys to redis {address}")

    # Sentinel

    async def sentinel_view(self, address: str, auth: AuthConfig) -> SentinelView:
        try:
            async with self.sentinel_conn(address, auth) as conn:
                info = await conn.info("sentinel")
        except ResponseError as e:
            raise ProbeError(address, str(e)) from e
        return parse_sentinel_master(info, self.master_name)

    async def sentinel_monitor(
        self,
        address: str,
        master: str,
        quorum: int,
        auth: AuthConfig,
        directives: Optional[list[tuple[str, str]]] = None,
    ) -> None:
        async with self.sentinel_conn(address, auth) as conn:
            try:
                await conn.sentinel_remove(self.master_name)
            except ResponseError as e:
                if _NO_SUCH_MASTER not in str(e).lower():
                    raise
            await conn.sentinel_monitor(self.master_name, master, self.redis_port, quorum)
            if auth.password:
                await conn.sentinel_set(self.master_name, "auth-pass", auth.password)
            for option, value in directives or []:
                await conn.sentinel_set(self.master_name, option, value)
        logger.info(f"Sentinel {address} monitors {master} (quorum {quorum})")

    async def sentinel_set(
        self, address: str, directives: list[tuple[str, str]], auth: AuthConfig
    ) -> bool:
        """
        Apply custom directives to the monitored master.

        Returns:
            False if the sentinel does not monitor the master yet
        """
        async with self.sentinel_conn(address, auth) as conn:
            for option, value in directives:
                try:
                    await conn.sentinel_set(self.master_name, option, value)
                except ResponseError as e:
                    if _NO_SUCH_MASTER in str(e).lower():
                        return False
                    raise
        return True

    async def sentinel_reset(self, address: str, auth: AuthConfig) -> None:
        async with self.sentinel_conn(address, auth) as conn:
            await conn.sentinel_reset("*")
        logger.info(f"Sentinel {address} reset")
