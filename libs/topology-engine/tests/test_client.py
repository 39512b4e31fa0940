"""Tests for the Redis/Sentinel protocol client."""

from unittest.mock import AsyncMock, call, patch

import pytest
from redis.exceptions import ConnectionError, ResponseError

from redisop_topology import AuthConfig, NodeRole, ProbeError, RedisNodeClient
from redisop_topology.client import parse_sentinel_master


@pytest.fixture
def conn():
    return AsyncMock()


@pytest.fixture
def client(conn):
    node_client = RedisNodeClient(timeout=1.0)
    with patch.object(node_client, "_new_connection", return_value=conn):
        yield node_client


class TestParseSentinelMaster:
    """Test cases for INFO sentinel parsing."""

    def test_parsed_entry(self):
        info = {
            "sentinel_masters": 1,
            "master0": {
                "name": "mymaster",
                "status": "ok",
                "address": "10.0.0.1:6379",
                "slaves": 2,
                "sentinels": 3,
            },
        }
        view = parse_sentinel_master(info, "mymaster")
        assert view.master_address == "10.0.0.1"
        assert view.slaves == 2
        assert view.sentinels == 3

    def test_raw_entry(self):
        info = {"master0": "name=mymaster,status=ok,address=10.0.0.2:6379,slaves=1,sentinels=2"}
        view = parse_sentinel_master(info, "mymaster")
        assert view.master_address == "10.0.0.2"
        assert view.slaves == 1

    def test_not_monitoring(self):
        assert parse_sentinel_master({"sentinel_masters": 0}, "mymaster").master_address == ""
        info = {"master0": {"name": "other", "address": "10.0.0.1:6379"}}
        assert parse_sentinel_master(info, "mymaster").master_address == ""


class TestRedisNodeClient:
    """Test cases for RedisNodeClient."""

    @pytest.mark.asyncio
    async def test_get_role(self, client, conn):
        conn.info.return_value = {"role": "slave", "master_host": "10.0.0.1"}
        auth = AuthConfig()

        assert await client.get_role("10.0.0.2", auth) == NodeRole.SLAVE
        assert await client.get_master_host("10.0.0.2", auth) == "10.0.0.1"
        conn.info.assert_awaited_with("replication")
        assert conn.aclose.await_count == 2

    @pytest.mark.asyncio
    async def test_master_has_no_source(self, client, conn):
        conn.info.return_value = {"role": "master"}

        assert await client.get_role("10.0.0.1", AuthConfig()) == NodeRole.MASTER
        assert await client.get_master_host("10.0.0.1", AuthConfig()) == ""

    @pytest.mark.asyncio
    async def test_connection_error_is_probe_error(self, client, conn):
        """Test that transport failures surface as ProbeError and close the connection."""
        conn.info.side_effect = ConnectionError("Connection refused")

        with pytest.raises(ProbeError) as exc_info:
            await client.get_role("10.0.0.1", AuthConfig())

        assert "10.0.0.1:6379" in str(exc_info.value)
        conn.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_get_config(self, client, conn):
        conn.config_get.side_effect = [{"maxmemory": "0"}, {}]

        values = await client.get_config("10.0.0.1", ["maxmemory", "bogus"], AuthConfig())

        assert values == {"maxmemory": "0"}

    @pytest.mark.asyncio
    async def test_promote_and_rewire(self, client, conn):
        auth = AuthConfig()
        await client.make_master("10.0.0.1", auth)
        await client.make_slave_of("10.0.0.2", "10.0.0.1", auth)

        assert conn.slaveof.await_args_list == [call(), call("10.0.0.1", 6379)]

    @pytest.mark.asyncio
    async def test_set_config(self, client, conn):
        await client.set_config("10.0.0.1", {"slave-priority": "1"}, AuthConfig())

        conn.config_set.assert_awaited_once_with("slave-priority", "1")

    @pytest.mark.asyncio
    async def test_sentinel_monitor(self, client, conn):
        """Test monitor replaces any previous master and sets auth."""
        conn.sentinel_remove.side_effect = ResponseError("ERR No such master with that name")

        await client.sentinel_monitor(
            "10.0.1.1",
            "10.0.0.1",
            2,
            AuthConfig(password="pw"),
            directives=[("down-after-milliseconds", "5000")],
        )

        conn.sentinel_monitor.assert_awaited_once_with("mymaster", "10.0.0.1", 6379, 2)
        assert conn.sentinel_set.await_args_list == [
            call("mymaster", "auth-pass", "pw"),
            call("mymaster", "down-after-milliseconds", "5000"),
        ]

    @pytest.mark.asyncio
    async def test_sentinel_set_without_monitor(self, client, conn):
        conn.sentinel_set.side_effect = ResponseError("ERR No such master with that name")

        applied = await client.sentinel_set(
            "10.0.1.1", [("failover-timeout", "10000")], AuthConfig()
        )

        assert applied is False

    @pytest.mark.asyncio
    async def test_sentinel_reset_and_view(self, client, conn):
        conn.info.return_value = {
            "master0": {"name": "mymaster", "address": "10.0.0.1:6379", "slaves": 2, "sentinels": 3}
        }

        await client.sentinel_reset("10.0.1.1", AuthConfig())
        view = await client.sentinel_view("10.0.1.1", AuthConfig())

        conn.sentinel_reset.assert_awaited_once_with("*")
        conn.info.assert_awaited_once_with("sentinel")
        assert view.slaves == 2
