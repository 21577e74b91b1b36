"""Tests for connections, storages and named pools."""

import socket

import pytest

from coffer_client import pools
from coffer_client.connection import Connection, close_connection, new_connection, stop
from coffer_client.errors import ConnectionClosedError, NotFoundError
from coffer_client.models import ConnectionConfig, ConnectionState, PoolOptions
from coffer_client.transport import RawResponse


class TestPools:

    def test_connection_starts_own_pool(self):
        conn = new_connection("http://coffer.test:5000/")

        assert conn.url == "http://coffer.test:5000"
        assert conn.pool_name == "Pool:http://coffer.test:5000"
        assert pools.get_pool(conn.pool_name) is conn.transport
        assert conn.transport.pool_size == 10

    def test_pool_size_option(self):
        conn = new_connection("http://coffer.test", pool_opts={"pool_size": 3})
        assert conn.transport.pool_size == 3

    def test_named_pool_is_shared(self):
        shared = pools.start_pool("shared", pool_size=4)
        a = new_connection("http://a.test", pool="shared")
        b = new_connection("http://b.test", ConnectionConfig(pool="shared"))

        assert a.transport is shared
        assert b.transport is shared

    def test_start_pool_is_idempotent(self):
        first = pools.start_pool("p")
        assert pools.start_pool("p") is first

    def test_stop_pool(self):
        transport = pools.start_pool("p")
        assert pools.stop_pool("p")
        assert transport.closed
        assert pools.get_pool("p") is None
        assert not pools.stop_pool("p")

    def test_stop_all(self):
        first = pools.start_pool("one")
        second = pools.start_pool("two")
        stop()
        assert first.closed and second.closed
        assert pools.get_pool("one") is None

    def test_restart_after_stop(self):
        first = pools.start_pool("p")
        first.close()
        assert pools.start_pool("p") is not first

    def test_config_and_options_merge(self):
        config = ConnectionConfig(timeout=5.0, pool_opts=PoolOptions(pool_size=2))
        conn = new_connection("http://coffer.test", config, verify=False)

        assert conn.config.timeout == 5.0
        assert conn.config.verify is False
        assert conn.transport.pool_size == 2
        assert conn.transport.verify is False

    def test_same_url_connections_get_separate_pools(self):
        a = new_connection("http://coffer.test")
        b = new_connection("http://coffer.test", verify=False, pool_opts={"pool_size": 2})

        assert a.pool_name == "Pool:http://coffer.test"
        assert b.pool_name == "Pool:http://coffer.test#2"
        assert a.transport is not b.transport
        assert b.transport.pool_size == 2
        assert b.transport.verify is False

    def test_closing_one_same_url_connection(self):
        a = new_connection("http://coffer.test")
        b = new_connection("http://coffer.test", timeout=3.0)
        a.close()

        assert a.closed
        assert not b.closed
        assert not b.transport.closed
        assert pools.get_pool(b.pool_name) is b.transport

    def test_private_pool_name_reused_after_stop(self):
        a = new_connection("http://coffer.test")
        a.close()
        assert new_connection("http://coffer.test").pool_name == "Pool:http://coffer.test"

    def test_close_leaves_named_pool_running(self):
        shared = pools.start_pool("shared")
        a = new_connection("http://a.test", pool="shared")
        b = new_connection("http://b.test", pool="shared")
        a.close()

        assert a.closed
        assert not shared.closed
        assert not b.closed

    def test_stopped_pool_closes_connection(self):
        conn = new_connection("http://coffer.test")
        stop()

        assert conn.closed
        with pytest.raises(ConnectionClosedError):
            conn.ping()

    def test_invalid_pool_size(self):
        with pytest.raises(ValueError):
            ConnectionConfig(pool_opts={"pool_size": 0})


class TestLifecycle:

    def test_close_stops_pool(self):
        conn = new_connection("http://coffer.test")
        transport = conn.transport
        close_connection(conn)

        assert conn.closed
        assert conn.state == ConnectionState.CLOSED
        assert transport.closed
        assert pools.get_pool(conn.pool_name) is None

    def test_close_twice(self):
        conn = new_connection("http://coffer.test")
        conn.close()
        conn.close()

    def test_context_manager(self):
        with new_connection("http://coffer.test") as conn:
            assert not conn.closed
        assert conn.closed

    @pytest.mark.parametrize("operation", [
        lambda c: c.ping(),
        lambda c: c.storages(),
        lambda c: c.storage("photos"),
    ])
    def test_closed_connection_rejects_calls(self, fake_transport, operation):
        conn = Connection("http://coffer.test", transport=fake_transport)
        conn.close()

        with pytest.raises(ConnectionClosedError):
            operation(conn)
        assert fake_transport.calls == []
        assert fake_transport.closed


class TestOperations:

    def test_storage(self, fake_transport):
        conn = Connection("http://coffer.test/", transport=fake_transport)
        storage = conn.storage("photos")

        assert storage.url == "http://coffer.test/photos"
        assert storage.name == "photos"
        assert storage.connection is conn
        assert fake_transport.calls == []

    def test_ping_with_fake(self, fake_transport):
        conn = Connection("http://coffer.test", transport=fake_transport)
        assert conn.ping() is True
        assert fake_transport.calls == [("head", "http://coffer.test")]

    def test_storages_with_fake(self, fake_transport):
        conn = Connection("http://coffer.test", transport=fake_transport)
        assert conn.storages() == ["photos"]
        assert fake_transport.calls == [("request", "GET", "http://coffer.test/containers")]

    def test_storages_error(self, fake_transport):
        fake_transport.request = lambda method, url, headers=None, data=None: RawResponse(404, {}, b"")
        conn = Connection("http://coffer.test", transport=fake_transport)
        with pytest.raises(NotFoundError):
            conn.storages()


class TestAgainstServer:

    def test_ping(self, coffer_server):
        assert new_connection(coffer_server.url).ping() is True

    def test_ping_wrong_path(self, coffer_server):
        assert new_connection(coffer_server.url + "/missing").ping() is False

    def test_ping_unreachable(self, no_proxy):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]
        assert new_connection(f"http://127.0.0.1:{port}", timeout=2).ping() is False

    def test_storages(self, coffer_server):
        assert new_connection(coffer_server.url).storages() == ["photos", "videos"]
