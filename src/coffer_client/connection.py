"""Connections to a coffer server and the storages it hosts."""

from typing import Any, List, Optional
import logging

from .constants import CONTAINERS_PATH, POOL_NAME_PREFIX, STATUS_OK
from .errors import ConnectionClosedError, TransportError
from .models import ConnectionConfig, ConnectionState, RemoteStorage
from .pools import start_pool, start_private_pool, stop_all, stop_pool
from .reconcile import check_response, parse_containers_response
from .transport import HttpTransport

logger = logging.getLogger(__name__)


class Connection:
    """A connection to a coffer server bound to one transport pool.

    When the config names no pool, the connection starts a private pool named
    ``Pool:<url>`` (suffixed ``#<n>`` if that name is taken) and stops it on
    close. A named pool is shared and outlives the connection; stop it with
    ``stop_pool`` or ``stop``.
    """

    def __init__(
        self,
        url: str,
        config: Optional[ConnectionConfig] = None,
        transport: Optional[HttpTransport] = None,
    ):
        self.url = url.rstrip("/")
        self.config = config or ConnectionConfig()
        self.state = ConnectionState.ACTIVE
        self.owns_pool = False

        if transport is not None:
            self.pool_name = None
            self.transport = transport
        elif self.config.pool is not None:
            self.pool_name = self.config.pool
            self.transport = start_pool(
                self.pool_name,
                pool_size=self.config.pool_opts.pool_size,
                timeout=self.config.timeout,
                verify=self.config.verify,
            )
        else:
            self.pool_name, self.transport = start_private_pool(
                f"{POOL_NAME_PREFIX}{self.url}",
                pool_size=self.config.pool_opts.pool_size,
                timeout=self.config.timeout,
                verify=self.config.verify,
            )
            self.owns_pool = True

    @property
    def closed(self) -> bool:
        return self.state == ConnectionState.CLOSED or self.transport.closed

    def ensure_active(self) -> None:
        if self.closed:
            raise ConnectionClosedError(f"Connection to {self.url} is closed")

    def close(self) -> None:
        """Stop the pool this connection started and mark it closed."""
        if self.state == ConnectionState.CLOSED:
            return
        if self.owns_pool:
            stop_pool(self.pool_name)
        elif self.pool_name is None:
            self.transport.close()
        self.state = ConnectionState.CLOSED

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def ping(self) -> bool:
        """Check the server answers HEAD with 200.

        Raises:
            ConnectionClosedError: If the connection is closed
        """
        self.ensure_active()
        try:
            return self.transport.head(self.url) == STATUS_OK
        except TransportError as e:
            logger.debug(f"Ping {self.url} failed: {e}")
            return False

    def storages(self) -> List[Any]:
        """List the storages (containers) hosted by the server."""
        self.ensure_active()
        response = self.transport.request("GET", f"{self.url}/{CONTAINERS_PATH}")
        check_response(response, [STATUS_OK])
        return parse_containers_response(response.body)

    def storage(self, name: str) -> RemoteStorage:
        self.ensure_active()
        return RemoteStorage(connection=self, name=name, url=f"{self.url}/{name}")

    def __repr__(self) -> str:
        return f"Connection({self.url!r}, state={self.state.value})"


def new_connection(url: str, config: Optional[ConnectionConfig] = None, **options) -> Connection:
    """Open a connection.

    Options may be given as a ConnectionConfig or as keyword arguments with
    the same names (``pool``, ``pool_opts``, ``timeout``, ``verify``).

    Example:
        >>> conn = new_connection("http://localhost:5000", pool_opts={"pool_size": 4})
        >>> conn.ping()
        True
    """
    if config is None:
        config = ConnectionConfig(**options)
    elif options:
        config = ConnectionConfig(**{**config.model_dump(), **options})
    return Connection(url, config)


def close_connection(conn: Connection) -> None:
    conn.close()


def stop() -> None:
    """Stop every running pool."""
    stop_all()
    logger.debug("coffer client stopped")


__all__ = ["Connection", "new_connection", "close_connection", "stop"]
