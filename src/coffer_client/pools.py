"""Named transport pools shared between connections."""

from typing import Dict, Optional, Tuple
import logging
import threading

from .constants import DEFAULT_POOL_SIZE
from .transport import HttpTransport

logger = logging.getLogger(__name__)

_pools: Dict[str, HttpTransport] = {}
_lock = threading.Lock()


def start_pool(
    name: str,
    pool_size: int = DEFAULT_POOL_SIZE,
    timeout: Optional[float] = None,
    verify: bool = True,
) -> HttpTransport:
    """Start a pool, or return the running pool with that name."""
    with _lock:
        transport = _pools.get(name)
        if transport is None or transport.closed:
            transport = HttpTransport(pool_size=pool_size, timeout=timeout, verify=verify)
            _pools[name] = transport
            logger.debug(f"Started pool {name} (size {pool_size})")
        return transport


def start_private_pool(
    prefix: str,
    pool_size: int = DEFAULT_POOL_SIZE,
    timeout: Optional[float] = None,
    verify: bool = True,
) -> Tuple[str, HttpTransport]:
    """Start a new pool under an unused name derived from prefix.

    The first pool gets ``prefix`` itself, later ones ``prefix#2``, ``prefix#3``
    and so on. Returns the chosen name and the pool.
    """
    with _lock:
        name, n = prefix, 1
        while name in _pools and not _pools[name].closed:
            n += 1
            name = f"{prefix}#{n}"
        transport = HttpTransport(pool_size=pool_size, timeout=timeout, verify=verify)
        _pools[name] = transport
    logger.debug(f"Started pool {name} (size {pool_size})")
    return name, transport


def get_pool(name: str) -> Optional[HttpTransport]:
    with _lock:
        return _pools.get(name)


def stop_pool(name: str) -> bool:
    """Stop a pool. Returns False if no pool had that name."""
    with _lock:
        transport = _pools.pop(name, None)
    if transport is None:
        return False
    transport.close()
    logger.debug(f"Stopped pool {name}")
    return True


def stop_all() -> None:
    with _lock:
        names = list(_pools)
    for name in names:
        stop_pool(name)


__all__ = ["start_pool", "start_private_pool", "get_pool", "stop_pool", "stop_all"]
