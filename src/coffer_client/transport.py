"""HTTP transport built on requests.

Plain calls go through a pooled ``requests.Session``. Uploads whose body is
produced incrementally use a ``ChunkedRequest``: the request runs on a worker
thread and pulls body chunks from a bounded queue, so callers push data as it
becomes available and the body is sent with chunked transfer encoding.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional
import logging
import queue
import threading
import time

import requests
from requests.adapters import HTTPAdapter

from .constants import DEFAULT_POOL_SIZE
from .errors import ConnectionClosedError, TransportError

logger = logging.getLogger(__name__)

# Body queue markers
_END = object()
_ABORT = object()

# Seconds between liveness checks while waiting on the worker
_POLL_INTERVAL = 0.1

# Upper bound in seconds on how long abort waits for the worker
_ABORT_WAIT = 5.0


class RequestAborted(Exception):
    """Raised inside the body iterator to stop an abandoned request."""
    pass


@dataclass
class RawResponse:
    """Status, headers and body of a completed HTTP exchange."""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""


def _to_raw(response: requests.Response) -> RawResponse:
    return RawResponse(
        status=response.status_code,
        headers=dict(response.headers),
        body=response.content,
    )


class ChunkedRequest:
    """A streaming request whose body is pushed chunk by chunk.

    ``write`` returns once the worker has room for the chunk, ``finish``
    ends the body and waits for the response, ``abort`` drops the request.
    A handle is owned by a single caller; it is not safe to share.
    """

    def __init__(
        self,
        session: requests.Session,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        verify: bool = True,
    ):
        self.method = method.upper()
        self.url = url
        self.headers = dict(headers or {})
        self._session = session
        self._timeout = timeout
        self._verify = verify
        self._queue: "queue.Queue" = queue.Queue(maxsize=1)
        self._done = threading.Event()
        self._response: Optional[RawResponse] = None
        self._error: Optional[BaseException] = None
        self.closed = False

        self._thread = threading.Thread(
            target=self._run,
            name=f"coffer-{self.method.lower()}",
            daemon=True,
        )
        self._thread.start()

    def _body(self) -> Iterator[bytes]:
        while True:
            item = self._queue.get()
            if item is _END:
                return
            if item is _ABORT:
                raise RequestAborted(f"{self.method} {self.url} aborted")
            yield item

    def _run(self) -> None:
        try:
            response = self._session.request(
                self.method,
                self.url,
                headers=self.headers,
                data=self._body(),
                timeout=self._timeout,
                verify=self._verify,
            )
            self._response = _to_raw(response)
        except Exception as e:
            # Re-raised to the owner from finish()/write()
            self._error = e
        finally:
            self._done.set()

    def _offer(self, item, deadline: Optional[float] = None) -> bool:
        """Hand an item to the worker.

        Returns False if the worker stopped, or the deadline (a
        ``time.monotonic`` value) passed, before it took the item.
        """
        while not self._done.is_set():
            if deadline is not None and time.monotonic() >= deadline:
                return False
            try:
                self._queue.put(item, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _failure(self) -> TransportError:
        if self._error is not None:
            return TransportError(f"{self.method} {self.url} failed: {self._error}")
        return TransportError(f"{self.method} {self.url} ended before the body was complete")

    def _ensure_open(self) -> None:
        if self.closed:
            raise ConnectionClosedError(f"{self.method} {self.url} is already closed")

    def write(self, data: bytes) -> None:
        """Append bytes to the request body."""
        self._ensure_open()
        if not data:
            return
        if not self._offer(bytes(data)):
            self.closed = True
            raise self._failure() from self._error

    def finish(self) -> RawResponse:
        """End the body and wait for the server's response."""
        self._ensure_open()
        self.closed = True
        self._offer(_END)
        self._thread.join()
        if self._error is not None or self._response is None:
            raise self._failure() from self._error
        return self._response

    def abort(self) -> None:
        """Stop the request without waiting for a response."""
        if self.closed:
            return
        self.closed = True
        wait = _ABORT_WAIT if self._timeout is None else min(self._timeout, _ABORT_WAIT)
        deadline = time.monotonic() + wait
        self._offer(_ABORT, deadline)
        self._thread.join(timeout=max(0.0, deadline - time.monotonic()))
        if self._thread.is_alive():
            logger.warning(
                f"Aborted {self.method} {self.url}; worker still busy after {wait:.1f}s"
            )
        else:
            logger.debug(f"Aborted {self.method} {self.url}")


class HttpTransport:
    """Pooled HTTP transport shared by every connection using one pool."""

    def __init__(
        self,
        pool_size: int = DEFAULT_POOL_SIZE,
        timeout: Optional[float] = None,
        verify: bool = True,
    ):
        self.pool_size = pool_size
        self.timeout = timeout
        self.verify = verify
        self.session = requests.Session()
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.closed = False

    def _ensure_open(self) -> None:
        if self.closed:
            raise ConnectionClosedError("Transport is closed")

    def head(self, url: str) -> int:
        """Send a HEAD request and return the status code."""
        self._ensure_open()
        try:
            response = self.session.head(url, timeout=self.timeout, verify=self.verify)
        except requests.RequestException as e:
            raise TransportError(f"HEAD {url} failed: {e}") from e
        response.close()
        return response.status_code

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        data=None,
    ) -> RawResponse:
        """Send a request with a complete body and read the full response."""
        self._ensure_open()
        try:
            response = self.session.request(
                method.upper(),
                url,
                headers=headers,
                data=data,
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.RequestException as e:
            raise TransportError(f"{method.upper()} {url} failed: {e}") from e
        return _to_raw(response)

    def open_chunked(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> ChunkedRequest:
        """Start a request whose body will be pushed incrementally."""
        self._ensure_open()
        return ChunkedRequest(
            self.session,
            method,
            url,
            headers=headers,
            timeout=self.timeout,
            verify=self.verify,
        )

    def close(self) -> None:
        if not self.closed:
            self.session.close()
            self.closed = True


__all__ = [
    "RawResponse",
    "ChunkedRequest",
    "HttpTransport",
    "RequestAborted",
]
