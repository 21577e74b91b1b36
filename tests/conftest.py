"""Shared test fixtures and utilities."""

import json
import re
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, List, Optional

import pytest

from coffer_client.connection import Connection, stop
from coffer_client.hashing import hash_bytes
from coffer_client.models import RemoteStorage
from coffer_client.transport import RawResponse


def parse_multipart(body: bytes, content_type: str) -> List[tuple]:
    """Split a multipart body into (name, headers, data) tuples."""
    boundary = content_type.split("boundary=", 1)[1].encode("ascii")
    assert body.endswith(b"--" + boundary + b"--\r\n"), "body must end with closing boundary"
    parts = []
    for raw in body.split(b"--" + boundary)[1:-1]:
        assert raw.startswith(b"\r\n") and raw.endswith(b"\r\n")
        head, data = raw[2:-2].split(b"\r\n\r\n", 1)
        headers = dict(
            line.split(": ", 1) for line in head.decode("utf-8").split("\r\n")
        )
        name = re.search(r'name="([^"]+)"', headers["Content-Disposition"]).group(1)
        parts.append((name, headers, data))
    return parts


def store_parts(parts: List[tuple]) -> dict:
    """Answer a bulk upload the way a content-addressed server would."""
    received, errors = [], []
    for name, _headers, data in parts:
        if hash_bytes(data) == name:
            received.append({"blobref": name, "size": len(data)})
        else:
            errors.append({"blobref": name, "error": "hash mismatch"})
    return {"received": received, "errors": errors}


# ============= Recording fake transport =============

class FakeRequest:
    """ChunkedRequest stand-in that records writes."""

    def __init__(self, transport, method, url, headers):
        self.transport = transport
        self.method = method
        self.url = url
        self.headers = dict(headers or {})
        self.writes: List[bytes] = []
        self.closed = False
        self.finished = False
        self.aborted = False

    @property
    def body(self) -> bytes:
        return b"".join(self.writes)

    def write(self, data: bytes) -> None:
        assert not self.closed, "write after close"
        if data:
            self.writes.append(bytes(data))

    def finish(self) -> RawResponse:
        assert not self.closed, "finish after close"
        self.closed = True
        self.finished = True
        return self.transport.respond(self)

    def abort(self) -> None:
        self.closed = True
        self.aborted = True


class FakeTransport:
    """HttpTransport stand-in answering through a responder callable."""

    def __init__(self, responder: Optional[Callable[[FakeRequest], RawResponse]] = None):
        self.responder = responder or self.default_responder
        self.requests: List[FakeRequest] = []
        self.calls: List[tuple] = []
        self.closed = False

    @staticmethod
    def default_responder(request: FakeRequest) -> RawResponse:
        if request.method == "POST":
            parts = parse_multipart(request.body, request.headers["Content-Type"])
            return RawResponse(201, {}, json.dumps(store_parts(parts)).encode())
        blobref = request.url.rsplit("/", 1)[1]
        body = {"received": [{"blobref": blobref, "size": len(request.body)}]}
        return RawResponse(201, {}, json.dumps(body).encode())

    def respond(self, request: FakeRequest) -> RawResponse:
        return self.responder(request)

    def open_chunked(self, method, url, headers=None) -> FakeRequest:
        self.calls.append(("open_chunked", method, url))
        request = FakeRequest(self, method, url, headers)
        self.requests.append(request)
        return request

    def head(self, url) -> int:
        self.calls.append(("head", url))
        return 200

    def request(self, method, url, headers=None, data=None) -> RawResponse:
        self.calls.append(("request", method, url))
        return RawResponse(200, {}, b'{"containers": ["photos"]}')

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def storage(fake_transport) -> RemoteStorage:
    """A storage on a connection backed by the fake transport."""
    conn = Connection("http://coffer.test", transport=fake_transport)
    return conn.storage("photos")


@pytest.fixture
def multipart_parts():
    """Parse the multipart body of a recorded FakeRequest."""
    def _parts(request: FakeRequest):
        return parse_multipart(request.body, request.headers["Content-Type"])
    return _parts


# ============= Local coffer server =============

class CofferHandler(BaseHTTPRequestHandler):
    """Minimal coffer server: stores nothing, answers like the real one."""

    protocol_version = "HTTP/1.1"

    def log_message(self, format, *args):
        pass

    def _read_body(self) -> bytes:
        if self.headers.get("Transfer-Encoding", "").lower() == "chunked":
            chunks = []
            while True:
                line = self.rfile.readline()
                if not line:
                    break
                size = int(line.split(b";")[0].strip(), 16)
                if size == 0:
                    while self.rfile.readline() not in (b"\r\n", b"\n", b""):
                        pass
                    break
                chunks.append(self.rfile.read(size))
                self.rfile.readline()
            return b"".join(chunks)
        length = int(self.headers.get("Content-Length", 0))
        return self.rfile.read(length) if length else b""

    def _send(self, status: int, payload=None) -> None:
        body = json.dumps(payload).encode() if payload is not None else b""
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def _record(self, body: bytes) -> None:
        self.server.requests.append({
            "method": self.command,
            "path": self.path,
            "headers": dict(self.headers),
            "body": body,
        })

    def do_HEAD(self):
        self._record(b"")
        self._send(200 if self.path in ("", "/") else 404)

    def do_GET(self):
        self._record(b"")
        if self.path == "/containers":
            self._send(200, {"containers": self.server.containers})
        else:
            self._send(404, {"error": "not_found"})

    def do_PUT(self):
        body = self._read_body()
        self._record(body)
        storage, blobref = self.path.strip("/").split("/", 1)
        if storage == "locked":
            self._send(409, {"error": "conflict", "blobref": blobref})
        elif storage == "private":
            self._send(401, {"error": "unauthorized"})
        else:
            self._send(201, {"received": [{"blobref": blobref, "size": len(body)}]})

    def do_POST(self):
        body = self._read_body()
        self._record(body)
        parts = parse_multipart(body, self.headers["Content-Type"])
        if self.path == "/full":
            errors = [{"blobref": name, "error": "storage full"} for name, _, _ in parts]
            self._send(201, {"received": [], "errors": errors})
        else:
            self._send(201, store_parts(parts))


@pytest.fixture
def no_proxy(monkeypatch):
    """Keep requests from routing localhost traffic through a proxy."""
    for var in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")


@pytest.fixture
def coffer_server(no_proxy):
    """Run a coffer server on a free local port; yields the server."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), CofferHandler)
    server.requests = []
    server.containers = ["photos", "videos"]
    server.url = f"http://127.0.0.1:{server.server_port}"
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture(autouse=True)
def stop_pools():
    """Stop every pool a test started."""
    yield
    stop()
