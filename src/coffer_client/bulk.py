"""Bulk upload state machine.

A bulk upload sends many blobs over one chunked ``POST <storage-url>`` whose
body is multipart/form-data, one part per blob, written as submissions
arrive. Blobs are either submitted whole or delivered through a sub-stream:
a part opened with ``open_stream``, fed with ``stream_chunk`` and closed with
``end_of_blob``.

Session states::

    IDLE --submit--> IDLE
    IDLE --open_stream--> STREAM_OPEN --stream_chunk--> STREAM_OPEN
    STREAM_OPEN --end_of_blob--> IDLE
    IDLE --finalize--> FINALIZED

Every transition returns a new ``UploadSession`` value and retires the one it
was called with. Only one sub-stream can be open at a time, so parts never
interleave and appear on the wire in call order.

Example:
    >>> session = open_session(storage)
    >>> session = submit(session, b"AB")
    >>> session = open_stream(session, ref)
    >>> session = stream_chunk(session, b"first")
    >>> session = end_of_blob(session)
    >>> session, result = finalize(session)
"""

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Optional, Tuple
import logging

from .constants import STATUS_CREATED
from .errors import (
    NoOpenStreamError,
    OpenStreamPendingError,
    SessionBrokenError,
    SessionFinalizedError,
    StaleSessionError,
)
from .hashing import hash_bytes, hash_file
from .models import BulkResult, RemoteStorage
from .multipart import MultipartWriter, iter_file
from .reconcile import check_response, parse_bulk_response
from .sources import BlobFile, Buffer, PreHashed, Stream, as_source

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    STREAM_OPEN = "stream_open"
    FINALIZED = "finalized"


class _BulkRequest:
    """Wire state shared by the chain of session values of one upload."""

    def __init__(self, storage: RemoteStorage, writer: MultipartWriter):
        self.storage = storage
        self.writer = writer
        self.generation = 0
        self.finalized = False
        self.failure: Optional[BaseException] = None

    def advance(self) -> int:
        self.generation += 1
        return self.generation


@dataclass(frozen=True)
class UploadSession:
    """One step of a bulk upload.

    Attributes:
        upload: Wire state of the underlying request
        state: Protocol state of this step
        generation: Position in the session chain; older values are stale
        stream_ref: Reference of the open sub-stream, if any
    """

    upload: _BulkRequest
    state: SessionState = SessionState.IDLE
    generation: int = 0
    stream_ref: Optional[str] = None

    @property
    def sub_stream_open(self) -> bool:
        return self.state == SessionState.STREAM_OPEN

    @property
    def storage(self) -> RemoteStorage:
        return self.upload.storage


def _next(session: UploadSession, state: SessionState,
          stream_ref: Optional[str] = None) -> UploadSession:
    return UploadSession(
        upload=session.upload,
        state=state,
        generation=session.upload.advance(),
        stream_ref=stream_ref,
    )


def _check_live(session: UploadSession) -> None:
    upload = session.upload
    if upload.finalized or session.state == SessionState.FINALIZED:
        raise SessionFinalizedError()
    if upload.failure is not None:
        raise SessionBrokenError(upload.failure)
    if session.generation != upload.generation:
        raise StaleSessionError(session.generation, upload.generation)


def _require_idle(session: UploadSession) -> None:
    _check_live(session)
    if session.state == SessionState.STREAM_OPEN:
        raise OpenStreamPendingError(session.stream_ref)


def _require_stream(session: UploadSession) -> None:
    _check_live(session)
    if session.state != SessionState.STREAM_OPEN:
        raise NoOpenStreamError()


@contextmanager
def _on_wire(session: UploadSession) -> Iterator[MultipartWriter]:
    """Yield the writer; any failure leaves the session unusable."""
    try:
        yield session.upload.writer
    except BaseException as e:
        session.upload.failure = e
        logger.warning(f"Bulk upload to {session.storage.url} broken: {e}")
        raise


def open_session(storage: RemoteStorage) -> UploadSession:
    """Start a bulk upload to a storage.

    Raises:
        ConnectionClosedError: If the storage's connection is closed
    """
    storage.connection.ensure_active()
    writer = MultipartWriter.open(storage.connection.transport, "POST", storage.url)
    logger.debug(f"Opened bulk upload to {storage.url}")
    return UploadSession(upload=_BulkRequest(storage, writer))


def submit(session: UploadSession, source: Any) -> UploadSession:
    """Add one whole blob to the upload.

    Buffers and files are hashed first. A PreHashed reference is sent as
    given, without validation. A Stream source opens a sub-stream.

    Raises:
        OpenStreamPendingError: If a sub-stream is open (session unchanged)
        BlobReadError: If a file cannot be read (session becomes unusable)
    """
    _require_idle(session)
    source = as_source(source)

    if isinstance(source, Stream):
        return open_stream(session, source.blobref)

    with _on_wire(session) as writer:
        if isinstance(source, Buffer):
            writer.write_part(hash_bytes(source.data), source.data)
        elif isinstance(source, PreHashed):
            writer.write_part(source.blobref, source.data)
        elif isinstance(source, BlobFile):
            writer.write_part_stream(hash_file(source.path), iter_file(source.path))
        else:
            raise TypeError(f"Unknown blob source: {source!r}")
    return _next(session, SessionState.IDLE)


def open_stream(session: UploadSession, blobref: str) -> UploadSession:
    """Open a sub-stream part tagged with a reference.

    Raises:
        OpenStreamPendingError: If a sub-stream is already open
    """
    _require_idle(session)
    with _on_wire(session) as writer:
        writer.start_part(blobref)
    return _next(session, SessionState.STREAM_OPEN, blobref)


def stream_chunk(session: UploadSession, data: bytes) -> UploadSession:
    """Append bytes to the open sub-stream.

    Raises:
        NoOpenStreamError: If no sub-stream is open
    """
    _require_stream(session)
    with _on_wire(session) as writer:
        writer.write(data)
    return _next(session, SessionState.STREAM_OPEN, session.stream_ref)


def end_of_blob(session: UploadSession) -> UploadSession:
    """Close the open sub-stream; its blob becomes a completed submission."""
    _require_stream(session)
    with _on_wire(session) as writer:
        writer.end_part()
    return _next(session, SessionState.IDLE)


def finalize(session: UploadSession) -> Tuple[UploadSession, BulkResult]:
    """Close the body, wait for the server and return the batch outcome.

    Rejected blobs are reported in ``BulkResult.errors``; they do not make
    this call fail.

    Raises:
        OpenStreamPendingError: If a sub-stream is open (session unchanged)
        RemoteError: Classified non-201 response
        TransportError: Network failure
    """
    _require_idle(session)
    upload = session.upload
    try:
        upload.writer.close()
        response = upload.writer.request.finish()
    finally:
        upload.finalized = True

    check_response(response, [STATUS_CREATED])
    result = parse_bulk_response(response.body)
    logger.info(
        f"Bulk upload to {session.storage.url}: "
        f"{len(result.received)} received, {len(result.errors)} errors"
    )
    return _next(session, SessionState.FINALIZED), result


def abort(session: UploadSession) -> None:
    """Release the request of an unfinished upload without reading a response.

    Safe on any value of the session chain; a no-op once finalized.
    """
    upload = session.upload
    if upload.finalized:
        return
    upload.finalized = True
    logger.warning(f"Aborting bulk upload to {session.storage.url}")
    upload.writer.request.abort()


class BulkUpload:
    """Context manager owning one bulk upload session.

    Leaving the block without finalizing aborts the request.

    Example:
        >>> with BulkUpload(storage) as bulk:
        ...     bulk.submit(b"AB").submit(Path("data.bin"))
        ...     result = bulk.finalize()
    """

    def __init__(self, storage: RemoteStorage):
        self.storage = storage
        self.session: Optional[UploadSession] = None
        self.result: Optional[BulkResult] = None

    def __enter__(self) -> "BulkUpload":
        self.session = open_session(self.storage)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.session is not None:
            abort(self.session)

    def submit(self, source: Any) -> "BulkUpload":
        self.session = submit(self.session, source)
        return self

    def open_stream(self, blobref: str) -> "BulkUpload":
        self.session = open_stream(self.session, blobref)
        return self

    def stream_chunk(self, data: bytes) -> "BulkUpload":
        self.session = stream_chunk(self.session, data)
        return self

    def end_of_blob(self) -> "BulkUpload":
        self.session = end_of_blob(self.session)
        return self

    def finalize(self) -> BulkResult:
        self.session, self.result = finalize(self.session)
        return self.result


__all__ = [
    "SessionState",
    "UploadSession",
    "BulkUpload",
    "open_session",
    "submit",
    "open_stream",
    "stream_chunk",
    "end_of_blob",
    "finalize",
    "abort",
]
