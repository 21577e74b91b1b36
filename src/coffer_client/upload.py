"""Single-object uploads.

One blob per request: ``PUT <storage-url>/<blobref>`` with a chunked body.
Buffers and files are sent and acknowledged in one call; a ``Stream`` source
returns a ``StreamingUpload`` the caller feeds and then finishes.
"""

from typing import Any, Union
import logging

from .constants import BLOB_CONTENT_TYPE, STATUS_CREATED
from .errors import ConnectionClosedError
from .hashing import hash_source, validate_ref
from .models import RemoteStorage, UploadResult
from .multipart import iter_file
from .reconcile import check_response, parse_upload_response
from .sources import BlobFile, Buffer, PreHashed, Stream, as_source
from .transport import ChunkedRequest, RawResponse

logger = logging.getLogger(__name__)

UPLOAD_HEADERS = {
    "Content-Type": BLOB_CONTENT_TYPE,
    "Transfer-Encoding": "chunked",
}


def _read_result(response: RawResponse) -> UploadResult:
    check_response(response, [STATUS_CREATED])
    return parse_upload_response(response.body)


class StreamingUpload:
    """An open single-blob upload fed chunk by chunk.

    Example:
        >>> with upload(storage, Stream(ref)) as up:
        ...     up.send(b"first")
        ...     up.send(b"second")
        ...     result = up.finish()
    """

    def __init__(self, blobref: str, request: ChunkedRequest):
        self.blobref = blobref
        self.request = request
        self.size = 0

    @property
    def closed(self) -> bool:
        return self.request.closed

    def send(self, data: bytes) -> "StreamingUpload":
        """Push one chunk of the blob.

        Raises:
            ConnectionClosedError: If the upload was already finished or aborted
        """
        if self.closed:
            raise ConnectionClosedError(f"Upload of {self.blobref} is already closed")
        self.request.write(data)
        self.size += len(data)
        return self

    def finish(self) -> UploadResult:
        """Signal end of blob and wait for the server's acknowledgement."""
        if self.closed:
            raise ConnectionClosedError(f"Upload of {self.blobref} is already closed")
        response = self.request.finish()
        result = _read_result(response)
        logger.info(f"Stored {result.blobref} ({result.size} bytes)")
        return result

    def abort(self) -> None:
        if not self.closed:
            logger.warning(f"Aborting upload of {self.blobref} after {self.size} bytes")
            self.request.abort()

    def __enter__(self) -> "StreamingUpload":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.abort()


def upload_blob(
    storage: RemoteStorage,
    blobref: str,
    source: Any,
) -> Union[UploadResult, StreamingUpload]:
    """Upload one blob under an explicit reference.

    Args:
        storage: Target storage
        blobref: Reference the blob is stored under
        source: Content as a BlobSource (or bytes / path); a Stream source
            opens the request and returns a StreamingUpload

    Returns:
        UploadResult, or StreamingUpload for stream sources

    Raises:
        InvalidReferenceError: If blobref is malformed (nothing is sent)
        BlobReadError: If a file source cannot be read
        RemoteError: Classified non-201 response
        TransportError: Network failure
    """
    validate_ref(blobref)
    storage.connection.ensure_active()
    source = as_source(source)

    url = f"{storage.url}/{blobref}"
    logger.info(f"create {blobref} on {url}")
    request = storage.connection.transport.open_chunked("PUT", url, UPLOAD_HEADERS)

    if isinstance(source, Stream):
        return StreamingUpload(blobref, request)

    try:
        if isinstance(source, (Buffer, PreHashed)):
            request.write(source.data)
        elif isinstance(source, BlobFile):
            for chunk in iter_file(source.path):
                request.write(chunk)
        else:
            raise TypeError(f"Unknown blob source: {source!r}")
    except BaseException:
        request.abort()
        raise
    return _read_result(request.finish())


def upload(storage: RemoteStorage, source: Any) -> Union[UploadResult, StreamingUpload]:
    """Upload one blob, computing its reference when the source needs one.

    Example:
        >>> upload(storage, b"hello")
        UploadResult(blobref='sha1-aaf4c61d...', size=5)
    """
    source = as_source(source)
    return upload_blob(storage, hash_source(source), source)


__all__ = ["StreamingUpload", "upload", "upload_blob", "UPLOAD_HEADERS"]
