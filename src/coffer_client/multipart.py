"""Incremental multipart/form-data framing over a chunked request.

Each blob becomes one part named after its reference::

    --<boundary>
    Content-Disposition: form-data; name="<ref>"; filename="<ref>"
    Content-Type: application/octet-stream

    <bytes>
    --<boundary>--

Parts are written in call order. An open part accepts any number of data
writes before ``end_part`` closes it.
"""

from pathlib import Path
from typing import Iterable, Optional
import logging

from urllib3.fields import RequestField
from urllib3.filepost import choose_boundary

from .constants import PART_CONTENT_TYPE, READ_CHUNK_SIZE
from .errors import BlobReadError
from .transport import ChunkedRequest, HttpTransport

logger = logging.getLogger(__name__)

CRLF = b"\r\n"


class MultipartWriter:
    """Writes multipart parts onto a ChunkedRequest as they arrive."""

    def __init__(self, request: ChunkedRequest, boundary: Optional[str] = None):
        self.request = request
        self.boundary = boundary or choose_boundary()
        self.parts_written = 0

    @classmethod
    def open(
        cls,
        transport: HttpTransport,
        method: str,
        url: str,
        boundary: Optional[str] = None,
    ) -> "MultipartWriter":
        """Start a chunked multipart request and return a writer for its body."""
        boundary = boundary or choose_boundary()
        request = transport.open_chunked(
            method, url, {"Content-Type": f"multipart/form-data; boundary={boundary}"}
        )
        return cls(request, boundary)

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def _part_header(self, blobref: str) -> bytes:
        part = RequestField(name=blobref, data=b"", filename=blobref)
        part.make_multipart(content_type=PART_CONTENT_TYPE)
        return b"--" + self.boundary.encode("ascii") + CRLF + part.render_headers().encode("utf-8")

    def write_part(self, blobref: str, data: bytes) -> None:
        """Write one complete part in a single chunk."""
        self.request.write(self._part_header(blobref) + bytes(data) + CRLF)
        self.parts_written += 1
        logger.debug(f"Wrote part {blobref} ({len(data)} bytes)")

    def write_part_stream(self, blobref: str, chunks: Iterable[bytes]) -> int:
        """Write one complete part from an iterable of chunks.

        Returns:
            Number of content bytes written
        """
        self.start_part(blobref)
        size = 0
        for chunk in chunks:
            self.write(chunk)
            size += len(chunk)
        self.end_part()
        logger.debug(f"Wrote part {blobref} ({size} bytes, streamed)")
        return size

    def start_part(self, blobref: str) -> None:
        """Write the headers of a part and leave it open."""
        self.request.write(self._part_header(blobref))

    def write(self, data: bytes) -> None:
        """Append content to the open part."""
        self.request.write(data)

    def end_part(self) -> None:
        self.request.write(CRLF)
        self.parts_written += 1

    def close(self) -> None:
        """Write the closing boundary. No parts may follow."""
        self.request.write(b"--" + self.boundary.encode("ascii") + b"--" + CRLF)


def iter_file(path: Path, chunk_size: int = READ_CHUNK_SIZE) -> Iterable[bytes]:
    """Yield a file's content in fixed-size chunks.

    Raises:
        BlobReadError: If the file cannot be opened or read
    """
    try:
        with Path(path).open("rb") as f:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                yield chunk
    except OSError as e:
        raise BlobReadError(path, e.strerror or str(e)) from e


__all__ = ["MultipartWriter", "iter_file"]
