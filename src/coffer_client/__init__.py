"""Client for coffer, a content-addressed blob storage service.

Blobs are stored under references derived from their content
(``sha1-<hex>`` by default) and uploaded one per request or many at once over
a single streaming multipart request.
"""

from .bulk import (
    BulkUpload,
    SessionState,
    UploadSession,
    abort,
    end_of_blob,
    finalize,
    open_session,
    open_stream,
    stream_chunk,
    submit,
)
from .connection import Connection, close_connection, new_connection, stop
from .constants import CLIENT_VERSION
from .errors import (
    BlobReadError,
    CofferError,
    ConflictError,
    ConnectionClosedError,
    InvalidReferenceError,
    NoOpenStreamError,
    NotFoundError,
    OpenStreamPendingError,
    ProtocolError,
    RemoteError,
    RemoteFailureError,
    ServerFaultError,
    SessionBrokenError,
    SessionError,
    SessionFinalizedError,
    StaleSessionError,
    TransportError,
    UnauthorizedError,
)
from .hashing import hash_bytes, hash_file, hash_source, is_valid_ref, validate_ref
from .models import BulkResult, ConnectionConfig, PoolOptions, RemoteStorage, UploadResult
from .sources import BlobFile, BlobSource, Buffer, PreHashed, Stream
from .upload import StreamingUpload, upload, upload_blob

__version__ = CLIENT_VERSION

__all__ = [
    # Connections
    "Connection",
    "ConnectionConfig",
    "PoolOptions",
    "RemoteStorage",
    "new_connection",
    "close_connection",
    "stop",
    # Sources and references
    "BlobSource",
    "Buffer",
    "BlobFile",
    "PreHashed",
    "Stream",
    "hash_bytes",
    "hash_file",
    "hash_source",
    "is_valid_ref",
    "validate_ref",
    # Uploads
    "UploadResult",
    "BulkResult",
    "StreamingUpload",
    "upload",
    "upload_blob",
    "BulkUpload",
    "SessionState",
    "UploadSession",
    "open_session",
    "submit",
    "open_stream",
    "stream_chunk",
    "end_of_blob",
    "finalize",
    "abort",
    # Errors
    "CofferError",
    "InvalidReferenceError",
    "BlobReadError",
    "SessionError",
    "OpenStreamPendingError",
    "NoOpenStreamError",
    "SessionFinalizedError",
    "StaleSessionError",
    "SessionBrokenError",
    "ConnectionClosedError",
    "TransportError",
    "ProtocolError",
    "RemoteError",
    "UnauthorizedError",
    "NotFoundError",
    "ConflictError",
    "ServerFaultError",
    "RemoteFailureError",
]
