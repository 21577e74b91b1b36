"""Custom exceptions for coffer-client.

This module defines typed exceptions for better error handling and clearer
error messages throughout the client. Local protocol errors are raised before
anything is written to the wire; remote errors carry the raw response for
diagnostics.
"""

from typing import Any, Mapping, Optional


class CofferError(RuntimeError):
    """Base class for all coffer-client errors."""
    pass


# Local Errors
class InvalidReferenceError(CofferError, ValueError):
    """Blob reference does not match the reference grammar."""

    def __init__(self, blobref: Any):
        self.blobref = blobref
        super().__init__(
            f"Invalid blob reference: {blobref!r}. "
            f"Expected '<algorithm>-<hex digest>', e.g. 'sha1-<40 hex chars>'."
        )


class BlobReadError(CofferError, OSError):
    """Blob content could not be read from its source."""

    def __init__(self, path: Any, reason: str):
        self.path = path
        super().__init__(f"Cannot read blob source {path}: {reason}")


# Session Errors
class SessionError(CofferError):
    """Base class for bulk upload protocol misuse."""
    pass


class OpenStreamPendingError(SessionError):
    """A sub-stream is open; it must be closed with end_of_blob first."""

    def __init__(self, blobref: Optional[str] = None):
        self.blobref = blobref
        target = f" for {blobref}" if blobref else ""
        super().__init__(
            f"A blob stream{target} is still open. "
            f"Call end_of_blob() before submitting or finalizing."
        )


class NoOpenStreamError(SessionError):
    """Stream data sent while no sub-stream is open."""

    def __init__(self):
        super().__init__("No blob stream is open. Call open_stream() first.")


class SessionFinalizedError(SessionError):
    """Operation attempted on a finalized or aborted session."""

    def __init__(self):
        super().__init__("Bulk upload session is already finalized")


class StaleSessionError(SessionError):
    """A session value that a later transition already replaced was reused."""

    def __init__(self, generation: int, current: int):
        self.generation = generation
        self.current = current
        super().__init__(
            f"Stale bulk upload session (generation {generation}, current {current}). "
            f"Always continue with the session returned by the previous call."
        )


class SessionBrokenError(SessionError):
    """The session failed mid-submission and can no longer be used."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Bulk upload session is unusable after an earlier failure: {cause}")


# Connection Errors
class ConnectionClosedError(CofferError):
    """Operation attempted on a closed connection or finished request."""
    pass


class TransportError(CofferError):
    """Network-level failure reported by the HTTP transport."""
    pass


class ProtocolError(CofferError):
    """Server response could not be decoded into the expected shape."""
    pass


# Remote Errors
class RemoteError(CofferError):
    """Base class for non-success HTTP responses."""

    def __init__(self, status: int, headers: Optional[Mapping[str, str]] = None,
                 body: bytes = b""):
        self.status = status
        self.headers = dict(headers or {})
        self.body = body
        super().__init__(self._message())

    def _message(self) -> str:
        text = self.body.decode("utf-8", errors="replace") if self.body else ""
        if len(text) > 200:
            text = text[:200] + "..."
        return f"Server returned {self.status}" + (f": {text}" if text else "")


class UnauthorizedError(RemoteError):
    """Authentication or authorization failed (401/403)."""
    pass


class NotFoundError(RemoteError):
    """Storage or blob not found (404)."""
    pass


class ConflictError(RemoteError):
    """Blob conflicts with existing content (409)."""
    pass


class ServerFaultError(RemoteError):
    """Server-side failure (5xx)."""
    pass


class RemoteFailureError(RemoteError):
    """Any other non-success status."""
    pass
