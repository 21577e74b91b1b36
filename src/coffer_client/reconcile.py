"""Map raw server responses to results and typed errors."""

from typing import Iterable, List, Mapping, Optional, Type

from pydantic import ValidationError

from .errors import (
    ConflictError,
    NotFoundError,
    ProtocolError,
    RemoteError,
    RemoteFailureError,
    ServerFaultError,
    UnauthorizedError,
)
from .models import BulkResult, ContainersResponse, ReceivedResponse, UploadResult
from .transport import RawResponse

_STATUS_ERRORS = {
    401: UnauthorizedError,
    403: UnauthorizedError,
    404: NotFoundError,
    409: ConflictError,
}


def _decode(model: Type, body: bytes):
    try:
        return model.model_validate_json(body or b"{}")
    except ValidationError as e:
        raise ProtocolError(f"Unexpected response body for {model.__name__}: {e}") from e


def parse_upload_response(body: bytes) -> UploadResult:
    """Parse a single-upload response; it must acknowledge exactly one blob."""
    decoded = _decode(ReceivedResponse, body)
    if len(decoded.received) != 1:
        raise ProtocolError(
            f"Expected one received blob in upload response, got {len(decoded.received)}"
        )
    return decoded.received[0]


def parse_bulk_response(body: bytes) -> BulkResult:
    """Parse a bulk-upload response into accepted blobs and pass-through errors."""
    decoded = _decode(ReceivedResponse, body)
    return BulkResult(received=decoded.received, errors=decoded.errors)


def parse_containers_response(body: bytes) -> List:
    return _decode(ContainersResponse, body).containers


def classify_error(
    status: int,
    headers: Optional[Mapping[str, str]] = None,
    body: bytes = b"",
) -> RemoteError:
    """Build the error matching a non-success status.

    Every status maps to exactly one error type; unknown statuses become
    RemoteFailureError.
    """
    if status in _STATUS_ERRORS:
        cls = _STATUS_ERRORS[status]
    elif 500 <= status < 600:
        cls = ServerFaultError
    else:
        cls = RemoteFailureError
    return cls(status, headers, body)


def check_response(response: RawResponse, expected: Iterable[int]) -> RawResponse:
    """Return the response if its status is expected, else raise the classified error."""
    if response.status not in tuple(expected):
        raise classify_error(response.status, response.headers, response.body)
    return response


__all__ = [
    "parse_upload_response",
    "parse_bulk_response",
    "parse_containers_response",
    "classify_error",
    "check_response",
]
