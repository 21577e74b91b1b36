"""Data models for coffer-client.

Wire responses are decoded once into these models at the HTTP boundary, so
the rest of the client never looks up JSON fields by name.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .constants import DEFAULT_POOL_SIZE

if TYPE_CHECKING:
    from .connection import Connection


# ============= Upload Results =============

class UploadResult(BaseModel):
    """Server acknowledgement of one stored blob."""

    model_config = ConfigDict(frozen=True)

    blobref: str
    size: int


class BulkResult(BaseModel):
    """Outcome of a bulk upload: accepted blobs and per-blob errors.

    Error entries are passed through exactly as the server sent them.
    """

    received: List[UploadResult] = Field(default_factory=list)
    errors: List[Any] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# ============= Wire Schemas =============

class ReceivedResponse(BaseModel):
    """Body of a 201 response to a single or bulk upload."""

    received: List[UploadResult] = Field(default_factory=list)
    errors: List[Any] = Field(default_factory=list)


class ContainersResponse(BaseModel):
    """Body of a 200 response to GET /containers."""

    containers: List[Any] = Field(default_factory=list)


# ============= Connections =============

class PoolOptions(BaseModel):
    pool_size: int = Field(default=DEFAULT_POOL_SIZE, ge=1)


class ConnectionConfig(BaseModel):
    """Options recognized when opening a connection.

    Attributes:
        pool: Name of an already started pool to reuse
        pool_opts: Options for the pool started when ``pool`` is unset
        timeout: Socket timeout in seconds, None for no timeout
        verify: Whether to verify TLS certificates
    """

    pool: Optional[str] = None
    pool_opts: PoolOptions = Field(default_factory=PoolOptions)
    timeout: Optional[float] = None
    verify: bool = True


class ConnectionState(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass(frozen=True)
class RemoteStorage:
    """A named container on a coffer server."""

    connection: "Connection"
    name: str
    url: str


__all__ = [
    "UploadResult",
    "BulkResult",
    "ReceivedResponse",
    "ContainersResponse",
    "PoolOptions",
    "ConnectionConfig",
    "ConnectionState",
    "RemoteStorage",
]
