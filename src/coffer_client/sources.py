"""Blob source variants.

A blob is handed to the client in one of four shapes, and the shape decides
whether the reference is computed locally or supplied by the caller:

- ``Buffer``: content fully in memory, hashed before sending.
- ``BlobFile``: content on disk, hashed and sent in bounded chunks.
- ``PreHashed``: content in memory with a caller-supplied reference.
- ``Stream``: content pushed later, chunk by chunk, under a known reference.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union


@dataclass(frozen=True)
class Buffer:
    data: bytes


@dataclass(frozen=True)
class BlobFile:
    path: Path

    def __post_init__(self):
        object.__setattr__(self, "path", Path(self.path))


@dataclass(frozen=True)
class PreHashed:
    blobref: str
    data: bytes


@dataclass(frozen=True)
class Stream:
    blobref: str


BlobSource = Union[Buffer, BlobFile, PreHashed, Stream]


def as_source(value: Any) -> BlobSource:
    """Coerce a plain value into a BlobSource.

    Accepts an existing BlobSource, ``bytes``-like content, a filesystem path
    or a ``(blobref, bytes)`` pair.

    Raises:
        TypeError: If the value has no BlobSource equivalent
    """
    if isinstance(value, (Buffer, BlobFile, PreHashed, Stream)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Buffer(bytes(value))
    if isinstance(value, os.PathLike):
        return BlobFile(Path(value))
    if (isinstance(value, tuple) and len(value) == 2
            and isinstance(value[0], str)
            and isinstance(value[1], (bytes, bytearray, memoryview))):
        return PreHashed(value[0], bytes(value[1]))
    raise TypeError(f"Cannot use {type(value).__name__} as a blob source")


__all__ = [
    "Buffer",
    "BlobFile",
    "PreHashed",
    "Stream",
    "BlobSource",
    "as_source",
]
