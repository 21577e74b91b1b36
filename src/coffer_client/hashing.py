"""Blob reference hashing and validation.

References have the form ``<algorithm>-<hex digest>`` (``sha1-...`` by
default). Hashing a file reads it in fixed-size chunks and always yields the
same reference as hashing its full contents in memory.
"""

from pathlib import Path
from typing import Any, Union
import hashlib
import re

from .constants import DEFAULT_HASH_ALGORITHM, READ_CHUNK_SIZE
from .errors import BlobReadError, InvalidReferenceError
from .sources import BlobFile, BlobSource, Buffer, PreHashed, Stream

BLOBREF_RE = re.compile(r"([a-z0-9]+)-([a-f0-9]+)")


def _new_hash(algorithm: str):
    """Create a hashlib object for a reference algorithm name."""
    if algorithm not in hashlib.algorithms_guaranteed or not re.fullmatch(r"[a-z0-9]+", algorithm):
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")
    return hashlib.new(algorithm)


def hash_bytes(data: bytes, algorithm: str = DEFAULT_HASH_ALGORITHM) -> str:
    """Compute the blob reference of in-memory content.

    Args:
        data: Blob content
        algorithm: hashlib algorithm name

    Returns:
        Reference in format "<algorithm>-xxxx"
    """
    h = _new_hash(algorithm)
    h.update(data)
    return f"{algorithm}-{h.hexdigest()}"


def hash_file(
    path: Union[str, Path],
    algorithm: str = DEFAULT_HASH_ALGORITHM,
    chunk_size: int = READ_CHUNK_SIZE,
) -> str:
    """Compute the blob reference of a file without loading it whole.

    Args:
        path: Path to file to hash
        algorithm: hashlib algorithm name
        chunk_size: Bytes read per iteration

    Returns:
        Reference in format "<algorithm>-xxxx"

    Raises:
        BlobReadError: If the file cannot be read
    """
    h = _new_hash(algorithm)
    path = Path(path)
    try:
        with path.open("rb") as f:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                h.update(chunk)
    except OSError as e:
        raise BlobReadError(path, e.strerror or str(e)) from e
    return f"{algorithm}-{h.hexdigest()}"


def hash_source(source: BlobSource, algorithm: str = DEFAULT_HASH_ALGORITHM) -> str:
    """Return the reference for any blob source.

    Buffers and files are hashed; pre-hashed and stream sources already
    carry their reference.
    """
    if isinstance(source, Buffer):
        return hash_bytes(source.data, algorithm)
    if isinstance(source, BlobFile):
        return hash_file(source.path, algorithm)
    if isinstance(source, (PreHashed, Stream)):
        return source.blobref
    raise TypeError(f"Unknown blob source: {source!r}")


def is_valid_ref(blobref: Any) -> bool:
    """Check a reference against the reference grammar.

    Digest length is also checked when the algorithm is one hashlib knows.
    """
    if not isinstance(blobref, str):
        return False
    match = BLOBREF_RE.fullmatch(blobref)
    if not match:
        return False
    algorithm, digest = match.groups()
    if algorithm in hashlib.algorithms_guaranteed:
        return len(digest) == hashlib.new(algorithm).digest_size * 2
    return True


def validate_ref(blobref: Any) -> str:
    """Return the reference unchanged, or raise InvalidReferenceError."""
    if not is_valid_ref(blobref):
        raise InvalidReferenceError(blobref)
    return blobref


__all__ = [
    "BLOBREF_RE",
    "hash_bytes",
    "hash_file",
    "hash_source",
    "is_valid_ref",
    "validate_ref",
]
