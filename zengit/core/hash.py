"""Hash utilities for zengit."""

import hashlib
import re

OID_PATTERN = re.compile(r'^[0-9a-f]{40}$')

ZERO_OID = '0' * 40


def hash_object(data: bytes) -> str:
    """
    Compute SHA-1 hash of data.

    Args:
        data: Bytes to hash

    Returns:
        40-character hex string
    """
    return hashlib.sha1(data).hexdigest()


def object_header(kind: str, size: int) -> bytes:
    """Return the ``<type> <size>\\0`` header Git prepends before hashing."""
    return f"{kind} {size}\0".encode()


def object_id(kind: str, data: bytes) -> str:
    """
    Compute the object id of content of the given kind.

    Args:
        kind: Object type ('blob', 'tree', 'commit', 'tag')
        data: Serialized object content

    Returns:
        40-character hex string
    """
    return hash_object(object_header(kind, len(data)) + data)


def hash_file(filepath) -> str:
    """
    Compute the blob id of a file's content.

    Args:
        filepath: Path to file

    Returns:
        40-character hex string
    """
    with open(filepath, 'rb') as f:
        return object_id('blob', f.read())


def is_oid(value: str) -> bool:
    """Check whether a string is a full 40-hex object id."""
    return bool(value) and bool(OID_PATTERN.match(value))
