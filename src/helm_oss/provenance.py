"""Chart archive digests.

Digests are hex-encoded SHA-256 hashes of the whole archive, the same value
Helm records in index.yaml and verifies against provenance files.
"""

from __future__ import annotations

import hashlib
from typing import Any, BinaryIO

CHUNK_SIZE = 64 * 1024


def digest(stream: BinaryIO) -> str:
    """Hash a stream until EOF and return the hex SHA-256 digest."""
    h = hashlib.sha256()
    while True:
        chunk = stream.read(CHUNK_SIZE)
        if not chunk:
            break
        h.update(chunk)
    return h.hexdigest()


def digest_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def digest_file(path: str) -> str:
    with open(path, "rb") as f:
        return digest(f)


class HashingReader:
    """Read-through wrapper that hashes every byte handed to the reader.

    Lets one pass over a network stream feed both an archive parser and the
    digest. Call hexdigest() after drain() so bytes the parser never asked
    for, such as tar padding, are hashed too.
    """

    def __init__(self, raw: Any) -> None:
        self._raw = raw
        self._hash = hashlib.sha256()

    def read(self, size: int = -1) -> bytes:
        data = self._raw.read() if size is None or size < 0 else self._raw.read(size)
        self._hash.update(data)
        return data

    def drain(self) -> None:
        while self.read(CHUNK_SIZE):
            pass

    def hexdigest(self) -> str:
        return self._hash.hexdigest()
