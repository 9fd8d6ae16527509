"""SHA-256 checksums for the checksum gate."""

from __future__ import annotations

import hashlib
from pathlib import Path


def bytes_checksum(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def file_checksum(path: str | Path) -> str:
    digest = hashlib.sha256()
    with Path(path).open("rb") as stream:
        for chunk in iter(lambda: stream.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def try_file_checksum(path: str | Path) -> str | None:
    """Checksum of ``path``, or ``None`` when the file does not exist."""
    path = Path(path)
    if not path.is_file():
        return None
    return file_checksum(path)
