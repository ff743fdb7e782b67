"""SHA-256 helpers used for package list files and lock file sections."""

from __future__ import annotations

import io
import hashlib
from pathlib import Path
from typing import BinaryIO, Union

from fedkeeper.constants import CHECKSUM_CHUNK_SIZE
from fedkeeper.exceptions import FileOperationError


def sha256_stream(stream: BinaryIO, *, chunk_size: int = CHECKSUM_CHUNK_SIZE) -> str:
    """Hash a binary stream in fixed-size chunks.

    Returns:
        64-character lowercase hex digest.
    """
    digest = hashlib.sha256()
    for block in iter(lambda: stream.read(chunk_size), b""):
        digest.update(block)
    return digest.hexdigest()


def sha256_file(
    file_path: Union[str, Path],
    *,
    chunk_size: int = CHECKSUM_CHUNK_SIZE,
) -> str:
    """Return the SHA-256 hex digest of a file without loading it whole.

    Raises:
        FileOperationError: The file cannot be opened or read.
    """
    path = Path(file_path)
    try:
        with open(path, "rb") as fh:
            return sha256_stream(fh, chunk_size=chunk_size)
    except OSError as exc:
        raise FileOperationError(
            f"Cannot checksum {path}: {exc}",
            file_path=str(path),
            operation="checksum",
            original_error=exc,
        ) from exc


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    """Return the SHA-256 hex digest of an in-memory string."""
    return sha256_stream(io.BytesIO(text.encode(encoding)))
