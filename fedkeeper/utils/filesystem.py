"""
Filesystem helpers for the package directory.

Everything fedkeeper persists is small UTF-8 text: three package lists and
the lock file. Writes go through a temporary sibling that is fsynced and
renamed over the target; previous versions are kept as backups. Any
``OSError`` surfaces as :class:`~fedkeeper.exceptions.FileOperationError`
carrying the path and the operation that failed.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from datetime import datetime
from typing import Iterable, List, Optional, Union

from fedkeeper.utils.logger import get_logger
from fedkeeper.exceptions import FileOperationError
from fedkeeper.constants import LOCK_BACKUP_SUFFIX

logger = get_logger("filesystem")

PathLike = Union[str, Path]

#: Upper bound for text artifacts read back into memory.
MAX_FILE_SIZE = 64 * 1024 * 1024


def _os_error(
    message: str,
    path: Path,
    operation: str,
    exc: Optional[BaseException] = None,
) -> FileOperationError:
    return FileOperationError(
        message,
        file_path=str(path),
        operation=operation,
        original_error=exc,
    )


def _existing_file(path: Path) -> Path:
    if not path.exists():
        raise _os_error(f"File not found: {path}", path, "read")
    if not path.is_file():
        raise _os_error(f"Not a file: {path}", path, "read")
    return path.resolve()


def _discard(temp_path: Path) -> None:
    try:
        temp_path.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        logger.warning("Leaving stray temporary file %s: %s", temp_path, exc)
        return
    logger.debug("Removed temporary file %s", temp_path)


def _atomic_write(target: Path, content: str) -> None:
    """Replace ``target`` with ``content`` via a fsynced temporary sibling.

    Readers see either the old file or the complete new one.
    """
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(
            dir=str(target.parent),
            prefix=f".{target.name}.",
            suffix=".tmp",
        )
    except OSError as exc:
        raise _os_error(f"Atomic write failed: {exc}", target, "write", exc) from exc

    temp_path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, target)
    except OSError as exc:
        _discard(temp_path)
        raise _os_error(f"Atomic write failed: {exc}", target, "write", exc) from exc


def _copy(source: Path, destination: Path, *, operation: str) -> None:
    try:
        shutil.copy2(source, destination)
    except OSError as exc:
        raise _os_error(
            f"Failed to {operation} {source}: {exc}", source, operation, exc
        ) from exc


def backup_path_for(file_path: PathLike) -> Path:
    """``fedora.lock`` → ``fedora.lock.backup``."""
    path = Path(file_path)
    return path.with_name(path.name + LOCK_BACKUP_SUFFIX)


def safe_read_file(
    file_path: PathLike,
    *,
    max_size: Optional[int] = MAX_FILE_SIZE,
    encoding: str = "utf-8",
) -> str:
    """Return the text of an existing file.

    Args:
        file_path: File to read.
        max_size: Refuse files larger than this many bytes; ``None``
            reads any size.
        encoding: Text encoding of the file.

    Raises:
        FileOperationError: The file is missing, not a regular file, too
            large, or cannot be decoded.
    """
    path = _existing_file(Path(file_path))

    size = path.stat().st_size
    if max_size is not None and size > max_size:
        raise _os_error(f"File too large: {size} bytes (max {max_size})", path, "read")

    try:
        return path.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as exc:
        raise _os_error(f"Failed to read file: {exc}", path, "read", exc) from exc


def safe_write_file(
    file_path: PathLike,
    content: str,
    *,
    create_backup: bool = True,
) -> Optional[Path]:
    """Atomically write ``content``, keeping the old file as ``.backup``.

    The backup is overwritten on every call. When the write itself fails,
    the original is copied back from the backup before the error is
    re-raised.

    Returns:
        The backup path, or ``None`` when there was nothing to back up or
        ``create_backup`` is off.
    """
    path = Path(file_path)

    backup = None
    if create_backup and path.is_file():
        backup = backup_path_for(path)
        _copy(path, backup, operation="backup")
        logger.debug("Saved previous %s as %s", path.name, backup.name)

    try:
        _atomic_write(path, content)
    except FileOperationError:
        if backup is not None:
            try:
                _copy(backup, path, operation="restore")
            except FileOperationError as restore_exc:
                logger.warning("Could not restore %s: %s", path, restore_exc)
        raise

    return backup


def create_timestamped_backup(file_path: PathLike) -> Path:
    """Copy a file to ``<stem>.<YYYYmmdd_HHMMSS>.backup<suffix>`` beside it."""
    path = Path(file_path)
    if not path.is_file():
        raise _os_error(f"Cannot backup invalid file: {path}", path, "backup")

    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    target = path.with_name(f"{path.stem}.{stamp}.backup{path.suffix}")
    _copy(path, target, operation="backup")
    logger.debug("Saved previous %s as %s", path.name, target.name)
    return target


def read_package_list(file_path: PathLike) -> List[str]:
    """Names from a one-per-line list; surrounding blanks are dropped."""
    return [
        name
        for name in (line.strip() for line in safe_read_file(file_path).splitlines())
        if name
    ]


def write_package_list(
    file_path: PathLike,
    names: Iterable[str],
    *,
    backup: bool = True,
) -> Optional[Path]:
    """Write package names sorted, deduplicated, one per line.

    Returns:
        The timestamped backup of the previous list, if ``backup`` is set
        and a list already existed.
    """
    path = Path(file_path)
    saved = create_timestamped_backup(path) if backup and path.is_file() else None
    _atomic_write(path, "".join(f"{name}\n" for name in sorted(set(names))))
    return saved


def validate_path(
    path: PathLike,
    *,
    base_dir: Optional[PathLike] = None,
) -> Path:
    """Resolve ``path``; with ``base_dir``, it must resolve inside it.

    Raises:
        FileOperationError: ``path`` escapes ``base_dir``.
    """
    resolved = Path(path).expanduser().resolve(strict=False)
    if base_dir is None:
        return resolved

    base = Path(base_dir).expanduser().resolve(strict=False)
    if resolved != base and base not in resolved.parents:
        raise _os_error(
            f"Path outside allowed base directory: {resolved}", Path(path), "validate"
        )
    return resolved
