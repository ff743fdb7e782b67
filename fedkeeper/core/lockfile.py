"""Lock file reader and writer.

The lock file is a line-oriented text format::

    # Fedora Package Lock File
    # Generated: 2024-01-01 12:00:00
    # System: Fedora release 39 (Thirty Nine)

    # Format: package|version|release|arch|size|install_time|repository

    [MANUAL_PACKAGES]
    git|2.41.0|1.fc39|x86_64|12345|1234567890|fedora

    [AUTO_DEPENDENCIES]
    python3|3.11.0|1.fc39|x86_64|45678|1234567892|fedora

    [REPOSITORIES]
    fedora|enabled

    [CHECKSUMS]
    manual_packages|<sha256 of the MANUAL_PACKAGES body>
    auto_dependencies|<sha256 of the AUTO_DEPENDENCIES body>

Every stripped line is exactly one of three kinds:

- a **section header** ``[NAME]``, which starts a new, empty section;
- an **entry** (contains ``|`` and does not start with ``#``), appended
  to the open section;
- anything else (comments, blank lines), which is ignored.

Entries seen before the first header are dropped. Parsing never fails on
malformed entries; :meth:`LockFileCodec.validate` and the strict record
accessors on :class:`~fedkeeper.models.LockFile` report those.

Typical usage::

    codec = LockFileCodec()
    lock = codec.read("~/fedora-packages/outputs/fedora.lock")
    for mismatch in codec.verify_checksums(lock):
        print(mismatch)
"""

from __future__ import annotations

import re
from pathlib import Path
from datetime import datetime
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from fedkeeper.models import Entry, LockFile
from fedkeeper.exceptions import (
    ChecksumMismatchError,
    MalformedRecordError,
    MissingInputError,
)
from fedkeeper.utils import get_logger, safe_read_file, safe_write_file, sha256_text
from fedkeeper.constants import (
    CANONICAL_SECTIONS,
    CHECKSUMMED_SECTIONS,
    FIELD_SEPARATOR,
    LOCK_FILE_FORMAT_LINE,
    LOCK_FILE_TITLE,
    SECTION_AUTO,
    SECTION_CHECKSUMS,
    SECTION_MANUAL,
)

__all__ = [
    "Ignored",
    "LockFileCodec",
    "RecordLine",
    "SectionHeader",
    "read_lock_file",
    "section_digest",
    "write_lock_file",
]

_HEADER_COMMENT_RE = re.compile(r"^#\s*([A-Za-z][A-Za-z ]*?)\s*:\s*(.*)$")


# ---------------------------------------------------------------------------
# Line variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SectionHeader:
    name: str


@dataclass(frozen=True)
class RecordLine:
    fields: Entry


@dataclass(frozen=True)
class Ignored:
    text: str


ParsedLine = Union[SectionHeader, RecordLine, Ignored]


def section_body(entries: List[Entry]) -> str:
    """Serialized body of a section: one ``|``-joined line per entry."""
    return "".join(FIELD_SEPARATOR.join(entry) + "\n" for entry in entries)


def section_digest(entries: List[Entry]) -> str:
    """SHA-256 of :func:`section_body`, as stored in ``[CHECKSUMS]``."""
    return sha256_text(section_body(entries))


def _check_writable(section: str, index: int, entry: Entry) -> None:
    """Refuse an entry whose serialized line would not parse back to it."""
    line = FIELD_SEPARATOR.join(entry)
    if len(entry) < 2:
        problem = f"Entry needs at least 2 fields, got {len(entry)}"
    elif any(FIELD_SEPARATOR in field for field in entry):
        problem = "Field contains '|'"
    elif "\n" in line or "\r" in line:
        problem = "Field contains a line break"
    elif LockFileCodec.parse_line(line) != RecordLine(tuple(entry)):
        problem = "Entry would not read back as written"
    else:
        return
    raise MalformedRecordError(
        problem, section=section, line_number=index, line_content=line
    )


class LockFileCodec:
    """Serializes :class:`LockFile` objects to text and parses them back.

    The codec holds no state between calls. ``parse(serialize(lock))``
    yields the same entries per section as ``lock``; header comments other
    than ``# Key: value`` metadata are not preserved.
    """

    def __init__(self) -> None:
        self.logger = get_logger("core.lockfile")

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @staticmethod
    def parse_line(line: str) -> ParsedLine:
        """Classify one line of lock file text.

        Example::

            >>> LockFileCodec.parse_line("[REPOSITORIES]")
            SectionHeader(name='REPOSITORIES')
            >>> LockFileCodec.parse_line("fedora|enabled")
            RecordLine(fields=('fedora', 'enabled'))
            >>> LockFileCodec.parse_line("# System: a|b")
            Ignored(text='# System: a|b')
        """
        text = line.strip()
        if len(text) >= 2 and text.startswith("[") and text.endswith("]"):
            return SectionHeader(text[1:-1])
        if FIELD_SEPARATOR in text and not text.startswith("#"):
            return RecordLine(tuple(text.split(FIELD_SEPARATOR)))
        return Ignored(text)

    def parse(self, text: str) -> LockFile:
        """Parse lock file text in a single forward scan.

        Args:
            text: Complete lock file content.

        Returns:
            A :class:`LockFile`; unknown section names are kept verbatim.
        """
        lock = LockFile()
        current: Optional[str] = None
        dropped = 0

        for line in text.splitlines():
            parsed = self.parse_line(line)

            if isinstance(parsed, SectionHeader):
                current = parsed.name
                if current in lock.sections:
                    self.logger.debug("Section [%s] repeated; replacing", current)
                lock.sections[current] = []

            elif isinstance(parsed, RecordLine):
                if current is None:
                    dropped += 1
                    continue
                lock.sections[current].append(parsed.fields)

            elif current is None:
                match = _HEADER_COMMENT_RE.match(parsed.text)
                if match and match.group(1) != "Format":
                    lock.metadata[match.group(1)] = match.group(2).strip()

        if dropped:
            self.logger.debug("Ignored %d entry line(s) outside any section", dropped)

        self.logger.debug(
            "Parsed lock file: %s",
            ", ".join(f"{name}={len(entries)}" for name, entries in lock.sections.items())
            or "no sections",
        )
        return lock

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def compute_checksums(self, lock: LockFile) -> Dict[str, str]:
        """Digest of every checksummed section, keyed by label.

        Absent sections hash as empty.
        """
        return {
            label: section_digest(lock.section(section))
            for label, section in CHECKSUMMED_SECTIONS.items()
        }

    def serialize(self, lock: LockFile) -> str:
        """Render a lock file as text.

        The ``[CHECKSUMS]`` section is always recomputed from the manual
        and auto sections; any stored checksums are discarded. Empty
        sections are omitted.

        Returns:
            Newline-terminated lock file text.

        Raises:
            MalformedRecordError: An entry would not parse back as the
                same fields: it has fewer than two, or a field contains
                ``|`` or a line break.
        """
        for name, entries in lock.sections.items():
            if name != SECTION_CHECKSUMS:
                for index, entry in enumerate(entries, start=1):
                    _check_writable(name, index, entry)

        metadata = dict(lock.metadata)
        metadata.setdefault("Generated", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
        metadata.setdefault("System", "Unknown")

        lines: List[str] = [LOCK_FILE_TITLE]
        lines.extend(f"# {key}: {value}" for key, value in metadata.items())
        lines.extend(["", LOCK_FILE_FORMAT_LINE])

        sections: Dict[str, List[Entry]] = {
            name: lock.section(name)
            for name in CANONICAL_SECTIONS
            if name != SECTION_CHECKSUMS
        }
        for name, entries in lock.sections.items():
            if name not in sections and name != SECTION_CHECKSUMS:
                sections[name] = entries
        sections[SECTION_CHECKSUMS] = [
            (label, digest) for label, digest in self.compute_checksums(lock).items()
        ]

        # CHECKSUMS stays last, after any unknown sections
        order = [n for n in CANONICAL_SECTIONS if n != SECTION_CHECKSUMS]
        order += [n for n in sections if n not in CANONICAL_SECTIONS]
        order.append(SECTION_CHECKSUMS)

        for name in order:
            entries = sections[name]
            if not entries:
                continue
            lines.extend(["", f"[{name}]"])
            lines.extend(FIELD_SEPARATOR.join(entry) for entry in entries)

        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, lock: LockFile) -> None:
        """Check every record entry of the manual and auto sections.

        Raises:
            MalformedRecordError: An entry does not have exactly seven
                fields or has a non-numeric size / install time.
        """
        for section in (SECTION_MANUAL, SECTION_AUTO):
            lock.records(section, strict=True)

    def verify_checksums(
        self,
        lock: LockFile,
        *,
        strict: bool = False,
    ) -> List[ChecksumMismatchError]:
        """Compare stored checksums with digests of the current content.

        Labels with no stored checksum are skipped with a warning; unknown
        labels are ignored.

        Args:
            lock: Parsed lock file.
            strict: Raise the first mismatch instead of collecting them.

        Returns:
            One :class:`ChecksumMismatchError` per disagreeing label.

        Raises:
            ChecksumMismatchError: ``strict`` is set and a digest differs.
        """
        stored = lock.checksums
        actual = self.compute_checksums(lock)
        mismatches: List[ChecksumMismatchError] = []

        for label, digest in actual.items():
            expected = stored.get(label)
            if expected is None:
                self.logger.warning("Lock file has no checksum for %s", label)
                continue
            if expected.lower() == digest:
                continue

            error = ChecksumMismatchError(
                f"Checksum mismatch for {label}",
                label=label,
                expected=expected,
                actual=digest,
            )
            if strict:
                raise error
            mismatches.append(error)

        for label in stored.keys() - actual.keys():
            self.logger.debug("Ignoring checksum with unknown label %r", label)

        return mismatches

    # ------------------------------------------------------------------
    # File I/O
    # ------------------------------------------------------------------

    def read(self, path: Union[str, Path]) -> LockFile:
        """Read and parse a lock file.

        Raises:
            MissingInputError: The file does not exist.
            FileOperationError: The file exists but cannot be read.
        """
        lock_path = Path(path).expanduser()
        if not lock_path.exists():
            raise MissingInputError(
                f"Lock file not found at: {lock_path}",
                file_path=str(lock_path),
                hint="run 'fedkeeper lock' first",
            )
        self.logger.info("Reading lock file %s", lock_path)
        return self.parse(safe_read_file(lock_path))

    def write(
        self,
        lock: LockFile,
        path: Union[str, Path],
        *,
        backup: bool = True,
    ) -> Optional[Path]:
        """Serialize and atomically write a lock file.

        Args:
            lock: Lock file to write.
            path: Destination.
            backup: Copy the previous file to ``<path>.backup`` first.

        Returns:
            Path of the backup, if one was made.

        Raises:
            MalformedRecordError: An entry cannot be written; nothing is
                written in that case.
        """
        lock_path = Path(path).expanduser()
        backup_path = safe_write_file(lock_path, self.serialize(lock), create_backup=backup)
        self.logger.info(
            "Wrote lock file %s (%d record(s))", lock_path, lock.record_count()
        )
        return backup_path


def read_lock_file(path: Union[str, Path]) -> LockFile:
    """Shortcut for ``LockFileCodec().read(path)``."""
    return LockFileCodec().read(path)


def write_lock_file(
    lock: LockFile,
    path: Union[str, Path],
    *,
    backup: bool = True,
) -> Optional[Path]:
    """Shortcut for ``LockFileCodec().write(lock, path, backup=backup)``."""
    return LockFileCodec().write(lock, path, backup=backup)
