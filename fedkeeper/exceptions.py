"""
Exception types raised by fedkeeper.

Core code raises these and never exits; the CLI decides how to report
them. Every error carries a human-readable ``message`` plus a ``details``
mapping of context (paths, section names, commands) that is appended to
the string form as ``message (key=value, ...)``.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, MutableMapping, Optional, Sequence

#: Longest captured text (stderr, record lines) kept in ``details``.
DETAIL_TEXT_LIMIT = 200


class FedKeeperError(Exception):
    """Root of the fedkeeper exception hierarchy.

    Args:
        message: What went wrong, phrased for the user.
        details: Extra context; copied, so the caller's mapping is not
            shared.
    """

    __slots__ = ("message", "details")

    def __init__(
        self,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message: str = message
        self.details: Dict[str, Any] = dict(details or {})

    def __str__(self) -> str:
        if self.details:
            context = ", ".join(f"{key}={value}" for key, value in self.details.items())
            return f"{self.message} ({context})"
        return self.message

    def __repr__(self) -> str:
        name = type(self).__name__
        return f"{name}(message={self.message!r}, details={self.details!r})"


def _add_if(details: MutableMapping[str, Any], key: str, value: Any) -> None:
    if value is not None:
        details[key] = value


def _truncate(text: str, max_length: int = DETAIL_TEXT_LIMIT) -> str:
    return text if len(text) <= max_length else f"{text[:max_length]}..."


class ConfigError(FedKeeperError):
    """Raised when configuration cannot be loaded or is invalid.

    Args:
        message: Error description.
        config_path: Path of the configuration file involved.
        option: Name of the offending option, if any.
    """

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "config", config_path)
        _add_if(details, "option", option)

        super().__init__(message, details)

        self.config_path = config_path
        self.option = option


class MissingInputError(FedKeeperError):
    """Raised when a required input artifact does not exist yet.

    Typical causes are a missing lock file before ``verify`` or missing
    package lists before ``stats``.

    Args:
        message: Error description.
        file_path: Path of the missing artifact.
        hint: Suggested command that produces the artifact.
    """

    __slots__ = ("file_path", "hint")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        hint: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", file_path)
        _add_if(details, "hint", hint)

        super().__init__(message, details)

        self.file_path = file_path
        self.hint = hint


class MalformedRecordError(FedKeeperError):
    """Raised when a lock file entry or package specifier is malformed.

    Parsing itself is tolerant; this error surfaces only on explicit
    validation or strict retrieval of records.

    Args:
        message: Error description.
        section: Lock file section containing the entry.
        line_number: 1-based position of the entry within its section.
        line_content: Raw content of the offending entry.
    """

    __slots__ = ("section", "line_number", "line_content")

    def __init__(
        self,
        message: str,
        *,
        section: Optional[str] = None,
        line_number: Optional[int] = None,
        line_content: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "section", section)
        _add_if(details, "entry", line_number)
        if line_content is not None:
            details["content"] = _truncate(line_content)

        super().__init__(message, details)

        self.section = section
        self.line_number = line_number
        self.line_content = line_content


class ChecksumMismatchError(FedKeeperError):
    """Raised when a stored checksum disagrees with the recomputed digest.

    Args:
        message: Error description.
        label: Checksum label (e.g. ``manual_packages``).
        expected: Digest stored in the lock file.
        actual: Digest computed from the current section content, or
            ``None`` when the section is absent.
    """

    __slots__ = ("label", "expected", "actual")

    def __init__(
        self,
        message: str,
        *,
        label: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "label", label)
        _add_if(details, "expected", expected)
        _add_if(details, "actual", actual)

        super().__init__(message, details)

        self.label = label
        self.expected = expected
        self.actual = actual


class FileOperationError(FedKeeperError):
    """Raised when file system operations fail.

    Args:
        message: Error description.
        file_path: Path to the file involved.
        operation: Operation being performed (read/write/backup/extract).
        original_error: Original exception that triggered this error.
    """

    __slots__ = ("file_path", "operation", "original_error")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", file_path)
        _add_if(details, "operation", operation)
        _add_if(
            details,
            "original_error",
            str(original_error) if original_error else None,
        )

        super().__init__(message, details)

        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error


class PackageQueryError(FedKeeperError):
    """Raised when querying the OS package manager fails or times out.

    A failed query is never reported as an empty package set.

    Args:
        message: Error description.
        command: Command line that was executed.
        returncode: Exit status of the command, if it finished.
        stderr: Captured standard error, truncated for safety.
    """

    __slots__ = ("command", "returncode", "stderr")

    def __init__(
        self,
        message: str,
        *,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        if command is not None:
            details["command"] = " ".join(command)
        _add_if(details, "returncode", returncode)
        if stderr:
            details["stderr"] = _truncate(stderr.strip())

        super().__init__(message, details)

        self.command = list(command) if command is not None else None
        self.returncode = returncode
        self.stderr = stderr
