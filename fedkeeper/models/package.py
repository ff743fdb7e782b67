"""
Installed package data model for fedkeeper.

This module defines :class:`PackageRecord`, the per-package entry stored
in the ``MANUAL_PACKAGES`` and ``AUTO_DEPENDENCIES`` sections of a lock
file, and helpers for splitting ``name-version-release.arch`` strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Sequence, Tuple

from fedkeeper.constants import FIELD_SEPARATOR, RECORD_FIELDS
from fedkeeper.exceptions import MalformedRecordError

#: A set of package names; order carries no meaning.
PackageSet = FrozenSet[str]


def parse_nevra(spec: str) -> Tuple[str, str, str, str]:
    """Split a ``name-version-release.arch`` string into its parts.

    The architecture is everything after the final ``.``; version and
    release are the last two ``-`` separated components of the rest, so
    package names may themselves contain dashes.

    Args:
        spec: Package specifier such as ``"another-pkg-2.0.0-5.fc39.noarch"``.

    Returns:
        ``(name, version, release, arch)``.

    Raises:
        MalformedRecordError: The string has no arch suffix or fewer than
            three dash-separated components.

    Example::

        >>> parse_nevra("package-1.2.3-1.fc39.x86_64")
        ('package', '1.2.3', '1.fc39', 'x86_64')
    """
    name_version_release, sep, arch = spec.strip().rpartition(".")
    if not sep or not name_version_release or not arch:
        raise MalformedRecordError(
            f"Package specifier has no architecture: {spec!r}",
            line_content=spec,
        )

    components = name_version_release.split("-")
    if len(components) < 3 or not all(components[-3:]):
        raise MalformedRecordError(
            f"Package specifier is not name-version-release.arch: {spec!r}",
            line_content=spec,
        )

    name = "-".join(components[:-2])
    return name, components[-2], components[-1], arch


@dataclass(frozen=True)
class PackageRecord:
    """One installed package as captured in a lock file.

    Attributes:
        name: Package name (unique within a package set).
        version: Upstream version, e.g. ``2.41.0``.
        release: Distribution release, e.g. ``1.fc39``.
        arch: Architecture, e.g. ``x86_64`` or ``noarch``.
        size: Installed size in bytes.
        install_time: Installation time as a Unix timestamp.
        repository: Repository the package was installed from.
    """

    name: str
    version: str
    release: str
    arch: str
    size: int
    install_time: int
    repository: str

    # ------------------------------------------------------------------
    # Derived identifiers
    # ------------------------------------------------------------------

    @property
    def evr(self) -> str:
        """``version-release`` as compared by ``verify``."""
        return f"{self.version}-{self.release}"

    @property
    def nevra(self) -> str:
        """``name-version-release.arch`` as accepted by ``dnf install``."""
        return f"{self.name}-{self.version}-{self.release}.{self.arch}"

    @property
    def installed_at(self) -> datetime:
        return datetime.fromtimestamp(self.install_time, tz=timezone.utc)

    # ------------------------------------------------------------------
    # Lock file line conversion
    # ------------------------------------------------------------------

    def to_fields(self) -> Tuple[str, ...]:
        """Return the seven lock file fields in canonical order."""
        return (
            self.name,
            self.version,
            self.release,
            self.arch,
            str(self.size),
            str(self.install_time),
            self.repository,
        )

    def to_line(self) -> str:
        return FIELD_SEPARATOR.join(self.to_fields())

    @classmethod
    def from_fields(
        cls,
        fields: Sequence[str],
        *,
        section: str = "",
        line_number: int = 0,
    ) -> "PackageRecord":
        """Build a record from split lock file fields.

        Args:
            fields: Exactly seven strings.
            section: Section name, used only for error context.
            line_number: 1-based entry index, used only for error context.

        Raises:
            MalformedRecordError: Wrong field count, empty name, or
                non-integer size / install time.
        """
        raw = FIELD_SEPARATOR.join(fields)
        context: Dict[str, Any] = {
            "section": section or None,
            "line_number": line_number or None,
            "line_content": raw,
        }

        if len(fields) != len(RECORD_FIELDS):
            raise MalformedRecordError(
                f"Expected {len(RECORD_FIELDS)} fields, got {len(fields)}",
                **context,
            )

        name, version, release, arch, size, install_time, repository = fields
        if not name:
            raise MalformedRecordError("Record has an empty package name", **context)

        try:
            size_value = int(size)
            time_value = int(install_time)
        except ValueError as exc:
            raise MalformedRecordError(
                f"Non-numeric size or install time in record for {name!r}",
                **context,
            ) from exc

        return cls(
            name=name,
            version=version,
            release=release,
            arch=arch,
            size=size_value,
            install_time=time_value,
            repository=repository,
        )

    @classmethod
    def from_line(cls, line: str) -> "PackageRecord":
        return cls.from_fields(line.strip().split(FIELD_SEPARATOR))

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation."""
        return {field_name: getattr(self, field_name) for field_name in RECORD_FIELDS}

    def __str__(self) -> str:
        return self.nevra
