"""
Lock file data model for fedkeeper.

A :class:`LockFile` is an ordered mapping of section name to the entries
that appeared below that section's header, each entry already split on
``|``. The four canonical sections get typed accessors; any other
section is kept verbatim so newer lock files can be read by older
versions of fedkeeper.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from fedkeeper.models.package import PackageRecord, PackageSet
from fedkeeper.exceptions import MalformedRecordError
from fedkeeper.constants import (
    FIELD_SEPARATOR,
    SECTION_AUTO,
    SECTION_CHECKSUMS,
    SECTION_MANUAL,
    SECTION_REPOSITORIES,
)

#: One entry of a section: the line split on ``|``.
Entry = Tuple[str, ...]


@dataclass(frozen=True)
class RepositoryStatus:
    """A configured repository and whether it is enabled."""

    name: str
    enabled: bool = True

    def to_fields(self) -> Entry:
        return (self.name, "enabled" if self.enabled else "disabled")

    @classmethod
    def from_fields(cls, fields: Entry) -> "RepositoryStatus":
        """Build from ``(name, "enabled"|"disabled")``.

        Raises:
            MalformedRecordError: Wrong field count or unknown status.
        """
        raw = FIELD_SEPARATOR.join(fields)
        if len(fields) != 2 or fields[1] not in ("enabled", "disabled"):
            raise MalformedRecordError(
                "Repository entries must be name|enabled or name|disabled",
                section=SECTION_REPOSITORIES,
                line_content=raw,
            )
        return cls(name=fields[0], enabled=fields[1] == "enabled")


@dataclass
class LockFile:
    """In-memory form of a ``fedora.lock`` file.

    Attributes:
        sections: Section name → entries, in the order sections were added
            or encountered while parsing.
        metadata: ``# Key: value`` header comments (``Generated``,
            ``System``, ...). Informational only.
    """

    sections: Dict[str, List[Entry]] = field(default_factory=dict)
    metadata: Dict[str, str] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls,
        *,
        manual: Iterable[PackageRecord] = (),
        auto: Iterable[PackageRecord] = (),
        repositories: Iterable[RepositoryStatus] = (),
        metadata: Optional[Mapping[str, str]] = None,
    ) -> "LockFile":
        """Assemble a lock file from typed values.

        Checksums are not set here; the codec computes them while
        serializing.
        """
        lock = cls(metadata=dict(metadata or {}))
        lock.sections[SECTION_MANUAL] = [r.to_fields() for r in manual]
        lock.sections[SECTION_AUTO] = [r.to_fields() for r in auto]
        lock.sections[SECTION_REPOSITORIES] = [r.to_fields() for r in repositories]
        return lock

    def set_section(self, name: str, entries: Iterable[Entry]) -> None:
        self.sections[name] = [tuple(entry) for entry in entries]

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def section(self, name: str) -> List[Entry]:
        """Return the entries of ``name`` (empty if the section is absent)."""
        return self.sections.get(name, [])

    def has_section(self, name: str) -> bool:
        return name in self.sections

    # ------------------------------------------------------------------
    # Typed access
    # ------------------------------------------------------------------

    def records(self, name: str, *, strict: bool = True) -> List[PackageRecord]:
        """Return the package records of a record section.

        Args:
            name: ``MANUAL_PACKAGES`` or ``AUTO_DEPENDENCIES``.
            strict: Raise on the first malformed entry. When ``False``,
                malformed entries are skipped.

        Raises:
            MalformedRecordError: ``strict`` is set and an entry does not
                have exactly seven well-formed fields.
        """
        result: List[PackageRecord] = []
        for index, entry in enumerate(self.section(name), start=1):
            try:
                result.append(
                    PackageRecord.from_fields(entry, section=name, line_number=index)
                )
            except MalformedRecordError:
                if strict:
                    raise
        return result

    @property
    def manual_packages(self) -> List[PackageRecord]:
        return self.records(SECTION_MANUAL)

    @property
    def auto_dependencies(self) -> List[PackageRecord]:
        return self.records(SECTION_AUTO)

    @property
    def repositories(self) -> List[RepositoryStatus]:
        return [RepositoryStatus.from_fields(e) for e in self.section(SECTION_REPOSITORIES)]

    @property
    def checksums(self) -> Dict[str, str]:
        """Stored ``label → hexdigest`` pairs; malformed entries are skipped."""
        return {
            entry[0]: entry[1]
            for entry in self.section(SECTION_CHECKSUMS)
            if len(entry) == 2
        }

    def package_names(self, name: str) -> PackageSet:
        """Names in a record section, tolerating malformed entries.

        Only the first field is needed, so this never raises.
        """
        return frozenset(entry[0] for entry in self.section(name) if entry and entry[0])

    def record_count(self) -> int:
        """Number of entries in the manual and auto sections combined."""
        return len(self.section(SECTION_MANUAL)) + len(self.section(SECTION_AUTO))
