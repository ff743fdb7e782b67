"""Unit tests for fedkeeper.models.lockfile module."""

from __future__ import annotations

import pytest

from fedkeeper.exceptions import MalformedRecordError
from fedkeeper.models import LockFile, PackageRecord, RepositoryStatus


def make_record(name: str, version: str = "1.0.0", repository: str = "fedora") -> PackageRecord:
    return PackageRecord(name, version, "1.fc39", "x86_64", 1000, 1700000000, repository)


@pytest.mark.unit
class TestRepositoryStatus:
    """Tests for RepositoryStatus conversion."""

    def test_to_fields(self) -> None:
        assert RepositoryStatus("fedora").to_fields() == ("fedora", "enabled")
        assert RepositoryStatus("testing", False).to_fields() == ("testing", "disabled")

    def test_from_fields(self) -> None:
        assert RepositoryStatus.from_fields(("docker", "enabled")) == RepositoryStatus(
            "docker", True
        )
        assert not RepositoryStatus.from_fields(("docker", "disabled")).enabled

    @pytest.mark.parametrize("fields", [("fedora",), ("fedora", "maybe"), ("a", "enabled", "x")])
    def test_from_fields_rejects_malformed(self, fields: tuple) -> None:
        with pytest.raises(MalformedRecordError) as exc_info:
            RepositoryStatus.from_fields(fields)
        assert exc_info.value.section == "REPOSITORIES"


@pytest.mark.unit
class TestLockFileBuild:
    """Tests for LockFile.build and typed accessors."""

    @pytest.fixture
    def lock(self) -> LockFile:
        return LockFile.build(
            manual=[make_record("git", "2.41.0"), make_record("docker-ce", "24.0.0")],
            auto=[make_record("python3", "3.11.0")],
            repositories=[RepositoryStatus("fedora"), RepositoryStatus("docker", False)],
            metadata={"System": "Fedora Linux 39"},
        )

    def test_sections_in_canonical_order(self, lock: LockFile) -> None:
        assert list(lock.sections) == [
            "MANUAL_PACKAGES",
            "AUTO_DEPENDENCIES",
            "REPOSITORIES",
        ]

    def test_typed_accessors(self, lock: LockFile) -> None:
        assert [r.name for r in lock.manual_packages] == ["git", "docker-ce"]
        assert [r.name for r in lock.auto_dependencies] == ["python3"]
        assert lock.repositories[1] == RepositoryStatus("docker", False)
        assert lock.metadata == {"System": "Fedora Linux 39"}

    def test_record_count(self, lock: LockFile) -> None:
        assert lock.record_count() == 3

    def test_package_names(self, lock: LockFile) -> None:
        assert lock.package_names("MANUAL_PACKAGES") == {"git", "docker-ce"}
        assert lock.package_names("UNKNOWN") == frozenset()

    def test_missing_section_is_empty(self, lock: LockFile) -> None:
        assert lock.section("CHECKSUMS") == []
        assert not lock.has_section("CHECKSUMS")
        assert lock.checksums == {}


@pytest.mark.unit
class TestLockFileRecords:
    """Tests for strict and lenient record retrieval."""

    @pytest.fixture
    def lock(self) -> LockFile:
        lock = LockFile()
        lock.set_section(
            "MANUAL_PACKAGES",
            [
                make_record("git").to_fields(),
                ("broken", "1.0"),
                make_record("vim-enhanced").to_fields(),
            ],
        )
        return lock

    def test_strict_raises_with_position(self, lock: LockFile) -> None:
        with pytest.raises(MalformedRecordError) as exc_info:
            lock.records("MANUAL_PACKAGES")

        assert exc_info.value.section == "MANUAL_PACKAGES"
        assert exc_info.value.line_number == 2

    def test_lenient_skips_malformed(self, lock: LockFile) -> None:
        records = lock.records("MANUAL_PACKAGES", strict=False)
        assert [r.name for r in records] == ["git", "vim-enhanced"]

    def test_names_tolerate_malformed(self, lock: LockFile) -> None:
        assert lock.package_names("MANUAL_PACKAGES") == {"git", "broken", "vim-enhanced"}

    def test_set_section_copies_entries_as_tuples(self) -> None:
        lock = LockFile()
        lock.set_section("EXTRA", [["a", "b"]])
        assert lock.section("EXTRA") == [("a", "b")]

    def test_checksums_skip_malformed_entries(self) -> None:
        lock = LockFile()
        lock.set_section("CHECKSUMS", [("manual_packages", "abc"), ("bad",)])
        assert lock.checksums == {"manual_packages": "abc"}

    def test_build_round_trips_records(self) -> None:
        record = make_record("nodejs", "20.5.0", repository="updates")
        lock = LockFile.build(manual=[record])
        assert lock.manual_packages == [record]
        assert isinstance(lock.manual_packages[0], PackageRecord)
