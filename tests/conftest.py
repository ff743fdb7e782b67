from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pytest

from fedkeeper.config import FedKeeperConfig
from fedkeeper.models import PackageRecord, PackageSet, RepositoryStatus
from fedkeeper.utils.progress import ProgressCallback

DEFAULTS = ["kernel", "systemd", "bash", "coreutils", "glibc", "dnf"]
MANUAL = ["git", "docker-ce", "nodejs", "vim-enhanced"]
AUTO = ["gcc", "python3", "firefox"]


def make_record(
    name: str,
    version: str = "1.0.0",
    release: str = "1.fc39",
    *,
    arch: str = "x86_64",
    size: int = 1000,
    install_time: int = 1700000000,
    repository: str = "fedora",
) -> PackageRecord:
    return PackageRecord(
        name=name,
        version=version,
        release=release,
        arch=arch,
        size=size,
        install_time=install_time,
        repository=repository,
    )


class FakePackageSource:
    """In-memory package source recording which queries were made."""

    def __init__(
        self,
        *,
        installed: Iterable[str] = (),
        user_installed: Iterable[str] = (),
        defaults: Iterable[str] = (),
        records: Optional[Iterable[PackageRecord]] = None,
        repositories: Optional[List[RepositoryStatus]] = None,
    ) -> None:
        self.installed = frozenset(installed)
        self.user_installed = frozenset(user_installed)
        self.defaults = frozenset(defaults)
        if records is None:
            records = [make_record(name) for name in sorted(self.installed)]
        self.records: Dict[str, PackageRecord] = {r.name: r for r in records}
        self.repositories = repositories if repositories is not None else [
            RepositoryStatus("fedora", True),
            RepositoryStatus("updates-testing", False),
        ]
        self.calls: List[str] = []

    def list_installed(self) -> PackageSet:
        self.calls.append("list_installed")
        return self.installed

    def list_user_installed(self) -> PackageSet:
        self.calls.append("list_user_installed")
        return self.user_installed

    def list_defaults(self) -> PackageSet:
        self.calls.append("list_defaults")
        return self.defaults

    def query_records(
        self,
        names: Sequence[str],
        progress: Optional[ProgressCallback] = None,
    ) -> List[PackageRecord]:
        self.calls.append("query_records")
        found = [self.records[name] for name in names if name in self.records]
        if progress is not None and names:
            progress(len(names), len(names))
        return found

    def list_repositories(self) -> List[RepositoryStatus]:
        self.calls.append("list_repositories")
        return list(self.repositories)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the caller's environment and config files out of every test."""
    for variable in (
        "PACKAGE_DIR",
        "CACHE_DIR",
        "CHUNK_SIZE",
        "MAX_PARALLEL_JOBS",
        "QUERY_TIMEOUT",
        "ENABLE_PROGRESS",
        "FEDKEEPER_CONFIG",
        "FEDKEEPER_COLOR",
    ):
        monkeypatch.delenv(variable, raising=False)
    # Recorded so the CLI toggling NO_COLOR is undone afterwards
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.setattr(
        "fedkeeper.config.USER_CONFIG_PATH", str(tmp_path / "no-user-config.toml")
    )


@pytest.fixture
def clean_logging() -> Iterable[None]:
    root_logger = logging.getLogger("fedkeeper")
    saved = (list(root_logger.handlers), root_logger.level, root_logger.propagate)
    yield
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        if handler not in saved[0]:
            handler.close()
    for handler in saved[0]:
        root_logger.addHandler(handler)
    root_logger.setLevel(saved[1])
    root_logger.propagate = saved[2]


@pytest.fixture
def fake_source() -> FakePackageSource:
    """The 13-package system: 6 defaults, 4 manual, 3 auto dependencies."""
    records = [make_record(name) for name in DEFAULTS + MANUAL + AUTO]
    return FakePackageSource(
        installed=DEFAULTS + MANUAL + AUTO,
        user_installed=MANUAL,
        defaults=DEFAULTS,
        records=records,
    )


@pytest.fixture
def config(tmp_path: Path) -> FedKeeperConfig:
    return FedKeeperConfig(
        package_dir=tmp_path / "fedora-packages",
        max_parallel_jobs=2,
        enable_progress=False,
    )


@pytest.fixture(name="make_record")
def make_record_fixture():
    """Factory for :class:`PackageRecord` with sensible defaults."""
    return make_record


@pytest.fixture(name="make_source")
def make_source_fixture():
    """Factory for :class:`FakePackageSource` instances."""
    return FakePackageSource
