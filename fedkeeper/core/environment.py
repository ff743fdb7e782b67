"""Package environment orchestration for fedkeeper.

:class:`PackageEnvironment` ties the pieces together for the CLI
commands: it asks a :class:`~fedkeeper.core.package_source.PackageSource`
about the running system, classifies the answer, and persists package
lists and the lock file under the configured package directory.

Nothing here prints or exits; every operation returns a result object
(or raises a :class:`~fedkeeper.exceptions.FedKeeperError`) and the
command layer decides how to present it.

Typical usage::

    env = PackageEnvironment(load_config(), DnfPackageSource())
    result = env.analyze()
    lock = env.lock()
    report = env.verify()
    if not report.is_clean:
        ...
"""

from __future__ import annotations

import shutil
import socket
import tarfile
import platform
from pathlib import Path
from functools import partial
from datetime import datetime
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from fedkeeper.config import FedKeeperConfig, PackagePaths
from fedkeeper.core.classifier import (
    ClassificationResult,
    CommResult,
    PackageClassifier,
    comm_split,
    count_categories,
)
from fedkeeper.core.lockfile import LockFileCodec
from fedkeeper.core.package_source import PackageSource
from fedkeeper.exceptions import (
    ChecksumMismatchError,
    FileOperationError,
    MissingInputError,
)
from fedkeeper.models import LockFile, PackageRecord, PackageSet
from fedkeeper.utils import (
    classify_drift,
    get_logger,
    percentage,
    read_package_list,
    validate_path,
    write_package_list,
)
from fedkeeper.constants import (
    EXPORT_METADATA_FILENAME,
    RELEASE_FILE,
    SECTION_AUTO,
    SECTION_MANUAL,
)

logger = get_logger("core.environment")

#: ``(section, processed, total)`` progress reporter used by :meth:`PackageEnvironment.lock`.
SectionProgress = Callable[[str, int, int], None]

# Same checks again at extraction time where tarfile offers them
_EXTRACT_OPTIONS: Dict[str, Any] = {"filter": "data"} if hasattr(tarfile, "data_filter") else {}

__all__ = [
    "ExportResult",
    "ImportResult",
    "InitResult",
    "LockInfo",
    "PackageEnvironment",
    "PackageStatistics",
    "VerificationReport",
    "VersionMismatch",
    "system_metadata",
]


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InitResult:
    defaults: PackageSet
    lock: LockFile
    defaults_backup: Optional[Path] = None


@dataclass(frozen=True)
class VersionMismatch:
    """A locked package installed at a different version-release."""

    name: str
    locked: str
    current: str
    drift: str

    def __str__(self) -> str:
        return f"{self.name}: locked={self.locked}, current={self.current}"


@dataclass
class VerificationReport:
    """Differences between the lock file and the running system.

    Attributes:
        locked_count: Number of locked manual packages checked.
        missing: Locked packages that are not installed, as
            ``name-version-release``.
        mismatches: Locked packages installed at another version.
        extra: User-installed packages absent from the lock file.
        checksum_failures: Sections whose stored checksum does not match.
    """

    locked_count: int = 0
    missing: List[str] = field(default_factory=list)
    mismatches: List[VersionMismatch] = field(default_factory=list)
    extra: List[str] = field(default_factory=list)
    checksum_failures: List[ChecksumMismatchError] = field(default_factory=list)

    @property
    def issue_count(self) -> int:
        return (
            len(self.missing)
            + len(self.mismatches)
            + len(self.extra)
            + len(self.checksum_failures)
        )

    @property
    def is_clean(self) -> bool:
        return self.issue_count == 0


@dataclass(frozen=True)
class LockInfo:
    generated: Optional[str]
    size_bytes: int
    record_count: int


@dataclass(frozen=True)
class PackageStatistics:
    """Counts read back from the package lists written by ``analyze``."""

    manual_count: int
    auto_count: int
    default_count: int
    categories: Dict[str, int]
    lock_info: Optional[LockInfo] = None

    @property
    def total(self) -> int:
        return self.manual_count + self.auto_count + self.default_count

    def distribution(self) -> Dict[str, float]:
        """One-decimal percentages of :attr:`total` per group."""
        return {
            "default": percentage(self.default_count, self.total),
            "manual": percentage(self.manual_count, self.total),
            "auto": percentage(self.auto_count, self.total),
        }


@dataclass(frozen=True)
class ExportResult:
    archive_path: Path
    members: List[str]
    metadata: Dict[str, str]


@dataclass(frozen=True)
class ImportResult:
    package_dir: Path
    members: List[str]
    backup_dir: Optional[Path] = None
    metadata: Optional[str] = None


# ---------------------------------------------------------------------------
# System identity
# ---------------------------------------------------------------------------


def _read_release(release_file: Union[str, Path] = RELEASE_FILE) -> str:
    try:
        text = Path(release_file).read_text(encoding="utf-8").strip()
    except OSError:
        return "Unknown"
    return text or "Unknown"


def system_metadata(
    *,
    now: Optional[datetime] = None,
    release_file: Union[str, Path] = RELEASE_FILE,
) -> Dict[str, str]:
    """Header metadata describing the machine a lock file was taken on."""
    moment = now or datetime.now()
    return {
        "Generated": moment.strftime("%Y-%m-%d %H:%M:%S"),
        "System": _read_release(release_file),
        "Kernel": platform.release() or "Unknown",
        "Architecture": platform.machine() or "Unknown",
    }


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


class PackageEnvironment:
    """Runs fedkeeper's workflows against one package directory.

    Args:
        config: Resolved configuration.
        source: Where package information comes from.
        codec: Lock file codec; a default one is created when omitted.
        classifier: Package classifier; a default one is created when
            omitted.
    """

    def __init__(
        self,
        config: FedKeeperConfig,
        source: PackageSource,
        *,
        codec: Optional[LockFileCodec] = None,
        classifier: Optional[PackageClassifier] = None,
    ) -> None:
        self.config = config
        self.source = source
        self.paths = PackagePaths.from_config(config)
        self.codec = codec or LockFileCodec()
        self.classifier = classifier or PackageClassifier()

    def ensure_directories(self) -> None:
        for directory in (self.paths.outputs_dir, self.config.resolved_cache_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise FileOperationError(
                    f"Cannot create directory {directory}",
                    file_path=str(directory),
                    operation="mkdir",
                    original_error=exc,
                ) from exc

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    def refresh_defaults(self) -> PackageSet:
        """Query the default package set and write ``default-packages.txt``."""
        return self._write_defaults()[0]

    def _write_defaults(self) -> Tuple[PackageSet, Optional[Path]]:
        self.ensure_directories()
        defaults = self.source.list_defaults()
        backup = write_package_list(self.paths.default_packages, defaults)
        logger.info("Wrote %d default package(s)", len(defaults))
        return defaults, backup

    def load_defaults(self) -> PackageSet:
        """Read the defaults list, generating it first when missing."""
        if not self.paths.default_packages.is_file():
            logger.warning("Default packages list not found; generating it")
            return self.refresh_defaults()
        return frozenset(read_package_list(self.paths.default_packages))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def init(self, progress: Optional[SectionProgress] = None) -> InitResult:
        """Regenerate the defaults list and take an initial lock snapshot."""
        defaults, backup = self._write_defaults()
        lock = self.lock(progress=progress)
        return InitResult(defaults=defaults, lock=lock, defaults_backup=backup)

    def analyze(self) -> ClassificationResult:
        """Classify installed packages and write the manual/auto lists."""
        defaults = self.load_defaults()

        logger.info("Fetching installed packages")
        installed = self.source.list_installed()
        logger.info("Identifying manually installed packages")
        user_installed = self.source.list_user_installed()

        result = self.classifier.classify(installed, defaults, user_installed)

        self.ensure_directories()
        write_package_list(self.paths.manual_packages, result.manual)
        write_package_list(self.paths.auto_dependencies, result.auto)
        return result

    def lock(self, progress: Optional[SectionProgress] = None) -> LockFile:
        """Snapshot manual and auto packages with versions into the lock file.

        Runs :meth:`analyze` first when either package list is missing.

        Args:
            progress: Called as ``progress(section, processed, total)``
                while records are gathered.
        """
        if not (
            self.paths.manual_packages.is_file()
            and self.paths.auto_dependencies.is_file()
        ):
            logger.warning("Package lists not found; running analyze first")
            self.analyze()

        manual_names = read_package_list(self.paths.manual_packages)
        auto_names = read_package_list(self.paths.auto_dependencies)

        manual = self.source.query_records(
            manual_names, progress and partial(progress, SECTION_MANUAL)
        )
        auto = self.source.query_records(
            auto_names, progress and partial(progress, SECTION_AUTO)
        )
        repositories = self.source.list_repositories()

        metadata = system_metadata()
        metadata["Parallel Jobs"] = str(self.config.max_parallel_jobs)

        lock = LockFile.build(
            manual=manual,
            auto=auto,
            repositories=repositories,
            metadata=metadata,
        )
        self.ensure_directories()
        self.codec.write(lock, self.paths.lock_file)
        return lock

    def read_lock(self, path: Optional[Path] = None) -> LockFile:
        return self.codec.read(path or self.paths.lock_file)

    def verify(self) -> VerificationReport:
        """Compare the lock file with the packages installed now.

        Raises:
            MissingInputError: No lock file exists.
            MalformedRecordError: A locked manual record is malformed.
        """
        lock = self.read_lock()
        report = VerificationReport()
        report.checksum_failures = self.codec.verify_checksums(lock)

        locked: List[PackageRecord] = lock.records(SECTION_MANUAL, strict=True)
        report.locked_count = len(locked)

        current: Dict[str, PackageRecord] = {
            record.name: record
            for record in self.source.query_records([r.name for r in locked])
        }

        for record in locked:
            installed = current.get(record.name)
            if installed is None:
                report.missing.append(f"{record.name}-{record.version}-{record.release}")
                continue
            drift = classify_drift(
                record.version, record.release, installed.version, installed.release
            )
            if drift != "same":
                report.mismatches.append(
                    VersionMismatch(
                        name=record.name,
                        locked=record.evr,
                        current=installed.evr,
                        drift=drift,
                    )
                )

        # Extras are judged against the same manual set the lock records
        manual_now = self.source.list_user_installed() - self.load_defaults()
        report.extra = sorted(
            comm_split(manual_now, lock.package_names(SECTION_MANUAL)).only_left
        )

        logger.info(
            "Verified %d locked package(s): %d missing, %d mismatched, %d extra",
            report.locked_count,
            len(report.missing),
            len(report.mismatches),
            len(report.extra),
        )
        return report

    def diff(self, against: Optional[Path] = None) -> CommResult:
        """Compare locked manual names with the system or another lock file.

        ``only_left`` holds names only in this lock file; ``only_right``
        names only on the system (or only in ``against``).
        """
        locked = self.read_lock().package_names(SECTION_MANUAL)
        if against is not None:
            other = self.codec.read(against).package_names(SECTION_MANUAL)
        else:
            other = self.source.list_user_installed() - self.load_defaults()
        return comm_split(locked, other)

    def stats(self) -> PackageStatistics:
        """Summarize the package lists and lock file on disk.

        Raises:
            MissingInputError: The manual or auto list has not been written.
        """
        for path in (self.paths.manual_packages, self.paths.auto_dependencies):
            if not path.is_file():
                raise MissingInputError(
                    "Package lists not found",
                    file_path=str(path),
                    hint="run 'fedkeeper analyze' first",
                )

        manual = read_package_list(self.paths.manual_packages)
        auto = read_package_list(self.paths.auto_dependencies)
        defaults: List[str] = []
        if self.paths.default_packages.is_file():
            defaults = read_package_list(self.paths.default_packages)

        lock_info = None
        if self.paths.lock_file.is_file():
            lock = self.read_lock()
            lock_info = LockInfo(
                generated=lock.metadata.get("Generated"),
                size_bytes=self.paths.lock_file.stat().st_size,
                record_count=lock.record_count(),
            )

        return PackageStatistics(
            manual_count=len(manual),
            auto_count=len(auto),
            default_count=len(defaults),
            categories=count_categories(manual),
            lock_info=lock_info,
        )

    # ------------------------------------------------------------------
    # Archives
    # ------------------------------------------------------------------

    def export(self, output: Optional[Path] = None) -> ExportResult:
        """Bundle the package lists, lock file, and a metadata note.

        Creates the lock file first when it does not exist.

        Args:
            output: Archive path or directory; defaults to the package dir.
        """
        if not self.paths.lock_file.is_file():
            logger.warning("Lock file not found; creating it before export")
            self.lock()

        hostname = socket.gethostname() or "localhost"
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        archive_name = f"fedora-env-{hostname}-{stamp}.tar.gz"

        if output is None:
            archive_path = self.paths.package_dir / archive_name
        elif output.is_dir():
            archive_path = output / archive_name
        else:
            archive_path = output

        identity = system_metadata()
        metadata = {
            "Export Date": identity["Generated"],
            "Hostname": hostname,
            "Fedora Version": identity["System"],
            "Kernel": identity["Kernel"],
            "Architecture": identity["Architecture"],
            "Manual Packages": str(len(self._read_if_exists(self.paths.manual_packages))),
            "Dependencies": str(len(self._read_if_exists(self.paths.auto_dependencies))),
        }
        metadata_text = "".join(f"{key}: {value}\n" for key, value in metadata.items())

        artifacts = [
            self.paths.manual_packages,
            self.paths.auto_dependencies,
            self.paths.default_packages,
            self.paths.lock_file,
        ]
        members: List[str] = []

        try:
            archive_path.parent.mkdir(parents=True, exist_ok=True)
            with tarfile.open(archive_path, "w:gz") as tar:
                for artifact in artifacts:
                    if not artifact.is_file():
                        logger.debug("Skipping missing artifact %s", artifact)
                        continue
                    arcname = artifact.relative_to(self.paths.package_dir).as_posix()
                    tar.add(artifact, arcname=arcname)
                    members.append(arcname)

                metadata_file = self.config.resolved_cache_dir / EXPORT_METADATA_FILENAME
                metadata_file.parent.mkdir(parents=True, exist_ok=True)
                metadata_file.write_text(metadata_text, encoding="utf-8")
                try:
                    tar.add(metadata_file, arcname=EXPORT_METADATA_FILENAME)
                finally:
                    metadata_file.unlink()
                members.append(EXPORT_METADATA_FILENAME)
        except (OSError, tarfile.TarError) as exc:
            raise FileOperationError(
                f"Failed to create archive: {exc}",
                file_path=str(archive_path),
                operation="export",
                original_error=exc,
            ) from exc

        logger.info("Exported %d member(s) to %s", len(members), archive_path)
        return ExportResult(archive_path=archive_path, members=members, metadata=metadata)

    def import_archive(self, archive: Path) -> ImportResult:
        """Replace the package directory with the contents of an archive.

        An existing package directory is moved aside to
        ``<dir>.backup-<timestamp>`` first. Members that would land outside
        the package directory, and links, are rejected before anything is
        extracted.

        Raises:
            MissingInputError: ``archive`` does not exist.
            FileOperationError: The archive is unreadable or unsafe.
        """
        archive = archive.expanduser()
        if not archive.is_file():
            raise MissingInputError(
                f"Archive file not found: {archive}",
                file_path=str(archive),
            )

        package_dir = self.paths.package_dir

        try:
            with tarfile.open(archive, "r:*") as tar:
                members = tar.getmembers()
                for member in members:
                    if not (member.isfile() or member.isdir()):
                        raise FileOperationError(
                            f"Archive member is not a regular file: {member.name}",
                            file_path=str(archive),
                            operation="extract",
                        )
                    validate_path(package_dir / member.name, base_dir=package_dir)

                backup_dir = None
                if package_dir.exists():
                    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
                    backup_dir = package_dir.with_name(f"{package_dir.name}.backup-{stamp}")
                    shutil.move(str(package_dir), str(backup_dir))
                    logger.info("Moved existing environment to %s", backup_dir)

                package_dir.mkdir(parents=True, exist_ok=True)
                for member in members:
                    tar.extract(member, path=package_dir, **_EXTRACT_OPTIONS)
        except (OSError, tarfile.TarError) as exc:
            raise FileOperationError(
                f"Failed to import archive: {exc}",
                file_path=str(archive),
                operation="extract",
                original_error=exc,
            ) from exc

        metadata = None
        metadata_file = package_dir / EXPORT_METADATA_FILENAME
        if metadata_file.is_file():
            metadata = metadata_file.read_text(encoding="utf-8")
            metadata_file.unlink()

        logger.info("Imported %d member(s) from %s", len(members), archive)
        return ImportResult(
            package_dir=package_dir,
            members=[m.name for m in members],
            backup_dir=backup_dir,
            metadata=metadata,
        )

    @staticmethod
    def _read_if_exists(path: Path) -> List[str]:
        return read_package_list(path) if path.is_file() else []
