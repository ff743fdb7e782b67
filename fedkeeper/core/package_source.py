"""OS package manager access for fedkeeper.

Everything fedkeeper knows about the running system comes through a
:class:`PackageSource`. The real implementation, :class:`DnfPackageSource`,
shells out to ``dnf`` and ``rpm``; tests substitute an in-memory fake.

Per-package record queries are the expensive part: one ``rpm -q`` and one
``dnf repoquery`` per chunk of names. Chunks run concurrently as asyncio
subprocesses, bounded by a semaphore, and results are merged back in
chunk order so the output does not depend on scheduling.

Typical usage::

    source = DnfPackageSource(chunk_size=50, max_parallel_jobs=4)
    manual = source.list_user_installed()
    records = source.query_records(sorted(manual))
"""

from __future__ import annotations

import asyncio
import subprocess
from typing import Dict, FrozenSet, Iterable, List, Optional, Protocol, Sequence, Set, Tuple

from fedkeeper.exceptions import MalformedRecordError, PackageQueryError
from fedkeeper.utils import ProgressTracker, chunked, get_logger
from fedkeeper.utils.progress import ProgressCallback
from fedkeeper.models import PackageRecord, PackageSet, RepositoryStatus
from fedkeeper.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_GROUPS,
    DEFAULT_MAX_PARALLEL_JOBS,
    DEFAULT_QUERY_TIMEOUT,
    ESSENTIAL_PACKAGES,
    FIELD_SEPARATOR,
    RPM_RECORD_QUERYFORMAT,
    UNKNOWN_REPOSITORY,
)

logger = get_logger("package_source")

__all__ = [
    "DnfPackageSource",
    "PackageSource",
    "parse_group_info",
    "parse_name_list",
    "parse_repolist",
]

_GROUP_SECTIONS = ("mandatory packages", "default packages")


# ---------------------------------------------------------------------------
# Capability interface
# ---------------------------------------------------------------------------


class PackageSource(Protocol):
    """What fedkeeper needs from the OS package manager.

    Implementations must raise :class:`PackageQueryError` on failure
    rather than returning an empty result.
    """

    def list_installed(self) -> PackageSet:
        ...

    def list_user_installed(self) -> PackageSet:
        ...

    def list_defaults(self) -> PackageSet:
        ...

    def query_records(
        self,
        names: Sequence[str],
        progress: Optional[ProgressCallback] = None,
    ) -> List[PackageRecord]:
        ...

    def list_repositories(self) -> List[RepositoryStatus]:
        ...


# ---------------------------------------------------------------------------
# Output parsers
# ---------------------------------------------------------------------------


def parse_name_list(output: str) -> PackageSet:
    """Parse one-name-per-line query output into a set."""
    return frozenset(line.strip() for line in output.splitlines() if line.strip())


def parse_group_info(output: str) -> Set[str]:
    """Extract mandatory and default package names from ``dnf group info``.

    Names are the indented lines following a ``Mandatory Packages:`` or
    ``Default Packages:`` heading, up to the next unindented heading.
    Optional and conditional packages are not defaults.

    Example::

        >>> parse_group_info(
        ...     "Group: Core\\n"
        ...     " Mandatory Packages:\\n"
        ...     "   bash\\n"
        ...     "   coreutils\\n"
        ...     " Optional Packages:\\n"
        ...     "   zsh\\n"
        ... ) == {"bash", "coreutils"}
        True
    """
    names: Set[str] = set()
    collecting = False

    for line in output.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        # dnf5 continues a list with lines like "      : basesystem"
        if stripped.startswith(":"):
            if collecting and stripped[1:].strip():
                names.add(stripped[1:].split()[0])
            continue
        heading, sep, value = stripped.partition(":")
        if sep and not line.startswith("   "):
            collecting = heading.strip().lower() in _GROUP_SECTIONS
            if collecting and value.strip():
                names.add(value.split()[0])
            continue
        if collecting and line.startswith(" "):
            names.add(stripped.split()[0])

    return names


def parse_repolist(output: str) -> List[str]:
    """Return repository ids from ``dnf repolist`` output.

    The ``repo id`` header line is skipped; the id is the first token of
    every other line.
    """
    repos: List[str] = []
    for line in output.splitlines():
        stripped = line.strip()
        if not stripped or stripped.lower().startswith("repo id"):
            continue
        repos.append(stripped.split()[0])
    return repos


def _parse_record_lines(output: str) -> Dict[str, Tuple[str, ...]]:
    """Map name to the six rpm fields, skipping lines that do not fit."""
    parsed: Dict[str, Tuple[str, ...]] = {}
    for line in output.splitlines():
        fields = tuple(line.strip().split(FIELD_SEPARATOR))
        if len(fields) != 6 or not fields[0]:
            continue
        parsed.setdefault(fields[0], fields)
    return parsed


def _parse_repo_lines(output: str) -> Dict[str, str]:
    repos: Dict[str, str] = {}
    for line in output.splitlines():
        name, sep, repo = line.strip().partition(FIELD_SEPARATOR)
        if sep and name:
            repos.setdefault(name, repo.strip() or UNKNOWN_REPOSITORY)
    return repos


# ---------------------------------------------------------------------------
# dnf / rpm implementation
# ---------------------------------------------------------------------------


class DnfPackageSource:
    """:class:`PackageSource` backed by the ``dnf`` and ``rpm`` commands.

    Args:
        chunk_size: Package names per record query.
        max_parallel_jobs: Maximum record queries in flight.
        timeout: Seconds allowed for every single command.
        groups: Comps groups whose packages count as defaults.
        essential: Names always treated as defaults.
    """

    def __init__(
        self,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_parallel_jobs: int = DEFAULT_MAX_PARALLEL_JOBS,
        timeout: float = DEFAULT_QUERY_TIMEOUT,
        groups: Iterable[str] = DEFAULT_GROUPS,
        essential: Iterable[str] = ESSENTIAL_PACKAGES,
    ) -> None:
        self.chunk_size = chunk_size
        self.max_parallel_jobs = max(1, max_parallel_jobs)
        self.timeout = timeout
        self.groups: Tuple[str, ...] = tuple(groups)
        self.essential: FrozenSet[str] = frozenset(essential)

    # ------------------------------------------------------------------
    # Synchronous commands
    # ------------------------------------------------------------------

    def _run(self, command: Sequence[str], *, check: bool = True) -> str:
        """Run a command and return its stdout.

        Raises:
            PackageQueryError: The command is missing, times out, or exits
                non-zero while ``check`` is set.
        """
        logger.debug("Running: %s", " ".join(command))
        try:
            result = subprocess.run(
                list(command),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise PackageQueryError(
                f"Command not found: {command[0]}",
                command=command,
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise PackageQueryError(
                f"Command timed out after {self.timeout:g}s",
                command=command,
            ) from exc

        if check and result.returncode != 0:
            raise PackageQueryError(
                "Package manager query failed",
                command=command,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result.stdout

    def list_installed(self) -> PackageSet:
        names = parse_name_list(
            self._run(["dnf", "repoquery", "--installed", "--queryformat", "%{name}\\n"])
        )
        logger.info("Found %d installed package(s)", len(names))
        return names

    def list_user_installed(self) -> PackageSet:
        names = parse_name_list(
            self._run(
                ["dnf", "repoquery", "--userinstalled", "--queryformat", "%{name}\\n"]
            )
        )
        logger.info("Found %d user-installed package(s)", len(names))
        return names

    def list_defaults(self) -> PackageSet:
        """Union of the default groups' packages and the essential set.

        A group that cannot be queried is logged and skipped; the essential
        set alone is still a usable answer.
        """
        defaults: Set[str] = set(self.essential)
        for group in self.groups:
            try:
                output = self._run(["dnf", "group", "info", group])
            except PackageQueryError as exc:
                logger.warning("Skipping group %s: %s", group, exc)
                continue
            members = parse_group_info(output)
            logger.debug("Group %s contributes %d package(s)", group, len(members))
            defaults.update(members)

        logger.info("Identified %d default package(s)", len(defaults))
        return frozenset(defaults)

    def list_repositories(self) -> List[RepositoryStatus]:
        enabled = parse_repolist(self._run(["dnf", "repolist", "--enabled", "--quiet"]))
        every = parse_repolist(self._run(["dnf", "repolist", "--all", "--quiet"]))

        enabled_set = set(enabled)
        repos = [RepositoryStatus(name, True) for name in enabled]
        repos.extend(
            RepositoryStatus(name, False) for name in every if name not in enabled_set
        )
        return repos

    # ------------------------------------------------------------------
    # Chunked record queries
    # ------------------------------------------------------------------

    def query_records(
        self,
        names: Sequence[str],
        progress: Optional[ProgressCallback] = None,
    ) -> List[PackageRecord]:
        """Return records for the installed packages among ``names``.

        Names that are not installed are skipped. Records come back in
        the order of ``names``.

        Args:
            names: Package names to look up.
            progress: Called as ``progress(processed, total)`` after each
                chunk completes.

        Raises:
            PackageQueryError: Any chunk query fails or times out.
        """
        ordered = list(dict.fromkeys(names))
        if not ordered:
            return []
        return asyncio.run(self._query_all(ordered, progress))

    async def _query_all(
        self,
        names: List[str],
        progress: Optional[ProgressCallback],
    ) -> List[PackageRecord]:
        chunks = chunked(names, self.chunk_size)
        semaphore = asyncio.Semaphore(self.max_parallel_jobs)
        tracker = ProgressTracker(len(names), progress)

        logger.debug(
            "Querying %d package(s) in %d chunk(s), %d at a time",
            len(names),
            len(chunks),
            self.max_parallel_jobs,
        )

        async def run_chunk(chunk: List[str]) -> List[PackageRecord]:
            async with semaphore:
                records = await self._query_chunk(chunk)
            tracker.advance(len(chunk))
            return records

        results = await asyncio.gather(*(run_chunk(chunk) for chunk in chunks))

        merged: List[PackageRecord] = []
        for chunk_records in results:
            merged.extend(chunk_records)
        logger.info("Collected %d of %d package record(s)", len(merged), len(names))
        return merged

    async def _query_chunk(self, chunk: List[str]) -> List[PackageRecord]:
        rpm_out = await self._run_async(
            ["rpm", "-q", "--queryformat", RPM_RECORD_QUERYFORMAT, *chunk],
            allow_missing=True,
        )
        repo_out = await self._run_async(
            [
                "dnf",
                "repoquery",
                "--installed",
                "--queryformat",
                "%{name}|%{reponame}\\n",
                *chunk,
            ],
            allow_missing=True,
        )

        rows = _parse_record_lines(rpm_out)
        repos = _parse_repo_lines(repo_out)

        records: List[PackageRecord] = []
        for name in chunk:
            fields = rows.get(name)
            if fields is None:
                logger.debug("Package %s is not installed; skipping", name)
                continue
            repository = repos.get(name, UNKNOWN_REPOSITORY)
            try:
                records.append(PackageRecord.from_fields((*fields, repository)))
            except MalformedRecordError:
                logger.warning("Unparseable rpm output for %s", name)
        return records

    async def _run_async(
        self, command: Sequence[str], *, allow_missing: bool = False
    ) -> str:
        """Async counterpart of :meth:`_run`; kills the process on timeout.

        Args:
            command: Command line to execute.
            allow_missing: Accept a non-zero exit that only reports
                uninstalled names: stderr is empty and stdout is not.
                ``rpm -q`` exits 1 whenever one of its arguments is not
                installed.

        Raises:
            PackageQueryError: The command is missing, times out, or
                fails in any other way.
        """
        logger.debug("Running: %s", " ".join(command[:5]))
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise PackageQueryError(
                f"Command not found: {command[0]}",
                command=command,
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise PackageQueryError(
                f"Command timed out after {self.timeout:g}s",
                command=command,
            ) from exc

        output = stdout.decode(errors="replace")
        errors = stderr.decode(errors="replace")
        if process.returncode != 0:
            only_missing = allow_missing and not errors.strip() and output.strip()
            if not only_missing:
                raise PackageQueryError(
                    "Package manager query failed",
                    command=command,
                    returncode=process.returncode,
                    stderr=errors,
                )
            logger.debug("%s exited %d for uninstalled names", command[0], process.returncode)
        return output
