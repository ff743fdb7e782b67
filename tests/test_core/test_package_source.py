"""Unit tests for fedkeeper.core.package_source module.

Subprocess calls are mocked; nothing here needs dnf or rpm installed.
"""

from __future__ import annotations

import asyncio
import subprocess
from typing import Dict, List, Sequence
from unittest.mock import MagicMock, patch

import pytest

from fedkeeper.core.package_source import (
    DnfPackageSource,
    parse_group_info,
    parse_name_list,
    parse_repolist,
)
from fedkeeper.exceptions import PackageQueryError
from fedkeeper.models import RepositoryStatus

DNF4_GROUP_INFO = """\
Group: Core
 Description: Smallest possible installation
 Mandatory Packages:
   audit
   basesystem
   bash
 Default Packages:
   NetworkManager
   dnf-plugins-core
 Optional Packages:
   zsh
"""

DNF5_GROUP_INFO = """\
Id                   : core
Name                 : Core
Description          : Smallest possible installation
Installed            : yes
Mandatory packages   : audit
                     : basesystem
                     : bash
Default packages     : NetworkManager
                     : dnf-plugins-core
Optional packages    : zsh
"""


def completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> MagicMock:
    result = MagicMock()
    result.stdout = stdout
    result.stderr = stderr
    result.returncode = returncode
    return result


@pytest.mark.unit
class TestParsers:
    """Tests for the dnf output parsers."""

    def test_parse_name_list(self) -> None:
        assert parse_name_list("git\n\n  vim  \ngit\n") == {"git", "vim"}

    def test_parse_group_info_dnf4(self) -> None:
        assert parse_group_info(DNF4_GROUP_INFO) == {
            "audit",
            "basesystem",
            "bash",
            "NetworkManager",
            "dnf-plugins-core",
        }

    def test_parse_group_info_dnf5(self) -> None:
        assert parse_group_info(DNF5_GROUP_INFO) == {
            "audit",
            "basesystem",
            "bash",
            "NetworkManager",
            "dnf-plugins-core",
        }

    def test_parse_group_info_without_lists(self) -> None:
        assert parse_group_info("Group: Empty\n Description: nothing\n") == set()

    def test_parse_repolist(self) -> None:
        output = (
            "repo id                         repo name\n"
            "fedora                          Fedora 39 - x86_64\n"
            "updates                         Fedora 39 - x86_64 - Updates\n"
            "\n"
        )
        assert parse_repolist(output) == ["fedora", "updates"]


@pytest.mark.unit
class TestSyncQueries:
    """Tests for the subprocess.run based queries."""

    @pytest.fixture
    def source(self) -> DnfPackageSource:
        return DnfPackageSource(timeout=5, groups=["core"], essential=["kernel", "bash"])

    def test_list_installed(self, source: DnfPackageSource) -> None:
        with patch("subprocess.run", return_value=completed("git\nvim\n")) as mock_run:
            assert source.list_installed() == {"git", "vim"}

        command = mock_run.call_args[0][0]
        assert command[:3] == ["dnf", "repoquery", "--installed"]
        assert mock_run.call_args.kwargs["timeout"] == 5

    def test_list_user_installed(self, source: DnfPackageSource) -> None:
        with patch("subprocess.run", return_value=completed("git\n")) as mock_run:
            assert source.list_user_installed() == {"git"}
        assert "--userinstalled" in mock_run.call_args[0][0]

    def test_nonzero_exit_raises(self, source: DnfPackageSource) -> None:
        with patch(
            "subprocess.run", return_value=completed(returncode=1, stderr="repo error")
        ):
            with pytest.raises(PackageQueryError) as exc_info:
                source.list_installed()

        assert exc_info.value.returncode == 1
        assert exc_info.value.stderr == "repo error"
        assert exc_info.value.command[0] == "dnf"

    def test_timeout_raises(self, source: DnfPackageSource) -> None:
        with patch(
            "subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="dnf", timeout=5),
        ):
            with pytest.raises(PackageQueryError, match="timed out after 5s"):
                source.list_installed()

    def test_missing_command_raises(self, source: DnfPackageSource) -> None:
        with patch("subprocess.run", side_effect=FileNotFoundError("dnf")):
            with pytest.raises(PackageQueryError, match="Command not found: dnf"):
                source.list_user_installed()

    def test_list_defaults_unions_groups_and_essentials(
        self, source: DnfPackageSource
    ) -> None:
        with patch("subprocess.run", return_value=completed(DNF4_GROUP_INFO)):
            defaults = source.list_defaults()

        assert isinstance(defaults, frozenset)
        assert {"kernel", "bash", "audit", "NetworkManager"} <= defaults
        assert "zsh" not in defaults

    def test_list_defaults_skips_failing_group(self) -> None:
        source = DnfPackageSource(groups=["core", "missing"], essential=["kernel"])
        responses = {"core": completed(DNF4_GROUP_INFO), "missing": completed(returncode=1)}

        def fake_run(command: List[str], **kwargs: object) -> MagicMock:
            return responses[command[-1]]

        with patch("subprocess.run", side_effect=fake_run):
            defaults = source.list_defaults()

        assert "audit" in defaults
        assert "kernel" in defaults

    def test_list_repositories(self, source: DnfPackageSource) -> None:
        outputs = {
            "--enabled": "repo id  repo name\nfedora  Fedora\nupdates  Updates\n",
            "--all": "repo id  repo name\nfedora  Fedora\ntesting  Testing\nupdates  Updates\n",
        }

        def fake_run(command: List[str], **kwargs: object) -> MagicMock:
            return completed(outputs[command[2]])

        with patch("subprocess.run", side_effect=fake_run):
            repos = source.list_repositories()

        assert repos == [
            RepositoryStatus("fedora", True),
            RepositoryStatus("updates", True),
            RepositoryStatus("testing", False),
        ]


class FakeAsyncRunner:
    """Stands in for ``_run_async`` with canned rpm/dnf output per name."""

    def __init__(self, rpm: Dict[str, str], repos: Dict[str, str]) -> None:
        self.rpm = rpm
        self.repos = repos
        self.calls: List[Sequence[str]] = []

    async def __call__(
        self, command: Sequence[str], *, allow_missing: bool = False
    ) -> str:
        self.calls.append(list(command))
        names = [arg for arg in command if arg in self.rpm or arg in self.repos]
        if command[0] == "rpm":
            return "".join(self.rpm[name] + "\n" for name in names if name in self.rpm)
        return "".join(
            f"{name}|{self.repos[name]}\n" for name in names if name in self.repos
        )


@pytest.mark.unit
class TestQueryRecords:
    """Tests for the chunked, concurrent record queries."""

    RPM = {
        "git": "git|2.41.0|1.fc39|x86_64|12345|1234567890",
        "vim-enhanced": "vim-enhanced|9.0|1.fc39|x86_64|3000|1234567891",
        "nodejs": "nodejs|20.5.0|1.fc39|x86_64|5000|1234567892",
        "broken": "broken|1.0|1|x86_64|big|1",
    }
    REPOS = {"git": "fedora", "vim-enhanced": "updates", "nodejs": ""}

    def make_source(self, chunk_size: int = 2) -> DnfPackageSource:
        source = DnfPackageSource(chunk_size=chunk_size, max_parallel_jobs=2)
        source._run_async = FakeAsyncRunner(self.RPM, self.REPOS)  # type: ignore[method-assign]
        return source

    def test_records_follow_input_order(self) -> None:
        source = self.make_source()
        records = source.query_records(["nodejs", "git", "vim-enhanced"])

        assert [r.name for r in records] == ["nodejs", "git", "vim-enhanced"]
        assert records[1].size == 12345
        assert records[2].repository == "updates"

    def test_empty_repository_becomes_unknown(self) -> None:
        records = self.make_source().query_records(["nodejs"])
        assert records[0].repository == "unknown"

    def test_uninstalled_and_malformed_are_skipped(self) -> None:
        records = self.make_source().query_records(["git", "ghost", "broken"])
        assert [r.name for r in records] == ["git"]

    def test_duplicates_queried_once(self) -> None:
        source = self.make_source(chunk_size=10)
        records = source.query_records(["git", "git"])
        assert len(records) == 1

    def test_two_commands_per_chunk(self) -> None:
        source = self.make_source(chunk_size=2)
        source.query_records(["git", "vim-enhanced", "nodejs"])

        runner = source._run_async
        assert len(runner.calls) == 4
        assert sum(1 for call in runner.calls if call[0] == "rpm") == 2

    def test_progress_reports_each_chunk(self) -> None:
        seen: List[tuple] = []
        self.make_source(chunk_size=2).query_records(
            ["git", "vim-enhanced", "nodejs"], progress=lambda done, total: seen.append((done, total))
        )

        assert len(seen) == 2
        assert seen[-1] == (3, 3)

    def test_empty_names_skip_queries(self) -> None:
        source = self.make_source()
        assert source.query_records([]) == []
        assert source._run_async.calls == []

    def test_chunk_failure_propagates(self) -> None:
        source = DnfPackageSource(chunk_size=1)

        async def failing(command: Sequence[str], *, allow_missing: bool = False) -> str:
            raise PackageQueryError("Command timed out after 60s", command=command)

        source._run_async = failing  # type: ignore[method-assign]
        with pytest.raises(PackageQueryError, match="timed out"):
            source.query_records(["git"])


@pytest.mark.unit
class TestRunAsync:
    """Tests for the asyncio subprocess wrapper."""

    def test_timeout_kills_process(self) -> None:
        source = DnfPackageSource(timeout=0.01)

        process = MagicMock()
        process.returncode = None

        async def never_finishes() -> tuple:
            await asyncio.sleep(10)
            return b"", b""

        async def wait() -> int:
            return -9

        process.communicate = never_finishes
        process.wait = wait

        async def fake_exec(*args: object, **kwargs: object) -> MagicMock:
            return process

        with patch("asyncio.create_subprocess_exec", side_effect=fake_exec):
            with pytest.raises(PackageQueryError, match="timed out"):
                asyncio.run(source._run_async(["rpm", "-q", "git"]))

        process.kill.assert_called_once()

    @staticmethod
    def exiting(returncode: int, stdout: bytes = b"", stderr: bytes = b""):
        process = MagicMock()
        process.returncode = returncode

        async def communicate() -> tuple:
            return stdout, stderr

        process.communicate = communicate

        async def fake_exec(*args: object, **kwargs: object) -> MagicMock:
            return process

        return fake_exec

    def test_nonzero_exit_raises(self) -> None:
        source = DnfPackageSource()

        with patch(
            "asyncio.create_subprocess_exec",
            side_effect=self.exiting(2, stderr=b"no such package"),
        ):
            with pytest.raises(PackageQueryError) as exc_info:
                asyncio.run(source._run_async(["rpm", "-q", "ghost"]))

        assert exc_info.value.returncode == 2

    def test_uninstalled_names_tolerated_when_allowed(self) -> None:
        source = DnfPackageSource()
        stdout = b"git|2.41.0|1.fc39|x86_64|12345|1234567890\npackage ghost is not installed\n"

        with patch("asyncio.create_subprocess_exec", side_effect=self.exiting(1, stdout)):
            output = asyncio.run(
                source._run_async(["rpm", "-q", "git", "ghost"], allow_missing=True)
            )

        assert output == stdout.decode()

    def test_stderr_fails_even_when_missing_allowed(self) -> None:
        source = DnfPackageSource()

        with patch(
            "asyncio.create_subprocess_exec",
            side_effect=self.exiting(1, stderr=b"error: rpmdb: BDB0113 cannot open Packages database"),
        ):
            with pytest.raises(PackageQueryError) as exc_info:
                asyncio.run(source._run_async(["rpm", "-q", "git"], allow_missing=True))

        assert "rpmdb" in exc_info.value.stderr

    def test_silent_failure_is_not_missing(self) -> None:
        source = DnfPackageSource()

        with patch("asyncio.create_subprocess_exec", side_effect=self.exiting(1)):
            with pytest.raises(PackageQueryError, match="query failed"):
                asyncio.run(source._run_async(["rpm", "-q", "git"], allow_missing=True))

    def test_broken_rpmdb_fails_record_query(self) -> None:
        source = DnfPackageSource()

        with patch(
            "asyncio.create_subprocess_exec",
            side_effect=self.exiting(1, stderr=b"error: rpmdb: BDB0113 cannot open Packages database"),
        ):
            with pytest.raises(PackageQueryError):
                source.query_records(["git", "bash"])

    def test_all_uninstalled_chunk_returns_nothing(self) -> None:
        source = DnfPackageSource()

        with patch(
            "asyncio.create_subprocess_exec",
            side_effect=self.exiting(1, b"package ghost is not installed\n"),
        ):
            assert source.query_records(["ghost"]) == []

    def test_missing_binary(self) -> None:
        source = DnfPackageSource()

        async def fake_exec(*args: object, **kwargs: object) -> MagicMock:
            raise FileNotFoundError("rpm")

        with patch("asyncio.create_subprocess_exec", side_effect=fake_exec):
            with pytest.raises(PackageQueryError, match="Command not found: rpm"):
                asyncio.run(source._run_async(["rpm", "-q", "git"]))
