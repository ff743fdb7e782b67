"""End-to-end tests for the fedkeeper subcommands.

Each command runs through the real CLI group against an in-memory
package source and a package directory under ``tmp_path``.
"""

from __future__ import annotations

import tarfile
from pathlib import Path
from typing import Callable, List

import pytest
from click.testing import CliRunner, Result

from fedkeeper.cli import cli
from fedkeeper.commands.stats import format_size
from fedkeeper.context import FedKeeperContext

Invoke = Callable[..., Result]


@pytest.fixture(autouse=True)
def _isolate(clean_logging: None, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def package_dir(tmp_path: Path) -> Path:
    return tmp_path / "pkgs"


@pytest.fixture
def invoke(fake_source, package_dir: Path) -> Invoke:
    """Run a subcommand with the fake source injected."""

    def run(*args: str, input: str = None) -> Result:
        obj = FedKeeperContext()
        obj.source = fake_source
        return CliRunner().invoke(
            cli,
            ["--no-color", "--package-dir", str(package_dir), *args],
            obj=obj,
            input=input,
            env={"ENABLE_PROGRESS": "false"},
        )

    return run


def outputs(package_dir: Path) -> Path:
    return package_dir / "outputs"


@pytest.mark.integration
class TestInitCommand:
    """Tests for ``fedkeeper init``."""

    def test_creates_defaults_and_lock(self, invoke: Invoke, package_dir: Path) -> None:
        result = invoke("init")

        assert result.exit_code == 0, result.output
        assert "Identified 6 default packages" in result.output
        assert "Manual packages locked: 4" in result.output
        assert "Dependencies locked: 3" in result.output
        assert "Environment initialized successfully" in result.output
        assert (outputs(package_dir) / "default-packages.txt").is_file()
        assert (outputs(package_dir) / "fedora.lock").is_file()

    def test_rerun_reports_backup(self, invoke: Invoke) -> None:
        invoke("init")
        result = invoke("init")

        assert result.exit_code == 0
        assert "Backed up existing default packages list" in result.output


@pytest.mark.integration
class TestAnalyzeCommand:
    """Tests for ``fedkeeper analyze``."""

    def test_summary(self, invoke: Invoke, package_dir: Path) -> None:
        result = invoke("analyze")

        assert result.exit_code == 0, result.output
        assert "Package Analysis Summary" in result.output
        assert "Total packages:          13" in result.output
        assert "Default Fedora:          6 (46.2%)" in result.output
        assert "Manually installed:      4 (30.8%)" in result.output
        assert "Auto dependencies:       3 (23.1%)" in result.output
        assert "  - docker-ce" in result.output
        assert (outputs(package_dir) / "manual-packages.txt").read_text(
            encoding="utf-8"
        ) == "docker-ce\ngit\nnodejs\nvim-enhanced\n"

    def test_query_failure_exits_one(self, invoke: Invoke, fake_source) -> None:
        from fedkeeper.exceptions import PackageQueryError

        def failing() -> None:
            raise PackageQueryError("Command timed out after 60s", command=["dnf"])

        fake_source.list_installed = failing

        result = invoke("analyze")

        assert result.exit_code == 1
        assert "Command timed out after 60s" in result.output


@pytest.mark.integration
class TestLockCommand:
    """Tests for ``fedkeeper lock``."""

    def test_creates_lock(self, invoke: Invoke, package_dir: Path) -> None:
        result = invoke("lock")

        assert result.exit_code == 0, result.output
        assert "Lock file created successfully" in result.output
        assert "Manual packages locked: 4" in result.output
        text = (outputs(package_dir) / "fedora.lock").read_text(encoding="utf-8")
        assert "[CHECKSUMS]" in text
        assert "git|1.0.0|1.fc39|x86_64|1000|1700000000|fedora" in text

    def test_progress_enabled(self, fake_source, package_dir: Path) -> None:
        obj = FedKeeperContext()
        obj.source = fake_source

        result = CliRunner().invoke(
            cli,
            ["--no-color", "--package-dir", str(package_dir), "lock"],
            obj=obj,
            env={"ENABLE_PROGRESS": "true"},
        )

        assert result.exit_code == 0, result.output
        assert "Lock file created successfully" in result.output


@pytest.mark.integration
class TestVerifyCommand:
    """Tests for ``fedkeeper verify``."""

    def test_without_lock_file(self, invoke: Invoke) -> None:
        result = invoke("verify")

        assert result.exit_code == 1
        assert "Lock file not found" in result.output

    def test_clean_system(self, invoke: Invoke) -> None:
        invoke("lock")
        result = invoke("verify")

        assert result.exit_code == 0, result.output
        assert "Lock file checksums are valid" in result.output
        assert "All locked packages are installed" in result.output
        assert "All package versions match" in result.output
        assert "4 locked package(s) verified" in result.output

    def test_reports_problems(self, invoke: Invoke, fake_source, make_record) -> None:
        invoke("lock")
        fake_source.records["git"] = make_record("git", "1.1.0")
        del fake_source.records["nodejs"]
        fake_source.user_installed = fake_source.user_installed | {"htop"}

        result = invoke("verify")

        assert result.exit_code == 1
        assert "Missing packages:" in result.output
        assert "nodejs-1.0.0-1.fc39" in result.output
        assert "Version mismatches:" in result.output
        assert "minor" in result.output
        assert "Extra packages not in lock file:" in result.output
        assert "htop" in result.output
        assert "3 issue(s) found" in result.output

    def test_checksum_failure(self, invoke: Invoke, package_dir: Path) -> None:
        invoke("lock")
        lock_file = outputs(package_dir) / "fedora.lock"
        text = lock_file.read_text(encoding="utf-8")
        lock_file.write_text(
            text.replace("vim-enhanced|1.0.0|1.fc39|x86_64|1000|", "vim-enhanced|1.0.0|1.fc39|x86_64|999|"),
            encoding="utf-8",
        )

        result = invoke("verify")

        assert result.exit_code == 1
        assert "Checksum mismatches:" in result.output
        assert "manual_packages" in result.output

    def test_malformed_lock(self, invoke: Invoke, package_dir: Path) -> None:
        lock_file = outputs(package_dir) / "fedora.lock"
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text("[MANUAL_PACKAGES]\ngit|2.41.0\n", encoding="utf-8")

        result = invoke("verify")

        assert result.exit_code == 1
        assert "Expected 7 fields, got 2" in result.output


@pytest.mark.integration
class TestDiffCommand:
    """Tests for ``fedkeeper diff``."""

    def test_against_system(self, invoke: Invoke, fake_source) -> None:
        invoke("lock")
        fake_source.user_installed = frozenset({"git", "nodejs", "vim-enhanced", "htop"})

        result = invoke("diff")

        assert result.exit_code == 0, result.output
        assert "Packages only in lock file (need to install):" in result.output
        assert "  - docker-ce" in result.output
        assert "Packages only on current system (not in lock):" in result.output
        assert "  + htop" in result.output
        assert "Common packages: 3" in result.output

    def test_against_other_lock(self, invoke: Invoke, tmp_path: Path) -> None:
        invoke("lock")
        other = tmp_path / "other.lock"
        other.write_text("[MANUAL_PACKAGES]\nemacs|29.1|1.fc39|x86_64|1|1|fedora\n", encoding="utf-8")

        result = invoke("diff", "--against", str(other))

        assert result.exit_code == 0, result.output
        assert "  + emacs" in result.output
        assert "Common packages: 0" in result.output
        assert "Only in lock file: 4" in result.output

    def test_without_lock_file(self, invoke: Invoke) -> None:
        result = invoke("diff")
        assert result.exit_code == 1
        assert "Lock file not found" in result.output


@pytest.mark.integration
class TestStatsCommand:
    """Tests for ``fedkeeper stats``."""

    def test_without_lists(self, invoke: Invoke) -> None:
        result = invoke("stats")

        assert result.exit_code == 1
        assert "Package lists not found" in result.output

    def test_statistics(self, invoke: Invoke) -> None:
        invoke("lock")
        result = invoke("stats")

        assert result.exit_code == 0, result.output
        assert "Package Statistics" in result.output
        assert "Total installed:     13" in result.output
        assert "Custom installed:    4 (30.8%)" in result.output
        assert "Development: 2" in result.output
        assert "Containers: 1" in result.output
        assert "Lock File Info:" in result.output
        assert "Locked packages: 7" in result.output

    @pytest.mark.parametrize(
        "size,expected",
        [(0, "0"), (512, "512"), (4096, "4.0K"), (1536, "1.5K"), (5 * 1024 * 1024, "5.0M")],
    )
    def test_format_size(self, size: int, expected: str) -> None:
        assert format_size(size) == expected


@pytest.mark.integration
class TestArchiveCommands:
    """Tests for ``fedkeeper export`` and ``fedkeeper import``."""

    def test_export(self, invoke: Invoke, tmp_path: Path) -> None:
        out_dir = tmp_path / "exports"
        out_dir.mkdir()

        result = invoke("export", "--output", str(out_dir))

        assert result.exit_code == 0, result.output
        assert "Environment exported successfully" in result.output
        archives: List[Path] = list(out_dir.glob("fedora-env-*.tar.gz"))
        assert len(archives) == 1
        with tarfile.open(archives[0]) as tar:
            assert "outputs/fedora.lock" in tar.getnames()

    def test_import_into_empty_directory(
        self, invoke: Invoke, tmp_path: Path, package_dir: Path
    ) -> None:
        archive = tmp_path / "env.tar.gz"
        invoke("export", "-o", str(archive))
        moved = tmp_path / "original"
        package_dir.rename(moved)

        result = invoke("import", str(archive))

        assert result.exit_code == 0, result.output
        assert "Imported Environment Info" in result.output
        assert "Manual Packages: 4" in result.output
        assert "Environment imported successfully" in result.output
        assert (outputs(package_dir) / "fedora.lock").is_file()

    def test_import_asks_before_replacing(
        self, invoke: Invoke, tmp_path: Path, package_dir: Path
    ) -> None:
        archive = tmp_path / "env.tar.gz"
        invoke("export", "-o", str(archive))

        result = invoke("import", str(archive), input="n\n")

        assert result.exit_code == 0
        assert "Import cancelled" in result.output
        assert not list(tmp_path.glob("pkgs.backup-*"))

    def test_import_confirmed(self, invoke: Invoke, tmp_path: Path) -> None:
        archive = tmp_path / "env.tar.gz"
        invoke("export", "-o", str(archive))

        result = invoke("import", str(archive), input="y\n")

        assert result.exit_code == 0, result.output
        assert "Previous environment moved to" in result.output
        assert len(list(tmp_path.glob("pkgs.backup-*"))) == 1

    def test_import_yes_skips_prompt(self, invoke: Invoke, tmp_path: Path) -> None:
        archive = tmp_path / "env.tar.gz"
        invoke("export", "-o", str(archive))

        result = invoke("import", "--yes", str(archive))

        assert result.exit_code == 0, result.output
        assert "Replace" not in result.output

    def test_import_missing_archive(self, invoke: Invoke, tmp_path: Path) -> None:
        result = invoke("import", str(tmp_path / "absent.tar.gz"))

        assert result.exit_code == 1
        assert "Archive file not found" in result.output
