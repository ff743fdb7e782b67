"""
Centralized constants for fedkeeper.

This module defines immutable configuration values used across fedkeeper,
including default paths, lock file grammar, package manager commands,
category patterns, and logging formats. All values are intended to be
treated as read-only.
"""

import os
from typing import Final, Mapping, Sequence

# ---------------------------------------------------------------------------
# Paths and artifacts
# ---------------------------------------------------------------------------

#: Default base directory when ``PACKAGE_DIR`` is not configured.
DEFAULT_PACKAGE_DIR: Final[str] = "~/fedora-packages"

#: Sub-directory of the package dir holding generated artifacts.
OUTPUTS_DIRNAME: Final[str] = "outputs"

#: Sub-directory of the package dir used for scratch files.
CACHE_DIRNAME: Final[str] = ".cache"

DEFAULT_PACKAGES_FILENAME: Final[str] = "default-packages.txt"
MANUAL_PACKAGES_FILENAME: Final[str] = "manual-packages.txt"
AUTO_DEPENDENCIES_FILENAME: Final[str] = "auto-dependencies.txt"
LOCK_FILENAME: Final[str] = "fedora.lock"

#: Suffix of the sibling file holding the previous lock file.
LOCK_BACKUP_SUFFIX: Final[str] = ".backup"

#: Name of the metadata member added to exported archives.
EXPORT_METADATA_FILENAME: Final[str] = "metadata.txt"

#: Configuration file names searched during discovery.
CONFIG_FILENAME: Final[str] = "fedkeeper.toml"
USER_CONFIG_PATH: Final[str] = "~/.config/fedkeeper/fedkeeper.toml"

# ---------------------------------------------------------------------------
# Processing defaults
# ---------------------------------------------------------------------------

#: Number of package names queried per subprocess.
DEFAULT_CHUNK_SIZE: Final[int] = 50

#: Maximum number of chunk queries in flight at once.
DEFAULT_MAX_PARALLEL_JOBS: Final[int] = os.cpu_count() or 1

#: Timeout in seconds applied to every package manager invocation.
DEFAULT_QUERY_TIMEOUT: Final[float] = 60.0

#: Whether progress output is shown while gathering package records.
DEFAULT_ENABLE_PROGRESS: Final[bool] = True

#: Read size used when hashing files.
CHECKSUM_CHUNK_SIZE: Final[int] = 4096

#: Number of names shown by list-style reports before truncating.
REPORT_LIST_LIMIT: Final[int] = 10
DIFF_LIST_LIMIT: Final[int] = 20

# ---------------------------------------------------------------------------
# Lock file grammar
# ---------------------------------------------------------------------------

SECTION_MANUAL: Final[str] = "MANUAL_PACKAGES"
SECTION_AUTO: Final[str] = "AUTO_DEPENDENCIES"
SECTION_REPOSITORIES: Final[str] = "REPOSITORIES"
SECTION_CHECKSUMS: Final[str] = "CHECKSUMS"

#: Canonical section order used when serializing.
CANONICAL_SECTIONS: Final[Sequence[str]] = (
    SECTION_MANUAL,
    SECTION_AUTO,
    SECTION_REPOSITORIES,
    SECTION_CHECKSUMS,
)

#: Sections whose content is protected by a checksum, keyed by label.
CHECKSUMMED_SECTIONS: Final[Mapping[str, str]] = {
    "manual_packages": SECTION_MANUAL,
    "auto_dependencies": SECTION_AUTO,
}

FIELD_SEPARATOR: Final[str] = "|"

#: Field names of a package record line, in order.
RECORD_FIELDS: Final[Sequence[str]] = (
    "name",
    "version",
    "release",
    "arch",
    "size",
    "install_time",
    "repository",
)

LOCK_FILE_TITLE: Final[str] = "# Fedora Package Lock File"
LOCK_FILE_FORMAT_LINE: Final[str] = (
    "# Format: package|version|release|arch|size|install_time|repository"
)

#: Repository assigned to records whose origin cannot be determined.
UNKNOWN_REPOSITORY: Final[str] = "unknown"

# ---------------------------------------------------------------------------
# Package manager
# ---------------------------------------------------------------------------

#: Comps groups whose mandatory/default packages count as distribution defaults.
DEFAULT_GROUPS: Final[Sequence[str]] = (
    "core",
    "base-x",
    "standard",
    "guest-desktop-agents",
    "hardware-support",
    "fonts",
)

#: Packages shipped with every Fedora install regardless of group data.
ESSENTIAL_PACKAGES: Final[Sequence[str]] = (
    "kernel",
    "kernel-core",
    "kernel-modules",
    "glibc",
    "systemd",
    "fedora-release",
    "fedora-repos",
    "dnf",
    "rpm",
    "bash",
    "coreutils",
    "util-linux",
    "grep",
    "sed",
    "gawk",
    "findutils",
    "shadow-utils",
    "setup",
    "filesystem",
    "basesystem",
)

RPM_RECORD_QUERYFORMAT: Final[str] = (
    "%{NAME}|%{VERSION}|%{RELEASE}|%{ARCH}|%{SIZE}|%{INSTALLTIME}\\n"
)

RELEASE_FILE: Final[str] = "/etc/fedora-release"

# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------

#: Anchored name patterns used to count manual packages per category.
CATEGORY_PATTERNS: Final[Mapping[str, str]] = {
    "development": r"^(gcc|clang|make|cmake|git|nodejs|npm|yarn|cargo|rustc|go|java|maven|gradle)",
    "python": r"^python",
    "containers": r"^(docker|podman|buildah|skopeo|kubernetes|kubectl|helm)",
    "editors": r"^(vim|emacs|neovim|code|atom|sublime)",
    "media": r"^(vlc|mpv|ffmpeg|gimp|inkscape|blender|obs)",
}

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
