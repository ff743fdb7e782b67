"""
Utility helpers for fedkeeper.

This package provides reusable utilities used across fedkeeper, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Filesystem safety helpers
- SHA-256 checksums
- Progress and percentage arithmetic
- Version drift classification

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Filesystem utilities
# ---------------------------------------------------------------------------

from fedkeeper.utils.filesystem import (
    backup_path_for,
    create_timestamped_backup,
    read_package_list,
    safe_read_file,
    safe_write_file,
    validate_path,
    write_package_list,
)

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from fedkeeper.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
    verbosity_to_level,
)

# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------

from fedkeeper.utils.console import (
    colorize_drift,
    confirm,
    create_progress,
    get_raw_console,
    print_error,
    print_heading,
    print_info,
    print_name_list,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)

# ---------------------------------------------------------------------------
# Checksums and progress arithmetic
# ---------------------------------------------------------------------------

from fedkeeper.utils.checksum import sha256_file, sha256_stream, sha256_text
from fedkeeper.utils.progress import (
    ProgressTracker,
    chunked,
    percentage,
    progress_percent,
)

# ---------------------------------------------------------------------------
# Version utilities
# ---------------------------------------------------------------------------

from fedkeeper.utils.version_utils import classify_drift

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    # Console
    "confirm",
    "print_error",
    "print_info",
    "print_heading",
    "print_table",
    "print_name_list",
    "print_success",
    "print_warning",
    "create_progress",
    "get_raw_console",
    "reconfigure_console",
    "colorize_drift",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "is_logging_configured",
    "verbosity_to_level",
    # Filesystem
    "safe_read_file",
    "safe_write_file",
    "backup_path_for",
    "create_timestamped_backup",
    "read_package_list",
    "write_package_list",
    "validate_path",
    # Checksums
    "sha256_file",
    "sha256_stream",
    "sha256_text",
    # Progress
    "ProgressTracker",
    "chunked",
    "percentage",
    "progress_percent",
    # Version utilities
    "classify_drift",
]
