"""
Core functionality exports for fedkeeper.

This module provides convenient access to the core subsystems of fedkeeper.
Importing from here keeps user-facing imports clean and stable:

    from fedkeeper.core import LockFileCodec, PackageClassifier
"""

from __future__ import annotations

from fedkeeper.core.lockfile import LockFileCodec, read_lock_file, write_lock_file
from fedkeeper.core.classifier import (
    ClassificationResult,
    CommResult,
    PackageClassifier,
    comm_split,
    count_categories,
)
from fedkeeper.core.package_source import DnfPackageSource, PackageSource
from fedkeeper.core.environment import (
    PackageEnvironment,
    PackageStatistics,
    VerificationReport,
)

__all__ = [
    "ClassificationResult",
    "CommResult",
    "DnfPackageSource",
    "LockFileCodec",
    "PackageClassifier",
    "PackageEnvironment",
    "PackageSource",
    "PackageStatistics",
    "VerificationReport",
    "comm_split",
    "count_categories",
    "read_lock_file",
    "write_lock_file",
]
