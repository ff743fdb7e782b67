"""
Unified data model exports for fedkeeper.

This module re-exports all core data models to provide a stable and
convenient public API. Users can import models directly from
``fedkeeper.models`` instead of individual submodules.

Example:
    >>> from fedkeeper.models import LockFile, PackageRecord, RepositoryStatus
"""

from __future__ import annotations

from fedkeeper.models.package import PackageRecord, PackageSet, parse_nevra
from fedkeeper.models.lockfile import Entry, LockFile, RepositoryStatus

__all__ = [
    "Entry",
    "LockFile",
    "PackageRecord",
    "PackageSet",
    "RepositoryStatus",
    "parse_nevra",
]
