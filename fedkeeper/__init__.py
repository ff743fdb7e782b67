"""
fedkeeper: Fedora package environment snapshots

fedkeeper separates the packages on a Fedora system into distribution
defaults, packages the user asked for, and the dependencies pulled in for
them, and records the latter two with exact versions in a checksummed
lock file.

Features include:
    • Manual / auto-dependency classification
    • Lock files with per-section SHA-256 checksums
    • Verification and diffing against the running system
    • Portable export / import archives
"""

from __future__ import annotations

from fedkeeper.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "fedkeeper Contributors"
__license__ = "Apache-2.0"
__description__ = "Classify, lock, and verify the packages of a Fedora system."

__all__ = [
    "__version__",
]
