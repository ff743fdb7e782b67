"""
Version drift helpers for fedkeeper.

RPM versions are not PEP 440 versions, but the upstream ``version`` part
of most Fedora packages (``2.41.0``, ``6.5.4``) parses cleanly with
:mod:`packaging`. That is enough to tell a major bump from a patch-level
rebuild when reporting differences between a lock file and the system.
"""

from __future__ import annotations

from typing import Optional, Tuple

from packaging.version import InvalidVersion, Version, parse


def classify_drift(
    locked_version: str,
    locked_release: str,
    current_version: Optional[str],
    current_release: Optional[str],
) -> str:
    """Classify how an installed package differs from its locked record.

    Args:
        locked_version: ``version`` field stored in the lock file.
        locked_release: ``release`` field stored in the lock file.
        current_version: Installed version, or ``None`` if not installed.
        current_release: Installed release, or ``None`` if not installed.

    Returns:
        One of:
            - ``"missing"``   : Package is not installed
            - ``"same"``      : Version and release are identical
            - ``"release"``   : Same upstream version, different release
            - ``"downgrade"`` : Installed version is lower than locked
            - ``"major"``     : Major version change
            - ``"minor"``     : Minor version change
            - ``"patch"``     : Patch-level change
            - ``"changed"``   : Versions differ but cannot be compared

    Examples:
        >>> classify_drift("2.41.0", "1.fc39", "2.42.0", "1.fc39")
        'minor'
        >>> classify_drift("2.41.0", "1.fc39", "2.41.0", "2.fc39")
        'release'
        >>> classify_drift("2.41.0", "1.fc39", None, None)
        'missing'
    """
    if current_version is None:
        return "missing"

    if current_version == locked_version:
        return "same" if current_release == locked_release else "release"

    try:
        locked = _parse_version(locked_version)
        current = _parse_version(current_version)
    except InvalidVersion:
        return "changed"

    if current == locked:
        # e.g. "1.0" vs "1.0.0"
        return "same" if current_release == locked_release else "release"

    if current < locked:
        return "downgrade"

    return _classify_upgrade(locked, current)


def _parse_version(value: str) -> Version:
    """Parse a version string into a PEP 440 Version object."""
    parsed = parse(value)
    if not isinstance(parsed, Version):
        raise InvalidVersion(value)
    return parsed


def _classify_upgrade(locked: Version, current: Version) -> str:
    """Classify an upgrade between two valid versions."""
    locked_major, locked_minor, locked_patch = _normalize_release(locked)
    current_major, current_minor, current_patch = _normalize_release(current)

    if locked_major != current_major:
        return "major"

    if locked_minor != current_minor:
        return "minor"

    if locked_patch != current_patch:
        return "patch"

    # Fourth release component, pre-release or post-release only
    return "changed"


def _normalize_release(version: Version) -> Tuple[int, int, int]:
    """Normalize a version's release segment to (major, minor, patch)."""
    release = version.release
    major = release[0] if len(release) > 0 else 0
    minor = release[1] if len(release) > 1 else 0
    patch = release[2] if len(release) > 2 else 0
    return major, minor, patch
