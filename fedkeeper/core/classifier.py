"""Package set classification for fedkeeper.

Splits the installed packages of a Fedora system into three disjoint
groups using plain set algebra:

- **defaults**: shipped with the base OS image;
- **manual**: explicitly requested by the user and not a default;
- **auto**: everything else that is not a default, i.e. packages pulled
  in to satisfy another package.

Manual classification wins over the package manager's own dependency
metadata: a package the user asked for is manual even if something else
also requires it. No dependency graph is consulted.

Typical usage::

    from fedkeeper.core import PackageClassifier

    result = PackageClassifier().classify(
        all_installed=source.list_installed(),
        defaults=defaults,
        user_installed=source.list_user_installed(),
    )
    print(sorted(result.manual))
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Pattern, Tuple

from fedkeeper.models import PackageSet
from fedkeeper.utils import get_logger, percentage
from fedkeeper.constants import CATEGORY_PATTERNS

logger = get_logger("core.classifier")

__all__ = [
    "ClassificationResult",
    "CommResult",
    "PackageClassifier",
    "comm_split",
    "count_categories",
]


@dataclass(frozen=True)
class CommResult:
    """Three-way split of two package sets, like ``comm(1)``.

    Attributes:
        only_left: Names only in the left set (``comm -23``).
        only_right: Names only in the right set (``comm -13``).
        common: Names in both sets (``comm -12``).
    """

    only_left: PackageSet
    only_right: PackageSet
    common: PackageSet

    @property
    def is_identical(self) -> bool:
        return not self.only_left and not self.only_right


def comm_split(left: Iterable[str], right: Iterable[str]) -> CommResult:
    """Return ``(left - right, right - left, left & right)``.

    Example::

        >>> r = comm_split({"a", "b", "c", "d"}, {"b", "d", "e", "f"})
        >>> sorted(r.only_left), sorted(r.only_right), sorted(r.common)
        (['a', 'c'], ['e', 'f'], ['b', 'd'])
    """
    a = frozenset(left)
    b = frozenset(right)
    return CommResult(only_left=a - b, only_right=b - a, common=a & b)


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of :meth:`PackageClassifier.classify`."""

    all_installed: PackageSet
    defaults: PackageSet
    manual: PackageSet
    auto: PackageSet

    @property
    def total_count(self) -> int:
        return len(self.all_installed)

    def summary(self) -> Dict[str, Dict[str, float]]:
        """Counts and one-decimal percentages relative to all installed.

        ``defaults`` counts the whole defaults list, as the summary table
        has always done, so it may include names that are not installed.
        """
        total = self.total_count
        return {
            "default": {
                "count": len(self.defaults),
                "percent": percentage(len(self.defaults), total),
            },
            "manual": {
                "count": len(self.manual),
                "percent": percentage(len(self.manual), total),
            },
            "auto": {
                "count": len(self.auto),
                "percent": percentage(len(self.auto), total),
            },
        }


class PackageClassifier:
    """Derives manual and auto-dependency package sets.

    The classifier is stateless; one instance can be reused freely.
    """

    def classify(
        self,
        all_installed: Iterable[str],
        defaults: Iterable[str],
        user_installed: Iterable[str],
    ) -> ClassificationResult:
        """Split installed packages into manual and auto sets.

        ``manual = user_installed - defaults`` and
        ``auto = (all_installed - defaults) - manual``.

        ``user_installed`` is expected to be a subset of ``all_installed``;
        if it is not, ``manual`` will contain names that are not installed.
        Duplicate names collapse silently.

        Args:
            all_installed: Every installed package name.
            defaults: Distribution default package names.
            user_installed: Names the package manager records as
                explicitly requested.

        Returns:
            A :class:`ClassificationResult` with disjoint ``manual`` and
            ``auto`` sets, neither overlapping ``defaults``.
        """
        installed = frozenset(all_installed)
        default_set = frozenset(defaults)
        requested = frozenset(user_installed)

        manual = comm_split(requested, default_set).only_left
        non_default = comm_split(installed, default_set).only_left
        auto = comm_split(non_default, manual).only_left

        stray = manual - installed
        if stray:
            logger.warning(
                "%d user-installed package(s) are not in the installed set: %s",
                len(stray),
                ", ".join(sorted(stray)[:5]),
            )

        logger.info(
            "Classified %d package(s): %d manual, %d auto, %d default",
            len(installed),
            len(manual),
            len(auto),
            len(default_set),
        )
        return ClassificationResult(
            all_installed=installed,
            defaults=default_set,
            manual=manual,
            auto=auto,
        )


def count_categories(
    names: Iterable[str],
    patterns: Optional[Mapping[str, str]] = None,
) -> Dict[str, int]:
    """Count package names per category using anchored regex patterns.

    A name is counted in every category whose pattern matches its start,
    so the counts need not add up to the number of names.

    Args:
        names: Package names, usually the manual set.
        patterns: Category → regex; defaults to
            :data:`fedkeeper.constants.CATEGORY_PATTERNS`.

    Returns:
        Category → number of matching names, in pattern order.
    """
    compiled: List[Tuple[str, Pattern[str]]] = [
        (category, re.compile(pattern))
        for category, pattern in (patterns or CATEGORY_PATTERNS).items()
    ]
    name_list = list(names)
    return {
        category: sum(1 for name in name_list if regex.match(name))
        for category, regex in compiled
    }
