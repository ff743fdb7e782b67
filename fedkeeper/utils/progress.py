"""
Arithmetic helpers for progress and summary reporting.

Two kinds of percentages appear in fedkeeper output and they are
computed differently on purpose:

- progress counters (``Processing: 3/7 packages (42%)``) use integer
  truncation, never rounding;
- distribution summaries (``Manually installed: 12 (33.3%)``) are
  rounded to one decimal place.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")

#: Callback signature ``(processed, total)`` used by long-running queries.
ProgressCallback = Callable[[int, int], None]


def progress_percent(processed: int, total: int) -> int:
    """Return ``floor(processed * 100 / total)``.

    Raises:
        ValueError: ``total`` is not positive or ``processed`` is negative.

    Examples:
        >>> progress_percent(3, 7)
        42
        >>> progress_percent(333, 1000)
        33
    """
    if total <= 0:
        raise ValueError(f"total must be positive, got {total}")
    if processed < 0:
        raise ValueError(f"processed must not be negative, got {processed}")
    return (processed * 100) // total


def percentage(part: int, total: int) -> float:
    """Return ``part`` as a percentage of ``total`` rounded to one decimal.

    An empty total yields ``0.0`` instead of dividing by zero.

    Examples:
        >>> percentage(1, 3)
        33.3
        >>> percentage(25, 200)
        12.5
    """
    if total <= 0:
        return 0.0
    return round((part * 100) / total, 1)


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split ``items`` into consecutive batches of at most ``size``.

    Raises:
        ValueError: ``size`` is not positive.
    """
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class ProgressTracker:
    """Counts processed items and reports them to an optional callback.

    Args:
        total: Number of items expected.
        callback: Called as ``callback(processed, total)`` after each
            :meth:`advance`.
    """

    __slots__ = ("total", "processed", "_callback")

    def __init__(self, total: int, callback: Optional[ProgressCallback] = None) -> None:
        self.total = total
        self.processed = 0
        self._callback = callback

    def advance(self, count: int = 1) -> None:
        self.processed += count
        if self._callback is not None:
            self._callback(self.processed, self.total)

    @property
    def percent(self) -> int:
        """Truncated completion percentage; ``100`` for an empty workload."""
        if self.total <= 0:
            return 100
        return progress_percent(min(self.processed, self.total), self.total)

    @property
    def done(self) -> bool:
        return self.processed >= self.total
