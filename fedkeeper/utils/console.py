"""
User-facing terminal output for fedkeeper commands.

All report text (summaries, verification results, prompts, progress bars)
is written through one shared Rich console themed with the fedkeeper
styles below. Diagnostics belong to :mod:`fedkeeper.utils.logger`, not
here.

Color is off when ``NO_COLOR`` or ``CI`` is set, or stdout is not a
terminal. ``--no-color`` sets ``NO_COLOR`` and calls
:func:`reconfigure_console`.
"""

from __future__ import annotations

import os
import sys
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional

from rich.table import Table
from rich.theme import Theme
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
)

FEDKEEPER_THEME = Theme(
    {
        "success": "bold green",
        "error": "bold red",
        "warning": "bold yellow",
        "info": "bold cyan",
        "heading": "bold blue",
        "dim": "dim",
    }
)

#: Markup color per :func:`~fedkeeper.utils.version_utils.classify_drift` result.
DRIFT_COLORS: Mapping[str, str] = {
    "major": "red",
    "downgrade": "red",
    "minor": "yellow",
    "changed": "yellow",
    "patch": "green",
    "release": "cyan",
}

_console: Optional[Console] = None
_console_lock = threading.Lock()


def _should_use_color() -> bool:
    if os.environ.get("NO_COLOR") or os.environ.get("CI"):
        return False
    try:
        return sys.stdout.isatty()
    except (AttributeError, OSError):
        return False


def _get_console() -> Console:
    global _console

    with _console_lock:
        if _console is None:
            color = _should_use_color()
            _console = Console(theme=FEDKEEPER_THEME, no_color=not color, highlight=color)
        return _console


def reconfigure_console() -> None:
    """Forget the shared console; the next output re-reads the environment."""
    global _console
    with _console_lock:
        _console = None


def get_raw_console() -> Console:
    """The shared console, for output the helpers below do not cover."""
    return _get_console()


# ---------------------------------------------------------------------------
# Status lines
# ---------------------------------------------------------------------------


def print_success(message: str, *, prefix: str = "✓") -> None:
    _get_console().print(f"{prefix} {message}", style="success")


def print_error(message: str, *, prefix: str = "✗") -> None:
    _get_console().print(f"{prefix} {message}", style="error")


def print_warning(message: str, *, prefix: str = "⚠") -> None:
    _get_console().print(f"{prefix} {message}", style="warning")


def print_info(message: str) -> None:
    _get_console().print(message, style="info")


def print_heading(title: str) -> None:
    """``=== Package Statistics ===`` preceded by a blank line."""
    _get_console().print(f"\n=== {title} ===", style="heading")


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def print_table(
    rows: List[Dict[str, Any]],
    *,
    headers: Optional[List[str]] = None,
    column_styles: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> None:
    """Print rows of ``header → value`` as a table.

    Args:
        rows: One mapping per row; missing cells render empty.
        headers: Column order; the first row's keys by default.
        column_styles: Per-header keyword arguments for
            :meth:`rich.table.Table.add_column` (``style``, ``no_wrap``,
            ``justify``, ...).
    """
    if not rows:
        return

    table = Table(show_header=True, header_style="bold")
    styles = column_styles or {}
    columns = headers or list(rows[0])
    for header in columns:
        options = {"overflow": "fold", **styles.get(header, {})}
        table.add_column(header, **options)

    for row in rows:
        table.add_row(*(str(row.get(header, "")) for header in columns))

    _get_console().print(table)


def print_name_list(
    names: Iterable[str],
    *,
    limit: Optional[int] = None,
    bullet: str = "-",
) -> None:
    """Print ``  - name`` per name, at most ``limit`` of them.

    Names beyond ``limit`` are counted in a closing ``... and N more``.
    """
    console = _get_console()
    items = list(names)
    cut = len(items) if limit is None else min(limit, len(items))

    for name in items[:cut]:
        console.print(f"  {bullet} {name}", markup=False, highlight=False)

    if cut < len(items):
        console.print(f"  ... and {len(items) - cut} more", style="dim")


def create_progress(*, disable: bool = False) -> Progress:
    """Progress bars drawn on the shared console and cleared when done.

    Args:
        disable: Return an inert instance (``enable_progress = false``).
    """
    return Progress(
        TextColumn("[info]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TaskProgressColumn(),
        console=_get_console(),
        transient=True,
        disable=disable,
    )


def colorize_drift(drift: str) -> str:
    """Wrap a drift label in its :data:`DRIFT_COLORS` markup, if any."""
    color = DRIFT_COLORS.get(drift.lower())
    if color is None:
        return drift
    return f"[{color}]{drift}[/{color}]"


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


def confirm(message: str, *, default: bool = False) -> bool:
    """Ask a yes/no question and read the answer from stdin.

    ``y``/``yes`` and ``n``/``no`` (any case) answer explicitly; anything
    else gives ``default``. Ctrl+C or end of input always declines.
    """
    console = _get_console()
    choices = "[Y/n]" if default else "[y/N]"
    console.print(f"{message} {choices}: ", end="", style="info", markup=False)

    try:
        answer = input().strip().lower()
    except (KeyboardInterrupt, EOFError):
        console.print()
        return False

    if answer in ("y", "yes"):
        return True
    if answer in ("n", "no"):
        return False
    return default
