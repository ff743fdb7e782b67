"""Stats command implementation for fedkeeper.

Reads the package lists written by ``analyze`` and prints the package
distribution, a breakdown of manual packages by category, and details of
the current lock file.

Typical usage::

    $ fedkeeper stats
"""

from __future__ import annotations

import sys

import click

from fedkeeper.core import PackageStatistics
from fedkeeper.exceptions import FedKeeperError
from fedkeeper.context import pass_context, FedKeeperContext
from fedkeeper.utils import (
    get_logger,
    get_raw_console,
    print_error,
    print_heading,
)

logger = get_logger("commands.stats")


@click.command()
@pass_context
def stats(ctx: FedKeeperContext) -> None:
    """Show package statistics."""
    try:
        display_statistics(ctx.environment().stats())

    except FedKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in stats command")
        sys.exit(1)


def format_size(size: int) -> str:
    """Render a byte count the way ``du -h`` does (``512``, ``4.0K``, ``1.2M``)."""
    value = float(size)
    for unit in ("", "K", "M", "G"):
        if value < 1024 or unit == "G":
            return f"{int(value)}" if not unit else f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}G"


def display_statistics(result: PackageStatistics) -> None:
    console = get_raw_console()
    shares = result.distribution()

    print_heading("Package Statistics")

    console.print("\n[info]Package Distribution:[/info]")
    console.print(f"  Total installed:     {result.total}")
    console.print(f"  Default Fedora:      {result.default_count} ({shares['default']:.1f}%)")
    console.print(f"  Custom installed:    {result.manual_count} ({shares['manual']:.1f}%)")
    console.print(f"  Dependencies:        {result.auto_count} ({shares['auto']:.1f}%)")

    console.print("\n[info]Custom Package Categories:[/info]")
    for category, count in result.categories.items():
        console.print(f"  {category.capitalize()}: {count}")

    if result.lock_info is not None:
        info = result.lock_info
        console.print("\n[info]Lock File Info:[/info]")
        console.print(f"  Created: {info.generated or 'unknown'}")
        console.print(f"  Size: {format_size(info.size_bytes)}")
        console.print(f"  Locked packages: {info.record_count}")
