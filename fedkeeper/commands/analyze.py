"""Analyze command implementation for fedkeeper.

Splits the installed packages into distribution defaults, manually
installed packages, and automatically installed dependencies, writes the
manual and auto lists, and prints a summary.

Typical usage::

    $ fedkeeper analyze
    $ PACKAGE_DIR=/srv/pkgs fedkeeper -v analyze
"""

from __future__ import annotations

import sys

import click

from fedkeeper.core import ClassificationResult
from fedkeeper.exceptions import FedKeeperError
from fedkeeper.context import pass_context, FedKeeperContext
from fedkeeper.constants import REPORT_LIST_LIMIT
from fedkeeper.utils import (
    get_logger,
    get_raw_console,
    print_error,
    print_heading,
    print_info,
    print_name_list,
)

logger = get_logger("commands.analyze")


@click.command()
@pass_context
def analyze(ctx: FedKeeperContext) -> None:
    """Identify manually installed packages and their dependencies.

    Writes ``manual-packages.txt`` and ``auto-dependencies.txt`` to the
    outputs directory, keeping timestamped backups of previous lists.
    """
    try:
        env = ctx.environment()
        print_info("Analyzing installed packages (excluding defaults)...")
        result = env.analyze()
        display_summary(result)
        print_info(f"\nFiles saved in: {env.paths.outputs_dir}/")

    except FedKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in analyze command")
        sys.exit(1)


def display_summary(result: ClassificationResult) -> None:
    """Print the package distribution and the first manual packages.

    Example output::

        === Package Analysis Summary ===
        Total packages:          1532
        Default Fedora:          412 (26.9%)
        Manually installed:      87 (5.7%)
        Auto dependencies:       1033 (67.4%)
    """
    summary = result.summary()
    console = get_raw_console()

    print_heading("Package Analysis Summary")
    console.print(f"Total packages:          {result.total_count}")
    console.print(
        f"Default Fedora:          [cyan]{summary['default']['count']}[/cyan] "
        f"({summary['default']['percent']:.1f}%)"
    )
    console.print(
        f"Manually installed:      [green]{summary['manual']['count']}[/green] "
        f"({summary['manual']['percent']:.1f}%)"
    )
    console.print(
        f"Auto dependencies:       [yellow]{summary['auto']['count']}[/yellow] "
        f"({summary['auto']['percent']:.1f}%)"
    )

    console.print(f"\n[info]Top {REPORT_LIST_LIMIT} Custom Packages:[/info]")
    print_name_list(sorted(result.manual)[:REPORT_LIST_LIMIT])
