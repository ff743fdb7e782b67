"""Diff command implementation for fedkeeper.

Compares the manual packages recorded in the lock file with the packages
currently marked as user-installed, or with the manual packages of a
second lock file when ``--against`` is given.

Typical usage::

    $ fedkeeper diff
    $ fedkeeper diff --against other-machine/fedora.lock
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import click

from fedkeeper.core import CommResult
from fedkeeper.exceptions import FedKeeperError
from fedkeeper.context import pass_context, FedKeeperContext
from fedkeeper.constants import DIFF_LIST_LIMIT
from fedkeeper.utils import (
    get_logger,
    get_raw_console,
    print_error,
    print_heading,
    print_info,
    print_name_list,
)

logger = get_logger("commands.diff")


@click.command()
@click.option(
    "--against",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Compare with another lock file instead of the running system.",
)
@pass_context
def diff(ctx: FedKeeperContext, against: Optional[Path]) -> None:
    """Compare the current system (or another lock file) with the lock file."""
    try:
        env = ctx.environment()
        if against is None:
            print_info("Comparing current system with lock file...")
            other = "current system"
        else:
            print_info(f"Comparing {against} with lock file...")
            other = str(against)

        display_diff(env.diff(against), other)

    except FedKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in diff command")
        sys.exit(1)


def display_diff(result: CommResult, other: str) -> None:
    console = get_raw_console()

    console.print("\n[info]Packages only in lock file (need to install):[/info]")
    print_name_list(sorted(result.only_left), limit=DIFF_LIST_LIMIT, bullet="-")

    console.print(f"\n[info]Packages only on {other} (not in lock):[/info]")
    print_name_list(sorted(result.only_right), limit=DIFF_LIST_LIMIT, bullet="+")

    print_heading("Summary")
    console.print(f"  Common packages: {len(result.common)}")
    console.print(f"  Only in lock file: {len(result.only_left)}")
    console.print(f"  Only on {other}: {len(result.only_right)}")
