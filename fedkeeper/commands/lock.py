"""Lock command implementation for fedkeeper.

Records the exact version, release, architecture, size, install time,
and repository of every manual package and auto dependency in
``fedora.lock``, together with the enabled repositories and per-section
checksums. The previous lock file is kept as ``fedora.lock.backup``.

Record queries run in chunks with bounded concurrency (``chunk_size`` and
``max_parallel_jobs`` in the configuration); a progress bar is shown
unless ``enable_progress`` is off.

Typical usage::

    $ fedkeeper lock
    $ CHUNK_SIZE=100 MAX_PARALLEL_JOBS=8 fedkeeper lock
"""

from __future__ import annotations

import sys
from typing import Callable, Dict, TypeVar

import click

from fedkeeper.models import LockFile
from fedkeeper.exceptions import FedKeeperError
from fedkeeper.context import pass_context, FedKeeperContext
from fedkeeper.core.environment import SectionProgress
from fedkeeper.constants import SECTION_AUTO, SECTION_MANUAL
from fedkeeper.utils import (
    create_progress,
    get_logger,
    print_error,
    print_info,
    print_success,
)

logger = get_logger("commands.lock")

T = TypeVar("T")

_SECTION_LABELS: Dict[str, str] = {
    SECTION_MANUAL: "Locking manual packages",
    SECTION_AUTO: "Locking dependencies",
}


@click.command()
@pass_context
def lock(ctx: FedKeeperContext) -> None:
    """Create a lock file with exact package versions.

    Runs ``analyze`` first when the package lists do not exist yet.
    """
    try:
        env = ctx.environment()
        print_info("Creating lock file with exact package versions...")
        lock_file = run_with_progress(ctx, env.lock)
        display_lock_summary(lock_file, str(env.paths.lock_file))

    except FedKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in lock command")
        sys.exit(1)


def run_with_progress(
    ctx: FedKeeperContext,
    action: Callable[[SectionProgress], T],
) -> T:
    """Run ``action`` with a progress reporter drawing one bar per section."""
    with create_progress(disable=not ctx.config.enable_progress) as progress:
        tasks: Dict[str, int] = {}

        def report(section: str, processed: int, total: int) -> None:
            if section not in tasks:
                label = _SECTION_LABELS.get(section, section)
                tasks[section] = progress.add_task(label, total=total)
            progress.update(tasks[section], completed=processed)

        return action(report)


def display_lock_summary(lock_file: LockFile, path: str) -> None:
    print_success("Lock file created successfully")
    print_info(f"  Manual packages locked: {len(lock_file.section(SECTION_MANUAL))}")
    print_info(f"  Dependencies locked: {len(lock_file.section(SECTION_AUTO))}")
    print_info(f"  Lock file: {path}")
