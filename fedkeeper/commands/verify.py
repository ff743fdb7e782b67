"""Verify command implementation for fedkeeper.

Checks the running system against ``fedora.lock``:

1. stored section checksums still match the locked records;
2. every locked manual package is installed;
3. installed versions match the locked ``version-release``, with the
   kind of drift (major, minor, patch, release, downgrade) reported;
4. no user-installed package is missing from the lock file.

Exits with status 1 when any of these checks finds a problem, so the
command can gate scripts and CI jobs.

Typical usage::

    $ fedkeeper verify
"""

from __future__ import annotations

import sys
from typing import Any, Dict, List

import click

from fedkeeper.core import VerificationReport
from fedkeeper.exceptions import FedKeeperError
from fedkeeper.context import pass_context, FedKeeperContext
from fedkeeper.constants import REPORT_LIST_LIMIT
from fedkeeper.utils import (
    colorize_drift,
    get_logger,
    print_error,
    print_heading,
    print_info,
    print_name_list,
    print_success,
    print_table,
    print_warning,
)

logger = get_logger("commands.verify")


@click.command()
@pass_context
def verify(ctx: FedKeeperContext) -> None:
    """Verify the system against the lock file.

    Exits:
        0 if the system matches the lock file, 1 if differences were found
        or an error occurred.
    """
    try:
        env = ctx.environment()
        print_info("Verifying system against lock file...")
        report = env.verify()
        display_report(report)
        sys.exit(0 if report.is_clean else 1)

    except FedKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in verify command")
        sys.exit(1)


def display_report(report: VerificationReport) -> None:
    print_heading("Verification Report")

    if report.checksum_failures:
        print_error("Checksum mismatches:")
        for failure in report.checksum_failures:
            print_info(f"  - {failure.label}: lock file content was modified")
    else:
        print_success("Lock file checksums are valid")

    if report.missing:
        print_error("Missing packages:")
        print_name_list(report.missing, limit=REPORT_LIST_LIMIT)
    else:
        print_success("All locked packages are installed")

    if report.mismatches:
        print_warning("Version mismatches:")
        rows: List[Dict[str, Any]] = [
            {
                "Package": m.name,
                "Locked": m.locked,
                "Current": m.current,
                "Change": colorize_drift(m.drift),
            }
            for m in report.mismatches[:REPORT_LIST_LIMIT]
        ]
        print_table(
            rows,
            column_styles={
                "Package": {"style": "bold cyan", "no_wrap": True},
                "Locked": {"style": "dim"},
            },
        )
        remaining = len(report.mismatches) - len(rows)
        if remaining > 0:
            print_info(f"  ... and {remaining} more")
    else:
        print_success("All package versions match")

    if report.extra:
        print_warning("Extra packages not in lock file:")
        print_name_list(report.extra, limit=REPORT_LIST_LIMIT)

    if report.is_clean:
        print_success(f"{report.locked_count} locked package(s) verified")
    else:
        print_warning(f"{report.issue_count} issue(s) found")
