"""Export and import commands for fedkeeper.

``export`` bundles the package lists and the lock file, plus a
``metadata.txt`` describing the source machine, into
``fedora-env-<host>-<timestamp>.tar.gz``. ``import`` unpacks such an
archive into the package directory, moving any existing directory aside
first.

Typical usage::

    $ fedkeeper export --output /tmp
    $ fedkeeper import /tmp/fedora-env-laptop-20240101-120000.tar.gz --yes
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import click

from fedkeeper.exceptions import FedKeeperError
from fedkeeper.context import pass_context, FedKeeperContext
from fedkeeper.commands.stats import format_size
from fedkeeper.utils import (
    confirm,
    get_logger,
    get_raw_console,
    print_error,
    print_heading,
    print_info,
    print_success,
)

logger = get_logger("commands.archive")


@click.command("export")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Archive file or directory (default: the package directory).",
)
@pass_context
def export_command(ctx: FedKeeperContext, output: Optional[Path]) -> None:
    """Export the environment to a shareable archive."""
    try:
        env = ctx.environment()
        print_info("Exporting Fedora environment...")
        result = env.export(output)

        print_success("Environment exported successfully")
        print_info(f"Archive: {result.archive_path}")
        print_info(f"Size: {format_size(result.archive_path.stat().st_size)}")
        print_info("Share this file to replicate your environment on another system")

    except FedKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in export command")
        sys.exit(1)


@click.command("import")
@click.argument("archive", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--yes",
    "-y",
    is_flag=True,
    help="Replace the existing package directory without asking.",
)
@pass_context
def import_command(ctx: FedKeeperContext, archive: Path, yes: bool) -> None:
    """Import an environment from an archive created by ``export``."""
    try:
        env = ctx.environment()

        if not archive.expanduser().is_file():
            print_error(f"Archive file not found: {archive}")
            sys.exit(1)

        if env.paths.package_dir.exists() and not yes:
            if not confirm(
                f"Replace {env.paths.package_dir}? The current directory will be backed up"
            ):
                print_info("Import cancelled")
                return

        print_info("Importing Fedora environment from archive...")
        result = env.import_archive(archive)

        if result.backup_dir is not None:
            print_info(f"Previous environment moved to {result.backup_dir}")

        if result.metadata:
            print_heading("Imported Environment Info")
            get_raw_console().print(result.metadata.rstrip(), markup=False, highlight=False)

        print_success("Environment imported successfully")
        print_info("Run 'fedkeeper verify' to check compatibility")

    except FedKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in import command")
        sys.exit(1)
