"""
fedkeeper command-line interface.

The ``cli`` group resolves configuration once (defaults, config file,
environment, then ``--package-dir``), sets up logging and color, and
stores the result on a :class:`~fedkeeper.context.FedKeeperContext` for
the subcommands in :mod:`fedkeeper.commands`. :func:`main` is the console
script and turns errors into exit codes.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from fedkeeper.config import load_config
from fedkeeper.__version__ import __version__
from fedkeeper.context import FedKeeperContext
from fedkeeper.exceptions import ConfigError, FedKeeperError
from fedkeeper.utils.logger import get_logger, setup_logging, verbosity_to_level
from fedkeeper.utils.console import print_error, print_warning, reconfigure_console
from fedkeeper.commands.init import init
from fedkeeper.commands.analyze import analyze
from fedkeeper.commands.lock import lock
from fedkeeper.commands.verify import verify
from fedkeeper.commands.diff import diff
from fedkeeper.commands.stats import stats
from fedkeeper.commands.archive import export_command, import_command
from fedkeeper.commands.help import help_command

logger = get_logger("cli")


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="FEDKEEPER_CONFIG",
)
@click.option(
    "--package-dir",
    "-d",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding package lists and the lock file.",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="FEDKEEPER_COLOR",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write log records to this file.",
)
@click.version_option(
    version=__version__,
    prog_name="fedkeeper",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    package_dir: Optional[Path],
    verbose: int,
    color: bool,
    log_file: Optional[Path],
) -> None:
    """fedkeeper: snapshot and verify the packages of a Fedora system.

    \b
    Available commands:
      fedkeeper init        Identify default packages and create a lock file
      fedkeeper analyze     Split installed packages into manual / auto
      fedkeeper lock        Record exact versions in the lock file
      fedkeeper verify      Check the system against the lock file
      fedkeeper diff        Compare the lock file with the system
      fedkeeper stats       Show package statistics
      fedkeeper export      Bundle lists and lock file into an archive
      fedkeeper import      Restore lists and lock file from an archive

    \b
    Examples:
      fedkeeper init
      fedkeeper -v lock
      PACKAGE_DIR=/srv/pkgs fedkeeper verify

    Use ``fedkeeper COMMAND --help`` for command-specific options.
    """
    _configure_logging(verbose, log_file)

    try:
        settings = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    # --package-dir outranks PACKAGE_DIR and the config file
    if package_dir is not None:
        settings.package_dir = package_dir

    state = ctx.ensure_object(FedKeeperContext)
    state.config = settings
    state.config_path = config or settings.source_path
    state.verbose = verbose
    state.color = color
    _apply_color(color)

    logger.debug(
        "Loaded config from %s: %s",
        state.config_path or "<defaults>",
        settings.to_log_dict(),
    )

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _configure_logging(verbose: int, log_file: Optional[Path] = None) -> None:
    level = verbosity_to_level(verbose)
    setup_logging(level=level, verbose=verbose >= 2, log_file=log_file)
    logger.debug("fedkeeper %s, log level %s", __version__, logging.getLevelName(level))


def _apply_color(color: bool) -> None:
    """Export the color choice as ``NO_COLOR`` and rebuild the console."""
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()


for _command in (
    init,
    analyze,
    lock,
    verify,
    diff,
    stats,
    export_command,
    import_command,
    help_command,
):
    cli.add_command(_command)


def main() -> int:
    """Console-script entry point.

    Returns:
        ``0`` on success, ``1`` for errors (including usage errors and
        unknown commands), ``130`` when interrupted. Commands that call
        ``sys.exit`` themselves keep their own status.
    """
    try:
        cli(standalone_mode=False)
    except click.UsageError as exc:
        exc.show()
        return 1
    except click.Abort:
        print_warning("\nInterrupted")
        return 130
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except FedKeeperError as exc:
        print_error(str(exc))
        logger.debug("Error details: %s", exc.details or "<none>", exc_info=True)
        return 1
    except KeyboardInterrupt:
        print_warning("\nInterrupted")
        return 130
    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
