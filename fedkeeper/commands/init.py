"""Init command implementation for fedkeeper.

Determines the distribution default packages (members of the default
comps groups plus an essential base set), saves them to
``default-packages.txt``, and creates the first lock file.

Typical usage::

    $ fedkeeper init
"""

from __future__ import annotations

import sys

import click

from fedkeeper.exceptions import FedKeeperError
from fedkeeper.context import pass_context, FedKeeperContext
from fedkeeper.commands.lock import display_lock_summary, run_with_progress
from fedkeeper.utils import (
    get_logger,
    print_error,
    print_info,
    print_success,
    print_warning,
)

logger = get_logger("commands.init")


@click.command()
@pass_context
def init(ctx: FedKeeperContext) -> None:
    """Identify default packages and create an initial lock file."""
    try:
        env = ctx.environment()
        print_info("Initializing Fedora package environment...")
        print_info("Determining default Fedora packages...")

        result = run_with_progress(ctx, env.init)

        if result.defaults_backup is not None:
            print_warning(f"Backed up existing default packages list to {result.defaults_backup}")
        print_success(f"Identified {len(result.defaults)} default packages")
        display_lock_summary(result.lock, str(env.paths.lock_file))

        print_success("Environment initialized successfully")
        print_info(f"Default packages saved to: {env.paths.default_packages}")
        print_info("You can now use 'analyze' to identify your custom packages")

    except FedKeeperError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in init command")
        sys.exit(1)
