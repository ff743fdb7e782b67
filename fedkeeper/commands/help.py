"""Help command for fedkeeper."""

from __future__ import annotations

import click


@click.command("help")
@click.pass_context
def help_command(ctx: click.Context) -> None:
    """Show this help message."""
    parent = ctx.parent if ctx.parent is not None else ctx
    click.echo(parent.get_help())
    click.echo(
        "\nEnvironment variables:\n"
        "  PACKAGE_DIR        Directory for package lists (default: ~/fedora-packages)\n"
        "  CACHE_DIR          Scratch directory (default: $PACKAGE_DIR/.cache)\n"
        "  CHUNK_SIZE         Packages per query (default: 50)\n"
        "  MAX_PARALLEL_JOBS  Concurrent queries (default: number of CPUs)\n"
        "  QUERY_TIMEOUT      Seconds per package manager call (default: 60)\n"
        "  ENABLE_PROGRESS    Show progress bars (default: true)"
    )
