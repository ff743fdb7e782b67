"""Support ``python -m fedkeeper``.

Behaves exactly like the ``fedkeeper`` console script; if the CLI cannot
be imported, a short report with the interpreter and package versions is
written to stderr instead.
"""

from __future__ import annotations

import sys


def _print_startup_error(exc: ImportError) -> None:
    """Explain why the CLI could not be loaded."""
    sys.stderr.write("fedkeeper CLI could not be loaded.\n")
    sys.stderr.write(f"Python version : {sys.version}\n")
    try:
        from fedkeeper.__version__ import __version__

        sys.stderr.write(f"fedkeeper version: {__version__}\n")
    except ImportError:
        sys.stderr.write("fedkeeper version: <unknown>\n")
    sys.stderr.write(f"ImportError: {exc}\n")


def main() -> int:
    """
    Run the CLI for `python -m fedkeeper`.

    Returns:
        Exit code returned by the CLI.
    """
    try:
        # Import lazily so dependencies are only loaded during CLI use
        from fedkeeper.cli import main as cli_main
    except ImportError as exc:
        _print_startup_error(exc)
        return 1

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
