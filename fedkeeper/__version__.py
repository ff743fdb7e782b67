"""fedkeeper version information.

Single source of truth for the package version, read by the CLI's
``--version`` option, the startup error report, and ``pyproject.toml``.
"""

__version__ = "0.1.0"
