"""
Shared context object for fedkeeper CLI commands.

This module defines the global Click context used to share configuration,
runtime options, and the package source across CLI subcommands.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

import click

from fedkeeper.config import FedKeeperConfig

if TYPE_CHECKING:
    from fedkeeper.core.environment import PackageEnvironment
    from fedkeeper.core.package_source import PackageSource


class FedKeeperContext:
    """Global context object for fedkeeper CLI commands.

    An instance of this class is created once per CLI invocation and
    passed to commands using Click's context mechanism.

    Attributes:
        config_path: Path to the fedkeeper configuration file, if provided.
        verbose: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG).
        color: Whether colored terminal output is enabled.
        config: Resolved configuration, set by the CLI group.
        source: Package source; built lazily from ``config`` unless a
            caller injected one.
    """

    __slots__ = ("config_path", "verbose", "color", "config", "source")

    def __init__(self) -> None:
        self.config_path: Optional[Path] = None
        self.verbose: int = 0
        self.color: bool = True
        self.config: FedKeeperConfig = FedKeeperConfig()
        self.source: Optional["PackageSource"] = None

    def get_source(self) -> "PackageSource":
        """Return the package source, creating a dnf-backed one on first use."""
        if self.source is None:
            from fedkeeper.core.package_source import DnfPackageSource

            self.source = DnfPackageSource(
                chunk_size=self.config.chunk_size,
                max_parallel_jobs=self.config.max_parallel_jobs,
                timeout=self.config.query_timeout,
            )
        return self.source

    def environment(self) -> "PackageEnvironment":
        """Build a :class:`PackageEnvironment` over the resolved config."""
        from fedkeeper.core.environment import PackageEnvironment

        return PackageEnvironment(self.config, self.get_source())


#: Click decorator for injecting :class:`FedKeeperContext` into commands.
pass_context = click.make_pass_decorator(FedKeeperContext, ensure=True)
