"""Configuration loader for fedkeeper.

Handles discovery, loading, parsing, and validation of configuration,
then overlays environment variables on top of the file values.

Discovery order:

1. Explicit path from ``--config`` or ``FEDKEEPER_CONFIG``
2. ``fedkeeper.toml`` in current directory
3. ``~/.config/fedkeeper/fedkeeper.toml``

Configuration precedence: defaults < config file < environment < CLI args.

Typical usage::

    config = load_config()  # Auto-discover
    config = load_config(Path("custom.toml"))  # Explicit path
    paths = PackagePaths.from_config(config)

Example (``fedkeeper.toml``)::

    [fedkeeper]
    package_dir = "~/fedora-packages"
    chunk_size = 50
    max_parallel_jobs = 4
    query_timeout = 60
    enable_progress = true
"""

from __future__ import annotations

import os
import tomli as tomllib
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from fedkeeper.exceptions import ConfigError
from fedkeeper.utils.logger import get_logger
from fedkeeper.constants import (
    AUTO_DEPENDENCIES_FILENAME,
    CACHE_DIRNAME,
    CONFIG_FILENAME,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_ENABLE_PROGRESS,
    DEFAULT_MAX_PARALLEL_JOBS,
    DEFAULT_PACKAGE_DIR,
    DEFAULT_PACKAGES_FILENAME,
    DEFAULT_QUERY_TIMEOUT,
    LOCK_BACKUP_SUFFIX,
    LOCK_FILENAME,
    MANUAL_PACKAGES_FILENAME,
    OUTPUTS_DIRNAME,
    USER_CONFIG_PATH,
)

logger = get_logger("config")

#: Environment variable naming an explicit configuration file.
CONFIG_ENV_VAR = "FEDKEEPER_CONFIG"

#: Environment variable → configuration option.
ENV_OVERRIDES: Dict[str, str] = {
    "PACKAGE_DIR": "package_dir",
    "CACHE_DIR": "cache_dir",
    "CHUNK_SIZE": "chunk_size",
    "MAX_PARALLEL_JOBS": "max_parallel_jobs",
    "QUERY_TIMEOUT": "query_timeout",
    "ENABLE_PROGRESS": "enable_progress",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class FedKeeperConfig:
    """Parsed and validated fedkeeper configuration.

    All fields have defaults, so an empty or missing config file is valid.

    Attributes:
        package_dir: Base directory for package lists and the lock file.
        cache_dir: Scratch directory; ``<package_dir>/.cache`` when unset.
        chunk_size: Package names per record query.
        max_parallel_jobs: Maximum record queries running at once.
        query_timeout: Seconds allowed for each package manager command.
        enable_progress: Show a progress bar while gathering records.
        source_path: Path to loaded config file, or ``None`` if using defaults.
    """

    package_dir: Path = field(default_factory=lambda: Path(DEFAULT_PACKAGE_DIR))
    cache_dir: Optional[Path] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_parallel_jobs: int = DEFAULT_MAX_PARALLEL_JOBS
    query_timeout: float = DEFAULT_QUERY_TIMEOUT
    enable_progress: bool = DEFAULT_ENABLE_PROGRESS

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    @property
    def resolved_package_dir(self) -> Path:
        return self.package_dir.expanduser()

    @property
    def resolved_cache_dir(self) -> Path:
        if self.cache_dir is not None:
            return self.cache_dir.expanduser()
        return self.resolved_package_dir / CACHE_DIRNAME

    def to_log_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary for debug logging.

        Excludes ``source_path`` metadata.
        """
        return {
            "package_dir": str(self.package_dir),
            "cache_dir": str(self.resolved_cache_dir),
            "chunk_size": self.chunk_size,
            "max_parallel_jobs": self.max_parallel_jobs,
            "query_timeout": self.query_timeout,
            "enable_progress": self.enable_progress,
        }


@dataclass(frozen=True)
class PackagePaths:
    """Every artifact location, derived from one package directory."""

    package_dir: Path

    @classmethod
    def from_config(cls, config: FedKeeperConfig) -> "PackagePaths":
        return cls(config.resolved_package_dir)

    @property
    def outputs_dir(self) -> Path:
        return self.package_dir / OUTPUTS_DIRNAME

    @property
    def default_packages(self) -> Path:
        return self.outputs_dir / DEFAULT_PACKAGES_FILENAME

    @property
    def manual_packages(self) -> Path:
        return self.outputs_dir / MANUAL_PACKAGES_FILENAME

    @property
    def auto_dependencies(self) -> Path:
        return self.outputs_dir / AUTO_DEPENDENCIES_FILENAME

    @property
    def lock_file(self) -> Path:
        return self.outputs_dir / LOCK_FILENAME

    @property
    def lock_backup(self) -> Path:
        return self.outputs_dir / (LOCK_FILENAME + LOCK_BACKUP_SUFFIX)


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Search order:

    1. ``explicit_path`` (from ``--config`` or ``FEDKEEPER_CONFIG``)
    2. ``fedkeeper.toml`` in current directory
    3. ``~/.config/fedkeeper/fedkeeper.toml``

    Args:
        explicit_path: Explicit config path. If provided, must exist.

    Returns:
        Resolved path to config file, or ``None`` if not found.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    # 1. Explicit path takes priority
    if explicit_path is not None:
        resolved = explicit_path.expanduser().resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    # 2. fedkeeper.toml in current directory
    local_toml = Path.cwd() / CONFIG_FILENAME
    if local_toml.is_file():
        logger.debug("Found %s: %s", CONFIG_FILENAME, local_toml)
        return local_toml

    # 3. per-user config
    user_toml = Path(USER_CONFIG_PATH).expanduser()
    if user_toml.is_file():
        logger.debug("Found user config: %s", user_toml)
        return user_toml

    logger.debug("No configuration file found")
    return None


def load_config(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> FedKeeperConfig:
    """Load, validate, and environment-overlay fedkeeper configuration.

    Args:
        config_path: Explicit path to config file. If ``None``, uses
            auto-discovery (see :func:`discover_config_file`).
        environ: Environment to read overrides from; ``os.environ`` by
            default.

    Returns:
        Validated :class:`FedKeeperConfig`.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or a file or
            environment value is invalid.
    """
    resolved = discover_config_file(config_path)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        config = FedKeeperConfig()
    else:
        logger.info("Loading configuration from %s", resolved)
        section = _read_toml(resolved).get("fedkeeper", {})
        if not isinstance(section, dict):
            raise ConfigError(
                "[fedkeeper] must be a table",
                config_path=str(resolved),
            )
        if section:
            config = _parse_section(section, config_path=str(resolved))
        else:
            logger.debug("Config file found but no [fedkeeper] table; using defaults")
            config = FedKeeperConfig()
        config.source_path = resolved

    apply_environment(config, os.environ if environ is None else environ)

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def apply_environment(config: FedKeeperConfig, environ: Mapping[str, str]) -> None:
    """Overlay ``PACKAGE_DIR``-style environment variables onto ``config``.

    Empty values are ignored.

    Raises:
        ConfigError: A variable has a value of the wrong type.
    """
    for variable, option in ENV_OVERRIDES.items():
        raw = environ.get(variable, "").strip()
        if not raw:
            continue
        logger.debug("Environment override %s=%s", variable, raw)
        setattr(config, option, _coerce_env(variable, option, raw))


def _coerce_env(variable: str, option: str, raw: str) -> Any:
    if option in ("package_dir", "cache_dir"):
        return Path(raw)

    if option == "enable_progress":
        lowered = raw.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigError(
            f"{variable} must be true or false, got {raw!r}",
            option=option,
        )

    try:
        value = float(raw) if option == "query_timeout" else int(raw)
    except ValueError as exc:
        raise ConfigError(
            f"{variable} must be a number, got {raw!r}",
            option=option,
        ) from exc
    if value <= 0:
        raise ConfigError(f"{variable} must be positive, got {raw!r}", option=option)
    return value


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> FedKeeperConfig:
    """Parse and validate the ``[fedkeeper]`` table.

    Rejects unknown keys, type mismatches, and non-positive numbers.

    Raises:
        ConfigError: Unknown keys or invalid values.
    """
    config = FedKeeperConfig()

    known_top = {
        "package_dir",
        "cache_dir",
        "chunk_size",
        "max_parallel_jobs",
        "query_timeout",
        "enable_progress",
    }

    unknown_top = set(section.keys()) - known_top
    if unknown_top:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown_top))}",
            config_path=config_path,
        )

    for option in ("package_dir", "cache_dir"):
        if option in section:
            val = section[option]
            if not isinstance(val, str) or not val:
                raise ConfigError(
                    f"{option} must be a non-empty string, got {type(val).__name__}",
                    config_path=config_path,
                    option=option,
                )
            setattr(config, option, Path(val))

    for option in ("chunk_size", "max_parallel_jobs"):
        if option in section:
            val = section[option]
            # bool is an int subclass
            if isinstance(val, bool) or not isinstance(val, int) or val <= 0:
                raise ConfigError(
                    f"{option} must be a positive integer, got {val!r}",
                    config_path=config_path,
                    option=option,
                )
            setattr(config, option, val)

    if "query_timeout" in section:
        val = section["query_timeout"]
        if isinstance(val, bool) or not isinstance(val, (int, float)) or val <= 0:
            raise ConfigError(
                f"query_timeout must be a positive number, got {val!r}",
                config_path=config_path,
                option="query_timeout",
            )
        config.query_timeout = float(val)

    if "enable_progress" in section:
        val = section["enable_progress"]
        if not isinstance(val, bool):
            raise ConfigError(
                f"enable_progress must be a boolean, got {type(val).__name__}",
                config_path=config_path,
                option="enable_progress",
            )
        config.enable_progress = val

    return config
