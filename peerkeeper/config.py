"""Configuration file loader for peerkeeper.

Handles discovery, loading, parsing, and validation of engine settings.
Supports two formats:

- ``peerkeeper.toml``: settings under ``[peerkeeper]`` table
- ``pyproject.toml``: settings under ``[tool.peerkeeper]`` table

Discovery order:

1. Explicit path argument or ``PEERKEEPER_CONFIG``
2. ``peerkeeper.toml`` in the project directory
3. ``pyproject.toml`` with ``[tool.peerkeeper]`` section

Registry locations and credentials are not configured here; they come from
``.npmrc`` files (see :mod:`peerkeeper.core.registry`).

Example (``peerkeeper.toml``)::

    [peerkeeper]
    concurrency = 16
    registry_timeout_ms = 5000
    cache_ttl_seconds = 600
    offline = false
    cooldown_days = 3
    ignore = ["@internal/*"]

    [peerkeeper.rules."react"]
    max_target = "minor"
    max_updates_per_run = 1

    [peerkeeper.rules."@types/*"]
    autofix = false
"""

from __future__ import annotations

import os
import tomli as tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass, field

from peerkeeper.core.checker import PolicyRule
from peerkeeper.exceptions import ConfigError
from peerkeeper.models.dependency import UpdatePolicy
from peerkeeper.utils.logger import get_logger
from peerkeeper.constants import (
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_CONCURRENCY,
    DEFAULT_OFFLINE,
    DEFAULT_TIMEOUT_MS,
    ENV_CONFIG,
)

logger = get_logger("config")

CONFIG_FILENAME = "peerkeeper.toml"
PYPROJECT_FILENAME = "pyproject.toml"
SECTION = "peerkeeper"


@dataclass
class PeerkeeperConfig:
    """Parsed and validated peerkeeper configuration.

    All fields have defaults, so empty config files are valid.

    Attributes:
        concurrency: Maximum number of in-flight registry lookups.
        registry_timeout_ms: Per-attempt registry timeout.
        cache_ttl_seconds: TTL for freshly fetched cache entries.
        cache_dir: Cache root override, or ``None`` for the default.
        offline: Never contact the registry.
        cooldown_days: Skip versions published fewer than this many days ago.
        ignore: Package names or ``*`` patterns never checked.
        rules: Per-package policy rules keyed by name or ``*`` pattern.
        source_path: Path to loaded config file, or ``None`` if using defaults.
    """

    concurrency: int = DEFAULT_CONCURRENCY
    registry_timeout_ms: int = DEFAULT_TIMEOUT_MS
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    cache_dir: Optional[str] = None
    offline: bool = DEFAULT_OFFLINE
    cooldown_days: Optional[int] = None
    ignore: List[str] = field(default_factory=list)
    rules: Dict[str, PolicyRule] = field(default_factory=dict)

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary for debug logging."""
        return {
            "concurrency": self.concurrency,
            "registry_timeout_ms": self.registry_timeout_ms,
            "cache_ttl_seconds": self.cache_ttl_seconds,
            "cache_dir": self.cache_dir,
            "offline": self.offline,
            "cooldown_days": self.cooldown_days,
            "ignore": list(self.ignore),
            "rules": sorted(self.rules),
        }


def discover_config_file(
    explicit_path: Optional[Union[str, Path]] = None,
    cwd: Optional[Path] = None,
) -> Optional[Path]:
    """Find the configuration file to load.

    Args:
        explicit_path: Explicit config path. If provided, must exist.
            Falls back to ``PEERKEEPER_CONFIG`` when omitted.
        cwd: Project directory; defaults to the current directory.

    Returns:
        Resolved path to config file, or ``None`` if not found.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    if explicit_path is None:
        explicit_path = os.environ.get(ENV_CONFIG) or None

    if explicit_path is not None:
        resolved = Path(explicit_path).resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    base = cwd if cwd is not None else Path.cwd()

    candidate = base / CONFIG_FILENAME
    if candidate.is_file():
        logger.debug("Found %s: %s", CONFIG_FILENAME, candidate)
        return candidate

    pyproject = base / PYPROJECT_FILENAME
    if pyproject.is_file() and _pyproject_has_section(pyproject):
        logger.debug("Found [tool.%s] in pyproject.toml: %s", SECTION, pyproject)
        return pyproject

    logger.debug("No configuration file found")
    return None


def _pyproject_has_section(path: Path) -> bool:
    """Check if pyproject.toml contains a ``[tool.peerkeeper]`` section.

    An unparsable pyproject.toml is treated as having no section.
    """
    try:
        raw = _read_toml(path)
    except ConfigError as exc:
        logger.debug("Ignoring %s: %s", path, exc)
        return False
    tool = raw.get("tool", {})
    return isinstance(tool, dict) and SECTION in tool


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    cwd: Optional[Path] = None,
) -> PeerkeeperConfig:
    """Load and validate peerkeeper configuration.

    Args:
        config_path: Explicit path to config file. If ``None``, uses
            auto-discovery (see :func:`discover_config_file`).
        cwd: Project directory for auto-discovery.

    Returns:
        Validated :class:`PeerkeeperConfig` with values from file or defaults.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path, cwd)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return PeerkeeperConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == PYPROJECT_FILENAME:
        section = raw.get("tool", {}).get(SECTION, {})
    else:
        section = raw.get(SECTION, {})

    if not section:
        logger.debug("Config file found but no %s section, using defaults", SECTION)
        return PeerkeeperConfig(source_path=resolved)

    if not isinstance(section, dict):
        raise ConfigError(
            f"[{SECTION}] must be a table",
            config_path=str(resolved),
        )

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is invalid TOML.
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


def _require_int(value: Any, option: str, minimum: int, config_path: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(
            f"{option} must be an integer, got {type(value).__name__}",
            config_path=config_path,
            option=option,
        )
    if value < minimum:
        raise ConfigError(
            f"{option} must be >= {minimum}, got {value}",
            config_path=config_path,
            option=option,
        )
    return value


def _require_bool(value: Any, option: str, config_path: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(
            f"{option} must be a boolean, got {type(value).__name__}",
            config_path=config_path,
            option=option,
        )
    return value


def _require_policy(value: Any, option: str, config_path: str) -> UpdatePolicy:
    try:
        return UpdatePolicy(value)
    except ValueError:
        choices = ", ".join(policy.value for policy in UpdatePolicy)
        raise ConfigError(
            f"{option} must be one of {choices}, got {value!r}",
            config_path=config_path,
            option=option,
        ) from None


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> PeerkeeperConfig:
    """Parse and validate the ``[peerkeeper]`` table.

    Raises:
        ConfigError: Unknown keys or incorrect types.
    """
    config = PeerkeeperConfig()

    known_top = {
        "concurrency",
        "registry_timeout_ms",
        "cache_ttl_seconds",
        "cache_dir",
        "offline",
        "cooldown_days",
        "ignore",
        "rules",
    }

    unknown_top = set(section.keys()) - known_top
    if unknown_top:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown_top))}",
            config_path=config_path,
        )

    if "concurrency" in section:
        config.concurrency = _require_int(section["concurrency"], "concurrency", 1, config_path)

    if "registry_timeout_ms" in section:
        config.registry_timeout_ms = _require_int(
            section["registry_timeout_ms"], "registry_timeout_ms", 1, config_path
        )

    if "cache_ttl_seconds" in section:
        config.cache_ttl_seconds = _require_int(
            section["cache_ttl_seconds"], "cache_ttl_seconds", 0, config_path
        )

    if "cache_dir" in section:
        val = section["cache_dir"]
        if not isinstance(val, str):
            raise ConfigError(
                f"cache_dir must be a string, got {type(val).__name__}",
                config_path=config_path,
                option="cache_dir",
            )
        config.cache_dir = val

    if "offline" in section:
        config.offline = _require_bool(section["offline"], "offline", config_path)

    if "cooldown_days" in section:
        config.cooldown_days = _require_int(
            section["cooldown_days"], "cooldown_days", 0, config_path
        )

    if "ignore" in section:
        val = section["ignore"]
        if not isinstance(val, list) or not all(isinstance(item, str) for item in val):
            raise ConfigError(
                "ignore must be a list of strings",
                config_path=config_path,
                option="ignore",
            )
        config.ignore = list(val)

    if "rules" in section:
        config.rules = _parse_rules(section["rules"], config_path)

    return config


def _parse_rules(raw: Any, config_path: str) -> Dict[str, PolicyRule]:
    if not isinstance(raw, dict):
        raise ConfigError(
            "rules must be a table",
            config_path=config_path,
            option="rules",
        )

    known = {"target", "max_target", "autofix", "ignore", "cooldown_days", "max_updates_per_run"}
    rules: Dict[str, PolicyRule] = {}

    for pattern, body in raw.items():
        prefix = f"rules.{pattern}"
        if not isinstance(body, dict):
            raise ConfigError(
                f"{prefix} must be a table",
                config_path=config_path,
                option=prefix,
            )

        unknown = set(body.keys()) - known
        if unknown:
            raise ConfigError(
                f"Unknown keys in {prefix}: {', '.join(sorted(unknown))}",
                config_path=config_path,
                option=prefix,
            )

        rules[pattern] = PolicyRule(
            target=(
                _require_policy(body["target"], f"{prefix}.target", config_path)
                if "target" in body
                else None
            ),
            max_target=(
                _require_policy(body["max_target"], f"{prefix}.max_target", config_path)
                if "max_target" in body
                else None
            ),
            autofix=_require_bool(body.get("autofix", True), f"{prefix}.autofix", config_path),
            ignore=_require_bool(body.get("ignore", False), f"{prefix}.ignore", config_path),
            cooldown_days=(
                _require_int(body["cooldown_days"], f"{prefix}.cooldown_days", 0, config_path)
                if "cooldown_days" in body
                else None
            ),
            max_updates_per_run=(
                _require_int(
                    body["max_updates_per_run"], f"{prefix}.max_updates_per_run", 0, config_path
                )
                if "max_updates_per_run" in body
                else None
            ),
        )

    return rules
