"""
ConfigManager: dynamic, dot-notation access to engine tunables.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable engine values
  (reward tables, retention limits, notification durations, leaderboard size).
- Back configuration with packaged YAML defaults plus runtime overrides.
- Keep reads cheap: values are served from an in-memory merged view.

Responsibilities
----------------
- Load and deep-merge every YAML file from the packaged `config/` directory.
- Overlay runtime overrides (set via `set()`) on top of the YAML defaults.
- Serve reads with fallback to defaults, then to the caller's default.
- Track simple read metrics for diagnostics.

Key Design Decisions
--------------------
- YAML is the single source for **defaults**; overrides live in memory only.
- Callers always pass a default to `get()`, so a missing YAML file degrades
  to built-in values instead of failing.
- Class-level state (no instantiation), matching `Config`.

Dependencies
------------
- PyYAML: `yaml.safe_load` for the defaults directory.
- `progression_engine.core.logging.logger.get_logger`: structured logging.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

import yaml

from progression_engine.core.config.errors import ConfigValidationError
from progression_engine.core.logging.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


@dataclass
class ConfigMetrics:
    gets: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    fallback_to_defaults: int = 0
    sets: int = 0


class ConfigManager:
    """
    Dynamic engine configuration with YAML defaults and runtime overrides.

    Examples
    --------
    >>> ConfigManager.get("leaderboard.size", 10)
    10
    >>> ConfigManager.set("leaderboard.size", 25)
    >>> ConfigManager.get("leaderboard.size", 10)
    25
    """

    # YAML defaults, merged across all files.
    _defaults: Dict[str, Any] = {}

    # Runtime overrides (same nested shape as defaults).
    _overrides: Dict[str, Any] = {}

    # Materialized view of defaults + overrides.
    _cache: Dict[str, Any] = {}

    _initialized: bool = False
    _config_dir: Path = DEFAULT_CONFIG_DIR
    _metrics: ConfigMetrics = ConfigMetrics()

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    @classmethod
    def _load_yaml_configs(cls) -> None:
        """
        Load all YAML config files from the config directory into `_defaults`.

        - Files are merged in sorted path order so later files win.
        - A missing directory or a broken file is logged, never raised.
        """
        cls._defaults = {}
        config_dir = cls._config_dir

        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(
            list(config_dir.rglob("*.yaml")) + list(config_dir.rglob("*.yml"))
        )
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        logger.info(
            "YAML configs loaded",
            extra={
                "yaml_file_count": loaded_count,
                "top_level_keys": sorted(cls._defaults.keys()),
            },
        )

    @classmethod
    def _rebuild_cache(cls) -> None:
        merged: Dict[str, Any] = copy.deepcopy(cls._defaults)
        cls._deep_merge_dict(merged, cls._overrides)
        cls._cache = merged

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load YAML defaults and rebuild the merged view.

        Parameters
        ----------
        config_dir:
            Directory to read YAML defaults from. Defaults to the packaged
            `progression_engine/config` directory.
        """
        if config_dir is not None:
            cls._config_dir = Path(config_dir)

        cls._load_yaml_configs()
        cls._rebuild_cache()
        cls._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Drop all runtime overrides and reload the packaged defaults."""
        cls._overrides = {}
        cls._config_dir = DEFAULT_CONFIG_DIR
        cls._metrics = ConfigMetrics()
        cls.initialize()

    # =========================================================================
    # READ API
    # =========================================================================

    @staticmethod
    def _walk(source: Any, key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict):
                return None
            value = value.get(part)
            if value is None:
                return None
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Parameters
        ----------
        key:
            Dot-notation config path (e.g. `"progression.recent_transactions_limit"`).
        default:
            Value to return if the key is not found in overrides or defaults.

        Examples
        --------
        >>> ConfigManager.get("notifications.xp_duration_ms", 2000)
        2000
        """
        if not cls._initialized:
            cls.initialize()

        cls._metrics.gets += 1

        value = cls._walk(cls._cache, key)
        if value is not None:
            cls._metrics.cache_hits += 1
            return copy.deepcopy(value) if isinstance(value, (dict, list)) else value

        cls._metrics.cache_misses += 1
        fallback = cls._walk(cls._defaults, key)
        if fallback is not None:
            cls._metrics.fallback_to_defaults += 1
            return fallback
        return default

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Return all top-level configuration keys currently loaded."""
        if not cls._initialized:
            cls.initialize()
        return sorted(cls._cache.keys())

    @classmethod
    def get_metrics(cls) -> Dict[str, int]:
        return {
            "gets": cls._metrics.gets,
            "cache_hits": cls._metrics.cache_hits,
            "cache_misses": cls._metrics.cache_misses,
            "fallback_to_defaults": cls._metrics.fallback_to_defaults,
            "sets": cls._metrics.sets,
        }

    # =========================================================================
    # WRITE API
    # =========================================================================

    @classmethod
    def set(cls, key: str, value: Any) -> None:
        """
        Override a configuration value at runtime.

        Parameters
        ----------
        key:
            Dot-notation config path.
        value:
            New value; dicts are deep-merged into the existing section.

        Raises
        ------
        ConfigValidationError:
            If the key is malformed or would replace a section with a scalar.
        """
        if not cls._initialized:
            cls.initialize()

        parts = key.split(".") if key else []
        if not parts or any(not part for part in parts):
            raise ConfigValidationError(f"Invalid configuration key: {key!r}")

        existing = cls._walk(cls._cache, key)
        if isinstance(existing, dict) and not isinstance(value, dict):
            raise ConfigValidationError(
                f"Configuration key '{key}' is a section and cannot be set to a scalar"
            )

        node: Dict[str, Any] = cls._overrides
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child

        leaf = parts[-1]
        if isinstance(value, dict) and isinstance(node.get(leaf), dict):
            cls._deep_merge_dict(node[leaf], value)
        else:
            node[leaf] = copy.deepcopy(value)

        cls._rebuild_cache()
        cls._metrics.sets += 1

        logger.info(
            "Configuration override applied",
            extra={"config_key": key, "value_type": type(value).__name__},
        )


__all__ = ["ConfigManager"]
