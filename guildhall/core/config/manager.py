"""
ConfigManager: dot-notation game configuration access for Guildhall.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable guild rules
  (e.g. ``guilds.min_creation_level``).
- Back configuration with YAML defaults from the ``config/`` directory.
- Allow in-process overrides for operators and tests without redeploys.

Key Design Decisions
--------------------
- YAML is the single source for **defaults**; overrides live in memory and
  always win over defaults.
- Nested YAML documents are deep-merged so each domain can ship its own file.
- Reads never raise: a missing key resolves to the caller's default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

import yaml

from guildhall.core.config.config import Config
from guildhall.core.logging.logger import get_logger

logger = get_logger(__name__)


class ConfigManager:
    """
    Game configuration with YAML defaults and in-memory overrides.

    Usage
    -----
    >>> ConfigManager.initialize()
    >>> ConfigManager.get("guilds.min_creation_level", 8)
    8
    >>> ConfigManager.set("guilds.min_creation_level", 20)
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _initialized: bool = False

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
                target[key] = value

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        """Load and deep-merge every YAML file under `config_dir` into defaults."""
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            with yaml_file.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle)

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
            extra={"yaml_file_count": loaded_count, "top_level_keys": len(cls._defaults)},
        )

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load YAML defaults. Safe to call more than once; later calls reload.

        Args:
            config_dir: Directory to scan; defaults to ``Config.CONFIG_DIR``
        """
        cls._defaults = {}
        cls._load_yaml_configs(config_dir or Config.CONFIG_DIR)
        cls._initialized = True

    @staticmethod
    def _traverse(source: Dict[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict):
                return None
            value = value.get(part)
            if value is None:
                return None
        return value

    # =========================================================================
    # READ / WRITE
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Overrides take precedence over YAML defaults; `default` is returned
        when neither defines the key.
        """
        if not cls._initialized:
            logger.warning(
                "ConfigManager accessed before explicit initialization; loading defaults"
            )
            cls.initialize()

        if key in cls._overrides:
            return cls._overrides[key]

        value = cls._traverse(cls._defaults, key)
        return default if value is None else value

    @classmethod
    def set(cls, key: str, value: Any) -> None:
        """Override a configuration value for the lifetime of the process."""
        previous = cls.get(key)
        cls._overrides[key] = value
        logger.info(
            "Configuration override applied",
            extra={"config_key": key, "old_value": previous, "new_value": value},
        )

    @classmethod
    def clear_overrides(cls) -> None:
        cls._overrides = {}

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Return top-level keys from defaults plus any overridden dot keys."""
        return sorted(set(cls._defaults) | set(cls._overrides))
