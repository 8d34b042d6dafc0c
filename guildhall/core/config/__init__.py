"""
Configuration subsystem for Guildhall.

- **config.py**: ``Config``, static environment-driven settings (database,
  logging, environment)
- **manager.py**: ``ConfigManager``, dot-notation game rules backed by YAML
  defaults

``ConfigManager`` depends on the logging subsystem, which itself reads
``Config``; import it from ``guildhall.core.config.manager`` directly.

Usage
-----
    from guildhall.core.config import Config
    from guildhall.core.config.manager import ConfigManager

    timeout = Config.DATABASE_QUERY_TIMEOUT
    min_level = ConfigManager.get("guilds.min_creation_level", 8)
"""

from guildhall.core.config.config import Config, Environment

__all__ = [
    "Config",
    "Environment",
]
