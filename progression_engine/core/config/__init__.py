"""
Configuration management subsystem.

Static vs Dynamic Configuration
--------------------------------
**Static (Config):**
- Loaded from environment variables (.env supported) at import time
- Includes: environment type, logging switches, Redis connection settings
- Changes require a restart

**Dynamic (ConfigManager):**
- Loaded from packaged YAML defaults plus runtime overrides
- Includes: reward tables, retention limits, notification durations
- Import it from `progression_engine.core.config.manager`; it depends on
  the logging subsystem, which itself depends on `Config`.
"""

from progression_engine.core.config.config import Config, Environment
from progression_engine.core.config.errors import ConfigError, ConfigValidationError

__all__ = [
    "Config",
    "Environment",
    "ConfigError",
    "ConfigValidationError",
]
