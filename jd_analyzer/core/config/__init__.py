"""
Configuration Module

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: System-wide constants, enums, and limits

Usage:
------
```python
from jd_analyzer.core.config import Settings, get_settings
from jd_analyzer.core.config.constants import CircuitState, Stage

settings = Settings(MAX_RETRIES=1)
settings.retry.BASE_DELAY_MS
```
"""

from jd_analyzer.core.config.constants import (
    CacheBackend,
    CacheTier,
    CircuitState,
    HealthStatus,
    Stage,
)
from jd_analyzer.core.config.settings import Settings, get_settings, reload_settings

__all__ = [
    "CacheBackend",
    "CacheTier",
    "CircuitState",
    "HealthStatus",
    "Settings",
    "Stage",
    "get_settings",
    "reload_settings",
]
