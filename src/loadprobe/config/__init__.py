from __future__ import annotations

from loadprobe.config.models import (
    DEFAULT_BASE_URL,
    DEFAULT_ENDPOINTS,
    ComparisonTarget,
    ConfigError,
    RunConfig,
)

__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_ENDPOINTS",
    "ComparisonTarget",
    "ConfigError",
    "RunConfig",
]
