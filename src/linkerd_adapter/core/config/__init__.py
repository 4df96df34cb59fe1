"""Configuration management with Pydantic validation."""

from linkerd_adapter.core.config.models import (
    CONFIG_DIR,
    CONFIG_FILE,
    AdapterConfig,
    ConfigError,
    load_config,
)

__all__ = [
    "CONFIG_DIR",
    "CONFIG_FILE",
    "AdapterConfig",
    "ConfigError",
    "load_config",
]
