"""Adapter configuration models."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

# XDG-compliant config location
CONFIG_DIR = Path.home() / ".config" / "linkerd-adapter"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

ENV_PREFIX = "LINKERD_ADAPTER_"


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class AdapterConfig(BaseModel):
    """Settings for one adapter process."""

    model_config = ConfigDict(extra="forbid")

    event_queue_size: int = 100
    event_poll_interval: float = 0.5
    event_publish_timeout: float = 5.0
    max_concurrent_operations: int = 10
    request_timeout: int = 30
    retry_attempts: int = 3
    linkerd_binary: str | None = None
    installer_timeout: int = 300
    template_dir: Path | None = None
    manifest_cache_dir: Path = Field(
        default=Path("~/.cache/linkerd-adapter"), validate_default=True
    )
    manifest_base_url: str = "https://run.linkerd.io"

    @field_validator(
        "event_queue_size",
        "max_concurrent_operations",
        "request_timeout",
        "installer_timeout",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate sizes and timeouts are positive."""
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("event_poll_interval", "event_publish_timeout")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        """Validate intervals are positive."""
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        """Validate retry_attempts is at least one."""
        if v < 1:
            raise ValueError("retry_attempts must be at least 1")
        return v

    @field_validator("manifest_cache_dir", "template_dir")
    @classmethod
    def expand_path(cls, v: Path | None) -> Path | None:
        """Expand ~ in directory paths."""
        return v.expanduser() if v is not None else None

    @field_validator("manifest_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate base URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("manifest_base_url must start with http:// or https://")
        return v.rstrip("/")

    @classmethod
    def from_env(cls, base_config: dict[str, Any] | None = None) -> AdapterConfig:
        """Create configuration with environment variable overrides.

        Environment variables take precedence over base_config values. Every
        field can be overridden by its upper-cased name prefixed with
        ``LINKERD_ADAPTER_``, e.g. ``LINKERD_ADAPTER_EVENT_QUEUE_SIZE``.
        """
        config_dict = base_config.copy() if base_config else {}
        for field in cls.model_fields:
            if (value := os.environ.get(f"{ENV_PREFIX}{field.upper()}")) is not None:
                config_dict[field] = value
        return cls.model_validate(config_dict)


def load_config(path: Path | None = None) -> AdapterConfig:
    """Load configuration from an optional YAML file plus the environment.

    Args:
        path: Config file; defaults to ``~/.config/linkerd-adapter/config.yaml``
            when that exists.

    Raises:
        ConfigError: If the file cannot be parsed or fails validation.
    """
    from ruamel.yaml import YAML
    from ruamel.yaml.error import YAMLError

    config_path = path or CONFIG_FILE
    data: dict[str, Any] = {}
    if config_path.exists():
        try:
            loaded = YAML(typ="safe").load(config_path.read_text())
        except YAMLError as e:
            raise ConfigError(
                f"Invalid config file format: {config_path}", details=str(e)
            ) from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(f"Config file must hold a mapping: {config_path}")
        data = loaded or {}
    elif path is not None:
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        return AdapterConfig.from_env(data)
    except ValidationError as e:
        raise ConfigError("Invalid adapter configuration", details=str(e)) from e
