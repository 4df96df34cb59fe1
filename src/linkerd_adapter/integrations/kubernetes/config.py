"""Kubernetes connection configuration models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class KubernetesConnectionConfig(BaseModel):
    """Credentials and call defaults for one adapter session.

    ``kubeconfig`` holds the raw kubeconfig document handed over by the
    caller. When it is empty the client falls back to the local kubeconfig
    and then to in-cluster configuration.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    kubeconfig: bytes = b""
    context: str = ""
    request_timeout: int = 30
    retry_attempts: int = 3

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError("request_timeout must be positive")
        return v

    @field_validator("retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        """Validate retry_attempts is at least one."""
        if v < 1:
            raise ValueError("retry_attempts must be at least 1")
        return v
