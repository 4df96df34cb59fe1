"""Unit tests for Kubernetes connection configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from linkerd_adapter.integrations.kubernetes.config import KubernetesConnectionConfig


@pytest.mark.unit
@pytest.mark.kubernetes
class TestKubernetesConnectionConfig:
    """Test KubernetesConnectionConfig model."""

    def test_defaults(self) -> None:
        config = KubernetesConnectionConfig()
        assert config.kubeconfig == b""
        assert config.context == ""
        assert config.request_timeout == 30
        assert config.retry_attempts == 3

    def test_is_frozen(self) -> None:
        config = KubernetesConnectionConfig()
        with pytest.raises(ValidationError):
            config.context = "other"  # type: ignore[misc]

    def test_rejects_unknown_fields(self) -> None:
        with pytest.raises(ValidationError):
            KubernetesConnectionConfig(namespace="default")  # type: ignore[call-arg]

    @pytest.mark.parametrize("timeout", [0, -5])
    def test_timeout_must_be_positive(self, timeout: int) -> None:
        with pytest.raises(ValidationError, match="request_timeout must be positive"):
            KubernetesConnectionConfig(request_timeout=timeout)

    def test_retry_attempts_at_least_one(self) -> None:
        with pytest.raises(ValidationError, match="retry_attempts must be at least 1"):
            KubernetesConnectionConfig(retry_attempts=0)
