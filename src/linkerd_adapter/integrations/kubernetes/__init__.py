"""Kubernetes integration - API client, connection config and exceptions."""

from linkerd_adapter.integrations.kubernetes.client import KubernetesClient
from linkerd_adapter.integrations.kubernetes.config import KubernetesConnectionConfig
from linkerd_adapter.integrations.kubernetes.exceptions import (
    ApplyCancelledError,
    DiscoveryError,
    KubernetesAuthError,
    KubernetesConflictError,
    KubernetesConnectionError,
    KubernetesError,
    KubernetesNotFoundError,
    KubernetesTimeoutError,
    KubernetesValidationError,
    ManifestDecodeError,
    ServiceDecodeError,
    UnsupportedKindError,
)

__all__ = [
    "ApplyCancelledError",
    "DiscoveryError",
    "KubernetesAuthError",
    "KubernetesClient",
    "KubernetesConflictError",
    "KubernetesConnectionConfig",
    "KubernetesConnectionError",
    "KubernetesError",
    "KubernetesNotFoundError",
    "KubernetesTimeoutError",
    "KubernetesValidationError",
    "ManifestDecodeError",
    "ServiceDecodeError",
    "UnsupportedKindError",
]
