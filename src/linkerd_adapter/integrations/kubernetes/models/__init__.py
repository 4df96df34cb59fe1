"""Typed models for manifests and the resources the adapter reads back."""

from linkerd_adapter.integrations.kubernetes.models.manifest import (
    DecodeResult,
    GroupVersionKind,
    ManifestDocument,
    ManifestHeader,
)
from linkerd_adapter.integrations.kubernetes.models.service import ServicePort, ServiceSpec

__all__ = [
    "DecodeResult",
    "GroupVersionKind",
    "ManifestDocument",
    "ManifestHeader",
    "ServicePort",
    "ServiceSpec",
]
