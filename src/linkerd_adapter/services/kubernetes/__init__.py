"""Kubernetes services: manifest decoding, discovery, and ordered apply."""

from linkerd_adapter.services.kubernetes.discovery import ResourceMapping, ResourceResolver
from linkerd_adapter.services.kubernetes.manifest_manager import ACCEPTED_KINDS, ManifestDecoder
from linkerd_adapter.services.kubernetes.namespace_manager import NamespaceManager
from linkerd_adapter.services.kubernetes.resource_manager import ApplyResult, ResourceManager
from linkerd_adapter.services.kubernetes.service_manager import (
    ServicePortManager,
    format_port_message,
)

__all__ = [
    "ACCEPTED_KINDS",
    "ApplyResult",
    "ManifestDecoder",
    "NamespaceManager",
    "ResourceManager",
    "ResourceMapping",
    "ResourceResolver",
    "ServicePortManager",
    "format_port_message",
]
