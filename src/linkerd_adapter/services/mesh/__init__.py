"""Mesh services: operation registry, dispatch, and the event stream."""

from linkerd_adapter.services.mesh.adapter import LinkerdAdapter
from linkerd_adapter.services.mesh.events import Event, EventStream, EventType
from linkerd_adapter.services.mesh.exceptions import (
    AdapterNotInitializedError,
    EventDeliveryError,
    ManifestSourceError,
    MeshAdapterError,
    OperationCancelledError,
    OperationRejectedError,
    OperationValidationError,
)
from linkerd_adapter.services.mesh.operations import (
    MESH_NAME,
    SUPPORTED_OPERATIONS,
    OpCategory,
    Operation,
    SupportedOperation,
    supported_operations,
)
from linkerd_adapter.services.mesh.orchestrator import MeshOrchestrator

__all__ = [
    "MESH_NAME",
    "SUPPORTED_OPERATIONS",
    "AdapterNotInitializedError",
    "Event",
    "EventDeliveryError",
    "EventStream",
    "EventType",
    "LinkerdAdapter",
    "ManifestSourceError",
    "MeshAdapterError",
    "MeshOrchestrator",
    "OpCategory",
    "Operation",
    "OperationCancelledError",
    "OperationRejectedError",
    "OperationValidationError",
    "SupportedOperation",
    "supported_operations",
]
