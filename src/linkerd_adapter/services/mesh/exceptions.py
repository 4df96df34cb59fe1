"""Mesh adapter exceptions."""

from __future__ import annotations


class MeshAdapterError(Exception):
    """Base exception for mesh adapter errors."""

    def __init__(self, message: str, details: str | None = None) -> None:
        """Initialize exception.

        Args:
            message: Error message.
            details: Additional details.
        """
        super().__init__(message)
        self.message = message
        self.details = details


class AdapterNotInitializedError(MeshAdapterError):
    """Raised when a session method is called before ``create_instance``."""

    def __init__(self) -> None:
        super().__init__("mesh client has not been created")


class OperationValidationError(MeshAdapterError):
    """Raised when an operation request is rejected before any cluster call."""

    def __init__(self, operation_id: str, reason: str) -> None:
        super().__init__(f"operation id: {operation_id}, error: {reason}")
        self.operation_id = operation_id


class OperationRejectedError(MeshAdapterError):
    """Raised when the session cannot accept another background operation."""

    def __init__(self, operation_id: str, reason: str) -> None:
        super().__init__(f"operation id: {operation_id} rejected: {reason}")
        self.operation_id = operation_id


class OperationCancelledError(MeshAdapterError):
    """Raised when an operation stops because its session is closing."""

    def __init__(self, operation_id: str, applied: int = 0) -> None:
        super().__init__(
            f"operation id: {operation_id} cancelled",
            details=f"{applied} document(s) applied before cancellation",
        )
        self.operation_id = operation_id
        self.applied = applied


class EventDeliveryError(MeshAdapterError):
    """Raised when the event consumer fails to accept an event."""


class ManifestSourceError(MeshAdapterError):
    """Raised when a template or remote manifest cannot be produced."""
