"""Kubernetes integration custom exceptions.

Everything the cluster layer raises derives from :class:`KubernetesError`.
Raw client exceptions are converted by
:meth:`KubernetesClient.translate_api_exception`.
"""

from __future__ import annotations

from typing import Any


class KubernetesError(Exception):
    """Base exception for Kubernetes operations.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code from the API server, when there was one.
        resource_type: Kind involved (e.g. "Service", "Namespace").
        resource_name: Name of the object involved.
        namespace: Namespace of the object, for namespaced kinds.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.resource_type = resource_type
        self.resource_name = resource_name
        self.namespace = namespace

    @property
    def location(self) -> str:
        """``[Kind/name in namespace]``, or empty when the object is unknown."""
        if not (self.resource_type and self.resource_name):
            return ""
        suffix = f" in {self.namespace}" if self.namespace else ""
        return f"[{self.resource_type}/{self.resource_name}{suffix}]"

    def __str__(self) -> str:
        status = f"(status: {self.status_code})" if self.status_code else ""
        return " ".join(part for part in (self.message, status, self.location) if part)


class KubernetesConnectionError(KubernetesError):
    """The API server could not be reached or no usable kubeconfig was found."""

    def __init__(
        self,
        message: str = "Failed to connect to Kubernetes cluster",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message=message)
        self.original_error = original_error


class KubernetesAuthError(KubernetesError):
    """Credentials were rejected or RBAC denied the call (401/403)."""

    def __init__(
        self,
        message: str = "Kubernetes authentication/authorization failed",
        status_code: int | None = 401,
        reason: str | None = None,
    ) -> None:
        super().__init__(message=message, status_code=status_code)
        self.reason = reason


class _ObjectStateError(KubernetesError):
    """An object is in the wrong state for the call: absent or already present."""

    status: int
    state: str

    def __init__(
        self,
        message: str | None = None,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        if message is None:
            if resource_type and resource_name:
                message = f"{resource_type} '{resource_name}' {self.state}"
                if namespace:
                    message += f" in namespace '{namespace}'"
            else:
                message = f"Kubernetes resource {self.state}"
        super().__init__(
            message=message,
            status_code=self.status,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )


class KubernetesNotFoundError(_ObjectStateError):
    """The object does not exist (404).

    A delete that fails with this error is treated as already done.
    """

    status = 404
    state = "not found"


class KubernetesConflictError(_ObjectStateError):
    """The object already exists (409).

    A create that fails with this error is treated as already done.
    """

    status = 409
    state = "already exists"


class KubernetesValidationError(KubernetesError):
    """The API server rejected the object's content (400/422)."""

    def __init__(
        self,
        message: str = "Invalid resource specification",
        validation_errors: dict[str, Any] | None = None,
        status_code: int | None = 422,
    ) -> None:
        super().__init__(message=message, status_code=status_code)
        self.validation_errors = validation_errors or {}


class KubernetesTimeoutError(KubernetesError):
    """A request exceeded its deadline."""

    def __init__(
        self,
        message: str = "Kubernetes operation timed out",
        timeout_seconds: int | None = None,
    ) -> None:
        if timeout_seconds:
            message = f"{message} (after {timeout_seconds}s)"
        super().__init__(message=message)
        self.timeout_seconds = timeout_seconds


# ---------------------------------------------------------------------------
# Manifest handling
# ---------------------------------------------------------------------------


class ManifestDecodeError(KubernetesError):
    """A manifest document could not be decoded into a known object type.

    Non-fatal: the document is skipped and the rest of the batch continues.
    """

    def __init__(self, message: str, index: int | None = None) -> None:
        super().__init__(message=message)
        self.index = index


class UnsupportedKindError(KubernetesError):
    """A decoded document has a kind outside the accepted set.

    Non-fatal: the document is skipped with a warning.
    """

    def __init__(self, kind: str, resource_name: str | None = None) -> None:
        super().__init__(
            message=f"Unsupported object kind '{kind}'",
            resource_type=kind,
            resource_name=resource_name,
        )
        self.kind = kind


class DiscoveryError(KubernetesError):
    """The API server could not map a group/version/kind to a resource.

    Fatal for the batch being applied.
    """

    def __init__(
        self,
        api_version: str,
        kind: str,
        original_error: Exception | None = None,
    ) -> None:
        detail = f": {original_error}" if original_error else ""
        super().__init__(
            message=f"Unable to resolve resource for {api_version}/{kind}{detail}",
            resource_type=kind,
        )
        self.api_version = api_version
        self.kind = kind
        self.original_error = original_error


class ServiceDecodeError(KubernetesError):
    """A Service object's port declarations have an unexpected shape."""


class ApplyCancelledError(KubernetesError):
    """A manifest batch was cancelled before all documents were applied."""

    def __init__(self, applied: int = 0) -> None:
        super().__init__(message=f"Manifest apply cancelled after {applied} document(s)")
        self.applied = applied
