"""Kubernetes API client wrapper.

Builds a per-session API client from raw kubeconfig bytes, hands out fresh
dynamic clients for discovery-driven operations, and translates API errors
into the adapter's exception hierarchy.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from linkerd_adapter.integrations.kubernetes.exceptions import (
    KubernetesAuthError,
    KubernetesConflictError,
    KubernetesConnectionError,
    KubernetesError,
    KubernetesNotFoundError,
    KubernetesTimeoutError,
    KubernetesValidationError,
)

if TYPE_CHECKING:
    from kubernetes.client import ApiClient
    from kubernetes.dynamic import DynamicClient

    from linkerd_adapter.integrations.kubernetes.config import KubernetesConnectionConfig

logger = structlog.get_logger()

DEFAULT_KUBECONFIG = "~/.kube/config"
IN_CLUSTER_CONTEXT = "in-cluster"


class KubernetesClient:
    """Session-scoped Kubernetes API client.

    Wraps the official kubernetes Python client with:
    - Credentials loaded from raw kubeconfig bytes (no global config state)
    - Fallback to the local kubeconfig and then in-cluster configuration
    - A fresh ``DynamicClient`` per request so discovery is never reused
    - Automatic retry with tenacity for transient connection errors
    - Consistent error translation to custom exceptions

    Example:
        ```python
        from linkerd_adapter.integrations.kubernetes import (
            KubernetesClient,
            KubernetesConnectionConfig,
        )

        config = KubernetesConnectionConfig(kubeconfig=raw_bytes, context="kind-dev")
        with KubernetesClient(config) as client:
            dynamic = client.dynamic_client()
        ```
    """

    def __init__(self, connection_config: KubernetesConnectionConfig) -> None:
        """Initialize the client and load credentials.

        Args:
            connection_config: Kubeconfig bytes, context and call defaults.

        Raises:
            KubernetesConnectionError: If no usable configuration is found.
        """
        self._config = connection_config
        self._retries = connection_config.retry_attempts
        self._current_context: str | None = None
        self._api_client: ApiClient | None = None

        self._load_config()

        logger.info(
            "Kubernetes client initialized",
            context=self._current_context,
        )

    def _load_config(self) -> None:
        """Build an ApiClient from kubeconfig bytes, local kubeconfig, or in-cluster."""
        from kubernetes import config
        from kubernetes.config import ConfigException

        context = self._config.context or None

        try:
            if self._config.kubeconfig:
                self._api_client = config.new_client_from_config_dict(
                    self._parse_kubeconfig(self._config.kubeconfig),
                    context=context,
                )
                logger.debug("loaded_kubeconfig_bytes", context=context)
            else:
                self._api_client = config.new_client_from_config(context=context)
                logger.debug("loaded_kubeconfig", context=context)
            self._current_context = context or "current-context"
        except ConfigException as e:
            if self._config.kubeconfig:
                raise KubernetesConnectionError(
                    message="Supplied kubeconfig could not be loaded",
                    original_error=e,
                ) from e
            try:
                from kubernetes.client import ApiClient, Configuration

                configuration = Configuration()
                config.load_incluster_config(client_configuration=configuration)
                self._api_client = ApiClient(configuration)
                self._current_context = IN_CLUSTER_CONTEXT
                logger.debug("loaded_incluster_config")
            except ConfigException as incluster_error:
                raise KubernetesConnectionError(
                    message="Cannot load Kubernetes configuration. "
                    "Supply a kubeconfig or run inside a cluster.",
                    original_error=incluster_error,
                ) from incluster_error

    @staticmethod
    def _parse_kubeconfig(raw: bytes) -> dict[str, Any]:
        """Parse raw kubeconfig bytes into a dict."""
        from ruamel.yaml import YAML
        from ruamel.yaml.error import YAMLError

        yaml = YAML(typ="safe")
        try:
            data = yaml.load(raw.decode("utf-8"))
        except (YAMLError, UnicodeDecodeError) as e:
            raise KubernetesConnectionError(
                message="Supplied kubeconfig is not valid YAML",
                original_error=e,
            ) from e
        if not isinstance(data, dict):
            raise KubernetesConnectionError(message="Supplied kubeconfig is not a mapping")
        return data

    # =========================================================================
    # API access
    # =========================================================================

    @property
    def api_client(self) -> ApiClient:
        """Get the underlying ApiClient."""
        if self._api_client is None:
            raise KubernetesConnectionError(message="Kubernetes client has been closed")
        return self._api_client

    def dynamic_client(self) -> DynamicClient:
        """Create a new DynamicClient bound to this session's credentials.

        Every call returns a new instance; callers decide whether to force
        a fresh discovery round trip.
        """
        from kubernetes.dynamic import DynamicClient

        try:
            return DynamicClient(self.api_client)
        except Exception as e:
            raise self.translate_api_exception(e) from e

    def get_current_context(self) -> str:
        """Get the active context name, or 'in-cluster' when running inside a pod."""
        return self._current_context or "unknown"

    @property
    def context_name(self) -> str:
        """Context name explicitly requested by the caller, if any."""
        return self._config.context

    @property
    def timeout(self) -> int:
        """Per request timeout in seconds."""
        return self._config.request_timeout

    @contextmanager
    def kubeconfig_file(self) -> Iterator[Path | None]:
        """Yield a kubeconfig path usable by external binaries.

        Supplied kubeconfig bytes are written to a private temporary file
        that is removed on exit. Without bytes, the first existing entry of
        ``$KUBECONFIG`` (or ``~/.kube/config``) is yielded. In-cluster sessions
        yield ``None``; the binary then finds the service account itself.
        """
        if not self._config.kubeconfig:
            yield None if self._current_context == IN_CLUSTER_CONTEXT else local_kubeconfig()
            return

        fd, name = tempfile.mkstemp(prefix="kubeconfig_")
        path = Path(name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(self._config.kubeconfig)
            path.chmod(0o600)
            yield path
        finally:
            path.unlink(missing_ok=True)

    # =========================================================================
    # Error Translation
    # =========================================================================

    @staticmethod
    def translate_api_exception(
        e: Exception,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> KubernetesError:
        """Translate a kubernetes API exception to a custom exception.

        Handles both ``ApiException`` from the typed client and
        ``DynamicApiError`` from the dynamic client, plus urllib3 transport
        failures.

        Args:
            e: The original exception.
            resource_type: Type of resource being operated on.
            resource_name: Name of the resource.
            namespace: Namespace of the resource.

        Returns:
            An appropriate KubernetesError subclass.
        """
        from kubernetes.client import ApiException
        from kubernetes.dynamic.exceptions import DynamicApiError
        from urllib3.exceptions import (
            HTTPError,
            NewConnectionError,
            ProtocolError,
            TimeoutError,
        )

        if isinstance(e, KubernetesError):
            return e

        # NewConnectionError subclasses ConnectTimeoutError in urllib3 2.x
        if isinstance(e, NewConnectionError | ProtocolError):
            return KubernetesConnectionError(
                message=f"Kubernetes API server unreachable: {e}",
                original_error=e,
            )

        if isinstance(e, TimeoutError):
            return KubernetesTimeoutError(message=f"Kubernetes request timed out: {e}")

        if isinstance(e, HTTPError):
            return KubernetesConnectionError(
                message=f"Kubernetes API server unreachable: {e}",
                original_error=e,
            )

        if not isinstance(e, ApiException | DynamicApiError):
            return KubernetesError(
                message=str(e),
                resource_type=resource_type,
                resource_name=resource_name,
                namespace=namespace,
            )

        status = e.status
        reason = getattr(e, "reason", None)

        if status in (401, 403):
            return KubernetesAuthError(
                message=reason or "Authentication/authorization failed",
                status_code=status,
                reason=reason,
            )

        if status == 404:
            return KubernetesNotFoundError(
                resource_type=resource_type,
                resource_name=resource_name,
                namespace=namespace,
            )

        if status == 409:
            return KubernetesConflictError(
                resource_type=resource_type,
                resource_name=resource_name,
                namespace=namespace,
            )

        if status in (400, 422):
            return KubernetesValidationError(
                message=reason or "Validation failed",
                status_code=status,
            )

        return KubernetesError(
            message=reason or f"Kubernetes API error: {status}",
            status_code=status,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )

    # =========================================================================
    # Retry Decorator
    # =========================================================================

    def make_retry_decorator(self) -> Any:
        """Create a retry decorator for transient connection errors.

        Returns:
            A tenacity retry decorator configured with exponential backoff.
        """
        return retry(
            retry=retry_if_exception_type(KubernetesConnectionError),
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Close the client and release its connection pool."""
        if self._api_client is not None:
            self._api_client.close()
            self._api_client = None
        logger.debug("Kubernetes client closed")

    def __enter__(self) -> KubernetesClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()


def local_kubeconfig() -> Path:
    """Return the kubeconfig file the local loader would read first.

    ``$KUBECONFIG`` may list several files; the first one that exists wins.
    """
    entries = [
        Path(entry).expanduser()
        for entry in os.environ.get("KUBECONFIG", "").split(os.pathsep)
        if entry
    ]
    for entry in entries:
        if entry.exists():
            return entry
    return entries[0] if entries else Path(DEFAULT_KUBECONFIG).expanduser()
