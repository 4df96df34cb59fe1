"""Shared plumbing for the manifest, namespace and service managers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NoReturn

import structlog

if TYPE_CHECKING:
    from linkerd_adapter.integrations.kubernetes.client import KubernetesClient

logger = structlog.get_logger()

DEFAULT_NAMESPACE = "default"


class K8sBaseManager:
    """Common base of the adapter's Kubernetes managers.

    Holds the session client and a logger bound to ``entity=_entity_name``,
    and funnels API failures through the client's error translation so
    callers only ever see :class:`KubernetesError` subclasses.

    Example:
        >>> class ServicePortManager(K8sBaseManager):
        ...     _entity_name = "service"
    """

    _entity_name: str = ""

    def __init__(self, client: KubernetesClient) -> None:
        """Initialize the manager.

        Args:
            client: Kubernetes API client instance.
        """
        self._client = client
        self._log = logger.bind(entity=self._entity_name)

    @property
    def _request_options(self) -> dict[str, Any]:
        """Keyword arguments every dynamic client call carries."""
        return {"_request_timeout": self._client.timeout}

    @staticmethod
    def _resolve_namespace(namespace: str | None) -> str:
        """Resolve namespace, falling back to ``default``."""
        return namespace or DEFAULT_NAMESPACE

    def _handle_api_error(
        self,
        e: Exception,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> NoReturn:
        """Translate a Kubernetes API exception and re-raise.

        Raises:
            KubernetesError: Always raises an appropriate subclass.
        """
        raise self._client.translate_api_exception(
            e,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        ) from e
