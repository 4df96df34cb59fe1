"""Discovery-driven resource resolution.

Maps a group/version/kind to the concrete resource endpoint the API server
serves for it. Nothing is memoized: custom resource definitions can be
installed in the middle of a batch, so every lookup asks the server again.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from linkerd_adapter.integrations.kubernetes.exceptions import DiscoveryError, KubernetesError
from linkerd_adapter.services.kubernetes.base import K8sBaseManager

if TYPE_CHECKING:
    from linkerd_adapter.integrations.kubernetes.models.manifest import GroupVersionKind

SCOPE_NAMESPACE = "namespace"
SCOPE_ROOT = "root"


@dataclass(frozen=True)
class ResourceMapping:
    """A resolved resource endpoint.

    Attributes:
        gvk: The group/version/kind that was resolved.
        resource: Plural resource name (e.g. ``deployments``).
        namespaced: Whether objects of this kind live in a namespace.
        api: The dynamic ``Resource`` handle used to address objects.
        client: The ``DynamicClient`` the handle belongs to.
    """

    gvk: GroupVersionKind
    resource: str
    namespaced: bool
    api: Any
    client: Any

    @property
    def scope(self) -> str:
        return SCOPE_NAMESPACE if self.namespaced else SCOPE_ROOT


class ResourceResolver(K8sBaseManager):
    """Resolves kinds to resources through live API discovery."""

    _entity_name = "discovery"

    def resolve(self, gvk: GroupVersionKind) -> ResourceMapping:
        """Resolve *gvk* against the cluster's discovery endpoint.

        Transient connection failures are retried; anything else is final.

        Args:
            gvk: Group, version and kind to resolve.

        Returns:
            The resolved mapping.

        Raises:
            DiscoveryError: If the server does not serve the kind, or
                discovery itself fails.
        """
        try:
            mapping = self._client.make_retry_decorator()(self._discover)(gvk)
        except DiscoveryError:
            raise
        except KubernetesError as e:
            self._log.error("discovery_failed", gvk=str(gvk), error=str(e))
            raise DiscoveryError(gvk.api_version, gvk.kind, original_error=e) from e

        self._log.debug(
            "resolved_resource",
            gvk=str(gvk),
            resource=mapping.resource,
            scope=mapping.scope,
        )
        return mapping

    def _discover(self, gvk: GroupVersionKind) -> ResourceMapping:
        from kubernetes.dynamic.exceptions import (
            ResourceNotFoundError,
            ResourceNotUniqueError,
        )

        dynamic = self._client.dynamic_client()
        try:
            # The discoverer may have been seeded from its on-disk cache
            dynamic.resources.invalidate_cache()
            api = dynamic.resources.get(api_version=gvk.api_version, kind=gvk.kind)
        except (ResourceNotFoundError, ResourceNotUniqueError) as e:
            self._log.error("resource_not_served", gvk=str(gvk), error=str(e))
            raise DiscoveryError(gvk.api_version, gvk.kind, original_error=e) from e
        except Exception as e:
            raise self._client.translate_api_exception(e, resource_type=gvk.kind) from e

        return ResourceMapping(
            gvk=gvk,
            resource=api.name,
            namespaced=bool(api.namespaced),
            api=api,
            client=dynamic,
        )
