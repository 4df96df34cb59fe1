"""Namespace preparation for sidecar auto-injection."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from linkerd_adapter.integrations.kubernetes.exceptions import KubernetesNotFoundError
from linkerd_adapter.integrations.kubernetes.models.manifest import GroupVersionKind
from linkerd_adapter.services.kubernetes.base import K8sBaseManager

if TYPE_CHECKING:
    from linkerd_adapter.integrations.kubernetes.client import KubernetesClient
    from linkerd_adapter.services.kubernetes.resource_manager import ResourceManager

NAMESPACE_GVK = GroupVersionKind(group="", version="v1", kind="Namespace")
INJECTION_ANNOTATION = "linkerd.io/inject"
INJECTION_ENABLED = "enabled"


def namespace_manifest(name: str) -> str:
    """Minimal Namespace manifest."""
    return f"apiVersion: v1\nkind: Namespace\nmetadata:\n  name: {name}\n"


class NamespaceManager(K8sBaseManager):
    """Creates namespaces and marks them for proxy auto-injection."""

    _entity_name = "namespace"

    def __init__(
        self,
        client: KubernetesClient,
        resources: ResourceManager,
        manifest_factory: Callable[[str], str] = namespace_manifest,
    ) -> None:
        """Initialize the manager.

        Args:
            client: Kubernetes API client instance.
            resources: Manager used for every cluster mutation.
            manifest_factory: Renders the manifest for a new namespace.
        """
        super().__init__(client)
        self._resources = resources
        self._manifest_factory = manifest_factory

    def create_namespace(self, name: str) -> None:
        """Create *name* unless it already exists."""
        self._log.debug("creating_namespace", name=name)
        self._resources.apply_manifests(self._manifest_factory(name), name)

    def enable_injection(self, name: str) -> None:
        """Annotate namespace *name* for sidecar auto-injection.

        The namespace is created first when it does not exist yet. Existing
        annotations are preserved.

        Raises:
            KubernetesError: If the namespace cannot be read, created or updated.
        """
        mapping = self._resources.resolver.resolve(NAMESPACE_GVK)
        try:
            namespace = self._resources.get_resource(mapping, name)
        except KubernetesNotFoundError:
            self.create_namespace(name)
            namespace = self._resources.get_resource(mapping, name)

        metadata = namespace.setdefault("metadata", {})
        annotations = dict(metadata.get("annotations") or {})
        annotations[INJECTION_ANNOTATION] = INJECTION_ENABLED
        metadata["annotations"] = annotations

        self._resources.update_resource(mapping, namespace)
        self._log.info("namespace_injection_enabled", name=name)
