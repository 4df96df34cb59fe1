"""Read-back of externally reachable Service ports."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import ValidationError

from linkerd_adapter.integrations.kubernetes.exceptions import ServiceDecodeError
from linkerd_adapter.integrations.kubernetes.models.manifest import GroupVersionKind
from linkerd_adapter.integrations.kubernetes.models.service import ServiceSpec
from linkerd_adapter.services.kubernetes.base import K8sBaseManager

if TYPE_CHECKING:
    from linkerd_adapter.integrations.kubernetes.client import KubernetesClient
    from linkerd_adapter.services.kubernetes.resource_manager import ResourceManager

SERVICE_GVK = GroupVersionKind(group="", version="v1", kind="Service")


class ServicePortManager(K8sBaseManager):
    """Reports the node ports a deployed Service exposes."""

    _entity_name = "service"

    def __init__(self, client: KubernetesClient, resources: ResourceManager) -> None:
        super().__init__(client)
        self._resources = resources

    def get_node_ports(self, name: str, namespace: str) -> list[int]:
        """Return the node ports of Service *name*, in declaration order.

        Raises:
            KubernetesError: If the Service cannot be retrieved.
            ServiceDecodeError: If its port declarations have the wrong shape.
        """
        mapping = self._resources.resolver.resolve(SERVICE_GVK)
        service = self._resources.get_resource(mapping, name, namespace)

        try:
            spec = ServiceSpec.model_validate(service.get("spec") or {})
        except ValidationError as e:
            raise ServiceDecodeError(
                message=f"unable to read port declarations: {e.error_count()} invalid field(s)",
                resource_type="Service",
                resource_name=name,
                namespace=namespace,
            ) from e

        ports = spec.node_ports
        self._log.debug("retrieved_node_ports", name=name, namespace=namespace, ports=ports)
        return ports


def format_port_message(ports: list[int]) -> str:
    """Phrase where a deployed app can be reached."""
    if len(ports) == 1:
        return f"The service is possibly available on port: {ports}"
    if len(ports) > 1:
        return f"The service is possibly available on one of the following ports: {ports}"
    return ""
