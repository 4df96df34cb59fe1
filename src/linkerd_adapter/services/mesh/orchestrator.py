"""Operation dispatch for the Linkerd adapter.

Validates operation requests, produces their manifests, and runs the
long-running ones as background tasks whose outcomes are reported through
the session's :class:`EventStream`.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from linkerd_adapter.integrations.kubernetes.exceptions import ApplyCancelledError
from linkerd_adapter.integrations.kubernetes.linkerd_client import LinkerdClient
from linkerd_adapter.logging.config import operation_context
from linkerd_adapter.services.kubernetes.base import DEFAULT_NAMESPACE
from linkerd_adapter.services.kubernetes.namespace_manager import NamespaceManager
from linkerd_adapter.services.kubernetes.resource_manager import ResourceManager
from linkerd_adapter.services.kubernetes.service_manager import (
    ServicePortManager,
    format_port_message,
)
from linkerd_adapter.services.mesh.events import Event, EventStream, EventType
from linkerd_adapter.services.mesh.exceptions import (
    OperationCancelledError,
    OperationRejectedError,
)
from linkerd_adapter.services.mesh.operations import (
    ManifestSourceKind,
    Operation,
    SupportedOperation,
)
from linkerd_adapter.services.mesh.sources import RemoteManifestCache, TemplateRenderer

if TYPE_CHECKING:
    from linkerd_adapter.integrations.kubernetes.client import KubernetesClient

logger = structlog.get_logger()

NAMESPACE_TEMPLATE = "namespace.yml"
DEFAULT_MAX_CONCURRENT_OPERATIONS = 10

_Runner = Callable[[threading.Event], Awaitable[None]]


@dataclass
class _InFlight:
    task: asyncio.Task[None]
    cancel: threading.Event


class MeshOrchestrator:
    """Dispatches operations against one cluster session.

    Custom manifests are applied before :meth:`apply_operation` returns.
    Installer and sample application operations return immediately and
    publish exactly one event when they finish.
    """

    def __init__(
        self,
        client: KubernetesClient,
        events: EventStream,
        *,
        resources: ResourceManager | None = None,
        templates: TemplateRenderer | None = None,
        remote: RemoteManifestCache | None = None,
        linkerd_factory: Callable[[], LinkerdClient] = LinkerdClient,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_OPERATIONS,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: Session-scoped Kubernetes client.
            events: Stream receiving background outcomes.
            resources: Resource manager; built from *client* when omitted.
            templates: Renderer for bundled manifest templates.
            remote: Cache for downloaded sample application manifests.
            linkerd_factory: Builds the installer wrapper on first use.
            max_concurrent: Upper bound on simultaneous background operations.
        """
        self._client = client
        self._events = events
        self._resources = resources or ResourceManager(client)
        self._templates = templates or TemplateRenderer()
        self._remote = remote or RemoteManifestCache()
        self._linkerd_factory = linkerd_factory
        self._max_concurrent = max_concurrent
        self._namespaces = NamespaceManager(
            client,
            self._resources,
            manifest_factory=lambda name: self._templates.render(NAMESPACE_TEMPLATE, name),
        )
        self._ports = ServicePortManager(client, self._resources)
        self._in_flight: dict[str, _InFlight] = {}
        self._log = logger.bind(entity="orchestrator")

    @property
    def in_flight(self) -> list[str]:
        """Ids of background operations that have not finished yet."""
        return list(self._in_flight)

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def apply_operation(self, operation: Operation) -> str:
        """Validate and run *operation*.

        Returns:
            The operation id.

        Raises:
            OperationValidationError: If the request is malformed.
            OperationRejectedError: If a background slot is unavailable.
            ManifestSourceError: If a sample manifest cannot be produced.
            KubernetesError: If a custom manifest fails to apply.
        """
        descriptor = operation.descriptor()
        self._log.info(
            "applying_operation",
            operation_id=operation.operation_id,
            op_name=operation.op_name,
            namespace=operation.namespace,
            delete=operation.delete_op,
        )

        if descriptor.source is ManifestSourceKind.CUSTOM:
            await asyncio.to_thread(
                self._resources.apply_manifests,
                operation.custom_body,
                operation.namespace,
                delete=operation.delete_op,
            )
            return operation.operation_id

        self._ensure_capacity(operation)

        if descriptor.source is ManifestSourceKind.INSTALLER:
            self._spawn(operation, lambda cancel: self._run_install(operation, cancel))
            return operation.operation_id

        manifest = await self._sample_manifest(operation, descriptor)
        self._spawn(
            operation,
            lambda cancel: self._run_sample_app(operation, descriptor, manifest, cancel),
        )
        return operation.operation_id

    async def _sample_manifest(self, operation: Operation, descriptor: SupportedOperation) -> str:
        assert descriptor.manifest is not None
        if descriptor.source is ManifestSourceKind.TEMPLATE:
            return self._templates.render(
                descriptor.manifest, _target_namespace(operation), operation.username
            )
        return await asyncio.to_thread(self._remote.fetch, descriptor.manifest)

    # =========================================================================
    # Background tasks
    # =========================================================================

    def _ensure_capacity(self, operation: Operation) -> None:
        if operation.operation_id in self._in_flight:
            raise OperationRejectedError(operation.operation_id, "operation already in progress")
        if len(self._in_flight) >= self._max_concurrent:
            raise OperationRejectedError(
                operation.operation_id,
                f"{self._max_concurrent} operations already in progress",
            )

    def _spawn(self, operation: Operation, runner: _Runner) -> None:
        # Re-checked: the manifest fetch may have yielded to another request
        self._ensure_capacity(operation)
        cancel = threading.Event()
        task = asyncio.create_task(
            self._guard(operation, runner, cancel),
            name=f"operation-{operation.operation_id}",
        )
        self._in_flight[operation.operation_id] = _InFlight(task=task, cancel=cancel)
        task.add_done_callback(lambda _: self._in_flight.pop(operation.operation_id, None))

    async def _guard(
        self, operation: Operation, runner: _Runner, cancel: threading.Event
    ) -> None:
        with operation_context(operation.operation_id, op_name=operation.op_name):
            try:
                await runner(cancel)
            except asyncio.CancelledError:
                # The worker thread keeps running until it sees the flag
                cancel.set()
                self._log.info("operation_cancelled")
                raise

    async def _run_install(self, operation: Operation, cancel: threading.Event) -> None:
        try:
            await asyncio.to_thread(self._execute_install, operation, cancel)
        except Exception as e:
            await self._report_failure(operation, f"Error while {operation.gerund} Linkerd", e)
            return

        await self._publish(
            operation,
            EventType.INFO,
            f"Linkerd {operation.verb} successfully",
            f"The latest version of Linkerd is now {operation.verb}.",
        )

    def _execute_install(self, operation: Operation, cancel: threading.Event) -> None:
        linkerd = self._linkerd_factory()
        namespace = _target_namespace(operation)
        context = self._client.context_name
        with self._client.kubeconfig_file() as kubeconfig:
            linkerd.check_pre(namespace, kubeconfig, context)
            manifest = linkerd.install_manifest(namespace, kubeconfig, context)
        self._resources.apply_manifests(
            manifest, namespace, delete=operation.delete_op, cancel=cancel
        )

    async def _run_sample_app(
        self,
        operation: Operation,
        descriptor: SupportedOperation,
        manifest: str,
        cancel: threading.Event,
    ) -> None:
        app_name = descriptor.app_name
        try:
            await asyncio.to_thread(self._execute_sample_app, operation, manifest, cancel)
        except Exception as e:
            await self._report_failure(
                operation, f"Error while {operation.gerund} the canonical {app_name}", e
            )
            return

        port_message = ""
        if not operation.delete_op:
            assert descriptor.service_name is not None
            try:
                ports = await asyncio.to_thread(
                    self._ports.get_node_ports,
                    descriptor.service_name,
                    _target_namespace(operation),
                )
            except Exception as e:
                self._log.warning(
                    "port_lookup_failed",
                    operation_id=operation.operation_id,
                    service=descriptor.service_name,
                    error=str(e),
                )
                await self._publish(
                    operation,
                    EventType.WARN,
                    f"{app_name} is deployed but unable to retrieve the port info "
                    "for the service at the moment",
                    str(e),
                )
                return
            port_message = format_port_message(ports)

        await self._publish(
            operation,
            EventType.INFO,
            f"{app_name} {operation.verb} successfully",
            f"{app_name} is now {operation.verb}. {port_message}",
        )

    def _execute_sample_app(
        self, operation: Operation, manifest: str, cancel: threading.Event
    ) -> None:
        namespace = _target_namespace(operation)
        if not operation.delete_op:
            self._namespaces.enable_injection(namespace)
        self._resources.apply_manifests(
            manifest, namespace, delete=operation.delete_op, cancel=cancel
        )

    # =========================================================================
    # Events
    # =========================================================================

    async def _report_failure(self, operation: Operation, summary: str, error: Exception) -> None:
        if isinstance(error, ApplyCancelledError):
            error = OperationCancelledError(operation.operation_id, applied=error.applied)
        self._log.error(
            "operation_failed",
            operation_id=operation.operation_id,
            op_name=operation.op_name,
            error=str(error),
        )
        await self._publish(operation, EventType.ERROR, summary, str(error))

    async def _publish(
        self, operation: Operation, event_type: EventType, summary: str, details: str
    ) -> None:
        await self._events.publish(
            Event(
                operation_id=operation.operation_id,
                event_type=event_type,
                summary=summary,
                details=details,
            )
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def cancel_operation(self, operation_id: str) -> bool:
        """Ask a background operation to stop before its next document.

        The operation then reports an ERROR event. Returns ``False`` when no
        such operation is running.
        """
        entry = self._in_flight.get(operation_id)
        if entry is None:
            return False
        entry.cancel.set()
        return True

    async def wait(self) -> None:
        """Wait for every background operation to finish."""
        tasks = [entry.task for entry in self._in_flight.values()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        """Cancel all background operations and wait for them to unwind."""
        entries = list(self._in_flight.values())
        for entry in entries:
            entry.cancel.set()
            entry.task.cancel()
        if entries:
            await asyncio.gather(*(entry.task for entry in entries), return_exceptions=True)
        self.release()
        self._log.debug("orchestrator_closed", cancelled=len(entries))

    def release(self) -> None:
        """Close the manifest download client; safe to call repeatedly."""
        self._remote.close()


def _target_namespace(operation: Operation) -> str:
    return operation.namespace or DEFAULT_NAMESPACE
