"""Session object exposed to remote callers.

A :class:`LinkerdAdapter` owns one cluster client and one event stream for
the lifetime of a session.
"""

from __future__ import annotations

import asyncio
from functools import partial

import structlog

from linkerd_adapter.core.config import AdapterConfig
from linkerd_adapter.integrations.kubernetes.client import KubernetesClient
from linkerd_adapter.integrations.kubernetes.config import KubernetesConnectionConfig
from linkerd_adapter.integrations.kubernetes.linkerd_client import LinkerdClient
from linkerd_adapter.services.kubernetes.resource_manager import ResourceManager
from linkerd_adapter.services.mesh.events import EventSender, EventStream
from linkerd_adapter.services.mesh.exceptions import AdapterNotInitializedError
from linkerd_adapter.services.mesh.operations import (
    MESH_NAME,
    Operation,
    supported_operations,
)
from linkerd_adapter.services.mesh.orchestrator import MeshOrchestrator
from linkerd_adapter.services.mesh.sources import RemoteManifestCache, TemplateRenderer

logger = structlog.get_logger()


class LinkerdAdapter:
    """Linkerd mesh adapter session.

    Example:
        ```python
        adapter = LinkerdAdapter()
        adapter.create_instance(kubeconfig_bytes, "kind-dev")
        await adapter.apply_operation("op-1", "linkerd_install", "linkerd")
        await adapter.stream_events(send)
        ```
    """

    def __init__(self, config: AdapterConfig | None = None) -> None:
        self._config = config or AdapterConfig()
        self._client: KubernetesClient | None = None
        self._events: EventStream | None = None
        self._orchestrator: MeshOrchestrator | None = None
        self._retired: list[tuple[MeshOrchestrator, KubernetesClient]] = []
        self._reapers: set[asyncio.Task[None]] = set()
        self._log = logger.bind(entity="adapter")

    @property
    def config(self) -> AdapterConfig:
        return self._config

    @property
    def events(self) -> EventStream:
        """The session's event stream."""
        if self._events is None:
            raise AdapterNotInitializedError()
        return self._events

    @property
    def orchestrator(self) -> MeshOrchestrator:
        if self._orchestrator is None:
            raise AdapterNotInitializedError()
        return self._orchestrator

    def create_instance(self, kubeconfig: bytes = b"", context_name: str = "") -> None:
        """Build the cluster client and orchestrator for a session.

        Empty *kubeconfig* falls back to the local kubeconfig, then to
        in-cluster configuration. Calling this again replaces the client but
        keeps the event stream, so operations started on the previous client
        still report through :meth:`stream_events`. The previous client is
        closed once its operations finish.

        Raises:
            KubernetesConnectionError: If no usable configuration is found.
        """
        connection = KubernetesConnectionConfig(
            kubeconfig=kubeconfig,
            context=context_name,
            request_timeout=self._config.request_timeout,
            retry_attempts=self._config.retry_attempts,
        )
        client = KubernetesClient(connection)
        if self._events is None:
            self._events = EventStream(
                maxsize=self._config.event_queue_size,
                poll_interval=self._config.event_poll_interval,
                publish_timeout=self._config.event_publish_timeout,
            )
        orchestrator = MeshOrchestrator(
            client,
            self._events,
            resources=ResourceManager(client),
            templates=TemplateRenderer(self._config.template_dir),
            remote=RemoteManifestCache(
                base_url=self._config.manifest_base_url,
                cache_dir=self._config.manifest_cache_dir,
                timeout=self._config.request_timeout,
                retries=self._config.retry_attempts,
            ),
            linkerd_factory=partial(
                LinkerdClient,
                binary_path=self._config.linkerd_binary,
                timeout=self._config.installer_timeout,
            ),
            max_concurrent=self._config.max_concurrent_operations,
        )
        self._retire_session()
        self._orchestrator = orchestrator
        self._client = client
        self._log.info("mesh_client_created", context=client.get_current_context())

    def _retire_session(self) -> None:
        if self._orchestrator is None or self._client is None:
            return
        orchestrator, client = self._orchestrator, self._client
        if not orchestrator.in_flight:
            orchestrator.release()
            client.close()
            return

        self._retired.append((orchestrator, client))
        self._log.info("mesh_client_retiring", in_flight=len(orchestrator.in_flight))
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to wait on; close() releases it
            return
        task = loop.create_task(self._release_when_idle(orchestrator, client))
        self._reapers.add(task)
        task.add_done_callback(self._reapers.discard)

    async def _release_when_idle(
        self, orchestrator: MeshOrchestrator, client: KubernetesClient
    ) -> None:
        await orchestrator.wait()
        orchestrator.release()
        client.close()
        self._retired.remove((orchestrator, client))
        self._log.debug("mesh_client_retired")

    async def apply_operation(
        self,
        operation_id: str,
        op_name: str,
        namespace: str,
        delete_op: bool = False,
        custom_body: str = "",
        username: str = "",
    ) -> str:
        """Apply one operation; see :meth:`MeshOrchestrator.apply_operation`.

        Raises:
            AdapterNotInitializedError: If no session has been created.
        """
        operation = Operation(
            operation_id=operation_id,
            op_name=op_name,
            namespace=namespace,
            delete_op=delete_op,
            custom_body=custom_body,
            username=username,
        )
        return await self.orchestrator.apply_operation(operation)

    def supported_operations(self) -> list[dict[str, str]]:
        """Operations this adapter accepts, as ``{key, value, category}``."""
        return supported_operations()

    async def stream_events(self, send: EventSender, stop: asyncio.Event | None = None) -> None:
        """Deliver session events to *send*.

        Raises:
            AdapterNotInitializedError: If no session has been created.
            EventDeliveryError: If *send* fails.
        """
        await self.events.stream(send, stop)

    def mesh_name(self) -> str:
        return MESH_NAME

    async def close(self) -> None:
        """Cancel background operations and release every cluster client."""
        for orchestrator, client in [*self._retired, (self._orchestrator, self._client)]:
            if orchestrator is not None:
                await orchestrator.close()
            if client is not None:
                client.close()
        if self._reapers:
            await asyncio.gather(*self._reapers, return_exceptions=True)
        self._retired.clear()
        self._orchestrator = None
        self._client = None
        self._events = None
        self._log.info("mesh_client_closed")
