"""Apply command: run one operation through an adapter session."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from pathlib import Path

import structlog
import typer
from rich.console import Console

from linkerd_adapter.cli.output import event_panel
from linkerd_adapter.core.config import AdapterConfig, ConfigError, load_config
from linkerd_adapter.integrations.kubernetes.exceptions import KubernetesError
from linkerd_adapter.services.mesh.adapter import LinkerdAdapter
from linkerd_adapter.services.mesh.events import Event, EventType
from linkerd_adapter.services.mesh.exceptions import MeshAdapterError
from linkerd_adapter.services.mesh.operations import SUPPORTED_OPERATIONS

console = Console()
logger = structlog.get_logger()


@dataclass
class SessionSettings:
    """Connection options collected by the root command."""

    kubeconfig: Path | None = None
    context: str = ""
    config_file: Path | None = None

    def kubeconfig_bytes(self) -> bytes:
        if self.kubeconfig is None:
            return b""
        return self.kubeconfig.expanduser().read_bytes()


async def run_operation(
    config: AdapterConfig,
    settings: SessionSettings,
    op_name: str,
    namespace: str,
    delete: bool,
    custom_body: str,
    username: str,
) -> Event | None:
    """Apply one operation and wait for its event when it runs in the background."""
    adapter = LinkerdAdapter(config)
    adapter.create_instance(settings.kubeconfig_bytes(), settings.context)
    operation_id = str(uuid.uuid4())
    outcome: list[Event] = []
    stop = asyncio.Event()

    def collect(event: Event) -> None:
        if event.operation_id == operation_id:
            outcome.append(event)
            stop.set()

    try:
        await adapter.apply_operation(
            operation_id,
            op_name,
            namespace,
            delete_op=delete,
            custom_body=custom_body,
            username=username,
        )
        if not SUPPORTED_OPERATIONS[op_name].is_async:
            return None
        await adapter.stream_events(collect, stop)
        return outcome[0]
    finally:
        await adapter.close()


def apply(
    ctx: typer.Context,
    op_name: str = typer.Argument(..., help="Operation key, see 'operations'."),
    namespace: str = typer.Option(
        "default",
        "--namespace",
        "-n",
        help="Target namespace.",
    ),
    delete: bool = typer.Option(
        False,
        "--delete",
        "-d",
        help="Remove instead of deploy.",
    ),
    file: Path | None = typer.Option(
        None,
        "--file",
        "-f",
        exists=True,
        dir_okay=False,
        help="Manifest for the custom operation.",
    ),
    user: str = typer.Option(
        "",
        "--user",
        "-u",
        help="User name rendered into sample application manifests.",
    ),
) -> None:
    """Apply an operation and report its outcome."""
    settings: SessionSettings = ctx.obj or SessionSettings()
    custom_body = file.read_text() if file is not None else ""

    try:
        config = load_config(settings.config_file)
        event = asyncio.run(
            run_operation(config, settings, op_name, namespace, delete, custom_body, user)
        )
    except (ConfigError, MeshAdapterError, KubernetesError, OSError) as e:
        logger.error("apply_failed", op_name=op_name, error=str(e))
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    if event is None:
        verb = "removed" if delete else "applied"
        console.print(f"[green]Manifest {verb} successfully[/green]")
        return

    console.print(event_panel(event))
    if event.event_type is EventType.ERROR:
        raise typer.Exit(code=1)
