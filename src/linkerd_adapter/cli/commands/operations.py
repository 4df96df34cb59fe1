"""Commands describing what the adapter can do."""

from __future__ import annotations

import structlog
from rich.console import Console

from linkerd_adapter.cli.output import Table
from linkerd_adapter.services.mesh.adapter import LinkerdAdapter
from linkerd_adapter.services.mesh.operations import MESH_NAME, SUPPORTED_OPERATIONS

console = Console()
logger = structlog.get_logger()


def operations() -> None:
    """List the operations the adapter supports."""
    table = Table(title=f"{MESH_NAME} Adapter Operations")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Category", style="magenta")
    table.add_column("Mode", style="dim")

    for op in SUPPORTED_OPERATIONS.values():
        table.add_row(
            op.key,
            op.display_name,
            op.category.value,
            "background" if op.is_async else "synchronous",
        )

    console.print(table)
    logger.debug("listed_operations", count=len(SUPPORTED_OPERATIONS))


def mesh_name() -> None:
    """Print the name of the mesh this adapter manages."""
    console.print(LinkerdAdapter().mesh_name())
