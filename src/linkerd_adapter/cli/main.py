"""Main CLI entry point using Typer."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from linkerd_adapter import __version__
from linkerd_adapter.cli.commands import apply, operations
from linkerd_adapter.logging.config import configure_logging

app = typer.Typer(
    name="linkerd-adapter",
    help="Manage the Linkerd service mesh and its sample applications.",
    add_completion=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"linkerd-adapter version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode.",
    ),
    log_json: bool = typer.Option(
        False,
        "--log-json",
        help="Render console log lines as JSON.",
    ),
    kubeconfig: Path | None = typer.Option(
        None,
        "--kubeconfig",
        envvar="LINKERD_ADAPTER_KUBECONFIG",
        help="Kubeconfig file handed to the session.",
    ),
    context: str = typer.Option(
        "",
        "--context",
        envvar="LINKERD_ADAPTER_CONTEXT",
        help="Kubeconfig context name.",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config",
        help="Adapter configuration file.",
    ),
) -> None:
    """Linkerd adapter - deploy the mesh and sample apps onto a cluster."""
    configure_logging(verbose=verbose, debug=debug, json_output=log_json)
    ctx.obj = apply.SessionSettings(
        kubeconfig=kubeconfig,
        context=context,
        config_file=config_file,
    )


app.command()(operations.operations)
app.command("mesh-name")(operations.mesh_name)
app.command()(apply.apply)


if __name__ == "__main__":
    app()
