"""CLI output helpers."""

from linkerd_adapter.cli.output.events import event_panel, event_style
from linkerd_adapter.cli.output.table import Table

__all__ = ["Table", "event_panel", "event_style"]
