"""Rendering of operation events."""

from __future__ import annotations

from rich.panel import Panel

from linkerd_adapter.services.mesh.events import Event, EventType

EVENT_STYLES = {
    EventType.INFO: "green",
    EventType.WARN: "yellow",
    EventType.ERROR: "red",
}


def event_style(event_type: EventType | str) -> str:
    """Rich style for an event severity."""
    try:
        return EVENT_STYLES[EventType(event_type)]
    except ValueError:
        return "white"


def event_panel(event: Event) -> Panel:
    """Panel titled with the event summary, holding its details."""
    style = event_style(event.event_type)
    return Panel(
        event.details.strip() or event.summary,
        title=f"[{style}]{event.summary}[/{style}]",
        subtitle=f"[dim]{event.operation_id}[/dim]",
        border_style=style,
    )
