"""Render a stream session to the terminal."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from rich.markup import escape
from rich.panel import Panel

from specforge.cli.utils import console
from specforge.streaming.events import Error, Progress
from specforge.streaming.session import SessionStatus

if TYPE_CHECKING:
    from specforge.streaming.controller import StreamSessionController
    from specforge.streaming.events import SessionEvent
    from specforge.streaming.session import SessionSnapshot


_STATUS_STYLES = {
    SessionStatus.SUCCEEDED: ("green", "✅ Succeeded"),
    SessionStatus.FAILED: ("red", "❌ Failed"),
    SessionStatus.CANCELLED: ("yellow", "⏹ Cancelled"),
}


def print_event(event: SessionEvent) -> None:
    """Append one event to the console log."""
    if isinstance(event, Progress):
        console.print(f"[dim]>[/dim] {escape(event.message)}")
    elif isinstance(event, Error) and event.retryable:
        console.print(f"[yellow]Warning: {escape(event.message)}[/yellow]")


def print_summary(snapshot: SessionSnapshot, *, title: str) -> None:
    """Print the final status panel, including the result if any."""
    color, label = _STATUS_STYLES.get(snapshot.status, ("white", snapshot.status.value))
    lines = [f"[bold {color}]{label}[/bold {color}]", f"Session: {snapshot.id}"]
    if snapshot.last_error:
        lines.append(f"[red]Error: {escape(snapshot.last_error)}[/red]")
    console.print(Panel("\n".join(lines), title=title, border_style=color))

    if snapshot.result is not None:
        console.print("\n[bold]Result:[/bold]")
        console.print_json(json.dumps(snapshot.result, default=str))
    if snapshot.evaluation is not None:
        console.print("\n[bold]Self-evaluation:[/bold]")
        console.print_json(json.dumps(snapshot.evaluation, default=str))


async def follow(controller: StreamSessionController, *, label: str) -> SessionSnapshot | None:
    """Stream the controller's current session to the console until it ends.

    The session log is printed append-only; a spinner runs while waiting.
    Ctrl-C cancels the session and releases its connection.
    """
    session = controller.current
    if session is None:
        return None

    for line in session.log:
        console.print(f"[dim]>[/dim] {escape(line)}")

    unsubscribe = controller.on_event(print_event)
    try:
        with console.status(f"[bold blue]{label}...[/bold blue]"):
            return await controller.wait()
    finally:
        unsubscribe()
        await controller.cancel()
