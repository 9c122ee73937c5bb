"""CLI entry point.

Provides the main CLI application with commands for:
- warmup: Stream the LLM warm-up log
- refine: Start an AI refinement session and follow it
- watch: Follow an existing refinement session
"""

import asyncio
import json
from typing import Annotated, Any, Optional

import typer
from rich.panel import Panel

from specforge.cli.utils import build_fetcher, console
from specforge.logging_config import configure_logging
from specforge.streaming.session import SessionSnapshot, SessionStatus

app = typer.Typer(
    name="specforge",
    help="Follow SpecForge warm-up and AI refinement streams",
    add_completion=False,
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logs"),
    ] = False,
) -> None:
    """SpecForge streaming client."""
    configure_logging("DEBUG" if verbose else None)


def _exit_for(snapshot: SessionSnapshot | None) -> None:
    if snapshot is None or snapshot.status is not SessionStatus.SUCCEEDED:
        raise typer.Exit(code=1)


@app.command()
def warmup() -> None:
    """Warm up the configured LLM provider and stream its output."""
    snapshot = asyncio.run(_run_warmup())
    _exit_for(snapshot)


async def _run_warmup() -> SessionSnapshot | None:
    from specforge.cli.commands.stream import follow, print_summary
    from specforge.settings import get_settings
    from specforge.warmup import start_warmup, warmup_controller

    settings = get_settings()
    controller = warmup_controller(build_fetcher(settings), settings.api_base_url)

    console.print(
        Panel(
            f"[bold blue]LLM Warm-up[/bold blue]\nAPI: {settings.api_base_url}",
            title="🔥 Warm-up",
            border_style="blue",
        )
    )

    await start_warmup(controller)
    snapshot = await follow(controller, label="Warming up")
    if snapshot is not None:
        print_summary(snapshot, title="Warm-up")
    return snapshot


@app.command()
def refine(
    artifact_type: Annotated[
        str,
        typer.Option("--artifact-type", "-a", help="Artifact type (e.g. 'roadmap_item')"),
    ],
    target_type: Annotated[
        str,
        typer.Option("--target-type", "-t", help="Target type (e.g. 'contract', 'requirement')"),
    ],
    prompt: Annotated[
        str,
        typer.Option("--prompt", "-p", help="Refinement instructions"),
    ],
    context: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--context", "-c", help="Context data as a JSON object"),
    ] = None,
    max_iterations: Annotated[
        int,
        typer.Option("--max-iterations", "-n", help="Maximum refinement iterations", min=1),
    ] = 3,
) -> None:
    """Start an AI refinement session and follow its progress."""
    context_data = None
    if context:
        try:
            context_data = json.loads(context)
        except json.JSONDecodeError as e:
            console.print(f"[red]Invalid --context JSON: {e}[/red]")
            raise typer.Exit(code=2) from e

    snapshot = asyncio.run(
        _run_refine(artifact_type, target_type, prompt, context_data, max_iterations)
    )
    _exit_for(snapshot)


async def _run_refine(
    artifact_type: str,
    target_type: str,
    prompt: str,
    context_data: dict[str, Any] | None,
    max_iterations: int,
) -> SessionSnapshot | None:
    from specforge.exceptions import RefinementError
    from specforge.refinement import RefinementClient
    from specforge.settings import get_settings, settings_token_getter

    settings = get_settings()
    client = RefinementClient(
        settings.api_base_url,
        settings_token_getter(settings),
        timeout=settings.http_timeout,
    )

    try:
        created = await client.start_session(
            artifact_type, target_type, prompt, context_data, max_iterations
        )
    except RefinementError as e:
        console.print(f"[red]Failed to start refinement session: {e}[/red]")
        return None

    console.print(
        Panel(
            f"[bold blue]Refinement Session[/bold blue]\n"
            f"ID: {created['id']}\n"
            f"Artifact: {artifact_type} → {target_type}\n"
            f"Max iterations: {max_iterations}",
            title="🧪 Refinement",
            border_style="blue",
        )
    )
    return await _follow_refinement(str(created["id"]))


@app.command()
def watch(
    session_id: Annotated[str, typer.Argument(help="Refinement session ID")],
) -> None:
    """Follow an existing refinement session."""
    snapshot = asyncio.run(_follow_refinement(session_id))
    _exit_for(snapshot)


async def _follow_refinement(session_id: str) -> SessionSnapshot | None:
    from specforge.cli.commands.stream import follow, print_summary
    from specforge.refinement import refinement_controller, stream_refinement
    from specforge.settings import get_settings

    settings = get_settings()
    controller = refinement_controller(build_fetcher(settings), settings.api_base_url)

    await stream_refinement(controller, session_id)
    snapshot = await follow(controller, label="Refining")
    if snapshot is not None:
        print_summary(snapshot, title="Refinement")
    return snapshot


# Entry point for: python -m specforge.cli.main
if __name__ == "__main__":
    app()
