"""CLI application setup using Typer.

Provides the command-line interface for SpecForge streaming sessions.
"""

from specforge.cli.main import app

__all__ = ["app"]
