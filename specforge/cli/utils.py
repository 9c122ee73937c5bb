"""Shared CLI helpers."""

from __future__ import annotations

from rich.console import Console

from specforge.settings import Settings, get_settings, settings_token_getter
from specforge.streaming.fetcher import HttpStreamFetcher

console = Console()


def build_fetcher(settings: Settings | None = None) -> HttpStreamFetcher:
    """Create a stream fetcher authenticated with the configured token."""
    settings = settings or get_settings()
    return HttpStreamFetcher(
        settings_token_getter(settings),
        connect_timeout=settings.stream_connect_timeout,
    )
