"""LLM warm-up stream wiring.

The backend streams the raw text of a short test generation, then
``event: done`` (or ``event: error`` when the provider fails).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from specforge.streaming.controller import StreamSessionController
from specforge.streaming.dispatcher import warmup_mapper
from specforge.streaming.endpoints import warmup_path

if TYPE_CHECKING:
    from specforge.streaming.fetcher import StreamFetcher
    from specforge.streaming.session import StreamSession

WARMUP_PREAMBLE = (
    "Starting warmup sequence...",
    "Connecting to LLM provider...",
)


def warmup_controller(fetcher: StreamFetcher, base_url: str) -> StreamSessionController:
    """Controller for the warm-up console."""
    return StreamSessionController(
        fetcher,
        base_url,
        warmup_mapper,
        initial_log=WARMUP_PREAMBLE,
    )


async def start_warmup(controller: StreamSessionController) -> StreamSession:
    """Start (or restart) the warm-up stream."""
    return await controller.start_session(warmup_path())
