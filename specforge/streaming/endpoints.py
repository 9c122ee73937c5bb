"""Endpoint resolvers for the streaming features.

Paths are relative to the API base URL (``Settings.api_base_url``).
"""

from urllib.parse import quote

WARMUP_PATH = "/settings/llm/warmup"
REFINEMENT_PATH = "/refinement"


def warmup_path() -> str:
    """Path of the LLM warm-up stream."""
    return WARMUP_PATH


def refinement_events_path(session_id: str) -> str:
    """Path of a refinement session's event stream."""
    return f"{REFINEMENT_PATH}/{quote(str(session_id), safe='')}/events"


def join_url(base_url: str, path: str) -> str:
    """Join a base URL and a relative path with exactly one slash."""
    if not path:
        return base_url.rstrip("/")
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"
