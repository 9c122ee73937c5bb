"""AI refinement sessions.

A refinement session is created with a REST call, then observed through
its event stream. The stream carries ``RefinementEvent`` envelopes::

    {"type": "ITERATION_START", "message": "Starting iteration 1/3"}
    {"type": "ERROR", "message": "LLM generation failed", "payload": {"retry": true}}
    {"type": "SUCCESS", "message": "Validation passed!",
     "payload": {"artifact": {...}, "evaluation": {...}}}
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from specforge.exceptions import RefinementError
from specforge.streaming.controller import StreamSessionController
from specforge.streaming.dispatcher import refinement_mapper
from specforge.streaming.endpoints import REFINEMENT_PATH, join_url, refinement_events_path

if TYPE_CHECKING:
    from collections.abc import Callable

    from specforge.streaming.fetcher import StreamFetcher
    from specforge.streaming.session import StreamSession

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30.0


class RefinementClient:
    """Creates refinement sessions on the backend.

    Args:
        base_url: API base URL.
        token_getter: Returns the current bearer token, or None.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        base_url: str,
        token_getter: Callable[[], str | None],
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token_getter = token_getter
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self._token_getter()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def start_session(
        self,
        artifact_type: str,
        target_type: str,
        prompt: str,
        context_data: Any = None,
        max_iterations: int = 3,
    ) -> dict[str, Any]:
        """Create a refinement session.

        Returns:
            The session resource; its ``id`` identifies the event stream.

        Raises:
            RefinementError: On transport failure, non-2xx status, an
                invalid body, or a response without a session id.
        """
        payload = {
            "artifact_type": artifact_type,
            "target_type": target_type,
            "prompt": prompt,
            "context_data": context_data,
            "max_iterations": max_iterations,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    join_url(self.base_url, REFINEMENT_PATH),
                    json=payload,
                    headers=self._headers(),
                )
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RefinementError(
                f"HTTP {e.response.status_code}: {e}",
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise RefinementError(f"Timeout after {self.timeout}s: {e}") from e
        except httpx.HTTPError as e:
            raise RefinementError(f"Request failed: {e}") from e

        try:
            body = resp.json()
        except ValueError as e:
            raise RefinementError(f"Invalid JSON response: {e}") from e

        if not isinstance(body, dict) or not body.get("id"):
            raise RefinementError("Session ID is missing from response")

        logger.info("Created refinement session %s", body["id"])
        return body


def refinement_controller(fetcher: StreamFetcher, base_url: str) -> StreamSessionController:
    """Controller for the refinement progress panel."""
    return StreamSessionController(fetcher, base_url, refinement_mapper)


async def stream_refinement(
    controller: StreamSessionController,
    session_id: str,
) -> StreamSession:
    """Attach the controller to a refinement session's event stream."""
    return await controller.start_session(
        refinement_events_path(session_id),
        session_id=str(session_id),
    )
