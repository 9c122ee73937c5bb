"""Event dispatcher: classifies stream frames into session events.

Framing is shared by every stream; what differs between the warm-up and
refinement streams is only how a frame maps to a ``SessionEvent``. That
mapping is a plain function (``FrameMapper``) handed to the dispatcher.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, Optional

from specforge.exceptions import PayloadError
from specforge.streaming.events import Done, Error, Progress, SessionEvent, Success
from specforge.streaming.frames import DONE_EVENT, ERROR_EVENT, StreamFrame

FrameMapper = Callable[[StreamFrame], Optional[SessionEvent]]  # noqa: UP007

logger = logging.getLogger(__name__)

# Refinement envelope types with dedicated handling
REFINEMENT_SUCCESS = "SUCCESS"
REFINEMENT_ERROR = "ERROR"


def _decode_json(data: str) -> Any:
    """Decode a frame payload, raising PayloadError on invalid JSON."""
    try:
        return json.loads(data)
    except (json.JSONDecodeError, TypeError) as e:
        raise PayloadError(f"Invalid JSON payload: {e}", data=data) from e


def _is_retryable(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    return bool(payload.get("retryable") or payload.get("retry"))


def _error_from_frame(frame: StreamFrame) -> Error:
    """Build an Error from an ``error`` frame.

    The message is the raw data unless the data is a JSON object with a
    ``message`` field.
    """
    try:
        payload = _decode_json(frame.data)
    except PayloadError:
        return Error(message=frame.data)

    if isinstance(payload, dict):
        message = payload.get("message")
        return Error(
            message=message if isinstance(message, str) else frame.data,
            retryable=_is_retryable(payload),
        )
    return Error(message=frame.data)


def _control_event(frame: StreamFrame) -> SessionEvent | None:
    if frame.event == DONE_EVENT:
        return Done()
    if frame.event == ERROR_EVENT:
        return _error_from_frame(frame)
    return None


def _derive_message(payload: Any, raw: str) -> str:
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str):
            return message
    elif isinstance(payload, str):
        return payload
    return raw


def classify_frame(frame: StreamFrame) -> SessionEvent | None:
    """Default frame mapper.

    - ``done`` frames become ``Done``.
    - ``error`` frames become ``Error`` (retryable when the JSON payload
      says ``retryable``/``retry``).
    - Other frames are decoded as JSON: an object with an ``artifact``
      field is a ``Success``, anything else a ``Progress``. Payloads that
      are not JSON become a ``Progress`` carrying the raw text.
    """
    control = _control_event(frame)
    if control is not None:
        return control

    try:
        payload = _decode_json(frame.data)
    except PayloadError:
        logger.debug("Non-JSON payload, treating as progress text: %s", frame.data[:200])
        return Progress(message=frame.data)

    if isinstance(payload, dict) and "artifact" in payload:
        return Success(artifact=payload["artifact"], evaluation=payload.get("evaluation"))

    return Progress(message=_derive_message(payload, frame.data))


def warmup_mapper(frame: StreamFrame) -> SessionEvent | None:
    """Mapper for the model warm-up stream.

    Message frames carry raw generated text, shown verbatim.
    """
    control = _control_event(frame)
    if control is not None:
        return control
    return Progress(message=frame.data)


def refinement_mapper(frame: StreamFrame) -> SessionEvent | None:
    """Mapper for the AI refinement stream.

    Message frames carry ``{"type", "message", "payload"}`` envelopes.
    ``SUCCESS`` with an artifact ends the session successfully, ``ERROR``
    is fatal unless ``payload.retry`` is set, and every other type
    (INFO, ITERATION_START, STEP, ...) is a progress line.
    """
    control = _control_event(frame)
    if control is not None:
        return control

    try:
        envelope = _decode_json(frame.data)
    except PayloadError:
        logger.debug("Non-JSON refinement payload: %s", frame.data[:200])
        return Progress(message=frame.data)

    if not isinstance(envelope, dict) or "type" not in envelope:
        return classify_frame(frame)

    event_type = str(envelope.get("type", "")).upper()
    message = envelope.get("message")
    if not isinstance(message, str):
        message = frame.data
    payload = envelope.get("payload") or {}

    if event_type == REFINEMENT_SUCCESS and isinstance(payload, dict) and "artifact" in payload:
        return Success(artifact=payload["artifact"], evaluation=payload.get("evaluation"))

    if event_type == REFINEMENT_ERROR:
        return Error(message=message, retryable=_is_retryable(payload))

    return Progress(message=message)


class EventDispatcher:
    """Turn frames into events, delivering at most one terminal event.

    Once a terminal event (``Done`` or a non-retryable ``Error``) has been
    returned, every later frame is ignored.
    """

    def __init__(self, mapper: FrameMapper = classify_frame) -> None:
        self._mapper = mapper
        self._terminated = False

    @property
    def terminated(self) -> bool:
        return self._terminated

    def dispatch(self, frame: StreamFrame) -> SessionEvent | None:
        """Classify a frame.

        Returns:
            The session event, or None when the frame carries nothing
            (keep-alive, mapper declined it) or arrives after termination.
        """
        if self._terminated:
            logger.debug("Ignoring %s frame after terminal event", frame.event)
            return None
        if frame.is_keepalive:
            return None

        event = self._mapper(frame)
        if event is not None and event.is_terminal:
            self._terminated = True
        return event


__all__ = [
    "EventDispatcher",
    "FrameMapper",
    "classify_frame",
    "refinement_mapper",
    "warmup_mapper",
]
