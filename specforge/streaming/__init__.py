"""Streaming session client.

Fetcher -> parser -> dispatcher -> session state machine, shared by the
model warm-up and AI refinement streams.
"""

from specforge.streaming.controller import StreamSessionController
from specforge.streaming.dispatcher import (
    EventDispatcher,
    FrameMapper,
    classify_frame,
    refinement_mapper,
    warmup_mapper,
)
from specforge.streaming.events import Done, Error, Progress, SessionEvent, Success
from specforge.streaming.fetcher import ByteStream, HttpStreamFetcher, StreamFetcher
from specforge.streaming.frames import StreamFrame
from specforge.streaming.parser import FrameParser, parse_frames
from specforge.streaming.session import SessionSnapshot, SessionStatus, StreamSession

__all__ = [
    "ByteStream",
    "Done",
    "Error",
    "EventDispatcher",
    "FrameMapper",
    "FrameParser",
    "HttpStreamFetcher",
    "Progress",
    "SessionEvent",
    "SessionSnapshot",
    "SessionStatus",
    "StreamFetcher",
    "StreamFrame",
    "StreamSession",
    "StreamSessionController",
    "Success",
    "classify_frame",
    "parse_frames",
    "refinement_mapper",
    "warmup_mapper",
]
