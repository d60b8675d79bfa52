"""Streaming delivery: paced display on the UI side, production on the host side."""

from .producer import PostMessage, StreamOutcome, StreamProducer
from .registry import StreamingSessions
from .session import (
    StreamingPolicy,
    StreamingSession,
    StreamingSnapshot,
    StreamState,
    TimerScheduler,
)

__all__ = [
    "PostMessage",
    "StreamOutcome",
    "StreamProducer",
    "StreamState",
    "StreamingPolicy",
    "StreamingSession",
    "StreamingSessions",
    "StreamingSnapshot",
    "TimerScheduler",
]
