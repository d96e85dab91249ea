"""
ringtrace Recorder Module - ring/fiber registry, event translation, and recording sessions.
"""

from ringtrace.recorder.registry import Fiber, Registry, Ring
from ringtrace.recorder.translator import EventTranslator
from ringtrace.recorder.session import (
    RecordingResult,
    RecordingSession,
    SessionState,
    convert_events,
    record,
)

__all__ = [
    "Fiber",
    "Ring",
    "Registry",
    "EventTranslator",
    "RecordingResult",
    "RecordingSession",
    "SessionState",
    "convert_events",
    "record",
]
