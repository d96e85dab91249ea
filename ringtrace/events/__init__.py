"""
ringtrace Events Module - raw runtime events and the cursor that reads them.
"""

from ringtrace.events.schema import (
    EventsLost,
    FiberCreated,
    FiberExited,
    GcPhase,
    Logged,
    Named,
    ObjectCreated,
    Phase,
    RawEvent,
    RingIdling,
    Scheduled,
    ScopeClosed,
    ScopeOpened,
    SpanEntered,
    SpanExited,
    Suspending,
    UnknownEvent,
)
from ringtrace.events.source import (
    EventCallbacks,
    EventCursor,
    FileEventCursor,
    child_environment,
    decode_event,
    events_path,
    instrumentation_env,
    open_cursor,
)

__all__ = [
    "RawEvent",
    "Phase",
    "Scheduled",
    "FiberCreated",
    "FiberExited",
    "Suspending",
    "ScopeOpened",
    "ScopeClosed",
    "ObjectCreated",
    "Named",
    "SpanEntered",
    "SpanExited",
    "Logged",
    "RingIdling",
    "GcPhase",
    "EventsLost",
    "UnknownEvent",
    "EventCallbacks",
    "EventCursor",
    "FileEventCursor",
    "child_environment",
    "decode_event",
    "events_path",
    "instrumentation_env",
    "open_cursor",
]
