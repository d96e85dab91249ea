"""
ringtrace Trace Module - thread ids, trace writers, and viewer hand-off.
"""

from ringtrace.trace.ids import (
    IdSpace,
    Pointer,
    TraceThread,
    fiber_koid,
    fiber_thread,
    flat_id,
    ring_koid,
    ring_thread,
)
from ringtrace.trace.writer import ChromeTraceWriter, TraceEvent, TraceEventPhase, TraceWriter
from ringtrace.trace.viewer import make_viewer, open_in_perfetto

__all__ = [
    "IdSpace",
    "Pointer",
    "TraceThread",
    "flat_id",
    "ring_koid",
    "fiber_koid",
    "ring_thread",
    "fiber_thread",
    "TraceWriter",
    "ChromeTraceWriter",
    "TraceEvent",
    "TraceEventPhase",
    "make_viewer",
    "open_in_perfetto",
]
