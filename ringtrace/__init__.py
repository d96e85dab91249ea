"""
ringtrace

Records the runtime events of an instrumented process (fiber scheduling,
suspensions, scopes, spans, GC phases) and writes them as a timeline trace
for the Perfetto UI.

Licensed under the MIT License.
"""

__version__ = "0.3.0"

from ringtrace.core.config import RecorderConfig, load_config
from ringtrace.core.errors import (
    ConfigError,
    CursorUnavailableError,
    EventDecodeError,
    RingtraceError,
    SpawnError,
    TraceWriterError,
)
from ringtrace.recorder import (
    EventTranslator,
    RecordingResult,
    RecordingSession,
    Registry,
    convert_events,
    record,
)
from ringtrace.trace import ChromeTraceWriter, TraceThread, TraceWriter, flat_id

__all__ = [
    # Config
    "RecorderConfig",
    "load_config",
    # Errors
    "RingtraceError",
    "ConfigError",
    "CursorUnavailableError",
    "EventDecodeError",
    "SpawnError",
    "TraceWriterError",
    # Recorder
    "EventTranslator",
    "Registry",
    "RecordingSession",
    "RecordingResult",
    "record",
    "convert_events",
    # Trace
    "TraceWriter",
    "ChromeTraceWriter",
    "TraceThread",
    "flat_id",
    # Version
    "__version__",
]
