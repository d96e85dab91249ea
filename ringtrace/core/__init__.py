"""
ringtrace Core Module - configuration, errors, and utilities.
"""

from ringtrace.core.config import RecorderConfig, load_config
from ringtrace.core.errors import (
    ConfigError,
    CursorUnavailableError,
    EventDecodeError,
    RingtraceError,
    SpawnError,
    TraceWriterError,
)

__all__ = [
    "RecorderConfig",
    "load_config",
    "RingtraceError",
    "ConfigError",
    "CursorUnavailableError",
    "EventDecodeError",
    "SpawnError",
    "TraceWriterError",
]
