"""
ringtrace error hierarchy.

Transient conditions (cursor not ready yet) are marked ``retryable`` and are
handled where they occur; everything else aborts the recording session.
"""

from typing import Any, Dict, Optional


class RingtraceError(Exception):
    """Base error for all ringtrace exceptions."""

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.details: Dict[str, Any] = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r}, retryable={self.retryable!r})"


class ConfigError(RingtraceError, ValueError):
    """Invalid recorder configuration."""


class CursorUnavailableError(RingtraceError):
    """The event buffers of the traced process do not exist (yet)."""

    def __init__(self, message: str, *, path: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, retryable=True, **kwargs)
        self.path = path


class EventDecodeError(RingtraceError):
    """A raw event record could not be decoded."""


class TraceWriterError(RingtraceError):
    """The trace output could not be written."""


class SpawnError(RingtraceError):
    """The instrumented child process could not be started."""

    def __init__(self, message: str, *, argv: Optional[list] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.argv = list(argv or [])
