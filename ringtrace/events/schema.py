"""
Raw Runtime Event Schema
Typed events reported by an instrumented process, one class per event kind.

Every event is delivered together with the id of the ring that produced it
and a timestamp in nanoseconds; those are not part of the event objects.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class Phase(str, Enum):
    """Begin/end marker for ring-level durations."""
    BEGIN = "begin"
    END = "end"


@dataclass(frozen=True)
class RawEvent:
    """Base class of all raw events."""


# ============================================================================
# Scheduling
# ============================================================================

@dataclass(frozen=True)
class Scheduled(RawEvent):
    """A fiber starts (or resumes) running on the ring."""
    fiber_id: int


@dataclass(frozen=True)
class FiberCreated(RawEvent):
    """A new fiber was created inside scope ``scope_id`` and runs immediately."""
    fiber_id: int
    scope_id: int


@dataclass(frozen=True)
class FiberExited(RawEvent):
    fiber_id: int


@dataclass(frozen=True)
class Suspending(RawEvent):
    """The running fiber blocks on ``operation``; the ring becomes idle."""
    operation: str


# ============================================================================
# Scopes, objects and spans
# ============================================================================

@dataclass(frozen=True)
class ScopeOpened(RawEvent):
    """A scope (cancellation / structured-concurrency context) was opened."""
    scope_id: int
    kind: str


@dataclass(frozen=True)
class ScopeClosed(RawEvent):
    pass


@dataclass(frozen=True)
class ObjectCreated(RawEvent):
    """Any other runtime object (promise, stream, mutex, ...)."""
    object_id: int
    kind: str


@dataclass(frozen=True)
class Named(RawEvent):
    object_id: int
    name: str


@dataclass(frozen=True)
class SpanEntered(RawEvent):
    name: str


@dataclass(frozen=True)
class SpanExited(RawEvent):
    pass


@dataclass(frozen=True)
class Logged(RawEvent):
    message: str


# ============================================================================
# Ring-level events
# ============================================================================

@dataclass(frozen=True)
class RingIdling(RawEvent):
    """The ring itself sleeps waiting for work."""
    phase: Phase


@dataclass(frozen=True)
class GcPhase(RawEvent):
    """A garbage-collector phase on the ring."""
    phase: Phase
    name: str


@dataclass(frozen=True)
class EventsLost(RawEvent):
    """The source could not retain ``count`` events of the ring."""
    count: int


@dataclass(frozen=True)
class UnknownEvent(RawEvent):
    """An event kind this version does not understand."""
    kind: str
    fields: Dict[str, Any] = field(default_factory=dict, compare=False)
