"""
Event Translator
Turns the raw runtime events of a traced process into trace records.

Records are placed on the thread of the fiber currently running on the
ring, or on the ring's own thread while it has no fiber. Ring idling and GC
phases always stay on the ring's thread. A fiber gets its trace thread only
when its creation is seen; scheduling a fiber merely bookkeeps it.
"""

import logging
from typing import Callable, Dict, Optional, Type

from ringtrace.events.schema import (
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
)
from ringtrace.events.source import EventCallbacks
from ringtrace.recorder.registry import Fiber, Registry, Ring
from ringtrace.trace.ids import Pointer, TraceThread, fiber_thread, ring_thread
from ringtrace.trace.writer import TraceWriter

logger = logging.getLogger(__name__)

# Trace categories
CATEGORY_RUNTIME = "runtime"
CATEGORY_SUSPEND = "suspend"
CATEGORY_SPAN = "span"
CATEGORY_GC = "gc"

SCOPE_SPAN_NAME = "cc"
RING_IDLE_SPAN_NAME = "suspend-domain"


class _Context:
    """Per-event view: the ring, its clock and the thread records go to."""

    __slots__ = ("ring", "ts", "thread")

    def __init__(self, ring: Ring, ts: int, thread: TraceThread):
        self.ring = ring
        self.ts = ts
        self.thread = thread


class EventTranslator:
    """
    Stateful translation of raw events into trace writer calls.

    Not thread-safe: one translator is driven by a single polling thread.
    """

    def __init__(self, writer: TraceWriter, pid: int, registry: Optional[Registry] = None):
        self.writer = writer
        self.pid = pid
        self.registry = registry if registry is not None else Registry()

        self.events_handled = 0
        self.events_ignored = 0
        self.events_lost = 0

        self._handlers: Dict[Type[RawEvent], Callable[[_Context, RawEvent], None]] = {
            Scheduled: self._on_scheduled,
            FiberCreated: self._on_fiber_created,
            ScopeOpened: self._on_scope_opened,
            ObjectCreated: self._on_object_created,
            FiberExited: self._on_fiber_exited,
            Named: self._on_named,
            Suspending: self._on_suspending,
            SpanEntered: self._on_span_entered,
            SpanExited: self._on_span_exited,
            ScopeClosed: self._on_scope_closed,
            Logged: self._on_logged,
            RingIdling: self._on_ring_idling,
            GcPhase: self._on_gc_phase,
        }

    @property
    def events_seen(self) -> int:
        """Events delivered to the translator, lost-event reports excluded."""
        return self.events_handled + self.events_ignored

    def callbacks(self) -> EventCallbacks:
        return EventCallbacks(on_event=self.handle, on_lost=self.lost_events)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def handle(self, ring_id: int, ts: int, event: RawEvent) -> None:
        """Translate one event observed on ring ``ring_id`` at ``ts`` (ns)."""
        ring = self._ring(ring_id)

        current = ring.current_fiber
        if current is not None:
            thread = fiber_thread(self.pid, current.fiber_id)
        else:
            thread = ring_thread(self.pid, ring_id)

        handler = self._handlers.get(type(event))
        if handler is None:
            self.events_ignored += 1
            logger.debug(f"Ignoring {type(event).__name__} on ring {ring_id}")
            return

        handler(_Context(ring, ts, thread), event)
        self.events_handled += 1

    def lost_events(self, ring_id: int, count: int) -> None:
        self.events_lost += count
        logger.warning(f"Ring {ring_id} lost {count} events")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _ring(self, ring_id: int) -> Ring:
        if self.registry.has_ring(ring_id):
            return self.registry.ring(ring_id)

        self.writer.register_thread(
            ring_thread(self.pid, ring_id),
            f"ring{ring_id}",
            args={"process": Pointer(self.pid)},
        )
        logger.debug(f"New ring {ring_id}")
        return self.registry.ring(ring_id)

    def _register_fiber(self, fiber: Fiber) -> None:
        if fiber.registered:
            return
        self.writer.register_thread(
            fiber_thread(self.pid, fiber.fiber_id),
            f"fiber{fiber.fiber_id}",
            args={"process": Pointer(self.pid)},
        )
        fiber.registered = True

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _on_scheduled(self, ctx: _Context, event: Scheduled) -> None:
        fiber = self.registry.fiber(event.fiber_id)
        ctx.ring.current_fiber = fiber
        own_thread = fiber_thread(self.pid, fiber.fiber_id)

        self.writer.wakeup(ctx.ring.ring_id, ctx.ts, own_thread)

        if fiber.pending_operation is not None:
            self.writer.duration_end(
                own_thread, fiber.pending_operation, CATEGORY_SUSPEND, ctx.ts
            )
            fiber.pending_operation = None

    def _on_fiber_created(self, ctx: _Context, event: FiberCreated) -> None:
        fiber = self.registry.fiber(event.fiber_id)
        self._register_fiber(fiber)
        ctx.ring.current_fiber = fiber

        self.writer.instant_event(
            fiber_thread(self.pid, fiber.fiber_id),
            "create-fiber",
            CATEGORY_RUNTIME,
            ctx.ts,
            args={"id": Pointer(event.fiber_id), "cc": Pointer(event.scope_id)},
        )

    def _on_fiber_exited(self, ctx: _Context, event: FiberExited) -> None:
        self.writer.instant_event(
            ctx.thread, "exit-fiber", CATEGORY_RUNTIME, ctx.ts,
            args={"id": Pointer(event.fiber_id)},
        )

    def _on_suspending(self, ctx: _Context, event: Suspending) -> None:
        current = ctx.ring.current_fiber
        if current is not None:
            current.pending_operation = event.operation
        self.writer.duration_begin(ctx.thread, event.operation, CATEGORY_SUSPEND, ctx.ts)
        ctx.ring.current_fiber = None

    # ------------------------------------------------------------------
    # Scopes, objects, spans, logs
    # ------------------------------------------------------------------

    def _on_scope_opened(self, ctx: _Context, event: ScopeOpened) -> None:
        self.writer.duration_begin(
            ctx.thread, SCOPE_SPAN_NAME, CATEGORY_RUNTIME, ctx.ts,
            args={
                "id": Pointer(event.scope_id),
                "kind": event.kind,
                "ring": ctx.ring.ring_id,
            },
        )

    def _on_scope_closed(self, ctx: _Context, event: ScopeClosed) -> None:
        self.writer.duration_end(ctx.thread, SCOPE_SPAN_NAME, CATEGORY_RUNTIME, ctx.ts)

    def _on_object_created(self, ctx: _Context, event: ObjectCreated) -> None:
        # Reserved: plain objects only become visible once named
        pass

    def _on_named(self, ctx: _Context, event: Named) -> None:
        self.writer.name_object(ctx.thread, event.name, event.object_id, ctx.ts)

    def _on_span_entered(self, ctx: _Context, event: SpanEntered) -> None:
        self.writer.duration_begin(ctx.thread, event.name, CATEGORY_SPAN, ctx.ts)

    def _on_span_exited(self, ctx: _Context, event: SpanExited) -> None:
        # The viewer pairs ends with begins per thread
        self.writer.duration_end(ctx.thread, "", CATEGORY_SPAN, ctx.ts)

    def _on_logged(self, ctx: _Context, event: Logged) -> None:
        self.writer.instant_event(
            ctx.thread, "log", CATEGORY_RUNTIME, ctx.ts,
            args={"message": event.message},
        )

    # ------------------------------------------------------------------
    # Ring-level events
    # ------------------------------------------------------------------

    def _on_ring_idling(self, ctx: _Context, event: RingIdling) -> None:
        thread = ring_thread(self.pid, ctx.ring.ring_id)
        if event.phase is Phase.BEGIN:
            self.writer.duration_begin(thread, RING_IDLE_SPAN_NAME, CATEGORY_RUNTIME, ctx.ts)
        else:
            self.writer.duration_end(thread, RING_IDLE_SPAN_NAME, CATEGORY_RUNTIME, ctx.ts)

    def _on_gc_phase(self, ctx: _Context, event: GcPhase) -> None:
        thread = ring_thread(self.pid, ctx.ring.ring_id)
        if event.phase is Phase.BEGIN:
            self.writer.duration_begin(thread, event.name, CATEGORY_GC, ctx.ts)
        else:
            self.writer.duration_end(thread, event.name, CATEGORY_GC, ctx.ts)
