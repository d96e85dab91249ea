"""
Trace thread identifiers.

Ring ids and fiber ids are numbered independently, but the trace format has a
single flat thread id space. The two low bits of a flat id say which space it
came from, so a ring and a fiber with the same number never collide. Adding a
third id space requires widening the shift.
"""

from enum import IntEnum
from typing import NamedTuple

ID_SHIFT = 2


class IdSpace(IntEnum):
    """Low-bit tag of each id space."""
    RING = 1
    FIBER = 2


def flat_id(n: int, space: IdSpace) -> int:
    """Map id ``n`` of ``space`` into the flat trace thread id space."""
    return (n << ID_SHIFT) | int(space)


def ring_koid(ring_id: int) -> int:
    return flat_id(ring_id, IdSpace.RING)


def fiber_koid(fiber_id: int) -> int:
    return flat_id(fiber_id, IdSpace.FIBER)


class TraceThread(NamedTuple):
    """Logical location of a trace record: (process id, flat thread id)."""
    pid: int
    tid: int


def ring_thread(pid: int, ring_id: int) -> TraceThread:
    return TraceThread(pid, ring_koid(ring_id))


def fiber_thread(pid: int, fiber_id: int) -> TraceThread:
    return TraceThread(pid, fiber_koid(fiber_id))


class Pointer(int):
    """An integer argument that identifies an object rather than counting something."""

    def __repr__(self) -> str:
        return f"Pointer({hex(self)})"
