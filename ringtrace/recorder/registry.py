"""
Ring and fiber bookkeeping for one recording session.

Records are created on first reference and kept until the session ends.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class Fiber:
    """One cooperatively scheduled task."""
    fiber_id: int
    pending_operation: Optional[str] = None  # Set while suspended
    registered: bool = False  # Trace thread emitted


@dataclass
class Ring:
    """One execution context that fibers are scheduled onto."""
    ring_id: int
    current_fiber: Optional[Fiber] = None  # None while idle


@dataclass
class Registry:
    """All rings and fibers seen so far, keyed by their ids."""
    rings: Dict[int, Ring] = field(default_factory=dict)
    fibers: Dict[int, Fiber] = field(default_factory=dict)

    def has_ring(self, ring_id: int) -> bool:
        return ring_id in self.rings

    def ring(self, ring_id: int) -> Ring:
        """Get or create the ring record for ``ring_id``."""
        ring = self.rings.get(ring_id)
        if ring is None:
            ring = Ring(ring_id)
            self.rings[ring_id] = ring
        return ring

    def fiber(self, fiber_id: int) -> Fiber:
        """Get or create the fiber record for ``fiber_id``."""
        fiber = self.fibers.get(fiber_id)
        if fiber is None:
            fiber = Fiber(fiber_id)
            self.fibers[fiber_id] = fiber
        return fiber

    def summary(self) -> Dict[str, int]:
        return {
            "rings": len(self.rings),
            "fibers": len(self.fibers),
            "registered_fibers": sum(1 for f in self.fibers.values() if f.registered),
            "suspended_fibers": sum(1 for f in self.fibers.values() if f.pending_operation),
        }
