# src/hcspec/physics/events.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .tracks import Track
from ..geometry.hodoscope import HodoscopeEvent, HodoscopeGeometry

@dataclass(slots=True)
class SpectrometerEvent:
    """
    One triggered event: the track finder's candidates plus hodoscope hits.

    tracks keeps upstream order (geometric-match order); it is annotated
    in place by target reconstruction but never reordered here.
    hodo_hits maps hodoscope plane -> 0-based paddles with a good hit.
    """
    event_id: int
    tracks: List[Track] = field(default_factory=list)
    hodo_hits: Dict[int, List[int]] = field(default_factory=dict)
    start_time: float = 0.0
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_tracks(self) -> int:
        return len(self.tracks)

    def hodoscope(self, geometry: Optional[HodoscopeGeometry]) -> Optional[HodoscopeEvent]:
        if geometry is None:
            return None
        return HodoscopeEvent(geometry, {k: list(v) for k, v in self.hodo_hits.items()}, self.start_time)
