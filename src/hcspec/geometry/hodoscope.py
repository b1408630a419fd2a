# src/hcspec/geometry/hodoscope.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Protocol, Sequence


class HodoscopePlaneView(Protocol):
    """
    Narrow, read-only view of the hodoscope used by golden-track selection.

    Plane indices are 0-based (0=1X, 1=1Y, 2=2X, 3=2Y for the usual
    four-plane layout); paddle indices returned by hit_paddles() are 0-based.
    """

    def n_paddles(self, plane: int) -> int: ...
    def plane_center(self, plane: int) -> float: ...
    def plane_spacing(self, plane: int) -> float: ...
    def hit_paddles(self, plane: int) -> Sequence[int]: ...

    @property
    def start_time_center(self) -> float: ...


@dataclass(frozen=True)
class PlaneGeometry:
    n_paddles: int
    center: float    # [cm]
    spacing: float   # [cm]

    def __post_init__(self):
        if self.n_paddles < 1:
            raise ValueError(f"Plane needs at least one paddle, got {self.n_paddles}")
        if self.spacing == 0:
            raise ValueError("Paddle spacing must be non-zero")


@dataclass(frozen=True)
class HodoscopeGeometry:
    planes: Sequence[PlaneGeometry]

    @classmethod
    def from_cfg(cls, planes: Sequence[Mapping]) -> "HodoscopeGeometry":
        return cls(tuple(PlaneGeometry(int(p["n_paddles"]), float(p["center"]), float(p["spacing"]))
                         for p in planes))

    @property
    def num_planes(self) -> int:
        return len(self.planes)

    def plane(self, ip: int) -> PlaneGeometry:
        if ip < 0 or ip >= len(self.planes):
            raise IndexError(f"Hodoscope plane {ip} out of range (have {len(self.planes)})")
        return self.planes[ip]


@dataclass
class HodoscopeEvent:
    """
    Per-event hodoscope state backed by static geometry.

    hits maps plane index -> list of 0-based paddle indices with a good hit.
    """
    geometry: HodoscopeGeometry
    hits: Dict[int, List[int]] = field(default_factory=dict)
    start_time: float = 0.0

    def n_paddles(self, plane: int) -> int:
        return self.geometry.plane(plane).n_paddles

    def plane_center(self, plane: int) -> float:
        return self.geometry.plane(plane).center

    def plane_spacing(self, plane: int) -> float:
        return self.geometry.plane(plane).spacing

    def hit_paddles(self, plane: int) -> Sequence[int]:
        return self.hits.get(plane, [])

    @property
    def start_time_center(self) -> float:
        return self.start_time
