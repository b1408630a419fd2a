# src/hcspec/physics/tracks.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import math


@dataclass(slots=True)
class Track:
    """
    One candidate trajectory from the upstream track finder.

    Focal-plane inputs (transport convention, x is dispersive):
      x_fp, y_fp   : positions [cm]
      xp_fp, yp_fp : slopes dx/dz, dy/dz [rad]

    Quality fields are filled upstream and only read by the golden-track
    selection: chi2, ndof, dedx, beta, energy, npmt, beta_chi2, fp_time,
    good_plane_x (2X hodoscope plane had a good time), good_plane_y (2Y).

    Target quantities are written by TargetReconstructor:
      xp_tar (theta, dx/dz) [rad], yp_tar (phi, dy/dz) [rad],
      y_tar [cm], delta [%], p [GeV/c]
    """
    x_fp: float
    y_fp: float
    xp_fp: float
    yp_fp: float

    chi2: float = 0.0
    ndof: int = 0
    dedx: float = 0.0
    beta: float = 0.0
    energy: float = 0.0
    npmt: float = 0.0
    beta_chi2: float = 0.0
    fp_time: float = 0.0
    good_plane_x: bool = False
    good_plane_y: bool = False

    # reconstructed
    xp_tar: float = 0.0
    yp_tar: float = 0.0
    y_tar: float = 0.0
    delta: float = 0.0
    p: float = 0.0

    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def chi2_per_dof(self) -> float:
        """chi2/ndof; +inf when the fit has no degrees of freedom."""
        if self.ndof <= 0:
            return math.inf
        return self.chi2 / self.ndof

    def set_target(self, xp_tar: float, yp_tar: float, y_tar: float) -> None:
        self.xp_tar = xp_tar
        self.yp_tar = yp_tar
        self.y_tar = y_tar

    def set_momentum(self, delta: float, pcentral: float) -> None:
        self.delta = delta
        self.p = pcentral * (1.0 + delta / 100.0)


def track_from_mapping(row: Dict[str, Any]) -> Track:
    """Build a Track from a dict-like row; unknown keys are kept in extras."""
    def get(k: str, default: Optional[Any] = 0.0):
        v = row.get(k, default)
        return default if v is None else v

    known = set(Track.__slots__) - {"extras"}
    extras = {k: v for k, v in row.items() if k not in known}
    return Track(
        x_fp=float(get("x_fp")),
        y_fp=float(get("y_fp")),
        xp_fp=float(get("xp_fp")),
        yp_fp=float(get("yp_fp")),
        chi2=float(get("chi2")),
        ndof=int(get("ndof", 0)),
        dedx=float(get("dedx")),
        beta=float(get("beta")),
        energy=float(get("energy")),
        npmt=float(get("npmt")),
        beta_chi2=float(get("beta_chi2")),
        fp_time=float(get("fp_time")),
        good_plane_x=bool(get("good_plane_x", False)),
        good_plane_y=bool(get("good_plane_y", False)),
        extras=extras,
    )
