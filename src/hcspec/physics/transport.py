# src/hcspec/physics/transport.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

import numpy as np

from .tracks import Track

N_OUT = 4   # xp_tar, y_tar, yp_tar, delta
N_IN = 5    # x_fp, xp_fp, y_fp, yp_fp, beam_y


@dataclass(frozen=True, slots=True)
class TransportTerm:
    """One COSY matrix element: 4 output coefficients and 5 input exponents."""
    coeff: Tuple[float, float, float, float]
    exp: Tuple[int, int, int, int, int]


class TransportMap:
    """
    Immutable, ordered set of COSY reconstruction terms.

    Output channel k of the map is

        sum_i coeff[i, k] * prod_j hut[j] ** exp[i, j]

    Channels are (xp_tar, y_tar [m], yp_tar, delta [fraction]) in the
    order the coefficient file stores them.
    """

    def __init__(self, terms: Iterable[TransportTerm]):
        self._terms: Tuple[TransportTerm, ...] = tuple(terms)
        n = len(self._terms)
        coeff = np.zeros((n, N_OUT), dtype=np.float64)
        exp = np.zeros((n, N_IN), dtype=np.int64)
        for i, t in enumerate(self._terms):
            coeff[i] = t.coeff
            exp[i] = t.exp
        coeff.flags.writeable = False
        exp.flags.writeable = False
        self._coeff = coeff
        self._exp = exp

    def __len__(self) -> int:
        return len(self._terms)

    def __iter__(self):
        return iter(self._terms)

    def __getitem__(self, i: int) -> TransportTerm:
        return self._terms[i]

    @property
    def terms(self) -> Tuple[TransportTerm, ...]:
        return self._terms

    @property
    def coefficients(self) -> np.ndarray:
        return self._coeff

    @property
    def exponents(self) -> np.ndarray:
        return self._exp

    def evaluate(self, hut: Sequence[float]) -> np.ndarray:
        """Evaluate the 4 output sums for one 5-vector of focal-plane inputs."""
        h = np.asarray(hut, dtype=np.float64)
        if h.shape != (N_IN,):
            raise ValueError(f"Expected {N_IN} focal-plane inputs, got shape {h.shape}")
        if len(self) == 0:
            return np.zeros(N_OUT, dtype=np.float64)
        # x**0 == 1, so zero exponents drop out of the product
        term = np.prod(np.power(h[None, :], self._exp), axis=1)
        return term @ self._coeff


@dataclass(frozen=True)
class FocalPlaneCalib:
    """
    Focal-plane corrections and target offsets applied around the COSY sums.

    ang_slope_x/y  : focal-plane rotation (angle += position * slope)
    ang_offset_x/y : angle offsets [rad]
    det_offset_x/y : detector offsets [m]
    z_true_focus   : distance to the true focal plane [m]
    theta_offset   : added to yp_tar [rad]
    phi_offset     : added to xp_tar [rad]
    delta_offset   : added to delta [%]

    In transport coordinates xp_tar = dx/dz and yp_tar = dy/dz, but the
    yp offset is named theta_offset and the xp offset phi_offset.
    """
    ang_slope_x: float = 0.0
    ang_slope_y: float = 0.0
    ang_offset_x: float = 0.0
    ang_offset_y: float = 0.0
    det_offset_x: float = 0.0
    det_offset_y: float = 0.0
    z_true_focus: float = 0.0
    theta_offset: float = 0.0
    phi_offset: float = 0.0
    delta_offset: float = 0.0


class TargetReconstructor:
    """
    Trace focal-plane tracks back to the target with a TransportMap.

    The map and calibration are shared read-only; reconstruct() only writes
    into the Track passed to it.
    """

    def __init__(self, tmap: TransportMap, calib: FocalPlaneCalib, pcentral: float):
        self.tmap = tmap
        self.calib = calib
        self.pcentral = float(pcentral)

    def focal_plane_vector(self, track: Track, beam_y: float = 0.0) -> np.ndarray:
        """
        Meter-scaled, focus-corrected and rotated inputs
        (x_fp, xp_fp, y_fp, yp_fp, beam_y) for the COSY sums.
        """
        c = self.calib
        hut = np.empty(N_IN, dtype=np.float64)
        hut[0] = track.x_fp / 100.0 + c.z_true_focus * track.xp_fp + c.det_offset_x
        hut[1] = track.xp_fp + c.ang_offset_x
        hut[2] = track.y_fp / 100.0 + c.z_true_focus * track.yp_fp + c.det_offset_y
        hut[3] = track.yp_fp + c.ang_offset_y
        # no fast-raster input yet
        hut[4] = -beam_y / 100.0

        hut[1] = hut[1] + hut[0] * c.ang_slope_x
        hut[3] = hut[3] + hut[2] * c.ang_slope_y
        return hut

    def reconstruct(self, track: Track) -> Track:
        c = self.calib
        s = self.tmap.evaluate(self.focal_plane_vector(track))
        track.set_target(
            xp_tar=float(s[0]) + c.phi_offset,
            yp_tar=float(s[2]) + c.theta_offset,
            y_tar=float(s[1]) * 100.0,
        )
        track.set_momentum(float(s[3]) * 100.0 + c.delta_offset, self.pcentral)
        return track

    def reconstruct_all(self, tracks: Sequence[Track]) -> int:
        n = 0
        for trk in tracks:
            self.reconstruct(trk)
            n += 1
        return n
