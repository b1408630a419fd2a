from __future__ import annotations
import numpy as np
import pandas as pd
from typing import List

from ..geometry.hodoscope import HodoscopeGeometry
from ..physics.events import SpectrometerEvent
from ..physics.kinematics import beta_from_momentum
from ..physics.tracks import Track

def paddle_at(pos: float, center: float, spacing: float, n_paddles: int, sign: float) -> int:
    """0-based paddle crossed at pos; sign=+1 for x planes, -1 for y planes."""
    k = int(round(sign * (pos - center) / spacing))
    return min(max(k, 0), n_paddles - 1)

def synth_events(
    n_events: int,
    geometry: HodoscopeGeometry,
    *,
    pcentral: float = 2.0,
    partmass: float = 0.00051099,
    x_plane: int = 2,
    y_plane: int = 3,
    z_x: float = 0.0,
    z_y: float = 0.0,
    max_tracks: int = 3,
    rng: np.random.Generator | None = None,
) -> List[SpectrometerEvent]:
    """
    Generate events with one "true" track plus random ghost tracks.

    The true track is well fitted (chi2/ndof ~ 1), fires the hodoscope
    paddles it points at and has a beta consistent with its momentum;
    ghosts have worse chi2 and random quality fields. Hits are written for
    the true track only, so scintillator matching should prefer it.
    """
    rng = rng or np.random.default_rng()
    px = geometry.plane(x_plane)
    py = geometry.plane(y_plane)
    beta0 = beta_from_momentum(pcentral, partmass)
    events: List[SpectrometerEvent] = []

    for ev_id in range(n_events):
        n_trk = int(rng.integers(0, max_tracks + 1))
        tracks: List[Track] = []
        hits = {}
        t0 = float(rng.normal(0.0, 1.0))
        true_ix = int(rng.integers(0, n_trk)) if n_trk else -1
        for j in range(n_trk):
            true = j == true_ix
            t = Track(
                x_fp=float(rng.normal(0.0, 10.0)),
                y_fp=float(rng.normal(0.0, 3.0)),
                xp_fp=float(rng.normal(0.0, 0.03)),
                yp_fp=float(rng.normal(0.0, 0.01)),
                ndof=int(rng.integers(3, 9)),
            )
            t.chi2 = float(t.ndof * (rng.uniform(0.5, 1.5) if true else rng.uniform(3.0, 30.0)))
            t.dedx = float(rng.normal(1.0, 0.1) if true else rng.uniform(0.0, 5.0))
            t.beta = float(beta0 + rng.normal(0.0, 0.01) if true else rng.uniform(0.2, 1.3))
            t.energy = float(rng.normal(1.0, 0.05) if true else rng.uniform(0.0, 1.5))
            t.npmt = float(rng.integers(6, 9) if true else rng.integers(0, 9))
            t.beta_chi2 = float(rng.uniform(0.1, 1.5) if true else rng.uniform(0.0, 10.0))
            t.fp_time = float(t0 + rng.normal(0.0, 0.5) if true else t0 + rng.uniform(-20.0, 20.0))
            t.good_plane_x = bool(true or rng.random() < 0.5)
            t.good_plane_y = bool(true or rng.random() < 0.5)
            tracks.append(t)
            if true:
                xh = t.x_fp + t.xp_fp * z_x
                yh = t.y_fp + t.yp_fp * z_y
                hits[x_plane] = [paddle_at(xh, px.center, px.spacing, px.n_paddles, +1.0)]
                hits[y_plane] = [paddle_at(yh, py.center, py.spacing, py.n_paddles, -1.0)]
        events.append(SpectrometerEvent(event_id=ev_id, tracks=tracks, hodo_hits=hits,
                                        start_time=t0, meta={"true_index": true_ix}))
    return events

def events_to_tables(events: List[SpectrometerEvent]) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Flatten events into (track table, hit table) in the adapter's column layout."""
    trk_rows = []
    hit_rows = []
    for ev in events:
        for t in ev.tracks:
            trk_rows.append({
                "event": ev.event_id,
                "x_fp": t.x_fp, "y_fp": t.y_fp, "xp_fp": t.xp_fp, "yp_fp": t.yp_fp,
                "chi2": t.chi2, "ndof": t.ndof, "dedx": t.dedx, "beta": t.beta,
                "energy": t.energy, "npmt": t.npmt, "beta_chi2": t.beta_chi2,
                "fp_time": t.fp_time, "good_plane_x": t.good_plane_x,
                "good_plane_y": t.good_plane_y,
            })
        for plane, paddles in ev.hodo_hits.items():
            for pad in paddles:
                hit_rows.append({"event": ev.event_id, "plane": plane,
                                 "paddle": pad, "start_time": ev.start_time})
    trk_cols = ["event", "x_fp", "y_fp", "xp_fp", "yp_fp", "chi2", "ndof", "dedx", "beta",
                "energy", "npmt", "beta_chi2", "fp_time", "good_plane_x", "good_plane_y"]
    return (pd.DataFrame(trk_rows, columns=trk_cols),
            pd.DataFrame(hit_rows, columns=["event", "plane", "paddle", "start_time"]))
