"""
hcspec.io.adapters

Readers that turn tabular track-finder output into SpectrometerEvent
objects for the target reconstruction / golden-track stage.

Inputs
------
Track table (one row per candidate track):
  event, x_fp, y_fp, xp_fp, yp_fp, chi2, ndof
  optional: dedx, beta, energy, npmt, beta_chi2, fp_time,
            good_plane_x, good_plane_y
Hit table (one row per good hodoscope hit, optional):
  event, plane, paddle (0-based)
  optional: start_time (same value on every row of an event)

Supported file types: CSV (.csv), Parquet (.parquet/.pq), HDF (.h5/.hdf5).

Config (example)
----------------
[io.adapter]
type = "table"
key = "tracks"          # HDF key, if input is .h5
hits_key = "hits"
pos_units = "cm"        # "cm" | "mm"
"""
from __future__ import annotations
from pathlib import Path
from typing import Dict, Iterator, List, Literal, Optional

import numpy as np
import pandas as pd

from hcspec.physics.events import SpectrometerEvent
from hcspec.physics.tracks import track_from_mapping

TRACK_REQUIRED = ("event", "x_fp", "y_fp", "xp_fp", "yp_fp", "chi2", "ndof")
HIT_REQUIRED = ("event", "plane", "paddle")

_CM_PER_MM = 0.1


def read_table(path: str | Path, key: Optional[str] = None) -> pd.DataFrame:
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(p)
    if suffix in {".parquet", ".pq"}:
        return pd.read_parquet(p)
    if suffix in {".h5", ".hdf5"}:
        return pd.read_hdf(p, key=key)
    raise ValueError(f"Unrecognized table input: {p.name} (expected .csv/.parquet/.h5)")


def _require(df: pd.DataFrame, cols, what: str) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise KeyError(f"{what} table is missing columns {missing}; found {list(df.columns)}")


class BaseAdapter:
    """
    Abstract adapter interface.

    Yields SpectrometerEvent objects with focal-plane positions in cm.
    """

    def iter_events(self, path: str, hits_path: Optional[str] = None) -> Iterator[SpectrometerEvent]:
        raise NotImplementedError


class TrackTableAdapter(BaseAdapter):
    def __init__(
        self,
        key: Optional[str] = None,
        hits_key: Optional[str] = None,
        pos_units: Literal["cm", "mm"] = "cm",
    ) -> None:
        self.key = key
        self.hits_key = hits_key
        self.pos_scale = _CM_PER_MM if pos_units == "mm" else 1.0

    def _hits_by_event(self, hits_path: Optional[str]) -> Dict[int, tuple[Dict[int, List[int]], float]]:
        if not hits_path:
            return {}
        hdf = read_table(hits_path, self.hits_key)
        _require(hdf, HIT_REQUIRED, "Hit")
        out: Dict[int, tuple[Dict[int, List[int]], float]] = {}
        for ev, g in hdf.groupby("event", sort=True):
            planes: Dict[int, List[int]] = {}
            for plane, pg in g.groupby("plane", sort=True):
                planes[int(plane)] = [int(x) for x in pg["paddle"].to_numpy()]
            t0 = float(g["start_time"].iloc[0]) if "start_time" in g.columns else 0.0
            out[int(ev)] = (planes, t0)
        return out

    def iter_events(self, path, hits_path=None):
        df = read_table(path, self.key)
        _require(df, TRACK_REQUIRED, "Track")
        if self.pos_scale != 1.0:
            df = df.assign(x_fp=df["x_fp"] * self.pos_scale, y_fp=df["y_fp"] * self.pos_scale)
        hits = self._hits_by_event(hits_path)

        grouped = {int(ev): g for ev, g in df.groupby("event", sort=True)}
        # events with hodoscope hits but no tracks still count as events
        for ev in sorted(set(grouped) | set(hits)):
            tracks = []
            if ev in grouped:
                rows = grouped[ev].replace({np.nan: None}).to_dict(orient="records")
                tracks = [track_from_mapping(r) for r in rows]
            planes, t0 = hits.get(ev, ({}, 0.0))
            yield SpectrometerEvent(event_id=ev, tracks=tracks, hodo_hits=planes, start_time=t0)


def make_adapter(cfg: Dict) -> BaseAdapter:
    """
    Create an adapter from the [io.adapter] config dict.

    Expected keys:
      type: "table"
      key, hits_key: HDF keys (HDF inputs only)
      pos_units: "cm" | "mm"
    """
    typ = (cfg.get("type") or "table").lower()

    if typ == "table":
        return TrackTableAdapter(
            key=cfg.get("key"),
            hits_key=cfg.get("hits_key"),
            pos_units=cfg.get("pos_units", "cm"),
        )

    raise ValueError(f"Unknown adapter type: {typ}")
