# src/hcspec/selection/golden.py
"""
Golden-track selection.

One strategy is active per run:

  chi2   first track by chi2/ndof (stable sort); with sorting off, the
         first track in upstream (geometric-match) order
  scin   dedx/beta/energy admissibility, then closest 2Y paddle, closest
         2X paddle, lowest chi2/ndof; falls back to lowest chi2/ndof over
         all tracks when nothing is admissible
  prune  sequential quality cuts that never remove the last candidate,
         then lowest chi2/ndof among survivors
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Sequence
import math

from hcspec.errors import DataError, SelectionError
from hcspec.geometry.hodoscope import HodoscopePlaneView
from hcspec.physics.tracks import Track
from hcspec.selection.prune import (
    PRUNE_PASSES,
    PruneContext,
    PruneThresholds,
    prune_tracks,
)
from hcspec.selection.scin_match import MatchPlane, paddle_mismatch

StrategyName = Literal["chi2", "scin", "prune"]

# Initial values of the running minima in the scintillator chain
_MISMATCH_START = 100.0
_CHI2_START = 1.0e10


@dataclass
class SelectionResult:
    """
    Outcome of golden-track selection for one event.

    index        : position of the golden track in the input sequence, or None
    strategy     : strategy that produced it
    order        : chi2 ranking of input positions (chi2 strategy only)
    reject_codes : per-track prune reject code (prune strategy only)
    keep         : per-track prune survival flags (prune strategy only)
    mismatch_y/x : per-track paddle mismatch; NaN where not evaluated (scin only)
    fallback     : True when scin selection fell back to chi2/ndof alone
    """
    index: Optional[int]
    strategy: StrategyName
    order: Optional[List[int]] = None
    reject_codes: Optional[List[int]] = None
    keep: Optional[List[bool]] = None
    mismatch_y: Optional[List[float]] = None
    mismatch_x: Optional[List[float]] = None
    fallback: bool = False
    applied_passes: List[str] = field(default_factory=list)

    @property
    def selected(self) -> bool:
        return self.index is not None

    def golden(self, tracks: Sequence[Track]) -> Optional[Track]:
        return None if self.index is None else tracks[self.index]


@dataclass
class SelectionDiagnostics:
    events: int = 0
    selected: int = 0
    fallback: int = 0
    errors: int = 0
    reasons: Dict[str, int] = field(default_factory=dict)

    def inc(self, reason: str) -> None:
        self.reasons[reason] = self.reasons.get(reason, 0) + 1

    def record(self, res: SelectionResult) -> None:
        self.events += 1
        if res.selected:
            self.selected += 1
        if res.fallback:
            self.fallback += 1
        for name in res.applied_passes:
            self.inc(f"prune_{name}")


def _check_tracks(tracks: Sequence[Optional[Track]]) -> None:
    for i, t in enumerate(tracks):
        if t is None:
            raise DataError(f"Track {i} of {len(tracks)} is missing")


def _first_min_chi2(tracks: Sequence[Track], candidates: Sequence[int]) -> Optional[int]:
    best = None
    best_chi = math.inf
    for i in candidates:
        chi = tracks[i].chi2_per_dof
        if best is None or chi < best_chi:
            best, best_chi = i, chi
    return best


# --- Interfaces -------------------------------------------------------------

class GoldenTrackSelector:
    """Base protocol: pick at most one track from an event's track list."""
    name: StrategyName

    def select(
        self,
        tracks: Sequence[Track],
        hodo: Optional[HodoscopePlaneView] = None,
    ) -> SelectionResult:
        raise NotImplementedError


# --- Implementations --------------------------------------------------------

class ChiSquareSelector(GoldenTrackSelector):
    name = "chi2"

    def __init__(self, sort_tracks: bool = True):
        self.sort_tracks = sort_tracks

    def select(self, tracks, hodo=None):
        _check_tracks(tracks)
        order = list(range(len(tracks)))
        if self.sort_tracks:
            order.sort(key=lambda i: tracks[i].chi2_per_dof)
        index = order[0] if order else None
        return SelectionResult(index=index, strategy=self.name, order=order)


@dataclass(frozen=True)
class ScinWindow:
    ndegrees_min: float = 0.0
    dedx_min: float = 0.0
    dedx_max: float = 0.0
    beta_min: float = 0.0
    beta_max: float = 0.0
    et_min: float = 0.0
    et_max: float = 0.0

    def admits(self, t: Track) -> bool:
        return (
            t.ndof > self.ndegrees_min
            and self.dedx_min < t.dedx < self.dedx_max
            and self.beta_min < t.beta < self.beta_max
            and self.et_min < t.energy < self.et_max
        )


class ScintillatorSelector(GoldenTrackSelector):
    name = "scin"

    def __init__(self, window: ScinWindow, y_plane: MatchPlane, x_plane: MatchPlane):
        self.window = window
        self.y_plane = y_plane
        self.x_plane = x_plane

    def select(self, tracks, hodo=None):
        _check_tracks(tracks)
        n = len(tracks)
        if n == 0:
            return SelectionResult(index=None, strategy=self.name, mismatch_y=[], mismatch_x=[])
        if hodo is None:
            raise DataError("Scintillator-based selection needs hodoscope hits")

        y2d = [math.nan] * n
        x2d = [math.nan] * n
        y_min, x_min, chi_min = _MISMATCH_START, _MISMATCH_START, _CHI2_START
        good = None

        for i, t in enumerate(tracks):
            if not self.window.admits(t):
                continue
            chi = t.chi2_per_dof
            y2d[i] = paddle_mismatch(t, hodo, self.y_plane, n)
            x2d[i] = paddle_mismatch(t, hodo, self.x_plane, n)

            # y mismatch first, then x, then chi2/ndof; a strictly better
            # mismatch resets the minima below it
            if y2d[i] <= y_min:
                if y2d[i] < y_min:
                    x_min = _MISMATCH_START
                    chi_min = _CHI2_START
                if x2d[i] <= x_min:
                    if x2d[i] < x_min:
                        chi_min = _CHI2_START
                    if chi < chi_min:
                        good = i
                        y_min, x_min, chi_min = y2d[i], x2d[i], chi

        fallback = False
        if good is None:
            fallback = True
            good = _first_min_chi2(tracks, range(n))

        return SelectionResult(
            index=good,
            strategy=self.name,
            mismatch_y=y2d,
            mismatch_x=x2d,
            fallback=fallback,
        )


class PruneSelector(GoldenTrackSelector):
    name = "prune"

    def __init__(
        self,
        thresholds: PruneThresholds,
        partmass: float,
        floors: Optional[Dict[str, float]] = None,
    ):
        self.thresholds = thresholds.clamped(floors)
        self.partmass = float(partmass)

    def select(self, tracks, hodo=None):
        _check_tracks(tracks)
        if len(tracks) == 0:
            return SelectionResult(index=None, strategy=self.name, reject_codes=[], keep=[])
        if hodo is None:
            raise DataError("Prune selection needs the hodoscope start time")
        start = hodo.start_time_center
        ctx = PruneContext(self.thresholds, self.partmass, start)
        out = prune_tracks(tracks, ctx, PRUNE_PASSES)

        good = _first_min_chi2(tracks, out.survivors)
        if good is None:
            raise SelectionError(f"Prune left no surviving track (reject={out.reject})")
        return SelectionResult(
            index=good,
            strategy=self.name,
            reject_codes=out.reject,
            keep=out.keep,
            applied_passes=out.applied,
        )


# --- Factory ----------------------------------------------------------------

def match_planes_from_cfg(cfg_hodo) -> tuple[MatchPlane, MatchPlane]:
    """(2Y plane, 2X plane) used by the scintillator strategy."""
    y = MatchPlane(cfg_hodo.y_plane, "y", cfg_hodo.scin_2y_zpos, cfg_hodo.scin_2y_dzpos)
    x = MatchPlane(cfg_hodo.x_plane, "x", cfg_hodo.scin_2x_zpos, cfg_hodo.scin_2x_dzpos)
    return y, x


def make_selector(cfg_selection, cfg_hodo=None, partmass: float = 0.0) -> GoldenTrackSelector:
    strategy = cfg_selection.resolved_strategy()
    if strategy == "chi2":
        return ChiSquareSelector(sort_tracks=cfg_selection.sort_tracks)
    elif strategy == "scin":
        if cfg_hodo is None:
            raise ValueError("scin strategy needs the [hodoscope] section")
        y_plane, x_plane = match_planes_from_cfg(cfg_hodo)
        w = cfg_selection
        window = ScinWindow(
            ndegrees_min=w.ndegrees_min,
            dedx_min=w.dedx_min, dedx_max=w.dedx_max,
            beta_min=w.beta_min, beta_max=w.beta_max,
            et_min=w.et_min, et_max=w.et_max,
        )
        return ScintillatorSelector(window, y_plane, x_plane)
    elif strategy == "prune":
        return PruneSelector(
            PruneThresholds(**cfg_selection.prune.model_dump()),
            partmass=partmass,
            floors=cfg_selection.prune_floors,
        )
    else:
        raise ValueError(f"Unknown selection strategy {strategy}")
