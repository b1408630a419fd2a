# src/hcspec/selection/prune.py
from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from hcspec.physics.kinematics import beta_from_momentum
from hcspec.physics.tracks import Track

# Lower bounds on the prune tolerances; a configured value below the floor
# is raised to it.
PRUNE_FLOORS: Dict[str, float] = {
    "xp": 0.08,
    "yp": 0.04,
    "ytar": 4.0,
    "delta": 13.0,
    "beta": 0.1,
    "df": 1.0,
    "chibeta": 2.0,
    "fptime": 5.0,
    "npmt": 6.0,
}

BETA_CHI2_MIN = 0.01


@dataclass(frozen=True)
class PruneThresholds:
    xp: float = 0.0        # |xp_tar| [rad]
    yp: float = 0.0        # |yp_tar| [rad]
    ytar: float = 0.0      # |y_tar| [cm]
    delta: float = 0.0     # |delta| [%]
    beta: float = 0.0      # |beta - beta(p)|
    df: float = 0.0        # ndof
    chibeta: float = 0.0   # beta chi2
    npmt: float = 0.0      # number of PMTs hit
    fptime: float = 0.0    # |fp_time - start time| [ns]

    def clamped(self, floors: Optional[Dict[str, float]] = None) -> "PruneThresholds":
        fl = dict(PRUNE_FLOORS)
        fl.update(floors or {})
        return replace(self, **{f.name: max(fl[f.name], getattr(self, f.name)) for f in fields(self)})


@dataclass(frozen=True)
class PruneContext:
    thresholds: PruneThresholds
    partmass: float
    start_time: float = 0.0


class PrunePass(NamedTuple):
    name: str
    weight: int
    passes: Callable[[Track, PruneContext], bool]


def _beta_ok(t: Track, c: PruneContext) -> bool:
    return abs(t.beta - beta_from_momentum(t.p, c.partmass)) < c.thresholds.beta


def _chibeta_ok(t: Track, c: PruneContext) -> bool:
    return BETA_CHI2_MIN < t.beta_chi2 < c.thresholds.chibeta


# Order matters: each pass sees only the survivors of the previous ones.
PRUNE_PASSES: Tuple[PrunePass, ...] = (
    PrunePass("xptar", 1, lambda t, c: abs(t.xp_tar) < c.thresholds.xp),
    PrunePass("yptar", 2, lambda t, c: abs(t.yp_tar) < c.thresholds.yp),
    PrunePass("ytar", 10, lambda t, c: abs(t.y_tar) < c.thresholds.ytar),
    PrunePass("delta", 20, lambda t, c: abs(t.delta) < c.thresholds.delta),
    PrunePass("beta", 100, _beta_ok),
    PrunePass("ndof", 200, lambda t, c: t.ndof >= c.thresholds.df),
    PrunePass("npmt", 100000, lambda t, c: t.npmt >= c.thresholds.npmt),
    PrunePass("beta_chi2", 1000, _chibeta_ok),
    PrunePass("fp_time", 2000, lambda t, c: abs(t.fp_time - c.start_time) < c.thresholds.fptime),
    PrunePass("good_plane_y", 10000, lambda t, c: bool(t.good_plane_y)),
    PrunePass("good_plane_x", 20000, lambda t, c: bool(t.good_plane_x)),
)


@dataclass
class PruneOutcome:
    keep: List[bool]
    reject: List[int]
    applied: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def survivors(self) -> List[int]:
        return [i for i, k in enumerate(self.keep) if k]


def prune_tracks(
    tracks: Sequence[Track],
    ctx: PruneContext,
    passes: Sequence[PrunePass] = PRUNE_PASSES,
) -> PruneOutcome:
    """
    Run the prune passes over one event's tracks.

    A pass is applied only when at least one track still kept satisfies it.
    When applied, every track failing it (kept or not) is dropped and gets
    the pass weight added to its reject code.
    """
    n = len(tracks)
    out = PruneOutcome(keep=[True] * n, reject=[0] * n)
    for pp in passes:
        ok = [pp.passes(t, ctx) for t in tracks]
        if not any(o and k for o, k in zip(ok, out.keep)):
            out.skipped.append(pp.name)
            continue
        out.applied.append(pp.name)
        for i in range(n):
            if not ok[i]:
                out.keep[i] = False
                out.reject[i] += pp.weight
    return out
