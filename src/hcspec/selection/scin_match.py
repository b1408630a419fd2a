# src/hcspec/selection/scin_match.py
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Literal, Sequence

from hcspec.geometry.hodoscope import HodoscopePlaneView
from hcspec.physics.tracks import Track

View = Literal["x", "y"]


@dataclass(frozen=True)
class MatchPlane:
    """
    One hodoscope plane used for track/paddle matching.

    index : plane index in the hodoscope
    view  : "x" planes are matched with (x_fp, xp_fp), "y" with (y_fp, yp_fp)
    zpos, dzpos : plane z position and depth [cm]; tracks are projected to
                  zpos + dzpos/2
    """
    index: int
    view: View
    zpos: float
    dzpos: float

    @property
    def z_mid(self) -> float:
        return self.zpos + 0.5 * self.dzpos


def _nint(x: float) -> int:
    # halves go to the even neighbour, as TMath::Nint does
    return int(round(x))


def expected_paddle(track: Track, hodo: HodoscopePlaneView, plane: MatchPlane) -> int:
    """1-based paddle the track should cross, clamped to [1, n_paddles]."""
    ip = plane.index
    center = hodo.plane_center(ip)
    spacing = hodo.plane_spacing(ip)
    if plane.view == "y":
        pos = track.y_fp + track.yp_fp * plane.z_mid
        counter = _nint((center - pos) / spacing) + 1
    else:
        pos = track.x_fp + track.xp_fp * plane.z_mid
        counter = _nint((pos - center) / spacing) + 1
    return max(min(counter, int(hodo.n_paddles(ip))), 1)


def paddle_mismatch(
    track: Track,
    hodo: HodoscopePlaneView,
    plane: MatchPlane,
    n_tracks: int,
) -> float:
    """
    Distance in paddles between the expected paddle and the nearest hit one.

    0 when the event has a single track, and 0 when the plane has no hits.
    """
    if n_tracks == 1:
        return 0.0
    cnt = expected_paddle(track, hodo, plane)
    n = int(hodo.n_paddles(plane.index))
    hit = sorted({int(i) for i in hodo.hit_paddles(plane.index) if 0 <= int(i) < n})
    if not hit:
        return 0.0
    return float(min(abs(cnt - i - 1) for i in hit))


def mismatch_table(
    tracks: Sequence[Track],
    hodo: HodoscopePlaneView,
    plane: MatchPlane,
) -> List[float]:
    n = len(tracks)
    return [paddle_mismatch(t, hodo, plane, n) for t in tracks]
