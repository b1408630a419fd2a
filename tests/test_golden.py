import math

import pytest

from hcspec.errors import DataError
from hcspec.geometry.hodoscope import HodoscopeEvent
from hcspec.physics.tracks import Track
from hcspec.selection.golden import (
    ChiSquareSelector,
    PruneSelector,
    ScintillatorSelector,
    ScinWindow,
)
from hcspec.selection.prune import PRUNE_FLOORS, PruneThresholds
from hcspec.selection.scin_match import MatchPlane

M_E = 0.00051099

X2 = MatchPlane(index=2, view="x", zpos=0.0, dzpos=0.0)
Y2 = MatchPlane(index=3, view="y", zpos=0.0, dzpos=0.0)
WINDOW = ScinWindow(ndegrees_min=0, dedx_min=0, dedx_max=10, beta_min=0, beta_max=2, et_min=0, et_max=10)


def _chi(values, ndof=2):
    return [Track(x_fp=0, y_fp=0, xp_fp=0, yp_fp=0, chi2=v * ndof, ndof=ndof) for v in values]


def _admissible(**kw) -> Track:
    base = dict(x_fp=0.0, y_fp=0.0, xp_fp=0.0, yp_fp=0.0, chi2=5.0, ndof=5,
                dedx=1.0, beta=1.0, energy=1.0)
    base.update(kw)
    return Track(**base)


def _good_for_prune(**kw) -> Track:
    """A track passing every prune criterion at the floor thresholds."""
    base = dict(x_fp=0.0, y_fp=0.0, xp_fp=0.0, yp_fp=0.0, chi2=5.0, ndof=5,
                beta=1.0, npmt=8, beta_chi2=1.0, fp_time=0.0,
                good_plane_x=True, good_plane_y=True)
    base.update(kw)
    t = Track(**base)
    t.p = 2.0
    return t


# --- chi2 ------------------------------------------------------------------

def test_chi2_picks_lowest_with_stable_ties():
    res = ChiSquareSelector().select(_chi([3.0, 1.5, 1.5]))
    assert res.index == 1
    assert res.order == [1, 2, 0]
    assert res.strategy == "chi2"


def test_chi2_empty_event_selects_nothing():
    res = ChiSquareSelector().select([])
    assert res.index is None
    assert not res.selected
    assert res.golden([]) is None


def test_chi2_without_sorting_keeps_upstream_order():
    tracks = _chi([3.0, 1.5, 1.5])
    res = ChiSquareSelector(sort_tracks=False).select(tracks)
    assert res.index == 0
    assert res.golden(tracks) is tracks[0]


def test_selection_does_not_reorder_input():
    tracks = _chi([3.0, 1.5])
    ChiSquareSelector().select(tracks)
    assert [t.chi2_per_dof for t in tracks] == [3.0, 1.5]


def test_missing_track_is_data_error():
    with pytest.raises(DataError):
        ChiSquareSelector().select([_chi([1.0])[0], None])


def test_zero_ndof_ranks_last():
    tracks = _chi([2.0, 1.0])
    tracks[1].ndof = 0
    assert math.isinf(tracks[1].chi2_per_dof)
    assert ChiSquareSelector().select(tracks).index == 0


# --- scin ------------------------------------------------------------------

def test_scin_prefers_paddle_match_over_chi2(geometry):
    hodo = HodoscopeEvent(geometry, hits={2: [2], 3: [4]})
    tracks = [
        _admissible(x_fp=20.0, y_fp=40.0, chi2=5.0),    # y mismatch 4
        _admissible(x_fp=20.0, y_fp=-40.0, chi2=10.0),  # y and x mismatch 0
    ]
    res = ScintillatorSelector(WINDOW, Y2, X2).select(tracks, hodo)
    assert res.index == 1
    assert res.mismatch_y == [4.0, 0.0]
    assert res.mismatch_x == [0.0, 0.0]
    assert not res.fallback


def test_scin_x_mismatch_breaks_y_tie(geometry):
    hodo = HodoscopeEvent(geometry, hits={2: [2], 3: [4]})
    tracks = [
        _admissible(x_fp=60.0, y_fp=-40.0, chi2=1.0),   # x mismatch 4
        _admissible(x_fp=20.0, y_fp=-40.0, chi2=20.0),
    ]
    res = ScintillatorSelector(WINDOW, Y2, X2).select(tracks, hodo)
    assert res.index == 1


def test_scin_chi2_breaks_full_tie(geometry):
    hodo = HodoscopeEvent(geometry, hits={2: [2], 3: [4]})
    tracks = [
        _admissible(x_fp=20.0, y_fp=-40.0, chi2=9.0),
        _admissible(x_fp=20.0, y_fp=-40.0, chi2=4.0),
        _admissible(x_fp=20.0, y_fp=-40.0, chi2=4.0),
    ]
    res = ScintillatorSelector(WINDOW, Y2, X2).select(tracks, hodo)
    assert res.index == 1


def test_scin_only_admissible_tracks_compete(geometry):
    hodo = HodoscopeEvent(geometry, hits={2: [2], 3: [4]})
    tracks = [
        _admissible(x_fp=20.0, y_fp=-40.0, chi2=1.0, dedx=50.0),  # outside dedx window
        _admissible(x_fp=20.0, y_fp=40.0, chi2=10.0),
    ]
    res = ScintillatorSelector(WINDOW, Y2, X2).select(tracks, hodo)
    assert res.index == 1
    assert math.isnan(res.mismatch_y[0])


def test_scin_falls_back_to_chi2_over_all_tracks(geometry):
    hodo = HodoscopeEvent(geometry, hits={2: [2], 3: [4]})
    tracks = _chi([3.0, 1.5, 1.5])
    for t in tracks:
        t.beta = 5.0
    res = ScintillatorSelector(WINDOW, Y2, X2).select(tracks, hodo)
    assert res.fallback
    assert res.index == ChiSquareSelector().select(tracks).index == 1


def test_scin_ndof_must_exceed_minimum(geometry):
    hodo = HodoscopeEvent(geometry)
    window = ScinWindow(ndegrees_min=5, dedx_min=0, dedx_max=10, beta_min=0, beta_max=2,
                        et_min=0, et_max=10)
    res = ScintillatorSelector(window, Y2, X2).select([_admissible(ndof=5)], hodo)
    assert res.fallback


def test_scin_empty_event(geometry):
    res = ScintillatorSelector(WINDOW, Y2, X2).select([], HodoscopeEvent(geometry))
    assert res.index is None


def test_scin_needs_hodoscope():
    with pytest.raises(DataError):
        ScintillatorSelector(WINDOW, Y2, X2).select([_admissible()], None)


# --- prune -----------------------------------------------------------------

def test_prune_thresholds_are_clamped_to_floors():
    sel = PruneSelector(PruneThresholds(xp=0.01, ytar=10.0), partmass=M_E)
    assert sel.thresholds.xp == PRUNE_FLOORS["xp"]
    assert sel.thresholds.ytar == 10.0
    assert sel.thresholds.npmt == PRUNE_FLOORS["npmt"]


def test_prune_never_removes_last_survivor(geometry):
    tracks = [
        _good_for_prune(xp_tar=0.01, yp_tar=1.0, chi2=50.0),  # passes xptar, fails yptar
        _good_for_prune(xp_tar=0.50, yp_tar=0.0, chi2=1.0),   # fails xptar
    ]
    res = PruneSelector(PruneThresholds(), partmass=M_E).select(tracks, HodoscopeEvent(geometry))
    assert res.keep == [True, False]
    assert res.index == 0
    assert "xptar" in res.applied_passes
    assert "yptar" not in res.applied_passes
    assert res.reject_codes == [0, 1]


def test_prune_reject_codes_accumulate_on_dropped_tracks(geometry):
    tracks = [
        _good_for_prune(),
        _good_for_prune(xp_tar=0.5, npmt=0, good_plane_x=False),
    ]
    res = PruneSelector(PruneThresholds(), partmass=M_E).select(tracks, HodoscopeEvent(geometry))
    assert res.index == 0
    assert res.reject_codes == [0, 1 + 100000 + 20000]


def test_prune_picks_lowest_chi2_among_survivors(geometry):
    tracks = [
        _good_for_prune(chi2=30.0),
        _good_for_prune(chi2=10.0),
        _good_for_prune(chi2=1.0, fp_time=50.0),   # out of time
    ]
    hodo = HodoscopeEvent(geometry, start_time=0.0)
    res = PruneSelector(PruneThresholds(), partmass=M_E).select(tracks, hodo)
    assert res.index == 1
    assert res.reject_codes == [0, 0, 2000]


def test_prune_uses_hodoscope_start_time(geometry):
    tracks = [_good_for_prune(chi2=1.0, fp_time=50.0), _good_for_prune(chi2=10.0)]
    hodo = HodoscopeEvent(geometry, start_time=48.0)
    res = PruneSelector(PruneThresholds(), partmass=M_E).select(tracks, hodo)
    assert res.index == 0
    assert res.reject_codes == [0, 2000]


def test_prune_beta_compared_to_momentum(geometry):
    slow = _good_for_prune(chi2=1.0, beta=0.5)
    fast = _good_for_prune(chi2=10.0)
    res = PruneSelector(PruneThresholds(), partmass=M_E).select([slow, fast], HodoscopeEvent(geometry))
    assert res.index == 1
    assert res.reject_codes[0] == 100


def test_prune_empty_event(geometry):
    res = PruneSelector(PruneThresholds(), partmass=M_E).select([], HodoscopeEvent(geometry))
    assert res.index is None


def test_prune_without_finite_chi2_picks_first_survivor(geometry):
    tracks = [_good_for_prune(ndof=0), _good_for_prune(ndof=0)]
    res = PruneSelector(PruneThresholds(), partmass=M_E).select(tracks, HodoscopeEvent(geometry))
    assert res.index == 0
    assert res.keep == [True, True]
    assert ChiSquareSelector().select(tracks).index == res.index


def test_prune_needs_hodoscope():
    with pytest.raises(DataError):
        PruneSelector(PruneThresholds(), partmass=M_E).select([_good_for_prune()], None)


def test_prune_nan_quantity_fails_its_pass(geometry):
    tracks = [_good_for_prune(chi2=1.0, xp_tar=math.nan), _good_for_prune(chi2=10.0)]
    res = PruneSelector(PruneThresholds(), partmass=M_E).select(tracks, HodoscopeEvent(geometry))
    assert res.index == 1
    assert res.keep == [False, True]
    assert res.reject_codes == [1, 0]
