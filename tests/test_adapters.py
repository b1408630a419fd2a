import pandas as pd
import pytest

from hcspec.io.adapters import make_adapter


def _write_tables(tmp_path):
    trk = pd.DataFrame({
        "event": [3, 1, 1],
        "x_fp": [1.0, 2.0, 3.0],
        "y_fp": [0.0, 0.0, 0.0],
        "xp_fp": [0.01, 0.02, 0.03],
        "yp_fp": [0.0, 0.0, 0.0],
        "chi2": [4.0, 2.0, 6.0],
        "ndof": [2, 2, 2],
        "good_plane_x": [True, False, True],
    })
    hits = pd.DataFrame({
        "event": [1, 1, 2],
        "plane": [2, 3, 3],
        "paddle": [5, 4, 0],
        "start_time": [1.5, 1.5, -0.5],
    })
    tp = tmp_path / "tracks.csv"
    hp = tmp_path / "hits.csv"
    trk.to_csv(tp, index=False)
    hits.to_csv(hp, index=False)
    return tp, hp


def test_table_adapter_groups_events_in_order(tmp_path):
    tp, hp = _write_tables(tmp_path)
    events = list(make_adapter({"type": "table"}).iter_events(str(tp), str(hp)))
    assert [e.event_id for e in events] == [1, 2, 3]

    e1, e2, e3 = events
    assert e1.n_tracks == 2
    assert [t.x_fp for t in e1.tracks] == [2.0, 3.0]
    assert e1.tracks[1].good_plane_x is True
    assert e1.hodo_hits == {2: [5], 3: [4]}
    assert e1.start_time == 1.5

    assert e2.n_tracks == 0 and e2.hodo_hits == {3: [0]}
    assert e3.hodo_hits == {} and e3.start_time == 0.0
    # optional columns default
    assert e3.tracks[0].beta == 0.0


def test_mm_positions_are_converted(tmp_path):
    tp, _ = _write_tables(tmp_path)
    events = list(make_adapter({"pos_units": "mm"}).iter_events(str(tp)))
    assert events[0].tracks[0].x_fp == pytest.approx(0.2)


def test_missing_columns_are_reported(tmp_path):
    p = tmp_path / "bad.csv"
    pd.DataFrame({"event": [0], "x_fp": [0.0]}).to_csv(p, index=False)
    with pytest.raises(KeyError):
        list(make_adapter({}).iter_events(str(p)))


def test_unknown_adapter_type():
    with pytest.raises(ValueError):
        make_adapter({"type": "root"})
