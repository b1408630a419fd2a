from __future__ import annotations
from typing import Dict, List, Sequence
import h5py
import numpy as np
from datetime import datetime, timezone
from hcspec.config.schemas import Config
from hcspec.config.load import snapshot_config_toml
from hcspec.physics.events import SpectrometerEvent
from hcspec.physics.kinematics import CentralKinematics
from hcspec.pipelines.spectrometer import EventResult

FORMAT_VERSION = "1.0"

TRACK_COLUMNS = (
    "x_fp", "y_fp", "xp_fp", "yp_fp",
    "xp_tar", "yp_tar", "y_tar", "delta", "p",
    "chi2", "ndof", "beta", "beta_chi2",
)


def write_init(
    path: str,
    cfg_path: str,
    cfg: Config,
    central: CentralKinematics,
    n_terms: int,
) -> h5py.File:
    f = h5py.File(path, "w")
    # Root attrs
    f.attrs["format_version"] = FORMAT_VERSION
    f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
    f.attrs["software"] = "hcspec 0.1.0"
    f.attrs["config_text"] = snapshot_config_toml(cfg_path)

    # /meta
    meta = f.create_group("meta")
    meta.attrs["pcentral"] = central.pcentral
    meta.attrs["theta_lab_deg"] = central.theta_lab
    meta.attrs["phi_lab_deg"] = central.phi_lab
    meta.attrs["partmass"] = cfg.kinematics.partmass
    meta.attrs["oopcentral_offset"] = cfg.kinematics.oopcentral_offset
    meta.attrs["matrix_path"] = cfg.recon.matrix_path
    meta.attrs["matrix_terms"] = int(n_terms)
    meta.attrs["strategy"] = cfg.selection.resolved_strategy()
    meta.attrs["sort_tracks"] = bool(cfg.selection.sort_tracks)
    return f


def _replace_or_create(grp: h5py.Group, name: str, data: np.ndarray) -> None:
    if name in grp:
        del grp[name]
    grp.create_dataset(name, data=data, compression="gzip")


def write_results(
    f: h5py.File,
    events: Sequence[SpectrometerEvent],
    results: Sequence[EventResult],
) -> None:
    """
    Store per-track and per-event results.

    /tracks/<col>       : flat per-track columns (rows in event order, then
                          upstream track order)
    /tracks/event_id    : owning event
    /tracks/chi2_per_dof, /tracks/reject_code (-1 unless prune), /tracks/golden
    /events/event_id, /events/n_tracks, /events/track_ptr (CSR pointers
    into /tracks), /events/golden (index within the event or -1),
    /events/status
    """
    if len(events) != len(results):
        raise ValueError(f"{len(events)} events but {len(results)} results")

    n_ev = len(events)
    ptr = np.zeros(n_ev + 1, dtype=np.int64)
    for i, ev in enumerate(events):
        ptr[i + 1] = ptr[i] + ev.n_tracks
    m = int(ptr[-1])

    cols: Dict[str, np.ndarray] = {c: np.zeros(m, dtype=np.float64) for c in TRACK_COLUMNS}
    trk_event = np.zeros(m, dtype=np.int64)
    chi2_dof = np.zeros(m, dtype=np.float64)
    reject = np.full(m, -1, dtype=np.int64)
    golden = np.zeros(m, dtype=bool)

    ev_id = np.zeros(n_ev, dtype=np.int64)
    ev_ntrk = np.zeros(n_ev, dtype=np.int32)
    ev_golden = np.full(n_ev, -1, dtype=np.int32)
    ev_status = np.zeros(n_ev, dtype=np.int8)

    for i, (ev, res) in enumerate(zip(events, results)):
        ev_id[i] = ev.event_id
        ev_ntrk[i] = ev.n_tracks
        ev_golden[i] = res.golden_index
        ev_status[i] = int(res.status)
        sel = res.selection
        for j, t in enumerate(ev.tracks):
            w = int(ptr[i]) + j
            trk_event[w] = ev.event_id
            if t is None:
                # missing track of a DATA_ERROR event
                for c in TRACK_COLUMNS:
                    cols[c][w] = np.nan
                chi2_dof[w] = np.nan
            else:
                for c in TRACK_COLUMNS:
                    cols[c][w] = float(getattr(t, c))
                chi2_dof[w] = t.chi2_per_dof
            if sel is not None and sel.reject_codes is not None:
                reject[w] = sel.reject_codes[j]
            golden[w] = (j == res.golden_index)

    g_trk = f.require_group("tracks")
    for c, arr in cols.items():
        _replace_or_create(g_trk, c, arr)
    _replace_or_create(g_trk, "event_id", trk_event)
    _replace_or_create(g_trk, "chi2_per_dof", chi2_dof)
    _replace_or_create(g_trk, "reject_code", reject)
    _replace_or_create(g_trk, "golden", golden)

    g_ev = f.require_group("events")
    _replace_or_create(g_ev, "event_id", ev_id)
    _replace_or_create(g_ev, "n_tracks", ev_ntrk)
    _replace_or_create(g_ev, "track_ptr", ptr)
    _replace_or_create(g_ev, "golden", ev_golden)
    _replace_or_create(g_ev, "status", ev_status)


def write_diagnostics(f: h5py.File, counters: Dict[str, int]) -> None:
    grp = f.require_group("diagnostics")
    for k, v in counters.items():
        grp.attrs[k] = int(v)


def read_golden(path: str) -> Dict[str, np.ndarray]:
    """Return the per-track columns restricted to golden tracks."""
    path = str(path)
    with h5py.File(path, "r") as f:
        if "tracks" not in f:
            raise KeyError(f"/tracks not found in {path}")
        grp = f["tracks"]
        mask = np.array(grp["golden"], dtype=bool)
        out = {name: np.array(grp[name])[mask] for name in grp.keys() if name != "golden"}
    return out


def read_events(path: str) -> Dict[str, np.ndarray]:
    path = str(path)
    with h5py.File(path, "r") as f:
        grp = f["events"]
        return {name: np.array(grp[name]) for name in grp.keys()}
