# src/hcspec/pipelines/spectrometer.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

from hcspec.config.schemas import Config
from hcspec.errors import DataError, HcSpecError, InitError, Status
from hcspec.geometry.hodoscope import HodoscopeGeometry, HodoscopePlaneView
from hcspec.io.matrix import load_transport_map
from hcspec.physics.events import SpectrometerEvent
from hcspec.physics.kinematics import CentralKinematics
from hcspec.physics.tracks import Track
from hcspec.physics.transport import FocalPlaneCalib, TargetReconstructor, TransportMap
from hcspec.selection.golden import (
    GoldenTrackSelector,
    SelectionDiagnostics,
    SelectionResult,
    make_selector,
)


@dataclass
class EventResult:
    event_id: int
    status: Status
    selection: Optional[SelectionResult] = None
    error: Optional[str] = None

    @property
    def golden_index(self) -> int:
        if self.selection is None or self.selection.index is None:
            return -1
        return self.selection.index


@dataclass
class RunDiagnostics:
    events: int = 0
    tracks: int = 0
    no_tracks: int = 0
    data_errors: int = 0
    selection: SelectionDiagnostics = field(default_factory=SelectionDiagnostics)

    def as_dict(self) -> Dict[str, int]:
        d = {
            "events": self.events,
            "tracks": self.tracks,
            "no_tracks": self.no_tracks,
            "data_errors": self.data_errors,
            "selected": self.selection.selected,
            "fallback": self.selection.fallback,
        }
        d.update(self.selection.reasons)
        return d


class HallCSpectrometer:
    """
    Target reconstruction and golden-track selection for one spectrometer.

    The hodoscope geometry is injected (or built from [hodoscope.planes]);
    without one, setup fails. setup() must succeed before events are
    processed; the transport map it loads is shared read-only by every
    event afterwards.
    """

    def __init__(
        self,
        cfg: Config,
        hodoscope: Optional[HodoscopeGeometry] = None,
        tmap: Optional[TransportMap] = None,
    ):
        self.cfg = cfg
        if hodoscope is None and cfg.hodoscope.planes:
            hodoscope = HodoscopeGeometry.from_cfg([p.model_dump() for p in cfg.hodoscope.planes])
        self.hodoscope = hodoscope
        self.tmap = tmap
        self.central: Optional[CentralKinematics] = None
        self.reconstructor: Optional[TargetReconstructor] = None
        self.selector: Optional[GoldenTrackSelector] = None
        self.diagnostics = RunDiagnostics()
        self._is_setup = False

    @property
    def strategy(self) -> str:
        return self.cfg.selection.resolved_strategy()

    def setup(self) -> Status:
        """Status-returning wrapper around init()."""
        try:
            self.init()
        except InitError as exc:
            if self.cfg.run.diagnostics_level >= 1:
                print(f"[init] {exc}")
            return Status.INIT_ERROR
        return Status.OK

    def init(self) -> None:
        cfg = self.cfg
        diag = cfg.run.diagnostics_level

        if self.hodoscope is None:
            raise InitError("Cannot find hodoscope detector")
        n = self.hodoscope.num_planes
        if n != cfg.hodoscope.num_planes:
            raise InitError(f"hodoscope has {n} planes, config expects {cfg.hodoscope.num_planes}")

        k = cfg.kinematics
        self.central = CentralKinematics.from_settings(
            pcentral=k.pcentral,
            pcentral_offset=k.pcentral_offset,
            theta_lab=k.theta_lab,
            thetacentral_offset=k.thetacentral_offset,
            phi_offset=cfg.recon.phi_offset,
        )

        if self.tmap is None:
            self.tmap = load_transport_map(
                cfg.recon.matrix_path,
                strict=cfg.recon.strict_matrix,
                diagnostics_level=diag,
            )

        r = cfg.recon
        calib = FocalPlaneCalib(
            ang_slope_x=r.ang_slope_x, ang_slope_y=r.ang_slope_y,
            ang_offset_x=r.ang_offset_x, ang_offset_y=r.ang_offset_y,
            det_offset_x=r.det_offset_x, det_offset_y=r.det_offset_y,
            z_true_focus=r.z_true_focus,
            theta_offset=r.theta_offset, phi_offset=r.phi_offset,
            delta_offset=r.delta_offset,
        )
        self.reconstructor = TargetReconstructor(self.tmap, calib, self.central.pcentral)
        self.selector = make_selector(cfg.selection, cfg.hodoscope, partmass=k.partmass)

        if diag >= 1:
            print(f"[init] strategy = {self.selector.name} (sort_tracks={cfg.selection.sort_tracks})")
            print(f"[init] pcentral = {self.central.pcentral:.6g} GeV/c, "
                  f"theta_lab = {self.central.theta_lab:.4f} deg, partmass = {k.partmass:.6g}")
        if diag >= 2 and self.selector.name == "prune":
            print(f"[init] prune thresholds (clamped) = {self.selector.thresholds}")
        self._is_setup = True

    # --- per-event stages ----------------------------------------------------

    def find_vertices(self, tracks: Sequence[Track]) -> int:
        """Reconstruct target quantities for every track; returns the count."""
        self._require_setup()
        for i, t in enumerate(tracks):
            if t is None:
                raise DataError(f"Track {i} of {len(tracks)} is missing")
        return self.reconstructor.reconstruct_all(tracks)

    def track_calc(
        self,
        tracks: Sequence[Track],
        hodo: Optional[HodoscopePlaneView] = None,
    ) -> SelectionResult:
        self._require_setup()
        res = self.selector.select(tracks, hodo)
        self.track_times(tracks)
        return res

    def track_times(self, tracks: Sequence[Track]) -> Status:
        """Beta / path-length correction stage; not implemented, always OK."""
        return Status.OK

    def process_event(
        self,
        event: SpectrometerEvent,
        hodo: Optional[HodoscopePlaneView] = None,
    ) -> EventResult:
        """
        Run find_vertices + track_calc for one event.

        DataError aborts only this event and is reported through the status.
        """
        self._require_setup()
        d = self.diagnostics
        d.events += 1
        d.tracks += event.n_tracks
        if event.n_tracks == 0:
            d.no_tracks += 1
        if hodo is None:
            hodo = event.hodoscope(self.hodoscope)
        try:
            self.find_vertices(event.tracks)
            sel = self.track_calc(event.tracks, hodo)
        except DataError as exc:
            d.data_errors += 1
            d.selection.errors += 1
            if self.cfg.run.diagnostics_level >= 2:
                print(f"[select] event {event.event_id}: {exc}")
            return EventResult(event.event_id, exc.status, error=str(exc))

        d.selection.record(sel)
        if self.cfg.run.diagnostics_level >= 2:
            print(f"[select] event {event.event_id}: {event.n_tracks} tracks -> golden {sel.index}"
                  + (" (fallback)" if sel.fallback else ""))
        return EventResult(event.event_id, Status.OK, selection=sel)

    def _require_setup(self) -> None:
        if not self._is_setup:
            raise HcSpecError("HallCSpectrometer.init() has not been run")
