from __future__ import annotations
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Literal, Optional, Dict, List, Any

from hcspec.physics.kinematics import M_E_GEV, PARTICLES

class RunCfg(BaseModel):
    """
    Global run controls.
    """

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose
    progress: bool = False

    # Limits
    max_events: Optional[int] = None

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

class IOCfg(BaseModel):
    """
    I/O paths.

    TOML:

    [io]
    input_path  = "tracks.csv"     # per-track table (.csv | .parquet | .h5)
    hits_path   = "hodo_hits.csv"  # per-hit hodoscope table (optional)
    output_path = "golden.h5"
    """

    input_path: str
    hits_path: Optional[str] = None
    output_path: str

    # Adapter-specific sub-config, e.g. [io.adapter]
    adapter: Dict[str, Any] = Field(default_factory=dict)

class ReconCfg(BaseModel):
    """
    Target reconstruction: COSY coefficient file plus focal-plane
    corrections and target offsets.

    TOML:

    [recon]
    matrix_path   = "hms_recon_cosy.dat"
    strict_matrix = false
    theta_offset  = 0.0
    """

    matrix_path: str
    strict_matrix: bool = False

    ang_slope_x: float = 0.0
    ang_slope_y: float = 0.0
    ang_offset_x: float = 0.0
    ang_offset_y: float = 0.0
    det_offset_x: float = 0.0
    det_offset_y: float = 0.0
    z_true_focus: float = 0.0

    theta_offset: float = 0.0  # [rad], applied to yp_tar
    phi_offset: float = 0.0    # [rad], applied to xp_tar
    delta_offset: float = 0.0  # [%]

class KinematicsCfg(BaseModel):
    pcentral: float                   # [GeV/c]
    pcentral_offset: float = 0.0      # [%]
    theta_lab: float = 0.0            # [deg]
    thetacentral_offset: float = 0.0  # [rad]
    oopcentral_offset: float = 0.0    # [rad], recorded only
    partmass: float = M_E_GEV         # [GeV/c^2], or a name: "e" | "pi" | "p"

    @field_validator("partmass", mode="before")
    def _mass_by_name(cls, v):
        if isinstance(v, str):
            try:
                return PARTICLES[v]
            except KeyError:
                raise ValueError(f"unknown particle {v!r}; expected one of {sorted(PARTICLES)}") from None
        return v

class PruneCfg(BaseModel):
    xp: float = 0.0
    yp: float = 0.0
    ytar: float = 0.0
    delta: float = 0.0
    beta: float = 0.0
    df: float = 0.0
    chibeta: float = 0.0
    npmt: float = 0.0
    fptime: float = 0.0

class SelectionCfg(BaseModel):
    """
    Golden-track selection.

    Either give `strategy` directly or the legacy 0/1 flags
    `sel_using_scin` / `sel_using_prune`; at most one strategy may be
    enabled.
    """

    strategy: Optional[Literal["chi2", "scin", "prune"]] = None
    sel_using_scin: int = 0
    sel_using_prune: int = 0
    sort_tracks: bool = True

    # scin admissibility windows
    ndegrees_min: float = 0.0
    dedx_min: float = 0.0
    dedx_max: float = 0.0
    beta_min: float = 0.0
    beta_max: float = 0.0
    et_min: float = 0.0
    et_max: float = 0.0

    prune: PruneCfg = Field(default_factory=PruneCfg)
    prune_floors: Optional[Dict[str, float]] = None

    @field_validator("sel_using_scin", "sel_using_prune")
    def _flag_range(cls, v: int) -> int:
        if v not in (0, 1):
            raise ValueError("selection flags must be 0 or 1")
        return v

    @model_validator(mode="after")
    def _one_strategy(self) -> "SelectionCfg":
        if self.sel_using_scin and self.sel_using_prune:
            raise ValueError("sel_using_scin and sel_using_prune are mutually exclusive")
        flagged = "scin" if self.sel_using_scin else "prune" if self.sel_using_prune else None
        if self.strategy is not None and flagged is not None and flagged != self.strategy:
            raise ValueError(f"strategy={self.strategy!r} contradicts sel_using_{flagged}=1")
        return self

    def resolved_strategy(self) -> Literal["chi2", "scin", "prune"]:
        if self.strategy is not None:
            return self.strategy
        if self.sel_using_scin:
            return "scin"
        if self.sel_using_prune:
            return "prune"
        return "chi2"

class HodoPlaneCfg(BaseModel):
    n_paddles: int
    center: float
    spacing: float

class HodoscopeCfg(BaseModel):
    """
    Hodoscope planes used for golden-track matching.

    TOML:

    [hodoscope]
    num_planes   = 4
    scin_2x_zpos = 318.0
    ...

    [[hodoscope.planes]]   # one entry per plane, in plane order
    n_paddles = 16
    center    = -37.5
    spacing   = 7.5
    """

    num_planes: int = 4
    x_plane: int = 2
    y_plane: int = 3
    scin_2x_zpos: float = 0.0
    scin_2x_dzpos: float = 0.0
    scin_2y_zpos: float = 0.0
    scin_2y_dzpos: float = 0.0
    planes: List[HodoPlaneCfg] = Field(default_factory=list)

    @model_validator(mode="after")
    def _planes_consistent(self) -> "HodoscopeCfg":
        if self.planes and len(self.planes) != self.num_planes:
            raise ValueError(
                f"hodoscope.num_planes={self.num_planes} but {len(self.planes)} planes given"
            )
        for ip in (self.x_plane, self.y_plane):
            if not 0 <= ip < self.num_planes:
                raise ValueError(f"matching plane {ip} outside 0..{self.num_planes - 1}")
        return self

class VisCfg(BaseModel):
    export_png_on_write: bool = False
    quantity: str = "delta"


class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    io: IOCfg
    recon: ReconCfg
    kinematics: KinematicsCfg
    selection: SelectionCfg = Field(default_factory=SelectionCfg)
    hodoscope: HodoscopeCfg = Field(default_factory=HodoscopeCfg)
    vis: VisCfg = Field(default_factory=VisCfg)
