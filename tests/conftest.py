from pathlib import Path
from typing import Optional

import pytest

from hcspec.config.schemas import Config
from hcspec.geometry.hodoscope import HodoscopeGeometry, PlaneGeometry
from hcspec.io.matrix import write_transport_map
from hcspec.physics.transport import TransportMap, TransportTerm

# 1X, 1Y, 2X, 2Y ; centers at 0 and 10 cm paddles keep expected paddles easy to work out
PLANES = [
    {"n_paddles": 16, "center": 0.0, "spacing": 10.0},
    {"n_paddles": 10, "center": 0.0, "spacing": 10.0},
    {"n_paddles": 16, "center": 0.0, "spacing": 10.0},
    {"n_paddles": 10, "center": 0.0, "spacing": 10.0},
]

# xp_tar = x ; y_tar = 0.01 * y ; yp_tar = yp ; delta = 0.01 * xp
SIMPLE_TERMS = [
    TransportTerm(coeff=(1.0, 0.0, 0.0, 0.0), exp=(1, 0, 0, 0, 0)),
    TransportTerm(coeff=(0.0, 0.01, 0.0, 0.0), exp=(0, 0, 1, 0, 0)),
    TransportTerm(coeff=(0.0, 0.0, 1.0, 0.0), exp=(0, 0, 0, 1, 0)),
    TransportTerm(coeff=(0.0, 0.0, 0.0, 0.01), exp=(0, 1, 0, 0, 0)),
]


@pytest.fixture
def geometry() -> HodoscopeGeometry:
    return HodoscopeGeometry(tuple(PlaneGeometry(**p) for p in PLANES))


@pytest.fixture
def matrix_file(tmp_path: Path) -> Path:
    return write_transport_map(tmp_path / "recon_cosy.dat", TransportMap(SIMPLE_TERMS),
                               header=["test matrix"])


@pytest.fixture
def make_cfg(matrix_file: Path):
    """Factory for an in-memory Config; keyword args go to [selection]."""
    def _make(matrix_path: Optional[Path] = None, **selection) -> Config:
        return Config(
            run={"diagnostics_level": 0},
            io={"input_path": "tracks.csv", "output_path": "out.h5"},
            recon={"matrix_path": str(matrix_path or matrix_file)},
            kinematics={"pcentral": 2.0, "partmass": 0.00051099},
            selection=selection,
            hodoscope={"num_planes": 4, "planes": PLANES},
        )
    return _make
