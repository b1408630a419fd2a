import numpy as np
import pytest

from hcspec.physics.tracks import Track
from hcspec.physics.transport import (
    FocalPlaneCalib,
    TargetReconstructor,
    TransportMap,
    TransportTerm,
)

TERMS = [
    TransportTerm(coeff=(1.0, 2.0, 3.0, 4.0), exp=(1, 0, 0, 0, 0)),   # x
    TransportTerm(coeff=(0.5, 0.0, 0.0, -1.0), exp=(0, 1, 1, 0, 0)),  # xp*y
    TransportTerm(coeff=(0.0, 0.0, 0.0, 2.0), exp=(0, 0, 0, 0, 0)),   # constant
    TransportTerm(coeff=(0.0, 1.0, 0.0, 0.0), exp=(0, 0, 0, 2, 0)),   # yp^2
]


def test_polynomial_sums_match_hand_computation():
    tmap = TransportMap(TERMS)
    s = tmap.evaluate([0.1, 0.2, 0.3, 0.4, 0.0])
    # xp_tar: 0.1 + 0.5*0.06 ; y_tar: 0.2 + 0.16 ; yp_tar: 0.3 ; delta: 0.4 - 0.06 + 2
    np.testing.assert_allclose(s, [0.13, 0.36, 0.3, 2.34], rtol=0, atol=1e-12)


def test_zero_exponent_ignores_input_value():
    tmap = TransportMap([TransportTerm(coeff=(1.0, 1.0, 1.0, 1.0), exp=(0, 0, 0, 0, 0))])
    s = tmap.evaluate([0.0, -5.0, np.inf, 0.0, 0.0])
    np.testing.assert_array_equal(s, [1.0, 1.0, 1.0, 1.0])


def test_map_is_read_only():
    tmap = TransportMap(TERMS)
    with pytest.raises(ValueError):
        tmap.coefficients[0, 0] = 99.0


def test_reconstruct_writes_target_quantities():
    calib = FocalPlaneCalib(theta_offset=0.02, phi_offset=0.01, delta_offset=0.5)
    rec = TargetReconstructor(TransportMap(TERMS), calib, pcentral=2.0)
    trk = Track(x_fp=10.0, y_fp=30.0, xp_fp=0.2, yp_fp=0.4)
    rec.reconstruct(trk)
    assert trk.xp_tar == pytest.approx(0.13 + 0.01)
    assert trk.yp_tar == pytest.approx(0.3 + 0.02)
    assert trk.y_tar == pytest.approx(36.0)
    assert trk.delta == pytest.approx(234.0 + 0.5)
    assert trk.p == pytest.approx(2.0 * (1.0 + trk.delta / 100.0))


def test_focal_plane_corrections_and_rotation():
    calib = FocalPlaneCalib(
        z_true_focus=1.5, det_offset_x=0.01, det_offset_y=-0.02,
        ang_offset_x=0.001, ang_offset_y=0.002,
        ang_slope_x=0.5, ang_slope_y=-0.25,
    )
    rec = TargetReconstructor(TransportMap([]), calib, pcentral=1.0)
    trk = Track(x_fp=20.0, y_fp=-4.0, xp_fp=0.03, yp_fp=0.01)
    hut = rec.focal_plane_vector(trk)
    x = 0.20 + 1.5 * 0.03 + 0.01
    y = -0.04 + 1.5 * 0.01 - 0.02
    np.testing.assert_allclose(
        hut,
        [x, 0.03 + 0.001 + 0.5 * x, y, 0.01 + 0.002 - 0.25 * y, 0.0],
        atol=1e-15,
    )


def test_empty_map_gives_offsets_only():
    calib = FocalPlaneCalib(delta_offset=-0.3)
    rec = TargetReconstructor(TransportMap([]), calib, pcentral=5.0)
    trk = rec.reconstruct(Track(x_fp=1.0, y_fp=2.0, xp_fp=0.01, yp_fp=0.02))
    assert (trk.xp_tar, trk.yp_tar, trk.y_tar) == (0.0, 0.0, 0.0)
    assert trk.delta == pytest.approx(-0.3)
    assert trk.p == pytest.approx(5.0 * (1.0 - 0.003))


def test_reconstruction_is_deterministic():
    rec = TargetReconstructor(TransportMap(TERMS), FocalPlaneCalib(z_true_focus=0.7), pcentral=3.3)
    a = Track(x_fp=-12.3, y_fp=4.56, xp_fp=0.0123, yp_fp=-0.0456)
    b = Track(x_fp=-12.3, y_fp=4.56, xp_fp=0.0123, yp_fp=-0.0456)
    rec.reconstruct(a)
    rec.reconstruct(b)
    rec.reconstruct(b)
    assert (a.xp_tar, a.yp_tar, a.y_tar, a.delta, a.p) == (b.xp_tar, b.yp_tar, b.y_tar, b.delta, b.p)
