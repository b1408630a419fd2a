# src/hcspec/physics/kinematics.py
from __future__ import annotations
from dataclasses import dataclass
import numpy as np

# GeV/c^2
M_E_GEV = 0.00051099
M_PI_GEV = 0.13957
M_P_GEV = 0.938272

PARTICLES = {
    "e": M_E_GEV,
    "pi": M_PI_GEV,
    "p": M_P_GEV,
}


def beta_from_momentum(p: float, mass: float) -> float:
    """Velocity fraction p / sqrt(p^2 + m^2) for momentum p [GeV/c] and mass [GeV/c^2]."""
    return float(p / np.sqrt(p * p + mass * mass))


@dataclass(frozen=True)
class CentralKinematics:
    """
    Spectrometer central settings after offsets are applied.

    pcentral  : central momentum [GeV/c]
    theta_lab : in-plane central angle [deg]
    phi_lab   : out-of-plane central angle [deg]
    """
    pcentral: float
    theta_lab: float
    phi_lab: float

    @classmethod
    def from_settings(
        cls,
        pcentral: float,
        pcentral_offset: float = 0.0,
        theta_lab: float = 0.0,
        thetacentral_offset: float = 0.0,
        phi_offset: float = 0.0,
    ) -> "CentralKinematics":
        """
        pcentral_offset is in percent; thetacentral_offset and phi_offset are in
        radians and get added to the lab angles in degrees.
        """
        return cls(
            pcentral=pcentral * (1.0 + pcentral_offset / 100.0),
            theta_lab=theta_lab + float(np.rad2deg(thetacentral_offset)),
            phi_lab=float(np.rad2deg(phi_offset)),
        )
