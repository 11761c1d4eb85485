"""
Built-in 7-group cross-section sets and a pin-cell builder.

The UO2 fuel and H2O moderator data are the transport-corrected C5G7
benchmark sets (1/cm), 7 groups from 20 MeV down to thermal.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from .constants import PI
from .cross_sections import MultigroupCrossSections
from .errors import ConfigurationError


# ===================================================================
# UO2 fuel
# ===================================================================

def build_c5g7_uo2() -> MultigroupCrossSections:
    """UO2 fuel, 7 groups, transport corrected."""
    sigma_tr = np.array([
        1.77949e-01, 3.29805e-01, 4.80388e-01, 5.54367e-01,
        3.11801e-01, 3.95168e-01, 5.64406e-01,
    ])
    sigma_a = np.array([
        8.02480e-03, 3.71740e-03, 2.67690e-02, 9.62360e-02,
        3.00200e-02, 1.11260e-01, 2.82780e-01,
    ])
    sigma_f = np.array([
        7.21206e-03, 8.19301e-04, 6.45320e-03, 1.85648e-02,
        1.78084e-02, 8.30348e-02, 2.16004e-01,
    ])
    nu = np.array([2.78145, 2.47443, 2.43383, 2.43380, 2.43380, 2.43380, 2.43380])
    chi = np.array([5.87910e-01, 4.11760e-01, 3.39060e-04, 1.17610e-07, 0.0, 0.0, 0.0])
    sigma_s = np.array([
        [1.27537e-01, 4.23780e-02, 9.43740e-06, 5.51630e-09, 0.0, 0.0, 0.0],
        [0.0, 3.24456e-01, 1.63140e-03, 3.14270e-09, 0.0, 0.0, 0.0],
        [0.0, 0.0, 4.50940e-01, 2.67920e-03, 0.0, 0.0, 0.0],
        [0.0, 0.0, 0.0, 4.52565e-01, 5.56640e-03, 0.0, 0.0],
        [0.0, 0.0, 0.0, 1.25250e-04, 2.71401e-01, 1.02550e-02, 1.00210e-08],
        [0.0, 0.0, 0.0, 0.0, 1.29680e-03, 2.65802e-01, 1.68090e-02],
        [0.0, 0.0, 0.0, 0.0, 0.0, 8.54580e-03, 2.73080e-01],
    ])
    return MultigroupCrossSections(
        sigma_tr=sigma_tr,
        sigma_a=sigma_a,
        sigma_s_tr=sigma_s,
        sigma_f=sigma_f,
        nu_sigma_f=nu * sigma_f,
        chi=chi,
        name="UO2",
    )


# ===================================================================
# H2O moderator
# ===================================================================

def build_c5g7_moderator() -> MultigroupCrossSections:
    """Light-water moderator, 7 groups, transport corrected."""
    sigma_tr = np.array([
        1.59206e-01, 4.12970e-01, 5.90310e-01, 5.84350e-01,
        7.18000e-01, 1.25445e+00, 2.65038e+00,
    ])
    sigma_a = np.array([
        6.01050e-04, 1.57930e-05, 3.37160e-04, 1.94060e-03,
        5.74160e-03, 1.50010e-02, 3.72390e-02,
    ])
    sigma_s = np.array([
        [4.44777e-02, 1.13400e-01, 7.23470e-04, 3.74990e-06, 5.31840e-08, 0.0, 0.0],
        [0.0, 2.82334e-01, 1.29940e-01, 6.23400e-04, 4.80020e-05, 7.44860e-06, 1.04550e-06],
        [0.0, 0.0, 3.45256e-01, 2.24570e-01, 1.69990e-02, 2.64430e-03, 5.03440e-04],
        [0.0, 0.0, 0.0, 9.10284e-02, 4.15510e-01, 6.37320e-02, 1.21390e-02],
        [0.0, 0.0, 0.0, 7.14370e-05, 1.39138e-01, 5.11820e-01, 6.12290e-02],
        [0.0, 0.0, 0.0, 0.0, 2.21570e-03, 6.99913e-01, 5.37320e-01],
        [0.0, 0.0, 0.0, 0.0, 0.0, 1.32440e-01, 2.48070e+00],
    ])
    return MultigroupCrossSections(
        sigma_tr=sigma_tr,
        sigma_a=sigma_a,
        sigma_s_tr=sigma_s,
        name="H2O",
    )


# ===================================================================
# Pin cell builder
# ===================================================================

def _equal_area_radii(r_inner: float, r_outer: float, n_rings: int) -> List[float]:
    """Outer radii of n_rings equal-area annuli between r_inner and r_outer."""
    area_in = r_inner * r_inner
    step = (r_outer * r_outer - area_in) / n_rings
    return [float(np.sqrt(area_in + (m + 1) * step)) for m in range(n_rings)]


def build_pin_cell(
    fuel_radius: float = 0.54,
    pitch: float = 1.26,
    fuel_rings: int = 4,
    moderator_rings: int = 3,
    fuel: Optional[MultigroupCrossSections] = None,
    moderator: Optional[MultigroupCrossSections] = None,
) -> Tuple[List[float], List[MultigroupCrossSections]]:
    """Radii and materials for a fuel pin in a cylindrized moderator cell.

    The square cell of side *pitch* is replaced by a cylinder of equal
    area (Wigner-Seitz radius pitch / sqrt(pi)).  Fuel and moderator are
    split into equal-area rings; every fuel ring shares the same fuel
    object, every moderator ring the same moderator object.

    Returns
    -------
    (radii, materials) ready for CylindricalCell.
    """
    if fuel_rings < 1 or moderator_rings < 1:
        raise ConfigurationError("Need at least one fuel ring and one moderator ring.")
    r_cell = pitch / np.sqrt(PI)
    if not 0.0 < fuel_radius < r_cell:
        raise ConfigurationError(
            f"Fuel radius {fuel_radius} must lie in (0, {r_cell:.5f}) for pitch {pitch}."
        )

    fuel = fuel if fuel is not None else build_c5g7_uo2()
    moderator = moderator if moderator is not None else build_c5g7_moderator()

    radii = _equal_area_radii(0.0, fuel_radius, fuel_rings)
    radii += _equal_area_radii(fuel_radius, r_cell, moderator_rings)
    # Pin the interface and outer radius exactly
    radii[fuel_rings - 1] = float(fuel_radius)
    radii[-1] = float(r_cell)

    mats = [fuel] * fuel_rings + [moderator] * moderator_rings
    return radii, mats
