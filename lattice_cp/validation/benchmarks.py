"""
Infinite-medium validation of the CP pipeline.

A cell filled with one material and a reflective outer surface is an
infinite medium, so the flux iteration must reproduce

    k_inf = nuEf . (diag(Etr) - Es_tr^T)^-1 chi

independently of the radii, the ring count and the collision probabilities.
"""
import json
import os

import numpy as np
import scipy.linalg

from ..errors import ConfigurationError


def infinite_medium_keff(xs) -> float:
    """Multiplication factor of an infinite homogeneous medium.

    The fission operator chi nuEf^T has rank one, so the dominant
    eigenvalue of A^-1 chi nuEf^T is nuEf . A^-1 chi.
    """
    if not xs.is_fissile:
        raise ConfigurationError(f"Material {xs.name!r} is not fissile.")
    a = np.diag(xs.sigma_tr) - xs.sigma_s_tr.T
    return float(xs.nu_sigma_f @ scipy.linalg.solve(a, xs.chi))


def run_validation(backend_name='auto', material=None, radii=(0.3, 0.5, 0.7),
                   n_workers=None, tolerance=1.0e-4, output=None):
    """Compare the reflective homogeneous cell against k_inf.

    Parameters
    ----------
    backend_name : str
        Backend to use: 'auto', 'serial', 'cpu' or 'thread'.
    material : MultigroupCrossSections, optional
        Fissile material filling every ring (default: C5G7 UO2).
    radii : sequence of float
        Ring radii of the test cell (cm).
    tolerance : float
        Largest accepted relative deviation from k_inf.
    output : str, optional
        Path of a JSON report.

    Returns
    -------
    int
        Exit status: 0 for pass, 1 for fail.
    """
    from ..backends import get_backend
    from ..cylindrical_cell import CylindricalCell
    from ..flux_solver import CylindricalFluxSolver
    from ..library import build_c5g7_uo2

    if material is None:
        material = build_c5g7_uo2()

    print("=" * 70)
    print("  Infinite-Medium Validation")
    print("=" * 70)

    k_ref = infinite_medium_keff(material)
    print(f"\n  Analytic k_inf ({material.name or 'material'}): {k_ref:.6f}")

    backend = get_backend(backend_name, n_workers=n_workers)
    print(f"  Solving {len(radii)}-ring reflective cell ({backend.get_name()})...")

    cell = CylindricalCell(list(radii), [material] * len(radii))
    cell.solve(backend=backend)
    solver = CylindricalFluxSolver(
        cell, keff_tolerance=1.0e-8, flux_tolerance=1.0e-7, albedo=1.0,
    )
    result = solver.solve(verbose=False)

    delta_k = result.keff - k_ref
    delta_pcm = delta_k / k_ref * 1e5
    rel = abs(delta_k) / k_ref

    print()
    print("=" * 70)
    print("  VALIDATION COMPARISON")
    print("=" * 70)
    print(f"  Analytic k_inf:        {k_ref:.6f}")
    print(f"  CP cell k_eff:         {result.keff:.6f}")
    print(f"  Delta-k:               {delta_k:+.2e} ({delta_pcm:+.2f} pcm)")
    print(f"  Outer iterations:      {result.n_outer}")
    print(f"  Blackness Gamma:       {np.array2string(cell.gamma, precision=4)}")
    print()

    if rel <= tolerance:
        print(f"  RESULT: PASS - within {tolerance:.0e} of k_inf")
        status = 0
    else:
        print(f"  RESULT: FAIL - relative deviation {rel:.2e} exceeds {tolerance:.0e}")
        status = 1
    print("=" * 70)

    if output:
        report = {
            'k_inf': k_ref,
            'keff': result.keff,
            'delta_k': delta_k,
            'delta_pcm': delta_pcm,
            'relative_deviation': rel,
            'tolerance': tolerance,
            'n_outer': result.n_outer,
            'radii': [float(r) for r in radii],
            'backend': backend.get_name(),
            'passed': status == 0,
        }
        directory = os.path.dirname(os.path.abspath(output))
        os.makedirs(directory, exist_ok=True)
        with open(output, 'w') as f:
            json.dump(report, f, indent=2)
        print(f"\n  Validation report saved to {output}")

    return status
