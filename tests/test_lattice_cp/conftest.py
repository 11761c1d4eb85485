"""
Shared pytest fixtures for lattice_cp test suite.
"""
import pytest

from lattice_cp.backends.cpu import CPUBackend
from lattice_cp.cross_sections import MultigroupCrossSections
from lattice_cp.cylindrical_cell import CylindricalCell
from lattice_cp.library import build_c5g7_moderator, build_c5g7_uo2, build_pin_cell


def _one_group(sigma_tr, sigma_s=0.0, nu_sigma_f=0.0, name=""):
    return MultigroupCrossSections(
        sigma_tr=[sigma_tr],
        sigma_a=[sigma_tr - sigma_s],
        sigma_s_tr=[[sigma_s]],
        nu_sigma_f=[nu_sigma_f],
        chi=[1.0 if nu_sigma_f > 0 else 0.0],
        name=name,
    )


@pytest.fixture
def make_one_group():
    """Factory for one-group materials; absorption is whatever scattering leaves."""
    return _one_group


@pytest.fixture
def make_absorber():
    """Factory for one-group purely absorbing materials."""
    def _make(sigma):
        return _one_group(sigma, name="absorber")
    return _make


@pytest.fixture
def uo2():
    """C5G7 UO2 fuel."""
    return build_c5g7_uo2()


@pytest.fixture
def moderator():
    """C5G7 H2O moderator."""
    return build_c5g7_moderator()


@pytest.fixture
def serial_backend():
    """CPUBackend running every group in the calling process."""
    return CPUBackend(n_workers=1)


@pytest.fixture(scope="session")
def solved_pin_cell():
    """Small solved UO2 pin cell (2 fuel + 2 moderator rings, 7 groups)."""
    radii, mats = build_pin_cell(fuel_rings=2, moderator_rings=2)
    cell = CylindricalCell(radii, mats)
    cell.solve()
    return cell


@pytest.fixture(scope="session")
def solved_uo2_cell():
    """Solved 3-ring cell filled with UO2 only."""
    fuel = build_c5g7_uo2()
    cell = CylindricalCell([0.3, 0.5, 0.7], [fuel] * 3)
    cell.solve()
    return cell


@pytest.fixture
def two_region_absorber(make_absorber):
    """Unsolved two-region cell, Etr = 1/cm, R = 1 cm."""
    mat = make_absorber(1.0)
    return CylindricalCell([0.5, 1.0], [mat, mat])


@pytest.fixture(scope="session")
def serial_pin_tensors():
    """P, X, Y, Gamma of a 3-region pin cell solved in the calling process."""
    radii, mats = build_pin_cell(fuel_rings=2, moderator_rings=1)
    cell = CylindricalCell(radii, mats)
    cell.solve(backend=CPUBackend(n_workers=1))
    return cell.p, cell.x, cell.y, cell.gamma
