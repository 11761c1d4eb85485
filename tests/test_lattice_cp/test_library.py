"""
Tests for lattice_cp.library module (C5G7 data and pin-cell builder).
"""
import numpy as np
import pytest

from lattice_cp.constants import N_GROUPS_C5G7, PI
from lattice_cp.errors import ConfigurationError
from lattice_cp.library import build_pin_cell


class TestC5G7Data:
    def test_group_count(self, uo2, moderator):
        assert uo2.n_groups == N_GROUPS_C5G7
        assert moderator.n_groups == N_GROUPS_C5G7

    def test_uo2_neutron_balance(self, uo2):
        """Etr = Ea + sum of outgoing transfer for the transport-corrected set."""
        np.testing.assert_allclose(uo2.sigma_a + uo2.sigma_s_out, uo2.sigma_tr, rtol=1e-4)

    def test_moderator_neutron_balance(self, moderator):
        np.testing.assert_allclose(
            moderator.sigma_a + moderator.sigma_s_out, moderator.sigma_tr, rtol=1e-4
        )

    def test_uo2_chi_normalized(self, uo2):
        assert np.sum(uo2.chi) == pytest.approx(1.0, abs=1e-4)

    def test_uo2_fissile_moderator_not(self, uo2, moderator):
        assert uo2.is_fissile
        assert not moderator.is_fissile

    def test_nu_sigma_f_exceeds_sigma_f(self, uo2):
        assert np.all(uo2.nu_sigma_f > uo2.sigma_f)


class TestPinCell:
    def test_region_count(self):
        radii, mats = build_pin_cell(fuel_rings=3, moderator_rings=2)
        assert len(radii) == 5
        assert len(mats) == 5

    def test_radii_increasing(self):
        radii, _ = build_pin_cell()
        assert np.all(np.diff(radii) > 0)

    def test_interface_and_outer_radius(self):
        radii, _ = build_pin_cell(fuel_radius=0.5, pitch=1.3, fuel_rings=3)
        assert radii[2] == 0.5
        assert radii[-1] == pytest.approx(1.3 / np.sqrt(PI), rel=1e-15)

    def test_cell_area_preserved(self):
        """Cylindrized cell has the area of the square pitch cell."""
        radii, _ = build_pin_cell(pitch=1.26)
        assert PI * radii[-1] ** 2 == pytest.approx(1.26 ** 2, rel=1e-14)

    def test_fuel_rings_equal_area(self):
        radii, _ = build_pin_cell(fuel_rings=4)
        r = np.array([0.0] + list(radii[:4]))
        areas = np.diff(PI * r ** 2)
        np.testing.assert_allclose(areas, areas[0], rtol=1e-12)

    def test_materials_shared(self):
        _, mats = build_pin_cell(fuel_rings=2, moderator_rings=2)
        assert mats[0] is mats[1]
        assert mats[2] is mats[3]
        assert mats[0] is not mats[2]

    def test_fuel_radius_too_large(self):
        with pytest.raises(ConfigurationError):
            build_pin_cell(fuel_radius=0.8, pitch=1.26)

    def test_no_rings(self):
        with pytest.raises(ConfigurationError):
            build_pin_cell(moderator_rings=0)
