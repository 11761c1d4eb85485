"""
Tests for lattice_cp.validation.benchmarks module.
"""
import json

import numpy as np
import pytest

from lattice_cp.cross_sections import MultigroupCrossSections
from lattice_cp.errors import ConfigurationError
from lattice_cp.validation.benchmarks import infinite_medium_keff, run_validation


class TestInfiniteMediumKeff:
    def test_one_group(self, make_one_group):
        """k_inf = nuEf / Ea."""
        xs = make_one_group(1.0, sigma_s=0.7, nu_sigma_f=0.45)
        assert infinite_medium_keff(xs) == pytest.approx(1.5, rel=1e-14)

    def test_two_group_downscatter(self):
        xs = MultigroupCrossSections(
            sigma_tr=[1.0, 2.0],
            sigma_a=[0.2, 0.5],
            sigma_s_tr=[[0.5, 0.3], [0.0, 1.5]],
            nu_sigma_f=[0.1, 1.0],
            chi=[1.0, 0.0],
        )
        # phi_1 = 1 / 0.5, phi_2 = 0.3 phi_1 / 0.5
        assert infinite_medium_keff(xs) == pytest.approx(0.1 * 2.0 + 1.0 * 1.2, rel=1e-14)

    def test_uo2_matches_dominant_eigenvalue(self, uo2):
        """Bare fuel has a hard spectrum, so k_inf is well below 1."""
        a = np.diag(uo2.sigma_tr) - uo2.sigma_s_tr.T
        fission = np.outer(uo2.chi, uo2.nu_sigma_f)
        eigenvalues = np.linalg.eigvals(np.linalg.solve(a, fission))
        k_ref = float(np.max(eigenvalues.real))
        assert infinite_medium_keff(uo2) == pytest.approx(k_ref, rel=1e-10)
        assert 0.70 < k_ref < 0.78

    def test_non_fissile(self, moderator):
        with pytest.raises(ConfigurationError):
            infinite_medium_keff(moderator)


class TestRunValidation:
    def test_passes_and_writes_report(self, tmp_path, capsys):
        report_path = tmp_path / "report" / "validation.json"
        status = run_validation(backend_name='serial', output=str(report_path))
        assert status == 0
        assert "PASS" in capsys.readouterr().out

        report = json.loads(report_path.read_text())
        assert report['passed'] is True
        assert report['relative_deviation'] <= report['tolerance']
