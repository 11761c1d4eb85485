"""
Tests for lattice_cp.special_functions module (Bickley-Naylor functions).
"""
import numpy as np
import pytest

from lattice_cp.constants import KI_TABLE_MAX, PI
from lattice_cp.special_functions import ki2, ki3, ki3_quad


class TestKi3Values:
    def test_value_at_zero(self):
        assert ki3(0.0) == pytest.approx(PI / 4.0, rel=1e-14)

    def test_quad_value_at_zero(self):
        """int_0^{pi/2} cos^2 = pi/4."""
        assert ki3_quad(0.0) == pytest.approx(PI / 4.0, rel=1e-12)

    def test_monotonically_decreasing(self):
        x = np.linspace(0.01, 50.0, 500)
        assert np.all(np.diff(ki3(x)) < 0)

    def test_positive(self):
        assert np.all(ki3(np.linspace(0.0, 40.0, 81)) > 0)

    def test_table_matches_quadrature(self):
        x = np.linspace(0.001, KI_TABLE_MAX - 0.01, 300)
        np.testing.assert_allclose(ki3(x), ki3_quad(x), rtol=1e-8)

    def test_table_edge(self):
        assert ki3(KI_TABLE_MAX) == pytest.approx(ki3_quad(KI_TABLE_MAX), rel=1e-8)

    def test_beyond_table_uses_quadrature(self):
        assert ki3(30.0) == pytest.approx(ki3_quad(30.0), rel=1e-12)

    def test_large_argument_asymptote(self):
        """Ki3(x) ~ sqrt(pi / 2x) exp(-x) (1 - 13 / 8x) for large x."""
        x = 40.0
        asymptote = np.sqrt(PI / (2.0 * x)) * np.exp(-x) * (1.0 - 13.0 / (8.0 * x))
        assert ki3(x) == pytest.approx(asymptote, rel=0.01)


class TestKi2:
    def test_value_at_zero(self):
        """Ki2(0) = int_0^{pi/2} cos = 1."""
        assert ki2(0.0) == pytest.approx(1.0, rel=1e-12)

    def test_is_negative_derivative_of_ki3(self):
        x, h = 1.0, 1e-4
        slope = (ki3(x + h) - ki3(x - h)) / (2.0 * h)
        assert ki2(x) == pytest.approx(-slope, rel=1e-6)

    def test_ki2_above_ki3(self):
        """cos^{n-1} decreases with n, so Ki2 > Ki3 for x > 0."""
        x = np.linspace(0.1, 10.0, 50)
        assert np.all(ki2(x) > ki3(x))


class TestInputHandling:
    def test_scalar_returns_float(self):
        assert isinstance(ki3(1.0), float)

    def test_array_shape_preserved(self):
        out = ki3(np.zeros((2, 3)))
        assert out.shape == (2, 3)
        np.testing.assert_allclose(out, PI / 4.0)

    def test_negative_argument_raises(self):
        with pytest.raises(ValueError):
            ki3(-0.1)

    def test_nan_raises(self):
        with pytest.raises(ValueError):
            ki3(np.array([1.0, np.nan]))
