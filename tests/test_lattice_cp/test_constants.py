"""
Tests for lattice_cp.constants and lattice_cp.errors.
"""
import numpy as np
import pytest

from lattice_cp.constants import (
    GROUP_BOUNDARIES_EV,
    KI3_AT_ZERO,
    KI_TABLE_MAX,
    KI_TABLE_STEP,
    N_GROUPS_C5G7,
    PI,
)
from lattice_cp.errors import (
    ConfigurationError,
    ConvergenceFailure,
    LatticeError,
    NumericalError,
)


class TestGroupBoundaries:
    def test_boundary_count(self):
        """7 groups require 8 boundaries."""
        assert len(GROUP_BOUNDARIES_EV) == N_GROUPS_C5G7 + 1

    def test_monotonically_decreasing(self):
        """Boundaries must decrease from high to low energy."""
        assert np.all(np.diff(GROUP_BOUNDARIES_EV) < 0)

    def test_first_boundary_is_20_mev(self):
        assert GROUP_BOUNDARIES_EV[0] == pytest.approx(2.0e7)


class TestKiTable:
    def test_ki3_at_zero(self):
        assert KI3_AT_ZERO == pytest.approx(PI / 4.0)

    def test_table_range_is_whole_number_of_steps(self):
        n = KI_TABLE_MAX / KI_TABLE_STEP
        assert n == pytest.approx(round(n))


class TestErrorHierarchy:
    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)
        assert issubclass(ConfigurationError, LatticeError)

    def test_numerical_error_carries_group(self):
        err = NumericalError("singular", group=3)
        assert err.group == 3
        assert isinstance(err, ArithmeticError)
        assert str(err) == "singular"

    def test_convergence_failure_carries_result(self):
        sentinel = object()
        err = ConvergenceFailure("stuck", result=sentinel)
        assert err.result is sentinel
        assert isinstance(err, LatticeError)
