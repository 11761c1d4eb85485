"""
Exception hierarchy for lattice_cp.

ConfigurationError  -- malformed geometry or materials, raised at construction
NumericalError      -- singular systems, non-finite results, quadrature failure
ConvergenceFailure  -- flux iteration ran out of iterations
"""


class LatticeError(Exception):
    """Base class for all lattice_cp errors."""


class ConfigurationError(LatticeError, ValueError):
    """Invalid input geometry or cross-section data."""


class NumericalError(LatticeError, ArithmeticError):
    """A numerical step failed (singular matrix, NaN/Inf, quadrature)."""

    def __init__(self, message, group=None):
        super().__init__(message)
        self.group = group


class ConvergenceFailure(LatticeError):
    """Iteration limit reached before the tolerances were met.

    The best available (unconverged) state is attached as ``result``.
    """

    def __init__(self, message, result=None):
        super().__init__(message)
        self.result = result
