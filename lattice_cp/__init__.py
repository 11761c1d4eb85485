"""
lattice_cp - Multigroup Collision Probability Solver for Cylindrical Lattice Cells

Pipeline:
  - CylindricalCell: annular regions -> collision probabilities P,
    transfer X, surface response Y, blackness Gamma per group
  - CylindricalFluxSolver: power iteration / fixed source on top of X, Y, Gamma
  - Per-group work dispatched serially, to processes or to threads

Ki3 kernels and shell integrals compiled with Numba.
Ships the 7-group C5G7 UO2 / H2O data for pin-cell calculations.
"""
__version__ = "0.1.0"

from .cross_sections import MultigroupCrossSections
from .cylindrical_cell import CylindricalCell
from .errors import ConfigurationError, ConvergenceFailure, LatticeError, NumericalError
from .flux_solver import CylindricalFluxSolver, FluxResult
