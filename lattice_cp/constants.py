"""
Numerical constants for the collision probability and flux solvers.
Lengths are in cm and cross sections in 1/cm throughout.
"""
import numpy as np

# ---------------------------------------------------------------------------
# Mathematical constants
# ---------------------------------------------------------------------------
PI = np.pi
KI3_AT_ZERO = PI / 4.0            # Ki3(0) = int_0^{pi/2} cos^2 = pi/4

# ---------------------------------------------------------------------------
# Bickley-Naylor tabulation
# ---------------------------------------------------------------------------
KI_TABLE_MAX = 20.0               # tabulated range [0, KI_TABLE_MAX]
KI_TABLE_STEP = 0.005             # uniform spacing of the table
KI_TABLE_GL_ORDER = 96            # Gauss-Legendre points used to build it

# ---------------------------------------------------------------------------
# Quadrature defaults (shell integrals of the CP kernel)
# ---------------------------------------------------------------------------
QUAD_EPSABS = 1.0e-11
QUAD_EPSREL = 1.0e-9
QUAD_LIMIT = 256                  # max subintervals per shell integral

# Condition number above which a group matrix is treated as singular
MAX_CONDITION_NUMBER = 1.0e12

# ---------------------------------------------------------------------------
# Flux solver defaults
# ---------------------------------------------------------------------------
KEFF_TOLERANCE = 1.0e-6
FLUX_TOLERANCE = 1.0e-5
MAX_OUTER_ITERATIONS = 1000
MAX_INNER_ITERATIONS = 100

# ---------------------------------------------------------------------------
# 7-group structure of the built-in UO2 / moderator library
# ---------------------------------------------------------------------------
N_GROUPS_C5G7 = 7
GROUP_BOUNDARIES_EV = np.array([
    2.0e7, 1.0e6, 5.0e5, 3.0, 0.625, 0.14, 5.8e-2, 1.0e-5
])
