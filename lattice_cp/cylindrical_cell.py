"""
Cylindrical Collision Probability Cell

Concentric annular regions 0..N-1 with outer radii r_0 < r_1 < ... < r_{N-1},
each holding a homogeneous MultigroupCrossSections.  Centered at the origin,
infinite along z.  Lengths in cm.

solve() runs two phases per energy group g:

  1. Collision probabilities.  For i <= j
         S_ij = sum_{k=0..i} int_{r_{k-1}}^{r_k} [Ki3(tau+(y)) - Ki3(tau-(y))] dy
     where the chord at impact parameter y is split into its segments in
     regions k..j; segments in regions <= i count twice in tau+, segments
     beyond i count once in tau+ and once in tau-.  Then
         P_ij = 2 S_ij + 2 S_{i-1,j-1} - 2 S_{i-1,j} - 2 S_{i,j-1}
                (+ V_i Etr_i when i == j)
     P_ij = Etr_i V_i p_ij, symmetric in (i, j).

  2. Linear systems.  M_ij = -c_j P_ji + delta_ij Etr_i V_i, c_j = Es_j(g->g)/Etr_j
         M X[:, k] = P_k. / Etr_k                         (volume source in k)
         M Y       = (4/S) (Etr_i V_i - sum_j P_ij)       (entering current)
         Gamma     = sum_i Er_i V_i Y_i                    (blackness)
"""
import logging
import math
import time
from typing import Sequence

import numpy as np
import scipy.linalg
from numba import njit

from .backends.base import GroupBackend
from .backends.cpu import CPUBackend
from .constants import MAX_CONDITION_NUMBER, PI, QUAD_EPSABS, QUAD_EPSREL, QUAD_LIMIT
from .errors import ConfigurationError, NumericalError
from .quadrature import N_NODES, gk15_abscissae, gk15_combine, tolerance_met, worst_interval
from .special_functions import ki3_jit

logger = logging.getLogger(__name__)


# ===================================================================
# Numba JIT kernels (module-level, compiled once)
# ===================================================================

@njit(cache=True, nogil=True)
def _chord_integrand(y, radii, etr, k, i, j):
    """Ki3(tau+) - Ki3(tau-) for the chord at impact parameter y.

    y lies in shell k, so the chord crosses regions k..j on each side of
    its midpoint.  Pure function of its arguments.
    """
    y2 = y * y
    tau_pls = 0.0
    tau_min = 0.0
    x_prev = 0.0
    for n in range(k, j + 1):
        x_n = math.sqrt(max(radii[n] * radii[n] - y2, 0.0))
        dtau = (x_n - x_prev) * etr[n]
        x_prev = x_n
        if n <= i:
            tau_pls += 2.0 * dtau
        else:
            tau_pls += dtau
            tau_min += dtau
    return ki3_jit(tau_pls) - ki3_jit(tau_min)


@njit(cache=True, nogil=True)
def _gk15_chord(a, b, radii, etr, k, i, j, nodes, fvals):
    gk15_abscissae(a, b, nodes)
    for m in range(N_NODES):
        fvals[m] = _chord_integrand(nodes[m], radii, etr, k, i, j)
    return gk15_combine(fvals, a, b)


@njit(cache=True, nogil=True)
def _shell_integral(radii, etr, k, i, j, epsabs, epsrel, lo, hi, res, err, nodes, fvals):
    """Adaptive GK15 integral of the chord kernel over shell k.

    lo, hi, res, err are scratch arrays whose length is the subinterval
    limit; nodes and fvals hold 15 entries.

    Returns: (value, error, n_intervals, converged)
    """
    limit = lo.shape[0]
    lo[0] = 0.0 if k == 0 else radii[k - 1]
    hi[0] = radii[k]
    r, e = _gk15_chord(lo[0], hi[0], radii, etr, k, i, j, nodes, fvals)
    res[0] = r
    err[0] = e
    n = 1
    while True:
        total = 0.0
        total_err = 0.0
        for m in range(n):
            total += res[m]
            total_err += err[m]
        if tolerance_met(total, total_err, epsabs, epsrel):
            return total, total_err, n, True
        if n >= limit:
            return total, total_err, n, False

        # Bisect the worst interval; the right half goes to slot n
        w = worst_interval(err, n)
        mid = 0.5 * (lo[w] + hi[w])
        lo[n] = mid
        hi[n] = hi[w]
        hi[w] = mid
        r, e = _gk15_chord(lo[w], hi[w], radii, etr, k, i, j, nodes, fvals)
        res[w] = r
        err[w] = e
        r, e = _gk15_chord(lo[n], hi[n], radii, etr, k, i, j, nodes, fvals)
        res[n] = r
        err[n] = e
        n += 1


@njit(cache=True, nogil=True)
def _collision_probability_kernel(radii, vols, etr, epsabs, epsrel, limit):
    """Symmetric P matrix of one energy group.

    Returns: (p, converged, max_error, max_intervals)
    """
    n_reg = radii.shape[0]
    s = np.zeros((n_reg, n_reg))
    p = np.zeros((n_reg, n_reg))

    lo = np.empty(limit)
    hi = np.empty(limit)
    res = np.empty(limit)
    err = np.empty(limit)
    nodes = np.empty(N_NODES)
    fvals = np.empty(N_NODES)

    max_error = 0.0
    max_intervals = 0
    for j in range(n_reg):
        for i in range(j + 1):
            s_ij = 0.0
            for k in range(i + 1):
                val, e, n_int, ok = _shell_integral(
                    radii, etr, k, i, j, epsabs, epsrel, lo, hi, res, err, nodes, fvals
                )
                if e > max_error:
                    max_error = e
                if n_int > max_intervals:
                    max_intervals = n_int
                if not ok:
                    return p, False, max_error, max_intervals
                s_ij += val
            s[i, j] = s_ij
            s[j, i] = s_ij

    for j in range(n_reg):
        for i in range(j + 1):
            p_ij = 2.0 * s[i, j]
            if i > 0 and j > 0:
                p_ij += 2.0 * s[i - 1, j - 1]
            if i > 0:
                p_ij -= 2.0 * s[i - 1, j]
            if j > 0:
                p_ij -= 2.0 * s[i, j - 1]
            if i == j:
                p_ij += vols[i] * etr[i]
            p[i, j] = p_ij
            p[j, i] = p_ij

    return p, True, max_error, max_intervals


# ===================================================================
# Per-group tasks (top-level for pickle)
# ===================================================================

def _collision_probability_task(args):
    """Phase 1 worker: P matrix for one group."""
    g, radii, vols, etr, epsabs, epsrel, limit = args
    t0 = time.time()
    p, ok, max_error, max_intervals = _collision_probability_kernel(
        radii, vols, etr, epsabs, epsrel, limit
    )
    return g, p, bool(ok), float(max_error), int(max_intervals), time.time() - t0


def _transfer_task(args):
    """Phase 2 worker: X, Y and Gamma for one group.

    Returns (g, x, y, gamma, error_message); error_message is None on success.
    """
    g, p, vols, etr, es_self, er, surface = args
    c = es_self / etr

    m = -c[np.newaxis, :] * p.T
    m[np.diag_indices_from(m)] += etr * vols

    cond = np.linalg.cond(m)
    if not np.isfinite(cond) or cond > MAX_CONDITION_NUMBER:
        return g, None, None, None, (
            f"Group {g}: collision matrix is singular or ill-conditioned (cond = {cond:.3e})."
        )

    lu_piv = scipy.linalg.lu_factor(m)

    # Column k of the right-hand side is P[k, :] / Etr_k
    rhs = (p / etr[:, np.newaxis]).T
    x = scipy.linalg.lu_solve(lu_piv, rhs)

    b = (4.0 / surface) * (etr * vols - np.sum(p, axis=1))
    y = scipy.linalg.lu_solve(lu_piv, b)

    gamma = float(np.sum(er * vols * y))

    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y)) and math.isfinite(gamma)):
        return g, None, None, None, f"Group {g}: non-finite values in X, Y or Gamma."
    return g, x, y, gamma, None


def _frozen(arr):
    arr.setflags(write=False)
    return arr


# ===================================================================
# CylindricalCell
# ===================================================================

class CylindricalCell:
    """Annular cylindrical cell with collision probability solver.

    Parameters
    ----------
    radii : sequence of float
        Outer radius of every region (cm), strictly increasing, all > 0.
    mats : sequence of MultigroupCrossSections
        One cross-section set per region.  The same object may be shared by
        several regions; it is referenced, never copied.
    epsabs, epsrel, quad_limit :
        Tolerances and subinterval limit of the shell integrals.

    Raises
    ------
    ConfigurationError
        On mismatched lengths, fewer than 2 regions, unsorted or
        non-positive radii, missing materials, or zero / inconsistent
        group counts.
    """

    def __init__(
        self,
        radii: Sequence[float],
        mats: Sequence,
        epsabs: float = QUAD_EPSABS,
        epsrel: float = QUAD_EPSREL,
        quad_limit: int = QUAD_LIMIT,
    ):
        radii = list(radii)
        mats = list(mats)

        if len(radii) != len(mats):
            raise ConfigurationError("Number of radii does not match the number of materials.")

        if len(radii) < 2:
            raise ConfigurationError("Must have at least 2 regions.")

        radii_arr = np.array(radii, dtype=np.float64)
        if not np.all(np.isfinite(radii_arr)):
            raise ConfigurationError("Radii must be finite.")

        if np.any(np.diff(radii_arr) <= 0.0):
            raise ConfigurationError("Radii are not sorted in strictly increasing order.")

        if radii_arr[0] <= 0.0:
            raise ConfigurationError("All radii must be > 0.")

        for mat in mats:
            if mat is None:
                raise ConfigurationError("None found in materials.")

        n_groups = mats[0].n_groups
        if n_groups == 0:
            raise ConfigurationError("Must have at least 1 energy group.")

        for mat in mats:
            if mat.n_groups != n_groups:
                raise ConfigurationError(
                    "Not all materials have the same number of energy groups."
                )

        if epsabs <= 0.0 or epsrel <= 0.0 or quad_limit < 1:
            raise ConfigurationError("Quadrature tolerances must be > 0 and the limit >= 1.")

        self._radii = _frozen(radii_arr)
        self._mats = tuple(mats)
        self._n_groups = int(n_groups)

        # Annulus areas: pi r_i^2 - pi r_{i-1}^2
        vols = PI * radii_arr * radii_arr
        vols[1:] -= PI * radii_arr[:-1] * radii_arr[:-1]
        self._vols = _frozen(vols)

        self._epsabs = float(epsabs)
        self._epsrel = float(epsrel)
        self._quad_limit = int(quad_limit)

        self._clear()

    # ------------------------------------------------------------------
    # Geometry accessors
    # ------------------------------------------------------------------

    @property
    def n_regions(self) -> int:
        return int(self._radii.shape[0])

    @property
    def n_groups(self) -> int:
        return self._n_groups

    @property
    def radii(self) -> np.ndarray:
        return self._radii

    @property
    def volumes(self) -> np.ndarray:
        """Area of every annulus (volume per unit height)."""
        return self._vols

    @property
    def materials(self):
        return self._mats

    @property
    def outer_radius(self) -> float:
        return float(self._radii[-1])

    @property
    def surface(self) -> float:
        """Outer surface per unit height: the circumference 2 pi R."""
        return 2.0 * PI * self.outer_radius

    def mat(self, i: int):
        return self._mats[i]

    # ------------------------------------------------------------------
    # Result accessors
    # ------------------------------------------------------------------

    @property
    def solved(self) -> bool:
        return self._solved

    def _require_solved(self):
        if not self._solved:
            raise RuntimeError("CylindricalCell has not been solved; call solve() first.")

    @property
    def p(self) -> np.ndarray:
        """P[g, i, j] = Etr_i V_i p_ij, symmetric in (i, j)."""
        self._require_solved()
        return self._p

    @property
    def x(self) -> np.ndarray:
        """X[g, i, k]: flux in region i per unit source density in region k."""
        self._require_solved()
        return self._x

    @property
    def y(self) -> np.ndarray:
        """Y[g, i]: flux in region i per neutron entering through the surface."""
        self._require_solved()
        return self._y

    @property
    def gamma(self) -> np.ndarray:
        """Gamma[g]: multicollision blackness of the cell."""
        self._require_solved()
        return self._gamma

    def p_ij(self, g: int, i: int, j: int) -> float:
        return float(self.p[g, i, j])

    def x_ik(self, g: int, i: int, k: int) -> float:
        return float(self.x[g, i, k])

    def y_i(self, g: int, i: int) -> float:
        return float(self.y[g, i])

    def gamma_g(self, g: int) -> float:
        return float(self.gamma[g])

    def collision_probability(self, g: int, i: int, j: int) -> float:
        """Probability that a neutron born in i has its first collision in j."""
        etr_i = self._mats[i].sigma_tr[g]
        return float(self.p[g, i, j] / (etr_i * self._vols[i]))

    def escape_probability(self, g: int, i: int) -> float:
        """First-flight escape probability from region i through the outer surface."""
        etr_i = self._mats[i].sigma_tr[g]
        return float(1.0 - np.sum(self.p[g, i, :]) / (etr_i * self._vols[i]))

    # ------------------------------------------------------------------
    # Solve
    # ------------------------------------------------------------------

    def _clear(self):
        self._p = None
        self._x = None
        self._y = None
        self._gamma = None
        self._solved = False

    def _group_arrays(self):
        """Stack per-region data into [G, N] arrays for the kernels."""
        etr = np.ascontiguousarray(np.stack([m.sigma_tr for m in self._mats], axis=1))
        es_self = np.stack([m.sigma_s_self for m in self._mats], axis=1)
        er = np.stack([m.sigma_r_tr for m in self._mats], axis=1)
        return etr, es_self, er

    def solve(self, backend: GroupBackend = None):
        """Compute P, then X, Y and Gamma for every group.

        Everything is recomputed from scratch.  On failure the cell is left
        unsolved and no partial tensors are exposed.

        Args:
            backend: GroupBackend used to map the per-group work
                (default: serial CPUBackend)

        Raises:
            NumericalError if a shell integral does not converge or a
            group matrix is singular / produces non-finite values
        """
        if backend is None:
            backend = CPUBackend(n_workers=1)
        self._clear()

        t_start = time.time()
        etr, es_self, er = self._group_arrays()

        p = self._calculate_collision_probabilities(etr, backend)
        x, y, gamma = self._solve_systems(p, etr, es_self, er, backend)

        self._p = _frozen(p)
        self._x = _frozen(x)
        self._y = _frozen(y)
        self._gamma = _frozen(gamma)
        self._solved = True

        logger.info(
            "Solved cylindrical cell: %d regions, %d groups in %.3f s (%s)",
            self.n_regions, self.n_groups, time.time() - t_start, backend.get_name(),
        )

    def _calculate_collision_probabilities(self, etr, backend):
        tasks = [
            (g, self._radii, self._vols, np.ascontiguousarray(etr[g]),
             self._epsabs, self._epsrel, self._quad_limit)
            for g in range(self.n_groups)
        ]
        results = backend.map_groups(_collision_probability_task, tasks)

        p = np.zeros((self.n_groups, self.n_regions, self.n_regions))
        for g, p_g, ok, max_error, max_intervals, elapsed in results:
            if not ok:
                raise NumericalError(
                    f"Group {g}: shell integral did not converge within "
                    f"{self._quad_limit} subintervals (error estimate {max_error:.3e}).",
                    group=g,
                )
            if max_intervals > self._quad_limit // 2:
                logger.warning(
                    "Group %d: shell integrals needed up to %d of %d subintervals",
                    g, max_intervals, self._quad_limit,
                )
            logger.debug("Group %d collision probabilities in %.4f s", g, elapsed)
            p[g] = p_g
        return p

    def _solve_systems(self, p, etr, es_self, er, backend):
        tasks = [
            (g, p[g], self._vols, etr[g], es_self[g], er[g], self.surface)
            for g in range(self.n_groups)
        ]
        results = backend.map_groups(_transfer_task, tasks)

        x = np.zeros((self.n_groups, self.n_regions, self.n_regions))
        y = np.zeros((self.n_groups, self.n_regions))
        gamma = np.zeros(self.n_groups)
        for g, x_g, y_g, gamma_g, message in results:
            if message is not None:
                raise NumericalError(message, group=g)
            x[g] = x_g
            y[g] = y_g
            gamma[g] = gamma_g
        return x, y, gamma

    def __repr__(self):
        state = "solved" if self._solved else "unsolved"
        return (f"CylindricalCell(n_regions={self.n_regions}, n_groups={self.n_groups}, "
                f"R={self.outer_radius:.5g}, {state})")
