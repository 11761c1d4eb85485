"""
Bickley-Naylor functions.

    Ki_n(x) = int_0^{pi/2} cos^{n-1}(t) exp(-x / cos t) dt,    x >= 0

Ki3 is the kernel of the cylindrical collision probabilities.  It is
tabulated together with Ki2 and Ki1 on [0, KI_TABLE_MAX] (Gauss-Legendre
in t) and evaluated by cubic Hermite interpolation, using
d/dx Ki_n = -Ki_{n-1} for the slopes.  Beyond the table the functions are
integrated directly with adaptive Gauss-Kronrod.
"""
import math

import numpy as np
from numba import njit

from .constants import (
    KI3_AT_ZERO, KI_TABLE_GL_ORDER, KI_TABLE_MAX, KI_TABLE_STEP, PI,
)
from .quadrature import gk15_abscissae, gk15_combine, tolerance_met, worst_interval

_KI_QUAD_LIMIT = 64
_KI_QUAD_EPSREL = 1.0e-12


# ===================================================================
# Table construction (import time, vectorised)
# ===================================================================

def _build_tables():
    """Ki1, Ki2, Ki3 on the uniform grid 0, h, 2h, ..., KI_TABLE_MAX."""
    nodes, weights = np.polynomial.legendre.leggauss(KI_TABLE_GL_ORDER)
    theta = 0.25 * PI * (nodes + 1.0)
    w = 0.25 * PI * weights
    c = np.cos(theta)

    n_points = int(round(KI_TABLE_MAX / KI_TABLE_STEP)) + 1
    x = np.arange(n_points) * KI_TABLE_STEP
    kernel = np.exp(-x[:, np.newaxis] / c[np.newaxis, :])   # [n_points, order]

    ki1 = kernel @ w
    ki2 = kernel @ (w * c)
    ki3 = kernel @ (w * c * c)
    return ki1, ki2, ki3


_KI1_TABLE, _KI2_TABLE, _KI3_TABLE = _build_tables()
_KI3_SLOPE = -_KI2_TABLE
_KI2_SLOPE = -_KI1_TABLE


# ===================================================================
# JIT kernels
# ===================================================================

@njit(cache=True, nogil=True)
def _hermite(values, slopes, x):
    """Cubic Hermite interpolation on the uniform Ki table."""
    s = x / KI_TABLE_STEP
    idx = int(s)
    last = values.shape[0] - 2
    if idx > last:
        idx = last
    t = s - idx
    t2 = t * t
    t3 = t2 * t
    f0 = values[idx]
    f1 = values[idx + 1]
    d0 = slopes[idx] * KI_TABLE_STEP
    d1 = slopes[idx + 1] * KI_TABLE_STEP
    return ((2.0 * t3 - 3.0 * t2 + 1.0) * f0
            + (t3 - 2.0 * t2 + t) * d0
            + (-2.0 * t3 + 3.0 * t2) * f1
            + (t3 - t2) * d1)


@njit(cache=True, nogil=True)
def _ki_integrand(order, x, theta):
    c = math.cos(theta)
    if c <= 0.0:
        return 0.0
    return c ** (order - 1) * math.exp(-x / c)


@njit(cache=True, nogil=True)
def _ki_gk15(order, x, a, b, nodes, fvals):
    gk15_abscissae(a, b, nodes)
    for m in range(nodes.shape[0]):
        fvals[m] = _ki_integrand(order, x, nodes[m])
    return gk15_combine(fvals, a, b)


@njit(cache=True, nogil=True)
def ki_quad_jit(order, x):
    """Ki_order(x) by adaptive GK15 over t in [0, pi/2]."""
    lo = np.empty(_KI_QUAD_LIMIT)
    hi = np.empty(_KI_QUAD_LIMIT)
    res = np.empty(_KI_QUAD_LIMIT)
    err = np.empty(_KI_QUAD_LIMIT)
    nodes = np.empty(15)
    fvals = np.empty(15)

    lo[0] = 0.0
    hi[0] = 0.5 * PI
    r, e = _ki_gk15(order, x, lo[0], hi[0], nodes, fvals)
    res[0] = r
    err[0] = e
    n = 1
    while True:
        total = 0.0
        total_err = 0.0
        for m in range(n):
            total += res[m]
            total_err += err[m]
        # Returning the best estimate at the limit is safe here: the
        # integrand is smooth and the limit is never reached in practice.
        if tolerance_met(total, total_err, 1.0e-300, _KI_QUAD_EPSREL) or n >= _KI_QUAD_LIMIT:
            return total

        w = worst_interval(err, n)
        mid = 0.5 * (lo[w] + hi[w])
        lo[n] = mid
        hi[n] = hi[w]
        hi[w] = mid
        r, e = _ki_gk15(order, x, lo[w], hi[w], nodes, fvals)
        res[w] = r
        err[w] = e
        r, e = _ki_gk15(order, x, lo[n], hi[n], nodes, fvals)
        res[n] = r
        err[n] = e
        n += 1


@njit(cache=True, nogil=True)
def ki3_quad_jit(x):
    return ki_quad_jit(3, x)


@njit(cache=True, nogil=True)
def ki3_jit(x):
    """Ki3(x) for x >= 0: table inside [0, KI_TABLE_MAX], quadrature outside."""
    if x == 0.0:
        return KI3_AT_ZERO
    if x <= KI_TABLE_MAX:
        return _hermite(_KI3_TABLE, _KI3_SLOPE, x)
    return ki_quad_jit(3, x)


@njit(cache=True, nogil=True)
def ki2_jit(x):
    if x <= KI_TABLE_MAX:
        return _hermite(_KI2_TABLE, _KI2_SLOPE, x)
    return ki_quad_jit(2, x)


@njit(cache=True)
def _apply(kernel_id, x):
    out = np.empty_like(x)
    for m in range(x.shape[0]):
        if kernel_id == 0:
            out[m] = ki3_jit(x[m])
        elif kernel_id == 1:
            out[m] = ki3_quad_jit(x[m])
        else:
            out[m] = ki2_jit(x[m])
    return out


# ===================================================================
# Python API
# ===================================================================

def _evaluate(kernel_id, x):
    arr = np.asarray(x, dtype=np.float64)
    if np.any(np.isnan(arr)) or np.any(arr < 0.0):
        raise ValueError("Bickley-Naylor functions require x >= 0.")
    out = _apply(kernel_id, np.ascontiguousarray(arr.ravel()))
    if arr.ndim == 0:
        return float(out[0])
    return out.reshape(arr.shape)


def ki3(x):
    """Third-order Bickley-Naylor function (scalar or array)."""
    return _evaluate(0, x)


def ki3_quad(x):
    """Ki3 evaluated by quadrature only, bypassing the table."""
    return _evaluate(1, x)


def ki2(x):
    """Second-order Bickley-Naylor function, -d/dx Ki3."""
    return _evaluate(2, x)
