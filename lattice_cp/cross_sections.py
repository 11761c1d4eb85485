"""
Multigroup macroscopic cross sections.

A MultigroupCrossSections object is shared, read-only, by every region that
references it; arrays are frozen after validation.  Units are 1/cm.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .errors import ConfigurationError


# ===================================================================
# Internal helpers
# ===================================================================

def _as_frozen(name: str, value, shape) -> np.ndarray:
    arr = np.array(value, dtype=np.float64)
    if arr.shape != shape:
        raise ConfigurationError(
            f"Cross section '{name}' has shape {arr.shape}, expected {shape}."
        )
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"Cross section '{name}' contains NaN or Inf.")
    if np.any(arr < 0.0):
        raise ConfigurationError(f"Cross section '{name}' has negative entries.")
    arr.setflags(write=False)
    return arr


# ===================================================================
# MultigroupCrossSections dataclass
# ===================================================================

@dataclass(eq=False)
class MultigroupCrossSections:
    """Macroscopic multigroup data for one homogeneous material."""

    sigma_tr: np.ndarray                  # [G] transport-corrected total (Etr)
    sigma_a: np.ndarray                   # [G] absorption
    sigma_s_tr: np.ndarray                # [G, G] scattering, [g_in, g_out]
    sigma_f: Optional[np.ndarray] = None  # [G] fission
    nu_sigma_f: Optional[np.ndarray] = None  # [G] production
    chi: Optional[np.ndarray] = None      # [G] fission spectrum
    sigma_t: Optional[np.ndarray] = None  # [G] total, defaults to sigma_tr
    name: str = ""

    def __post_init__(self):
        sigma_tr = np.array(self.sigma_tr, dtype=np.float64)
        if sigma_tr.ndim != 1:
            raise ConfigurationError("sigma_tr must be a one-dimensional array.")
        g = sigma_tr.shape[0]
        vec = (g,)

        self.sigma_tr = _as_frozen("sigma_tr", sigma_tr, vec)
        if np.any(self.sigma_tr <= 0.0):
            raise ConfigurationError("sigma_tr must be > 0 in every group.")

        self.sigma_a = _as_frozen("sigma_a", self.sigma_a, vec)
        self.sigma_s_tr = _as_frozen("sigma_s_tr", self.sigma_s_tr, (g, g))

        zeros = np.zeros(g)
        self.sigma_f = _as_frozen("sigma_f", zeros if self.sigma_f is None else self.sigma_f, vec)
        self.nu_sigma_f = _as_frozen(
            "nu_sigma_f", zeros if self.nu_sigma_f is None else self.nu_sigma_f, vec
        )
        self.chi = _as_frozen("chi", zeros if self.chi is None else self.chi, vec)
        self.sigma_t = _as_frozen(
            "sigma_t", self.sigma_tr if self.sigma_t is None else self.sigma_t, vec
        )

    # -- derived properties --------------------------------------------------

    @property
    def n_groups(self) -> int:
        return int(self.sigma_tr.shape[0])

    @property
    def sigma_s_self(self) -> np.ndarray:
        """In-group scattering Es_tr(g -> g)."""
        return np.diag(self.sigma_s_tr).copy()

    @property
    def sigma_s_out(self) -> np.ndarray:
        """Total scattering out of each group (row sums)."""
        return np.sum(self.sigma_s_tr, axis=1)

    @property
    def sigma_r_tr(self) -> np.ndarray:
        """Removal cross section Etr - Es_tr(g -> g)."""
        return self.sigma_tr - self.sigma_s_self

    @property
    def is_fissile(self) -> bool:
        return bool(np.any(self.nu_sigma_f > 0.0))

    @property
    def balance_residual(self) -> np.ndarray:
        """sigma_tr - (sigma_a + out-scatter); zero for consistent data."""
        return self.sigma_tr - (self.sigma_a + self.sigma_s_out)

    def __repr__(self):
        label = self.name or "unnamed"
        return f"MultigroupCrossSections({label!r}, n_groups={self.n_groups})"
