"""
Multigroup flux solver for a solved CylindricalCell.

For every group g and region i the scalar flux is

    phi_g = X_g q_g + Y_g J_in,g

where q_g is the isotropic source density without in-group scattering
(fission + scattering from other groups, or an external source), and the
entering current is closed by the surface albedo a:

    J_out = sum_k V_k q_k - sum_i Er_i V_i (X q)_i
    J_in  = a J_out / (1 - a (1 - Gamma_g))

k-eigenvalue mode is a power iteration:
1. Fission source from the previous flux, scaled by 1/k
2. Gauss-Seidel sweep over groups (repeated while upscatter exists)
3. k_new = k * F_new / F_old, flux renormalized to unit production
4. Stop when both k and the flux have settled
"""
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from .constants import (
    FLUX_TOLERANCE, KEFF_TOLERANCE, MAX_INNER_ITERATIONS, MAX_OUTER_ITERATIONS,
)
from .cross_sections import MultigroupCrossSections
from .errors import ConfigurationError, ConvergenceFailure, NumericalError

logger = logging.getLogger(__name__)


def _max_relative_change(new: np.ndarray, old: np.ndarray) -> float:
    """max |new - old| / |new| over all entries; inf if a non-zero entry vanished."""
    diff = np.abs(new - old)
    scale = np.abs(new)
    nonzero = scale > 0.0
    if np.any(diff[~nonzero] > 0.0):
        return float("inf")
    if not np.any(nonzero):
        return 0.0
    return float(np.max(diff[nonzero] / scale[nonzero]))


@dataclass
class FluxResult:
    """Complete results from a flux calculation."""
    flux: np.ndarray                # [G, N] region-averaged scalar flux
    keff: Optional[float]           # None in fixed-source mode
    converged: bool
    n_outer: int
    keff_history: List[float]
    flux_residual: float            # last max relative flux change
    current_in: np.ndarray          # [G] entering surface current
    total_time: float               # seconds
    mode: str = "eigenvalue"
    volumes: np.ndarray = field(default=None, repr=False)

    @property
    def n_groups(self) -> int:
        return int(self.flux.shape[0])

    @property
    def n_regions(self) -> int:
        return int(self.flux.shape[1])

    def group_spectrum(self) -> np.ndarray:
        """Volume-averaged flux of every group."""
        if self.volumes is None:
            return np.mean(self.flux, axis=1)
        return self.flux @ self.volumes / np.sum(self.volumes)

    def summary(self):
        """Print human-readable summary."""
        title = "k-Eigenvalue" if self.mode == "eigenvalue" else "Fixed-Source"
        print("=" * 60)
        print(f"  {title} Flux Result ({self.n_groups} groups, {self.n_regions} regions)")
        print("=" * 60)
        if self.keff is not None:
            print(f"  k_eff = {self.keff:.6f}")
        print(f"  Converged: {'yes' if self.converged else 'NO'} "
              f"after {self.n_outer} outer iterations")
        print(f"  Final flux change: {self.flux_residual:.3e}")
        print(f"  Wall time: {self.total_time:.3f} s")
        print()
        print(f"  {'Group':>5}  {'Avg flux':>12}  {'J_in':>12}")
        for g, (phi, j_in) in enumerate(zip(self.group_spectrum(), self.current_in)):
            print(f"  {g:5d}  {phi:12.5e}  {j_in:12.5e}")
        print("=" * 60)

    def to_dict(self):
        """Convert to JSON-serializable dict."""
        return {
            'mode': self.mode,
            'keff': None if self.keff is None else float(self.keff),
            'converged': bool(self.converged),
            'n_outer': int(self.n_outer),
            'keff_history': [float(k) for k in self.keff_history],
            'flux_residual': float(self.flux_residual),
            'flux': self.flux.tolist(),
            'current_in': self.current_in.tolist(),
            'total_time': float(self.total_time),
        }


class CylindricalFluxSolver:
    """Region-wise multigroup flux from the X / Y / Gamma of a solved cell.

    Parameters
    ----------
    cell : CylindricalCell
        Must already be solved.
    keff_tolerance, flux_tolerance : float
        Relative convergence criteria on k and on the region fluxes.
    albedo : float
        Fraction of the leaving current returned through the outer
        surface; 1 is reflective, 0 is vacuum.
    max_outer_iterations, max_inner_iterations : int
        Iteration bounds of the power iteration and of the group sweeps.
    """

    def __init__(
        self,
        cell,
        keff_tolerance: float = KEFF_TOLERANCE,
        flux_tolerance: float = FLUX_TOLERANCE,
        albedo: float = 1.0,
        max_outer_iterations: int = MAX_OUTER_ITERATIONS,
        max_inner_iterations: int = MAX_INNER_ITERATIONS,
    ):
        if not cell.solved:
            raise ConfigurationError("CylindricalFluxSolver needs a solved CylindricalCell.")
        if keff_tolerance <= 0.0 or flux_tolerance <= 0.0:
            raise ConfigurationError("Convergence tolerances must be > 0.")
        if not 0.0 <= albedo <= 1.0:
            raise ConfigurationError(f"Albedo must lie in [0, 1], got {albedo}.")
        if max_outer_iterations < 1 or max_inner_iterations < 1:
            raise ConfigurationError("Iteration limits must be >= 1.")

        self.cell = cell
        self.keff_tolerance = float(keff_tolerance)
        self.flux_tolerance = float(flux_tolerance)
        self.albedo = float(albedo)
        self.max_outer_iterations = int(max_outer_iterations)
        self.max_inner_iterations = int(max_inner_iterations)

        mats = cell.materials
        self._vols = cell.volumes
        self._x = cell.x
        self._y = cell.y
        self._gamma = cell.gamma

        # [G, N] per-region data, [N, G_in, G_out] transfer without self-scatter
        self._er = np.stack([m.sigma_r_tr for m in mats], axis=1)
        self._nu_sigma_f = np.stack([m.nu_sigma_f for m in mats], axis=1)
        self._chi = np.stack([m.chi for m in mats], axis=1)
        transfer = np.stack([m.sigma_s_tr for m in mats], axis=0)
        diag = np.arange(cell.n_groups)
        transfer[:, diag, diag] = 0.0
        self._transfer = transfer
        # Upscatter: [g_in, g_out] entries below the diagonal
        self._has_upscatter = any(np.any(np.tril(m.sigma_s_tr, -1) > 0.0) for m in mats)

        self._result = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def solved(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> FluxResult:
        if self._result is None:
            raise RuntimeError("Flux has not been computed; call solve() first.")
        return self._result

    @property
    def flux(self) -> np.ndarray:
        """flux[g, i], normalized to unit total production in eigenvalue mode."""
        return self.result.flux

    @property
    def keff(self) -> Optional[float]:
        return self.result.keff

    def flux_ig(self, i: int, g: int) -> float:
        return float(self.result.flux[g, i])

    # ------------------------------------------------------------------
    # Source terms
    # ------------------------------------------------------------------

    def _production(self, flux):
        return float(np.sum(self._nu_sigma_f * flux * self._vols))

    def _fission_source(self, flux, k):
        """chi_g(i) * sum_h nuEf_h(i) phi_h(i) / k, shape [G, N]."""
        density = np.sum(self._nu_sigma_f * flux, axis=0)
        return self._chi * density / k

    def _transfer_source(self, flux, g):
        """Scattering into g from every other group, shape [N]."""
        return np.sum(self._transfer[:, :, g] * flux.T, axis=1)

    # ------------------------------------------------------------------
    # Group solve and sweeps
    # ------------------------------------------------------------------

    def _group_flux(self, g, q):
        """phi = X q + Y J_in for one group; returns (phi, J_in)."""
        phi_q = self._x[g] @ q
        if self.albedo == 0.0:
            return phi_q, 0.0

        j_out = np.sum(self._vols * q) - np.sum(self._er[g] * self._vols * phi_q)
        denom = 1.0 - self.albedo * (1.0 - self._gamma[g])
        if denom <= 0.0:
            raise NumericalError(
                f"Group {g}: boundary closure is singular "
                f"(albedo {self.albedo}, Gamma {self._gamma[g]:.3e}).",
                group=g,
            )
        j_in = self.albedo * j_out / denom
        return phi_q + self._y[g] * j_in, float(j_in)

    def _inner_iterations(self, flux, base_source):
        """Gauss-Seidel sweeps over groups, updating flux in place.

        Without upscatter one downward sweep is exact.

        Returns: entering currents [G]
        """
        n_groups = flux.shape[0]
        current_in = np.zeros(n_groups)
        for inner in range(1, self.max_inner_iterations + 1):
            previous = flux.copy()
            for g in range(n_groups):
                q = base_source[g] + self._transfer_source(flux, g)
                flux[g], current_in[g] = self._group_flux(g, q)
            if not self._has_upscatter:
                break
            if _max_relative_change(flux, previous) <= self.flux_tolerance:
                break
        else:
            logger.debug("Inner sweeps stopped at the limit of %d", self.max_inner_iterations)
        return current_in

    # ------------------------------------------------------------------
    # k-eigenvalue
    # ------------------------------------------------------------------

    def solve(self, verbose=False) -> FluxResult:
        """Run the power iteration.

        Returns:
            FluxResult with flux normalized to unit total production

        Raises:
            ConfigurationError if no region can produce fission neutrons
            ConvergenceFailure if max_outer_iterations is exceeded
        """
        if not any(m.is_fissile for m in self.cell.materials):
            raise ConfigurationError("k-eigenvalue problem has no fissile material.")

        self._result = None
        n_groups, n_regions = self.cell.n_groups, self.cell.n_regions

        if verbose:
            print(f"Starting k-eigenvalue flux iteration")
            print(f"  Cell: {n_regions} regions, {n_groups} groups, R={self.cell.outer_radius:.4f} cm")
            print(f"  Albedo: {self.albedo}")
            print(f"  Tolerances: k {self.keff_tolerance:.1e}, flux {self.flux_tolerance:.1e}")
            print()

        t_start = time.time()
        flux = np.ones((n_groups, n_regions))
        flux /= self._production(flux)
        keff = 1.0
        history = []
        current_in = np.zeros(n_groups)
        dflux = float("inf")
        converged = False

        for outer in range(1, self.max_outer_iterations + 1):
            previous = flux.copy()
            current_in = self._inner_iterations(flux, self._fission_source(flux, keff))

            production = self._production(flux)
            if not np.isfinite(production) or production <= 0.0:
                raise NumericalError(f"Fission production became {production} at iteration {outer}.")

            k_new = keff * production
            flux /= production
            current_in /= production

            dk = abs(k_new - keff) / k_new
            dflux = _max_relative_change(flux, previous)
            keff = k_new
            history.append(keff)

            if verbose and (outer % 10 == 0 or outer <= 5):
                print(f"  Outer {outer:4d}  k={keff:.6f}  dk={dk:.2e}  dphi={dflux:.2e}")

            if dk <= self.keff_tolerance and dflux <= self.flux_tolerance:
                converged = True
                break

        result = FluxResult(
            flux=flux,
            keff=keff,
            converged=converged,
            n_outer=outer,
            keff_history=history,
            flux_residual=dflux,
            current_in=current_in,
            total_time=time.time() - t_start,
            mode="eigenvalue",
            volumes=self.cell.volumes,
        )

        if not converged:
            raise ConvergenceFailure(
                f"k-eigenvalue iteration did not converge in {self.max_outer_iterations} "
                f"outer iterations (k = {keff:.6f}, flux change {dflux:.3e}).",
                result=result,
            )

        logger.info("k-eigenvalue converged: k = %.6f in %d outer iterations", keff, outer)
        self._result = result
        if verbose:
            print()
            result.summary()
        return result

    # ------------------------------------------------------------------
    # Fixed source
    # ------------------------------------------------------------------

    def solve_fixed_source(self, source, verbose=False) -> FluxResult:
        """Flux driven by an external isotropic source density source[g, i].

        Fission, if present, multiplies the source with k = 1; the
        system must be subcritical for the iteration to settle.

        Raises:
            ConfigurationError for a malformed source
            ConvergenceFailure if max_outer_iterations is exceeded
        """
        n_groups, n_regions = self.cell.n_groups, self.cell.n_regions
        source = np.array(source, dtype=np.float64)
        if source.shape != (n_groups, n_regions):
            raise ConfigurationError(
                f"Source has shape {source.shape}, expected {(n_groups, n_regions)}."
            )
        if not np.all(np.isfinite(source)) or np.any(source < 0.0):
            raise ConfigurationError("Source must be finite and non-negative.")

        self._result = None
        t_start = time.time()
        flux = np.zeros((n_groups, n_regions))
        current_in = np.zeros(n_groups)
        dflux = float("inf")
        converged = False

        for outer in range(1, self.max_outer_iterations + 1):
            previous = flux.copy()
            current_in = self._inner_iterations(flux, source + self._fission_source(flux, 1.0))
            if not np.all(np.isfinite(flux)):
                raise NumericalError(f"Non-finite flux at iteration {outer}.")
            dflux = _max_relative_change(flux, previous)

            if verbose and (outer % 10 == 0 or outer <= 5):
                print(f"  Outer {outer:4d}  dphi={dflux:.2e}")

            if dflux <= self.flux_tolerance:
                converged = True
                break

        result = FluxResult(
            flux=flux,
            keff=None,
            converged=converged,
            n_outer=outer,
            keff_history=[],
            flux_residual=dflux,
            current_in=current_in,
            total_time=time.time() - t_start,
            mode="fixed_source",
            volumes=self.cell.volumes,
        )

        if not converged:
            raise ConvergenceFailure(
                f"Fixed-source iteration did not converge in {self.max_outer_iterations} "
                f"outer iterations (flux change {dflux:.3e}).",
                result=result,
            )

        logger.info("Fixed-source flux converged in %d outer iterations", outer)
        self._result = result
        if verbose:
            result.summary()
        return result

    # ------------------------------------------------------------------
    # Homogenization
    # ------------------------------------------------------------------

    def homogenize(self, regions: Optional[Sequence[int]] = None) -> MultigroupCrossSections:
        """Flux-volume weighted cross sections over the given regions.

        chi is weighted by the fission production of each region.

        Args:
            regions: region indices (default: the whole cell)
        """
        flux = self.result.flux
        n_regions = self.cell.n_regions
        if regions is None:
            regions = list(range(n_regions))
        regions = list(regions)
        if not regions:
            raise ConfigurationError("Cannot homogenize an empty set of regions.")
        for i in regions:
            if not 0 <= i < n_regions:
                raise ConfigurationError(f"Region index {i} out of range [0, {n_regions}).")

        mats = [self.cell.mat(i) for i in regions]
        vols = self._vols[regions]
        weight = flux[:, regions] * vols                  # [G, n]
        norm = np.sum(weight, axis=1)
        if np.any(norm <= 0.0):
            raise NumericalError("Cannot homogenize: zero flux in at least one group.")

        def collapse(attr):
            per_region = np.stack([getattr(m, attr) for m in mats], axis=1)
            return np.sum(per_region * weight, axis=1) / norm

        scatter = np.stack([m.sigma_s_tr for m in mats], axis=0)    # [n, G, G]
        sigma_s = np.einsum('igh,gi->gh', scatter, weight) / norm[:, np.newaxis]

        nu_sigma_f = np.stack([m.nu_sigma_f for m in mats], axis=1)
        production = np.sum(nu_sigma_f * flux[:, regions], axis=0) * vols
        chi_regions = np.stack([m.chi for m in mats], axis=1)
        total_production = np.sum(production)
        if total_production > 0.0:
            chi = chi_regions @ production / total_production
        else:
            chi = np.zeros(self.cell.n_groups)

        return MultigroupCrossSections(
            sigma_tr=collapse('sigma_tr'),
            sigma_a=collapse('sigma_a'),
            sigma_s_tr=sigma_s,
            sigma_f=collapse('sigma_f'),
            nu_sigma_f=collapse('nu_sigma_f'),
            chi=chi,
            sigma_t=collapse('sigma_t'),
            name="homogenized",
        )
