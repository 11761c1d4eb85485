"""
CLI entry point for the cylindrical collision probability pin-cell solver.

Usage:
    lattice-cp                                   # C5G7 UO2 pin cell, reflective
    lattice-cp --fuel-rings 6 --moderator-rings 4 --albedo 0.95
    lattice-cp --backend thread --workers 4 -o pin.json
    lattice-cp --list-backends                   # Show available backends
    lattice-cp --validate                        # Infinite-medium k_inf check
"""
import argparse
import json
import logging
import sys

from .constants import FLUX_TOLERANCE, KEFF_TOLERANCE, MAX_OUTER_ITERATIONS


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Cylindrical collision probability solver for a 7-group UO2 pin cell',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lattice-cp                                   Default pin cell
  lattice-cp --fuel-radius 0.45 --pitch 1.3    Different pin geometry
  lattice-cp --backend cpu --workers 7         One process per group
  lattice-cp --list-backends                   Show available backends
  lattice-cp --validate                        Compare with analytic k_inf
        """,
    )

    parser.add_argument('--fuel-radius', type=float, default=0.54, help='Fuel pellet radius in cm')
    parser.add_argument('--pitch', type=float, default=1.26, help='Square lattice pitch in cm')
    parser.add_argument('--fuel-rings', type=int, default=4, help='Equal-area rings in the fuel')
    parser.add_argument('--moderator-rings', type=int, default=3, help='Equal-area rings in the moderator')
    parser.add_argument('--albedo', type=float, default=1.0, help='Outer surface albedo (1 = reflective)')
    parser.add_argument('--keff-tol', type=float, default=KEFF_TOLERANCE, help='Relative k tolerance')
    parser.add_argument('--flux-tol', type=float, default=FLUX_TOLERANCE, help='Relative flux tolerance')
    parser.add_argument('--max-outer', type=int, default=MAX_OUTER_ITERATIONS, help='Outer iteration limit')
    parser.add_argument('--backend', choices=['serial', 'cpu', 'thread', 'auto'], default='serial',
                        help='Per-group execution backend (default: serial)')
    parser.add_argument('--workers', type=int, default=None, help='Workers for cpu/thread backends')
    parser.add_argument('--output', '-o', type=str, default=None, help='Output JSON file')
    parser.add_argument('--list-backends', action='store_true', help='List available backends')
    parser.add_argument('--validate', action='store_true', help='Run the infinite-medium validation')
    parser.add_argument('--quiet', '-q', action='store_true', help='Minimal output')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # List backends
    if args.list_backends:
        from .backends import list_backends
        print("Available backends:")
        print(f"  {'Name':<10} {'Description':<40} {'Available'}")
        print(f"  {'-'*10} {'-'*40} {'-'*9}")
        for name, desc, avail in list_backends():
            status = "YES" if avail else "NO"
            print(f"  {name:<10} {desc:<40} {status}")
        return 0

    # Validate mode
    if args.validate:
        from .validation.benchmarks import run_validation
        return run_validation(
            backend_name=args.backend,
            n_workers=args.workers,
            output=args.output,
        )

    from .backends import get_backend
    from .cylindrical_cell import CylindricalCell
    from .errors import LatticeError
    from .flux_solver import CylindricalFluxSolver
    from .library import build_pin_cell

    try:
        radii, mats = build_pin_cell(
            fuel_radius=args.fuel_radius,
            pitch=args.pitch,
            fuel_rings=args.fuel_rings,
            moderator_rings=args.moderator_rings,
        )
        backend = get_backend(args.backend, n_workers=args.workers)
        cell = CylindricalCell(radii, mats)

        if not args.quiet:
            print(f"Solving collision probabilities: {cell.n_regions} regions, "
                  f"{cell.n_groups} groups ({backend.get_name()})")
        cell.solve(backend=backend)

        solver = CylindricalFluxSolver(
            cell,
            keff_tolerance=args.keff_tol,
            flux_tolerance=args.flux_tol,
            albedo=args.albedo,
            max_outer_iterations=args.max_outer,
        )
        result = solver.solve(verbose=not args.quiet)
    except (LatticeError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if args.quiet:
        print(f"k_eff = {result.keff:.6f}")

    # Save output
    if args.output:
        data = result.to_dict()
        data['radii'] = cell.radii.tolist()
        data['materials'] = [m.name for m in cell.materials]
        data['gamma'] = cell.gamma.tolist()
        data['backend'] = backend.get_name()
        with open(args.output, 'w') as f:
            json.dump(data, f, indent=2)
        if not args.quiet:
            print(f"\nResults saved to {args.output}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
