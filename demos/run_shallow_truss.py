#!/usr/bin/env python3
"""
RUN_SHALLOW_TRUSS: Newton-Raphson on a Two-Bar Shallow Arch
============================================================

A von Mises truss: two bars meeting at a shallow apex, pushed down by a
vertical load. The stiffness softens as the apex flattens, so the load path
is visibly nonlinear well before the limit point.

Workflow:
1. Topology, restraints and equation numbers
2. Initial geometry (lengths and direction cosines)
3. Load increments, each iterated to convergence:
   solve K dd = P - f  →  update_configuration  →  internal forces  →  check_convergence
4. Result tables, CSV export and the equilibrium path plot

Run with:
    python demos/run_shallow_truss.py

Outputs:
    artifacts/shallow_truss/*.txt       Tab-separated result tables
    artifacts/shallow_truss/*.csv       Same tables as CSV
    artifacts/shallow_truss_path.png    Load factor vs apex deflection
"""

import logging
import sys
from pathlib import Path

import numpy as np

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from corot.config import AnalysisConfig
from corot.context import AnalysisContext
from corot.convergence import check_convergence, incremental_energy
from corot.geometry import initialize_geometry, update_configuration
from corot.kernel.equations import DOF_PER_JOINT, EquationNumbering
from corot.kernel.linalg import invert
from corot.model import ModelTopology
from corot.report import IncrementReport
from corot.state import Configuration, ElementForces, GeometryCache, IterationState
from corot.viz import plot_equilibrium_path

OUTDIR = Path("artifacts/shallow_truss")

EA = 1.0e4          # axial rigidity
SPAN = 2.0          # m
RISE = 0.2          # m
P_REF = 10.0        # reference load at the apex (downward)
N_INCREMENTS = 15
LPF_STEP = 0.1
MAX_ITERATIONS = 20


def print_header(text: str):
    """Print a formatted section header."""
    print("\n" + "=" * 60)
    print(f"  {text}")
    print("=" * 60)


def internal_forces(topology, equations, cache, initial_length, forces):
    """
    Assemble the internal force vector and tangent stiffness of the trusses.

    Each bar carries N = EA (L - L0) / L0. Its tangent stiffness is the
    material part EA/L0 · c cᵗ plus the geometric part N/L · (I - c cᵗ).
    """
    neq = equations.neq
    f = np.zeros(neq)
    K = np.zeros((neq, neq))

    for e, (i, j) in enumerate(topology.truss):
        c = cache.truss_cosines[e]
        L = cache.truss_length[e]
        N = EA * (L - initial_length[e]) / initial_length[e]
        forces.truss[e] = [-N, N]

        k = EA / initial_length[e] * np.outer(c, c) + N / L * (np.eye(3) - np.outer(c, c))
        k_e = np.block([[k, -k], [-k, k]])
        f_e = np.concatenate([-N * c, N * c])

        codes = equations.element_equations([i, j], dofs=[0, 1, 2])
        for a, row in enumerate(codes):
            if row == 0:
                continue
            f[row - 1] += f_e[a]
            for b, col in enumerate(codes):
                if col != 0:
                    K[row - 1, col - 1] += k_e[a, b]
    return f, K


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    OUTDIR.mkdir(parents=True, exist_ok=True)

    print_header("SHALLOW TWO-BAR TRUSS")

    # =========================================================================
    # STEP 1: MODEL
    # =========================================================================
    coords = np.array([
        [0.0, 0.0, 0.0],
        [SPAN / 2, 0.0, RISE],
        [SPAN, 0.0, 0.0],
    ])
    topology = ModelTopology(n_joints=3, truss=[[0, 1], [1, 2]])

    # only the apex moves, in the x-z plane
    restrained = np.ones((3, DOF_PER_JOINT), dtype=bool)
    restrained[1, [0, 2]] = False
    equations = EquationNumbering.from_restraints(restrained)
    apex_uz = equations.equation(1, 2)

    print(f"\nJoints: {topology.n_joints}, bars: {topology.n_truss}, NEQ: {equations.neq}")
    print(f"Apex vertical displacement is equation {apex_uz}")

    config = AnalysisConfig(tol_displacement=1e-6, tol_force=1e-3, output_dir=str(OUTDIR))
    ctx = AnalysisContext(topology, equations, config=config)

    # =========================================================================
    # STEP 2: INITIAL GEOMETRY
    # =========================================================================
    configuration = Configuration.from_coords(coords)
    cache = GeometryCache.zeros(topology)
    initialize_geometry(topology, configuration, cache)
    initial_length = cache.truss_length.copy()

    forces = ElementForces.zeros(topology)
    state = IterationState.zeros(equations.neq)
    reference_load = np.zeros(equations.neq)
    reference_load[apex_uz - 1] = -P_REF

    # =========================================================================
    # STEP 3: INCREMENTS
    # =========================================================================
    print_header("LOAD INCREMENTS")
    tolerances = config.tolerances()
    report = IncrementReport(ctx)

    with ctx.open_streams():
        report.write_headers()
        f, K = internal_forces(topology, equations, cache, initial_length, forces)

        for step in range(1, N_INCREMENTS + 1):
            lpf = step * LPF_STEP
            state.applied_load[:] = lpf * reference_load

            for iteration in range(1, MAX_ITERATIONS + 1):
                state.f_previous[:] = f
                state.dd[:] = invert(K.copy()) @ (state.applied_load - f)
                state.d += state.dd
                if iteration == 1:
                    state.f_first[:] = f
                    state.first_iteration_energy = incremental_energy(
                        state.dd, state.applied_load, state.f_first)

                update_configuration(topology, equations, configuration, cache, state.dd)
                f, K = internal_forces(topology, equations, cache, initial_length, forces)
                state.f[:] = f

                result = check_convergence(state, tolerances, ctx.log_stream)
                result.raise_if_fatal()
                if result.converged:
                    break
            else:
                raise RuntimeError(f"Increment {step} did not converge in {MAX_ITERATIONS} iterations")

            report.record_increment(lpf, iteration, state.d, forces)
            print(f"  λ = {lpf:4.2f}   apex uz = {state.d[apex_uz - 1]: .6f} m   "
                  f"N = {forces.truss[0, 1]: .3f}   ({iteration} iterations)")

    # =========================================================================
    # STEP 4: OUTPUT
    # =========================================================================
    print_header("OUTPUT")
    for path in report.to_csv(OUTDIR):
        print(f"  {path}")
    plot_path = plot_equilibrium_path(report, apex_uz, "artifacts/shallow_truss_path.png",
                                      title="Shallow truss: load factor vs apex deflection")
    print(f"  {plot_path}")


if __name__ == "__main__":
    main()
