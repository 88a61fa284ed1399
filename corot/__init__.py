# corot - Co-rotational nonlinear analysis core
"""
COROT: Incremental-Iterative Core for Large-Displacement Structures
===================================================================

This package provides the numerical heart of a nonlinear finite-element run
on trusses, frames and triangular shells:

- Geometry update of joints, element lengths, shell areas and local triads
  after every equilibrium iteration (co-rotational kinematics)
- Displacement / force / energy convergence tests
- Checkpoint and restart of explicit dynamic runs
- Dense helpers: congruence transform, Gauss-Jordan inversion

ARCHITECTURE:
-------------
    kernel/         Stateless linear algebra, equation numbering, errors
    model.py        Topology and analysis mode
    state.py        Fixed-stride state arrays owned by the analysis loop
    geometry.py     Configuration update
    convergence.py  Convergence criteria
    checkpoint.py   Checkpoint file writer / reader
    config.py       Run configuration
    streams.py      Output stream lifecycle
    context.py      Per-run AnalysisContext
    report.py       Per-increment result tables
    viz.py          Equilibrium path plot

Element stiffness assembly, load stepping and the global solve are done by
the caller; the core is handed their results.
"""

from .kernel import (
    EquationNumbering, SingularMatrixError, ConvergenceError, DegenerateGeometryError,
    dot, cross, congruence_transform, invert,
)
from .model import ModelTopology, AnalysisMode, Algorithm, AnalysisType
from .state import Configuration, GeometryCache, ElementForces, IterationState, DynamicState
from .geometry import update_configuration, initialize_geometry
from .convergence import Tolerances, ConvergenceResult, check_convergence
from .checkpoint import (
    CheckpointState, CheckpointError, CheckpointFormatError, CheckpointModeError,
    CheckpointNotFoundError, save_checkpoint, load_checkpoint,
)
from .config import AnalysisConfig
from .context import AnalysisContext

__version__ = "0.1.0"
