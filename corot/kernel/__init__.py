# corot/kernel - Stateless numerical core
"""
KERNEL: SMALL, STATELESS BUILDING BLOCKS
========================================

    linalg.py      dot, cross, norm, congruence transform, Gauss-Jordan inverse
    equations.py   joint DOF → global equation numbering (jcode)
    errors.py      numerical failure types

Nothing here keeps state between calls; higher layers (geometry update,
convergence tests, checkpoints) pass their arrays in.
"""

from .equations import EquationNumbering, DOF_PER_JOINT
from .errors import MechanismError, SingularMatrixError, ConvergenceError, DegenerateGeometryError
from .linalg import dot, cross, norm, congruence_transform, invert, transformation_matrix

__all__ = [
    'EquationNumbering', 'DOF_PER_JOINT',
    'MechanismError', 'SingularMatrixError', 'ConvergenceError', 'DegenerateGeometryError',
    'dot', 'cross', 'norm', 'congruence_transform', 'invert', 'transformation_matrix',
]
