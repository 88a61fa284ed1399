# corot/kernel/errors.py
"""Numerical failure types raised by the analysis core."""


class MechanismError(RuntimeError):
    """Raised when a matrix operation shows the system is unstable or singular."""
    pass


class SingularMatrixError(MechanismError):
    """Raised when Gauss-Jordan elimination meets an all-zero pivot column."""
    pass


class ConvergenceError(RuntimeError):
    """Raised when an iteration cannot be judged (zero-norm convergence denominator)."""
    pass


class DegenerateGeometryError(ValueError):
    """Raised when an element edge has zero length or a shell face has zero area."""
    pass
