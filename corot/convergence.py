# corot/convergence.py
"""
CONVERGENCE TESTS: Displacement, Force and Energy Criteria
==========================================================

PURPOSE:
--------
Decides whether the current equilibrium iteration has converged. Up to three
independent criteria are checked, each active only when its tolerance is < 1:

    displacement   ‖dd‖ / ‖d‖                                  → +10
    force          ‖P - f‖ / ‖P - f_prev‖                       → +100
    energy         |Σ dd_i (P_i - f_first_i)| / |E_first|      → +1000

A criterion FAILS when its ratio exceeds the tolerance; its code is added to
the status. Status 0 means every active criterion is satisfied.

FATAL CASE:
-----------
A zero denominator (no total displacement, no previous residual, zero
reference energy) makes the ratio meaningless. The check stops at once and
returns a result flagged ``fatal``. The iteration controller must end the
analysis; ``raise_if_fatal`` turns it into a ConvergenceError.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, TextIO

import numpy as np

from .kernel.errors import ConvergenceError
from .kernel.linalg import dot
from .state import IterationState

logger = logging.getLogger(__name__)

DISPLACEMENT_FAILED = 10
FORCE_FAILED = 100
ENERGY_FAILED = 1000

_CRITERIA = (
    ('displacement', DISPLACEMENT_FAILED),
    ('force', FORCE_FAILED),
    ('energy', ENERGY_FAILED),
)


@dataclass(frozen=True)
class Tolerances:
    """
    Convergence tolerances. A value ≥ 1 disables that criterion.

    Examples:
    ---------
    >>> tol = Tolerances(displacement=1e-3, force=1.0, energy=1e-6)
    >>> tol.active()
    ['displacement', 'energy']
    """
    displacement: float = 1e-3
    force: float = 1e-3
    energy: float = 1.0

    @staticmethod
    def is_active(value: float) -> bool:
        return value < 1

    def active(self) -> List[str]:
        return [name for name, _ in _CRITERIA if self.is_active(getattr(self, name))]


@dataclass
class ConvergenceResult:
    """
    Outcome of one convergence check.

    Attributes:
    -----------
    status : int
        Sum of the codes of the failed criteria (0 = converged)
    fatal : bool
        A criterion had a zero denominator; status is not meaningful
    message : str
        Error text for the fatal case, empty otherwise
    ratios : Dict[str, float]
        Ratios computed before returning, by criterion name
    """
    status: int = 0
    fatal: bool = False
    message: str = ""
    ratios: Dict[str, float] = field(default_factory=dict)

    @property
    def converged(self) -> bool:
        return not self.fatal and self.status == 0

    @property
    def failed_criteria(self) -> List[str]:
        return [name for name, code in _CRITERIA if (self.status // code) % 10]

    def raise_if_fatal(self) -> None:
        if self.fatal:
            raise ConvergenceError(self.message)


def incremental_energy(dd: np.ndarray, applied_load: np.ndarray, f_first: np.ndarray) -> float:
    """Σ dd_i · (P_i - f_first_i), the work of the iteration's unbalanced load."""
    return dot(dd, np.asarray(applied_load) - np.asarray(f_first))


def _fatal(result: ConvergenceResult, message: str, log_stream: Optional[TextIO]) -> ConvergenceResult:
    logger.error(message)
    if log_stream is not None:
        log_stream.write(f"\n***ERROR*** {message}\n")
    result.fatal = True
    result.message = message
    return result


def check_convergence(
    state: IterationState,
    tolerances: Tolerances,
    log_stream: Optional[TextIO] = None,
) -> ConvergenceResult:
    """
    Evaluate the active convergence criteria for the current iteration.

    Parameters:
    -----------
    state : IterationState
        dd, d, f, f_previous, f_first, applied_load and the reference energy
    tolerances : Tolerances
        Per-criterion tolerance; ≥ 1 disables the criterion
    log_stream : TextIO, optional
        Run log; the fatal-case error line is written here as well

    Returns:
    --------
    ConvergenceResult
        ``status`` sums 10 / 100 / 1000 for failed displacement / force /
        energy criteria; ``fatal`` is set on a zero denominator

    Example:
    --------
    >>> result = check_convergence(state, Tolerances(0.5, 1.0, 1.0))
    >>> if result.fatal:
    ...     streams.close(failed=True)
    >>> elif not result.converged:
    ...     pass  # iterate again
    """
    result = ConvergenceResult()

    if Tolerances.is_active(tolerances.displacement):
        totald = dot(state.d, state.d)
        if totald == 0:
            return _fatal(result, "Displacements are zero", log_stream)
        ratio = np.sqrt(dot(state.dd, state.dd)) / np.sqrt(totald)
        result.ratios['displacement'] = float(ratio)
        if ratio > tolerances.displacement:
            result.status += DISPLACEMENT_FAILED

    if Tolerances.is_active(tolerances.force):
        residual = state.applied_load - state.f
        previous = state.applied_load - state.f_previous
        unbfp = dot(previous, previous)
        if unbfp == 0:
            return _fatal(result, "Force increment is zero", log_stream)
        ratio = np.sqrt(dot(residual, residual)) / np.sqrt(unbfp)
        result.ratios['force'] = float(ratio)
        if ratio > tolerances.force:
            result.status += FORCE_FAILED

    if Tolerances.is_active(tolerances.energy):
        if state.first_iteration_energy == 0:
            return _fatal(result, "Energy increment is zero", log_stream)
        energy = incremental_energy(state.dd, state.applied_load, state.f_first)
        ratio = abs(energy / state.first_iteration_energy)
        result.ratios['energy'] = float(ratio)
        if ratio > tolerances.energy:
            result.status += ENERGY_FAILED

    logger.debug("Convergence check: status=%d ratios=%s", result.status, result.ratios)
    return result
