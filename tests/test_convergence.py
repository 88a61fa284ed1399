# tests/test_convergence.py
"""
TEST: Convergence Criteria
==========================

Status digits: +10 displacement, +100 force, +1000 energy.
A tolerance >= 1 switches its criterion off; a zero denominator in an
active criterion is fatal regardless of the other criteria.
"""

import io

import numpy as np
import pytest

from corot.convergence import (
    DISPLACEMENT_FAILED,
    ENERGY_FAILED,
    FORCE_FAILED,
    Tolerances,
    check_convergence,
    incremental_energy,
)
from corot.kernel.errors import ConvergenceError
from corot.state import IterationState

OFF = 1.0


def make_state(dd, d, f=None, f_previous=None, f_first=None, applied=None, energy=0.0):
    n = len(dd)
    zeros = np.zeros(n)
    return IterationState(
        dd=np.asarray(dd, dtype=float),
        d=np.asarray(d, dtype=float),
        f=zeros.copy() if f is None else np.asarray(f, dtype=float),
        f_previous=zeros.copy() if f_previous is None else np.asarray(f_previous, dtype=float),
        f_first=zeros.copy() if f_first is None else np.asarray(f_first, dtype=float),
        applied_load=zeros.copy() if applied is None else np.asarray(applied, dtype=float),
        first_iteration_energy=energy,
    )


def test_displacement_ratio_above_tolerance_fails():
    # |d| = 10, |dd| = 6 -> 0.6 > 0.5
    state = make_state(dd=[6.0, 0.0, 0.0], d=[6.0, 8.0, 0.0])

    result = check_convergence(state, Tolerances(0.5, OFF, OFF))

    assert not result.fatal
    assert result.status == DISPLACEMENT_FAILED
    assert np.isclose(result.ratios['displacement'], 0.6)
    assert result.failed_criteria == ['displacement']
    assert not result.converged


def test_displacement_ratio_below_tolerance_passes():
    # |dd| = 4 -> 0.4 <= 0.5
    state = make_state(dd=[0.0, 4.0, 0.0], d=[6.0, 8.0, 0.0])

    result = check_convergence(state, Tolerances(0.5, OFF, OFF))

    assert result.status == 0
    assert result.converged


def test_force_criterion():
    # residual now |10 - 5| = 5, previous |10 - 0| = 10 -> ratio 0.5
    state = make_state(dd=[0.0, 0.0], d=[1.0, 0.0], f=[5.0, 0.0], applied=[10.0, 0.0])

    assert check_convergence(state, Tolerances(OFF, 0.4, OFF)).status == FORCE_FAILED
    assert check_convergence(state, Tolerances(OFF, 0.6, OFF)).status == 0


def test_energy_criterion():
    # Σ dd (P - f_first) = 1 * (10 - 4) = 6; reference 12 -> ratio 0.5
    state = make_state(dd=[1.0, 0.0], d=[1.0, 0.0], f_first=[4.0, 0.0],
                       applied=[10.0, 0.0], energy=12.0)

    assert np.isclose(incremental_energy(state.dd, state.applied_load, state.f_first), 6.0)
    assert check_convergence(state, Tolerances(OFF, OFF, 0.1)).status == ENERGY_FAILED
    assert check_convergence(state, Tolerances(OFF, OFF, 0.5)).status == 0


def test_energy_ratio_uses_magnitude():
    state = make_state(dd=[-1.0], d=[1.0], f_first=[4.0], applied=[10.0], energy=12.0)

    result = check_convergence(state, Tolerances(OFF, OFF, 0.6))

    assert np.isclose(result.ratios['energy'], 0.5)
    assert result.status == 0


def test_all_criteria_failing_combine_digits():
    state = make_state(dd=[6.0, 0.0], d=[6.0, 8.0], f=[5.0, 0.0], f_first=[4.0, 0.0],
                       applied=[10.0, 0.0], energy=1.0)

    result = check_convergence(state, Tolerances(0.1, 0.1, 0.1))

    assert result.status == DISPLACEMENT_FAILED + FORCE_FAILED + ENERGY_FAILED == 1110
    assert result.failed_criteria == ['displacement', 'force', 'energy']


def test_zero_total_displacement_is_fatal():
    state = make_state(dd=[1.0, 0.0], d=[0.0, 0.0])
    log = io.StringIO()

    result = check_convergence(state, Tolerances(0.5, OFF, OFF), log_stream=log)

    assert result.fatal
    assert not result.converged
    assert result.message == "Displacements are zero"
    assert "***ERROR*** Displacements are zero" in log.getvalue()
    with pytest.raises(ConvergenceError):
        result.raise_if_fatal()


def test_zero_previous_residual_is_fatal_even_after_displacement_failure():
    # displacement fails (+10) but the force denominator is zero
    state = make_state(dd=[6.0, 0.0], d=[6.0, 8.0], f_previous=[10.0, 0.0], applied=[10.0, 0.0])

    result = check_convergence(state, Tolerances(0.5, 0.5, OFF))

    assert result.fatal
    assert result.message == "Force increment is zero"


def test_zero_reference_energy_is_fatal():
    state = make_state(dd=[1.0], d=[1.0], applied=[1.0], energy=0.0)

    result = check_convergence(state, Tolerances(OFF, OFF, 0.5))

    assert result.fatal
    assert result.message == "Energy increment is zero"


def test_disabled_criteria_are_skipped_entirely():
    # every denominator is zero, but nothing is active
    state = make_state(dd=[0.0], d=[0.0])

    result = check_convergence(state, Tolerances(1.0, 2.0, 10.0))

    assert not result.fatal
    assert result.status == 0
    assert result.ratios == {}


def test_tolerances_active():
    assert Tolerances(1e-3, 1.0, 1e-6).active() == ['displacement', 'energy']
    assert Tolerances(1.0, 1.0, 1.0).active() == []
