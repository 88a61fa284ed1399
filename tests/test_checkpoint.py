# tests/test_checkpoint.py
"""
TEST: Checkpoint / Restart
==========================

A saved explicit-dynamic state must come back intact in a fresh set of
arrays, the end-of-block markers must be where the reader expects them, and
a damaged file must be rejected without touching the caller's arrays.
"""

import io

import numpy as np
import pytest

from corot.checkpoint import (
    CheckpointFormatError,
    CheckpointLayout,
    CheckpointModeError,
    CheckpointNotFoundError,
    CheckpointState,
    checkpoint_exists,
    load_checkpoint,
    read_checkpoint,
    save_checkpoint,
    write_checkpoint,
)
from corot.model import Algorithm, AnalysisMode, AnalysisType, ModelTopology
from corot.state import Configuration, DynamicState, ElementForces, GeometryCache, IterationState

NEQ = 5
LSS = 7

EXPLICIT_NONLINEAR = AnalysisMode(Algorithm.EXPLICIT_DYNAMIC, AnalysisType.NONLINEAR)
EXPLICIT_LINEAR = AnalysisMode(Algorithm.EXPLICIT_DYNAMIC, AnalysisType.LINEAR)


@pytest.fixture
def topology():
    return ModelTopology(n_joints=4, truss=[[0, 1]], frame=[[1, 2]], shell=[[0, 1, 3]])


def empty_state(topology):
    return CheckpointState(
        dynamic=DynamicState.zeros(NEQ, LSS),
        iteration=IterationState.zeros(NEQ),
        configuration=Configuration.from_coords(np.zeros((topology.n_joints, 3)),
                                                n_frame=topology.n_frame),
        geometry=GeometryCache.zeros(topology),
        forces=ElementForces.zeros(topology),
    )


def filled_state(topology, seed=0):
    rng = np.random.default_rng(seed)
    state = empty_state(topology)

    def fill(arr):
        arr[...] = rng.normal(scale=100.0, size=arr.shape)

    dyn = state.dynamic
    dyn.time_step = 42
    for arr in (dyn.displacement, dyn.velocity, dyn.acceleration, dyn.stiffness, dyn.mass):
        fill(arr)
    fill(state.iteration.d)
    fill(state.iteration.f)
    fill(state.configuration.coords)
    fill(state.configuration.frame_end_coords)
    geo = state.geometry
    for arr in (geo.truss_length, geo.truss_cosines, geo.frame_length,
                geo.frame_reference_length, geo.frame_triads, geo.shell_side_lengths,
                geo.shell_area, geo.shell_triads):
        fill(arr)
    frc = state.forces
    for arr in (frc.truss, frc.frame, frc.shell, frc.frame_fixed_end, frc.shell_curvature,
                frc.shell_membrane, frc.shell_moment):
        fill(arr)
    frc.yield_flags[:, :] = [[1, 0]]
    return state


def saved_arrays(state, with_resultants=True):
    """Every array a checkpoint carries, by name."""
    out = {
        'displacement': state.dynamic.displacement,
        'velocity': state.dynamic.velocity,
        'acceleration': state.dynamic.acceleration,
        'stiffness': state.dynamic.stiffness,
        'mass': state.dynamic.mass,
        'd': state.iteration.d,
        'f': state.iteration.f,
        'coords': state.configuration.coords,
        'frame_end_coords': state.configuration.frame_end_coords,
        'truss_length': state.geometry.truss_length,
        'truss_cosines': state.geometry.truss_cosines,
        'frame_length': state.geometry.frame_length,
        'frame_reference_length': state.geometry.frame_reference_length,
        'frame_triads': state.geometry.frame_triads,
        'shell_side_lengths': state.geometry.shell_side_lengths,
        'shell_area': state.geometry.shell_area,
        'shell_triads': state.geometry.shell_triads,
        'packed_forces': state.forces.packed(),
        'frame_fixed_end': state.forces.frame_fixed_end,
        'yield_flags': state.forces.yield_flags,
    }
    if with_resultants:
        out['shell_curvature'] = state.forces.shell_curvature
        out['shell_membrane'] = state.forces.shell_membrane
        out['shell_moment'] = state.forces.shell_moment
    return out


def write_text(state, mode, float_format="%.17e"):
    stream = io.StringIO()
    write_checkpoint(stream, state, mode, float_format)
    return stream.getvalue()


@pytest.mark.parametrize("mode", [EXPLICIT_NONLINEAR, EXPLICIT_LINEAR])
def test_round_trip_is_exact_with_full_precision(topology, mode):
    source = filled_state(topology)
    text = write_text(source, mode)

    target = empty_state(topology)
    step = read_checkpoint(io.StringIO(text), target, mode)

    assert step == 42
    assert target.dynamic.time_step == 42
    with_resultants = CheckpointLayout.for_mode(mode) is CheckpointLayout.WITH_CURVATURE
    expected = saved_arrays(source, with_resultants)
    actual = saved_arrays(target, with_resultants)
    for name, arr in expected.items():
        np.testing.assert_array_equal(actual[name], arr, err_msg=name)


def test_geometry_only_layout_does_not_carry_shell_resultants(topology):
    source = filled_state(topology)
    target = empty_state(topology)

    read_checkpoint(io.StringIO(write_text(source, EXPLICIT_NONLINEAR)), target,
                    EXPLICIT_NONLINEAR)

    assert not target.forces.shell_curvature.any()
    assert not target.forces.shell_membrane.any()
    np.testing.assert_array_equal(target.geometry.shell_side_lengths,
                                  source.geometry.shell_side_lengths)


def test_default_format_round_trips_to_written_text(topology):
    source = filled_state(topology)
    text = write_text(source, EXPLICIT_LINEAR, float_format="%e")

    target = empty_state(topology)
    read_checkpoint(io.StringIO(text), target, EXPLICIT_LINEAR)

    as_written = np.vectorize(lambda v: float("%e" % v))
    np.testing.assert_array_equal(target.dynamic.velocity, as_written(source.dynamic.velocity))
    np.testing.assert_array_equal(target.geometry.frame_triads,
                                  as_written(source.geometry.frame_triads))
    np.testing.assert_array_equal(target.forces.shell_moment,
                                  as_written(source.forces.shell_moment))


def test_record_layout_and_markers(topology):
    lines = write_text(filled_state(topology), EXPLICIT_NONLINEAR).splitlines()

    assert lines[0] == "42,2"
    assert lines[NEQ + 1] == "0,0,0"
    assert lines[NEQ + LSS + 2] == "0,0"
    assert lines[-1] == "0,0,0"
    assert all(len(line.split(",")) == 3 for line in lines[1:NEQ + 1])

    n_rows = (1 + NEQ + 1 + LSS + 1 + NEQ
              + topology.n_element_force_entries
              + 3 * topology.n_joints
              + topology.n_triad_rows
              + topology.n_truss
              + topology.n_frame
              + 14 * topology.n_frame
              + 6 * topology.n_frame
              + 2 * topology.n_frame
              + topology.n_shell
              + 3 * topology.n_shell
              + 1)
    assert len(lines) == n_rows

    # yield flags are written as integers
    flags_start = n_rows - 1 - 3 * topology.n_shell - topology.n_shell - 2 * topology.n_frame
    assert lines[flags_start:flags_start + 2] == ["1", "0"]


def test_with_curvature_header(topology):
    lines = write_text(filled_state(topology), EXPLICIT_LINEAR).splitlines()
    assert lines[0] == "42,1"


def test_corrupted_sentinel_rejected_and_arrays_untouched(topology):
    lines = write_text(filled_state(topology), EXPLICIT_NONLINEAR).splitlines()
    lines[NEQ + 1] = "0,0"
    target = empty_state(topology)

    with pytest.raises(CheckpointFormatError, match="marker"):
        read_checkpoint(io.StringIO("\n".join(lines) + "\n"), target, EXPLICIT_NONLINEAR)

    assert target.dynamic.time_step == 0
    assert not target.dynamic.displacement.any()


def test_truncated_file_rejected_and_arrays_untouched(topology):
    lines = write_text(filled_state(topology), EXPLICIT_NONLINEAR).splitlines()
    target = empty_state(topology)

    with pytest.raises(CheckpointFormatError, match="Unexpected end"):
        read_checkpoint(io.StringIO("\n".join(lines[:-1]) + "\n"), target, EXPLICIT_NONLINEAR)

    for name, arr in saved_arrays(target).items():
        assert not np.any(arr), name


def test_trailing_data_rejected(topology):
    text = write_text(filled_state(topology), EXPLICIT_NONLINEAR) + "1.0\n"

    with pytest.raises(CheckpointFormatError, match="after the final marker"):
        read_checkpoint(io.StringIO(text), empty_state(topology), EXPLICIT_NONLINEAR)


def test_wrong_field_count_rejected(topology):
    lines = write_text(filled_state(topology), EXPLICIT_NONLINEAR).splitlines()
    lines[1] = "1.0,2.0"

    with pytest.raises(CheckpointFormatError, match="expected 3 fields"):
        read_checkpoint(io.StringIO("\n".join(lines)), empty_state(topology), EXPLICIT_NONLINEAR)


def test_layout_mismatch_rejected(topology):
    text = write_text(filled_state(topology), EXPLICIT_LINEAR)

    with pytest.raises(CheckpointModeError):
        read_checkpoint(io.StringIO(text), empty_state(topology), EXPLICIT_NONLINEAR)


@pytest.mark.parametrize("algorithm", [Algorithm.NEWTON_RAPHSON, Algorithm.IMPLICIT_DYNAMIC])
def test_non_explicit_modes_cannot_checkpoint(topology, tmp_path, algorithm):
    mode = AnalysisMode(algorithm, AnalysisType.NONLINEAR)
    path = tmp_path / "checkpoint.txt"

    with pytest.raises(CheckpointModeError):
        save_checkpoint(path, filled_state(topology), mode)
    assert not path.exists()
    assert list(tmp_path.iterdir()) == []


def test_save_and_load_file(topology, tmp_path):
    path = tmp_path / "checkpoint.txt"
    source = filled_state(topology)

    assert not checkpoint_exists(path)
    returned = save_checkpoint(path, source, EXPLICIT_NONLINEAR, float_format="%.17e")

    assert returned == path
    assert checkpoint_exists(path)
    assert [p.name for p in tmp_path.iterdir()] == ["checkpoint.txt"]

    target = empty_state(topology)
    assert load_checkpoint(path, target, EXPLICIT_NONLINEAR) == 42
    np.testing.assert_array_equal(target.configuration.coords, source.configuration.coords)
    np.testing.assert_array_equal(target.forces.packed(), source.forces.packed())


def test_save_replaces_previous_checkpoint(topology, tmp_path):
    path = tmp_path / "checkpoint.txt"
    first = filled_state(topology, seed=1)
    second = filled_state(topology, seed=2)
    second.dynamic.time_step = 99

    save_checkpoint(path, first, EXPLICIT_NONLINEAR)
    save_checkpoint(path, second, EXPLICIT_NONLINEAR)

    assert path.read_text().splitlines()[0] == "99,2"


def test_missing_checkpoint(topology, tmp_path):
    with pytest.raises(CheckpointNotFoundError):
        load_checkpoint(tmp_path / "absent.txt", empty_state(topology), EXPLICIT_NONLINEAR)

    # callers treating a missing checkpoint as a plain missing file still work
    with pytest.raises(FileNotFoundError):
        load_checkpoint(tmp_path / "absent.txt", empty_state(topology), EXPLICIT_NONLINEAR)


def test_state_with_mismatched_equation_counts_rejected(topology):
    state = empty_state(topology)
    with pytest.raises(ValueError):
        CheckpointState(
            dynamic=state.dynamic,
            iteration=IterationState.zeros(NEQ + 1),
            configuration=state.configuration,
            geometry=state.geometry,
            forces=state.forces,
        )
