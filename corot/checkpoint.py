# corot/checkpoint.py
"""
CHECKPOINT / RESTART: Durable Snapshot of the Dynamic Solver State
=================================================================

PURPOSE:
--------
A long explicit-dynamic run saves its complete mutable state at chosen time
steps. A later run reads the snapshot back into freshly allocated arrays and
carries on from that step as if it had never stopped.

FILE FORMAT (plain text, one record per line, comma-separated):
---------------------------------------------------------------
    tstep,layout                     header
    uc,vc,ac        × NEQ            block 1: kinematics
    0,0,0                            sentinel
    ss,sm           × lss            block 2: stiffness / mass entries
    0,0                              sentinel
    d,f             × NEQ            block 3: configuration ...
    ef              × (2·NE_TR + 14·NE_FR + 18·NE_SH)
    x               × 3·NJ
    c1,c2,c3        × (NE_TR + 3·NE_FR + 3·NE_SH)
    deflen          × NE_TR
    deflen,llength  × NE_FR
    efFE            × 14·NE_FR
    xfr             × 6·NE_FR
    yldflag         × 2·NE_FR        (integers)
    area            × NE_SH
    -- GEOMETRY_ONLY layout --
    slen            × 3·NE_SH
    -- WITH_CURVATURE layout --
    slen,chi        × 3·NE_SH
    efN,efM         × 9·NE_SH
    0,0,0                            sentinel

Floats are written with ``%e`` unless another format is given. Reading back
reproduces the written text exactly; use a 17-digit format such as
``%.17e`` where bit-exact resumption is required.

LAYOUTS:
--------
The shell blocks depend on the analysis mode, so the layout is a tagged
variant stored in the header and checked on both save and load:

    GEOMETRY_ONLY    nonlinear shell kinematics; side lengths only
    WITH_CURVATURE   other analysis types; curvatures and membrane/moment
                     resultants travel with the side lengths

Only the explicit dynamic algorithm checkpoints; other modes raise
CheckpointModeError.

FAILURES:
---------
    CheckpointNotFoundError   no file at the path (clean "nothing to resume")
    CheckpointFormatError     sentinel mismatch, truncated file, bad field
    CheckpointModeError       mode cannot checkpoint / layout differs
Nothing is copied into the caller's arrays until the whole file has been
read and validated.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, TextIO, Tuple, Union

import numpy as np

from .model import Algorithm, AnalysisMode, AnalysisType
from .state import Configuration, DynamicState, ElementForces, GeometryCache, IterationState
from .streams import AnalysisIOError

logger = logging.getLogger(__name__)

DEFAULT_FLOAT_FORMAT = "%e"

PathLike = Union[str, Path]


class CheckpointError(RuntimeError):
    """Base class for checkpoint failures."""
    pass


class CheckpointFormatError(CheckpointError):
    """The checkpoint text does not match the expected record layout."""
    pass


class CheckpointModeError(CheckpointError):
    """The analysis mode cannot checkpoint, or differs from the file's layout."""
    pass


class CheckpointNotFoundError(CheckpointError, FileNotFoundError):
    """No checkpoint exists at the requested path."""
    pass


class CheckpointLayout(Enum):
    """Shell-block variant of the checkpoint file."""
    WITH_CURVATURE = 1
    GEOMETRY_ONLY = 2

    @classmethod
    def for_mode(cls, mode: AnalysisMode) -> "CheckpointLayout":
        """
        Layout for an analysis mode.

        Raises:
        -------
        CheckpointModeError
            If the algorithm is not explicit dynamic
        """
        if mode.algorithm is not Algorithm.EXPLICIT_DYNAMIC:
            raise CheckpointModeError(
                f"Checkpoints are only written for {Algorithm.EXPLICIT_DYNAMIC.name} "
                f"runs, not {mode.algorithm.name}"
            )
        if mode.analysis is AnalysisType.NONLINEAR:
            return cls.GEOMETRY_ONLY
        return cls.WITH_CURVATURE


@dataclass(eq=False)
class CheckpointState:
    """
    Everything a checkpoint carries, by reference to the solver's arrays.

    From ``iteration`` only ``d`` and ``f`` are stored; from ``configuration``
    only ``coords`` and ``frame_end_coords``.
    """
    dynamic: DynamicState
    iteration: IterationState
    configuration: Configuration
    geometry: GeometryCache
    forces: ElementForces

    def __post_init__(self):
        neq, _ = self.dynamic.shape
        if self.iteration.neq != neq:
            raise ValueError(
                f"iteration vectors have {self.iteration.neq} equations, "
                f"dynamic state has {neq}"
            )


# ============================================================================
# WRITING
# ============================================================================

class _RecordWriter:
    def __init__(self, stream: TextIO, float_format: str):
        self.stream = stream
        self.float_format = float_format

    def row(self, *values: float) -> None:
        self.stream.write(",".join(self.float_format % v for v in values) + "\n")

    def rows(self, *columns: np.ndarray) -> None:
        for values in zip(*(np.ravel(c) for c in columns)):
            self.row(*values)

    def int_rows(self, values: np.ndarray) -> None:
        for v in np.ravel(values):
            self.stream.write("%d\n" % v)

    def sentinel(self, width: int) -> None:
        self.stream.write(",".join(["0"] * width) + "\n")


def write_checkpoint(
    stream: TextIO,
    state: CheckpointState,
    mode: AnalysisMode,
    float_format: str = DEFAULT_FLOAT_FORMAT,
) -> None:
    """
    Serialize the solver state to an open text stream.

    Parameters:
    -----------
    stream : TextIO
        Destination, opened for writing
    state : CheckpointState
        Arrays to serialize
    mode : AnalysisMode
        Must be explicit dynamic; selects the shell layout
    float_format : str
        printf-style format for floating-point fields

    Raises:
    -------
    CheckpointModeError
        If the mode does not checkpoint
    """
    layout = CheckpointLayout.for_mode(mode)
    w = _RecordWriter(stream, float_format)
    dyn, geo, frc = state.dynamic, state.geometry, state.forces

    stream.write("%d,%d\n" % (dyn.time_step, layout.value))

    w.rows(dyn.displacement, dyn.velocity, dyn.acceleration)
    w.sentinel(3)

    w.rows(dyn.stiffness, dyn.mass)
    w.sentinel(2)

    w.rows(state.iteration.d, state.iteration.f)
    w.rows(frc.packed())
    w.rows(state.configuration.coords)
    w.rows(*geo.cosine_rows().T)
    w.rows(geo.truss_length)
    w.rows(geo.frame_length, geo.frame_reference_length)
    w.rows(frc.frame_fixed_end)
    w.rows(state.configuration.frame_end_coords)
    w.int_rows(frc.yield_flags)
    w.rows(geo.shell_area)
    if layout is CheckpointLayout.GEOMETRY_ONLY:
        w.rows(geo.shell_side_lengths)
    else:
        w.rows(geo.shell_side_lengths, frc.shell_curvature)
        w.rows(frc.shell_membrane, frc.shell_moment)
    w.sentinel(3)


def save_checkpoint(
    path: PathLike,
    state: CheckpointState,
    mode: AnalysisMode,
    float_format: str = DEFAULT_FLOAT_FORMAT,
) -> Path:
    """
    Write a checkpoint file, replacing any previous one.

    The record is written to a sibling temporary file and moved into place,
    so an interrupted save leaves the last complete checkpoint untouched.
    The file is opened once; a failure raises AnalysisIOError.

    Returns:
    --------
    Path
        The checkpoint path
    """
    path = Path(path)
    CheckpointLayout.for_mode(mode)
    tmp = path.with_name(path.name + ".tmp")
    try:
        with open(tmp, "w") as stream:
            write_checkpoint(stream, state, mode, float_format)
        os.replace(tmp, path)
    except OSError as exc:
        raise AnalysisIOError(f"Cannot write checkpoint {path}: {exc}") from exc

    logger.info("Checkpoint for time step %d written to %s", state.dynamic.time_step, path)
    return path


# ============================================================================
# READING
# ============================================================================

class _RecordReader:
    def __init__(self, stream: TextIO):
        self._lines: Iterator[str] = iter(stream)
        self.line_no = 0

    def _next(self, what: str) -> List[str]:
        try:
            line = next(self._lines)
        except StopIteration:
            raise CheckpointFormatError(
                f"Unexpected end of checkpoint after line {self.line_no} while reading {what}"
            ) from None
        self.line_no += 1
        return line.strip().split(",")

    def _fields(self, what: str, width: int) -> List[str]:
        fields = self._next(what)
        if len(fields) != width:
            raise CheckpointFormatError(
                f"Line {self.line_no} ({what}): expected {width} fields, got {len(fields)}"
            )
        return fields

    def rows(self, what: str, count: int, width: int = 1) -> np.ndarray:
        out = np.empty((count, width), dtype=float)
        for r in range(count):
            fields = self._fields(what, width)
            try:
                out[r] = [float(v) for v in fields]
            except ValueError:
                raise CheckpointFormatError(
                    f"Line {self.line_no} ({what}): cannot parse {fields!r}"
                ) from None
        return out

    def int_rows(self, what: str, count: int) -> np.ndarray:
        out = np.empty(count, dtype=np.int64)
        for r in range(count):
            fields = self._fields(what, 1)
            try:
                out[r] = int(fields[0])
            except ValueError:
                raise CheckpointFormatError(
                    f"Line {self.line_no} ({what}): expected an integer, got {fields[0]!r}"
                ) from None
        return out

    def header(self) -> Tuple[int, int]:
        fields = self._fields("header", 2)
        try:
            return int(fields[0]), int(fields[1])
        except ValueError:
            raise CheckpointFormatError(f"Line 1: malformed header {fields!r}") from None

    def sentinel(self, what: str, width: int) -> None:
        fields = self._next(f"end of {what}")
        if fields != ["0"] * width:
            raise CheckpointFormatError(
                f"Line {self.line_no}: expected end-of-{what} marker "
                f"{','.join(['0'] * width)!r}, found {','.join(fields)!r}"
            )

    def expect_eof(self) -> None:
        for line in self._lines:
            self.line_no += 1
            if line.strip():
                raise CheckpointFormatError(
                    f"Line {self.line_no}: unexpected data after the final marker"
                )


def read_checkpoint(stream: TextIO, state: CheckpointState, mode: AnalysisMode) -> int:
    """
    Read a checkpoint from an open text stream into the solver's arrays.

    The blocks are read in the order write_checkpoint produces them and every
    end-of-block marker is validated. The caller's arrays are only touched
    once the whole record has parsed.

    Parameters:
    -----------
    stream : TextIO
        Source, opened for reading
    state : CheckpointState
        Pre-allocated arrays sized for the model; filled in place
    mode : AnalysisMode
        Must match the mode the checkpoint was written with

    Returns:
    --------
    int
        The time step stored in the checkpoint (also set on state.dynamic)

    Raises:
    -------
    CheckpointFormatError
        Sentinel mismatch, truncated record, wrong field count or bad number
    CheckpointModeError
        Mode cannot checkpoint, or the file was written for another layout
    """
    layout = CheckpointLayout.for_mode(mode)
    r = _RecordReader(stream)
    dyn, geo, frc, cfg = state.dynamic, state.geometry, state.forces, state.configuration
    neq, lss = dyn.shape
    n_truss = geo.truss_length.shape[0]
    n_frame = geo.frame_length.shape[0]
    n_shell = geo.shell_area.shape[0]

    time_step, code = r.header()
    if code != layout.value:
        known = {item.value: item.name for item in CheckpointLayout}
        raise CheckpointModeError(
            f"Checkpoint layout {known.get(code, code)} does not match "
            f"{layout.name} required by {mode.analysis.name} analysis"
        )

    staged: Dict[str, np.ndarray] = {}
    staged['kinematics'] = r.rows("displacements, velocities, and accelerations", neq, 3)
    r.sentinel("kinematics", 3)
    logger.info("Read in displacements, velocities, and accelerations complete")

    staged['matrices'] = r.rows("stiffness and mass matrices", lss, 2)
    r.sentinel("matrices", 2)
    logger.info("Read in stiffness and mass matrices complete")

    staged['d_f'] = r.rows("displacements and forces", neq, 2)
    staged['ef'] = r.rows("element forces", frc.packed().shape[0])
    staged['coords'] = r.rows("joint coordinates", cfg.coords.size)
    staged['cosines'] = r.rows("direction cosines", n_truss + 3 * n_frame + 3 * n_shell, 3)
    staged['truss_length'] = r.rows("truss lengths", n_truss)
    staged['frame_length'] = r.rows("frame lengths", n_frame, 2)
    staged['frame_fixed_end'] = r.rows("frame fixed-end forces", frc.frame_fixed_end.size)
    staged['frame_end_coords'] = r.rows("frame end coordinates", cfg.frame_end_coords.size)
    staged['yield_flags'] = r.int_rows("yield flags", frc.yield_flags.size)
    staged['shell_area'] = r.rows("shell areas", n_shell)
    if layout is CheckpointLayout.GEOMETRY_ONLY:
        staged['shell_sides'] = r.rows("shell side lengths", 3 * n_shell)
    else:
        staged['shell_sides'] = r.rows("shell side lengths and curvatures", 3 * n_shell, 2)
        staged['shell_resultants'] = r.rows("shell force resultants", 9 * n_shell, 2)
    r.sentinel("configuration", 3)
    r.expect_eof()

    # Commit
    dyn.time_step = time_step
    dyn.displacement[:] = staged['kinematics'][:, 0]
    dyn.velocity[:] = staged['kinematics'][:, 1]
    dyn.acceleration[:] = staged['kinematics'][:, 2]
    dyn.stiffness[:] = staged['matrices'][:, 0]
    dyn.mass[:] = staged['matrices'][:, 1]
    state.iteration.d[:] = staged['d_f'][:, 0]
    state.iteration.f[:] = staged['d_f'][:, 1]
    frc.set_packed(staged['ef'][:, 0])
    cfg.coords[:, :] = staged['coords'].reshape(cfg.coords.shape)
    geo.set_cosine_rows(staged['cosines'])
    geo.truss_length[:] = staged['truss_length'][:, 0]
    geo.frame_length[:] = staged['frame_length'][:, 0]
    geo.frame_reference_length[:] = staged['frame_length'][:, 1]
    frc.frame_fixed_end[:, :] = staged['frame_fixed_end'].reshape(frc.frame_fixed_end.shape)
    cfg.frame_end_coords[:, :] = staged['frame_end_coords'].reshape(cfg.frame_end_coords.shape)
    frc.yield_flags[:, :] = staged['yield_flags'].reshape(frc.yield_flags.shape)
    geo.shell_area[:] = staged['shell_area'][:, 0]
    if layout is CheckpointLayout.GEOMETRY_ONLY:
        geo.shell_side_lengths[:, :] = staged['shell_sides'].reshape(n_shell, 3)
    else:
        geo.shell_side_lengths[:, :] = staged['shell_sides'][:, 0].reshape(n_shell, 3)
        frc.shell_curvature[:, :] = staged['shell_sides'][:, 1].reshape(n_shell, 3)
        frc.shell_membrane[:, :] = staged['shell_resultants'][:, 0].reshape(n_shell, 9)
        frc.shell_moment[:, :] = staged['shell_resultants'][:, 1].reshape(n_shell, 9)

    logger.info("Read in checkpoint file complete (time step %d)", time_step)
    return time_step


def checkpoint_exists(path: PathLike) -> bool:
    """True when a checkpoint file is present at path."""
    return Path(path).is_file()


def load_checkpoint(path: PathLike, state: CheckpointState, mode: AnalysisMode) -> int:
    """
    Open a checkpoint file once and read it into the solver's arrays.

    Returns:
    --------
    int
        The stored time step

    Raises:
    -------
    CheckpointNotFoundError
        No file at path
    AnalysisIOError
        The file exists but cannot be opened
    CheckpointFormatError, CheckpointModeError
        See read_checkpoint
    """
    path = Path(path)
    if not checkpoint_exists(path):
        raise CheckpointNotFoundError(f"No checkpoint at {path}")
    try:
        stream = open(path, "r")
    except OSError as exc:
        raise AnalysisIOError(f"Cannot open checkpoint {path}: {exc}") from exc
    with stream:
        return read_checkpoint(stream, state, mode)
