# corot/state.py
"""
SOLVER STATE: Fixed-Stride Arrays Owned by the Analysis Loop
============================================================

PURPOSE:
--------
The mutable state the core reads and writes in place. Each container is a
dataclass of contiguous numpy arrays with an explicit stride per entity:

    Configuration   joint coordinates, previous-iteration snapshot, frame
                    offsets / auxiliary points / effective end coordinates
    GeometryCache   deformed lengths, shell areas, local triads
    ElementForces   element force vectors and shell resultant caches,
                    frame yield flags
    IterationState  global equilibrium-iteration vectors
    DynamicState    time-step kinematics and profile-stored K / M

Shapes are checked on construction, so a mismatched array fails loudly at the
point it enters the core rather than deep inside an update.

TRIAD CONVENTION:
-----------------
A triad is a 3×3 array whose ROWS are the local x, y, z axes expressed as
direction cosines in global coordinates:

    triad[0] = local-x    triad[1] = local-y    triad[2] = local-z

It is right-handed and orthonormal: triad @ triad.T = I, det(triad) = +1.
"""

import numpy as np
from dataclasses import dataclass, fields
from typing import Tuple

from .model import ModelTopology, FRAME_FORCE_ENTRIES, SHELL_FORCE_ENTRIES, TRUSS_FORCE_ENTRIES


def _check_shapes(obj, expected: dict) -> None:
    for name, shape in expected.items():
        arr = getattr(obj, name)
        if arr.shape != shape:
            raise ValueError(
                f"{type(obj).__name__}.{name} must have shape {shape}, got {arr.shape}"
            )


def _as_float(obj) -> None:
    for f in fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, (list, tuple, np.ndarray)):
            setattr(obj, f.name, np.ascontiguousarray(value, dtype=float))


@dataclass(eq=False)
class Configuration:
    """
    Current geometry of the structure.

    Attributes:
    -----------
    coords : np.ndarray
        (NJ, 3) current joint coordinates
    previous_coords : np.ndarray
        (NJ, 3) coordinates before the latest update
    frame_offsets : np.ndarray
        (NE_FR, 6) rigid offsets at end i (0:3) and end j (3:6)
    frame_has_offset : np.ndarray
        (NE_FR,) bool; offsets are applied only where True
    frame_aux_points : np.ndarray
        (NE_FR, 3) auxiliary reference point fixing each frame's local-z
    frame_end_coords : np.ndarray
        (NE_FR, 6) effective end coordinates (joint + offset), written by
        the geometry update
    """
    coords: np.ndarray
    previous_coords: np.ndarray
    frame_offsets: np.ndarray
    frame_has_offset: np.ndarray
    frame_aux_points: np.ndarray
    frame_end_coords: np.ndarray

    def __post_init__(self):
        has_offset = np.asarray(self.frame_has_offset, dtype=bool)
        _as_float(self)
        self.frame_has_offset = has_offset
        n_joints = self.coords.shape[0]
        n_frame = self.frame_offsets.shape[0]
        _check_shapes(self, {
            'coords': (n_joints, 3),
            'previous_coords': (n_joints, 3),
            'frame_offsets': (n_frame, 6),
            'frame_has_offset': (n_frame,),
            'frame_aux_points': (n_frame, 3),
            'frame_end_coords': (n_frame, 6),
        })

    @classmethod
    def from_coords(cls, coords, n_frame: int = 0, frame_aux_points=None,
                    frame_offsets=None) -> "Configuration":
        """
        Build a configuration from initial joint coordinates.

        Offsets default to none; ``frame_has_offset`` is True for every frame
        whose offset row is not all zero.
        """
        coords = np.array(coords, dtype=float)
        if frame_offsets is None:
            frame_offsets = np.zeros((n_frame, 6))
        frame_offsets = np.array(frame_offsets, dtype=float).reshape(n_frame, 6)
        if frame_aux_points is None:
            frame_aux_points = np.zeros((n_frame, 3))
        return cls(
            coords=coords,
            previous_coords=coords.copy(),
            frame_offsets=frame_offsets,
            frame_has_offset=np.any(frame_offsets != 0.0, axis=1),
            frame_aux_points=np.array(frame_aux_points, dtype=float).reshape(n_frame, 3),
            frame_end_coords=np.zeros((n_frame, 6)),
        )


@dataclass(eq=False)
class GeometryCache:
    """Deformed lengths, shell areas and local triads of every element."""
    truss_length: np.ndarray            # (NE_TR,)
    truss_cosines: np.ndarray           # (NE_TR, 3)
    frame_length: np.ndarray            # (NE_FR,)
    frame_reference_length: np.ndarray  # (NE_FR,) undeformed length
    frame_triads: np.ndarray            # (NE_FR, 3, 3)
    shell_side_lengths: np.ndarray      # (NE_SH, 3) sides 1-2, 2-3, 3-1
    shell_area: np.ndarray              # (NE_SH,)
    shell_triads: np.ndarray            # (NE_SH, 3, 3)

    def __post_init__(self):
        _as_float(self)
        n_truss = self.truss_length.shape[0]
        n_frame = self.frame_length.shape[0]
        n_shell = self.shell_area.shape[0]
        _check_shapes(self, {
            'truss_cosines': (n_truss, 3),
            'frame_reference_length': (n_frame,),
            'frame_triads': (n_frame, 3, 3),
            'shell_side_lengths': (n_shell, 3),
            'shell_triads': (n_shell, 3, 3),
        })

    @classmethod
    def zeros(cls, topology: ModelTopology) -> "GeometryCache":
        nt, nf, ns = topology.n_truss, topology.n_frame, topology.n_shell
        return cls(
            truss_length=np.zeros(nt),
            truss_cosines=np.zeros((nt, 3)),
            frame_length=np.zeros(nf),
            frame_reference_length=np.zeros(nf),
            frame_triads=np.zeros((nf, 3, 3)),
            shell_side_lengths=np.zeros((ns, 3)),
            shell_area=np.zeros(ns),
            shell_triads=np.zeros((ns, 3, 3)),
        )

    def cosine_rows(self) -> np.ndarray:
        """
        Direction cosines packed as (rows, 3) columns c1, c2, c3.

        Truss e contributes one row (l, m, n). Frame and shell elements
        contribute three rows each; row j holds component j of local-x,
        local-y and local-z.
        """
        frame_rows = np.transpose(self.frame_triads, (0, 2, 1)).reshape(-1, 3)
        shell_rows = np.transpose(self.shell_triads, (0, 2, 1)).reshape(-1, 3)
        return np.vstack([self.truss_cosines, frame_rows, shell_rows])

    def set_cosine_rows(self, rows: np.ndarray) -> None:
        """Inverse of cosine_rows: unpack (rows, 3) into the triad arrays."""
        nt = self.truss_cosines.shape[0]
        nf = self.frame_triads.shape[0]
        ns = self.shell_triads.shape[0]
        rows = np.asarray(rows, dtype=float)
        if rows.shape != (nt + 3 * nf + 3 * ns, 3):
            raise ValueError(f"expected {(nt + 3 * nf + 3 * ns, 3)} cosine rows, got {rows.shape}")
        self.truss_cosines[:, :] = rows[:nt]
        self.frame_triads[:, :, :] = np.transpose(rows[nt:nt + 3 * nf].reshape(nf, 3, 3), (0, 2, 1))
        self.shell_triads[:, :, :] = np.transpose(rows[nt + 3 * nf:].reshape(ns, 3, 3), (0, 2, 1))


@dataclass(eq=False)
class ElementForces:
    """Element force vectors and resultant caches carried between increments."""
    truss: np.ndarray            # (NE_TR, 2)
    frame: np.ndarray            # (NE_FR, 14)
    shell: np.ndarray            # (NE_SH, 18)
    frame_fixed_end: np.ndarray  # (NE_FR, 14)
    shell_curvature: np.ndarray  # (NE_SH, 3)
    shell_membrane: np.ndarray   # (NE_SH, 9)
    shell_moment: np.ndarray     # (NE_SH, 9)
    yield_flags: np.ndarray      # (NE_FR, 2) int, one per frame end

    def __post_init__(self):
        flags = np.asarray(self.yield_flags, dtype=np.int64)
        _as_float(self)
        self.yield_flags = flags
        nt, nf, ns = self.truss.shape[0], self.frame.shape[0], self.shell.shape[0]
        _check_shapes(self, {
            'truss': (nt, TRUSS_FORCE_ENTRIES),
            'frame': (nf, FRAME_FORCE_ENTRIES),
            'shell': (ns, SHELL_FORCE_ENTRIES),
            'frame_fixed_end': (nf, FRAME_FORCE_ENTRIES),
            'shell_curvature': (ns, 3),
            'shell_membrane': (ns, 9),
            'shell_moment': (ns, 9),
            'yield_flags': (nf, 2),
        })

    @classmethod
    def zeros(cls, topology: ModelTopology) -> "ElementForces":
        nt, nf, ns = topology.n_truss, topology.n_frame, topology.n_shell
        return cls(
            truss=np.zeros((nt, TRUSS_FORCE_ENTRIES)),
            frame=np.zeros((nf, FRAME_FORCE_ENTRIES)),
            shell=np.zeros((ns, SHELL_FORCE_ENTRIES)),
            frame_fixed_end=np.zeros((nf, FRAME_FORCE_ENTRIES)),
            shell_curvature=np.zeros((ns, 3)),
            shell_membrane=np.zeros((ns, 9)),
            shell_moment=np.zeros((ns, 9)),
            yield_flags=np.zeros((nf, 2), dtype=np.int64),
        )

    def packed(self) -> np.ndarray:
        """Truss, frame and shell force vectors concatenated into one array."""
        return np.concatenate([self.truss.ravel(), self.frame.ravel(), self.shell.ravel()])

    def set_packed(self, values: np.ndarray) -> None:
        """Inverse of packed."""
        values = np.asarray(values, dtype=float)
        sizes = (self.truss.size, self.frame.size, self.shell.size)
        if values.shape != (sum(sizes),):
            raise ValueError(f"expected {sum(sizes)} packed element forces, got {values.shape}")
        a, b = sizes[0], sizes[0] + sizes[1]
        self.truss[:, :] = values[:a].reshape(self.truss.shape)
        self.frame[:, :] = values[a:b].reshape(self.frame.shape)
        self.shell[:, :] = values[b:].reshape(self.shell.shape)


@dataclass(eq=False)
class IterationState:
    """
    Global vectors of the equilibrium iteration, all of length NEQ.

    Attributes:
    -----------
    dd : incremental displacements of the current iteration
    d : total displacements
    f : internal forces of the current iteration
    f_previous : internal forces of the previous iteration
    f_first : internal forces at the first iteration of the increment
    applied_load : total applied load
    first_iteration_energy : incremental energy of the first iteration
        (reference value of the energy criterion)
    """
    dd: np.ndarray
    d: np.ndarray
    f: np.ndarray
    f_previous: np.ndarray
    f_first: np.ndarray
    applied_load: np.ndarray
    first_iteration_energy: float = 0.0

    def __post_init__(self):
        _as_float(self)
        neq = self.dd.shape[0]
        _check_shapes(self, {name: (neq,) for name in
                             ('d', 'f', 'f_previous', 'f_first', 'applied_load')})

    @classmethod
    def zeros(cls, neq: int) -> "IterationState":
        return cls(*(np.zeros(neq) for _ in range(6)))

    @property
    def neq(self) -> int:
        return self.dd.shape[0]


@dataclass(eq=False)
class DynamicState:
    """
    Time-step kinematics plus profile-stored stiffness and mass.

    ``stiffness`` and ``mass`` hold the ``lss`` stored entries of the global
    matrices in whatever skyline layout the assembler uses; the core only
    moves them through checkpoints.
    """
    time_step: int
    displacement: np.ndarray
    velocity: np.ndarray
    acceleration: np.ndarray
    stiffness: np.ndarray
    mass: np.ndarray

    def __post_init__(self):
        _as_float(self)
        neq = self.displacement.shape[0]
        lss = self.stiffness.shape[0]
        _check_shapes(self, {
            'velocity': (neq,),
            'acceleration': (neq,),
            'mass': (lss,),
        })

    @classmethod
    def zeros(cls, neq: int, lss: int) -> "DynamicState":
        return cls(0, np.zeros(neq), np.zeros(neq), np.zeros(neq), np.zeros(lss), np.zeros(lss))

    @property
    def shape(self) -> Tuple[int, int]:
        """(neq, lss)"""
        return self.displacement.shape[0], self.stiffness.shape[0]
