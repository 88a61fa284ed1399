# corot/model.py
"""
MODEL DEFINITIONS: Topology and Analysis Mode
=============================================

PURPOSE:
--------
The read-only description of a model as the core sees it:

- ModelTopology: joint count and element connectivity for the three element
  families (2-node trusses, 2-node frames, 3-node triangular shells)
- AnalysisMode: which solution algorithm and which kinematic theory the run
  uses. Checkpoint layout and report wording depend on it.

Joint indices are 0-based. External model readers that work with 1-based
joint numbers subtract one before building a ModelTopology.

ELEMENT-FORCE AND TRIAD STRIDES:
--------------------------------
    truss   2 force entries  (axial at each end)
    frame  14 force entries  (7 per end: Fx Fy Fz Mx My Mz bimoment)
    shell  18 force entries  (6 per vertex: Fx Fy Fz Mx My Mz)
"""

import numpy as np
from dataclasses import dataclass, field
from enum import Enum

TRUSS_FORCE_ENTRIES = 2
FRAME_FORCE_ENTRIES = 14
SHELL_FORCE_ENTRIES = 18


class Algorithm(Enum):
    """Solution algorithm driving the increments."""
    LINEAR = 0
    NEWTON_RAPHSON = 1
    MODIFIED_NEWTON_RAPHSON = 2
    ARC_LENGTH = 3
    IMPLICIT_DYNAMIC = 4
    EXPLICIT_DYNAMIC = 5

    @property
    def is_dynamic(self) -> bool:
        return self in (Algorithm.IMPLICIT_DYNAMIC, Algorithm.EXPLICIT_DYNAMIC)


class AnalysisType(Enum):
    """Kinematic theory of the run."""
    LINEAR = 1
    NONLINEAR = 2
    BUCKLING = 3


@dataclass(frozen=True)
class AnalysisMode:
    """
    Algorithm + analysis type pair, fixed for the whole run.

    Examples:
    ---------
    >>> mode = AnalysisMode(Algorithm.EXPLICIT_DYNAMIC, AnalysisType.NONLINEAR)
    >>> mode.algorithm.is_dynamic
    True
    """
    algorithm: Algorithm = Algorithm.NEWTON_RAPHSON
    analysis: AnalysisType = AnalysisType.NONLINEAR


def _connectivity(value, width: int, name: str) -> np.ndarray:
    arr = np.asarray(value if value is not None else np.zeros((0, width)), dtype=np.int64)
    if arr.size == 0:
        arr = arr.reshape(0, width)
    if arr.ndim != 2 or arr.shape[1] != width:
        raise ValueError(f"{name} must have shape (n, {width}), got {arr.shape}")
    return arr


@dataclass(frozen=True, eq=False)
class ModelTopology:
    """
    Joint count and element connectivity.

    Parameters:
    -----------
    n_joints : int
        Number of joints (NJ)
    truss : np.ndarray
        Shape (NE_TR, 2): end joints of each truss element
    frame : np.ndarray
        Shape (NE_FR, 2): end joints of each frame element
    shell : np.ndarray
        Shape (NE_SH, 3): vertices 1→2→3 of each triangular shell element

    Examples:
    ---------
    >>> topo = ModelTopology(n_joints=3, truss=[[0, 1], [1, 2]])
    >>> topo.n_truss, topo.n_frame, topo.n_shell
    (2, 0, 0)
    """
    n_joints: int
    truss: np.ndarray = field(default=None)
    frame: np.ndarray = field(default=None)
    shell: np.ndarray = field(default=None)

    def __post_init__(self):
        # frozen dataclass: normalise arrays through object.__setattr__
        object.__setattr__(self, 'truss', _connectivity(self.truss, 2, 'truss'))
        object.__setattr__(self, 'frame', _connectivity(self.frame, 2, 'frame'))
        object.__setattr__(self, 'shell', _connectivity(self.shell, 3, 'shell'))

        for name in ('truss', 'frame', 'shell'):
            conn = getattr(self, name)
            if conn.size and (conn.min() < 0 or conn.max() >= self.n_joints):
                raise ValueError(
                    f"{name} connectivity references a joint outside 0..{self.n_joints - 1}"
                )

    @property
    def n_truss(self) -> int:
        return self.truss.shape[0]

    @property
    def n_frame(self) -> int:
        return self.frame.shape[0]

    @property
    def n_shell(self) -> int:
        return self.shell.shape[0]

    @property
    def n_element_force_entries(self) -> int:
        """Length of the packed element-force vector."""
        return (TRUSS_FORCE_ENTRIES * self.n_truss
                + FRAME_FORCE_ENTRIES * self.n_frame
                + SHELL_FORCE_ENTRIES * self.n_shell)

    @property
    def n_triad_rows(self) -> int:
        """Rows of direction cosines: one per truss, three per frame/shell."""
        return self.n_truss + 3 * self.n_frame + 3 * self.n_shell
