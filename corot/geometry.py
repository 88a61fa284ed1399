# corot/geometry.py
"""
GEOMETRY UPDATE: Co-Rotational Configuration Tracking
=====================================================

PURPOSE:
--------
After every equilibrium iteration the solver moves the structure by the
incremental displacements `dd` and rebuilds each element's deformed geometry
and local frame from the new joint positions. Element stiffness assembly then
works in these fresh local axes, which is what separates the rigid rotation of
an element from its strain (co-rotational kinematics).

STEPS (update_configuration runs them in this order):
-----------------------------------------------------
1. update_nodes     x_prev ← x;  x += dd at free translational DOFs
2. update_trusses   length and direction cosines (l, m, n)
3. update_frames    end points (+ rigid offsets), length, triad from the
                    member axis and the auxiliary reference point
4. update_shells    three side lengths, face area, triad from edge 1→2 and
                    the face normal

FRAME TRIAD:
------------
    x' = (end_j - end_i) / L
    z' = normalize(x' × (aux - end_i))
    y' = normalize(z' × x')

SHELL TRIAD (vertices 1→2→3):
-----------------------------
    e12 = v2 - v1      e23 = v3 - v2      e13 = v3 - v1
    n   = e12 × e13    (edge taken 1→3, not 3→1, so n follows the
                        counter-clockwise vertex order)
    A   = |n| / 2
    x' = e12 / |e12|,   z' = n / (2A),   y' = normalize(z' × x')

DEGENERATE GEOMETRY:
--------------------
A zero-length edge, a frame whose auxiliary point lies on the member axis, or
a zero-area shell face would fill the cache with NaN. These raise
DegenerateGeometryError before anything non-finite is written.
"""

import logging

import numpy as np

from .kernel.equations import EquationNumbering
from .kernel.errors import DegenerateGeometryError
from .kernel.linalg import cross, dot
from .model import ModelTopology
from .state import Configuration, GeometryCache

logger = logging.getLogger(__name__)


def _length(v: np.ndarray) -> float:
    return float(np.sqrt(dot(v, v, 3)))


def _require_positive(value: float, what: str, element: int) -> None:
    if not np.isfinite(value) or value <= 0.0:
        raise DegenerateGeometryError(f"{what} of element {element} is {value!r}")


def update_nodes(equations: EquationNumbering, config: Configuration, dd: np.ndarray) -> None:
    """
    Snapshot the coordinates, then add dd at every free translational DOF.

    Restrained DOFs (equation index 0) keep their coordinate.
    """
    config.previous_coords[:, :] = config.coords
    codes = equations.translational()
    free = codes != 0
    config.coords[free] += np.asarray(dd, dtype=float)[codes[free] - 1]


def update_trusses(topology: ModelTopology, config: Configuration, cache: GeometryCache) -> None:
    """Deformed length and direction cosines of every truss element."""
    x = config.coords
    for e, (i, j) in enumerate(topology.truss):
        el = x[j] - x[i]
        length = _length(el)
        _require_positive(length, "Truss length", e)
        cache.truss_length[e] = length
        cache.truss_cosines[e] = el / length


def update_frames(topology: ModelTopology, config: Configuration, cache: GeometryCache) -> None:
    """
    End coordinates, deformed length and local triad of every frame element.

    Raises:
    -------
    DegenerateGeometryError
        Zero member length, or auxiliary point on the member axis
    """
    x = config.coords
    localz = np.empty(3)
    localy = np.empty(3)

    for e, (i, j) in enumerate(topology.frame):
        ends = config.frame_end_coords[e]
        ends[:3] = x[i]
        ends[3:] = x[j]
        if config.frame_has_offset[e]:
            ends += config.frame_offsets[e]

        el = ends[3:] - ends[:3]
        length = _length(el)
        _require_positive(length, "Frame length", e)
        cache.frame_length[e] = length

        localx = el / length
        cross(localx, config.frame_aux_points[e] - ends[:3], out=localz)
        lever = _length(localz)
        _require_positive(lever, "Auxiliary-point lever arm", e)
        localz /= lever
        cross(localz, localx, out=localy, normalize=True)

        cache.frame_triads[e, 0] = localx
        cache.frame_triads[e, 1] = localy
        cache.frame_triads[e, 2] = localz


def update_shells(topology: ModelTopology, config: Configuration, cache: GeometryCache) -> None:
    """
    Side lengths, face area and local triad of every triangular shell.

    Side order in the cache: 0 = edge 1-2, 1 = edge 2-3, 2 = edge 3-1.

    Raises:
    -------
    DegenerateGeometryError
        A zero-length side or a zero-area face
    """
    x = config.coords
    normal = np.empty(3)
    localy = np.empty(3)

    for e, (v1, v2, v3) in enumerate(topology.shell):
        el12 = x[v2] - x[v1]
        el23 = x[v3] - x[v2]
        el13 = x[v3] - x[v1]

        sides = (_length(el12), _length(el23), _length(el13))
        for s in sides:
            _require_positive(s, "Shell side length", e)
        cache.shell_side_lengths[e] = sides

        cross(el12, el13, out=normal)
        area = 0.5 * _length(normal)
        _require_positive(area, "Shell face area", e)
        cache.shell_area[e] = area

        localx = el12 / sides[0]
        localz = normal / (2.0 * area)
        cross(localz, localx, out=localy, normalize=True)

        cache.shell_triads[e, 0] = localx
        cache.shell_triads[e, 1] = localy
        cache.shell_triads[e, 2] = localz


def update_configuration(
    topology: ModelTopology,
    equations: EquationNumbering,
    config: Configuration,
    cache: GeometryCache,
    dd: np.ndarray,
) -> None:
    """
    Apply one iteration's incremental displacements and rebuild element geometry.

    Called once per equilibrium iteration. Mutates ``config`` and ``cache``
    in place; no I/O.

    Parameters:
    -----------
    topology : ModelTopology
        Connectivity of trusses, frames and shells
    equations : EquationNumbering
        Joint DOF → equation table
    config : Configuration
        Joint coordinates and frame orientation data (updated)
    cache : GeometryCache
        Lengths, areas and triads (updated)
    dd : np.ndarray
        Incremental displacement vector, length NEQ
    """
    if len(dd) != equations.neq:
        raise ValueError(f"dd has {len(dd)} entries but the model has {equations.neq} equations")

    update_nodes(equations, config, dd)
    update_trusses(topology, config, cache)
    update_frames(topology, config, cache)
    update_shells(topology, config, cache)

    logger.debug(
        "Updated configuration: %d joints, %d truss, %d frame, %d shell elements",
        topology.n_joints, topology.n_truss, topology.n_frame, topology.n_shell,
    )


def initialize_geometry(topology: ModelTopology, config: Configuration, cache: GeometryCache) -> None:
    """
    Fill the cache for the undeformed configuration.

    Also records each frame's undeformed length in
    ``cache.frame_reference_length``.
    """
    update_trusses(topology, config, cache)
    update_frames(topology, config, cache)
    update_shells(topology, config, cache)
    cache.frame_reference_length[:] = cache.frame_length
