# corot/kernel/equations.py
"""
EQUATION NUMBERING: Joint DOF → Global Equation Index
=====================================================

PURPOSE:
--------
Every joint carries 7 degrees of freedom:

    0 ux   1 uy   2 uz   3 rx   4 ry   5 rz   6 warping

Restrained DOFs never enter the global system. The equation table (`jcode`)
stores, for each (joint, dof), a 1-based global equation index, or 0 when the
DOF is restrained. Global vectors (dd, d, f, ...) are indexed by equation - 1.

    jcode[joint, dof] == 0   → restrained, contributes nothing
    jcode[joint, dof] == k   → free, lives at vector[k - 1]

USAGE:
------
    restrained = np.zeros((n_joints, 7), dtype=bool)
    restrained[0, :] = True                        # fix joint 0
    eq = EquationNumbering.from_restraints(restrained)
    eq.neq                                         # number of equations
    eq.equation(joint=2, dof=1)                    # 1-based, 0 if restrained
"""

import numpy as np
from dataclasses import dataclass
from typing import List, Sequence

DOF_PER_JOINT = 7
TRANSLATIONAL_DOFS = 3


@dataclass
class EquationNumbering:
    """
    Equation table for a model.

    Attributes:
    -----------
    jcode : np.ndarray
        Integer array, shape (n_joints, 7). 1-based equation index or 0.

    Examples:
    ---------
    >>> restrained = np.zeros((2, 7), dtype=bool)
    >>> restrained[0] = True
    >>> eq = EquationNumbering.from_restraints(restrained)
    >>> eq.neq
    7
    >>> eq.equation(1, 0)
    1
    >>> eq.equation(0, 0)
    0
    """
    jcode: np.ndarray

    def __post_init__(self):
        self.jcode = np.asarray(self.jcode, dtype=np.int64)
        if self.jcode.ndim != 2 or self.jcode.shape[1] != DOF_PER_JOINT:
            raise ValueError(
                f"jcode must have shape (n_joints, {DOF_PER_JOINT}), got {self.jcode.shape}"
            )
        if np.any(self.jcode < 0):
            raise ValueError("jcode entries must be 0 (restrained) or a positive equation index")

    @classmethod
    def from_restraints(cls, restrained: np.ndarray) -> "EquationNumbering":
        """
        Number the free DOFs joint by joint, DOF by DOF, starting at 1.

        Parameters:
        -----------
        restrained : np.ndarray
            Boolean array, shape (n_joints, 7); True marks a restrained DOF
        """
        restrained = np.asarray(restrained, dtype=bool)
        jcode = np.zeros(restrained.shape, dtype=np.int64)
        free = ~restrained
        jcode[free] = np.arange(1, int(free.sum()) + 1)
        return cls(jcode)

    @property
    def n_joints(self) -> int:
        return self.jcode.shape[0]

    @property
    def neq(self) -> int:
        """Number of global equations (largest equation index)."""
        return int(self.jcode.max()) if self.jcode.size else 0

    def equation(self, joint: int, dof: int) -> int:
        """1-based equation index for a joint DOF, 0 if restrained."""
        return int(self.jcode[joint, dof])

    def translational(self) -> np.ndarray:
        """View of the ux/uy/uz columns, shape (n_joints, 3)."""
        return self.jcode[:, :TRANSLATIONAL_DOFS]

    def element_equations(self, joints: Sequence[int], dofs: Sequence[int]) -> List[int]:
        """
        Equation indices for an element, joint-major.

        Used by assembly to scatter element matrices into the global system.

        Examples:
        ---------
        >>> eq.element_equations([0, 1], dofs=[0, 1, 2])
        [0, 0, 0, 1, 2, 3]
        """
        result = []
        for joint in joints:
            result.extend(int(self.jcode[joint, d]) for d in dofs)
        return result

    def gather(self, vector: np.ndarray, n_dofs: int = TRANSLATIONAL_DOFS) -> np.ndarray:
        """
        Pick global-vector entries into a joint array.

        Restrained DOFs read as 0. Returns shape (n_joints, n_dofs).
        """
        codes = self.jcode[:, :n_dofs]
        out = np.zeros(codes.shape, dtype=float)
        free = codes != 0
        out[free] = np.asarray(vector, dtype=float)[codes[free] - 1]
        return out

    def scatter(self, joint_values: np.ndarray, n_dofs: int = TRANSLATIONAL_DOFS) -> np.ndarray:
        """
        Place a joint array (n_joints, n_dofs) into a new global vector.

        Values at restrained DOFs are dropped.
        """
        codes = self.jcode[:, :n_dofs]
        out = np.zeros(self.neq, dtype=float)
        free = codes != 0
        out[codes[free] - 1] = np.asarray(joint_values, dtype=float)[free]
        return out
