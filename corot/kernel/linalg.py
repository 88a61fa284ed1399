# corot/kernel/linalg.py
"""
LINEAR ALGEBRA KERNEL: Small Dense Operations Used by the Solver
================================================================

PURPOSE:
--------
The handful of dense operations every other layer leans on:

    dot                    Σ a_i·b_i over the first n entries
    cross                  3-vector cross product (optionally normalized)
    norm                   Euclidean length
    congruence_transform   K = Tᵗ · k · T   (local → global element matrices)
    invert                 in-place Gauss-Jordan inversion
    transformation_matrix  block-diagonal rotation built from a local triad

None of them keeps state between calls or allocates beyond the temporaries
each call needs.

GAUSS-JORDAN PIVOTING:
----------------------
`invert` selects, for each pivot column, the FIRST row at or below the pivot
row holding a non-zero entry. There is no magnitude-based pivot selection, so
results on badly scaled matrices match the classical textbook routine rather
than LAPACK. When no such row exists the matrix is singular and
SingularMatrixError is raised instead of reading past the column.
"""

import numpy as np
from typing import Optional

from .errors import SingularMatrixError


def dot(a: np.ndarray, b: np.ndarray, n: Optional[int] = None) -> float:
    """
    Sum of element-wise products over the first n entries.

    n defaults to len(a); n=0 returns 0.0.
    """
    if n is None:
        n = len(a)
    if n == 0:
        return 0.0
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    return float(np.dot(a[:n], b[:n]))


def norm(a: np.ndarray) -> float:
    """Euclidean length of a vector."""
    return float(np.sqrt(dot(a, a)))


def cross(
    a: np.ndarray,
    b: np.ndarray,
    out: Optional[np.ndarray] = None,
    normalize: bool = False,
) -> np.ndarray:
    """
    Cross product a × b of two 3-vectors.

    Parameters:
    -----------
    a, b : np.ndarray
        3-vectors
    out : np.ndarray, optional
        Destination (shape (3,)); written in place and returned
    normalize : bool
        Divide the result by its Euclidean length. A zero-length result is
        a caller precondition violation; no check is made here.

    Returns:
    --------
    np.ndarray
        The cross product (``out`` if given)

    Example:
    --------
    >>> cross(np.array([1.0, 0, 0]), np.array([0, 1.0, 0]))
    array([0., 0., 1.])
    """
    if out is None:
        out = np.empty(3, dtype=float)

    c0 = a[1] * b[2] - a[2] * b[1]
    c1 = a[2] * b[0] - a[0] * b[2]
    c2 = a[0] * b[1] - a[1] * b[0]
    out[0], out[1], out[2] = c0, c1, c2

    if normalize:
        length = np.sqrt(c0 * c0 + c1 * c1 + c2 * c2)
        out /= length

    return out


def congruence_transform(
    k: np.ndarray,
    T: np.ndarray,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Rotate an element matrix: out = Tᵗ · k · T.

    Used to carry element stiffness/mass matrices from local to global axes.
    Both inputs are n×n. The product is formed in two dense steps through an
    n×n temporary (first Tᵗ·k, then (Tᵗ·k)·T).

    Parameters:
    -----------
    k : np.ndarray
        Local matrix, shape (n, n)
    T : np.ndarray
        Transformation matrix, shape (n, n)
    out : np.ndarray, optional
        Destination, shape (n, n); written in place and returned

    Returns:
    --------
    np.ndarray
        Global matrix K

    Raises:
    -------
    ValueError
        If k and T are not square matrices of the same size
    """
    k = np.asarray(k, dtype=float)
    T = np.asarray(T, dtype=float)
    n = k.shape[0]
    if k.shape != (n, n) or T.shape != (n, n):
        raise ValueError(
            f"congruence_transform needs two n×n matrices, got {k.shape} and {T.shape}"
        )

    temp = T.T @ k
    if out is None:
        return temp @ T
    out[:, :] = temp @ T
    return out


def invert(matrix: np.ndarray) -> np.ndarray:
    """
    Invert a square matrix IN PLACE by Gauss-Jordan elimination.

    ALGORITHM:
    ----------
    aug = [matrix | I]                      (n × 2n)
    for each pivot column i:
        k = first row ≥ i with aug[k, i] ≠ 0
        swap rows i and k if needed
        eliminate column i from every other row
    matrix = right half of aug, each row divided by its pivot

    Parameters:
    -----------
    matrix : np.ndarray
        Square float matrix; overwritten with its inverse

    Returns:
    --------
    np.ndarray
        The same array, now holding the inverse

    Raises:
    -------
    ValueError
        If matrix is not square
    SingularMatrixError
        If a pivot column has no non-zero entry at or below the pivot row

    Example:
    --------
    >>> A = np.array([[4.0, 7.0], [2.0, 6.0]])
    >>> A_inv = invert(A.copy())
    >>> np.allclose(A @ A_inv, np.eye(2))
    True
    """
    n = matrix.shape[0]
    if matrix.shape != (n, n):
        raise ValueError(f"invert needs a square matrix, got shape {matrix.shape}")

    aug = np.zeros((n, 2 * n), dtype=float)
    aug[:, :n] = matrix
    aug[:, n:] = np.eye(n)

    for i in range(n):
        nonzero = np.flatnonzero(aug[i:, i] != 0.0)
        if nonzero.size == 0:
            raise SingularMatrixError(
                f"Matrix is singular: no non-zero pivot in column {i} "
                f"at or below row {i} (n={n})"
            )
        k = i + int(nonzero[0])

        if k != i:
            aug[[i, k], :] = aug[[k, i], :]

        for j in range(n):
            if j != i:
                m = aug[j, i] / aug[i, i]
                aug[j, :] -= m * aug[i, :]

    # Left half is diagonal now; scale by the pivots to leave the identity
    matrix[:, :] = aug[:, n:] / np.diag(aug)[:, None]
    return matrix


def transformation_matrix(triad: np.ndarray, n_blocks: int) -> np.ndarray:
    """
    Block-diagonal rotation matrix built from a local triad.

    The triad rows are the local x/y/z axes in global direction cosines, so
    each 3×3 block maps global components to local ones. A 2-node frame with
    6 DOF per node uses n_blocks=4 (12×12); a 2-node truss uses n_blocks=2.

    Parameters:
    -----------
    triad : np.ndarray
        Shape (3, 3), rows = local x, y, z
    n_blocks : int
        Number of 3×3 blocks on the diagonal

    Returns:
    --------
    np.ndarray
        Shape (3·n_blocks, 3·n_blocks)
    """
    triad = np.asarray(triad, dtype=float)
    T = np.zeros((3 * n_blocks, 3 * n_blocks), dtype=float)
    for b in range(n_blocks):
        T[3 * b:3 * b + 3, 3 * b:3 * b + 3] = triad
    return T
