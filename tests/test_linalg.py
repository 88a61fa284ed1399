# tests/test_linalg.py
"""
TEST: Dense Linear Algebra Kernel
=================================

dot / cross / congruence transform / Gauss-Jordan inverse.

Checks:
1. Basic vector products (including n=0 and in-place output)
2. Tᵗ k T with T = I is a no-op; with a truss triad it reproduces the
   closed-form global truss stiffness
3. M · inv(M) = I and inv(inv(M)) = M
4. Row swaps when the leading pivot is zero
5. An all-zero pivot column raises SingularMatrixError
"""

import numpy as np
import pytest

from corot.kernel.errors import MechanismError, SingularMatrixError
from corot.kernel.linalg import (
    congruence_transform,
    cross,
    dot,
    invert,
    norm,
    transformation_matrix,
)


def test_dot_full_partial_and_empty():
    a = np.array([1.0, 2.0, 3.0])
    b = np.array([4.0, 5.0, 6.0])

    assert dot(a, b) == 32.0
    assert dot(a, b, 2) == 14.0
    assert dot(a, b, 0) == 0.0
    assert dot(np.array([]), np.array([])) == 0.0
    assert np.isclose(norm(np.array([3.0, 4.0])), 5.0)


def test_cross_right_hand_rule():
    x = np.array([1.0, 0.0, 0.0])
    y = np.array([0.0, 1.0, 0.0])
    z = np.array([0.0, 0.0, 1.0])

    np.testing.assert_allclose(cross(x, y), z)
    np.testing.assert_allclose(cross(y, z), x)
    np.testing.assert_allclose(cross(z, x), y)
    np.testing.assert_allclose(cross(y, x), -z)


def test_cross_normalize_and_out():
    out = np.zeros(3)
    result = cross(np.array([2.0, 0.0, 0.0]), np.array([0.0, 3.0, 0.0]), out=out, normalize=True)

    assert result is out
    np.testing.assert_allclose(out, [0.0, 0.0, 1.0])


def test_congruence_transform_identity_is_noop():
    rng = np.random.default_rng(0)
    A = rng.normal(size=(6, 6))
    k = A + A.T

    K = congruence_transform(k, np.eye(6))

    np.testing.assert_allclose(K, k, rtol=1e-12, atol=1e-12)


def test_congruence_transform_matches_closed_form_truss():
    """
    Rotating the local axial truss stiffness by its triad gives
    (EA/L) [[B, -B], [-B, B]] with B = x'x'ᵗ.
    """
    EA_L = 2.5e6
    x_axis = np.array([1.0, 2.0, 2.0]) / 3.0
    y_axis = cross(np.array([0.0, 0.0, 1.0]), x_axis, normalize=True)
    z_axis = cross(x_axis, y_axis, normalize=True)
    triad = np.vstack([x_axis, y_axis, z_axis])

    k_local = np.zeros((6, 6))
    k_local[0, 0] = k_local[3, 3] = EA_L
    k_local[0, 3] = k_local[3, 0] = -EA_L

    out = np.empty((6, 6))
    K = congruence_transform(k_local, transformation_matrix(triad, 2), out=out)

    B = np.outer(x_axis, x_axis)
    expected = EA_L * np.block([[B, -B], [-B, B]])
    assert K is out
    np.testing.assert_allclose(K, expected, rtol=1e-10, atol=1e-6)
    np.testing.assert_allclose(K, K.T, atol=1e-6)


def test_congruence_transform_rejects_mismatched_sizes():
    with pytest.raises(ValueError):
        congruence_transform(np.eye(3), np.eye(4))


def test_invert_well_conditioned_matrix():
    rng = np.random.default_rng(42)
    n = 8
    M = rng.normal(size=(n, n)) + n * np.eye(n)

    M_inv = invert(M.copy())

    np.testing.assert_allclose(M @ M_inv, np.eye(n), atol=1e-10)
    np.testing.assert_allclose(invert(M_inv.copy()), M, rtol=1e-9, atol=1e-9)
    np.testing.assert_allclose(M_inv, np.linalg.inv(M), rtol=1e-9, atol=1e-12)


def test_invert_is_in_place():
    A = np.array([[4.0, 7.0], [2.0, 6.0]])
    result = invert(A)

    assert result is A
    np.testing.assert_allclose(A, [[0.6, -0.7], [-0.2, 0.4]], atol=1e-12)


def test_invert_swaps_rows_for_zero_leading_pivot():
    A = np.array([[0.0, 2.0], [3.0, 0.0]])
    invert(A)
    np.testing.assert_allclose(A, [[0.0, 1.0 / 3.0], [0.5, 0.0]], atol=1e-12)

    P = np.array([[0.0, 0.0, 1.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    np.testing.assert_allclose(invert(P.copy()), P.T, atol=1e-12)


def test_invert_singular_matrix_raises():
    A = np.array([[1.0, 0.0], [2.0, 0.0]])

    with pytest.raises(SingularMatrixError):
        invert(A)

    # SingularMatrixError is a MechanismError, so solver code catching
    # mechanisms also sees it
    with pytest.raises(MechanismError):
        invert(np.zeros((3, 3)))


def test_invert_rejects_non_square():
    with pytest.raises(ValueError):
        invert(np.zeros((2, 3)))


def test_transformation_matrix_blocks():
    triad = np.array([[0.0, 1.0, 0.0], [-1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    T = transformation_matrix(triad, 4)

    assert T.shape == (12, 12)
    for b in range(4):
        np.testing.assert_array_equal(T[3 * b:3 * b + 3, 3 * b:3 * b + 3], triad)
    np.testing.assert_allclose(T @ T.T, np.eye(12), atol=1e-12)
