# -*- coding: utf-8 -*-
"""
Ochre: Decorrelation stretch for faint pigment imagery
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: Symmetric 3x3 Eigen Solver

Cyclic Jacobi rotation restricted to real symmetric 3x3 matrices.  Each
rotation annihilates one off-diagonal pair; the accumulated rotations form
the orthonormal eigenvector basis.  Convergence is quadratic, so a well
conditioned covariance matrix settles in four to six sweeps.

Conventions:
    - Eigenvectors are stored as COLUMNS: ``vectors[:, k]`` pairs with
      ``values[k]``.
    - Values are sorted in descending order.
    - Each eigenvector is sign-normalised so that its component of largest
      magnitude is positive.  The basis is therefore fully deterministic.
    - Values below ``EIGEN_EPSILON`` are floored to it; covariance
      eigenvalues are non-negative in theory but rounding can produce tiny
      negatives.

Failure policy:
    ``decompose_strict`` raises ``NumericDegenerate`` on non-finite input,
    asymmetry, non-convergence or zero total variance.  ``decompose`` traps
    that, logs a warning and returns the identity basis with unit
    eigenvalues flagged ``degenerate=True``; downstream the stretch treats
    such a result as a no-op.

References:
    [1] Golub, G.H. & Van Loan, C.F., Matrix Computations, 4th ed., §8.5
    [2] Press et al., Numerical Recipes, 3rd ed., §11.1
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Final, Tuple

import numpy as np
from numba import njit

from ochre_colorspace import ArrayFloat
from ochre_errors import InvalidInput, NumericDegenerate

__all__ = [
    "EIGEN_EPSILON",
    "MAX_SWEEPS",
    "EigenResult",
    "decompose",
    "decompose_strict",
    "identity_result",
]

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Constants
# ═══════════════════════════════════════════════════════════════════════════════

EIGEN_EPSILON: Final[float] = 1e-6
MAX_SWEEPS: Final[int] = 50
_REL_TOL: Final[float] = 1e-12
_SYMMETRY_TOL: Final[float] = 1e-9


@dataclass(slots=True, frozen=True)
class EigenResult:
    """Eigenvalues (descending, floored) and matching column eigenvectors."""
    values:     ArrayFloat
    vectors:    ArrayFloat
    degenerate: bool = False
    sweeps:     int = 0
    raw_values: ArrayFloat = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.raw_values is None:
            object.__setattr__(self, "raw_values", self.values.copy())


def identity_result() -> EigenResult:
    """No-op fallback: identity basis, unit eigenvalues."""
    return EigenResult(
        values=np.ones(3, dtype=np.float64),
        vectors=np.eye(3, dtype=np.float64),
        degenerate=True,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Jacobi Kernel
# ═══════════════════════════════════════════════════════════════════════════════

@njit(cache=True, inline='always')
def _rotate(a, v, p, q):
    """Applies one Jacobi rotation zeroing a[p, q] (in place)."""
    apq = a[p, q]
    if apq == 0.0:
        return
    theta = (a[q, q] - a[p, p]) / (2.0 * apq)
    # Smaller root of t^2 + 2*theta*t - 1 = 0 keeps |angle| <= pi/4
    if theta >= 0.0:
        t = 1.0 / (theta + np.sqrt(theta * theta + 1.0))
    else:
        t = -1.0 / (-theta + np.sqrt(theta * theta + 1.0))
    c = 1.0 / np.sqrt(t * t + 1.0)
    s = t * c

    for k in range(3):
        akp = a[k, p]
        akq = a[k, q]
        a[k, p] = c * akp - s * akq
        a[k, q] = s * akp + c * akq
    for k in range(3):
        apk = a[p, k]
        aqk = a[q, k]
        a[p, k] = c * apk - s * aqk
        a[q, k] = s * apk + c * aqk
    for k in range(3):
        vkp = v[k, p]
        vkq = v[k, q]
        v[k, p] = c * vkp - s * vkq
        v[k, q] = s * vkp + c * vkq


@njit(cache=True)
def _jacobi_kernel(matrix: ArrayFloat, max_sweeps: int, rel_tol: float):
    """
    Cyclic Jacobi on a symmetric 3x3 matrix.

    Returns:
        (diagonal, eigenvectors, sweeps_used, converged)
    """
    a = matrix.copy()
    v = np.eye(3)

    norm2 = 0.0
    for i in range(3):
        for j in range(3):
            norm2 += a[i, j] * a[i, j]
    threshold = rel_tol * rel_tol * norm2

    for sweep in range(max_sweeps + 1):
        off = a[0, 1] * a[0, 1] + a[0, 2] * a[0, 2] + a[1, 2] * a[1, 2]
        if off <= threshold:
            return np.array([a[0, 0], a[1, 1], a[2, 2]]), v, sweep, True
        if sweep == max_sweeps:
            break
        _rotate(a, v, 0, 1)
        _rotate(a, v, 0, 2)
        _rotate(a, v, 1, 2)

    return np.array([a[0, 0], a[1, 1], a[2, 2]]), v, max_sweeps, False


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════

def _validate(matrix: ArrayFloat) -> ArrayFloat:
    m = np.asarray(matrix, dtype=np.float64)
    if m.shape != (3, 3):
        raise InvalidInput(f"Expected a (3, 3) matrix, got shape {m.shape}")
    if not np.all(np.isfinite(m)):
        raise NumericDegenerate("Matrix contains NaN or Infinity.")
    scale = max(1.0, float(np.max(np.abs(m))))
    if np.max(np.abs(m - m.T)) > _SYMMETRY_TOL * scale:
        raise NumericDegenerate("Matrix is not symmetric.")
    # Solve on the exactly symmetric part
    return np.ascontiguousarray(0.5 * (m + m.T))


def _order_and_sign(values: ArrayFloat, vectors: ArrayFloat) -> Tuple[ArrayFloat, ArrayFloat]:
    order = np.argsort(values, kind="stable")[::-1]
    values = values[order]
    vectors = vectors[:, order].copy()
    for k in range(3):
        col = vectors[:, k]
        if col[np.argmax(np.abs(col))] < 0.0:
            vectors[:, k] = -col
    return values, vectors


def decompose_strict(
    matrix: ArrayFloat,
    epsilon: float = EIGEN_EPSILON,
    max_sweeps: int = MAX_SWEEPS,
) -> EigenResult:
    """
    Eigen-decomposition of a symmetric 3x3 matrix.

    Args:
        matrix: Real symmetric (3, 3) matrix (typically a covariance).
        epsilon: Floor applied to every eigenvalue.
        max_sweeps: Jacobi sweep limit.

    Returns:
        EigenResult with ``degenerate=False``.

    Raises:
        InvalidInput: If *matrix* is not (3, 3).
        NumericDegenerate: Non-finite or asymmetric input, non-convergence,
            or zero total variance (largest eigenvalue below *epsilon*).
    """
    sym = _validate(matrix)
    diag, vectors, sweeps, converged = _jacobi_kernel(sym, max_sweeps, _REL_TOL)

    if not converged:
        raise NumericDegenerate(f"Jacobi did not converge in {max_sweeps} sweeps.")
    if not (np.all(np.isfinite(diag)) and np.all(np.isfinite(vectors))):
        raise NumericDegenerate("Jacobi produced non-finite values.")

    raw, vectors = _order_and_sign(diag, vectors)
    if raw[0] < epsilon:
        raise NumericDegenerate(
            f"Zero total variance (largest eigenvalue {raw[0]:.3e} < {epsilon:.0e})."
        )

    floored = np.maximum(raw, epsilon)
    if np.any(raw < epsilon):
        logger.debug("Flooring eigenvalues %s to %.0e", raw, epsilon)

    return EigenResult(
        values=floored,
        vectors=vectors,
        degenerate=False,
        sweeps=int(sweeps),
        raw_values=raw,
    )


def decompose(
    matrix: ArrayFloat,
    epsilon: float = EIGEN_EPSILON,
    max_sweeps: int = MAX_SWEEPS,
) -> EigenResult:
    """
    Like ``decompose_strict`` but never raises ``NumericDegenerate``.

    A degenerate matrix yields ``identity_result()`` and a WARNING record on
    this module's logger.
    """
    try:
        return decompose_strict(matrix, epsilon=epsilon, max_sweeps=max_sweeps)
    except NumericDegenerate as exc:
        logger.warning("Degenerate covariance, falling back to identity stretch: %s", exc)
        return identity_result()
