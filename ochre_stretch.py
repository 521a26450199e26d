# -*- coding: utf-8 -*-
"""
Ochre: Decorrelation stretch for faint pigment imagery
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: Principal-axis stretch of a ChannelTriple.

Per pixel x (row vector), with mean mu and eigenbasis V (columns):

    p   = (x - mu) . V                  project onto the principal axes
    p_k = p_k * s / sqrt(lambda_k)      equalise every axis to spread s
    x'  = p . V^T + mu                  rotate back and re-centre

The three steps collapse into one composite matrix

    T = V . diag(s / sqrt(lambda)) . V^T

so the hot loop is a single 3x3 product per pixel.  Mean and basis are
computed once for the whole image and shared read-only by every pixel.
"""

from __future__ import annotations

import numpy as np
from numba import njit, prange

from ochre_colorspace import ArrayFloat
from ochre_eigen import EIGEN_EPSILON, EigenResult
from ochre_errors import InvalidInput

__all__ = [
    "stretch_gains",
    "stretch_matrix",
    "decorrelation_stretch",
]


@njit(cache=True, parallel=True)
def _apply_affine_kernel(data: ArrayFloat, t: ArrayFloat, mu: ArrayFloat) -> ArrayFloat:
    """out[i] = (data[i] - mu) . t^T + mu, independently per row."""
    n = data.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    for i in prange(n):
        d0 = data[i, 0] - mu[0]
        d1 = data[i, 1] - mu[1]
        d2 = data[i, 2] - mu[2]
        for j in range(3):
            out[i, j] = t[j, 0] * d0 + t[j, 1] * d1 + t[j, 2] * d2 + mu[j]
    return out


def stretch_gains(eigen: EigenResult, stretch_amount: float) -> ArrayFloat:
    """Per-axis gain ``s / sqrt(max(lambda_k, eps))``; ones when degenerate."""
    if eigen.degenerate:
        return np.ones(3, dtype=np.float64)
    values = np.maximum(np.asarray(eigen.values, dtype=np.float64), EIGEN_EPSILON)
    return float(stretch_amount) / np.sqrt(values)


def stretch_matrix(eigen: EigenResult, stretch_amount: float) -> ArrayFloat:
    """
    Composite stretch matrix ``V . diag(gains) . V^T``.

    A degenerate EigenResult yields the identity, i.e. a true no-op rather
    than a uniform scale by *stretch_amount*.
    """
    if eigen.degenerate:
        return np.eye(3, dtype=np.float64)
    v = np.asarray(eigen.vectors, dtype=np.float64)
    return (v * stretch_gains(eigen, stretch_amount)) @ v.T


def decorrelation_stretch(
    triple: ArrayFloat,
    mean: ArrayFloat,
    eigen: EigenResult,
    stretch_amount: float,
) -> ArrayFloat:
    """
    Applies the decorrelation stretch to every pixel of a ChannelTriple.

    Args:
        triple: (N, 3) working-space samples.
        mean: (3,) channel means of *triple*.
        eigen: Eigen-decomposition of the covariance of *triple*.
        stretch_amount: Target standard deviation along every principal
            axis.  Zero collapses all pixels onto the mean; negative values
            mirror through it.  Neither raises.

    Returns:
        New (N, 3) array in the same working colourspace.
    """
    data = np.ascontiguousarray(np.asarray(triple, dtype=np.float64))
    if data.ndim != 2 or data.shape[1] != 3:
        raise InvalidInput(f"Expected a (N, 3) channel triple, got shape {data.shape}")
    mu = np.ascontiguousarray(np.asarray(mean, dtype=np.float64).reshape(3))
    t = np.ascontiguousarray(stretch_matrix(eigen, stretch_amount))
    return _apply_affine_kernel(data, t, mu)
