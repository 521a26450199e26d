# -*- coding: utf-8 -*-
"""
Ochre: Decorrelation stretch for faint pigment imagery
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: Channel means and 3x3 sample covariance.

The covariance is accumulated in a single serial pass over the six
distinct sums (three variances, three cross terms) and Bessel corrected
(divisor n - 1).  The loop is serial; a fixed summation order keeps
repeated runs bit-for-bit identical.
"""

from __future__ import annotations

from typing import NamedTuple, Sequence, Union

import numpy as np
from numba import njit

from ochre_colorspace import ArrayFloat
from ochre_errors import InvalidInput

__all__ = [
    "ChannelStats",
    "mean",
    "channel_means",
    "covariance3x3",
    "compute_stats",
]

SampleLike = Union[ArrayFloat, Sequence[float]]


class ChannelStats(NamedTuple):
    """Statistics of one ChannelTriple, gathered over the same sample set."""
    mean: ArrayFloat          # (3,)
    covariance: ArrayFloat    # (3, 3), symmetric
    n: int


# ═══════════════════════════════════════════════════════════════════════════════
# Kernels
# ═══════════════════════════════════════════════════════════════════════════════

@njit(cache=True)
def _sum_kernel(samples: ArrayFloat) -> float:
    acc = 0.0
    for i in range(samples.shape[0]):
        acc += samples[i]
    return acc


@njit(cache=True)
def _covariance_kernel(c1: ArrayFloat, c2: ArrayFloat, c3: ArrayFloat,
                       m1: float, m2: float, m3: float) -> ArrayFloat:
    """Six-sum single pass; caller guarantees n >= 2 and equal lengths."""
    n = c1.shape[0]
    s11 = 0.0
    s22 = 0.0
    s33 = 0.0
    s12 = 0.0
    s13 = 0.0
    s23 = 0.0
    for i in range(n):
        d1 = c1[i] - m1
        d2 = c2[i] - m2
        d3 = c3[i] - m3
        s11 += d1 * d1
        s22 += d2 * d2
        s33 += d3 * d3
        s12 += d1 * d2
        s13 += d1 * d3
        s23 += d2 * d3

    inv = 1.0 / (n - 1)
    cov = np.empty((3, 3), dtype=np.float64)
    cov[0, 0] = s11 * inv
    cov[1, 1] = s22 * inv
    cov[2, 2] = s33 * inv
    cov[0, 1] = s12 * inv
    cov[0, 2] = s13 * inv
    cov[1, 2] = s23 * inv
    cov[1, 0] = cov[0, 1]
    cov[2, 0] = cov[0, 2]
    cov[2, 1] = cov[1, 2]
    return cov


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════

def _as_samples(samples: SampleLike) -> ArrayFloat:
    return np.ascontiguousarray(np.asarray(samples, dtype=np.float64).ravel())


def mean(samples: SampleLike) -> float:
    """
    Arithmetic mean of a 1-D sample sequence.

    Raises:
        InvalidInput: If *samples* is empty.
    """
    arr = _as_samples(samples)
    if arr.size == 0:
        raise InvalidInput("Cannot take the mean of an empty sample set.")
    return _sum_kernel(arr) / arr.size


def channel_means(triple: ArrayFloat) -> ArrayFloat:
    """Per-channel mean of an (N, 3) ChannelTriple."""
    data = np.asarray(triple, dtype=np.float64)
    if data.ndim != 2 or data.shape[1] != 3:
        raise InvalidInput(f"Expected a (N, 3) channel triple, got shape {data.shape}")
    return np.array([mean(data[:, k]) for k in range(3)], dtype=np.float64)


def covariance3x3(c1: SampleLike, c2: SampleLike, c3: SampleLike,
                  m1: float, m2: float, m3: float) -> ArrayFloat:
    """
    Bessel-corrected 3x3 sample covariance of three parallel channels.

    Args:
        c1, c2, c3: Channel samples, all of equal length n.
        m1, m2, m3: Channel means, computed over the same samples.

    Returns:
        Symmetric (3, 3) float64 matrix.

    Raises:
        InvalidInput: If the channels differ in length or n < 2.
    """
    a, b, c = _as_samples(c1), _as_samples(c2), _as_samples(c3)
    if not (a.size == b.size == c.size):
        raise InvalidInput(
            f"Channel length mismatch: {a.size}, {b.size}, {c.size}"
        )
    if a.size < 2:
        raise InvalidInput(
            f"Sample covariance needs at least 2 samples, got {a.size}"
        )
    return _covariance_kernel(a, b, c, float(m1), float(m2), float(m3))


def compute_stats(triple: ArrayFloat) -> ChannelStats:
    """Mean and covariance of an (N, 3) ChannelTriple in one call."""
    data = np.asarray(triple, dtype=np.float64)
    mu = channel_means(data)
    cov = covariance3x3(data[:, 0], data[:, 1], data[:, 2], mu[0], mu[1], mu[2])
    return ChannelStats(mean=mu, covariance=cov, n=data.shape[0])
