# -*- coding: utf-8 -*-
"""
Ochre: Decorrelation stretch for faint pigment imagery
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Working Colour Spaces
=====================
Bidirectional mapping between 8-bit device RGB and the 3-component working
space in which the decorrelation statistics are gathered.

Supported spaces:
    RGB   Identity.
    LAB   sRGB -> linear -> CIE XYZ (D65) -> CIE 1976 L*a*b*.
    YRE   (Y601, R, B)  - G is rebuilt from the BT.601 luma equation.
    LRE   (L709, R, B)  - G is rebuilt from the BT.709 luma equation.
    YBK   (Y601, G, B)  - R is rebuilt from the BT.601 luma equation.

All transforms operate on batches of shape (N, 3) with samples in the
0..255 range.  Inverse transforms never clamp; the pipeline clamps once,
after the stretch, when the buffer is re-packed.

Architecture Note:
    Every transform has a public ``@handle_shapes`` decorated entry point
    and an internal ``_raw`` fast path that assumes pre-validated,
    C-contiguous (N, 3) float64 input.
    The pipeline calls the ``_raw`` variants directly.

References:
    - IEC 61966-2-1:1999 (sRGB Standard)
    - CIE 15:2004 "Colorimetry"
    - ITU-R BT.601 / BT.709 luma coefficients
"""

from __future__ import annotations

import functools
from enum import Enum
from typing import Any, Callable, Dict, Final, Tuple, TypeAlias, Union

import numpy as np
import numpy.typing as npt
from numba import njit, prange

from ochre_errors import ConfigurationError

__all__ = [
    "ArrayFloat",
    "Colorspace",
    "ColorspaceEngine",
    "handle_shapes",
    "REF_WHITE_D65",
    "LUMA_601",
    "LUMA_709",
    "LAB_EPSILON",
    "LAB_KAPPA",
]

ArrayFloat: TypeAlias = npt.NDArray[np.floating]


# =============================================================================
# 1. CONSTANTS
# =============================================================================

# D65 white (Y = 1.0)
REF_WHITE_D65: Final[ArrayFloat] = np.array([0.95047, 1.00000, 1.08883], dtype=np.float64)

# IEC 61966-2-1 sRGB -> XYZ.  The inverse is derived numerically so that
# forward and inverse agree to machine precision.
_M_SRGB_TO_XYZ = np.array([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041]
], dtype=np.float64)
_M_XYZ_TO_SRGB = np.linalg.inv(_M_SRGB_TO_XYZ)

_LAB_DELTA: Final[float] = 6.0 / 29.0
LAB_EPSILON: Final[float] = _LAB_DELTA * _LAB_DELTA * _LAB_DELTA  # ~0.008856
LAB_KAPPA: Final[float] = (116.0 * 29.0 * 29.0) / (3.0 * 6.0 * 6.0)  # ~903.296

_SRGB_LINEAR_THRESHOLD: Final[float] = 0.04045
_SRGB_GAMMA_THRESHOLD: Final[float] = 0.0031308

LUMA_601: Final[ArrayFloat] = np.array([0.299, 0.587, 0.114], dtype=np.float64)
LUMA_709: Final[ArrayFloat] = np.array([0.2126, 0.7152, 0.0722], dtype=np.float64)

# Weight below which a dropped channel cannot be rebuilt from the luma.
_MIN_DROP_WEIGHT: Final[float] = 1e-9


# =============================================================================
# 2. COLOURSPACE TAGS
# =============================================================================

class Colorspace(str, Enum):
    """Working colourspace tag."""
    RGB = "RGB"
    LAB = "LAB"
    YRE = "YRE"
    LRE = "LRE"
    YBK = "YBK"

    @classmethod
    def from_tag(cls, tag: Union[str, "Colorspace"]) -> "Colorspace":
        """
        Resolves a tag (case-insensitive string or member) to a Colorspace.

        Raises:
            ConfigurationError: If *tag* names no known colourspace.
        """
        if isinstance(tag, cls):
            return tag
        if isinstance(tag, str):
            try:
                return cls(tag.strip().upper())
            except ValueError:
                pass
        valid = ", ".join(member.value for member in cls)
        raise ConfigurationError(f"Unknown colorspace {tag!r}. Valid tags: {valid}")


# Luma spaces: (weights, kept channel indices, dropped channel index)
_LUMA_LAYOUT: Final[Dict[Colorspace, Tuple[ArrayFloat, Tuple[int, int], int]]] = {
    Colorspace.YRE: (LUMA_601, (0, 2), 1),
    Colorspace.LRE: (LUMA_709, (0, 2), 1),
    Colorspace.YBK: (LUMA_601, (1, 2), 0),
}


# =============================================================================
# 3. SHAPE HANDLING
# =============================================================================

def handle_shapes(func: Callable[..., ArrayFloat]) -> Callable[..., ArrayFloat]:
    """
    Normalizes the first argument to a contiguous (N, 3) float64 batch.

    A single pixel ``(3,)`` is processed as a batch of one and returned as
    ``(3,)`` again.
    """
    @functools.wraps(func)
    def wrapper(arr: Any, *args: Any, **kwargs: Any) -> ArrayFloat:
        arr = np.asarray(arr, dtype=np.float64)
        batch = np.ascontiguousarray(np.atleast_2d(arr))

        if batch.ndim != 2 or batch.shape[-1] != 3:
            raise ValueError(f"Expected shape (N, 3) or (3,), got {arr.shape}")

        res = func(batch, *args, **kwargs)

        if arr.ndim == 1:
            return res[0]
        return res
    return wrapper


# =============================================================================
# 4. LAB KERNELS (Numba)
# =============================================================================
# One fused pass per pixel: no intermediate linear/XYZ arrays are allocated.

@njit(cache=True, inline='always')
def _srgb_eotf(v):
    """sRGB EOTF on a 0..1 sample."""
    if v <= _SRGB_LINEAR_THRESHOLD:
        return v / 12.92
    return ((v + 0.055) / 1.055) ** 2.4


@njit(cache=True, inline='always')
def _srgb_oetf(v):
    """sRGB OETF, odd-extended so negative out-of-gamut values survive."""
    if v < 0.0:
        return -_srgb_oetf_positive(-v)
    return _srgb_oetf_positive(v)


@njit(cache=True, inline='always')
def _srgb_oetf_positive(v):
    if v <= _SRGB_GAMMA_THRESHOLD:
        return 12.92 * v
    return 1.055 * (v ** (1.0 / 2.4)) - 0.055


@njit(cache=True, inline='always')
def _lab_f(t):
    """CIE 1976 f(t): cube root with a linear toe below epsilon."""
    if t > LAB_EPSILON:
        return t ** (1.0 / 3.0)
    return (LAB_KAPPA * t + 16.0) / 116.0


@njit(cache=True, inline='always')
def _lab_f_inv(t):
    # Multiplication form keeps the branch continuous at delta
    if t > _LAB_DELTA:
        return t * t * t
    return (116.0 * t - 16.0) / LAB_KAPPA


@njit(cache=True, fastmath=True, parallel=True)
def _rgb255_to_lab_kernel(rgb: ArrayFloat, m: ArrayFloat, white: ArrayFloat) -> ArrayFloat:
    """0..255 sRGB -> L*a*b* (D65)."""
    n = rgb.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    for i in prange(n):
        r = _srgb_eotf(rgb[i, 0] / 255.0)
        g = _srgb_eotf(rgb[i, 1] / 255.0)
        b = _srgb_eotf(rgb[i, 2] / 255.0)

        fx = _lab_f((m[0, 0] * r + m[0, 1] * g + m[0, 2] * b) / white[0])
        fy = _lab_f((m[1, 0] * r + m[1, 1] * g + m[1, 2] * b) / white[1])
        fz = _lab_f((m[2, 0] * r + m[2, 1] * g + m[2, 2] * b) / white[2])

        out[i, 0] = 116.0 * fy - 16.0
        out[i, 1] = 500.0 * (fx - fy)
        out[i, 2] = 200.0 * (fy - fz)
    return out


@njit(cache=True, fastmath=True, parallel=True)
def _lab_to_rgb255_kernel(lab: ArrayFloat, m_inv: ArrayFloat, white: ArrayFloat) -> ArrayFloat:
    """L*a*b* (D65) -> 0..255 sRGB, unclamped."""
    n = lab.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    for i in prange(n):
        fy = (lab[i, 0] + 16.0) / 116.0
        fx = lab[i, 1] / 500.0 + fy
        fz = fy - lab[i, 2] / 200.0

        x = _lab_f_inv(fx) * white[0]
        y = _lab_f_inv(fy) * white[1]
        z = _lab_f_inv(fz) * white[2]

        for c in range(3):
            v = m_inv[c, 0] * x + m_inv[c, 1] * y + m_inv[c, 2] * z
            out[i, c] = _srgb_oetf(v) * 255.0
    return out


# =============================================================================
# 5. COLOURSPACE ENGINE
# =============================================================================

class ColorspaceEngine:
    """Static utility class for RGB <-> working-space transformations."""

    # =====================================================================
    #  Internal _raw fast-path methods  (assume validated (N, 3) float64)
    # =====================================================================

    @staticmethod
    def _srgb_to_lab_raw(rgb_array: ArrayFloat) -> ArrayFloat:
        return _rgb255_to_lab_kernel(rgb_array, _M_SRGB_TO_XYZ, REF_WHITE_D65)

    @staticmethod
    def _lab_to_srgb_raw(lab_array: ArrayFloat) -> ArrayFloat:
        return _lab_to_rgb255_kernel(lab_array, _M_XYZ_TO_SRGB, REF_WHITE_D65)

    @staticmethod
    def _rgb_to_luma_raw(rgb_array: ArrayFloat, space: Colorspace) -> ArrayFloat:
        weights, (keep_a, keep_b), _ = _LUMA_LAYOUT[space]
        out = np.empty_like(rgb_array)
        out[:, 0] = rgb_array @ weights
        out[:, 1] = rgb_array[:, keep_a]
        out[:, 2] = rgb_array[:, keep_b]
        return out

    @staticmethod
    def _luma_to_rgb_raw(channels: ArrayFloat, space: Colorspace) -> ArrayFloat:
        weights, (keep_a, keep_b), drop = _LUMA_LAYOUT[space]
        if abs(weights[drop]) < _MIN_DROP_WEIGHT:
            raise ConfigurationError(
                f"{space.value}: luma weight of the dropped channel is zero"
            )
        rgb = np.empty_like(channels)
        rgb[:, keep_a] = channels[:, 1]
        rgb[:, keep_b] = channels[:, 2]
        rgb[:, drop] = (
            channels[:, 0]
            - weights[keep_a] * channels[:, 1]
            - weights[keep_b] * channels[:, 2]
        ) / weights[drop]
        return rgb

    @staticmethod
    def _forward_raw(rgb_array: ArrayFloat, space: Colorspace) -> ArrayFloat:
        """Raw RGB (0..255) -> working space."""
        if space is Colorspace.RGB:
            return rgb_array.copy()
        if space is Colorspace.LAB:
            return ColorspaceEngine._srgb_to_lab_raw(rgb_array)
        return ColorspaceEngine._rgb_to_luma_raw(rgb_array, space)

    @staticmethod
    def _inverse_raw(channels: ArrayFloat, space: Colorspace) -> ArrayFloat:
        """Raw working space -> RGB (0..255), unclamped."""
        if space is Colorspace.RGB:
            return channels.copy()
        if space is Colorspace.LAB:
            return ColorspaceEngine._lab_to_srgb_raw(channels)
        return ColorspaceEngine._luma_to_rgb_raw(channels, space)

    # =====================================================================
    #  Public API  (shape-safe wrappers)
    # =====================================================================

    @staticmethod
    @handle_shapes
    def forward(rgb_array: ArrayFloat, space: Union[str, Colorspace] = Colorspace.RGB) -> ArrayFloat:
        """
        Converts RGB samples to the working colourspace.

        Args:
            rgb_array: RGB data in 0..255, shape (N, 3) or (3,).
            space: Target colourspace tag.

        Returns:
            Working-space components with the same shape as the input.

        Raises:
            ConfigurationError: On an unknown colourspace tag.
        """
        return ColorspaceEngine._forward_raw(rgb_array, Colorspace.from_tag(space))

    @staticmethod
    @handle_shapes
    def inverse(channels: ArrayFloat, space: Union[str, Colorspace] = Colorspace.RGB) -> ArrayFloat:
        """
        Converts working-space components back to RGB.

        The result is NOT clamped; values may leave 0..255 after a stretch.

        Raises:
            ConfigurationError: On an unknown colourspace tag.
        """
        return ColorspaceEngine._inverse_raw(channels, Colorspace.from_tag(space))

    @staticmethod
    @handle_shapes
    def srgb_to_lab(rgb_array: ArrayFloat) -> ArrayFloat:
        """Converts 0..255 sRGB to CIE L*a*b* (D65)."""
        return ColorspaceEngine._srgb_to_lab_raw(rgb_array)

    @staticmethod
    @handle_shapes
    def lab_to_srgb(lab_array: ArrayFloat) -> ArrayFloat:
        """Converts CIE L*a*b* (D65) to unclamped 0..255 sRGB."""
        return ColorspaceEngine._lab_to_srgb_raw(lab_array)
