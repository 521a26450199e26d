# -*- coding: utf-8 -*-
"""
Ochre: Decorrelation stretch for faint pigment imagery
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: Pointwise tonal adjustment of RGBA buffers.

Stage order (each stage reads the previous stage's output):

    1. brightness   r += exposure + brightness
    2. shadow lift  r += shadows * (1 - luma/128)        only where luma < 128
    3. contrast     r  = F * (r - 128) + 128,
                    F  = 259 (C + 255) / (255 (259 - C))  skipped when C == 0
    4. black point  r  = max(r, 255 * black_point)
    5. saturation   r  = avg + (r - avg) * (1 + S/100)    skipped when S == 0

Channels are clamped to [0, 255] after every stage that can overflow and
written back rounded half-to-even, i.e. with clamped 8-bit canvas
semantics.  Alpha is left untouched; the pipeline forces it on output.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numba import njit, prange

from ochre_config import AdjustmentParams
from ochre_errors import InvalidInput

__all__ = [
    "LUMA_PIVOT",
    "contrast_factor",
    "adjust_pixel",
    "apply_adjustments",
]

LUMA_PIVOT = 128.0


def contrast_factor(contrast: float) -> float:
    """Classic 259/255 contrast curve factor; exactly 1.0 for contrast 0."""
    if contrast == 0.0:
        return 1.0
    return 259.0 * (contrast + 255.0) / (255.0 * (259.0 - contrast))


# ═══════════════════════════════════════════════════════════════════════════════
# Kernels
# ═══════════════════════════════════════════════════════════════════════════════

@njit(cache=True, inline='always')
def _clamp255(v):
    if v < 0.0:
        return 0.0
    if v > 255.0:
        return 255.0
    return v


@njit(cache=True)
def _adjust_rgb(r, g, b, lift, shadows, factor, do_contrast, floor, sat_gain, do_saturation):
    # 1. brightness
    r = _clamp255(r + lift)
    g = _clamp255(g + lift)
    b = _clamp255(b + lift)

    # 2. shadow lift, strongest at black, zero at the pivot
    if shadows != 0.0:
        luma = 0.299 * r + 0.587 * g + 0.114 * b
        if luma < LUMA_PIVOT:
            amount = shadows * (1.0 - luma / LUMA_PIVOT)
            r = _clamp255(r + amount)
            g = _clamp255(g + amount)
            b = _clamp255(b + amount)

    # 3. contrast around mid-grey
    if do_contrast:
        r = _clamp255(factor * (r - 128.0) + 128.0)
        g = _clamp255(factor * (g - 128.0) + 128.0)
        b = _clamp255(factor * (b - 128.0) + 128.0)

    # 4. black point is a floor, not a rescale
    if floor > 0.0:
        r = max(r, floor)
        g = max(g, floor)
        b = max(b, floor)

    # 5. saturation about the channel average
    if do_saturation:
        avg = (r + g + b) / 3.0
        r = _clamp255(avg + (r - avg) * sat_gain)
        g = _clamp255(avg + (g - avg) * sat_gain)
        b = _clamp255(avg + (b - avg) * sat_gain)

    return r, g, b


@njit(cache=True, parallel=True)
def _adjust_rgba_kernel(buf, lift, shadows, factor, do_contrast, floor, sat_gain, do_saturation):
    """In-place adjustment of a flat RGBA uint8 buffer."""
    n = buf.shape[0] // 4
    for i in prange(n):
        o = i * 4
        r, g, b = _adjust_rgb(
            float(buf[o]), float(buf[o + 1]), float(buf[o + 2]),
            lift, shadows, factor, do_contrast, floor, sat_gain, do_saturation,
        )
        buf[o] = np.uint8(np.rint(r))
        buf[o + 1] = np.uint8(np.rint(g))
        buf[o + 2] = np.uint8(np.rint(b))


def _kernel_args(params: AdjustmentParams) -> tuple:
    return (
        float(params.total_brightness),
        float(params.shadows),
        contrast_factor(params.contrast),
        params.contrast != 0.0,
        255.0 * params.black_point,
        1.0 + params.saturation / 100.0,
        params.saturation != 0.0,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════

def adjust_pixel(r: float, g: float, b: float, params: AdjustmentParams) -> Tuple[float, float, float]:
    """
    Adjusts a single RGB triple (0..255) and returns unrounded floats.

    Useful for previews and for checking the buffer kernel on one pixel.
    """
    out = _adjust_rgb(float(r), float(g), float(b), *_kernel_args(params))
    return float(out[0]), float(out[1]), float(out[2])


def apply_adjustments(buffer: np.ndarray, params: AdjustmentParams) -> np.ndarray:
    """
    Applies the tonal adjustments to an RGBA uint8 buffer IN PLACE.

    Args:
        buffer: Writable, C-contiguous uint8 array holding interleaved RGBA
            samples (flat or (h, w, 4)).
        params: Adjustment parameters.

    Returns:
        The same *buffer* object.  Untouched when *params* is neutral.

    Raises:
        InvalidInput: If *buffer* is not a contiguous uint8 RGBA buffer.
    """
    if not isinstance(buffer, np.ndarray) or buffer.dtype != np.uint8:
        raise InvalidInput("Adjustment needs a numpy uint8 buffer.")
    if not buffer.flags.c_contiguous or not buffer.flags.writeable:
        raise InvalidInput("Adjustment buffer must be C-contiguous and writable.")
    if buffer.size % 4 != 0:
        raise InvalidInput(f"RGBA buffer length {buffer.size} is not a multiple of 4.")

    if params.is_neutral:
        return buffer
    _adjust_rgba_kernel(buffer.reshape(-1), *_kernel_args(params))
    return buffer
