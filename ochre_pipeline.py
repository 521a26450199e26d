# -*- coding: utf-8 -*-
"""
Ochre: Decorrelation stretch for faint pigment imagery
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Enhancement Pipeline
====================
RGBA buffer in, fresh RGBA buffer out:

    copy -> adjust (in place) -> RGB to working space -> mean + covariance
         -> eigenbasis -> stretch -> working space to RGB -> clamp, alpha=255

Statistics are global: the stretch stage starts only after mean and
eigenbasis have been computed over the whole image.  Per-pixel stages run
as parallel Numba loops with no shared mutable state.  No stage keeps a
reference to its data after returning, and nothing is cached between calls.

Policies:
    - The caller's buffer is never modified.
    - Neutral adjustments skip the adjustment stage; a neutral stretch
      amount skips conversion, statistics and stretch.  Both skips are
      behaviourally transparent.
    - A single-pixel image has no sample covariance; it is returned
      adjusted but unstretched.
    - NaN / Infinity reaching the re-pack stage becomes 0 / 255; it is
      never raised.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, NamedTuple, Optional, Tuple, Union

import numpy as np
from numba import njit, prange

from ochre_adjust import apply_adjustments
from ochre_colorspace import ArrayFloat, Colorspace, ColorspaceEngine
from ochre_config import StretchConfig
from ochre_eigen import EigenResult, decompose
from ochre_errors import InvalidInput
from ochre_statistics import compute_stats
from ochre_stretch import decorrelation_stretch

__all__ = [
    "EnhancementResult",
    "EnhancementPipeline",
    "enhance",
    "run_pipeline",
    "rgba_from_rgb",
    "as_uint8",
    "prepare_working_copy",
    "validate_dims",
]

logger = logging.getLogger(__name__)

ConfigLike = Union[StretchConfig, Mapping[str, Any], None]


class EnhancementResult(NamedTuple):
    """Output buffer plus the transient statistics of the invocation."""
    pixels:     np.ndarray
    width:      int
    height:     int
    colorspace: Colorspace
    mean:       Optional[ArrayFloat]
    covariance: Optional[ArrayFloat]
    eigen:      Optional[EigenResult]
    stretched:  bool


# ═══════════════════════════════════════════════════════════════════════════════
# Buffer Kernels
# ═══════════════════════════════════════════════════════════════════════════════

@njit(cache=True, parallel=True)
def _unpack_rgb_kernel(buf: np.ndarray) -> ArrayFloat:
    n = buf.shape[0] // 4
    rgb = np.empty((n, 3), dtype=np.float64)
    for i in prange(n):
        o = i * 4
        rgb[i, 0] = buf[o]
        rgb[i, 1] = buf[o + 1]
        rgb[i, 2] = buf[o + 2]
    return rgb


# fastmath must stay off here: the NaN test relies on IEEE comparisons.
@njit(cache=True, parallel=True, fastmath=False)
def _pack_rgba_kernel(rgb: ArrayFloat) -> np.ndarray:
    n = rgb.shape[0]
    out = np.empty(n * 4, dtype=np.uint8)
    for i in prange(n):
        o = i * 4
        for c in range(3):
            v = rgb[i, c]
            if v != v:
                v = 0.0
            elif v < 0.0:
                v = 0.0
            elif v > 255.0:
                v = 255.0
            out[o + c] = np.uint8(np.rint(v))
        out[o + 3] = 255
    return out


# ═══════════════════════════════════════════════════════════════════════════════
# Input Handling
# ═══════════════════════════════════════════════════════════════════════════════
# Shared by every entry point that accepts a caller's RGBA buffer.

def validate_dims(width: Any, height: Any) -> Tuple[int, int]:
    """
    Checks image dimensions and returns them as ints.

    Raises:
        InvalidInput: Non-integer, negative or zero-area dimensions.
    """
    try:
        w, h = int(width), int(height)
    except (TypeError, ValueError):
        raise InvalidInput(f"Dimensions must be integers, got {width!r} x {height!r}") from None
    if w != width or h != height or w < 0 or h < 0:
        raise InvalidInput(f"Invalid dimensions {width!r} x {height!r}")
    if w * h == 0:
        raise InvalidInput(f"Empty image ({w} x {h}).")
    return w, h


def as_uint8(source: Any) -> np.ndarray:
    """Views *source* as uint8 samples; integer arrays in 0..255 are cast."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return np.frombuffer(source, dtype=np.uint8)
    arr = np.asarray(source)
    if arr.dtype == np.uint8:
        return arr
    if arr.dtype.kind in "iu" and arr.size and arr.min() >= 0 and arr.max() <= 255:
        return arr.astype(np.uint8)
    raise InvalidInput(f"Pixel buffer must hold 8-bit samples, got dtype {arr.dtype}")


def prepare_working_copy(source: Any, width: int, height: int) -> Tuple[np.ndarray, Tuple[int, ...]]:
    """
    Validated, private, flat copy of *source* and the shape to return.

    A flat buffer must hold ``width * height * 4`` samples; a shaped one
    must be exactly ``(height, width, 4)``.

    Raises:
        InvalidInput: Wrong sample type, length or shape.
    """
    arr = as_uint8(source)
    expected = width * height * 4
    if arr.ndim > 1 and arr.shape != (height, width, 4):
        raise InvalidInput(
            f"Buffer shape {arr.shape} does not match {width} x {height} RGBA; "
            f"expected ({height}, {width}, 4)."
        )
    if arr.size != expected:
        raise InvalidInput(
            f"Buffer holds {arr.size} samples, expected {expected} for "
            f"{width} x {height} RGBA."
        )
    shape = arr.shape if arr.ndim > 1 else (expected,)
    working = np.array(arr, dtype=np.uint8, copy=True, order="C").reshape(-1)
    return working, shape


def _resolve_config(config: ConfigLike) -> StretchConfig:
    if config is None:
        return StretchConfig()
    if isinstance(config, StretchConfig):
        return config
    return StretchConfig.from_params(config)


def rgba_from_rgb(image: np.ndarray) -> np.ndarray:
    """
    Packs an (h, w, 3) or (h, w, 4) uint8 image into an opaque (h, w, 4)
    RGBA buffer (always a new array).
    """
    img = np.asarray(image)
    if img.ndim != 3 or img.shape[2] not in (3, 4):
        raise InvalidInput(f"Expected an (h, w, 3|4) image, got shape {img.shape}")
    out = np.empty(img.shape[:2] + (4,), dtype=np.uint8)
    out[..., :3] = as_uint8(img[..., :3])
    out[..., 3] = 255
    return out


# ═══════════════════════════════════════════════════════════════════════════════
# Pipeline
# ═══════════════════════════════════════════════════════════════════════════════

def run_pipeline(
    source: Any,
    width: int,
    height: int,
    config: ConfigLike = None,
) -> EnhancementResult:
    """
    Runs the full enhancement and returns the buffer with its statistics.

    Args:
        source: RGBA8 pixels, row-major; flat ``w*h*4`` or ``(h, w, 4)``.
            Any buffer-like input is accepted and never modified.
        width, height: Image dimensions.
        config: StretchConfig, a flat parameter mapping, or None (defaults).

    Returns:
        EnhancementResult whose ``pixels`` has the same shape as *source*.

    Raises:
        InvalidInput: Empty image or buffer length mismatch.
        ConfigurationError: Unknown colourspace or out-of-range parameter.
    """
    cfg = _resolve_config(config)
    w, h = validate_dims(width, height)
    working, shape = prepare_working_copy(source, w, h)
    n = w * h
    t0 = time.perf_counter()

    if cfg.adjustments.is_neutral:
        logger.debug("Adjustments neutral, skipping adjustment stage")
    else:
        apply_adjustments(working, cfg.adjustments)

    rgb = _unpack_rgb_kernel(working)
    del working

    if not cfg.stretch_enabled or n < 2:
        if n < 2:
            logger.debug("Single-pixel image, no covariance; returning unstretched")
        else:
            logger.debug("Neutral stretch amount, skipping stretch stage")
        pixels = _pack_rgba_kernel(rgb).reshape(shape)
        return EnhancementResult(pixels, w, h, cfg.colorspace, None, None, None, False)

    channels = ColorspaceEngine._forward_raw(rgb, cfg.colorspace)
    stats = compute_stats(channels)
    eigen = decompose(stats.covariance)
    stretched = decorrelation_stretch(channels, stats.mean, eigen, cfg.stretch_amount)
    rgb_out = ColorspaceEngine._inverse_raw(stretched, cfg.colorspace)
    pixels = _pack_rgba_kernel(rgb_out).reshape(shape)

    logger.debug(
        "Enhanced %dx%d in %s (s=%g, degenerate=%s) in %.2f ms",
        w, h, cfg.colorspace.value, cfg.stretch_amount, eigen.degenerate,
        (time.perf_counter() - t0) * 1000.0,
    )
    return EnhancementResult(
        pixels=pixels,
        width=w,
        height=h,
        colorspace=cfg.colorspace,
        mean=stats.mean,
        covariance=stats.covariance,
        eigen=eigen,
        stretched=True,
    )


def enhance(
    source: Any,
    width: int,
    height: int,
    config: ConfigLike = None,
) -> np.ndarray:
    """Runs the pipeline and returns only the new RGBA buffer."""
    return run_pipeline(source, width, height, config).pixels


class EnhancementPipeline:
    """
    Reusable holder for a fixed configuration.

    Keeps no per-call state, so one instance may serve any number of
    (including concurrent) invocations.
    """
    __slots__ = ("config",)

    def __init__(self, config: ConfigLike = None, **kwargs: Any) -> None:
        base = _resolve_config(config)
        self.config: StretchConfig = base.replace(**kwargs) if kwargs else base

    def run(self, source: Any, width: int, height: int) -> EnhancementResult:
        return run_pipeline(source, width, height, self.config)

    def enhance(self, source: Any, width: int, height: int) -> np.ndarray:
        return run_pipeline(source, width, height, self.config).pixels

    def with_config(self, **changes: Any) -> "EnhancementPipeline":
        return EnhancementPipeline(self.config.replace(**changes))

    def __repr__(self) -> str:
        return f"EnhancementPipeline({self.config!r})"
