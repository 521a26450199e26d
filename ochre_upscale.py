# -*- coding: utf-8 -*-
"""
Ochre: Decorrelation stretch for faint pigment imagery
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: Boundary to an external 2x upscaling collaborator.

The collaborator (typically a super-resolution network in another worker
or process) is a black box: RGBA pixels and dimensions in, RGBA pixels at
twice the dimensions out.  Its result replaces the source image of a
subsequent enhancement call.

Any failure on the far side (exception, timeout, wrong output size) is
surfaced as ``UpstreamUnavailable``.  Nothing is ever substituted silently;
callers that want a local fallback must ask for one explicitly, e.g. by
passing a ``SplineUpscaler``.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, NamedTuple, Optional, Protocol, runtime_checkable

import numpy as np
from scipy import ndimage

from ochre_config import StretchConfig
from ochre_errors import ConfigurationError, InvalidInput, UpstreamUnavailable
from ochre_pipeline import (
    ConfigLike,
    EnhancementResult,
    as_uint8,
    prepare_working_copy,
    rgba_from_rgb,
    run_pipeline,
    validate_dims,
)

__all__ = [
    "UPSCALE_FACTOR",
    "UpscaleResult",
    "Upscaler",
    "SplineUpscaler",
    "request_upscale",
    "upscale_then_enhance",
]

logger = logging.getLogger(__name__)

UPSCALE_FACTOR = 2


class UpscaleResult(NamedTuple):
    pixels: np.ndarray
    width:  int
    height: int


@runtime_checkable
class Upscaler(Protocol):
    """Anything that can double an RGBA image."""

    def upscale(self, pixels: np.ndarray, width: int, height: int) -> UpscaleResult: ...


class SplineUpscaler:
    """
    Deterministic local collaborator based on spline interpolation.

    Not a super-resolution model: it only resamples.  Handy as an explicit
    offline stand-in and for exercising the upscaling boundary.

    Args:
        order: Spline order passed to ``scipy.ndimage.zoom`` (0..5).
    """
    __slots__ = ("order",)

    def __init__(self, order: int = 3) -> None:
        if not isinstance(order, int) or not 0 <= order <= 5:
            raise ConfigurationError(f"Spline order must be an int in [0, 5], got {order!r}")
        self.order = order

    def upscale(self, pixels: np.ndarray, width: int, height: int) -> UpscaleResult:
        flat, _ = prepare_working_copy(pixels, width, height)
        rgb = flat.reshape(height, width, 4)[..., :3]
        zoomed = ndimage.zoom(
            rgb.astype(np.float64),
            (UPSCALE_FACTOR, UPSCALE_FACTOR, 1),
            order=self.order,
            mode="nearest",
        )
        # Cubic splines overshoot near edges
        rgb_up = np.clip(np.rint(zoomed), 0.0, 255.0).astype(np.uint8)
        return UpscaleResult(
            pixels=rgba_from_rgb(rgb_up).reshape(-1),
            width=width * UPSCALE_FACTOR,
            height=height * UPSCALE_FACTOR,
        )

    def __repr__(self) -> str:
        return f"SplineUpscaler(order={self.order})"


def _check_result(result: Any, width: int, height: int) -> UpscaleResult:
    try:
        pixels, out_w, out_h = result
    except (TypeError, ValueError):
        raise UpstreamUnavailable(
            f"Upscaler returned {type(result).__name__}, expected (pixels, width, height)"
        ) from None

    exp_w, exp_h = width * UPSCALE_FACTOR, height * UPSCALE_FACTOR
    if (out_w, out_h) != (exp_w, exp_h):
        raise UpstreamUnavailable(
            f"Upscaler returned {out_w} x {out_h}, expected {exp_w} x {exp_h}"
        )
    try:
        data = as_uint8(pixels)
    except InvalidInput as exc:
        raise UpstreamUnavailable(f"Upscaler returned unusable pixels: {exc}") from exc
    if data.size != exp_w * exp_h * 4:
        raise UpstreamUnavailable(
            f"Output size mismatch. Expected {exp_w * exp_h * 4}, got {data.size}"
        )
    return UpscaleResult(np.array(data, dtype=np.uint8).reshape(-1), exp_w, exp_h)


def _run_collaborator(upscaler: Upscaler, payload: np.ndarray, width: int, height: int,
                      outcome: queue.Queue) -> None:
    """Worker body: posts ``(True, result)`` or ``(False, exception)``."""
    try:
        outcome.put((True, upscaler.upscale(payload, width, height)))
    except Exception as exc:
        outcome.put((False, exc))


def request_upscale(
    upscaler: Upscaler,
    pixels: Any,
    width: int,
    height: int,
    timeout: Optional[float] = None,
) -> UpscaleResult:
    """
    Runs *upscaler* off the calling thread and validates its output.

    The collaborator runs on a daemon thread.  After a timeout that thread
    is abandoned, not joined: it may keep running until the collaborator
    returns, but it never holds up interpreter exit.

    Args:
        upscaler: Collaborator implementing the ``Upscaler`` protocol.
        pixels: RGBA8 source buffer (never modified; the collaborator gets
            a private copy).
        width, height: Source dimensions.
        timeout: Seconds to wait for the collaborator; None waits forever.

    Returns:
        UpscaleResult at exactly twice the source dimensions.

    Raises:
        InvalidInput: The source buffer itself is invalid.
        UpstreamUnavailable: The collaborator failed, timed out or returned
            a result of the wrong size.
    """
    if not isinstance(upscaler, Upscaler):
        raise TypeError(
            f"Cannot use {type(upscaler).__name__} as an upscaler: "
            "it has no upscale(pixels, width, height) method."
        )
    w, h = validate_dims(width, height)
    payload, _ = prepare_working_copy(pixels, w, h)

    outcome: queue.Queue = queue.Queue(maxsize=1)
    worker = threading.Thread(
        target=_run_collaborator,
        args=(upscaler, payload, w, h, outcome),
        name=f"ochre-upscale-{w}x{h}",
        daemon=True,
    )
    worker.start()

    try:
        ok, result = outcome.get(timeout=timeout)
    except queue.Empty as exc:
        logger.error("Upscaler %r timed out after %ss; abandoning worker", upscaler, timeout)
        raise UpstreamUnavailable(f"Upscaler timed out after {timeout}s") from exc
    if not ok:
        logger.error("Upscaler %r failed: %s", upscaler, result)
        raise UpstreamUnavailable(f"Upscaler failed: {result}") from result

    try:
        checked = _check_result(result, w, h)
    except UpstreamUnavailable as exc:
        logger.error("Upscaler %r returned an invalid result: %s", upscaler, exc)
        raise
    logger.debug("Upscaled %dx%d -> %dx%d", w, h, checked.width, checked.height)
    return checked


def upscale_then_enhance(
    upscaler: Upscaler,
    source: Any,
    width: int,
    height: int,
    config: ConfigLike = None,
    timeout: Optional[float] = None,
) -> EnhancementResult:
    """Upscales *source* and enhances the upscaled image in its place."""
    up = request_upscale(upscaler, source, width, height, timeout=timeout)
    cfg = config if config is not None else StretchConfig()
    return run_pipeline(up.pixels, up.width, up.height, cfg)
