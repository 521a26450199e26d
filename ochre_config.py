# -*- coding: utf-8 -*-
"""
Ochre: Decorrelation stretch for faint pigment imagery
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: Immutable per-invocation configuration.

Every pipeline call receives its full configuration as a value object; no
stage reads ambient state.  Both dataclasses validate themselves on
construction and offer the hybrid parameter API used across this code
base:

    # Dict-based (good for config files)
    StretchConfig.from_params({'colorspace': 'LAB', 'stretch_amount': 40})

    # Keyword-based (good for interactive use)
    StretchConfig.from_params(colorspace='YRE', contrast=20)

    # Hybrid (kwargs override params)
    StretchConfig.from_params({'contrast': 20}, contrast=35)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Final, Mapping, Optional, Tuple, Union

from ochre_colorspace import Colorspace
from ochre_errors import ConfigurationError

__all__ = [
    "NEUTRAL_STRETCH",
    "DEFAULT_STRETCH",
    "ADJUSTMENT_RANGES",
    "AdjustmentParams",
    "StretchConfig",
]

# Stretch amount that disables the stretch stage entirely.
NEUTRAL_STRETCH: Final[float] = 0.0
# Target per-axis standard deviation, in working-space units.
DEFAULT_STRETCH: Final[float] = 50.0

ADJUSTMENT_RANGES: Final[Dict[str, Tuple[float, float]]] = {
    "exposure":    (-255.0, 255.0),
    "shadows":     (-255.0, 255.0),
    "brightness":  (-255.0, 255.0),
    "contrast":    (-255.0, 255.0),
    "black_point": (0.0, 1.0),
    "saturation":  (-100.0, 100.0),
}


def _coerce(name: str, value: Any) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(out):
        raise ConfigurationError(f"{name} must be finite, got {value!r}")
    return out


# ---------------------------------------------------------------------------
# 1.  Pre-stretch tonal adjustments
# ---------------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class AdjustmentParams:
    """Pointwise tonal controls; all zero means 'leave pixels untouched'."""
    exposure:    float = 0.0
    shadows:     float = 0.0
    brightness:  float = 0.0
    contrast:    float = 0.0
    black_point: float = 0.0
    saturation:  float = 0.0

    def __post_init__(self) -> None:
        for name, (lo, hi) in ADJUSTMENT_RANGES.items():
            value = _coerce(name, getattr(self, name))
            if not lo <= value <= hi:
                raise ConfigurationError(
                    f"{name}={value} is outside the valid range [{lo}, {hi}]"
                )
            object.__setattr__(self, name, value)

    @property
    def is_neutral(self) -> bool:
        return all(getattr(self, name) == 0.0 for name in ADJUSTMENT_RANGES)

    @property
    def total_brightness(self) -> float:
        return self.exposure + self.brightness

    def get_state(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in ADJUSTMENT_RANGES}

    @classmethod
    def from_state(cls, state: Mapping[str, Any]) -> "AdjustmentParams":
        return cls(**{name: state.get(name, 0.0) for name in ADJUSTMENT_RANGES})


# ---------------------------------------------------------------------------
# 2.  Full invocation config
# ---------------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class StretchConfig:
    """
    Configuration for one ``enhance`` call.

    Attributes:
        colorspace: Working colourspace (tag string or Colorspace member).
        stretch_amount: Target standard deviation along every principal
            axis, in working-space units.  ``NEUTRAL_STRETCH`` (0.0) skips
            the stretch stage.  Negative amounts raise
            ``ConfigurationError`` here, so the pipeline never mirrors an
            image through its mean; call ``decorrelation_stretch`` directly
            for that.
        adjustments: Tonal pre-adjustments applied before conversion.
    """
    colorspace:     Colorspace = Colorspace.RGB
    stretch_amount: float = DEFAULT_STRETCH
    adjustments:    AdjustmentParams = field(default_factory=AdjustmentParams)

    def __post_init__(self) -> None:
        object.__setattr__(self, "colorspace", Colorspace.from_tag(self.colorspace))

        amount = _coerce("stretch_amount", self.stretch_amount)
        if amount < 0.0:
            raise ConfigurationError(f"stretch_amount must be >= 0, got {amount}")
        object.__setattr__(self, "stretch_amount", amount)

        adj = self.adjustments
        if isinstance(adj, Mapping):
            adj = AdjustmentParams.from_state(adj)
        elif not isinstance(adj, AdjustmentParams):
            raise ConfigurationError(
                f"adjustments must be AdjustmentParams or a mapping, got {type(adj).__name__}"
            )
        object.__setattr__(self, "adjustments", adj)

    @property
    def stretch_enabled(self) -> bool:
        return self.stretch_amount != NEUTRAL_STRETCH

    @property
    def is_neutral(self) -> bool:
        """True when the pipeline would leave an RGB image untouched."""
        return (
            self.colorspace is Colorspace.RGB
            and not self.stretch_enabled
            and self.adjustments.is_neutral
        )

    # -- serialisation -----------------------------------------------------
    def get_state(self) -> Dict[str, Any]:
        """Flat, JSON-friendly snapshot."""
        return {
            "colorspace": self.colorspace.value,
            "stretch_amount": self.stretch_amount,
            **self.adjustments.get_state(),
        }

    @classmethod
    def from_state(cls, state: Mapping[str, Any]) -> "StretchConfig":
        """Reconstruct a StretchConfig from ``get_state()`` output."""
        return cls(
            colorspace=state.get("colorspace", Colorspace.RGB),
            stretch_amount=state.get("stretch_amount", DEFAULT_STRETCH),
            adjustments=AdjustmentParams.from_state(state),
        )

    @classmethod
    def from_params(
        cls,
        params: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> "StretchConfig":
        """
        Hybrid constructor: kwargs override *params*.

        Raises:
            ConfigurationError: On unknown keys or invalid values.
        """
        merged = {**(params or {}), **kwargs}
        known = {"colorspace", "stretch_amount", *ADJUSTMENT_RANGES}
        unknown = sorted(set(merged) - known)
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {', '.join(unknown)}")
        return cls.from_state(merged)

    def replace(self, **changes: Union[float, str, Colorspace]) -> "StretchConfig":
        """Copy with some flat keys changed (adjustment keys included)."""
        return StretchConfig.from_params(self.get_state(), **changes)

    def __repr__(self) -> str:
        return (
            f"StretchConfig(space={self.colorspace.value}, "
            f"s={self.stretch_amount:g}, neutral_adj={self.adjustments.is_neutral})"
        )
