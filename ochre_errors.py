# -*- coding: utf-8 -*-
"""
Ochre: Decorrelation stretch for faint pigment imagery
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: Exception taxonomy shared by all Ochre stages.

Only ``InvalidInput``, ``ConfigurationError`` and ``UpstreamUnavailable``
reach a caller of the pipeline.  ``NumericDegenerate`` is raised inside the
eigen solver and recovered there (identity fallback and a log record);
only ``decompose_strict`` lets it escape.
"""

__all__ = [
    "OchreError",
    "InvalidInput",
    "ConfigurationError",
    "NumericDegenerate",
    "UpstreamUnavailable",
]


class OchreError(Exception):
    """Base class for every error raised by Ochre."""


class InvalidInput(OchreError, ValueError):
    """Empty image, mismatched buffer length or too few samples."""


class ConfigurationError(OchreError, ValueError):
    """Unknown colourspace tag or an out-of-range configuration value."""


class NumericDegenerate(OchreError, ArithmeticError):
    """Singular covariance matrix or eigen-solver non-convergence."""


class UpstreamUnavailable(OchreError, RuntimeError):
    """The external upscaling collaborator failed or returned garbage."""
