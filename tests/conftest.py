"""
Pytest configuration and fixtures
"""
import os
import sys

import numpy as np
import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)


def make_rgba(pixels):
    """Flat opaque RGBA buffer from a list of (r, g, b) tuples."""
    out = np.empty((len(pixels), 4), dtype=np.uint8)
    out[:, :3] = np.asarray(pixels, dtype=np.uint8)
    out[:, 3] = 255
    return out.reshape(-1)


@pytest.fixture
def four_pixel_image():
    """2x2 image with strong correlation along the grey axis"""
    pixels = [(10, 10, 10), (200, 200, 200), (10, 10, 200), (200, 10, 10)]
    return make_rgba(pixels), 2, 2


@pytest.fixture
def grey_image():
    """4x4 image of a single mid-grey colour"""
    return make_rgba([(128, 128, 128)] * 16), 4, 4


@pytest.fixture
def faint_image():
    """
    32x24 reddish rock surface with a faint, slightly redder pattern.
    Low contrast, strongly correlated channels.
    """
    rng = np.random.default_rng(1234)
    h, w = 24, 32
    base = np.array([150.0, 110.0, 90.0])
    noise = rng.normal(0.0, 3.0, size=(h, w, 1))
    img = base + noise * np.array([1.0, 0.9, 0.8])
    img[8:16, 10:22] += np.array([6.0, 0.0, -2.0])
    rgba = np.empty((h, w, 4), dtype=np.uint8)
    rgba[..., :3] = np.clip(np.rint(img), 0, 255).astype(np.uint8)
    rgba[..., 3] = 255
    return rgba, w, h


@pytest.fixture
def random_image():
    """16x8 uniformly random opaque image"""
    rng = np.random.default_rng(42)
    rgba = rng.integers(0, 256, size=(8, 16, 4), dtype=np.uint8)
    rgba[..., 3] = 255
    return rgba, 16, 8
