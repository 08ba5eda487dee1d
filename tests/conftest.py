"""
Pytest configuration and shared fixtures
"""

import logging

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from bgmodel3d.background import build_params
from bgmodel3d.heightmap import HeightImage

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)


def make_belt(height=60, width=40, level=100, noise=0.0, seed=0):
    """Flat belt height image, optionally noisy."""
    rng = np.random.default_rng(seed)
    data = np.full((height, width), float(level))
    if noise:
        data += rng.normal(0.0, noise, size=data.shape)
    return HeightImage(data)


def with_box(image, r, c, h, w, lift=50):
    """Copy of image with a raised box."""
    data = image.data.copy()
    data[r:r + h, c:c + w] += lift
    return HeightImage(data, image.origin, image.pixel_size, image.missing_value)


@pytest.fixture
def belt():
    return make_belt()


@pytest.fixture
def noisy_belt():
    return make_belt(noise=0.3)


@pytest.fixture
def small_config():
    """Config sized for small test images."""
    return build_params(
        min_blob_size=50,
        region_cleanup=3,
        roi_dilation=3,
        rate_hz=0,
        iterations=1,
        line_width=1,
        surface_stride=4,
    )
