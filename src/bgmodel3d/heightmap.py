"""
Height images and sequence resources.

A height image holds raw (uncalibrated) sensor values plus the linear
transform that maps pixels to world coordinates.

Dependencies: opencv, numpy
"""

import json
import logging
import os
import cv2
import numpy as np
from dataclasses import dataclass
from typing import List, Tuple, Union

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".tif", ".tiff")


# =============================================================================
# HEIGHT IMAGE
# =============================================================================

@dataclass
class HeightImage:
    """Raw height data with pixel-to-world transform."""
    data: np.ndarray
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    pixel_size: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    missing_value: float = 0

    def __post_init__(self):
        self.data = np.asarray(self.data)
        if self.data.ndim != 2:
            raise ValueError(f"Height image must be 2D, got shape {self.data.shape}")
        self.origin = tuple(float(v) for v in self.origin)
        self.pixel_size = tuple(float(v) for v in self.pixel_size)
        if len(self.origin) != 3 or len(self.pixel_size) != 3:
            raise ValueError("origin and pixel_size must have three components")

    @property
    def shape(self) -> Tuple[int, int]:
        return self.data.shape

    @property
    def height(self) -> int:
        return self.data.shape[0]

    @property
    def width(self) -> int:
        return self.data.shape[1]

    def valid_mask(self) -> np.ndarray:
        """Pixels that carry height data."""
        valid = self.data != self.missing_value
        if np.issubdtype(self.data.dtype, np.floating):
            valid &= np.isfinite(self.data)
        return valid

    def to_world_xy(self, col: float, row: float) -> Tuple[float, float]:
        x0, y0, _ = self.origin
        sx, sy, _ = self.pixel_size
        return x0 + col * sx, y0 + row * sy

    def to_pixel(self, x: float, y: float) -> Tuple[float, float]:
        """World x/y to fractional (col, row)."""
        x0, y0, _ = self.origin
        sx, sy, _ = self.pixel_size
        return (x - x0) / sx, (y - y0) / sy

    def to_world_z(self, value):
        return self.origin[2] + np.asarray(value, dtype=np.float64) * self.pixel_size[2]

    def get_pixel(self, col: float, row: float):
        """Raw value at the nearest pixel, clamped to the image."""
        c = int(np.clip(round(col), 0, self.width - 1))
        r = int(np.clip(round(row), 0, self.height - 1))
        return self.data[r, c]

    def world_z_image(self) -> np.ndarray:
        """World heights as float, NaN where data is missing."""
        z = self.to_world_z(self.data)
        z[~self.valid_mask()] = np.nan
        return z


# =============================================================================
# SEQUENCE RESOURCES
# =============================================================================

def _image_from_entry(entry: Union[dict, list]) -> HeightImage:
    if isinstance(entry, list):
        return HeightImage(np.array(entry, dtype=np.float64))
    if "data" not in entry:
        raise ValueError("Image entry is missing 'data'")
    return HeightImage(
        data=np.array(entry["data"], dtype=np.float64),
        origin=entry.get("origin", (0.0, 0.0, 0.0)),
        pixel_size=entry.get("pixel_size", (1.0, 1.0, 1.0)),
        missing_value=entry.get("missing_value", 0),
    )


def _load_npz(path: str) -> List[HeightImage]:
    with np.load(path) as archive:
        if "heights" not in archive:
            raise ValueError(f"No 'heights' array in {path}")
        heights = archive["heights"]
        origin = archive["origin"] if "origin" in archive else (0.0, 0.0, 0.0)
        pixel_size = archive["pixel_size"] if "pixel_size" in archive else (1.0, 1.0, 1.0)
        missing = archive["missing_value"].item() if "missing_value" in archive else 0

    if heights.ndim == 2:
        heights = heights[np.newaxis]
    if heights.ndim != 3:
        raise ValueError(f"Expected (N, H, W) heights in {path}, got {heights.shape}")
    return [HeightImage(h, origin, pixel_size, missing) for h in heights]


def _load_json(path: str) -> List[HeightImage]:
    with open(path) as f:
        doc = json.load(f)
    entries = doc.get("images", []) if isinstance(doc, dict) else doc
    if not isinstance(entries, list):
        raise ValueError(f"Expected a list of images in {path}")
    return [_image_from_entry(e) for e in entries]


def _load_directory(path: str) -> List[HeightImage]:
    images = []
    for name in sorted(os.listdir(path)):
        if not name.lower().endswith(IMAGE_EXTENSIONS):
            continue
        data = cv2.imread(os.path.join(path, name), cv2.IMREAD_UNCHANGED)
        if data is None:
            raise ValueError(f"Could not read image: {name}")
        if data.ndim == 3:
            data = cv2.cvtColor(data, cv2.COLOR_BGR2GRAY)
        images.append(HeightImage(data))
    return images


def load_sequence(path: str) -> List[HeightImage]:
    """Load a sequence of height images from .npz, .json or an image directory."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Resource not found: {path}")

    if os.path.isdir(path):
        images = _load_directory(path)
    elif path.endswith(".npz"):
        images = _load_npz(path)
    elif path.endswith(".json"):
        images = _load_json(path)
    else:
        raise ValueError(f"Unsupported resource format: {path}")

    if not images:
        raise ValueError(f"No images in resource: {path}")

    logger.info("Loaded %d images (%dx%d) from %s",
                len(images), images[0].width, images[0].height, path)
    return images


def save_sequence(path: str, images: List[HeightImage]) -> None:
    """Write images sharing one transform as an .npz resource."""
    if not images:
        raise ValueError("Nothing to save")
    first = images[0]
    np.savez_compressed(
        path,
        heights=np.stack([img.data for img in images]),
        origin=np.array(first.origin),
        pixel_size=np.array(first.pixel_size),
        missing_value=np.array(first.missing_value),
    )
