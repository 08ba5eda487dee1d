"""
Pixel-region operations on bool masks.

Dependencies: opencv, numpy
"""

import cv2
import numpy as np
from typing import Iterable, List, Optional, Tuple


def _to_uint8(region: np.ndarray) -> np.ndarray:
    return np.asarray(region, dtype=bool).astype(np.uint8)


def _kernel(size: int) -> np.ndarray:
    return cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (size, size))


def find_connected(
    mask: np.ndarray,
    min_size: int = 1,
    max_size: Optional[int] = None,
) -> List[np.ndarray]:
    """Split a mask into 8-connected regions within the size range, largest first."""
    num_labels, labels, stats, _ = cv2.connectedComponentsWithStats(
        _to_uint8(mask), connectivity=8
    )
    found = []
    for label in range(1, num_labels):
        area = int(stats[label, cv2.CC_STAT_AREA])
        if area < min_size:
            continue
        if max_size is not None and area > max_size:
            continue
        found.append((area, label))

    found.sort(key=lambda item: item[0], reverse=True)
    return [labels == label for _, label in found]


def union(regions: Iterable[np.ndarray], shape: Tuple[int, int]) -> np.ndarray:
    out = np.zeros(shape, dtype=bool)
    for region in regions:
        out |= region
    return out


def invert(region: np.ndarray) -> np.ndarray:
    return ~np.asarray(region, dtype=bool)


def dilate(region: np.ndarray, size: int) -> np.ndarray:
    """Grow a region with an elliptical element of diameter size."""
    if size <= 1:
        return np.asarray(region, dtype=bool).copy()
    return cv2.dilate(_to_uint8(region), _kernel(size)).astype(bool)


def erode(region: np.ndarray, size: int) -> np.ndarray:
    """Shrink a region with an elliptical element of diameter size."""
    if size <= 1:
        return np.asarray(region, dtype=bool).copy()
    # Pixels outside the image count as background
    return cv2.erode(
        _to_uint8(region), _kernel(size),
        borderType=cv2.BORDER_CONSTANT, borderValue=0,
    ).astype(bool)


def clean_region(region: np.ndarray, size: int) -> np.ndarray:
    """Erode then dilate: removes thin parts and noise."""
    return dilate(erode(region, size), size)


def bounding_box(region: np.ndarray) -> Optional[Tuple[int, int, int, int]]:
    """Inclusive (x1, y1, x2, y2) pixel bounds, None for an empty region."""
    points = cv2.findNonZero(_to_uint8(region))
    if points is None:
        return None
    x, y, w, h = cv2.boundingRect(points)
    return x, y, x + w - 1, y + h - 1
