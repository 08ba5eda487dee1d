"""
Synthetic line-scan height sequences for demos and tests.

A flat conveyor with a per-column offset and sensor noise, carrying
raised boxes at random positions.

Dependencies: numpy
"""

import numpy as np
from typing import List, Optional

from .heightmap import HeightImage


def make_linescan_sequence(
    n_images: int = 8,
    height: int = 400,
    width: int = 320,
    objects_per_image: int = 2,
    object_size: int = 140,
    object_height: float = 120.0,
    belt_level: float = 200.0,
    noise: float = 0.3,
    missing_ratio: float = 0.002,
    empty_first: int = 2,
    seed: Optional[int] = 0,
) -> List[HeightImage]:
    """
    Build a sequence of uint16 height images.

    The first `empty_first` images show only the conveyor so a model can
    be taught before objects appear.
    """
    rng = np.random.default_rng(seed)
    # Belt is slightly tilted across its width
    belt = belt_level + np.linspace(0.0, 4.0, width)[np.newaxis, :]

    images = []
    for i in range(n_images):
        data = belt + rng.normal(0.0, noise, size=(height, width))

        if i >= empty_first:
            for _ in range(objects_per_image):
                size_r = int(rng.integers(object_size * 3 // 4, object_size + 1))
                size_c = int(rng.integers(object_size * 3 // 4, object_size + 1))
                r = int(rng.integers(0, max(1, height - size_r)))
                c = int(rng.integers(0, max(1, width - size_c)))
                top = object_height * rng.uniform(0.6, 1.0)
                data[r:r + size_r, c:c + size_c] += top

        data = np.clip(np.round(data), 1, np.iinfo(np.uint16).max).astype(np.uint16)
        missing = rng.random(size=data.shape) < missing_ratio
        data[missing] = 0

        images.append(HeightImage(data, pixel_size=(0.5, 0.5, 0.1)))

    return images
