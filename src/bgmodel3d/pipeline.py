"""
Segmentation pipeline: height images → foreground objects.

Each image is compared against the background model (once it holds
data), large connected foreground regions are extracted and measured,
and the model is updated everywhere except under those regions.

Dependencies: numpy, scipy
"""

import logging
import time
import numpy as np
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union
from scipy import ndimage

from .background import BackgroundModel, build_params, create_background_model
from .heightmap import HeightImage
from .regions import bounding_box, clean_region, dilate, find_connected, invert, union

logger = logging.getLogger(__name__)

# Marks replay arguments that fall back to the config
_FROM_CONFIG = object()


# =============================================================================
# RESULT DATA CLASSES
# =============================================================================

@dataclass
class DetectedObject:
    """Single foreground object in world coordinates."""
    index: int
    bbox: Tuple[float, float, float, float]  # x1, y1, x2, y2 (world)
    center: Tuple[float, float]
    z: float
    area: int
    mean_height: float
    max_height: float
    region: np.ndarray = field(repr=False)


@dataclass
class FrameResult:
    """Result of one capture callback."""
    frame_number: int
    image: HeightImage = field(repr=False)
    foreground: Optional[List[np.ndarray]] = field(default=None, repr=False)
    roi: Optional[np.ndarray] = field(default=None, repr=False)
    objects: List[DetectedObject] = field(default_factory=list)

    @property
    def model_was_empty(self) -> bool:
        return self.foreground is None


@dataclass
class ReplayResult:
    """Summary of a replay run."""
    iterations: int
    frames_processed: int
    object_counts: List[int]

    @property
    def total_objects(self) -> int:
        return sum(self.object_counts)


# =============================================================================
# OBJECT MEASUREMENT
# =============================================================================

def measure_objects(
    image: HeightImage,
    regions: Sequence[np.ndarray],
    cleanup: int = 11,
) -> List[DetectedObject]:
    """
    Measure foreground regions.

    Regions are cleaned (erode then dilate) first; regions that vanish
    are skipped. Indices keep the 1-based position in the input list.
    """
    z_image = image.world_z_image()
    valid = image.valid_mask()
    objects = []

    for index, region in enumerate(regions, start=1):
        region = clean_region(region, cleanup)
        box = bounding_box(region)
        if box is None:
            logger.debug("Region %d vanished after cleanup", index)
            continue

        c1, r1, c2, r2 = box
        x1, y1 = image.to_world_xy(c1, r1)
        x2, y2 = image.to_world_xy(c2, r2)
        x, y = (x1 + x2) / 2, (y1 + y2) / 2

        heights = region & valid
        col, row = image.to_pixel(x, y)
        value = image.get_pixel(col, row)
        if value != image.missing_value and np.isfinite(value):
            z = float(image.to_world_z(value))
        elif heights.any():
            z = float(np.median(z_image[heights]))
        else:
            z = image.origin[2]

        if heights.any():
            labels = heights.astype(np.int32)
            mean_height = float(ndimage.mean(z_image, labels, 1))
            max_height = float(ndimage.maximum(z_image, labels, 1))
        else:
            mean_height = max_height = float("nan")

        objects.append(DetectedObject(
            index=index,
            bbox=(min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2)),
            center=(x, y),
            z=z,
            area=int(region.sum()),
            mean_height=mean_height,
            max_height=max_height,
            region=region,
        ))

    return objects


# =============================================================================
# PACING
# =============================================================================

class RatePacer:
    """Keeps a loop at a fixed rate by sleeping off the remainder of each period."""

    def __init__(self, hz: Optional[float], clock=None, sleep=None):
        self.period = 1.0 / hz if hz and hz > 0 else 0.0
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self._tic = self._clock()

    def wait(self) -> float:
        """Sleep until the period has passed. Returns the time slept."""
        toc = self._clock()
        sleep_time = max(0.0, self.period - (toc - self._tic))
        if sleep_time > 0:
            self._sleep(sleep_time)
        self._tic = toc + sleep_time
        return sleep_time


# =============================================================================
# SEGMENTATION PIPELINE
# =============================================================================

class SegmentationPipeline:
    """
    Stateful background/foreground segmentation.

    Usage:
        pipeline = SegmentationPipeline(config)
        for image in images:
            result = pipeline.process_image(image)
            for obj in result.objects:
                print(obj.index, obj.center, obj.z)

        # Or replay a captured sequence at 1 Hz:
        pipeline.replay(images, iterations=10, rate_hz=1.0, on_result=renderer.draw_results)
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        on_result: Optional[Callable[[FrameResult], None]] = None,
    ):
        """
        Args:
            config: Parameter overrides merged over the defaults. None = use defaults.
            on_result: Optional callable receiving every FrameResult
        """
        self.config = build_params(**(config or {}))
        self.on_result = on_result
        self.model: BackgroundModel = create_background_model(self.config)
        self.frame_number = 0

    def _as_height_image(self, image: Union[HeightImage, np.ndarray]) -> HeightImage:
        if isinstance(image, HeightImage):
            return image
        return HeightImage(image, missing_value=self.config.get("missing_value", 0))

    def process_image(self, image: Union[HeightImage, np.ndarray]) -> FrameResult:
        """Handle one captured image."""
        image = self._as_height_image(image)
        foreground = None
        roi = None

        # Only compare once the model holds data
        if not self.model.is_empty():
            mask = self.model.compare(
                image,
                self.config.get("compare_mode", "BRIGHTER"),
                self.config["mean_threshold"],
                self.config.get("var_threshold"),
            )
            foreground = find_connected(
                mask,
                self.config["min_blob_size"],
                self.config.get("max_blob_size"),
            )
            # Keep large foreground regions out of the background
            roi = invert(dilate(union(foreground, image.shape), self.config.get("roi_dilation", 5)))

        self.model.add(image, roi)

        objects = measure_objects(image, foreground or [], self.config.get("region_cleanup", 11))
        result = FrameResult(
            frame_number=self.frame_number,
            image=image,
            foreground=foreground,
            roi=roi,
            objects=objects,
        )
        logger.debug("Frame %d: %d foreground regions, %d objects",
                     self.frame_number, len(foreground or []), len(objects))
        self.frame_number += 1

        if self.on_result is not None:
            self.on_result(result)
        return result

    def replay(
        self,
        images: Sequence[Union[HeightImage, np.ndarray]],
        iterations: Optional[int] = None,
        rate_hz: Optional[float] = _FROM_CONFIG,
        on_result: Optional[Callable[[FrameResult], None]] = None,
        pacer: Optional[RatePacer] = None,
    ) -> ReplayResult:
        """
        Feed a captured sequence through process_image repeatedly.

        Args:
            images: Captured height images
            iterations: Passes over the sequence (default from config)
            rate_hz: Images per second, 0/None = as fast as possible
                (omitted = from config)
            on_result: Optional callable receiving every FrameResult
            pacer: Custom pacer, overrides rate_hz

        Returns:
            ReplayResult with per-frame object counts
        """
        if not images:
            raise ValueError("No images to replay")
        if iterations is None:
            iterations = self.config.get("iterations", 10)
        if rate_hz is _FROM_CONFIG:
            rate_hz = self.config.get("rate_hz", 1.0)
        pacer = pacer or RatePacer(rate_hz)

        logger.info("Replaying %d images x %d iterations at %s Hz",
                    len(images), iterations, rate_hz or "max")

        counts = []
        for iteration in range(iterations):
            for image in images:
                result = self.process_image(image)
                counts.append(len(result.objects))
                if on_result is not None:
                    on_result(result)
                pacer.wait()
            logger.info("Iteration %d/%d done, %d objects in last frame",
                        iteration + 1, iterations, counts[-1])

        return ReplayResult(
            iterations=iterations,
            frames_processed=len(counts),
            object_counts=counts,
        )

    def reset(self) -> None:
        """Forget the background and restart frame numbering."""
        self.model.reset()
        self.frame_number = 0
