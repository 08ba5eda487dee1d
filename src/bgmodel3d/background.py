"""
Background models for height images.

Provides average, Gaussian and running-Gaussian background models with
thresholded foreground comparison, plus the default configuration.

Line-scan models keep one statistic per column, pooled over all rows
(profiles) of each image. Area-scan models keep one statistic per pixel.

Dependencies: numpy
"""

import logging
import numpy as np
from typing import Dict, Optional, Tuple

from .heightmap import HeightImage

logger = logging.getLogger(__name__)


# =============================================================================
# DEFAULT CONFIGURATION
# =============================================================================

DEFAULT_CONFIG = {
    # Background model
    "line_scan": True,
    "model_type": "running_gaussian",
    "learning_rate": 1 / (60 * 10),
    "missing_value": 0,

    # Compare
    "compare_mode": "BRIGHTER",
    "mean_threshold": 1.0,
    "var_threshold": 2.5,

    # Foreground regions
    "min_blob_size": 10000,
    "max_blob_size": None,
    "roi_dilation": 5,
    "region_cleanup": 11,

    # Replay
    "iterations": 10,
    "rate_hz": 1.0,

    # Rendering (Ranger3 sensor is 832 pixels high, data is uncalibrated)
    "height_range": [0, 832],
    "colormap": "jet",
    "marker_size": 10,
    "line_color": [180, 10, 10],
    "line_width": 11,
    "region_color": [0, 120, 220, 150],
    "text_color": [255, 255, 255],
    "text_size": 30,
    "label_offset": [40, -10, 2],
    "surface_stride": 8,
}

# (mean_threshold, var_threshold) suited to each model variant
MODEL_PRESETS = {
    "average": (1.5, None),
    "gaussian": (1.0, 2.5),
    "running_gaussian": (1.0, 2.5),
}

COMPARE_MODES = ("BRIGHTER", "DARKER", "DIFFERENT")


def get_default_config() -> Dict:
    """Return a copy of the default configuration."""
    return DEFAULT_CONFIG.copy()


def build_params(**kwargs) -> Dict:
    """Build parameters from defaults + overrides."""
    params = get_default_config()
    for key, value in kwargs.items():
        if key in params:
            params[key] = value
        else:
            raise ValueError(f"Unknown parameter: {key}")
    return params


def get_model_preset(model_type: str, config: Optional[Dict] = None) -> Dict:
    """Return config with model_type and its matching thresholds applied."""
    if model_type not in MODEL_PRESETS:
        raise ValueError(f"Unknown model type: {model_type}. Use one of {sorted(MODEL_PRESETS)}")
    params = dict(config) if config else get_default_config()
    mean_threshold, var_threshold = MODEL_PRESETS[model_type]
    params["model_type"] = model_type
    params["mean_threshold"] = mean_threshold
    params["var_threshold"] = var_threshold
    return params


# =============================================================================
# BACKGROUND MODELS
# =============================================================================

class BackgroundModel:
    """
    Base background model.

    Subclasses keep statistics per column (line scan) or per pixel
    (area scan) and implement _update, mean and variance.
    """

    def __init__(self, line_scan: bool = True):
        self.line_scan = line_scan
        self._image_shape: Optional[Tuple[int, int]] = None

    # -- public API --

    def is_empty(self) -> bool:
        """True until at least one valid observation has been added."""
        raise NotImplementedError

    def mean(self) -> Optional[np.ndarray]:
        raise NotImplementedError

    def variance(self) -> Optional[np.ndarray]:
        return None

    def reset(self) -> None:
        self._image_shape = None

    def add(self, image: HeightImage, roi: Optional[np.ndarray] = None) -> None:
        """
        Add an observation to the model.

        Args:
            image: Height image to learn from
            roi: Optional bool mask of pixels allowed to update the model
        """
        self._check_shape(image, allow_init=True)
        count, total, total_sq = self._observe(image, roi)
        if not count.any():
            logger.debug("No valid pixels inside roi, model unchanged")
            return
        self._update(count, total, total_sq)

    def compare(
        self,
        image: HeightImage,
        mode: str = "BRIGHTER",
        mean_threshold: float = 1.0,
        var_threshold: Optional[float] = None,
    ) -> np.ndarray:
        """
        Extract the foreground of an image.

        Args:
            image: Height image to classify
            mode: BRIGHTER, DARKER or DIFFERENT
            mean_threshold: Minimum height difference from the model mean
            var_threshold: Minimum difference in standard deviations
                (ignored by models without variance)

        Returns:
            Bool mask, True where the image is foreground
        """
        if self.is_empty():
            raise ValueError("Cannot compare against an empty background model")
        mode = mode.upper()
        if mode not in COMPARE_MODES:
            raise ValueError(f"Unknown compare mode: {mode}. Use one of {COMPARE_MODES}")
        self._check_shape(image)

        data = image.data.astype(np.float64)
        mean = self.mean()
        diff = data - mean
        if mode == "BRIGHTER":
            delta = diff
        elif mode == "DARKER":
            delta = -diff
        else:
            delta = np.abs(diff)

        with np.errstate(invalid="ignore"):
            foreground = delta > mean_threshold
            variance = self.variance()
            if var_threshold is not None and variance is not None:
                foreground &= delta > var_threshold * np.sqrt(variance)

        initialized = np.broadcast_to(~np.isnan(mean), data.shape)
        return foreground & initialized & image.valid_mask()

    # -- internals --

    def _stats_shape(self, image: HeightImage) -> Tuple[int, ...]:
        return (image.width,) if self.line_scan else image.shape

    def _check_shape(self, image: HeightImage, allow_init: bool = False) -> None:
        if self._image_shape is None:
            if not allow_init:
                raise ValueError("Background model has no shape yet")
            self._image_shape = image.shape
            self._allocate(self._stats_shape(image))
            return
        if self.line_scan:
            if image.width != self._image_shape[1]:
                raise ValueError(
                    f"Image width {image.width} does not match model width {self._image_shape[1]}"
                )
        elif image.shape != self._image_shape:
            raise ValueError(
                f"Image shape {image.shape} does not match model shape {self._image_shape}"
            )

    def _observe(self, image: HeightImage, roi: Optional[np.ndarray]):
        """Per-position (count, sum, sum of squares) of usable pixels."""
        valid = image.valid_mask()
        if roi is not None:
            roi = np.asarray(roi, dtype=bool)
            if roi.shape != image.shape:
                raise ValueError(f"Roi shape {roi.shape} does not match image shape {image.shape}")
            valid &= roi

        values = np.where(valid, image.data.astype(np.float64), 0.0)
        if self.line_scan:
            return valid.sum(axis=0), values.sum(axis=0), (values ** 2).sum(axis=0)
        return valid.astype(np.int64), values, values ** 2

    def _allocate(self, shape: Tuple[int, ...]) -> None:
        raise NotImplementedError

    def _update(self, count: np.ndarray, total: np.ndarray, total_sq: np.ndarray) -> None:
        raise NotImplementedError


class AverageModel(BackgroundModel):
    """Cumulative mean. Never forgets its past."""

    def __init__(self, line_scan: bool = True):
        super().__init__(line_scan)
        self._count: Optional[np.ndarray] = None
        self._sum: Optional[np.ndarray] = None
        self._sum_sq: Optional[np.ndarray] = None

    def _allocate(self, shape):
        self._count = np.zeros(shape, dtype=np.int64)
        self._sum = np.zeros(shape, dtype=np.float64)
        self._sum_sq = np.zeros(shape, dtype=np.float64)

    def _update(self, count, total, total_sq):
        self._count += count
        self._sum += total
        self._sum_sq += total_sq

    def is_empty(self) -> bool:
        return self._count is None or not self._count.any()

    def mean(self) -> Optional[np.ndarray]:
        if self._count is None:
            return None
        out = np.full(self._count.shape, np.nan)
        np.divide(self._sum, self._count, out=out, where=self._count > 0)
        return out

    def reset(self) -> None:
        super().reset()
        self._count = self._sum = self._sum_sq = None


class GaussianModel(AverageModel):
    """Cumulative mean and variance. Never forgets its past."""

    def variance(self) -> Optional[np.ndarray]:
        if self._count is None:
            return None
        mean = self.mean()
        out = np.full(self._count.shape, np.nan)
        np.divide(self._sum_sq, self._count, out=out, where=self._count > 0)
        with np.errstate(invalid="ignore"):
            return np.maximum(out - mean ** 2, 0.0)


class RunningGaussianModel(BackgroundModel):
    """
    Exponentially weighted mean and variance.

    Adapts to changes over time. Positions observed for the first time
    are initialized directly from the observation.
    """

    def __init__(self, line_scan: bool = True, learning_rate: float = 1 / 600):
        super().__init__(line_scan)
        if not 0 < learning_rate <= 1:
            raise ValueError(f"learning_rate must be in (0, 1], got {learning_rate}")
        self.learning_rate = learning_rate
        self._mean: Optional[np.ndarray] = None
        self._var: Optional[np.ndarray] = None

    def _allocate(self, shape):
        self._mean = np.full(shape, np.nan)
        self._var = np.full(shape, np.nan)

    def _update(self, count, total, total_sq):
        seen = count > 0
        obs_mean = np.zeros(count.shape)
        obs_sq = np.zeros(count.shape)
        np.divide(total, count, out=obs_mean, where=seen)
        np.divide(total_sq, count, out=obs_sq, where=seen)
        obs_var = np.maximum(obs_sq - obs_mean ** 2, 0.0)

        initialized = ~np.isnan(self._mean)
        fresh = seen & ~initialized
        self._mean[fresh] = obs_mean[fresh]
        self._var[fresh] = obs_var[fresh]

        update = seen & initialized
        a = self.learning_rate
        delta = obs_mean[update] - self._mean[update]
        self._mean[update] += a * delta
        self._var[update] = (1 - a) * (self._var[update] + a * delta ** 2) + a * obs_var[update]

    def is_empty(self) -> bool:
        return self._mean is None or bool(np.isnan(self._mean).all())

    def mean(self) -> Optional[np.ndarray]:
        return None if self._mean is None else self._mean.copy()

    def variance(self) -> Optional[np.ndarray]:
        return None if self._var is None else self._var.copy()

    def reset(self) -> None:
        super().reset()
        self._mean = self._var = None


def create_background_model(config: Dict) -> BackgroundModel:
    """Create the background model selected by config['model_type']."""
    model_type = config.get("model_type", "running_gaussian")
    line_scan = config.get("line_scan", True)
    if model_type == "average":
        model = AverageModel(line_scan)
    elif model_type == "gaussian":
        model = GaussianModel(line_scan)
    elif model_type == "running_gaussian":
        model = RunningGaussianModel(line_scan, config.get("learning_rate", 1 / 600))
    else:
        raise ValueError(f"Unknown model type: {model_type}. Use one of {sorted(MODEL_PRESETS)}")
    logger.debug("Created %s model (%s)", model_type, "line scan" if line_scan else "area scan")
    return model
