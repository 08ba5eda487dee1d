"""
bgmodel3d: Background/foreground segmentation of height images.

Provides average, Gaussian and running-Gaussian background models,
connected foreground extraction, object measurement and 2D/3D
rendering for line-scan and area-scan height data.

Dependencies: opencv, numpy, scipy, matplotlib
"""

from .heightmap import (
    HeightImage,
    load_sequence,
    save_sequence,
)
from .background import (
    BackgroundModel,
    AverageModel,
    GaussianModel,
    RunningGaussianModel,
    DEFAULT_CONFIG,
    MODEL_PRESETS,
    get_default_config,
    build_params,
    get_model_preset,
    create_background_model,
)
from .regions import (
    find_connected,
    union,
    invert,
    dilate,
    erode,
    clean_region,
    bounding_box,
)
from .pipeline import (
    DetectedObject,
    FrameResult,
    ReplayResult,
    RatePacer,
    SegmentationPipeline,
    measure_objects,
)
from .render import ResultRenderer
from .synthetic import make_linescan_sequence

__all__ = [
    # Height images
    "HeightImage",
    "load_sequence",
    "save_sequence",
    # Background
    "BackgroundModel",
    "AverageModel",
    "GaussianModel",
    "RunningGaussianModel",
    "DEFAULT_CONFIG",
    "MODEL_PRESETS",
    "get_default_config",
    "build_params",
    "get_model_preset",
    "create_background_model",
    # Regions
    "find_connected",
    "union",
    "invert",
    "dilate",
    "erode",
    "clean_region",
    "bounding_box",
    # Pipeline
    "DetectedObject",
    "FrameResult",
    "ReplayResult",
    "RatePacer",
    "SegmentationPipeline",
    "measure_objects",
    # Rendering
    "ResultRenderer",
    "make_linescan_sequence",
]
