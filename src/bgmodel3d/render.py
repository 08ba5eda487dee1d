"""
2D and 3D rendering of segmentation results.

The 2D view is an OpenCV image: colorized height map, painted regions,
bounding boxes, centroid crosses and index labels. The 3D view is a
matplotlib figure with the height surface and the same overlays placed
at each object's height.

Dependencies: opencv, numpy, matplotlib
"""

import logging
import os
import cv2
import numpy as np
from typing import Dict, List, Optional, Sequence, Tuple

from matplotlib.figure import Figure
from mpl_toolkits.mplot3d import Axes3D  # noqa: F401  (registers the 3d projection)

from .background import get_default_config
from .heightmap import HeightImage
from .pipeline import DetectedObject, FrameResult

logger = logging.getLogger(__name__)

COLORMAPS = {
    "jet": cv2.COLORMAP_JET,
    "viridis": cv2.COLORMAP_VIRIDIS,
    "turbo": cv2.COLORMAP_TURBO,
    "bone": cv2.COLORMAP_BONE,
}

# Hershey simplex glyph height at scale 1.0
_FONT_PIXELS = 22.0


def _bgr(rgb: Sequence[int]) -> Tuple[int, int, int]:
    r, g, b = rgb[:3]
    return int(b), int(g), int(r)


def _rgb_unit(rgb: Sequence[int]) -> Tuple[float, ...]:
    return tuple(c / 255.0 for c in rgb)


def cross_segments(x: float, y: float, size: float) -> List[Tuple[Tuple[float, float], Tuple[float, float]]]:
    """Two diagonal segments forming an X centred on (x, y)."""
    return [
        ((x - size, y - size), (x + size, y + size)),
        ((x - size, y + size), (x + size, y - size)),
    ]


class ResultRenderer:
    """
    Renders FrameResults to a 2D image and a 3D figure.

    Usage:
        renderer = ResultRenderer(config, output_dir="renders")
        pipeline.replay(images, on_result=renderer.draw_results)
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        output_dir: Optional[str] = None,
        show: bool = False,
        render_3d: bool = True,
    ):
        self.config = config or get_default_config()
        self.output_dir = output_dir
        self.show = show
        self.render_3d_enabled = render_3d

        self.view_2d: Optional[np.ndarray] = None
        self.view_3d: Optional[Figure] = None
        self.frames_presented = 0

        if output_dir:
            os.makedirs(output_dir, exist_ok=True)

    # =========================================================================
    # 2D
    # =========================================================================

    def colorize(self, image: HeightImage) -> np.ndarray:
        """Map raw heights over height_range to a BGR image, missing data black."""
        lo, hi = self.config.get("height_range", [0, 832])
        span = float(hi - lo) or 1.0
        scaled = np.clip((image.data.astype(np.float64) - lo) / span, 0.0, 1.0)
        gray = (scaled * 255).astype(np.uint8)

        name = self.config.get("colormap", "jet")
        if name in COLORMAPS:
            colored = cv2.applyColorMap(gray, COLORMAPS[name])
        else:
            colored = cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)
        colored[~image.valid_mask()] = 0
        return colored

    def render_2d(self, image: HeightImage, objects: Sequence[DetectedObject]) -> np.ndarray:
        canvas = self.colorize(image)
        if not objects:
            return canvas

        region_color = self.config.get("region_color", [0, 120, 220, 150])
        alpha = region_color[3] / 255.0 if len(region_color) > 3 else 1.0
        fill = np.array(_bgr(region_color), dtype=np.float64)

        line_color = _bgr(self.config.get("line_color", [180, 10, 10]))
        line_width = int(self.config.get("line_width", 11))
        text_color = _bgr(self.config.get("text_color", [255, 255, 255]))
        font_scale = self.config.get("text_size", 30) / _FONT_PIXELS
        marker = self.config.get("marker_size", 10)
        dx, dy, _ = self.config.get("label_offset", [40, -10, 2])

        def px(x, y):
            col, row = image.to_pixel(x, y)
            return int(round(col)), int(round(row))

        for obj in objects:
            # Paint the region
            painted = canvas[obj.region].astype(np.float64)
            canvas[obj.region] = ((1 - alpha) * painted + alpha * fill).astype(np.uint8)

            x, y = obj.center
            for start, end in cross_segments(x, y, marker):
                cv2.line(canvas, px(*start), px(*end), line_color, line_width)

            x1, y1, x2, y2 = obj.bbox
            cv2.rectangle(canvas, px(x1, y1), px(x2, y2), line_color, line_width)

            cv2.putText(
                canvas, str(obj.index), px(x + dx, y + dy),
                cv2.FONT_HERSHEY_SIMPLEX, font_scale, text_color,
                max(1, int(round(font_scale * 2))), cv2.LINE_AA,
            )

        return canvas

    # =========================================================================
    # 3D
    # =========================================================================

    def render_3d(self, image: HeightImage, objects: Sequence[DetectedObject]) -> Figure:
        stride = max(1, int(self.config.get("surface_stride", 8)))
        lo, hi = self.config.get("height_range", [0, 832])
        vmin, vmax = float(image.to_world_z(lo)), float(image.to_world_z(hi))

        rows = np.arange(0, image.height, stride)
        cols = np.arange(0, image.width, stride)
        z = image.world_z_image()[np.ix_(rows, cols)]
        floor = np.nanmin(z) if np.isfinite(z).any() else image.origin[2]
        z = np.where(np.isfinite(z), z, floor)

        x0, y0, _ = image.origin
        sx, sy, _ = image.pixel_size
        xs, ys = np.meshgrid(x0 + cols * sx, y0 + rows * sy)

        fig = Figure(figsize=(8, 6))
        ax = fig.add_subplot(111, projection="3d")
        ax.plot_surface(
            xs, ys, z,
            cmap=self.config.get("colormap", "jet"),
            vmin=min(vmin, vmax), vmax=max(vmin, vmax),
            linewidth=0, antialiased=False,
        )

        region_color = _rgb_unit(self.config.get("region_color", [0, 120, 220, 150]))
        line_color = _rgb_unit(self.config.get("line_color", [180, 10, 10]))
        text_color = _rgb_unit(self.config.get("text_color", [255, 255, 255]))
        marker = self.config.get("marker_size", 10)
        dx, dy, dz = self.config.get("label_offset", [40, -10, 2])
        z_image = image.world_z_image()

        for obj in objects:
            r_idx, c_idx = np.nonzero(obj.region[::stride, ::stride])
            r_idx, c_idx = r_idx * stride, c_idx * stride
            heights = z_image[r_idx, c_idx]
            keep = np.isfinite(heights)
            if keep.any():
                ax.scatter(
                    x0 + c_idx[keep] * sx, y0 + r_idx[keep] * sy, heights[keep],
                    color=region_color, s=2, depthshade=False,
                )

            x1, y1, x2, y2 = obj.bbox
            ax.plot([x1, x2, x2, x1, x1], [y1, y1, y2, y2, y1], [obj.z] * 5,
                    color=line_color[:3], linewidth=2)

            x, y = obj.center
            for (ax_, ay_), (bx_, by_) in cross_segments(x, y, marker):
                ax.plot([ax_, bx_], [ay_, by_], [obj.z, obj.z],
                        color=line_color[:3], linewidth=2)

            ax.text(x + dx, y + dy, obj.z + dz, str(obj.index), color=text_color[:3])

        ax.set_xlabel("x")
        ax.set_ylabel("y")
        ax.set_zlabel("z")
        return fig

    # =========================================================================
    # PRESENTATION
    # =========================================================================

    def draw_results(self, result: FrameResult) -> Tuple[np.ndarray, Optional[Figure]]:
        """Clear both views, repopulate them from result and present."""
        self.clear()
        self.view_2d = self.render_2d(result.image, result.objects)
        if self.render_3d_enabled:
            self.view_3d = self.render_3d(result.image, result.objects)
        self.present(result.frame_number)
        return self.view_2d, self.view_3d

    def clear(self) -> None:
        self.view_2d = None
        self.view_3d = None

    def present(self, frame_number: int) -> None:
        if self.output_dir:
            path_2d = os.path.join(self.output_dir, f"frame_{frame_number:06d}_2d.png")
            if not cv2.imwrite(path_2d, self.view_2d):
                raise IOError(f"Could not write {path_2d}")
            if self.view_3d is not None:
                self.view_3d.savefig(os.path.join(self.output_dir, f"frame_{frame_number:06d}_3d.png"))
            logger.debug("Wrote frame %d to %s", frame_number, self.output_dir)

        if self.show:
            cv2.imshow("bgmodel3d", self.view_2d)
            cv2.waitKey(1)

        self.frames_presented += 1

    def close(self) -> None:
        if self.show:
            cv2.destroyAllWindows()
