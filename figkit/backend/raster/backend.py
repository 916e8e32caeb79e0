from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw

from figkit.backend.base import GraphicsBackend, Rect
from figkit.backend.raster.canvas import PixelRect, blend_region, fill_mask, new_canvas
from figkit.backend.raster.draw_lines import draw_polyline
from figkit.backend.raster.draw_markers import draw_markers
from figkit.backend.raster.draw_text import DEFAULT_FONT_FAMILY, aligned_origin, draw_text, text_size
from figkit.colors import RGBA


LOGGER = logging.getLogger(__name__)

OPAQUE_FORMATS = frozenset({".jpg", ".jpeg", ".bmp", ".eps", ".pdf"})


class RasterBackend(GraphicsBackend):
    """Draws into an RGBA numpy canvas; text is rendered with Pillow fonts."""

    def __init__(self, *, font_family: str = DEFAULT_FONT_FAMILY, background: RGBA = (255, 255, 255, 255)) -> None:
        super().__init__()
        self.font_family = font_family
        self.background = background
        self._canvas: np.ndarray | None = None
        self._scale_px = 1.0

    def begin(self, width: int, height: int, window: tuple[float, float]) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("canvas width/height must be > 0")
        self._canvas = new_canvas(width, height, self.background)
        self._scale_px = max(width / window[0], height / window[1])
        LOGGER.debug("raster frame %dx%d", width, height)

    def finish(self) -> None:
        return

    @property
    def canvas(self) -> np.ndarray:
        if self._canvas is None:
            raise RuntimeError("no frame in progress; call begin_frame first")
        return self._canvas

    def rgba(self) -> np.ndarray:
        return self.canvas.copy()

    def image(self) -> Image.Image:
        return Image.fromarray(self.canvas)

    def save(self, path: str | Path) -> None:
        target = Path(path)
        image = self.image()
        if target.suffix.lower() in OPAQUE_FORMATS:
            image = image.convert("RGB")
        image.save(target)
        LOGGER.info("saved figure to %s", target)

    def show(self) -> None:
        self.image().show()

    # -- coordinate helpers ----------------------------------------------

    def _px(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        h = self.canvas.shape[0]
        return np.asarray(x) * self._scale_px, h - np.asarray(y) * self._scale_px

    def _pixel_rect(self, clip: Rect | None) -> PixelRect | None:
        if clip is None:
            return None
        xs, ys = self._px(np.asarray([clip[0], clip[1]]), np.asarray([clip[2], clip[3]]))
        return (
            int(np.floor(min(xs))),
            int(np.ceil(max(xs))),
            int(np.floor(min(ys))),
            int(np.ceil(max(ys))),
        )

    # -- primitives --------------------------------------------------------

    def draw_polyline(self, x, y, *, color, width, linestyle, clip) -> None:
        px, py = self._px(x, y)
        draw_polyline(self.canvas, px, py, color, width=max(1, int(round(width))), linestyle=linestyle, clip=self._pixel_rect(clip))

    def draw_markers(self, x, y, *, colors, size, marker, clip) -> None:
        px, py = self._px(x, y)
        draw_markers(self.canvas, px, py, colors, size=max(1, int(round(size))), marker=marker, clip=self._pixel_rect(clip))

    def fill_polygon(self, x, y, *, color, clip) -> None:
        px, py = self._px(x, y)
        finite = np.isfinite(px) & np.isfinite(py)
        if np.count_nonzero(finite) < 3:
            return
        canvas = self.canvas
        px, py = px[finite], py[finite]
        rect = self._pixel_rect(clip) or (0, canvas.shape[1] - 1, 0, canvas.shape[0] - 1)
        x0 = max(0, rect[0], int(np.floor(px.min())))
        x1 = min(canvas.shape[1] - 1, rect[1], int(np.ceil(px.max())))
        y0 = max(0, rect[2], int(np.floor(py.min())))
        y1 = min(canvas.shape[0] - 1, rect[3], int(np.ceil(py.max())))
        if x1 < x0 or y1 < y0:
            return
        mask_image = Image.new("L", (x1 - x0 + 1, y1 - y0 + 1), 0)
        points = list(zip((px - x0).tolist(), (py - y0).tolist()))
        ImageDraw.Draw(mask_image).polygon(points, fill=255)
        fill_mask(canvas[y0 : y1 + 1, x0 : x1 + 1], np.asarray(mask_image, dtype=np.uint8), color)

    def draw_image(self, box, rgba, *, clip) -> None:
        px, py = self._px(np.asarray([box[0], box[1]]), np.asarray([box[2], box[3]]))
        x0, x1 = int(round(px[0])), int(round(px[1]))
        y_top, y_bottom = int(round(py[1])), int(round(py[0]))
        w, h = x1 - x0, y_bottom - y_top
        if w <= 0 or h <= 0 or rgba.size == 0:
            return
        # Rows arrive bottom to top; the canvas is top to bottom.
        image = Image.fromarray(np.ascontiguousarray(rgba[::-1])).resize((w, h), Image.Resampling.NEAREST)
        patch = np.asarray(image, dtype=np.uint8)
        rect = self._pixel_rect(clip)
        if rect is not None:
            cx0, cx1 = max(x0, rect[0]), min(x1, rect[1] + 1)
            cy0, cy1 = max(y_top, rect[2]), min(y_bottom, rect[3] + 1)
            if cx1 <= cx0 or cy1 <= cy0:
                return
            patch = patch[cy0 - y_top : cy1 - y_top, cx0 - x0 : cx1 - x0]
            x0, y_top = cx0, cy0
        blend_region(self.canvas, x0, y_top, patch)

    def draw_text(self, x, y, text, *, color, height, halign, valign, rotation) -> None:
        size_px = max(1.0, height * self._scale_px)
        w, h = text_size(text, font_family=self.font_family, font_size_px=size_px, rotation=int(rotation))
        px, py = self._px(x, y)
        left, top = aligned_origin(float(px), float(py), w, h, halign, valign)
        draw_text(self.canvas, left, top, text, color, font_family=self.font_family, font_size_px=size_px, rotation=int(rotation))

    def measure_text(self, text: str, height: float) -> tuple[float, float]:
        scale = self._scale_px if self._canvas is not None else 600.0
        size_px = max(1.0, height * scale)
        w, h = text_size(text, font_family=self.font_family, font_size_px=size_px)
        return (w / scale, h / scale)
