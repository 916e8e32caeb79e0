from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import logging

from figkit.errors import PlotConfigError


LOGGER = logging.getLogger(__name__)

Rect = tuple[float, float, float, float]

UNIT_SQUARE: Rect = (0.0, 1.0, 0.0, 1.0)
FRAME_MARGINS = (0.375, 0.425)
NO_FRAME_MARGINS = (0.5, 0.5)


@dataclass(frozen=True)
class Viewport:
    outer: Rect = (0.0, 0.0, 0.0, 0.0)
    inner: Rect = (0.0, 0.0, 0.0, 0.0)

    @property
    def is_empty(self) -> bool:
        return self.outer == (0.0, 0.0, 0.0, 0.0) and self.inner == (0.0, 0.0, 0.0, 0.0)


EMPTY_VIEWPORT = Viewport()


def _as_rect(values: Sequence[float], name: str) -> Rect:
    if len(values) != 4:
        raise PlotConfigError(f"{name} must have 4 values (x0, x1, y0, y1), got {len(values)}")
    x0, x1, y0, y1 = (float(v) for v in values)
    if x0 > x1 or y0 > y1:
        raise PlotConfigError(f"{name} must satisfy x0 <= x1 and y0 <= y1, got {(x0, x1, y0, y1)}")
    return (x0, x1, y0, y1)


def set_ratio(box: Rect, ratio: float, margins: Sequence[float] = (0.0, 0.0, 0.0, 0.0)) -> Rect:
    """Shrink ``box`` symmetrically so its area net of ``margins`` has width/height ``ratio``."""
    if ratio <= 0:
        raise PlotConfigError(f"aspect ratio must be > 0, got {ratio}")
    x0, x1, y0, y1 = box
    left, right, bottom, top = margins
    w = (x1 - x0) - left - right
    h = (y1 - y0) - bottom - top
    if w <= 0 or h <= 0:
        return box
    if w / h > ratio:
        d = 0.5 * (w - h * ratio)
        x0, x1 = x0 + d, x1 - d
    else:
        d = 0.5 * (h - w / ratio)
        y0, y1 = y0 + d, y1 - d
    return (x0, x1, y0, y1)


def _apply_margins(box: Rect, margins: Sequence[float]) -> Rect:
    x0, x1, y0, y1 = box
    left, right, bottom, top = (max(0.0, float(m)) for m in margins)
    width = x1 - x0
    height = y1 - y0
    if left + right > width:
        LOGGER.warning("horizontal margins %.3f exceed plot width %.3f; clamping", left + right, width)
        scale = width / (left + right) if left + right > 0 else 0.0
        left, right = left * scale, right * scale
    if bottom + top > height:
        LOGGER.warning("vertical margins %.3f exceed plot height %.3f; clamping", bottom + top, height)
        scale = height / (bottom + top) if bottom + top > 0 else 0.0
        bottom, top = bottom * scale, top * scale
    return (x0 + left, x1 - right, y0 + bottom, y1 - top)


def compute_viewport(
    subplot: Sequence[float] = UNIT_SQUARE,
    frame: bool = True,
    ratio: float | None = None,
    margins: Sequence[float] | None = None,
    window: tuple[float, float] = (1.0, 1.0),
) -> Viewport:
    x0, x1, y0, y1 = _as_rect(subplot, "subplot")
    rw, rh = window
    outer = (x0 * rw, x1 * rw, y0 * rh, y1 * rh)
    low, high = FRAME_MARGINS if frame else NO_FRAME_MARGINS
    xc = 0.5 * (outer[0] + outer[1])
    yc = 0.5 * (outer[2] + outer[3])
    w = outer[1] - outer[0]
    h = outer[3] - outer[2]
    inner = (xc - low * w, xc + high * w, yc - low * h, yc + high * h)
    margins = tuple(margins) if margins is not None else (0.0, 0.0, 0.0, 0.0)
    if len(margins) != 4:
        raise PlotConfigError("margins must have 4 values (left, right, bottom, top)")
    if ratio is not None:
        inner = set_ratio(inner, ratio, margins)
    inner = _apply_margins(inner, margins)
    return Viewport(outer=outer, inner=inner)
