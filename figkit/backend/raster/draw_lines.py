from __future__ import annotations

import numpy as np

from figkit.backend.raster.canvas import PixelRect, draw_pixel
from figkit.colors import RGBA


DASH_PATTERNS = {
    "-": (),
    "--": (8, 5),
    ":": (2, 3),
    "-.": (8, 3, 2, 3),
}


def draw_polyline(
    dst: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
    color: RGBA,
    width: int = 1,
    linestyle: str = "-",
    clip: PixelRect | None = None,
) -> None:
    """Draw connected segments; NaN coordinates break the line."""
    if xs.size < 2:
        return
    bounds = clip if clip is not None else (0, dst.shape[1] - 1, 0, dst.shape[0] - 1)
    pattern = DASH_PATTERNS.get(linestyle, ())
    phase = 0
    for i in range(xs.size - 1):
        x0, y0, x1, y1 = float(xs[i]), float(ys[i]), float(xs[i + 1]), float(ys[i + 1])
        if not np.isfinite([x0, y0, x1, y1]).all():
            continue
        clipped = clip_segment(x0, y0, x1, y1, bounds)
        if clipped is None:
            continue
        phase = _draw_line_segment(
            dst, *(int(round(v)) for v in clipped), color=color, width=width, pattern=pattern, phase=phase, clip=clip
        )


def clip_segment(
    x0: float, y0: float, x1: float, y1: float, rect: PixelRect
) -> tuple[float, float, float, float] | None:
    """Liang-Barsky clipping of a segment to ``rect`` (x0, x1, y0, y1), inclusive."""
    dx, dy = x1 - x0, y1 - y0
    t0, t1 = 0.0, 1.0
    for p, q in ((-dx, x0 - rect[0]), (dx, rect[1] - x0), (-dy, y0 - rect[2]), (dy, rect[3] - y0)):
        if p == 0:
            if q < 0:
                return None
            continue
        t = q / p
        if p < 0:
            t0 = max(t0, t)
        else:
            t1 = min(t1, t)
        if t0 > t1:
            return None
    return (x0 + t0 * dx, y0 + t0 * dy, x0 + t1 * dx, y0 + t1 * dy)


def _draw_line_segment(
    dst: np.ndarray,
    x0: int,
    y0: int,
    x1: int,
    y1: int,
    *,
    color: RGBA,
    width: int,
    pattern: tuple[int, ...],
    phase: int,
    clip: PixelRect | None,
) -> int:
    dx = abs(x1 - x0)
    sx = 1 if x0 < x1 else -1
    dy = -abs(y1 - y0)
    sy = 1 if y0 < y1 else -1
    err = dx + dy
    period = sum(pattern)

    while True:
        if not period or _pattern_on(pattern, phase % period):
            _draw_square_brush(dst, x0, y0, color=color, width=width, clip=clip)
        phase += 1
        if x0 == x1 and y0 == y1:
            break
        e2 = 2 * err
        if e2 >= dy:
            err += dy
            x0 += sx
        if e2 <= dx:
            err += dx
            y0 += sy
    return phase


def _pattern_on(pattern: tuple[int, ...], offset: int) -> bool:
    for i, run in enumerate(pattern):
        if offset < run:
            return i % 2 == 0
        offset -= run
    return True


def _draw_square_brush(dst: np.ndarray, x: int, y: int, color: RGBA, width: int, clip: PixelRect | None) -> None:
    radius = max(0, width // 2)
    if radius == 0:
        draw_pixel(dst, x, y, color, clip)
        return
    for yy in range(y - radius, y + radius + 1):
        for xx in range(x - radius, x + radius + 1):
            draw_pixel(dst, xx, yy, color, clip)
