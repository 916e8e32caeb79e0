from __future__ import annotations

import numpy as np

from figkit.backend.raster.canvas import PixelRect, draw_pixel
from figkit.colors import RGBA


def draw_markers(
    dst: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
    colors: np.ndarray,
    size: int = 1,
    marker: str = "o",
    clip: PixelRect | None = None,
) -> None:
    radius = max(0, size // 2)
    for i, (x, y) in enumerate(zip(xs.tolist(), ys.tolist(), strict=False)):
        if not (np.isfinite(x) and np.isfinite(y)):
            continue
        cx, cy = int(round(x)), int(round(y))
        if clip is not None and not (clip[0] <= cx <= clip[1] and clip[2] <= cy <= clip[3]):
            continue
        color = tuple(int(v) for v in colors[i])
        _draw_marker(dst, cx, cy, color=color, radius=radius, marker=marker)


def _draw_marker(dst: np.ndarray, x: int, y: int, color: RGBA, radius: int, marker: str) -> None:
    if marker in (".", ","):
        radius = min(radius, 1)
    for yy in range(-radius, radius + 1):
        for xx in range(-radius, radius + 1):
            if _covers(marker, xx, yy, radius):
                draw_pixel(dst, x + xx, y + yy, color)


def _covers(marker: str, dx: int, dy: int, radius: int) -> bool:
    if marker == "+":
        return dx == 0 or dy == 0
    if marker == "x":
        return abs(dx) == abs(dy)
    if marker in ("d", "D"):
        return abs(dx) + abs(dy) <= radius
    if marker == "^":
        return 2 * abs(dx) <= dy + radius
    if marker == "v":
        return 2 * abs(dx) <= radius - dy
    if marker == "<":
        return 2 * abs(dy) <= dx + radius
    if marker == ">":
        return 2 * abs(dy) <= radius - dx
    if marker in ("s", "h", "p", "*"):
        return True
    return dx * dx + dy * dy <= radius * radius + radius
