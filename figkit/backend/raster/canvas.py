from __future__ import annotations

import numpy as np

from figkit.colors import RGBA


PixelRect = tuple[int, int, int, int]


def new_canvas(width: int, height: int, color: RGBA = (255, 255, 255, 255)) -> np.ndarray:
    canvas = np.empty((height, width, 4), dtype=np.uint8)
    canvas[:, :] = np.asarray(color, dtype=np.uint8)
    return canvas


def blend_region(dst: np.ndarray, x0: int, y0: int, src: np.ndarray, mask: np.ndarray | None = None) -> None:
    """Alpha-composite ``src`` (H, W, 4) onto ``dst`` at ``(x0, y0)``, optionally limited by a boolean mask."""
    h, w, _ = src.shape
    xa, ya = max(0, x0), max(0, y0)
    xb, yb = min(dst.shape[1], x0 + w), min(dst.shape[0], y0 + h)
    if xa >= xb or ya >= yb:
        return
    view = dst[ya:yb, xa:xb]
    patch = src[ya - y0 : yb - y0, xa - x0 : xb - x0]
    alpha = patch[:, :, 3:4].astype(np.float32) / 255.0
    if mask is not None:
        alpha = alpha * mask[ya - y0 : yb - y0, xa - x0 : xb - x0, None]
    inv = 1.0 - alpha
    view[:, :, :3] = (patch[:, :, :3] * alpha + view[:, :, :3] * inv).astype(np.uint8)
    view[:, :, 3] = np.maximum(view[:, :, 3], (alpha[:, :, 0] * 255).astype(np.uint8))


def draw_pixel(dst: np.ndarray, x: int, y: int, color: RGBA, clip: PixelRect | None = None) -> None:
    if clip is not None and not (clip[0] <= x <= clip[1] and clip[2] <= y <= clip[3]):
        return
    if y < 0 or y >= dst.shape[0] or x < 0 or x >= dst.shape[1]:
        return
    a = color[3] / 255.0
    inv = 1.0 - a
    current = dst[y, x, :3].astype(np.float32)
    dst[y, x, 0:3] = (np.asarray(color[0:3], dtype=np.float32) * a + current * inv).astype(np.uint8)
    dst[y, x, 3] = max(int(dst[y, x, 3]), color[3])


def fill_mask(dst: np.ndarray, mask: np.ndarray, color: RGBA) -> None:
    """Blend a solid colour wherever the (H, W) uint8 coverage ``mask`` is set."""
    cov = mask.astype(np.float32) / 255.0 * (color[3] / 255.0)
    if not np.any(cov > 0):
        return
    rgb = np.asarray(color[:3], dtype=np.float32)
    dst[:, :, :3] = (rgb * cov[:, :, None] + dst[:, :, :3] * (1.0 - cov[:, :, None])).astype(np.uint8)
    dst[:, :, 3] = np.maximum(dst[:, :, 3], (cov * 255).astype(np.uint8))
