from __future__ import annotations

import numpy as np
import torch

from figkit.backend.base import GraphicsBackend
from figkit.figure import Figure
from figkit.render import render_figure


def _check_frame(frame_rgba: np.ndarray) -> None:
    if frame_rgba.dtype != np.uint8:
        raise ValueError("frame_rgba must be uint8")
    if frame_rgba.ndim != 3 or frame_rgba.shape[2] != 4:
        raise ValueError("frame_rgba must have shape (H, W, 4)")


def frame_to_tensor(frame_rgba: np.ndarray) -> torch.Tensor:
    _check_frame(frame_rgba)
    return torch.from_numpy(np.ascontiguousarray(frame_rgba))


def frame_tensor(fig: Figure, backend: GraphicsBackend | None = None) -> torch.Tensor:
    """Render ``fig`` and return the frame as a ``(H, W, 4)`` uint8 tensor."""
    return frame_to_tensor(render_figure(fig, backend).rgba())


def crop_frame_tensor(frame_rgba: np.ndarray, x: int, y: int, width: int, height: int) -> torch.Tensor:
    _check_frame(frame_rgba)
    if width <= 0 or height <= 0:
        raise ValueError("rect width/height must be > 0")
    if x < 0 or y < 0:
        raise ValueError("rect x/y must be >= 0")
    if x + width > frame_rgba.shape[1] or y + height > frame_rgba.shape[0]:
        raise ValueError("rect exceeds frame bounds")
    return torch.from_numpy(np.ascontiguousarray(frame_rgba[y : y + height, x : x + width]))
