from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
import math
from pathlib import Path

import numpy as np

from figkit.colors import RGBA
from figkit.scales import FLIP_X, FLIP_Y, X_LOG, Y_LOG, Z_LOG, FLIP_Z


Rect = tuple[float, float, float, float]


@dataclass(frozen=True)
class Space3D:
    zmin: float
    zmax: float
    rotation: float
    tilt: float


@dataclass(frozen=True)
class BackendState:
    viewport: Rect = (0.0, 1.0, 0.0, 1.0)
    window: Rect = (0.0, 1.0, 0.0, 1.0)
    scale: int = 0
    space: Space3D | None = None
    transparency: float = 1.0
    clip: bool = True


class GraphicsBackend(ABC):
    """Mark-making surface used by the renderer.

    Subclasses implement the ``draw_*``/``fill_*`` primitives in normalized
    device coordinates (NDC). This base class owns the viewport/window/scale
    state and converts world coordinates (WC) before delegating.
    """

    def __init__(self) -> None:
        self._state = BackendState()
        self._stack: list[BackendState] = []
        self._frame_size = (0, 0)
        self._frame_window = (1.0, 1.0)

    # -- frame ---------------------------------------------------------

    @abstractmethod
    def begin(self, width: int, height: int, window: tuple[float, float]) -> None:
        raise NotImplementedError

    @abstractmethod
    def finish(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def rgba(self) -> np.ndarray:
        raise NotImplementedError

    def save(self, path: str | Path) -> None:
        raise NotImplementedError(f"{type(self).__name__} cannot write files")

    def begin_frame(self, width: int, height: int, window: tuple[float, float]) -> None:
        self._state = BackendState()
        self._stack.clear()
        self._frame_size = (int(width), int(height))
        self._frame_window = window
        self.begin(width, height, window)

    def resolution(self) -> tuple[int, int]:
        return self._frame_size

    # -- NDC primitives --------------------------------------------------

    @abstractmethod
    def draw_polyline(
        self, x: np.ndarray, y: np.ndarray, *, color: RGBA, width: float, linestyle: str, clip: Rect | None
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def draw_markers(
        self, x: np.ndarray, y: np.ndarray, *, colors: np.ndarray, size: float, marker: str, clip: Rect | None
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def fill_polygon(self, x: np.ndarray, y: np.ndarray, *, color: RGBA, clip: Rect | None) -> None:
        raise NotImplementedError

    @abstractmethod
    def draw_image(self, box: Rect, rgba: np.ndarray, *, clip: Rect | None) -> None:
        """Draw ``rgba`` (rows bottom to top) stretched over ``box``."""
        raise NotImplementedError

    @abstractmethod
    def draw_text(
        self, x: float, y: float, text: str, *, color: RGBA, height: float, halign: str, valign: str, rotation: int
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def measure_text(self, text: str, height: float) -> tuple[float, float]:
        raise NotImplementedError

    # -- state -----------------------------------------------------------

    @property
    def state(self) -> BackendState:
        return self._state

    def save_state(self) -> None:
        self._stack.append(self._state)

    def restore_state(self) -> None:
        if self._stack:
            self._state = self._stack.pop()

    def set_viewport(self, x0: float, x1: float, y0: float, y1: float) -> None:
        self._state = replace(self._state, viewport=(x0, x1, y0, y1))

    def inq_viewport(self) -> Rect:
        return self._state.viewport

    def set_window(self, x0: float, x1: float, y0: float, y1: float) -> None:
        self._state = replace(self._state, window=(x0, x1, y0, y1))

    def inq_window(self) -> Rect:
        return self._state.window

    def set_scale(self, scale: int) -> None:
        self._state = replace(self._state, scale=int(scale))

    def inq_scale(self) -> int:
        return self._state.scale

    def set_space(self, zmin: float, zmax: float, rotation: float, tilt: float) -> None:
        self._state = replace(self._state, space=Space3D(zmin, zmax, rotation, tilt))

    def set_transparency(self, alpha: float) -> None:
        self._state = replace(self._state, transparency=max(0.0, min(1.0, float(alpha))))

    def set_clip(self, enabled: bool) -> None:
        self._state = replace(self._state, clip=bool(enabled))

    # -- coordinate transforms ------------------------------------------

    def to_ndc(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        st = self._state
        nx = _axis_to_unit(np.asarray(x, dtype=np.float64), st.window[0], st.window[1], bool(st.scale & X_LOG), bool(st.scale & FLIP_X))
        ny = _axis_to_unit(np.asarray(y, dtype=np.float64), st.window[2], st.window[3], bool(st.scale & Y_LOG), bool(st.scale & FLIP_Y))
        vx0, vx1, vy0, vy1 = st.viewport
        return vx0 + nx * (vx1 - vx0), vy0 + ny * (vy1 - vy0)

    def project3d(self, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Orthographic projection of WC points into the viewport; returns NDC x, y and depth."""
        st = self._state
        space = st.space or Space3D(0.0, 1.0, 40.0, 70.0)
        u = 2.0 * _axis_to_unit(np.asarray(x, dtype=np.float64), st.window[0], st.window[1], bool(st.scale & X_LOG), bool(st.scale & FLIP_X)) - 1.0
        v = 2.0 * _axis_to_unit(np.asarray(y, dtype=np.float64), st.window[2], st.window[3], bool(st.scale & Y_LOG), bool(st.scale & FLIP_Y)) - 1.0
        w = 2.0 * _axis_to_unit(np.asarray(z, dtype=np.float64), space.zmin, space.zmax, bool(st.scale & Z_LOG), bool(st.scale & FLIP_Z)) - 1.0
        rot = math.radians(space.rotation)
        tilt = math.radians(space.tilt)
        # Azimuth about the vertical axis, then elevation towards the viewer.
        a = u * math.cos(rot) - v * math.sin(rot)
        b = u * math.sin(rot) + v * math.cos(rot)
        px = a
        py = w * math.sin(tilt) + b * math.cos(tilt)
        depth = b * math.sin(tilt) - w * math.cos(tilt)
        vx0, vx1, vy0, vy1 = st.viewport
        extent = math.sqrt(3.0)
        return (
            vx0 + (px / extent + 1.0) * 0.5 * (vx1 - vx0),
            vy0 + (py / extent + 1.0) * 0.5 * (vy1 - vy0),
            depth,
        )

    def _clip_rect(self, ndc: bool) -> Rect | None:
        return None if ndc or not self._state.clip else self._state.viewport

    def _alpha(self, color: RGBA) -> RGBA:
        t = self._state.transparency
        if t >= 1.0:
            return color
        return (color[0], color[1], color[2], int(color[3] * t))

    # -- WC wrappers -----------------------------------------------------

    def polyline(self, x, y, *, color: RGBA, width: float = 1.0, linestyle: str = "-", ndc: bool = False) -> None:
        if not ndc:
            x, y = self.to_ndc(x, y)
        self.draw_polyline(
            np.asarray(x, dtype=np.float64),
            np.asarray(y, dtype=np.float64),
            color=self._alpha(color),
            width=width,
            linestyle=linestyle,
            clip=self._clip_rect(ndc),
        )

    def polymarker(self, x, y, *, color: RGBA | np.ndarray, size: float = 1.0, marker: str = "o", ndc: bool = False) -> None:
        if not ndc:
            x, y = self.to_ndc(x, y)
        x = np.asarray(x, dtype=np.float64)
        colors = np.asarray(color, dtype=np.uint8)
        if colors.ndim == 1:
            colors = np.tile(np.asarray(self._alpha(tuple(int(v) for v in colors)), dtype=np.uint8), (x.size, 1))
        elif self._state.transparency < 1.0:
            colors = colors.copy()
            colors[:, 3] = (colors[:, 3] * self._state.transparency).astype(np.uint8)
        self.draw_markers(x, np.asarray(y, dtype=np.float64), colors=colors, size=size, marker=marker, clip=self._clip_rect(ndc))

    def fillarea(self, x, y, *, color: RGBA, ndc: bool = False) -> None:
        if not ndc:
            x, y = self.to_ndc(x, y)
        self.fill_polygon(np.asarray(x, dtype=np.float64), np.asarray(y, dtype=np.float64), color=self._alpha(color), clip=self._clip_rect(ndc))

    def fillrect(self, x0: float, x1: float, y0: float, y1: float, *, color: RGBA, ndc: bool = False) -> None:
        self.fillarea([x0, x1, x1, x0], [y0, y0, y1, y1], color=color, ndc=ndc)

    def drawrect(self, x0: float, x1: float, y0: float, y1: float, *, color: RGBA, width: float = 1.0, ndc: bool = False) -> None:
        self.polyline([x0, x1, x1, x0, x0], [y0, y0, y1, y1, y0], color=color, width=width, ndc=ndc)

    def cellarray(self, x0: float, x1: float, y0: float, y1: float, rgba: np.ndarray, *, ndc: bool = False) -> None:
        if not ndc:
            xs, ys = self.to_ndc(np.asarray([x0, x1]), np.asarray([y0, y1]))
            x0, x1, y0, y1 = float(xs[0]), float(xs[1]), float(ys[0]), float(ys[1])
        # A flipped axis reverses the box; flip the image to match.
        if x1 < x0:
            x0, x1 = x1, x0
            rgba = rgba[:, ::-1]
        if y1 < y0:
            y0, y1 = y1, y0
            rgba = rgba[::-1]
        self.draw_image((x0, x1, y0, y1), np.ascontiguousarray(rgba), clip=self._clip_rect(ndc))

    def polyline3d(self, x, y, z, *, color: RGBA, width: float = 1.0, linestyle: str = "-") -> None:
        px, py, _ = self.project3d(x, y, z)
        self.draw_polyline(px, py, color=self._alpha(color), width=width, linestyle=linestyle, clip=None)

    def polymarker3d(self, x, y, z, *, color: RGBA | np.ndarray, size: float = 1.0, marker: str = "o") -> None:
        px, py, _ = self.project3d(x, y, z)
        self.polymarker(px, py, color=color, size=size, marker=marker, ndc=True)

    def text(
        self,
        x: float,
        y: float,
        text: str,
        *,
        color: RGBA = (0, 0, 0, 255),
        height: float = 0.018,
        halign: str = "left",
        valign: str = "base",
        rotation: int = 0,
    ) -> None:
        if text:
            self.draw_text(x, y, text, color=color, height=height, halign=halign, valign=valign, rotation=rotation)

    def text_extent(self, text: str, height: float = 0.018) -> tuple[float, float]:
        return self.measure_text(text, height)


def _axis_to_unit(values: np.ndarray, lo: float, hi: float, log: bool, flip: bool) -> np.ndarray:
    if log:
        with np.errstate(divide="ignore", invalid="ignore"):
            values = np.where(values > 0, np.log10(np.where(values > 0, values, 1.0)), np.nan)
        lo = math.log10(lo) if lo > 0 else math.nan
        hi = math.log10(hi) if hi > 0 else math.nan
    span = hi - lo
    if not span or not math.isfinite(span):
        out = np.full(values.shape, 0.5)
    else:
        out = (values - lo) / span
    return 1.0 - out if flip else out
