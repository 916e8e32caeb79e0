from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import numpy as np

from figkit.errors import PlotConfigError


RGBA = tuple[int, int, int, int]

COLOR_SCHEMES = {
    "light": (0xFFFFFF, 0x000000, 0xFF0000, 0x00FF00, 0x0000FF, 0x00FFFF, 0xFFFF00, 0xFF00FF),
    "dark": (0x282C34, 0xD7DAE0, 0xCB4E42, 0x99C27C, 0x85A9FC, 0x5AB6C1, 0xD09A6A, 0xC57BDB),
    "solarizedlight": (0xFDF6E3, 0x657B83, 0xDC322F, 0x859900, 0x268BD2, 0x2AA198, 0xB58900, 0xD33682),
    "solarizeddark": (0x002B36, 0x839496, 0xDC322F, 0x859900, 0x268BD2, 0x2AA198, 0xB58900, 0xD33682),
}
SCHEME_NAMES = ("none", "light", "dark", "solarizedlight", "solarizeddark")

DEFAULT_SERIES = (0x1F77B4, 0xFF7F0E, 0x2CA02C, 0xD62728, 0x9467BD, 0x8C564B, 0xE377C2, 0x17BECF)

NAMED_COLORS = {
    "r": 0xFF0000, "red": 0xFF0000,
    "g": 0x00FF00, "green": 0x00FF00,
    "b": 0x0000FF, "blue": 0x0000FF,
    "c": 0x00FFFF, "cyan": 0x00FFFF,
    "m": 0xFF00FF, "magenta": 0xFF00FF,
    "y": 0xFFFF00, "yellow": 0xFFFF00,
    "k": 0x000000, "black": 0x000000,
    "w": 0xFFFFFF, "white": 0xFFFFFF,
    "gray": 0x808080, "grey": 0x808080,
}

# Anchor colours, linearly interpolated to the requested number of levels.
COLORMAPS: dict[str, tuple[int, ...]] = {
    "uniform": (0xFF0000, 0xFFFF00, 0x00FF00, 0x00FFFF, 0x0000FF, 0xFF00FF),
    "temperature": (0x0000FF, 0xFFFFFF, 0xFF0000),
    "grayscale": (0x000000, 0xFFFFFF),
    "glowing": (0x000000, 0x800000, 0xFF8000, 0xFFFF80),
    "hot": (0x000000, 0xFF0000, 0xFFFF00, 0xFFFFFF),
    "cool": (0x00FFFF, 0xFF00FF),
    "autumn": (0xFF0000, 0xFFFF00),
    "spring": (0xFF00FF, 0xFFFF00),
    "summer": (0x008066, 0xFFFF66),
    "winter": (0x0000FF, 0x00FF80),
    "jet": (0x00007F, 0x0000FF, 0x007FFF, 0x00FFFF, 0x7FFF7F, 0xFFFF00, 0xFF7F00, 0xFF0000, 0x7F0000),
    "coolwarm": (0x3B4CC0, 0xDDDDDD, 0xB40426),
    "viridis": (0x440154, 0x482878, 0x3E4989, 0x31688E, 0x26828E, 0x1F9E89, 0x35B779, 0x6ECE58, 0xB5DE2B, 0xFDE725),
    "inferno": (0x000004, 0x1B0C41, 0x4A0C6B, 0x781C6D, 0xA52C60, 0xCF4446, 0xED6925, 0xFB9B06, 0xF7D13D, 0xFCFFA4),
    "plasma": (0x0D0887, 0x46039F, 0x7201A8, 0x9C179E, 0xBD3786, 0xD8576B, 0xED7953, 0xFB9F3A, 0xFDCA26, 0xF0F921),
    "magma": (0x000004, 0x180F3D, 0x440F76, 0x721F81, 0x9E2F7F, 0xCD4071, 0xF1605D, 0xFD9668, 0xFECA8D, 0xFCFDBF),
}
COLORMAP_NAMES = tuple(COLORMAPS)
DEFAULT_COLORMAP = "viridis"


@dataclass(frozen=True)
class ColorScheme:
    background: RGBA
    foreground: RGBA
    series: tuple[RGBA, ...]

    def series_color(self, index: int) -> RGBA:
        return self.series[index % len(self.series)]


def rgb(code: int) -> RGBA:
    return ((code >> 16) & 0xFF, (code >> 8) & 0xFF, code & 0xFF, 255)


def to_rgba(color: Any, alpha: float = 1.0) -> RGBA:
    """Accept 0xRRGGBB ints, ``#rrggbb`` strings, colour names and 3/4-tuples (0-255 or 0-1 floats)."""
    if isinstance(color, (int, np.integer)) and not isinstance(color, bool):
        r, g, b, a = rgb(int(color))
    elif isinstance(color, str):
        key = color.strip().lower()
        if key.startswith("#") and len(key) in (7, 9):
            try:
                value = int(key[1:], 16)
            except ValueError:
                raise PlotConfigError(f"invalid colour: {color!r}") from None
            if len(key) == 9:
                r, g, b, a = (value >> 24) & 0xFF, (value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF
            else:
                r, g, b, a = rgb(value)
        elif key in NAMED_COLORS:
            r, g, b, a = rgb(NAMED_COLORS[key])
        else:
            raise PlotConfigError(f"unknown colour: {color!r}")
    elif isinstance(color, Sequence) and len(color) in (3, 4):
        values = [float(v) for v in color]
        if all(0.0 <= v <= 1.0 for v in values) and any(isinstance(v, float) for v in color):
            values = [v * 255.0 for v in values]
        r, g, b = (int(round(v)) for v in values[:3])
        a = int(round(values[3])) if len(values) == 4 else 255
    else:
        raise PlotConfigError(f"unsupported colour value: {color!r}")
    a = int(max(0.0, min(1.0, alpha)) * a)
    return (r, g, b, a)


def _scheme_key(scheme: int | str | None) -> str:
    if scheme is None:
        return "none"
    if isinstance(scheme, str):
        key = scheme.lower().replace(" ", "").replace("_", "")
        if key not in SCHEME_NAMES:
            raise PlotConfigError(f"unknown colour scheme: {scheme!r}")
        return key
    index = int(scheme)
    if not 0 <= index < len(SCHEME_NAMES):
        raise PlotConfigError(f"colour scheme index must be in 0..{len(SCHEME_NAMES) - 1}, got {scheme!r}")
    return SCHEME_NAMES[index]


def color_scheme(scheme: int | str | None) -> ColorScheme:
    key = _scheme_key(scheme)
    if key == "none":
        return ColorScheme(rgb(0xFFFFFF), rgb(0x000000), tuple(rgb(c) for c in DEFAULT_SERIES))
    codes = COLOR_SCHEMES[key]
    return ColorScheme(rgb(codes[0]), rgb(codes[1]), tuple(rgb(c) for c in codes[2:]))


def colormap_name(colormap: int | str | None) -> str:
    if colormap is None:
        return DEFAULT_COLORMAP
    if isinstance(colormap, str):
        key = colormap.lower().replace(" ", "").replace("_", "")
        if key == "gray":
            key = "grayscale"
        if key not in COLORMAPS:
            raise PlotConfigError(f"unknown colormap: {colormap!r}")
        return key
    index = int(colormap)
    if not 0 <= index < len(COLORMAP_NAMES):
        raise PlotConfigError(f"colormap index must be in 0..{len(COLORMAP_NAMES) - 1}, got {colormap!r}")
    return COLORMAP_NAMES[index]


@lru_cache(maxsize=64)
def _colormap_table(name: str, levels: int) -> np.ndarray:
    anchors = np.asarray([rgb(c)[:3] for c in COLORMAPS[name]], dtype=np.float64)
    stops = np.linspace(0.0, 1.0, anchors.shape[0])
    t = np.linspace(0.0, 1.0, levels)
    table = np.empty((levels, 3), dtype=np.uint8)
    for ch in range(3):
        table[:, ch] = np.rint(np.interp(t, stops, anchors[:, ch])).astype(np.uint8)
    table.setflags(write=False)
    return table


def colormap_table(colormap: int | str | None, levels: int = 256) -> np.ndarray:
    """``(levels, 3)`` uint8 lookup table for a named or indexed colormap."""
    if levels < 1:
        raise PlotConfigError("colormap levels must be >= 1")
    return _colormap_table(colormap_name(colormap), int(levels))


def map_colors(values: np.ndarray, limits: tuple[float, float], table: np.ndarray, alpha: float = 1.0) -> np.ndarray:
    """Map ``values`` into ``table`` over ``limits``; returns ``(n, 4)`` uint8 RGBA, NaN fully transparent."""
    values = np.asarray(values, dtype=np.float64)
    lo, hi = limits
    span = hi - lo if hi > lo else 1.0
    t = np.clip((values - lo) / span, 0.0, 1.0)
    index = np.rint(np.nan_to_num(t) * (table.shape[0] - 1)).astype(np.int64)
    out = np.empty(values.shape + (4,), dtype=np.uint8)
    out[..., :3] = table[index]
    out[..., 3] = np.where(np.isnan(values), 0, int(round(255 * max(0.0, min(1.0, alpha)))))
    return out
