from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
import math

from figkit.errors import PlotConfigError
from figkit.geometry import Geometry, geometry_kind


Rect = tuple[float, float, float, float]
TextMeasure = Callable[[str, float], tuple[float, float]]

LEGEND_LOCATIONS = {
    "none": 0,
    "upper right": 1,
    "upper left": 2,
    "lower left": 3,
    "lower right": 4,
    "right": 5,
    "center left": 6,
    "center right": 7,
    "lower center": 8,
    "upper center": 9,
    "center": 10,
    "outer upper right": 11,
    "outer center right": 12,
    "outer lower right": 13,
}

LEFT_LOCATIONS = frozenset({2, 3, 6})
CENTER_H_LOCATIONS = frozenset({8, 9, 10})
RIGHT_OUT_LOCATIONS = frozenset({11, 12, 13})
BOTTOM_LOCATIONS = frozenset({3, 4, 8})
CENTER_V_LOCATIONS = frozenset({5, 6, 7, 10, 12})

START_X = 0.08
START_Y = -0.015
ROW_GAP = 0.03
COLUMN_GAP = 0.08
GUIDE_HALF_WIDTH = 0.03


@dataclass(frozen=True)
class Legend:
    size: tuple[float, float] = (0.0, 0.0)
    cursors: tuple[tuple[float, float], ...] = ()

    @property
    def width(self) -> float:
        return self.size[0]

    @property
    def height(self) -> float:
        return self.size[1]

    @property
    def is_empty(self) -> bool:
        return not self.cursors


EMPTY_LEGEND = Legend()


def legend_location(location: int | str | None) -> int:
    if location is None:
        return 0
    if isinstance(location, str):
        key = location.strip().lower().replace("_", " ")
        if key not in LEGEND_LOCATIONS:
            raise PlotConfigError(f"unknown legend location: {location!r}")
        return LEGEND_LOCATIONS[key]
    code = int(location)
    if not 0 <= code <= 13:
        raise PlotConfigError(f"legend location must be in 0..13, got {location!r}")
    return code


def char_height(frame: Rect) -> float:
    diag = math.hypot(frame[1] - frame[0], frame[3] - frame[2])
    return max(0.018 * diag, 0.012)


def estimate_text_extent(text: str, height: float) -> tuple[float, float]:
    return (0.6 * height * len(text), height)


def legend_items(geoms: Sequence[Geometry]) -> list[Geometry]:
    return [g for g in geoms if g.label and geometry_kind(g.kind).legend]


def build_legend(
    geoms: Sequence[Geometry],
    reference_frame: Rect,
    max_rows: int | None = None,
    measure: TextMeasure | None = None,
) -> Legend:
    items = legend_items(geoms)
    if not items:
        return EMPTY_LEGEND
    measure = measure or estimate_text_extent
    height = char_height(reference_frame)
    limit = max_rows if max_rows is not None and max_rows > 0 else len(items)

    x, y = START_X, START_Y
    w = h = 0.0
    label_width = 0.0
    row = 0
    cursors: list[tuple[float, float]] = []
    for geom in items:
        row += 1
        if row > limit:
            h = max(h, -y)
            y = START_Y
            x += label_width + COLUMN_GAP
            label_width = 0.0
            row = 1
        text_w, text_h = measure(geom.label, height)
        label_width = max(label_width, text_w)
        dy = max(text_h - ROW_GAP, 0.0)
        cursors.append((x, y - dy))
        y -= dy + ROW_GAP
    h = max(h, -y)
    w = x + label_width
    return Legend(size=(w, h), cursors=tuple(cursors))


def legend_box(frame: Rect, size: tuple[float, float], location: int) -> Rect:
    """Place a legend of ``size`` relative to ``frame``; returns ``(x0, x1, y0, y1)``."""
    w, h = size
    if location in RIGHT_OUT_LOCATIONS:
        px = frame[1] + 0.01
    elif location in CENTER_H_LOCATIONS:
        px = 0.5 * (frame[0] + frame[1] - w)
    elif location in LEFT_LOCATIONS:
        px = frame[0] + 0.03
    else:
        px = frame[1] - 0.03 - w
    if location in CENTER_V_LOCATIONS:
        py = 0.5 * (frame[2] + frame[3] + h)
    elif location == 13:
        py = frame[2] + h
    elif location in BOTTOM_LOCATIONS:
        py = frame[2] + h + 0.03
    elif location == 11:
        py = frame[3]
    else:
        py = frame[3] - 0.03
    return (px, px + w, py - h, py)
