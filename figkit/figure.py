from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
import logging

import numpy as np

from figkit.attributes import PlotAttributes
from figkit.display import window_ratio
from figkit.errors import PlotConfigError
from figkit.plotobject import PlotObject


LOGGER = logging.getLogger(__name__)


@dataclass
class Figure:
    """A canvas holding an ordered, never-empty list of plots; the last one is current."""

    width: int = 600
    height: int = 450
    dpi: float = 100.0
    plots: list[PlotObject] = field(default_factory=lambda: [PlotObject()])

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise PlotConfigError("figure width/height must be > 0")
        if not self.plots:
            self.plots.append(PlotObject())
        for plot in self.plots:
            if not plot.geoms:
                plot.window = self.window

    @property
    def window(self) -> tuple[float, float]:
        return window_ratio(self.width, self.height)

    @property
    def current_plot(self) -> PlotObject:
        return self.plots[-1]

    def set_current_plot(self, plot: PlotObject) -> PlotObject:
        self.plots[-1] = plot
        return plot


def subplot_rect(rows: int, cols: int, cells: int | Iterable[int]) -> tuple[float, float, float, float]:
    """Union rectangle of 1-based, row-major grid cells; the first row is on top."""
    if rows < 1 or cols < 1:
        raise PlotConfigError(f"subplot grid must be at least 1x1, got {rows}x{cols}")
    indices = [cells] if isinstance(cells, int) else list(cells)
    if not indices:
        raise PlotConfigError("subplot needs at least one cell index")
    xmin, xmax, ymin, ymax = 1.0, 0.0, 1.0, 0.0
    for i in indices:
        if not 1 <= i <= rows * cols:
            raise PlotConfigError(f"subplot index {i} outside 1..{rows * cols}")
        r = rows - (i - 1) // cols
        c = (i - 1) % cols + 1
        xmin = min(xmin, (c - 1) / cols)
        xmax = max(xmax, c / cols)
        ymin = min(ymin, (r - 1) / rows)
        ymax = max(ymax, r / rows)
    return (xmin, xmax, ymin, ymax)


def _overlaps(a: tuple[float, ...], b: tuple[float, ...]) -> bool:
    return max(a[0], b[0]) < min(a[1], b[1]) and max(a[2], b[2]) < min(a[3], b[3])


def replace_plot(plots: list[PlotObject], plot: PlotObject) -> PlotObject:
    """Remove every plot overlapping ``plot``; an exactly matching one is returned in its place."""
    coords = plot.attributes.subplot
    kept: list[PlotObject] = []
    for existing in plots:
        other = existing.attributes.subplot
        if _overlaps(coords, other):
            if np.allclose(coords, other):
                plot = existing
            LOGGER.debug("subplot %s replaces plot at %s", coords, other)
            continue
        kept.append(existing)
    plots[:] = kept
    return plot


def subplot(fig: Figure, rows: int, cols: int, cells: int | Iterable[int], replace: bool = True) -> PlotObject:
    rect = subplot_rect(rows, cols, cells)
    plot = PlotObject(attributes=PlotAttributes(subplot=rect), window=fig.window)
    if replace:
        plot = replace_plot(fig.plots, plot)
    fig.plots.append(plot)
    return plot
