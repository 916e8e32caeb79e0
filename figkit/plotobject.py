from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import logging

from figkit.attributes import PlotAttributes
from figkit.axes import Axes
from figkit.colorbar import EMPTY_COLORBAR, Colorbar, build_colorbar
from figkit.geometry import Geometry
from figkit.legend import EMPTY_LEGEND, RIGHT_OUT_LOCATIONS, Legend, TextMeasure, build_legend
from figkit.viewport import EMPTY_VIEWPORT, Viewport, compute_viewport


LOGGER = logging.getLogger(__name__)

COLORBAR_MARGIN = 0.1


@dataclass
class PlotObject:
    viewport: Viewport = EMPTY_VIEWPORT
    axes: Axes = field(default_factory=Axes)
    geoms: list[Geometry] = field(default_factory=list)
    legend: Legend = EMPTY_LEGEND
    colorbar: Colorbar = EMPTY_COLORBAR
    attributes: PlotAttributes = field(default_factory=PlotAttributes)
    window: tuple[float, float] = (1.0, 1.0)


def plot_margins(legend: Legend, colorbar: Colorbar, attributes: PlotAttributes) -> tuple[float, float, float, float]:
    right = 0.0
    if attributes.colorbar and not colorbar.is_empty:
        right += COLORBAR_MARGIN
    if not legend.is_empty and attributes.location in RIGHT_OUT_LOCATIONS:
        right += legend.width
    return (0.0, right, 0.0, 0.0)


def layout_viewport(
    legend: Legend,
    colorbar: Colorbar,
    attributes: PlotAttributes,
    window: tuple[float, float] = (1.0, 1.0),
) -> Viewport:
    return compute_viewport(
        attributes.subplot,
        frame=not attributes.noframe,
        ratio=attributes.ratio,
        margins=plot_margins(legend, colorbar, attributes),
        window=window,
    )


def compose_plot(
    axes: Axes,
    geoms: Sequence[Geometry],
    legend: Legend | None = None,
    colorbar: Colorbar | None = None,
    attributes: PlotAttributes | None = None,
    *,
    window: tuple[float, float] = (1.0, 1.0),
    measure: TextMeasure | None = None,
) -> PlotObject:
    attributes = attributes or PlotAttributes()
    geoms = list(geoms)
    if legend is None:
        legend = build_legend(geoms, _reference_frame(attributes, window), measure=measure)
    if colorbar is None:
        colorbar = build_colorbar(axes)
    viewport = layout_viewport(legend, colorbar, attributes, window)
    LOGGER.debug("composed %s plot with %d geometries, inner=%s", axes.kind, len(geoms), viewport.inner)
    return PlotObject(
        viewport=viewport,
        axes=axes,
        geoms=geoms,
        legend=legend,
        colorbar=colorbar,
        attributes=attributes,
        window=window,
    )


def refresh_layout(
    plot: PlotObject,
    *,
    window: tuple[float, float] | None = None,
    measure: TextMeasure | None = None,
) -> PlotObject:
    """Rebuild legend, colorbar and viewport after geometries or attributes changed.

    Without ``window`` the ratio recorded when the plot was composed is kept.
    """
    if window is not None:
        plot.window = window
    window = plot.window
    plot.legend = build_legend(plot.geoms, _reference_frame(plot.attributes, window), measure=measure)
    plot.colorbar = build_colorbar(plot.axes)
    plot.viewport = layout_viewport(plot.legend, plot.colorbar, plot.attributes, window)
    return plot


def _reference_frame(attributes: PlotAttributes, window: tuple[float, float]) -> tuple[float, float, float, float]:
    return compute_viewport(attributes.subplot, frame=not attributes.noframe, window=window).inner
