from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
import logging
from typing import Any

import numpy as np

from figkit.adapters.normalize import coerce_numeric, is_array_like, resolve_column
from figkit.attributes import PlotAttributes
from figkit.axes import build_axes
from figkit.errors import PlotConfigError, PlotDataError
from figkit.figure import Figure
from figkit.geometry import GEOMETRY_ATTRIBUTE_KEYS, Geometry, make_geometries
from figkit.plotobject import PlotObject, compose_plot
from figkit.transforms import (
    bar_coordinates,
    contour_levels,
    histogram_bars,
    polar_histogram_bars,
    step_position,
)


LOGGER = logging.getLogger(__name__)

Transform = Callable[[list[Any], dict[str, Any]], "Prepared"]
Finalize = Callable[[list[Geometry], dict[str, Any]], dict[str, Any]]


@dataclass
class Prepared:
    """Arguments after a transform, plus attributes it derived from the data."""

    args: list[Any]
    attributes: dict[str, Any] = field(default_factory=dict)
    geometry_attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PlotFunctionSpec:
    name: str
    geometry: str
    axes: str = "cartesian2d"
    transform: Transform | None = None
    options: Mapping[str, Any] = field(default_factory=dict)
    defaults: Mapping[str, Any] = field(default_factory=dict)
    finalize: Finalize | None = None
    hold: bool = False
    doc: str = ""


def _split_kwargs(spec: PlotFunctionSpec, kwargs: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any], dict[str, Any]]:
    geometry: dict[str, Any] = {}
    options = dict(spec.options)
    attributes: dict[str, Any] = {}
    plot_keys = PlotAttributes.keys()
    unknown = []
    for key, value in kwargs.items():
        if key in spec.options:
            options[key] = value
        elif key in GEOMETRY_ATTRIBUTE_KEYS:
            geometry[key] = value
        elif key in plot_keys:
            attributes[key] = value
        else:
            unknown.append(key)
    if unknown:
        raise PlotConfigError(f"{spec.name}: unknown keyword argument(s): {', '.join(sorted(unknown))}")
    return geometry, options, attributes


def _resolve_data(args: Sequence[Any], data: Any) -> list[Any]:
    out = []
    for i, arg in enumerate(args):
        is_last_str = i == len(args) - 1 and isinstance(arg, str)
        if data is not None and isinstance(arg, str) and not (is_last_str and arg not in getattr(data, "columns", ())):
            out.append(resolve_column(arg, data, label=f"argument {i + 1}"))
        else:
            out.append(arg)
    return out


def plot_into(spec: PlotFunctionSpec, fig: Figure, /, *args: Any, **kwargs: Any) -> PlotObject:
    """Create geometries for ``spec`` from ``args`` and compose them into the figure's current plot."""
    data = kwargs.pop("data", None)
    linespec = kwargs.pop("spec", "")
    label = kwargs.pop("label", "")
    geometry_kw, options, attribute_kw = _split_kwargs(spec, kwargs)

    prepared = Prepared(args=_resolve_data(args, data))
    if spec.transform is not None:
        # Transforms also see the plot keywords, e.g. log axes.
        prepared = spec.transform(prepared.args, {**attribute_kw, **options})
    geometry_kw.update(prepared.geometry_attributes)
    geoms = make_geometries(spec.geometry, *prepared.args, spec=linespec, label=label, **geometry_kw)
    derived = dict(prepared.attributes)
    if spec.finalize is not None:
        derived.update(spec.finalize(geoms, options))

    current = fig.current_plot
    holding = spec.hold or bool(attribute_kw.get("hold", current.attributes.hold))
    if holding and current.geoms:
        geoms = current.geoms + geoms
        attributes = current.attributes.merged({**derived, **attribute_kw})
        kind = current.axes.kind
    else:
        base: dict[str, Any] = {"subplot": current.attributes.subplot, "kind": spec.name}
        base.update(spec.defaults)
        base.update(derived)
        base.update(attribute_kw)
        attributes = PlotAttributes.from_options(base)
        kind = spec.axes

    axes = build_axes(kind, geoms, attributes.axes_overrides())
    plot = compose_plot(axes, geoms, attributes=attributes, window=fig.window)
    fig.set_current_plot(plot)
    LOGGER.debug("%s: %d geometries on %s axes (hold=%s)", spec.name, len(geoms), kind, holding)
    return plot


def build_plot_function(spec: PlotFunctionSpec) -> tuple[Callable[..., PlotObject], Callable[..., PlotObject]]:
    """Return the ``(fn, fn_into)`` pair: ``fn`` targets the current figure, ``fn_into`` an explicit one."""

    def fn_into(fig: Figure, *args: Any, **kwargs: Any) -> PlotObject:
        return plot_into(spec, fig, *args, **kwargs)

    def fn(*args: Any, **kwargs: Any) -> PlotObject:
        from figkit.context import current_context

        return plot_into(spec, current_context().gcf(), *args, **kwargs)

    fn.__name__ = spec.name
    fn.__qualname__ = spec.name
    fn.__doc__ = spec.doc or None
    fn_into.__name__ = f"{spec.name}_into"
    fn_into.__qualname__ = f"{spec.name}_into"
    fn_into.__doc__ = spec.doc or None
    return fn, fn_into


# -- transforms ------------------------------------------------------------


def _label_strings(value: Any) -> list[str]:
    if not is_array_like(value) or isinstance(value, Mapping):
        raise PlotDataError("barplot(labels, heights) expects a sequence of labels as the first argument")
    items = value.tolist() if hasattr(value, "tolist") else list(value)
    if any(is_array_like(v) for v in items):
        raise PlotDataError("barplot labels must be one-dimensional")
    return [str(v) for v in items]


def _bar_transform(args: list[Any], options: dict[str, Any]) -> Prepared:
    labels = None
    if len(args) == 2:
        labels = _label_strings(args[0])
        heights = args[1]
    elif len(args) == 1:
        heights = args[0]
    else:
        raise PlotDataError(f"barplot expects (heights) or (labels, heights), got {len(args)} arguments")
    heights = coerce_numeric(heights, label="heights", max_ndim=1)
    if labels is not None and len(labels) != heights.size:
        raise PlotDataError(f"barplot got {len(labels)} labels for {heights.size} bars")
    wc, hc = bar_coordinates(heights, barwidth=float(options["barwidth"]), baseline=float(options["baseline"]))
    attributes: dict[str, Any] = {}
    # One labelled tick per bar.
    axis = "y" if options["horizontal"] else "x"
    if labels is not None:
        attributes[f"{axis}ticks"] = (1.0, 1)
        attributes[f"{axis}ticklabels"] = labels
    if options["horizontal"]:
        return Prepared([hc, wc], attributes)
    return Prepared([wc, hc], attributes)


def _histogram_transform(args: list[Any], options: dict[str, Any]) -> Prepared:
    if len(args) != 1:
        raise PlotDataError(f"histogram expects one data argument, got {len(args)}")
    values = coerce_numeric(args[0], label="values")
    baseline = options["baseline"]
    if baseline is None:
        # Bars on a log value axis start at 1.
        log_key = "xlog" if options["horizontal"] else "ylog"
        baseline = 1.0 if options.get(log_key) else 0.0
    wc, hc = histogram_bars(values, int(options["nbins"]), baseline=float(baseline))
    if options["horizontal"]:
        return Prepared([hc, wc])
    return Prepared([wc, hc])


def _polar_histogram_transform(args: list[Any], options: dict[str, Any]) -> Prepared:
    if len(args) != 1:
        raise PlotDataError(f"polarhistogram expects one angle argument, got {len(args)}")
    theta = coerce_numeric(args[0], label="theta")
    return Prepared(list(polar_histogram_bars(theta, int(options["nbins"]))))


def _step_transform(args: list[Any], options: dict[str, Any]) -> Prepared:
    return Prepared(list(args), geometry_attributes={"step_position": step_position(options["where"])})


def _errorbar_transform(args: list[Any], options: dict[str, Any]) -> Prepared:
    if len(args) not in (3, 4):
        raise PlotDataError(f"errorbar expects (x, y, err) or (x, y, err_low, err_high), got {len(args)} arguments")
    x = coerce_numeric(args[0], label="x", max_ndim=1)
    y = coerce_numeric(args[1], label="y", max_ndim=1)
    below = coerce_numeric(args[2], label="err_low", max_ndim=1)
    above = coerce_numeric(args[3], label="err_high", max_ndim=1) if len(args) == 4 else below
    if not options["relative"]:
        return Prepared([x, y, below, above])
    return Prepared([x, y, y - below, y + above])


def _contour_finalize(geoms: list[Geometry], options: dict[str, Any]) -> dict[str, Any]:
    levels = options["levels"]
    for i, geom in enumerate(geoms):
        if geom.c.size == 0 or not np.isscalar(levels):
            geoms[i] = Geometry(
                kind=geom.kind, x=geom.x, y=geom.y, z=geom.z,
                c=contour_levels(geom.z, levels),
                spec=geom.spec, label=geom.label, attributes=geom.attributes,
            )
    return {}


def _polar_heatmap_transform(args: list[Any], options: dict[str, Any]) -> Prepared:
    if len(args) == 3:
        return Prepared(list(args))
    if len(args) != 1:
        raise PlotDataError(f"polarheatmap expects (values) or (theta, rho, values), got {len(args)} arguments")
    values = coerce_numeric(args[0], label="values")
    if values.ndim != 2:
        raise PlotDataError("polarheatmap expects a 2-D array")
    # Columns are angular sectors, rows are rings from the centre outwards.
    ny, nx = values.shape
    theta = (np.arange(nx) + 0.5) * (2.0 * np.pi / nx)
    rho = np.arange(ny) + 0.5
    return Prepared([theta, rho, values], {"ylim": (0.0, float(ny))})


def _imshow_transform(args: list[Any], options: dict[str, Any]) -> Prepared:
    if len(args) != 1:
        raise PlotDataError(f"imshow expects one 2-D array, got {len(args)} arguments")
    values = coerce_numeric(args[0], label="image")
    if values.ndim != 2:
        raise PlotDataError("imshow expects a 2-D array")
    # First row is the top of the image.
    ny, nx = values.shape
    return Prepared([values[::-1]], {"ratio": nx / ny})


PLOT_FUNCTIONS: tuple[PlotFunctionSpec, ...] = (
    PlotFunctionSpec("plot", "line", doc="Line plot of ``(y)``, ``(x, y)`` or column-wise 2-D ``y``."),
    PlotFunctionSpec("oplot", "line", hold=True, doc="Line plot added to the current plot."),
    PlotFunctionSpec("step", "step", transform=_step_transform, options={"where": "post"}),
    PlotFunctionSpec("stem", "stem"),
    PlotFunctionSpec("scatter", "scatter", doc="Markers at ``(x, y)`` with optional sizes ``z`` and colours ``c``."),
    PlotFunctionSpec(
        "barplot",
        "bar",
        transform=_bar_transform,
        options={"horizontal": False, "barwidth": 0.8, "baseline": 0.0},
    ),
    PlotFunctionSpec(
        "histogram",
        "bar",
        transform=_histogram_transform,
        options={"nbins": 0, "baseline": None, "horizontal": False},
    ),
    PlotFunctionSpec("errorbar", "errorbar", transform=_errorbar_transform, options={"relative": True}),
    PlotFunctionSpec("plot3", "line3d", axes="cartesian3d"),
    PlotFunctionSpec("scatter3", "scatter3", axes="cartesian3d"),
    PlotFunctionSpec("polar", "polarline", axes="polar", defaults={"ratio": 1.0}),
    PlotFunctionSpec(
        "polarhistogram",
        "polarbar",
        axes="polar",
        transform=_polar_histogram_transform,
        options={"nbins": 0},
        defaults={"ratio": 1.0},
    ),
    PlotFunctionSpec("heatmap", "heatmap", defaults={"colorbar": True}),
    PlotFunctionSpec(
        "polarheatmap",
        "polarheatmap",
        axes="polar",
        transform=_polar_heatmap_transform,
        defaults={"colorbar": True, "overlay_axes": True, "ratio": 1.0},
    ),
    PlotFunctionSpec(
        "hexbin",
        "hexbin",
        defaults={"colorbar": True},
        doc="Point counts in hexagonal bins; ``nbins`` sets the lattice width.",
    ),
    PlotFunctionSpec(
        "imshow",
        "image",
        axes="none",
        transform=_imshow_transform,
        defaults={"noframe": True, "colormap": "grayscale"},
    ),
    PlotFunctionSpec(
        "contour",
        "contour",
        options={"levels": 20},
        finalize=_contour_finalize,
        defaults={"colorbar": True},
    ),
    PlotFunctionSpec(
        "contourf",
        "contourf",
        options={"levels": 20},
        finalize=_contour_finalize,
        defaults={"colorbar": True, "tickdir": -1},
        doc="Filled bands between contour levels of a value grid.",
    ),
    PlotFunctionSpec(
        "tricont",
        "tricont",
        options={"levels": 20},
        finalize=_contour_finalize,
        defaults={"colorbar": True},
        doc="Contour lines over the Delaunay triangulation of scattered ``(x, y, z)`` points.",
    ),
    PlotFunctionSpec("surface", "surface", axes="cartesian3d", defaults={"colorbar": True}),
    PlotFunctionSpec("trisurf", "trisurf", axes="cartesian3d", defaults={"colorbar": True}),
    PlotFunctionSpec("wireframe", "wireframe", axes="cartesian3d"),
)

PLOT_FUNCTION_SPECS: dict[str, PlotFunctionSpec] = {spec.name: spec for spec in PLOT_FUNCTIONS}
