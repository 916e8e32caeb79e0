from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
import logging
import math

import numpy as np

from figkit.axes import Axes
from figkit.backend.base import GraphicsBackend
from figkit.colorbar import Colorbar
from figkit.colors import RGBA, ColorScheme, color_scheme, colormap_table, map_colors, to_rgba
from figkit.config import get_settings
from figkit.errors import PlotConfigError
from figkit.figure import Figure
from figkit.geometry import Geometry, geometry_kind, hexbin_bins
from figkit.legend import char_height, legend_box
from figkit.linespec import parse_linespec
from figkit.plotobject import PlotObject
from figkit.scales import Tick, Y_LOG, axis_ticks, extrema64, format_log_tick, format_tick, is_defined
from figkit.transforms import (
    clip_band,
    contour_levels,
    grid_triangles,
    hexagon,
    hexbin_cells,
    polar_to_cartesian,
    step_path,
    triangulate,
)


LOGGER = logging.getLogger(__name__)

Limits = tuple[float, float]
DrawFn = Callable[[Geometry, GraphicsBackend, "DrawContext"], "Limits | None"]

MARKER_PIXELS = 6.0
CAP_HALF_WIDTH = 0.005


@dataclass
class DrawContext:
    axes: Axes
    scheme: ColorScheme
    colormap: np.ndarray
    char_height: float
    tick_size: float
    colors: dict[int, RGBA] = field(default_factory=dict)

    def color(self, geom: Geometry) -> RGBA:
        return self.colors.get(id(geom), self.scheme.foreground)

    def color_limits(self, values: np.ndarray) -> Limits:
        limits = self.axes.ranges.get("c", (math.inf, -math.inf))
        if is_defined(limits):
            return limits
        return extrema64(values)


_DRAWERS: dict[str, DrawFn] = {}


def register_draw(kind: str, fn: DrawFn, *, replace_existing: bool = False) -> None:
    """Install the draw function used for geometries of ``kind``."""
    if kind in _DRAWERS and not replace_existing:
        raise PlotConfigError(f"draw function already registered for kind: {kind}")
    _DRAWERS[kind] = fn


def _tick_metrics(frame: tuple[float, float, float, float]) -> tuple[float, float]:
    diag = math.hypot(frame[1] - frame[0], frame[3] - frame[2])
    return (0.0075 * diag, char_height(frame))


def series_colors(geoms: list[Geometry], scheme: ColorScheme) -> dict[int, RGBA]:
    out: dict[int, RGBA] = {}
    for index, geom in enumerate(geoms):
        spec = parse_linespec(geom.spec)
        out[id(geom)] = to_rgba(spec.color) if spec.color else scheme.series_color(index)
    return out


# -- figure / plot ------------------------------------------------------------


def draw_figure(fig: Figure, backend: GraphicsBackend) -> GraphicsBackend:
    backend.begin_frame(fig.width, fig.height, fig.window)
    for plot in fig.plots:
        draw_plot(plot, backend)
    backend.finish()
    LOGGER.debug("drew figure with %d plots", len(fig.plots))
    return backend


def draw_plot(plot: PlotObject, backend: GraphicsBackend) -> None:
    if plot.viewport.is_empty:
        return
    attrs = plot.attributes
    settings = get_settings()
    table = colormap_table(attrs.colormap if attrs.colormap is not None else settings.colormap, settings.colorbar_levels)
    scheme = color_scheme(attrs.scheme if attrs.scheme is not None else settings.scheme)
    outer, inner = plot.viewport.outer, plot.viewport.inner
    ticksize, charheight = _tick_metrics(inner)
    ctx = DrawContext(
        axes=plot.axes,
        scheme=scheme,
        colormap=table,
        char_height=charheight,
        tick_size=ticksize,
        colors=series_colors(plot.geoms, scheme),
    )

    backend.save_state()
    try:
        if attrs.background is not None:
            backend.fillrect(*outer, color=to_rgba(attrs.background), ndc=True)
        elif attrs.scheme not in (None, 0, "none"):
            backend.fillrect(*outer, color=scheme.background, ndc=True)
        backend.set_viewport(*inner)
        draw_axes(plot.axes, backend, ctx)
        collected: list[Limits] = []
        for geom in plot.geoms:
            limits = draw_geometry(geom, backend, ctx)
            if limits is not None and is_defined(limits):
                collected.append(limits)
        if attrs.overlay_axes:
            draw_axes(plot.axes, backend, ctx, grid=False)
        if attrs.location != 0:
            draw_legend(plot, backend, ctx)
        if attrs.colorbar and not plot.colorbar.is_empty:
            colorbar = plot.colorbar
            if attrs.adjust_colorbar and collected:
                lo = min(c[0] for c in collected)
                hi = max(c[1] for c in collected)
                if hi > lo:
                    colorbar = replace(colorbar, range=(lo, hi))
            draw_colorbar(colorbar, backend, ctx)
        draw_labels(plot, backend, ctx)
    finally:
        backend.restore_state()


def draw_geometry(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> Limits | None:
    geometry_kind(geom.kind)
    fn = _DRAWERS.get(geom.kind)
    if fn is None:
        raise PlotConfigError(f"no draw function registered for geometry kind: {geom.kind!r}")
    backend.save_state()
    try:
        if "alpha" in geom.attributes:
            backend.set_transparency(geom.attributes["alpha"])
        return fn(geom, backend, ctx)
    finally:
        backend.restore_state()


# -- axes ---------------------------------------------------------------------


def _blend(a: RGBA, b: RGBA, t: float) -> RGBA:
    return tuple(int(round(a[i] * t + b[i] * (1.0 - t))) for i in range(3)) + (255,)  # type: ignore[return-value]


def _ticks_for(axes: Axes, axis: str) -> list[Tick]:
    data = axes.tickdata.get(axis)
    limits = axes.ranges.get(axis)
    if data is None or limits is None or not is_defined(limits):
        return []
    return axis_ticks(limits[0], limits[1], data.minor, data.major, log=axes.is_log(axis))


def _tick_label(axes: Axes, axis: str, value: float) -> str:
    labeler = axes.ticklabels.get(axis)
    if labeler is not None:
        return labeler(value)
    if axes.is_log(axis):
        return format_log_tick(value)
    data = axes.tickdata[axis]
    return format_tick(value, step=data.minor * max(data.major, 1))


def draw_axes(axes: Axes, backend: GraphicsBackend, ctx: DrawContext, *, grid: bool = True) -> None:
    if axes.kind == "cartesian2d":
        _draw_axes2d(axes, backend, ctx, grid=grid)
    elif axes.kind == "cartesian3d":
        _draw_axes3d(axes, backend, ctx, grid=grid)
    elif axes.kind == "polar":
        _draw_polar_axes(axes, backend, ctx, grid=grid)
    else:
        x0, x1 = axes.ranges["x"] if is_defined(axes.ranges["x"]) else (0.0, 1.0)
        y0, y1 = axes.ranges["y"] if is_defined(axes.ranges["y"]) else (0.0, 1.0)
        backend.set_window(x0, x1, y0, y1)
        backend.set_scale(0)


def _draw_axes2d(axes: Axes, backend: GraphicsBackend, ctx: DrawContext, *, grid: bool) -> None:
    (x0, x1), (y0, y1) = axes.ranges["x"], axes.ranges["y"]
    backend.set_window(x0, x1, y0, y1)
    backend.set_scale(axes.scale)
    vp = backend.inq_viewport()
    fg = ctx.scheme.foreground
    xticks, yticks = _ticks_for(axes, "x"), _ticks_for(axes, "y")

    if grid and axes.options.get("grid", 1):
        grid_color = _blend(fg, ctx.scheme.background, 0.15)
        for t in xticks:
            if t.major:
                backend.polyline([t.value, t.value], [y0, y1], color=grid_color)
        for t in yticks:
            if t.major:
                backend.polyline([x0, x1], [t.value, t.value], color=grid_color)

    sign = 1.0 if axes.options.get("tickdir", 1) >= 0 else -1.0
    for t in xticks:
        nx, _ = backend.to_ndc(np.asarray([t.value]), np.asarray([y0]))
        px = float(nx[0])
        length = ctx.tick_size * (2.0 if t.major else 1.0) * sign
        backend.polyline([px, px], [vp[2], vp[2] + length], color=fg, ndc=True)
        backend.polyline([px, px], [vp[3], vp[3] - length], color=fg, ndc=True)
        if t.major:
            backend.text(px, vp[2] - 0.5 * ctx.char_height, _tick_label(axes, "x", t.value),
                         color=fg, height=ctx.char_height, halign="center", valign="top")
    for t in yticks:
        _, ny = backend.to_ndc(np.asarray([x0]), np.asarray([t.value]))
        py = float(ny[0])
        length = ctx.tick_size * (2.0 if t.major else 1.0) * sign
        backend.polyline([vp[0], vp[0] + length], [py, py], color=fg, ndc=True)
        backend.polyline([vp[1], vp[1] - length], [py, py], color=fg, ndc=True)
        if t.major:
            backend.text(vp[0] - 0.5 * ctx.char_height, py, _tick_label(axes, "y", t.value),
                         color=fg, height=ctx.char_height, halign="right", valign="half")
    backend.drawrect(*vp, color=fg, ndc=True)


def polar_radius(axes: Axes) -> float:
    limits = axes.ranges.get("y", (0.0, 1.0))
    rmax = limits[1] if is_defined(limits) else 1.0
    return rmax if rmax > 0 else 1.0


def _circle(r: float, n: int = 120) -> tuple[np.ndarray, np.ndarray]:
    t = np.linspace(0.0, 2 * math.pi, n)
    return r * np.cos(t), r * np.sin(t)


def _draw_polar_axes(axes: Axes, backend: GraphicsBackend, ctx: DrawContext, *, grid: bool) -> None:
    backend.set_window(-1.0, 1.0, -1.0, 1.0)
    backend.set_scale(0)
    fg = ctx.scheme.foreground
    grid_color = _blend(fg, ctx.scheme.background, 0.25)
    rmax = polar_radius(axes)
    data = axes.tickdata.get("y")
    if data is not None and grid and axes.options.get("grid", 1):
        for t in axis_ticks(0.0, rmax, data.minor, data.major):
            if t.major and 0 < t.value < rmax:
                r = t.value / rmax
                backend.polyline(*_circle(r), color=grid_color)
                nx, ny = backend.to_ndc(np.asarray([r * math.cos(math.pi / 8)]), np.asarray([r * math.sin(math.pi / 8)]))
                backend.text(float(nx[0]), float(ny[0]), format_tick(t.value, step=data.minor * data.major),
                             color=fg, height=ctx.char_height, halign="left", valign="bottom")
    for degrees in range(0, 360, 45):
        angle = math.radians(degrees)
        if grid:
            backend.polyline([0.0, math.cos(angle)], [0.0, math.sin(angle)], color=grid_color)
        nx, ny = backend.to_ndc(np.asarray([1.1 * math.cos(angle)]), np.asarray([1.1 * math.sin(angle)]))
        backend.text(float(nx[0]), float(ny[0]), f"{degrees}°", color=fg, height=ctx.char_height,
                     halign="center", valign="half")
    backend.polyline(*_circle(1.0), color=fg)


def _draw_axes3d(axes: Axes, backend: GraphicsBackend, ctx: DrawContext, *, grid: bool) -> None:
    (x0, x1), (y0, y1) = axes.ranges["x"], axes.ranges["y"]
    z0, z1 = axes.ranges["z"] if is_defined(axes.ranges["z"]) else (0.0, 1.0)
    rotation, tilt = axes.perspective
    backend.set_window(x0, x1, y0, y1)
    backend.set_space(z0, z1, rotation, tilt)
    backend.set_scale(axes.scale)
    fg = ctx.scheme.foreground
    if grid and axes.options.get("grid", 1):
        grid_color = _blend(fg, ctx.scheme.background, 0.15)
        for t in _ticks_for(axes, "x"):
            if t.major:
                backend.polyline3d([t.value, t.value], [y0, y1], [z0, z0], color=grid_color)
        for t in _ticks_for(axes, "y"):
            if t.major:
                backend.polyline3d([x0, x1], [t.value, t.value], [z0, z0], color=grid_color)
    backend.polyline3d([x0, x1], [y0, y0], [z0, z0], color=fg)
    backend.polyline3d([x1, x1], [y0, y1], [z0, z0], color=fg)
    backend.polyline3d([x0, x0], [y0, y0], [z0, z1], color=fg)
    anchors = {
        "x": lambda v: ([v], [y0], [z0]),
        "y": lambda v: ([x1], [v], [z0]),
        "z": lambda v: ([x0], [y0], [v]),
    }
    for axis, anchor in anchors.items():
        for t in _ticks_for(axes, axis):
            if not t.major:
                continue
            px, py, _ = backend.project3d(*(np.asarray(a, dtype=np.float64) for a in anchor(t.value)))
            halign = "right" if axis == "z" else "center"
            offset = (-ctx.char_height, 0.0) if axis == "z" else (0.0, -0.5 * ctx.char_height)
            backend.text(float(px[0]) + offset[0], float(py[0]) + offset[1], _tick_label(axes, axis, t.value),
                         color=fg, height=ctx.char_height, halign=halign, valign="top" if axis != "z" else "half")


# -- legend / colorbar / labels -------------------------------------------------


def _draw_guide(geom: Geometry, backend: GraphicsBackend, x: float, y: float, color: RGBA) -> None:
    spec = parse_linespec(geom.spec)
    if geom.kind == "bar":
        backend.fillrect(x - 0.03, x + 0.03, y - 0.01, y + 0.01, color=color)
        return
    if geom.kind == "errorbar":
        backend.polyline([x, x], [y - 0.01, y + 0.01], color=color)
        backend.polymarker([x], [y], color=color, size=MARKER_PIXELS, marker=spec.marker or "o")
        return
    if spec.has_line:
        backend.polyline([x - 0.03, x + 0.03], [y, y], color=color, width=geom.attributes.get("linewidth", 1.0),
                         linestyle=spec.linestyle or "-")
    if spec.has_marker:
        backend.polymarker([x], [y], color=color, size=MARKER_PIXELS * geom.attributes.get("markersize", 1.0),
                           marker=spec.marker or "o")


def draw_legend(plot: PlotObject, backend: GraphicsBackend, ctx: DrawContext) -> None:
    legend = plot.legend
    location = plot.attributes.location
    if legend.is_empty or location == 0:
        return
    w, h = legend.size
    box = legend_box(backend.inq_viewport(), legend.size, location)
    backend.save_state()
    try:
        backend.set_viewport(*box)
        backend.set_window(0.0, w, -h, 0.0)
        backend.set_scale(0)
        backend.set_clip(False)
        backend.fillrect(0.0, w, -h, 0.0, color=ctx.scheme.background)
        backend.drawrect(0.0, w, -h, 0.0, color=ctx.scheme.foreground)
        index = 0
        for geom in plot.geoms:
            if index >= len(legend.cursors):
                break
            if not geom.label or not geometry_kind(geom.kind).legend:
                continue
            cx, cy = legend.cursors[index]
            _draw_guide(geom, backend, cx - 0.04, cy, ctx.color(geom))
            nx, ny = backend.to_ndc(np.asarray([cx]), np.asarray([cy]))
            backend.text(float(nx[0]), float(ny[0]), geom.label, color=ctx.scheme.foreground,
                         height=ctx.char_height, halign="left", valign="half")
            index += 1
    finally:
        backend.restore_state()


def draw_colorbar(colorbar: Colorbar, backend: GraphicsBackend, ctx: DrawContext) -> None:
    if colorbar.is_empty:
        return
    zmin, zmax = colorbar.range
    vp = backend.inq_viewport()
    backend.save_state()
    try:
        box = (vp[1] + 0.02 + colorbar.margin, vp[1] + 0.05 + colorbar.margin, vp[2], vp[3])
        backend.set_viewport(*box)
        backend.set_scale(colorbar.scale)
        backend.set_window(0.0, 1.0, zmin, zmax)
        levels = colormap_table_rows(ctx.colormap, colorbar.levels)
        backend.cellarray(0.0, 1.0, zmin, zmax, levels)
        fg = ctx.scheme.foreground
        log = bool(colorbar.scale & Y_LOG)
        for t in axis_ticks(zmin, zmax, colorbar.tick, 1, log=log):
            _, ny = backend.to_ndc(np.asarray([0.0]), np.asarray([t.value]))
            py = float(ny[0])
            backend.polyline([box[1] - 0.005, box[1]], [py, py], color=fg, ndc=True)
            label = format_log_tick(t.value) if log else format_tick(t.value, step=colorbar.tick)
            backend.text(box[1] + 0.01, py, label, color=fg, height=ctx.char_height, halign="left", valign="half")
        backend.drawrect(*box, color=fg, ndc=True)
    finally:
        backend.restore_state()


def colormap_table_rows(table: np.ndarray, levels: int) -> np.ndarray:
    """Colormap as a ``(levels, 1, 4)`` image, first row at the low end."""
    index = np.rint(np.linspace(0, table.shape[0] - 1, max(levels, 1))).astype(np.int64)
    out = np.full((index.size, 1, 4), 255, dtype=np.uint8)
    out[:, 0, :3] = table[index]
    return out


def draw_labels(plot: PlotObject, backend: GraphicsBackend, ctx: DrawContext) -> None:
    attrs = plot.attributes
    outer, inner = plot.viewport.outer, plot.viewport.inner
    fg = ctx.scheme.foreground
    ch = ctx.char_height
    xc = 0.5 * (inner[0] + inner[1])
    yc = 0.5 * (inner[2] + inner[3])
    backend.text(xc, outer[3], attrs.title, color=fg, height=1.25 * ch, halign="center", valign="top")
    if plot.axes.kind == "cartesian3d":
        _draw_labels3d(plot, backend, ctx)
        return
    backend.text(xc, outer[2] + 0.5 * ch, attrs.xlabel, color=fg, height=ch, halign="center", valign="bottom")
    backend.text(outer[0] + 0.5 * ch, yc, attrs.ylabel, color=fg, height=ch, halign="left", valign="half", rotation=90)


def _draw_labels3d(plot: PlotObject, backend: GraphicsBackend, ctx: DrawContext) -> None:
    attrs = plot.attributes
    axes = plot.axes
    (x0, x1), (y0, y1) = axes.ranges["x"], axes.ranges["y"]
    z0, z1 = axes.ranges["z"] if is_defined(axes.ranges["z"]) else (0.0, 1.0)
    backend.set_window(x0, x1, y0, y1)
    backend.set_space(z0, z1, *axes.perspective)
    backend.set_scale(axes.scale)
    fg = ctx.scheme.foreground
    ch = ctx.char_height
    points = {
        attrs.xlabel: (0.5 * (x0 + x1), y0, z0, (0.0, -2.5 * ch), 0),
        attrs.ylabel: (x1, 0.5 * (y0 + y1), z0, (0.0, -2.5 * ch), 0),
        attrs.zlabel: (x0, y0, 0.5 * (z0 + z1), (-3.5 * ch, 0.0), 90),
    }
    for text, (x, y, z, offset, rotation) in points.items():
        if not text:
            continue
        px, py, _ = backend.project3d(np.asarray([x]), np.asarray([y]), np.asarray([z]))
        backend.text(float(px[0]) + offset[0], float(py[0]) + offset[1], text, color=fg, height=ch,
                     halign="center", valign="half", rotation=rotation)


# -- geometry draw functions ----------------------------------------------------


def _line_style(geom: Geometry):
    return parse_linespec(geom.spec)


def _draw_xy(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext, x: np.ndarray, y: np.ndarray) -> None:
    spec = _line_style(geom)
    color = ctx.color(geom)
    if spec.has_line:
        backend.polyline(x, y, color=color, width=geom.attributes.get("linewidth", 1.0), linestyle=spec.linestyle or "-")
    if spec.has_marker:
        backend.polymarker(x, y, color=color, size=MARKER_PIXELS * geom.attributes.get("markersize", 1.0),
                           marker=spec.marker or "o")


def _draw_line(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> None:
    _draw_xy(geom, backend, ctx, geom.x, geom.y)


def _draw_step(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> None:
    x, y = step_path(geom.x, geom.y, geom.attributes.get("step_position", 1.0))
    spec = _line_style(geom)
    backend.polyline(x, y, color=ctx.color(geom), width=geom.attributes.get("linewidth", 1.0), linestyle=spec.linestyle or "-")
    if spec.has_marker:
        backend.polymarker(geom.x, geom.y, color=ctx.color(geom), size=MARKER_PIXELS * geom.attributes.get("markersize", 1.0),
                           marker=spec.marker or "o")


def _draw_stem(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> None:
    color = ctx.color(geom)
    x0, x1, _, _ = backend.inq_window()
    backend.polyline([x0, x1], [0.0, 0.0], color=ctx.scheme.foreground)
    for xi, yi in zip(geom.x.tolist(), geom.y.tolist()):
        backend.polyline([xi, xi], [0.0, yi], color=color, width=geom.attributes.get("linewidth", 1.0))
    spec = _line_style(geom)
    backend.polymarker(geom.x, geom.y, color=color, size=MARKER_PIXELS * geom.attributes.get("markersize", 1.0),
                       marker=spec.marker or "o")


def _marker_colors(geom: Geometry, ctx: DrawContext) -> tuple[np.ndarray | RGBA, Limits | None]:
    if geom.c.size == 0:
        return ctx.color(geom), None
    limits = ctx.color_limits(geom.c)
    return map_colors(geom.c, limits, ctx.colormap), limits


def _marker_sizes(geom: Geometry) -> np.ndarray | float:
    base = MARKER_PIXELS * geom.attributes.get("markersize", 1.0)
    if geom.z.size == 0:
        return base
    return np.clip(np.nan_to_num(geom.z, nan=base), 1.0, 64.0)


def _draw_scatter(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> Limits | None:
    colors, limits = _marker_colors(geom, ctx)
    sizes = _marker_sizes(geom)
    marker = _line_style(geom).marker or "o"
    if np.isscalar(sizes):
        backend.polymarker(geom.x, geom.y, color=colors, size=float(sizes), marker=marker)
        return limits
    color_rows = np.asarray(colors, dtype=np.uint8)
    for i in range(geom.x.size):
        row = color_rows[i] if color_rows.ndim == 2 else color_rows
        backend.polymarker(geom.x[i : i + 1], geom.y[i : i + 1], color=tuple(int(v) for v in row), size=float(sizes[i]), marker=marker)
    return limits


def _draw_scatter3(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> Limits | None:
    colors, limits = _marker_colors(geom, ctx)
    marker = _line_style(geom).marker or "o"
    backend.polymarker3d(geom.x, geom.y, geom.z, color=colors,
                         size=MARKER_PIXELS * geom.attributes.get("markersize", 1.0), marker=marker)
    return limits


def _draw_line3d(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> None:
    spec = _line_style(geom)
    color = ctx.color(geom)
    if spec.has_line:
        backend.polyline3d(geom.x, geom.y, geom.z, color=color, width=geom.attributes.get("linewidth", 1.0),
                           linestyle=spec.linestyle or "-")
    if spec.has_marker:
        backend.polymarker3d(geom.x, geom.y, geom.z, color=color,
                             size=MARKER_PIXELS * geom.attributes.get("markersize", 1.0), marker=spec.marker or "o")


def _draw_bar(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> None:
    color = ctx.color(geom)
    for i in range(0, geom.x.size, 2):
        x0, x1 = geom.x[i], geom.x[i + 1]
        y0, y1 = geom.y[i], geom.y[i + 1]
        backend.fillrect(min(x0, x1), max(x0, x1), min(y0, y1), max(y0, y1), color=color)
        backend.drawrect(min(x0, x1), max(x0, x1), min(y0, y1), max(y0, y1), color=ctx.scheme.foreground)


def _draw_errorbar(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> None:
    color = ctx.color(geom)
    for xi, lo, hi in zip(geom.x.tolist(), geom.z.tolist(), geom.c.tolist()):
        backend.polyline([xi, xi], [lo, hi], color=color)
        nx, ny = backend.to_ndc(np.asarray([xi, xi]), np.asarray([lo, hi]))
        for py in ny.tolist():
            backend.polyline([nx[0] - CAP_HALF_WIDTH, nx[0] + CAP_HALF_WIDTH], [py, py], color=color, ndc=True)
    _draw_xy(geom, backend, ctx, geom.x, geom.y)


def _draw_polarline(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> None:
    x, y = polar_to_cartesian(geom.x, geom.y, polar_radius(ctx.axes))
    _draw_xy(geom, backend, ctx, x, y)


def _wedge(t0: float, t1: float, r0: float, r1: float, n: int = 16) -> tuple[np.ndarray, np.ndarray]:
    theta = np.linspace(t0, t1, n)
    xs = np.concatenate([r0 * np.cos(theta), r1 * np.cos(theta[::-1])])
    ys = np.concatenate([r0 * np.sin(theta), r1 * np.sin(theta[::-1])])
    return xs, ys


def _draw_polarbar(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> None:
    rmax = polar_radius(ctx.axes)
    color = ctx.color(geom)
    for i in range(0, geom.x.size, 2):
        xs, ys = _wedge(geom.x[i], geom.x[i + 1], geom.y[i] / rmax, geom.y[i + 1] / rmax)
        backend.fillarea(xs, ys, color=color)
        backend.polyline(np.append(xs, xs[0]), np.append(ys, ys[0]), color=ctx.scheme.foreground)


def _cell_box(centers: np.ndarray) -> tuple[float, float]:
    if centers.size == 1:
        return (float(centers[0]) - 0.5, float(centers[0]) + 0.5)
    step = np.diff(centers)
    return (float(centers[0] - 0.5 * step[0]), float(centers[-1] + 0.5 * step[-1]))


def _draw_cells(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> Limits | None:
    values = geom.grid_values()
    limits = ctx.color_limits(geom.c)
    rgba = map_colors(values, limits, ctx.colormap)
    (x0, x1), (y0, y1) = _cell_box(geom.x), _cell_box(geom.y)
    backend.cellarray(x0, x1, y0, y1, rgba)
    return limits


def _cell_bounds(centers: np.ndarray) -> np.ndarray:
    """Every cell edge for ``centers``, halfway between neighbours."""
    if centers.size == 1:
        return np.asarray([centers[0] - 0.5, centers[0] + 0.5])
    mids = 0.5 * (centers[:-1] + centers[1:])
    return np.concatenate([[2.0 * centers[0] - mids[0]], mids, [2.0 * centers[-1] - mids[-1]]])


def _draw_polarheatmap(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> Limits | None:
    values = geom.grid_values()
    limits = ctx.color_limits(geom.c)
    colors = map_colors(values, limits, ctx.colormap)
    theta = _cell_bounds(geom.x)
    radii = np.clip(_cell_bounds(geom.y) / polar_radius(ctx.axes), 0.0, 1.0)
    for i in range(values.shape[0]):
        for j in range(values.shape[1]):
            color = tuple(int(v) for v in colors[i, j])
            if color[3] == 0:
                continue
            backend.fillarea(*_wedge(theta[j], theta[j + 1], radii[i], radii[i + 1]), color=color)
    return limits


def contour_segments(x: np.ndarray, y: np.ndarray, values: np.ndarray, level: float) -> tuple[np.ndarray, np.ndarray]:
    """Marching-squares iso-line of ``values`` (ny, nx) at ``level`` as NaN-separated segments."""
    xs: list[float] = []
    ys: list[float] = []
    ny, nx = values.shape
    for i in range(ny - 1):
        for j in range(nx - 1):
            corners = (
                (x[j], y[i], values[i, j]),
                (x[j + 1], y[i], values[i, j + 1]),
                (x[j + 1], y[i + 1], values[i + 1, j + 1]),
                (x[j], y[i + 1], values[i + 1, j]),
            )
            points = []
            for k in range(4):
                xa, ya, va = corners[k]
                xb, yb, vb = corners[(k + 1) % 4]
                if np.isnan(va) or np.isnan(vb) or (va >= level) == (vb >= level):
                    continue
                t = (level - va) / (vb - va)
                points.append((xa + t * (xb - xa), ya + t * (yb - ya)))
            for a in range(0, len(points) - 1, 2):
                xs.extend([points[a][0], points[a + 1][0], math.nan])
                ys.extend([points[a][1], points[a + 1][1], math.nan])
    return np.asarray(xs, dtype=np.float64), np.asarray(ys, dtype=np.float64)


def _draw_contour(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> Limits | None:
    values = geom.grid_values()
    levels = geom.c if geom.c.size else contour_levels(values)
    limits = ctx.color_limits(geom.z)
    colors = map_colors(levels, limits, ctx.colormap)
    width = geom.attributes.get("linewidth", 1.0)
    for level, color in zip(levels.tolist(), colors):
        xs, ys = contour_segments(geom.x, geom.y, values, level)
        if xs.size:
            backend.polyline(xs, ys, color=tuple(int(v) for v in color), width=width)
    return limits


def triangle_bands(
    x: np.ndarray, y: np.ndarray, values: np.ndarray, triangles: np.ndarray, levels: np.ndarray
) -> list[tuple[int, list[tuple[float, float]]]]:
    """Polygons filling each band ``levels[k] <= value <= levels[k + 1]`` as ``(k, vertices)`` pairs."""
    out: list[tuple[int, list[tuple[float, float]]]] = []
    for tri in triangles.tolist():
        corners = values[tri]
        if np.isnan(corners).any():
            continue
        lo, hi = float(corners.min()), float(corners.max())
        polygon = [(float(x[k]), float(y[k]), float(values[k])) for k in tri]
        for band in range(levels.size - 1):
            if levels[band + 1] < lo or levels[band] > hi:
                continue
            part = clip_band(polygon, float(levels[band]), float(levels[band + 1]))
            if len(part) >= 3:
                out.append((band, [(px, py) for px, py, _ in part]))
    return out


def contour_bands(
    x: np.ndarray, y: np.ndarray, values: np.ndarray, levels: np.ndarray
) -> list[tuple[int, list[tuple[float, float]]]]:
    ny, nx = values.shape
    gx, gy = np.meshgrid(x, y)
    return triangle_bands(gx.ravel(), gy.ravel(), values.ravel(), grid_triangles(nx, ny), levels)


def _draw_contourf(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> Limits | None:
    values = geom.grid_values()
    levels = geom.c if geom.c.size else contour_levels(values)
    limits = ctx.color_limits(geom.z)
    if levels.size < 2:
        return limits
    # Each band takes the colour of its midpoint.
    colors = map_colors(0.5 * (levels[:-1] + levels[1:]), limits, ctx.colormap)
    for band, vertices in contour_bands(geom.x, geom.y, values, levels):
        xs, ys = zip(*vertices)
        backend.fillarea(list(xs), list(ys), color=tuple(int(v) for v in colors[band]))
    return limits


def tricontour_segments(
    x: np.ndarray, y: np.ndarray, z: np.ndarray, triangles: np.ndarray, level: float
) -> tuple[np.ndarray, np.ndarray]:
    """Iso-line of point values ``z`` at ``level`` across ``triangles`` as NaN-separated segments."""
    xs: list[float] = []
    ys: list[float] = []
    for a, b, c in triangles.tolist():
        points = []
        for i, j in ((a, b), (b, c), (c, a)):
            vi, vj = z[i], z[j]
            if np.isnan(vi) or np.isnan(vj) or (vi >= level) == (vj >= level):
                continue
            t = (level - vi) / (vj - vi)
            points.append((x[i] + t * (x[j] - x[i]), y[i] + t * (y[j] - y[i])))
        if len(points) == 2:
            xs.extend([points[0][0], points[1][0], math.nan])
            ys.extend([points[0][1], points[1][1], math.nan])
    return np.asarray(xs, dtype=np.float64), np.asarray(ys, dtype=np.float64)


def _draw_tricont(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> Limits | None:
    triangles = triangulate(geom.x, geom.y)
    levels = geom.c if geom.c.size else contour_levels(geom.z)
    limits = ctx.color_limits(geom.z)
    colors = map_colors(levels, limits, ctx.colormap)
    width = geom.attributes.get("linewidth", 1.0)
    for level, color in zip(levels.tolist(), colors):
        xs, ys = tricontour_segments(geom.x, geom.y, geom.z, triangles, level)
        if xs.size:
            backend.polyline(xs, ys, color=tuple(int(v) for v in color), width=width)
    return limits


def _draw_hexbin(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> Limits | None:
    cx, cy, counts, size = hexbin_cells(geom.x, geom.y, hexbin_bins(geom))
    limits = ctx.color_limits(counts)
    colors = map_colors(counts, limits, ctx.colormap)
    for i in range(cx.size):
        backend.fillarea(*hexagon(float(cx[i]), float(cy[i]), size), color=tuple(int(v) for v in colors[i]))
    return limits


def _grid_mesh(geom: Geometry) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    gx, gy = np.meshgrid(geom.x, geom.y)
    return gx, gy, geom.grid_values()


def _draw_surface(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> Limits | None:
    gx, gy, gz = _grid_mesh(geom)
    ny, nx = gz.shape
    px, py, depth = backend.project3d(gx.ravel(), gy.ravel(), gz.ravel())
    px, py, depth = px.reshape(ny, nx), py.reshape(ny, nx), depth.reshape(ny, nx)
    limits = ctx.color_limits(geom.z)
    cell_values = 0.25 * (gz[:-1, :-1] + gz[1:, :-1] + gz[1:, 1:] + gz[:-1, 1:])
    cell_depth = 0.25 * (depth[:-1, :-1] + depth[1:, :-1] + depth[1:, 1:] + depth[:-1, 1:])
    colors = map_colors(cell_values, limits, ctx.colormap)
    edge = ctx.scheme.foreground
    # Painter's order: farthest cells first.
    for flat in np.argsort(-cell_depth, axis=None):
        i, j = divmod(int(flat), nx - 1)
        if np.isnan(cell_values[i, j]):
            continue
        qx = [px[i, j], px[i, j + 1], px[i + 1, j + 1], px[i + 1, j]]
        qy = [py[i, j], py[i, j + 1], py[i + 1, j + 1], py[i + 1, j]]
        backend.fillarea(qx, qy, color=tuple(int(v) for v in colors[i, j]), ndc=True)
        backend.polyline(qx + qx[:1], qy + qy[:1], color=_blend(edge, tuple(int(v) for v in colors[i, j]), 0.3), ndc=True)
    return limits


def _draw_trisurf(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> Limits | None:
    triangles = triangulate(geom.x, geom.y)
    px, py, depth = backend.project3d(geom.x, geom.y, geom.z)
    limits = ctx.color_limits(geom.z)
    colors = map_colors(geom.z[triangles].mean(axis=1), limits, ctx.colormap)
    edge = ctx.scheme.foreground
    for k in np.argsort(-depth[triangles].mean(axis=1)).tolist():
        color = tuple(int(v) for v in colors[k])
        if color[3] == 0:
            continue
        qx, qy = px[triangles[k]].tolist(), py[triangles[k]].tolist()
        backend.fillarea(qx, qy, color=color, ndc=True)
        backend.polyline(qx + qx[:1], qy + qy[:1], color=_blend(edge, color, 0.3), ndc=True)
    return limits


def _draw_wireframe(geom: Geometry, backend: GraphicsBackend, ctx: DrawContext) -> None:
    gx, gy, gz = _grid_mesh(geom)
    color = ctx.color(geom)
    for i in range(gz.shape[0]):
        backend.polyline3d(gx[i], gy[i], gz[i], color=color)
    for j in range(gz.shape[1]):
        backend.polyline3d(gx[:, j], gy[:, j], gz[:, j], color=color)


for _kind, _fn in (
    ("line", _draw_line),
    ("step", _draw_step),
    ("stem", _draw_stem),
    ("scatter", _draw_scatter),
    ("scatter3", _draw_scatter3),
    ("line3d", _draw_line3d),
    ("bar", _draw_bar),
    ("errorbar", _draw_errorbar),
    ("polarline", _draw_polarline),
    ("polarbar", _draw_polarbar),
    ("heatmap", _draw_cells),
    ("image", _draw_cells),
    ("polarheatmap", _draw_polarheatmap),
    ("contour", _draw_contour),
    ("contourf", _draw_contourf),
    ("tricont", _draw_tricont),
    ("hexbin", _draw_hexbin),
    ("surface", _draw_surface),
    ("trisurf", _draw_trisurf),
    ("wireframe", _draw_wireframe),
):
    register_draw(_kind, _fn)


def render_figure(fig: Figure, backend: GraphicsBackend | None = None) -> GraphicsBackend:
    """Draw ``fig`` into ``backend`` (a new raster backend by default) and return the backend."""
    if backend is None:
        from figkit.backend.raster import RasterBackend

        backend = RasterBackend(font_family=get_settings().font_family)
    return draw_figure(fig, backend)
