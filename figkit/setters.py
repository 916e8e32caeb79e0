from __future__ import annotations

from collections.abc import Callable, Sequence
import logging
from typing import Any

from figkit.axes import build_axes
from figkit.colors import color_scheme, colormap_name, to_rgba
from figkit.errors import PlotConfigError
from figkit.figure import Figure
from figkit.legend import legend_location
from figkit.plotobject import PlotObject, refresh_layout


LOGGER = logging.getLogger(__name__)

Target = PlotObject | Figure


def _resolve(target: Target) -> tuple[PlotObject, tuple[float, float]]:
    if isinstance(target, Figure):
        return target.current_plot, target.window
    if isinstance(target, PlotObject):
        return target, target.window
    raise PlotConfigError(f"expected a PlotObject or Figure, got {type(target).__name__}")


def _set(target: Target, *, relayout: bool = False, rebuild_axes: bool = False, **changes: Any) -> PlotObject:
    plot, window = _resolve(target)
    plot.attributes = plot.attributes.updated(**changes)
    if rebuild_axes and plot.axes.kind != "none":
        plot.axes = build_axes(plot.axes.kind, plot.geoms, plot.attributes.axes_overrides())
        relayout = True
    if relayout and plot.geoms:
        refresh_layout(plot, window=window)
    LOGGER.debug("set %s", ", ".join(sorted(changes)))
    return plot


# -- text ------------------------------------------------------------------


def title(target: Target, text: str) -> PlotObject:
    return _set(target, title=str(text))


def xlabel(target: Target, text: str) -> PlotObject:
    return _set(target, xlabel=str(text))


def ylabel(target: Target, text: str) -> PlotObject:
    return _set(target, ylabel=str(text))


def zlabel(target: Target, text: str) -> PlotObject:
    return _set(target, zlabel=str(text))


# -- axes ------------------------------------------------------------------


def _limits_setter(axis: str) -> Callable[..., PlotObject]:
    def setter(target: Target, lo: float | None = None, hi: float | None = None) -> PlotObject:
        if isinstance(lo, (tuple, list)):
            lo, hi = lo
        value = None if lo is None and hi is None else (lo, hi)
        return _set(target, rebuild_axes=True, **{f"{axis}lim": value})

    setter.__name__ = f"{axis}lim"
    setter.__doc__ = f"Set the {axis} axis limits; ``None`` keeps the computed bound, no arguments restore both."
    return setter


def _ticks_setter(axis: str) -> Callable[..., PlotObject]:
    def setter(target: Target, minor: float | None = None, major: int = 1) -> PlotObject:
        return _set(target, rebuild_axes=True, **{f"{axis}ticks": None if minor is None else (minor, major)})

    setter.__name__ = f"{axis}ticks"
    return setter


def _ticklabels_setter(axis: str) -> Callable[..., PlotObject]:
    def setter(target: Target, labels: Callable[[Any], Any] | Sequence[str] | None) -> PlotObject:
        return _set(target, rebuild_axes=True, **{f"{axis}ticklabels": labels})

    setter.__name__ = f"{axis}ticklabels"
    return setter


def _flag_setter(name: str) -> Callable[..., PlotObject]:
    def setter(target: Target, flag: bool = True) -> PlotObject:
        return _set(target, rebuild_axes=True, **{name: bool(flag)})

    setter.__name__ = name
    return setter


xlim = _limits_setter("x")
ylim = _limits_setter("y")
zlim = _limits_setter("z")
xticks = _ticks_setter("x")
yticks = _ticks_setter("y")
zticks = _ticks_setter("z")
xticklabels = _ticklabels_setter("x")
yticklabels = _ticklabels_setter("y")
xlog = _flag_setter("xlog")
ylog = _flag_setter("ylog")
zlog = _flag_setter("zlog")
xflip = _flag_setter("xflip")
yflip = _flag_setter("yflip")
zflip = _flag_setter("zflip")
grid = _flag_setter("grid")


def perspective(target: Target, rotation: int, tilt: int) -> PlotObject:
    if not 0 <= tilt <= 180:
        raise PlotConfigError(f"tilt must be in 0..180, got {tilt}")
    return _set(target, rebuild_axes=True, rotation=int(rotation), tilt=int(tilt))


# -- legend / colorbar / layout -------------------------------------------------


def legend(target: Target, *labels: str, location: int | str = 1) -> PlotObject:
    """Label the plot's geometries in order and show the legend at ``location``."""
    plot, _ = _resolve(target)
    if len(labels) > len(plot.geoms):
        raise PlotConfigError(f"legend got {len(labels)} labels for {len(plot.geoms)} geometries")
    for i, text in enumerate(labels):
        plot.geoms[i] = plot.geoms[i].with_label(text)
    return _set(target, relayout=True, location=legend_location(location))


def colorbar(target: Target, flag: bool = True) -> PlotObject:
    return _set(target, relayout=True, colorbar=bool(flag))


def aspectratio(target: Target, ratio: float | None) -> PlotObject:
    return _set(target, relayout=True, ratio=None if ratio is None else float(ratio))


def hold(target: Target, flag: bool = True) -> PlotObject:
    return _set(target, hold=bool(flag))


# -- colours -----------------------------------------------------------------


def background(target: Target, color: Any) -> PlotObject:
    if color is not None:
        to_rgba(color)
    return _set(target, background=color)


def colormap(target: Target, cmap: int | str) -> PlotObject:
    colormap_name(cmap)
    return _set(target, colormap=cmap)


def colorscheme(target: Target, scheme: int | str) -> PlotObject:
    color_scheme(scheme)
    return _set(target, scheme=scheme)


SETTERS: dict[str, Callable[..., PlotObject]] = {
    fn.__name__: fn
    for fn in (
        title, xlabel, ylabel, zlabel,
        xlim, ylim, zlim, xticks, yticks, zticks, xticklabels, yticklabels,
        xlog, ylog, zlog, xflip, yflip, zflip, grid, perspective,
        legend, colorbar, aspectratio, hold, background, colormap, colorscheme,
    )
}
