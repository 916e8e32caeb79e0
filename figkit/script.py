from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
import logging
import math
from pathlib import Path
import tomllib
from typing import Any

import numpy as np

from figkit.context import new_figure
from figkit.errors import PlotConfigError
from figkit.figure import Figure, subplot
from figkit.frontend import PLOT_FUNCTION_SPECS, plot_into
from figkit.setters import SETTERS


LOGGER = logging.getLogger(__name__)

SINGLE_VALUE_SETTERS = frozenset({"xticklabels", "yticklabels"})


@dataclass(frozen=True)
class PlotStep:
    function: str
    args: list[Any] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)
    subplot: tuple[int, int, Any] | None = None
    setters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PlotScript:
    size: tuple[float, float] | None = None
    units: str | None = None
    dpi: float | None = None
    steps: tuple[PlotStep, ...] = ()


def load_script(path: str | Path) -> PlotScript:
    """Read a TOML plot script: an optional ``[figure]`` table and ``[[plot]]`` entries."""
    script_path = Path(path)
    if not script_path.exists():
        raise FileNotFoundError(f"plot script not found: {script_path}")
    with script_path.open("rb") as f:
        raw = tomllib.load(f)
    figure_raw = raw.get("figure", {})
    if not isinstance(figure_raw, Mapping):
        raise PlotConfigError("[figure] must be a table")
    size = figure_raw.get("size")
    steps = []
    for i, entry in enumerate(raw.get("plot", [])):
        try:
            function = str(entry["function"])
        except KeyError as exc:
            raise PlotConfigError(f"plot entry {i + 1} missing required field: {exc.args[0]}") from exc
        if function not in PLOT_FUNCTION_SPECS:
            raise PlotConfigError(f"plot entry {i + 1}: unknown plot function {function!r}")
        grid = entry.get("subplot")
        if grid is not None and len(grid) != 3:
            raise PlotConfigError(f"plot entry {i + 1}: subplot must be [rows, cols, cells]")
        steps.append(
            PlotStep(
                function=function,
                args=list(entry.get("args", [])),
                options=dict(entry.get("options", {})),
                subplot=tuple(grid) if grid is not None else None,
                setters=dict(entry.get("setters", {})),
            )
        )
    LOGGER.debug("loaded plot script %s with %d steps", script_path, len(steps))
    return PlotScript(
        size=tuple(size) if size is not None else None,
        units=figure_raw.get("units"),
        dpi=figure_raw.get("dpi"),
        steps=tuple(steps),
    )


def apply_setter(fig: Figure, name: str, value: Any) -> None:
    try:
        setter = SETTERS[name]
    except KeyError:
        raise PlotConfigError(f"unknown setter: {name!r}") from None
    if isinstance(value, list) and name not in SINGLE_VALUE_SETTERS:
        setter(fig, *value)
    else:
        setter(fig, value)


def run_script(script: PlotScript) -> Figure:
    fig = new_figure(script.size, script.units, script.dpi)
    for step in script.steps:
        if step.subplot is not None:
            rows, cols, cells = step.subplot
            subplot(fig, int(rows), int(cols), cells)
        plot_into(PLOT_FUNCTION_SPECS[step.function], fig, *step.args, **step.options)
        for name, value in step.setters.items():
            apply_setter(fig, name, value)
    return fig


# -- demos -------------------------------------------------------------------


def _demo_line(fig: Figure) -> None:
    x = np.linspace(0.0, 2 * math.pi, 200)
    plot_into(PLOT_FUNCTION_SPECS["plot"], fig, x, np.column_stack([np.sin(x), np.cos(x)]), label=["sin", "cos"])
    apply_setter(fig, "title", "Trigonometric functions")
    apply_setter(fig, "legend", ["sin", "cos"])
    apply_setter(fig, "xlabel", "x")


def _demo_subplots(fig: Figure) -> None:
    rng = np.random.default_rng(7)
    subplot(fig, 2, 2, 1)
    plot_into(PLOT_FUNCTION_SPECS["scatter"], fig, rng.normal(size=60), rng.normal(size=60))
    subplot(fig, 2, 2, 2)
    plot_into(PLOT_FUNCTION_SPECS["histogram"], fig, rng.normal(size=500), nbins=20)
    subplot(fig, 2, 2, [3, 4])
    plot_into(PLOT_FUNCTION_SPECS["barplot"], fig, ["a", "b", "c", "d"], [3.0, 5.0, 2.0, 4.0])


def _demo_heatmap(fig: Figure) -> None:
    x = np.linspace(-2.0, 2.0, 40)
    y = np.linspace(-1.5, 1.5, 30)
    gx, gy = np.meshgrid(x, y)
    plot_into(PLOT_FUNCTION_SPECS["heatmap"], fig, x, y, np.exp(-(gx**2 + gy**2)))
    apply_setter(fig, "title", "Gaussian")


def _demo_surface(fig: Figure) -> None:
    x = np.linspace(-3.0, 3.0, 25)
    y = np.linspace(-3.0, 3.0, 25)
    gx, gy = np.meshgrid(x, y)
    plot_into(PLOT_FUNCTION_SPECS["surface"], fig, x, y, np.sin(gx) * np.cos(gy))


def _demo_contourf(fig: Figure) -> None:
    x = np.linspace(-2.0, 2.0, 40)
    y = np.linspace(0.0, math.pi, 20)
    plot_into(PLOT_FUNCTION_SPECS["contourf"], fig, x, y, lambda a, b: math.sin(a) + math.cos(b), levels=12)


def _demo_hexbin(fig: Figure) -> None:
    rng = np.random.default_rng(11)
    plot_into(PLOT_FUNCTION_SPECS["hexbin"], fig, rng.normal(size=2000), rng.normal(size=2000), nbins=25)


def _demo_polar(fig: Figure) -> None:
    theta = np.linspace(0.0, 4 * math.pi, 300)
    plot_into(PLOT_FUNCTION_SPECS["polar"], fig, theta, theta)


DEMOS: dict[str, Callable[[Figure], None]] = {
    "line": _demo_line,
    "subplots": _demo_subplots,
    "heatmap": _demo_heatmap,
    "surface": _demo_surface,
    "contourf": _demo_contourf,
    "hexbin": _demo_hexbin,
    "polar": _demo_polar,
}


def run_demo(name: str, size: tuple[float, float] | None = None) -> Figure:
    try:
        build = DEMOS[name]
    except KeyError:
        raise PlotConfigError(f"unknown demo {name!r}; choose from {', '.join(sorted(DEMOS))}") from None
    fig = new_figure(size)
    build(fig)
    return fig
