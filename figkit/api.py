from __future__ import annotations

from collections.abc import Callable, Iterable
import logging
from pathlib import Path
from typing import Any

from figkit import setters
from figkit.context import current_context, new_figure
from figkit.figure import Figure, subplot as _subplot
from figkit.frontend import PLOT_FUNCTIONS, build_plot_function
from figkit.plotobject import PlotObject
from figkit.render import render_figure


LOGGER = logging.getLogger(__name__)


def figure(size: tuple[float, float] | None = None, units: str | None = None, dpi: float | None = None) -> Figure:
    """Create a new figure and make it current."""
    return current_context().scf(new_figure(size, units, dpi))


def gcf() -> Figure:
    return current_context().gcf()


def scf(fig: Figure) -> Figure:
    return current_context().scf(fig)


def subplot(rows: int, cols: int, cells: int | Iterable[int], replace: bool = True) -> PlotObject:
    return _subplot(gcf(), rows, cols, cells, replace=replace)


def savefig(path: str | Path, fig: Figure | None = None) -> Path:
    """Render ``fig`` (default: current figure) and write it; the format follows the file extension."""
    target = Path(path)
    backend = render_figure(fig if fig is not None else gcf())
    backend.save(target)
    return target


def show(fig: Figure | None = None) -> None:
    backend = render_figure(fig if fig is not None else gcf())
    backend.show()  # type: ignore[attr-defined]


def _current(setter: Callable[..., PlotObject]) -> Callable[..., PlotObject]:
    def apply(*args: Any, **kwargs: Any) -> PlotObject:
        return setter(gcf(), *args, **kwargs)

    apply.__name__ = setter.__name__
    apply.__qualname__ = setter.__name__
    apply.__doc__ = setter.__doc__
    return apply


_namespace = globals()
__all__ = ["figure", "gcf", "scf", "subplot", "savefig", "show"]

for _spec in PLOT_FUNCTIONS:
    _fn, _fn_into = build_plot_function(_spec)
    _namespace[_fn.__name__] = _fn
    _namespace[_fn_into.__name__] = _fn_into
    __all__ += [_fn.__name__, _fn_into.__name__]

for _name, _setter in setters.SETTERS.items():
    _namespace[_name] = _current(_setter)
    __all__.append(_name)
