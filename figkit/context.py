from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
import logging

from figkit.config import get_settings
from figkit.display import resolve_figure_size
from figkit.figure import Figure


LOGGER = logging.getLogger(__name__)


def new_figure(size: tuple[float, float] | None = None, units: str | None = None, dpi: float | None = None) -> Figure:
    """Create a figure sized from arguments, falling back to the configured defaults."""
    settings = get_settings()
    resolution = dpi if dpi is not None else settings.dpi
    width, height = resolve_figure_size(
        size if size is not None else settings.figure_size,
        units if units is not None else settings.units,
        resolution,
    )
    fig = Figure(width=width, height=height, dpi=resolution if resolution is not None else 100.0)
    LOGGER.debug("new figure %dx%d px", width, height)
    return fig


@dataclass
class PlotContext:
    """Holds the current figure; one is created lazily on first use."""

    figure: Figure | None = None

    def gcf(self) -> Figure:
        if self.figure is None:
            self.figure = new_figure()
        return self.figure

    def scf(self, fig: Figure) -> Figure:
        self.figure = fig
        return fig

    def reset(self) -> None:
        self.figure = None


_default_context = PlotContext()
_active: list[PlotContext] = [_default_context]


def current_context() -> PlotContext:
    return _active[-1]


def default_context() -> PlotContext:
    return _default_context


@contextmanager
def using_context(ctx: PlotContext | None = None) -> Iterator[PlotContext]:
    """Temporarily make ``ctx`` (or a fresh context) the current one."""
    ctx = ctx if ctx is not None else PlotContext()
    _active.append(ctx)
    try:
        yield ctx
    finally:
        _active.remove(ctx)
