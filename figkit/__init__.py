from figkit import api
from figkit.api import figure, gcf, savefig, scf, show, subplot
from figkit.attributes import PlotAttributes
from figkit.axes import Axes, build_axes
from figkit.colorbar import Colorbar, build_colorbar
from figkit.context import PlotContext, using_context
from figkit.errors import PlotConfigError, PlotDataError, PlotError
from figkit.figure import Figure
from figkit.frontend import PlotFunctionSpec, build_plot_function
from figkit.geometry import Geometry, make_geometries, register_geometry_kind
from figkit.legend import Legend, build_legend
from figkit.plotobject import PlotObject, compose_plot
from figkit.render import draw_figure, register_draw
from figkit.viewport import Viewport, compute_viewport

__all__ = [
    "Axes",
    "Colorbar",
    "Figure",
    "Geometry",
    "Legend",
    "PlotAttributes",
    "PlotConfigError",
    "PlotContext",
    "PlotDataError",
    "PlotError",
    "PlotFunctionSpec",
    "PlotObject",
    "Viewport",
    "api",
    "build_axes",
    "build_colorbar",
    "build_legend",
    "build_plot_function",
    "compose_plot",
    "compute_viewport",
    "draw_figure",
    "figure",
    "gcf",
    "make_geometries",
    "register_draw",
    "register_geometry_kind",
    "savefig",
    "scf",
    "show",
    "subplot",
    "using_context",
]
