from __future__ import annotations

from dataclasses import dataclass

from figkit.axes import Axes
from figkit.errors import PlotConfigError
from figkit.scales import FLIP_Z, Y_LOG, FLIP_Y, Z_LOG, is_defined, tick_step


DEFAULT_LEVELS = 256


@dataclass(frozen=True)
class Colorbar:
    range: tuple[float, float] = (0.0, 0.0)
    tick: float = 0.0
    scale: int = 0
    margin: float = 0.0
    levels: int = 0

    @property
    def is_empty(self) -> bool:
        return self.range == (0.0, 0.0) and self.levels == 0


EMPTY_COLORBAR = Colorbar()


def build_colorbar(axes: Axes, channel: str = "c", levels: int = DEFAULT_LEVELS) -> Colorbar:
    """Colour key for the ``z`` or ``c`` channel of ``axes``.

    The bar is drawn along its own y axis, so channel log/flip bits move to
    ``Y_LOG``/``FLIP_Y``. Only a flipped z channel flips the bar.
    """
    if channel not in ("z", "c"):
        raise PlotConfigError(f"colorbar channel must be 'z' or 'c', got {channel!r}")
    if levels < 1:
        raise PlotConfigError("colorbar levels must be >= 1")
    limits = axes.ranges.get(channel)
    if limits is None or not is_defined(limits) or limits[0] == limits[1]:
        return EMPTY_COLORBAR
    log = bool(axes.scale & Z_LOG)
    scale = Y_LOG if log else 0
    if channel == "z" and axes.scale & FLIP_Z:
        scale |= FLIP_Y
    tick = 2.0 if log else 0.5 * tick_step(*limits)
    margin = 0.05 if axes.kind == "cartesian3d" else 0.0
    return Colorbar(range=limits, tick=tick, scale=scale, margin=margin, levels=levels)
