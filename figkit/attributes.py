from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, fields, replace
from typing import Any

from figkit.errors import PlotConfigError
from figkit.legend import legend_location
from figkit.viewport import UNIT_SQUARE


Limits = tuple[float | None, float | None]
TickLabels = Callable[[Any], Any] | Sequence[str]

AXES_OVERRIDE_KEYS = frozenset(
    {
        "xlim", "ylim", "zlim", "clim",
        "xlog", "ylog", "zlog",
        "xflip", "yflip", "zflip",
        "xticks", "yticks", "zticks",
        "xticklabels", "yticklabels",
        "grid", "tickdir",
        "rotation", "tilt",
        "scene", "cameradistance", "focus", "twist",
    }
)


@dataclass(frozen=True)
class PlotAttributes:
    """Plot-level options shared by composition, drawing and the setters.

    ``backend_options`` carries anything a specific backend understands and
    figkit itself ignores.
    """

    subplot: tuple[float, float, float, float] = UNIT_SQUARE
    kind: str = ""
    title: str = ""
    xlabel: str = ""
    ylabel: str = ""
    zlabel: str = ""
    hold: bool = False
    location: int = 0
    colorbar: bool = False
    adjust_colorbar: bool = True
    ratio: float | None = None
    noframe: bool = False
    overlay_axes: bool = False
    scheme: int | str | None = None
    colormap: int | str | None = None
    background: Any = None
    xlim: Limits | None = None
    ylim: Limits | None = None
    zlim: Limits | None = None
    clim: Limits | None = None
    xlog: bool = False
    ylog: bool = False
    zlog: bool = False
    xflip: bool = False
    yflip: bool = False
    zflip: bool = False
    xticks: tuple[float, int] | None = None
    yticks: tuple[float, int] | None = None
    zticks: tuple[float, int] | None = None
    xticklabels: TickLabels | None = None
    yticklabels: TickLabels | None = None
    grid: bool = True
    tickdir: int | None = None
    rotation: int | None = None
    tilt: int | None = None
    scene: bool = False
    cameradistance: float | None = None
    focus: tuple[float, float, float] | None = None
    twist: float | None = None
    backend_options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "location", legend_location(self.location))
        if len(self.subplot) != 4:
            raise PlotConfigError("subplot must have 4 values (x0, x1, y0, y1)")
        object.__setattr__(self, "subplot", tuple(float(v) for v in self.subplot))
        if self.ratio is not None and self.ratio <= 0:
            raise PlotConfigError(f"ratio must be > 0, got {self.ratio}")
        for name in ("xlim", "ylim", "zlim", "clim"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, _limits(name, value))
        for name in ("xticks", "yticks", "zticks"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, _ticks(name, value))

    @classmethod
    def keys(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None = None, **kwargs: Any) -> PlotAttributes:
        merged = dict(options or {})
        merged.update(kwargs)
        check_keys(merged)
        return cls(**merged)

    def updated(self, **changes: Any) -> PlotAttributes:
        check_keys(changes)
        return replace(self, **changes)

    def merged(self, other: Mapping[str, Any]) -> PlotAttributes:
        """Apply only the keys present in ``other``; used when holding a plot."""
        return self.updated(**dict(other))

    def axes_overrides(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key in AXES_OVERRIDE_KEYS:
            value = getattr(self, key)
            if value is not None and value is not False:
                out[key] = value
        out["grid"] = self.grid
        return out


def check_keys(options: Mapping[str, Any]) -> None:
    unknown = sorted(set(options) - PlotAttributes.keys())
    if unknown:
        raise PlotConfigError(f"unknown plot attribute(s): {', '.join(unknown)}")


def _limits(name: str, value: Any) -> Limits:
    try:
        lo, hi = value
    except (TypeError, ValueError) as exc:
        raise PlotConfigError(f"{name} must be a (min, max) pair, got {value!r}") from exc
    return (None if lo is None else float(lo), None if hi is None else float(hi))


def _ticks(name: str, value: Any) -> tuple[float, int]:
    if isinstance(value, (int, float)):
        return (float(value), 1)
    try:
        minor, major = value
    except (TypeError, ValueError) as exc:
        raise PlotConfigError(f"{name} must be minor or (minor, major), got {value!r}") from exc
    return (float(minor), int(major))
