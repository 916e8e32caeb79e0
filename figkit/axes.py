from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
import logging
import math
import sys
from typing import Any

import numpy as np

from figkit.errors import PlotConfigError
from figkit.geometry import Geometry
from figkit.scales import (
    FLIP_BITS,
    LOG_BITS,
    UNDEFINED_RANGE,
    adjust_limits,
    extrema64,
    fix_minmax,
    format_tick,
    is_defined,
    tick_step,
)


LOGGER = logging.getLogger(__name__)

AXES_KINDS = ("cartesian2d", "cartesian3d", "polar", "none")
CHANNELS = ("x", "y", "z", "c")

MAJOR_COUNTS = {"cartesian2d": 5, "cartesian3d": 2, "polar": 2}
TICK_AXES = {"cartesian2d": ("x", "y"), "cartesian3d": ("x", "y", "z"), "polar": ("x", "y")}

DEFAULT_ROTATION = 40
DEFAULT_TILT = 70
DEFAULT_CAMERA_DISTANCE = 3.0

TickLabeler = Callable[[float], str]


@dataclass(frozen=True)
class TickData:
    minor: float
    origin: tuple[float, float]
    major: int


@dataclass
class Axes:
    kind: str = "none"
    ranges: dict[str, tuple[float, float]] = field(default_factory=lambda: {ch: UNDEFINED_RANGE for ch in CHANNELS})
    tickdata: dict[str, TickData] = field(default_factory=dict)
    ticklabels: dict[str, TickLabeler] = field(default_factory=dict)
    perspective: tuple[int, int] = (0, 0)
    camera: tuple[float, ...] = ()
    options: dict[str, int] = field(default_factory=dict)

    @property
    def scale(self) -> int:
        return int(self.options.get("scale", 0))

    def is_log(self, axis: str) -> bool:
        return axis in LOG_BITS and bool(self.scale & LOG_BITS[axis])

    def is_flipped(self, axis: str) -> bool:
        return axis in FLIP_BITS and bool(self.scale & FLIP_BITS[axis])


def aggregate_ranges(geoms: Sequence[Geometry]) -> dict[str, tuple[float, float]]:
    ranges = {ch: UNDEFINED_RANGE for ch in CHANNELS}
    for geom in geoms:
        for channel, arrays in geom.channels().items():
            for values in arrays:
                ranges[channel] = extrema64(values, ranges[channel])
    return ranges


def resolve_range(
    axis: str,
    geoms: Sequence[Geometry],
    overrides: Mapping[str, Any] | None = None,
    *,
    computed: tuple[float, float] | None = None,
) -> tuple[float, float]:
    """Return the final ``(min, max)`` for one channel after fallback, repair, rounding and overrides."""
    overrides = overrides or {}
    limits = computed if computed is not None else aggregate_ranges(geoms)[axis]
    log = bool(overrides.get(f"{axis}log", False))
    flip = bool(overrides.get(f"{axis}flip", False))

    if axis in ("x", "y") and not is_defined(limits):
        limits = (0.0, 1.0)
    if is_defined(limits):
        # A widened constant range keeps its exact +-10% bounds.
        degenerate = limits[0] == limits[1]
        limits = fix_minmax(*limits)
        if not (log or flip or degenerate):
            limits = adjust_limits(*limits)

    user = overrides.get(f"{axis}lim")
    if user is not None:
        lo_user, hi_user = user
        lo = float(lo_user) if lo_user is not None else limits[0]
        hi = float(hi_user) if hi_user is not None else limits[1]
        if lo_user is not None and hi_user is not None and lo > hi:
            raise PlotConfigError(f"{axis}lim must satisfy min <= max, got ({lo}, {hi})")
        limits = (lo, hi)
        if is_defined(limits):
            limits = fix_minmax(*limits)

    if log and is_defined(limits):
        limits = _positive_log_range(axis, limits, geoms)
    return limits


def _positive_log_range(axis: str, limits: tuple[float, float], geoms: Sequence[Geometry]) -> tuple[float, float]:
    lo, hi = limits
    if lo > 0:
        return limits
    positive = math.inf
    for geom in geoms:
        for values in geom.channels().get(axis, []):
            arr = np.asarray(values, dtype=np.float64)
            arr = arr[arr > 0]
            if arr.size:
                positive = min(positive, float(np.min(arr)))
    if hi <= 0:
        clamped = (1.0, 10.0)
    elif math.isfinite(positive) and positive < hi:
        clamped = (positive, hi)
    else:
        clamped = (max(hi * 1e-3, sys.float_info.min), hi)
    LOGGER.warning("log %s axis range (%g, %g) clamped to (%g, %g)", axis, lo, hi, clamped[0], clamped[1])
    return clamped


def set_scale(overrides: Mapping[str, Any]) -> int:
    scale = 0
    for axis, bit in LOG_BITS.items():
        if overrides.get(f"{axis}log"):
            scale |= bit
    for axis, bit in FLIP_BITS.items():
        if overrides.get(f"{axis}flip"):
            scale |= bit
    return scale


def axis_tickdata(
    axis: str,
    limits: tuple[float, float],
    major: int,
    *,
    log: bool = False,
    flip: bool = False,
    ticks: tuple[float, int] | None = None,
) -> TickData:
    if log:
        minor, count = 10.0, 1
    elif ticks is not None:
        minor, count = float(ticks[0]), int(ticks[1])
        if minor <= 0:
            raise PlotConfigError(f"{axis}ticks minor step must be > 0, got {minor}")
    else:
        minor, count = tick_step(*limits) / major, major
    origin = (limits[1], limits[0]) if flip else limits
    return TickData(minor=minor, origin=origin, major=count)


def make_ticklabeler(spec: Callable[[Any], Any] | Sequence[str] | None, *, step: float | None = None) -> TickLabeler:
    """Wrap a formatter function or a label sequence into a ``value -> str`` labeller.

    Sequences label the integer positions 1..n and leave every other value blank.
    """
    if spec is None:
        return lambda value: format_tick(value, step=step)
    if callable(spec):
        fn = spec
        return lambda value: str(fn(value))
    labels = [str(v) for v in spec]

    def _label(value: float) -> str:
        index = int(round(value))
        if abs(value - index) > 1e-9 or not 1 <= index <= len(labels):
            return ""
        return labels[index - 1]

    return _label


def set_camera(
    distance: float,
    rotation: float,
    tilt: float,
    *,
    focus: Sequence[float] = (0.0, 0.0, 0.0),
    twist: float = 0.0,
) -> tuple[float, ...]:
    """Camera position, focus point and up vector for a spherical viewpoint, as 9 values."""
    rot = math.radians(rotation)
    til = math.radians(tilt)
    tw = math.radians(twist)
    position = (
        distance * math.sin(til) * math.sin(rot),
        distance * math.cos(til),
        distance * math.sin(til) * math.cos(rot),
    )
    fx, fy, fz = (float(v) for v in focus)
    direction = (position[0] - fx, position[1] - fy, position[2] - fz)
    up = (-math.sin(tw) * direction[2], math.cos(tw), math.sin(tw) * direction[0])
    return (*position, fx, fy, fz, *up)


def build_axes(kind: str, geoms: Sequence[Geometry], overrides: Mapping[str, Any] | None = None) -> Axes:
    if kind not in AXES_KINDS:
        raise PlotConfigError(f"unknown axes kind: {kind!r}")
    overrides = dict(overrides or {})
    if kind == "polar":
        for axis in ("x", "y", "z"):
            overrides.pop(f"{axis}log", None)
            overrides.pop(f"{axis}flip", None)

    computed = aggregate_ranges(geoms)
    ranges = {axis: resolve_range(axis, geoms, overrides, computed=computed[axis]) for axis in CHANNELS}
    axes = Axes(kind=kind, ranges=ranges)
    if kind == "none":
        return axes

    scale = set_scale(overrides)
    axes.options["scale"] = scale
    axes.options["grid"] = 1 if overrides.get("grid", True) else 0
    if overrides.get("tickdir") is not None:
        axes.options["tickdir"] = int(overrides["tickdir"])

    major = MAJOR_COUNTS[kind]
    for axis in TICK_AXES[kind]:
        if not is_defined(ranges[axis]):
            continue
        axes.tickdata[axis] = axis_tickdata(
            axis,
            ranges[axis],
            major,
            log=axes.is_log(axis),
            flip=axes.is_flipped(axis),
            ticks=overrides.get(f"{axis}ticks"),
        )

    if kind == "cartesian2d" and (
        overrides.get("xticklabels") is not None or overrides.get("yticklabels") is not None
    ):
        for axis in ("x", "y"):
            data = axes.tickdata.get(axis)
            axes.ticklabels[axis] = make_ticklabeler(
                overrides.get(f"{axis}ticklabels"),
                step=data.minor * data.major if data is not None and data.major else None,
            )

    if kind == "cartesian3d":
        rotation = int(overrides.get("rotation") if overrides.get("rotation") is not None else DEFAULT_ROTATION)
        tilt = int(overrides.get("tilt") if overrides.get("tilt") is not None else DEFAULT_TILT)
        axes.perspective = (rotation, tilt)
        if overrides.get("scene"):
            axes.options["scene"] = 1
            axes.camera = set_camera(
                float(overrides.get("cameradistance") or DEFAULT_CAMERA_DISTANCE),
                rotation,
                tilt,
                focus=overrides.get("focus") or (0.0, 0.0, 0.0),
                twist=float(overrides.get("twist") or 0.0),
            )

    LOGGER.debug("built %s axes with ranges %s", kind, ranges)
    return axes
