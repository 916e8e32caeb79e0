from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
import logging
from typing import Any

import numpy as np

from figkit.adapters.normalize import coerce_numeric, is_array_like
from figkit.errors import PlotConfigError, PlotDataError
from figkit.transforms import DEFAULT_HEXBIN_BINS, hexbin_cells


LOGGER = logging.getLogger(__name__)

GEOMETRY_ATTRIBUTE_KEYS = frozenset({"alpha", "linewidth", "markersize", "step_position", "clabels", "nbins"})
LINE_KINDS = ("line", "step", "stem", "polarline", "line3d")
GRID_KINDS = ("heatmap", "image", "polarheatmap", "surface", "wireframe", "contour", "contourf")
CELL_KINDS = ("heatmap", "image", "polarheatmap")
LEVEL_KINDS = ("contour", "contourf", "tricont")

_COORD_NAMES = ("x", "y", "z", "c")


def _empty() -> np.ndarray:
    return np.zeros(0, dtype=np.float64)


@dataclass(frozen=True, eq=False)
class Geometry:
    """One drawable series: coordinate channels plus style.

    Grid kinds keep ``x`` (nx) and ``y`` (ny) as axis vectors and store the
    ``(ny, nx)`` value matrix flattened row-major in ``z`` or ``c``.
    """

    kind: str
    x: np.ndarray = field(default_factory=_empty)
    y: np.ndarray = field(default_factory=_empty)
    z: np.ndarray = field(default_factory=_empty)
    c: np.ndarray = field(default_factory=_empty)
    spec: str = ""
    label: str = ""
    attributes: Mapping[str, float] = field(default_factory=dict)

    def with_attributes(self, **attributes: float) -> Geometry:
        merged = dict(self.attributes)
        merged.update(_validate_attributes(attributes))
        return replace(self, attributes=merged)

    def with_label(self, label: str) -> Geometry:
        return replace(self, label=str(label))

    def with_spec(self, spec: str) -> Geometry:
        return replace(self, spec=str(spec))

    def channels(self) -> dict[str, list[np.ndarray]]:
        return geometry_kind(self.kind).channels(self)

    @property
    def grid_shape(self) -> tuple[int, int]:
        return (int(self.y.size), int(self.x.size))

    def grid_values(self) -> np.ndarray:
        values = self.c if self.kind in CELL_KINDS else self.z
        return values.reshape(self.grid_shape)


@dataclass(frozen=True)
class GeometryKindInfo:
    name: str
    factory: Callable[[str, list[np.ndarray], str, Any], list[Geometry]]
    legend: bool = False
    grid: bool = False
    channels: Callable[[Geometry], dict[str, list[np.ndarray]]] = field(default=lambda g: _default_channels(g))


_KINDS: dict[str, GeometryKindInfo] = {}


def register_geometry_kind(
    kind: str,
    factory: Callable[[str, list[np.ndarray], str, Any], list[Geometry]],
    *,
    legend: bool = False,
    grid: bool = False,
    channels: Callable[[Geometry], dict[str, list[np.ndarray]]] | None = None,
    replace_existing: bool = False,
) -> GeometryKindInfo:
    """Register a geometry kind so ``make_geometries`` and axes building accept it."""
    if not kind:
        raise PlotConfigError("geometry kind must be a non-empty string")
    if kind in _KINDS and not replace_existing:
        raise PlotConfigError(f"geometry kind already registered: {kind}")
    info = GeometryKindInfo(
        name=kind,
        factory=factory,
        legend=legend,
        grid=grid,
        channels=channels if channels is not None else _default_channels,
    )
    _KINDS[kind] = info
    return info


def geometry_kind(kind: str) -> GeometryKindInfo:
    try:
        return _KINDS[kind]
    except KeyError:
        raise PlotConfigError(f"unknown geometry kind: {kind!r}") from None


def geometry_kinds() -> tuple[str, ...]:
    return tuple(_KINDS)


def make_geometries(
    kind: str,
    *args: Any,
    spec: str = "",
    label: str | Sequence[str] = "",
    **attributes: float,
) -> list[Geometry]:
    info = geometry_kind(kind)
    checked = _validate_attributes(attributes)
    coords, trailing_spec = _expand_args(args, grid=info.grid)
    if trailing_spec is not None:
        spec = trailing_spec
    geoms = info.factory(kind, coords, spec, label)
    if checked:
        geoms = [g.with_attributes(**checked) for g in geoms]
    LOGGER.debug("created %d %s geometries", len(geoms), kind)
    return geoms


def _validate_attributes(attributes: Mapping[str, Any]) -> dict[str, float]:
    unknown = sorted(set(attributes) - GEOMETRY_ATTRIBUTE_KEYS)
    if unknown:
        raise PlotConfigError(f"unknown geometry attribute(s): {', '.join(unknown)}")
    out: dict[str, float] = {}
    for key, value in attributes.items():
        try:
            out[key] = float(value)
        except (TypeError, ValueError) as exc:
            raise PlotConfigError(f"geometry attribute {key} must be numeric, got {value!r}") from exc
    return out


def _expand_args(args: Sequence[Any], *, grid: bool) -> tuple[list[np.ndarray], str | None]:
    items = list(args)
    spec = None
    if items and isinstance(items[-1], str):
        spec = items.pop()
    coords: list[np.ndarray] = []
    for item in items:
        if isinstance(item, str):
            raise PlotDataError("only the last argument may be a format string")
        if callable(item) and not is_array_like(item):
            coords.append(_apply_function(item, coords, grid=grid))
            continue
        name = _COORD_NAMES[min(len(coords), 3)]
        arr = coerce_numeric(item, label=name, allow_complex=not coords)
        if np.iscomplexobj(arr):
            coords.extend([np.ascontiguousarray(arr.real), np.ascontiguousarray(arr.imag)])
        else:
            coords.append(arr)
    return coords, spec


def _apply_function(fn: Callable[..., Any], coords: list[np.ndarray], *, grid: bool) -> np.ndarray:
    if not coords:
        raise PlotDataError("a function argument needs preceding coordinates")
    prior = coords[-2:] if len(coords) >= 2 else coords[-1:]
    if grid and len(prior) == 2:
        prior = list(np.meshgrid(prior[0].ravel(), prior[1].ravel()))
    try:
        return np.asarray(np.vectorize(fn, otypes=[np.float64])(*prior), dtype=np.float64)
    except ValueError as exc:
        raise PlotDataError(f"cannot evaluate function over coordinates: {exc}") from exc


def _split_columns(kind: str, arrays: list[np.ndarray]) -> list[tuple[np.ndarray, ...]]:
    """Split 2-D arrays by column, recycling 1-D arrays across the columns."""
    rows = {a.shape[0] for a in arrays}
    if len(rows) != 1:
        sizes = " != ".join(str(a.shape[0]) for a in arrays)
        raise PlotDataError(f"{kind}: coordinate length mismatch: {sizes}")
    widths = {a.shape[1] for a in arrays if a.ndim == 2}
    if len(widths) > 1:
        raise PlotDataError(f"{kind}: 2-D arguments have different column counts: {sorted(widths)}")
    ncols = widths.pop() if widths else 1
    out = []
    for col in range(ncols):
        out.append(tuple(np.ascontiguousarray(a[:, col] if a.ndim == 2 else a) for a in arrays))
    return out


def _labels_for(label: str | Sequence[str], count: int) -> list[str]:
    if isinstance(label, str):
        return [label] * count
    labels = [str(v) for v in label]
    if len(labels) != count:
        raise PlotDataError(f"got {len(labels)} labels for {count} series")
    return labels


def _index_axis(n: int) -> np.ndarray:
    return np.arange(1, n + 1, dtype=np.float64)


def _line_factory(kind: str, coords: list[np.ndarray], spec: str, label: Any) -> list[Geometry]:
    ndims = 3 if kind == "line3d" else 2
    if ndims == 2 and len(coords) == 1:
        coords = [_index_axis(coords[0].shape[0]), coords[0]]
    if len(coords) != ndims:
        raise PlotDataError(f"{kind} expects {ndims} coordinate arguments, got {len(coords)}")
    columns = _split_columns(kind, coords)
    labels = _labels_for(label, len(columns))
    geoms = []
    for cols, text in zip(columns, labels):
        z = cols[2] if ndims == 3 else _empty()
        geoms.append(Geometry(kind=kind, x=cols[0], y=cols[1], z=z, spec=spec, label=text))
    return geoms


def _flat(kind: str, arr: np.ndarray, name: str) -> np.ndarray:
    if arr.ndim != 1:
        raise PlotDataError(f"{kind}: {name} must be 1-D")
    return arr


def _point_channel(kind: str, arr: np.ndarray | None, n: int, name: str) -> np.ndarray:
    if arr is None:
        return _empty()
    arr = _flat(kind, arr, name)
    if arr.size == 1 and n != 1:
        return np.full(n, float(arr[0]))
    if arr.size != n:
        raise PlotDataError(f"{kind}: {name} length mismatch: {arr.size} != {n}")
    return arr


def _scatter_factory(kind: str, coords: list[np.ndarray], spec: str, label: Any) -> list[Geometry]:
    lowest = 3 if kind == "scatter3" else 1
    if not lowest <= len(coords) <= 4:
        raise PlotDataError(f"{kind} expects {lowest} to 4 coordinate arguments, got {len(coords)}")
    if len(coords) == 1:
        coords = [_index_axis(coords[0].shape[0]), coords[0]]
    x = _flat(kind, coords[0], "x")
    y = _point_channel(kind, coords[1], x.size, "y")
    z = _point_channel(kind, coords[2] if len(coords) > 2 else None, x.size, "z")
    c = _point_channel(kind, coords[3] if len(coords) > 3 else None, x.size, "c")
    text = label if isinstance(label, str) else ", ".join(str(v) for v in label)
    return [Geometry(kind=kind, x=x, y=y, z=z, c=c, spec=spec, label=text)]


def _bar_factory(kind: str, coords: list[np.ndarray], spec: str, label: Any) -> list[Geometry]:
    if len(coords) != 2:
        raise PlotDataError(f"{kind} expects edge and height pairs, got {len(coords)} arguments")
    x = _flat(kind, coords[0], "x").ravel()
    y = _flat(kind, coords[1], "y").ravel()
    if x.size != y.size or x.size % 2:
        raise PlotDataError(f"{kind}: edge/height pairs must have equal even lengths, got {x.size} and {y.size}")
    text = label if isinstance(label, str) else ", ".join(str(v) for v in label)
    return [Geometry(kind=kind, x=x, y=y, spec=spec, label=text)]


def _errorbar_factory(kind: str, coords: list[np.ndarray], spec: str, label: Any) -> list[Geometry]:
    if len(coords) != 4:
        raise PlotDataError(f"{kind} expects x, y, lower and upper bounds, got {len(coords)} arguments")
    x = _flat(kind, coords[0], "x")
    y = _point_channel(kind, coords[1], x.size, "y")
    lower = _point_channel(kind, coords[2], x.size, "lower")
    upper = _point_channel(kind, coords[3], x.size, "upper")
    text = label if isinstance(label, str) else ", ".join(str(v) for v in label)
    return [Geometry(kind=kind, x=x, y=y, z=lower, c=upper, spec=spec, label=text)]


def _grid_factory(kind: str, coords: list[np.ndarray], spec: str, label: Any) -> list[Geometry]:
    extra = _empty()
    if kind in LEVEL_KINDS and len(coords) == 4:
        extra = coords.pop().ravel()
    if len(coords) == 1:
        values = coords[0]
        if values.ndim != 2:
            raise PlotDataError(f"{kind}: values must be a 2-D array")
        coords = [_index_axis(values.shape[1]), _index_axis(values.shape[0]), values]
    if len(coords) != 3:
        raise PlotDataError(f"{kind} expects x, y and a value matrix, got {len(coords)} arguments")
    x = _flat(kind, coords[0], "x")
    y = _flat(kind, coords[1], "y")
    values = coords[2]
    if values.ndim == 1 and values.size == x.size * y.size:
        values = values.reshape(y.size, x.size)
    if values.shape != (y.size, x.size):
        raise PlotDataError(f"{kind}: values shape {values.shape} does not match (len(y), len(x)) = ({y.size}, {x.size})")
    flat = np.ascontiguousarray(values, dtype=np.float64).ravel()
    text = label if isinstance(label, str) else ", ".join(str(v) for v in label)
    if kind in CELL_KINDS:
        return [Geometry(kind=kind, x=x, y=y, c=flat, spec=spec, label=text)]
    c = extra if kind in LEVEL_KINDS else flat
    return [Geometry(kind=kind, x=x, y=y, z=flat, c=c, spec=spec, label=text)]


def _triangle_factory(kind: str, coords: list[np.ndarray], spec: str, label: Any) -> list[Geometry]:
    levels = _empty()
    if kind in LEVEL_KINDS and len(coords) == 4:
        levels = coords.pop().ravel()
    if len(coords) != 3:
        raise PlotDataError(f"{kind} expects x, y and z point arguments, got {len(coords)}")
    x = _flat(kind, coords[0], "x")
    y = _point_channel(kind, coords[1], x.size, "y")
    z = _point_channel(kind, coords[2], x.size, "z")
    if x.size < 3:
        raise PlotDataError(f"{kind} needs at least 3 points, got {x.size}")
    text = label if isinstance(label, str) else ", ".join(str(v) for v in label)
    return [Geometry(kind=kind, x=x, y=y, z=z, c=levels, spec=spec, label=text)]


def _hexbin_factory(kind: str, coords: list[np.ndarray], spec: str, label: Any) -> list[Geometry]:
    if len(coords) != 2:
        raise PlotDataError(f"{kind} expects x and y point arguments, got {len(coords)}")
    x = _flat(kind, coords[0], "x")
    y = _point_channel(kind, coords[1], x.size, "y")
    text = label if isinstance(label, str) else ", ".join(str(v) for v in label)
    return [Geometry(kind=kind, x=x, y=y, spec=spec, label=text)]


def _default_channels(geom: Geometry) -> dict[str, list[np.ndarray]]:
    return {
        "x": [geom.x],
        "y": [geom.y],
        "z": [geom.z],
        "c": [geom.c] if geom.c.size else [geom.z],
    }


def _errorbar_channels(geom: Geometry) -> dict[str, list[np.ndarray]]:
    return {"x": [geom.x], "y": [geom.y, geom.z, geom.c], "z": [], "c": []}


def _cell_edges(centers: np.ndarray) -> np.ndarray:
    if centers.size == 0:
        return centers
    if centers.size == 1:
        return np.asarray([centers[0] - 0.5, centers[0] + 0.5])
    step = np.diff(centers)
    return np.asarray([centers[0] - 0.5 * step[0], centers[-1] + 0.5 * step[-1]])


def _cell_channels(geom: Geometry) -> dict[str, list[np.ndarray]]:
    return {"x": [_cell_edges(geom.x)], "y": [_cell_edges(geom.y)], "z": [], "c": [geom.c]}


def _contour_channels(geom: Geometry) -> dict[str, list[np.ndarray]]:
    return {"x": [geom.x], "y": [geom.y], "z": [geom.z], "c": [geom.z]}


def hexbin_bins(geom: Geometry) -> int:
    return int(geom.attributes.get("nbins", DEFAULT_HEXBIN_BINS))


def _hexbin_channels(geom: Geometry) -> dict[str, list[np.ndarray]]:
    _, _, counts, _ = hexbin_cells(geom.x, geom.y, hexbin_bins(geom))
    return {"x": [geom.x], "y": [geom.y], "z": [], "c": [counts]}


for _kind in LINE_KINDS:
    register_geometry_kind(_kind, _line_factory, legend=_kind != "polarline")
register_geometry_kind("scatter", _scatter_factory)
register_geometry_kind("scatter3", _scatter_factory)
register_geometry_kind("bar", _bar_factory, legend=True)
register_geometry_kind("polarbar", _bar_factory)
register_geometry_kind("errorbar", _errorbar_factory, legend=True, channels=_errorbar_channels)
register_geometry_kind("heatmap", _grid_factory, grid=True, channels=_cell_channels)
register_geometry_kind("image", _grid_factory, grid=True, channels=_cell_channels)
register_geometry_kind("polarheatmap", _grid_factory, grid=True, channels=_cell_channels)
register_geometry_kind("contour", _grid_factory, grid=True, channels=_contour_channels)
register_geometry_kind("contourf", _grid_factory, grid=True, channels=_contour_channels)
register_geometry_kind("tricont", _triangle_factory, channels=_contour_channels)
register_geometry_kind("trisurf", _triangle_factory, channels=_contour_channels)
register_geometry_kind("hexbin", _hexbin_factory, channels=_hexbin_channels)
register_geometry_kind("surface", _grid_factory, grid=True)
register_geometry_kind("wireframe", _grid_factory, grid=True)
