from __future__ import annotations

import math

import numpy as np

from figkit.errors import PlotConfigError, PlotDataError
from figkit.scales import adjust_limits, extrema64, fix_minmax, is_defined


STEP_POSITIONS = {"pre": -1.0, "mid": 0.0, "post": 1.0}


def step_position(where: str | float) -> float:
    if isinstance(where, str):
        try:
            return STEP_POSITIONS[where]
        except KeyError:
            raise PlotConfigError(f"step position must be one of {sorted(STEP_POSITIONS)}, got {where!r}") from None
    value = float(where)
    if value not in (-1.0, 0.0, 1.0):
        raise PlotConfigError(f"step position must be -1, 0 or 1, got {where!r}")
    return value


def bar_coordinates(heights: np.ndarray, *, barwidth: float = 0.8, baseline: float = 0.0) -> tuple[np.ndarray, np.ndarray]:
    """Return interleaved ``(left, right)`` edges and ``(baseline, height)`` pairs for bars at 1..n."""
    heights = np.asarray(heights, dtype=np.float64).ravel()
    if barwidth <= 0:
        raise PlotConfigError("barwidth must be > 0")
    centers = np.arange(1, heights.size + 1, dtype=np.float64)
    half = 0.5 * barwidth
    wc = np.empty(2 * heights.size, dtype=np.float64)
    hc = np.empty(2 * heights.size, dtype=np.float64)
    wc[0::2] = centers - half
    wc[1::2] = centers + half
    hc[0::2] = baseline
    hc[1::2] = heights
    return wc, hc


def default_bin_count(n: int) -> int:
    return int(round(3.3 * math.log10(max(n, 1)))) + 1


def histogram_edges(values: np.ndarray, nbins: int = 0) -> tuple[np.ndarray, np.ndarray]:
    """Bin ``values`` into ``nbins`` equal-width buckets; returns ``(edges, counts)``.

    A value lying exactly on an inner edge is counted in the lower bucket.
    """
    values = np.asarray(values, dtype=np.float64).ravel()
    values = values[np.isfinite(values)]
    if values.size == 0:
        raise PlotDataError("histogram needs at least one finite value")
    if nbins <= 1:
        nbins = default_bin_count(values.size)
    lo, hi = fix_minmax(float(np.min(values)), float(np.max(values)))
    edges = np.linspace(lo, hi, nbins + 1)
    index = np.clip(np.searchsorted(edges, values, side="left"), 1, edges.size - 1) - 1
    counts = np.bincount(index, minlength=nbins).astype(np.float64)
    return edges, counts


def histogram_bars(values: np.ndarray, nbins: int = 0, *, baseline: float = 0.0) -> tuple[np.ndarray, np.ndarray]:
    edges, counts = histogram_edges(values, nbins)
    wc = np.empty(2 * counts.size, dtype=np.float64)
    hc = np.empty(2 * counts.size, dtype=np.float64)
    wc[0::2] = edges[:-1]
    wc[1::2] = edges[1:]
    hc[0::2] = baseline
    hc[1::2] = counts
    return wc, hc


def polar_histogram_bars(theta: np.ndarray, nbins: int = 0) -> tuple[np.ndarray, np.ndarray]:
    theta = np.mod(np.asarray(theta, dtype=np.float64).ravel(), 2 * math.pi)
    theta = theta[np.isfinite(theta)]
    if theta.size == 0:
        raise PlotDataError("polar histogram needs at least one finite angle")
    if nbins <= 1:
        nbins = default_bin_count(theta.size)
    edges = np.linspace(0.0, 2 * math.pi, nbins + 1)
    index = np.clip(np.searchsorted(edges, theta, side="left"), 1, nbins) - 1
    counts = np.bincount(index, minlength=nbins).astype(np.float64)
    wc = np.empty(2 * nbins, dtype=np.float64)
    hc = np.zeros(2 * nbins, dtype=np.float64)
    wc[0::2] = edges[:-1]
    wc[1::2] = edges[1:]
    hc[1::2] = counts
    return wc, hc


def step_path(x: np.ndarray, y: np.ndarray, position: float = 1.0) -> tuple[np.ndarray, np.ndarray]:
    """Expand samples into a staircase; ``-1`` steps before, ``0`` midway, ``1`` after each x."""
    n = x.size
    if n < 2:
        return x, y
    if position < 0:
        xs = np.repeat(x, 2)[:-1]
        ys = np.repeat(y, 2)[1:]
    elif position > 0:
        xs = np.repeat(x, 2)[1:]
        ys = np.repeat(y, 2)[:-1]
    else:
        mids = 0.5 * (x[:-1] + x[1:])
        xs = np.empty(2 * n, dtype=np.float64)
        xs[0] = x[0]
        xs[1:-1] = np.repeat(mids, 2)
        xs[-1] = x[-1]
        ys = np.repeat(y, 2)
    return xs, ys


def contour_levels(values: np.ndarray, levels: int | np.ndarray = 20) -> np.ndarray:
    """Evenly spaced levels over the nice-rounded value range, or explicit levels."""
    if not np.isscalar(levels):
        return np.asarray(levels, dtype=np.float64).ravel()
    count = int(levels)
    if count < 1:
        raise PlotConfigError("levels must be >= 1")
    limits = extrema64(values)
    if not is_defined(limits):
        return np.zeros(0, dtype=np.float64)
    lo, hi = adjust_limits(*fix_minmax(*limits))
    return np.linspace(lo, hi, count + 1)


def polar_to_cartesian(theta: np.ndarray, rho: np.ndarray, rmax: float) -> tuple[np.ndarray, np.ndarray]:
    r = rho / rmax if rmax > 0 else rho
    return r * np.cos(theta), r * np.sin(theta)


DEFAULT_HEXBIN_BINS = 40
# Hexagon corners in units of (sx, sy / 3) around a bin centre.
HEXAGON = np.array([[0.5, -0.5], [0.5, 0.5], [0.0, 1.0], [-0.5, 0.5], [-0.5, -0.5], [0.0, -1.0]])


def hexbin_cells(
    x: np.ndarray, y: np.ndarray, nbins: int = DEFAULT_HEXBIN_BINS
) -> tuple[np.ndarray, np.ndarray, np.ndarray, tuple[float, float]]:
    """Bin points into a pointy-top hexagonal lattice ``nbins`` cells wide.

    Returns the centres and counts of the occupied cells plus the lattice
    spacing ``(sx, sy)``. Each point goes to the nearer of the two
    interleaved rectangular lattices, which tiles the plane with hexagons.
    """
    x = np.asarray(x, dtype=np.float64).ravel()
    y = np.asarray(y, dtype=np.float64).ravel()
    keep = np.isfinite(x) & np.isfinite(y)
    x, y = x[keep], y[keep]
    if x.size == 0:
        raise PlotDataError("hexbin needs at least one finite point")
    nx = max(int(nbins), 1)
    ny = max(int(nx / math.sqrt(3)), 1)
    xmin, xmax = fix_minmax(float(np.min(x)), float(np.max(x)))
    ymin, ymax = fix_minmax(float(np.min(y)), float(np.max(y)))
    sx = (xmax - xmin) / nx
    sy = (ymax - ymin) / ny
    xn = (x - xmin) / sx
    yn = (y - ymin) / sy
    ix1, iy1 = np.round(xn), np.round(yn)
    ix2, iy2 = np.floor(xn), np.floor(yn)
    d1 = (xn - ix1) ** 2 + 3.0 * (yn - iy1) ** 2
    d2 = (xn - ix2 - 0.5) ** 2 + 3.0 * (yn - iy2 - 0.5) ** 2
    first = d1 < d2
    # Doubled lattice indices keep both lattices on integers.
    keys = np.column_stack(
        [np.where(first, 2 * ix1, 2 * ix2 + 1), np.where(first, 2 * iy1, 2 * iy2 + 1)]
    ).astype(np.int64)
    cells, counts = np.unique(keys, axis=0, return_counts=True)
    cx = 0.5 * cells[:, 0] * sx + xmin
    cy = 0.5 * cells[:, 1] * sy + ymin
    return cx, cy, counts.astype(np.float64), (sx, sy)


def hexagon(cx: float, cy: float, size: tuple[float, float]) -> tuple[np.ndarray, np.ndarray]:
    sx, sy = size
    return cx + sx * HEXAGON[:, 0], cy + sy / 3.0 * HEXAGON[:, 1]


def triangulate(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Delaunay triangles over the points ``(x, y)`` as an ``(n, 3)`` index array."""
    from scipy.spatial import Delaunay, QhullError

    points = np.column_stack([np.asarray(x, dtype=np.float64).ravel(), np.asarray(y, dtype=np.float64).ravel()])
    if points.shape[0] < 3:
        raise PlotDataError(f"triangulation needs at least 3 points, got {points.shape[0]}")
    try:
        return Delaunay(points).simplices
    except QhullError as exc:
        raise PlotDataError(f"cannot triangulate points: {exc}") from exc


def grid_triangles(nx: int, ny: int) -> np.ndarray:
    """Split every cell of an ``(ny, nx)`` grid into two triangles of flat row-major indices."""
    rows, cols = np.meshgrid(np.arange(ny - 1), np.arange(nx - 1), indexing="ij")
    a = (rows * nx + cols).ravel()
    b, c, d = a + 1, a + nx + 1, a + nx
    return np.concatenate([np.column_stack([a, b, c]), np.column_stack([a, c, d])])


Vertex = tuple[float, float, float]


def _clip_value(polygon: list[Vertex], bound: float, above: bool) -> list[Vertex]:
    out: list[Vertex] = []
    n = len(polygon)
    for k in range(n):
        a, b = polygon[k], polygon[(k + 1) % n]
        a_in = a[2] >= bound if above else a[2] <= bound
        b_in = b[2] >= bound if above else b[2] <= bound
        if a_in:
            out.append(a)
        if a_in != b_in:
            t = (bound - a[2]) / (b[2] - a[2])
            out.append((a[0] + t * (b[0] - a[0]), a[1] + t * (b[1] - a[1]), bound))
    return out


def clip_band(polygon: list[Vertex], lo: float, hi: float) -> list[Vertex]:
    """Part of a linearly interpolated ``(x, y, value)`` polygon with ``lo <= value <= hi``."""
    return _clip_value(_clip_value(polygon, lo, True), hi, False)
