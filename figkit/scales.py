from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import math
from typing import Iterable

import numpy as np


UNDEFINED_RANGE = (math.inf, -math.inf)

# Scale option bits, matching the conventional GKS/GR encoding.
X_LOG = 1
Y_LOG = 2
Z_LOG = 4
FLIP_X = 8
FLIP_Y = 16
FLIP_Z = 32

LOG_BITS = {"x": X_LOG, "y": Y_LOG, "z": Z_LOG}
FLIP_BITS = {"x": FLIP_X, "y": FLIP_Y, "z": FLIP_Z}

MAX_TICKS = 2000
_SNAP_EPS = 1e-9


@dataclass(frozen=True)
class Tick:
    value: float
    major: bool


def extrema64(values: Iterable[float] | np.ndarray, start: tuple[float, float] = UNDEFINED_RANGE) -> tuple[float, float]:
    """Fold the finite-or-infinite, non-NaN extrema of ``values`` into ``start``."""
    arr = np.asarray(values, dtype=np.float64).ravel()
    lo, hi = start
    if arr.size == 0:
        return (float(lo), float(hi))
    arr = arr[~np.isnan(arr)]
    if arr.size == 0:
        return (float(lo), float(hi))
    return (float(min(lo, np.min(arr))), float(max(hi, np.max(arr))))


def is_defined(limits: tuple[float, float]) -> bool:
    lo, hi = limits
    return math.isfinite(lo) and math.isfinite(hi) and lo <= hi


def fix_minmax(lo: float, hi: float) -> tuple[float, float]:
    if lo == hi:
        lo = lo - 0.1 * abs(lo) if lo != 0 else lo - 0.1
        hi = hi + 0.1 * abs(hi) if hi != 0 else hi + 0.1
    return (lo, hi)


def tick_step(lo: float, hi: float) -> float:
    """Return a 1/2/5 style tick spacing giving a handful of ticks over ``[lo, hi]``."""
    if not (hi > lo) or not math.isfinite(hi - lo):
        raise ValueError(f"tick range must satisfy min < max, got ({lo}, {hi})")
    exponent = math.log10(hi - lo)
    n = math.floor(exponent)
    factor = 10.0 ** (exponent - n)
    if factor > 5:
        scale = 2.0
    elif factor > 2.5:
        scale = 1.0
    else:
        scale = 0.5
    return scale * 10.0**n


def adjust_limits(lo: float, hi: float) -> tuple[float, float]:
    """Widen ``[lo, hi]`` outward to the nearest multiples of its tick step."""
    if lo == hi:
        return (lo, hi)
    step = tick_step(lo, hi)
    lo_q = _snap(lo / step)
    hi_q = _snap(hi / step)
    return (_clean(math.floor(lo_q) * step, step), _clean(math.ceil(hi_q) * step, step))


def axis_ticks(lo: float, hi: float, minor: float, major: int, *, log: bool = False) -> list[Tick]:
    """Enumerate ticks inside ``[lo, hi]``; every ``major``-th tick is labelled."""
    if lo > hi:
        lo, hi = hi, lo
    if log:
        return _log_ticks(lo, hi)
    if not (minor > 0) or not math.isfinite(lo) or not math.isfinite(hi):
        return []
    first = math.ceil(_snap(lo / minor))
    last = math.floor(_snap(hi / minor))
    if last - first > MAX_TICKS:
        return []
    out: list[Tick] = []
    for k in range(first, last + 1):
        is_major = major > 0 and k % major == 0
        out.append(Tick(value=_clean(k * minor, minor), major=is_major))
    return out


def _log_ticks(lo: float, hi: float) -> list[Tick]:
    if lo <= 0 or not math.isfinite(lo) or not math.isfinite(hi):
        return []
    out: list[Tick] = []
    for exp in range(math.floor(math.log10(lo)), math.ceil(math.log10(hi)) + 1):
        base = 10.0**exp
        for mult in range(1, 10):
            value = mult * base
            if lo * (1 - _SNAP_EPS) <= value <= hi * (1 + _SNAP_EPS):
                out.append(Tick(value=value, major=mult == 1))
    return out


def _snap(q: float) -> float:
    r = round(q)
    return float(r) if abs(q - r) < _SNAP_EPS * max(1.0, abs(q)) else q


def _clean(value: float, step: float) -> float:
    if abs(value) <= step * _SNAP_EPS:
        return 0.0
    return float(value)


def format_tick(value: float, *, step: float | None = None) -> str:
    if not np.isfinite(value):
        return str(value)
    if step is not None and np.isfinite(step) and step > 0 and abs(value) <= step * 1e-9:
        value = 0.0
    abs_v = abs(value)
    decimals = _decimals_from_step(step) if step is not None else 6
    if abs_v != 0 and (abs_v >= 1e6 or (step is not None and abs(step) < 1e-4) or abs_v < 1e-6):
        return f"{value:.4e}"

    d = Decimal(repr(float(value)))
    quant = Decimal("1").scaleb(-decimals)
    try:
        q = d.quantize(quant)
    except InvalidOperation:
        q = d
    out = format(q, "f")
    # Only fractional parts lose trailing zeros; 30 stays 30.
    if "." in out:
        out = out.rstrip("0").rstrip(".")
    if out == "-0":
        out = "0"
    return out


def format_log_tick(value: float) -> str:
    exp = round(math.log10(value)) if value > 0 else 0
    return f"10^{exp}"


def _decimals_from_step(step: float) -> int:
    if step <= 0 or not np.isfinite(step):
        return 6
    d = Decimal(repr(float(step))).normalize()
    exp = d.as_tuple().exponent
    decimals = max(0, -int(exp))
    return min(12, decimals)
