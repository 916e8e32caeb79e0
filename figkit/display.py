from __future__ import annotations

import logging
import math

from figkit.errors import PlotConfigError


LOGGER = logging.getLogger(__name__)

DEFAULT_FIGURE_SIZE = (600.0, 450.0)
DEFAULT_DPI = 100.0
HIGH_DPI_THRESHOLD = 200.0

UNITS_PER_INCH = {"in": 1.0, "cm": 2.54, "m": 0.0254}


def resolve_figure_size(
    size: tuple[float, float] = DEFAULT_FIGURE_SIZE,
    units: str = "px",
    dpi: float | None = None,
) -> tuple[int, int]:
    """Convert a figure size in px/in/cm/m to canvas pixels.

    High-density displays (above 200 dpi) get a proportionally larger canvas so
    the figure does not appear tiny.
    """
    if len(size) != 2:
        raise PlotConfigError(f"figure size must be (width, height), got {size!r}")
    w, h = (float(v) for v in size)
    if not (w > 0 and h > 0) or not (math.isfinite(w) and math.isfinite(h)):
        raise PlotConfigError(f"figure size must be positive, got {size!r}")
    resolution = dpi if dpi is not None else (detect_dpi() or DEFAULT_DPI)
    if resolution <= 0:
        raise PlotConfigError(f"dpi must be > 0, got {resolution}")
    if units == "px":
        pass
    elif units in UNITS_PER_INCH:
        factor = resolution / UNITS_PER_INCH[units]
        w, h = w * factor, h * factor
    else:
        raise PlotConfigError(f"unknown figure size units: {units!r} (expected px, in, cm or m)")
    if resolution > HIGH_DPI_THRESHOLD:
        w, h = w * resolution / DEFAULT_DPI, h * resolution / DEFAULT_DPI
    return (max(1, int(round(w))), max(1, int(round(h))))


def window_ratio(width: float, height: float) -> tuple[float, float]:
    largest = max(width, height)
    return (width / largest, height / largest)


def detect_dpi() -> float | None:
    try:
        import tkinter as tk

        root = tk.Tk()
        root.withdraw()
        dpi = float(root.winfo_fpixels("1i"))
        root.destroy()
        if dpi > 0:
            return dpi
    except Exception:
        LOGGER.debug("display dpi unavailable; using default")
        return None
    return None
