from __future__ import annotations


class PlotError(Exception):
    """Base class for figkit errors."""


class PlotConfigError(PlotError, ValueError):
    """Raised for unknown kinds, attribute keys, legend locations, subplot cells or colormaps."""


class PlotDataError(PlotError, ValueError):
    """Raised when plot input data cannot be coerced or has mismatched shapes."""
