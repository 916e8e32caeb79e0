from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

import numpy as np

from figkit.errors import PlotDataError


try:
    import pandas as pd
except Exception:  # pragma: no cover - optional dependency
    pd = None  # type: ignore[assignment]

try:
    import torch
except Exception:  # pragma: no cover - optional dependency
    torch = None  # type: ignore[assignment]


def is_array_like(value: Any) -> bool:
    if isinstance(value, np.ndarray):
        return True
    if torch is not None and isinstance(value, torch.Tensor):
        return True
    if pd is not None and isinstance(value, (pd.Series, pd.DataFrame)):
        return True
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def resolve_column(value: Any, data: Any, *, label: str) -> Any:
    """Look up ``value`` as a column name of ``data`` when it is a string."""
    if data is None or not isinstance(value, str):
        return value
    if pd is None:
        raise PlotDataError("pandas is required when using `data=`")
    if not isinstance(data, pd.DataFrame):
        raise PlotDataError("`data` must be a pandas DataFrame")
    if value not in data.columns:
        raise PlotDataError(f"column not found for {label}: {value}")
    return data[value]


def coerce_numeric(value: Any, *, label: str, max_ndim: int = 2, allow_complex: bool = False) -> np.ndarray:
    """Convert user data to a float64 (or complex128) array with at most ``max_ndim`` dimensions."""
    if torch is not None and isinstance(value, torch.Tensor):
        tensor = value.detach()
        if tensor.is_cuda:
            tensor = tensor.cpu()
        if tensor.is_complex():
            arr = tensor.to(torch.complex128).numpy()
        else:
            arr = tensor.to(torch.float64).numpy()
    elif pd is not None and isinstance(value, pd.DataFrame):
        numeric_cols = [c for c in value.columns if _is_numeric_dtype(value[c])]
        if not numeric_cols:
            raise PlotDataError(f"{label} DataFrame has no numeric columns")
        arr = value[numeric_cols].to_numpy()
    elif pd is not None and isinstance(value, pd.Series):
        arr = value.to_numpy()
    elif isinstance(value, np.ndarray):
        arr = value
    elif isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        arr = np.asarray(value, dtype=object)
        if arr.dtype == object and arr.ndim == 1 and arr.size > 0 and all(
            isinstance(v, (int, float, np.integer, np.floating, bool)) for v in arr.tolist()
        ):
            arr = arr.astype(np.float64)
    elif isinstance(value, (int, float, complex, np.number)) and not isinstance(value, bool):
        arr = np.asarray(value)
    else:
        raise PlotDataError(f"unsupported {label} input type: {type(value)!r}")

    if arr.ndim > max_ndim:
        raise PlotDataError(f"{label} must have at most {max_ndim} dimensions, got {arr.ndim}")
    if arr.ndim == 0:
        arr = arr.reshape(1)
    return _coerce_ndarray(arr, label=label, allow_complex=allow_complex)


def _is_numeric_dtype(series: Any) -> bool:
    if pd is None:
        return False
    try:
        return bool(pd.api.types.is_numeric_dtype(series))
    except Exception:
        return False


def _coerce_ndarray(arr: np.ndarray, *, label: str, allow_complex: bool) -> np.ndarray:
    if arr.dtype.kind in {"i", "u", "f", "b"}:
        return arr.astype(np.float64, copy=False)
    if arr.dtype.kind == "c":
        if not allow_complex:
            raise PlotDataError(f"{label} must be real-valued")
        return arr.astype(np.complex128, copy=False)

    flat = arr.ravel().tolist()
    if allow_complex and any(isinstance(raw, complex) for raw in flat):
        out = np.empty(len(flat), dtype=np.complex128)
        convert: Any = complex
    else:
        out = np.empty(len(flat), dtype=np.float64)
        convert = float
    for i, raw in enumerate(flat):
        if raw is None:
            out[i] = np.nan
            continue
        if isinstance(raw, Decimal):
            out[i] = float(raw)
            continue
        try:
            out[i] = convert(raw)
        except (TypeError, ValueError) as exc:
            raise PlotDataError(f"{label} contains non-numeric value at index {i}: {raw!r}") from exc
    return out.reshape(arr.shape)
