from __future__ import annotations

from dataclasses import dataclass, fields, replace
import logging
import os
from pathlib import Path
import tomllib
from typing import Any

from figkit.errors import PlotConfigError


LOGGER = logging.getLogger(__name__)

CONFIG_ENV = "FIGKIT_CONFIG"
ENV_PREFIX = "FIGKIT_"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "figkit" / "figkit.toml"


@dataclass(frozen=True)
class Settings:
    figure_size: tuple[float, float] = (600.0, 450.0)
    units: str = "px"
    dpi: float | None = 100.0
    font_family: str = "DejaVu Sans"
    colormap: str = "viridis"
    scheme: str = "none"
    colorbar_levels: int = 256


_FIELD_TYPES = {
    "figure_size": "pair",
    "units": "str",
    "dpi": "float_or_none",
    "font_family": "str",
    "colormap": "str",
    "scheme": "str",
    "colorbar_levels": "int",
}

_settings: Settings | None = None


def load_settings(path: str | Path | None = None, *, environ: dict[str, str] | None = None) -> Settings:
    """Read settings from TOML (explicit path, ``FIGKIT_CONFIG`` or the user config file) plus ``FIGKIT_*`` variables."""
    env = os.environ if environ is None else environ
    raw: dict[str, Any] = {}
    source = Path(path) if path is not None else (Path(env[CONFIG_ENV]) if env.get(CONFIG_ENV) else None)
    if source is None and DEFAULT_CONFIG_PATH.exists():
        source = DEFAULT_CONFIG_PATH
    if source is not None:
        if not source.exists():
            raise FileNotFoundError(f"figkit config not found: {source}")
        with source.open("rb") as f:
            raw = tomllib.load(f)
        raw = dict(raw.get("figkit", raw))
        LOGGER.debug("loaded settings from %s", source)

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise PlotConfigError(f"unknown config key(s): {', '.join(unknown)}")
    for name in known:
        value = env.get(ENV_PREFIX + name.upper())
        if value is not None:
            raw[name] = value

    settings = Settings()
    values = {name: _coerce(name, value) for name, value in raw.items()}
    return replace(settings, **values)


def _coerce(name: str, value: Any) -> Any:
    kind = _FIELD_TYPES[name]
    try:
        if kind == "pair":
            if isinstance(value, str):
                value = [v for v in value.replace("x", ",").split(",") if v.strip()]
            w, h = value
            return (float(w), float(h))
        if kind == "float_or_none":
            if value is None or (isinstance(value, str) and value.strip().lower() in ("", "auto", "none")):
                return None
            return float(value)
        if kind == "int":
            return int(value)
        return str(value)
    except (TypeError, ValueError) as exc:
        raise PlotConfigError(f"invalid value for config key {name}: {value!r}") from exc


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def set_settings(settings: Settings) -> Settings:
    global _settings
    _settings = settings
    return settings


def reset_settings() -> None:
    global _settings
    _settings = None
