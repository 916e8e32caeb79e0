from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from figkit.backend.raster.canvas import fill_mask
from figkit.colors import RGBA
from figkit.errors import PlotConfigError


DEFAULT_FONT_FAMILY = "DejaVu Sans"
FALLBACK_FAMILIES = ("dejavusans", "liberationsans", "helvetica", "arial", "freesans")
FONT_DIRS = (
    Path.home() / ".fonts",
    Path.home() / "Library" / "Fonts",
    Path("/Library/Fonts"),
    Path("/System/Library/Fonts"),
    Path("/usr/share/fonts"),
    Path("/usr/local/share/fonts"),
    Path("C:/Windows/Fonts"),
)
_TURNS = {1: Image.Transpose.ROTATE_90, 2: Image.Transpose.ROTATE_180, 3: Image.Transpose.ROTATE_270}

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont


def quarter_turns(rotation: int) -> int:
    if rotation % 90:
        raise PlotConfigError(f"text rotation must be a multiple of 90 degrees, got {rotation}")
    return (rotation // 90) % 4


def draw_text(
    dst: np.ndarray,
    x: int,
    y: int,
    text: str,
    color: RGBA,
    *,
    font_family: str = DEFAULT_FONT_FAMILY,
    font_size_px: float = 12.0,
    rotation: int = 0,
) -> None:
    """Blend antialiased ``text`` into ``dst`` with its top-left corner at pixel ``(x, y)``."""
    if not text:
        return
    mask = glyph_mask(text, font_family, _size(font_size_px), quarter_turns(rotation))
    h, w = mask.shape
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(dst.shape[1], x + w), min(dst.shape[0], y + h)
    if x1 <= x0 or y1 <= y0:
        return
    fill_mask(dst[y0:y1, x0:x1], mask[y0 - y : y1 - y, x0 - x : x1 - x], color)


def text_size(
    text: str,
    *,
    font_family: str = DEFAULT_FONT_FAMILY,
    font_size_px: float = 12.0,
    rotation: int = 0,
) -> tuple[int, int]:
    if not text:
        ascent, descent = _font(font_family, _size(font_size_px)).getmetrics()
        return (0, max(1, int(ascent + descent)))
    h, w = glyph_mask(text, font_family, _size(font_size_px), quarter_turns(rotation)).shape
    return (w, h)


def aligned_origin(x: float, y: float, w: int, h: int, halign: str, valign: str) -> tuple[int, int]:
    """Top-left pixel for a ``w`` x ``h`` box anchored at ``(x, y)``."""
    if halign == "center":
        x -= 0.5 * w
    elif halign == "right":
        x -= w
    if valign in ("half", "center"):
        y -= 0.5 * h
    elif valign in ("bottom", "base"):
        y -= h
    return (int(round(x)), int(round(y)))


@lru_cache(maxsize=512)
def glyph_mask(text: str, font_family: str, size: int, turns: int = 0) -> np.ndarray:
    """``(h, w)`` uint8 coverage of ``text`` cropped to its ink box, rotated counter-clockwise."""
    font = _font(font_family, size)
    left, top, right, bottom = font.getbbox(text)
    image = Image.new("L", (max(1, int(right - left)), max(1, int(bottom - top))), 0)
    ImageDraw.Draw(image).text((-left, -top), text, fill=255, font=font)
    if turns:
        image = image.transpose(_TURNS[turns])
    mask = np.asarray(image, dtype=np.uint8)
    mask.setflags(write=False)
    return mask


def _size(font_size_px: float) -> int:
    return max(1, int(round(font_size_px)))


@lru_cache(maxsize=64)
def _font(font_family: str, size: int) -> Font:
    path = font_path(font_family)
    if path is not None:
        try:
            return ImageFont.truetype(str(path), size=size)
        except OSError:
            pass
    return ImageFont.load_default(size=size)


def font_path(font_family: str) -> Path | None:
    """Best installed match for ``font_family``, then the sans-serif fallbacks."""
    installed = _installed_fonts()
    wanted = font_family.strip().lower().replace(" ", "") or DEFAULT_FONT_FAMILY.lower().replace(" ", "")
    for family in (wanted,) + FALLBACK_FAMILIES:
        if family in installed:
            return installed[family]
        for stem, path in installed.items():
            if family in stem and "bold" not in stem and "oblique" not in stem:
                return path
    return None


@lru_cache(maxsize=1)
def _installed_fonts() -> dict[str, Path]:
    found: dict[str, Path] = {}
    for base in FONT_DIRS:
        if not base.exists():
            continue
        for pattern in ("*.ttf", "*.otf", "*.ttc"):
            for path in sorted(base.rglob(pattern)):
                found.setdefault(path.stem.lower().replace(" ", "").replace("-", ""), path)
    return found
