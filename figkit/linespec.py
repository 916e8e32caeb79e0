from __future__ import annotations

from dataclasses import dataclass

from figkit.errors import PlotConfigError


LINE_STYLES = ("--", "-.", "-", ":")
MARKERS = frozenset(".,ov^<>spd*+xhD")
COLOR_CODES = frozenset("rgbcmykw")


@dataclass(frozen=True)
class LineSpec:
    linestyle: str | None = None
    marker: str | None = None
    color: str | None = None

    @property
    def has_line(self) -> bool:
        return self.linestyle is not None or self.marker is None

    @property
    def has_marker(self) -> bool:
        return self.marker is not None


def parse_linespec(spec: str) -> LineSpec:
    """Parse a format string such as ``"r--o"``; an empty spec draws a solid line."""
    linestyle = marker = color = None
    i = 0
    while i < len(spec):
        ch = spec[i]
        if ch == " ":
            i += 1
            continue
        for style in LINE_STYLES:
            if spec.startswith(style, i):
                if linestyle is not None:
                    raise PlotConfigError(f"format string has two line styles: {spec!r}")
                linestyle = style
                i += len(style)
                break
        else:
            if ch in COLOR_CODES:
                if color is not None:
                    raise PlotConfigError(f"format string has two colours: {spec!r}")
                color = ch
            elif ch in MARKERS:
                if marker is not None:
                    raise PlotConfigError(f"format string has two markers: {spec!r}")
                marker = ch
            else:
                raise PlotConfigError(f"unrecognised character {ch!r} in format string {spec!r}")
            i += 1
    return LineSpec(linestyle=linestyle, marker=marker, color=color)
