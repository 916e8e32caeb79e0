from .backend import RasterBackend
from .canvas import blend_region, draw_pixel, fill_mask, new_canvas
from .draw_lines import clip_segment, draw_polyline
from .draw_markers import draw_markers
from .draw_text import draw_text, text_size

__all__ = [
    "RasterBackend",
    "blend_region",
    "clip_segment",
    "draw_markers",
    "draw_pixel",
    "draw_polyline",
    "draw_text",
    "fill_mask",
    "new_canvas",
    "text_size",
]
