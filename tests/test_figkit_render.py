from __future__ import annotations

from pathlib import Path
import tempfile
import unittest
from unittest import mock

import numpy as np
from PIL import Image
import torch

from figkit import api, setters
from figkit.backend.base import BackendState, GraphicsBackend
from figkit.backend.raster.draw_text import aligned_origin, text_size
from figkit.colors import color_scheme, colormap_table, map_colors, to_rgba
from figkit.compile import crop_frame_tensor, frame_to_tensor, frame_tensor
from figkit.config import Settings, reset_settings, set_settings
from figkit.errors import PlotConfigError
from figkit.figure import Figure
from figkit.frontend import PLOT_FUNCTION_SPECS, plot_into
from figkit.geometry import Geometry
from figkit.linespec import parse_linespec
from figkit.plotobject import PlotObject
from figkit.render import (
    contour_bands,
    contour_segments,
    draw_figure,
    draw_plot,
    register_draw,
    render_figure,
    tricontour_segments,
)
from figkit.scales import FLIP_X, FLIP_Y, X_LOG


class RecordingBackend(GraphicsBackend):
    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple] = []

    def begin(self, width, height, window) -> None:
        self.calls.append(("begin", width, height))

    def finish(self) -> None:
        self.calls.append(("finish",))

    def rgba(self) -> np.ndarray:
        w, h = self.resolution()
        return np.zeros((h, w, 4), dtype=np.uint8)

    def draw_polyline(self, x, y, *, color, width, linestyle, clip) -> None:
        self.calls.append(("polyline", x, y, color))

    def draw_markers(self, x, y, *, colors, size, marker, clip) -> None:
        self.calls.append(("markers", x, y, colors))

    def fill_polygon(self, x, y, *, color, clip) -> None:
        self.calls.append(("polygon", x, y, color))

    def draw_image(self, box, rgba, *, clip) -> None:
        self.calls.append(("image", box, rgba))

    def draw_text(self, x, y, text, *, color, height, halign, valign, rotation) -> None:
        self.calls.append(("text", text))

    def measure_text(self, text, height) -> tuple[float, float]:
        return (0.6 * height * len(text), height)

    def kinds(self) -> list[str]:
        return [c[0] for c in self.calls]


def _call(name: str, fig: Figure, *args, **kwargs):
    return plot_into(PLOT_FUNCTION_SPECS[name], fig, *args, **kwargs)


class BackendTransformTests(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = RecordingBackend()
        self.backend.set_viewport(0.1, 0.9, 0.1, 0.9)

    def test_linear_window_maps_to_viewport(self) -> None:
        self.backend.set_window(0.0, 10.0, 0.0, 100.0)
        x, y = self.backend.to_ndc([0.0, 5.0, 10.0], [0.0, 50.0, 100.0])
        np.testing.assert_allclose(x, [0.1, 0.5, 0.9])
        np.testing.assert_allclose(y, [0.1, 0.5, 0.9])

    def test_log_and_flip_scales(self) -> None:
        self.backend.set_window(1.0, 100.0, 0.0, 100.0)
        self.backend.set_scale(X_LOG | FLIP_Y)
        x, y = self.backend.to_ndc([1.0, 10.0, 100.0], [0.0, 50.0, 100.0])
        np.testing.assert_allclose(x, [0.1, 0.5, 0.9])
        np.testing.assert_allclose(y, [0.9, 0.5, 0.1])

    def test_flipped_cellarray_mirrors_image(self) -> None:
        self.backend.set_window(0.0, 1.0, 0.0, 1.0)
        self.backend.set_scale(FLIP_X)
        rgba = np.arange(8, dtype=np.uint8).reshape(1, 2, 4)
        self.backend.cellarray(0.0, 1.0, 0.0, 1.0, rgba)
        _, box, drawn = self.backend.calls[-1]
        self.assertLess(box[0], box[1])
        np.testing.assert_array_equal(drawn[0, 0], rgba[0, 1])

    def test_state_stack_and_transparency(self) -> None:
        self.backend.save_state()
        self.backend.set_transparency(0.5)
        self.backend.fillrect(0.0, 1.0, 0.0, 1.0, color=(10, 20, 30, 200), ndc=True)
        self.backend.restore_state()
        self.assertEqual(self.backend.calls[-1][3], (10, 20, 30, 100))
        self.assertEqual(self.backend.state.transparency, 1.0)


class DrawOrderTests(unittest.TestCase):
    def setUp(self) -> None:
        set_settings(Settings())

    def tearDown(self) -> None:
        reset_settings()

    def test_plot_parts_are_drawn_in_order(self) -> None:
        fig = Figure(width=200, height=150)
        _call("heatmap", fig, [1.0, 2.0], [1.0, 2.0], np.eye(2))
        setters.legend(fig, location="upper right")
        parent = mock.Mock()
        with mock.patch("figkit.render.draw_axes") as axes_fn, \
                mock.patch("figkit.render.draw_geometry", return_value=None) as geometry_fn, \
                mock.patch("figkit.render.draw_legend") as legend_fn, \
                mock.patch("figkit.render.draw_colorbar") as colorbar_fn, \
                mock.patch("figkit.render.draw_labels") as labels_fn:
            for name, fn in (
                ("axes", axes_fn), ("geometry", geometry_fn), ("legend", legend_fn),
                ("colorbar", colorbar_fn), ("labels", labels_fn),
            ):
                parent.attach_mock(fn, name)
            backend = draw_figure(fig, RecordingBackend())
        self.assertEqual([c[0] for c in parent.mock_calls], ["axes", "geometry", "legend", "colorbar", "labels"])
        self.assertEqual(backend.kinds()[0], "begin")
        self.assertEqual(backend.kinds()[-1], "finish")
        self.assertEqual(backend.state, BackendState())

    def test_empty_viewport_is_skipped(self) -> None:
        backend = RecordingBackend()
        draw_plot(PlotObject(), backend)
        self.assertEqual(backend.calls, [])

    def test_background_fills_outer_box_first(self) -> None:
        fig = Figure()
        _call("plot", fig, [1.0, 2.0, 3.0], background="black")
        backend = draw_figure(fig, RecordingBackend())
        self.assertEqual(backend.calls[1][0], "polygon")
        self.assertEqual(backend.calls[1][3], (0, 0, 0, 255))

    def test_every_plot_function_draws(self) -> None:
        grid = np.outer(np.arange(3.0), np.arange(4.0))
        cases = {
            "plot": ([1.0, 3.0, 2.0],),
            "step": ([1.0, 3.0, 2.0],),
            "stem": ([1.0, 3.0, 2.0],),
            "scatter": ([1.0, 2.0], [2.0, 1.0], [1.0, 2.0], [0.0, 1.0]),
            "barplot": ([3.0, 4.0],),
            "histogram": ([1.0, 2.0, 2.0, 3.0],),
            "errorbar": ([1.0, 2.0], [2.0, 3.0], [0.5, 0.5]),
            "plot3": ([0.0, 1.0], [0.0, 1.0], [0.0, 1.0]),
            "scatter3": ([0.0, 1.0], [0.0, 1.0], [0.0, 1.0]),
            "polar": ([0.0, 1.0, 2.0], [1.0, 2.0, 1.5]),
            "polarhistogram": ([0.1, 0.2, 3.0],),
            "heatmap": ([1.0, 2.0, 3.0, 4.0], [1.0, 2.0, 3.0], grid),
            "imshow": (grid,),
            "contour": ([1.0, 2.0, 3.0, 4.0], [1.0, 2.0, 3.0], grid),
            "surface": ([1.0, 2.0, 3.0, 4.0], [1.0, 2.0, 3.0], grid),
            "wireframe": ([1.0, 2.0, 3.0, 4.0], [1.0, 2.0, 3.0], grid),
            "contourf": ([1.0, 2.0, 3.0, 4.0], [1.0, 2.0, 3.0], grid),
            "polarheatmap": (grid,),
            "hexbin": ([0.0, 1.0, 2.0, 0.5], [1.0, 0.0, 2.0, 1.5]),
            "tricont": ([0.0, 1.0, 0.0, 1.0], [0.0, 0.0, 1.0, 1.0], [0.0, 1.0, 1.0, 2.0]),
            "trisurf": ([0.0, 1.0, 0.0, 1.0], [0.0, 0.0, 1.0, 1.0], [0.0, 1.0, 1.0, 2.0]),
        }
        self.assertEqual(set(cases), set(PLOT_FUNCTION_SPECS) - {"oplot"})
        for name, args in cases.items():
            with self.subTest(name=name):
                fig = Figure(width=200, height=150)
                _call(name, fig, *args, title=name)
                backend = draw_figure(fig, RecordingBackend())
                self.assertIn(("text", name), backend.calls)
                self.assertGreater(len(backend.calls), 3)

    def test_registry_rejects_duplicates_and_unknown_kinds(self) -> None:
        with self.assertRaises(PlotConfigError):
            register_draw("line", lambda geom, backend, ctx: None)
        fig = Figure()
        plot = _call("plot", fig, [1.0, 2.0])
        plot.geoms.append(Geometry(kind="violin"))
        with self.assertRaises(PlotConfigError):
            draw_figure(fig, RecordingBackend())


class RasterTests(unittest.TestCase):
    def setUp(self) -> None:
        set_settings(Settings())
        self.fig = Figure(width=160, height=120)
        _call("plot", self.fig, [1.0, 3.0, 2.0], "r-", title="raster")

    def tearDown(self) -> None:
        reset_settings()

    def test_render_draws_onto_canvas(self) -> None:
        frame = render_figure(self.fig).rgba()
        self.assertEqual(frame.shape, (120, 160, 4))
        self.assertEqual(frame.dtype, np.uint8)
        self.assertTrue((frame[..., :3] != 255).any())
        red = (frame[..., 0] == 255) & (frame[..., 1] == 0) & (frame[..., 2] == 0)
        self.assertTrue(red.any())

    def test_frame_tensor(self) -> None:
        tensor = frame_tensor(self.fig)
        self.assertEqual(tensor.dtype, torch.uint8)
        self.assertEqual(tuple(tensor.shape), (120, 160, 4))
        crop = crop_frame_tensor(tensor.numpy(), 10, 20, 30, 40)
        self.assertEqual(tuple(crop.shape), (40, 30, 4))

    def test_frame_checks(self) -> None:
        with self.assertRaises(ValueError):
            frame_to_tensor(np.zeros((4, 4, 4), dtype=np.float32))
        with self.assertRaises(ValueError):
            frame_to_tensor(np.zeros((4, 4, 3), dtype=np.uint8))
        with self.assertRaises(ValueError):
            crop_frame_tensor(np.zeros((4, 4, 4), dtype=np.uint8), 2, 2, 4, 4)

    def test_savefig_writes_image(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            png = api.savefig(Path(tmp) / "figure.png", self.fig)
            jpg = api.savefig(Path(tmp) / "figure.jpg", self.fig)
            with Image.open(png) as image:
                self.assertEqual(image.size, (160, 120))
                self.assertEqual(image.mode, "RGBA")
            with Image.open(jpg) as image:
                self.assertEqual(image.mode, "RGB")

    def test_text_rotation_swaps_box(self) -> None:
        w, h = text_size("axis label", font_size_px=14)
        self.assertGreater(w, h)
        self.assertEqual(text_size("axis label", font_size_px=14, rotation=90), (h, w))
        self.assertEqual(aligned_origin(100, 50, 20, 10, "center", "half"), (90, 45))
        with self.assertRaises(PlotConfigError):
            text_size("axis label", rotation=45)


class ContourTests(unittest.TestCase):
    def test_single_cell_crossing(self) -> None:
        xs, ys = contour_segments(np.array([0.0, 1.0]), np.array([0.0, 1.0]), np.array([[0.0, 0.0], [1.0, 1.0]]), 0.5)
        np.testing.assert_allclose(xs[:2], [1.0, 0.0])
        np.testing.assert_allclose(ys[:2], [0.5, 0.5])
        self.assertTrue(np.isnan(xs[2]))

    def test_level_outside_values_gives_nothing(self) -> None:
        xs, _ = contour_segments(np.array([0.0, 1.0]), np.array([0.0, 1.0]), np.zeros((2, 2)), 5.0)
        self.assertEqual(xs.size, 0)

    def test_filled_bands_tile_the_grid(self) -> None:
        values = np.array([[0.0, 0.0], [1.0, 1.0]])
        bands = contour_bands(np.array([0.0, 1.0]), np.array([0.0, 1.0]), values, np.array([0.0, 0.5, 1.0]))
        areas = [0.0, 0.0]
        for band, vertices in bands:
            xs, ys = np.array(vertices).T
            areas[band] += 0.5 * abs(np.dot(xs, np.roll(ys, -1)) - np.dot(ys, np.roll(xs, -1)))
        np.testing.assert_allclose(areas, [0.5, 0.5])

    def test_triangle_iso_line(self) -> None:
        xs, ys = tricontour_segments(
            np.array([0.0, 1.0, 0.0]), np.array([0.0, 0.0, 1.0]), np.array([0.0, 1.0, 1.0]), np.array([[0, 1, 2]]), 0.5
        )
        np.testing.assert_allclose(xs[:2], [0.5, 0.0])
        np.testing.assert_allclose(ys[:2], [0.0, 0.5])
        self.assertTrue(np.isnan(xs[2]))


class ColorTests(unittest.TestCase):
    def test_to_rgba_forms(self) -> None:
        self.assertEqual(to_rgba(0x0000FF), (0, 0, 255, 255))
        self.assertEqual(to_rgba("#ff000080"), (255, 0, 0, 128))
        self.assertEqual(to_rgba((0.0, 1.0, 0.0)), (0, 255, 0, 255))
        self.assertEqual(to_rgba("white", alpha=0.5), (255, 255, 255, 127))
        with self.assertRaises(PlotConfigError):
            to_rgba("nope")

    def test_schemes_and_colormaps(self) -> None:
        dark = color_scheme("dark")
        self.assertEqual(dark.series_color(len(dark.series)), dark.series_color(0))
        table = colormap_table("grayscale", 5)
        self.assertEqual(table.shape, (5, 3))
        mapped = map_colors(np.array([0.0, 1.0, np.nan]), (0.0, 1.0), table)
        self.assertEqual(tuple(mapped[0]), (0, 0, 0, 255))
        self.assertEqual(tuple(mapped[1]), (255, 255, 255, 255))
        self.assertEqual(mapped[2, 3], 0)
        with self.assertRaises(PlotConfigError):
            colormap_table("rainbowish")

    def test_linespec_parsing(self) -> None:
        spec = parse_linespec("r--o")
        self.assertEqual((spec.color, spec.linestyle, spec.marker), ("r", "--", "o"))
        self.assertTrue(parse_linespec("").has_line)
        self.assertFalse(parse_linespec("o").has_line)
        for bad in ("rr", "q", "--:"):
            with self.assertRaises(PlotConfigError):
                parse_linespec(bad)


if __name__ == "__main__":
    unittest.main()
