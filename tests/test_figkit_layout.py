from __future__ import annotations

import unittest

import numpy as np

from figkit.attributes import PlotAttributes
from figkit.axes import build_axes, make_ticklabeler, resolve_range, set_camera
from figkit.colorbar import build_colorbar
from figkit.errors import PlotConfigError
from figkit.figure import Figure, subplot, subplot_rect
from figkit.geometry import make_geometries
from figkit.legend import EMPTY_LEGEND, build_legend, legend_box, legend_location
from figkit.plotobject import COLORBAR_MARGIN, compose_plot
from figkit.scales import FLIP_Y, X_LOG, Y_LOG
from figkit.viewport import compute_viewport, set_ratio


def _line(y, x=None, **kwargs):
    args = (y,) if x is None else (x, y)
    return make_geometries("line", *args, **kwargs)


class AxesTests(unittest.TestCase):
    def test_ranges_are_strictly_increasing(self) -> None:
        axes = build_axes("cartesian2d", _line([4.0, 5.0, 6.0], [1.0, 2.0, 3.0]))
        for axis in ("x", "y"):
            lo, hi = axes.ranges[axis]
            self.assertLess(lo, hi)
        self.assertEqual(axes.ranges["x"], (1.0, 3.0))

    def test_constant_data_is_widened(self) -> None:
        axes = build_axes("cartesian2d", _line([5.0, 5.0, 5.0]))
        lo, hi = axes.ranges["y"]
        self.assertAlmostEqual(lo, 4.5)
        self.assertAlmostEqual(hi, 5.5)

    def test_constant_data_range_is_not_rounded(self) -> None:
        for value, expected in ((3.0, (2.7, 3.3)), (-7.0, (-7.7, -6.3)), (0.0, (-0.1, 0.1))):
            with self.subTest(value=value):
                lo, hi = build_axes("cartesian2d", _line([value, value])).ranges["y"]
                self.assertAlmostEqual(lo, expected[0])
                self.assertAlmostEqual(hi, expected[1])

    def test_empty_data_falls_back_to_unit_range(self) -> None:
        self.assertEqual(resolve_range("x", []), (0.0, 1.0))
        self.assertEqual(resolve_range("y", []), (0.0, 1.0))

    def test_user_limits_keep_computed_bound_for_none(self) -> None:
        geoms = _line([4.0, 5.0, 6.0], [1.0, 2.0, 3.0])
        self.assertEqual(resolve_range("x", geoms, {"xlim": (None, 10.0)}), (1.0, 10.0))
        with self.assertRaises(PlotConfigError):
            resolve_range("x", geoms, {"xlim": (3.0, 1.0)})

    def test_log_axis_clamps_non_positive_lower_bound(self) -> None:
        geoms = _line([1.0, 2.0, 3.0, 4.0], [0.0, 1.0, 10.0, 100.0])
        with self.assertLogs("figkit.axes", level="WARNING"):
            axes = build_axes("cartesian2d", geoms, {"xlog": True})
        self.assertEqual(axes.ranges["x"], (1.0, 100.0))
        self.assertTrue(axes.scale & X_LOG)
        self.assertEqual(axes.tickdata["x"].minor, 10.0)
        self.assertEqual(axes.tickdata["x"].major, 1)

    def test_polar_axes_ignore_log_and_flip(self) -> None:
        geoms = make_geometries("polarline", [0.0, 1.0], [1.0, 2.0])
        axes = build_axes("polar", geoms, {"xlog": True, "yflip": True})
        self.assertEqual(axes.scale, 0)
        self.assertEqual(axes.tickdata["x"].major, 2)

    def test_tick_defaults_and_overrides(self) -> None:
        geoms = _line([0.0, 10.0])
        axes = build_axes("cartesian2d", geoms)
        self.assertEqual(axes.tickdata["y"].major, 5)
        self.assertAlmostEqual(axes.tickdata["y"].minor, 1.0)
        axes = build_axes("cartesian2d", geoms, {"yticks": (2.0, 2)})
        self.assertEqual((axes.tickdata["y"].minor, axes.tickdata["y"].major), (2.0, 2))

    def test_flip_reverses_tick_origin(self) -> None:
        axes = build_axes("cartesian2d", _line([0.0, 10.0]), {"yflip": True})
        self.assertTrue(axes.scale & FLIP_Y)
        self.assertEqual(axes.tickdata["y"].origin, (10.0, 0.0))

    def test_three_d_perspective_and_camera(self) -> None:
        geoms = make_geometries("line3d", [0.0, 1.0], [0.0, 1.0], [0.0, 1.0])
        axes = build_axes("cartesian3d", geoms)
        self.assertEqual(axes.perspective, (40, 70))
        self.assertEqual(axes.camera, ())
        axes = build_axes("cartesian3d", geoms, {"scene": True})
        self.assertEqual(len(axes.camera), 9)
        self.assertEqual(len(set_camera(3.0, 40, 70)), 9)

    def test_unknown_axes_kind_raises(self) -> None:
        with self.assertRaises(PlotConfigError):
            build_axes("spherical", [])

    def test_ticklabels_from_sequence_label_integer_positions(self) -> None:
        label = make_ticklabeler(["a", "b"])
        self.assertEqual([label(1.0), label(2.0), label(1.5), label(3.0)], ["a", "b", "", ""])
        self.assertEqual(make_ticklabeler(lambda v: f"<{v:g}>")(2.0), "<2>")


class LegendTests(unittest.TestCase):
    FRAME = (0.125, 0.925, 0.125, 0.925)

    def test_only_labelled_legend_kinds_count(self) -> None:
        geoms = _line([1.0, 2.0], label="a") + _line([2.0, 3.0]) + make_geometries(
            "heatmap", [1.0, 2.0], [1.0, 2.0], np.eye(2), label="h"
        )
        legend = build_legend(geoms, self.FRAME)
        self.assertEqual(len(legend.cursors), 1)
        self.assertEqual(legend.cursors[0][0], 0.08)
        self.assertGreater(legend.width, 0.08)
        self.assertGreater(legend.height, 0.0)

    def test_no_labels_gives_empty_legend(self) -> None:
        self.assertIs(build_legend(_line([1.0, 2.0]), self.FRAME), EMPTY_LEGEND)

    def test_max_rows_wraps_into_columns(self) -> None:
        geoms = [g for i in range(4) for g in _line([1.0, 2.0], label=f"s{i}")]
        legend = build_legend(geoms, self.FRAME, max_rows=2)
        xs = sorted({c[0] for c in legend.cursors})
        self.assertEqual(len(xs), 2)

    def test_location_names_and_codes(self) -> None:
        self.assertEqual(legend_location("upper left"), 2)
        self.assertEqual(legend_location(11), 11)
        with self.assertRaises(PlotConfigError):
            legend_location(14)
        with self.assertRaises(PlotConfigError):
            legend_location("somewhere")

    def test_outside_right_box_starts_past_frame(self) -> None:
        box = legend_box(self.FRAME, (0.2, 0.1), 11)
        self.assertGreater(box[0], self.FRAME[1])
        self.assertAlmostEqual(box[3], self.FRAME[3])


class ColorbarTests(unittest.TestCase):
    def test_colorbar_follows_colour_channel(self) -> None:
        geoms = make_geometries("heatmap", [1.0, 2.0], [1.0, 2.0], np.array([[0.0, 1.0], [2.0, 4.0]]))
        axes = build_axes("cartesian2d", geoms)
        colorbar = build_colorbar(axes)
        self.assertFalse(colorbar.is_empty)
        self.assertEqual(colorbar.range, axes.ranges["c"])
        self.assertEqual(colorbar.levels, 256)

    def test_colorbar_empty_without_colour_data(self) -> None:
        axes = build_axes("cartesian2d", _line([1.0, 2.0]))
        self.assertTrue(build_colorbar(axes).is_empty)

    def test_log_z_moves_to_colorbar_y_scale(self) -> None:
        x = np.array([1.0, 2.0])
        geoms = make_geometries("surface", x, x, np.array([[1.0, 10.0], [100.0, 1000.0]]))
        axes = build_axes("cartesian3d", geoms, {"zlog": True})
        self.assertEqual(build_colorbar(axes, "z").scale & Y_LOG, Y_LOG)

    def test_invalid_channel_raises(self) -> None:
        with self.assertRaises(PlotConfigError):
            build_colorbar(build_axes("cartesian2d", []), "x")


class ViewportTests(unittest.TestCase):
    def test_inner_box_nests_in_outer_box(self) -> None:
        vp = compute_viewport((0.0, 0.5, 0.5, 1.0))
        self.assertEqual(vp.outer, (0.0, 0.5, 0.5, 1.0))
        ox0, ox1, oy0, oy1 = vp.outer
        ix0, ix1, iy0, iy1 = vp.inner
        self.assertTrue(ox0 <= ix0 < ix1 <= ox1)
        self.assertTrue(oy0 <= iy0 < iy1 <= oy1)
        np.testing.assert_allclose(compute_viewport().inner, (0.125, 0.925, 0.125, 0.925))

    def test_no_frame_uses_whole_box(self) -> None:
        vp = compute_viewport(frame=False)
        self.assertEqual(vp.inner, vp.outer)

    def test_window_ratio_scales_outer_box(self) -> None:
        vp = compute_viewport(window=(1.0, 0.75))
        self.assertEqual(vp.outer, (0.0, 1.0, 0.0, 0.75))

    def test_ratio_shrinks_to_requested_aspect(self) -> None:
        x0, x1, y0, y1 = set_ratio((0.0, 1.0, 0.0, 0.5), 1.0)
        self.assertAlmostEqual(x1 - x0, y1 - y0)

    def test_excess_margins_are_clamped_with_warning(self) -> None:
        with self.assertLogs("figkit.viewport", level="WARNING"):
            vp = compute_viewport(margins=(0.0, 5.0, 0.0, 0.0))
        self.assertLessEqual(vp.inner[0], vp.inner[1])


class PlotObjectTests(unittest.TestCase):
    def test_colorbar_reserves_right_margin(self) -> None:
        geoms = make_geometries("heatmap", [1.0, 2.0], [1.0, 2.0], np.eye(2))
        axes = build_axes("cartesian2d", geoms)
        plain = compose_plot(axes, geoms)
        with_bar = compose_plot(axes, geoms, attributes=PlotAttributes(colorbar=True))
        self.assertAlmostEqual(plain.viewport.inner[1] - with_bar.viewport.inner[1], COLORBAR_MARGIN)

    def test_outside_legend_reserves_its_width(self) -> None:
        geoms = _line([1.0, 2.0], label="series")
        axes = build_axes("cartesian2d", geoms)
        inside = compose_plot(axes, geoms, attributes=PlotAttributes(location=1))
        outside = compose_plot(axes, geoms, attributes=PlotAttributes(location=11))
        self.assertAlmostEqual(inside.viewport.inner[1] - outside.viewport.inner[1], outside.legend.width)

    def test_unknown_attribute_key_raises(self) -> None:
        with self.assertRaises(PlotConfigError):
            PlotAttributes.from_options({"colour": "red"})


class FigureTests(unittest.TestCase):
    def test_new_figure_holds_one_empty_plot(self) -> None:
        fig = Figure()
        self.assertEqual(len(fig.plots), 1)
        self.assertEqual(fig.current_plot.geoms, [])
        self.assertEqual(fig.window, (1.0, 0.75))

    def test_subplot_rect_union(self) -> None:
        self.assertEqual(subplot_rect(2, 2, [1, 2]), (0.0, 1.0, 0.5, 1.0))
        self.assertEqual(subplot_rect(2, 2, 4), (0.5, 1.0, 0.0, 0.5))

    def test_subplot_is_idempotent(self) -> None:
        fig = Figure()
        first = subplot(fig, 2, 2, 1)
        again = subplot(fig, 2, 2, 1)
        self.assertIs(first, again)
        self.assertEqual(len(fig.plots), 1)
        subplot(fig, 2, 2, 2)
        self.assertEqual(len(fig.plots), 2)
        self.assertEqual(fig.current_plot.attributes.subplot, (0.5, 1.0, 0.5, 1.0))

    def test_overlapping_subplot_replaces_existing(self) -> None:
        fig = Figure()
        subplot(fig, 2, 2, 1)
        subplot(fig, 2, 2, 2)
        subplot(fig, 1, 1, 1)
        self.assertEqual(len(fig.plots), 1)
        subplot(fig, 2, 2, 1, replace=False)
        self.assertEqual(len(fig.plots), 2)

    def test_invalid_subplot_index_raises(self) -> None:
        with self.assertRaises(PlotConfigError):
            subplot_rect(2, 2, 5)
        with self.assertRaises(PlotConfigError):
            subplot_rect(0, 2, 1)


if __name__ == "__main__":
    unittest.main()
