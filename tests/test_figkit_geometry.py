from __future__ import annotations

from decimal import Decimal
import importlib.util
import math
import unittest

import numpy as np
import torch

from figkit.adapters.normalize import coerce_numeric, resolve_column
from figkit.errors import PlotConfigError, PlotDataError
from figkit.geometry import Geometry, geometry_kind, make_geometries, register_geometry_kind
from figkit.transforms import (
    bar_coordinates,
    clip_band,
    contour_levels,
    grid_triangles,
    hexagon,
    hexbin_cells,
    histogram_edges,
    polar_histogram_bars,
    step_path,
    step_position,
    triangulate,
)


HAS_PANDAS = importlib.util.find_spec("pandas") is not None


class NormalizeTests(unittest.TestCase):
    def test_decimal_and_none_values(self) -> None:
        arr = coerce_numeric([Decimal("1.5"), None, 3], label="y")
        self.assertEqual(arr.dtype, np.float64)
        self.assertEqual(arr[0], 1.5)
        self.assertTrue(math.isnan(arr[1]))

    def test_torch_tensor(self) -> None:
        arr = coerce_numeric(torch.tensor([1, 2, 3], dtype=torch.int32), label="x")
        np.testing.assert_array_equal(arr, [1.0, 2.0, 3.0])

    def test_non_numeric_values_raise(self) -> None:
        with self.assertRaises(PlotDataError):
            coerce_numeric(["a", "b"], label="y")

    def test_too_many_dimensions_raise(self) -> None:
        with self.assertRaises(PlotDataError):
            coerce_numeric(np.zeros((2, 2, 2)), label="y")

    @unittest.skipUnless(HAS_PANDAS, "pandas not installed")
    def test_resolve_column_from_dataframe(self) -> None:
        import pandas as pd

        df = pd.DataFrame({"t": [1.0, 2.0], "v": [3.0, 4.0]})
        np.testing.assert_array_equal(np.asarray(resolve_column("v", df, label="y")), [3.0, 4.0])
        with self.assertRaises(PlotDataError):
            resolve_column("missing", df, label="y")


class GeometryFactoryTests(unittest.TestCase):
    def test_single_argument_gets_one_based_index(self) -> None:
        (geom,) = make_geometries("line", [4.0, 5.0, 6.0])
        np.testing.assert_array_equal(geom.x, [1.0, 2.0, 3.0])
        np.testing.assert_array_equal(geom.y, [4.0, 5.0, 6.0])

    def test_two_dimensional_y_splits_by_column(self) -> None:
        y = np.array([[1.0, 10.0], [2.0, 20.0], [3.0, 30.0]])
        geoms = make_geometries("line", [0.0, 1.0, 2.0], y, label=["a", "b"])
        self.assertEqual(len(geoms), 2)
        np.testing.assert_array_equal(geoms[1].y, [10.0, 20.0, 30.0])
        self.assertEqual([g.label for g in geoms], ["a", "b"])

    def test_length_mismatch_raises(self) -> None:
        with self.assertRaises(PlotDataError):
            make_geometries("line", [1.0, 2.0, 3.0], [1.0, 2.0])

    def test_trailing_string_is_format_spec(self) -> None:
        (geom,) = make_geometries("line", [1.0, 2.0], [3.0, 4.0], "r--")
        self.assertEqual(geom.spec, "r--")

    def test_complex_argument_splits_into_real_and_imaginary(self) -> None:
        (geom,) = make_geometries("line", np.array([1 + 2j, 3 + 4j]))
        np.testing.assert_array_equal(geom.x, [1.0, 3.0])
        np.testing.assert_array_equal(geom.y, [2.0, 4.0])

    def test_callable_is_evaluated_over_previous_coordinate(self) -> None:
        (geom,) = make_geometries("line", [0.0, 1.0, 2.0], lambda v: v * v)
        np.testing.assert_array_equal(geom.y, [0.0, 1.0, 4.0])

    def test_scatter_always_yields_one_geometry_and_broadcasts_scalars(self) -> None:
        geoms = make_geometries("scatter", [1.0, 2.0, 3.0], [4.0, 5.0, 6.0], [2.0])
        self.assertEqual(len(geoms), 1)
        np.testing.assert_array_equal(geoms[0].z, [2.0, 2.0, 2.0])

    def test_bar_requires_even_pairs(self) -> None:
        with self.assertRaises(PlotDataError):
            make_geometries("bar", [0.0, 1.0, 2.0], [0.0, 1.0, 2.0])

    def test_errorbar_bounds_widen_y_channel(self) -> None:
        (geom,) = make_geometries("errorbar", [1.0, 2.0], [5.0, 6.0], [4.0, 5.5], [7.0, 6.5])
        ys = np.concatenate(geom.channels()["y"])
        self.assertEqual((ys.min(), ys.max()), (4.0, 7.0))

    def test_heatmap_uses_cell_edges(self) -> None:
        values = np.arange(6.0).reshape(2, 3)
        (geom,) = make_geometries("heatmap", [1.0, 2.0, 3.0], [1.0, 2.0], values)
        self.assertEqual(geom.grid_shape, (2, 3))
        np.testing.assert_array_equal(geom.grid_values(), values)
        np.testing.assert_allclose(geom.channels()["x"][0], [0.5, 3.5])

    def test_grid_shape_mismatch_raises(self) -> None:
        with self.assertRaises(PlotDataError):
            make_geometries("surface", [1.0, 2.0], [1.0, 2.0, 3.0], np.zeros((2, 2)))

    def test_point_surface_kinds(self) -> None:
        (geom,) = make_geometries("tricont", [0.0, 1.0, 0.0], [0.0, 0.0, 1.0], lambda x, y: x + y)
        np.testing.assert_array_equal(geom.z, [0.0, 1.0, 1.0])
        self.assertEqual(geom.c.size, 0)
        with self.assertRaises(PlotDataError):
            make_geometries("trisurf", [0.0, 1.0], [0.0, 1.0], [1.0, 2.0])

    def test_hexbin_color_channel_holds_counts(self) -> None:
        (geom,) = make_geometries("hexbin", [0.0, 0.0, 1.0], [0.0, 0.0, 1.0], nbins=1)
        np.testing.assert_array_equal(geom.channels()["c"][0], [2.0, 1.0])

    def test_unknown_kind_and_attribute_raise(self) -> None:
        with self.assertRaises(PlotConfigError):
            make_geometries("violin", [1.0])
        with self.assertRaises(PlotConfigError):
            make_geometries("line", [1.0, 2.0], opacity=0.5)

    def test_geometry_attributes_are_validated_numbers(self) -> None:
        (geom,) = make_geometries("line", [1.0, 2.0], linewidth=2)
        self.assertEqual(geom.attributes["linewidth"], 2.0)
        self.assertEqual(geom.with_label("x").label, "x")

    def test_register_custom_kind(self) -> None:
        def factory(kind, coords, spec, label):
            return [Geometry(kind=kind, x=coords[0], y=coords[0] * 2, spec=spec, label=label)]

        register_geometry_kind("doubled", factory, legend=True, replace_existing=True)
        (geom,) = make_geometries("doubled", [1.0, 2.0], label="d")
        np.testing.assert_array_equal(geom.y, [2.0, 4.0])
        self.assertTrue(geometry_kind("doubled").legend)
        with self.assertRaises(PlotConfigError):
            register_geometry_kind("doubled", factory)


class TransformTests(unittest.TestCase):
    def test_histogram_counts_and_edges(self) -> None:
        edges, counts = histogram_edges(np.array([1, 2, 2, 3, 3, 3]), 3)
        np.testing.assert_allclose(edges, [1.0, 5.0 / 3.0, 7.0 / 3.0, 3.0])
        np.testing.assert_array_equal(counts, [1.0, 2.0, 3.0])

    def test_histogram_inner_edge_value_counts_low(self) -> None:
        edges, counts = histogram_edges(np.array([0.0, 1.0, 2.0, 4.0]), 2)
        np.testing.assert_array_equal(edges, [0.0, 2.0, 4.0])
        np.testing.assert_array_equal(counts, [3.0, 1.0])

    def test_histogram_of_empty_data_raises(self) -> None:
        with self.assertRaises(PlotDataError):
            histogram_edges(np.array([math.nan]))

    def test_bar_coordinates_pairs(self) -> None:
        wc, hc = bar_coordinates(np.array([5.0, 10.0]))
        np.testing.assert_allclose(wc, [0.6, 1.4, 1.6, 2.4])
        np.testing.assert_allclose(hc, [0.0, 5.0, 0.0, 10.0])

    def test_step_path_post(self) -> None:
        xs, ys = step_path(np.array([1.0, 2.0, 3.0]), np.array([4.0, 5.0, 6.0]), 1.0)
        np.testing.assert_array_equal(xs, [1.0, 2.0, 2.0, 3.0, 3.0])
        np.testing.assert_array_equal(ys, [4.0, 4.0, 5.0, 5.0, 6.0])

    def test_step_position_names(self) -> None:
        self.assertEqual(step_position("pre"), -1.0)
        with self.assertRaises(PlotConfigError):
            step_position("late")

    def test_polar_histogram_keeps_all_samples(self) -> None:
        theta = np.linspace(0.0, 6.0, 50)
        _, hc = polar_histogram_bars(theta, 8)
        self.assertEqual(hc[1::2].sum(), 50.0)

    def test_contour_levels_passthrough_and_count(self) -> None:
        np.testing.assert_array_equal(contour_levels(np.zeros((2, 2)), np.array([0.5, 1.0])), [0.5, 1.0])
        levels = contour_levels(np.array([[0.0, 1.0], [2.0, 3.0]]), 6)
        self.assertEqual(levels.size, 7)
        self.assertEqual((levels[0], levels[-1]), (0.0, 3.0))

    def test_hexbin_assigns_points_to_nearest_lattice(self) -> None:
        cx, cy, counts, size = hexbin_cells(np.array([0.0, 0.0, 1.0]), np.array([0.0, 0.0, 1.0]), 1)
        np.testing.assert_array_equal(cx, [0.0, 1.0])
        np.testing.assert_array_equal(cy, [0.0, 1.0])
        np.testing.assert_array_equal(counts, [2.0, 1.0])
        self.assertEqual(size, (1.0, 1.0))
        rng = np.random.default_rng(3)
        _, _, counts, _ = hexbin_cells(rng.normal(size=500), rng.normal(size=500), 10)
        self.assertEqual(counts.sum(), 500.0)
        with self.assertRaises(PlotDataError):
            hexbin_cells(np.array([math.nan]), np.array([1.0]))

    def test_hexagon_corners(self) -> None:
        xs, ys = hexagon(0.0, 0.0, (1.0, 3.0))
        np.testing.assert_allclose(xs, [0.5, 0.5, 0.0, -0.5, -0.5, 0.0])
        np.testing.assert_allclose(ys, [-0.5, 0.5, 1.0, 0.5, -0.5, -1.0])

    def test_grid_triangles_cover_cells(self) -> None:
        triangles = grid_triangles(3, 2)
        self.assertEqual(triangles.tolist(), [[0, 1, 4], [1, 2, 5], [0, 4, 3], [1, 5, 4]])

    def test_clip_band_cuts_at_levels(self) -> None:
        triangle = [(0.0, 0.0, 0.0), (1.0, 0.0, 1.0), (0.0, 1.0, 1.0)]
        part = clip_band(triangle, 0.5, 2.0)
        self.assertEqual(part, [(0.5, 0.0, 0.5), (1.0, 0.0, 1.0), (0.0, 1.0, 1.0), (0.0, 0.5, 0.5)])
        self.assertEqual(clip_band(triangle, 2.0, 3.0), [])

    def test_triangulate_square_and_collinear_points(self) -> None:
        triangles = triangulate(np.array([0.0, 1.0, 1.0, 0.0]), np.array([0.0, 0.0, 1.0, 1.0]))
        self.assertEqual(triangles.shape, (2, 3))
        with self.assertRaises(PlotDataError):
            triangulate(np.array([0.0, 1.0, 2.0]), np.array([0.0, 1.0, 2.0]))
        with self.assertRaises(PlotDataError):
            triangulate(np.array([0.0, 1.0]), np.array([0.0, 1.0]))


if __name__ == "__main__":
    unittest.main()
