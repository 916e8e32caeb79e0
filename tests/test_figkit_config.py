from __future__ import annotations

import contextlib
import io
import json
from pathlib import Path
import tempfile
import unittest
from unittest import mock

from PIL import Image

import main as cli
from figkit.config import Settings, load_settings, reset_settings, set_settings
from figkit.display import resolve_figure_size, window_ratio
from figkit.errors import PlotConfigError
from figkit.script import DEMOS, apply_setter, load_script, run_demo, run_script


SCRIPT = "\n".join(
    [
        "[figure]",
        "size = [320, 240]",
        "",
        "[[plot]]",
        'function = "plot"',
        "args = [[1.0, 2.0, 3.0], [2.0, 4.0, 3.0]]",
        'options = { linewidth = 2, title = "from script" }',
        "subplot = [1, 2, 1]",
        'setters = { xlabel = "x", xlim = [0, 4] }',
        "",
        "[[plot]]",
        'function = "barplot"',
        'args = [["a", "b"], [1.0, 2.0]]',
        "subplot = [1, 2, 2]",
    ]
)


class SettingsTests(unittest.TestCase):
    def setUp(self) -> None:
        patcher = mock.patch("figkit.config.DEFAULT_CONFIG_PATH", Path("/nonexistent/figkit.toml"))
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_defaults_without_file_or_environment(self) -> None:
        self.assertEqual(load_settings(environ={}), Settings())

    def test_toml_table_is_loaded(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "figkit.toml"
            path.write_text('[figkit]\ndpi = 144\ncolormap = "inferno"\nfigure_size = [800, 600]\n')
            settings = load_settings(path, environ={})
        self.assertEqual(settings.dpi, 144.0)
        self.assertEqual(settings.colormap, "inferno")
        self.assertEqual(settings.figure_size, (800.0, 600.0))

    def test_environment_overrides_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "figkit.toml"
            path.write_text('units = "in"\ndpi = 144\n')
            settings = load_settings(
                environ={"FIGKIT_CONFIG": str(path), "FIGKIT_DPI": "auto", "FIGKIT_FIGURE_SIZE": "800x600"}
            )
        self.assertEqual(settings.units, "in")
        self.assertIsNone(settings.dpi)
        self.assertEqual(settings.figure_size, (800.0, 600.0))

    def test_invalid_settings_raise(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "figkit.toml"
            path.write_text("[figkit]\ncolour = 1\n")
            with self.assertRaises(PlotConfigError):
                load_settings(path, environ={})
        with self.assertRaises(PlotConfigError):
            load_settings(environ={"FIGKIT_COLORBAR_LEVELS": "many"})
        with self.assertRaises(FileNotFoundError):
            load_settings(Path("/nonexistent/other.toml"), environ={})


class FigureSizeTests(unittest.TestCase):
    def test_units_convert_to_pixels(self) -> None:
        self.assertEqual(resolve_figure_size((4, 3), "in", 100), (400, 300))
        self.assertEqual(resolve_figure_size((2.54, 2.54), "cm", 100), (100, 100))
        self.assertEqual(resolve_figure_size((600, 450), "px", 100), (600, 450))

    def test_high_density_display_scales_canvas(self) -> None:
        self.assertEqual(resolve_figure_size((100, 50), "px", 300), (300, 150))

    def test_undetected_dpi_uses_default(self) -> None:
        with mock.patch("figkit.display.detect_dpi", return_value=None):
            self.assertEqual(resolve_figure_size((1, 1), "in", None), (100, 100))

    def test_invalid_sizes_raise(self) -> None:
        with self.assertRaises(PlotConfigError):
            resolve_figure_size((4, 3), "ft", 100)
        with self.assertRaises(PlotConfigError):
            resolve_figure_size((-1, 3), "px", 100)
        with self.assertRaises(PlotConfigError):
            resolve_figure_size((4, 3), "px", 0)

    def test_window_ratio(self) -> None:
        self.assertEqual(window_ratio(600, 450), (1.0, 0.75))
        self.assertEqual(window_ratio(300, 600), (0.5, 1.0))


class ScriptTests(unittest.TestCase):
    def setUp(self) -> None:
        set_settings(Settings())

    def tearDown(self) -> None:
        reset_settings()

    def _write(self, td: str, text: str) -> Path:
        path = Path(td) / "plot.toml"
        path.write_text(text)
        return path

    def test_run_script_builds_subplots_and_applies_setters(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            script = load_script(self._write(td, SCRIPT))
        self.assertEqual(script.size, (320, 240))
        self.assertEqual([s.function for s in script.steps], ["plot", "barplot"])
        fig = run_script(script)
        self.assertEqual((fig.width, fig.height), (320, 240))
        self.assertEqual(len(fig.plots), 2)
        first = fig.plots[0]
        self.assertEqual(first.attributes.title, "from script")
        self.assertEqual(first.attributes.xlabel, "x")
        self.assertEqual(first.axes.ranges["x"], (0.0, 4.0))
        self.assertEqual(first.geoms[0].attributes["linewidth"], 2.0)
        self.assertEqual(list(fig.plots[1].attributes.xticklabels), ["a", "b"])

    def test_script_errors(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(PlotConfigError):
                load_script(self._write(td, '[[plot]]\nargs = [1]\n'))
            with self.assertRaises(PlotConfigError):
                load_script(self._write(td, '[[plot]]\nfunction = "pie"\n'))
            with self.assertRaises(PlotConfigError):
                load_script(self._write(td, '[[plot]]\nfunction = "plot"\nsubplot = [1, 2]\n'))
        with self.assertRaises(FileNotFoundError):
            load_script("/nonexistent/plot.toml")

    def test_apply_setter_unknown_name(self) -> None:
        fig = run_demo("polar")
        with self.assertRaises(PlotConfigError):
            apply_setter(fig, "rotate", 10)

    def test_demos_build_figures(self) -> None:
        for name in DEMOS:
            with self.subTest(name=name):
                fig = run_demo(name, (200, 150))
                self.assertEqual((fig.width, fig.height), (200, 150))
                self.assertTrue(all(plot.geoms for plot in fig.plots))
        self.assertEqual(len(run_demo("subplots").plots), 3)
        with self.assertRaises(PlotConfigError):
            run_demo("nope")


class CommandLineTests(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.root = Path(self._td.name)
        self.config = self.root / "figkit.toml"
        self.config.write_text("[figkit]\ndpi = 72\n")

    def tearDown(self) -> None:
        self._td.cleanup()
        reset_settings()

    def _run(self, *argv: str) -> tuple[int, str]:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = cli.main(["--config", str(self.config), *argv])
        return code, out.getvalue()

    def test_demo_writes_image(self) -> None:
        target = self.root / "line.png"
        code, out = self._run("demo", "line", "-o", str(target), "--width", "240", "--height", "180")
        self.assertEqual(code, 0)
        self.assertIn("240x180", out)
        with Image.open(target) as image:
            self.assertEqual(image.size, (240, 180))

    def test_render_script(self) -> None:
        script = self.root / "plot.toml"
        script.write_text(SCRIPT)
        target = self.root / "script.png"
        code, out = self._run("render", str(script), "-o", str(target))
        self.assertEqual(code, 0)
        self.assertIn("plots=2", out)
        self.assertTrue(target.exists())

    def test_config_prints_effective_settings(self) -> None:
        code, out = self._run("config")
        self.assertEqual(code, 0)
        data = json.loads(out)
        self.assertEqual(data["dpi"], 72.0)
        self.assertEqual(data["colormap"], "viridis")

    def test_unknown_demo_is_rejected(self) -> None:
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                cli.main(["demo", "nope", "-o", str(self.root / "x.png")])


if __name__ == "__main__":
    unittest.main()
