from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path

from figkit.config import load_settings, set_settings
from figkit.render import render_figure
from figkit.script import DEMOS, load_script, run_demo, run_script


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="figkit")
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--config", type=Path, default=None, help="Settings TOML file (default: FIGKIT_CONFIG or user config).")
    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Render a TOML plot script to an image file.")
    render.add_argument("script", type=Path)
    render.add_argument("-o", "--output", type=Path, required=True)

    demo = sub.add_parser("demo", help="Render a built-in demo figure.")
    demo.add_argument("name", choices=sorted(DEMOS))
    demo.add_argument("-o", "--output", type=Path, required=True)
    demo.add_argument("--width", type=float, default=None)
    demo.add_argument("--height", type=float, default=None)

    sub.add_parser("config", help="Print the effective settings as JSON.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    settings = set_settings(load_settings(args.config))

    if args.command == "render":
        fig = run_script(load_script(args.script))
        render_figure(fig).save(args.output)
        print(f"wrote {args.output} ({fig.width}x{fig.height}, plots={len(fig.plots)})")
        return 0

    if args.command == "demo":
        size = None
        if args.width is not None or args.height is not None:
            size = (args.width or settings.figure_size[0], args.height or settings.figure_size[1])
        fig = run_demo(args.name, size)
        render_figure(fig).save(args.output)
        print(f"wrote {args.output} ({fig.width}x{fig.height})")
        return 0

    if args.command == "config":
        print(json.dumps(asdict(settings), indent=2, sort_keys=True))
        return 0

    raise RuntimeError(f"unsupported command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
