"""Batch command line front-end running one image through the pipeline."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from sketchlab.core.app_core import AppConfiguration, AppCore
from sketchlab.core.errors import DecodeFailure, PersistenceFailure
from sketchlab.processing.filters import EdgeAlgorithm
from sketchlab.processing.output import SOURCE_STAGE, FileDownloader


EXIT_OK = 0
EXIT_DECODE_FAILURE = 1
EXIT_PERSISTENCE_FAILURE = 2

ALL_STAGES = (SOURCE_STAGE, "crop", "adjust", "sketch", "edges")


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sketchlab", description="Crop, adjust, sketch and edge-detect an image"
    )
    p.add_argument("input", type=Path, help="Image file to process")

    g_stage = p.add_argument_group("Stages")
    g_stage.add_argument("--crop", type=int, nargs=4, metavar=("X", "Y", "W", "H"))
    g_stage.add_argument("--brightness", type=float, default=0.0)
    g_stage.add_argument("--contrast", type=float, default=0.0)
    g_stage.add_argument(
        "--edge-algorithm",
        choices=[algorithm.value for algorithm in EdgeAlgorithm],
        default=EdgeAlgorithm.GRADIENT_DIFF.value,
    )
    g_stage.add_argument("--edge-threshold", type=float, default=None)

    g_io = p.add_argument_group("Output")
    g_io.add_argument("--output-dir", type=Path, default=Path.cwd())
    g_io.add_argument("--stages", nargs="+", choices=ALL_STAGES, default=list(ALL_STAGES))
    g_io.add_argument("--save-title", default=None, help="Save a stage to the gallery")
    g_io.add_argument("--save-stage", choices=ALL_STAGES, default="edges")
    g_io.add_argument("--gallery", type=Path, default=None)

    g_env = p.add_argument_group("Environment")
    g_env.add_argument("--settings", type=Path, default=None, help="Settings JSON file")
    g_env.add_argument("--log-dir", type=Path, default=None, help="Write sketchlab.log here")
    g_env.add_argument("--verbose", action="store_true")
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_argparser()
    args = parser.parse_args(argv)

    config = AppConfiguration(
        log_directory=args.log_dir,
        enable_file_logging=args.log_dir is not None,
        enable_console_logging=args.verbose,
        developer_diagnostics=args.verbose,
        settings_path=args.settings,
        gallery_path=args.gallery,
    )
    core = AppCore(config)
    controller = core.bootstrap(downloader=FileDownloader(args.output_dir))
    try:
        try:
            controller.select_source(args.input).result()
        except DecodeFailure as exc:
            print(f"sketchlab: {exc}", file=sys.stderr)
            return EXIT_DECODE_FAILURE

        try:
            if args.crop:
                x, y, width, height = args.crop
                controller.begin_crop_drag(x, y)
                controller.end_crop_drag(x + width, y + height)
                controller.apply_crop()
            controller.set_adjustments(args.brightness, args.contrast)
            controller.set_edge_algorithm(args.edge_algorithm)
            if args.edge_threshold is not None:
                controller.set_edge_threshold(args.edge_threshold)
        except ValueError as exc:
            parser.error(str(exc))
        controller.flush_pending()

        for stage in args.stages:
            if controller.download(stage):
                print(f"wrote {args.output_dir / controller.adapter.suggested_filename(stage)}")
            else:
                print(f"skipped {stage}: no output")

        if args.save_title:
            controller.select_stage(args.save_stage)
            try:
                entry = controller.save_selected(args.save_title)
            except PersistenceFailure as exc:
                print(f"sketchlab: {exc}", file=sys.stderr)
                return EXIT_PERSISTENCE_FAILURE
            print(f"saved {args.save_stage} as {entry.title!r} ({entry.id})")
        return EXIT_OK
    finally:
        core.shutdown()


__all__ = ["build_argparser", "main"]
