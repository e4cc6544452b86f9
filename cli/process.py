"""Process command: run the full pipeline on one photo."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from engraving.styles import METHODS
from faces.backend import get_face_backend, get_face_backend_by_name
from faces.cropping import CROP_PRESETS
from geometry import BoundingBox
from pipeline import EngravingPipeline, ImageFile, PipelineSettings
from services import BackgroundRemover
from storage import get_blob_store

logger = logging.getLogger(__name__)


def add_process_subparser(subparsers: argparse._SubParsersAction) -> None:
    process_parser = subparsers.add_parser(
        "process",
        help="Run detection, cropping, engraving and compositing on a photo",
    )
    process_parser.add_argument("image", help="Input photo (JPEG/PNG)")
    process_parser.add_argument(
        "--detector",
        default=None,
        help="Face backend (http, opencv_haar, fallback; default: config.FACE_BACKEND)",
    )
    process_parser.add_argument(
        "--store",
        default=None,
        help="Blob store backend (local, memory; default: config.STORAGE_BACKEND)",
    )
    process_parser.add_argument(
        "--storage-dir",
        help="Root directory for the local blob store",
    )
    process_parser.add_argument(
        "--method",
        choices=sorted(METHODS),
        default="clean_simple",
        help="Engraving method (default: clean_simple)",
    )
    process_parser.add_argument(
        "--crop-preset",
        choices=sorted(CROP_PRESETS),
        default="standard",
        help="Crop padding rules (default: standard)",
    )
    process_parser.add_argument(
        "--remove-background",
        action="store_true",
        help="Remove the photo background before engraving",
    )
    process_parser.add_argument(
        "--box",
        nargs=4,
        type=float,
        metavar=("CX", "CY", "W", "H"),
        help="Manual face box in center convention (skips detection)",
    )
    process_parser.add_argument(
        "--template-dir",
        help="Directory holding the template backgrounds",
    )
    process_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON",
    )
    process_parser.set_defaults(_cmd=cmd_process)


def _build_pipeline(args: argparse.Namespace) -> EngravingPipeline:
    store_kwargs = {}
    if args.storage_dir:
        store_kwargs["root_dir"] = Path(args.storage_dir)
    store = get_blob_store(args.store, **store_kwargs)

    detector = get_face_backend_by_name(args.detector) if args.detector else get_face_backend()
    settings = PipelineSettings(
        method=args.method,
        crop_preset=args.crop_preset,
        remove_background=args.remove_background,
    )
    return EngravingPipeline(
        store=store,
        detector=detector,
        background_remover=BackgroundRemover() if args.remove_background else None,
        template_dir=args.template_dir,
        settings=settings,
    )


def cmd_process(args: argparse.Namespace) -> int:
    try:
        image_file = ImageFile.from_path(args.image)
        pipeline = _build_pipeline(args)
    except (OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    custom = None
    if args.box:
        center_x, center_y, width, height = args.box
        custom = BoundingBox(center_x=center_x, center_y=center_y, width=width, height=height)

    result = pipeline.process_sync(image_file, custom_coordinates=custom)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    for step in result.steps:
        logger.info("%-20s %-9s %s", step.name, step.status, step.details)
    for style, url in result.styles.items():
        logger.info("engraving %-9s %s", style, url)
    for style, url in result.composites.items():
        logger.info("composite %-9s %s", style, url)

    if not result.success:
        logger.error("%s", result.message or "Processing failed")
        return 1
    logger.info("Final image: %s (%.2fs)", result.final_url, result.processing_time)
    return 0
