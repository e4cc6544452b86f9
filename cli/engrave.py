"""Engrave command CLI parsing and control flow."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from engraving.normalization import decode_image, encode_png
from engraving.pipeline import run_engraving
from engraving.styles import METHODS, STYLE_ORDER, get_method
from errors import ImageDecodeError

logger = logging.getLogger(__name__)


def add_engrave_subparser(subparsers: argparse._SubParsersAction) -> None:
    engrave_parser = subparsers.add_parser(
        "engrave",
        help="Render line engravings of a photo",
    )
    engrave_parser.add_argument("image", help="Input photo (JPEG/PNG)")
    engrave_parser.add_argument(
        "-o", "--output-dir",
        default=".",
        help="Directory for the engraving PNGs (default: current directory)",
    )
    engrave_parser.add_argument(
        "--method",
        choices=sorted(METHODS),
        default=None,
        help="Engraving method (default: clean_simple)",
    )
    engrave_parser.add_argument(
        "--style",
        dest="styles",
        action="append",
        choices=[style.value for style in STYLE_ORDER],
        help="Style to render; repeat for several (default: all)",
    )
    engrave_parser.add_argument(
        "--artifact-dir",
        help="Save every intermediate step as PNG under this directory",
    )
    engrave_parser.set_defaults(_cmd=cmd_engrave)


def cmd_engrave(args: argparse.Namespace) -> int:
    source = Path(args.image)
    try:
        image = decode_image(source.read_bytes())
    except (OSError, ImageDecodeError) as exc:
        logger.error("Cannot read %s: %s", source, exc)
        return 1

    method = get_method(args.method)
    styles = args.styles or [style.value for style in method.styles]
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    for style in styles:
        style_filter = method.filter_for(style)
        artifact_dir = None
        if args.artifact_dir:
            artifact_dir = str(Path(args.artifact_dir) / style)
        results = run_engraving(image, style_filter.params, artifact_dir=artifact_dir)

        target = output_dir / f"{source.stem}_{method.name}_{style}.png"
        target.write_bytes(encode_png(results.final))
        logger.info("%-9s -> %s", style, target)
        for step_name, metrics in results.metrics.items():
            logger.debug("  %s: %s", step_name, metrics)
    return 0
