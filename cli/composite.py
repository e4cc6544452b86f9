"""Composite command CLI parsing and control flow."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import config
from compositing.compositor import composite_pendant
from compositing.templates import TEMPLATES, get_template, load_template_image
from engraving.normalization import decode_image, encode_jpeg
from errors import EngravingError

logger = logging.getLogger(__name__)


def add_composite_subparser(subparsers: argparse._SubParsersAction) -> None:
    composite_parser = subparsers.add_parser(
        "composite",
        help="Place engravings onto a pendant template",
    )
    composite_parser.add_argument(
        "engravings",
        nargs="+",
        help="Engraving PNGs, one per slot in template order",
    )
    composite_parser.add_argument(
        "--type",
        dest="pendant_type",
        default="locket",
        help=f"Pendant template ({', '.join(sorted(TEMPLATES))}; default: locket)",
    )
    composite_parser.add_argument(
        "--name",
        dest="names",
        action="append",
        default=[],
        help="Pet name for the next slot; repeat in slot order",
    )
    composite_parser.add_argument(
        "--template-dir",
        help="Directory holding the template backgrounds",
    )
    composite_parser.add_argument(
        "-o", "--output",
        default="pendant.jpg",
        help="Output JPEG (default: pendant.jpg)",
    )
    composite_parser.set_defaults(_cmd=cmd_composite)


def cmd_composite(args: argparse.Namespace) -> int:
    try:
        template = get_template(args.pendant_type)
        background = load_template_image(template, args.template_dir)
        engravings = [decode_image(Path(path).read_bytes()) for path in args.engravings]
        composite = composite_pendant(background, template, engravings, names=args.names)
    except (EngravingError, OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    target = Path(args.output)
    target.write_bytes(encode_jpeg(composite, quality=config.COMPOSITE_JPEG_QUALITY))
    logger.info(
        "%s pendant with %d of %d slots filled -> %s",
        template.name,
        min(len(engravings), len(template.slots)),
        len(template.slots),
        target,
    )
    return 0
