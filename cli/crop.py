"""Crop command CLI parsing and control flow."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from engraving.normalization import decode_image, encode_png
from errors import DetectionError, ImageDecodeError, InvalidBoundingBoxError
from faces.backend import fallback_detection, get_face_backend_by_name
from faces.cropping import CROP_PRESETS, compute_crop_region, crop_image, get_crop_params
from geometry import BoundingBox

logger = logging.getLogger(__name__)


def add_crop_subparser(subparsers: argparse._SubParsersAction) -> None:
    crop_parser = subparsers.add_parser(
        "crop",
        help="Crop a photo around the pet's face",
    )
    crop_parser.add_argument("image", help="Input photo (JPEG/PNG)")
    crop_parser.add_argument("-o", "--output", help="Output PNG (default: <stem>_crop.png)")
    crop_parser.add_argument(
        "--box",
        nargs=4,
        type=float,
        metavar=("CX", "CY", "W", "H"),
        help="Face box in center convention (skips detection)",
    )
    crop_parser.add_argument(
        "--detector",
        default="fallback",
        help="Face backend when no --box is given (http, opencv_haar, fallback)",
    )
    crop_parser.add_argument(
        "--preset",
        choices=sorted(CROP_PRESETS),
        default="standard",
        help="Padding rules (default: standard)",
    )
    crop_parser.set_defaults(_cmd=cmd_crop)


def _locate_face(args: argparse.Namespace, image) -> BoundingBox | None:
    if args.box:
        center_x, center_y, width, height = args.box
        return BoundingBox(center_x=center_x, center_y=center_y, width=width, height=height)

    height, width = image.shape[:2]
    try:
        detection = get_face_backend_by_name(args.detector).detect(image)
    except DetectionError as exc:
        logger.warning("Detector failed (%s); using fallback box", exc)
        detection = fallback_detection(width, height)
    if not detection.has_pet:
        logger.error("%s", detection.message or "No pet face detected")
        return None
    logger.info("Face found with %.1f%% confidence (%s)", detection.confidence * 100, detection.source)
    return detection.bbox


def cmd_crop(args: argparse.Namespace) -> int:
    source = Path(args.image)
    try:
        image = decode_image(source.read_bytes())
        bbox = _locate_face(args, image)
        if bbox is None:
            return 1
        params = get_crop_params(args.preset)
        region = compute_crop_region(bbox, image.shape[1], image.shape[0], params)
        cropped = crop_image(image, region, params)
    except (OSError, ImageDecodeError, InvalidBoundingBoxError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    target = Path(args.output) if args.output else source.with_name(f"{source.stem}_crop.png")
    target.write_bytes(encode_png(cropped))
    logger.info(
        "Cropped region x=%d y=%d %dx%d -> %s",
        region.x,
        region.y,
        region.width,
        region.height,
        target,
    )
    return 0
