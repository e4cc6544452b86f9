"""
Face crop geometry: turn a detected face box into a padded crop region.

The region always lies inside the image. Small faces get more padding so
ears and chin are not cut off, and the window is shifted up to trade neck
for headroom.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

import config
from errors import InvalidBoundingBoxError
from engraving.normalization import resize_exact
from geometry import BoundingBox, CropRegion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CropParams:
    """Padding rules for face crops.

    Attributes:
        base_padding: Size multiplier for normal-sized faces.
        small_padding: Size multiplier when the face is small in the frame.
        small_size_factor: min(face side) / min(image side) below which the
            face counts as small.
        vertical_shift: Upward shift as a fraction of the face height.
        min_output_size: Crops with a smaller short side are upscaled to it;
            0 disables upscaling.
    """

    base_padding: float = config.CROP_BASE_PADDING
    small_padding: float = config.CROP_SMALL_PADDING
    small_size_factor: float = config.CROP_SMALL_SIZE_FACTOR
    vertical_shift: float = config.CROP_VERTICAL_SHIFT
    min_output_size: int = 0

    def validate(self) -> None:
        """Raises ValueError if any rule is out of range."""
        if self.base_padding < 1.0 or self.small_padding < 1.0:
            raise ValueError(
                f"Padding factors must be >= 1.0, got {self.base_padding} / {self.small_padding}"
            )
        if not 0.0 < self.small_size_factor <= 1.0:
            raise ValueError(f"small_size_factor must be within (0, 1], got {self.small_size_factor}")
        if not 0.0 <= self.vertical_shift < 1.0:
            raise ValueError(f"vertical_shift must be within [0, 1), got {self.vertical_shift}")
        if self.min_output_size < 0:
            raise ValueError(f"min_output_size must be non-negative, got {self.min_output_size}")


STANDARD_CROP = CropParams()

PROFESSIONAL_CROP = CropParams(
    base_padding=config.PRO_CROP_BASE_PADDING,
    small_padding=config.PRO_CROP_SMALL_PADDING,
    small_size_factor=config.PRO_CROP_SMALL_SIZE_FACTOR,
    vertical_shift=config.PRO_CROP_VERTICAL_SHIFT,
    min_output_size=config.PRO_CROP_MIN_OUTPUT_SIZE,
)

CROP_PRESETS: dict[str, CropParams] = {
    "standard": STANDARD_CROP,
    "professional": PROFESSIONAL_CROP,
}


def get_crop_params(name: str) -> CropParams:
    params = CROP_PRESETS.get(name)
    if params is None:
        raise ValueError(f"Unknown crop preset: {name!r}. Expected one of {sorted(CROP_PRESETS)}")
    return params


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _checked_box(bbox: BoundingBox | None) -> BoundingBox:
    if bbox is None:
        raise InvalidBoundingBoxError("No face bounding box provided")
    try:
        bbox.validate()
    except ValueError as e:
        raise InvalidBoundingBoxError(str(e)) from e
    return bbox


def padding_factor(
    bbox: BoundingBox,
    image_width: int,
    image_height: int,
    params: CropParams = STANDARD_CROP,
) -> float:
    """Pick the padding multiplier for a face box (small faces get more)."""
    bbox = _checked_box(bbox)
    if image_width <= 0 or image_height <= 0:
        raise ValueError(f"Image size must be positive, got {image_width}x{image_height}")
    size_factor = min(bbox.width, bbox.height) / min(image_width, image_height)
    if size_factor < params.small_size_factor:
        return params.small_padding
    return params.base_padding


def _place(start: int, size: int, limit: int) -> tuple[int, int]:
    """Shift a 1D span inside [0, limit), keeping its size when it fits."""
    start = max(0, start)
    start = min(start, limit - size)
    start = max(0, start)
    return start, min(size, limit - start)


def compute_crop_region(
    bbox: BoundingBox | None,
    image_width: int,
    image_height: int,
    params: CropParams = STANDARD_CROP,
) -> CropRegion:
    """Compute the padded, shifted and clipped crop region for a face.

    Args:
        bbox: Face box in center convention.
        image_width: Source image width in pixels.
        image_height: Source image height in pixels.
        params: Padding rules.

    Returns:
        CropRegion fully inside the image.

    Raises:
        InvalidBoundingBoxError: If the box is missing or degenerate.
        ValueError: If the image size is not positive.
    """
    factor = padding_factor(bbox, image_width, image_height, params)

    center_x = _round_half_up(bbox.center_x)
    center_y = _round_half_up(bbox.center_y)
    padded_width = max(1, _round_half_up(bbox.width * factor))
    padded_height = max(1, _round_half_up(bbox.height * factor))
    shift = _round_half_up(bbox.height * params.vertical_shift)

    x, width = _place(center_x - _round_half_up(padded_width / 2), padded_width, image_width)
    y, height = _place(
        center_y - _round_half_up(padded_height / 2) - shift, padded_height, image_height
    )
    region = CropRegion(x=x, y=y, width=width, height=height)
    logger.debug(
        "Crop for face (%.0f, %.0f, %.0fx%.0f): padding %.0f%%, shift %dpx -> %s",
        bbox.center_x,
        bbox.center_y,
        bbox.width,
        bbox.height,
        (factor - 1) * 100,
        shift,
        region,
    )
    return region


def crop_image(
    image: np.ndarray,
    region: CropRegion,
    params: CropParams = STANDARD_CROP,
) -> np.ndarray:
    """Cut the region out of an image, upscaling small crops when configured.

    Returns a new array; the input is never modified.
    """
    height, width = image.shape[:2]
    if not region.fits_within(width, height):
        raise ValueError(f"Crop region {region} exceeds image bounds {width}x{height}")

    crop = image[region.y:region.y + region.height, region.x:region.x + region.width].copy()
    short_side = min(region.width, region.height)
    if params.min_output_size and short_side < params.min_output_size:
        scale = params.min_output_size / short_side
        crop = resize_exact(
            crop,
            _round_half_up(region.width * scale),
            _round_half_up(region.height * scale),
            resample="cubic",
        )
    return crop
