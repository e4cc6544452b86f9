"""
Pendant compositing: place circular engravings onto template backgrounds.

Engravings are multiplied into the background so black lines darken the
metal while transparent areas leave it untouched. All functions return new
arrays and never modify their inputs.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional, Sequence

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

import config
from .templates import LOCKET_TEMPLATE, PendantSlot, PendantTemplate

logger = logging.getLogger(__name__)

# Label strip is drawn this many pixels above the bottom of the slot box
LABEL_BOTTOM_OFFSET = 25


def _as_rgba(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        rgba = np.empty(image.shape + (4,), dtype=np.uint8)
        rgba[:, :, :3] = image[:, :, None]
        rgba[:, :, 3] = 255
        return rgba
    if image.shape[2] == 3:
        alpha = np.full(image.shape[:2] + (1,), 255, dtype=np.uint8)
        return np.concatenate([image.astype(np.uint8), alpha], axis=2)
    return image.astype(np.uint8, copy=True)


def circle_mask(size: int, radius: float) -> np.ndarray:
    """Boolean mask of pixels whose centers lie inside a centered circle."""
    ys, xs = np.indices((size, size), dtype=np.float32)
    center = size / 2.0
    return (xs + 0.5 - center) ** 2 + (ys + 0.5 - center) ** 2 <= radius * radius


def fit_engraving_disc(engraving: np.ndarray, slot: PendantSlot, margin: int = 0) -> np.ndarray:
    """Fit an engraving into a slot-sized transparent square, clipped to a circle.

    The engraving is resized to fit (never distorted) inside
    diameter - margin pixels and centered.

    Returns:
        RGBA array of side slot.diameter.
    """
    rgba = _as_rgba(engraving)
    side = slot.diameter
    inner = max(1, side - margin)
    height, width = rgba.shape[:2]
    scale = min(inner / width, inner / height)
    new_width = max(1, int(round(width * scale)))
    new_height = max(1, int(round(height * scale)))
    interpolation = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LINEAR
    resized = cv2.resize(rgba, (new_width, new_height), interpolation=interpolation)

    disc = np.zeros((side, side, 4), dtype=np.uint8)
    left = int(round((side - new_width) / 2))
    top = int(round((side - new_height) / 2))
    disc[top:top + new_height, left:left + new_width] = resized
    disc[~circle_mask(side, slot.radius), 3] = 0
    return disc


def multiply_blend(base: np.ndarray, overlay: np.ndarray, x: int, y: int) -> np.ndarray:
    """Multiply an RGBA overlay into an RGB base at (x, y).

    out = base * (1 - a) + base * overlay / 255 * a, where a is the overlay
    alpha. Parts of the overlay outside the base are dropped.
    """
    result = base.copy()
    base_h, base_w = base.shape[:2]
    over_h, over_w = overlay.shape[:2]

    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(base_w, x + over_w), min(base_h, y + over_h)
    if x1 <= x0 or y1 <= y0:
        return result

    patch = overlay[y0 - y:y1 - y, x0 - x:x1 - x].astype(np.float32)
    alpha = patch[:, :, 3:4] / 255.0
    region = result[y0:y1, x0:x1].astype(np.float32)
    blended = region * (1.0 - alpha) + region * (patch[:, :, :3] / 255.0) * alpha
    result[y0:y1, x0:x1] = np.clip(np.rint(blended), 0, 255).astype(np.uint8)
    return result


@lru_cache(maxsize=4)
def _label_font(size: int) -> ImageFont.ImageFont:
    try:
        return ImageFont.truetype(config.LABEL_FONT, size)
    except OSError:
        logger.debug("Font %s unavailable, using Pillow default", config.LABEL_FONT)
        return ImageFont.load_default()


def render_name_label(name: str, width: int, height: int = config.LABEL_HEIGHT) -> np.ndarray:
    """Render a pet name centered in an RGBA strip.

    Text is #2c2c2c at 75% opacity; the rest of the strip is transparent.
    """
    coverage = Image.new("L", (width, height), 0)
    text = name.strip()
    if text:
        draw = ImageDraw.Draw(coverage)
        font = _label_font(config.LABEL_FONT_SIZE)
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        text_x = (width - (right - left)) / 2 - left
        text_y = (height - (bottom - top)) / 2 - top
        draw.text((text_x, text_y), text, fill=255, font=font)

    label = np.zeros((height, width, 4), dtype=np.uint8)
    label[:, :, :3] = config.LABEL_COLOR
    alpha = np.asarray(coverage, dtype=np.float32) * config.LABEL_OPACITY
    label[:, :, 3] = np.clip(np.rint(alpha), 0, 255).astype(np.uint8)
    return label


def composite_pendant(
    template_image: np.ndarray,
    template: PendantTemplate,
    engravings: Sequence[Optional[np.ndarray]],
    names: Optional[Sequence[str]] = None,
) -> np.ndarray:
    """Composite engravings into a template's slots.

    Slots are filled in template order. Extra engravings are ignored and
    slots without an engraving (or given None) keep the background.

    Args:
        template_image: RGB background at the template's canvas size.
        template: Slot calibration.
        engravings: RGBA (or RGB/grayscale) engravings.
        names: Optional pet names, one per engraving.

    Returns:
        New RGB array the size of the template image.
    """
    if template_image.ndim != 3 or template_image.shape[2] != 3:
        raise ValueError(f"Template image must be RGB, got shape {template_image.shape}")
    if len(engravings) > len(template.slots):
        logger.warning(
            "%d engravings for %d slots on %s; ignoring the rest",
            len(engravings),
            len(template.slots),
            template.name,
        )

    result = template_image.copy()
    for index, (slot, engraving) in enumerate(zip(template.slots, engravings)):
        if engraving is None:
            continue
        disc = fit_engraving_disc(engraving, slot, template.margin)
        left, top = slot.top_left
        result = multiply_blend(result, disc, left, top)

        name = names[index] if names is not None and index < len(names) else ""
        if name and name.strip():
            label = render_name_label(name, slot.diameter)
            result = multiply_blend(result, label, left, top + slot.diameter - LABEL_BOTTOM_OFFSET)
    return result


def composite_locket(
    template_image: np.ndarray,
    engraving: np.ndarray,
    name: Optional[str] = None,
) -> np.ndarray:
    """Composite a single engraving onto the round locket template."""
    return composite_pendant(
        template_image,
        LOCKET_TEMPLATE,
        [engraving],
        names=[name] if name else None,
    )
