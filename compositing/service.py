"""
Multi-pet pendant composites: engravings + names onto a chosen template.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import numpy as np

import config
from engraving.normalization import decode_image, encode_jpeg
from errors import EngravingError
from storage import BlobStore
from .compositor import composite_pendant
from .templates import get_template, load_template_image

logger = logging.getLogger(__name__)

COMPOSITE_FOLDER = "pendant-composites"


@dataclass(frozen=True)
class PendantPet:
    """One pet on a pendant: its engraving and an optional name."""

    image: bytes | np.ndarray
    name: str = ""


@dataclass
class PendantCompositeResult:
    success: bool
    pendant_type: str
    pets: int = 0
    composite_url: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "composite_url": self.composite_url,
            "pendant_type": self.pendant_type,
            "pets": self.pets,
            "error": self.error,
        }


def _engraving_array(image: bytes | np.ndarray) -> np.ndarray:
    if isinstance(image, (bytes, bytearray)):
        return decode_image(bytes(image))
    if not isinstance(image, np.ndarray):
        raise TypeError(f"Engraving must be encoded bytes or an array, got {type(image).__name__}")
    return image


def create_pendant_composite(
    pets: Sequence[PendantPet],
    pendant_type: str,
    store: BlobStore,
    template_dir: Path | str | None = None,
) -> PendantCompositeResult:
    """Composite pet engravings onto a pendant template and upload a JPEG.

    Never raises: missing templates, unreadable engravings and rejected
    uploads are reported through the result.
    """
    if not pets:
        return PendantCompositeResult(success=False, pendant_type=pendant_type, error="No images provided")

    try:
        template = get_template(pendant_type)
        background = load_template_image(template, template_dir)
        engravings = [_engraving_array(pet.image) for pet in pets]
        composite = composite_pendant(
            background,
            template,
            engravings,
            names=[pet.name for pet in pets],
        )
        payload = encode_jpeg(composite, quality=config.COMPOSITE_JPEG_QUALITY)
    except (EngravingError, ValueError, TypeError, OSError) as e:
        logger.warning("Pendant composite (%s) failed: %s", pendant_type, e)
        return PendantCompositeResult(success=False, pendant_type=pendant_type, pets=len(pets), error=str(e))

    placed = min(len(pets), len(template.slots))
    try:
        upload = store.upload(
            payload,
            folder=COMPOSITE_FOLDER,
            public_id=f"{template.name}_pendant_{int(time.time() * 1000)}",
            fmt="jpg",
        )
    except Exception as e:
        logger.exception("Pendant composite upload failed")
        return PendantCompositeResult(
            success=False,
            pendant_type=template.name,
            pets=placed,
            error=str(e) or type(e).__name__,
        )
    if not upload.success:
        return PendantCompositeResult(
            success=False,
            pendant_type=template.name,
            pets=placed,
            error=upload.error or "upload failed",
        )
    logger.info("Created %s pendant composite with %d pets", template.name, placed)
    return PendantCompositeResult(
        success=True,
        pendant_type=template.name,
        pets=placed,
        composite_url=upload.url,
    )
