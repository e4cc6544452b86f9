"""
Background removal: hosted cut-out service with a local GrabCut fallback.

The hosted service takes {"image": <base64 PNG>} at POST /remove-background
and answers {"success": bool, "image": <base64 or data URL>}. Whatever path
succeeds, the background ends up white so the engraving sees the pet alone.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass

import cv2
import numpy as np
import requests
from pydantic import BaseModel, ValidationError

import config
from engraving.normalization import decode_image, encode_png
from errors import ImageDecodeError

logger = logging.getLogger(__name__)

METHOD_SERVICE = "service"
METHOD_LOCAL = "local_grabcut"
METHOD_PASSTHROUGH = "passthrough"


class CutoutResponse(BaseModel):
    """Body returned by the hosted cut-out service; unknown fields are ignored."""

    success: bool = False
    image: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class BackgroundRemovalResult:
    image: np.ndarray
    method: str
    error: str | None = None

    @property
    def removed(self) -> bool:
        return self.method != METHOD_PASSTHROUGH


def _decode_service_image(payload: str) -> np.ndarray:
    if payload.startswith("data:"):
        payload = payload.split(",", 1)[-1]
    try:
        data = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Service returned invalid base64: {e}") from e
    return decode_image(data)


def grabcut_foreground(
    image: np.ndarray,
    margin: float = config.LOCAL_CUTOUT_MARGIN,
    iterations: int = config.LOCAL_CUTOUT_ITERATIONS,
) -> np.ndarray | None:
    """Whiten everything GrabCut classifies as background.

    The border band of width margin * side is seeded as background and the
    rest as probable foreground. Returns None for images too small to
    segment.
    """
    height, width = image.shape[:2]
    if height < config.LOCAL_CUTOUT_MIN_SIDE or width < config.LOCAL_CUTOUT_MIN_SIDE:
        return None

    inset_x = max(1, int(width * margin))
    inset_y = max(1, int(height * margin))
    rect = (inset_x, inset_y, width - 2 * inset_x, height - 2 * inset_y)

    bgr = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    gc_mask = np.zeros((height, width), dtype=np.uint8)
    bgd_model = np.zeros((1, 65), np.float64)
    fgd_model = np.zeros((1, 65), np.float64)
    cv2.grabCut(bgr, gc_mask, rect, bgd_model, fgd_model, iterations, cv2.GC_INIT_WITH_RECT)

    foreground = (gc_mask == cv2.GC_FGD) | (gc_mask == cv2.GC_PR_FGD)
    if not foreground.any():
        return None
    result = image.copy()
    result[~foreground] = 255
    return result


@dataclass
class BackgroundRemover:
    """Removes photo backgrounds, degrading to the unmodified image.

    Attributes:
        base_url: Hosted service root; empty disables the service call.
        timeout: Request timeout in seconds.
        local_fallback: Try GrabCut when the service is unavailable.
    """

    base_url: str | None = None
    timeout: float | None = None
    local_fallback: bool = True

    def __post_init__(self) -> None:
        if self.base_url is None:
            self.base_url = config.BACKGROUND_SERVICE_URL
        if self.timeout is None:
            self.timeout = config.BACKGROUND_SERVICE_TIMEOUT

    def _remove_with_service(self, image: np.ndarray) -> np.ndarray:
        payload = base64.b64encode(encode_png(image)).decode("ascii")
        response = requests.post(
            f"{self.base_url.rstrip('/')}/remove-background",
            json={"image": payload},
            timeout=self.timeout,
        )
        response.raise_for_status()
        body = CutoutResponse.model_validate(response.json())
        if not body.success or not body.image:
            raise RuntimeError(body.error or "background service reported failure")
        return _decode_service_image(body.image)

    def remove(self, image: np.ndarray) -> BackgroundRemovalResult:
        """Remove the background of an RGB image. Never raises."""
        errors: list[str] = []
        if self.base_url:
            try:
                cutout = self._remove_with_service(image)
                logger.info("Background removed by service")
                return BackgroundRemovalResult(image=cutout, method=METHOD_SERVICE)
            except (
                requests.RequestException,
                ValidationError,
                TypeError,
                ValueError,
                RuntimeError,
                ImageDecodeError,
            ) as e:
                logger.warning("Background service failed: %s", e)
                errors.append(str(e))

        if self.local_fallback:
            try:
                cutout = grabcut_foreground(image)
            except cv2.error as e:
                logger.warning("Local background removal failed: %s", e)
                errors.append(str(e))
                cutout = None
            if cutout is not None:
                logger.info("Background removed locally with GrabCut")
                return BackgroundRemovalResult(image=cutout, method=METHOD_LOCAL)

        return BackgroundRemovalResult(
            image=image.copy(),
            method=METHOD_PASSTHROUGH,
            error="; ".join(errors) or "background removal unavailable",
        )
