"""
Style variant generation: render every style of a method and upload it.

A failing style is recorded in the result's errors and never stops its
siblings; the result is successful when at least one style was stored.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

import numpy as np

from errors import ImageDecodeError, UploadError
from storage import BlobStore
from .normalization import decode_image, encode_png, to_grayscale
from .styles import STYLE_ORDER, EngravingMethod, EngravingStyle, get_method

logger = logging.getLogger(__name__)


@dataclass
class StyleGenerationResult:
    """Style name -> URL map plus per-style errors.

    Attributes:
        success: True when at least one style was uploaded.
        styles: URL per style name, in render order.
        errors: {"style", "error"} records for styles that failed.
        method: Engraving method name.
        rasters: Rendered RGBA engravings per style, for compositing
            without downloading them again.
    """

    success: bool
    styles: dict[str, str] = field(default_factory=dict)
    errors: list[dict[str, str]] = field(default_factory=list)
    method: str = ""
    rasters: dict[str, np.ndarray] = field(default_factory=dict, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "styles": dict(self.styles),
            "errors": [dict(error) for error in self.errors],
            "method": self.method,
        }


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def _prepare_gray(image: bytes | np.ndarray) -> np.ndarray:
    if isinstance(image, (bytes, bytearray)):
        return to_grayscale(decode_image(bytes(image)))
    return to_grayscale(image)


def _resolve_styles(method: EngravingMethod, styles: Iterable[str | EngravingStyle] | None) -> list[EngravingStyle]:
    if styles is None:
        return list(method.styles)
    requested = {EngravingStyle.parse(style) for style in styles}
    return [style for style in STYLE_ORDER if style in requested]


def render_and_upload(
    gray: np.ndarray,
    method: EngravingMethod,
    style: EngravingStyle,
    store: BlobStore,
) -> tuple[str, np.ndarray]:
    """Render one style, encode it as PNG and upload it.

    Returns:
        Tuple of (url, RGBA raster).

    Raises:
        UploadError: If the store rejects the upload.
    """
    engraving = method.filter_for(style).apply(gray)
    png = encode_png(engraving)
    label = "shared" if method.shared_render else style.value
    upload = store.upload(
        png,
        folder=f"{method.name}-engravings",
        public_id=f"{method.name}_{label}_{_timestamp_ms()}",
        fmt="png",
    )
    if not upload.success or not upload.url:
        raise UploadError(upload.error or "upload failed")
    logger.info("%s %s engraving: %.2fKB", method.name, label, len(png) / 1024)
    return upload.url, engraving


def _collect(
    method: EngravingMethod,
    styles: list[EngravingStyle],
    outcomes: list[Any],
) -> StyleGenerationResult:
    result = StyleGenerationResult(success=False, method=method.name)
    for style, outcome in zip(styles, outcomes):
        if isinstance(outcome, BaseException):
            logger.warning("%s %s engraving failed: %s", method.name, style.value, outcome)
            result.errors.append({"style": style.value, "error": str(outcome) or type(outcome).__name__})
            continue
        url, raster = outcome
        result.styles[style.value] = url
        result.rasters[style.value] = raster
    result.success = bool(result.styles)
    return result


def _shared_outcomes(styles: list[EngravingStyle], outcome: Any) -> list[Any]:
    return [outcome for _ in styles]


def _render_outcome(gray: np.ndarray, method: EngravingMethod, style: EngravingStyle, store: BlobStore) -> Any:
    """Return (url, raster), or the exception, like gather(return_exceptions=True)."""
    try:
        return render_and_upload(gray, method, style, store)
    except Exception as e:
        return e


def generate_style_variants(
    image: bytes | np.ndarray,
    store: BlobStore,
    method: str | None = None,
    styles: Iterable[str | EngravingStyle] | None = None,
) -> StyleGenerationResult:
    """Render and upload each style sequentially.

    Args:
        image: Encoded image bytes or a decoded array.
        store: Destination blob store.
        method: Engraving method name (defaults to config.ENGRAVING_METHOD).
        styles: Subset of styles to render (defaults to all).

    Returns:
        StyleGenerationResult; an unreadable image yields success=False with
        a single error record.
    """
    engraving_method = get_method(method)
    selected = _resolve_styles(engraving_method, styles)
    try:
        gray = _prepare_gray(image)
    except (ImageDecodeError, ValueError, TypeError) as e:
        logger.warning("Cannot generate styles: %s", e)
        return StyleGenerationResult(success=False, errors=[{"error": str(e)}], method=engraving_method.name)

    if engraving_method.shared_render and selected:
        outcome = _render_outcome(gray, engraving_method, selected[0], store)
        return _collect(engraving_method, selected, _shared_outcomes(selected, outcome))

    outcomes = [_render_outcome(gray, engraving_method, style, store) for style in selected]
    return _collect(engraving_method, selected, outcomes)


async def _guarded(coro, timeout: float | None):
    if timeout is None:
        return await coro
    return await asyncio.wait_for(coro, timeout=timeout)


async def generate_style_variants_async(
    image: bytes | np.ndarray,
    store: BlobStore,
    method: str | None = None,
    styles: Iterable[str | EngravingStyle] | None = None,
    timeout: float | None = None,
) -> StyleGenerationResult:
    """Render and upload all styles concurrently in worker threads.

    Same contract as generate_style_variants(); each style additionally
    gets its own timeout when one is given.
    """
    engraving_method = get_method(method)
    selected = _resolve_styles(engraving_method, styles)
    try:
        gray = await asyncio.to_thread(_prepare_gray, image)
    except (ImageDecodeError, ValueError, TypeError) as e:
        logger.warning("Cannot generate styles: %s", e)
        return StyleGenerationResult(success=False, errors=[{"error": str(e)}], method=engraving_method.name)

    if engraving_method.shared_render and selected:
        shared = await asyncio.gather(
            _guarded(
                asyncio.to_thread(render_and_upload, gray, engraving_method, selected[0], store),
                timeout,
            ),
            return_exceptions=True,
        )
        return _collect(engraving_method, selected, _shared_outcomes(selected, shared[0]))

    outcomes = await asyncio.gather(
        *(
            _guarded(asyncio.to_thread(render_and_upload, gray, engraving_method, style, store), timeout)
            for style in selected
        ),
        return_exceptions=True,
    )
    return _collect(engraving_method, selected, list(outcomes))
