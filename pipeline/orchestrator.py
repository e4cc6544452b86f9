"""
End-to-end processing of one pet photo.

Upload -> detect -> crop -> (background removal) -> engrave -> composite ->
optimize. Each stage records a StepRecord; only this module decides whether
a run ends as a rejection, a system failure, or a success.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from pathlib import Path
from typing import Any, Optional

import numpy as np

import config
from compositing import LOCKET_TEMPLATE, composite_locket, load_template_image
from engraving.normalization import decode_image, encode_jpeg, encode_png, fit_inside
from engraving.variants import StyleGenerationResult, generate_style_variants_async
from errors import DetectionError, EngravingError, ImageDecodeError, InvalidBoundingBoxError, TemplateNotFoundError
from faces.backend import NO_PET_MESSAGE, PetFaceBackend, fallback_detection, low_confidence_message
from faces.cropping import compute_crop_region, crop_image, get_crop_params
from faces.types import SOURCE_CUSTOM, SOURCE_DETECTOR, PetDetection
from geometry import BoundingBox
from logging_utils import photo_context
from services import BackgroundRemover
from storage import BlobStore
from storage.base import UploadResult
from .cache import ResultCache
from .config import PipelineSettings
from .types import (
    ERROR_REJECTION,
    ERROR_SYSTEM,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_SKIPPED,
    ImageFile,
    PipelineResult,
    PipelineState,
)

logger = logging.getLogger(__name__)

STEP_UPLOAD = "Upload"
STEP_DETECTION = "Pet Detection"
STEP_CROPPING = "Face Cropping"
STEP_BACKGROUND = "Background Removal"
STEP_ENGRAVING = "Locket Engraving"
STEP_COMPOSITES = "Locket Composites"
STEP_OPTIMIZATION = "Final Optimization"
STEP_PIPELINE = "Pipeline"

UNREADABLE_MESSAGE = "We couldn't read this file. Please upload a JPEG or PNG photo of your pet."
UPLOAD_FAILED_MESSAGE = "Failed to upload image. Please try again."
ENGRAVING_FAILED_MESSAGE = "We couldn't create an engraving from this photo. Please try again."
CUSTOM_COORDINATES_MESSAGE = "Using manually specified coordinates"

ORIGINALS_FOLDER = "originals"
CROPPED_FOLDER = "cropped"
COMPOSITES_FOLDER = "locket-composites"
OPTIMIZED_FOLDER = "optimized"


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def _custom_detection(coordinates: BoundingBox) -> PetDetection:
    bbox = dataclasses.replace(coordinates, confidence=1.0)
    return PetDetection(
        has_pet=True,
        confidence=1.0,
        bbox=bbox,
        source=SOURCE_CUSTOM,
        message=CUSTOM_COORDINATES_MESSAGE,
        predictions=({"class": "pet", **bbox.to_dict()},),
    )


class EngravingPipeline:
    """Turns an uploaded pet photo into engravings, locket previews and a web image.

    Args:
        store: Where every produced asset is uploaded.
        detector: Pet face backend; None always uses the fallback box.
        background_remover: Used when settings.remove_background is set.
        template_dir: Directory holding the pendant background images.
        cache: Result cache; a fresh one is created when omitted.
        settings: Pipeline knobs.
    """

    def __init__(
        self,
        store: BlobStore,
        detector: Optional[PetFaceBackend] = None,
        background_remover: Optional[BackgroundRemover] = None,
        template_dir: Path | str | None = None,
        cache: Optional[ResultCache] = None,
        settings: Optional[PipelineSettings] = None,
    ) -> None:
        self.settings = settings or PipelineSettings()
        self.settings.validate()
        self.store = store
        self.detector = detector
        self.background_remover = background_remover
        self.template_dir = Path(template_dir) if template_dir is not None else Path(config.TEMPLATE_DIR)
        self.cache = cache if cache is not None else ResultCache()
        self.crop_params = get_crop_params(self.settings.crop_preset)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process_sync(
        self,
        image_file: ImageFile,
        custom_coordinates: Optional[BoundingBox] = None,
    ) -> PipelineResult:
        """Run process() on a fresh event loop."""
        return asyncio.run(self.process(image_file, custom_coordinates))

    async def process(
        self,
        image_file: ImageFile,
        custom_coordinates: Optional[BoundingBox] = None,
    ) -> PipelineResult:
        """Process one photo. Never raises; failures are described in the result."""
        with photo_context(image_file.name):
            return await self._process(image_file, custom_coordinates)

    async def _process(
        self,
        image_file: ImageFile,
        custom_coordinates: Optional[BoundingBox],
    ) -> PipelineResult:
        key = self._cache_key(image_file, custom_coordinates)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Using cached result for %s", image_file.name)
            return cached

        started = time.perf_counter()
        result = PipelineResult()
        try:
            await self._run(image_file, custom_coordinates, result)
        except Exception as e:
            logger.exception("Pipeline failed for %s", image_file.name)
            message = str(e) or type(e).__name__
            result.errors.append(message)
            result.add_step(STEP_PIPELINE, STATUS_FAILED, f"Critical error: {message}")
            self._fail(result, ERROR_SYSTEM, message)
        result.processing_time = round(time.perf_counter() - started, 3)

        if result.success:
            self.cache.put(key, result)
        logger.info(
            "Processed %s in %.2fs: %s",
            image_file.name,
            result.processing_time,
            result.state.value,
        )
        return result

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run(
        self,
        image_file: ImageFile,
        custom_coordinates: Optional[BoundingBox],
        result: PipelineResult,
    ) -> None:
        try:
            image = await asyncio.to_thread(decode_image, image_file.data)
        except ImageDecodeError as e:
            logger.warning("Unreadable upload %s: %s", image_file.name, e)
            result.errors.append(str(e))
            result.add_step(STEP_UPLOAD, STATUS_FAILED, "Unreadable image file")
            self._fail(result, ERROR_REJECTION, UNREADABLE_MESSAGE)
            return

        original = await self._upload(image_file.data, ORIGINALS_FOLDER, "original", image_file.extension)
        if not original.success:
            error = original.error or "upload failed"
            result.errors.append(f"Failed to upload image: {error}")
            result.add_step(STEP_UPLOAD, STATUS_FAILED, error)
            self._fail(result, ERROR_SYSTEM, UPLOAD_FAILED_MESSAGE)
            return
        result.original_url = original.url
        result.add_step(STEP_UPLOAD, STATUS_COMPLETED, "Original image stored", url=original.url)
        result.state = PipelineState.UPLOADED

        detection = await self._detect(image, original.url, custom_coordinates)
        result.detection = detection
        if not self._accept(detection, result):
            return
        result.state = PipelineState.DETECTED

        working = await self._crop(image, detection, result)
        result.state = PipelineState.CROPPED

        if self.settings.remove_background:
            working = await self._remove_background(working, result)

        styles = await self._engrave(working, result)
        if not styles.success:
            self._fail(result, ERROR_SYSTEM, ENGRAVING_FAILED_MESSAGE)
            return
        result.state = PipelineState.ENGRAVED

        if self.settings.composite:
            await self._composite(styles, result)
        result.state = PipelineState.COMPOSITED

        await self._optimize(working, result)
        result.state = PipelineState.OPTIMIZED

        result.success = True
        result.state = PipelineState.DONE

    async def _detect(
        self,
        image: np.ndarray,
        image_url: Optional[str],
        custom_coordinates: Optional[BoundingBox],
    ) -> PetDetection:
        if custom_coordinates is not None:
            return _custom_detection(custom_coordinates)

        height, width = image.shape[:2]
        if self.detector is None:
            logger.info("No detector configured; using fallback face box")
            return fallback_detection(width, height)

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.detector.detect, image, image_url),
                timeout=self.settings.detection_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Detector timed out after %.1fs; using fallback", self.settings.detection_timeout)
        except DetectionError as e:
            logger.warning("Detector failed: %s; using fallback", e)
        except Exception:
            logger.exception("Detector raised unexpectedly; using fallback")
        return fallback_detection(width, height)

    def _accept(self, detection: PetDetection, result: PipelineResult) -> bool:
        needs_check = detection.source == SOURCE_DETECTOR
        if detection.has_pet and detection.bbox is not None and not (
            needs_check and detection.confidence <= self.settings.min_confidence
        ):
            if detection.source == SOURCE_CUSTOM:
                details = CUSTOM_COORDINATES_MESSAGE
            else:
                details = f"Pet face detected with {detection.confidence * 100:.1f}% confidence"
                if detection.is_fallback:
                    details += " (fallback)"
            result.add_step(
                STEP_DETECTION,
                STATUS_COMPLETED,
                details,
                confidence=detection.confidence,
                source=detection.source,
            )
            return True

        if detection.message:
            message = detection.message
        elif detection.has_pet:
            message = low_confidence_message(detection.confidence, self.settings.min_confidence)
        else:
            message = NO_PET_MESSAGE
        result.add_step(
            STEP_DETECTION,
            STATUS_FAILED,
            message,
            confidence=detection.confidence,
            source=detection.source,
        )
        result.final_url = result.original_url
        self._fail(result, ERROR_REJECTION, message)
        return False

    async def _crop(self, image: np.ndarray, detection: PetDetection, result: PipelineResult) -> np.ndarray:
        height, width = image.shape[:2]
        try:
            region = compute_crop_region(detection.bbox, width, height, self.crop_params)
            cropped = await asyncio.to_thread(crop_image, image, region, self.crop_params)
        except (InvalidBoundingBoxError, ValueError) as e:
            logger.warning("Face cropping skipped: %s", e)
            result.add_step(STEP_CROPPING, STATUS_SKIPPED, f"Skipped: {e}")
            return image

        result.crop_region = region
        png = await asyncio.to_thread(encode_png, cropped)
        upload = await self._upload(png, CROPPED_FOLDER, "cropped", "png")
        details = f"Cropped to {cropped.shape[1]}x{cropped.shape[0]}"
        if not upload.success:
            logger.warning("Could not store cropped image: %s", upload.error)
            details += f" (not stored: {upload.error})"
        result.add_step(
            STEP_CROPPING,
            STATUS_COMPLETED,
            details,
            url=upload.url,
            region=region.to_dict(),
        )
        return cropped

    async def _remove_background(self, image: np.ndarray, result: PipelineResult) -> np.ndarray:
        remover = self.background_remover or BackgroundRemover()
        try:
            removal = await asyncio.wait_for(
                asyncio.to_thread(remover.remove, image),
                timeout=self.settings.background_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Background removal timed out")
            result.add_step(STEP_BACKGROUND, STATUS_SKIPPED, "Skipped: timed out")
            return image
        except Exception as e:
            logger.exception("Background removal failed")
            result.add_step(STEP_BACKGROUND, STATUS_SKIPPED, f"Skipped: {str(e) or type(e).__name__}")
            return image

        if not removal.removed:
            result.add_step(STEP_BACKGROUND, STATUS_SKIPPED, f"Skipped: {removal.error}")
            return image
        result.add_step(STEP_BACKGROUND, STATUS_COMPLETED, f"Background removed ({removal.method})")
        return removal.image

    async def _engrave(self, image: np.ndarray, result: PipelineResult) -> StyleGenerationResult:
        styles = await generate_style_variants_async(
            image,
            self.store,
            method=self.settings.method,
            styles=self.settings.styles,
            timeout=self.settings.upload_timeout,
        )
        result.styles = dict(styles.styles)
        for error in styles.errors:
            label = error.get("style", "engraving")
            result.errors.append(f"{label}: {error['error']}")

        if not styles.success:
            result.add_step(STEP_ENGRAVING, STATUS_FAILED, "No engraving style could be created")
            return styles

        first_url = next(iter(styles.styles.values()))
        result.add_step(
            STEP_ENGRAVING,
            STATUS_COMPLETED,
            f"Created {len(styles.styles)} {styles.method} style(s)",
            url=styles.styles.get("standard", first_url),
            method=styles.method,
            styles=list(styles.styles),
            failed=len(styles.errors),
        )
        return styles

    async def _composite(self, styles: StyleGenerationResult, result: PipelineResult) -> None:
        try:
            background = await asyncio.to_thread(load_template_image, LOCKET_TEMPLATE, self.template_dir)
        except (TemplateNotFoundError, ImageDecodeError) as e:
            logger.warning("Locket composites skipped: %s", e)
            result.errors.append(str(e))
            result.add_step(STEP_COMPOSITES, STATUS_SKIPPED, f"Skipped: {e}")
            return

        # Shared renders upload one URL for every style; composite it once.
        by_url: dict[str, list[str]] = {}
        for style, url in styles.styles.items():
            by_url.setdefault(url, []).append(style)
        jobs = [(url, style_names) for url, style_names in by_url.items()]

        outcomes = await asyncio.gather(
            *(self._composite_one(background, styles.rasters[names[0]], names[0]) for _, names in jobs),
            return_exceptions=True,
        )
        for (_, names), outcome in zip(jobs, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Locket composite for %s failed: %s", "/".join(names), outcome)
                result.errors.append(f"composite {names[0]}: {outcome}")
                continue
            for name in names:
                result.composites[name] = outcome

        status = STATUS_COMPLETED if result.composites else STATUS_FAILED
        result.add_step(
            STEP_COMPOSITES,
            status,
            f"Created {len(result.composites)} of {len(styles.styles)} locket composite(s)",
            composites=len(result.composites),
        )

    async def _composite_one(self, background: np.ndarray, engraving: np.ndarray, style: str) -> str:
        composite = await asyncio.to_thread(composite_locket, background, engraving)
        jpeg = await asyncio.to_thread(encode_jpeg, composite, config.COMPOSITE_JPEG_QUALITY)
        upload = await self._upload(jpeg, COMPOSITES_FOLDER, f"locket_{style}", "jpg")
        if not upload.success or not upload.url:
            raise EngravingError(upload.error or "upload failed")
        return upload.url

    async def _optimize(self, image: np.ndarray, result: PipelineResult) -> None:
        cropping = result.step(STEP_CROPPING)
        previous = (cropping.url if cropping else None) or result.original_url

        max_width, max_height = self.settings.optimized_max_size
        optimized, _ = await asyncio.to_thread(fit_inside, image, max_width, max_height)
        jpeg = await asyncio.to_thread(encode_jpeg, optimized, config.COMPOSITE_JPEG_QUALITY)
        upload = await self._upload(jpeg, OPTIMIZED_FOLDER, "optimized", "jpg")
        if not upload.success:
            logger.warning("Optimization upload failed: %s", upload.error)
            result.errors.append(f"optimization: {upload.error}")
            result.add_step(STEP_OPTIMIZATION, STATUS_FAILED, f"{upload.error} (using previous image)")
            result.final_url = previous
            return

        result.final_url = upload.url
        result.add_step(
            STEP_OPTIMIZATION,
            STATUS_COMPLETED,
            f"Optimized to {optimized.shape[1]}x{optimized.shape[0]}",
            url=upload.url,
            bytes=len(jpeg),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _upload(self, data: bytes, folder: str, prefix: str, fmt: str) -> UploadResult:
        public_id = f"{prefix}_{_timestamp_ms()}"
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.store.upload, data, folder, public_id, fmt),
                timeout=self.settings.upload_timeout,
            )
        except asyncio.TimeoutError:
            return UploadResult(success=False, error=f"Upload to {folder} timed out")
        except (EngravingError, OSError) as e:
            return UploadResult(success=False, error=str(e))

    @staticmethod
    def _cache_key(image_file: ImageFile, custom_coordinates: Optional[BoundingBox]) -> tuple[Any, ...]:
        return (image_file.cache_key, custom_coordinates)

    @staticmethod
    def _fail(result: PipelineResult, kind: str, message: str) -> None:
        result.success = False
        result.state = PipelineState.FAILED
        result.error_kind = kind
        result.message = message
        result.requires_new_image = kind == ERROR_REJECTION
