"""
Pet face backend interface and implementations.
"""

from __future__ import annotations

import base64
import dataclasses
from dataclasses import dataclass
import logging
from typing import Protocol, Sequence

import cv2
import numpy as np
import requests
from pydantic import ValidationError

import config
from engraving.normalization import encode_jpeg
from errors import DetectionError
from geometry import BoundingBox
from .types import (
    SOURCE_DETECTOR,
    SOURCE_FALLBACK,
    DetectorPrediction,
    DetectorResponse,
    PetDetection,
)

logger = logging.getLogger(__name__)

NO_PET_MESSAGE = "No pet face detected. Please upload an image with a clear view of your pet's face."
FALLBACK_MESSAGE = "Pet face located using the fallback method; the crop may not be optimal."

# Used when even the image size is unknown
DEFAULT_FALLBACK_BOX = BoundingBox(center_x=300, center_y=300, width=200, height=200, confidence=0.70)


class PetFaceBackend(Protocol):
    """Interface for pet face detection backends."""

    def detect(self, image: np.ndarray, image_url: str | None = None) -> PetDetection:
        """Find the pet's face in an RGB image.

        Raises:
            DetectionError: If the backend cannot produce an answer.
        """


def low_confidence_message(confidence: float, min_confidence: float) -> str:
    return (
        f"Pet detected with {confidence * 100:.1f}% confidence. Please upload a clearer "
        f"image with the pet's face more visible (minimum {min_confidence * 100:.0f}% "
        f"confidence required)."
    )


def evaluate_predictions(
    predictions: Sequence[DetectorPrediction],
    min_confidence: float = config.MIN_DETECTION_CONFIDENCE,
    source: str = SOURCE_DETECTOR,
) -> PetDetection:
    """Turn raw predictions into a PetDetection using the best one.

    A pet is accepted only when the best confidence is strictly above
    min_confidence.
    """
    if not predictions:
        return PetDetection(has_pet=False, confidence=0.0, source=source, message=NO_PET_MESSAGE)

    ranked = sorted(predictions, key=lambda p: p.confidence, reverse=True)
    best = ranked[0]
    records = tuple(p.model_dump(by_alias=True) for p in ranked)
    if best.confidence > min_confidence:
        return PetDetection(
            has_pet=True,
            confidence=best.confidence,
            bbox=best.to_bbox(),
            source=source,
            predictions=records,
        )
    return PetDetection(
        has_pet=False,
        confidence=best.confidence,
        bbox=best.to_bbox(),
        source=source,
        message=low_confidence_message(best.confidence, min_confidence),
        predictions=records,
    )


def fallback_detection(width: int | None, height: int | None) -> PetDetection:
    """Deterministic stand-in used when no detector answer is available.

    Assumes a centered face a quarter of the smaller image side across.
    """
    if not width or not height or width <= 0 or height <= 0:
        box = DEFAULT_FALLBACK_BOX
    else:
        face_size = float(round(min(width, height) * config.FALLBACK_FACE_FRACTION))
        box = BoundingBox(
            center_x=float(round(width / 2)),
            center_y=float(round(height / 2)),
            width=max(1.0, face_size),
            height=max(1.0, face_size),
            confidence=config.FALLBACK_CONFIDENCE,
        )
    return PetDetection(
        has_pet=True,
        confidence=box.confidence,
        bbox=box,
        source=SOURCE_FALLBACK,
        message=FALLBACK_MESSAGE,
        predictions=({"class": "pet", **box.to_dict()},),
    )


@dataclass
class HttpPetFaceBackend:
    """Hosted detector with a Roboflow-style JSON API.

    Sends the public image URL when one is known, otherwise the image as
    base64 JPEG.
    """

    endpoint: str | None = None
    api_key: str | None = None
    timeout: float | None = None
    min_confidence: float | None = None

    def __post_init__(self) -> None:
        if self.endpoint is None:
            self.endpoint = config.DETECTOR_ENDPOINT
        if self.api_key is None:
            self.api_key = config.DETECTOR_API_KEY
        if self.timeout is None:
            self.timeout = config.DETECTOR_REQUEST_TIMEOUT
        if self.min_confidence is None:
            self.min_confidence = config.MIN_DETECTION_CONFIDENCE
        self._session = requests.Session()

    def _post(self, image: np.ndarray, image_url: str | None) -> requests.Response:
        params = {"api_key": self.api_key} if self.api_key else None
        if image_url and image_url.startswith(("http://", "https://")):
            return self._session.post(
                self.endpoint,
                params=params,
                json={"image": image_url},
                timeout=self.timeout,
            )
        payload = base64.b64encode(encode_jpeg(image)).decode("ascii")
        return self._session.post(
            self.endpoint,
            params=params,
            data=payload,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=self.timeout,
        )

    def detect(self, image: np.ndarray, image_url: str | None = None) -> PetDetection:
        if not self.endpoint:
            raise DetectionError("No detector endpoint configured")
        try:
            response = self._post(image, image_url)
            response.raise_for_status()
            parsed = DetectorResponse.model_validate(response.json())
        except requests.RequestException as e:
            raise DetectionError(f"Detector request failed: {e}") from e
        except (ValidationError, ValueError) as e:
            raise DetectionError(f"Unexpected detector response: {e}") from e

        detection = evaluate_predictions(parsed.predictions, self.min_confidence)
        logger.info(
            "Detector returned %d predictions, best confidence %.1f%%",
            len(parsed.predictions),
            detection.confidence * 100,
        )
        return detection


@dataclass
class OpenCVHaarPetFaceBackend:
    """Local backend using OpenCV's cat face Haar cascade."""

    cascade_path: str = f"{cv2.data.haarcascades}{config.HAAR_CASCADE_FILE}"
    min_neighbors: int | None = None
    scale_factor: float | None = None
    min_size: tuple[int, int] | None = None
    confidence: float | None = None
    min_confidence: float | None = None

    def __post_init__(self) -> None:
        if self.min_neighbors is None:
            self.min_neighbors = config.HAAR_MIN_NEIGHBORS
        if self.scale_factor is None:
            self.scale_factor = config.HAAR_SCALE_FACTOR
        if self.min_size is None:
            self.min_size = config.HAAR_MIN_SIZE
        if self.confidence is None:
            self.confidence = config.HAAR_CONFIDENCE
        if self.min_confidence is None:
            self.min_confidence = config.MIN_DETECTION_CONFIDENCE
        self._cascade = cv2.CascadeClassifier(self.cascade_path)
        if self._cascade.empty():
            raise RuntimeError(f"Failed to load Haar cascade: {self.cascade_path}")

    def detect(self, image: np.ndarray, image_url: str | None = None) -> PetDetection:
        if image.ndim != 3:
            raise DetectionError("Expected RGB image for face detection")
        gray = cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
        faces = self._cascade.detectMultiScale(
            gray,
            scaleFactor=self.scale_factor,
            minNeighbors=self.min_neighbors,
            minSize=self.min_size,
        )
        # Largest face first; cascades do not score their hits
        boxes = sorted(
            ((int(x), int(y), int(w), int(h)) for (x, y, w, h) in faces),
            key=lambda rect: rect[2] * rect[3],
            reverse=True,
        )
        predictions = [
            DetectorPrediction(
                x=x + w / 2,
                y=y + h / 2,
                width=w,
                height=h,
                confidence=self.confidence,
                class_name="cat",
            )
            for (x, y, w, h) in boxes
        ]
        return evaluate_predictions(predictions, self.min_confidence)


@dataclass
class FallbackPetFaceBackend:
    """Offline backend that always answers with fallback_detection()."""

    def detect(self, image: np.ndarray, image_url: str | None = None) -> PetDetection:
        height, width = image.shape[:2]
        return fallback_detection(width, height)


_BACKENDS: dict[str, type] = {
    "http": HttpPetFaceBackend,
    "opencv_haar": OpenCVHaarPetFaceBackend,
    "fallback": FallbackPetFaceBackend,
}


def get_face_backend() -> PetFaceBackend:
    """Instantiate the configured face backend."""
    return get_face_backend_by_name(config.FACE_BACKEND)


def get_face_backend_by_name(backend_name: str) -> PetFaceBackend:
    """Instantiate a face backend by name."""
    backend_cls = _BACKENDS.get(backend_name)
    if backend_cls is None:
        raise ValueError(f"Unknown face backend: {backend_name}")
    return backend_cls()


def get_face_backend_with_overrides(
    backend_name: str | None = None,
    **kwargs,
) -> PetFaceBackend:
    """Instantiate a face backend with parameter overrides.

    Args:
        backend_name: Backend name (e.g. ``"opencv_haar"``). Defaults to
            ``config.FACE_BACKEND`` if None.
        **kwargs: Constructor keyword arguments to override. Must be valid
            field names for the selected backend class.

    Raises:
        ValueError: If ``backend_name`` is unknown or any kwarg is not a
            valid field for the selected backend.
    """
    name = backend_name if backend_name is not None else config.FACE_BACKEND
    backend_cls = _BACKENDS.get(name)
    if backend_cls is None:
        raise ValueError(f"Unknown face backend: {name!r}")
    valid_fields = {f.name for f in dataclasses.fields(backend_cls)}
    unknown = set(kwargs) - valid_fields
    if unknown:
        raise ValueError(
            f"Unknown kwargs for backend {name!r}: {sorted(unknown)}"
        )
    return backend_cls(**kwargs)
