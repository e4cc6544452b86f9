"""
Pet face detection and crop geometry.

This package provides a swappable detector backend interface, a local
deterministic fallback, and the crop normalizer that turns a face box into
a padded region inside the image.
"""

from .backend import (
    FallbackPetFaceBackend,
    HttpPetFaceBackend,
    OpenCVHaarPetFaceBackend,
    PetFaceBackend,
    evaluate_predictions,
    fallback_detection,
    get_face_backend,
    get_face_backend_by_name,
    get_face_backend_with_overrides,
)
from .cropping import (
    CROP_PRESETS,
    PROFESSIONAL_CROP,
    STANDARD_CROP,
    CropParams,
    compute_crop_region,
    crop_image,
    get_crop_params,
    padding_factor,
)
from .types import DetectorPrediction, DetectorResponse, PetDetection

__all__ = [
    "FallbackPetFaceBackend",
    "HttpPetFaceBackend",
    "OpenCVHaarPetFaceBackend",
    "PetFaceBackend",
    "evaluate_predictions",
    "fallback_detection",
    "get_face_backend",
    "get_face_backend_by_name",
    "get_face_backend_with_overrides",
    "CROP_PRESETS",
    "PROFESSIONAL_CROP",
    "STANDARD_CROP",
    "CropParams",
    "compute_crop_region",
    "crop_image",
    "get_crop_params",
    "padding_factor",
    "DetectorPrediction",
    "DetectorResponse",
    "PetDetection",
]
