"""
Data structures for pet face detection.

PetDetection is the backend-neutral outcome consumed by the pipeline; the
pydantic models describe the JSON returned by hosted detection endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from geometry import BoundingBox

SOURCE_DETECTOR = "detector"
SOURCE_CUSTOM = "custom"
SOURCE_FALLBACK = "fallback"


class DetectorPrediction(BaseModel):
    """One prediction from a Roboflow-style endpoint (center convention)."""

    model_config = ConfigDict(populate_by_name=True)

    x: float
    y: float
    width: float
    height: float
    confidence: float = Field(ge=0.0, le=1.0)
    class_name: str = Field(default="", alias="class")
    class_id: int | None = None

    def to_bbox(self) -> BoundingBox:
        return BoundingBox(
            center_x=self.x,
            center_y=self.y,
            width=self.width,
            height=self.height,
            confidence=self.confidence,
        )


class DetectorResponse(BaseModel):
    """Body of a detection response; unknown fields are ignored."""

    predictions: list[DetectorPrediction] = Field(default_factory=list)


@dataclass(frozen=True)
class PetDetection:
    """Outcome of a pet face lookup.

    Attributes:
        has_pet: A face was found with acceptable confidence.
        confidence: Confidence of the best prediction (0 when none).
        bbox: Face box when one was found, also for low-confidence hits.
        source: "detector", "custom" or "fallback".
        message: Customer-facing explanation for rejections and fallbacks.
        predictions: Raw prediction records, best first.
    """

    has_pet: bool
    confidence: float
    bbox: BoundingBox | None = None
    source: str = SOURCE_DETECTOR
    message: str | None = None
    predictions: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    @property
    def is_fallback(self) -> bool:
        return self.source == SOURCE_FALLBACK

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_pet": self.has_pet,
            "confidence": self.confidence,
            "bbox": self.bbox.to_dict() if self.bbox else None,
            "source": self.source,
            "message": self.message,
            "predictions": [dict(p) for p in self.predictions],
        }
