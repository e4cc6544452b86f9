"""Shared geometry types for face boxes and crop regions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class BoundingBox:
    """A detection box in center convention, as reported by pet detectors.

    Attributes:
        center_x: Horizontal center in source pixels.
        center_y: Vertical center in source pixels.
        width: Box width in pixels.
        height: Box height in pixels.
        confidence: Detector confidence in [0, 1].
    """

    center_x: float
    center_y: float
    width: float
    height: float
    confidence: float = 1.0

    def validate(self) -> None:
        """Validate box dimensions and confidence.

        Raises:
            ValueError: If width/height are not positive or confidence is
                outside [0, 1].
        """
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Bounding box must have positive size, got {self.width}x{self.height}"
            )
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    def to_rect(self) -> tuple[int, int, int, int]:
        """Return the box as a top-left rectangle (x, y, w, h)."""
        x = int(round(self.center_x - self.width / 2))
        y = int(round(self.center_y - self.height / 2))
        return x, y, int(round(self.width)), int(round(self.height))

    @classmethod
    def from_rect(cls, x: int, y: int, w: int, h: int, confidence: float = 1.0) -> "BoundingBox":
        """Build a box from a top-left rectangle."""
        return cls(
            center_x=x + w / 2,
            center_y=y + h / 2,
            width=float(w),
            height=float(h),
            confidence=confidence,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "x": self.center_x,
            "y": self.center_y,
            "width": self.width,
            "height": self.height,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BoundingBox":
        """Parse the detector wire format ({x, y, width, height, confidence?})."""
        return cls(
            center_x=float(data["x"]),
            center_y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
            confidence=float(data.get("confidence", 1.0)),
        )


@dataclass(frozen=True)
class CropRegion:
    """A crop rectangle in top-left convention, clipped to the source image."""

    x: int
    y: int
    width: int
    height: int

    def fits_within(self, image_width: int, image_height: int) -> bool:
        """Check the region lies completely inside the image."""
        return (
            self.x >= 0
            and self.y >= 0
            and self.width > 0
            and self.height > 0
            and self.x + self.width <= image_width
            and self.y + self.height <= image_height
        )

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}
