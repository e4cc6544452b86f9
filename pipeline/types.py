"""
Data structures exchanged with pipeline callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from faces.types import PetDetection
from geometry import CropRegion

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"

ERROR_REJECTION = "rejection"
ERROR_SYSTEM = "system"


class PipelineState(str, Enum):
    """Stages of one processing run, in order; FAILED is terminal."""

    UPLOADED = "uploaded"
    DETECTED = "detected"
    CROPPED = "cropped"
    ENGRAVED = "engraved"
    COMPOSITED = "composited"
    OPTIMIZED = "optimized"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ImageFile:
    """An uploaded photo as received from the caller."""

    name: str
    data: bytes
    last_modified: float = 0.0

    @property
    def cache_key(self) -> tuple[str, int, float]:
        return (self.name, len(self.data), self.last_modified)

    @property
    def extension(self) -> str:
        suffix = Path(self.name).suffix.lower().lstrip(".")
        return suffix or "jpg"

    @classmethod
    def from_path(cls, path: Path | str) -> "ImageFile":
        path = Path(path)
        return cls(name=path.name, data=path.read_bytes(), last_modified=path.stat().st_mtime)


@dataclass
class StepRecord:
    """Status of one pipeline step, as reported to the caller."""

    name: str
    status: str
    details: str = ""
    url: str | None = None
    metrics: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "details": self.details,
            "url": self.url,
            "metrics": dict(self.metrics),
        }


@dataclass
class PipelineResult:
    """Aggregated outcome of one run; built up step by step.

    Attributes:
        success: True only when the run reached DONE.
        state: Last state reached.
        original_url: Where the untouched upload was stored.
        final_url: Optimized image (or the best earlier image).
        steps: Step records in execution order.
        styles: Engraving URL per style.
        composites: Locket composite URL per style.
        errors: Error messages collected along the way.
        message: Customer-facing message for rejections and failures.
        requires_new_image: The customer should upload a different photo.
        error_kind: "rejection" or "system" when the run failed.
        detection: Face lookup outcome.
        crop_region: Region cropped from the original, if any.
        processing_time: Wall time in seconds.
    """

    success: bool = False
    state: PipelineState = PipelineState.UPLOADED
    original_url: str | None = None
    final_url: str | None = None
    steps: list[StepRecord] = field(default_factory=list)
    styles: dict[str, str] = field(default_factory=dict)
    composites: dict[str, str] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    message: str | None = None
    requires_new_image: bool = False
    error_kind: str | None = None
    detection: PetDetection | None = None
    crop_region: CropRegion | None = None
    processing_time: float = 0.0

    def add_step(
        self,
        name: str,
        status: str,
        details: str = "",
        url: str | None = None,
        **metrics: Any,
    ) -> StepRecord:
        record = StepRecord(name=name, status=status, details=details, url=url, metrics=metrics)
        self.steps.append(record)
        return record

    def step(self, name: str) -> StepRecord | None:
        """Return the first step record with the given name."""
        for record in self.steps:
            if record.name == name:
                return record
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "state": self.state.value,
            "original_url": self.original_url,
            "final_url": self.final_url,
            "steps": [record.to_dict() for record in self.steps],
            "styles": dict(self.styles),
            "composites": dict(self.composites),
            "errors": list(self.errors),
            "message": self.message,
            "requires_new_image": self.requires_new_image,
            "error_kind": self.error_kind,
            "detection": self.detection.to_dict() if self.detection else None,
            "crop_region": self.crop_region.to_dict() if self.crop_region else None,
            "processing_time": self.processing_time,
        }
