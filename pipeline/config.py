"""
Settings for the engraving pipeline orchestrator.
"""

from dataclasses import dataclass
from typing import Optional

import config
from engraving.styles import METHODS, EngravingStyle
from faces.cropping import CROP_PRESETS


@dataclass(frozen=True)
class PipelineSettings:
    """Knobs for one EngravingPipeline.

    Attributes:
        method: Engraving method name (see engraving.styles.METHODS).
        styles: Styles to render; None renders every style of the method.
        crop_preset: "standard" or "professional".
        remove_background: Run background removal between crop and engraving.
        composite: Build a locket composite per style.
        min_confidence: Detector confidence a face must exceed.
        detection_timeout: Seconds to wait for the detector before falling back.
        upload_timeout: Seconds allowed per upload.
        background_timeout: Seconds allowed for background removal.
        optimized_max_size: (width, height) the final image is fit inside.
    """

    method: str = config.ENGRAVING_METHOD
    styles: Optional[tuple[str, ...]] = None
    crop_preset: str = "standard"
    remove_background: bool = False
    composite: bool = True
    min_confidence: float = config.MIN_DETECTION_CONFIDENCE
    detection_timeout: float = config.DETECTION_TIMEOUT
    upload_timeout: float = config.UPLOAD_TIMEOUT
    background_timeout: float = config.BACKGROUND_REMOVAL_TIMEOUT
    optimized_max_size: tuple[int, int] = config.OPTIMIZED_MAX_SIZE

    def validate(self) -> None:
        """Validate settings.

        Raises:
            ValueError: If any setting is invalid.
        """
        if self.method.replace("-", "_") not in METHODS:
            raise ValueError(f"Unknown engraving method: {self.method!r}")
        if self.styles is not None:
            if not self.styles:
                raise ValueError("styles must not be empty; use None for all styles")
            for style in self.styles:
                EngravingStyle.parse(style)
        if self.crop_preset not in CROP_PRESETS:
            raise ValueError(f"Unknown crop preset: {self.crop_preset!r}")
        if not 0.0 <= self.min_confidence < 1.0:
            raise ValueError(f"min_confidence must be within [0, 1), got {self.min_confidence}")
        for label, value in (
            ("detection_timeout", self.detection_timeout),
            ("upload_timeout", self.upload_timeout),
            ("background_timeout", self.background_timeout),
        ):
            if value <= 0:
                raise ValueError(f"{label} must be positive, got {value}")
        if any(side <= 0 for side in self.optimized_max_size):
            raise ValueError(f"optimized_max_size must be positive, got {self.optimized_max_size}")
