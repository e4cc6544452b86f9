"""
Parameters for the engraving filter pipeline.

Every engraving method and style is a FilterParams instance; the step
pipeline built from it is the only rendering code path, so a new style is
a new set of numbers rather than a new function.
"""

from dataclasses import dataclass, replace
from typing import Optional

from config import (
    ENGRAVING_WORKING_SIZE,
    MIN_WORKING_SIZE,
    MAX_WORKING_SIZE,
)

# 3x3 convolution kernels used for edge extraction
EDGE_KERNELS: dict[str, tuple[float, ...]] = {
    "laplacian8": (-1, -1, -1, -1, 8, -1, -1, -1, -1),
    "laplacian4": (0, -1, 0, -1, 4, -1, 0, -1, 0),
    "laplacian12": (-1, -2, -1, -2, 12, -2, -1, -2, -1),
    "sharpen5": (0, -1, 0, -1, 5, -1, 0, -1, 0),
}

RESAMPLE_MODES = ("lanczos", "cubic")
TONE_MODES = ("edges", "adaptive")
DILATE_SHAPES = ("cross", "box")


@dataclass(frozen=True)
class FilterParams:
    """Numeric knobs for one engraving style.

    Attributes:
        working_size: Long-edge bound the input is shrunk to (never enlarged).
        resample: Resampling filter for the shrink ("lanczos" or "cubic").
        normalize: Stretch grey levels to the full 0-255 range first.
        brightness: Multiplier applied after normalization.
        contrast: Stretch factor around mid-grey (128).
        blur_sigma: Gaussian pre-blur sigma; 0 disables.
        sharpen_sigma: Unsharp-mask sigma; 0 disables.
        sharpen_amount: Unsharp-mask strength.
        median_prefilter: Median kernel applied to the tone image; 0 disables.
        tone_mode: "edges" for convolution edges, "adaptive" for the
            local-mean tone renderer.
        edge_kernel: Name of the fine-pass kernel in EDGE_KERNELS.
        edge_threshold: Fine-pass response at or above which a pixel is ink.
        edge_gain: Multiplier on the clamped edge response.
        edge_post_blur: Gaussian blur of the edge response before thresholding.
        edge_normalize: Stretch the edge response to 0-255 before thresholding.
        major_kernel: Optional second-pass kernel for major outlines.
        major_blur_sigma: Pre-blur for the major pass.
        major_threshold: Major-pass threshold.
        major_spread: Dilation radius of the major mask before the AND.
        contrast_gain: Adaptive mode linear gain.
        contrast_offset: Adaptive mode linear offset.
        adaptive_window: Side of the local-mean window (odd).
        adaptive_factor: Local threshold as a fraction of the local mean.
        median_size: Median filter on the ink mask; 0 disables.
        dilate_shape: Neighbor-count dilation footprint (None, "cross", "box").
        dilate_min_count: Ink count in the footprint needed to keep ink.
        gap_radius: Search radius for gap filling; 0 disables.
        gap_min_near: Ink pixels required in the 3x3 ring.
        gap_min_total: Ink pixels required in the gap_radius window.
        bridge_radius: Endpoint bridging radius; 0 disables.
        isolation_min_neighbors: Ink pixels with fewer ink neighbors are
            cleared; 0 disables.
    """

    # Tone preparation
    working_size: int = ENGRAVING_WORKING_SIZE
    resample: str = "lanczos"
    normalize: bool = True
    brightness: float = 1.0
    contrast: float = 1.0
    blur_sigma: float = 0.0
    sharpen_sigma: float = 0.0
    sharpen_amount: float = 1.0
    median_prefilter: int = 0

    # Line extraction
    tone_mode: str = "edges"
    edge_kernel: str = "laplacian8"
    edge_threshold: int = 50
    edge_gain: float = 1.0
    edge_post_blur: float = 0.0
    edge_normalize: bool = False
    major_kernel: Optional[str] = None
    major_blur_sigma: float = 1.0
    major_threshold: int = 40
    major_spread: int = 1

    # Adaptive tone rendering
    contrast_gain: float = 3.5
    contrast_offset: float = -256.0
    adaptive_window: int = 11
    adaptive_factor: float = 0.85

    # Mask cleanup
    median_size: int = 0
    dilate_shape: Optional[str] = None
    dilate_min_count: int = 1
    gap_radius: int = 0
    gap_min_near: int = 2
    gap_min_total: int = 3
    bridge_radius: int = 0
    isolation_min_neighbors: int = 0

    def validate(self) -> None:
        """Validate parameters.

        Raises:
            ValueError: If any parameter is invalid.
        """
        if not MIN_WORKING_SIZE <= self.working_size <= MAX_WORKING_SIZE:
            raise ValueError(
                f"working_size must be within [{MIN_WORKING_SIZE}, {MAX_WORKING_SIZE}], "
                f"got {self.working_size}"
            )
        if self.resample not in RESAMPLE_MODES:
            raise ValueError(f"resample must be one of {RESAMPLE_MODES}, got {self.resample!r}")
        if self.tone_mode not in TONE_MODES:
            raise ValueError(f"tone_mode must be one of {TONE_MODES}, got {self.tone_mode!r}")
        if self.brightness <= 0 or self.contrast <= 0:
            raise ValueError("brightness and contrast must be positive")
        if self.blur_sigma < 0 or self.sharpen_sigma < 0 or self.edge_post_blur < 0:
            raise ValueError("blur and sharpen sigmas must be non-negative")
        for kernel_name in (self.edge_kernel, self.major_kernel):
            if kernel_name is not None and kernel_name not in EDGE_KERNELS:
                raise ValueError(f"Unknown edge kernel: {kernel_name!r}")
        for label, size in (("median_prefilter", self.median_prefilter), ("median_size", self.median_size)):
            if size < 0 or (size and size % 2 == 0):
                raise ValueError(f"{label} must be 0 or an odd positive integer, got {size}")
        if self.adaptive_window < 3 or self.adaptive_window % 2 == 0:
            raise ValueError(f"adaptive_window must be odd and >= 3, got {self.adaptive_window}")
        if not 0 < self.adaptive_factor <= 1:
            raise ValueError(f"adaptive_factor must be within (0, 1], got {self.adaptive_factor}")
        if self.dilate_shape is not None and self.dilate_shape not in DILATE_SHAPES:
            raise ValueError(f"dilate_shape must be one of {DILATE_SHAPES}, got {self.dilate_shape!r}")
        for label, value in (
            ("edge_threshold", self.edge_threshold),
            ("major_threshold", self.major_threshold),
        ):
            if not 0 <= value <= 255:
                raise ValueError(f"{label} must be within [0, 255], got {value}")
        for label, value in (
            ("major_spread", self.major_spread),
            ("gap_radius", self.gap_radius),
            ("bridge_radius", self.bridge_radius),
            ("isolation_min_neighbors", self.isolation_min_neighbors),
        ):
            if value < 0:
                raise ValueError(f"{label} must be non-negative, got {value}")
        if self.isolation_min_neighbors > 8:
            raise ValueError("isolation_min_neighbors cannot exceed 8")

    def with_overrides(self, **changes) -> "FilterParams":
        """Return a copy with some fields replaced."""
        return replace(self, **changes)
