"""
Engraving step classes with a common interface.

Each step is a frozen dataclass implementing EngravingStep. Steps are pure:
they take an input array and return a new output without mutating the
original. Tone steps work on 2D grayscale arrays, line and cleanup steps
on ink masks (see engraving.raster), and ToRGBAStep produces the final
transparent engraving.

Usage:
    from engraving.steps import FitInsideStep, LevelsStep, EdgeStep, Pipeline

    pipeline = Pipeline(steps=[
        FitInsideStep(max_size=1000),
        LevelsStep(brightness=1.1, contrast=2.0),
        EdgeStep(kernel="laplacian8", threshold=50),
    ])
    result = pipeline.run(gray)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import cv2
import numpy as np

from .config import EDGE_KERNELS
from .normalization import fit_inside
from .raster import (
    INK,
    BLANK,
    bridge_endpoints,
    footprint_count,
    mask_to_rgba,
    neighbor_count,
    threshold_mask,
)


def _require_2d(img: np.ndarray, step_name: str) -> None:
    if img.ndim != 2:
        raise ValueError(
            f"{step_name} requires a single-channel (2D) array, "
            f"got {img.ndim}D array with shape {img.shape}"
        )


def _gaussian(img: np.ndarray, sigma: float) -> np.ndarray:
    return cv2.GaussianBlur(img, (0, 0), sigmaX=sigma, sigmaY=sigma, borderType=cv2.BORDER_REPLICATE)


def _stretch(img: np.ndarray) -> np.ndarray:
    """Min/max stretch to 0-255; flat images are returned unchanged."""
    low = float(img.min())
    high = float(img.max())
    if high <= low:
        return img.astype(np.uint8, copy=True)
    scaled = (img.astype(np.float32) - low) * (255.0 / (high - low))
    return np.clip(np.rint(scaled), 0, 255).astype(np.uint8)


def edge_response(
    gray: np.ndarray,
    kernel_name: str,
    gain: float = 1.0,
    post_blur: float = 0.0,
    normalize: bool = False,
) -> np.ndarray:
    """Convolve with a named 3x3 kernel and clamp negative responses to 0."""
    kernel = np.array(EDGE_KERNELS[kernel_name], dtype=np.float32).reshape(3, 3)
    response = cv2.filter2D(gray.astype(np.float32), -1, kernel, borderType=cv2.BORDER_REPLICATE)
    response = np.clip(np.rint(response * gain), 0, 255).astype(np.uint8)
    if post_blur > 0:
        response = _gaussian(response, post_blur)
    if normalize:
        response = _stretch(response)
    return response


def _ink_fraction(mask: np.ndarray) -> float:
    if mask.size == 0:
        return 0.0
    return float(np.count_nonzero(mask)) / mask.size


class EngravingStep(ABC):
    """Base class for engraving steps.

    Steps should be pure functions: they take an input array and return a
    new output without mutating the original. Steps can report metrics
    (ink coverage, pixels filled) through get_metadata().
    """

    @abstractmethod
    def apply(self, img: np.ndarray) -> np.ndarray:
        """Apply this step to an image or ink mask and return a new array."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for logging and debugging."""
        pass

    def get_metadata(self) -> dict[str, Any]:
        """Return any metadata produced by the last apply() call."""
        return {}


@dataclass(frozen=True)
class FitInsideStep(EngravingStep):
    """Shrink to fit max_size on the long edge; never enlarges.

    Attributes:
        max_size: Long-edge bound in pixels.
        resample: "lanczos" or "cubic".
    """

    max_size: int
    resample: str = "lanczos"
    _scale_factor: float = field(default=1.0, init=False, repr=False, compare=False)

    def apply(self, img: np.ndarray) -> np.ndarray:
        resized, scale_factor = fit_inside(img, self.max_size, self.max_size, self.resample)
        object.__setattr__(self, "_scale_factor", scale_factor)
        return resized

    @property
    def name(self) -> str:
        return f"fit_inside({self.max_size})"

    def get_metadata(self) -> dict[str, Any]:
        return {"scale_factor": self._scale_factor}


@dataclass(frozen=True)
class LevelsStep(EngravingStep):
    """Normalize, then apply brightness and a contrast stretch around mid-grey."""

    normalize: bool = True
    brightness: float = 1.0
    contrast: float = 1.0

    def apply(self, img: np.ndarray) -> np.ndarray:
        _require_2d(img, "LevelsStep")
        values = _stretch(img) if self.normalize else img
        values = values.astype(np.float32) * self.brightness
        values = (values - 128.0) * self.contrast + 128.0
        return np.clip(np.rint(values), 0, 255).astype(np.uint8)

    @property
    def name(self) -> str:
        return f"levels(b={self.brightness},c={self.contrast})"


@dataclass(frozen=True)
class BlurStep(EngravingStep):
    """Gaussian blur with the given sigma."""

    sigma: float

    def apply(self, img: np.ndarray) -> np.ndarray:
        if self.sigma <= 0:
            return img.copy()
        return _gaussian(img, self.sigma)

    @property
    def name(self) -> str:
        return f"blur({self.sigma})"


@dataclass(frozen=True)
class SharpenStep(EngravingStep):
    """Unsharp mask: img + amount * (img - blur(img))."""

    sigma: float
    amount: float = 1.0

    def apply(self, img: np.ndarray) -> np.ndarray:
        _require_2d(img, "SharpenStep")
        blurred = _gaussian(img, self.sigma).astype(np.float32)
        values = img.astype(np.float32)
        sharpened = values + self.amount * (values - blurred)
        return np.clip(np.rint(sharpened), 0, 255).astype(np.uint8)

    @property
    def name(self) -> str:
        return f"sharpen({self.sigma})"


@dataclass(frozen=True)
class MedianStep(EngravingStep):
    """Median filter on a grayscale image."""

    size: int = 3

    def apply(self, img: np.ndarray) -> np.ndarray:
        _require_2d(img, "MedianStep")
        return cv2.medianBlur(img, self.size)

    @property
    def name(self) -> str:
        return f"median({self.size})"


@dataclass(frozen=True)
class EdgeStep(EngravingStep):
    """Threshold a 3x3 edge response into an ink mask.

    With major_kernel set, a second pass on a pre-blurred copy catches the
    major outlines; it is thresholded separately, spread by major_spread
    pixels and ANDed with the fine pass.
    """

    kernel: str = "laplacian8"
    threshold: int = 50
    gain: float = 1.0
    post_blur: float = 0.0
    normalize: bool = False
    major_kernel: Optional[str] = None
    major_blur_sigma: float = 1.0
    major_threshold: int = 40
    major_spread: int = 1
    _coverage: float = field(default=0.0, init=False, repr=False, compare=False)

    def apply(self, img: np.ndarray) -> np.ndarray:
        _require_2d(img, "EdgeStep")
        fine = edge_response(img, self.kernel, self.gain, self.post_blur, self.normalize)
        mask = threshold_mask(fine, self.threshold)

        if self.major_kernel is not None:
            source = _gaussian(img, self.major_blur_sigma) if self.major_blur_sigma > 0 else img
            major = threshold_mask(edge_response(source, self.major_kernel), self.major_threshold)
            if self.major_spread > 0:
                side = 2 * self.major_spread + 1
                major = cv2.dilate(major, np.ones((side, side), dtype=np.uint8))
            mask = np.where((mask > 0) & (major > 0), INK, BLANK).astype(np.uint8)

        object.__setattr__(self, "_coverage", _ink_fraction(mask))
        return mask

    @property
    def name(self) -> str:
        if self.major_kernel:
            return f"edges({self.kernel}+{self.major_kernel})"
        return f"edges({self.kernel})"

    def get_metadata(self) -> dict[str, Any]:
        return {"step_metrics": {"ink_fraction": self._coverage}}


@dataclass(frozen=True)
class AdaptiveToneStep(EngravingStep):
    """Render tone with a local-mean threshold and ordered mid-tone patterns.

    A high-contrast copy is darkened wherever the edge map fires, then each
    pixel is compared against factor * mean of its window. Darker tiers are
    drawn solid; lighter tiers use fixed dot patterns keyed on (x, y), so the
    result is fully deterministic.
    """

    contrast_gain: float = 3.5
    contrast_offset: float = -256.0
    edge_kernel: str = "laplacian8"
    edge_threshold: int = 40
    window: int = 11
    factor: float = 0.85
    _coverage: float = field(default=0.0, init=False, repr=False, compare=False)

    def apply(self, img: np.ndarray) -> np.ndarray:
        _require_2d(img, "AdaptiveToneStep")
        edges = threshold_mask(edge_response(img, self.edge_kernel, normalize=True), self.edge_threshold)
        high_contrast = np.clip(img.astype(np.float32) * self.contrast_gain + self.contrast_offset, 0, 255)
        combined = np.where(edges > 0, 0.0, np.rint(high_contrast)).astype(np.float32)

        local_mean = cv2.blur(combined, (self.window, self.window), borderType=cv2.BORDER_REPLICATE)
        threshold = local_mean * self.factor

        ys, xs = np.indices(combined.shape)
        draw = (
            (combined < threshold * 0.3)
            | ((combined < threshold * 0.5) & ((xs + ys) % 2 == 0))
            | ((combined < threshold * 0.7) & ((xs % 3) + (ys % 3) == 0))
            | ((combined < threshold) & (xs % 4 == 0) & (ys % 4 == 0))
        )
        mask = np.where(draw, INK, BLANK).astype(np.uint8)
        object.__setattr__(self, "_coverage", _ink_fraction(mask))
        return mask

    @property
    def name(self) -> str:
        return f"adaptive_tone({self.window})"

    def get_metadata(self) -> dict[str, Any]:
        return {"step_metrics": {"ink_fraction": self._coverage}}


@dataclass(frozen=True)
class MorphologyStep(EngravingStep):
    """Thicken and denoise an ink mask.

    Dilation counts ink under the footprint (cross or box) and keeps pixels
    reaching dilate_min_count; the median filter then removes speckle.
    """

    median_size: int = 0
    dilate_shape: Optional[str] = None
    dilate_min_count: int = 1

    def apply(self, img: np.ndarray) -> np.ndarray:
        _require_2d(img, "MorphologyStep")
        mask = img.copy()
        if self.dilate_shape is not None:
            counts = footprint_count(mask, self.dilate_shape)
            mask = np.where(counts >= self.dilate_min_count, INK, BLANK).astype(np.uint8)
        if self.median_size:
            mask = cv2.medianBlur(mask, self.median_size)
        return mask

    @property
    def name(self) -> str:
        return f"morphology({self.dilate_shape or 'none'},{self.median_size})"


@dataclass(frozen=True)
class GapFillStep(EngravingStep):
    """Fill blank pixels that sit between nearby ink.

    All pixels are decided from the input mask at once, so the fill does
    not cascade along a scan direction.
    """

    radius: int = 2
    min_near: int = 2
    min_total: int = 3
    _filled: int = field(default=0, init=False, repr=False, compare=False)

    def apply(self, img: np.ndarray) -> np.ndarray:
        _require_2d(img, "GapFillStep")
        near = neighbor_count(img, 1)
        total = neighbor_count(img, self.radius) if self.radius > 1 else near
        fill = (img == 0) & (near >= self.min_near) & (total >= self.min_total)
        object.__setattr__(self, "_filled", int(np.count_nonzero(fill)))
        return np.where(fill | (img > 0), INK, BLANK).astype(np.uint8)

    @property
    def name(self) -> str:
        return f"gap_fill({self.radius})"

    def get_metadata(self) -> dict[str, Any]:
        return {"step_metrics": {"filled": self._filled}}


@dataclass(frozen=True)
class BridgeStep(EngravingStep):
    """Extend dangling line ends to nearby ink with straight segments."""

    radius: int = 3
    _bridges: int = field(default=0, init=False, repr=False, compare=False)

    def apply(self, img: np.ndarray) -> np.ndarray:
        _require_2d(img, "BridgeStep")
        mask, bridges = bridge_endpoints(img, self.radius)
        object.__setattr__(self, "_bridges", bridges)
        return mask

    @property
    def name(self) -> str:
        return f"bridge({self.radius})"

    def get_metadata(self) -> dict[str, Any]:
        return {"step_metrics": {"bridges": self._bridges}}


@dataclass(frozen=True)
class IsolationStep(EngravingStep):
    """Clear ink pixels with fewer than min_neighbors ink 8-neighbors."""

    min_neighbors: int = 1
    _removed: int = field(default=0, init=False, repr=False, compare=False)

    def apply(self, img: np.ndarray) -> np.ndarray:
        _require_2d(img, "IsolationStep")
        counts = neighbor_count(img, 1)
        isolated = (img > 0) & (counts < self.min_neighbors)
        object.__setattr__(self, "_removed", int(np.count_nonzero(isolated)))
        return np.where((img > 0) & ~isolated, INK, BLANK).astype(np.uint8)

    @property
    def name(self) -> str:
        return f"isolation({self.min_neighbors})"

    def get_metadata(self) -> dict[str, Any]:
        return {"step_metrics": {"removed": self._removed}}


@dataclass(frozen=True)
class ToRGBAStep(EngravingStep):
    """Render the ink mask as black-on-transparent RGBA."""

    def apply(self, img: np.ndarray) -> np.ndarray:
        _require_2d(img, "ToRGBAStep")
        return mask_to_rgba(img)

    @property
    def name(self) -> str:
        return "to_rgba"


@dataclass
class StepResult:
    """Result of applying a single engraving step.

    Attributes:
        name: Name of the step that produced this result.
        image: Output array from the step.
        metadata: Any metadata produced by the step.
        artifact_path: Path where the output was saved (if artifact saving enabled).
    """

    name: str
    image: np.ndarray
    metadata: dict[str, Any] = field(default_factory=dict)
    artifact_path: str | None = None


@dataclass
class PipelineStepResults:
    """Results from running an engraving pipeline.

    Attributes:
        original: The input array.
        steps: StepResult for each step in order.
    """

    original: np.ndarray
    steps: list[StepResult] = field(default_factory=list)

    @property
    def final(self) -> np.ndarray:
        """Get the final output."""
        if not self.steps:
            return self.original
        return self.steps[-1].image

    def get_intermediate(self, step_name: str) -> np.ndarray | None:
        """Get an intermediate array by step name (with or without arguments)."""
        for step in self.steps:
            if step.name == step_name or step.name.split("(")[0] == step_name:
                return step.image
        return None

    def get_metadata(self, key: str) -> Any | None:
        """Return the first metadata value stored under key."""
        for step in self.steps:
            if key in step.metadata:
                return step.metadata[key]
        return None

    @property
    def scale_factor(self) -> float:
        return self.get_metadata("scale_factor") or 1.0

    @property
    def metrics(self) -> dict[str, dict[str, Any]]:
        """Per-step metrics keyed by the step's short name."""
        return {
            step.name.split("(")[0]: step.metadata["step_metrics"]
            for step in self.steps
            if "step_metrics" in step.metadata
        }


def _save_image(img: np.ndarray, path: str) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    if img.ndim == 3 and img.shape[2] == 4:
        cv2.imwrite(path, cv2.cvtColor(img, cv2.COLOR_RGBA2BGRA))
    else:
        cv2.imwrite(path, img)


@dataclass
class Pipeline:
    """A sequence of engraving steps.

    Each step's output feeds the next one; all intermediate results are
    preserved for debugging.

    Attributes:
        steps: EngravingStep instances to apply in order.
    """

    steps: list[EngravingStep]

    def run(self, img: np.ndarray, artifact_dir: str | None = None) -> PipelineStepResults:
        """Run the pipeline.

        Args:
            img: Input grayscale image.
            artifact_dir: Optional directory to save each step's output as PNG.

        Returns:
            PipelineStepResults with all intermediate arrays and metadata.
        """
        result = PipelineStepResults(original=img.copy())
        current = img.copy()

        for index, step in enumerate(self.steps):
            output = step.apply(current)
            metadata = step.get_metadata()

            artifact_path = None
            if artifact_dir:
                step_key = step.name.split("(")[0]
                artifact_path = f"{artifact_dir}/{index:02d}_{step_key}.png"
                _save_image(output, artifact_path)

            result.steps.append(
                StepResult(
                    name=step.name,
                    image=output,
                    metadata=metadata,
                    artifact_path=artifact_path,
                )
            )
            current = output

        return result

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)
