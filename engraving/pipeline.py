"""
Engraving pipeline assembly.

build_pipeline() turns a FilterParams into the ordered step list:
    FitInside -> Levels -> Blur -> Median -> Sharpen -> Edges | AdaptiveTone
    -> Morphology -> Bridge -> GapFill -> Isolation -> ToRGBA
Steps whose parameters disable them are left out.
"""

import logging

import numpy as np

from .config import FilterParams
from .normalization import decode_image, to_grayscale
from .steps import (
    AdaptiveToneStep,
    BlurStep,
    BridgeStep,
    EdgeStep,
    EngravingStep,
    FitInsideStep,
    GapFillStep,
    IsolationStep,
    LevelsStep,
    MedianStep,
    MorphologyStep,
    Pipeline,
    PipelineStepResults,
    SharpenStep,
    ToRGBAStep,
)

logger = logging.getLogger(__name__)


def build_pipeline(params: FilterParams) -> Pipeline:
    """Build the step pipeline for a set of filter parameters."""
    steps: list[EngravingStep] = [
        FitInsideStep(max_size=params.working_size, resample=params.resample),
        LevelsStep(
            normalize=params.normalize,
            brightness=params.brightness,
            contrast=params.contrast,
        ),
    ]

    if params.blur_sigma > 0:
        steps.append(BlurStep(sigma=params.blur_sigma))
    if params.median_prefilter:
        steps.append(MedianStep(size=params.median_prefilter))
    if params.sharpen_sigma > 0:
        steps.append(SharpenStep(sigma=params.sharpen_sigma, amount=params.sharpen_amount))

    if params.tone_mode == "adaptive":
        steps.append(
            AdaptiveToneStep(
                contrast_gain=params.contrast_gain,
                contrast_offset=params.contrast_offset,
                edge_kernel=params.edge_kernel,
                edge_threshold=params.edge_threshold,
                window=params.adaptive_window,
                factor=params.adaptive_factor,
            )
        )
    else:
        steps.append(
            EdgeStep(
                kernel=params.edge_kernel,
                threshold=params.edge_threshold,
                gain=params.edge_gain,
                post_blur=params.edge_post_blur,
                normalize=params.edge_normalize,
                major_kernel=params.major_kernel,
                major_blur_sigma=params.major_blur_sigma,
                major_threshold=params.major_threshold,
                major_spread=params.major_spread,
            )
        )

    if params.median_size or params.dilate_shape is not None:
        steps.append(
            MorphologyStep(
                median_size=params.median_size,
                dilate_shape=params.dilate_shape,
                dilate_min_count=params.dilate_min_count,
            )
        )
    if params.bridge_radius > 1:
        steps.append(BridgeStep(radius=params.bridge_radius))
    if params.gap_radius > 0:
        steps.append(
            GapFillStep(
                radius=params.gap_radius,
                min_near=params.gap_min_near,
                min_total=params.gap_min_total,
            )
        )
    if params.isolation_min_neighbors > 0:
        steps.append(IsolationStep(min_neighbors=params.isolation_min_neighbors))

    steps.append(ToRGBAStep())
    return Pipeline(steps=steps)


def run_engraving(
    img: np.ndarray,
    params: FilterParams,
    artifact_dir: str | None = None,
) -> PipelineStepResults:
    """Run the engraving pipeline and keep every intermediate result.

    Args:
        img: Grayscale, RGB or RGBA image. Color input is converted first.
        params: Filter parameters; validated before running.
        artifact_dir: Optional directory for per-step PNG dumps.

    Raises:
        ValueError: If params are invalid or the image is empty.
    """
    params.validate()
    gray = to_grayscale(img)
    results = build_pipeline(params).run(gray, artifact_dir=artifact_dir)
    logger.debug(
        "Engraved %dx%d image in %d steps: %s",
        gray.shape[1],
        gray.shape[0],
        len(results.steps),
        results.metrics,
    )
    return results


def render_engraving(img: np.ndarray, params: FilterParams) -> np.ndarray:
    """Render an image as a black-on-transparent RGBA engraving."""
    return run_engraving(img, params).final


def render_engraving_bytes(data: bytes, params: FilterParams) -> np.ndarray:
    """Decode an encoded image and render it.

    Raises:
        ImageDecodeError: If the payload is not a readable image.
    """
    return render_engraving(decode_image(data), params)
