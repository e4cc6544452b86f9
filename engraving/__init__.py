"""
Line engraving of pet photos.

Turns a photo into black lines on a transparent background, suitable for
laser engraving. All rendering goes through one parameterized step pipeline;
methods and styles are FilterParams presets.

Key components:
- config: FilterParams and the named edge kernels
- steps: EngravingStep classes and the Pipeline runner
- pipeline: build_pipeline() and render helpers
- styles: EngravingStyle, EngravingMethod presets and the METHODS registry
- variants: render-and-upload of every style of a method
"""

from .config import EDGE_KERNELS, FilterParams
from .normalization import decode_image, encode_jpeg, encode_png, fit_inside, to_grayscale
from .pipeline import build_pipeline, render_engraving, render_engraving_bytes, run_engraving
from .steps import Pipeline, PipelineStepResults, StepResult
from .styles import (
    METHODS,
    STYLE_ORDER,
    EdgeStyleFilter,
    EngravingMethod,
    EngravingStyle,
    StyleFilter,
    get_method,
    get_style_filter,
)
from .variants import (
    StyleGenerationResult,
    generate_style_variants,
    generate_style_variants_async,
)

__all__ = [
    "EDGE_KERNELS",
    "FilterParams",
    "decode_image",
    "encode_jpeg",
    "encode_png",
    "fit_inside",
    "to_grayscale",
    "build_pipeline",
    "render_engraving",
    "render_engraving_bytes",
    "run_engraving",
    "Pipeline",
    "PipelineStepResults",
    "StepResult",
    "METHODS",
    "STYLE_ORDER",
    "EdgeStyleFilter",
    "EngravingMethod",
    "EngravingStyle",
    "StyleFilter",
    "get_method",
    "get_style_filter",
    "StyleGenerationResult",
    "generate_style_variants",
    "generate_style_variants_async",
]
