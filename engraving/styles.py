"""
Engraving styles and methods.

A method is a family of styles rendered with the same algorithm; each style
within it is just a FilterParams preset. Methods are looked up by name in
METHODS, styles by EngravingStyle.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

import config
from .config import FilterParams
from .pipeline import render_engraving


class EngravingStyle(str, Enum):
    """Closed set of engraving styles offered to customers."""

    STANDARD = "standard"
    DETAILED = "detailed"
    BOLD = "bold"

    @classmethod
    def parse(cls, value: "str | EngravingStyle") -> "EngravingStyle":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"Unknown engraving style: {value!r}. "
                f"Expected one of {[s.value for s in cls]}"
            ) from None


# Render order; also the order style results are reported in
STYLE_ORDER: tuple[EngravingStyle, ...] = (
    EngravingStyle.STANDARD,
    EngravingStyle.DETAILED,
    EngravingStyle.BOLD,
)


class StyleFilter(ABC):
    """Turns a grayscale or color raster into an RGBA engraving."""

    @abstractmethod
    def apply(self, image: np.ndarray) -> np.ndarray:
        """Render the engraving; the input is never mutated."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass


@dataclass(frozen=True)
class EdgeStyleFilter(StyleFilter):
    """StyleFilter backed by the parameterized engraving pipeline."""

    style: EngravingStyle
    params: FilterParams
    method: str = ""

    def apply(self, image: np.ndarray) -> np.ndarray:
        return render_engraving(image, self.params)

    @property
    def name(self) -> str:
        if self.method:
            return f"{self.method}:{self.style.value}"
        return self.style.value


@dataclass(frozen=True)
class EngravingMethod:
    """A named family of style presets.

    Attributes:
        name: Registry key, also used for upload folders and ids.
        presets: FilterParams per style.
        shared_render: Render once and report the single result under every
            style (the adaptive tone renderer has no per-style variation).
        description: One-line summary for CLI listings.
    """

    name: str
    presets: dict[EngravingStyle, FilterParams]
    shared_render: bool = False
    description: str = ""
    styles: tuple[EngravingStyle, ...] = field(default=STYLE_ORDER)

    def filter_for(self, style: "str | EngravingStyle") -> EdgeStyleFilter:
        """Return the style filter for one style of this method."""
        style = EngravingStyle.parse(style)
        params = self.presets.get(style)
        if params is None:
            raise ValueError(f"Method {self.name!r} has no preset for style {style.value!r}")
        return EdgeStyleFilter(style=style, params=params, method=self.name)

    def validate(self) -> None:
        for style in self.styles:
            if style not in self.presets:
                raise ValueError(f"Method {self.name!r} is missing style {style.value!r}")
            self.presets[style].validate()


# Fused two-pass edges: fine detail gated by major outlines
_CLEAN_SIMPLE_BASE = FilterParams(
    working_size=config.ENGRAVING_WORKING_SIZE,
    resample="lanczos",
    edge_kernel="laplacian8",
    edge_threshold=50,
    major_kernel="laplacian4",
    major_blur_sigma=1.0,
    major_threshold=40,
    gap_radius=2,
    gap_min_near=2,
    gap_min_total=3,
    isolation_min_neighbors=1,
)

CLEAN_SIMPLE = EngravingMethod(
    name="clean_simple",
    description="Clean outlines with facial features (default)",
    presets={
        EngravingStyle.STANDARD: _CLEAN_SIMPLE_BASE.with_overrides(
            blur_sigma=0.8,
            brightness=1.15,
            contrast=2.2,
            sharpen_sigma=1.0,
            dilate_shape="box",
            dilate_min_count=2,
            median_size=3,
        ),
        EngravingStyle.DETAILED: _CLEAN_SIMPLE_BASE.with_overrides(
            blur_sigma=0.5,
            brightness=1.2,
            contrast=2.0,
            sharpen_sigma=1.5,
            gap_radius=3,
        ),
        EngravingStyle.BOLD: _CLEAN_SIMPLE_BASE.with_overrides(
            blur_sigma=1.2,
            brightness=1.1,
            contrast=2.5,
            dilate_shape="cross",
            dilate_min_count=1,
        ),
    },
)

# Single weighted-kernel pass, softer resampling, endpoint bridging
_SIMPLE_FEATURE_BASE = FilterParams(
    working_size=config.ENGRAVING_WORKING_SIZE,
    resample="cubic",
    brightness=1.1,
    contrast=1.4,
    median_prefilter=3,
    sharpen_sigma=1.2,
    sharpen_amount=0.5,
    bridge_radius=3,
    gap_radius=1,
    gap_min_near=2,
    gap_min_total=2,
)

SIMPLE_FEATURE = EngravingMethod(
    name="simple_feature",
    description="Medium lines with the main pet features",
    presets={
        EngravingStyle.STANDARD: _SIMPLE_FEATURE_BASE.with_overrides(
            edge_kernel="laplacian8",
            edge_gain=1.5,
            edge_post_blur=0.3,
            edge_threshold=180,
        ),
        EngravingStyle.DETAILED: _SIMPLE_FEATURE_BASE.with_overrides(
            edge_kernel="sharpen5",
            edge_gain=1.4,
            edge_threshold=190,
        ),
        EngravingStyle.BOLD: _SIMPLE_FEATURE_BASE.with_overrides(
            edge_kernel="laplacian12",
            edge_gain=1.8,
            edge_post_blur=0.6,
            edge_threshold=160,
        ),
    },
)

_PERFECT = FilterParams(
    working_size=1500,
    resample="lanczos",
    brightness=1.1,
    contrast=1.3,
    sharpen_sigma=1.0,
    sharpen_amount=2.5,
    tone_mode="adaptive",
    edge_kernel="laplacian8",
    edge_threshold=40,
    contrast_gain=3.5,
    contrast_offset=-256.0,
    adaptive_window=11,
    adaptive_factor=0.85,
    isolation_min_neighbors=2,
)

PERFECT = EngravingMethod(
    name="perfect",
    description="Adaptive tone rendering with ordered mid-tone dots",
    presets={style: _PERFECT for style in STYLE_ORDER},
    shared_render=True,
)

METHODS: dict[str, EngravingMethod] = {
    method.name: method for method in (CLEAN_SIMPLE, SIMPLE_FEATURE, PERFECT)
}


def get_method(name: str | None = None) -> EngravingMethod:
    """Look up an engraving method; defaults to config.ENGRAVING_METHOD."""
    key = name or config.ENGRAVING_METHOD
    method = METHODS.get(key.replace("-", "_"))
    if method is None:
        raise ValueError(f"Unknown engraving method: {key!r}. Expected one of {sorted(METHODS)}")
    return method


def get_style_filter(style: "str | EngravingStyle", method: str | None = None) -> EdgeStyleFilter:
    """Return the filter rendering one style of a method."""
    return get_method(method).filter_for(style)
