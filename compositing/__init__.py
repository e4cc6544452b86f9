"""
Pendant and locket compositing.

Key components:
- templates: calibrated pendant templates and background loading
- compositor: disc fitting, multiply blend, name labels, slot compositing
- service: create_pendant_composite() for multi-pet pendants
"""

from .compositor import (
    circle_mask,
    composite_locket,
    composite_pendant,
    fit_engraving_disc,
    multiply_blend,
    render_name_label,
)
from .service import PendantCompositeResult, PendantPet, create_pendant_composite
from .templates import (
    DOUBLE_TEMPLATE,
    LOCKET_TEMPLATE,
    QUAD_TEMPLATE,
    TEMPLATES,
    TRIPLE_TEMPLATE,
    PendantSlot,
    PendantTemplate,
    get_template,
    load_template_image,
)

__all__ = [
    "circle_mask",
    "composite_locket",
    "composite_pendant",
    "fit_engraving_disc",
    "multiply_blend",
    "render_name_label",
    "PendantCompositeResult",
    "PendantPet",
    "create_pendant_composite",
    "DOUBLE_TEMPLATE",
    "LOCKET_TEMPLATE",
    "QUAD_TEMPLATE",
    "TEMPLATES",
    "TRIPLE_TEMPLATE",
    "PendantSlot",
    "PendantTemplate",
    "get_template",
    "load_template_image",
]
