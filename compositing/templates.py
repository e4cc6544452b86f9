"""
Pendant templates: background photos with hand-calibrated engraving slots.

Slot coordinates are in the template's canvas pixels; backgrounds are
resized to the canvas size on load so the calibration always applies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np

import config
from engraving.normalization import decode_image, resize_exact
from errors import TemplateNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendantSlot:
    """A circular engraving area on a template."""

    center_x: int
    center_y: int
    radius: int

    @property
    def diameter(self) -> int:
        return 2 * self.radius

    @property
    def top_left(self) -> tuple[int, int]:
        return self.center_x - self.radius, self.center_y - self.radius


@dataclass(frozen=True)
class PendantTemplate:
    """A pendant background and its slots.

    Attributes:
        name: Registry key ("locket", "double", ...).
        background: File name of the background photo in the template dir.
        size: Canvas (width, height) the slots are calibrated against.
        slots: Engraving slots, filled in this order.
        margin: Pixels of the slot diameter left free around the engraving.
    """

    name: str
    background: str
    size: tuple[int, int]
    slots: tuple[PendantSlot, ...]
    margin: int = 0

    def validate(self) -> None:
        width, height = self.size
        for slot in self.slots:
            x, y = slot.top_left
            if slot.radius <= 0:
                raise ValueError(f"Slot radius must be positive in template {self.name!r}")
            if x < 0 or y < 0 or x + slot.diameter > width or y + slot.diameter > height:
                raise ValueError(f"Slot {slot} lies outside the {width}x{height} canvas of {self.name!r}")
            if self.margin >= slot.diameter:
                raise ValueError(f"Margin {self.margin} leaves no room in slot {slot}")


LOCKET_TEMPLATE = PendantTemplate(
    name="locket",
    background="bg1.jpg",
    size=(800, 800),
    slots=(PendantSlot(405, 445, 110),),
    margin=0,
)

DOUBLE_TEMPLATE = PendantTemplate(
    name="double",
    background="e3.jpg",
    size=(720, 720),
    slots=(PendantSlot(290, 480, 65), PendantSlot(445, 480, 65)),
    margin=40,
)

TRIPLE_TEMPLATE = PendantTemplate(
    name="triple",
    background="e2.jpg",
    size=(800, 800),
    slots=(PendantSlot(236, 470, 55), PendantSlot(367, 501, 50), PendantSlot(503, 453, 52)),
    margin=40,
)

# Four pendants in a row along the necklace of the double-pendant photo
QUAD_TEMPLATE = PendantTemplate(
    name="quad",
    background="e3.jpg",
    size=(720, 720),
    slots=(
        PendantSlot(120, 170, 70),
        PendantSlot(270, 170, 70),
        PendantSlot(420, 170, 70),
        PendantSlot(570, 170, 70),
    ),
    margin=40,
)

TEMPLATES: dict[str, PendantTemplate] = {
    template.name: template
    for template in (LOCKET_TEMPLATE, DOUBLE_TEMPLATE, TRIPLE_TEMPLATE, QUAD_TEMPLATE)
}

_ALIASES = {"single": "locket", "quarter": "quad"}


def get_template(name: str) -> PendantTemplate:
    """Look up a template by name (accepts "single" and "quarter" aliases)."""
    key = _ALIASES.get(name, name)
    template = TEMPLATES.get(key)
    if template is None:
        raise ValueError(f"Unknown pendant type: {name!r}. Expected one of {sorted(TEMPLATES)}")
    return template


def load_template_image(template: PendantTemplate, directory: Path | str | None = None) -> np.ndarray:
    """Read a template background as RGB at the template's canvas size.

    Raises:
        TemplateNotFoundError: If the background file does not exist.
        ImageDecodeError: If the file is not a readable image.
    """
    base = Path(directory) if directory is not None else Path(config.TEMPLATE_DIR)
    path = base / template.background
    try:
        data = path.read_bytes()
    except OSError as e:
        raise TemplateNotFoundError(f"Pendant background not found: {path}") from e

    background = decode_image(data)
    width, height = template.size
    if background.shape[1] != width or background.shape[0] != height:
        logger.debug(
            "Resizing %s from %dx%d to %dx%d",
            path.name,
            background.shape[1],
            background.shape[0],
            width,
            height,
        )
        background = resize_exact(background, width, height)
    return background
