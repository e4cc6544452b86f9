"""
Binary ink-mask helpers shared by the engraving steps.

An ink mask is a 2D uint8 array holding 255 where a line is drawn and 0
elsewhere. Neighbor counts treat pixels outside the image as blank.
"""

from __future__ import annotations

import math

import cv2
import numpy as np

INK = 255
BLANK = 0

# Output pixel values: black opaque ink on a transparent white ground
INK_RGBA = (0, 0, 0, 255)
BLANK_RGBA = (255, 255, 255, 0)

_RING = np.array([[1, 1, 1], [1, 0, 1], [1, 1, 1]], dtype=np.float32)
_CROSS = np.array([[0, 1, 0], [1, 1, 1], [0, 1, 0]], dtype=np.float32)
_BOX = np.ones((3, 3), dtype=np.float32)

FOOTPRINTS = {"cross": _CROSS, "box": _BOX, "ring": _RING}


def _count(mask: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    ink = (mask > 0).astype(np.float32)
    counts = cv2.filter2D(ink, -1, kernel, borderType=cv2.BORDER_CONSTANT)
    return np.rint(counts).astype(np.int32)


def neighbor_count(mask: np.ndarray, radius: int = 1) -> np.ndarray:
    """Count ink pixels in the (2r+1)^2 window around each pixel, excluding itself."""
    side = 2 * radius + 1
    kernel = np.ones((side, side), dtype=np.float32)
    kernel[radius, radius] = 0
    return _count(mask, kernel)


def footprint_count(mask: np.ndarray, shape: str) -> np.ndarray:
    """Count ink pixels under a named 3x3 footprint (center included for cross/box)."""
    return _count(mask, FOOTPRINTS[shape])


def threshold_mask(values: np.ndarray, threshold: float) -> np.ndarray:
    """Ink wherever values reach the threshold."""
    return np.where(values >= threshold, INK, BLANK).astype(np.uint8)


def mask_to_rgba(mask: np.ndarray) -> np.ndarray:
    """Render an ink mask as hard-edged RGBA: black opaque ink, transparent blank."""
    height, width = mask.shape[:2]
    rgba = np.empty((height, width, 4), dtype=np.uint8)
    rgba[...] = BLANK_RGBA
    rgba[mask > 0] = INK_RGBA
    return rgba


def rgba_to_mask(rgba: np.ndarray) -> np.ndarray:
    """Recover the ink mask from an engraving (opaque pixels are ink)."""
    return np.where(rgba[:, :, 3] == 255, INK, BLANK).astype(np.uint8)


def pixel_offset(x: int, y: int, width: int, channels: int = 4) -> int:
    """Byte offset of pixel (x, y) in a row-major interleaved buffer."""
    return (y * width + x) * channels


def _draw_path(arena: bytearray, width: int, x1: int, y1: int, x2: int, y2: int) -> int:
    """Draw an interpolated straight path into an RGBA arena; return pixels inked."""
    steps = max(abs(x2 - x1), abs(y2 - y1))
    inked = 0
    for i in range(steps + 1):
        t = i / steps if steps else 0.0
        x = int(math.floor(x1 + (x2 - x1) * t + 0.5))
        y = int(math.floor(y1 + (y2 - y1) * t + 0.5))
        offset = pixel_offset(x, y, width)
        if arena[offset + 3] == 0:
            arena[offset:offset + 4] = bytes(INK_RGBA)
            inked += 1
    return inked


def _nearest_target(
    mask: np.ndarray,
    x: int,
    y: int,
    direction: tuple[int, int],
    radius: int,
) -> tuple[int, int] | None:
    height, width = mask.shape
    best = None
    best_dist = None
    for dy in range(-radius, radius + 1):
        ny = y + dy
        if ny < 0 or ny >= height:
            continue
        for dx in range(-radius, radius + 1):
            nx = x + dx
            if nx < 0 or nx >= width:
                continue
            if max(abs(dx), abs(dy)) <= 1 or not mask[ny, nx]:
                continue
            # Only extend forward, away from the pixel the endpoint hangs off
            if dx * direction[0] + dy * direction[1] <= 0:
                continue
            dist = dx * dx + dy * dy
            if best_dist is None or dist < best_dist:
                best = (nx, ny)
                best_dist = dist
    return best


def bridge_endpoints(mask: np.ndarray, radius: int) -> tuple[np.ndarray, int]:
    """Join line endpoints to the nearest ink ahead of them within radius.

    An endpoint is an ink pixel with exactly one ink 8-neighbor. Targets are
    looked up in the input mask, so the result does not depend on the order
    endpoints are visited in.

    Returns:
        Tuple of (new mask, number of bridges drawn).
    """
    if radius <= 1:
        return mask.copy(), 0

    height, width = mask.shape
    ink = mask > 0
    counts = neighbor_count(mask)
    endpoints = np.argwhere(ink & (counts == 1))
    if len(endpoints) == 0:
        return mask.copy(), 0

    arena = bytearray(mask_to_rgba(mask).tobytes())
    bridges = 0
    for y, x in endpoints:
        y = int(y)
        x = int(x)
        window = ink[max(0, y - 1):y + 2, max(0, x - 1):x + 2]
        ys, xs = np.nonzero(window)
        direction = (0, 0)
        for wy, wx in zip(ys, xs):
            ny = max(0, y - 1) + int(wy)
            nx = max(0, x - 1) + int(wx)
            if (nx, ny) != (x, y):
                direction = (x - nx, y - ny)
                break
        target = _nearest_target(ink, x, y, direction, radius)
        if target is None:
            continue
        if _draw_path(arena, width, x, y, target[0], target[1]):
            bridges += 1

    rgba = np.frombuffer(bytes(arena), dtype=np.uint8).reshape(height, width, 4)
    return rgba_to_mask(rgba), bridges
