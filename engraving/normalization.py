"""
Image decoding, encoding and normalization helpers.

All functions are pure: they take an input and return a new output without
mutating the original array.
"""

from __future__ import annotations

import io

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from config import PNG_COMPRESSION_LEVEL
from errors import ImageDecodeError

_INTERPOLATION = {
    "lanczos": cv2.INTER_LANCZOS4,
    "cubic": cv2.INTER_CUBIC,
    "area": cv2.INTER_AREA,
}


def decode_image(data: bytes) -> np.ndarray:
    """Decode an encoded image into an RGB uint8 array.

    EXIF orientation is applied and transparent regions are flattened onto
    white, so a cut-out pet reads as a pet on paper.

    Raises:
        ImageDecodeError: If the payload is empty or not a readable image.
    """
    if not data:
        raise ImageDecodeError("Image payload is empty")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
                rgba = img.convert("RGBA")
                background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
                img = Image.alpha_composite(background, rgba)
            rgb = img.convert("RGB")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Unreadable image: {e}") from e

    array = np.asarray(rgb, dtype=np.uint8)
    if array.size == 0:
        raise ImageDecodeError("Image has no pixels")
    return array.copy()


def flatten_alpha(rgba: np.ndarray) -> np.ndarray:
    """Composite an RGBA array onto a white background and return RGB."""
    alpha = rgba[:, :, 3:4].astype(np.float32) / 255.0
    rgb = rgba[:, :, :3].astype(np.float32) * alpha + 255.0 * (1.0 - alpha)
    return np.clip(np.rint(rgb), 0, 255).astype(np.uint8)


def to_grayscale(img: np.ndarray) -> np.ndarray:
    """Convert an RGB, RGBA or grayscale array to a 2D uint8 grayscale array.

    RGBA input is flattened onto white before conversion.

    Raises:
        TypeError: If img is not a numpy array.
        ValueError: If the array is empty or has an unsupported shape.
    """
    if not isinstance(img, np.ndarray):
        raise TypeError(f"Expected numpy.ndarray, got {type(img).__name__}")
    if img.ndim < 2 or img.ndim > 3:
        raise ValueError(
            f"Image must be 2D or 3D array, got {img.ndim}D array with shape {img.shape}"
        )
    if img.size == 0:
        raise ValueError("Image array is empty")

    if img.ndim == 2:
        return img.astype(np.uint8, copy=True)

    channels = img.shape[2]
    if channels == 1:
        return img[:, :, 0].astype(np.uint8, copy=True)
    if channels == 3:
        return cv2.cvtColor(img.astype(np.uint8), cv2.COLOR_RGB2GRAY)
    if channels == 4:
        return cv2.cvtColor(flatten_alpha(img), cv2.COLOR_RGB2GRAY)
    raise ValueError(
        f"Unsupported number of channels: {channels}. Expected 1, 3 (RGB), or 4 (RGBA)."
    )


def fit_inside(
    img: np.ndarray,
    max_width: int,
    max_height: int,
    resample: str = "lanczos",
) -> tuple[np.ndarray, float]:
    """Shrink an image to fit inside a box, preserving aspect ratio.

    Images that already fit are returned as a copy; this never enlarges.

    Returns:
        Tuple of (resized image, scale factor original/resized).
    """
    if max_width <= 0 or max_height <= 0:
        raise ValueError(f"Bounds must be positive, got {max_width}x{max_height}")
    height, width = img.shape[:2]
    scale = min(max_width / width, max_height / height)
    if scale >= 1.0:
        return img.copy(), 1.0

    new_width = max(1, int(round(width * scale)))
    new_height = max(1, int(round(height * scale)))
    resized = cv2.resize(
        img,
        (new_width, new_height),
        interpolation=_INTERPOLATION.get(resample, cv2.INTER_LANCZOS4),
    )
    return resized, width / new_width


def resize_exact(img: np.ndarray, width: int, height: int, resample: str = "lanczos") -> np.ndarray:
    """Resize to an exact size (used for upscaling crops and template canvases)."""
    if img.shape[1] == width and img.shape[0] == height:
        return img.copy()
    return cv2.resize(img, (width, height), interpolation=_INTERPOLATION.get(resample, cv2.INTER_LANCZOS4))


def encode_png(img: np.ndarray) -> bytes:
    """Encode a grayscale, RGB or RGBA array as PNG with fixed compression."""
    buffer = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(img)).save(
        buffer, format="PNG", compress_level=PNG_COMPRESSION_LEVEL
    )
    return buffer.getvalue()


def encode_jpeg(img: np.ndarray, quality: int = 92) -> bytes:
    """Encode an RGB array as JPEG. RGBA is flattened onto white first."""
    if img.ndim == 3 and img.shape[2] == 4:
        img = flatten_alpha(img)
    buffer = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(img)).convert("RGB").save(
        buffer, format="JPEG", quality=quality
    )
    return buffer.getvalue()
