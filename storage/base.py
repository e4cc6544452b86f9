"""
Blob store interface shared by every storage backend.
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

from PIL import Image, UnidentifiedImageError

from config import STORAGE_ROOT_FOLDER

logger = logging.getLogger(__name__)

_SAFE_SEGMENT = re.compile(r"[^A-Za-z0-9_.-]+")


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a single upload; stores never raise for rejected payloads."""

    success: bool
    url: str | None = None
    public_id: str | None = None
    width: int | None = None
    height: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "url": self.url,
            "public_id": self.public_id,
            "width": self.width,
            "height": self.height,
            "error": self.error,
        }


class BlobStore(Protocol):
    """Interface for asset storage backends."""

    def upload(self, data: bytes, folder: str, public_id: str, fmt: str) -> UploadResult:
        """Store an encoded image and return where it can be fetched."""


def object_key(folder: str, public_id: str, fmt: str) -> str:
    """Build the storage key '<root>/<folder>/<public_id>.<fmt>'."""
    segments = [STORAGE_ROOT_FOLDER]
    segments.extend(part for part in folder.split("/") if part not in ("", ".", ".."))
    prefix = "/".join(_SAFE_SEGMENT.sub("_", part) for part in segments)
    name = _SAFE_SEGMENT.sub("_", public_id) or "asset"
    extension = _SAFE_SEGMENT.sub("", fmt.lower().lstrip(".")) or "bin"
    return f"{prefix}/{name}.{extension}"


def image_size(data: bytes) -> tuple[int | None, int | None]:
    """Read (width, height) from an encoded image without decoding pixels."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as e:
        logger.debug("Could not read image size: %s", e)
        return None, None
