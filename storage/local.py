"""Directory-backed blob store returning file:// URLs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import config
from .base import UploadResult, image_size, object_key

logger = logging.getLogger(__name__)


@dataclass
class LocalBlobStore:
    """Writes uploads under root_dir, mirroring the folder structure."""

    root_dir: Path = field(default_factory=lambda: Path(config.STORAGE_DIR))

    def __post_init__(self) -> None:
        self.root_dir = Path(self.root_dir)

    def upload(self, data: bytes, folder: str, public_id: str, fmt: str) -> UploadResult:
        if not data:
            return UploadResult(success=False, error="Empty payload")

        key = object_key(folder, public_id, fmt)
        path = self.root_dir / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            logger.warning("Failed to write %s: %s", path, e)
            return UploadResult(success=False, public_id=key, error=str(e))

        width, height = image_size(data)
        logger.debug("Stored %s (%d bytes)", path, len(data))
        return UploadResult(
            success=True,
            url=path.resolve().as_uri(),
            public_id=key,
            width=width,
            height=height,
        )
