"""In-memory blob store for tests and dry runs."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .base import UploadResult, image_size, object_key

MEMORY_URL_SCHEME = "memory://"


@dataclass
class MemoryBlobStore:
    """Keeps uploads in a dict keyed by object key.

    Attributes:
        blobs: Stored payloads by object key.
        fail_folders: Folders whose uploads are rejected, for exercising
            failure paths.
    """

    blobs: dict[str, bytes] = field(default_factory=dict)
    fail_folders: set[str] = field(default_factory=set)
    uploads: int = 0

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def upload(self, data: bytes, folder: str, public_id: str, fmt: str) -> UploadResult:
        if not data:
            return UploadResult(success=False, error="Empty payload")
        if folder in self.fail_folders:
            return UploadResult(success=False, error=f"Uploads to {folder!r} are disabled")

        key = object_key(folder, public_id, fmt)
        with self._lock:
            self.blobs[key] = bytes(data)
            self.uploads += 1
        width, height = image_size(data)
        return UploadResult(
            success=True,
            url=f"{MEMORY_URL_SCHEME}{key}",
            public_id=key,
            width=width,
            height=height,
        )

    def fetch(self, url: str) -> bytes:
        """Return the payload stored under a memory:// URL."""
        if not url.startswith(MEMORY_URL_SCHEME):
            raise KeyError(url)
        return self.blobs[url[len(MEMORY_URL_SCHEME):]]
