"""
Blob storage backends for uploaded and generated images.

Backends implement BlobStore.upload(data, folder, public_id, fmt) and
report failures through UploadResult rather than raising.
"""

from __future__ import annotations

import dataclasses

import config
from .base import BlobStore, UploadResult, image_size, object_key
from .local import LocalBlobStore
from .memory import MemoryBlobStore

_BACKENDS: dict[str, type] = {
    "local": LocalBlobStore,
    "memory": MemoryBlobStore,
}


def get_blob_store(name: str | None = None, **kwargs) -> BlobStore:
    """Instantiate a blob store by name (defaults to config.STORAGE_BACKEND).

    Raises:
        ValueError: If the backend name or any keyword argument is unknown.
    """
    backend_name = name if name is not None else config.STORAGE_BACKEND
    backend_cls = _BACKENDS.get(backend_name)
    if backend_cls is None:
        raise ValueError(f"Unknown storage backend: {backend_name!r}")
    valid_fields = {f.name for f in dataclasses.fields(backend_cls)}
    unknown = set(kwargs) - valid_fields
    if unknown:
        raise ValueError(f"Unknown kwargs for storage backend {backend_name!r}: {sorted(unknown)}")
    return backend_cls(**kwargs)


__all__ = [
    "BlobStore",
    "UploadResult",
    "LocalBlobStore",
    "MemoryBlobStore",
    "get_blob_store",
    "image_size",
    "object_key",
]
