"""Tests for the blob store backends."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import numpy as np
import pytest

from engraving.normalization import encode_png
from storage import LocalBlobStore, MemoryBlobStore, get_blob_store, image_size, object_key


def _png(width=30, height=20) -> bytes:
    return encode_png(np.zeros((height, width, 3), dtype=np.uint8))


class TestObjectKey:

    def test_layout(self):
        assert object_key("originals", "original_1", "jpg") == "pupring-ai/originals/original_1.jpg"

    def test_unsafe_characters_replaced(self):
        assert object_key("../evil folder", "a b/c", ".PNG") == "pupring-ai/evil_folder/a_b_c.png"

    def test_image_size(self):
        assert image_size(_png(30, 20)) == (30, 20)
        assert image_size(b"nope") == (None, None)


class TestMemoryBlobStore:

    def test_upload_and_fetch(self):
        store = MemoryBlobStore()
        data = _png()
        result = store.upload(data, "cropped", "crop_1", "png")
        assert result.success
        assert result.url == "memory://pupring-ai/cropped/crop_1.png"
        assert (result.width, result.height) == (30, 20)
        assert store.fetch(result.url) == data
        assert store.uploads == 1

    def test_failing_folder(self):
        store = MemoryBlobStore(fail_folders={"optimized"})
        result = store.upload(_png(), "optimized", "x", "jpg")
        assert not result.success
        assert "optimized" in result.error
        assert store.blobs == {}

    def test_empty_payload(self):
        assert not MemoryBlobStore().upload(b"", "a", "b", "png").success

    def test_fetch_unknown_url(self):
        with pytest.raises(KeyError):
            MemoryBlobStore().fetch("https://example.com/x.png")


class TestLocalBlobStore:

    def test_writes_file_and_returns_file_uri(self, tmp_path):
        store = LocalBlobStore(root_dir=tmp_path)
        data = _png()
        result = store.upload(data, "originals", "original_1", "png")

        assert result.success
        assert result.url.startswith("file://")
        path = Path(url2pathname(urlparse(result.url).path))
        assert path.read_bytes() == data
        assert path == (tmp_path / "pupring-ai" / "originals" / "original_1.png").resolve()

    def test_write_failure_reported(self, tmp_path):
        blocker = tmp_path / "blocked"
        blocker.write_text("not a directory")
        store = LocalBlobStore(root_dir=blocker)
        result = store.upload(_png(), "originals", "x", "png")
        assert not result.success
        assert result.error


class TestGetBlobStore:

    def test_by_name(self, tmp_path):
        assert isinstance(get_blob_store("memory"), MemoryBlobStore)
        store = get_blob_store("local", root_dir=tmp_path)
        assert isinstance(store, LocalBlobStore)
        assert store.root_dir == tmp_path

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            get_blob_store("s3")

    def test_unknown_kwarg(self):
        with pytest.raises(ValueError, match="Unknown kwargs"):
            get_blob_store("memory", bucket="x")
