"""Tests for background removal with service and local fallbacks."""

from __future__ import annotations

import base64
from unittest.mock import MagicMock, patch

import numpy as np
import requests

from engraving.normalization import encode_png
from services.background_removal import (
    METHOD_LOCAL,
    METHOD_PASSTHROUGH,
    METHOD_SERVICE,
    BackgroundRemover,
    grabcut_foreground,
)


def _photo(side: int = 120) -> np.ndarray:
    img = np.zeros((side, side, 3), dtype=np.uint8)
    img[:, :] = (30, 120, 40)
    img[side // 4:3 * side // 4, side // 4:3 * side // 4] = (200, 150, 90)
    return img


def _service_response(image: np.ndarray, data_url: bool = False) -> MagicMock:
    encoded = base64.b64encode(encode_png(image)).decode("ascii")
    if data_url:
        encoded = f"data:image/png;base64,{encoded}"
    response = MagicMock()
    response.json.return_value = {"success": True, "image": encoded}
    response.raise_for_status.return_value = None
    return response


class TestBackgroundRemover:

    def test_service_result_used(self):
        cutout = np.full((50, 50, 3), 255, dtype=np.uint8)
        with patch("services.background_removal.requests.post", return_value=_service_response(cutout)) as post:
            result = BackgroundRemover(base_url="http://bg.local:5001/", timeout=3).remove(_photo())

        assert result.method == METHOD_SERVICE
        assert result.removed
        assert result.image.shape == (50, 50, 3)
        args, kwargs = post.call_args
        assert args[0] == "http://bg.local:5001/remove-background"
        assert kwargs["timeout"] == 3
        assert "image" in kwargs["json"]

    def test_data_url_prefix_stripped(self):
        cutout = np.zeros((10, 12, 3), dtype=np.uint8)
        response = _service_response(cutout, data_url=True)
        with patch("services.background_removal.requests.post", return_value=response):
            result = BackgroundRemover(base_url="http://bg.local").remove(_photo())
        assert result.image.shape == (10, 12, 3)

    def test_service_failure_falls_back_to_grabcut(self):
        cutout = _photo()
        cutout[:10] = 255
        with patch("services.background_removal.requests.post", side_effect=requests.ConnectionError("down")), \
             patch("services.background_removal.grabcut_foreground", return_value=cutout):
            result = BackgroundRemover(base_url="http://bg.local").remove(_photo())
        assert result.method == METHOD_LOCAL
        assert np.array_equal(result.image, cutout)

    def test_service_reporting_failure_falls_back(self):
        response = MagicMock()
        response.json.return_value = {"success": False, "error": "model not loaded"}
        response.raise_for_status.return_value = None
        with patch("services.background_removal.requests.post", return_value=response):
            result = BackgroundRemover(base_url="http://bg.local", local_fallback=False).remove(_photo())
        assert result.method == METHOD_PASSTHROUGH
        assert "model not loaded" in result.error

    def test_everything_failing_passes_image_through(self):
        photo = _photo()
        with patch("services.background_removal.requests.post", side_effect=requests.Timeout("slow")), \
             patch("services.background_removal.grabcut_foreground", return_value=None):
            result = BackgroundRemover(base_url="http://bg.local").remove(photo)
        assert not result.removed
        assert np.array_equal(result.image, photo)
        assert result.image is not photo
        assert "slow" in result.error

    def test_no_service_configured_skips_request(self):
        with patch("services.background_removal.requests.post") as post, \
             patch("services.background_removal.grabcut_foreground", return_value=None):
            result = BackgroundRemover(base_url="").remove(_photo())
        post.assert_not_called()
        assert result.method == METHOD_PASSTHROUGH


class TestGrabcutForeground:

    def test_small_images_skipped(self):
        assert grabcut_foreground(_photo(60)) is None

    def test_background_whitened(self):
        photo = _photo(160)
        result = grabcut_foreground(photo)
        assert result is not None
        assert result.shape == photo.shape
        assert np.all(result[0, 0] == 255)
        assert not np.array_equal(result, photo)


class TestMalformedServiceBodies:

    def _remove_with_body(self, body):
        response = MagicMock()
        response.json.return_value = body
        response.raise_for_status.return_value = None
        cutout = _photo()
        cutout[:10] = 255
        with patch("services.background_removal.requests.post", return_value=response), \
             patch("services.background_removal.grabcut_foreground", return_value=cutout):
            return BackgroundRemover(base_url="http://bg.local").remove(_photo())

    def test_list_body_falls_back_to_grabcut(self):
        result = self._remove_with_body(["oops"])
        assert result.method == METHOD_LOCAL

    def test_non_string_image_falls_back_to_grabcut(self):
        result = self._remove_with_body({"success": True, "image": 1})
        assert result.method == METHOD_LOCAL

    def test_unknown_fields_ignored(self):
        cutout = np.full((8, 8, 3), 255, dtype=np.uint8)
        response = _service_response(cutout)
        response.json.return_value["elapsed"] = 0.3
        with patch("services.background_removal.requests.post", return_value=response):
            result = BackgroundRemover(base_url="http://bg.local").remove(_photo())
        assert result.method == METHOD_SERVICE
