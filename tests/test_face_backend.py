"""Tests for the pet face backends and their registry."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import requests

from errors import DetectionError
from faces.backend import (
    DEFAULT_FALLBACK_BOX,
    NO_PET_MESSAGE,
    FallbackPetFaceBackend,
    HttpPetFaceBackend,
    evaluate_predictions,
    fallback_detection,
    get_face_backend_by_name,
    get_face_backend_with_overrides,
)
from faces.types import SOURCE_FALLBACK, DetectorPrediction, DetectorResponse


def _prediction(confidence: float, **overrides) -> DetectorPrediction:
    fields = {"x": 320, "y": 240, "width": 200, "height": 180, "confidence": confidence, "class": "dog"}
    fields.update(overrides)
    return DetectorPrediction.model_validate(fields)


def _response(body: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = body
    response.raise_for_status.return_value = None
    return response


class TestEvaluatePredictions:

    def test_confident_prediction_accepted(self):
        detection = evaluate_predictions([_prediction(0.92)])
        assert detection.has_pet
        assert detection.confidence == pytest.approx(0.92)
        assert detection.bbox.center_x == 320
        assert detection.message is None

    def test_low_confidence_rejected_with_message(self):
        detection = evaluate_predictions([_prediction(0.40)])
        assert not detection.has_pet
        assert detection.confidence == pytest.approx(0.40)
        assert detection.bbox is not None
        assert "40.0%" in detection.message
        assert "clearer" in detection.message

    def test_threshold_is_strict(self):
        assert not evaluate_predictions([_prediction(0.65)], min_confidence=0.65).has_pet

    def test_best_prediction_wins(self):
        detection = evaluate_predictions([_prediction(0.7, x=10), _prediction(0.9, x=99)])
        assert detection.bbox.center_x == 99
        assert [p["confidence"] for p in detection.predictions] == [0.9, 0.7]

    def test_no_predictions(self):
        detection = evaluate_predictions([])
        assert not detection.has_pet
        assert detection.bbox is None
        assert detection.message == NO_PET_MESSAGE


class TestDetectorResponse:

    def test_class_alias_and_extra_fields(self):
        parsed = DetectorResponse.model_validate({
            "time": 0.12,
            "predictions": [{"x": 1, "y": 2, "width": 3, "height": 4, "confidence": 0.5, "class": "cat"}],
        })
        assert parsed.predictions[0].class_name == "cat"

    def test_confidence_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            DetectorPrediction.model_validate({"x": 1, "y": 2, "width": 3, "height": 4, "confidence": 1.5})


class TestFallbackDetection:

    def test_centered_quarter_box(self):
        detection = fallback_detection(800, 600)
        assert detection.has_pet
        assert detection.source == SOURCE_FALLBACK
        assert detection.is_fallback
        assert detection.confidence == pytest.approx(0.75)
        assert (detection.bbox.center_x, detection.bbox.center_y) == (400, 300)
        assert detection.bbox.width == detection.bbox.height == 150

    def test_unknown_size_uses_default_box(self):
        assert fallback_detection(None, None).bbox == DEFAULT_FALLBACK_BOX

    def test_is_deterministic(self):
        assert fallback_detection(640, 480) == fallback_detection(640, 480)

    def test_fallback_backend(self):
        detection = FallbackPetFaceBackend().detect(np.zeros((100, 200, 3), dtype=np.uint8))
        assert detection.bbox.center_x == 100
        assert detection.bbox.width == 25


class TestHttpPetFaceBackend:

    def _backend(self) -> HttpPetFaceBackend:
        backend = HttpPetFaceBackend(endpoint="https://detect.example/pets/1", api_key="k", timeout=5)
        backend._session = MagicMock()
        return backend

    def test_sends_url_when_public(self):
        backend = self._backend()
        backend._session.post.return_value = _response({"predictions": [
            {"x": 50, "y": 60, "width": 40, "height": 30, "confidence": 0.88, "class": "dog"},
        ]})
        image = np.zeros((120, 100, 3), dtype=np.uint8)
        detection = backend.detect(image, image_url="https://cdn.example/pet.jpg")

        assert detection.has_pet
        assert detection.bbox.center_x == 50
        _, kwargs = backend._session.post.call_args
        assert kwargs["json"] == {"image": "https://cdn.example/pet.jpg"}
        assert kwargs["params"] == {"api_key": "k"}
        assert kwargs["timeout"] == 5

    def test_sends_base64_without_public_url(self):
        backend = self._backend()
        backend._session.post.return_value = _response({"predictions": []})
        detection = backend.detect(np.zeros((40, 40, 3), dtype=np.uint8), image_url="file:///tmp/x.jpg")

        assert not detection.has_pet
        _, kwargs = backend._session.post.call_args
        assert "json" not in kwargs
        assert isinstance(kwargs["data"], str)

    def test_request_failure_raises_detection_error(self):
        backend = self._backend()
        backend._session.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(DetectionError, match="refused"):
            backend.detect(np.zeros((40, 40, 3), dtype=np.uint8))

    def test_malformed_body_raises_detection_error(self):
        backend = self._backend()
        backend._session.post.return_value = _response({"predictions": [{"x": "nope"}]})
        with pytest.raises(DetectionError, match="Unexpected"):
            backend.detect(np.zeros((40, 40, 3), dtype=np.uint8))

    def test_missing_endpoint(self):
        backend = HttpPetFaceBackend(endpoint="")
        with pytest.raises(DetectionError, match="endpoint"):
            backend.detect(np.zeros((40, 40, 3), dtype=np.uint8))


class TestRegistry:

    def test_by_name(self):
        assert isinstance(get_face_backend_by_name("fallback"), FallbackPetFaceBackend)

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown face backend"):
            get_face_backend_by_name("yolo")

    def test_http_override(self):
        backend = get_face_backend_with_overrides("http", min_confidence=0.9, endpoint="https://x")
        assert backend.min_confidence == 0.9
        assert backend.endpoint == "https://x"

    def test_haar_override_neighbors(self):
        mock_cascade = MagicMock()
        mock_cascade.empty.return_value = False
        with patch("cv2.CascadeClassifier", return_value=mock_cascade):
            backend = get_face_backend_with_overrides("opencv_haar", min_neighbors=42)
        assert backend.min_neighbors == 42

    def test_haar_detections_become_predictions(self):
        mock_cascade = MagicMock()
        mock_cascade.empty.return_value = False
        mock_cascade.detectMultiScale.return_value = [(10, 20, 30, 30), (100, 100, 80, 60)]
        with patch("cv2.CascadeClassifier", return_value=mock_cascade):
            backend = get_face_backend_with_overrides("opencv_haar")
        detection = backend.detect(np.zeros((300, 300, 3), dtype=np.uint8))
        assert detection.has_pet
        assert (detection.bbox.center_x, detection.bbox.center_y) == (140, 130)

    def test_unknown_kwarg_raises(self):
        with pytest.raises(ValueError, match="Unknown kwargs"):
            get_face_backend_with_overrides("fallback", foo=1)
