"""
Unit tests for the engraving module: behavioral tests only.

Covers: decoding, parameter validation, the ink-mask cleanup steps, and
end-to-end rendering properties (binary alpha, determinism, no mutation).
"""

import io

import numpy as np
import pytest
from PIL import Image

from engraving import (
    FilterParams,
    Pipeline,
    build_pipeline,
    decode_image,
    encode_png,
    fit_inside,
    get_method,
    render_engraving,
    render_engraving_bytes,
    run_engraving,
    to_grayscale,
)
from engraving.raster import (
    INK,
    bridge_endpoints,
    mask_to_rgba,
    neighbor_count,
    pixel_offset,
    rgba_to_mask,
)
from engraving.steps import (
    EdgeStep,
    GapFillStep,
    IsolationStep,
    LevelsStep,
    MorphologyStep,
)
from errors import ImageDecodeError


def _square_photo(size: int = 200, lo: int = 60, hi: int = 140) -> np.ndarray:
    """White RGB image with a black square in the middle."""
    img = np.full((size, size, 3), 255, dtype=np.uint8)
    img[lo:hi, lo:hi] = 0
    return img


class TestDecodeImage:

    def test_decodes_png_to_rgb(self):
        data = encode_png(_square_photo(50, 10, 20))
        decoded = decode_image(data)
        assert decoded.shape == (50, 50, 3)
        assert decoded.dtype == np.uint8
        assert decoded[15, 15].tolist() == [0, 0, 0]

    def test_transparent_png_flattened_onto_white(self):
        rgba = np.zeros((10, 10, 4), dtype=np.uint8)
        rgba[:5, :, 3] = 255
        decoded = decode_image(encode_png(rgba))
        assert decoded.shape == (10, 10, 3)
        assert np.all(decoded[:5] == 0)
        assert np.all(decoded[5:] == 255)

    def test_empty_payload_raises(self):
        with pytest.raises(ImageDecodeError, match="empty"):
            decode_image(b"")

    def test_garbage_payload_raises(self):
        with pytest.raises(ImageDecodeError):
            decode_image(b"definitely not an image")

    def test_grayscale_jpeg_becomes_rgb(self):
        buffer = io.BytesIO()
        Image.new("L", (12, 8), color=100).save(buffer, format="JPEG")
        decoded = decode_image(buffer.getvalue())
        assert decoded.shape == (8, 12, 3)

    def test_oversized_image_raises_decode_error(self, monkeypatch):
        data = encode_png(_square_photo(40, 10, 20))
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        with pytest.raises(ImageDecodeError):
            decode_image(data)


class TestToGrayscale:

    def test_invalid_type_raises(self):
        with pytest.raises(TypeError, match="Expected numpy.ndarray"):
            to_grayscale([[1, 2], [3, 4]])

    def test_empty_array_raises(self):
        with pytest.raises(ValueError):
            to_grayscale(np.zeros((0, 0), dtype=np.uint8))

    def test_rgba_transparent_reads_as_white(self):
        rgba = np.zeros((4, 4, 4), dtype=np.uint8)
        assert np.all(to_grayscale(rgba) == 255)

    def test_no_mutation(self):
        rgb = _square_photo(20, 5, 10)
        before = rgb.copy()
        to_grayscale(rgb)
        assert np.array_equal(rgb, before)


class TestFitInside:

    def test_shrinks_preserving_aspect(self):
        img = np.zeros((1000, 2000), dtype=np.uint8)
        resized, scale = fit_inside(img, 1000, 1000)
        assert resized.shape == (500, 1000)
        assert scale == 2.0

    def test_never_enlarges(self):
        img = np.zeros((100, 50), dtype=np.uint8)
        resized, scale = fit_inside(img, 1000, 1000)
        assert resized.shape == (100, 50)
        assert scale == 1.0

    def test_invalid_bounds_raise(self):
        with pytest.raises(ValueError, match="positive"):
            fit_inside(np.zeros((10, 10), dtype=np.uint8), 0, 10)


class TestFilterParamsValidation:

    def test_defaults_are_valid(self):
        FilterParams().validate()

    @pytest.mark.parametrize("overrides, match", [
        ({"working_size": 10}, "working_size"),
        ({"resample": "nearest"}, "resample"),
        ({"tone_mode": "halftone"}, "tone_mode"),
        ({"edge_kernel": "sobel"}, "Unknown edge kernel"),
        ({"median_size": 4}, "median_size"),
        ({"adaptive_window": 10}, "adaptive_window"),
        ({"dilate_shape": "diamond"}, "dilate_shape"),
        ({"edge_threshold": 300}, "edge_threshold"),
        ({"isolation_min_neighbors": 9}, "isolation_min_neighbors"),
        ({"contrast": 0}, "positive"),
    ])
    def test_invalid_params_raise(self, overrides, match):
        with pytest.raises(ValueError, match=match):
            FilterParams(**overrides).validate()

    def test_run_engraving_validates(self):
        with pytest.raises(ValueError):
            run_engraving(_square_photo(), FilterParams(resample="nearest"))

    def test_every_method_preset_is_valid(self):
        for name in ("clean_simple", "simple_feature", "perfect"):
            get_method(name).validate()


class TestRasterHelpers:

    def test_pixel_offset(self):
        assert pixel_offset(0, 0, 10) == 0
        assert pixel_offset(3, 2, 10) == (2 * 10 + 3) * 4
        assert pixel_offset(1, 1, 5, channels=1) == 6

    def test_neighbor_count_excludes_center_and_outside(self):
        mask = np.zeros((3, 3), dtype=np.uint8)
        mask[0, 0] = INK
        mask[1, 1] = INK
        counts = neighbor_count(mask)
        assert counts[1, 1] == 1
        assert counts[0, 0] == 1
        assert counts[2, 2] == 1
        assert counts[0, 2] == 1

    def test_rgba_round_trip(self):
        mask = np.zeros((4, 4), dtype=np.uint8)
        mask[1, 2] = INK
        rgba = mask_to_rgba(mask)
        assert rgba[1, 2].tolist() == [0, 0, 0, 255]
        assert rgba[0, 0].tolist() == [255, 255, 255, 0]
        assert np.array_equal(rgba_to_mask(rgba), mask)

    def test_bridge_joins_collinear_segments(self):
        mask = np.zeros((20, 20), dtype=np.uint8)
        mask[10, 2:7] = INK
        mask[10, 9:14] = INK
        bridged, bridges = bridge_endpoints(mask, radius=3)
        assert bridges == 1
        assert np.all(bridged[10, 2:14] == INK)
        assert np.count_nonzero(bridged) == 12

    def test_bridge_ignores_distant_ink(self):
        mask = np.zeros((20, 20), dtype=np.uint8)
        mask[10, 2:7] = INK
        mask[10, 12:17] = INK
        bridged, bridges = bridge_endpoints(mask, radius=3)
        assert bridges == 0
        assert np.array_equal(bridged, mask)

    def test_bridge_radius_one_is_noop(self):
        mask = np.zeros((5, 5), dtype=np.uint8)
        mask[2, 0:2] = INK
        bridged, bridges = bridge_endpoints(mask, radius=1)
        assert bridges == 0
        assert np.array_equal(bridged, mask)
        assert bridged is not mask


class TestCleanupSteps:

    def test_gap_fill_closes_one_pixel_gap(self):
        mask = np.zeros((9, 9), dtype=np.uint8)
        mask[4, 1:4] = INK
        mask[4, 5:8] = INK
        step = GapFillStep(radius=2, min_near=2, min_total=3)
        filled = step.apply(mask)
        assert filled[4, 4] == INK
        assert step.get_metadata()["step_metrics"]["filled"] >= 1

    def test_gap_fill_is_order_independent(self):
        mask = np.zeros((9, 9), dtype=np.uint8)
        mask[4, 1:4] = INK
        mask[4, 5:8] = INK
        forward = GapFillStep().apply(mask)
        mirrored = GapFillStep().apply(mask[:, ::-1].copy())
        assert np.array_equal(forward, mirrored[:, ::-1])

    def test_isolation_removes_lonely_pixels(self):
        mask = np.zeros((7, 7), dtype=np.uint8)
        mask[1, 1] = INK
        mask[4, 3:6] = INK
        step = IsolationStep(min_neighbors=1)
        cleaned = step.apply(mask)
        assert cleaned[1, 1] == 0
        assert np.all(cleaned[4, 3:6] == INK)
        assert step.get_metadata()["step_metrics"]["removed"] == 1

    def test_box_dilation_then_median_keeps_thin_line(self):
        mask = np.zeros((11, 11), dtype=np.uint8)
        mask[5, :] = INK
        thick = MorphologyStep(median_size=3, dilate_shape="box", dilate_min_count=2).apply(mask)
        assert np.all(thick[5, 1:-1] == INK)

    def test_levels_flat_image_unchanged_by_normalization(self):
        flat = np.full((5, 5), 100, dtype=np.uint8)
        assert np.array_equal(LevelsStep(normalize=True).apply(flat), flat)

    def test_edge_step_requires_2d(self):
        with pytest.raises(ValueError, match="2D"):
            EdgeStep().apply(np.zeros((5, 5, 3), dtype=np.uint8))


class TestRenderEngraving:

    @pytest.mark.parametrize("method", ["clean_simple", "simple_feature", "perfect"])
    def test_alpha_is_binary(self, method):
        params = get_method(method).filter_for("standard").params
        engraving = render_engraving(_square_photo(), params)
        assert engraving.shape == (200, 200, 4)
        assert set(np.unique(engraving[:, :, 3]).tolist()) <= {0, 255}
        ink = engraving[:, :, 3] == 255
        assert np.all(engraving[ink][:, :3] == 0)

    @pytest.mark.parametrize("style", ["standard", "detailed", "bold"])
    def test_deterministic(self, style):
        params = get_method("clean_simple").filter_for(style).params
        photo = _square_photo()
        first = render_engraving(photo, params)
        second = render_engraving(photo, params)
        assert np.array_equal(first, second)

    def test_square_outline_produces_ink(self):
        params = get_method("clean_simple").filter_for("detailed").params
        engraving = render_engraving(_square_photo(), params)
        ink = engraving[:, :, 3] == 255
        assert ink.any()
        # Far corners of the white background stay blank
        assert not ink[:20, :20].any()

    def test_blank_photo_has_no_ink(self):
        params = get_method("clean_simple").filter_for("standard").params
        engraving = render_engraving(np.full((64, 64, 3), 255, dtype=np.uint8), params)
        assert not np.any(engraving[:, :, 3])

    def test_does_not_mutate_input(self):
        photo = _square_photo()
        before = photo.copy()
        render_engraving(photo, get_method("clean_simple").filter_for("bold").params)
        assert np.array_equal(photo, before)

    def test_large_input_is_shrunk_to_working_size(self):
        photo = np.full((1200, 2400, 3), 255, dtype=np.uint8)
        results = run_engraving(photo, get_method("clean_simple").filter_for("standard").params)
        assert results.final.shape == (500, 1000, 4)
        assert results.scale_factor == pytest.approx(2.4)

    def test_render_from_bytes(self):
        data = encode_png(_square_photo())
        engraving = render_engraving_bytes(data, get_method("clean_simple").filter_for("standard").params)
        assert engraving.shape == (200, 200, 4)

    def test_artifacts_written_per_step(self, tmp_path):
        params = get_method("clean_simple").filter_for("standard").params
        results = run_engraving(_square_photo(), params, artifact_dir=str(tmp_path))
        written = sorted(p.name for p in tmp_path.glob("*.png"))
        assert len(written) == len(results.steps)
        assert written[0].startswith("00_")

    def test_build_pipeline_skips_disabled_steps(self):
        pipeline = build_pipeline(FilterParams())
        assert isinstance(pipeline, Pipeline)
        names = [step.name.split("(")[0] for step in pipeline.steps]
        assert names == ["fit_inside", "levels", "edges", "to_rgba"]
