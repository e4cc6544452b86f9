"""Tests for face crop geometry and geometry types."""

from __future__ import annotations

import numpy as np
import pytest

from errors import InvalidBoundingBoxError
from faces.cropping import (
    PROFESSIONAL_CROP,
    STANDARD_CROP,
    CropParams,
    compute_crop_region,
    crop_image,
    get_crop_params,
    padding_factor,
)
from geometry import BoundingBox, CropRegion


class TestBoundingBox:

    def test_to_rect(self):
        assert BoundingBox(50, 40, 20, 10).to_rect() == (40, 35, 20, 10)

    def test_from_rect_round_trip(self):
        box = BoundingBox.from_rect(10, 20, 30, 40, confidence=0.9)
        assert (box.center_x, box.center_y) == (25, 40)
        assert box.to_rect() == (10, 20, 30, 40)

    def test_from_dict_wire_format(self):
        box = BoundingBox.from_dict({"x": 5, "y": 6, "width": 7, "height": 8})
        assert box.confidence == 1.0
        assert box.to_dict() == {"x": 5.0, "y": 6.0, "width": 7.0, "height": 8.0, "confidence": 1.0}

    @pytest.mark.parametrize("box", [
        BoundingBox(10, 10, 0, 5),
        BoundingBox(10, 10, 5, -1),
        BoundingBox(10, 10, 5, 5, confidence=1.5),
    ])
    def test_validate_rejects(self, box):
        with pytest.raises(ValueError):
            box.validate()


class TestPaddingFactor:

    def test_normal_face_uses_base_padding(self):
        box = BoundingBox(500, 400, 300, 300)
        assert padding_factor(box, 1000, 800) == pytest.approx(1.4)

    def test_small_face_uses_small_padding(self):
        box = BoundingBox(500, 400, 100, 100)
        assert padding_factor(box, 1000, 800) == pytest.approx(1.6)

    def test_threshold_is_exclusive(self):
        # Exactly a quarter of the short side is not "small"
        box = BoundingBox(500, 400, 200, 200)
        assert padding_factor(box, 1000, 800) == pytest.approx(1.4)

    def test_professional_tiers(self):
        small = BoundingBox(500, 400, 200, 200)
        assert padding_factor(small, 1000, 800, PROFESSIONAL_CROP) == pytest.approx(1.5)
        large = BoundingBox(500, 400, 300, 300)
        assert padding_factor(large, 1000, 800, PROFESSIONAL_CROP) == pytest.approx(1.35)


class TestComputeCropRegion:

    def test_centered_face(self):
        region = compute_crop_region(BoundingBox(500, 400, 300, 300), 1000, 800)
        assert region == CropRegion(x=290, y=166, width=420, height=420)

    def test_small_face_padded_more_and_shifted_up(self):
        region = compute_crop_region(BoundingBox(500, 400, 100, 100), 1000, 800)
        assert region == CropRegion(x=420, y=312, width=160, height=160)

    def test_clamped_at_top_left(self):
        region = compute_crop_region(BoundingBox(50, 50, 300, 300), 1000, 800)
        assert region == CropRegion(x=0, y=0, width=420, height=420)

    def test_clamped_at_bottom_right(self):
        region = compute_crop_region(BoundingBox(950, 780, 300, 300), 1000, 800)
        assert region.x + region.width == 1000
        assert region.y + region.height == 800
        assert region.width == 420

    def test_face_larger_than_image(self):
        region = compute_crop_region(BoundingBox(100, 100, 200, 200), 200, 200)
        assert region == CropRegion(x=0, y=0, width=200, height=200)

    def test_region_always_inside_image(self):
        rng = np.random.default_rng(7)
        for _ in range(200):
            width, height = (int(v) for v in rng.integers(20, 1500, size=2))
            box = BoundingBox(
                center_x=float(rng.uniform(-50, width + 50)),
                center_y=float(rng.uniform(-50, height + 50)),
                width=float(rng.uniform(1, 2 * width)),
                height=float(rng.uniform(1, 2 * height)),
            )
            for params in (STANDARD_CROP, PROFESSIONAL_CROP):
                region = compute_crop_region(box, width, height, params)
                assert region.fits_within(width, height), (box, width, height, region)

    @pytest.mark.parametrize("box", [None, BoundingBox(10, 10, 0, 10), BoundingBox(10, 10, 10, -3)])
    def test_invalid_box_raises(self, box):
        with pytest.raises(InvalidBoundingBoxError):
            compute_crop_region(box, 100, 100)

    def test_invalid_box_is_also_value_error(self):
        with pytest.raises(ValueError):
            compute_crop_region(BoundingBox(10, 10, 0, 0), 100, 100)

    def test_non_positive_image_raises(self):
        with pytest.raises(ValueError, match="positive"):
            compute_crop_region(BoundingBox(10, 10, 5, 5), 0, 100)


class TestCropImage:

    def test_crop_matches_region(self):
        image = np.arange(100 * 120 * 3, dtype=np.uint32).reshape(100, 120, 3).astype(np.uint8)
        region = CropRegion(x=10, y=20, width=30, height=40)
        crop = crop_image(image, region)
        assert crop.shape == (40, 30, 3)
        assert np.array_equal(crop, image[20:60, 10:40])

    def test_crop_is_a_copy(self):
        image = np.zeros((50, 50, 3), dtype=np.uint8)
        crop = crop_image(image, CropRegion(0, 0, 10, 10))
        crop[:] = 255
        assert not image.any()

    def test_out_of_bounds_region_raises(self):
        with pytest.raises(ValueError, match="exceeds"):
            crop_image(np.zeros((50, 50, 3), dtype=np.uint8), CropRegion(40, 40, 20, 20))

    def test_professional_crop_upscales_small_regions(self):
        image = np.full((300, 300, 3), 128, dtype=np.uint8)
        region = compute_crop_region(BoundingBox(150, 150, 100, 100), 300, 300, PROFESSIONAL_CROP)
        assert region.width == 135
        crop = crop_image(image, region, PROFESSIONAL_CROP)
        assert crop.shape == (400, 400, 3)

    def test_standard_crop_never_upscales(self):
        image = np.full((300, 300, 3), 128, dtype=np.uint8)
        region = compute_crop_region(BoundingBox(150, 150, 100, 100), 300, 300)
        crop = crop_image(image, region)
        assert crop.shape[:2] == (region.height, region.width)


class TestCropParams:

    def test_presets_valid(self):
        for name in ("standard", "professional"):
            get_crop_params(name).validate()

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match="Unknown crop preset"):
            get_crop_params("artsy")

    def test_padding_below_one_rejected(self):
        with pytest.raises(ValueError, match="Padding"):
            CropParams(base_padding=0.9).validate()
