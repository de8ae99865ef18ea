"""Tests for orientation detection and correction."""

import numpy as np
import pytest

from idextract.models import DocumentOrientation, Orientation, RotationResult
from idextract.pipeline.raster import RasterImage
from idextract.pipeline.stage_orient import (
    OrientationDetector,
    combine_estimates,
    correct_orientation,
    detect_edge_orientation,
    quick_check,
    rotate_image,
    rotated_dimensions,
)
from conftest import card_pixels, metadata_for


class TestQuickCheck:
    """Tests for the aspect-only estimator."""

    def test_portrait_is_rotated(self):
        result = quick_check(metadata_for(700, 1000))

        assert result.angle == Orientation.DEG_90
        assert result.should_correct
        assert result.confidence == pytest.approx(0.8)
        assert result.orientation == DocumentOrientation.PORTRAIT

    def test_landscape_is_kept(self):
        result = quick_check(metadata_for(1600, 1000))
        assert result.angle == Orientation.DEG_0
        assert not result.should_correct
        assert result.confidence == pytest.approx(0.7)

    def test_corrected_image_measures_upright(self):
        """Re-measuring after correction yields angle 0."""
        image = RasterImage(np.zeros((1000, 700, 3), dtype=np.uint8))
        rotation = quick_check(image.metadata(1))

        corrected = correct_orientation(image, rotation)

        assert (corrected.width, corrected.height) == (1000, 700)
        assert quick_check(corrected.metadata(1)).angle == Orientation.DEG_0


class TestEdgeEstimator:
    def test_text_lines_read_as_upright(self):
        angle, confidence = detect_edge_orientation(RasterImage(card_pixels()))
        assert angle == Orientation.DEG_0
        assert confidence > 0.6

    def test_rotated_text_lines(self):
        rotated = RasterImage(np.ascontiguousarray(np.transpose(card_pixels(), (1, 0, 2))))
        angle, confidence = detect_edge_orientation(rotated)
        assert angle == Orientation.DEG_90
        assert confidence > 0.6

    def test_blank_image_is_ambiguous(self):
        angle, confidence = detect_edge_orientation(RasterImage(np.full((300, 400, 3), 200, dtype=np.uint8)))
        assert angle == Orientation.DEG_0
        assert confidence == pytest.approx(0.3)


class TestCombineEstimates:
    def test_no_confidence(self):
        result = combine_estimates([(Orientation.DEG_90, 0.0)])
        assert result.angle == Orientation.DEG_0
        assert not result.should_correct

    def test_confidence_is_strongest_estimate(self):
        result = combine_estimates([(Orientation.DEG_90, 0.9), (Orientation.DEG_90, 0.7)])
        assert result.angle == Orientation.DEG_90
        assert result.confidence == pytest.approx(0.9)
        assert result.should_correct

    def test_weak_estimate_not_corrected(self):
        result = combine_estimates([(Orientation.DEG_90, 0.5)])
        assert not result.should_correct


class TestOrientationDetector:
    def test_portrait_short_circuits(self):
        detector = OrientationDetector()
        image = RasterImage(np.ascontiguousarray(np.transpose(card_pixels(), (1, 0, 2))))
        result = detector.detect(image, image.metadata(1))
        assert result.angle == Orientation.DEG_90
        assert result.confidence == pytest.approx(0.8)

    def test_full_estimators_on_rotated_card(self):
        detector = OrientationDetector(use_quick_check=False)
        image = RasterImage(np.ascontiguousarray(np.transpose(card_pixels(), (1, 0, 2))))
        result = detector.detect(image, image.metadata(1))
        assert result.angle == Orientation.DEG_90
        assert result.should_correct

    def test_upright_card(self):
        image = RasterImage(card_pixels())
        result = OrientationDetector().detect(image, image.metadata(1))
        assert result.angle == Orientation.DEG_0
        assert not result.should_correct


class TestRotateImage:
    """Tests for rotation without clipping."""

    def test_clockwise_pixel_mapping(self):
        pixels = np.zeros((2, 3, 3), dtype=np.uint8)
        pixels[0, 0] = (255, 0, 0)
        rotated = rotate_image(RasterImage(pixels), 90)

        assert (rotated.width, rotated.height) == (2, 3)
        assert rotated.pixel(1, 0) == (255, 0, 0)

    def test_input_is_not_modified(self):
        image = RasterImage(card_pixels(80, 50))
        before = image.pixels.copy()
        rotate_image(image, 180)
        assert np.array_equal(image.pixels, before)

    def test_arbitrary_angle_expands_canvas(self):
        rotated = rotate_image(RasterImage(np.zeros((50, 100, 3), dtype=np.uint8)), 45)
        assert (rotated.width, rotated.height) == rotated_dimensions(100, 50, 45)
        assert rotated.width > 100

    def test_rotated_dimensions_quarter_turn(self):
        assert rotated_dimensions(100, 50, 90) == (50, 100)

    def test_correction_skipped_when_not_requested(self):
        image = RasterImage(card_pixels(80, 50))
        rotation = RotationResult(angle=Orientation.DEG_90, confidence=0.4, should_correct=False)
        assert correct_orientation(image, rotation) is image
