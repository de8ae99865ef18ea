"""Tests for the processing orchestrator."""

from unittest.mock import patch

import fitz
import numpy as np
import pytest

from idextract.cache import LRUCache
from idextract.errors import ErrorCode, InputValidationError, StageError
from idextract.models import ImageFormat, ProcessingOptions, QualityMetrics
from idextract.pipeline.orchestrator import (
    ImageProcessor,
    efficiency_score,
    recommend_options,
)
from idextract.pipeline.raster import RasterImage
from conftest import metadata_for


def _metrics(
    overall: float, noise: float, contrast: float = 0.5, brightness: float = 0.5
) -> QualityMetrics:
    return QualityMetrics(
        brightness=brightness,
        contrast=contrast,
        sharpness=0.5,
        noise_level=noise,
        resolution=1.0,
        color_balance=1.0,
        overall_score=overall,
        assessment="Fair",
    )


class TestEndToEnd:
    """Full pipeline on a portrait photo."""

    def test_portrait_photo(self, portrait_jpeg):
        processor = ImageProcessor(quality_gate=0.7, noise_threshold=0.5)
        with patch("idextract.pipeline.orchestrator.analyze_quality", return_value=_metrics(0.5, 0.6)):
            result = processor.process_file(portrait_jpeg)

        assert result.transformations == [
            "rotation:90deg",
            "resize",
            "optimize",
            "quality-enhancement",
            "noise-reduction",
        ]
        assert (result.original.width, result.original.height) == (2000, 3000)
        assert (result.processed.width, result.processed.height) == (1024, 683)
        assert result.processed.width <= 1024 and result.processed.height <= 768
        assert result.processed.format == ImageFormat.JPEG

        decoded = RasterImage.from_bytes(result.image)
        assert (decoded.width, decoded.height) == (1024, 683)

    def test_stage_timings_recorded(self, portrait_jpeg):
        with patch("idextract.pipeline.orchestrator.analyze_quality", return_value=_metrics(0.5, 0.6)):
            result = ImageProcessor().process_file(portrait_jpeg)

        for stage in ("validate", "decode", "quality", "rotation", "resize", "optimize", "enhance", "denoise"):
            assert stage in result.performance.stage_durations_ms
        assert 0.0 <= result.performance.efficiency_score <= 1.0

    def test_good_image_skips_optional_stages(self, jpeg_bytes):
        with patch("idextract.pipeline.orchestrator.analyze_quality", return_value=_metrics(0.9, 0.1)):
            result = ImageProcessor().process(jpeg_bytes, "image/jpeg")

        assert result.transformations == ["resize", "optimize"]
        assert (result.processed.width, result.processed.height) == (640, 400)

    def test_binarization_logged(self, jpeg_bytes):
        options = ProcessingOptions(binarize=True)
        with patch("idextract.pipeline.orchestrator.analyze_quality", return_value=_metrics(0.3, 0.1)):
            result = ImageProcessor().process(jpeg_bytes, "image/jpeg", options=options)

        assert result.transformations == ["resize", "optimize", "quality-enhancement", "binarization"]

    def test_dark_image_exposure_corrected(self, jpeg_bytes):
        with patch(
            "idextract.pipeline.orchestrator.analyze_quality",
            return_value=_metrics(0.9, 0.1, brightness=0.2),
        ):
            result = ImageProcessor().process(jpeg_bytes, "image/jpeg")

        assert result.transformations == ["resize", "optimize", "exposure-correction"]
        assert "exposure" in result.performance.stage_durations_ms
        original = RasterImage.from_bytes(jpeg_bytes).pixels.mean()
        assert RasterImage.from_bytes(result.image).pixels.mean() > original

    def test_exposure_correction_can_be_disabled(self, jpeg_bytes):
        options = ProcessingOptions(correct_exposure=False)
        with patch(
            "idextract.pipeline.orchestrator.analyze_quality",
            return_value=_metrics(0.9, 0.1, brightness=0.95),
        ):
            result = ImageProcessor().process(jpeg_bytes, "image/jpeg", options=options)

        assert result.transformations == ["resize", "optimize"]

    def test_grayscale_output(self, jpeg_bytes):
        options = ProcessingOptions(grayscale=True, output_format=ImageFormat.PNG)
        with patch("idextract.pipeline.orchestrator.analyze_quality", return_value=_metrics(0.9, 0.1)):
            result = ImageProcessor().process(jpeg_bytes, "image/jpeg", options=options)

        assert result.transformations == ["resize", "optimize", "grayscale"]
        pixels = RasterImage.from_bytes(result.image).pixels
        assert np.array_equal(pixels[..., 0], pixels[..., 1])
        assert np.array_equal(pixels[..., 1], pixels[..., 2])

    def test_real_quality_analysis(self, jpeg_bytes):
        result = ImageProcessor().process(jpeg_bytes, "image/jpeg", filename="card.jpg")
        assert 0.0 <= result.quality.overall_score <= 1.0
        assert result.source_hash


class TestFailures:
    """Tests for validation and stage failures."""

    def test_invalid_input_raises_with_code(self, png_bytes):
        with pytest.raises(InputValidationError) as exc_info:
            ImageProcessor().process(png_bytes, "image/jpeg")

        assert exc_info.value.code == ErrorCode.INVALID_IMAGE
        assert exc_info.value.check == "INVALID_SIGNATURE"

    def test_unsupported_type_code(self, jpeg_bytes):
        with pytest.raises(InputValidationError) as exc_info:
            ImageProcessor().process(jpeg_bytes, "image/gif")
        assert exc_info.value.code == ErrorCode.UNSUPPORTED_FORMAT

    def test_stage_failure_names_stage(self, jpeg_bytes):
        with patch(
            "idextract.pipeline.orchestrator.analyze_quality",
            side_effect=RuntimeError("boom"),
        ):
            with pytest.raises(StageError) as exc_info:
                ImageProcessor().process(jpeg_bytes, "image/jpeg")

        assert exc_info.value.stage == "quality"
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.code == ErrorCode.PROCESSING_FAILED

    def test_undecodable_content(self):
        data = b"\xff\xd8\xff" + b"\x00" * 100
        with pytest.raises(StageError) as exc_info:
            ImageProcessor().process(data, "image/jpeg")
        assert exc_info.value.stage == "decode"


class TestValidationCache:
    def test_repeated_validation_hits_cache(self, jpeg_bytes):
        cache = LRUCache(4)
        processor = ImageProcessor(cache=cache)

        processor.validate(jpeg_bytes, "image/jpeg")
        processor.validate(jpeg_bytes, "image/jpeg")

        assert cache.hits == 1
        assert len(cache) == 1

    def test_declared_attributes_are_part_of_key(self, jpeg_bytes):
        cache = LRUCache(4)
        processor = ImageProcessor(cache=cache)

        assert processor.validate(jpeg_bytes, "image/jpeg", filename="a.jpg").is_valid
        assert not processor.validate(jpeg_bytes, "image/jpeg", filename="a.png").is_valid
        assert len(cache) == 2


class TestBatch:
    def test_failures_do_not_stop_batch(self, tmp_path, jpeg_bytes):
        good = tmp_path / "good.jpg"
        good.write_bytes(jpeg_bytes)
        bad = tmp_path / "bad.jpg"
        bad.write_bytes(b"not an image")
        missing = tmp_path / "missing.jpg"

        items = ImageProcessor().process_batch([good, bad, missing], max_workers=2)

        assert [item.path for item in items] == [str(good), str(bad), str(missing)]
        assert items[0].succeeded
        assert items[1].error_code == ErrorCode.INVALID_IMAGE.value
        assert items[2].error_code == "READ_ERROR"


class TestRecommendations:
    def test_recommend_options(self):
        options = recommend_options(_metrics(0.4, 0.8, contrast=0.1), metadata_for(700, 1000))
        assert options.auto_rotate
        assert options.enhance_quality
        assert options.reduce_noise
        assert options.binarize
        assert not options.correct_exposure

    def test_recommend_exposure_for_dark_image(self):
        options = recommend_options(_metrics(0.8, 0.1, brightness=0.1), metadata_for(1000, 625))
        assert options.correct_exposure
        assert not options.auto_rotate

    def test_efficiency_score_bounds(self):
        assert efficiency_score(0.0, 1.0) == pytest.approx(1.0)
        assert efficiency_score(20_000.0, 0.0) == 0.0


def test_pdf_input(tmp_path):
    document = fitz.open()
    document.new_page(width=500, height=320)
    data = document.tobytes()
    document.close()

    result = ImageProcessor().process(data, "application/pdf", filename="card.pdf")
    assert result.original.format == ImageFormat.PDF
    assert result.processed.format == ImageFormat.JPEG
