"""Processing Orchestrator - Run the image pipeline for one file.

Stage order:
1. validate  - structural checks (memoized per content hash)
2. decode    - bytes to RasterImage
3. quality   - metrics that gate enhancement
4. rotation  - detect and correct orientation
5. resize    - fit the target box
6. optimize  - encode at the configured quality
7. exposure  - brightness and gamma, when too dark or too bright
8. enhance   - contrast + sharpen (and optional binarization), when gated in
9. denoise   - light blur, when gated in
10. grayscale - luma only, when requested
11. encode    - final encoding if stages 7-10 changed the pixels

Any failing stage aborts the run with a StageError naming it; partial
results are never returned.
"""

import logging
import mimetypes
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Sequence

from idextract.cache import LRUCache
from idextract.config import settings
from idextract.errors import IdExtractError, InputValidationError, StageError
from idextract.models import (
    BatchItem,
    FileValidationResult,
    ImageMetadata,
    Orientation,
    PerformanceMetrics,
    ProcessingOptions,
    ProcessingResult,
    QualityMetrics,
    RotationResult,
)
from idextract.pipeline.raster import RasterImage
from idextract.pipeline.stage_enhance import (
    adaptive_threshold,
    correct_exposure,
    denoise,
    enhance_image,
    exposure_gamma,
    should_correct_exposure,
    should_denoise,
    should_enhance,
    to_grayscale,
)
from idextract.pipeline.stage_optimize import (
    compute_target_dimensions,
    encode_within_limit,
    resize_image,
)
from idextract.pipeline.stage_orient import OrientationDetector, correct_orientation
from idextract.pipeline.stage_quality import analyze_quality
from idextract.pipeline.stage_validate import (
    ERROR_CODES,
    compute_content_hash,
    detect_mime_type,
    validate_file,
)

logger = logging.getLogger(__name__)

MAX_PROCESSING_MS = 10_000.0
BYTES_PER_PIXEL = 4


def efficiency_score(total_ms: float, quality_score: float) -> float:
    """0.3 x time penalty (zero at 10 s) + 0.7 x quality score."""
    time_score = max(0.0, 1.0 - total_ms / MAX_PROCESSING_MS)
    return min(1.0, max(0.0, time_score * 0.3 + quality_score * 0.7))


def estimate_memory_mb(original: ImageMetadata, processed: ImageMetadata) -> float:
    """Peak RGBA buffer size, doubled for the working copy."""
    pixels = max(original.width * original.height, processed.width * processed.height)
    return pixels * BYTES_PER_PIXEL * 2 / (1024 * 1024)


def recommend_options(metrics: QualityMetrics, metadata: ImageMetadata) -> ProcessingOptions:
    """Suggest pipeline options for an analyzed image."""
    return ProcessingOptions(
        auto_rotate=metadata.aspect_ratio < 1.0,
        enhance_quality=metrics.overall_score < settings.quality_gate,
        reduce_noise=metrics.noise_level > settings.noise_threshold,
        correct_exposure=exposure_gamma(metrics.brightness) is not None,
        binarize=metrics.contrast < 0.2,
    )


class ImageProcessor:
    """Runs the image pipeline.

    One instance may process many files, sequentially or from several
    threads; the only shared state is the bounded validation cache.
    """

    def __init__(
        self,
        options: Optional[ProcessingOptions] = None,
        cache: Optional[LRUCache] = None,
        detector: Optional[OrientationDetector] = None,
        quality_gate: Optional[float] = None,
        noise_threshold: Optional[float] = None,
    ):
        """Initialize processor.

        Args:
            options: Default options for ``process`` calls.
            cache: Validation cache (default: new cache sized from settings).
            detector: Orientation detector (default: quick check + edges).
            quality_gate: Enhance when the quality score is below this.
            noise_threshold: Denoise when the noise level is above this.
        """
        self.options = options or ProcessingOptions()
        self.cache = cache if cache is not None else LRUCache(settings.validation_cache_size)
        self.detector = detector or OrientationDetector()
        self.quality_gate = settings.quality_gate if quality_gate is None else quality_gate
        self.noise_threshold = (
            settings.noise_threshold if noise_threshold is None else noise_threshold
        )

    @contextmanager
    def _stage(self, name: str, timings: dict[str, float]) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        except IdExtractError:
            raise
        except Exception as exc:
            logger.error("Stage %s failed: %s", name, exc, extra={"stage": name})
            raise StageError(name, exc) from exc
        finally:
            timings[name] = (time.perf_counter() - start) * 1000.0

    def validate(
        self,
        data: bytes,
        mime_type: str,
        declared_size: Optional[int] = None,
        filename: Optional[str] = None,
    ) -> FileValidationResult:
        """Structural checks, memoized by content hash and declared attributes."""
        suffix = Path(filename).suffix.lower() if filename else None
        key = (compute_content_hash(data), mime_type, declared_size, suffix)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        result = validate_file(data, mime_type, declared_size, filename)
        self.cache.put(key, result)
        return result

    def process(
        self,
        data: bytes,
        mime_type: str,
        declared_size: Optional[int] = None,
        filename: Optional[str] = None,
        options: Optional[ProcessingOptions] = None,
    ) -> ProcessingResult:
        """Run the full pipeline on one file.

        Args:
            data: Encoded file content.
            mime_type: Declared MIME type.
            declared_size: Declared size in bytes (defaults to len(data)).
            filename: Original file name for the extension check.
            options: Overrides the processor's default options.

        Returns:
            ProcessingResult with the encoded output image.

        Raises:
            InputValidationError: A structural check failed.
            StageError: A processing stage failed.
        """
        opts = options or self.options
        timings: dict[str, float] = {}
        transformations: list[str] = []
        started = time.perf_counter()

        with self._stage("validate", timings):
            validation = self.validate(data, mime_type, declared_size, filename)
        if not validation.is_valid:
            check = validation.failed_check
            raise InputValidationError(validation.message, check=check.value, code=ERROR_CODES[check])

        with self._stage("decode", timings):
            image = RasterImage.from_bytes(data)
            original = image.metadata(len(data))

        with self._stage("quality", timings):
            metrics = analyze_quality(image, original)

        with self._stage("rotation", timings):
            if opts.auto_rotate:
                rotation = self.detector.detect(image, original)
            else:
                rotation = RotationResult(angle=Orientation.DEG_0, orientation=original.orientation)
            if rotation.should_correct:
                image = correct_orientation(image, rotation)
                transformations.append(f"rotation:{int(rotation.angle)}deg")

        with self._stage("resize", timings):
            width, height = compute_target_dimensions(image.width, image.height, opts)
            image = resize_image(image, width, height)
            transformations.append("resize")

        with self._stage("optimize", timings):
            encoded, quality = encode_within_limit(
                image, opts.output_format, opts.quality, opts.max_file_size
            )
            transformations.append("optimize")

        pixels_changed = False
        if should_correct_exposure(metrics, opts):
            with self._stage("exposure", timings):
                image = correct_exposure(image, metrics.brightness)
                transformations.append("exposure-correction")
            pixels_changed = True

        if should_enhance(metrics, opts, self.quality_gate):
            with self._stage("enhance", timings):
                image = enhance_image(image, opts.enhancement_mode)
                transformations.append("quality-enhancement")
                if opts.binarize:
                    image = adaptive_threshold(image)
                    transformations.append("binarization")
            pixels_changed = True

        if should_denoise(metrics, opts, self.noise_threshold):
            with self._stage("denoise", timings):
                image = denoise(image)
                transformations.append("noise-reduction")
            pixels_changed = True

        if opts.grayscale:
            with self._stage("grayscale", timings):
                image = to_grayscale(image)
                transformations.append("grayscale")
            pixels_changed = True

        if pixels_changed:
            with self._stage("encode", timings):
                encoded, quality = encode_within_limit(
                    image, opts.output_format, quality, opts.max_file_size
                )

        processed = image.metadata(len(encoded), opts.output_format)
        total_ms = (time.perf_counter() - started) * 1000.0
        performance = PerformanceMetrics(
            stage_durations_ms=timings,
            total_ms=total_ms,
            memory_estimate_mb=estimate_memory_mb(original, processed),
            efficiency_score=efficiency_score(total_ms, metrics.overall_score),
        )

        logger.info(
            "Processed %dx%d -> %dx%d (%s) in %.0f ms",
            original.width,
            original.height,
            processed.width,
            processed.height,
            ", ".join(transformations),
            total_ms,
            extra={"duration_ms": round(total_ms, 1)},
        )

        return ProcessingResult(
            image=encoded,
            original=original,
            processed=processed,
            transformations=transformations,
            quality=metrics,
            rotation=rotation,
            performance=performance,
            source_hash=compute_content_hash(data),
        )

    def process_file(
        self,
        path: Path,
        options: Optional[ProcessingOptions] = None,
    ) -> ProcessingResult:
        """Process a file from disk, declaring its MIME type from the name."""
        path = Path(path)
        data = path.read_bytes()
        mime_type = mimetypes.guess_type(path.name)[0] or detect_mime_type(data) or ""
        return self.process(data, mime_type, len(data), path.name, options)

    def process_batch(
        self,
        paths: Sequence[Path],
        options: Optional[ProcessingOptions] = None,
        max_workers: Optional[int] = None,
    ) -> list[BatchItem]:
        """Process several files independently.

        A failing file is recorded and the batch continues. Results keep
        the input order.
        """
        workers = max_workers or settings.max_workers

        def run(path: Path) -> BatchItem:
            try:
                result = self.process_file(path, options)
            except IdExtractError as exc:
                logger.warning("Failed %s: %s", path, exc.message, extra={"file": str(path)})
                return BatchItem(path=str(path), error_code=exc.code.value, error=exc.message)
            except OSError as exc:
                logger.warning("Cannot read %s: %s", path, exc, extra={"file": str(path)})
                return BatchItem(path=str(path), error_code="READ_ERROR", error=str(exc))
            return BatchItem(path=str(path), result=result)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(run, paths))