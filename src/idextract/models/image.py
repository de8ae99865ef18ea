"""Image pipeline models: metadata, quality, rotation, options and results."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .base import DocumentOrientation, FrozenModel, Orientation


class ImageFormat(str, Enum):
    """Encodings understood by the pipeline."""

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    PDF = "pdf"

    @property
    def mime_type(self) -> str:
        if self is ImageFormat.PDF:
            return "application/pdf"
        return f"image/{self.value}"


class FileCheck(str, Enum):
    """Structural checks run on an incoming file, in order."""

    EMPTY_FILE = "EMPTY_FILE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INVALID_MIME_TYPE = "INVALID_MIME_TYPE"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    INVALID_EXTENSION = "INVALID_EXTENSION"


class FileValidationResult(FrozenModel):
    """Outcome of the structural file checks."""

    is_valid: bool
    failed_check: Optional[FileCheck] = None
    message: Optional[str] = None
    detected_mime_type: Optional[str] = Field(None, description="MIME type from magic bytes")


class DimensionReport(FrozenModel):
    """Dimension and aspect checks on a decoded image."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ImageMetadata(FrozenModel):
    """Facts about one encoded image, derived once after decoding."""

    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    size_bytes: int = Field(..., ge=0)
    format: ImageFormat
    aspect_ratio: float = Field(..., gt=0)
    color_depth: int = 24
    has_alpha: bool = False

    @property
    def orientation(self) -> DocumentOrientation:
        if self.aspect_ratio >= 1.0:
            return DocumentOrientation.LANDSCAPE
        return DocumentOrientation.PORTRAIT


class QualityMetrics(FrozenModel):
    """Pixel statistics used to gate optional enhancement."""

    brightness: float = Field(..., ge=0.0, le=1.0, description="Mean luminance")
    contrast: float = Field(..., ge=0.0, le=1.0, description="Normalized luminance std")
    sharpness: float = Field(..., ge=0.0, le=1.0, description="Laplacian energy")
    noise_level: float = Field(..., ge=0.0, le=1.0, description="Mean local variance")
    resolution: float = Field(..., ge=0.0, le=1.0)
    color_balance: float = Field(..., ge=0.0, le=1.0)
    overall_score: float = Field(..., ge=0.0, le=1.0)
    assessment: str = "Poor"
    recommendations: list[str] = Field(default_factory=list)


class RotationResult(FrozenModel):
    """Detected rotation of a document image."""

    angle: Orientation = Orientation.DEG_0
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    should_correct: bool = False
    orientation: DocumentOrientation = DocumentOrientation.LANDSCAPE


class EnhancementMode(str, Enum):
    """Contrast stretch aggressiveness."""

    LIGHT = "light"
    STANDARD = "standard"
    AGGRESSIVE = "aggressive"

    @property
    def contrast_factor(self) -> float:
        return {"light": 1.3, "standard": 1.5, "aggressive": 2.0}[self.value]


class ProcessingOptions(BaseModel):
    """Options for the image pipeline."""

    target_width: int = Field(1024, gt=0)
    target_height: int = Field(768, gt=0)
    quality: float = Field(0.9, gt=0.0, le=1.0, description="Lossy encoder quality")
    output_format: ImageFormat = ImageFormat.JPEG
    auto_rotate: bool = True
    enhance_quality: bool = True
    reduce_noise: bool = True
    correct_exposure: bool = Field(True, description="Fix dark or overexposed images")
    binarize: bool = Field(False, description="Adaptive thresholding after enhancement")
    grayscale: bool = Field(False, description="Luma-only output")
    enhancement_mode: EnhancementMode = EnhancementMode.STANDARD
    max_file_size: int = Field(5 * 1024 * 1024, gt=0)
    preserve_aspect_ratio: bool = True


class PerformanceMetrics(FrozenModel):
    """Timing and resource estimates for one pipeline run."""

    stage_durations_ms: dict[str, float] = Field(default_factory=dict)
    total_ms: float = Field(0.0, ge=0.0)
    memory_estimate_mb: float = Field(0.0, ge=0.0)
    efficiency_score: float = Field(0.0, ge=0.0, le=1.0)


class ProcessingResult(FrozenModel):
    """Output of the image pipeline for one input file."""

    image: bytes = Field(..., repr=False)
    original: ImageMetadata
    processed: ImageMetadata
    transformations: list[str] = Field(default_factory=list)
    quality: QualityMetrics
    rotation: RotationResult
    performance: PerformanceMetrics
    source_hash: str = Field(..., description="SHA-256 of the input bytes")


class BatchItem(FrozenModel):
    """Outcome for one file of a batch run."""

    path: str
    result: Optional[ProcessingResult] = None
    error_code: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None
