"""Pydantic models for data flowing through the pipeline.

Image side:
- ImageMetadata, QualityMetrics, RotationResult -> ProcessingResult

Extraction side:
- FieldSet -> FieldConfidence / ValidationReport -> ExtractionResult
- ExtractionResponse wraps a result or an error for callers
- Cancelled is a separate outcome, never an error
"""

from .base import (
    ConfidenceLevel,
    DocumentOrientation,
    FrozenModel,
    ImageQualityHint,
    Orientation,
)
from .extraction import (
    Cancelled,
    ErrorDetail,
    ExtractionMetadata,
    ExtractionResponse,
    ExtractionResult,
    FieldConfidence,
    FieldSet,
    HealthReport,
    HealthStatus,
    ValidationReport,
)
from .image import (
    BatchItem,
    DimensionReport,
    EnhancementMode,
    FileCheck,
    FileValidationResult,
    ImageFormat,
    ImageMetadata,
    PerformanceMetrics,
    ProcessingOptions,
    ProcessingResult,
    QualityMetrics,
    RotationResult,
)

__all__ = [
    # Base types
    "ConfidenceLevel",
    "DocumentOrientation",
    "FrozenModel",
    "ImageQualityHint",
    "Orientation",
    # Image pipeline
    "BatchItem",
    "DimensionReport",
    "EnhancementMode",
    "FileCheck",
    "FileValidationResult",
    "ImageFormat",
    "ImageMetadata",
    "PerformanceMetrics",
    "ProcessingOptions",
    "ProcessingResult",
    "QualityMetrics",
    "RotationResult",
    # Extraction
    "Cancelled",
    "ErrorDetail",
    "ExtractionMetadata",
    "ExtractionResponse",
    "ExtractionResult",
    "FieldConfidence",
    "FieldSet",
    "HealthReport",
    "HealthStatus",
    "ValidationReport",
]
