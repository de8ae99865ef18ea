"""Extraction models: structured fields, confidence and service responses."""

from enum import Enum
from typing import Any, Optional

from pydantic import Field, model_validator

from idextract.errors import ErrorCode
from idextract.fields import FIELD_NAMES, validate_field

from .base import ConfidenceLevel, FrozenModel, ImageQualityHint


class FieldSet(FrozenModel):
    """Structured fields of a Romanian identity card.

    Every value is either absent (None) or already normalized and accepted
    by its field validator. Build instances from model output with
    ``idextract.extraction.parser.build_field_set``.
    """

    nume: Optional[str] = None
    prenume: Optional[str] = None
    cnp: Optional[str] = None
    nationalitate: Optional[str] = None
    sex: Optional[str] = None
    data_nasterii: Optional[str] = None
    locul_nasterii: Optional[str] = None
    domiciliul: Optional[str] = None
    seria: Optional[str] = None
    numar: Optional[str] = None
    data_eliberarii: Optional[str] = None
    eliberat_de: Optional[str] = None
    valabil_pana_la: Optional[str] = None

    @model_validator(mode="after")
    def _check_values(self) -> "FieldSet":
        for name in FIELD_NAMES:
            value = getattr(self, name)
            if value is not None and not validate_field(name, value):
                raise ValueError(f"{name}: {value!r} is not a valid value")
        return self

    def present(self) -> dict[str, str]:
        """Fields that were detected, in canonical order."""
        return {name: getattr(self, name) for name in FIELD_NAMES if getattr(self, name) is not None}

    @property
    def detected_count(self) -> int:
        return len(self.present())


class FieldConfidence(FrozenModel):
    """Confidence for one field or for the whole result."""

    score: float = Field(..., ge=0.0, le=1.0)
    level: ConfidenceLevel
    reason: str


class ValidationReport(FrozenModel):
    """Result of cross-field consistency checks."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ExtractionMetadata(FrozenModel):
    """Bookkeeping for one extraction run."""

    processing_time_ms: float = Field(0.0, ge=0.0)
    model: str
    image_quality: ImageQualityHint = ImageQualityHint.FAIR
    warnings: list[str] = Field(default_factory=list)
    attempts: int = Field(1, ge=1)
    prompt_template: Optional[str] = None


class ExtractionResult(FrozenModel):
    """Terminal artifact of the pipeline."""

    fields: FieldSet
    confidence: dict[str, FieldConfidence]
    overall_confidence: FieldConfidence
    validation: ValidationReport
    metadata: ExtractionMetadata


class ErrorDetail(FrozenModel):
    code: ErrorCode
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ExtractionResponse(FrozenModel):
    """Service contract: ``{success, data}`` or ``{success, error}``."""

    success: bool
    data: Optional[ExtractionResult] = None
    error: Optional[ErrorDetail] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "ExtractionResponse":
        if self.success and self.data is None:
            raise ValueError("successful response requires data")
        if not self.success and self.error is None:
            raise ValueError("failed response requires an error")
        return self


class Cancelled(FrozenModel):
    """The caller cancelled the extraction; no result was produced."""

    attempts: int = Field(0, ge=0)
    reason: str = "cancelled by caller"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @property
    def http_status(self) -> int:
        return {"healthy": 200, "degraded": 206, "unhealthy": 503}[self.value]


class HealthReport(FrozenModel):
    """Readiness of the AI service."""

    status: HealthStatus
    service_available: bool
    model_available: bool
    model: str
    available_models: list[str] = Field(default_factory=list)
    message: str

    @property
    def http_status(self) -> int:
        return self.status.http_status
