"""Exception hierarchy for the ID extraction pipeline.

Every error carries a stable ``ErrorCode`` plus a human-readable message so
callers can render a precise response. Expected validation failures are
returned as structured results instead and never reach this module.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Stable error codes exposed to callers."""

    INVALID_IMAGE = "INVALID_IMAGE"
    IMAGE_TOO_LARGE = "IMAGE_TOO_LARGE"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    PROCESSING_FAILED = "PROCESSING_FAILED"
    MODEL_UNAVAILABLE = "MODEL_UNAVAILABLE"
    AI_SERVICE_UNAVAILABLE = "AI_SERVICE_UNAVAILABLE"
    PROCESSING_TIMEOUT = "PROCESSING_TIMEOUT"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class IdExtractError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message.
        code: Stable error code.
        retryable: Whether a caller-level retry may succeed.
        details: Additional diagnostic context.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[dict[str, Any]] = None,
        retryable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the ``{code, message}`` error shape."""
        data: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class InputValidationError(IdExtractError):
    """The input file failed a structural check before processing."""

    code = ErrorCode.INVALID_IMAGE

    def __init__(self, message: str, check: str, code: Optional[ErrorCode] = None):
        super().__init__(message, code=code, details={"check": check})
        self.check = check


class StageError(IdExtractError):
    """A processing stage failed; the whole pipeline run is aborted."""

    code = ErrorCode.PROCESSING_FAILED

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(
            f"Stage '{stage}' failed: {cause}",
            details={"stage": stage, "cause": type(cause).__name__},
        )
        self.stage = stage
        self.cause = cause


class ExtractionError(IdExtractError):
    """Base for errors talking to or interpreting the vision model."""

    code = ErrorCode.EXTRACTION_FAILED


class InvalidResponseError(ExtractionError):
    """The model reply did not contain a usable JSON object."""

    code = ErrorCode.INVALID_RESPONSE
    max_excerpt = 500

    def __init__(self, message: str, raw_response: str = ""):
        excerpt = raw_response[: self.max_excerpt]
        super().__init__(message, details={"raw_response": excerpt})
        self.raw_response = excerpt


class ServiceUnavailableError(ExtractionError):
    """The AI service could not be reached."""

    code = ErrorCode.AI_SERVICE_UNAVAILABLE
    retryable = True


class ModelUnavailableError(ExtractionError):
    """The AI service is up but the requested model is not loaded."""

    code = ErrorCode.MODEL_UNAVAILABLE


class ExtractionTimeoutError(ExtractionError):
    """The AI service did not answer in time."""

    code = ErrorCode.PROCESSING_TIMEOUT
    retryable = True


class RateLimitedError(ExtractionError):
    """The AI service rejected the request because of rate limiting."""

    code = ErrorCode.RATE_LIMITED
    retryable = True
