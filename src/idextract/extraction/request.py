"""Extraction requests and the retry/escalation loop.

``build_request`` turns a processed image plus options into a generate
request. ``ExtractionRunner`` drives attempts as an explicit state machine:

    ATTEMPT -> EVALUATE -> ACCEPT
                        -> ESCALATE -> ATTEMPT
                        -> GIVE_UP

Only the attempt counter and the best result so far carry over between
attempts. Attempts are strictly sequential.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

from idextract.config import settings
from idextract.errors import ExtractionError, IdExtractError, InvalidResponseError
from idextract.extraction.cancellation import CancellationToken, OperationCancelled
from idextract.extraction.client import GenerateRequest, OllamaClient
from idextract.extraction.confidence import overall_confidence, score_fields
from idextract.extraction.cross_validation import cross_validate, validation_score
from idextract.extraction.parser import parse_response
from idextract.extraction.prompts import build_prompt, select_template
from idextract.fields import FIELD_NAMES
from idextract.models import (
    Cancelled,
    ErrorDetail,
    ExtractionMetadata,
    ExtractionResponse,
    ExtractionResult,
    ImageQualityHint,
)

logger = logging.getLogger(__name__)

CUSTOM_TEMPLATE_NAME = "custom"


class ExtractionOptions(BaseModel):
    """Per-request extraction settings."""

    temperature: Optional[float] = Field(None, ge=0.0, le=1.0, description="Default: template's")
    max_tokens: Optional[int] = Field(None, gt=0, description="Default: template's")
    custom_prompt: Optional[str] = Field(None, description="Replaces the template entirely")
    custom_instructions: Optional[str] = None
    quality_hint: Optional[ImageQualityHint] = None
    focus_fields: list[str] = Field(default_factory=list)
    attempt: int = Field(1, ge=1)
    model: Optional[str] = None

    @field_validator("focus_fields")
    @classmethod
    def _known_fields(cls, value: list[str]) -> list[str]:
        unknown = [name for name in value if name not in FIELD_NAMES]
        if unknown:
            raise ValueError(f"Unknown fields: {', '.join(unknown)}")
        return value


@dataclass(frozen=True)
class ExtractionRequest:
    body: GenerateRequest
    template: str


def build_request(image: bytes, options: ExtractionOptions, model: str) -> ExtractionRequest:
    """Build the generate request for one attempt.

    Args:
        image: Encoded processed image.
        options: Extraction options for this attempt.
        model: Model identifier.

    Returns:
        ExtractionRequest with the request body and the template used.
    """
    template = select_template(options.quality_hint, options.focus_fields, options.attempt - 1)
    if options.custom_prompt:
        prompt, template_name = options.custom_prompt, CUSTOM_TEMPLATE_NAME
    else:
        prompt = build_prompt(
            template,
            options.quality_hint,
            options.focus_fields,
            options.custom_instructions,
        )
        template_name = template.name

    body = GenerateRequest.for_image(
        model=options.model or model,
        prompt=prompt,
        image=image,
        temperature=template.temperature if options.temperature is None else options.temperature,
        max_tokens=options.max_tokens or template.max_tokens,
    )
    return ExtractionRequest(body=body, template=template_name)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounds and thresholds of the retry loop."""

    max_retries: int = 2
    acceptance_score: float = 0.7
    retry_invalid_response: bool = False
    backoff_seconds: float = 1.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_retries=settings.max_retries,
            acceptance_score=settings.acceptance_score,
            backoff_seconds=settings.retry_backoff_seconds,
        )


class RetryState(str, Enum):
    ATTEMPT = "attempt"
    EVALUATE = "evaluate"
    ACCEPT = "accept"
    ESCALATE = "escalate"
    GIVE_UP = "give_up"


ExtractionOutcome = Union[ExtractionResult, Cancelled]


def _with_attempts(result: ExtractionResult, attempts: int) -> ExtractionResult:
    """Record the total number of attempts on the returned result."""
    metadata = result.metadata.model_copy(update={"attempts": attempts})
    return result.model_copy(update={"metadata": metadata})


class ExtractionRunner:
    """Runs extraction attempts against the model service."""

    def __init__(self, client: Optional[OllamaClient] = None, policy: Optional[RetryPolicy] = None):
        self.client = client or OllamaClient()
        self.policy = policy or RetryPolicy.from_settings()

    def _attempt(
        self,
        image: bytes,
        options: ExtractionOptions,
        token: CancellationToken,
        started: float,
    ) -> ExtractionResult:
        request = build_request(image, options, self.client.model)
        text = self.client.generate(request.body, token)
        parsed = parse_response(text)
        report = cross_validate(parsed.fields)

        return ExtractionResult(
            fields=parsed.fields,
            confidence=score_fields(parsed.fields),
            overall_confidence=overall_confidence(parsed.fields),
            validation=report,
            metadata=ExtractionMetadata(
                processing_time_ms=(time.perf_counter() - started) * 1000.0,
                model=request.body.model,
                image_quality=parsed.image_quality or options.quality_hint or ImageQualityHint.FAIR,
                warnings=parsed.warnings,
                attempts=options.attempt,
                prompt_template=request.template,
            ),
        )

    def _retryable(self, exc: ExtractionError) -> bool:
        if isinstance(exc, InvalidResponseError):
            return self.policy.retry_invalid_response
        return exc.retryable

    def run(
        self,
        image: bytes,
        options: Optional[ExtractionOptions] = None,
        token: Optional[CancellationToken] = None,
    ) -> ExtractionOutcome:
        """Extract fields from a processed image.

        Args:
            image: Encoded processed image.
            options: Options for the first attempt.
            token: Cancellation token; cancellation yields ``Cancelled``.

        Returns:
            The accepted result, the best result seen when attempts run out,
            or ``Cancelled``.

        Raises:
            ExtractionError: No attempt produced a result.
        """
        options = options or ExtractionOptions()
        token = token or CancellationToken()
        started = time.perf_counter()
        max_attempts = 1 + self.policy.max_retries

        state = RetryState.ATTEMPT
        attempt = 0
        best: Optional[ExtractionResult] = None
        best_score = -1.0
        current: Optional[ExtractionResult] = None
        last_error: Optional[ExtractionError] = None
        escalate_hint = False

        while True:
            if state is RetryState.ATTEMPT:
                attempt += 1
                options = options.model_copy(update={"attempt": attempt})
                try:
                    current = self._attempt(image, options, token, started)
                    state = RetryState.EVALUATE
                except OperationCancelled:
                    return Cancelled(attempts=attempt, reason=token.reason or "cancelled by caller")
                except ExtractionError as exc:
                    last_error = exc
                    logger.warning(
                        "Attempt %d failed: %s",
                        attempt,
                        exc.message,
                        extra={"attempt": attempt, "error_code": exc.code.value},
                    )
                    escalate_hint = False
                    state = RetryState.ESCALATE if self._retryable(exc) else RetryState.GIVE_UP

            elif state is RetryState.EVALUATE:
                score = validation_score(current.fields, current.validation)
                logger.info(
                    "Attempt %d scored %.2f (%d fields, %d errors)",
                    attempt,
                    score,
                    current.fields.detected_count,
                    len(current.validation.errors),
                    extra={"attempt": attempt},
                )
                if score > best_score:
                    best, best_score = current, score
                if score >= self.policy.acceptance_score:
                    state = RetryState.ACCEPT
                else:
                    escalate_hint = True
                    state = RetryState.ESCALATE

            elif state is RetryState.ESCALATE:
                if attempt >= max_attempts:
                    state = RetryState.GIVE_UP
                    continue
                if escalate_hint:
                    options = options.model_copy(update={"quality_hint": ImageQualityHint.POOR})
                if self.policy.backoff_seconds > 0 and token.wait(self.policy.backoff_seconds):
                    return Cancelled(attempts=attempt, reason=token.reason or "cancelled by caller")
                state = RetryState.ATTEMPT

            elif state is RetryState.ACCEPT:
                return _with_attempts(best, attempt)

            elif state is RetryState.GIVE_UP:
                if best is not None:
                    logger.info("Giving up after %d attempts; returning best result", attempt)
                    return _with_attempts(best, attempt)
                raise last_error

    def respond(
        self,
        image: bytes,
        options: Optional[ExtractionOptions] = None,
        token: Optional[CancellationToken] = None,
    ) -> Union[ExtractionResponse, Cancelled]:
        """Like ``run`` but wraps failures in the ``{success, error}`` shape."""
        try:
            outcome = self.run(image, options, token)
        except IdExtractError as exc:
            return ExtractionResponse(
                success=False,
                error=ErrorDetail(code=exc.code, message=exc.message, details=exc.details),
            )
        if isinstance(outcome, Cancelled):
            return outcome
        return ExtractionResponse(success=True, data=outcome)
