"""Field extraction with a vision language model.

1. prompts - template selection and rendering
2. client - Ollama HTTP calls with cancellation
3. parser - JSON recovery and field normalization
4. confidence / cross_validation - scoring and consistency checks
5. request - retry loop producing the final result
"""

from .cancellation import CancellationToken, OperationCancelled
from .client import GenerateRequest, OllamaClient
from .confidence import confidence_to_level, overall_confidence, score_field, score_fields
from .cross_validation import cross_validate, validation_score
from .health import check_health
from .parser import ParsedResponse, extract_json, parse_response
from .prompts import TEMPLATES, PromptTemplate, build_prompt, quality_hint_from_metrics, select_template
from .request import (
    ExtractionOptions,
    ExtractionRunner,
    RetryPolicy,
    RetryState,
    build_request,
)

__all__ = [
    # Cancellation
    "CancellationToken",
    "OperationCancelled",
    # Transport
    "GenerateRequest",
    "OllamaClient",
    "check_health",
    # Prompts
    "TEMPLATES",
    "PromptTemplate",
    "build_prompt",
    "quality_hint_from_metrics",
    "select_template",
    # Parsing and scoring
    "ParsedResponse",
    "confidence_to_level",
    "cross_validate",
    "extract_json",
    "overall_confidence",
    "parse_response",
    "score_field",
    "score_fields",
    "validation_score",
    # Runner
    "ExtractionOptions",
    "ExtractionRunner",
    "RetryPolicy",
    "RetryState",
    "build_request",
]
