"""Confidence scoring for extracted fields.

Scores are computed from the validated FieldSet only, never from the raw
model text, so identical field values always score the same.
"""

from typing import Optional

from idextract.fields import FIELD_NAMES, FieldKind, field_kind
from idextract.models import ConfidenceLevel, FieldConfidence, FieldSet

BASE_SCORE = 0.7
PNC_SCORE = 0.95
DATE_SCORE = 0.9
LONG_TEXT_SCORE = 0.8
LONG_TEXT_LENGTH = 10

DETECTION_WEIGHT = 0.8
KEY_FIELDS_BONUS = 0.1
KEY_FIELDS = ("nume", "cnp")


def confidence_to_level(score: float) -> ConfidenceLevel:
    """Convert numeric confidence to confidence level.

    Args:
        score: Confidence score in [0, 1].

    Returns:
        ConfidenceLevel enum value.
    """
    if score > 0.8:
        return ConfidenceLevel.HIGH
    elif score > 0.5:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def score_field(name: str, value: Optional[str]) -> FieldConfidence:
    """Confidence for one field value.

    Values in a FieldSet already passed their validator, so the kind alone
    decides the boost for codes and dates.
    """
    if value is None:
        return FieldConfidence(score=0.0, level=ConfidenceLevel.LOW, reason="Field not detected")

    kind = field_kind(name)
    if kind is FieldKind.PNC:
        score, reason = PNC_SCORE, "Valid personal numeric code format"
    elif kind is FieldKind.DATE:
        score, reason = DATE_SCORE, "Valid date format"
    elif len(value) > LONG_TEXT_LENGTH:
        score, reason = LONG_TEXT_SCORE, "Substantial text content detected"
    else:
        score, reason = BASE_SCORE, "Field detected"
    return FieldConfidence(score=score, level=confidence_to_level(score), reason=reason)


def score_fields(fields: FieldSet) -> dict[str, FieldConfidence]:
    return {name: score_field(name, getattr(fields, name)) for name in FIELD_NAMES}


def overall_confidence(fields: FieldSet) -> FieldConfidence:
    """Detection rate x 0.8, +0.1 when both name and CNP are present."""
    detected = fields.detected_count
    if detected == 0:
        return FieldConfidence(score=0.0, level=ConfidenceLevel.LOW, reason="No fields detected")

    score = detected / len(FIELD_NAMES) * DETECTION_WEIGHT
    if all(getattr(fields, name) is not None for name in KEY_FIELDS):
        score += KEY_FIELDS_BONUS
    score = min(1.0, score)
    return FieldConfidence(
        score=score,
        level=confidence_to_level(score),
        reason=f"Detected {detected}/{len(FIELD_NAMES)} fields",
    )
