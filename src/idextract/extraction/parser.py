"""Response parsing - From free model text to a validated FieldSet.

The model may wrap its JSON in prose or code fences. Candidates are tried
in order: a ```json fence, any ``` fence, then the outermost ``{...}`` span.
The first candidate found is the one parsed; failure is reported as an
InvalidResponseError carrying a truncated copy of the text.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from idextract.errors import InvalidResponseError
from idextract.fields import FIELD_NAMES, clean_field, collapse_whitespace
from idextract.models import FieldSet, ImageQualityHint

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```json\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_ANY_FENCE = re.compile(r"```[a-zA-Z]*\s*(.*?)```", re.DOTALL)
# Greedy: spans first "{" to last "}", so a stray brace in trailing prose
# makes the candidate unparseable
_BRACE_SPAN = re.compile(r"(\{.*\})", re.DOTALL)

# Alternative keys seen in model output -> canonical field
KEY_ALIASES = {
    "seria_buletin": "seria",
    "numar_buletin": "numar",
    "numarul": "numar",
    "cetatenie": "nationalitate",
    "cetățenie": "nationalitate",
    "naționalitate": "nationalitate",
    "data_expirarii": "valabil_pana_la",
    "valabilitate": "valabil_pana_la",
}
COMBINED_SERIES_KEY = "seria_si_numarul"
_SERIES_AND_NUMBER = re.compile(r"^\s*([A-Za-z]{1,3})\s*[-/]?\s*(\d{6})\s*$")

# Checked in order; the first matching group wins
QUALITY_KEYWORDS = (
    (ImageQualityHint.POOR, ("blurry", "unclear", "illegible", "poor quality", "low quality")),
    (ImageQualityHint.EXCELLENT, ("excellent", "high quality", "very clear")),
    (ImageQualityHint.GOOD, ("clear", "good quality", "readable")),
)
WARNING_KEYWORDS = (
    (("unclear", "blurry", "illegible"), "Some text may be unclear or blurry"),
    (("damaged", "torn", "worn"), "Document may be damaged"),
    (("partial", "cut off", "cropped"), "Document may be partially visible"),
    (("glare", "reflection"), "Glare or reflections detected on the document"),
)


@dataclass
class ParsedResponse:
    """Structured content of one model reply."""

    fields: FieldSet
    raw: dict[str, Any]
    warnings: list[str] = field(default_factory=list)
    image_quality: Optional[ImageQualityHint] = None


def extract_json(text: str) -> dict[str, Any]:
    """Find and parse the JSON object in a model reply.

    Args:
        text: Raw model text.

    Returns:
        The parsed top-level object.

    Raises:
        InvalidResponseError: No candidate found, malformed JSON, or a
            top-level value that is not an object.
    """
    candidate = None
    for pattern in (_JSON_FENCE, _ANY_FENCE, _BRACE_SPAN):
        match = pattern.search(text)
        if match:
            candidate = match.group(1).strip()
            break

    if candidate is None:
        raise InvalidResponseError("No JSON object found in AI response", text)

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise InvalidResponseError(f"Malformed JSON in AI response: {exc.msg}", text) from exc

    if not isinstance(data, dict):
        raise InvalidResponseError(
            f"Expected a JSON object, got {type(data).__name__}", text
        )
    return data


def canonical_keys(data: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Map aliases and split a combined series/number value.

    Returns:
        Tuple of (values keyed by canonical field, warnings)
    """
    values: dict[str, Any] = {}
    warnings: list[str] = []
    for key, value in data.items():
        name = KEY_ALIASES.get(key.strip().lower(), key.strip().lower())
        if name in FIELD_NAMES and values.get(name) is None:
            values[name] = value

    combined = data.get(COMBINED_SERIES_KEY)
    if isinstance(combined, str) and combined.strip():
        match = _SERIES_AND_NUMBER.match(combined)
        if match:
            if values.get("seria") is None:
                values["seria"] = match.group(1)
            if values.get("numar") is None:
                values["numar"] = match.group(2)
        else:
            warnings.append(f"Could not split {COMBINED_SERIES_KEY} value '{combined}'")
    return values, warnings


def build_field_set(data: dict[str, Any]) -> tuple[FieldSet, list[str]]:
    """Normalize and validate raw values into a FieldSet.

    Values that fail their field validator become absent and produce a
    warning; nothing is coerced to a guessed value.
    """
    values, warnings = canonical_keys(data)
    cleaned: dict[str, Optional[str]] = {}
    for name in FIELD_NAMES:
        raw = values.get(name)
        value = clean_field(name, raw)
        cleaned[name] = value
        if value is None and raw not in (None, "") and not _is_null_text(raw):
            warnings.append(f"Field {name} has an invalid value and was discarded")
    return FieldSet(**cleaned), warnings


def _is_null_text(value: Any) -> bool:
    return isinstance(value, str) and value.strip().lower() in ("", "null", "none", "n/a", "-")


def assess_image_quality(text: str) -> Optional[ImageQualityHint]:
    """Image quality as described by the model's own prose, if any."""
    lowered = text.lower()
    for hint, keywords in QUALITY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return hint
    return None


def detect_warnings(text: str) -> list[str]:
    lowered = text.lower()
    return [message for keywords, message in WARNING_KEYWORDS if any(k in lowered for k in keywords)]


def _prose(text: str, data: dict[str, Any]) -> str:
    """Model text outside the JSON, plus any free-text notes inside it."""
    outside = _BRACE_SPAN.sub(" ", _ANY_FENCE.sub(" ", text))
    notes = [
        str(value)
        for key, value in data.items()
        if key.strip().lower() not in FIELD_NAMES and key != COMBINED_SERIES_KEY and isinstance(value, str)
    ]
    return collapse_whitespace(" ".join([outside, *notes]))


def parse_response(text: str) -> ParsedResponse:
    """Parse a model reply into fields, warnings and a quality assessment.

    Raises:
        InvalidResponseError: The reply holds no usable JSON object.
    """
    data = extract_json(text)
    fields, warnings = build_field_set(data)
    prose = _prose(text, data)
    warnings.extend(detect_warnings(prose))
    logger.debug("Parsed %d/%d fields", fields.detected_count, len(FIELD_NAMES))
    return ParsedResponse(
        fields=fields,
        raw=data,
        warnings=warnings,
        image_quality=assess_image_quality(prose),
    )
