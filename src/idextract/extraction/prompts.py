"""Prompt templates for Romanian ID card extraction.

Templates differ in tone and sampling settings:
- base: standard extraction
- high_precision: excellent images, character-by-character reading
- robust: poor images and escalated retries, null over guessing
- focused: re-extraction of selected fields
- multi_shot: follow-up attempts with a worked example
"""

import json
from dataclasses import dataclass
from typing import Optional, Sequence

from idextract.fields import FIELD_KINDS, FIELD_NAMES, FIELD_RULES
from idextract.models import ImageQualityHint, QualityMetrics

FOCUS_PLACEHOLDER = "{focus_fields}"

EMPTY_OUTPUT = json.dumps({name: None for name in FIELD_NAMES}, indent=2)

EXAMPLE_OUTPUT = json.dumps(
    {
        "nume": "POPESCU",
        "prenume": "MARIA ELENA",
        "cnp": "2850315401233",
        "nationalitate": "ROMÂNĂ",
        "sex": "F",
        "data_nasterii": "15.03.1985",
        "locul_nasterii": "MUN. BUCUREȘTI",
        "domiciliul": "STR. VICTORIEI NR. 25, BL. A1, AP. 15, BUCUREȘTI",
        "seria": "RX",
        "numar": "123456",
        "data_eliberarii": "20.06.2020",
        "eliberat_de": "SPCLEP SECTOR 1",
        "valabil_pana_la": "15.03.2030",
    },
    ensure_ascii=False,
    indent=2,
)

QUALITY_CONTEXT = {
    ImageQualityHint.EXCELLENT: (
        "Image is high quality - extract all visible details with maximum precision."
    ),
    ImageQualityHint.GOOD: "Image quality is good - standard extraction protocols apply.",
    ImageQualityHint.FAIR: "Image quality is fair - focus on clearly readable text.",
    ImageQualityHint.POOR: (
        "Image quality is poor - extract only confidently readable information."
    ),
}


def field_list() -> str:
    """One line per field with its expected format."""
    return "\n".join(
        f"- {name}: {FIELD_RULES[kind].description}" for name, kind in FIELD_KINDS.items()
    )


def field_prompt(name: str) -> str:
    """Detailed instructions for one field, with examples and pitfalls."""
    rule = FIELD_RULES[FIELD_KINDS[name]]
    lines = [f"FIELD {name}:", f"Format: {rule.description}"]
    if rule.examples:
        lines.append("Examples: " + ", ".join(rule.examples))
    if rule.common_errors:
        lines.append("Avoid: " + "; ".join(rule.common_errors))
    return "\n".join(lines)


_COMMON_RULES = f"""REQUIRED FIELDS:
{field_list()}

RULES:
- Preserve Romanian diacritics (Ă, Â, Î, Ș, Ț).
- Dates use DD.MM.YYYY.
- The CNP has exactly 13 digits and no separators.
- seria holds only the letters and numar only the 6 digits of "RX 123456".
- Use null for any field that is not clearly readable."""


@dataclass(frozen=True)
class PromptTemplate:
    name: str
    description: str
    text: str
    temperature: float
    max_tokens: int


BASE_TEMPLATE = PromptTemplate(
    name="base",
    description="Standard extraction with full field coverage",
    temperature=0.1,
    max_tokens=2048,
    text=f"""You are an expert in Romanian identity cards (Carte de Identitate).
Read the document image and extract its fields.

{_COMMON_RULES}

Return ONLY a JSON object with exactly these keys, no other text:
{EXAMPLE_OUTPUT}""",
)

HIGH_PRECISION_TEMPLATE = PromptTemplate(
    name="high_precision",
    description="Maximum accuracy for high-quality images",
    temperature=0.05,
    max_tokens=2048,
    text=f"""You are a Romanian document verification specialist.
Read the identity card character by character and cross-check what you read.

{_COMMON_RULES}
- The CNP encodes the birth date: check it against data_nasterii.
- Dates must satisfy birth < issue < expiry.

Return ONLY the JSON object below with the extracted values:
{EMPTY_OUTPUT}""",
)

ROBUST_TEMPLATE = PromptTemplate(
    name="robust",
    description="Conservative extraction for poor or damaged images",
    temperature=0.15,
    max_tokens=1536,
    text=f"""You are reading a Romanian identity card photo that may be blurry, damaged or partly cut off.
Extract only text you can read with certainty. Do not complete missing characters and do not guess.
Prioritize nume, prenume, cnp and data_nasterii.

{_COMMON_RULES}

It is better to return null than an incorrect value.
Return ONLY the JSON object below:
{EMPTY_OUTPUT}""",
)

FOCUSED_TEMPLATE = PromptTemplate(
    name="focused",
    description="Targeted re-extraction of specific fields",
    temperature=0.08,
    max_tokens=1024,
    text=f"""You are re-reading specific fields of a Romanian identity card.

TARGET FIELDS:
{FOCUS_PLACEHOLDER}

{_COMMON_RULES}

Return ONLY the JSON object below; fields outside the target list may stay null:
{EMPTY_OUTPUT}""",
)

MULTI_SHOT_TEMPLATE = PromptTemplate(
    name="multi_shot",
    description="Follow-up attempt with a worked example",
    temperature=0.1,
    max_tokens=3072,
    text=f"""You are an expert in Romanian identity cards. A previous reading of this card was incomplete.

{_COMMON_RULES}

EXAMPLE of a correct answer for a different card:
{EXAMPLE_OUTPUT}

Now read the card in the image and return ONLY the JSON object for it.""",
)

TEMPLATES = {
    template.name: template
    for template in (
        BASE_TEMPLATE,
        HIGH_PRECISION_TEMPLATE,
        ROBUST_TEMPLATE,
        FOCUSED_TEMPLATE,
        MULTI_SHOT_TEMPLATE,
    )
}


def select_template(
    quality_hint: Optional[ImageQualityHint] = None,
    focus_fields: Sequence[str] = (),
    previous_attempts: int = 0,
) -> PromptTemplate:
    """Pick a template for the image quality and attempt history."""
    if quality_hint is ImageQualityHint.EXCELLENT:
        return HIGH_PRECISION_TEMPLATE
    if quality_hint is ImageQualityHint.POOR:
        return ROBUST_TEMPLATE
    if focus_fields:
        return FOCUSED_TEMPLATE
    if previous_attempts > 0:
        return MULTI_SHOT_TEMPLATE
    return BASE_TEMPLATE


def build_prompt(
    template: PromptTemplate,
    quality_hint: Optional[ImageQualityHint] = None,
    focus_fields: Sequence[str] = (),
    custom_instructions: Optional[str] = None,
) -> str:
    """Render a template with focus fields, extra instructions and quality context."""
    text = template.text
    if FOCUS_PLACEHOLDER in text:
        targets = focus_fields or FIELD_NAMES
        text = text.replace(FOCUS_PLACEHOLDER, "\n\n".join(field_prompt(name) for name in targets))

    sections = [text]
    if custom_instructions:
        sections.append(f"ADDITIONAL INSTRUCTIONS:\n{custom_instructions}")
    if quality_hint is not None:
        sections.append(f"IMAGE QUALITY CONTEXT: {QUALITY_CONTEXT[quality_hint]}")
    return "\n\n".join(sections)


def quality_hint_from_metrics(metrics: QualityMetrics) -> ImageQualityHint:
    """Map the quality assessment label onto a prompt hint."""
    try:
        return ImageQualityHint(metrics.assessment.lower())
    except ValueError:
        return ImageQualityHint.FAIR
