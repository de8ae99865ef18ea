"""Tests for prompt templates."""

import json

import pytest

from idextract.extraction.cross_validation import cross_validate
from idextract.extraction.parser import parse_response
from idextract.extraction.prompts import (
    EXAMPLE_OUTPUT,
    TEMPLATES,
    build_prompt,
    field_prompt,
    quality_hint_from_metrics,
    select_template,
)
from idextract.fields import FIELD_NAMES
from idextract.models import ImageQualityHint, QualityMetrics


class TestSelectTemplate:
    """Tests for template selection."""

    def test_default(self):
        assert select_template().name == "base"

    def test_quality_hints(self):
        assert select_template(ImageQualityHint.EXCELLENT).name == "high_precision"
        assert select_template(ImageQualityHint.POOR).name == "robust"
        assert select_template(ImageQualityHint.GOOD).name == "base"

    def test_focus_fields(self):
        assert select_template(focus_fields=["cnp"]).name == "focused"

    def test_poor_quality_wins_over_focus(self):
        assert select_template(ImageQualityHint.POOR, ["cnp"]).name == "robust"

    def test_follow_up_attempt(self):
        assert select_template(previous_attempts=1).name == "multi_shot"


class TestBuildPrompt:
    def test_every_template_lists_every_field(self):
        for template in TEMPLATES.values():
            text = build_prompt(template)
            for name in FIELD_NAMES:
                assert name in text, f"{template.name} is missing {name}"

    def test_focus_fields_rendered(self):
        text = build_prompt(TEMPLATES["focused"], focus_fields=["cnp", "seria"])
        assert "{focus_fields}" not in text
        assert "FIELD cnp:" in text
        assert "FIELD seria:" in text
        assert "FIELD nume:" not in text

    def test_additional_instructions_and_quality(self):
        text = build_prompt(
            TEMPLATES["base"],
            quality_hint=ImageQualityHint.POOR,
            custom_instructions="Ignore the photo.",
        )
        assert "ADDITIONAL INSTRUCTIONS:\nIgnore the photo." in text
        assert text.endswith(
            "IMAGE QUALITY CONTEXT: Image quality is poor - extract only confidently readable information."
        )

    def test_field_prompt_has_examples(self):
        assert "Examples: POPESCU" in field_prompt("nume")

    def test_example_output_is_consistent(self):
        """The worked example must itself pass parsing and cross-checks."""
        parsed = parse_response(EXAMPLE_OUTPUT)
        assert parsed.fields.detected_count == len(FIELD_NAMES)
        assert cross_validate(parsed.fields).errors == []
        assert json.loads(EXAMPLE_OUTPUT).keys() == set(FIELD_NAMES)

    @pytest.mark.parametrize(
        "name,temperature,max_tokens",
        [("base", 0.1, 2048), ("high_precision", 0.05, 2048), ("robust", 0.15, 1536), ("focused", 0.08, 1024), ("multi_shot", 0.1, 3072)],
    )
    def test_sampling_settings(self, name, temperature, max_tokens):
        assert TEMPLATES[name].temperature == temperature
        assert TEMPLATES[name].max_tokens == max_tokens


def test_quality_hint_from_metrics():
    metrics = QualityMetrics(
        brightness=0.6,
        contrast=0.6,
        sharpness=0.9,
        noise_level=0.0,
        resolution=1.0,
        color_balance=1.0,
        overall_score=0.95,
        assessment="Excellent",
    )
    assert quality_hint_from_metrics(metrics) == ImageQualityHint.EXCELLENT
    assert quality_hint_from_metrics(metrics.model_copy(update={"assessment": "?"})) == ImageQualityHint.FAIR
