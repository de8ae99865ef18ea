"""Tests for model response parsing."""

import json

import pytest

from idextract.errors import ErrorCode, InvalidResponseError
from idextract.extraction.parser import extract_json, parse_response
from idextract.models import ImageQualityHint


class TestExtractJson:
    """Tests for locating the JSON object in model text."""

    def test_json_fence(self):
        assert extract_json('```json\n{"nume":"POPESCU"}\n```') == {"nume": "POPESCU"}

    def test_plain_fence(self):
        assert extract_json('```\n{"nume": "POPESCU"}\n```') == {"nume": "POPESCU"}

    def test_object_inside_prose(self):
        text = 'Here are the fields: {"nume": "POPESCU", "cnp": null} Hope this helps.'
        assert extract_json(text) == {"nume": "POPESCU", "cnp": None}

    def test_stray_brace_after_object_is_malformed(self):
        """The unfenced candidate runs to the last closing brace."""
        with pytest.raises(InvalidResponseError, match="Malformed JSON"):
            extract_json('{"nume": "POPESCU"} see note }')

    def test_fence_avoids_stray_brace(self):
        text = '```json\n{"nume": "POPESCU"}\n```\nsee note }'
        assert extract_json(text) == {"nume": "POPESCU"}

    def test_no_json(self):
        with pytest.raises(InvalidResponseError) as exc_info:
            extract_json("I cannot read this document.")

        assert exc_info.value.code == ErrorCode.INVALID_RESPONSE
        assert exc_info.value.raw_response == "I cannot read this document."

    def test_malformed_json(self):
        with pytest.raises(InvalidResponseError, match="Malformed JSON"):
            extract_json('{"nume": }')

    def test_top_level_array(self):
        with pytest.raises(InvalidResponseError, match="Expected a JSON object"):
            extract_json('```json\n["POPESCU"]\n```')

    def test_raw_response_is_truncated(self):
        with pytest.raises(InvalidResponseError) as exc_info:
            extract_json("x" * 2000)
        assert len(exc_info.value.raw_response) == 500
        assert exc_info.value.to_dict()["details"]["raw_response"] == "x" * 500


class TestParseResponse:
    """Tests for field cleaning and prose analysis."""

    def test_fields_are_normalized(self):
        reply = json.dumps(
            {
                "nume": "popescu",
                "data_nasterii": "15/03/1985",
                "cnp": "1850315123455",
                "sex": "Masculin",
            }
        )
        parsed = parse_response(reply)

        assert parsed.fields.nume == "POPESCU"
        assert parsed.fields.data_nasterii == "15.03.1985"
        assert parsed.fields.sex == "M"
        assert parsed.fields.prenume is None
        assert parsed.warnings == []

    def test_invalid_value_discarded_with_warning(self):
        parsed = parse_response('{"data_nasterii": "31.02.1990", "nume": "POPESCU"}')

        assert parsed.fields.data_nasterii is None
        assert parsed.fields.nume == "POPESCU"
        assert "Field data_nasterii has an invalid value and was discarded" in parsed.warnings

    def test_null_strings_are_absent_without_warning(self):
        parsed = parse_response('{"nume": "null", "prenume": "N/A"}')
        assert parsed.fields.detected_count == 0
        assert parsed.warnings == []

    def test_combined_series_and_number(self):
        parsed = parse_response('{"seria_si_numarul": "RX 123456"}')
        assert parsed.fields.seria == "RX"
        assert parsed.fields.numar == "123456"

    def test_unsplittable_combined_value(self):
        parsed = parse_response('{"seria_si_numarul": "unreadable"}')
        assert parsed.fields.seria is None
        assert any("seria_si_numarul" in warning for warning in parsed.warnings)

    def test_key_aliases(self):
        parsed = parse_response('{"cetatenie": "Română / ROU", "data_expirarii": "15.03.2030"}')
        assert parsed.fields.nationalitate == "ROMÂNĂ"
        assert parsed.fields.valabil_pana_la == "15.03.2030"

    def test_unknown_keys_ignored(self):
        parsed = parse_response('{"nume": "POPESCU", "semnatura": "present"}')
        assert parsed.fields.present() == {"nume": "POPESCU"}
        assert parsed.raw["semnatura"] == "present"

    def test_quality_and_warnings_from_prose(self):
        reply = 'The image is blurry and has some glare.\n```json\n{"nume": "POPESCU"}\n```'
        parsed = parse_response(reply)

        assert parsed.image_quality == ImageQualityHint.POOR
        assert "Some text may be unclear or blurry" in parsed.warnings
        assert "Glare or reflections detected on the document" in parsed.warnings

    def test_clear_image(self):
        parsed = parse_response('The card is clear and readable. {"nume": "POPESCU"}')
        assert parsed.image_quality == ImageQualityHint.GOOD

    def test_field_values_do_not_count_as_prose(self):
        parsed = parse_response('{"domiciliul": "STR. CLEAR NR. 1"}')
        assert parsed.image_quality is None
