"""Tests for cross-field consistency checks."""

import pytest

from idextract.extraction.cross_validation import (
    EXPIRY_BEFORE_ISSUE,
    ISSUE_BEFORE_BIRTH,
    cross_validate,
    validation_score,
)
from idextract.models import FieldSet


def _with(fields: FieldSet, **changes) -> FieldSet:
    return FieldSet(**{**fields.model_dump(), **changes})


class TestDates:
    """Tests for date ordering."""

    def test_consistent_card(self, complete_fields):
        report = cross_validate(complete_fields)
        assert report.is_valid
        assert report.errors == []
        assert report.warnings == []

    def test_issue_on_birth_date(self):
        report = cross_validate(FieldSet(data_nasterii="01.01.2020", data_eliberarii="01.01.2020"))
        assert not report.is_valid
        assert ISSUE_BEFORE_BIRTH in report.errors

    def test_expiry_before_issue(self):
        report = cross_validate(FieldSet(data_eliberarii="20.06.2020", valabil_pana_la="19.06.2020"))
        assert report.errors == [EXPIRY_BEFORE_ISSUE]

    def test_expiry_not_on_birthday_warns(self, complete_fields):
        report = cross_validate(_with(complete_fields, valabil_pana_la="20.06.2030"))
        assert report.is_valid
        assert any("birthday" in warning for warning in report.warnings)

    def test_missing_dates_are_not_errors(self):
        assert cross_validate(FieldSet(nume="POPESCU")).is_valid


class TestPersonalNumericCode:
    """Tests for consistency with the CNP."""

    def test_birth_date_mismatch(self, complete_fields):
        report = cross_validate(_with(complete_fields, data_nasterii="16.03.1985", valabil_pana_la="16.03.2030"))
        assert not report.is_valid
        assert any("does not match personal numeric code" in error for error in report.errors)

    def test_sex_mismatch(self, complete_fields):
        report = cross_validate(_with(complete_fields, sex="M"))
        assert any(error.startswith("sex M") for error in report.errors)

    def test_impossible_embedded_date(self):
        report = cross_validate(FieldSet(cnp="1850231123455"))
        assert not report.is_valid

    def test_checksum_is_a_warning(self):
        report = cross_validate(FieldSet(cnp="1850315123456"))
        assert report.is_valid
        assert "personal numeric code check digit does not match" in report.warnings

    def test_unassigned_county_code(self):
        report = cross_validate(FieldSet(cnp="1850315493450"))
        assert any("unknown county code 49" in warning for warning in report.warnings)


class TestCounties:
    def test_series_from_other_county(self, complete_fields):
        report = cross_validate(_with(complete_fields, seria="KX"))
        assert report.is_valid
        assert any("series KX was issued in Cluj" in warning for warning in report.warnings)

    def test_cnp_county_differs_from_birthplace(self, complete_fields):
        report = cross_validate(_with(complete_fields, locul_nasterii="MUN. CLUJ-NAPOCA JUD. CJ", seria="CJ"))
        assert any("registered in București" in warning for warning in report.warnings)


class TestValidationScore:
    def test_complete_and_consistent(self, complete_fields):
        assert validation_score(complete_fields, cross_validate(complete_fields)) == pytest.approx(1.0)

    def test_errors_are_penalized(self, complete_fields):
        fields = _with(complete_fields, sex="M")
        assert validation_score(fields, cross_validate(fields)) == pytest.approx(0.9)

    def test_score_is_clamped(self):
        fields = FieldSet(
            cnp="2850315401233",
            sex="M",
            data_nasterii="16.03.1985",
            data_eliberarii="16.03.1985",
            valabil_pana_la="01.01.1980",
        )
        assert len(cross_validate(fields).errors) == 4
        assert validation_score(fields, cross_validate(fields)) == 0.0
