"""Tests for CNP helpers and the county table."""

import pytest

from idextract import cnp
from idextract.counties import (
    COUNTIES,
    county_for_cnp_code,
    county_for_place,
    county_for_series,
    get_county_by_code,
    is_locality_in_county,
)


class TestCnpDecoding:
    """Tests for data embedded in the CNP."""

    def test_birth_date(self):
        assert cnp.birth_date("1850315123455") == "15.03.1985"

    @pytest.mark.parametrize(
        "code,year",
        [("1850315123455", 1985), ("3850315123455", 1885), ("5050315123455", 2005), ("7850315123455", 1985)],
    )
    def test_century_marker(self, code, year):
        assert cnp.birth_date_parts(code)[0] == year

    def test_sex(self):
        assert cnp.sex("1850315123455") == "M"
        assert cnp.sex("2850315401233") == "F"

    def test_impossible_birth_day(self):
        assert cnp.birth_date("1850231123455") is None
        assert cnp.birth_date("1010229123455") is None

    def test_invalid_structure(self):
        assert cnp.birth_date("9850315123456") is None
        assert cnp.sex("123") is None
        assert cnp.county_code("abc") is None


class TestChecksum:
    def test_valid_checksum(self):
        assert cnp.has_valid_checksum("1850315123455")
        assert cnp.has_valid_checksum("2850315401233")

    def test_invalid_checksum(self):
        assert not cnp.has_valid_checksum("1850315123456")

    def test_checksum_digit(self):
        assert cnp.checksum_digit("185031512345") == 5


class TestCountyCodes:
    def test_county_code(self):
        assert cnp.county_code("1850315123455") == 12

    def test_unassigned_codes(self):
        assert not cnp.is_valid_county_code(49)
        assert not cnp.is_valid_county_code(50)
        assert not cnp.is_valid_county_code(0)
        assert cnp.is_valid_county_code(52)

    def test_expected_expiry_on_birthday(self):
        assert cnp.expected_expiry("1850315123455", 2020) == "15.03.2030"


class TestCounties:
    """Tests for county lookups."""

    def test_table_is_consistent(self):
        codes = [county.code for county in COUNTIES]
        assert len(codes) == len(set(codes))
        assert get_county_by_code("CJ").name == "Cluj"

    def test_series_lookup(self):
        assert county_for_series("KX").code == "CJ"
        assert county_for_series("RX").code == "B"
        assert county_for_series("QQ") is None

    def test_cnp_code_lookup(self):
        assert county_for_cnp_code(12).code == "CJ"
        assert county_for_cnp_code(45).code == "B"
        assert county_for_cnp_code(49) is None

    def test_place_with_county_abbreviation(self):
        assert county_for_place("MUN. CLUJ-NAPOCA JUD. CJ").code == "CJ"

    def test_place_without_diacritics(self):
        assert county_for_place("MUN. BUCURESTI").code == "B"
        assert county_for_place("TIMIȘOARA").code == "TM"

    def test_unknown_place(self):
        assert county_for_place("SAT NECUNOSCUT") is None

    def test_locality_in_county(self):
        assert is_locality_in_county("CLUJ-NAPOCA", "cj")
        assert not is_locality_in_county("CLUJ-NAPOCA", "TM")
