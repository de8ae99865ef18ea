"""Helpers for the Romanian personal numeric code (CNP).

Layout: ``S YY MM DD JJ NNN C`` where S encodes sex and century, JJ is the
county of registration and C is a checksum over the first twelve digits.
"""

from typing import Optional

from idextract.fields import DAYS_IN_MONTH, is_leap_year, validate_pnc

CHECKSUM_KEY = "279146358279"

# First digit -> century of birth
CENTURY_BY_MARKER = {
    "1": 1900,
    "2": 1900,
    "3": 1800,
    "4": 1800,
    "5": 2000,
    "6": 2000,
    "7": 1900,
    "8": 1900,
}

# County codes that were never assigned
UNASSIGNED_COUNTY_CODES = frozenset({49, 50})


def birth_date_parts(cnp: str) -> Optional[tuple[int, int, int]]:
    """Decode the embedded birth date as ``(year, month, day)``.

    Returns None when the code is structurally invalid or the embedded day
    does not exist in that month and year.
    """
    if not validate_pnc(cnp):
        return None
    year = CENTURY_BY_MARKER[cnp[0]] + int(cnp[1:3])
    month = int(cnp[3:5])
    day = int(cnp[5:7])
    if day > DAYS_IN_MONTH[month - 1]:
        return None
    if month == 2 and day == 29 and not is_leap_year(year):
        return None
    return year, month, day


def birth_date(cnp: str) -> Optional[str]:
    """Embedded birth date formatted as ``DD.MM.YYYY``."""
    parts = birth_date_parts(cnp)
    if parts is None:
        return None
    year, month, day = parts
    return f"{day:02d}.{month:02d}.{year}"


def sex(cnp: str) -> Optional[str]:
    """M for odd markers, F for even ones."""
    if not validate_pnc(cnp):
        return None
    return "M" if int(cnp[0]) % 2 == 1 else "F"


def county_code(cnp: str) -> Optional[int]:
    if not validate_pnc(cnp):
        return None
    return int(cnp[7:9])


def is_valid_county_code(code: int) -> bool:
    return 1 <= code <= 52 and code not in UNASSIGNED_COUNTY_CODES


def checksum_digit(cnp: str) -> int:
    """Compute the control digit for the first twelve digits."""
    total = sum(int(digit) * int(weight) for digit, weight in zip(cnp[:12], CHECKSUM_KEY))
    remainder = total % 11
    return 1 if remainder == 10 else remainder


def has_valid_checksum(cnp: str) -> bool:
    if not validate_pnc(cnp):
        return False
    return checksum_digit(cnp) == int(cnp[12])


def expected_expiry(cnp: str, issue_year: int, validity_years: int = 10) -> Optional[str]:
    """Expiry date of a card issued in ``issue_year``.

    Romanian cards expire on the holder's birthday. February 29 birthdays
    fall back to February 28 in non-leap expiry years.
    """
    parts = birth_date_parts(cnp)
    if parts is None:
        return None
    _, month, day = parts
    year = issue_year + validity_years
    if month == 2 and day == 29 and not is_leap_year(year):
        day = 28
    return f"{day:02d}.{month:02d}.{year}"
