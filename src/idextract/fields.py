"""Field rules for Romanian identity card data.

Each field of the card belongs to one ``FieldKind``. Every kind has exactly one
``FieldRule`` (validator, normalizer, human-readable format and examples) in
``FIELD_RULES``; a kind without a rule fails at import time.

Normalizers return ``None`` for values that cannot be turned into the
canonical form, and they are idempotent: normalizing an already normalized
value returns it unchanged.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional


class FieldKind(str, Enum):
    """Closed set of field value shapes."""

    NAME = "name"
    PLACE = "place"
    PNC = "pnc"
    DATE = "date"
    ADDRESS = "address"
    SERIES = "series"
    NUMBER = "number"
    AUTHORITY = "authority"
    NATIONALITY = "nationality"
    SEX = "sex"


# Canonical field order of the structured result
FIELD_KINDS: dict[str, FieldKind] = {
    "nume": FieldKind.NAME,
    "prenume": FieldKind.NAME,
    "cnp": FieldKind.PNC,
    "nationalitate": FieldKind.NATIONALITY,
    "sex": FieldKind.SEX,
    "data_nasterii": FieldKind.DATE,
    "locul_nasterii": FieldKind.PLACE,
    "domiciliul": FieldKind.ADDRESS,
    "seria": FieldKind.SERIES,
    "numar": FieldKind.NUMBER,
    "data_eliberarii": FieldKind.DATE,
    "eliberat_de": FieldKind.AUTHORITY,
    "valabil_pana_la": FieldKind.DATE,
}

FIELD_NAMES: tuple[str, ...] = tuple(FIELD_KINDS)

DATE_FIELDS: tuple[str, ...] = tuple(
    name for name, kind in FIELD_KINDS.items() if kind is FieldKind.DATE
)

MIN_YEAR = 1800
MAX_YEAR = 2999
DAYS_IN_MONTH = (31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

_WHITESPACE = re.compile(r"\s+")
_DATE_PATTERN = re.compile(r"^(\d{2})\.(\d{2})\.(\d{4})$")
_DATE_PARTS = re.compile(r"^(\d{1,2})[./\-](\d{1,2})[./\-](\d{4})$")
_PNC_PATTERN = re.compile(r"^[1-8]\d{12}$")
_SERIES_PATTERN = re.compile(r"^[A-Z]{1,3}$")
_NUMBER_PATTERN = re.compile(r"^\d{6}$")
_ADDRESS_MARKERS = re.compile(
    r"(STR\.|CALEA|BDUL|B-DUL|ȘOS\.|SOS\.|PIAȚA|PIATA|ALEEA|NR\.|BL\.|AP\.|ET\.|SC\.|"
    r"JUD\.|COM\.|SAT\.|MUN\.|ORȘ\.|ORS\.|SECT\.|\d)",
    re.IGNORECASE,
)
_AUTHORITY_MARKERS = re.compile(r"(SPCLEP|EVIDEN[TȚ]A|PERSOANE|POLI[TȚ]IA)", re.IGNORECASE)
_SEX_WORDS = {"M": "M", "F": "F", "MASCULIN": "M", "FEMININ": "F", "MALE": "M", "FEMALE": "F"}


def is_leap_year(year: int) -> bool:
    """Gregorian leap year rule."""
    return (year % 4 == 0 and year % 100 != 0) or year % 400 == 0


def collapse_whitespace(value: str) -> str:
    """Trim and collapse internal runs of whitespace to single spaces."""
    return _WHITESPACE.sub(" ", value).strip()


def _is_text(value: str, extra: str) -> bool:
    """All characters are letters (any script) or one of ``extra``."""
    return bool(value) and all(ch.isalpha() or ch in extra for ch in value)


# Validators


def validate_name(value: str) -> bool:
    """Uppercase letters with spaces, hyphens or apostrophes, at least 2 chars."""
    return (
        len(value) >= 2
        and value == value.upper()
        and _is_text(value, " -'")
        and value == collapse_whitespace(value)
    )


def validate_place(value: str) -> bool:
    """Like a name, but county abbreviations such as "JUD. CJ" are allowed."""
    return (
        len(value) >= 2
        and value == value.upper()
        and _is_text(value, " -'.,")
        and any(ch.isalpha() for ch in value)
    )


def validate_pnc(value: str) -> bool:
    """Structural check of a personal numeric code (CNP).

    13 digits, a century/sex marker in 1-8 and plausible month and day.
    Checksum and county code are reported separately as warnings.
    """
    if not _PNC_PATTERN.match(value):
        return False
    month = int(value[3:5])
    day = int(value[5:7])
    return 1 <= month <= 12 and 1 <= day <= 31


def validate_date(value: str) -> bool:
    """Check a ``DD.MM.YYYY`` date, including the February 29 rule."""
    match = _DATE_PATTERN.match(value)
    if not match:
        return False
    day, month, year = (int(part) for part in match.groups())
    if not MIN_YEAR <= year <= MAX_YEAR or not 1 <= month <= 12:
        return False
    if not 1 <= day <= DAYS_IN_MONTH[month - 1]:
        return False
    if month == 2 and day == 29 and not is_leap_year(year):
        return False
    return True


def validate_address(value: str) -> bool:
    """At least one street/number marker or a digit."""
    return len(value) >= 5 and bool(_ADDRESS_MARKERS.search(value))


def validate_series(value: str) -> bool:
    return bool(_SERIES_PATTERN.match(value))


def validate_number(value: str) -> bool:
    return bool(_NUMBER_PATTERN.match(value))


def validate_authority(value: str) -> bool:
    return len(value) >= 3 and bool(_AUTHORITY_MARKERS.search(value))


def validate_nationality(value: str) -> bool:
    return len(value) >= 3 and value == value.upper() and _is_text(value, " -")


def validate_sex(value: str) -> bool:
    return value in ("M", "F")


# Normalizers


def normalize_text(value: str) -> Optional[str]:
    """Collapse whitespace and uppercase, keeping diacritics as they are."""
    text = collapse_whitespace(value).upper()
    return text or None


def normalize_pnc(value: str) -> Optional[str]:
    digits = re.sub(r"\D", "", value)
    return digits or None


def normalize_date(value: str) -> Optional[str]:
    """Rewrite ``D.M.YYYY``, ``DD/MM/YYYY`` or ``DD-MM-YYYY`` as ``DD.MM.YYYY``."""
    match = _DATE_PARTS.match(re.sub(r"\s", "", value))
    if not match:
        return None
    day, month, year = match.groups()
    return f"{int(day):02d}.{int(month):02d}.{year}"


def normalize_address(value: str) -> Optional[str]:
    text = collapse_whitespace(value)
    return text or None


def normalize_series(value: str) -> Optional[str]:
    text = re.sub(r"\s", "", value).upper()
    return text or None


def normalize_number(value: str) -> Optional[str]:
    digits = re.sub(r"\D", "", value)
    return digits or None


def normalize_nationality(value: str) -> Optional[str]:
    """Keep the part before "/" (cards print "Română / ROU")."""
    return normalize_text(value.split("/")[0])


def normalize_sex(value: str) -> Optional[str]:
    text = collapse_whitespace(value).upper()
    return _SEX_WORDS.get(text)


@dataclass(frozen=True)
class FieldRule:
    """Validation and normalization rule for one field kind."""

    validate: Callable[[str], bool]
    normalize: Callable[[str], Optional[str]]
    description: str
    examples: tuple[str, ...] = field(default_factory=tuple)
    common_errors: tuple[str, ...] = field(default_factory=tuple)


FIELD_RULES: dict[FieldKind, FieldRule] = {
    FieldKind.NAME: FieldRule(
        validate_name,
        normalize_text,
        "Uppercase letters including Romanian diacritics (Ă Â Î Ș Ț), spaces or hyphens",
        ("POPESCU", "IONESCU-POPA", "ȘTEFĂNESCU"),
        ("Missing diacritics", "Mixed case"),
    ),
    FieldKind.PLACE: FieldRule(
        validate_place,
        normalize_text,
        "Locality, optionally with county abbreviation, uppercase",
        ("BUCUREȘTI", "MUN. CLUJ-NAPOCA JUD. CJ"),
        ("Full address instead of locality",),
    ),
    FieldKind.PNC: FieldRule(
        validate_pnc,
        normalize_pnc,
        "Exactly 13 digits, first digit 1-8, embedded YYMMDD birth date",
        ("1850315123456", "2900101123453"),
        ("Spaces or separators inside the code", "12 or 14 digits"),
    ),
    FieldKind.DATE: FieldRule(
        validate_date,
        normalize_date,
        "DD.MM.YYYY with a valid calendar day",
        ("15.03.1985", "01.12.2020"),
        ("MM.DD.YYYY order", "Two-digit year"),
    ),
    FieldKind.ADDRESS: FieldRule(
        validate_address,
        normalize_address,
        "Street address with markers such as STR., NR., BL., AP. or a house number",
        ("STR. VICTORIEI NR. 25, BL. A1, AP. 15, BUCUREȘTI",),
        ("Only the locality name",),
    ),
    FieldKind.SERIES: FieldRule(
        validate_series,
        normalize_series,
        "1 to 3 uppercase letters",
        ("RX", "CJ", "KX"),
        ("Series and number in one value",),
    ),
    FieldKind.NUMBER: FieldRule(
        validate_number,
        normalize_number,
        "Exactly 6 digits",
        ("123456",),
        ("Series letters included",),
    ),
    FieldKind.AUTHORITY: FieldRule(
        validate_authority,
        normalize_text,
        "Issuing office, usually SPCLEP followed by the locality",
        ("SPCLEP SECTOR 1", "SPCLEP CLUJ-NAPOCA"),
        ("Only the locality name",),
    ),
    FieldKind.NATIONALITY: FieldRule(
        validate_nationality,
        normalize_nationality,
        "Nationality in uppercase, text before any '/' separator",
        ("ROMÂNĂ",),
        ("Country code only",),
    ),
    FieldKind.SEX: FieldRule(
        validate_sex,
        normalize_sex,
        "M or F",
        ("M", "F"),
        ("Full word instead of a letter",),
    ),
}

_missing_rules = set(FieldKind) - FIELD_RULES.keys()
if _missing_rules:
    raise RuntimeError(f"Field kinds without rules: {sorted(k.value for k in _missing_rules)}")


def field_kind(name: str) -> FieldKind:
    """Look up the kind of a canonical field.

    Raises:
        KeyError: If ``name`` is not a canonical field.
    """
    return FIELD_KINDS[name]


def validate_field(name: str, value: str) -> bool:
    """Run the structural validator of a canonical field."""
    return FIELD_RULES[field_kind(name)].validate(value)


def normalize_field(name: str, value: str) -> Optional[str]:
    """Canonicalize a raw value for a canonical field."""
    return FIELD_RULES[field_kind(name)].normalize(value)


def clean_field(name: str, value: object) -> Optional[str]:
    """Normalize and validate a raw model value.

    Args:
        name: Canonical field name.
        value: Raw value from the model reply (any JSON type).

    Returns:
        The normalized value, or None when it is missing, empty or fails
        the field's validator. Values are never guessed or coerced beyond
        the normalizer.
    """
    if value is None or isinstance(value, (bool, dict, list)):
        return None
    text = str(value)
    if not text.strip() or text.strip().lower() in ("null", "none", "n/a", "-"):
        return None
    normalized = normalize_field(name, text)
    if normalized is None or not validate_field(name, normalized):
        return None
    return normalized


def parse_date(value: str) -> tuple[int, int, int]:
    """Split a valid ``DD.MM.YYYY`` string into ``(year, month, day)``."""
    day, month, year = value.split(".")
    return int(year), int(month), int(day)
