"""Cross-field consistency checks.

Each check adds an error or a warning to the report; none of them discards
the extracted fields. Errors mark the result as inconsistent, warnings only
flag something a reviewer should look at.
"""

import logging
from datetime import date
from typing import Optional

from idextract import cnp as cnp_utils
from idextract.counties import county_for_cnp_code, county_for_place, county_for_series
from idextract.fields import FIELD_NAMES, parse_date
from idextract.models import FieldSet, ValidationReport

logger = logging.getLogger(__name__)

ISSUE_BEFORE_BIRTH = "issue date must be after birth date"
EXPIRY_BEFORE_ISSUE = "expiry date must be after issue date"
ERROR_PENALTY = 0.1


def _as_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    try:
        return date(*parse_date(value))
    except ValueError:
        return None


def cross_validate(fields: FieldSet) -> ValidationReport:
    """Check semantic consistency between fields."""
    errors: list[str] = []
    warnings: list[str] = []

    birth = _as_date(fields.data_nasterii)
    issue = _as_date(fields.data_eliberarii)
    expiry = _as_date(fields.valabil_pana_la)

    if fields.cnp is not None:
        cnp_birth = cnp_utils.birth_date(fields.cnp)
        if cnp_birth is None:
            errors.append("personal numeric code does not encode a valid birth date")
        elif fields.data_nasterii is not None and cnp_birth != fields.data_nasterii:
            errors.append(
                f"birth date {fields.data_nasterii} does not match personal numeric code ({cnp_birth})"
            )

        cnp_sex = cnp_utils.sex(fields.cnp)
        if fields.sex is not None and cnp_sex is not None and cnp_sex != fields.sex:
            errors.append(f"sex {fields.sex} does not match personal numeric code ({cnp_sex})")

        if not cnp_utils.has_valid_checksum(fields.cnp):
            warnings.append("personal numeric code check digit does not match")
        code = cnp_utils.county_code(fields.cnp)
        if code is not None and not cnp_utils.is_valid_county_code(code):
            warnings.append(f"personal numeric code has unknown county code {code:02d}")

    if birth is not None and issue is not None and issue <= birth:
        errors.append(ISSUE_BEFORE_BIRTH)
    if issue is not None and expiry is not None and expiry <= issue:
        errors.append(EXPIRY_BEFORE_ISSUE)

    if birth is not None and expiry is not None and (birth.day, birth.month) != (expiry.day, expiry.month):
        warnings.append("expiry date usually falls on the holder's birthday")

    if fields.seria is not None and fields.locul_nasterii is not None:
        series_county = county_for_series(fields.seria)
        birth_county = county_for_place(fields.locul_nasterii)
        if series_county and birth_county and series_county.code != birth_county.code:
            warnings.append(
                f"series {fields.seria} was issued in {series_county.name}, "
                f"birth place is in {birth_county.name}"
            )

    if fields.cnp is not None and fields.locul_nasterii is not None:
        code = cnp_utils.county_code(fields.cnp)
        cnp_county = county_for_cnp_code(code) if code is not None else None
        birth_county = county_for_place(fields.locul_nasterii)
        if cnp_county and birth_county and cnp_county.code != birth_county.code:
            warnings.append(
                f"personal numeric code was registered in {cnp_county.name}, "
                f"birth place is in {birth_county.name}"
            )

    if errors:
        logger.info("Cross-field validation found %d error(s)", len(errors))
    return ValidationReport(is_valid=not errors, errors=errors, warnings=warnings)


def validation_score(fields: FieldSet, report: ValidationReport) -> float:
    """Share of detected fields, minus a penalty per consistency error.

    Drives the retry decision: results below the acceptance score are
    retried with an escalated prompt.
    """
    score = fields.detected_count / len(FIELD_NAMES) - ERROR_PENALTY * len(report.errors)
    return min(1.0, max(0.0, score))
