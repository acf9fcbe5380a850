"""
Roster Kernel — Record Validation

Validates candidate record fields before they reach the remote store.
Used by interactive create/update (errors block submission) and by CSV
import (errors become row errors and the batch continues).

Validation only reports. Nothing is corrected silently.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from datetime import date
from typing import Any

from roster.kernel.types import EDITABLE_FIELDS, SUBJECT_FIELDS, is_number

STUDENT_CODE_PATTERN = re.compile(r"[A-Za-z0-9]{6,12}")
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
ISO_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
PLAIN_DECIMAL_PATTERN = re.compile(r"[+-]?[0-9]+(\.[0-9]+)?")

NAME_MIN_LENGTH = 1
NAME_MAX_LENGTH = 50
SCORE_MIN = 0.0
SCORE_MAX = 10.0
MIN_AGE_YEARS = 15
MAX_AGE_YEARS = 100

FIELD_LABELS: dict[str, str] = {
    "student_code": "Student code",
    "first_name": "First name",
    "last_name": "Last name",
    "email": "Email",
    "birth_date": "Birth date",
    "hometown": "Hometown",
    "math_score": "Math score",
    "literature_score": "Literature score",
    "english_score": "English score",
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_field(name: str, value: Any, today: date | None = None) -> str | None:
    """
    Validate one field. Returns an error message, or None if valid.
    Fields without a rule (hometown, unknown names) are always valid.
    """
    validator = _VALIDATORS.get(name)
    if validator is None:
        return None
    if name == "birth_date":
        return _validate_birth_date(value, today)
    return validator(name, value)


def validate_record(fields: Mapping[str, Any], today: date | None = None) -> dict[str, str]:
    """
    Validate every editable field of a candidate record.
    Returns {field_name: message}. Empty dict = valid.
    """
    errors: dict[str, str] = {}
    for name in EDITABLE_FIELDS:
        message = validate_field(name, fields.get(name), today)
        if message:
            errors[name] = message
    return errors


# ---------------------------------------------------------------------------
# Parsing helpers (shared with the CSV codec)
# ---------------------------------------------------------------------------


def parse_iso_date(value: str) -> date | None:
    """Strict YYYY-MM-DD. Returns None for anything that is not a real calendar date."""
    if not ISO_DATE_PATTERN.fullmatch(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def parse_score(value: Any) -> float | None:
    """
    Coerce a score to float. Raises ValueError if it is not a finite number.
    Blank values (None, "") mean "absent" and return None. Strings must be
    plain decimals: no exponent, no digit grouping.
    """
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, str):
        text = value.strip()
        if not PLAIN_DECIMAL_PATTERN.fullmatch(text):
            raise ValueError(f"not a number: {value!r}")
        number = float(text)
    else:
        number = float(value)
    if not is_number(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def years_before(today: date, years: int) -> date:
    """Same month/day `years` earlier; Feb 29 falls back to Feb 28."""
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        return today.replace(year=today.year - years, day=28)


# ---------------------------------------------------------------------------
# Per-field validators
# ---------------------------------------------------------------------------


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _validate_student_code(name: str, value: Any) -> str | None:
    if _is_blank(value):
        return f"{FIELD_LABELS[name]} is required"
    if not isinstance(value, str) or not STUDENT_CODE_PATTERN.fullmatch(value):
        return f"{FIELD_LABELS[name]} must be 6-12 alphanumeric characters"
    return None


def _validate_name(name: str, value: Any) -> str | None:
    if _is_blank(value):
        return f"{FIELD_LABELS[name]} is required"
    if not isinstance(value, str):
        return f"{FIELD_LABELS[name]} must be text"
    if not NAME_MIN_LENGTH <= len(value) <= NAME_MAX_LENGTH:
        return f"{FIELD_LABELS[name]} must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
    return None


def _validate_email(name: str, value: Any) -> str | None:
    if _is_blank(value):
        return None
    if not isinstance(value, str) or not EMAIL_PATTERN.fullmatch(value):
        return "Invalid email format"
    return None


def _validate_birth_date(value: Any, today: date | None) -> str | None:
    if _is_blank(value):
        return None

    if isinstance(value, date):
        birth = value
    elif isinstance(value, str):
        birth = parse_iso_date(value.strip())
        if birth is None:
            return "Invalid birth date (expected YYYY-MM-DD)"
    else:
        return "Invalid birth date (expected YYYY-MM-DD)"

    today = today or date.today()
    earliest = years_before(today, MAX_AGE_YEARS)
    latest = years_before(today, MIN_AGE_YEARS)
    if not earliest <= birth <= latest:
        return f"Birth date must be between {MAX_AGE_YEARS} and {MIN_AGE_YEARS} years ago"
    return None


def _validate_score(name: str, value: Any) -> str | None:
    try:
        score = parse_score(value)
    except (TypeError, ValueError):
        return f"{FIELD_LABELS[name]} must be a number"
    if score is None:
        return None
    if not SCORE_MIN <= score <= SCORE_MAX:
        return f"{FIELD_LABELS[name]} must be between {SCORE_MIN:g} and {SCORE_MAX:g}"
    return None


_VALIDATORS: dict[str, Callable[[str, Any], str | None]] = {
    "student_code": _validate_student_code,
    "first_name": _validate_name,
    "last_name": _validate_name,
    "email": _validate_email,
    # birth_date needs `today`; dispatched explicitly in validate_field
    "birth_date": lambda name, value: _validate_birth_date(value, None),
    **{name: _validate_score for name in SUBJECT_FIELDS},
}
