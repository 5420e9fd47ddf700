from __future__ import annotations

import math
import re
from datetime import date, timedelta
from typing import Any

from ..models.cell import EMPTY, Cell, Empty, Number, Text, to_cell

"""Per-field coercion functions.

Every function is total: whatever it is given (a Cell, a stray Python value,
exotic unicode) it returns a well-formed value or None and never raises.
Each dispatches on the three cell kinds explicitly.
"""

__all__ = [
    "NATURAL_KEY_LENGTH",
    "as_cell",
    "coerce_text",
    "coerce_digits",
    "coerce_natural_key",
    "coerce_date",
    "coerce_number",
    "coerce_integer",
    "coerce_upper",
    "coerce_lower",
]

NATURAL_KEY_LENGTH = 11

# Excel 1900 date system: serial 1 == 1900-01-01, serial 60 is the phantom 1900-02-29
_EXCEL_EPOCH = date(1899, 12, 30)
_EXCEL_EPOCH_PRE_LEAP = date(1899, 12, 31)
_EXCEL_PHANTOM_LEAP_DAY = 60
_EXCEL_MAX_SERIAL = 2958465  # 9999-12-31

_NON_DIGIT = re.compile(r"[^0-9]")
_NON_NUMERIC = re.compile(r"[^0-9,.\-]")
_BR_DATE = re.compile(r"^([0-9]{1,2})/([0-9]{1,2})/([0-9]{4})$")
_ISO_DATE = re.compile(r"^([0-9]{4})-([0-9]{2})-([0-9]{2})$")


def as_cell(value: Any) -> Cell:
    if isinstance(value, (Text, Number, Empty)):
        return value
    try:
        return to_cell(value)
    except Exception:  # __str__/__float__ of arbitrary objects
        return EMPTY


def _source_text(cell: Cell) -> str | None:
    if isinstance(cell, Text):
        return cell.value
    if isinstance(cell, Number):
        if not math.isfinite(cell.value):
            return None
        return cell.as_plain_str()
    return None


def coerce_text(value: Any) -> str | None:
    """Trimmed text; empty becomes None. Integral numbers lose the '.0'."""
    text = _source_text(as_cell(value))
    if text is None:
        return None
    text = text.strip()
    return text or None


def coerce_upper(value: Any) -> str | None:
    text = coerce_text(value)
    return text.upper() if text is not None else None


def coerce_lower(value: Any) -> str | None:
    text = coerce_text(value)
    return text.lower() if text is not None else None


def coerce_digits(value: Any) -> str | None:
    """Keep ASCII digits only (phones, CEP)."""
    text = _source_text(as_cell(value))
    if text is None:
        return None
    digits = _NON_DIGIT.sub("", text)
    return digits or None


def coerce_natural_key(value: Any) -> str | None:
    """CPF: digits only, left-padded with zeros, first 11 characters kept."""
    digits = coerce_digits(value)
    if digits is None:
        return None
    return digits.zfill(NATURAL_KEY_LENGTH)[:NATURAL_KEY_LENGTH]


def _date_from_serial(serial: float) -> str | None:
    if not math.isfinite(serial):
        return None
    days = int(math.floor(serial))
    if days < 1 or days > _EXCEL_MAX_SERIAL or days == _EXCEL_PHANTOM_LEAP_DAY:
        return None
    epoch = _EXCEL_EPOCH_PRE_LEAP if days < _EXCEL_PHANTOM_LEAP_DAY else _EXCEL_EPOCH
    return (epoch + timedelta(days=days)).isoformat()


def _iso(year: str, month: str, day: str) -> str | None:
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return None


def coerce_date(value: Any) -> str | None:
    """Spreadsheet serial, DD/MM/YYYY or YYYY-MM-DD -> 'YYYY-MM-DD'."""
    cell = as_cell(value)
    if isinstance(cell, Number):
        return _date_from_serial(cell.value)
    if isinstance(cell, Text):
        text = cell.value.strip()
        m = _BR_DATE.match(text)
        if m:
            return _iso(m.group(3), m.group(2), m.group(1))
        m = _ISO_DATE.match(text)
        if m:
            return _iso(m.group(1), m.group(2), m.group(3))
        return None
    return None


def _parse_locale_number(text: str) -> float | None:
    cleaned = _NON_NUMERIC.sub("", text)
    if not cleaned:
        return None
    negative = cleaned.startswith("-")
    body = cleaned[1:] if negative else cleaned
    if "-" in body:
        return None

    last_dot = body.rfind(".")
    last_comma = body.rfind(",")
    if last_dot >= 0 and last_comma >= 0:
        decimal_sep, thousands_sep = (",", ".") if last_comma > last_dot else (".", ",")
        body = body.replace(thousands_sep, "")
        if body.count(decimal_sep) > 1:
            return None
        body = body.replace(decimal_sep, ".")
    elif last_comma >= 0 or last_dot >= 0:
        sep = "," if last_comma >= 0 else "."
        if body.count(sep) == 1:
            body = body.replace(sep, ".")
        else:
            body = body.replace(sep, "")

    try:
        number = float(body)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return -number if negative else number


def coerce_number(value: Any) -> float | None:
    """Locale-aware float: '1.234,56' -> 1234.56, '1,5' -> 1.5."""
    cell = as_cell(value)
    if isinstance(cell, Number):
        return cell.value if math.isfinite(cell.value) else None
    if isinstance(cell, Text):
        return _parse_locale_number(cell.value)
    return None


def coerce_integer(value: Any) -> int | None:
    """Whole part of coerce_number (installment counts)."""
    number = coerce_number(value)
    if number is None:
        return None
    return int(number)
