from __future__ import annotations

import math

import pytest

from baseoff_import.models.cell import EMPTY, Number, Text
from baseoff_import.normalize.coerce import (
    coerce_date,
    coerce_digits,
    coerce_integer,
    coerce_lower,
    coerce_natural_key,
    coerce_number,
    coerce_text,
    coerce_upper,
)

ALL_COERCIONS = [
    coerce_text,
    coerce_upper,
    coerce_lower,
    coerce_digits,
    coerce_natural_key,
    coerce_date,
    coerce_number,
    coerce_integer,
]


class _Hostile:
    def __str__(self) -> str:
        raise RuntimeError("no str")

    def __float__(self) -> float:
        raise RuntimeError("no float")


GARBAGE = [
    None,
    "",
    "   ",
    EMPTY,
    Text(""),
    Text("​ "),
    Text("日本語テキスト"),
    Text("🙂🙃"),
    Text("--,,.."),
    Number(float("nan")),
    Number(float("inf")),
    Number(-1e308),
    float("nan"),
    [1, 2],
    {"a": 1},
    object(),
    _Hostile(),
    b"\xff\xfe",
    -0.0,
    10 ** 40,
]


@pytest.mark.parametrize("fn", ALL_COERCIONS, ids=lambda f: f.__name__)
def test_coercion_is_total(fn):
    for value in GARBAGE:
        fn(value)  # never raises


@pytest.mark.parametrize("fn", ALL_COERCIONS, ids=lambda f: f.__name__)
def test_empty_inputs_become_none(fn):
    assert fn(EMPTY) is None
    assert fn(None) is None
    assert fn(Text("   ")) is None


def test_text_trim_and_number_rendering():
    assert coerce_text(Text("  Maria  ")) == "Maria"
    assert coerce_text(Number(12345.0)) == "12345"
    assert coerce_text(Number(1.5)) == "1.5"


def test_upper_and_lower():
    assert coerce_upper(Text(" sp ")) == "SP"
    assert coerce_lower(Text(" Maria@Mail.COM ")) == "maria@mail.com"


def test_digits_only():
    assert coerce_digits(Text("(11) 98888-7777")) == "11988887777"
    assert coerce_digits(Text("01310-100")) == "01310100"
    assert coerce_digits(Text("n/a")) is None
    assert coerce_digits(Number(1310100.0)) == "1310100"


def test_natural_key_padding_and_truncation():
    assert coerce_natural_key(Text("123")) == "00000000123"
    assert coerce_natural_key(Text("123.456.789-09")) == "12345678909"
    assert coerce_natural_key(Text("1234567890123")) == "12345678901"
    assert coerce_natural_key(Text("12345678901234")) == "12345678901"
    assert coerce_natural_key(Number(1234567890.0)) == "01234567890"
    assert coerce_natural_key(Text("abc")) is None


def test_natural_key_always_eleven_digits():
    for raw in ["1", "12", "0", "9" * 11, "9" * 20, "12a34"]:
        key = coerce_natural_key(Text(raw))
        assert key is not None
        assert len(key) == 11 and key.isdigit()


@pytest.mark.parametrize(
    "raw,expected",
    [
        (Text("15/03/1960"), "1960-03-15"),
        (Text("5/3/1960"), "1960-03-05"),
        (Text("1960-03-15"), "1960-03-15"),
        (Text(" 01/12/2020 "), "2020-12-01"),
        (Text("31/02/2020"), None),
        (Text("2020-13-01"), None),
        (Text("2020/01/01"), None),
        (Text("15-03-1960"), None),
        (Text("ontem"), None),
    ],
)
def test_date_text_formats(raw, expected):
    assert coerce_date(raw) == expected


@pytest.mark.parametrize(
    "serial,expected",
    [
        (1.0, "1900-01-01"),
        (59.0, "1900-02-28"),
        (61.0, "1900-03-01"),
        (43831.0, "2020-01-01"),
        (43831.75, "2020-01-01"),
        (2958465.0, "9999-12-31"),
        (60.0, None),
        (0.0, None),
        (-5.0, None),
        (2958466.0, None),
    ],
)
def test_date_from_spreadsheet_serial(serial, expected):
    assert coerce_date(Number(serial)) == expected


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1.234,56", 1234.56),
        ("1,5", 1.5),
        ("1.5", 1.5),
        ("1,234.56", 1234.56),
        ("1.234.567", 1234567.0),
        ("R$ 2.500,00", 2500.0),
        ("-12,5", -12.5),
        ("12-5", None),
        ("abc", None),
        ("", None),
    ],
)
def test_number_locale_parsing(raw, expected):
    result = coerce_number(Text(raw))
    if expected is None:
        assert result is None
    else:
        assert math.isclose(result, expected)


def test_number_cells_pass_through():
    assert coerce_number(Number(1234.56)) == 1234.56
    assert coerce_number(Number(float("inf"))) is None


def test_integer_takes_whole_part():
    assert coerce_integer(Text("84")) == 84
    assert coerce_integer(Number(72.0)) == 72
    assert coerce_integer(Text("12,9")) == 12
    assert coerce_integer(Text("x")) is None
