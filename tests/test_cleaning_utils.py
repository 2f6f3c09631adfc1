import math
from datetime import date, datetime

import numpy as np
import pytest

from sheet_insights.cleaning_utils import (
    cell_to_text,
    is_missing,
    normalize_date,
    normalize_number,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("(1,234.50)", -1234.5),
        ("12.5%", 12.5),
        ("$1,200", 1200.0),
        ("€3.5", 3.5),
        ("£ 99", 99.0),
        ("−42", -42.0),
        ("1e3", 1000.0),
        (3.14159265, 3.1416),
        (7, 7.0),
    ],
)
def test_normalize_number_accepts_spreadsheet_formats(raw, expected):
    assert normalize_number(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["abc", "12abc", "1.2.3", "", "n/a", None, float("nan"), float("inf"), True, "(12"],
)
def test_normalize_number_rejects_garbage(raw):
    assert normalize_number(raw) is None


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("2025-01-31", "2025-01-31"),
        ("02/03/2025", "2025-03-02"),
        ("15-Apr-25", "2025-04-15"),
        ("1-jan-2024", "2024-01-01"),
        ("25/12/99", "2099-12-25"),
        ("45000", "2023-03-15"),
        ("45000.5", "2023-03-15T12:00:00"),
        ("2025-01-01T10:30:00", "2025-01-01T10:30:00"),
        (datetime(2024, 5, 6), "2024-05-06"),
        (date(2024, 5, 6), "2024-05-06"),
        (np.datetime64("2024-05-06"), "2024-05-06"),
    ],
)
def test_normalize_date_formats(raw, expected):
    assert normalize_date(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "1",           # serial too small
        "10000",       # serial lands in 1927
        "31/02/2025",  # impossible calendar date
        "12/31/2025",  # month-first is not supported
        "15-Foo-25",
        "yesterday",
        "",
        None,
        True,
    ],
)
def test_normalize_date_rejects(raw):
    assert normalize_date(raw) is None


def test_serial_numbers_are_dates_only_in_plausible_years():
    # 1950-01-01 is serial 18264
    assert normalize_date(18264) == "1950-01-01"
    assert normalize_date(18263) is None


@pytest.mark.parametrize("raw", [None, "", "   ", "N/A", "#DIV/0!", "null", float("nan")])
def test_is_missing(raw):
    assert is_missing(raw)


def test_is_missing_keeps_real_values():
    assert not is_missing(0)
    assert not is_missing("0")
    assert not is_missing("Electronics")


def test_cell_to_text():
    assert cell_to_text(12.0) == "12"
    assert cell_to_text(12.5) == "12.5"
    assert cell_to_text("  Sports ") == "Sports"
    assert cell_to_text(datetime(2024, 1, 2)) == "2024-01-02"
    assert cell_to_text("n/a") is None


def test_rounding_is_four_places():
    value = normalize_number("1.234567")
    assert math.isclose(value, 1.2346)
