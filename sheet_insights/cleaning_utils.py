"""Cell-level value normalisation.

Everything that turns one raw spreadsheet cell into a canonical value lives
here:
  - Missing-cell detection (is_missing, spreadsheet null tokens)
  - Date normalisation to ISO-8601 (normalize_date)
  - Numeric normalisation (normalize_number)
  - Display text for non-typed cells (cell_to_text)
  - Row/blank filtering (_drop_fully_blank_rows)

None of these functions raise on malformed input; an unparseable cell maps
to ``None``.
"""

from __future__ import annotations

import math
import numbers
import re
from datetime import date, datetime, timedelta
from typing import Any, Callable, List, Optional

import numpy as np
import pandas as pd

# -----------------------------
# Null tokens (lowercased set)
# -----------------------------
NULL_TOKENS = {
    "",
    "n/a",
    "na",
    "nan",
    "none",
    "null",
    "nil",
    "#n/a",
    "#null!",
    "#div/0!",
    "#value!",
    "#ref!",
    "#name?",
    "#num!",
    "(blank)",
    "(empty)",
}
_NULL_TOKENS_LOWER = {t.lower() for t in NULL_TOKENS}

CURRENCY_PATTERN = re.compile(r"[£$€¥]")
PAREN_NEGATIVE_PATTERN = re.compile(r"^\((\d+(?:,\d{3})*(?:\.\d+)?)\)$")
NUMBER_PATTERN = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")

DMY_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})$")
DAY_MON_YEAR_PATTERN = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{2}|\d{4})$")
ISO_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].+)?$")
SERIAL_PATTERN = re.compile(r"^\d+(?:\.\d+)?$")

MONTH_ABBREVIATIONS = [
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
]

SPREADSHEET_EPOCH = datetime(1899, 12, 30)
SERIAL_MIN = 1
SERIAL_MAX = 73000
SERIAL_YEAR_RANGE = (1950, 2100)
NUMBER_DECIMALS = 4


def _normalize_whitespace_and_minus(text: str) -> str:
    s = text.replace("\u2212", "-").replace("\u00a0", " ")
    return re.sub(r"[\u2000-\u200B]", " ", s)


def is_missing(value: Any) -> bool:
    """True for None/NaN/NaT, blank strings and spreadsheet null tokens."""
    if value is None:
        return True
    if isinstance(value, str):
        return _normalize_whitespace_and_minus(value).strip().lower() in _NULL_TOKENS_LOWER
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _iso(value: datetime) -> str:
    if value.time() == datetime.min.time() and value.tzinfo is None:
        return value.date().isoformat()
    return value.isoformat()


def _expand_year(year: str) -> int:
    # 2-digit years are read as 20xx.
    return int(f"20{year}") if len(year) == 2 else int(year)


def _safe_date(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _parse_day_month_year(text: str) -> Optional[str]:
    match = DMY_PATTERN.match(text)
    if not match:
        return None
    day, month, year = match.groups()
    return _safe_date(_expand_year(year), int(month), int(day))


def _parse_day_mon_year(text: str) -> Optional[str]:
    match = DAY_MON_YEAR_PATTERN.match(text)
    if not match:
        return None
    day, mon, year = match.groups()
    mon = mon.lower()
    if mon not in MONTH_ABBREVIATIONS:
        return None
    return _safe_date(_expand_year(year), MONTH_ABBREVIATIONS.index(mon) + 1, int(day))


def _parse_iso(text: str) -> Optional[str]:
    match = ISO_PATTERN.match(text)
    if not match:
        return None
    year, month, day = (int(g) for g in match.groups())
    if len(text) == 10:
        return _safe_date(year, month, day)
    try:
        return _iso(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        return None


# Tried in order for strings containing a separator; day-first wins for
# ambiguous slash dates.
_SEPARATED_DATE_PARSERS: List[Callable[[str], Optional[str]]] = [
    _parse_day_month_year,
    _parse_day_mon_year,
    _parse_iso,
]


def _parse_serial(text: str) -> Optional[str]:
    if not SERIAL_PATTERN.match(text):
        return None
    serial = float(text)
    if not (SERIAL_MIN < serial < SERIAL_MAX):
        return None
    moment = SPREADSHEET_EPOCH + timedelta(days=serial)
    lo, hi = SERIAL_YEAR_RANGE
    if not (lo <= moment.year <= hi):
        return None
    return _iso(moment)


def normalize_date(value: Any) -> Optional[str]:
    """Normalise one cell to an ISO-8601 date string, or None.

    Decoded date objects pass through. Strings with '/' or '-' are tried as
    dd/mm/yy(yy), dd-Mon-yy(yy) and yyyy-mm-dd; only separator-free numeric
    strings are read as spreadsheet serial numbers (epoch 1899-12-30).
    """
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _iso(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, np.datetime64):
        return _iso(pd.Timestamp(value).to_pydatetime())

    text = _normalize_whitespace_and_minus(str(value)).strip()
    if "/" in text or "-" in text:
        for parser in _SEPARATED_DATE_PARSERS:
            parsed = parser(text)
            if parsed is not None:
                return parsed
        return None
    return _parse_serial(text)


def normalize_number(value: Any) -> Optional[float]:
    """Normalise one cell to a float rounded to 4 decimals, or None.

    ``(1,234.50)`` becomes -1234.5; currency symbols, thousands separators and
    percent signs are stripped. Percent values are NOT divided by 100 here.
    """
    if is_missing(value) or isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, numbers.Number):
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(number):
            return None
        return round(number, NUMBER_DECIMALS)
    if not isinstance(value, str):
        return None

    text = _normalize_whitespace_and_minus(value).strip()
    text = CURRENCY_PATTERN.sub("", text).strip()
    paren = PAREN_NEGATIVE_PATTERN.match(text)
    if paren:
        text = f"-{paren.group(1)}"
    text = text.replace(",", "").replace("%", "").strip()
    if not NUMBER_PATTERN.match(text):
        return None
    number = float(text)
    if not math.isfinite(number):
        return None
    return round(number, NUMBER_DECIMALS)


def cell_to_text(value: Any) -> Optional[str]:
    """Trimmed display text for a cell; whole floats lose their '.0'."""
    if is_missing(value):
        return None
    if isinstance(value, (datetime, date)):
        return normalize_date(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_rate(series: pd.Series, parser: Callable[[Any], Any]) -> float:
    """Share of ``series`` values for which ``parser`` returns a value."""
    if series.empty:
        return 0.0
    parsed = series.map(parser)
    return float(parsed.notna().mean())


def _drop_fully_blank_rows(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return df
    is_blank = df.apply(lambda col: col.map(is_missing))
    keep_mask = ~is_blank.all(axis=1)
    return df.loc[keep_mask].reset_index(drop=True)


__all__ = [
    "NULL_TOKENS",
    "is_missing",
    "normalize_date",
    "normalize_number",
    "cell_to_text",
    "parse_rate",
    "_drop_fully_blank_rows",
    "_normalize_whitespace_and_minus",
]
