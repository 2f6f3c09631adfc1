"""Header row detection for messy spreadsheets.

Strategies are tried in order until one yields a header set:
  1. header_row    - first row (of the top 10) dominated by label strings
  2. date_headers  - a row of period dates (financial reports laid out with
                     one column per month/quarter)
  3. label_rows    - label-plus-values rows preceded by title/blank rows
  4. generic       - no header at all; synthesise Column_A, Column_B, ...

Headers are always cleaned: whitespace collapsed, truncated to 50 chars,
empty names synthesised and duplicates suffixed (_2, _3, ...).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, List, Optional

import numpy as np
import pandas as pd

from .cleaning_utils import cell_to_text, is_missing, normalize_date, normalize_number
from .errors import SheetParseError

logger = logging.getLogger(__name__)

HEADER_SEARCH_ROWS = 10
LABEL_SEARCH_ROWS = 5
MAX_HEADER_LENGTH = 50

HEADER_DATE_PATTERN = re.compile(
    r"^(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec|\d{1,2}[/\-]\d{1,2}|q[1-4])",
    re.IGNORECASE,
)
NUMERIC_LOOKING = re.compile(r"^[\d,.$£€-]+$")
NUMERIC_LOOKING_WITH_PARENS = re.compile(r"^[\d,.$£€()-]+$")
LEADING_NUMBER = re.compile(r"^[+-]?(?:\d|\.\d)")

_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


@dataclass(frozen=True)
class HeaderResolution:
    header_index: Optional[int]
    headers: List[str]
    data_rows: pd.DataFrame
    strategy: str


def generate_column_name(idx: int) -> str:
    """Column_A .. Column_Z, then Column_A1 .. Column_Z1, Column_A2 ..."""
    letter = chr(65 + (idx % 26))
    suffix = str(idx // 26) if idx >= 26 else ""
    return f"Column_{letter}{suffix}"


def _with_suffix(header: str, count: int) -> str:
    suffix = f"_{count}"
    return header[: MAX_HEADER_LENGTH - len(suffix)] + suffix


def clean_headers(raw_headers: List[str]) -> List[str]:
    cleaned: List[str] = []
    used = set()
    seen: dict = {}
    for raw in raw_headers:
        header = re.sub(r"\s+", " ", raw or "").strip()
        if len(header) > MAX_HEADER_LENGTH:
            header = header[: MAX_HEADER_LENGTH - 3] + "..."
        if not header:
            header = generate_column_name(len(cleaned))
        if header in used:
            # Suffixed names stay within the length limit.
            count = seen.get(header, 1)
            candidate = header
            while candidate in used:
                count += 1
                candidate = _with_suffix(header, count)
            seen[header] = count
            header = candidate
        else:
            seen.setdefault(header, 1)
        used.add(header)
        cleaned.append(header)
    return cleaned


def _is_date_object(cell: Any) -> bool:
    if is_missing(cell):
        return False
    return isinstance(cell, (datetime, date, np.datetime64))


def _is_label_cell(cell: Any) -> bool:
    """Non-empty string that reads as neither a date nor a number."""
    if not isinstance(cell, str) or is_missing(cell):
        return False
    return normalize_date(cell) is None and normalize_number(cell) is None


def _is_date_like(cell: Any) -> bool:
    if _is_date_object(cell):
        return True
    if not isinstance(cell, str) or is_missing(cell):
        return False
    text = cell.strip()
    if HEADER_DATE_PATTERN.match(text):
        return True
    return ("/" in text or "-" in text) and normalize_date(text) is not None


def _is_numeric_looking(cell: Any, pattern: re.Pattern = NUMERIC_LOOKING) -> bool:
    if isinstance(cell, (bool, np.bool_)) or is_missing(cell):
        return False
    if isinstance(cell, (int, float, np.number)):
        return True
    return isinstance(cell, str) and bool(pattern.match(cell.strip()))


def _header_text(cell: Any) -> str:
    return cell_to_text(cell) or ""


def _format_month_year(cell: Any) -> Optional[str]:
    iso = normalize_date(cell)
    if iso is None:
        return None
    year, month = int(iso[:4]), int(iso[5:7])
    return f"{_MONTHS[month - 1]} {year}"


def _row(df: pd.DataFrame, idx: int) -> List[Any]:
    return df.iloc[idx].tolist()


def _from_header_row(df: pd.DataFrame) -> Optional[HeaderResolution]:
    width = df.shape[1]
    for r in range(min(HEADER_SEARCH_ROWS, df.shape[0])):
        row = _row(df, r)
        non_empty = sum(not is_missing(c) for c in row)
        labels = sum(_is_label_cell(c) for c in row)
        if non_empty > width * 0.5 and labels > width * 0.3:
            return HeaderResolution(
                header_index=r,
                headers=clean_headers([_header_text(c) for c in row]),
                data_rows=df.iloc[r + 1:],
                strategy="header_row",
            )
    return None


def _from_date_row(df: pd.DataFrame) -> Optional[HeaderResolution]:
    width = df.shape[1]
    for r in range(min(HEADER_SEARCH_ROWS, df.shape[0])):
        row = _row(df, r)
        date_count = sum(_is_date_like(c) for c in row)
        if date_count < 3 or date_count <= width * 0.2:
            continue

        raw_headers = []
        for idx, cell in enumerate(row):
            if is_missing(cell):
                raw_headers.append(generate_column_name(idx))
                continue
            formatted = None
            if _is_date_object(cell) or (
                isinstance(cell, str) and ("/" in cell or "-" in cell)
            ):
                formatted = _format_month_year(cell)
            raw_headers.append(formatted or _header_text(cell))

        start = r + 1
        for j in range(r + 1, df.shape[0]):
            if any(_is_numeric_looking(c) for c in _row(df, j)):
                start = j
                break
        return HeaderResolution(
            header_index=r,
            headers=clean_headers(raw_headers),
            data_rows=df.iloc[start:],
            strategy="date_headers",
        )
    return None


def _from_label_rows(df: pd.DataFrame) -> Optional[HeaderResolution]:
    if df.shape[0] < 2:
        return None
    width = df.shape[1]
    for r in range(min(LABEL_SEARCH_ROWS, df.shape[0])):
        row = _row(df, r)
        non_empty = sum(not is_missing(c) for c in row)
        if non_empty <= width * 0.3:
            continue
        first = row[0]
        first_is_text = (
            isinstance(first, str)
            and not is_missing(first)
            and not LEADING_NUMBER.match(first.strip())
        )
        numeric = sum(
            _is_numeric_looking(c, NUMERIC_LOOKING_WITH_PARENS) for c in row[1:]
        )
        if first_is_text and numeric > width * 0.3:
            # Only a layout with leading title rows counts; a label row at the
            # very top is left to the generic fallback.
            if r == 0:
                return None
            headers = ["Label"] + [generate_column_name(i) for i in range(1, width)]
            return HeaderResolution(
                header_index=None,
                headers=clean_headers(headers),
                data_rows=df.iloc[r:],
                strategy="label_rows",
            )
    return None


def _generic(df: pd.DataFrame) -> HeaderResolution:
    return HeaderResolution(
        header_index=None,
        headers=clean_headers([generate_column_name(i) for i in range(df.shape[1])]),
        data_rows=df,
        strategy="generic",
    )


_STRATEGIES: List[Callable[[pd.DataFrame], Optional[HeaderResolution]]] = [
    _from_header_row,
    _from_date_row,
    _from_label_rows,
]


def resolve_headers(df: pd.DataFrame) -> HeaderResolution:
    """Locate or synthesise the header row of a raw grid frame.

    Raises SheetParseError when no data rows remain after the header.
    """
    if df.empty:
        raise SheetParseError("File contains no data")

    for strategy in _STRATEGIES:
        resolution = strategy(df)
        if resolution is not None:
            break
    else:
        resolution = _generic(df)

    logger.debug(
        "header detection: strategy=%s header_row=%s columns=%d",
        resolution.strategy,
        resolution.header_index,
        len(resolution.headers),
    )
    data_rows = resolution.data_rows.reset_index(drop=True)
    if data_rows.empty:
        raise SheetParseError("No data rows found")
    return HeaderResolution(
        header_index=resolution.header_index,
        headers=resolution.headers,
        data_rows=data_rows,
        strategy=resolution.strategy,
    )


__all__ = [
    "HeaderResolution",
    "resolve_headers",
    "clean_headers",
    "generate_column_name",
]
