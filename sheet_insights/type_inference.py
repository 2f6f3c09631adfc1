"""Column type inference over resolved data rows."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import pandas as pd

from .cleaning_utils import cell_to_text, is_missing, normalize_date, normalize_number, parse_rate
from .config import Thresholds
from .models import ColumnMetadata, ColumnType

logger = logging.getLogger(__name__)

SAMPLE_VALUES_SHOWN = 5


class TypeInferencer:
    """Classify columns as date, number, category or text.

    Rules, in order, over the first ``type_sample_size`` non-empty values:
      1. date      - date parse rate >= ``date_detection_rate``
      2. number    - numeric parse rate >= ``number_detection_rate``
      3. category  - at most ``category_max_unique`` distinct values, at least
                     one of them repeated
      4. text      - everything else
    Date and number come first so percentage or currency columns with few
    distinct values are not mistaken for categories.

    With ``category_requires_repeats`` on, a small lookup column whose values
    are all distinct (Region = North/South/East) is text, so a sheet without
    a date column gets the "Metric Comparison" chart rather than "Comparison
    by Region". Turn it off to treat any low-cardinality column as category.
    """

    def __init__(self, thresholds: Optional[Thresholds] = None):
        self.thresholds = thresholds or Thresholds()

    def infer_types(self, df: pd.DataFrame) -> List[ColumnMetadata]:
        return [
            self.infer_column(df.iloc[:, idx], str(header), idx)
            for idx, header in enumerate(df.columns)
        ]

    def _is_category(self, unique_count: int, non_empty_count: int) -> bool:
        if unique_count > self.thresholds.category_max_unique:
            return False
        # A column where every value is distinct is free text, not a category.
        if self.thresholds.category_requires_repeats:
            return unique_count < non_empty_count
        return True

    def infer_column(self, series: pd.Series, header: str, index: int) -> ColumnMetadata:
        values: List[Any] = series.tolist()
        non_empty = [v for v in values if not is_missing(v)]
        null_count = len(values) - len(non_empty)

        if not non_empty:
            return ColumnMetadata(
                index=index,
                header=header,
                detected_type=ColumnType.TEXT,
                sample_values=[],
                null_count=null_count,
                unique_count=0,
                is_percentage=False,
            )

        as_text = [cell_to_text(v) or "" for v in non_empty]
        unique_count = len(set(as_text))
        sample_values = as_text[:SAMPLE_VALUES_SHOWN]
        sample = pd.Series(non_empty[: self.thresholds.type_sample_size], dtype=object)

        detected = ColumnType.TEXT
        is_percentage = False
        if parse_rate(sample, normalize_date) >= self.thresholds.date_detection_rate:
            detected = ColumnType.DATE
        elif parse_rate(sample, normalize_number) >= self.thresholds.number_detection_rate:
            detected = ColumnType.NUMBER
            is_percentage = bool(sample.astype(str).str.contains("%", regex=False).any())
        elif self._is_category(unique_count, len(non_empty)):
            detected = ColumnType.CATEGORY

        logger.debug("column %r classified as %s", header, detected.value)
        return ColumnMetadata(
            index=index,
            header=header,
            detected_type=detected,
            sample_values=sample_values,
            null_count=null_count,
            unique_count=unique_count,
            is_percentage=is_percentage,
        )


__all__ = ["TypeInferencer"]
