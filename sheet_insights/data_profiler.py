"""Descriptive statistics and trend classification for numeric columns."""

from __future__ import annotations

import math
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

import numpy as np

from .config import Thresholds
from .models import ColumnStats, NormalizedRecord, SheetMetadata, TrendKind, TrendResult


class TrendClassification(NamedTuple):
    trend: TrendKind
    first_half_mean: float
    second_half_mean: float
    change_percent: float


def numeric_values(records: Sequence[NormalizedRecord], header: str) -> List[float]:
    """Non-absent numeric values of one column, in record order."""
    out: List[float] = []
    for row in records:
        value = row.get(header)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if math.isnan(value):
            continue
        out.append(float(value))
    return out


def calculate_stats(values: Sequence[float]) -> ColumnStats:
    """min, max, mean, median and population standard deviation.

    An empty input yields all-zero stats.
    """
    if len(values) == 0:
        return ColumnStats()
    arr = np.asarray(values, dtype=float)
    return ColumnStats(
        min=float(arr.min()),
        max=float(arr.max()),
        mean=float(arr.mean()),
        median=float(np.median(arr)),
        std_dev=float(arr.std()),
    )


def pearson_correlation(x_values: Sequence[float], y_values: Sequence[float]) -> float:
    """Pearson r clamped to [-1, 1]; 0 for empty, mismatched or constant input."""
    if len(x_values) != len(y_values) or len(x_values) == 0:
        return 0.0
    x = np.asarray(x_values, dtype=float)
    y = np.asarray(y_values, dtype=float)
    dx = x - x.mean()
    dy = y - y.mean()
    denominator = math.sqrt(float(np.sum(dx * dx)) * float(np.sum(dy * dy)))
    if denominator == 0:
        return 0.0
    correlation = float(np.sum(dx * dy)) / denominator
    return max(-1.0, min(1.0, correlation))


def detect_trend(
    values: Sequence[float], thresholds: Optional[Thresholds] = None
) -> TrendClassification:
    """Compare first-half and second-half means of a series.

    Volatility (second-half stdDev above ``volatility_multiplier`` times a
    non-zero first-half stdDev) overrides the directional classification.
    """
    t = thresholds or Thresholds()
    if len(values) < t.min_trend_points:
        return TrendClassification(TrendKind.INSUFFICIENT_DATA, 0.0, 0.0, 0.0)

    midpoint = len(values) // 2
    first_half = np.asarray(values[:midpoint], dtype=float)
    second_half = np.asarray(values[midpoint:], dtype=float)
    first_mean = float(first_half.mean())
    second_mean = float(second_half.mean())
    change_percent = (
        0.0 if first_mean == 0 else (second_mean - first_mean) / abs(first_mean) * 100
    )

    first_std = float(first_half.std())
    second_std = float(second_half.std())
    if first_std > 0 and second_std > t.volatility_multiplier * first_std:
        trend = TrendKind.VOLATILE
    elif change_percent > t.trend_change_percent:
        trend = TrendKind.RISING
    elif change_percent < -t.trend_change_percent:
        trend = TrendKind.FALLING
    else:
        trend = TrendKind.FLAT
    return TrendClassification(trend, first_mean, second_mean, change_percent)


class DataProfiler:
    """Profiling engine producing per-column trend results."""

    def __init__(self, thresholds: Optional[Thresholds] = None):
        self.thresholds = thresholds or Thresholds()

    def build_trends(
        self, records: Sequence[NormalizedRecord], sheet_meta: SheetMetadata
    ) -> List[TrendResult]:
        """One TrendResult per numeric column, in column order."""
        trends: List[TrendResult] = []
        for col in sheet_meta.numeric_columns:
            values = numeric_values(records, col.header)
            classification = detect_trend(values, self.thresholds)
            if classification.trend is TrendKind.INSUFFICIENT_DATA:
                stats = ColumnStats()
            else:
                stats = calculate_stats(values)
            trends.append(
                TrendResult(
                    column_name=col.header,
                    column_index=col.index,
                    trend=classification.trend,
                    first_half_mean=classification.first_half_mean,
                    second_half_mean=classification.second_half_mean,
                    change_percent=classification.change_percent,
                    stats=stats,
                )
            )
        return trends

    def summarize(self, trends: Sequence[TrendResult]) -> Dict[str, Any]:
        """Count of columns per trend kind, for logs and CLI summaries."""
        counts: Dict[str, Any] = {kind.value: 0 for kind in TrendKind}
        for trend in trends:
            counts[trend.trend.value] += 1
        return counts


__all__ = [
    "TrendClassification",
    "numeric_values",
    "calculate_stats",
    "pearson_correlation",
    "detect_trend",
    "DataProfiler",
]
