"""Rule-based insight recommendations.

Six independent rules run in a fixed order over the trend results:

  1. biggest_mover_up    - largest rising changePercent          (positive)
  2. biggest_mover_down  - largest falling |changePercent|       (negative)
  3. high_volatility     - largest coefficient of variation > 0.2 (warning)
  4. flatline            - first flat column with CV < 0.05      (info)
  5. outlier             - first value > 3 stdDev from the mean, per column,
                           at most two columns                   (warning)
  6. correlation         - first numeric pair with |r| >= 0.7    (info)

The merged list is sorted by descending |value| and capped at six entries.
``value`` is rule specific and only meaningful for ranking.
"""

from __future__ import annotations

from itertools import combinations
from typing import List, Optional, Sequence

from .config import Thresholds
from .data_profiler import numeric_values, pearson_correlation
from .models import (
    Insight,
    InsightType,
    NormalizedRecord,
    Severity,
    SheetMetadata,
    TrendKind,
    TrendResult,
)

MAX_TITLE_LENGTH = 60
MAX_DESCRIPTION_LENGTH = 200


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


class _InsightCollector:
    def __init__(self) -> None:
        self.insights: List[Insight] = []

    def add(
        self,
        kind: InsightType,
        severity: Severity,
        title: str,
        description: str,
        related: List[str],
        value: float,
    ) -> None:
        self.insights.append(
            Insight(
                id=f"insight-{len(self.insights)}",
                type=kind,
                severity=severity,
                title=_clip(title, MAX_TITLE_LENGTH),
                description=_clip(description, MAX_DESCRIPTION_LENGTH),
                related_columns=related,
                value=float(value),
            )
        )

    def count(self, kind: InsightType) -> int:
        return sum(1 for i in self.insights if i.type is kind)


def _cv(trend: TrendResult) -> Optional[float]:
    return trend.stats.coefficient_of_variation


def _biggest_mover_up(trends: Sequence[TrendResult], out: _InsightCollector) -> None:
    rising = [t for t in trends if t.trend is TrendKind.RISING]
    if not rising:
        return
    best = max(rising, key=lambda t: t.change_percent)
    out.add(
        InsightType.BIGGEST_MOVER_UP,
        Severity.POSITIVE,
        f"{best.column_name} showing strong growth",
        f"{best.column_name} increased by {best.change_percent:.1f}% in the second "
        f"half of the period ({best.first_half_mean:.2f} → {best.second_half_mean:.2f})",
        [best.column_name],
        best.change_percent,
    )


def _biggest_mover_down(trends: Sequence[TrendResult], out: _InsightCollector) -> None:
    falling = [t for t in trends if t.trend is TrendKind.FALLING]
    if not falling:
        return
    worst = max(falling, key=lambda t: abs(t.change_percent))
    out.add(
        InsightType.BIGGEST_MOVER_DOWN,
        Severity.NEGATIVE,
        f"{worst.column_name} declining",
        f"{worst.column_name} dropped by {abs(worst.change_percent):.1f}% in the second "
        f"half of the period ({worst.first_half_mean:.2f} → {worst.second_half_mean:.2f})",
        [worst.column_name],
        worst.change_percent,
    )


def _high_volatility(
    trends: Sequence[TrendResult], out: _InsightCollector, t: Thresholds
) -> None:
    candidates = [
        (trend, _cv(trend))
        for trend in trends
        if _cv(trend) is not None and _cv(trend) > t.high_volatility_cv
    ]
    if not candidates:
        return
    trend, cv = max(candidates, key=lambda c: c[1])
    out.add(
        InsightType.HIGH_VOLATILITY,
        Severity.WARNING,
        f"{trend.column_name} shows high variability",
        f"{trend.column_name} has high variability (CV: {cv:.2f}). "
        f"Range: {trend.stats.min:.2f} to {trend.stats.max:.2f}",
        [trend.column_name],
        cv,
    )


def _flatline(
    trends: Sequence[TrendResult], out: _InsightCollector, t: Thresholds
) -> None:
    for trend in trends:
        if trend.trend is not TrendKind.FLAT:
            continue
        cv = _cv(trend) or 0.0
        if cv < t.flatline_cv:
            out.add(
                InsightType.FLATLINE,
                Severity.INFO,
                f"{trend.column_name} remains stable",
                f"{trend.column_name} has remained stable at ~{trend.stats.mean:.2f} "
                f"with minimal variation (±{trend.stats.std_dev:.2f})",
                [trend.column_name],
                cv,
            )
            return


def _outliers(
    trends: Sequence[TrendResult],
    records: Sequence[NormalizedRecord],
    out: _InsightCollector,
    t: Thresholds,
) -> None:
    for trend in trends:
        mean, std_dev = trend.stats.mean, trend.stats.std_dev
        if std_dev > 0:
            limit = t.outlier_stddev_multiplier * std_dev
            values = numeric_values(records, trend.column_name)
            for position, value in enumerate(values, start=1):
                deviation = abs(value - mean)
                if deviation > limit:
                    out.add(
                        InsightType.OUTLIER,
                        Severity.WARNING,
                        f"Outlier detected in {trend.column_name}",
                        f"Row {position}: {trend.column_name} = {value:.2f}, which is "
                        f"{deviation / std_dev:.1f} standard deviations from the mean "
                        f"({mean:.2f})",
                        [trend.column_name],
                        deviation,
                    )
                    break
        if out.count(InsightType.OUTLIER) >= t.max_outlier_insights:
            return


def _correlation(
    records: Sequence[NormalizedRecord],
    sheet_meta: SheetMetadata,
    out: _InsightCollector,
    t: Thresholds,
) -> None:
    columns = sheet_meta.numeric_columns
    values = {c.header: numeric_values(records, c.header) for c in columns}
    for first, second in combinations(columns, 2):
        xs, ys = values[first.header], values[second.header]
        length = min(len(xs), len(ys))
        if length < t.min_trend_points:
            continue
        r = pearson_correlation(xs[:length], ys[:length])
        if abs(r) >= t.correlation_threshold:
            direction = "positively" if r > 0 else "negatively"
            out.add(
                InsightType.CORRELATION,
                Severity.INFO,
                f"{first.header} and {second.header} appear correlated",
                f"{first.header} and {second.header} are {direction} correlated "
                f"(r={r:.2f}), suggesting they may move together",
                [first.header, second.header],
                abs(r),
            )
            return


def generate_recommendations(
    trends: Sequence[TrendResult],
    records: Sequence[NormalizedRecord],
    sheet_meta: SheetMetadata,
    thresholds: Optional[Thresholds] = None,
) -> List[Insight]:
    """Run every rule and return at most ``max_insights`` ranked insights."""
    t = thresholds or Thresholds()
    valid = [trend for trend in trends if trend.is_valid]
    if not valid:
        return []

    out = _InsightCollector()
    _biggest_mover_up(valid, out)
    _biggest_mover_down(valid, out)
    _high_volatility(valid, out, t)
    _flatline(valid, out, t)
    _outliers(valid, records, out, t)
    _correlation(records, sheet_meta, out, t)

    ranked = sorted(out.insights, key=lambda i: abs(i.value), reverse=True)
    return ranked[: t.max_insights]


__all__ = ["generate_recommendations"]
