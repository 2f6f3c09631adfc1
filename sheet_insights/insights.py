"""Insights engine: KPIs, trends, recommendations and the headline chart.

Fully deterministic; the same records and metadata always produce the same
result.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import pandas as pd

from .config import Thresholds
from .data_profiler import DataProfiler, numeric_values
from .models import (
    KPI,
    ChangeDirection,
    ChartConfig,
    ChartType,
    ColumnMetadata,
    InsightsResult,
    NormalizedRecord,
    SheetMetadata,
    TrendResult,
)
from .recommendations import generate_recommendations

logger = logging.getLogger(__name__)

MAX_LINE_SERIES = 3
MAX_BAR_SERIES = 5


def order_records(
    records: Sequence[NormalizedRecord], sheet_meta: SheetMetadata
) -> List[NormalizedRecord]:
    """Records sorted by the date column (oldest first), else input order.

    Rows whose date is absent sort first; ties keep their input order.
    """
    date_column = sheet_meta.date_column
    if date_column is None:
        return list(records)
    keys = pd.to_datetime(
        pd.Series([r.get(date_column.header) for r in records], dtype=object),
        errors="coerce",
        utc=True,
        format="ISO8601",
    )
    order = keys.sort_values(kind="mergesort", na_position="first").index
    return [records[i] for i in order]


def format_number(value: float, is_percentage: bool) -> str:
    if is_percentage:
        return f"{value * 100:.1f}%"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:.2f}"


def format_change(change_percent: float) -> str:
    sign = "+" if change_percent > 0 else ""
    return f"{sign}{change_percent:.1f}%"


def build_kpis(
    records: Sequence[NormalizedRecord],
    sheet_meta: SheetMetadata,
    thresholds: Optional[Thresholds] = None,
) -> List[KPI]:
    """Current-vs-previous KPI per numeric column with enough values."""
    t = thresholds or Thresholds()
    ordered = order_records(records, sheet_meta)
    kpis: List[KPI] = []
    for col in sheet_meta.numeric_columns:
        values = numeric_values(ordered, col.header)
        if len(values) < t.min_kpi_points:
            continue
        current, previous = values[-1], values[-2]
        change = current - previous
        change_percent = 0.0 if previous == 0 else change / abs(previous) * 100
        if abs(change_percent) < t.kpi_flat_percent:
            direction = ChangeDirection.FLAT
        elif change > 0:
            direction = ChangeDirection.UP
        else:
            direction = ChangeDirection.DOWN
        kpis.append(
            KPI(
                column_name=col.header,
                column_index=col.index,
                current_value=current,
                previous_value=previous,
                change_percent=change_percent,
                change_direction=direction,
                sparkline=values[-t.sparkline_length:],
                formatted_current=format_number(current, col.is_percentage),
                formatted_change=format_change(change_percent),
                is_percentage_column=col.is_percentage,
            )
        )
    return kpis


def _headers(columns: Sequence[ColumnMetadata]) -> List[str]:
    return [c.header for c in columns]


def select_headline_chart(
    sheet_meta: SheetMetadata, trends: Sequence[TrendResult]
) -> ChartConfig:
    date_column = sheet_meta.date_column
    numeric = sheet_meta.numeric_columns
    categories = [sheet_meta.columns[i] for i in sheet_meta.category_column_indices]

    if date_column is not None and len(numeric) >= 2:
        movers = sorted(
            (t for t in trends if t.is_valid),
            key=lambda t: abs(t.change_percent),
            reverse=True,
        )[:MAX_LINE_SERIES]
        if len(movers) >= MAX_LINE_SERIES:
            series = [t.column_name for t in movers]
        else:
            series = _headers(numeric[:MAX_LINE_SERIES])
        return ChartConfig(ChartType.LINE, date_column.header, series, "Trends Over Time")

    if date_column is not None and len(numeric) == 1:
        header = numeric[0].header
        return ChartConfig(
            ChartType.AREA, date_column.header, [header], f"{header} Over Time"
        )

    if date_column is None and categories:
        category = categories[0]
        return ChartConfig(
            ChartType.BAR,
            category.header,
            _headers(numeric[:MAX_BAR_SERIES]),
            f"Comparison by {category.header}",
        )

    # Numeric-only sheets: the first numeric header stands in for the axis.
    series = _headers(numeric[:MAX_BAR_SERIES])
    return ChartConfig(
        ChartType.BAR,
        series[0] if series else "Value",
        series[1:],
        "Metric Comparison",
    )


def generate_insights(
    records: Sequence[NormalizedRecord],
    sheet_meta: SheetMetadata,
    thresholds: Optional[Thresholds] = None,
) -> InsightsResult:
    t = thresholds or Thresholds()
    profiler = DataProfiler(t)
    trends = profiler.build_trends(records, sheet_meta)
    kpis = build_kpis(records, sheet_meta, t)
    insights = generate_recommendations(trends, records, sheet_meta, t)
    chart = select_headline_chart(sheet_meta, trends)
    logger.info(
        "insights generated: kpis=%d trends=%s insights=%d chart=%s",
        len(kpis),
        profiler.summarize(trends),
        len(insights),
        chart.chart_type.value,
    )
    return InsightsResult(kpis=kpis, trends=trends, insights=insights, headline_chart=chart)


__all__ = [
    "order_records",
    "format_number",
    "format_change",
    "build_kpis",
    "select_headline_chart",
    "generate_insights",
]
