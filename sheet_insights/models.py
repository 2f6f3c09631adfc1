"""Result records shared by the parsing and insight stages.

Records are frozen dataclasses; ``to_dict`` produces the camelCase shape
consumed by persistence and presentation collaborators.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# One normalised data row: header -> ISO date string, float, text or None.
NormalizedRecord = Dict[str, Any]


class ColumnType(str, Enum):
    DATE = "date"
    NUMBER = "number"
    CATEGORY = "category"
    TEXT = "text"


class TrendKind(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    FLAT = "flat"
    VOLATILE = "volatile"
    INSUFFICIENT_DATA = "insufficient_data"


class ChangeDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class InsightType(str, Enum):
    BIGGEST_MOVER_UP = "biggest_mover_up"
    BIGGEST_MOVER_DOWN = "biggest_mover_down"
    HIGH_VOLATILITY = "high_volatility"
    FLATLINE = "flatline"
    OUTLIER = "outlier"
    CORRELATION = "correlation"


class Severity(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    WARNING = "warning"
    INFO = "info"


class ChartType(str, Enum):
    LINE = "line"
    AREA = "area"
    BAR = "bar"


@dataclass(frozen=True)
class ColumnMetadata:
    index: int
    header: str
    detected_type: ColumnType
    sample_values: List[str] = field(default_factory=list)
    null_count: int = 0
    unique_count: int = 0
    is_percentage: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "header": self.header,
            "detectedType": self.detected_type.value,
            "sampleValues": list(self.sample_values),
            "nullCount": self.null_count,
            "uniqueCount": self.unique_count,
            "isPercentage": self.is_percentage,
        }


@dataclass(frozen=True)
class SheetMetadata:
    headers: List[str]
    columns: List[ColumnMetadata]
    date_column_index: Optional[int]
    numeric_column_indices: List[int]
    category_column_indices: List[int]
    total_rows: int
    total_columns: int

    @property
    def date_column(self) -> Optional[ColumnMetadata]:
        if self.date_column_index is None:
            return None
        return self.columns[self.date_column_index]

    @property
    def numeric_columns(self) -> List[ColumnMetadata]:
        return [self.columns[i] for i in self.numeric_column_indices]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headers": list(self.headers),
            "columns": [c.to_dict() for c in self.columns],
            "dateColumnIndex": self.date_column_index,
            "numericColumnIndices": list(self.numeric_column_indices),
            "categoryColumnIndices": list(self.category_column_indices),
            "totalRows": self.total_rows,
            "totalColumns": self.total_columns,
        }


@dataclass(frozen=True)
class ColumnStats:
    min: float = 0.0
    max: float = 0.0
    mean: float = 0.0
    median: float = 0.0
    std_dev: float = 0.0

    @property
    def coefficient_of_variation(self) -> Optional[float]:
        """stdDev / |mean|, or None when the mean is zero."""
        if self.mean == 0:
            return None
        return self.std_dev / abs(self.mean)

    def to_dict(self) -> Dict[str, float]:
        return {
            "min": self.min,
            "max": self.max,
            "mean": self.mean,
            "median": self.median,
            "stdDev": self.std_dev,
        }


@dataclass(frozen=True)
class TrendResult:
    column_name: str
    column_index: int
    trend: TrendKind
    first_half_mean: float
    second_half_mean: float
    change_percent: float
    stats: ColumnStats

    @property
    def is_valid(self) -> bool:
        return self.trend is not TrendKind.INSUFFICIENT_DATA

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columnName": self.column_name,
            "columnIndex": self.column_index,
            "trend": self.trend.value,
            "firstHalfMean": self.first_half_mean,
            "secondHalfMean": self.second_half_mean,
            "changePercent": self.change_percent,
            "stats": self.stats.to_dict(),
        }


@dataclass(frozen=True)
class KPI:
    column_name: str
    column_index: int
    current_value: float
    previous_value: float
    change_percent: float
    change_direction: ChangeDirection
    sparkline: List[float]
    formatted_current: str
    formatted_change: str
    is_percentage_column: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columnName": self.column_name,
            "columnIndex": self.column_index,
            "currentValue": self.current_value,
            "previousValue": self.previous_value,
            "changePercent": self.change_percent,
            "changeDirection": self.change_direction.value,
            "sparklineData": list(self.sparkline),
            "formattedCurrent": self.formatted_current,
            "formattedChange": self.formatted_change,
            "isPercentageColumn": self.is_percentage_column,
        }


@dataclass(frozen=True)
class Insight:
    id: str
    type: InsightType
    severity: Severity
    title: str
    description: str
    related_columns: List[str]
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "relatedColumns": list(self.related_columns),
            "value": self.value,
        }


@dataclass(frozen=True)
class ChartConfig:
    chart_type: ChartType
    x_axis_column: str
    series_columns: List[str]
    title: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chartType": self.chart_type.value,
            "xAxisColumn": self.x_axis_column,
            "seriesColumns": list(self.series_columns),
            "title": self.title,
        }


@dataclass(frozen=True)
class InsightsResult:
    kpis: List[KPI]
    trends: List[TrendResult]
    insights: List[Insight]
    headline_chart: ChartConfig
    # Stamped at the file boundary only; the core result is time independent.
    generated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "kpis": [k.to_dict() for k in self.kpis],
            "trends": [t.to_dict() for t in self.trends],
            "insights": [i.to_dict() for i in self.insights],
            "headlineChart": self.headline_chart.to_dict(),
        }
        if self.generated_at is not None:
            out["generatedAt"] = self.generated_at
        return out


@dataclass(frozen=True)
class ParseResult:
    sheet_meta: SheetMetadata
    records: List[NormalizedRecord]
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw_data": [dict(r) for r in self.records],
            "sheet_meta": self.sheet_meta.to_dict(),
            "warnings": list(self.warnings),
        }


__all__ = [
    "NormalizedRecord",
    "ColumnType",
    "TrendKind",
    "ChangeDirection",
    "InsightType",
    "Severity",
    "ChartType",
    "ColumnMetadata",
    "SheetMetadata",
    "ColumnStats",
    "TrendResult",
    "KPI",
    "Insight",
    "ChartConfig",
    "InsightsResult",
    "ParseResult",
]
