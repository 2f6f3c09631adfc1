from sheet_insights import parse_grid
from sheet_insights.config import Thresholds
from sheet_insights.data_profiler import DataProfiler
from sheet_insights.models import InsightType, Severity
from sheet_insights.recommendations import generate_recommendations


def _run(grid, thresholds=None):
    thresholds = thresholds or Thresholds()
    parsed = parse_grid(grid)
    trends = DataProfiler(thresholds).build_trends(parsed.records, parsed.sheet_meta)
    return generate_recommendations(trends, parsed.records, parsed.sheet_meta, thresholds)


def _outlier_grid(columns):
    grid = [list(columns)]
    for i in range(12):
        grid.append(["100" if i == 11 else "10"] * len(columns))
    return grid


def test_monthly_sheet_insights_are_ranked_by_value(monthly_grid):
    insights = _run(monthly_grid)
    assert [i.type for i in insights] == [
        InsightType.BIGGEST_MOVER_UP,
        InsightType.BIGGEST_MOVER_DOWN,
        InsightType.CORRELATION,
        InsightType.HIGH_VOLATILITY,
        InsightType.FLATLINE,
    ]
    up, down, corr, volatility, flat = insights
    assert up.related_columns == ["Sales"]
    assert up.severity is Severity.POSITIVE
    assert down.related_columns == ["Costs"]
    assert down.value < 0
    assert corr.related_columns == ["Sales", "Costs"]
    assert "negatively" in corr.description
    assert volatility.related_columns == ["Sales"]
    assert flat.related_columns == ["Stable"]


def test_insight_ids_are_unique(monthly_grid):
    ids = [i.id for i in _run(monthly_grid)]
    assert len(ids) == len(set(ids))
    assert all(i.startswith("insight-") for i in ids)


def test_insight_cap_is_honoured(monthly_grid):
    insights = _run(monthly_grid, Thresholds(max_insights=2))
    assert [i.type for i in insights] == [
        InsightType.BIGGEST_MOVER_UP,
        InsightType.BIGGEST_MOVER_DOWN,
    ]


def test_outliers_limited_to_two_columns():
    insights = _run(_outlier_grid(["A", "B", "C"]))
    outliers = [i for i in insights if i.type is InsightType.OUTLIER]
    assert [o.related_columns for o in outliers] == [["A"], ["B"]]
    assert outliers[0].description.startswith("Row 12:")
    assert sum(1 for i in insights if i.type is InsightType.CORRELATION) == 1
    assert len(insights) <= 6


def test_no_valid_trends_means_no_insights():
    grid = [["Name", "Score"], ["a", "1"], ["b", "2"], ["c", "3"]]
    assert _run(grid) == []


def test_titles_are_clipped():
    header = "R" * 45
    grid = [[header]] + [[str(v)] for v in (10, 11, 12, 13)]
    insights = _run(grid)
    assert insights[0].type is InsightType.BIGGEST_MOVER_UP
    assert len(insights[0].title) == 60
    assert insights[0].title.endswith("...")
