import pandas as pd
from datetime import datetime
from pathlib import Path

import pytest

from sheet_insights import SheetParseError, analyse_grid, parse_grid, run_processing_pipeline
from sheet_insights.models import ColumnType

MIXED_CSV = """Date,Revenue,Growth %,Category,Notes
2025-01-01,1234.56,12.5%,Electronics,Launch month
02/02/2025,2100.00,8.3%,Electronics,Strong sales
03/03/2025,1950.50,-7.1%,Home & Garden,Seasonal dip
15-Apr-25,2500,28.2%,Electronics,New product
2025-05-01,(150.00),-5.7%,Home & Garden,Returns processed
06/06/2025,3100.75,24%,Sports,Summer boost
"""


def _types(sheet_meta):
    return {c.header: c.detected_type for c in sheet_meta.columns}


def test_mixed_formats_end_to_end(tmp_path: Path):
    csv_path = tmp_path / "mixed.csv"
    csv_path.write_text(MIXED_CSV, encoding="utf-8")

    result = run_processing_pipeline(str(csv_path), mode="full")
    parsed = result["parse_result"]
    meta = parsed.sheet_meta

    assert meta.total_rows == 6
    assert meta.headers == ["Date", "Revenue", "Growth %", "Category", "Notes"]
    assert _types(meta) == {
        "Date": ColumnType.DATE,
        "Revenue": ColumnType.NUMBER,
        "Growth %": ColumnType.NUMBER,
        "Category": ColumnType.CATEGORY,
        "Notes": ColumnType.TEXT,
    }
    growth = meta.columns[2]
    assert growth.is_percentage is True
    assert meta.columns[1].is_percentage is False
    assert meta.date_column_index == 0
    assert meta.numeric_column_indices == [1, 2]
    assert meta.category_column_indices == [3]

    dates = [r["Date"] for r in parsed.records]
    assert dates == [
        "2025-01-01",
        "2025-02-02",
        "2025-03-03",
        "2025-04-15",
        "2025-05-01",
        "2025-06-06",
    ]
    assert parsed.records[4]["Revenue"] == -150.0
    assert parsed.records[0]["Growth %"] == pytest.approx(0.125)
    assert parsed.warnings == []

    kpis = {k.column_name: k for k in result["insights"].kpis}
    revenue = kpis["Revenue"]
    assert revenue.current_value == 3100.75
    assert revenue.previous_value == -150.0
    assert revenue.change_direction.value == "up"

    payload = result["payload"]
    assert payload["mode"] == "full"
    assert payload["dataset"]["rows"] == 6
    assert len(payload["sample_rows"]) == 6
    assert "generatedAt" in payload["insights"]
    assert payload["insights"]["headlineChart"]["chartType"] == "line"


def test_pipeline_schema_only(tmp_path: Path):
    df = pd.DataFrame({"A": [1, 2, 3], "B": ["x", "y", "z"]})
    csv_path = tmp_path / "simple.csv"
    df.to_csv(csv_path, index=False)

    result = run_processing_pipeline(str(csv_path), mode="schema_only")
    payload = result["payload"]
    assert payload["mode"] == "schema_only"
    assert payload["columns"] == {"A": {"type": "number"}, "B": {"type": "text"}}
    # schema_only mode intentionally excludes sample_rows
    assert "sample_rows" not in payload


def test_invalid_mode_rejected(tmp_path: Path):
    csv_path = tmp_path / "simple.csv"
    csv_path.write_text("A\n1\n", encoding="utf-8")
    with pytest.raises(ValueError):
        run_processing_pipeline(str(csv_path), mode="everything")


def test_percentage_and_currency_normalization(tmp_path: Path):
    df = pd.DataFrame(
        {
            "Label": ["Row1", "Row2", "Row3"],
            "Revenue": ["$1,200", "$2,500", "$3,750"],
            "Margin %": ["15%", "20%", "18%"],
        }
    )
    csv_path = tmp_path / "metrics.csv"
    df.to_csv(csv_path, index=False)

    result = run_processing_pipeline(str(csv_path))
    cleaned = result["cleaned_df"]

    assert cleaned["Revenue"].tolist() == [1200.0, 2500.0, 3750.0]
    assert cleaned["Margin %"].tolist() == pytest.approx([0.15, 0.20, 0.18])
    margin = result["parse_result"].sheet_meta.columns[2]
    assert margin.is_percentage


def test_title_rows_and_ragged_csv(tmp_path: Path):
    csv_path = tmp_path / "report.csv"
    csv_path.write_text(
        "Quarterly Sales Report\n"
        "\n"
        "Region,Units,Revenue\n"
        "North,10,100\n"
        "South,12,150\n"
        "North,9,90\n",
        encoding="utf-8",
    )

    result = run_processing_pipeline(str(csv_path))
    meta = result["parse_result"].sheet_meta
    assert meta.headers == ["Region", "Units", "Revenue"]
    assert meta.total_rows == 3
    assert meta.category_column_indices == [0]
    assert result["insights"].headline_chart.chart_type.value == "bar"
    assert result["insights"].headline_chart.x_axis_column == "Region"


def test_excel_dates_are_decoded(tmp_path: Path):
    df = pd.DataFrame(
        {
            "Month": [datetime(2024, m, 1) for m in range(1, 7)],
            "Orders": [10, 12, 15, 18, 21, 25],
        }
    )
    xlsx_path = tmp_path / "orders.xlsx"
    df.to_excel(xlsx_path, index=False)

    result = run_processing_pipeline(str(xlsx_path))
    parsed = result["parse_result"]
    assert parsed.sheet_meta.date_column_index == 0
    assert parsed.records[0]["Month"] == "2024-01-01"
    chart = result["insights"].headline_chart
    assert chart.chart_type.value == "area"
    assert chart.series_columns == ["Orders"]


def test_unsupported_file_type(tmp_path: Path):
    path = tmp_path / "notes.txt"
    path.write_text("hello", encoding="utf-8")
    with pytest.raises(SheetParseError, match="Unsupported file type"):
        run_processing_pipeline(str(path))


def test_empty_grid_is_terminal():
    with pytest.raises(SheetParseError, match="no data"):
        parse_grid([])
    with pytest.raises(SheetParseError, match="no data"):
        parse_grid([[None, ""], ["", None]])


def test_header_only_grid_is_terminal():
    with pytest.raises(SheetParseError, match="No data rows"):
        parse_grid([["Date", "Revenue", "Region"]])


def test_row_and_column_ceilings():
    grid = [["A", "B", "C"], ["x", "1", "2"], ["y", "3", "4"], ["z", "5", "6"]]
    with pytest.raises(SheetParseError, match="row limit"):
        parse_grid(grid, {"max_rows": 3})
    with pytest.raises(SheetParseError, match="column limit"):
        parse_grid(grid, {"max_columns": 2})
    assert parse_grid(grid, {"max_rows": 4, "max_columns": 3}).sheet_meta.total_rows == 3


def test_date_parse_failures_become_warnings():
    grid = [["Date", "Value"]]
    for day in range(1, 9):
        grid.append([f"2024-01-0{day}", str(day * 10)])
    grid.append(["TBD", "90"])
    grid.append(["unknown", "100"])

    parsed = parse_grid(grid)
    assert parsed.sheet_meta.columns[0].detected_type is ColumnType.DATE
    assert parsed.records[8]["Date"] is None
    assert len(parsed.warnings) == 1
    assert 'Column "Date"' in parsed.warnings[0]
    assert "20%" in parsed.warnings[0]


def test_unparseable_cells_become_absent():
    grid = [
        ["Item", "Price"],
        ["a", "10"],
        ["b", "12"],
        ["c", "oops"],
        ["d", "14"],
        ["e", "15"],
    ]
    parsed = parse_grid(grid)
    assert parsed.sheet_meta.columns[1].detected_type is ColumnType.NUMBER
    assert [r["Price"] for r in parsed.records] == [10.0, 12.0, None, 14.0, 15.0]


def test_pipeline_is_deterministic():
    grid = [["Date", "Sales", "Costs"]] + [
        [f"2024-0{m}-01", str(100 + m * 7), str(300 - m * 11)] for m in range(1, 10)
    ]
    first_parse, first = analyse_grid(grid)
    second_parse, second = analyse_grid(grid)
    assert first_parse.to_dict() == second_parse.to_dict()
    assert first.to_dict() == second.to_dict()
    assert "generatedAt" not in first.to_dict()


def _sales_csv(tmp_path: Path) -> str:
    df = pd.DataFrame(
        {
            "Month": [f"2024-0{m}-01" for m in range(1, 7)],
            "Sales": [100, 120, 130, 150, 170, 200],
            "Region": ["North", "South", "North", "South", "North", "South"],
        }
    )
    csv_path = tmp_path / "sales.csv"
    df.to_csv(csv_path, index=False)
    return str(csv_path)


def _without_timestamp(payload):
    payload = dict(payload)
    payload["insights"] = {
        k: v for k, v in payload["insights"].items() if k != "generatedAt"
    }
    payload.pop("narrative")
    return payload


def test_narrative_skipped_without_client(tmp_path: Path):
    result = run_processing_pipeline(_sales_csv(tmp_path))
    assert result["payload"]["narrative"]["status"] == "skipped"
    assert result["narrative"].result is None


def test_failing_narrative_client_leaves_payload_intact(tmp_path: Path):
    csv_path = _sales_csv(tmp_path)

    def broken_client(system_prompt, user_prompt):
        raise ConnectionError("service unavailable")

    baseline = run_processing_pipeline(csv_path)
    result = run_processing_pipeline(csv_path, narrative_client=broken_client)

    narrative = result["payload"]["narrative"]
    assert narrative["status"] == "failed"
    assert narrative["error"] == "service unavailable"
    assert _without_timestamp(result["payload"]) == _without_timestamp(baseline["payload"])


def test_narrative_client_receives_sheet_context(tmp_path: Path):
    calls = []

    def client(system_prompt, user_prompt):
        calls.append(user_prompt)
        return (
            '{"executiveSummary": "Sales doubled over six months.",'
            ' "crossColumnPatterns": [], "actionItems": ["Expand North"]}'
        )

    result = run_processing_pipeline(_sales_csv(tmp_path), narrative_client=client)
    narrative = result["payload"]["narrative"]
    assert narrative["status"] == "completed"
    assert narrative["result"]["executiveSummary"] == "Sales doubled over six months."
    assert "Date column: Month" in calls[0]


def test_schema_only_does_not_request_narrative(tmp_path: Path):
    def client(system_prompt, user_prompt):
        raise AssertionError("narrative must not be requested in schema_only mode")

    result = run_processing_pipeline(
        _sales_csv(tmp_path), mode="schema_only", narrative_client=client
    )
    assert result["narrative"] is None
    assert "narrative" not in result["payload"]
