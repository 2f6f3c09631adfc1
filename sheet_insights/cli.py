"""Command-line interface for the sheet insights pipeline.

Usage (examples):
    python -m sheet_insights.cli path/to/file.csv
    python -m sheet_insights.cli path/to/file.xlsx --mode schema_only
    python -m sheet_insights.cli path/to/file.csv --json --output result.json

The CLI prints a concise human-readable summary by default; use --json for full payload.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict
import warnings

from . import run_processing_pipeline
from .errors import SheetParseError


def _summarize(payload: Dict[str, Any]) -> str:
    dataset = payload.get("dataset", {})
    cols = dataset.get("column_names", [])
    preview_cols = cols[:8]
    more = "" if len(cols) <= 8 else f" (+{len(cols)-8} more)"
    lines = [
        f"Rows: {dataset.get('rows')}  Columns: {dataset.get('columns')}",
        f"Columns: {', '.join(preview_cols)}{more}",
        f"Mode: {payload.get('mode')}  Version: {payload.get('version')}",
    ]
    if payload.get("mode") == "full":
        for col in payload.get("sheet_meta", {}).get("columns", [])[:8]:
            pct = " (%)" if col.get("isPercentage") else ""
            lines.append(
                f"  - {col['header']}: type={col['detectedType']}{pct} "
                f"nulls={col['nullCount']} unique={col['uniqueCount']}"
            )
        insights = payload.get("insights", {})
        for kpi in insights.get("kpis", [])[:5]:
            lines.append(
                f"KPI {kpi['columnName']}: {kpi['formattedCurrent']} ({kpi['formattedChange']})"
            )
        for insight in insights.get("insights", []):
            lines.append(f"[{insight['severity']}] {insight['title']}")
        chart = insights.get("headlineChart")
        if chart:
            lines.append(
                f"Chart: {chart['chartType']} x={chart['xAxisColumn']} "
                f"series={', '.join(chart['seriesColumns'])}"
            )
        for warning in payload.get("warnings", []):
            lines.append(f"Warning: {warning}")
        narrative = payload.get("narrative")
        if narrative:
            lines.append(f"Narrative: {narrative['status']}")
    return "\n".join(lines)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Analyse a CSV or Excel file: headers, column types, KPIs and insights."
    )
    parser.add_argument("file", help="Path to input CSV or Excel file")
    parser.add_argument(
        "--mode",
        choices=["full", "schema_only"],
        default="full",
        help="Payload detail level (default: full)",
    )
    parser.add_argument(
        "--sample-size",
        type=int,
        default=10,
        help="Normalised rows included in the full payload (default: 10)",
    )
    parser.add_argument(
        "--max-rows",
        type=int,
        default=None,
        help="Reject files with more rows than this",
    )
    parser.add_argument(
        "--max-columns",
        type=int,
        default=None,
        help="Reject files with more columns than this",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print full JSON payload to stdout (in addition to summary)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log pipeline decisions (header strategy, classification) to stderr",
    )
    parser.add_argument(
        "--suppress-warnings",
        action="store_true",
        help="Suppress runtime warnings raised while decoding the file.",
    )
    parser.add_argument(
        "--output",
        help="Optional path to write full JSON payload (pretty-printed)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
    )

    path = Path(args.file)
    if not path.exists():
        raise SystemExit(f"File not found: {path}")

    if args.suppress_warnings:
        # openpyxl is noisy about unsupported workbook features
        warnings.filterwarnings("ignore", category=UserWarning, module="openpyxl")

    config = {
        "sample_size": args.sample_size,
        "max_rows": args.max_rows,
        "max_columns": args.max_columns,
    }
    try:
        result = run_processing_pipeline(str(path), mode=args.mode, config=config)
    except SheetParseError as exc:
        raise SystemExit(f"Could not analyse {path.name}: {exc}")
    payload = result["payload"]

    print(_summarize(payload))

    if args.json:
        print("\n=== JSON Payload ===")
        print(json.dumps(payload, indent=2, default=str))

    if args.output:
        out_path = Path(args.output)
        out_path.write_text(
            json.dumps(payload, indent=2, default=str), encoding="utf-8"
        )
        print(f"\nSaved JSON payload to {out_path}")


if __name__ == "__main__":  # pragma: no cover
    main()
