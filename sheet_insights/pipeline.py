import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .cleaning_utils import (
    _drop_fully_blank_rows,
    cell_to_text,
    normalize_date,
    normalize_number,
)
from .config import Limits, Thresholds, resolve_config
from .errors import SheetParseError
from .headers import resolve_headers
from .insights import generate_insights
from .models import (
    ColumnMetadata,
    ColumnType,
    InsightsResult,
    NormalizedRecord,
    ParseResult,
    SheetMetadata,
)
from .narrative import NarrativeClient, NarrativeOutcome, request_narrative
from .type_inference import TypeInferencer

logger = logging.getLogger(__name__)

RawGrid = Union[pd.DataFrame, Sequence[Sequence[Any]]]

PAYLOAD_VERSION = "v1"
PERCENT_DECIMALS = 6

# ---------------------------------------------------------------------------
# File decoding (outside the pure core; used by the CLI and file entry point)
# ---------------------------------------------------------------------------


def _csv_width(file_path: str) -> int:
    with open(file_path, newline="", encoding="utf-8-sig") as fh:
        return max((len(row) for row in csv.reader(fh)), default=0)


def _load_raw(file_path: str) -> Tuple[pd.DataFrame, str]:
    ext = Path(file_path).suffix.lower()
    if ext in (".xlsx", ".xls"):
        # Only first sheet
        df_raw = pd.read_excel(file_path, sheet_name=0, header=None, dtype=object)
        return df_raw, "excel"
    elif ext == ".csv":
        # Load raw with no header for structural normalization; title rows make
        # CSVs ragged, so every row is padded to the widest one.
        width = _csv_width(file_path)
        if width == 0:
            return pd.DataFrame(dtype=object), "csv"
        df_raw = pd.read_csv(
            file_path,
            header=None,
            names=list(range(width)),
            dtype=object,
            engine="python",
            encoding="utf-8-sig",
            skip_blank_lines=True,
        )
        return df_raw, "csv"
    else:
        raise SheetParseError(f"Unsupported file type: {ext}")


def _grid_frame(grid: RawGrid) -> pd.DataFrame:
    if isinstance(grid, pd.DataFrame):
        df = grid.copy()
    else:
        df = pd.DataFrame([list(row) for row in grid], dtype=object)
    df.columns = range(df.shape[1])
    return df.astype(object)


# ---------------------------------------------------------------------------
# Normalisation pass
# ---------------------------------------------------------------------------


def _trim(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _normalize_value(value: Any, column: ColumnMetadata) -> Any:
    if column.detected_type is ColumnType.DATE:
        return normalize_date(value)
    if column.detected_type is ColumnType.NUMBER:
        number = normalize_number(value)
        # Percent strings become fractions; bare numbers are assumed to be
        # fractions already.
        if column.is_percentage and number is not None and isinstance(value, str) and "%" in value:
            number = round(number / 100, PERCENT_DECIMALS)
        return number
    return cell_to_text(value)


def _date_warnings(
    records: List[NormalizedRecord], columns: List[ColumnMetadata], thresholds: Thresholds
) -> List[str]:
    warnings: List[str] = []
    if not records:
        return warnings
    for column in columns:
        if column.detected_type is not ColumnType.DATE:
            continue
        failed = sum(1 for r in records if r.get(column.header) is None)
        failure_rate = failed / len(records)
        if failure_rate > thresholds.date_failure_warning_rate:
            message = (
                f'Column "{column.header}": {round(failure_rate * 100)}% of date '
                "values failed to parse"
            )
            logger.warning("%s", message)
            warnings.append(message)
    return warnings


def _build_sheet_meta(
    headers: List[str], columns: List[ColumnMetadata], total_rows: int
) -> SheetMetadata:
    date_indices = [c.index for c in columns if c.detected_type is ColumnType.DATE]
    return SheetMetadata(
        headers=list(headers),
        columns=columns,
        date_column_index=date_indices[0] if date_indices else None,
        numeric_column_indices=[
            c.index for c in columns if c.detected_type is ColumnType.NUMBER
        ],
        category_column_indices=[
            c.index for c in columns if c.detected_type is ColumnType.CATEGORY
        ],
        total_rows=total_rows,
        total_columns=len(headers),
    )


def _check_rows(df: pd.DataFrame, limits: Limits) -> None:
    if df.empty:
        raise SheetParseError("File contains no data")
    if df.shape[0] > limits.max_rows:
        raise SheetParseError(
            f"File exceeds maximum row limit of {limits.max_rows:,}"
        )


def parse_grid(grid: RawGrid, config: Optional[Dict[str, Any]] = None) -> ParseResult:
    """Raw cell grid -> SheetMetadata + normalised records + warnings.

    Raises SheetParseError for empty, header-only or oversized grids.
    """
    thresholds, limits = resolve_config(config)

    df = _drop_fully_blank_rows(_grid_frame(grid))
    _check_rows(df, limits)

    resolution = resolve_headers(df)
    headers = resolution.headers
    if len(headers) > limits.max_columns:
        raise SheetParseError(
            f"File exceeds maximum column limit of {limits.max_columns}"
        )

    body = resolution.data_rows.iloc[:, : len(headers)].apply(lambda col: col.map(_trim))
    body.columns = headers

    columns = TypeInferencer(thresholds).infer_types(body)

    records: List[NormalizedRecord] = [
        {col.header: _normalize_value(row[col.index], col) for col in columns}
        for row in body.itertuples(index=False, name=None)
    ]
    warnings = _date_warnings(records, columns, thresholds)
    sheet_meta = _build_sheet_meta(headers, columns, len(records))

    logger.info(
        "parsed grid: rows=%d columns=%d header_strategy=%s",
        sheet_meta.total_rows,
        sheet_meta.total_columns,
        resolution.strategy,
    )
    return ParseResult(sheet_meta=sheet_meta, records=records, warnings=warnings)


def analyse_grid(
    grid: RawGrid, config: Optional[Dict[str, Any]] = None
) -> Tuple[ParseResult, InsightsResult]:
    """Full deterministic pipeline: parse, then KPIs/trends/insights/chart."""
    thresholds, _ = resolve_config(config)
    parsed = parse_grid(grid, config)
    insights = generate_insights(parsed.records, parsed.sheet_meta, thresholds)
    return parsed, insights


# ---------------------------------------------------------------------------
# Payload assembly
# ---------------------------------------------------------------------------


def _build_payload(
    parsed: ParseResult,
    insights: InsightsResult,
    file_kind: str,
    mode: str,
    config: Dict[str, Any],
    narrative: Optional[NarrativeOutcome] = None,
) -> Dict[str, Any]:
    meta = parsed.sheet_meta
    dataset = {
        "rows": meta.total_rows,
        "columns": meta.total_columns,
        "column_names": list(meta.headers),
        "file_kind": file_kind,
    }

    if mode == "schema_only":
        return {
            "dataset": dataset,
            "columns": {
                c.header: {"type": c.detected_type.value} for c in meta.columns
            },
            "mode": mode,
            "version": PAYLOAD_VERSION,
        }

    sample_size = int(config.get("sample_size", 10))
    return {
        "dataset": dataset,
        "sheet_meta": meta.to_dict(),
        "insights": insights.to_dict(),
        "sample_rows": [dict(r) for r in parsed.records[:sample_size]],
        "warnings": list(parsed.warnings),
        "narrative": narrative.to_dict() if narrative else None,
        "mode": mode,
        "version": PAYLOAD_VERSION,
    }


def run_processing_pipeline(
    file_path: str,
    *,
    mode: str = "full",
    config: Optional[Dict[str, Any]] = None,
    narrative_client: Optional[NarrativeClient] = None,
) -> Dict[str, Any]:
    """Primary orchestrator: load -> resolve headers -> classify -> normalise -> insights.

    Parameters
    ----------
    file_path : str
        Path to CSV or Excel file (first sheet only for Excel).
    mode : str
        'full' or 'schema_only'.
    config : dict, optional
        Threshold/limit overrides plus ``sample_size`` for full mode.
    narrative_client : callable, optional
        ``(system_prompt, user_prompt) -> str`` used in full mode to request a
        narrative summary. Without one the narrative is reported as skipped;
        client failures are reported as failed and never abort the run.

    Returns
    -------
    dict with keys: cleaned_df, payload, parse_result, insights, narrative
    (narrative is None in schema_only mode)
    """
    if mode not in ("full", "schema_only"):
        raise ValueError("mode must be 'full' or 'schema_only'")
    cfg = config or {}

    df_raw, file_kind = _load_raw(file_path)
    parsed, insights = analyse_grid(df_raw, cfg)
    stamped = InsightsResult(
        kpis=insights.kpis,
        trends=insights.trends,
        insights=insights.insights,
        headline_chart=insights.headline_chart,
        generated_at=datetime.now(timezone.utc).isoformat(),
    )

    narrative = None
    if mode == "full":
        narrative = request_narrative(
            parsed.sheet_meta, stamped, parsed.records, narrative_client
        )

    cleaned_df = pd.DataFrame(parsed.records, columns=parsed.sheet_meta.headers)
    payload = _build_payload(parsed, stamped, file_kind, mode, cfg, narrative)

    return {
        "cleaned_df": cleaned_df,
        "payload": payload,
        "parse_result": parsed,
        "insights": stamped,
        "narrative": narrative,
    }
