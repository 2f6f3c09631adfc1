"""Spreadsheet analysis package: header resolution, column typing, normalisation and insights.

Public entry points:
    analyse_grid(grid, config=None)        -> (ParseResult, InsightsResult)
    parse_grid(grid, config=None)          -> ParseResult
    run_processing_pipeline(file_path: str, *, mode: str = "full", config: Optional[dict] = None,
                            narrative_client=None)
    request_narrative(sheet_meta, insights, records, client=None) -> NarrativeOutcome

Modes:
    full         -> sheet metadata + KPIs, trends, insights, headline chart + sample rows
                    + narrative status (completed / failed / skipped)
    schema_only  -> only dataset + column type schema (lightweight for LLM)
"""

from .errors import SheetParseError  # noqa: F401
from .insights import generate_insights  # noqa: F401
from .narrative import request_narrative  # noqa: F401
from .pipeline import analyse_grid, parse_grid, run_processing_pipeline  # noqa: F401

__all__ = [
    "SheetParseError",
    "analyse_grid",
    "generate_insights",
    "parse_grid",
    "request_narrative",
    "run_processing_pipeline",
]
