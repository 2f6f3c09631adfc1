"""Boundary with the optional narrative-generation collaborator.

The deterministic result never depends on this module. It prepares a
token-budgeted data sample and prompts, hands them to a caller-supplied
client callable and validates what comes back. Every failure degrades to a
``failed`` or ``skipped`` outcome; nothing here raises.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models import ColumnType, InsightsResult, NormalizedRecord, SheetMetadata

logger = logging.getLogger(__name__)

# (system_prompt, user_prompt) -> raw model text. Timeouts are the client's job.
NarrativeClient = Callable[[str, str], str]

TOKEN_BUDGET = 2500
TOKENS_PER_CELL = 5
MAX_CATEGORY_COLUMNS = 2
MAX_NUMERIC_COLUMNS = 10
HEAD_ROWS = 50
TAIL_ROWS = 20


class NarrativeStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


_Takeaway = Annotated[str, Field(max_length=150)]
_LongItem = Annotated[str, Field(max_length=300)]
_ShortItem = Annotated[str, Field(max_length=200)]


class NarrativeResult(BaseModel):
    """Structured narrative returned by the collaborator."""

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    executive_summary: str = Field(alias="executiveSummary", min_length=1, max_length=1000)
    key_takeaways: Optional[Annotated[List[_Takeaway], Field(max_length=4)]] = Field(
        default=None, alias="keyTakeaways"
    )
    cross_column_patterns: Annotated[List[_LongItem], Field(max_length=3)] = Field(
        alias="crossColumnPatterns"
    )
    action_items: Annotated[List[_LongItem], Field(max_length=3)] = Field(alias="actionItems")
    quick_wins: Optional[Annotated[List[_ShortItem], Field(max_length=3)]] = Field(
        default=None, alias="quickWins"
    )
    next_steps: Optional[Annotated[List[_ShortItem], Field(max_length=3)]] = Field(
        default=None, alias="nextSteps"
    )
    data_quality_concerns: Annotated[List[_ShortItem], Field(max_length=5)] = Field(
        default_factory=list, alias="dataQualityConcerns"
    )
    display_hints: Optional[Dict[str, Any]] = Field(default=None, alias="displayHints")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class NarrativeOutcome:
    status: NarrativeStatus
    result: Optional[NarrativeResult] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
        }


def estimate_tokens(records: Sequence[NormalizedRecord], sheet_meta: SheetMetadata) -> int:
    return len(records) * sheet_meta.total_columns * TOKENS_PER_CELL


def prepare_sample(
    records: Sequence[NormalizedRecord],
    sheet_meta: SheetMetadata,
    insights: InsightsResult,
) -> List[NormalizedRecord]:
    """Full dataset when small, otherwise a pruned head/tail sample.

    Pruning keeps the date column, up to two category columns and the ten
    numeric columns with the largest |changePercent|, then the first 50 and
    last 20 rows.
    """
    if estimate_tokens(records, sheet_meta) < TOKEN_BUDGET:
        return [dict(r) for r in records]

    keep: List[str] = []
    if sheet_meta.date_column is not None:
        keep.append(sheet_meta.date_column.header)
    categories = [
        c.header for c in sheet_meta.columns if c.detected_type is ColumnType.CATEGORY
    ]
    keep.extend(categories[:MAX_CATEGORY_COLUMNS])
    movers = sorted(insights.kpis, key=lambda k: abs(k.change_percent), reverse=True)
    keep.extend(k.column_name for k in movers[:MAX_NUMERIC_COLUMNS])

    rows = list(records)
    if len(rows) > HEAD_ROWS + TAIL_ROWS:
        rows = rows[:HEAD_ROWS] + rows[-TAIL_ROWS:]
    return [{h: row.get(h) for h in keep if h in row} for row in rows]


def build_system_prompt() -> str:
    return (
        "You are a data analyst reviewing a spreadsheet upload for an internal "
        "business team. You receive column metadata, pre-computed statistics "
        "(KPIs, trends, rule-based insights) and a sample of the data.\n\n"
        "Write a 3-5 sentence executive summary (max 1000 characters), 2-3 "
        "cross-column patterns the rule-based engine might miss (max 300 "
        "characters each), 2-3 specific next steps (max 300 characters each) "
        "and any data quality concerns (max 200 characters each).\n\n"
        "Reference actual column names and numbers, never invent data points "
        "and respond only with valid JSON matching the requested schema."
    )


def build_user_prompt(
    sheet_meta: SheetMetadata,
    insights: InsightsResult,
    records: Sequence[NormalizedRecord],
) -> str:
    sample = prepare_sample(records, sheet_meta, insights)
    date_name = sheet_meta.date_column.header if sheet_meta.date_column else "None"
    numeric_names = ", ".join(c.header for c in sheet_meta.numeric_columns) or "None"
    kpi_lines = "\n".join(
        f"- {k.column_name}: {k.formatted_current} ({k.formatted_change})"
        for k in insights.kpis
    )
    trend_lines = "\n".join(
        f"- {t.column_name}: {t.trend.value} ({t.change_percent:.1f}% change)"
        for t in insights.trends
    )
    insight_lines = "\n".join(
        f"- [{i.type.value}] {i.description}" for i in insights.insights
    )
    sample_json = json.dumps(sample, separators=(",", ":"), default=str)
    schema = json.dumps(
        {
            "executiveSummary": "string",
            "crossColumnPatterns": ["string"],
            "actionItems": ["string"],
            "dataQualityConcerns": ["string"],
        },
        indent=2,
    )
    return (
        "## Sheet Overview\n"
        f"- {sheet_meta.total_rows} rows, {sheet_meta.total_columns} columns\n"
        f"- Columns: {', '.join(sheet_meta.headers)}\n"
        f"- Date column: {date_name}\n"
        f"- Numeric columns: {numeric_names}\n\n"
        f"## Pre-Computed KPIs\n{kpi_lines or 'No KPIs available'}\n\n"
        f"## Detected Trends\n{trend_lines or 'No trends detected'}\n\n"
        f"## Rule-Based Insights\n{insight_lines or 'No insights generated'}\n\n"
        f"## Data Sample ({len(sample)} rows)\n{sample_json}\n\n"
        f"Respond with valid JSON matching this schema:\n{schema}"
    )


def _extract_json(text: str) -> Optional[Any]:
    stripped = text.strip()
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass
    for pattern in (r"```json\s*\n(.*?)\n\s*```", r"```\s*\n(.*?)\n\s*```", r"\{.*\}"):
        match = re.search(pattern, stripped, re.DOTALL)
        if not match:
            continue
        candidate = match.group(1) if match.groups() else match.group(0)
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


def parse_narrative_response(raw_text: str) -> Optional[NarrativeResult]:
    """Parse and validate collaborator output; None when unusable."""
    parsed = _extract_json(raw_text)
    if not isinstance(parsed, dict):
        logger.error("narrative: no JSON object in response: %.200s", raw_text)
        return None
    try:
        result = NarrativeResult.model_validate(parsed)
    except ValidationError as exc:
        logger.error("narrative: schema validation failed: %s", exc.errors())
        return None
    return result


def request_narrative(
    sheet_meta: SheetMetadata,
    insights: InsightsResult,
    records: Sequence[NormalizedRecord],
    client: Optional[NarrativeClient] = None,
) -> NarrativeOutcome:
    """Ask the collaborator for a narrative. Never raises."""
    if client is None:
        logger.info("narrative: no client configured, skipping")
        return NarrativeOutcome(NarrativeStatus.SKIPPED, error="No narrative client configured")

    try:
        raw = client(build_system_prompt(), build_user_prompt(sheet_meta, insights, records))
    except Exception as exc:  # any collaborator failure is non-fatal
        logger.error("narrative: client call failed: %s", exc)
        return NarrativeOutcome(NarrativeStatus.FAILED, error=str(exc) or type(exc).__name__)

    if not isinstance(raw, str) or not raw.strip():
        logger.error("narrative: empty response")
        return NarrativeOutcome(NarrativeStatus.FAILED, error="Empty narrative response")

    result = parse_narrative_response(raw)
    if result is None:
        return NarrativeOutcome(NarrativeStatus.FAILED, error="Malformed narrative response")
    logger.info("narrative: completed")
    return NarrativeOutcome(NarrativeStatus.COMPLETED, result=result)


__all__ = [
    "NarrativeClient",
    "NarrativeStatus",
    "NarrativeResult",
    "NarrativeOutcome",
    "estimate_tokens",
    "prepare_sample",
    "build_system_prompt",
    "build_user_prompt",
    "parse_narrative_response",
    "request_narrative",
]
