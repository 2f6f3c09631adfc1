"""Tunable thresholds and size limits for the analysis pipeline.

Thresholds are empirically chosen; every value can be overridden through the
plain ``config`` dict accepted by ``run_processing_pipeline`` / ``parse_grid``.
Row and column ceilings can also be set from the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

DEFAULT_MAX_ROWS = 100_000
DEFAULT_MAX_COLUMNS = 50


@dataclass(frozen=True)
class Thresholds:
    """Heuristic cut-offs used by classification, trends and insights."""

    trend_change_percent: float = 5.0
    volatility_multiplier: float = 2.0
    high_volatility_cv: float = 0.2
    flatline_cv: float = 0.05
    category_max_unique: int = 20
    category_requires_repeats: bool = True
    date_detection_rate: float = 0.7
    number_detection_rate: float = 0.8
    correlation_threshold: float = 0.7
    outlier_stddev_multiplier: float = 3.0
    min_trend_points: int = 4
    min_kpi_points: int = 2
    type_sample_size: int = 100
    sparkline_length: int = 10
    kpi_flat_percent: float = 1.0
    max_insights: int = 6
    max_outlier_insights: int = 2
    date_failure_warning_rate: float = 0.1


@dataclass(frozen=True)
class Limits:
    """Hard ceilings enforced before any per-cell work happens."""

    max_rows: int = DEFAULT_MAX_ROWS
    max_columns: int = DEFAULT_MAX_COLUMNS


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {value}.")
    return value


@lru_cache(maxsize=1)
def get_limits() -> Limits:
    """Limits from ``SHEET_INSIGHTS_MAX_ROWS`` / ``SHEET_INSIGHTS_MAX_COLUMNS``."""

    return Limits(
        max_rows=_int_from_env("SHEET_INSIGHTS_MAX_ROWS", DEFAULT_MAX_ROWS),
        max_columns=_int_from_env("SHEET_INSIGHTS_MAX_COLUMNS", DEFAULT_MAX_COLUMNS),
    )


def _overrides_for(cls: type, config: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in config.items() if k in names and v is not None}


def resolve_config(
    config: Optional[Dict[str, Any]] = None,
) -> Tuple[Thresholds, Limits]:
    """Merge a user ``config`` dict over the defaults.

    Unknown keys are ignored so the same dict can carry CLI/pipeline options
    (``mode``, ``sample_size`` ...) alongside threshold overrides.
    """
    cfg = config or {}
    thresholds = replace(Thresholds(), **_overrides_for(Thresholds, cfg))
    limits = replace(get_limits(), **_overrides_for(Limits, cfg))
    return thresholds, limits


__all__ = [
    "Thresholds",
    "Limits",
    "get_limits",
    "resolve_config",
    "DEFAULT_MAX_ROWS",
    "DEFAULT_MAX_COLUMNS",
]
