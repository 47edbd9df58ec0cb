"""
Formatting Utilities

Functions for turning cohort results and anomalies into display tables.
"""

import logging
import pandas as pd
from datetime import datetime
from typing import Optional, Sequence

from core.observations.models import Anomaly, CohortResult

logger = logging.getLogger(__name__)

RESULT_COLUMNS = [
    "operator_name",
    "operator_id",
    "category",
    "routing",
    "window_days",
    "rate",
    "member_count",
    "total_observations",
    "excluded",
    "sample_status",
    "quantity_conflicts",
]

ANOMALY_COLUMNS = [
    "mo_id",
    "operator_name",
    "category",
    "routing",
    "rate",
    "reason",
    "reference_value",
    "cohort_sample_size",
]


def format_timestamp(value: Optional[datetime]) -> str:
    """
    Format a datetime as YYYY-MM-DD HH:MM:SS.

    Args:
        value: datetime or None

    Returns:
        Formatted timestamp string or empty string if missing
    """
    if value is None or pd.isna(value):
        return ""
    return value.strftime("%Y-%m-%d %H:%M:%S")


def format_rate(rate: Optional[float], decimals: int = 2) -> str:
    """Format a UPH value, "n/a" when the cohort has no rate"""
    if rate is None:
        return "n/a"
    return f"{rate:.{decimals}f}"


def results_to_dataframe(results: Sequence[CohortResult]) -> pd.DataFrame:
    """
    Build a display table with one row per cohort.

    Args:
        results: Cohort results

    Returns:
        DataFrame with RESULT_COLUMNS
    """
    rows = [
        {
            "operator_name": r.operator_name,
            "operator_id": r.operator_id,
            "category": r.category,
            "routing": r.routing,
            "window_days": r.window_days,
            "rate": format_rate(r.rate),
            "member_count": r.member_count,
            "total_observations": r.total_observations,
            "excluded": len(r.anomalies),
            "sample_status": r.sample_status,
            "quantity_conflicts": ", ".join(r.quantity_conflicts),
        }
        for r in results
    ]
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def anomalies_to_dataframe(anomalies: Sequence[Anomaly]) -> pd.DataFrame:
    """Build a review table with one row per excluded manufacturing order"""
    rows = [{col: a.to_dict()[col] for col in ANOMALY_COLUMNS} for a in anomalies]
    return pd.DataFrame(rows, columns=ANOMALY_COLUMNS)
