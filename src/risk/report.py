# ABOUTME: Turns risk assessments into tabular reports for exports and dashboards.
# ABOUTME: Provides DataFrame conversion and per-tier counts.

from __future__ import annotations

from typing import Dict, List

import pandas as pd

from src.common.schemas import RISK_LEVELS, RiskAssessment

RISK_REPORT_COLUMNS = [
    "student_id",
    "student_name",
    "email",
    "phone",
    "course_id",
    "course_name",
    "risk_level",
    "risk_score",
    "engagement_score",
    "attendance_rate",
    "trend",
    "total_days",
    "present_days",
    "late_days",
    "days_absent",
    "consecutive_absences",
    "recent_consecutive",
    "ongoing_streak",
    "last_absence_date",
    "last_attended_date",
    "patterns",
]


def assessments_to_frame(assessments: List[RiskAssessment]) -> pd.DataFrame:
    """One row per assessment; patterns are joined with '; ' for flat exports."""

    if not assessments:
        return pd.DataFrame(columns=RISK_REPORT_COLUMNS)
    rows = []
    for assessment in assessments:
        row = {name: getattr(assessment, name) for name in RISK_REPORT_COLUMNS}
        row["patterns"] = "; ".join(assessment.patterns)
        rows.append(row)
    return pd.DataFrame(rows, columns=RISK_REPORT_COLUMNS)


def summarize_risk_levels(assessments: List[RiskAssessment]) -> Dict[str, int]:
    counts = {level: 0 for level in RISK_LEVELS}
    for assessment in assessments:
        counts[assessment.risk_level] += 1
    return counts


def write_report(df: pd.DataFrame, path) -> None:
    """Write a report frame as CSV or parquet depending on the suffix."""

    suffix = str(path).lower()
    if suffix.endswith(".parquet"):
        df.to_parquet(path, index=False)
    elif suffix.endswith(".csv"):
        df.to_csv(path, index=False)
    else:
        raise ValueError(f"Unsupported report file '{path}'. Expected .csv or .parquet.")
