# ABOUTME: Groups the attendance risk analyzer and its reporting helpers.
# ABOUTME: Re-exports the analyzer entrypoint, tier ordering, and report builders.

from .analyzer import RISK_LEVEL_ORDER, analyze_attendance_risk
from .report import assessments_to_frame, summarize_risk_levels

__all__ = [
    "RISK_LEVEL_ORDER",
    "analyze_attendance_risk",
    "assessments_to_frame",
    "summarize_risk_levels",
]
