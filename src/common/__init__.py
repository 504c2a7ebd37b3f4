# ABOUTME: Makes the shared common package importable across engines.
# ABOUTME: Re-exports schema types and the record ingestion helpers for convenience.

from .schemas import (
    AttendanceRecord,
    LateBracket,
    RiskAssessment,
    ScoreResult,
    ScoringConfig,
    StudentScore,
)
from .records import load_attendance_frame, parse_attendance_records, records_from_frame

__all__ = [
    "AttendanceRecord",
    "LateBracket",
    "RiskAssessment",
    "ScoreResult",
    "ScoringConfig",
    "StudentScore",
    "load_attendance_frame",
    "parse_attendance_records",
    "records_from_frame",
]
