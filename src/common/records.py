# ABOUTME: Converts joined attendance rows into typed AttendanceRecord values.
# ABOUTME: Validates records once at the boundary and loads CSV/parquet attendance exports.

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional

import pandas as pd

from .schemas import AttendanceRecord

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".csv", ".parquet")


def parse_attendance_record(row: Mapping[str, Any]) -> Optional[AttendanceRecord]:
    """
    Build an AttendanceRecord from a joined or flat attendance row.

    Joined rows carry the course under ``session.course_id`` and student
    details under ``student``; flat rows (CSV exports) carry ``course_id``,
    ``course_name`` and ``student_name`` columns. Returns None when the row
    cannot be attributed to a student, course, date and status.
    """

    if not isinstance(row, Mapping):
        return None

    session = row.get("session") if isinstance(row.get("session"), Mapping) else {}
    course = session.get("course") if isinstance(session.get("course"), Mapping) else {}
    student = row.get("student") if isinstance(row.get("student"), Mapping) else {}

    student_id = _as_text(row.get("student_id"))
    course_id = _as_text(session.get("course_id")) or _as_text(row.get("course_id"))
    attendance_date = _as_date(row.get("attendance_date"))
    status = _as_text(row.get("status"))
    if not student_id or not course_id or attendance_date is None or not status:
        return None

    return AttendanceRecord(
        student_id=student_id,
        course_id=course_id,
        attendance_date=attendance_date,
        status=status.lower(),
        late_minutes=_as_minutes(row.get("late_minutes")),
        course_name=_as_text(course.get("course_name")) or _as_text(row.get("course_name")) or "Unknown",
        student_name=_as_text(student.get("name")) or _as_text(row.get("student_name")) or "Unknown",
        email=_as_text(student.get("email")) or _as_text(row.get("email")) or "",
        phone=_as_text(student.get("phone")) or _as_text(row.get("phone")) or "",
    )


def parse_attendance_records(rows: Iterable[Any]) -> List[AttendanceRecord]:
    """Parse rows, skipping (never raising on) malformed entries."""

    records: List[AttendanceRecord] = []
    skipped = 0
    for row in rows or []:
        if isinstance(row, AttendanceRecord):
            records.append(row)
            continue
        record = parse_attendance_record(row)
        if record is None:
            skipped += 1
            continue
        records.append(record)
    if skipped:
        logger.debug("Skipped %d attendance rows missing student, course, date or status", skipped)
    return records


def records_from_frame(df: pd.DataFrame) -> List[AttendanceRecord]:
    if df is None or df.empty:
        return []
    return parse_attendance_records(df.to_dict(orient="records"))


def load_attendance_frame(path: Path) -> pd.DataFrame:
    """Read an attendance export written as CSV or parquet."""

    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path, dtype={"student_id": "string", "course_id": "string"})
    if suffix == ".parquet":
        return pd.read_parquet(path)
    raise ValueError(f"Unsupported attendance file '{path.name}'. Expected one of: {', '.join(SUPPORTED_SUFFIXES)}.")


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _as_text(value: Any) -> str:
    if _is_missing(value):
        return ""
    return str(value).strip()


def _as_date(value: Any) -> Optional[date]:
    if _is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = pd.to_datetime(value, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if not isinstance(parsed, pd.Timestamp) or pd.isna(parsed):
        return None
    return parsed.date()


def _as_minutes(value: Any) -> Optional[float]:
    if _is_missing(value):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
