# ABOUTME: Builds per-student weighted scores from attendance records and a ScoringConfig.
# ABOUTME: Derives quality, attendance, and punctuality rates before applying the engine.

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Any, Dict, Iterable, List, Set, Tuple

import pandas as pd

from src.common.records import parse_attendance_records
from src.common.rounding import round_half_up
from src.common.schemas import (
    STATUS_ABSENT,
    STATUS_EXCUSED,
    STATUS_LATE,
    STATUS_NOT_ENROLLED,
    STATUS_ON_TIME,
    STATUS_PRESENT,
    AttendanceRecord,
    ScoringConfig,
    StudentScore,
)

from .config import DEFAULT_SCORING_CONFIG
from .engine import late_score, weighted_score

STUDENT_SCORE_COLUMNS = [
    "student_id",
    "student_name",
    "course_id",
    "course_name",
    "on_time_days",
    "late_days",
    "absent_days",
    "excused_days",
    "days_covered",
    "effective_days",
    "total_session_days",
    "attendance_rate",
    "quality_adjusted_rate",
    "punctuality_pct",
    "raw_score",
    "coverage_factor",
    "final_score",
    "adjusted_score",
]


def score_students(records: Iterable[Any], config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> List[StudentScore]:
    """
    Score every (student, course) pair found in ``records``.

    The coverage denominator is the number of distinct dates the course met,
    taken across all students, so late joiners are discounted by the coverage
    factor rather than by a lower attendance rate.
    """

    parsed = parse_attendance_records(records)
    course_dates: Dict[str, Set[date]] = defaultdict(set)
    grouped: Dict[Tuple[str, str], Dict[date, AttendanceRecord]] = defaultdict(dict)
    for record in parsed:
        course_dates[record.course_id].add(record.attendance_date)
        if record.status == STATUS_NOT_ENROLLED:
            continue
        # first occurrence of a date wins
        grouped[(record.student_id, record.course_id)].setdefault(record.attendance_date, record)

    scores = [
        _score_student(list(by_date.values()), len(course_dates[course_id]), config)
        for (_, course_id), by_date in grouped.items()
    ]
    scores.sort(key=lambda s: s.final_score, reverse=True)
    return scores


def apply_score_modifiers(
    final_score: float,
    attendance_rate: float,
    attended_days: int,
    absent_days: int,
    effective_days: int,
    config: ScoringConfig,
) -> float:
    """Apply bonus/penalty modifiers on top of the final score, clamped to [0, 100]."""

    bonus = 0.0
    penalty = 0.0
    if attendance_rate >= 100 and config.perfect_attendance_bonus > 0:
        bonus += config.perfect_attendance_bonus
    if config.absence_penalty_multiplier > 1.0 and absent_days > 0:
        base_deduction = (absent_days / effective_days) * 100 if effective_days > 0 else 0.0
        penalty += base_deduction * (config.absence_penalty_multiplier - 1)
    if config.streak_bonus_per_week > 0:
        # roughly one week per five attended sessions
        bonus += (attended_days // 5) * config.streak_bonus_per_week
    return min(100.0, max(0.0, final_score + bonus - penalty))


def student_scores_to_frame(scores: List[StudentScore]) -> pd.DataFrame:
    if not scores:
        return pd.DataFrame(columns=STUDENT_SCORE_COLUMNS)
    rows = []
    for score in scores:
        row = {name: getattr(score, name) for name in STUDENT_SCORE_COLUMNS}
        for name in ("attendance_rate", "quality_adjusted_rate", "punctuality_pct", "raw_score", "final_score", "adjusted_score"):
            row[name] = round_half_up(row[name], 1)
        row["coverage_factor"] = round_half_up(row["coverage_factor"], 3)
        rows.append(row)
    return pd.DataFrame(rows, columns=STUDENT_SCORE_COLUMNS)


def _score_student(records: List[AttendanceRecord], total_session_days: int, config: ScoringConfig) -> StudentScore:
    first = records[0]
    on_time = [r for r in records if r.status in (STATUS_ON_TIME, STATUS_PRESENT)]
    late = [r for r in records if r.status == STATUS_LATE]
    absent_days = sum(1 for r in records if r.status == STATUS_ABSENT)
    excused_days = sum(1 for r in records if r.status == STATUS_EXCUSED)

    days_covered = len(records)
    effective_days = days_covered - excused_days
    attended = len(on_time) + len(late)

    attendance_rate = (attended / effective_days) * 100 if effective_days > 0 else 0.0
    quality_credit = len(on_time) + sum(late_score(r.late_minutes, config) for r in late)
    quality_adjusted_rate = (quality_credit / effective_days) * 100 if effective_days > 0 else 0.0
    punctuality_pct = (len(on_time) / attended) * 100 if attended > 0 else 0.0

    result = weighted_score(
        quality_adjusted_rate,
        attendance_rate,
        punctuality_pct,
        effective_days,
        total_session_days,
        config,
    )
    adjusted = apply_score_modifiers(
        result.final_score, attendance_rate, attended, absent_days, effective_days, config
    )

    return StudentScore(
        student_id=first.student_id,
        student_name=first.student_name,
        course_id=first.course_id,
        course_name=first.course_name,
        on_time_days=len(on_time),
        late_days=len(late),
        absent_days=absent_days,
        excused_days=excused_days,
        days_covered=days_covered,
        effective_days=effective_days,
        total_session_days=total_session_days,
        attendance_rate=attendance_rate,
        quality_adjusted_rate=quality_adjusted_rate,
        punctuality_pct=punctuality_pct,
        raw_score=result.raw_score,
        coverage_factor=result.coverage_factor,
        final_score=result.final_score,
        adjusted_score=adjusted,
    )
