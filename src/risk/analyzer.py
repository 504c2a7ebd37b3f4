# ABOUTME: Classifies students at attendance risk from their full per-course history.
# ABOUTME: Combines streaks, recency, trend, momentum, and patterns into tiers and engagement scores.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from src.common.records import parse_attendance_records
from src.common.rounding import round_half_up
from src.common.schemas import (
    NON_EFFECTIVE_STATUSES,
    PRESENT_STATUSES,
    STATUS_ABSENT,
    STATUS_LATE,
    AttendanceRecord,
    RiskAssessment,
)

from .patterns import PatternContext, detect_patterns
from .signals import (
    AttendanceHistory,
    StreakSummary,
    build_history,
    compute_momentum,
    count_weekly_absences,
    detect_streaks,
    detect_trend,
    last_attended,
    normalized_recency,
)

RISK_LEVEL_ORDER = {"critical": 0, "high": 1, "medium": 2, "watch": 3}
MIN_HISTORY_DAYS = 3
LATE_QUALITY_PENALTY = 0.3


@dataclass(frozen=True)
class RiskSignals:
    """Everything the tier rules look at for one (student, course) pair."""

    history: AttendanceHistory
    streaks: StreakSummary
    present_days: int
    late_days: int
    days_absent: int
    effective_days: int
    attendance_rate: float
    quality_score: float
    recency: float
    weekly_absences: int
    trend: str
    trend_strength: float
    momentum: float
    patterns: List[str]


def analyze_attendance_risk(records: Iterable[Any], today: Optional[date] = None) -> List[RiskAssessment]:
    """
    Identify at-risk students across every (student, course) in ``records``.

    ``records`` may hold AttendanceRecord values or joined rows; rows that
    cannot be attributed to a student and course are skipped. ``today``
    anchors the recency windows and defaults to the current date. Results are
    ordered critical first, and by ascending engagement within a tier.
    """

    today = today or date.today()
    grouped, students = _group_records(parse_attendance_records(records))

    assessments: List[RiskAssessment] = []
    for (student_id, course_id), course_records in grouped.items():
        assessment = assess_student_course(course_records, today, students[student_id])
        if assessment is not None:
            assessments.append(assessment)

    assessments.sort(key=lambda a: (RISK_LEVEL_ORDER[a.risk_level], a.engagement_score))
    return assessments


def assess_student_course(
    records: List[AttendanceRecord],
    today: date,
    student: Optional[AttendanceRecord] = None,
) -> Optional[RiskAssessment]:
    """Assess one student's history in one course; None when no alert is warranted."""

    if not records:
        return None
    history = build_history(records)
    statuses = history.statuses

    late_days = statuses.count(STATUS_LATE)
    days_absent = statuses.count(STATUS_ABSENT)
    if history.total_days < MIN_HISTORY_DAYS:
        return None
    if days_absent == 0 and late_days <= 1:
        return None

    signals = compute_signals(history, today)
    engagement = engagement_score(signals)
    risk_score = composite_risk_score(signals)
    level = assign_risk_level(signals, risk_score, engagement)
    if level is None or is_suppressed(signals, engagement):
        return None

    student = student or records[0]
    course = records[0]
    absent_dates = signals.streaks.absent_dates
    return RiskAssessment(
        student_id=course.student_id,
        student_name=student.student_name,
        email=student.email,
        phone=student.phone,
        course_id=course.course_id,
        course_name=course.course_name,
        risk_level=level,
        risk_score=round_half_up(risk_score, 1),
        engagement_score=round_half_up(engagement),
        attendance_rate=round_half_up(signals.attendance_rate, 1),
        trend=signals.trend,
        trend_strength=signals.trend_strength,
        momentum=signals.momentum,
        total_days=history.total_days,
        present_days=signals.present_days,
        late_days=late_days,
        days_absent=days_absent,
        consecutive_absences=signals.streaks.max_consecutive,
        recent_consecutive=signals.streaks.recent_consecutive,
        ongoing_streak=signals.streaks.ongoing_streak,
        last_absence_date=absent_dates[0] if absent_dates else None,
        last_attended_date=last_attended(history),
        absent_dates=list(absent_dates),
        patterns=list(signals.patterns),
    )


def compute_signals(history: AttendanceHistory, today: date) -> RiskSignals:
    statuses = history.statuses
    present_days = sum(1 for s in statuses if s in PRESENT_STATUSES)
    late_days = statuses.count(STATUS_LATE)
    days_absent = statuses.count(STATUS_ABSENT)
    effective_days = sum(1 for s in statuses if s not in NON_EFFECTIVE_STATUSES)
    attendance_rate = (present_days / effective_days) * 100 if effective_days > 0 else 0.0
    quality_score = max(0.0, attendance_rate - late_days * LATE_QUALITY_PENALTY)

    streaks = detect_streaks(history, today)
    trend, trend_strength = detect_trend(history, attendance_rate)
    patterns = detect_patterns(
        PatternContext(
            history=history,
            streaks=streaks,
            late_days=late_days,
            days_absent=days_absent,
            attendance_rate=attendance_rate,
            trend=trend,
            trend_strength=trend_strength,
        )
    )

    return RiskSignals(
        history=history,
        streaks=streaks,
        present_days=present_days,
        late_days=late_days,
        days_absent=days_absent,
        effective_days=effective_days,
        attendance_rate=attendance_rate,
        quality_score=quality_score,
        recency=normalized_recency(streaks.absent_dates, today),
        weekly_absences=count_weekly_absences(streaks.absent_dates, today),
        trend=trend,
        trend_strength=trend_strength,
        momentum=compute_momentum(history),
        patterns=patterns,
    )


def engagement_score(signals: RiskSignals) -> float:
    """Blend quality, recency, trend, consistency, and momentum into [0, 100]."""

    score = signals.quality_score * 0.4
    score += (100 - signals.recency) * 0.25

    if signals.trend == "improving":
        score += 20 + signals.trend_strength * 20
    elif signals.trend == "declining":
        score -= abs(signals.trend_strength) * 30
    else:
        score += 10

    consistency_penalty = signals.streaks.max_consecutive * 3 + len(signals.patterns) * 5
    score += max(0, 15 - consistency_penalty)
    score += signals.momentum * 10
    return max(0.0, min(100.0, score))


def composite_risk_score(signals: RiskSignals) -> float:
    """Sum of absence-rate, recent-streak, trend, and pattern points."""

    absence_rate = signals.days_absent / signals.effective_days if signals.effective_days > 0 else 0.0
    if absence_rate >= 0.5:
        absence_points = 35.0
    elif absence_rate >= 0.4:
        absence_points = 30.0
    elif absence_rate >= 0.3:
        absence_points = 22.0
    elif absence_rate >= 0.2:
        absence_points = 15.0
    else:
        absence_points = absence_rate * 50

    streaks = signals.streaks
    if streaks.ongoing_streak >= 4:
        recent_points = 30.0
    elif streaks.ongoing_streak >= 3:
        recent_points = 25.0
    elif streaks.ongoing_streak >= 2:
        recent_points = 18.0
    elif streaks.recent_consecutive >= 3:
        recent_points = 20.0
    elif streaks.recent_consecutive >= 2:
        recent_points = 12.0
    elif signals.weekly_absences >= 2:
        recent_points = 10.0
    elif signals.weekly_absences >= 1:
        recent_points = 5.0
    else:
        recent_points = 0.0
    recent_points += signals.recency * 0.15

    if signals.trend == "declining":
        trend_points = 15 + abs(signals.trend_strength) * 5
        if signals.momentum < -0.2:
            trend_points += 5
    elif signals.trend == "improving":
        trend_points = max(0.0, 5 - signals.trend_strength * 10)
    else:
        trend_points = 8.0

    pattern_points = min(15, len(signals.patterns) * 4 + (3 if signals.late_days >= 3 else 0))
    return absence_points + recent_points + trend_points + pattern_points


def assign_risk_level(signals: RiskSignals, risk_score: float, engagement: float) -> Optional[str]:
    """First matching tier from critical down to watch, or None."""

    rate = signals.attendance_rate
    ongoing = signals.streaks.ongoing_streak
    recent = signals.streaks.recent_consecutive
    weekly = signals.weekly_absences
    trend = signals.trend
    pattern_count = len(signals.patterns)
    recently_concerning = ongoing >= 2 or weekly >= 2

    if (
        risk_score >= 70
        or ongoing >= 5
        or (ongoing >= 4 and rate < 50)
        or (recent >= 5 and rate < 60)
        or rate < 35
        or (weekly >= 3 and trend == "declining")
    ):
        return "critical"
    if (
        risk_score >= 50
        or ongoing >= 3
        or recent >= 4
        or rate < 50
        or (ongoing >= 2 and rate < 60 and trend == "declining")
        or (weekly >= 2 and rate < 65)
        or (pattern_count >= 2 and rate < 60)
    ):
        return "high"
    if (
        risk_score >= 30
        or ongoing >= 2
        or recent >= 3
        or rate < 65
        or (recently_concerning and rate < 75)
        or (trend == "declining" and signals.trend_strength < -0.3 and rate < 75)
        or (pattern_count >= 2 and rate < 75)
    ):
        return "medium"
    if (
        risk_score >= 15
        or signals.days_absent >= 3
        or (pattern_count >= 1 and rate < 85)
        or (trend == "declining" and rate < 80)
        or (recently_concerning and rate < 85)
        or (signals.late_days >= 4 and rate < 85)
        or engagement < 70
    ):
        return "watch"
    return None


def is_suppressed(signals: RiskSignals, engagement: float) -> bool:
    """High-confidence override for students who are clearly fine."""

    return (
        engagement >= 85
        and signals.attendance_rate >= 85
        and signals.trend != "declining"
        and signals.streaks.ongoing_streak == 0
        and signals.streaks.recent_consecutive <= 1
        and not signals.patterns
    )


def _group_records(
    records: List[AttendanceRecord],
) -> Tuple[Dict[Tuple[str, str], List[AttendanceRecord]], Dict[str, AttendanceRecord]]:
    grouped: Dict[Tuple[str, str], List[AttendanceRecord]] = {}
    students: Dict[str, AttendanceRecord] = {}
    for record in records:
        students.setdefault(record.student_id, record)
        grouped.setdefault((record.student_id, record.course_id), []).append(record)
    return grouped, students
