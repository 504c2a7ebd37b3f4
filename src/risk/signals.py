# ABOUTME: Extracts recency-ordered attendance signals for one student in one course.
# ABOUTME: Provides streak detection, recency decay, trend, and momentum helpers.

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from src.common.schemas import (
    NON_EFFECTIVE_STATUSES,
    PRESENT_STATUSES,
    STATUS_ABSENT,
    AttendanceRecord,
)

RECENT_STREAK_DAYS = 21
WEEK_DAYS = 7
RECENCY_DECAY_DAYS = 30
MIN_TREND_DAYS = 8
MIN_MOMENTUM_DAYS = 12


@dataclass(frozen=True)
class AttendanceHistory:
    """Deduplicated history, most recent date first."""

    dates: List[date]
    statuses: List[str]

    @property
    def total_days(self) -> int:
        return len(self.dates)


@dataclass(frozen=True)
class StreakSummary:
    max_consecutive: int = 0
    recent_consecutive: int = 0
    ongoing_streak: int = 0
    absent_dates: List[date] = field(default_factory=list)


def build_history(records: Iterable[AttendanceRecord]) -> AttendanceHistory:
    """
    Collapse records to one status per date and order them newest first.

    When a date appears more than once the first record in input order is
    kept.
    """

    by_date = {}
    for record in records:
        by_date.setdefault(record.attendance_date, record.status)
    ordered = sorted(by_date, reverse=True)
    return AttendanceHistory(dates=ordered, statuses=[by_date[d] for d in ordered])


def detect_streaks(history: AttendanceHistory, today: date) -> StreakSummary:
    """
    Scan newest to oldest counting consecutive absences.

    Only present-equivalent statuses break a run; excused and not-enrolled
    days neither extend nor reset it. The ongoing streak is the leading run
    when the most recent record is an absence.
    """

    current = 0
    max_consecutive = 0
    recent_consecutive = 0
    absent_dates: List[date] = []
    for day, status in zip(history.dates, history.statuses):
        if status == STATUS_ABSENT:
            current += 1
            max_consecutive = max(max_consecutive, current)
            absent_dates.append(day)
            if (today - day).days < RECENT_STREAK_DAYS:
                recent_consecutive = max(recent_consecutive, current)
        elif status in PRESENT_STATUSES:
            current = 0

    ongoing = 0
    if history.statuses and history.statuses[0] == STATUS_ABSENT:
        for status in history.statuses:
            if status in PRESENT_STATUSES:
                break
            if status == STATUS_ABSENT:
                ongoing += 1

    return StreakSummary(
        max_consecutive=max_consecutive,
        recent_consecutive=recent_consecutive,
        ongoing_streak=ongoing,
        absent_dates=absent_dates,
    )


def normalized_recency(absent_dates: Sequence[date], today: date) -> float:
    """Sum of exp(-days_ago/30) over absences, scaled by 10 and capped at 100."""

    score = sum(math.exp(-(today - day).days / RECENCY_DECAY_DAYS) for day in absent_dates)
    return min(100.0, score * 10)


def count_weekly_absences(absent_dates: Sequence[date], today: date) -> int:
    return sum(1 for day in absent_dates if (today - day).days < WEEK_DAYS)


def trend_window(total_days: int) -> int:
    return max(4, min(10, int(total_days * 0.3)))


def detect_trend(history: AttendanceHistory, attendance_rate: float) -> Tuple[str, float]:
    """
    Compare the recent window's present rate with the window before it.

    Returns (trend, strength) where strength is the rate delta in [-1, 1].
    Thresholds tighten toward improvement for low attenders and toward
    decline for high attenders.
    """

    if history.total_days < MIN_TREND_DAYS:
        return "stable", 0.0

    window = trend_window(history.total_days)
    recent_rate = _present_rate(history.statuses[:window])
    older_rate = _present_rate(history.statuses[window : window * 2])
    delta = recent_rate - older_rate

    improvement_threshold = 0.15 if attendance_rate < 70 else 0.25
    decline_threshold = -0.15 if attendance_rate > 80 else -0.25
    if delta > improvement_threshold:
        return "improving", delta
    if delta < decline_threshold:
        return "declining", delta
    return "stable", delta


def compute_momentum(history: AttendanceHistory) -> float:
    """Present-rate change between the newest sessions and the rest of the recent window."""

    if history.total_days < MIN_MOMENTUM_DAYS:
        return 0.0
    window = trend_window(history.total_days)
    very_recent = min(4, window // 2)
    return _present_rate(history.statuses[:very_recent]) - _present_rate(history.statuses[very_recent:window])


def last_attended(history: AttendanceHistory) -> Optional[date]:
    for day, status in zip(history.dates, history.statuses):
        if status in PRESENT_STATUSES:
            return day
    return None


def _present_rate(statuses: Sequence[str]) -> float:
    effective = [s for s in statuses if s not in NON_EFFECTIVE_STATUSES]
    if not effective:
        return 0.0
    return sum(1 for s in effective if s in PRESENT_STATUSES) / len(effective)
