# ABOUTME: Mines behavioral absence patterns from a student's attendance history.
# ABOUTME: Each heuristic emits a human-readable description when it triggers.

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import List, Optional

from src.common.rounding import round_half_up
from src.common.schemas import STATUS_ABSENT, STATUS_EXCUSED

from .signals import AttendanceHistory, StreakSummary

# Sunday-first ordering, matching how day indexes are reported.
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


@dataclass(frozen=True)
class PatternContext:
    history: AttendanceHistory
    streaks: StreakSummary
    late_days: int
    days_absent: int
    attendance_rate: float
    trend: str
    trend_strength: float


class PatternThresholds:
    WEEKDAY_MIN_ABSENCES = 3
    WEEKDAY_MIN_RATE = 0.7
    WEEKDAY_MIN_OCCURRENCES = 4
    SPIKE_MIN_DAYS = 10
    EXTENDED_STREAK = 4
    INTERMITTENT_MIN_DAYS = 10
    INTERMITTENT_MIN_ABSENCES = 5
    INTERMITTENT_MAX_GAP = 3
    LATENESS_MIN_LATES = 3
    LATENESS_MIN_DAYS = 8
    LATENESS_MIN_RATE = 0.3
    DECLINE_STRENGTH = -0.3
    DECLINE_MAX_RATE = 70
    CLUSTER_MIN_ABSENCES = 4
    CLUSTER_MAX_AVG_GAP_DAYS = 7


def detect_weekday_absences(ctx: PatternContext) -> List[str]:
    history = ctx.history
    if history.total_days < 8:
        return []

    day_counts: Counter = Counter()
    day_absences: Counter = Counter()
    for day, status in zip(history.dates, history.statuses):
        index = (day.weekday() + 1) % 7
        day_counts[index] += 1
        if status == STATUS_ABSENT:
            day_absences[index] += 1

    found = []
    for index in sorted(day_absences):
        count = day_absences[index]
        total = day_counts[index]
        rate = count / total
        if (
            count >= PatternThresholds.WEEKDAY_MIN_ABSENCES
            and rate >= PatternThresholds.WEEKDAY_MIN_RATE
            and total >= PatternThresholds.WEEKDAY_MIN_OCCURRENCES
        ):
            found.append(f"High {DAY_NAMES[index]} absence rate ({round_half_up(rate * 100)}%)")
    return found


def detect_absence_spike(ctx: PatternContext) -> Optional[str]:
    statuses = ctx.history.statuses
    if len(statuses) < PatternThresholds.SPIKE_MIN_DAYS:
        return None
    last_five = [s for s in statuses[:5] if s != STATUS_EXCUSED]
    previous_five = [s for s in statuses[5:10] if s != STATUS_EXCUSED]
    recent = last_five.count(STATUS_ABSENT)
    before = previous_five.count(STATUS_ABSENT)
    if recent >= 3 and recent >= before + 2:
        return "Recent absence spike detected"
    return None


def detect_extended_streak(ctx: PatternContext) -> Optional[str]:
    longest = ctx.streaks.max_consecutive
    if longest >= PatternThresholds.EXTENDED_STREAK:
        return f"Extended {longest}-session absence streak"
    return None


def detect_intermittent_absences(ctx: PatternContext) -> Optional[str]:
    total = ctx.history.total_days
    absent = ctx.days_absent
    if total < PatternThresholds.INTERMITTENT_MIN_DAYS or absent < PatternThresholds.INTERMITTENT_MIN_ABSENCES:
        return None
    average_gap = (total - 1) / (absent - 1)
    if 0 < average_gap < PatternThresholds.INTERMITTENT_MAX_GAP:
        return "Frequent intermittent absences"
    return None


def detect_chronic_lateness(ctx: PatternContext) -> Optional[str]:
    total = ctx.history.total_days
    if ctx.late_days < PatternThresholds.LATENESS_MIN_LATES or total < PatternThresholds.LATENESS_MIN_DAYS:
        return None
    late_rate = ctx.late_days / total
    if late_rate >= PatternThresholds.LATENESS_MIN_RATE:
        return f"Chronic lateness ({round_half_up(late_rate * 100)}% of sessions)"
    return None


def detect_sharp_decline(ctx: PatternContext) -> Optional[str]:
    if (
        ctx.trend == "declining"
        and ctx.trend_strength < PatternThresholds.DECLINE_STRENGTH
        and ctx.attendance_rate < PatternThresholds.DECLINE_MAX_RATE
    ):
        return "Sharp recent decline in attendance"
    return None


def detect_absence_clustering(ctx: PatternContext) -> Optional[str]:
    absent_dates = ctx.streaks.absent_dates
    if len(absent_dates) < PatternThresholds.CLUSTER_MIN_ABSENCES:
        return None
    gaps = [abs((newer - older).days) for newer, older in zip(absent_dates, absent_dates[1:])]
    if sum(gaps) / len(gaps) <= PatternThresholds.CLUSTER_MAX_AVG_GAP_DAYS:
        return "Clustered absence pattern"
    return None


def detect_patterns(ctx: PatternContext) -> List[str]:
    """Run the full heuristic battery in a fixed order."""

    patterns = detect_weekday_absences(ctx)
    for detector in (
        detect_absence_spike,
        detect_extended_streak,
        detect_intermittent_absences,
        detect_chronic_lateness,
        detect_sharp_decline,
        detect_absence_clustering,
    ):
        found = detector(ctx)
        if found:
            patterns.append(found)
    return patterns
