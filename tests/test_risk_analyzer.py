# ABOUTME: Tests attendance risk classification end to end.
# ABOUTME: Covers early exits, tier assignment, ordering, and input handling.

import copy
from datetime import date, timedelta

import pytest

from src.common.schemas import AttendanceRecord
from src.risk.analyzer import (
    RISK_LEVEL_ORDER,
    RiskSignals,
    analyze_attendance_risk,
    assign_risk_level,
    composite_risk_score,
    compute_signals,
    engagement_score,
    is_suppressed,
)
from src.risk.signals import AttendanceHistory, StreakSummary, build_history

TODAY = date(2024, 3, 31)


def _records(student_id, statuses, course_id="c1"):
    """Daily records with statuses[0] on TODAY, older entries after it."""
    return [
        AttendanceRecord(
            student_id=student_id,
            course_id=course_id,
            attendance_date=TODAY - timedelta(days=i),
            status=status,
            course_name="Physics",
            student_name=f"Student {student_id}",
        )
        for i, status in enumerate(statuses)
    ]


def _joined_rows(student_id, statuses):
    return [
        {
            "student_id": student_id,
            "attendance_date": (TODAY - timedelta(days=i)).isoformat(),
            "status": status,
            "session": {"course_id": "c7", "course": {"course_name": "History"}},
            "student": {"name": "Kai Lopez", "email": "kai@example.edu", "phone": "555-0199"},
        }
        for i, status in enumerate(statuses)
    ]


def test_empty_input_returns_nothing():
    assert analyze_attendance_risk([], today=TODAY) == []


def test_short_history_is_skipped():
    assert analyze_attendance_risk(_records("s1", ["absent", "absent"]), today=TODAY) == []


def test_no_absences_and_single_late_is_skipped():
    records = _records("s1", ["late"] + ["on time"] * 9)
    assert analyze_attendance_risk(records, today=TODAY) == []
    assert analyze_attendance_risk(_records("s2", ["on time"] * 10), today=TODAY) == []


def test_long_ongoing_streak_is_critical():
    records = _records("s1", ["absent"] * 6 + ["on time"] * 4)
    (assessment,) = analyze_attendance_risk(records, today=TODAY)
    assert assessment.risk_level == "critical"
    assert assessment.ongoing_streak == 6
    assert assessment.consecutive_absences == 6
    assert assessment.days_absent == 6
    assert assessment.attendance_rate == 40.0
    assert assessment.last_absence_date == TODAY
    assert assessment.last_attended_date == TODAY - timedelta(days=6)
    assert 0 <= assessment.engagement_score <= 100
    assert assessment.absent_dates == sorted(assessment.absent_dates, reverse=True)


def test_single_old_absence_does_not_alert():
    records = _records("s1", ["on time"] * 19 + ["absent"])
    assert analyze_attendance_risk(records, today=TODAY) == []


def test_signals_rate_and_quality():
    history = build_history(_records("s1", ["on time"] * 12 + ["late"] * 2 + ["absent"] * 6))
    signals = compute_signals(history, TODAY)
    assert signals.attendance_rate == pytest.approx(70.0)
    assert signals.quality_score == pytest.approx(69.4)
    assert signals.present_days == 14
    assert signals.effective_days == 20
    assert 0.0 <= engagement_score(signals) <= 100.0


def test_excused_days_do_not_count_against_rate():
    history = build_history(_records("s1", ["on time", "excused", "absent", "on time"]))
    signals = compute_signals(history, TODAY)
    assert signals.effective_days == 3
    assert signals.attendance_rate == pytest.approx(200 / 3)


def test_results_are_ordered_by_tier_then_engagement():
    records = (
        _records("s1", ["absent"] * 3 + ["on time"] * 7)
        + _records("s2", ["absent"] * 6 + ["on time"] * 4)
        + _records("s3", ["absent"] * 6 + ["on time"] * 4, course_id="c2")
    )
    results = analyze_attendance_risk(records, today=TODAY)
    assert len(results) == 3
    keys = [(RISK_LEVEL_ORDER[a.risk_level], a.engagement_score) for a in results]
    assert keys == sorted(keys)
    assert results[0].risk_level == "critical"
    assert {a.risk_level for a in results if a.student_id == "s1"} <= {"critical", "high"}


def test_student_course_pairs_are_assessed_separately():
    records = _records("s1", ["absent"] * 6 + ["on time"] * 4) + _records("s1", ["on time"] * 10, course_id="c2")
    results = analyze_attendance_risk(records, today=TODAY)
    assert [(a.student_id, a.course_id) for a in results] == [("s1", "c1")]


def test_joined_rows_carry_contact_details_and_malformed_rows_are_skipped():
    rows = _joined_rows("s9", ["absent"] * 5 + ["on time"] * 5)
    rows.append({"attendance_date": TODAY.isoformat(), "status": "absent"})
    original = copy.deepcopy(rows)

    (assessment,) = analyze_attendance_risk(rows, today=TODAY)
    assert assessment.student_name == "Kai Lopez"
    assert assessment.email == "kai@example.edu"
    assert assessment.phone == "555-0199"
    assert assessment.course_name == "History"
    assert assessment.total_days == 10
    assert rows == original


def _signals(streaks=None, **overrides):
    """Signals for a steady attender; overrides push one rule at a time."""
    values = dict(
        history=AttendanceHistory(dates=[], statuses=[]),
        streaks=streaks or StreakSummary(),
        present_days=19,
        late_days=0,
        days_absent=0,
        effective_days=20,
        attendance_rate=95.0,
        quality_score=95.0,
        recency=0.0,
        weekly_absences=0,
        trend="stable",
        trend_strength=0.0,
        momentum=0.0,
        patterns=[],
    )
    values.update(overrides)
    return RiskSignals(**values)


@pytest.mark.parametrize(
    "signals, risk_score, engagement, expected",
    [
        (_signals(), 70, 90, "critical"),
        (_signals(StreakSummary(ongoing_streak=5)), 0, 90, "critical"),
        (_signals(StreakSummary(ongoing_streak=4), attendance_rate=45.0), 0, 90, "critical"),
        (_signals(StreakSummary(recent_consecutive=5), attendance_rate=55.0), 0, 90, "critical"),
        (_signals(attendance_rate=30.0), 0, 90, "critical"),
        (_signals(weekly_absences=3, trend="declining"), 0, 90, "critical"),
        (_signals(), 50, 90, "high"),
        (_signals(StreakSummary(ongoing_streak=3)), 0, 90, "high"),
        (_signals(StreakSummary(recent_consecutive=4)), 0, 90, "high"),
        (_signals(attendance_rate=45.0), 0, 90, "high"),
        (_signals(StreakSummary(ongoing_streak=2), attendance_rate=55.0, trend="declining"), 0, 90, "high"),
        (_signals(weekly_absences=2, attendance_rate=60.0), 0, 90, "high"),
        (_signals(attendance_rate=55.0, patterns=["a", "b"]), 0, 90, "high"),
        (_signals(), 30, 90, "medium"),
        (_signals(StreakSummary(ongoing_streak=2)), 0, 90, "medium"),
        (_signals(StreakSummary(recent_consecutive=3)), 0, 90, "medium"),
        (_signals(attendance_rate=60.0), 0, 90, "medium"),
        (_signals(weekly_absences=2, attendance_rate=70.0), 0, 90, "medium"),
        (_signals(trend="declining", trend_strength=-0.4, attendance_rate=70.0), 0, 90, "medium"),
        (_signals(attendance_rate=70.0, patterns=["a", "b"]), 0, 90, "medium"),
        (_signals(), 15, 90, "watch"),
        (_signals(days_absent=3), 0, 90, "watch"),
        (_signals(attendance_rate=80.0, patterns=["a"]), 0, 90, "watch"),
        (_signals(trend="declining", trend_strength=-0.2, attendance_rate=78.0), 0, 90, "watch"),
        (_signals(weekly_absences=2, attendance_rate=80.0), 0, 90, "watch"),
        (_signals(late_days=4, attendance_rate=80.0), 0, 90, "watch"),
        (_signals(), 0, 60, "watch"),
        (_signals(), 0, 90, None),
    ],
)
def test_assign_risk_level_rules(signals, risk_score, engagement, expected):
    assert assign_risk_level(signals, risk_score, engagement) == expected


@pytest.mark.parametrize(
    "signals, expected",
    [
        (_signals(), 8.0),
        (_signals(days_absent=10), 35.0 + 8),
        (_signals(days_absent=8), 30.0 + 8),
        (_signals(days_absent=6), 22.0 + 8),
        (_signals(days_absent=4), 15.0 + 8),
        (_signals(days_absent=2), 5.0 + 8),
        (_signals(StreakSummary(ongoing_streak=4)), 30.0 + 8),
        (_signals(StreakSummary(ongoing_streak=3)), 25.0 + 8),
        (_signals(StreakSummary(ongoing_streak=2)), 18.0 + 8),
        (_signals(StreakSummary(recent_consecutive=3)), 20.0 + 8),
        (_signals(StreakSummary(recent_consecutive=2)), 12.0 + 8),
        (_signals(weekly_absences=2), 10.0 + 8),
        (_signals(weekly_absences=1), 5.0 + 8),
        (_signals(recency=40.0), 6.0 + 8),
        (_signals(trend="declining", trend_strength=-0.4), 17.0),
        (_signals(trend="declining", trend_strength=-0.4, momentum=-0.5), 22.0),
        (_signals(trend="improving", trend_strength=0.2), 3.0),
        (_signals(trend="improving", trend_strength=0.8), 0.0),
        (_signals(patterns=["a", "b"], late_days=3), 8.0 + 11),
        (_signals(patterns=["a", "b", "c", "d", "e"]), 8.0 + 15),
    ],
)
def test_composite_risk_score_bands(signals, expected):
    assert composite_risk_score(signals) == pytest.approx(expected)


def test_suppression_requires_every_condition():
    assert is_suppressed(_signals(), 90)
    assert not is_suppressed(_signals(), 80)
    assert not is_suppressed(_signals(attendance_rate=84.0), 90)
    assert not is_suppressed(_signals(trend="declining"), 90)
    assert not is_suppressed(_signals(StreakSummary(ongoing_streak=1)), 90)
    assert not is_suppressed(_signals(StreakSummary(recent_consecutive=2)), 90)
    assert not is_suppressed(_signals(patterns=["a"]), 90)


def _statuses_with_absences(total, absent_positions):
    return ["absent" if i in absent_positions else "on time" for i in range(total)]


def test_suppressed_student_is_omitted_even_with_a_tier():
    records = _records("s1", _statuses_with_absences(20, {6, 9, 12}))
    signals = compute_signals(build_history(records), TODAY)
    engagement = engagement_score(signals)

    assert signals.trend == "improving"
    assert assign_risk_level(signals, composite_risk_score(signals), engagement) == "watch"
    assert is_suppressed(signals, engagement)
    assert analyze_attendance_risk(records, today=TODAY) == []


def test_old_scattered_absences_are_watch():
    records = _records("s1", _statuses_with_absences(20, {13, 16, 19}))
    (assessment,) = analyze_attendance_risk(records, today=TODAY)
    assert assessment.risk_level == "watch"
    assert assessment.trend == "stable"
    assert assessment.risk_score == pytest.approx(18.1)


def test_two_session_ongoing_streak_is_medium():
    records = _records("s1", ["absent"] * 2 + ["on time"] * 18)
    (assessment,) = analyze_attendance_risk(records, today=TODAY)
    assert assessment.risk_level == "medium"
    assert assessment.ongoing_streak == 2
    assert assessment.trend == "declining"


def test_weekly_sessions_with_three_missed_are_high():
    records = [
        AttendanceRecord("s1", "c1", TODAY - timedelta(weeks=i), status)
        for i, status in enumerate(["absent"] * 3 + ["on time"] * 17)
    ]
    (assessment,) = analyze_attendance_risk(records, today=TODAY)
    assert assessment.risk_level == "high"
    assert assessment.ongoing_streak == 3
    assert assessment.recent_consecutive == 3
    assert assessment.patterns == ["Recent absence spike detected"]
