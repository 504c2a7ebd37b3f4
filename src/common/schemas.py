# ABOUTME: Defines canonical data structures shared by the scoring and risk engines.
# ABOUTME: Centralizes attendance record, scoring config, and risk assessment schemas.

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple

STATUS_ON_TIME = "on time"
STATUS_LATE = "late"
STATUS_ABSENT = "absent"
STATUS_EXCUSED = "excused"
STATUS_NOT_ENROLLED = "not enrolled"
# Legacy rows written before the on time / late split.
STATUS_PRESENT = "present"

PRESENT_STATUSES = frozenset({STATUS_PRESENT, STATUS_ON_TIME, STATUS_LATE})
NON_EFFECTIVE_STATUSES = frozenset({STATUS_EXCUSED, STATUS_NOT_ENROLLED})

RISK_LEVELS = ("critical", "high", "medium", "watch")
TRENDS = ("improving", "declining", "stable")


@dataclass(frozen=True)
class AttendanceRecord:
    """One attendance row already joined with its session's course."""

    student_id: str
    course_id: str
    attendance_date: date
    status: str
    late_minutes: Optional[float] = None
    course_name: str = "Unknown"
    student_name: str = "Unknown"
    email: str = ""
    phone: str = ""

    @property
    def is_present(self) -> bool:
        return self.status in PRESENT_STATUSES

    @property
    def is_effective(self) -> bool:
        return self.status not in NON_EFFECTIVE_STATUSES


@dataclass(frozen=True)
class LateBracket:
    """Display-only late-arrival range in whole minutes."""

    id: str
    min: int
    max: int
    name: str


DEFAULT_LATE_BRACKETS: Tuple[LateBracket, ...] = (
    LateBracket(id="1", min=1, max=5, name="Minor"),
    LateBracket(id="2", min=6, max=15, name="Moderate"),
    LateBracket(id="3", min=16, max=30, name="Significant"),
    LateBracket(id="4", min=31, max=60, name="Severe"),
    LateBracket(id="5", min=61, max=999, name="Very Late"),
)


@dataclass(frozen=True)
class ScoringConfig:
    """Tunable parameters for the weighted attendance score."""

    config_name: str = "Default Scoring"
    is_default: bool = True

    weight_quality: float = 55.0
    weight_attendance: float = 35.0
    weight_punctuality: float = 10.0

    # tau in exp(-t/tau); 43.3 gives ~50% credit at 30 minutes
    late_decay_constant: float = 43.3
    late_minimum_credit: float = 0.05
    late_null_estimate: float = 0.60

    coverage_enabled: bool = True
    coverage_method: str = "sqrt"
    coverage_minimum: float = 0.1

    late_brackets: Tuple[LateBracket, ...] = DEFAULT_LATE_BRACKETS

    # Forward-compatible modifiers, not part of weighted_score.
    perfect_attendance_bonus: float = 0.0
    streak_bonus_per_week: float = 0.0
    absence_penalty_multiplier: float = 1.0


@dataclass(frozen=True)
class ScoreResult:
    raw_score: float
    coverage_factor: float
    final_score: float


@dataclass(frozen=True)
class StudentScore:
    """Per-student, per-course weighted score summary."""

    student_id: str
    student_name: str
    course_id: str
    course_name: str
    on_time_days: int
    late_days: int
    absent_days: int
    excused_days: int
    days_covered: int
    effective_days: int
    total_session_days: int
    attendance_rate: float
    quality_adjusted_rate: float
    punctuality_pct: float
    raw_score: float
    coverage_factor: float
    final_score: float
    adjusted_score: float


@dataclass(frozen=True)
class RiskAssessment:
    """Risk classification for one student within one course."""

    student_id: str
    student_name: str
    email: str
    phone: str
    course_id: str
    course_name: str
    risk_level: str
    risk_score: float
    engagement_score: int
    attendance_rate: float
    trend: str
    trend_strength: float
    momentum: float
    total_days: int
    present_days: int
    late_days: int
    days_absent: int
    consecutive_absences: int
    recent_consecutive: int
    ongoing_streak: int
    last_absence_date: Optional[date] = None
    last_attended_date: Optional[date] = None
    absent_dates: List[date] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)
