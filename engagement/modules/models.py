"""
Data Models Module - Tutoring Center Engagement Core

Shared data structures passed between the scanning, reporting and delivery
modules. Students are read-only snapshots owned by the roster store; every
change the core wants to make is expressed as a StudentIntent instead.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class ReportKind(Enum):
    """Closed set of report kinds an operator can send."""

    PERIODIC_SHORT = 'periodic-short'
    PERIODIC_LONG = 'periodic-long'
    ABSENCE_ALERT = 'absence-alert'

    @classmethod
    def parse(cls, value) -> 'ReportKind':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown report kind: {value!r}")

    @property
    def is_periodic(self) -> bool:
        return self is not ReportKind.ABSENCE_ALERT

    @property
    def window_days(self) -> int:
        return PERIOD_SETTINGS[self]['window_days']

    @property
    def submission_limit(self) -> int:
        return PERIOD_SETTINGS[self]['submissions']

    @property
    def result_limit(self) -> int:
        return PERIOD_SETTINGS[self]['results']

    @property
    def period_label(self) -> str:
        return PERIOD_SETTINGS[self]['label']


PERIOD_SETTINGS = {
    ReportKind.PERIODIC_SHORT: {'window_days': 7, 'submissions': 2, 'results': 1, 'label': 'weekly'},
    ReportKind.PERIODIC_LONG: {'window_days': 30, 'submissions': 5, 'results': 3, 'label': 'monthly'},
    ReportKind.ABSENCE_ALERT: {'window_days': 0, 'submissions': 0, 'results': 0, 'label': 'same-day'},
}


@dataclass(frozen=True)
class Student:
    """Roster entry as seen by the engagement core."""
    id: str
    name: str
    code: str
    attendance: bool = False
    phone: str = ''
    is_paid: bool = True
    streaks: int = 0
    points: int = 0
    group_id: Optional[str] = None

    @property
    def first_name(self) -> str:
        parts = self.name.split()
        return parts[0] if parts else ''


@dataclass(frozen=True)
class StudentIntent:
    """A change the core asks the roster store to apply."""
    student_id: str
    attendance: Optional[bool] = None
    points: int = 0
    last_report_date: Optional[datetime] = None
    report_kind: Optional[ReportKind] = None


@dataclass(frozen=True)
class Submission:
    student_id: str
    submitted_at: datetime
    grade: Optional[float] = None


@dataclass(frozen=True)
class QuizResult:
    student_id: str
    taken_at: datetime
    score: float


@dataclass(frozen=True)
class ActivitySummary:
    """Scalars handed to the text-generation service for a periodic report."""
    task_count: int
    average_score: float
    attendance_indicator: int
    period_label: str
    submissions: tuple = field(default_factory=tuple)
    results: tuple = field(default_factory=tuple)
