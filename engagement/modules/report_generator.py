"""
Report Generator Module - Tutoring Center Engagement Core

This module produces the message text for one recipient of a report run and
the delivery-status export shown next to the report queue.

Features:
- Deterministic absence-alert template
- Activity summary over a trailing window for periodic reports
- Delegation to the external text-generation service with a fixed fallback
- Delivery-status table and CSV export
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

import pandas as pd
from jinja2 import Template

from engagement.modules.models import ActivitySummary, ReportKind, Student

FALLBACK_TEXT = 'report could not be generated'

ABSENCE_ALERT_TEMPLATE = (
    "Hello, guardian of {{ student_name }}. "
    "We noticed that {{ student_name }} was absent from today's session. "
    "Please get in touch if there is anything we should know. "
    "Best regards, {{ issuer_name }}"
)


class ReportContentGenerator:
    """
    Generates the message for one recipient under a given report kind.
    """

    def __init__(self, activity, text_service, issuer_name: str, clock=None):
        """
        Initialize the generator.

        Args:
            activity: Store exposing ``submissions_for`` and ``results_for``
            text_service: Service exposing ``generate(...)``; may fail or be slow
            issuer_name (str): Teacher name signed on every message
            clock: Callable returning the current datetime
        """
        self.activity = activity
        self.text_service = text_service
        self.issuer_name = issuer_name
        self.clock = clock or datetime.now
        self.logger = logging.getLogger(__name__)
        self.absence_template = Template(ABSENCE_ALERT_TEMPLATE)

    def generate(self, student: Student, kind: ReportKind, now: Optional[datetime] = None) -> str:
        """
        Produce the message text for a recipient.

        Args:
            student (Student): Recipient
            kind (ReportKind): Report kind
            now (datetime): End of the activity window

        Returns:
            str: Message text, or the fallback text when generation failed
        """
        kind = ReportKind.parse(kind)

        if kind is ReportKind.ABSENCE_ALERT:
            return self.absence_template.render(
                student_name=student.name,
                issuer_name=self.issuer_name
            )

        if kind in (ReportKind.PERIODIC_SHORT, ReportKind.PERIODIC_LONG):
            return self._generate_periodic(student, kind, now or self.clock())

        raise ValueError(f"Unhandled report kind: {kind}")

    def _generate_periodic(self, student: Student, kind: ReportKind, now: datetime) -> str:
        try:
            summary = self.summarize(student, kind, now)
            text = self.text_service.generate(
                student.name,
                summary.task_count,
                summary.average_score,
                student.is_paid,
                self.issuer_name,
                summary.period_label,
                summary.attendance_indicator
            )
        except Exception as e:
            self.logger.warning(f"{kind.value} report for {student.id} fell back to default text: {str(e)}")
            return FALLBACK_TEXT

        if not isinstance(text, str) or not text.strip():
            self.logger.warning(f"{kind.value} report for {student.id} came back empty")
            return FALLBACK_TEXT

        return text.strip()

    def summarize(self, student: Student, kind: ReportKind, now: datetime) -> ActivitySummary:
        """
        Summarize a student's recent activity for a periodic report.

        The most recent submissions and quiz results inside the trailing window
        are taken (2 + 1 for weekly, 5 + 3 for monthly). Submissions count
        towards the average only once graded; quiz results always count.
        """
        kind = ReportKind.parse(kind)
        since = now - timedelta(days=kind.window_days)

        submissions = [
            s for s in self.activity.submissions_for(student.id)
            if since <= s.submitted_at <= now
        ]
        results = [
            r for r in self.activity.results_for(student.id)
            if since <= r.taken_at <= now
        ]
        submissions.sort(key=lambda s: s.submitted_at, reverse=True)
        results.sort(key=lambda r: r.taken_at, reverse=True)

        submissions = submissions[:kind.submission_limit]
        results = results[:kind.result_limit]

        scores = [s.grade for s in submissions if s.grade is not None]
        scores.extend(r.score for r in results)
        average = round(sum(scores) / len(scores), 1) if scores else 0.0

        return ActivitySummary(
            task_count=len(submissions) + len(results),
            average_score=average,
            attendance_indicator=1 if student.attendance or student.streaks > 0 else 0,
            period_label=kind.period_label,
            submissions=tuple(submissions),
            results=tuple(results)
        )


def delivery_status_frame(students: Iterable[Student], tracker, kind: ReportKind,
                          now: datetime) -> pd.DataFrame:
    """
    Build a table of recipients with their last delivery and due flag.

    Args:
        students: Roster snapshot
        tracker: DeliveryTracker
        kind (ReportKind): Report kind to evaluate
        now (datetime): Current instant

    Returns:
        pd.DataFrame: One row per student
    """
    kind = ReportKind.parse(kind)
    rows = []
    for student in students:
        last = tracker.last_delivered(student, kind)
        rows.append({
            'student_id': student.id,
            'name': student.name,
            'phone': student.phone,
            'report_kind': kind.value,
            'last_delivered': last.isoformat() if last else '',
            'is_due': tracker.is_due(student, kind, now),
        })

    columns = ['student_id', 'name', 'phone', 'report_kind', 'last_delivered', 'is_due']
    return pd.DataFrame(rows, columns=columns)


def export_delivery_status(students: Iterable[Student], tracker, kind: ReportKind,
                           now: datetime) -> str:
    """CSV export of ``delivery_status_frame``."""
    return delivery_status_frame(students, tracker, kind, now).to_csv(index=False)
