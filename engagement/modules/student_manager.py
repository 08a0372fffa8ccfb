"""
Student Manager Module - Tutoring Center Engagement Core

In-memory roster and activity stores. They play the part of the external
student store: the scanning and reporting modules only read snapshots from
them and submit intents, and these stores are the only place a Student record
is ever replaced.

Features:
- Ordered roster snapshots and code lookup
- Intent application (attendance flag, points, last report date)
- Daily attendance reset
- Roster import from CSV
- Submission and quiz-result logs ordered by recency
"""

import csv
import io
import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from engagement.modules.code_matcher import match_code
from engagement.modules.models import QuizResult, ReportKind, Student, StudentIntent, Submission


class RosterStore:
    """
    Thread-safe, ordered collection of students.
    """

    def __init__(self, students: Iterable[Student] = ()):
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._students: Dict[str, Student] = {}
        self.last_report_dates: Dict[Tuple[str, ReportKind], datetime] = {}

        for student in students:
            self.add_student(student)

    def add_student(self, student: Student) -> None:
        with self._lock:
            if student.id in self._students:
                raise ValueError(f"Duplicate student id: {student.id}")
            self._students[student.id] = student

    def snapshot(self) -> Tuple[Student, ...]:
        """Immutable view of the roster in insertion order."""
        with self._lock:
            return tuple(self._students.values())

    def get(self, student_id: str) -> Optional[Student]:
        with self._lock:
            return self._students.get(student_id)

    def find_by_code(self, raw_text) -> Optional[Student]:
        return match_code(raw_text, self.snapshot())

    def apply_intent(self, intent: StudentIntent) -> Student:
        """
        Apply a change requested by the engagement core.

        Args:
            intent (StudentIntent): Requested change

        Returns:
            Student: The updated record
        """
        with self._lock:
            student = self._students.get(intent.student_id)
            if student is None:
                raise KeyError(f"Unknown student id: {intent.student_id}")

            changes: Dict[str, Any] = {}
            # two scan surfaces may both see the student absent; award once
            repeated_check_in = intent.attendance is True and student.attendance
            if intent.attendance is not None:
                changes['attendance'] = intent.attendance
            if intent.points and not repeated_check_in:
                changes['points'] = student.points + intent.points
            if intent.last_report_date is not None and intent.report_kind is not None:
                self.last_report_dates[(student.id, intent.report_kind)] = intent.last_report_date

            updated = replace(student, **changes) if changes else student
            self._students[student.id] = updated

        self.logger.info(f"Applied intent to student {intent.student_id}: {changes}")
        return updated

    def reset_daily_attendance(self) -> int:
        """Clear every attendance flag at the start of a new day."""
        with self._lock:
            present = [s for s in self._students.values() if s.attendance]
            for student in present:
                self._students[student.id] = replace(student, attendance=False)
        self.logger.info(f"Daily attendance reset for {len(present)} students")
        return len(present)

    def import_students_from_csv(self, csv_content: str) -> Dict[str, Any]:
        """
        Import students from CSV text with columns
        ``id,name,code[,phone,is_paid,group_id]``.

        Returns:
            Dict[str, Any]: Counts of imported rows and per-row errors
        """
        reader = csv.DictReader(io.StringIO(csv_content))
        imported = 0
        errors = []

        for line_number, row in enumerate(reader, start=2):
            try:
                student_id = (row.get('id') or '').strip()
                name = (row.get('name') or '').strip()
                code = (row.get('code') or '').strip()
                if not student_id or not name or not code:
                    raise ValueError('id, name and code are required')

                existing = self.find_by_code(code)
                if existing is not None and existing.code.lower() == code.lower():
                    raise ValueError(f"code {code} already assigned to {existing.id}")

                self.add_student(Student(
                    id=student_id,
                    name=name,
                    code=code,
                    phone=(row.get('phone') or '').strip(),
                    is_paid=(row.get('is_paid') or 'true').strip().lower() in ('true', '1', 'yes'),
                    group_id=(row.get('group_id') or '').strip() or None
                ))
                imported += 1

            except ValueError as e:
                errors.append({'line': line_number, 'error': str(e)})

        self.logger.info(f"Imported {imported} students from CSV ({len(errors)} errors)")
        return {'imported': imported, 'errors': errors}


class ActivityLog:
    """Assignment submissions and quiz results per student."""

    def __init__(self):
        self._submissions: List[Submission] = []
        self._results: List[QuizResult] = []
        self._lock = threading.Lock()

    def add_submission(self, submission: Submission) -> None:
        with self._lock:
            self._submissions.append(submission)

    def add_result(self, result: QuizResult) -> None:
        with self._lock:
            self._results.append(result)

    def submissions_for(self, student_id: str) -> List[Submission]:
        """Submissions of one student, most recent first."""
        with self._lock:
            items = [s for s in self._submissions if s.student_id == student_id]
        return sorted(items, key=lambda s: s.submitted_at, reverse=True)

    def results_for(self, student_id: str) -> List[QuizResult]:
        """Quiz results of one student, most recent first."""
        with self._lock:
            items = [r for r in self._results if r.student_id == student_id]
        return sorted(items, key=lambda r: r.taken_at, reverse=True)
