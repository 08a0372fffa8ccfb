"""
Attendance Manager Module - Tutoring Center Engagement Core

This module turns a stream of raw scanner text into at-most-once attendance
events per student. Each open scan surface gets its own resolver, which owns a
debouncer and a feedback session.

Features:
- Duplicate scan suppression through the scan debouncer
- Fuzzy badge matching through the code matcher
- New / already-present / unknown outcomes with matching feedback
- Attendance and points intents handed to the roster store
- Registry of open scan surfaces
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from engagement.modules.code_matcher import CodeMatcher
from engagement.modules.models import Student, StudentIntent
from engagement.modules.notification_system import NotificationSystem, TONE_ERROR, TONE_SUCCESS
from engagement.modules.scan_debouncer import (
    DEFAULT_WINDOW_SECONDS,
    MonotonicClock,
    ScanDebouncer,
    ScanSession,
    STATUS_ERROR,
    STATUS_SUCCESS,
    STATUS_WARNING,
)

ATTENDANCE_POINTS = 10


@dataclass(frozen=True)
class ScanOutcome:
    """Base class for the result of resolving one accepted scan."""
    raw_text: Any
    student: Optional[Student] = None

    kind = 'scan'
    status = STATUS_ERROR
    tone = TONE_ERROR

    @property
    def message(self) -> str:
        return ''

    @property
    def greeting(self) -> Optional[str]:
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'outcome': self.kind,
            'status': self.status,
            'message': self.message,
            'tone': self.tone,
            'student': {
                'id': self.student.id,
                'name': self.student.name,
                'code': self.student.code,
                'is_paid': self.student.is_paid,
            } if self.student else None,
        }


@dataclass(frozen=True)
class UnknownCode(ScanOutcome):
    kind = 'unknown'
    status = STATUS_ERROR
    tone = TONE_ERROR

    @property
    def message(self) -> str:
        return 'Code not registered'


@dataclass(frozen=True)
class AlreadyPresent(ScanOutcome):
    # Shares the error tone with UnknownCode: both mean "nothing was recorded".
    kind = 'already_present'
    status = STATUS_WARNING
    tone = TONE_ERROR

    @property
    def message(self) -> str:
        return f"Attendance already recorded for {self.student.name}"


@dataclass(frozen=True)
class NewAttendance(ScanOutcome):
    kind = 'new_attendance'
    status = STATUS_SUCCESS
    tone = TONE_SUCCESS

    @property
    def message(self) -> str:
        return f"Welcome, {self.student.first_name}! Attendance recorded"

    @property
    def greeting(self) -> Optional[str]:
        return f"Welcome {self.student.first_name}"


class AttendanceResolver:
    """
    Resolves accepted scans against a roster snapshot for one scan surface.
    """

    def __init__(self, intent_sink, notifier: Optional[NotificationSystem] = None,
                 clock=None, debounce_window: float = DEFAULT_WINDOW_SECONDS,
                 feedback_window: float = DEFAULT_WINDOW_SECONDS,
                 points_award: int = ATTENDANCE_POINTS):
        """
        Initialize the resolver.

        Args:
            intent_sink: Roster collaborator exposing ``apply_intent(intent)``
            notifier (NotificationSystem): Feedback side channels
            clock: Object exposing ``now()``; monotonic by default
            debounce_window (float): Cool-down for identical scans
            feedback_window (float): Time before the session returns to ready
            points_award (int): Points granted with a new attendance
        """
        self.intent_sink = intent_sink
        self.notifier = notifier or NotificationSystem()
        self.clock = clock or MonotonicClock()
        self.points_award = points_award
        self.matcher = CodeMatcher()
        self.debouncer = ScanDebouncer(debounce_window)
        self.session = ScanSession(feedback_window)
        self.last_outcome: Optional[ScanOutcome] = None
        self.logger = logging.getLogger(__name__)

    def resolve(self, raw_text, roster: Iterable[Student],
                now: Optional[float] = None) -> Optional[ScanOutcome]:
        """
        Process one scanned string.

        Args:
            raw_text: Decoded scanner text
            roster: Current roster snapshot in roster order
            now (float): Current instant; read from the clock when omitted

        Returns:
            Optional[ScanOutcome]: The new outcome, or the previous one when
            the scan was suppressed as a duplicate
        """
        if now is None:
            now = self.clock.now()

        self.session.tick(now)

        if not self.debouncer.accept(raw_text, now):
            return self.last_outcome

        student = self.matcher.match(raw_text, roster)

        if student is None:
            outcome = UnknownCode(raw_text)
        elif student.attendance:
            outcome = AlreadyPresent(raw_text, student)
        else:
            outcome = NewAttendance(raw_text, student)
            self._emit(StudentIntent(
                student_id=student.id,
                attendance=True,
                points=self.points_award
            ))
            self.logger.info(f"Attendance recorded for student {student.id} ({student.code})")

        self.session.show(outcome.status, outcome.message, student, now)
        self.notifier.announce_scan(outcome)
        self.last_outcome = outcome
        return outcome

    def _emit(self, intent: StudentIntent) -> None:
        try:
            self.intent_sink.apply_intent(intent)
        except Exception as e:
            self.logger.error(f"Failed to apply intent for student {intent.student_id}: {str(e)}")

    def tick(self, now: Optional[float] = None) -> bool:
        return self.session.tick(self.clock.now() if now is None else now)

    def close(self) -> None:
        self.session.close()
        self.debouncer.reset()

    def snapshot(self, now: Optional[float] = None) -> Dict[str, Any]:
        self.tick(now)
        state = self.session.snapshot()
        state['last_outcome'] = self.last_outcome.to_dict() if self.last_outcome else None
        return state


class ScannerRegistry:
    """Keeps one resolver per open scan surface."""

    def __init__(self, intent_sink, notifier: Optional[NotificationSystem] = None,
                 clock=None, debounce_window: float = DEFAULT_WINDOW_SECONDS,
                 feedback_window: float = DEFAULT_WINDOW_SECONDS,
                 points_award: int = ATTENDANCE_POINTS):
        self.intent_sink = intent_sink
        self.notifier = notifier or NotificationSystem()
        self.clock = clock or MonotonicClock()
        self.debounce_window = debounce_window
        self.feedback_window = feedback_window
        self.points_award = points_award
        self.scanners: Dict[str, AttendanceResolver] = {}
        self.logger = logging.getLogger(__name__)

    def open(self) -> str:
        scanner_id = uuid.uuid4().hex[:12]
        self.scanners[scanner_id] = AttendanceResolver(
            self.intent_sink,
            notifier=self.notifier,
            clock=self.clock,
            debounce_window=self.debounce_window,
            feedback_window=self.feedback_window,
            points_award=self.points_award
        )
        self.logger.info(f"Scan session {scanner_id} opened")
        return scanner_id

    def get(self, scanner_id: str) -> Optional[AttendanceResolver]:
        return self.scanners.get(scanner_id)

    def close(self, scanner_id: str) -> bool:
        resolver = self.scanners.pop(scanner_id, None)
        if resolver is None:
            return False
        resolver.close()
        self.logger.info(f"Scan session {scanner_id} closed")
        return True
