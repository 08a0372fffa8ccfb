# Tutoring Center Engagement Core - Package
"""
Engagement-processing core of the tutoring-center dashboard.
Turns badge scans into attendance events and walks operators through
guardian report runs.
"""

__version__ = "1.0.0"
__description__ = "Attendance scanning and guardian report delivery for tutoring centers"

from .modules.models import ReportKind, Student, StudentIntent, Submission, QuizResult
from .modules.code_matcher import CodeMatcher, match_code
from .modules.scan_debouncer import MonotonicClock, ScanDebouncer, ScanSession
from .modules.attendance_manager import (
    AlreadyPresent,
    AttendanceResolver,
    NewAttendance,
    ScannerRegistry,
    ScanOutcome,
    UnknownCode,
)
from .modules.report_generator import FALLBACK_TEXT, ReportContentGenerator
from .modules.report_queue import EmptyRecipientSet, InvalidQueueOperation, ReportQueue
from .modules.delivery_tracker import DeliveryTracker
from .modules.student_manager import ActivityLog, RosterStore
from .modules.notification_system import NotificationSystem

__all__ = [
    'ReportKind',
    'Student',
    'StudentIntent',
    'Submission',
    'QuizResult',
    'CodeMatcher',
    'match_code',
    'MonotonicClock',
    'ScanDebouncer',
    'ScanSession',
    'ScanOutcome',
    'UnknownCode',
    'AlreadyPresent',
    'NewAttendance',
    'AttendanceResolver',
    'ScannerRegistry',
    'FALLBACK_TEXT',
    'ReportContentGenerator',
    'ReportQueue',
    'EmptyRecipientSet',
    'InvalidQueueOperation',
    'DeliveryTracker',
    'RosterStore',
    'ActivityLog',
    'NotificationSystem'
]
