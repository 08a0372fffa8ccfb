"""
Scan Debouncer Module - Tutoring Center Engagement Core

Camera scanners report the same badge many times per second while it stays in
view. This module gates that stream and keeps the feedback state shown on the
scan surface.

Features:
- Cool-down window that suppresses repeats of the last accepted text
- Immediate acceptance of a different text (a new badge interrupts feedback)
- Scan session feedback state with a timed reset back to ``ready``
- Injectable monotonic clock so tests advance time instead of sleeping
"""

import logging
import time
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 3.0

STATUS_READY = 'ready'
STATUS_SUCCESS = 'success'
STATUS_WARNING = 'warning'
STATUS_ERROR = 'error'


class MonotonicClock:
    """Clock backed by ``time.monotonic``."""

    def now(self) -> float:
        return time.monotonic()


class ScanDebouncer:
    """
    Duplicate gate for raw scanner text.

    A window opens whenever a text is accepted. Inside the window the same
    text is rejected; any other text is accepted and restarts the window.
    Once the window expires the remembered text is forgotten.
    """

    def __init__(self, window: float = DEFAULT_WINDOW_SECONDS):
        self.window = window
        self.last_text: Optional[str] = None
        self.expires_at: Optional[float] = None

    def accept(self, raw_text, now: float) -> bool:
        """
        Decide whether a scanned text should be processed.

        Args:
            raw_text: Decoded scanner text
            now (float): Current instant on the session clock

        Returns:
            bool: True if the text should be processed
        """
        self._expire(now)

        if self.last_text is not None and raw_text == self.last_text:
            logger.debug(f"Duplicate scan suppressed: {raw_text!r}")
            return False

        self.last_text = raw_text
        self.expires_at = now + self.window
        return True

    def _expire(self, now: float) -> None:
        if self.expires_at is not None and now >= self.expires_at:
            self.last_text = None
            self.expires_at = None

    def reset(self) -> None:
        self.last_text = None
        self.expires_at = None


class ScanSession:
    """
    Feedback state for one open scan surface.

    ``show`` replaces whatever is displayed and schedules a reset; a later
    ``show`` cancels the earlier reset. ``tick`` applies a reset once its
    deadline has passed.
    """

    def __init__(self, feedback_window: float = DEFAULT_WINDOW_SECONDS):
        self.feedback_window = feedback_window
        self.status = STATUS_READY
        self.message = ''
        self.student = None
        self.reset_at: Optional[float] = None
        self.is_open = True

    def show(self, status: str, message: str, student, now: float) -> None:
        self.status = status
        self.message = message
        self.student = student
        self.reset_at = now + self.feedback_window

    def tick(self, now: float) -> bool:
        """Apply a pending reset if it is due. Returns True when a reset happened."""
        if self.reset_at is not None and now >= self.reset_at:
            self.clear()
            return True
        return False

    def clear(self) -> None:
        self.status = STATUS_READY
        self.message = ''
        self.student = None
        self.reset_at = None

    def close(self) -> None:
        self.clear()
        self.is_open = False

    def snapshot(self) -> Dict[str, Any]:
        student = self.student
        return {
            'status': self.status,
            'message': self.message,
            'student': {
                'id': student.id,
                'name': student.name,
                'is_paid': student.is_paid,
            } if student is not None else None,
            'reset_at': self.reset_at,
            'is_open': self.is_open,
        }
