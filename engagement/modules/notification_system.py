"""
Notification System Module - Tutoring Center Engagement Core

This module owns the best-effort side channels of the engagement core: the
tones and spoken greetings played at the scan surface, the recent-feedback
history the dashboard renders, and the outbound message channels used by the
report queue. A failing side channel is logged and never interrupts the
workflow that called it.

Features:
- Success / error tones and spoken greetings for scan outcomes
- Recent notification history with read tracking
- WhatsApp link delivery channel and a logging channel
- Fire-and-forget delivery wrapper
"""

import logging
import threading
import webbrowser
from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

TONE_SUCCESS = 'success'
TONE_ERROR = 'error'


@dataclass
class NotificationData:
    """Data structure for a feedback notification."""
    id: str
    type: str
    title: str
    message: str
    severity: str
    data: Dict[str, Any] = field(default_factory=dict)
    created_at: str = ''
    is_read: bool = False


class LoggingSpeaker:
    """Speech and tone collaborator that only writes to the log."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def speak(self, text: str) -> None:
        self.logger.info(f"Speaking: {text}")

    def tone(self, kind: str) -> None:
        self.logger.info(f"Playing {kind} tone")


class LoggingDeliveryChannel:
    """Delivery channel that records messages in the log instead of sending them."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def send(self, phone: str, text: str) -> None:
        self.logger.info(f"Message for {phone}: {text}")


class WhatsAppLinkChannel:
    """
    Delivery channel that opens a ``wa.me`` click-to-chat link for the operator.

    Args:
        opener: Callable receiving the link (defaults to ``webbrowser.open``)
        country_code (str): Prefix added to local numbers starting with 0
    """

    BASE_URL = 'https://wa.me/'

    def __init__(self, opener: Optional[Callable[[str], Any]] = None, country_code: str = ''):
        self.opener = opener or webbrowser.open
        self.country_code = country_code
        self.logger = logging.getLogger(__name__)

    def build_link(self, phone: str, text: str) -> str:
        digits = ''.join(ch for ch in str(phone or '') if ch.isdigit())
        if self.country_code and digits.startswith('0'):
            digits = self.country_code + digits[1:]
        return f"{self.BASE_URL}{digits}?text={quote(text)}"

    def send(self, phone: str, text: str) -> None:
        link = self.build_link(phone, text)
        self.opener(link)
        self.logger.info(f"Opened WhatsApp link for {phone}")


class NotificationSystem:
    """
    Dispatches scan feedback to the audio collaborators and keeps a short
    history of what was shown.
    """

    def __init__(self, speaker=None, history_limit: int = 50):
        """
        Initialize the notification system.

        Args:
            speaker: Object exposing ``speak(text)`` and ``tone(kind)``
            history_limit (int): Number of notifications kept for display
        """
        self.logger = logging.getLogger(__name__)
        self.speaker = speaker or LoggingSpeaker()
        self.history_limit = history_limit

        self.SEVERITY_LEVELS = {
            'INFO': 'info',
            'WARNING': 'warning',
            'ERROR': 'error',
            'SUCCESS': 'success'
        }

        self.active_notifications: Dict[str, NotificationData] = {}
        self._sequence = 0
        self._lock = threading.Lock()

    def play_tone(self, kind: str) -> None:
        try:
            self.speaker.tone(kind)
        except Exception as e:
            self.logger.warning(f"Tone playback failed: {str(e)}")

    def speak(self, text: str) -> None:
        try:
            self.speaker.speak(text)
        except Exception as e:
            self.logger.warning(f"Speech playback failed: {str(e)}")

    def announce_scan(self, outcome) -> NotificationData:
        """
        Play the feedback for a scan outcome and store it in the history.

        Args:
            outcome: ScanOutcome produced by the attendance resolver

        Returns:
            NotificationData: The stored notification
        """
        self.play_tone(outcome.tone)
        if outcome.greeting:
            self.speak(outcome.greeting)

        student = outcome.student
        return self._remember(
            type='attendance_scan',
            title=outcome.kind.replace('_', ' ').title(),
            message=outcome.message,
            severity=outcome.status,
            data={
                'student_id': student.id if student else None,
                'student_name': student.name if student else None,
                'is_paid': student.is_paid if student else None,
            }
        )

    def deliver(self, channel, phone: str, text: str) -> bool:
        """
        Hand a message to a delivery channel without letting failures escape.

        Returns:
            bool: Whether the channel accepted the message
        """
        try:
            channel.send(phone, text)
            self._remember(
                type='report_sent',
                title='Report Sent',
                message=f"Report delivered to {phone}",
                severity=self.SEVERITY_LEVELS['SUCCESS'],
                data={'phone': phone}
            )
            return True
        except Exception as e:
            self.logger.error(f"Delivery to {phone} failed: {str(e)}")
            self._remember(
                type='delivery_error',
                title='Delivery Failed',
                message=f"Could not deliver report to {phone}",
                severity=self.SEVERITY_LEVELS['ERROR'],
                data={'phone': phone, 'error': str(e)}
            )
            return False

    def _remember(self, **fields) -> NotificationData:
        with self._lock:
            self._sequence += 1
            notification = NotificationData(
                id=f"{fields['type']}_{self._sequence}",
                created_at=datetime.now().isoformat(),
                **fields
            )
            self.active_notifications[notification.id] = notification

            while len(self.active_notifications) > self.history_limit:
                oldest = next(iter(self.active_notifications))
                del self.active_notifications[oldest]

        return notification

    def get_recent_notifications(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent notifications first."""
        with self._lock:
            recent = [asdict(n) for n in self.active_notifications.values()]
        recent.reverse()
        return recent[:limit]

    def mark_notification_read(self, notification_id: str) -> bool:
        with self._lock:
            notification = self.active_notifications.get(notification_id)
            if notification is None:
                return False
            notification.is_read = True
            return True
