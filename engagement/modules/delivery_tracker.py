"""
Delivery Tracker Module - Tutoring Center Engagement Core

Remembers when each recipient last received a periodic report and decides who
is due for the next one. Absence alerts describe a same-day event, so they are
never deduplicated and never recorded.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from engagement.modules.database_manager import MemoryDeliveryStore
from engagement.modules.models import ReportKind, Student

DEFAULT_REPEAT_INTERVAL = timedelta(days=14)


def _recipient_id(recipient) -> str:
    return recipient.id if isinstance(recipient, Student) else str(recipient)


class DeliveryTracker:
    """Last-delivered instant per (recipient, periodic report kind)."""

    def __init__(self, store=None, repeat_interval: timedelta = DEFAULT_REPEAT_INTERVAL):
        """
        Args:
            store: Record store exposing ``get`` / ``set``; in-memory by default
            repeat_interval (timedelta): Minimum gap between periodic reports
        """
        self.store = store if store is not None else MemoryDeliveryStore()
        self.repeat_interval = repeat_interval
        self.logger = logging.getLogger(__name__)

    def last_delivered(self, recipient, kind: ReportKind) -> Optional[datetime]:
        kind = ReportKind.parse(kind)
        if not kind.is_periodic:
            return None
        return self.store.get(_recipient_id(recipient), kind.value)

    def is_due(self, recipient, kind: ReportKind, now: datetime) -> bool:
        """
        Check whether a recipient should get a report of this kind.

        Args:
            recipient: Student or student id
            kind (ReportKind): Report kind
            now (datetime): Current instant

        Returns:
            bool: True when no report was sent within the repeat interval
        """
        kind = ReportKind.parse(kind)
        if not kind.is_periodic:
            return True

        last = self.last_delivered(recipient, kind)
        return last is None or now - last > self.repeat_interval

    def record(self, recipient, kind: ReportKind, now: datetime) -> bool:
        """
        Store a delivery. Returns False for kinds that are not tracked.
        """
        kind = ReportKind.parse(kind)
        if not kind.is_periodic:
            return False

        recipient_id = _recipient_id(recipient)
        self.store.set(recipient_id, kind.value, now)
        self.logger.info(f"Recorded {kind.value} report for {recipient_id} at {now.isoformat()}")
        return True

    def due_recipients(self, students: Iterable[Student], kind: ReportKind,
                       now: datetime) -> List[Student]:
        """Students still due for a report of this kind, in roster order."""
        return [s for s in students if self.is_due(s, kind, now)]
