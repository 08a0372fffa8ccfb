"""
Report Queue Module - Tutoring Center Engagement Core

Walks an operator through a list of report recipients one at a time: the
message for the current recipient is generated, the operator reviews, edits,
sends or skips it, and the queue moves on. Sent periodic reports are recorded
in the delivery tracker so a run can be resumed later without notifying
anyone twice.

States: idle -> generating -> ready -> (generating -> ready)* -> finished

Periodic reports call a slow external service, so their generation runs on an
executor while the queue sits in ``generating``. Every generation carries a
ticket; a result whose ticket is no longer current (the operator skipped,
closed, reopened or changed kind meanwhile) is discarded.
"""

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from engagement.modules.models import ReportKind, Student, StudentIntent
from engagement.modules.notification_system import LoggingDeliveryChannel, NotificationSystem
from engagement.modules.report_generator import FALLBACK_TEXT

STATE_IDLE = 'idle'
STATE_GENERATING = 'generating'
STATE_READY = 'ready'
STATE_FINISHED = 'finished'


class ReportQueueError(Exception):
    """Base class for report queue errors."""

    error_type = 'report_queue_error'


class EmptyRecipientSet(ReportQueueError, ValueError):
    """A report run was requested without recipients."""

    error_type = 'empty_recipient_set'


class InvalidQueueOperation(ReportQueueError):
    """The operation is not allowed in the queue's current state."""

    error_type = 'invalid_queue_operation'


class ReportQueue:
    """
    Ordered, resumable traversal over report recipients.
    """

    def __init__(self, generator, tracker, channel=None,
                 notifier: Optional[NotificationSystem] = None,
                 intent_sink=None, executor: Optional[Executor] = None, clock=None):
        """
        Initialize the queue.

        Args:
            generator: ReportContentGenerator
            tracker: DeliveryTracker
            channel: Delivery channel exposing ``send(phone, text)``
            notifier (NotificationSystem): Wraps delivery so failures are swallowed
            intent_sink: Roster collaborator receiving last-report intents
            executor (Executor): Runs periodic generation; one worker thread by default
            clock: Callable returning the current datetime
        """
        self.generator = generator
        self.tracker = tracker
        self.channel = channel or LoggingDeliveryChannel()
        self.notifier = notifier or NotificationSystem()
        self.intent_sink = intent_sink
        self.executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix='report-gen')
        self.clock = clock or datetime.now
        self.logger = logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._settled = threading.Condition(self._lock)
        self.state = STATE_IDLE
        self.recipients: List[Student] = []
        self.index = 0
        self.kind: Optional[ReportKind] = None
        self.content = ''
        self.sent: List[str] = []
        self.skipped: List[str] = []

        self._job = 0
        self._sequence = 0
        self._ticket: Optional[Tuple[int, int, ReportKind, int]] = None

    @property
    def current(self) -> Optional[Student]:
        if self.state in (STATE_GENERATING, STATE_READY):
            return self.recipients[self.index]
        return None

    @property
    def is_open(self) -> bool:
        return self.state in (STATE_GENERATING, STATE_READY)

    def open(self, recipients: Sequence[Student], kind: ReportKind, only_due: bool = False) -> None:
        """
        Start a report run.

        Args:
            recipients: Students in the order they should be handled
            kind (ReportKind): Report kind for the run
            only_due (bool): Drop recipients that already got this report recently

        Raises:
            EmptyRecipientSet: When no recipient is left to handle
        """
        kind = ReportKind.parse(kind)
        recipients = list(recipients)
        if only_due:
            now = self.clock()
            recipients = [r for r in recipients if self.tracker.is_due(r, kind, now)]

        if not recipients:
            raise EmptyRecipientSet('A report run needs at least one recipient')

        with self._lock:
            self._job += 1
            self.recipients = recipients
            self.index = 0
            self.kind = kind
            self.sent = []
            self.skipped = []
            self.logger.info(f"Report run opened: {kind.value} for {len(recipients)} recipients")
            self._start_generation()

    def set_kind(self, kind: ReportKind) -> None:
        """Regenerate the current recipient's message under another kind."""
        kind = ReportKind.parse(kind)
        with self._lock:
            self._require(STATE_READY, 'change the report kind')
            self.kind = kind
            self._start_generation()

    def edit(self, text: str) -> None:
        """Replace the generated message verbatim."""
        with self._lock:
            self._require(STATE_READY, 'edit the message')
            self.content = text

    def send(self) -> None:
        """Deliver the current message, record it and move to the next recipient."""
        with self._lock:
            self._require(STATE_READY, 'send')
            student = self.recipients[self.index]
            kind = self.kind
            text = self.content
            now = self.clock()

            self.notifier.deliver(self.channel, student.phone, text)

            try:
                recorded = self.tracker.record(student, kind, now)
            except Exception as e:
                recorded = False
                self.logger.error(f"Failed to record {kind.value} delivery for {student.id}: {str(e)}")

            if recorded and self.intent_sink is not None:
                try:
                    self.intent_sink.apply_intent(StudentIntent(
                        student_id=student.id,
                        last_report_date=now,
                        report_kind=kind
                    ))
                except Exception as e:
                    self.logger.error(f"Failed to store last report date for {student.id}: {str(e)}")

            self.sent.append(student.id)
            self.logger.info(f"{kind.value} report sent to {student.id}")
            self._advance()

    def skip(self) -> None:
        """Move to the next recipient without sending anything."""
        with self._lock:
            if not self.is_open:
                raise InvalidQueueOperation(f"Cannot skip while {self.state}")
            student = self.recipients[self.index]
            self.skipped.append(student.id)
            self.logger.info(f"Recipient {student.id} skipped")
            self._advance()

    def close(self) -> None:
        """Cancel the run; any outstanding generation result will be dropped."""
        with self._lock:
            if self.state != STATE_FINISHED:
                self.logger.info(f"Report run closed at recipient {self.index + 1}/{len(self.recipients)}")
            self._finish()

    def wait(self, timeout: Optional[float] = None) -> str:
        """Block until the queue leaves ``generating``; returns the state."""
        with self._settled:
            self._settled.wait_for(lambda: self.state != STATE_GENERATING, timeout=timeout)
            return self.state

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            student = self.current
            return {
                'state': self.state,
                'kind': self.kind.value if self.kind else None,
                'index': self.index,
                'total': len(self.recipients),
                'content': self.content if self.state == STATE_READY else '',
                'recipient': {
                    'id': student.id,
                    'name': student.name,
                    'phone': student.phone,
                } if student else None,
                'sent': list(self.sent),
                'skipped': list(self.skipped),
            }

    def _require(self, state: str, action: str) -> None:
        if self.state != state:
            raise InvalidQueueOperation(f"Cannot {action} while {self.state}")

    def _advance(self) -> None:
        if self.index >= len(self.recipients) - 1:
            self.logger.info(f"Report run finished: {len(self.sent)} sent, {len(self.skipped)} skipped")
            self._finish()
        else:
            self.index += 1
            self._start_generation()

    def _finish(self) -> None:
        self.state = STATE_FINISHED
        self.content = ''
        self._ticket = None
        self._settled.notify_all()

    def _start_generation(self) -> None:
        self._sequence += 1
        ticket = (self._job, self.index, self.kind, self._sequence)
        self._ticket = ticket
        self.state = STATE_GENERATING
        self.content = ''
        student = self.recipients[self.index]

        if not self.kind.is_periodic:
            self._complete(ticket, self.generator.generate(student, self.kind, self.clock()))
            return

        future = self.executor.submit(self.generator.generate, student, self.kind, self.clock())
        future.add_done_callback(lambda f: self._on_generated(ticket, f))

    def _on_generated(self, ticket, future: Future) -> None:
        try:
            text = future.result()
        except Exception as e:
            self.logger.warning(f"Report generation raised, using fallback text: {str(e)}")
            text = FALLBACK_TEXT
        self._complete(ticket, text)

    def _complete(self, ticket, text: str) -> None:
        with self._lock:
            if ticket != self._ticket or self.state != STATE_GENERATING:
                self.logger.debug(f"Discarding stale generation result for ticket {ticket}")
                return
            self.content = text
            self.state = STATE_READY
            self._settled.notify_all()
