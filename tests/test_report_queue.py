import threading

import pytest

from conftest import NOW, FakeTextService, RecordingChannel
from engagement.modules.delivery_tracker import DeliveryTracker
from engagement.modules.models import ReportKind
from engagement.modules.report_generator import FALLBACK_TEXT, ReportContentGenerator
from engagement.modules.report_queue import (
    STATE_FINISHED,
    STATE_GENERATING,
    STATE_IDLE,
    STATE_READY,
    EmptyRecipientSet,
    InvalidQueueOperation,
    ReportQueue,
)


class BlockingTextService(FakeTextService):
    """Holds every call until the test releases it."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.release = threading.Event()
        self.started = threading.Event()

    def generate(self, *args):
        self.started.set()
        self.release.wait(timeout=5)
        return super().generate(*args)


class CountingGenerator(ReportContentGenerator):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.requests = []

    def generate(self, student, kind, now=None):
        self.requests.append((student.id, ReportKind.parse(kind)))
        return super().generate(student, kind, now)


@pytest.fixture()
def tracker():
    return DeliveryTracker()


def make_queue(activity, tracker, executor, service=None, channel=None, intent_sink=None):
    generator = CountingGenerator(activity, service or FakeTextService(), 'Mr. Adel', clock=lambda: NOW)
    return ReportQueue(
        generator,
        tracker,
        channel=channel or RecordingChannel(),
        intent_sink=intent_sink,
        executor=executor,
        clock=lambda: NOW
    )


def test_absence_run_walks_all_recipients(activity, tracker, executor, students, channel):
    queue = make_queue(activity, tracker, executor, channel=channel)
    assert queue.state == STATE_IDLE

    queue.open(students, ReportKind.ABSENCE_ALERT)
    assert queue.state == STATE_READY
    assert queue.index == 0
    assert 'Mona Adel Hassan' in queue.content

    queue.send()
    assert channel.messages[0][0] == '01000000001'
    assert tracker.store.all_records() == {}
    assert queue.state == STATE_READY
    assert queue.index == 1

    queue.skip()
    assert queue.index == 2
    assert 'Laila Fathy' in queue.content

    queue.send()
    assert queue.state == STATE_FINISHED
    assert [phone for phone, _ in channel.messages] == ['01000000001', '01000000003']
    assert queue.sent == ['s1', 's3']
    assert queue.skipped == ['s2']


def test_generation_requested_once_per_recipient(activity, tracker, executor, students):
    queue = make_queue(activity, tracker, executor)
    queue.open(students, ReportKind.ABSENCE_ALERT)
    queue.send()
    queue.skip()
    queue.skip()

    assert queue.generator.requests == [
        ('s1', ReportKind.ABSENCE_ALERT),
        ('s2', ReportKind.ABSENCE_ALERT),
        ('s3', ReportKind.ABSENCE_ALERT),
    ]


def test_periodic_run_with_failing_service_still_sends(activity, tracker, executor, students, channel, roster):
    queue = make_queue(activity, tracker, executor, service=FakeTextService(fail=True),
                       channel=channel, intent_sink=roster)

    queue.open(students[:1], ReportKind.PERIODIC_SHORT)
    assert queue.wait(timeout=5) == STATE_READY
    assert queue.content == FALLBACK_TEXT

    queue.send()
    assert queue.state == STATE_FINISHED
    assert channel.messages == [('01000000001', FALLBACK_TEXT)]
    assert tracker.last_delivered(students[0], ReportKind.PERIODIC_SHORT) == NOW
    assert roster.last_report_dates[('s1', ReportKind.PERIODIC_SHORT)] == NOW


def test_operations_are_rejected_while_generating(activity, tracker, executor, students):
    service = BlockingTextService()
    queue = make_queue(activity, tracker, executor, service=service)
    queue.open(students, ReportKind.PERIODIC_LONG)
    assert queue.state == STATE_GENERATING

    for action in (queue.send, lambda: queue.edit('x'), lambda: queue.set_kind(ReportKind.ABSENCE_ALERT)):
        with pytest.raises(InvalidQueueOperation):
            action()

    service.release.set()
    assert queue.wait(timeout=5) == STATE_READY
    assert queue.content == 'Great week! (Mona Adel Hassan)'


def test_edit_replaces_content_verbatim(activity, tracker, executor, students, channel):
    queue = make_queue(activity, tracker, executor, channel=channel)
    queue.open(students[:1], ReportKind.ABSENCE_ALERT)
    queue.edit('  Custom note  ')
    queue.send()

    assert channel.messages == [('01000000001', '  Custom note  ')]


def test_set_kind_regenerates_same_recipient(activity, tracker, executor, students):
    queue = make_queue(activity, tracker, executor)
    queue.open(students, ReportKind.ABSENCE_ALERT)
    queue.set_kind(ReportKind.PERIODIC_SHORT)

    assert queue.wait(timeout=5) == STATE_READY
    assert queue.index == 0
    assert queue.kind is ReportKind.PERIODIC_SHORT
    assert queue.generator.requests == [
        ('s1', ReportKind.ABSENCE_ALERT),
        ('s1', ReportKind.PERIODIC_SHORT),
    ]


def test_close_discards_outstanding_generation(activity, tracker, executor, students):
    service = BlockingTextService()
    queue = make_queue(activity, tracker, executor, service=service)
    queue.open(students, ReportKind.PERIODIC_SHORT)
    assert service.started.wait(timeout=5)

    queue.close()
    service.release.set()
    executor.shutdown(wait=True)

    assert queue.state == STATE_FINISHED
    assert queue.content == ''


def test_skip_while_generating_drops_stale_result(activity, tracker, executor, students):
    service = BlockingTextService()
    queue = make_queue(activity, tracker, executor, service=service)
    queue.open(students[:2], ReportKind.PERIODIC_SHORT)
    assert service.started.wait(timeout=5)

    queue.skip()
    assert queue.index == 1
    assert queue.state == STATE_GENERATING

    service.release.set()
    assert queue.wait(timeout=5) == STATE_READY
    assert queue.content == 'Great week! (Omar Said)'


def test_reopen_before_result_arrives(activity, tracker, executor, students):
    service = BlockingTextService()
    queue = make_queue(activity, tracker, executor, service=service)
    queue.open(students[:1], ReportKind.PERIODIC_SHORT)
    assert service.started.wait(timeout=5)

    queue.open(students[1:2], ReportKind.ABSENCE_ALERT)
    service.release.set()
    executor.shutdown(wait=True)

    assert queue.state == STATE_READY
    assert 'Omar Said' in queue.content
    assert queue.kind is ReportKind.ABSENCE_ALERT


def test_empty_recipient_set_is_refused(activity, tracker, executor):
    queue = make_queue(activity, tracker, executor)
    with pytest.raises(EmptyRecipientSet):
        queue.open([], ReportKind.ABSENCE_ALERT)
    assert queue.state == STATE_IDLE


def test_only_due_resumes_without_renotifying(activity, tracker, executor, students):
    tracker.record(students[0], ReportKind.PERIODIC_SHORT, NOW)
    queue = make_queue(activity, tracker, executor)

    queue.open(students, ReportKind.PERIODIC_SHORT, only_due=True)
    queue.wait(timeout=5)
    assert [s.id for s in queue.recipients] == ['s2', 's3']

    tracker.record(students[1], ReportKind.PERIODIC_SHORT, NOW)
    tracker.record(students[2], ReportKind.PERIODIC_SHORT, NOW)
    with pytest.raises(EmptyRecipientSet):
        queue.open(students, ReportKind.PERIODIC_SHORT, only_due=True)


def test_delivery_failure_does_not_block_advance(activity, tracker, executor, students):
    queue = make_queue(activity, tracker, executor, channel=RecordingChannel(fail=True))
    queue.open(students[:2], ReportKind.PERIODIC_SHORT)
    queue.wait(timeout=5)
    queue.send()

    assert queue.index == 1
    assert tracker.last_delivered(students[0], ReportKind.PERIODIC_SHORT) == NOW
    assert queue.notifier.get_recent_notifications(1)[0]['type'] == 'delivery_error'


def test_finished_queue_is_terminal(activity, tracker, executor, students):
    queue = make_queue(activity, tracker, executor)
    queue.open(students[:1], ReportKind.ABSENCE_ALERT)
    queue.close()

    for action in (queue.send, queue.skip, lambda: queue.edit('x')):
        with pytest.raises(InvalidQueueOperation):
            action()

    snapshot = queue.snapshot()
    assert snapshot['state'] == STATE_FINISHED
    assert snapshot['recipient'] is None


class BrokenStore:
    def get(self, recipient_id, report_kind):
        return None

    def set(self, recipient_id, report_kind, delivered_at):
        raise OSError('disk I/O error')


def test_tracker_failure_still_advances_without_resending(activity, executor, students, channel, roster):
    queue = make_queue(activity, DeliveryTracker(BrokenStore()), executor,
                       channel=channel, intent_sink=roster)
    queue.open(students[:2], ReportKind.PERIODIC_SHORT)
    queue.wait(timeout=5)

    queue.send()

    assert channel.messages == [('01000000001', 'Great week! (Mona Adel Hassan)')]
    assert queue.index == 1
    assert queue.sent == ['s1']
    assert roster.last_report_dates == {}

    queue.wait(timeout=5)
    queue.send()
    assert [phone for phone, _ in channel.messages] == ['01000000001', '01000000002']
    assert queue.state == STATE_FINISHED
