from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest

from engagement.modules.models import Student
from engagement.modules.student_manager import ActivityLog, RosterStore


NOW = datetime(2026, 10, 18, 17, 0, 0)


class ManualClock:
    """Monotonic clock that only moves when a test advances it."""

    def __init__(self, start=100.0):
        self.value = start

    def now(self):
        return self.value

    def advance(self, seconds):
        self.value += seconds
        return self.value


class RecordingSpeaker:
    def __init__(self):
        self.spoken = []
        self.tones = []

    def speak(self, text):
        self.spoken.append(text)

    def tone(self, kind):
        self.tones.append(kind)


class RecordingChannel:
    def __init__(self, fail=False):
        self.fail = fail
        self.messages = []

    def send(self, phone, text):
        if self.fail:
            raise ConnectionError('channel down')
        self.messages.append((phone, text))


class FakeTextService:
    def __init__(self, reply='Great week!', fail=False):
        self.reply = reply
        self.fail = fail
        self.calls = []

    def generate(self, name, task_count, avg_score, is_paid, issuer_name, period_label, attendance_indicator):
        self.calls.append({
            'name': name,
            'task_count': task_count,
            'avg_score': avg_score,
            'is_paid': is_paid,
            'issuer_name': issuer_name,
            'period_label': period_label,
            'attendance_indicator': attendance_indicator,
        })
        if self.fail:
            raise TimeoutError('generation timed out')
        return f"{self.reply} ({name})"


@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def speaker():
    return RecordingSpeaker()


@pytest.fixture()
def channel():
    return RecordingChannel()


@pytest.fixture()
def students():
    return [
        Student(id='s1', name='Mona Adel Hassan', code='M1023', phone='01000000001'),
        Student(id='s2', name='Omar Said', code='M1024', phone='01000000002', is_paid=False),
        Student(id='s3', name='Laila Fathy', code='M1025', phone='01000000003', attendance=True),
    ]


@pytest.fixture()
def roster(students):
    return RosterStore(students)


@pytest.fixture()
def activity():
    return ActivityLog()


@pytest.fixture()
def executor():
    pool = ThreadPoolExecutor(max_workers=1)
    yield pool
    pool.shutdown(wait=True)
