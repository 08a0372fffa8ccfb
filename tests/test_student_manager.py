from datetime import timedelta

import pytest

from conftest import NOW
from engagement.modules.models import QuizResult, ReportKind, Student, StudentIntent, Submission
from engagement.modules.student_manager import ActivityLog, RosterStore


def test_attendance_intent_updates_flag_and_points(roster):
    updated = roster.apply_intent(StudentIntent(student_id='s1', attendance=True, points=10))

    assert updated.attendance is True
    assert updated.points == 10
    assert roster.get('s1') == updated
    assert roster.snapshot()[0] is updated


def test_snapshots_are_not_changed_by_later_intents(roster):
    before = roster.snapshot()
    roster.apply_intent(StudentIntent(student_id='s2', attendance=True, points=10))

    assert before[1].attendance is False
    assert roster.snapshot()[1].attendance is True


def test_last_report_intent_is_stored_per_kind(roster):
    roster.apply_intent(StudentIntent(student_id='s1', last_report_date=NOW,
                                      report_kind=ReportKind.PERIODIC_LONG))

    assert roster.last_report_dates == {('s1', ReportKind.PERIODIC_LONG): NOW}
    assert roster.get('s1').points == 0


def test_unknown_student_intent_raises(roster):
    with pytest.raises(KeyError):
        roster.apply_intent(StudentIntent(student_id='missing', attendance=True))


def test_duplicate_ids_are_rejected(roster):
    with pytest.raises(ValueError):
        roster.add_student(Student(id='s1', name='Someone Else', code='X1'))


def test_reset_daily_attendance(roster):
    roster.apply_intent(StudentIntent(student_id='s1', attendance=True))
    assert roster.reset_daily_attendance() == 2
    assert not any(s.attendance for s in roster.snapshot())


def test_find_by_code_prefers_exact_match(roster):
    assert roster.find_by_code(' m1024 ').id == 's2'
    assert roster.find_by_code('nothing') is None


def test_csv_import_reports_row_errors(roster):
    content = (
        "id,name,code,phone,is_paid,group_id\n"
        "s4,Youssef Ali,M2001,0100,no,g1\n"
        "s5,,M2002,,,\n"
        "s6,Hana Magdy,m1023,,,\n"
    )

    result = roster.import_students_from_csv(content)

    assert result['imported'] == 1
    assert [e['line'] for e in result['errors']] == [3, 4]
    student = roster.get('s4')
    assert student.is_paid is False
    assert student.group_id == 'g1'


def test_activity_log_orders_most_recent_first():
    log = ActivityLog()
    log.add_submission(Submission('s1', NOW - timedelta(days=3)))
    log.add_submission(Submission('s1', NOW - timedelta(days=1)))
    log.add_submission(Submission('s2', NOW))
    log.add_result(QuizResult('s1', NOW - timedelta(days=5), 70))
    log.add_result(QuizResult('s1', NOW - timedelta(days=2), 90))

    assert [s.submitted_at for s in log.submissions_for('s1')] == [
        NOW - timedelta(days=1), NOW - timedelta(days=3)
    ]
    assert [r.score for r in log.results_for('s1')] == [90, 70]
    assert log.results_for('s3') == []


def test_second_check_in_for_present_student_awards_no_points(roster):
    intent = StudentIntent(student_id='s1', attendance=True, points=10)
    roster.apply_intent(intent)
    updated = roster.apply_intent(intent)

    assert updated.attendance is True
    assert updated.points == 10


def test_points_without_check_in_still_apply_to_present_student(roster):
    updated = roster.apply_intent(StudentIntent(student_id='s3', points=5))
    assert updated.points == 5
