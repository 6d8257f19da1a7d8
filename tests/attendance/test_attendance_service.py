from __future__ import annotations

from datetime import date, datetime, time, timedelta

import pytest

from kintai.core.enums import ApprovalActionType, ApprovalStatus, ApprovalType, AttendanceStatus, Role, TimeRecordType
from kintai.core.exceptions import AuthorizationError, QRCodeError, ValidationError
from kintai.shifts.model import Shift

TODAY = date(2025, 6, 11)


def _add_shift(repos, start: time, end: time, *, user_id: int = 2, day: date = TODAY) -> Shift:
    shift_id = repos.shifts.upsert(user_id=user_id, work_date=day, start_time=start, end_time=end)
    return repos.shifts.get_by_id(shift_id)


def test_clock_in_after_grace_is_late(container, repos):
    _add_shift(repos, time(8, 0), time(17, 0))

    record = container.attendance_service.clock_in(2)

    assert record.attendance_status == AttendanceStatus.LATE
    assert record.note == "60分遅刻"
    assert record.status == ApprovalStatus.APPROVED
    assert record.work_date == TODAY


def test_clock_out_before_shift_end_is_early_leave(container, repos, clock):
    _add_shift(repos, time(9, 0), time(17, 0))
    svc = container.attendance_service
    svc.clock_in(2)

    clock.now = datetime(2025, 6, 11, 16, 0)
    record = svc.clock_out(2)

    assert record.attendance_status == AttendanceStatus.EARLY_LEAVE
    assert record.note == "60分早退"
    assert record.worked_minutes == 7 * 60
    assert repos.time_records.get(record.record_id).clock_out == clock.now


def test_cannot_clock_in_twice_or_clock_out_without_record(container):
    svc = container.attendance_service
    with pytest.raises(ValidationError):
        svc.clock_out(2)

    svc.clock_in(2)
    with pytest.raises(ValidationError):
        svc.clock_in(2)


def test_manual_time_in_the_future_is_rejected(container):
    with pytest.raises(ValidationError):
        container.attendance_service.clock_in(
            2, record_type=TimeRecordType.MANUAL, manual_time=datetime(2025, 6, 11, 10, 0)
        )


def test_overnight_shift_from_yesterday_is_used_after_midnight(container, repos, clock):
    _add_shift(repos, time(22, 0), time(6, 0), day=TODAY - timedelta(days=1))
    clock.now = datetime(2025, 6, 11, 2, 0)

    record = container.attendance_service.clock_in(2)

    assert record.work_date == TODAY - timedelta(days=1)
    assert record.attendance_status == AttendanceStatus.LATE


def test_manual_clock_in_waits_for_approval(container, repos):
    svc = container.attendance_service
    record = svc.clock_in(
        2, record_type=TimeRecordType.MANUAL, manual_time=datetime(2025, 6, 11, 8, 30), reason="打刻忘れ"
    )

    assert record.status == ApprovalStatus.PENDING
    pending = container.approval_service.find_pending(ApprovalType.TIME_RECORD, record_id=record.record_id)
    assert pending is not None
    assert set(pending.required_approvers) == {"admin", "C001"}

    approved = svc.approve_record(record.record_id, approver_id=1, current_role=Role.ADMIN, approved=True)

    assert approved.status == ApprovalStatus.APPROVED
    assert repos.approval_requests.get(pending.request_id).status == ApprovalStatus.APPROVED
    titles = [n.title for n in repos.notifications.targeted(2)]
    assert "勤怠記録が承認されました" in titles


def test_manual_clock_out_does_not_open_a_second_request(container, repos):
    svc = container.attendance_service
    svc.clock_in(2, record_type=TimeRecordType.MANUAL, manual_time=datetime(2025, 6, 11, 8, 0))
    svc.clock_out(2, record_type=TimeRecordType.MANUAL, manual_time=datetime(2025, 6, 11, 8, 45))

    requests = repos.approval_requests.list_all(approval_type=ApprovalType.TIME_RECORD)
    assert len(requests) == 1


def test_staff_cannot_approve_records(container):
    record = container.attendance_service.clock_in(2)
    with pytest.raises(AuthorizationError):
        container.attendance_service.approve_record(
            record.record_id, approver_id=2, current_role=Role.STAFF, approved=True
        )


def test_rejecting_record_without_request_sets_status_and_notifies(container, repos):
    record = container.attendance_service.clock_in(2)

    rejected = container.attendance_service.approve_record(
        record.record_id, approver_id=3, current_role=Role.CREATOR, approved=False
    )

    assert rejected.status == ApprovalStatus.REJECTED
    assert any(n.title == "勤怠記録が却下されました" for n in repos.notifications.targeted(2))


def test_correction_is_applied_once_approved(container, repos, clock):
    svc = container.attendance_service
    record = svc.clock_in(2)
    clock.now = datetime(2025, 6, 11, 18, 0)
    svc.clock_out(2)

    request = svc.request_correction(
        2, record.record_id, clock_in=datetime(2025, 6, 11, 8, 0), clock_out=None, reason="出勤時刻の修正"
    )
    assert request.data["correction"] is True
    assert repos.time_records.get(record.record_id).clock_in == datetime(2025, 6, 11, 9, 0)

    container.approval_service.process(request.request_id, approver_id=1, action=ApprovalActionType.APPROVE)

    corrected = repos.time_records.get(record.record_id)
    assert corrected.clock_in == datetime(2025, 6, 11, 8, 0)
    assert corrected.clock_out == datetime(2025, 6, 11, 18, 0)
    assert corrected.note == "修正: 出勤時刻の修正"


def test_correction_of_someone_elses_record_is_forbidden(container):
    record = container.attendance_service.clock_in(3)
    with pytest.raises(AuthorizationError):
        container.attendance_service.request_correction(
            2, record.record_id, clock_in=datetime(2025, 6, 11, 8, 0), clock_out=None, reason="x"
        )


def test_staff_only_sees_own_records(container):
    svc = container.attendance_service
    svc.clock_in(2)

    own = svc.list_records(2, year=2025, month=6, viewer_id=2, viewer_role=Role.STAFF)
    assert len(own) == 1
    with pytest.raises(AuthorizationError):
        svc.list_records(3, year=2025, month=6, viewer_id=2, viewer_role=Role.STAFF)
    assert svc.list_records(2, year=2025, month=6, viewer_id=1, viewer_role=Role.ADMIN) == own


def test_qr_scan_toggles_between_clock_in_and_out(container, clock):
    svc = container.attendance_service
    payload = svc.qr_payload("main", "本店")

    action, record = svc.scan(2, payload)
    assert action == "clock_in"
    assert record.location_id == "main"

    clock.now = datetime(2025, 6, 11, 17, 0)
    action, record = svc.scan(2, payload)
    assert action == "clock_out"
    assert record.clock_out == clock.now


def test_qr_scan_repeated_within_five_minutes_is_suspicious(container, clock):
    svc = container.attendance_service
    payload = svc.qr_payload("main", "本店")
    svc.scan(2, payload)

    clock.now = datetime(2025, 6, 11, 9, 2)
    with pytest.raises(QRCodeError) as exc:
        svc.scan(2, payload)

    assert exc.value.code == "SECURITY_ERROR"
    assert svc.error_reporter.summary()["error_counts"] == {"SECURITY_ERROR": 1}


def test_qr_scan_outside_business_hours_is_rejected(container, clock):
    svc = container.attendance_service
    clock.now = datetime(2025, 6, 11, 23, 0)
    payload = svc.qr_payload("main", "本店")

    with pytest.raises(QRCodeError) as exc:
        svc.scan(2, payload)
    assert str(exc.value) == "営業時間外のアクセスです"
    assert svc.open_record(2) is None


def test_unknown_location_cannot_get_a_qr_code(container):
    with pytest.raises(ValidationError):
        container.attendance_service.qr_payload("warehouse", "倉庫")
