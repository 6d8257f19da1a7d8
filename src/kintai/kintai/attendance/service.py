from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence

from ..approvals.model import ApprovalRequest
from ..approvals.service import ApprovalService
from ..common.datetime_utils import month_range, now_local, parse_iso_datetime
from ..common.validators import require_non_empty
from ..core.constants import DEFAULT_LATE_GRACE_MINUTES, QR_ALLOWED_LOCATIONS, QR_MAX_AGE_HOURS
from ..core.enums import (
    ApprovalActionType,
    ApprovalStatus,
    ApprovalType,
    QRErrorCode,
    Role,
    TimeRecordType,
)
from ..core.exceptions import AuthorizationError, NotFoundError, QRCodeError, ValidationError
from ..notifications.service import NotificationService
from ..shifts.model import Shift
from ..shifts.repository import ShiftRepository
from ..users.model import User
from ..users.repository import UserRepository
from . import qr
from .factory import AttendanceStrategyFactory
from .model import QRPayload, TimeRecord
from .repository import TimeRecordRepository

logger = logging.getLogger(__name__)


class AttendanceService:
    def __init__(
        self,
        records: TimeRecordRepository,
        users: UserRepository,
        shifts: ShiftRepository,
        approvals: Optional[ApprovalService] = None,
        notifications: Optional[NotificationService] = None,
        *,
        scan_guard: Optional[qr.QRScanGuard] = None,
        error_reporter: Optional[qr.QRErrorReporter] = None,
        strategy_factory: Optional[AttendanceStrategyFactory] = None,
        grace_minutes: int = DEFAULT_LATE_GRACE_MINUTES,
        allowed_locations: Sequence[str] = QR_ALLOWED_LOCATIONS,
        qr_max_age_hours: int = QR_MAX_AGE_HOURS,
        clock: Callable[[], datetime] = now_local,
    ):
        self._records = records
        self._users = users
        self._shifts = shifts
        self._approvals = approvals
        self._notifications = notifications
        self._clock = clock
        self._guard = scan_guard or qr.QRScanGuard(clock=clock)
        self._reporter = error_reporter or qr.QRErrorReporter(clock=clock)
        self._factory = strategy_factory or AttendanceStrategyFactory()
        self._grace_minutes = int(grace_minutes)
        self._allowed_locations = tuple(allowed_locations)
        self._qr_max_age_hours = int(qr_max_age_hours)

    @property
    def error_reporter(self) -> qr.QRErrorReporter:
        return self._reporter

    def _user(self, user_id: int) -> User:
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("スタッフが見つかりません")
        return user

    def effective_shift(self, user_id: int, at: datetime) -> Optional[Shift]:
        """Shift covering `at`, falling back to yesterday's overnight shift."""

        today = self._shifts.get_for_user_and_date(int(user_id), at.date())
        yesterday = self._shifts.get_for_user_and_date(int(user_id), at.date() - timedelta(days=1))
        if yesterday and yesterday.overnight:
            _, end = yesterday.span()
            if at <= end:
                return yesterday
        return today

    def _shift_for_record(self, record: TimeRecord) -> Optional[Shift]:
        return self._shifts.get_for_user_and_date(record.user_id, record.work_date)

    # QR codes

    def qr_payload(self, location_id: str, location_name: str) -> str:
        location_id = require_non_empty(location_id, "場所ID")
        if self._allowed_locations and location_id not in self._allowed_locations:
            raise ValidationError("許可されていない場所です")
        return qr.build_payload(location_id, require_non_empty(location_name, "場所名"), now=self._clock())

    def verify_qr(self, raw: str, *, staff_id: str) -> QRPayload:
        """Full scan check: rate limit, format, then suspicious-activity detection."""

        self._guard.record_scan(staff_id)
        context = {"action": "scan"}
        try:
            payload = qr.validate_payload(
                qr.preprocess(raw),
                now=self._clock(),
                allowed_locations=self._allowed_locations,
                max_age_hours=self._qr_max_age_hours,
            )
        except QRCodeError as e:
            self._reporter.report(e, context, staff_id)
            raise

        reason = self._guard.suspicious_reason(staff_id)
        if reason:
            error = QRCodeError("不正アクセスが検出されました", QRErrorCode.SECURITY_ERROR.value, reason)
            self._reporter.report(error, {**context, "location_id": payload.location_id}, staff_id)
            raise QRCodeError(reason, QRErrorCode.SECURITY_ERROR.value, reason)
        return payload

    def scan(self, user_id: int, raw: str) -> tuple[str, TimeRecord]:
        """Clock in, or clock out when a record is open; returns (action, record)."""

        user = self._user(user_id)
        payload = self.verify_qr(raw, staff_id=user.staff_id)
        if self._records.get_open_for_user(user.user_id):
            return "clock_out", self.clock_out(user.user_id, record_type=TimeRecordType.AUTO)
        return "clock_in", self.clock_in(user.user_id, record_type=TimeRecordType.AUTO, location_id=payload.location_id)

    # clock in / out

    def clock_in(
        self,
        user_id: int,
        *,
        record_type: TimeRecordType = TimeRecordType.AUTO,
        manual_time: Optional[datetime] = None,
        reason: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> TimeRecord:
        user = self._user(user_id)
        record_type = TimeRecordType(record_type)
        now = self._clock()
        at = manual_time if record_type == TimeRecordType.MANUAL and manual_time else now
        if at > now:
            raise ValidationError("未来の時刻は登録できません")

        if self._records.get_open_for_user(user.user_id):
            raise ValidationError("既に出勤しています。先に退勤してください")

        shift = self.effective_shift(user.user_id, at)
        work_date = shift.work_date if shift else at.date()
        strategy = self._factory.for_clock_in(now=at, shift=shift, grace_minutes=self._grace_minutes)
        decision = strategy.decide_clock_in(now=at, shift=shift, grace_minutes=self._grace_minutes)

        status = ApprovalStatus.PENDING if record_type == TimeRecordType.MANUAL else ApprovalStatus.APPROVED
        note = reason or decision.note
        record_id = self._records.create_clock_in(
            user_id=user.user_id,
            work_date=work_date,
            clock_in=at,
            record_type=record_type,
            status=status,
            attendance_status=decision.status,
            note=note,
            location_id=location_id,
        )
        record = TimeRecord(
            record_id=record_id,
            user_id=user.user_id,
            work_date=work_date,
            clock_in=at,
            clock_out=None,
            record_type=record_type,
            status=status,
            attendance_status=decision.status,
            note=note,
            location_id=location_id,
        )
        if record_type == TimeRecordType.MANUAL:
            self._request_approval(record, reason=reason or "手動打刻")
        logger.info("clock in: staff=%s type=%s status=%s", user.staff_id, record_type.value, decision.status.value)
        return record

    def clock_out(
        self,
        user_id: int,
        *,
        record_type: TimeRecordType = TimeRecordType.AUTO,
        manual_time: Optional[datetime] = None,
        reason: Optional[str] = None,
    ) -> TimeRecord:
        user = self._user(user_id)
        record_type = TimeRecordType(record_type)
        now = self._clock()
        at = manual_time if record_type == TimeRecordType.MANUAL and manual_time else now
        if at > now:
            raise ValidationError("未来の時刻は登録できません")

        record = self._records.get_open_for_user(user.user_id)
        if not record:
            raise ValidationError("出勤記録がありません。先に出勤してください")
        if at < record.clock_in:
            raise ValidationError("退勤時刻は出勤時刻より後である必要があります")

        shift = self._shift_for_record(record)
        strategy = self._factory.for_clock_out(now=at, shift=shift, current_status=record.attendance_status)
        decision = strategy.decide_clock_out(now=at, shift=shift, current=record.attendance_status)

        status = ApprovalStatus.PENDING if record_type == TimeRecordType.MANUAL else record.status
        note = reason or decision.note or record.note
        manual = record_type == TimeRecordType.MANUAL or record.record_type == TimeRecordType.MANUAL
        updated_type = TimeRecordType.MANUAL if manual else TimeRecordType.AUTO

        if not self._records.update_clock_out(
            record_id=record.record_id,
            clock_out=at,
            attendance_status=decision.status,
            status=status,
            record_type=updated_type,
            note=note,
        ):
            raise ValidationError("既に退勤しています")

        closed = replace(
            record,
            clock_out=at,
            attendance_status=decision.status,
            status=status,
            record_type=updated_type,
            note=note,
        )
        if record_type == TimeRecordType.MANUAL and not self._has_pending_approval(record.record_id):
            self._request_approval(closed, reason=reason or "手動打刻")
        logger.info("clock out: staff=%s type=%s status=%s", user.staff_id, record_type.value, decision.status.value)
        return closed

    def _has_pending_approval(self, record_id: int) -> bool:
        if not self._approvals:
            return False
        return self._approvals.find_pending(ApprovalType.TIME_RECORD, record_id=int(record_id)) is not None

    def _request_approval(self, record: TimeRecord, *, reason: str) -> None:
        if not self._approvals:
            return
        self._approvals.request_time_record(
            requester_id=record.user_id,
            record_id=record.record_id,
            work_date=record.work_date,
            reason=reason,
        )

    # approvals

    def approve_record(self, record_id: int, *, approver_id: int, current_role: Role, approved: bool) -> TimeRecord:
        if current_role not in (Role.ADMIN, Role.CREATOR):
            raise AuthorizationError("勤怠記録を承認する権限がありません")
        record = self._records.get(int(record_id))
        if not record:
            raise NotFoundError("勤怠記録が見つかりません")

        pending = (
            self._approvals.find_pending(ApprovalType.TIME_RECORD, record_id=record.record_id) if self._approvals else None
        )
        action = ApprovalActionType.APPROVE if approved else ApprovalActionType.REJECT
        if pending:
            self._approvals.process(pending.request_id, approver_id=approver_id, action=action)
        else:
            self._set_status(record, approved)
            if self._notifications is not None:
                self._notifications.send_attendance_approval(record.user_id, approved=approved, work_date=record.work_date)

        return self._records.get(record.record_id) or record

    def _set_status(self, record: TimeRecord, approved: bool) -> None:
        status = ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED
        self._records.set_status(record.record_id, status)
        logger.info("time record %s %s", record.record_id, status.value)

    def request_correction(
        self,
        user_id: int,
        record_id: int,
        *,
        clock_in: Optional[datetime],
        clock_out: Optional[datetime],
        reason: str,
    ) -> ApprovalRequest:
        if not self._approvals:
            raise ValidationError("承認ワークフローが利用できません")
        record = self._records.get(int(record_id))
        if not record:
            raise NotFoundError("勤怠記録が見つかりません")
        if record.user_id != int(user_id):
            raise AuthorizationError("他のスタッフの勤怠記録は修正できません")
        reason = require_non_empty(reason, "修正理由")
        if clock_in is None and clock_out is None:
            raise ValidationError("修正後の時刻を入力してください")

        new_in = clock_in or record.clock_in
        new_out = clock_out or record.clock_out
        if new_out is not None and new_out < new_in:
            raise ValidationError("退勤時刻は出勤時刻より後である必要があります")

        return self._approvals.request_time_record(
            requester_id=record.user_id,
            record_id=record.record_id,
            work_date=record.work_date,
            reason=reason,
            clock_in=clock_in,
            clock_out=clock_out,
            correction=True,
        )

    def apply_approval_decision(self, request: ApprovalRequest) -> None:
        """Decision handler for time_record approval requests."""

        record = self._records.get(int(request.data["record_id"]))
        if not record:
            raise NotFoundError("勤怠記録が見つかりません")
        approved = request.status == ApprovalStatus.APPROVED

        if not request.data.get("correction"):
            self._set_status(record, approved)
            return
        if not approved:
            return

        new_in = parse_iso_datetime(request.data["clock_in"]) if request.data.get("clock_in") else record.clock_in
        new_out = parse_iso_datetime(request.data["clock_out"]) if request.data.get("clock_out") else record.clock_out
        if new_out is not None and new_out < new_in:
            raise ValidationError("退勤時刻は出勤時刻より後である必要があります")
        self._records.update_times(
            record_id=record.record_id,
            clock_in=new_in,
            clock_out=new_out,
            note=f"修正: {request.data.get('reason')}" if request.data.get("reason") else None,
        )
        self._set_status(record, True)

    # queries

    def list_records(
        self, user_id: int, *, year: int, month: int, viewer_id: int, viewer_role: Role
    ) -> list[TimeRecord]:
        if viewer_role == Role.STAFF and int(user_id) != int(viewer_id):
            raise AuthorizationError("他のスタッフの勤怠記録は閲覧できません")
        if not 1 <= int(month) <= 12:
            raise ValidationError("月の指定が正しくありません")
        start, end = month_range(int(year), int(month))
        return list(self._records.list_for_user(int(user_id), start=start, end=end))

    def list_range(self, *, start: date, end: date, user_id: Optional[int] = None) -> list[TimeRecord]:
        return list(self._records.list_range(start=start, end=end, user_id=user_id))

    def open_record(self, user_id: int) -> Optional[TimeRecord]:
        return self._records.get_open_for_user(int(user_id))
