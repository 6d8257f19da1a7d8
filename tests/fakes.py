"""In-memory repositories and a controllable clock shared by the tests."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from typing import Any, Optional, Sequence

from werkzeug.security import generate_password_hash

from kintai.approvals.model import ApprovalRequest, ApprovalWorkflow
from kintai.attendance.model import TimeRecord
from kintai.container import Repositories
from kintai.core.enums import (
    AlertType,
    ApprovalStatus,
    ApprovalType,
    AttendanceStatus,
    ContactMethod,
    EmergencyRequestType,
    EmergencyStatus,
    NotificationType,
    Priority,
    Role,
    Severity,
    TimeRecordType,
)
from kintai.notifications.model import Notification
from kintai.paid_leave.model import PaidLeaveAlert, PayrollInfo
from kintai.security.backup_codes import BackupCodeSet
from kintai.security.model import EmergencyAccessRequest, EmergencyContact
from kintai.shifts.model import Shift, ShiftTemplate
from kintai.users.model import User


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_user(
    user_id: int,
    staff_id: str,
    role: Role = Role.STAFF,
    *,
    password: str = "password",
    name: Optional[str] = None,
    **kwargs: Any,
) -> User:
    return User(
        user_id=user_id,
        staff_id=staff_id,
        name=name or staff_id,
        email=f"{staff_id.lower()}@example.com",
        role=role,
        password_hash=generate_password_hash(password),
        **kwargs,
    )


@dataclass
class InMemoryUsers:
    users: dict[int, User] = field(default_factory=dict)

    def add(self, user: User) -> User:
        self.users[user.user_id] = user
        return user

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.users.get(int(user_id))

    def get_by_staff_id(self, staff_id: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.staff_id == staff_id), None)

    def list_all(self, *, active_only: bool = True) -> Sequence[User]:
        return [u for u in self.users.values() if u.is_active or not active_only]

    def list_by_roles(self, roles: Sequence[Role]) -> Sequence[User]:
        return [u for u in self.users.values() if u.is_active and u.role in roles]

    def create_user(self, *, staff_id, name, email, password_hash, role, **extra) -> int:
        user_id = max(self.users, default=0) + 1
        self.users[user_id] = User(user_id, staff_id, name, email, Role(role), password_hash, **extra)
        return user_id

    def update_profile(self, user_id: int, **changes) -> bool:
        self.users[user_id] = replace(self.users[user_id], **changes)
        return True

    def update_password(self, user_id: int, password_hash: str) -> bool:
        self.users[user_id] = replace(self.users[user_id], password_hash=password_hash)
        return True

    def set_mfa(self, user_id: int, *, enabled: bool, secret: Optional[str]) -> bool:
        self.users[user_id] = replace(self.users[user_id], mfa_enabled=enabled, mfa_secret=secret)
        return True

    def set_active(self, user_id: int, *, is_active: bool) -> bool:
        self.users[user_id] = replace(self.users[user_id], is_active=is_active)
        return True


@dataclass
class InMemoryTimeRecords:
    records: dict[int, TimeRecord] = field(default_factory=dict)

    def add(self, record: TimeRecord) -> TimeRecord:
        self.records[record.record_id] = record
        return record

    def get(self, record_id: int) -> Optional[TimeRecord]:
        return self.records.get(int(record_id))

    def get_open_for_user(self, user_id: int) -> Optional[TimeRecord]:
        open_records = [
            r
            for r in self.records.values()
            if r.user_id == user_id and r.clock_out is None and r.status != ApprovalStatus.REJECTED
        ]
        return max(open_records, key=lambda r: r.clock_in, default=None)

    def list_for_user(self, user_id: int, *, start: date, end: date) -> Sequence[TimeRecord]:
        return self.list_range(start=start, end=end, user_id=user_id)

    def list_range(self, *, start: date, end: date, user_id: Optional[int] = None) -> Sequence[TimeRecord]:
        return [
            r
            for r in self.records.values()
            if start <= r.work_date <= end and (user_id is None or r.user_id == user_id)
        ]

    def create_clock_in(
        self,
        *,
        user_id: int,
        work_date: date,
        clock_in: datetime,
        record_type: TimeRecordType,
        status: ApprovalStatus,
        attendance_status: AttendanceStatus,
        note: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> int:
        record_id = max(self.records, default=0) + 1
        self.records[record_id] = TimeRecord(
            record_id, user_id, work_date, clock_in, None, record_type, status, attendance_status, note, location_id
        )
        return record_id

    def update_clock_out(self, *, record_id, clock_out, attendance_status, status, record_type, note=None) -> bool:
        self.records[record_id] = replace(
            self.records[record_id],
            clock_out=clock_out,
            attendance_status=attendance_status,
            status=status,
            record_type=record_type,
            note=note,
        )
        return True

    def set_status(self, record_id: int, status: ApprovalStatus) -> bool:
        self.records[record_id] = replace(self.records[record_id], status=status)
        return True

    def update_times(self, *, record_id, clock_in, clock_out, note=None) -> bool:
        self.records[record_id] = replace(self.records[record_id], clock_in=clock_in, clock_out=clock_out, note=note)
        return True


@dataclass
class InMemoryShifts:
    shifts: dict[int, Shift] = field(default_factory=dict)

    def get_by_id(self, shift_id: int) -> Optional[Shift]:
        return self.shifts.get(int(shift_id))

    def get_for_user_and_date(self, user_id: int, work_date: date) -> Optional[Shift]:
        return next((s for s in self.shifts.values() if s.user_id == user_id and s.work_date == work_date), None)

    def list_range(self, start: date, end: date, *, user_id: Optional[int] = None) -> Sequence[Shift]:
        return [
            s
            for s in self.shifts.values()
            if start <= s.work_date <= end and (user_id is None or s.user_id == user_id)
        ]

    def upsert(
        self,
        *,
        user_id: int,
        work_date: date,
        start_time: time,
        end_time: time,
        position: Optional[str] = None,
        note: Optional[str] = None,
    ) -> int:
        existing = self.get_for_user_and_date(user_id, work_date)
        shift_id = existing.shift_id if existing else max(self.shifts, default=0) + 1
        self.shifts[shift_id] = Shift(shift_id, user_id, work_date, start_time, end_time, position, note)
        return shift_id

    def delete(self, shift_id: int) -> bool:
        return self.shifts.pop(int(shift_id), None) is not None


@dataclass
class InMemoryTemplates:
    templates: dict[str, ShiftTemplate] = field(default_factory=dict)

    def list_all(self) -> Sequence[ShiftTemplate]:
        return list(self.templates.values())

    def get(self, template_id: str) -> Optional[ShiftTemplate]:
        return self.templates.get(template_id)

    def save(self, template: ShiftTemplate) -> None:
        self.templates[template.template_id] = template

    def delete(self, template_id: str) -> bool:
        return self.templates.pop(template_id, None) is not None


@dataclass
class InMemoryWorkflows:
    workflows: dict[str, ApprovalWorkflow] = field(default_factory=dict)

    def list_all(self) -> Sequence[ApprovalWorkflow]:
        return list(self.workflows.values())

    def get_active_for_type(self, approval_type: ApprovalType) -> Optional[ApprovalWorkflow]:
        return next(
            (w for w in self.workflows.values() if w.approval_type == approval_type and w.is_active),
            None,
        )

    def save(self, workflow: ApprovalWorkflow) -> None:
        self.workflows[workflow.workflow_id] = workflow


@dataclass
class InMemoryApprovalRequests:
    requests: dict[int, ApprovalRequest] = field(default_factory=dict)

    def create(
        self,
        *,
        approval_type: ApprovalType,
        requester_id: int,
        requested_at: datetime,
        title: str,
        description: str,
        data: dict[str, Any],
        priority: Priority,
        required_approvers: Sequence[str],
    ) -> int:
        request_id = max(self.requests, default=0) + 1
        self.requests[request_id] = ApprovalRequest(
            request_id=request_id,
            approval_type=approval_type,
            requester_id=requester_id,
            requested_at=requested_at,
            title=title,
            description=description,
            data=dict(data),
            priority=priority,
            required_approvers=tuple(required_approvers),
        )
        return request_id

    def get(self, request_id: int) -> Optional[ApprovalRequest]:
        return self.requests.get(int(request_id))

    def save(self, request: ApprovalRequest) -> None:
        self.requests[request.request_id] = request

    def list_all(
        self,
        *,
        status: Optional[ApprovalStatus] = None,
        requester_id: Optional[int] = None,
        approval_type: Optional[ApprovalType] = None,
    ) -> Sequence[ApprovalRequest]:
        return [
            r
            for r in self.requests.values()
            if (status is None or r.status == status)
            and (requester_id is None or r.requester_id == requester_id)
            and (approval_type is None or r.approval_type == approval_type)
        ]


@dataclass
class InMemoryNotifications:
    items: dict[int, Notification] = field(default_factory=dict)
    reads: set[tuple[int, int]] = field(default_factory=set)

    def add(
        self,
        *,
        notification_type: NotificationType,
        title: str,
        message: str,
        target_user_id: Optional[int],
        priority: Priority,
        created_at: datetime,
    ) -> int:
        notification_id = max(self.items, default=0) + 1
        self.items[notification_id] = Notification(
            notification_id, notification_type, title, message, target_user_id, created_at, priority
        )
        return notification_id

    def _visible(self, n: Notification, user_id: int) -> Optional[Notification]:
        if n.target_user_id not in (None, user_id):
            return None
        return replace(n, read=(n.notification_id, user_id) in self.reads)

    def get_for_user(self, notification_id: int, user_id: int) -> Optional[Notification]:
        n = self.items.get(notification_id)
        return self._visible(n, user_id) if n else None

    def list_for_user(self, user_id: int, *, limit: int = 100) -> Sequence[Notification]:
        visible = [v for v in (self._visible(n, user_id) for n in self.items.values()) if v]
        return sorted(visible, key=lambda n: n.created_at, reverse=True)[:limit]

    def mark_read(self, notification_id: int, user_id: int, *, read_at: datetime) -> None:
        self.reads.add((notification_id, user_id))

    def targeted(self, user_id: int) -> list[Notification]:
        return [n for n in self.items.values() if n.target_user_id == user_id]


@dataclass
class InMemoryPayroll:
    rows: dict[int, PayrollInfo] = field(default_factory=dict)

    def get(self, user_id: int) -> Optional[PayrollInfo]:
        return self.rows.get(int(user_id))

    def ensure(self, user_id: int, *, work_start_date: Optional[date] = None) -> PayrollInfo:
        if user_id not in self.rows:
            self.rows[user_id] = PayrollInfo(user_id=user_id, work_start_date=work_start_date)
        return self.rows[user_id]

    def save(self, info: PayrollInfo) -> None:
        self.rows[info.user_id] = info

    def list_all(self) -> Sequence[PayrollInfo]:
        return list(self.rows.values())


@dataclass
class InMemoryAlerts:
    alerts: dict[int, PaidLeaveAlert] = field(default_factory=dict)

    def add(
        self,
        *,
        user_id: int,
        alert_type: AlertType,
        message: str,
        severity: Severity,
        created_at: datetime,
    ) -> int:
        alert_id = max(self.alerts, default=0) + 1
        self.alerts[alert_id] = PaidLeaveAlert(alert_id, user_id, alert_type, message, severity, created_at)
        return alert_id

    def get(self, alert_id: int) -> Optional[PaidLeaveAlert]:
        return self.alerts.get(int(alert_id))

    def list_active(self, *, user_id: Optional[int] = None) -> Sequence[PaidLeaveAlert]:
        return [
            a for a in self.alerts.values() if not a.dismissed and (user_id is None or a.user_id == user_id)
        ]

    def dismiss(self, alert_id: int) -> bool:
        self.alerts[alert_id] = replace(self.alerts[alert_id], dismissed=True)
        return True


@dataclass
class InMemoryBackupCodes:
    sets: dict[int, BackupCodeSet] = field(default_factory=dict)

    def get_for_user(self, user_id: int) -> Optional[BackupCodeSet]:
        return self.sets.get(int(user_id))

    def save(self, code_set: BackupCodeSet) -> None:
        self.sets[code_set.user_id] = code_set

    def delete_for_user(self, user_id: int) -> bool:
        return self.sets.pop(int(user_id), None) is not None


@dataclass
class InMemoryEmergency:
    requests: dict[int, EmergencyAccessRequest] = field(default_factory=dict)
    contacts: dict[int, EmergencyContact] = field(default_factory=dict)

    def create(
        self,
        *,
        user_id: int,
        request_type: EmergencyRequestType,
        reason: str,
        contact_method: ContactMethod,
        contact_info: str,
        requested_at: datetime,
    ) -> int:
        request_id = max(self.requests, default=0) + 1
        self.requests[request_id] = EmergencyAccessRequest(
            request_id, user_id, request_type, reason, contact_method, contact_info, EmergencyStatus.PENDING, requested_at
        )
        return request_id

    def get(self, request_id: int) -> Optional[EmergencyAccessRequest]:
        return self.requests.get(int(request_id))

    def list_all(self, *, status: Optional[EmergencyStatus] = None) -> Sequence[EmergencyAccessRequest]:
        return [r for r in self.requests.values() if status is None or r.status == status]

    def mark_processed(self, request_id, *, status, processed_by, processed_at, admin_notes) -> bool:
        current = self.requests[request_id]
        if current.status != EmergencyStatus.PENDING:
            return False
        self.requests[request_id] = replace(
            current, status=status, processed_by=processed_by, processed_at=processed_at, admin_notes=admin_notes
        )
        return True

    def save_contact(self, contact: EmergencyContact) -> None:
        self.contacts[contact.user_id] = contact

    def get_contact(self, user_id: int) -> Optional[EmergencyContact]:
        return self.contacts.get(int(user_id))


def in_memory_repositories() -> Repositories:
    return Repositories(
        users=InMemoryUsers(),
        time_records=InMemoryTimeRecords(),
        shifts=InMemoryShifts(),
        templates=InMemoryTemplates(),
        workflows=InMemoryWorkflows(),
        approval_requests=InMemoryApprovalRequests(),
        notifications=InMemoryNotifications(),
        payroll=InMemoryPayroll(),
        alerts=InMemoryAlerts(),
        backup_codes=InMemoryBackupCodes(),
        emergency=InMemoryEmergency(),
    )
