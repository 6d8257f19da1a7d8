from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from .approvals.model import ApprovalRequest
from .approvals.mysql_approval_repository import MySQLApprovalRequestRepository, MySQLWorkflowRepository
from .approvals.repository import ApprovalRequestRepository, WorkflowRepository
from .approvals.service import ApprovalService
from .attendance.factory import AttendanceStrategyFactory
from .attendance.mysql_time_record_repository import MySQLTimeRecordRepository
from .attendance.qr import QRErrorReporter, QRScanGuard
from .attendance.repository import TimeRecordRepository
from .attendance.service import AttendanceService
from .common.datetime_utils import now_local
from .core import constants
from .core.enums import ApprovalStatus, ApprovalType
from .database.connection import DBConfig, DatabaseConnection
from .notifications.mysql_notification_repository import MySQLNotificationRepository
from .notifications.repository import NotificationRepository
from .notifications.service import NotificationService
from .paid_leave.mysql_paid_leave_repository import MySQLAlertRepository, MySQLPayrollRepository
from .paid_leave.repository import AlertRepository, PayrollRepository
from .paid_leave.service import PaidLeaveService
from .reports.service import ReportService
from .scheduler.jobs import AutoScheduler
from .security.audit import SecurityLogger
from .security.limits import LoginAttemptManager, RateLimiter
from .security.mysql_security_repository import MySQLBackupCodeRepository, MySQLEmergencyRepository
from .security.repository import BackupCodeRepository, EmergencyRepository
from .security.service import EmergencyAccessService, MfaService
from .shifts.mysql_shift_repository import MySQLShiftRepository, MySQLShiftTemplateRepository
from .shifts.repository import ShiftRepository, ShiftTemplateRepository
from .shifts.service import ShiftService, TemplateService
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import AuthService, UserService


@dataclass(frozen=True)
class Repositories:
    users: UserRepository
    time_records: TimeRecordRepository
    shifts: ShiftRepository
    templates: ShiftTemplateRepository
    workflows: WorkflowRepository
    approval_requests: ApprovalRequestRepository
    notifications: NotificationRepository
    payroll: PayrollRepository
    alerts: AlertRepository
    backup_codes: BackupCodeRepository
    emergency: EmergencyRepository


@dataclass(frozen=True)
class Container:
    repos: Repositories

    security_log: SecurityLogger
    login_attempts: LoginAttemptManager
    rate_limiter: RateLimiter

    auth_service: AuthService
    user_service: UserService
    mfa_service: MfaService
    emergency_service: EmergencyAccessService
    notification_service: NotificationService
    paid_leave_service: PaidLeaveService
    shift_service: ShiftService
    template_service: TemplateService
    approval_service: ApprovalService
    attendance_service: AttendanceService
    report_service: ReportService
    scheduler: AutoScheduler

    conn: Optional[DatabaseConnection] = None


def _setting(settings: Any, name: str, default: Any) -> Any:
    return getattr(settings, name, default) if settings is not None else default


def build_services(
    repos: Repositories,
    *,
    settings: Any = None,
    clock: Callable[[], datetime] = now_local,
    conn: Optional[DatabaseConnection] = None,
) -> Container:
    """Wire every service on top of the given repositories."""

    security_log = SecurityLogger(clock=clock)
    login_attempts = LoginAttemptManager(clock=clock)
    rate_limiter = RateLimiter(clock=clock)

    notification_service = NotificationService(repos.notifications, clock=clock)
    mfa_service = MfaService(repos.users, repos.backup_codes, security_log, clock=clock)
    emergency_service = EmergencyAccessService(
        repos.emergency,
        repos.users,
        mfa_service,
        login_attempts,
        security_log,
        notification_service,
        clock=clock,
    )
    auth_service = AuthService(repos.users, login_attempts, security_log, mfa_service)
    user_service = UserService(repos.users, repos.payroll)
    paid_leave_service = PaidLeaveService(repos.payroll, repos.alerts, repos.users, clock=clock)
    shift_service = ShiftService(repos.shifts, repos.users, notification_service)
    template_service = TemplateService(repos.templates, shift_service, clock=clock)
    approval_service = ApprovalService(
        repos.approval_requests,
        repos.workflows,
        repos.users,
        notification_service,
        paid_leave_service,
        clock=clock,
    )
    attendance_service = AttendanceService(
        repos.time_records,
        repos.users,
        repos.shifts,
        approval_service,
        notification_service,
        scan_guard=QRScanGuard(
            business_hours=tuple(_setting(settings, "BUSINESS_HOURS", constants.BUSINESS_HOURS)),
            clock=clock,
        ),
        error_reporter=QRErrorReporter(security_log, clock=clock),
        strategy_factory=AttendanceStrategyFactory(),
        grace_minutes=int(_setting(settings, "LATE_GRACE_MINUTES", constants.DEFAULT_LATE_GRACE_MINUTES)),
        allowed_locations=tuple(_setting(settings, "QR_ALLOWED_LOCATIONS", constants.QR_ALLOWED_LOCATIONS)),
        qr_max_age_hours=int(_setting(settings, "QR_MAX_AGE_HOURS", constants.QR_MAX_AGE_HOURS)),
        clock=clock,
    )

    def on_vacation(request: ApprovalRequest) -> None:
        if request.status == ApprovalStatus.APPROVED:
            paid_leave_service.consume(request.requester_id, float(request.data["days"]))

    def on_shift_change(request: ApprovalRequest) -> None:
        if request.status == ApprovalStatus.APPROVED:
            shift_service.apply_approved_change(request.requester_id, request.data)

    approval_service.register_handler(ApprovalType.TIME_RECORD, attendance_service.apply_approval_decision)
    approval_service.register_handler(ApprovalType.VACATION_REQUEST, on_vacation)
    approval_service.register_handler(ApprovalType.SHIFT_CHANGE, on_shift_change)

    return Container(
        repos=repos,
        security_log=security_log,
        login_attempts=login_attempts,
        rate_limiter=rate_limiter,
        auth_service=auth_service,
        user_service=user_service,
        mfa_service=mfa_service,
        emergency_service=emergency_service,
        notification_service=notification_service,
        paid_leave_service=paid_leave_service,
        shift_service=shift_service,
        template_service=template_service,
        approval_service=approval_service,
        attendance_service=attendance_service,
        report_service=ReportService(repos.time_records, repos.shifts, repos.users),
        scheduler=AutoScheduler(
            paid_leave_service, timezone=_setting(settings, "SCHEDULER_TIMEZONE", "Asia/Tokyo")
        ),
        conn=conn,
    )


def build_container(*, db_config: dict, settings: Any = None) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
    repos = Repositories(
        users=MySQLUserRepository(conn),
        time_records=MySQLTimeRecordRepository(conn),
        shifts=MySQLShiftRepository(conn),
        templates=MySQLShiftTemplateRepository(conn),
        workflows=MySQLWorkflowRepository(conn),
        approval_requests=MySQLApprovalRequestRepository(conn),
        notifications=MySQLNotificationRepository(conn),
        payroll=MySQLPayrollRepository(conn),
        alerts=MySQLAlertRepository(conn),
        backup_codes=MySQLBackupCodeRepository(conn),
        emergency=MySQLEmergencyRepository(conn),
    )
    return build_services(repos, settings=settings, conn=conn)


def api_rate_limit(settings: Any) -> tuple[int, timedelta]:
    count, seconds = _setting(
        settings, "API_RATE_LIMIT", (constants.API_RATE_LIMIT_COUNT, constants.API_RATE_LIMIT_WINDOW_SECONDS)
    )
    return int(count), timedelta(seconds=int(seconds))
