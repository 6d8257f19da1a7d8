from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role used for permission checks."""

    ADMIN = "admin"
    CREATOR = "creator"
    STAFF = "staff"


# admin > creator > staff
_ROLE_IMPLIES: dict[Role, frozenset[Role]] = {
    Role.ADMIN: frozenset({Role.ADMIN, Role.CREATOR, Role.STAFF}),
    Role.CREATOR: frozenset({Role.CREATOR, Role.STAFF}),
    Role.STAFF: frozenset({Role.STAFF}),
}


def has_permission(role: Role, required: Role) -> bool:
    return Role(required) in _ROLE_IMPLIES.get(Role(role), frozenset())


class AttendanceStatus(str, Enum):
    """Normalized punctuality status stored with a time record."""

    ON_TIME = "ON_TIME"
    LATE = "LATE"
    EARLY_LEAVE = "EARLY_LEAVE"
    ABSENT = "ABSENT"
    UNKNOWN = "UNKNOWN"


class TimeRecordType(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class ApprovalStatus(str, Enum):
    """Approval state shared by time records and approval requests."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalType(str, Enum):
    TIME_RECORD = "time_record"
    SHIFT_CHANGE = "shift_change"
    VACATION_REQUEST = "vacation_request"
    OVERTIME_REQUEST = "overtime_request"


class ApprovalActionType(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertType(str, Enum):
    EXPIRY_WARNING = "expiry_warning"
    LOW_BALANCE = "low_balance"
    GRANT_AVAILABLE = "grant_available"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class NotificationType(str, Enum):
    SHIFT_UPDATE = "shift_update"
    ATTENDANCE_APPROVAL = "attendance_approval"
    SCHEDULE_CHANGE = "schedule_change"
    SYSTEM_MESSAGE = "system_message"


class EmergencyRequestType(str, Enum):
    BACKUP_CODE_RESET = "backup_code_reset"
    ACCOUNT_RECOVERY = "account_recovery"
    MFA_DISABLE = "mfa_disable"


class EmergencyStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class ContactMethod(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    ADMIN = "admin"


class QRErrorCode(str, Enum):
    CAMERA_ERROR = "CAMERA_ERROR"
    SCAN_ERROR = "SCAN_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SECURITY_ERROR = "SECURITY_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
