from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AlertType, Severity


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class PayrollInfo:
    """Pay rates and the paid-leave (有給) balance of one staff member."""

    user_id: int
    hourly_rate: int = 0
    transportation_allowance: int = 0
    remaining_paid_leave: float = 0.0
    paid_leave_expiry: Optional[date] = None
    total_paid_leave: float = 0.0
    used_paid_leave: float = 0.0
    last_grant_date: Optional[date] = None
    work_start_date: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "hourly_rate": self.hourly_rate,
            "transportation_allowance": self.transportation_allowance,
            "remaining_paid_leave": self.remaining_paid_leave,
            "paid_leave_expiry": _iso(self.paid_leave_expiry),
            "total_paid_leave": self.total_paid_leave,
            "used_paid_leave": self.used_paid_leave,
            "last_grant_date": _iso(self.last_grant_date),
            "work_start_date": _iso(self.work_start_date),
        }


@dataclass(frozen=True)
class AlertNotice:
    """An alert produced by the rules, before it is stored."""

    alert_type: AlertType
    message: str
    severity: Severity


@dataclass(frozen=True)
class PaidLeaveAlert:
    alert_id: int
    user_id: int
    alert_type: AlertType
    message: str
    severity: Severity
    created_at: datetime
    dismissed: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.alert_id,
            "user_id": self.user_id,
            "type": self.alert_type.value,
            "message": self.message,
            "severity": self.severity.value,
            "created_at": self.created_at.isoformat(),
            "dismissed": self.dismissed,
        }
