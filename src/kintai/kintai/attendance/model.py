from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import format_work_hours
from ..core.enums import ApprovalStatus, AttendanceStatus, TimeRecordType


@dataclass(frozen=True)
class TimeRecord:
    """Domain entity: one clock-in/clock-out pair."""

    record_id: int
    user_id: int
    work_date: date
    clock_in: datetime
    clock_out: Optional[datetime]
    record_type: TimeRecordType
    status: ApprovalStatus
    attendance_status: AttendanceStatus = AttendanceStatus.UNKNOWN
    note: Optional[str] = None
    location_id: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.clock_out is None

    @property
    def worked_minutes(self) -> int:
        if not self.clock_out:
            return 0
        return max(0, int((self.clock_out - self.clock_in).total_seconds() // 60))

    def to_dict(self) -> dict:
        return {
            "id": self.record_id,
            "user_id": self.user_id,
            "date": self.work_date.isoformat(),
            "clock_in": self.clock_in.strftime("%H:%M"),
            "clock_out": self.clock_out.strftime("%H:%M") if self.clock_out else None,
            "clock_in_at": self.clock_in.isoformat(),
            "clock_out_at": self.clock_out.isoformat() if self.clock_out else None,
            "type": self.record_type.value,
            "status": self.status.value,
            "attendance_status": self.attendance_status.value,
            "work_hours": format_work_hours(self.worked_minutes),
            "note": self.note,
            "location_id": self.location_id,
        }


@dataclass(frozen=True)
class QRPayload:
    """Parsed content of an attendance QR code."""

    location_id: str
    location_name: str
    timestamp_ms: int
    version: str

    def to_dict(self) -> dict:
        return {
            "type": "attendance-qr",
            "locationId": self.location_id,
            "locationName": self.location_name,
            "timestamp": self.timestamp_ms,
            "version": self.version,
        }
