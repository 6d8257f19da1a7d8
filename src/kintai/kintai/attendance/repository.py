from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import ApprovalStatus, AttendanceStatus, TimeRecordType
from .model import TimeRecord


class TimeRecordRepository(Protocol):
    def get(self, record_id: int) -> Optional[TimeRecord]:
        raise NotImplementedError

    def get_open_for_user(self, user_id: int) -> Optional[TimeRecord]:
        """Latest record of the user without a clock-out."""

        raise NotImplementedError

    def list_for_user(self, user_id: int, *, start: date, end: date) -> Sequence[TimeRecord]:
        raise NotImplementedError

    def list_range(self, *, start: date, end: date, user_id: Optional[int] = None) -> Sequence[TimeRecord]:
        raise NotImplementedError

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
        raise NotImplementedError

    def update_clock_out(
        self,
        *,
        record_id: int,
        clock_out: datetime,
        attendance_status: AttendanceStatus,
        status: ApprovalStatus,
        record_type: TimeRecordType,
        note: Optional[str] = None,
    ) -> bool:
        raise NotImplementedError

    def set_status(self, record_id: int, status: ApprovalStatus) -> bool:
        raise NotImplementedError

    def update_times(
        self,
        *,
        record_id: int,
        clock_in: datetime,
        clock_out: Optional[datetime],
        note: Optional[str] = None,
    ) -> bool:
        """Correction applied after an approval."""

        raise NotImplementedError
