from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...core.enums import AttendanceStatus
from ...shifts.model import Shift
from .base import AttendanceStrategy, StatusDecision


class EarlyLeaveStrategy(AttendanceStrategy):
    """Early leave on clock-out (only when clock-in was ON_TIME)."""

    def decide_clock_in(self, *, now: datetime, shift: Optional[Shift], grace_minutes: int) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.UNKNOWN)

    def decide_clock_out(self, *, now: datetime, shift: Optional[Shift], current: AttendanceStatus) -> StatusDecision:
        note = None
        if shift:
            _, end = shift.span()
            note = f"{int((end - now).total_seconds() // 60)}分早退"
        return StatusDecision(status=AttendanceStatus.EARLY_LEAVE, note=note)
