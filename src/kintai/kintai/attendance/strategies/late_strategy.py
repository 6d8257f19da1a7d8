from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...core.enums import AttendanceStatus
from ...shifts.model import Shift
from .base import AttendanceStrategy, StatusDecision


class LateStrategy(AttendanceStrategy):
    """Clock-in after shift start plus grace."""

    def decide_clock_in(self, *, now: datetime, shift: Optional[Shift], grace_minutes: int) -> StatusDecision:
        note = None
        if shift:
            start, _ = shift.span()
            late_by = int((now - start).total_seconds() // 60)
            note = f"{late_by}分遅刻"
        return StatusDecision(status=AttendanceStatus.LATE, note=note)

    def decide_clock_out(self, *, now: datetime, shift: Optional[Shift], current: AttendanceStatus) -> StatusDecision:
        return StatusDecision(status=current)
