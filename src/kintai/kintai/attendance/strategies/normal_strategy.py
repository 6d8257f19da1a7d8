from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...core.enums import AttendanceStatus
from ...shifts.model import Shift
from .base import AttendanceStrategy, StatusDecision


class NormalStrategy(AttendanceStrategy):
    """On-time clock-in, normal clock-out."""

    def decide_clock_in(self, *, now: datetime, shift: Optional[Shift], grace_minutes: int) -> StatusDecision:
        if not shift:
            return StatusDecision(status=AttendanceStatus.UNKNOWN, note="シフト未登録")
        return StatusDecision(status=AttendanceStatus.ON_TIME)

    def decide_clock_out(self, *, now: datetime, shift: Optional[Shift], current: AttendanceStatus) -> StatusDecision:
        return StatusDecision(status=current)
