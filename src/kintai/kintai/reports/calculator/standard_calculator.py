from __future__ import annotations

from .base import WorkTimeCalculator
from ...attendance.model import TimeRecord
from ...shifts.model import Shift


class StandardWorkTimeCalculator(WorkTimeCalculator):
    """Standard rule: clock_out - clock_in, not below 0; open records count as 0."""

    def worked_minutes(self, record: TimeRecord) -> int:
        if not record.clock_out:
            return 0
        minutes = int((record.clock_out - record.clock_in).total_seconds() // 60)
        return max(minutes, 0)

    def scheduled_minutes(self, shift: Shift) -> int:
        return shift.minutes
