from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..core.enums import AttendanceStatus
from ..shifts.model import Shift
from .strategies.base import AttendanceStrategy
from .strategies.early_strategy import EarlyLeaveStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.normal_strategy import NormalStrategy


@dataclass
class AttendanceStrategyFactory:
    """Factory Pattern: choose appropriate strategy based on rules."""

    def for_clock_in(self, *, now: datetime, shift: Optional[Shift], grace_minutes: int) -> AttendanceStrategy:
        if not shift:
            return NormalStrategy()

        shift_start, _ = shift.span()
        if now <= shift_start + timedelta(minutes=grace_minutes):
            return NormalStrategy()
        return LateStrategy()

    def for_clock_out(
        self, *, now: datetime, shift: Optional[Shift], current_status: AttendanceStatus
    ) -> AttendanceStrategy:
        if not shift:
            return NormalStrategy()

        # overnight shifts end on the following day
        _, shift_end = shift.span()
        if now < shift_end and current_status == AttendanceStatus.ON_TIME:
            return EarlyLeaveStrategy()
        return NormalStrategy()
