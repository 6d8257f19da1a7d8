from __future__ import annotations

from abc import ABC, abstractmethod

from ...attendance.model import TimeRecord
from ...shifts.model import Shift


class WorkTimeCalculator(ABC):
    """Calculator interface (Strategy Pattern for report hours)."""

    @abstractmethod
    def worked_minutes(self, record: TimeRecord) -> int:
        raise NotImplementedError

    @abstractmethod
    def scheduled_minutes(self, shift: Shift) -> int:
        raise NotImplementedError
