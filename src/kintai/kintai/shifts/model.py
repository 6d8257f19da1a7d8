from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional

from ..common.datetime_utils import combine_span, span_minutes


@dataclass(frozen=True)
class Shift:
    """Domain entity: one staff member's shift on one day.

    An end_time earlier than start_time means the shift ends the next day.
    """

    shift_id: int
    user_id: int
    work_date: date
    start_time: time
    end_time: time
    position: Optional[str] = None
    note: Optional[str] = None

    @property
    def overnight(self) -> bool:
        return self.end_time < self.start_time

    @property
    def minutes(self) -> int:
        return span_minutes(self.start_time, self.end_time)

    def span(self) -> tuple[datetime, datetime]:
        return combine_span(self.work_date, self.start_time, self.end_time)

    def to_dict(self) -> dict:
        return {
            "id": self.shift_id,
            "user_id": self.user_id,
            "date": self.work_date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "position": self.position,
            "note": self.note,
        }


@dataclass(frozen=True)
class TemplateShift:
    day_of_week: int  # 0=Sunday .. 6=Saturday
    start_time: time
    end_time: time
    position: Optional[str] = None
    is_optional: bool = False

    def to_dict(self) -> dict:
        return {
            "day_of_week": self.day_of_week,
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "position": self.position,
            "is_optional": self.is_optional,
        }


@dataclass(frozen=True)
class ShiftTemplate:
    template_id: str
    name: str
    description: Optional[str]
    pattern: tuple[TemplateShift, ...] = field(default_factory=tuple)
    created_at: Optional[datetime] = None
    created_by: str = "system"
    is_default: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.template_id,
            "name": self.name,
            "description": self.description,
            "pattern": [p.to_dict() for p in self.pattern],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "created_by": self.created_by,
            "is_default": self.is_default,
        }
