from __future__ import annotations

from datetime import date, time
from typing import Optional, Protocol, Sequence

from .model import Shift, ShiftTemplate


class ShiftRepository(Protocol):
    def get_by_id(self, shift_id: int) -> Optional[Shift]:
        raise NotImplementedError

    def get_for_user_and_date(self, user_id: int, work_date: date) -> Optional[Shift]:
        raise NotImplementedError

    def list_range(self, start: date, end: date, *, user_id: Optional[int] = None) -> Sequence[Shift]:
        raise NotImplementedError

    def upsert(
        self,
        *,
        user_id: int,
        work_date: date,
        start_time: time,
        end_time: time,
        position: Optional[str] = None,
        note: Optional[str] = None,
    ) -> int:
        """Insert or replace the shift of a user for a day; returns the shift id."""

        raise NotImplementedError

    def delete(self, shift_id: int) -> bool:
        raise NotImplementedError


class ShiftTemplateRepository(Protocol):
    def list_all(self) -> Sequence[ShiftTemplate]:
        raise NotImplementedError

    def get(self, template_id: str) -> Optional[ShiftTemplate]:
        raise NotImplementedError

    def save(self, template: ShiftTemplate) -> None:
        raise NotImplementedError

    def delete(self, template_id: str) -> bool:
        raise NotImplementedError
