from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AlertType, Severity
from .model import PaidLeaveAlert, PayrollInfo


class PayrollRepository(Protocol):
    def get(self, user_id: int) -> Optional[PayrollInfo]:
        raise NotImplementedError

    def ensure(self, user_id: int, *, work_start_date: Optional[date] = None) -> PayrollInfo:
        """Return the row, creating an empty one if missing."""

        raise NotImplementedError

    def save(self, info: PayrollInfo) -> None:
        raise NotImplementedError

    def list_all(self) -> Sequence[PayrollInfo]:
        raise NotImplementedError


class AlertRepository(Protocol):
    def add(
        self,
        *,
        user_id: int,
        alert_type: AlertType,
        message: str,
        severity: Severity,
        created_at: datetime,
    ) -> int:
        raise NotImplementedError

    def get(self, alert_id: int) -> Optional[PaidLeaveAlert]:
        raise NotImplementedError

    def list_active(self, *, user_id: Optional[int] = None) -> Sequence[PaidLeaveAlert]:
        raise NotImplementedError

    def dismiss(self, alert_id: int) -> bool:
        raise NotImplementedError
