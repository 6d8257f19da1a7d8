from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import NotificationType, Priority
from .model import Notification


class NotificationRepository(Protocol):
    def add(
        self,
        *,
        notification_type: NotificationType,
        title: str,
        message: str,
        target_user_id: Optional[int],
        priority: Priority,
        created_at: datetime,
    ) -> int:
        raise NotImplementedError

    def get_for_user(self, notification_id: int, user_id: int) -> Optional[Notification]:
        """Return the notification if the user may see it (targeted at them or broadcast)."""

        raise NotImplementedError

    def list_for_user(self, user_id: int, *, limit: int = 100) -> Sequence[Notification]:
        """Newest first, with `read` resolved for this user."""

        raise NotImplementedError

    def mark_read(self, notification_id: int, user_id: int, *, read_at: datetime) -> None:
        raise NotImplementedError
