from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import NotificationType, Priority


@dataclass(frozen=True)
class Notification:
    """A message for one user, or for everyone when target_user_id is None."""

    notification_id: int
    notification_type: NotificationType
    title: str
    message: str
    target_user_id: Optional[int]
    created_at: datetime
    priority: Priority = Priority.MEDIUM
    read: bool = False

    @property
    def is_broadcast(self) -> bool:
        return self.target_user_id is None

    def to_dict(self) -> dict:
        return {
            "id": self.notification_id,
            "type": self.notification_type.value,
            "title": self.title,
            "message": self.message,
            "target_user_id": self.target_user_id,
            "timestamp": self.created_at.isoformat(),
            "priority": self.priority.value,
            "read": self.read,
        }
