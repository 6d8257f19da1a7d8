from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Optional

from ..common.datetime_utils import now_local
from ..common.validators import require_non_empty
from ..core.enums import NotificationType, Priority
from ..core.exceptions import NotFoundError
from .model import Notification
from .repository import NotificationRepository

logger = logging.getLogger(__name__)


class NotificationService:
    """In-app notifications (targeted or broadcast) plus the canned senders."""

    def __init__(self, notifications: NotificationRepository, *, clock: Callable[[], datetime] = now_local):
        self._notifications = notifications
        self._clock = clock

    def add(
        self,
        notification_type: NotificationType,
        title: str,
        message: str,
        *,
        target_user_id: Optional[int] = None,
        priority: Priority = Priority.MEDIUM,
    ) -> Notification:
        created_at = self._clock()
        notification_id = self._notifications.add(
            notification_type=NotificationType(notification_type),
            title=require_non_empty(title, "タイトル"),
            message=require_non_empty(message, "メッセージ"),
            target_user_id=int(target_user_id) if target_user_id is not None else None,
            priority=Priority(priority),
            created_at=created_at,
        )
        logger.debug("notification %s -> %s: %s", notification_id, target_user_id or "all", title)
        return Notification(
            notification_id=notification_id,
            notification_type=NotificationType(notification_type),
            title=title.strip(),
            message=message.strip(),
            target_user_id=target_user_id,
            created_at=created_at,
            priority=Priority(priority),
        )

    def mark_as_read(self, notification_id: int, *, user_id: int) -> None:
        if not self._notifications.get_for_user(int(notification_id), int(user_id)):
            raise NotFoundError("通知が見つかりません")
        self._notifications.mark_read(int(notification_id), int(user_id), read_at=self._clock())

    def for_user(self, user_id: int, *, limit: int = 100) -> list[Notification]:
        items = list(self._notifications.list_for_user(int(user_id), limit=limit))
        items.sort(key=lambda n: (n.created_at, n.notification_id), reverse=True)
        return items

    def unread_for_user(self, user_id: int) -> list[Notification]:
        return [n for n in self.for_user(user_id) if not n.read]

    def unread_count(self, user_id: int) -> int:
        return len(self.unread_for_user(user_id))

    def send_shift_update(self, user_id: int, *, work_date: Optional[date] = None) -> Notification:
        message = "新しいシフトスケジュールを確認してください"
        if work_date:
            message = f"{work_date.isoformat()} のシフトが更新されました。{message}"
        return self.add(
            NotificationType.SHIFT_UPDATE,
            "シフトが更新されました",
            message,
            target_user_id=user_id,
            priority=Priority.MEDIUM,
        )

    def send_attendance_approval(self, user_id: int, *, approved: bool, work_date: Optional[date] = None) -> Notification:
        if approved:
            title, message, priority = "勤怠記録が承認されました", "手動入力の勤怠記録が承認されました", Priority.LOW
        else:
            title, message, priority = (
                "勤怠記録が却下されました",
                "勤怠記録に不備があります。再度確認してください",
                Priority.HIGH,
            )
        if work_date:
            message = f"{work_date.isoformat()}: {message}"
        return self.add(NotificationType.ATTENDANCE_APPROVAL, title, message, target_user_id=user_id, priority=priority)

    def send_schedule_change(self, user_id: int, message: Optional[str] = None) -> Notification:
        return self.add(
            NotificationType.SCHEDULE_CHANGE,
            "勤務スケジュールが変更されました",
            message or "シフトに変更があります。最新のスケジュールを確認してください",
            target_user_id=user_id,
            priority=Priority.HIGH,
        )

    def send_system_message(
        self,
        title: str,
        message: str,
        *,
        target_user_id: Optional[int] = None,
        priority: Priority = Priority.MEDIUM,
    ) -> Notification:
        return self.add(
            NotificationType.SYSTEM_MESSAGE, title, message, target_user_id=target_user_id, priority=priority
        )
