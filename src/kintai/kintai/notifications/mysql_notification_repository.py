from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import NotificationType, Priority
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Notification
from .repository import NotificationRepository

_SELECT = """
    SELECT n.notification_id, n.notification_type, n.title, n.message, n.target_user_id,
           n.created_at, n.priority, (r.user_id IS NOT NULL) AS is_read
    FROM notifications n
    LEFT JOIN notification_reads r ON r.notification_id = n.notification_id AND r.user_id = %s
"""


def _row_to_notification(r: dict) -> Notification:
    return Notification(
        notification_id=int(r["notification_id"]),
        notification_type=NotificationType(r["notification_type"]),
        title=r["title"],
        message=r["message"],
        target_user_id=r.get("target_user_id"),
        created_at=r["created_at"],
        priority=Priority(r["priority"]),
        read=bool(r.get("is_read")),
    )


class MySQLNotificationRepository(NotificationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO notifications(notification_type, title, message, target_user_id, created_at, priority)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (notification_type.value, title, message, target_user_id, created_at, priority.value),
            )
            return int(cur.lastrowid)

    def get_for_user(self, notification_id: int, user_id: int) -> Optional[Notification]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE n.notification_id=%s AND (n.target_user_id IS NULL OR n.target_user_id=%s)",
                (int(user_id), int(notification_id), int(user_id)),
            )
            row = fetchone(cur)
            return _row_to_notification(row) if row else None

    def list_for_user(self, user_id: int, *, limit: int = 100) -> Sequence[Notification]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT
                + """
                WHERE n.target_user_id IS NULL OR n.target_user_id=%s
                ORDER BY n.created_at DESC, n.notification_id DESC
                LIMIT %s
                """,
                (int(user_id), int(user_id), int(limit)),
            )
            return [_row_to_notification(r) for r in fetchall(cur)]

    def mark_read(self, notification_id: int, user_id: int, *, read_at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT IGNORE INTO notification_reads(notification_id, user_id, read_at) VALUES(%s,%s,%s)",
                (int(notification_id), int(user_id), read_at),
            )
