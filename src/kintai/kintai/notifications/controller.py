from __future__ import annotations

from flask import Flask

from ..common.web import current_user_id, json_body, login_required, ok, query_int, roles_required
from ..core.enums import Priority, Role
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    svc = container.notification_service

    @app.route("/api/notifications", methods=["GET"], endpoint="notifications_list")
    @login_required
    def list_notifications():
        items = svc.for_user(current_user_id(), limit=query_int("limit", 100))
        return ok([n.to_dict() for n in items], unread=sum(1 for n in items if not n.read))

    @app.route("/api/notifications/unread", methods=["GET"], endpoint="notifications_unread")
    @login_required
    def unread():
        items = svc.unread_for_user(current_user_id())
        return ok([n.to_dict() for n in items], count=len(items))

    @app.route("/api/notifications/<int:notification_id>/read", methods=["POST"], endpoint="notifications_read")
    @login_required
    def mark_read(notification_id: int):
        svc.mark_as_read(notification_id, user_id=current_user_id())
        return ok(message="既読にしました")

    @app.route("/api/notifications", methods=["POST"], endpoint="notifications_send")
    @roles_required(Role.ADMIN)
    def send():
        data = json_body()
        try:
            priority = Priority(data.get("priority") or Priority.MEDIUM.value)
        except ValueError:
            raise ValidationError("優先度の指定が正しくありません")
        target = data.get("target_user_id")
        notification = svc.send_system_message(
            data.get("title"),
            data.get("message"),
            target_user_id=int(target) if target not in (None, "") else None,
            priority=priority,
        )
        return ok(notification.to_dict(), 201, message="通知を送信しました")
