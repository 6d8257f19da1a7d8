from __future__ import annotations

from flask import Flask, request

from ..common.validators import require_date
from ..common.web import current_role, current_user_id, fail, json_body, login_required, ok, roles_required
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..container import Container

_NUMBER_FIELDS = {
    "hourly_rate": int,
    "transportation_allowance": int,
    "remaining_paid_leave": float,
    "total_paid_leave": float,
    "used_paid_leave": float,
}
_DATE_FIELDS = ("paid_leave_expiry", "last_grant_date", "work_start_date")


def _changes_from(data: dict) -> dict:
    changes = {}
    for key, cast in _NUMBER_FIELDS.items():
        if key in data:
            try:
                changes[key] = cast(data[key])
            except (TypeError, ValueError):
                raise ValidationError(f"{key}は数値で入力してください")
    for key in _DATE_FIELDS:
        if key in data:
            changes[key] = None if data[key] in (None, "") else require_date(data[key], key)
    unknown = set(data) - set(_NUMBER_FIELDS) - set(_DATE_FIELDS)
    if unknown:
        raise ValidationError(f"更新できない項目です: {', '.join(sorted(unknown))}")
    return changes


def register(app: Flask, container: Container) -> None:
    svc = container.paid_leave_service
    jobs = {
        "daily": svc.run_daily_check,
        "monthly": svc.run_monthly_maintenance,
        "yearly": svc.run_yearly_grant,
        "weekly": svc.run_weekly_expiry_alert,
    }

    @app.route("/api/paid-leave/alerts", methods=["GET"], endpoint="paid_leave_alerts")
    @login_required
    def alerts():
        all_users = request.args.get("all") in ("1", "true")
        items = svc.list_alerts(user_id=current_user_id(), current_role=current_role(), all_users=all_users)
        return ok([a.to_dict() for a in items])

    @app.route("/api/paid-leave/alerts/<int:alert_id>/dismiss", methods=["POST"], endpoint="paid_leave_dismiss")
    @login_required
    def dismiss(alert_id: int):
        svc.dismiss_alert(alert_id, user_id=current_user_id(), current_role=current_role())
        return ok(message="アラートを非表示にしました")

    @app.route("/api/paid-leave/maintenance", methods=["POST"], endpoint="paid_leave_maintenance")
    @roles_required(Role.ADMIN)
    def maintenance():
        job = json_body().get("job") or "daily"
        if job not in jobs:
            raise ValidationError(f"jobは{', '.join(jobs)}のいずれかを指定してください")
        return ok(jobs[job]().to_dict(), message="メンテナンスを実行しました")

    @app.route("/api/paid-leave/<staff_id>", methods=["GET"], endpoint="paid_leave_get")
    @login_required
    def get_info(staff_id: str):
        user = container.user_service.get_by_staff_id(staff_id)
        if current_role() == Role.STAFF and user.user_id != current_user_id():
            return fail("他のスタッフの有給情報は閲覧できません", 403)
        return ok(svc.summary(user.user_id))

    @app.route("/api/paid-leave/<staff_id>", methods=["PUT"], endpoint="paid_leave_update")
    @roles_required(Role.ADMIN)
    def update_info(staff_id: str):
        user = container.user_service.get_by_staff_id(staff_id)
        info = svc.update_info(user.user_id, current_role=current_role(), **_changes_from(json_body()))
        return ok(info.to_dict(), message="給与情報を更新しました")

    @app.route("/api/paid-leave/<staff_id>/grant", methods=["POST"], endpoint="paid_leave_grant")
    @roles_required(Role.ADMIN)
    def grant(staff_id: str):
        user = container.user_service.get_by_staff_id(staff_id)
        info = svc.grant_now(user.user_id, current_role=current_role(), force=bool(json_body().get("force")))
        return ok(info.to_dict(), message="有給休暇を付与しました")
