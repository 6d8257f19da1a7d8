from __future__ import annotations

from flask import Flask, request, session

from ..common.datetime_utils import month_range, now_local
from ..common.validators import require_date
from ..common.web import current_role, json_body, login_required, ok, query_int, roles_required
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/shifts", methods=["GET"], endpoint="shifts_list")
    @login_required
    def list_shifts():
        today = now_local().date()
        year = query_int("year", today.year)
        month = query_int("month", today.month)
        start, end = month_range(year, month)
        if request.args.get("start"):
            start = require_date(request.args["start"], "開始日")
        if request.args.get("end"):
            end = require_date(request.args["end"], "終了日")

        shifts = container.shift_service.list_range(start, end, user_id=query_int("user_id"))
        return ok([s.to_dict() for s in shifts])

    @app.route("/api/shifts", methods=["POST"], endpoint="shifts_save")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def save_shifts():
        data = json_body()
        items = data.get("shifts")
        if not isinstance(items, list) or not items:
            raise ValidationError("シフトデータが必要です")
        saved = container.shift_service.save_shifts(items, current_role=current_role())
        return ok([s.to_dict() for s in saved], message="シフトを更新しました")

    @app.route("/api/shifts/<int:shift_id>", methods=["DELETE"], endpoint="shifts_delete")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def delete_shift(shift_id: int):
        container.shift_service.delete(shift_id, current_role=current_role())
        return ok(message="シフトを削除しました")

    @app.route("/api/shift-templates", methods=["GET"], endpoint="templates_list")
    @login_required
    def list_templates():
        return ok([t.to_dict() for t in container.template_service.list_templates()])

    @app.route("/api/shift-templates", methods=["POST"], endpoint="templates_create")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def create_template():
        data = json_body()
        template = container.template_service.create(
            current_role=current_role(),
            created_by=session.get("staff_id", "system"),
            name=data.get("name") or "",
            description=data.get("description"),
            pattern=data.get("pattern") or [],
        )
        return ok(template.to_dict(), 201)

    @app.route("/api/shift-templates/<template_id>", methods=["PATCH"], endpoint="templates_update")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def update_template(template_id: str):
        data = json_body()
        template = container.template_service.update(
            template_id,
            current_role=current_role(),
            name=data.get("name"),
            description=data.get("description"),
            pattern=data.get("pattern"),
        )
        return ok(template.to_dict())

    @app.route("/api/shift-templates/<template_id>", methods=["DELETE"], endpoint="templates_delete")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def delete_template(template_id: str):
        container.template_service.delete(template_id, current_role=current_role())
        return ok(message="テンプレートを削除しました")

    @app.route("/api/shift-templates/<template_id>/apply", methods=["POST"], endpoint="templates_apply")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def apply_template(template_id: str):
        data = json_body()
        user_id = data.get("user_id")
        if user_id is None and data.get("staff_id"):
            user_id = container.user_service.get_by_staff_id(str(data["staff_id"])).user_id
        if user_id is None:
            raise ValidationError("スタッフを指定してください")

        shifts = container.template_service.apply(
            template_id,
            user_id=int(user_id),
            start=require_date(data.get("start_date"), "開始日"),
            end=require_date(data.get("end_date"), "終了日"),
            current_role=current_role(),
            save=bool(data.get("save", False)),
        )
        return ok([s.to_dict() for s in shifts])

    @app.route("/api/shift-templates/<template_id>/duplicate", methods=["POST"], endpoint="templates_duplicate")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def duplicate_template(template_id: str):
        data = json_body()
        template = container.template_service.duplicate(
            template_id,
            new_name=data.get("name") or "",
            created_by=session.get("staff_id", "system"),
            current_role=current_role(),
        )
        return ok(template.to_dict(), 201)

    @app.route("/api/shift-templates/<template_id>/summary", methods=["GET"], endpoint="templates_summary")
    @login_required
    def template_summary(template_id: str):
        return ok(container.template_service.summary(template_id))
