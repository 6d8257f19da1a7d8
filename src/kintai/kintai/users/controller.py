from __future__ import annotations

from flask import Flask, session

from ..common.validators import require_date
from ..common.web import current_role, current_user_id, fail, json_body, login_required, ok, roles_required
from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..container import Container


def _optional_str(value):
    if value in (None, ""):
        return None
    return str(value)


def _optional_date(data: dict, key: str, label: str):
    value = data.get(key)
    if value in (None, ""):
        return None
    return require_date(value, label)


def register(app: Flask, container: Container) -> None:
    @app.route("/api/auth/login", methods=["POST"], endpoint="auth_login")
    def login():
        data = json_body()
        s_user = container.auth_service.authenticate(
            str(data.get("staff_id") or data.get("staffId") or ""),
            str(data.get("password") or ""),
            otp=data.get("otp") or None,
            backup_code=_optional_str(data.get("backup_code") or data.get("backupCode")),
        )

        session.clear()
        session.permanent = True
        session["user_id"] = s_user.user_id
        session["staff_id"] = s_user.staff_id
        session["name"] = s_user.name
        session["role"] = s_user.role.value

        extra = {"message": s_user.message} if s_user.message else {}
        return ok(s_user.to_dict(), **extra)

    @app.route("/api/auth/logout", methods=["POST"], endpoint="auth_logout")
    def logout():
        session.clear()
        return ok(message="ログアウトしました")

    @app.route("/api/auth/me", methods=["GET"], endpoint="auth_me")
    @login_required
    def me():
        user = container.user_service.get(current_user_id())
        return ok(user.to_public())

    @app.route("/api/auth/password", methods=["POST"], endpoint="auth_password")
    @login_required
    def change_password():
        data = json_body()
        container.auth_service.change_password(
            current_user_id(),
            current_password=str(data.get("current_password") or ""),
            new_password=str(data.get("new_password") or ""),
        )
        return ok(message="パスワードを変更しました")

    @app.route("/api/users", methods=["GET"], endpoint="users_list")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def list_users():
        users = container.user_service.list_users(current_role=current_role())
        return ok([u.to_public() for u in users])

    @app.route("/api/users", methods=["POST"], endpoint="users_create")
    @roles_required(Role.ADMIN)
    def create_user():
        data = json_body()
        try:
            role = Role(data.get("role") or Role.STAFF.value)
        except ValueError:
            raise ValidationError("権限の指定が正しくありません")

        user = container.user_service.create_user(
            current_role=current_role(),
            staff_id=str(data.get("staff_id") or ""),
            name=str(data.get("name") or ""),
            email=data.get("email"),
            password=str(data.get("password") or ""),
            role=role,
            birth_date=_optional_date(data, "birth_date", "生年月日"),
            address=data.get("address"),
            phone=data.get("phone"),
            work_start_date=_optional_date(data, "work_start_date", "勤務開始日"),
        )
        return ok(user.to_public(), 201)

    @app.route("/api/users/me", methods=["PATCH"], endpoint="users_update_me")
    @login_required
    def update_me():
        data = json_body()
        user = container.user_service.update_profile(
            current_user_id(),
            name=data.get("name"),
            email=data.get("email"),
            address=data.get("address"),
            phone=data.get("phone"),
            birth_date=_optional_date(data, "birth_date", "生年月日"),
        )
        session["name"] = user.name
        return ok(user.to_public())

    @app.route("/api/users/<int:user_id>/active", methods=["PATCH"], endpoint="users_set_active")
    @roles_required(Role.ADMIN)
    def set_active(user_id: int):
        data = json_body()
        container.user_service.set_active(user_id, current_role=current_role(), is_active=bool(data.get("is_active")))
        return ok(message="更新しました")

    @app.route("/api/users/<int:user_id>", methods=["GET"], endpoint="users_get")
    @login_required
    def get_user(user_id: int):
        if user_id != current_user_id() and current_role() == Role.STAFF:
            return fail("この操作を行う権限がありません", 403)
        return ok(container.user_service.get(user_id).to_public())
