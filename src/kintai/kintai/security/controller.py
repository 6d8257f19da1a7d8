from __future__ import annotations

from flask import Flask, request

from ..common.web import current_role, current_user_id, json_body, login_required, ok, query_int, roles_required
from ..core.enums import Role
from ..container import Container


def register(app: Flask, container: Container) -> None:
    mfa = container.mfa_service
    emergency = container.emergency_service

    @app.route("/api/security/mfa/setup", methods=["POST"], endpoint="security_mfa_setup")
    @login_required
    def mfa_setup():
        return ok(mfa.begin_setup(current_user_id()))

    @app.route("/api/security/mfa/enable", methods=["POST"], endpoint="security_mfa_enable")
    @login_required
    def mfa_enable():
        mfa.enable(current_user_id(), str(json_body().get("code") or ""))
        return ok(message="多要素認証を有効にしました")

    @app.route("/api/security/mfa/disable", methods=["POST"], endpoint="security_mfa_disable")
    @login_required
    def mfa_disable():
        mfa.disable(current_user_id(), password=str(json_body().get("password") or ""))
        return ok(message="多要素認証を無効にしました")

    @app.route("/api/security/backup-codes", methods=["POST"], endpoint="security_backup_codes")
    @login_required
    def backup_codes():
        return ok(mfa.regenerate_backup_codes(current_user_id()), 201, message="バックアップコードを再生成しました")

    @app.route("/api/security/backup-codes/stats", methods=["GET"], endpoint="security_backup_code_stats")
    @login_required
    def backup_code_stats():
        return ok(mfa.backup_code_status(current_user_id()))

    # Reachable without a session: the caller is locked out.
    @app.route("/api/security/emergency", methods=["POST"], endpoint="security_emergency_create")
    def emergency_create():
        data = json_body()
        req = emergency.create_request(
            staff_id=data.get("staff_id"),
            request_type=data.get("request_type"),
            reason=data.get("reason"),
            contact_method=data.get("contact_method"),
            contact_info=data.get("contact_info"),
        )
        return ok({"id": req.request_id}, 201, message="緊急アクセス要求を送信しました。管理者からの連絡をお待ちください")

    @app.route("/api/security/emergency", methods=["GET"], endpoint="security_emergency_list")
    @roles_required(Role.ADMIN)
    def emergency_list():
        items = emergency.list_requests(current_role=current_role(), status=request.args.get("status") or None)
        return ok([r.to_dict() for r in items])

    @app.route("/api/security/emergency/stats", methods=["GET"], endpoint="security_emergency_stats")
    @roles_required(Role.ADMIN)
    def emergency_stats():
        return ok(emergency.stats(current_role=current_role()))

    @app.route(
        "/api/security/emergency/<int:request_id>/process", methods=["POST"], endpoint="security_emergency_process"
    )
    @roles_required(Role.ADMIN)
    def emergency_process(request_id: int):
        data = json_body()
        req = emergency.process(
            request_id,
            current_role=current_role(),
            admin_user_id=current_user_id(),
            approve=bool(data.get("approve")),
            admin_notes=data.get("admin_notes"),
        )
        return ok(req.to_dict(), message="緊急アクセス要求を処理しました")

    @app.route("/api/security/emergency-contact", methods=["GET"], endpoint="security_contact_get")
    @login_required
    def contact_get():
        contact = emergency.get_contact(current_user_id())
        return ok(contact.to_dict() if contact else None)

    @app.route("/api/security/emergency-contact", methods=["PUT"], endpoint="security_contact_set")
    @login_required
    def contact_set():
        data = json_body()
        contact = emergency.set_contact(
            current_user_id(),
            name=data.get("name"),
            relationship=data.get("relationship"),
            email=data.get("email"),
            phone=data.get("phone"),
        )
        return ok(contact.to_dict(), message="緊急連絡先を保存しました")

    @app.route("/api/security/logs", methods=["GET"], endpoint="security_logs")
    @roles_required(Role.ADMIN)
    def logs():
        staff_id = request.args.get("staff_id")
        limit = query_int("limit", 100)
        events = container.security_log.for_user(staff_id, limit) if staff_id else container.security_log.recent(limit)
        return ok([e.to_dict() for e in events])
