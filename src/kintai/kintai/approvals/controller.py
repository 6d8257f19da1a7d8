from __future__ import annotations

from flask import Flask

from ..common.datetime_utils import parse_hhmm
from ..common.validators import require_date, require_non_empty
from ..common.web import current_role, current_user_id, json_body, login_required, ok, roles_required
from ..core.enums import ApprovalActionType, Role
from ..core.exceptions import ValidationError
from ..container import Container


def _hhmm(value, label: str):
    try:
        return parse_hhmm(require_non_empty(value, label))
    except ValueError:
        raise ValidationError(f"{label}の形式が正しくありません (HH:MM)")


def register(app: Flask, container: Container) -> None:
    svc = container.approval_service

    @app.route("/api/approvals/pending", methods=["GET"], endpoint="approvals_pending")
    @login_required
    def pending():
        return ok([r.to_dict() for r in svc.pending_for(current_user_id())])

    @app.route("/api/approvals/mine", methods=["GET"], endpoint="approvals_mine")
    @login_required
    def mine():
        return ok([r.to_dict() for r in svc.my_requests(current_user_id())])

    @app.route("/api/approvals/history", methods=["GET"], endpoint="approvals_history")
    @login_required
    def history():
        return ok([r.to_dict() for r in svc.history_for(current_user_id())])

    @app.route("/api/approvals/stats", methods=["GET"], endpoint="approvals_stats")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def stats():
        return ok(svc.stats(current_user_id()))

    @app.route("/api/approvals/workflows", methods=["GET"], endpoint="approvals_workflows")
    @login_required
    def workflows():
        return ok([w.to_dict() for w in svc.list_workflows()])

    @app.route("/api/approvals/<int:request_id>", methods=["GET"], endpoint="approvals_detail")
    @login_required
    def detail(request_id: int):
        return ok(svc.details(request_id, user_id=current_user_id(), current_role=current_role()))

    @app.route("/api/approvals/vacation", methods=["POST"], endpoint="approvals_vacation")
    @login_required
    def vacation():
        data = json_body()
        req = svc.request_vacation(
            requester_id=current_user_id(),
            start=require_date(data.get("start_date"), "開始日"),
            end=require_date(data.get("end_date"), "終了日"),
            reason=data.get("reason"),
        )
        return ok(req.to_dict(), 201, message="有給休暇を申請しました")

    @app.route("/api/approvals/overtime", methods=["POST"], endpoint="approvals_overtime")
    @login_required
    def overtime():
        data = json_body()
        req = svc.request_overtime(
            requester_id=current_user_id(),
            work_date=require_date(data.get("date"), "日付"),
            hours=data.get("hours"),
            reason=data.get("reason"),
        )
        return ok(req.to_dict(), 201, message="残業を申請しました")

    @app.route("/api/approvals/shift-change", methods=["POST"], endpoint="approvals_shift_change")
    @login_required
    def shift_change():
        data = json_body()
        req = svc.request_shift_change(
            requester_id=current_user_id(),
            work_date=require_date(data.get("date"), "日付"),
            start_time=_hhmm(data.get("start_time"), "開始時刻"),
            end_time=_hhmm(data.get("end_time"), "終了時刻"),
            reason=data.get("reason"),
            position=data.get("position") or None,
        )
        return ok(req.to_dict(), 201, message="シフト変更を申請しました")

    @app.route("/api/approvals/<int:request_id>/decision", methods=["POST"], endpoint="approvals_decision")
    @roles_required(Role.ADMIN, Role.CREATOR)
    def decision(request_id: int):
        data = json_body()
        try:
            action = ApprovalActionType(data.get("action"))
        except ValueError:
            raise ValidationError("actionはapproveまたはrejectを指定してください")
        req = svc.process(request_id, approver_id=current_user_id(), action=action, comment=data.get("comment"))
        message = "承認しました" if action == ApprovalActionType.APPROVE else "却下しました"
        return ok(req.to_dict(), message=message)

    @app.route("/api/approvals/<int:request_id>/emergency", methods=["POST"], endpoint="approvals_emergency")
    @roles_required(Role.ADMIN)
    def emergency(request_id: int):
        data = json_body()
        reason = require_non_empty(data.get("reason"), "理由")
        req = svc.emergency_approve(request_id, approver_id=current_user_id(), reason=reason)
        return ok(req.to_dict(), message="緊急承認しました")
